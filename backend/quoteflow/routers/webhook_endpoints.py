"""Webhook Endpoint and Webhook API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from quoteflow.core.database import get_db
from quoteflow.models.webhook import Webhook, WebhookStatus
from quoteflow.models.webhook_endpoint import WebhookEndpoint
from quoteflow.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from quoteflow.repositories.webhook_repository import WebhookRepository
from quoteflow.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointResponse,
    WebhookEndpointUpdate,
    WebhookResponse,
)
from quoteflow.services.webhook_service import WebhookService

router = APIRouter()


@router.post(
    "/",
    response_model=WebhookEndpointResponse,
    status_code=201,
    summary="Create webhook endpoint",
    responses={422: {"description": "Validation error"}},
)
async def create_webhook_endpoint(
    data: WebhookEndpointCreate,
    db: Session = Depends(get_db),
) -> WebhookEndpoint:
    """Create a new webhook endpoint."""
    repo = WebhookEndpointRepository(db)
    return repo.create(data)


@router.get(
    "/",
    response_model=list[WebhookEndpointResponse],
    summary="List webhook endpoints",
)
async def list_webhook_endpoints(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[WebhookEndpoint]:
    """List all webhook endpoints."""
    repo = WebhookEndpointRepository(db)
    response.headers["X-Total-Count"] = str(repo.count())
    return repo.get_all(skip=skip, limit=limit)


@router.get(
    "/hooks/list",
    response_model=list[WebhookResponse],
    summary="List webhooks",
)
async def list_webhooks(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    webhook_type: str | None = None,
    status: WebhookStatus | None = None,
    object_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> list[Webhook]:
    """List queued and delivered webhooks, optionally for one invoice or payment."""
    repo = WebhookRepository(db)
    return repo.search(
        skip=skip,
        limit=limit,
        webhook_type=webhook_type,
        status=status,
        object_id=object_id,
    )


@router.post(
    "/hooks/{webhook_id}/retry",
    response_model=WebhookResponse,
    summary="Retry webhook delivery",
    responses={
        400: {"description": "Only failed webhooks can be retried"},
        404: {"description": "Webhook not found"},
    },
)
async def retry_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
) -> Webhook:
    """Manually retry a failed webhook."""
    repo = WebhookRepository(db)
    webhook = repo.get_by_id(webhook_id)
    if not webhook:
        raise HTTPException(status_code=404, detail="Webhook not found")
    if webhook.status != WebhookStatus.FAILED.value:
        raise HTTPException(status_code=400, detail="Only failed webhooks can be retried")

    repo.schedule_retry(webhook)
    WebhookService(db).deliver_webhook(webhook_id)
    db.refresh(webhook)
    return webhook


@router.get(
    "/{endpoint_id}",
    response_model=WebhookEndpointResponse,
    summary="Get webhook endpoint",
    responses={404: {"description": "Webhook endpoint not found"}},
)
async def get_webhook_endpoint(
    endpoint_id: UUID,
    db: Session = Depends(get_db),
) -> WebhookEndpoint:
    """Get a webhook endpoint by ID."""
    repo = WebhookEndpointRepository(db)
    endpoint = repo.get_by_id(endpoint_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")
    return endpoint


@router.put(
    "/{endpoint_id}",
    response_model=WebhookEndpointResponse,
    summary="Update webhook endpoint",
    responses={
        404: {"description": "Webhook endpoint not found"},
        422: {"description": "Validation error"},
    },
)
async def update_webhook_endpoint(
    endpoint_id: UUID,
    data: WebhookEndpointUpdate,
    db: Session = Depends(get_db),
) -> WebhookEndpoint:
    """Update a webhook endpoint."""
    repo = WebhookEndpointRepository(db)
    endpoint = repo.update(endpoint_id, data)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")
    return endpoint


@router.delete(
    "/{endpoint_id}",
    status_code=204,
    summary="Delete webhook endpoint",
    responses={404: {"description": "Webhook endpoint not found"}},
)
async def delete_webhook_endpoint(
    endpoint_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    """Delete a webhook endpoint."""
    repo = WebhookEndpointRepository(db)
    if not repo.delete(endpoint_id):
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")

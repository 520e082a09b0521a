"""Schemas for webhook endpoints and the deliveries queued for them."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from quoteflow.models.webhook import WebhookStatus

EndpointStatus = Literal["active", "inactive"]
SignatureAlgorithm = Literal["hmac"]


class WebhookEndpointCreate(BaseModel):
    url: str = Field(max_length=2048)
    signature_algo: SignatureAlgorithm = "hmac"


class WebhookEndpointUpdate(BaseModel):
    """Inactive endpoints stay registered but receive no new deliveries."""

    url: str | None = Field(default=None, max_length=2048)
    status: EndpointStatus | None = None


class WebhookEndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    signature_algo: SignatureAlgorithm
    status: EndpointStatus
    created_at: datetime
    updated_at: datetime


class WebhookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    webhook_endpoint_id: UUID
    webhook_type: str
    object_type: str | None = None
    object_id: UUID | None = None
    payload: dict[str, Any]
    status: WebhookStatus
    retries: int
    max_retries: int
    last_retried_at: datetime | None = None
    http_status: int | None = None
    response: str | None = None
    created_at: datetime
    updated_at: datetime

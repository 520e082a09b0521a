"""Idempotency support for API endpoints.

Checks the ``Idempotency-Key`` header on mutating requests. If a completed
response exists for the key it is replayed as a JSONResponse; otherwise the
caller gets an ``IdempotencyResult`` and must call
``record_idempotency_response`` once it has produced its response.

A key is bound to the method, path and body of the request that first used
it. Reusing it for anything else raises ``IdempotencyKeyReusedError``.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from quoteflow.core.exceptions import IdempotencyKeyReusedError
from quoteflow.models.idempotency_record import IdempotencyRecord
from quoteflow.repositories.idempotency_repository import IdempotencyRepository


@dataclass
class IdempotencyResult:
    """Holds pending idempotency key info for later recording."""

    key: str
    method: str
    path: str


def request_fingerprint(payload: dict[str, Any] | None) -> str:
    """SHA-256 of the canonical JSON form of a request body."""
    canonical = json.dumps(payload or {}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _matches(record: IdempotencyRecord, method: str, path: str, fingerprint: str) -> bool:
    if record.request_method != method or record.request_path != path:
        return False
    return record.request_hash is None or record.request_hash == fingerprint


def check_idempotency(
    request: Request,
    db: Session,
    payload: dict[str, Any] | None = None,
) -> JSONResponse | IdempotencyResult | None:
    """Check the ``Idempotency-Key`` header for a cached response.

    Returns:
        - ``None`` if no ``Idempotency-Key`` header is present.
        - A ``JSONResponse`` replaying the stored response, flagged with
          ``Idempotency-Replayed: true``, if the key already completed.
        - An ``IdempotencyResult`` for a new key that should be recorded.

    Raises:
        IdempotencyKeyReusedError: the key was first used with a different
            method, path or body.
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None

    method = request.method
    path = request.url.path
    fingerprint = request_fingerprint(payload)

    repo = IdempotencyRepository(db)
    existing = repo.get_by_key(key)

    if existing is not None and not _matches(existing, method, path, fingerprint):
        raise IdempotencyKeyReusedError(key)

    if existing is not None and existing.response_status is not None:
        response = JSONResponse(
            content=existing.response_body,
            status_code=int(existing.response_status),
        )
        response.headers["Idempotency-Replayed"] = "true"
        return response

    if existing is None:
        repo.create(
            idempotency_key=key,
            request_method=method,
            request_path=path,
            request_hash=fingerprint,
        )

    return IdempotencyResult(key=key, method=method, path=path)


def record_idempotency_response(
    db: Session,
    key: str,
    status: int,
    body: dict[str, Any],
) -> None:
    """Persist the endpoint response so subsequent calls return the cached result."""
    repo = IdempotencyRepository(db)
    record = repo.get_by_key(key)
    if record is not None:
        repo.update_response(record, status, body)

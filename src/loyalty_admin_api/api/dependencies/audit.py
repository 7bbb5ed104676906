"""Route dependency that records an audit entry for each admin action."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Callable, Literal
from uuid import uuid4

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_admin_api.core.errors import LoyaltyServiceError
from loyalty_admin_api.core.logging import redact
from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.db.session import get_session, get_session_factory
from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.models.audit import AuditCategory, AuditStatus
from loyalty_admin_api.services.audit.audit_service import AuditEntry, record_best_effort

from .security import get_current_admin


async def _request_details(request: Request, source: Literal["body", "params", "none"]) -> dict[str, Any]:
    if source == "none":
        return {}
    if source == "params":
        details: dict[str, Any] = dict(request.query_params)
        details.update(request.path_params)
        return redact(details)

    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {"raw": raw[:512].decode("utf-8", errors="replace")}
    return redact(payload) if isinstance(payload, dict) else {"payload": payload}


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def audit_action(
    action: str,
    *,
    target_model: str,
    description: str,
    details: Literal["body", "params", "none"] = "body",
    category: AuditCategory = AuditCategory.ADMIN_ACTION,
) -> Callable[..., AsyncIterator[None]]:
    """Build a dependency that audits the wrapped route once it has run.

    The entry is written in a separate session after the handler finishes,
    whether it succeeded or raised. Write failures are logged and never
    change the response.
    """

    async def dependency(
        request: Request,
        response: Response,
        admin: Admin = Depends(get_current_admin),
        db: AsyncSession = Depends(get_session),
        session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    ) -> AsyncIterator[None]:
        # Captured up front: a rollback below expires every instance in the request session.
        actor_id, actor_name, actor_email = admin.id, admin.name, admin.email
        captured = await _request_details(request, details)
        outcome = AuditStatus.SUCCESS
        response_status: int | None = None
        try:
            yield
        except LoyaltyServiceError as error:
            outcome = AuditStatus.FAILURE
            response_status = error.status_code
            captured["error"] = error.message
            await db.rollback()
            raise
        except RequestValidationError:
            outcome = AuditStatus.FAILURE
            response_status = status.HTTP_400_BAD_REQUEST
            raise
        except HTTPException as error:
            outcome = AuditStatus.FAILURE
            response_status = error.status_code
            await db.rollback()
            raise
        except Exception:
            outcome = AuditStatus.FAILURE
            response_status = status.HTTP_500_INTERNAL_SERVER_ERROR
            await db.rollback()
            raise
        finally:
            if settings.audit_enabled:
                if response_status is None:
                    route = request.scope.get("route")
                    response_status = response.status_code or getattr(route, "status_code", None) or 200
                target_id = getattr(request.state, "audit_target_id", None)
                if target_id is None and request.path_params:
                    target_id = next(iter(request.path_params.values()))
                await record_best_effort(
                    session_factory,
                    AuditEntry(
                        action=action,
                        status=outcome,
                        category=category,
                        actor_id=actor_id,
                        actor_name=actor_name,
                        actor_email=actor_email,
                        target_model=target_model,
                        target_id=str(target_id) if target_id is not None else None,
                        description=description,
                        details=captured,
                        endpoint=request.url.path,
                        method=request.method,
                        response_status=response_status,
                        request_id=request.headers.get("x-request-id") or str(uuid4()),
                        ip_address=_client_ip(request),
                        user_agent=request.headers.get("user-agent"),
                    ),
                )

    dependency.__name__ = f"audit_{action.lower()}"
    return dependency


__all__ = ["audit_action"]

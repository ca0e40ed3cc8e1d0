"""Access through WhatsApp - ChatPro webhook route.

Security:
- Sender JID, push name and text exist only in memory while processing
- Logs contain NO PII (sender identified by a short hash only)
"""

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from access_bridge.domain.access_pipeline import AccessService, build_access_service
from access_bridge.domain.outcomes import error_body, technical_failure_body
from access_bridge.infra.settings import get_settings
from access_bridge.observability.correlation import get_correlation_id
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import safe_log_context

router = APIRouter(prefix="/v1/create", tags=["access"])

logger = get_logger(__name__)

_access_service: AccessService | None = None


def _get_access_service() -> AccessService:
    """Get the access service (built on first use; allows test injection)."""
    global _access_service
    if _access_service is None:
        _access_service = build_access_service(get_settings())
    return _access_service


@router.post("/access-through-whatsapp")
async def create_access_through_whatsapp(request: Request) -> JSONResponse:
    """Receive a ChatPro message and grant or deny the access it requests.

    Returns:
        200 access granted (command dispatched).
        400 invalid JSON or incomplete access token.
        401 / 403 access denied (whitelist / dweller).
        415 unsupported message type.
        422 not an access command, bad token or unknown access type.
        500 technical failure.
    """
    correlation_id = get_correlation_id()

    try:
        payload = await request.json()
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid JSON body.", "Send the ChatPro webhook payload as JSON."),
        )

    try:
        service = _get_access_service()
        outcome = await run_in_threadpool(service.handle, payload)
    except Exception:
        logger.exception(
            "access through whatsapp failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=500, content=technical_failure_body())

    logger.info(
        "access request processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                outcome=outcome.kind.value,
                state=outcome.state.value,
                status_code=outcome.status_code,
                failed_effects=[e.name for e in outcome.effects if not e.ok],
            )
        },
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)

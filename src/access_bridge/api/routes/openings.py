"""Gate opening route (converter + Sigma event)."""

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from access_bridge.domain.openings import GateOpener, OpeningRequest, OpeningValidationError
from access_bridge.domain.outcomes import error_body
from access_bridge.infra.settings import get_settings
from access_bridge.observability.correlation import get_correlation_id
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import safe_log_context
from access_bridge.sigma.client import SigmaClient

router = APIRouter(prefix="/v1/create", tags=["openings"])

logger = get_logger(__name__)

_gate_opener: GateOpener | None = None


def _get_gate_opener() -> GateOpener:
    """Get the gate opener (built on first use; allows test injection)."""
    global _gate_opener
    if _gate_opener is None:
        settings = get_settings()
        _gate_opener = GateOpener(
            converter_base_url=settings.converter_base_url,
            events=SigmaClient.from_settings(settings),
            settings=settings,
        )
    return _gate_opener


@router.post("/opening")
async def create_opening(request: Request) -> JSONResponse:
    """Open a gate through the converter and report the event to Sigma."""
    correlation_id = get_correlation_id()

    try:
        opening = OpeningRequest.from_payload(await request.json())
    except (ValueError, OpeningValidationError):
        return JSONResponse(
            status_code=400,
            content=error_body(
                "Missing required fields.",
                "Please provide all required fields: account, companyId, complement, "
                "partition and server.",
            ),
        )

    try:
        data = await run_in_threadpool(_get_gate_opener().open, opening)
    except Exception:
        logger.exception(
            "gate opening failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, account=opening.account
                )
            },
        )
        return JSONResponse(
            status_code=500,
            content=error_body(
                "Something went wrong.",
                "Please try again later. If this issue persists, contact our support team "
                "for assistance.",
            ),
        )

    return JSONResponse(status_code=200, content={"data": data})

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status

from jellytrigger.api.deps import SignedBody
from jellytrigger.core.openapi import COMMON_ERROR_RESPONSES, QUEUE_ERROR_RESPONSES

router = APIRouter(tags=["updates"])
logger = logging.getLogger("jellytrigger.update_webhook")


@router.post(
    "/update",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger Update",
    description="Runs the configured update command in the project directory.",
    responses={**COMMON_ERROR_RESPONSES, **QUEUE_ERROR_RESPONSES},
)
async def trigger_update(request: Request, _: SignedBody) -> dict[str, Any]:
    updater = request.app.state.updater
    queued = request.app.state.queue.submit("update", lambda: updater.run(), coalesce=True)
    logger.info(
        "update_accepted",
        extra={"event_name": "update_accepted", "status": "queued" if queued else "merged"},
    )
    return {
        "success": True,
        "message": "Update triggered",
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }

import logging
from typing import Any

from fastapi import APIRouter, Request, status

from jellytrigger.api.deps import SignedBody
from jellytrigger.core.auth import parse_json_object_lenient
from jellytrigger.core.openapi import COMMON_ERROR_RESPONSES, QUEUE_ERROR_RESPONSES

router = APIRouter(tags=["updates"])
logger = logging.getLogger("jellytrigger.git_pull")


@router.post(
    "/git-pull",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger Git Pull",
    description=(
        "Runs the fixed stash, pull, install and build sequence in the background. "
        "The body is opaque; a JSON `updateId` links progress to the backend update row."
    ),
    responses={**COMMON_ERROR_RESPONSES, **QUEUE_ERROR_RESPONSES},
)
async def trigger_git_pull(request: Request, raw_body: SignedBody) -> dict[str, Any]:
    payload = parse_json_object_lenient(raw_body)
    update_id = payload.get("updateId")
    if not isinstance(update_id, str) or not update_id:
        update_id = None

    updater = request.app.state.updater
    queued = request.app.state.queue.submit(
        f"git-pull:{update_id or ''}",
        lambda: updater.run(update_id),
        coalesce=True,
    )
    logger.info(
        "update_accepted",
        extra={"event_name": "update_accepted", "update_id": update_id, "status": "queued" if queued else "merged"},
    )
    return {"status": "accepted", "message": "Update started", "queued": queued}

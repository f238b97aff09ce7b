from typing import Any, TypeVar

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, ValidationError

from jellytrigger.api.deps import SignedBody
from jellytrigger.core.auth import parse_json_object
from jellytrigger.core.errors import BadRequest
from jellytrigger.core.openapi import COMMON_ERROR_RESPONSES, QUEUE_ERROR_RESPONSES
from jellytrigger.modules.transcode.schema import CancelRequest, TranscodeRequest
from jellytrigger.modules.transcode.service import TranscodeExecutor

router = APIRouter(tags=["transcode"])
ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], raw_body: bytes) -> ModelT:
    payload = parse_json_object(raw_body)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        raise BadRequest("Missing or invalid fields", fields=fields) from exc


def _executor(request: Request) -> TranscodeExecutor:
    return request.app.state.executor


@router.post(
    "/transcode",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start Transcode",
    description="Queues a HandBrake transcode; progress is pushed to the status endpoint.",
    responses={**COMMON_ERROR_RESPONSES, **QUEUE_ERROR_RESPONSES},
)
async def start_transcode(request: Request, raw_body: SignedBody) -> dict[str, Any]:
    transcode_request = _validate(TranscodeRequest, raw_body)
    job = _executor(request).submit(transcode_request)
    return {"status": "accepted", "jobId": job.id}


@router.post("/cancel", summary="Cancel Transcode", responses=COMMON_ERROR_RESPONSES)
async def cancel_transcode(request: Request, raw_body: SignedBody) -> dict[str, Any]:
    cancel_request = _validate(CancelRequest, raw_body)
    return {"success": _executor(request).cancel(cancel_request.job_id)}


@router.get("/status", summary="Active Jobs")
def transcode_status(request: Request) -> dict[str, Any]:
    return {"activeJobs": _executor(request).registry.active_ids()}

import logging
from typing import Any

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from jellytrigger.api.deps import SignedBody
from jellytrigger.core.auth import parse_json_object
from jellytrigger.core.errors import BadRequest, Forbidden
from jellytrigger.core.openapi import COMMON_ERROR_RESPONSES
from jellytrigger.modules.file_delete.service import delete_path
from jellytrigger.modules.path_policy.service import AllowListPolicy

router = APIRouter(tags=["nas"])
logger = logging.getLogger("jellytrigger.nas_delete")


@router.post(
    "/delete",
    summary="Delete Path",
    description=(
        "Deletes one file or directory. The path must sit under one of the configured "
        "media roots after normalization."
    ),
    responses=COMMON_ERROR_RESPONSES,
)
async def delete_endpoint(request: Request, raw_body: SignedBody) -> dict[str, Any]:
    payload = parse_json_object(raw_body)
    file_path = payload.get("filePath")
    if not isinstance(file_path, str) or not file_path:
        raise BadRequest("Missing filePath")

    policy: AllowListPolicy = request.app.state.path_policy
    if not policy.is_allowed(file_path):
        logger.warning(
            "path_rejected",
            extra={"event_name": "path_rejected", "path": file_path, "allowed_paths": policy.to_list()},
        )
        raise Forbidden("Path not in allowed directories", path=file_path, allowedPaths=policy.to_list())

    await run_in_threadpool(delete_path, file_path)
    return {"success": True, "message": "File deleted", "path": file_path}

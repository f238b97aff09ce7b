from typing import Any

from fastapi import APIRouter, Request

from jellytrigger.api.deps import Policy

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health")
def health(request: Request, policy: Policy) -> dict[str, Any]:
    details = request.app.state.health_details
    return {
        "status": "ok",
        "service": request.app.state.service_name,
        "auth": policy.mode.value,
        **details(),
    }

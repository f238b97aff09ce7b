from typing import Annotated

from fastapi import Depends, Request

from jellytrigger.core.auth import read_authenticated_body
from jellytrigger.core.config import Settings
from jellytrigger.core.signature import AuthPolicy


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_policy(request: Request) -> AuthPolicy:
    return request.app.state.auth_policy


async def get_authenticated_body(request: Request) -> bytes:
    return await read_authenticated_body(request, get_auth_policy(request))


AppSettings = Annotated[Settings, Depends(get_settings)]
Policy = Annotated[AuthPolicy, Depends(get_auth_policy)]
SignedBody = Annotated[bytes, Depends(get_authenticated_body)]

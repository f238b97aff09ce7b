from typing import Any, Literal, TypedDict

ServiceName = Literal["git-pull", "update-webhook", "nas-delete", "transcode"]
TranscodeAuthMode = Literal["hmac", "token"]


class SignedRequest(TypedDict):
    headers: dict[str, str]
    body: bytes


class HealthResponse(TypedDict, total=False):
    status: str
    service: str
    auth: str
    directory: str
    host: str
    port: int
    backendReporting: bool
    timestamp: str
    allowedPaths: list[str]
    projectPath: str
    handbrakeAvailable: bool
    activeJobs: int
    queuedJobs: int


class GitPullResponse(TypedDict):
    status: Literal["accepted"]
    message: str
    queued: bool


class UpdateResponse(TypedDict):
    success: bool
    message: str
    timestamp: str


class DeleteResponse(TypedDict):
    success: bool
    message: str
    path: str


class TranscodeAcceptedResponse(TypedDict):
    status: Literal["accepted"]
    jobId: str


class CancelResponse(TypedDict):
    success: bool


class TranscodeRequestBody(TypedDict):
    jobId: str
    filePath: str
    outputFormat: str
    replaceOriginal: bool


class ErrorBody(TypedDict, total=False):
    error: str
    code: str
    details: Any

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

JobStatus = Literal["pending", "running", "completed", "failed"]
JobLogLevel = Literal["info", "success", "warning", "error"]


class TranscodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_id: str = Field(alias="jobId", min_length=1)
    file_path: str = Field(alias="filePath", min_length=1)
    output_format: str = Field(default="hevc", alias="outputFormat", min_length=1)
    replace_original: bool = Field(default=True, alias="replaceOriginal")


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_id: str = Field(alias="jobId", min_length=1)


@dataclass
class JobLogEntry:
    message: str
    level: JobLogLevel = "info"
    timestamp: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    def to_dict(self) -> dict[str, str]:
        return {"timestamp": self.timestamp, "message": self.message, "level": self.level}


@dataclass
class TranscodeJob:
    id: str
    input_path: str
    output_format: str = "hevc"
    replace_original: bool = True
    status: JobStatus = "pending"
    progress: int = 0
    logs: list[JobLogEntry] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_request(cls, request: TranscodeRequest) -> "TranscodeJob":
        return cls(
            id=request.job_id,
            input_path=request.file_path,
            output_format=request.output_format,
            replace_original=request.replace_original,
        )

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")

    def log(self, message: str, level: JobLogLevel = "info") -> None:
        self.logs.append(JobLogEntry(message=message, level=level))

    def advance(self, status: JobStatus, progress: float | None = None) -> bool:
        """Move to ``status`` and raise progress; returns whether progress rose."""
        self.status = status
        if progress is None:
            return False
        value = int(round(progress))
        if value <= self.progress:
            return False
        self.progress = min(value, 100)
        return True

    def status_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "jobId": self.id,
            "status": self.status,
            "progress": self.progress,
            "logs": [entry.to_dict() for entry in self.logs],
        }
        if self.error:
            payload["error"] = self.error
        return payload

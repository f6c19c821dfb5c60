# models.py
"""
Data models used by the runner.

- Session and result types are simple dataclasses.
- ProviderCredentials owns the ambient-environment identity slot.
"""

import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class CloudProvider(str, Enum):
    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"

    @classmethod
    def parse(cls, tag: str) -> "CloudProvider":
        """
        Map a provider tag (case-insensitive) to a member. Raises ValueError for unknown tags.
        """
        return cls((tag or "").strip().lower())


class OutputSyntax(str, Enum):
    MODERN = "modern"
    LEGACY = "legacy"
    NONE = "none"

    def alternate(self) -> "OutputSyntax":
        # No detected syntax falls back to modern
        if self is OutputSyntax.MODERN:
            return OutputSyntax.LEGACY
        return OutputSyntax.MODERN


class ScanOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial-failure"
    HARD_FAILURE = "hard-failure"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class Session:
    """
    One execution of the runner for a single (client, provider, account).

    Fields:
    - session_id: random uuid, stable for the process lifetime
    - started_at: UTC start time
    - output_dir: session-unique local directory for scanner artifacts
    """
    client: str
    provider: str
    account: str
    output_dir: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(cls, client: str, provider: str, account: str, output_root: str) -> "Session":
        session_id = str(uuid.uuid4())
        output_dir = os.path.join(output_root, f"output-{session_id}")
        # exist_ok=False: an output directory is never reused
        os.makedirs(output_dir)
        return cls(
            client=client,
            provider=provider,
            account=account,
            output_dir=output_dir,
            session_id=session_id,
        )


@dataclass
class ProviderCredentials:
    """
    Provider-tagged secret material, exported as environment variables.

    The values live in os.environ only between install() and clear().
    """
    provider: CloudProvider
    env: Dict[str, str] = field(default_factory=dict, repr=False)

    def install(self) -> None:
        for name, value in self.env.items():
            os.environ[name] = value

    def clear(self) -> None:
        # Unset, never overwrite
        for name in self.env:
            os.environ.pop(name, None)

    @property
    def names(self) -> List[str]:
        return sorted(self.env)


@dataclass(frozen=True)
class ScanAttempt:
    syntax: OutputSyntax
    command: List[str]
    returncode: int


@dataclass
class ScanResult:
    outcome: ScanOutcome
    attempts: List[ScanAttempt] = field(default_factory=list)

    @property
    def retries(self) -> int:
        return max(len(self.attempts) - 1, 0)


@dataclass(frozen=True)
class RemoteArtifactPath:
    """
    Deterministic object-store destination.

    The timestamp is captured when the upload starts, not at session start.
    """
    bucket: str
    client: str
    provider: str
    account: str
    timestamp: str

    @classmethod
    def at_upload_time(cls, bucket: str, session: Session, now: Optional[datetime] = None) -> "RemoteArtifactPath":
        now = now or datetime.now(timezone.utc)
        return cls(
            bucket=bucket,
            client=session.client,
            provider=session.provider,
            account=session.account,
            timestamp=now.strftime("%Y%m%dT%H%M%SZ"),
        )

    @property
    def prefix(self) -> str:
        return f"{self.client}/{self.provider}/{self.account}/{self.timestamp}/"

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}"


@dataclass
class UploadOutcome:
    success: bool
    uploaded: int = 0
    operator_identity: Optional[str] = None
    error: str = ""


@dataclass
class ExecutionSummary:
    session_id: str
    client: str
    provider: str
    account: str
    region: str
    output_dir: str
    version: str
    started_at: str = ""
    exit_code: int = 0
    scan: Optional[ScanResult] = None
    remote_path: Optional[RemoteArtifactPath] = None
    upload: Optional[UploadOutcome] = None
    duration_seconds: int = 0
    error: str = ""

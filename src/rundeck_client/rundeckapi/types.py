"""Domain types for the RunDeck API.

Pydantic models representing the objects returned by the RunDeck XML API
(projects, jobs, executions, history events, nodes, system info). Models are
immutable: each API call produces new instances, nothing is updated in place.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ExecutionStatus(str, Enum):
    """Status of an execution."""

    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"


class AbortStatus(str, Enum):
    """Status of an abort request."""

    PENDING = "PENDING"
    FAILED = "FAILED"
    ABORTED = "ABORTED"


class EventStatus(str, Enum):
    """Status of a history event."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"


class FileType(str, Enum):
    """Format of job definitions for export and import."""

    XML = "XML"
    YAML = "YAML"


class ImportMethod(str, Enum):
    """Behavior when importing a job that already exists."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    SKIP = "SKIP"


def format_duration_words(millis: int) -> str:
    """Format a duration as words, e.g. "3 minutes 34 seconds".

    Leading and trailing zero units are dropped, milliseconds are ignored.
    """
    days, rest = divmod(millis // 1000, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = [(days, "day"), (hours, "hour"), (minutes, "minute"), (seconds, "second")]
    while len(parts) > 1 and parts[0][0] == 0:
        parts.pop(0)
    while len(parts) > 1 and parts[-1][0] == 0:
        parts.pop()
    return " ".join(f"{value} {unit}{'' if value == 1 else 's'}" for value, unit in parts)


def format_duration_hms(millis: int) -> str:
    """Format a duration as "H:MM:SS.mmm", e.g. "0:03:34.187"."""
    seconds, ms = divmod(millis, 1000)
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}.{ms:03d}"


class _TimedModel(BaseModel):
    """Shared duration helpers for models with start and end dates."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def duration_in_millis(self) -> int | None:
        """Duration in milliseconds, None while running or without dates."""
        if self.started_at is None or self.ended_at is None:
            return None
        return round((self.ended_at - self.started_at).total_seconds() * 1000)

    @property
    def duration_in_seconds(self) -> int | None:
        millis = self.duration_in_millis
        return millis // 1000 if millis is not None else None

    @property
    def duration(self) -> str | None:
        """Human-readable duration: "3 minutes 34 seconds"."""
        millis = self.duration_in_millis
        return format_duration_words(millis) if millis is not None else None

    @property
    def short_duration(self) -> str | None:
        """Short human-readable duration: "0:03:34.187"."""
        millis = self.duration_in_millis
        return format_duration_hms(millis) if millis is not None else None


class Project(BaseModel):
    """A RunDeck project."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None
    resource_model_provider_url: str | None = None


class Job(BaseModel):
    """A job definition (summary as listed by the API)."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str | None = None
    group: str | None = None
    project: str | None = None
    description: str | None = None

    @property
    def full_name(self) -> str | None:
        """Group and name joined with "/", or just the name."""
        if self.group:
            return f"{self.group}/{self.name}"
        return self.name


class Execution(_TimedModel):
    """One run of a job or ad-hoc command/script.

    The ``job`` is None for ad-hoc executions. ``ended_at`` is only set once
    the execution has left the RUNNING state.
    """

    id: int
    url: str | None = None
    status: ExecutionStatus | None = None
    job: Job | None = None
    started_by: str | None = None
    aborted_by: str | None = None
    description: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status is ExecutionStatus.RUNNING


class Abort(BaseModel):
    """Result of an abort request on an execution."""

    model_config = ConfigDict(frozen=True)

    status: AbortStatus | None = None
    execution: Execution | None = None


class NodeSummary(BaseModel):
    """Per-node outcome counts of a history event."""

    model_config = ConfigDict(frozen=True)

    succeeded: int = 0
    failed: int = 0
    total: int = 0


class Event(_TimedModel):
    """A history event (a finished job or ad-hoc execution)."""

    title: str | None = None
    status: EventStatus | None = None
    summary: str | None = None
    node_summary: NodeSummary | None = None
    user: str | None = None
    project: str | None = None
    aborted_by: str | None = None
    execution_id: int | None = None
    job_id: str | None = None

    @property
    def is_adhoc(self) -> bool:
        """True for ad-hoc commands and scripts, False for jobs."""
        return self.title == "adhoc"


class History(BaseModel):
    """A page of history events."""

    model_config = ConfigDict(frozen=True)

    events: list[Event] = []
    count: int = 0
    total: int = 0
    max: int = 0
    offset: int = 0


class Node(BaseModel):
    """A node of a project's resource model."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    type: str | None = None
    description: str | None = None
    tags: list[str] = []
    hostname: str | None = None
    os_arch: str | None = None
    os_family: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    username: str | None = None
    edit_url: str | None = None
    remote_url: str | None = None


class SystemInfo(BaseModel):
    """Information about the RunDeck server and its host."""

    model_config = ConfigDict(frozen=True)

    date: datetime | None = None
    version: str | None = None
    build: str | None = None
    node: str | None = None
    base_dir: str | None = None
    os_arch: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    jvm_name: str | None = None
    jvm_vendor: str | None = None
    jvm_version: str | None = None
    start_date: datetime | None = None
    uptime_in_millis: int | None = None
    cpu_load_average: str | None = None
    max_memory_in_bytes: int | None = None
    free_memory_in_bytes: int | None = None
    total_memory_in_bytes: int | None = None
    running_jobs: int | None = None
    active_threads: int | None = None

    @property
    def uptime(self) -> str | None:
        """Human-readable uptime: "2 days 3 hours 4 minutes 5 seconds"."""
        if self.uptime_in_millis is None:
            return None
        return format_duration_words(self.uptime_in_millis)


class JobsImportResult(BaseModel):
    """Outcome of a job import: succeeded, skipped and failed jobs."""

    model_config = ConfigDict(frozen=True)

    succeeded_jobs: list[Job] = []
    skipped_jobs: list[Job] = []
    # (job, error message) pairs
    failed_jobs: list[tuple[Job, str]] = []

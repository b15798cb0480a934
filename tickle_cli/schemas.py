from pydantic import BaseModel, ConfigDict, Field
from typing import ClassVar, Optional, List
from enum import Enum
from pathlib import Path


class TargetKind(str, Enum):
    UNIT = "unit"
    COMPOSE = "compose"


class ServiceState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"
    UNKNOWN = "unknown"

    @classmethod
    def from_active_state(cls, value: str) -> "ServiceState":
        """Maps a systemd ActiveState string onto a ServiceState."""
        value = value.strip().lower()
        if value == "reloading":
            return cls.ACTIVE
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ServiceType(str, Enum):
    SIMPLE = "simple"
    FORKING = "forking"
    ONESHOT = "oneshot"
    NOTIFY = "notify"
    OTHER = "other"


class RestartStrategy(str, Enum):
    RESTART = "restart"
    STOP_START = "stop-start"


class Command(str, Enum):
    TICKLE = "tickle"
    START = "start"
    STOP = "stop"


class SubStep(str, Enum):
    RESTART = "restart"
    STOP = "stop"
    START = "start"
    DOWN = "down"
    UP = "up"


class InvocationPhase(str, Enum):
    RESOLVED = "resolved"
    CLASSIFIED = "classified"
    EXECUTING = "executing"
    VERIFIED = "verified"
    FAILED = "failed"


class ErrorKind(str, Enum):
    NO_TARGET_FOUND = "no-target-found"
    UNIT_NOT_FOUND = "unit-not-found"
    BACKEND_UNAVAILABLE = "backend-unavailable"
    COMPOSE_FILE_UNREADABLE = "compose-file-unreadable"
    SUB_STEP_FAILED = "sub-step-failed"
    HISTORY_WRITE_FAILED = "history-write-failed"


class HistoryStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class AppConfig(BaseModel):
    history_directory: str = "~/.tickle"
    history_file: str = "history.log"
    systemctl_command: str = "systemctl"
    journalctl_command: str = "journalctl"
    compose_commands: List[List[str]] = Field(default_factory=lambda: [
        ["docker", "compose"],
        ["docker-compose"],
    ])

    @property
    def history_path(self) -> Path:
        return Path(self.history_directory).expanduser() / self.history_file


class ServiceTarget(BaseModel):
    """What an invocation operates on: a systemd unit or a compose project."""
    model_config = ConfigDict(frozen=True)

    name: str
    kind: TargetKind
    compose_file: Optional[Path] = None

    @classmethod
    def unit(cls, name: str) -> "ServiceTarget":
        return cls(name=name, kind=TargetKind.UNIT)

    @classmethod
    def compose(cls, compose_file: Path) -> "ServiceTarget":
        return cls(name=compose_file.parent.name, kind=TargetKind.COMPOSE, compose_file=compose_file)

    @property
    def label(self) -> str:
        """The target as written to the history log."""
        if self.kind is TargetKind.COMPOSE:
            return f"compose:{self.compose_file.name}"
        return self.name


class UnitProperties(BaseModel):
    service_type: ServiceType = ServiceType.SIMPLE
    raw_type: str = "simple"
    remain_after_exit: bool = False
    can_restart: bool = True


class ActionResult(BaseModel):
    """Success signal and optional message from a single backend action."""
    success: bool
    message: Optional[str] = None


class OperationError(BaseModel):
    kind: ErrorKind
    step: Optional[SubStep] = None
    message: str = ""


class OperationOutcome(BaseModel):
    target: ServiceTarget
    command: Command = Command.TICKLE
    strategy: Optional[RestartStrategy] = None
    initial_state: ServiceState = ServiceState.UNKNOWN
    final_state: ServiceState = ServiceState.UNKNOWN
    succeeded: bool
    error: Optional[OperationError] = None
    advisories: List[str] = Field(default_factory=list)

    @property
    def phase(self) -> InvocationPhase:
        return InvocationPhase.VERIFIED if self.succeeded else InvocationPhase.FAILED


def escape_field(value: str) -> str:
    """Keeps a history field on one line and unable to form a column separator."""
    return value.replace("|", "\\|").replace("\r", "\\r").replace("\n", "\\n")


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: str
    command: str
    target_label: str
    status: HistoryStatus

    SEPARATOR: ClassVar[str] = " | "

    def to_line(self) -> str:
        fields = [self.timestamp, escape_field(self.command), escape_field(self.target_label), self.status.value]
        return self.SEPARATOR.join(fields) + "\n"

    @classmethod
    def from_line(cls, line: str) -> Optional["HistoryEntry"]:
        """Parses one history line, returning None if it is malformed."""
        parts = line.rstrip("\n").split(cls.SEPARATOR)
        if len(parts) != 4:
            return None
        timestamp, command, target_label, status = parts
        try:
            return cls(
                timestamp=timestamp,
                command=command,
                target_label=target_label,
                status=HistoryStatus(status.strip()),
            )
        except ValueError:
            return None


class EnvironmentCheck(BaseModel):
    name: str
    passed: bool
    details: Optional[str] = None
    suggestion: Optional[str] = None


class CheckReport(BaseModel):
    checks: List[EnvironmentCheck]

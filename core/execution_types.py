"""Request, result and policy types for sandboxed command execution."""

import tempfile
from dataclasses import dataclass, field
from datetime import timedelta


# Reserved exit code for timeout-induced termination. Never a real exit status.
TIMEOUT_EXIT_CODE = -1

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_TIMEOUT_SECONDS = 300

# Destructive filesystem commands denied unless the operator overrides the list.
DEFAULT_DENIED_COMMANDS = frozenset({"rm", "dd", "mkfs", "fdisk"})


def _default_allowed_paths() -> tuple:
    return (tempfile.gettempdir(),)


@dataclass(frozen=True)
class ExecutionOptions:
    """Immutable execution policy, built once per service instance.

    allowed_commands=None (or empty) means no allow-list: every command not in
    denied_commands may run. The deny-list always wins over the allow-list.
    The service's workspace base is always added to allowed_paths.
    """

    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    allowed_paths: tuple = field(default_factory=_default_allowed_paths)
    allowed_commands: frozenset | None = None
    denied_commands: frozenset = DEFAULT_DENIED_COMMANDS
    sanitize_error_messages: bool = True
    enable_audit_logging: bool = True

    def __post_init__(self):
        if int(self.max_timeout_seconds) < 1:
            raise ValueError(
                f"max_timeout_seconds must be at least 1 (got {self.max_timeout_seconds})"
            )
        # Accept any iterable from callers, store immutable copies.
        object.__setattr__(self, "allowed_paths", tuple(self.allowed_paths or ()))
        if self.allowed_commands is not None:
            object.__setattr__(self, "allowed_commands", frozenset(self.allowed_commands))
        object.__setattr__(self, "denied_commands", frozenset(self.denied_commands or ()))

    @property
    def has_allowlist(self) -> bool:
        return bool(self.allowed_commands)


@dataclass
class ExecutionRequest:
    """A single command invocation. Arguments are passed to the program verbatim."""

    command: str
    arguments: list[str] = field(default_factory=list)
    working_directory: str | None = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    environment_variables: dict[str, str] | None = None
    correlation_id: str | None = None
    # Caller identity for the audit trail only.
    user: str | None = None


@dataclass
class ExecutionResult:
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    execution_time: timedelta = field(default_factory=timedelta)
    correlation_id: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def execution_time_ms(self) -> int:
        return int(self.execution_time.total_seconds() * 1000)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "execution_time_ms": self.execution_time_ms,
            "correlation_id": self.correlation_id,
        }


@dataclass
class JsonExecutionResult(ExecutionResult):
    """ExecutionResult plus the parsed form of stdout.

    When exit_code == 0 and stdout is non-blank, either parsed is True (json
    holds the value, which is None for a literal null) or parse_error is set.
    Otherwise parsed is False and both are None.
    """

    json: object = None
    parse_error: str | None = None
    parsed: bool = False

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "JsonExecutionResult":
        return cls(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            execution_time=result.execution_time,
            correlation_id=result.correlation_id,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["json"] = self.json
        data["parse_error"] = self.parse_error
        data["parsed"] = self.parsed
        return data


@dataclass
class ToolDescriptor:
    name: str
    available: bool
    version: str | None = None
    description: str = ""

    def __post_init__(self):
        if not self.available:
            self.version = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "available": self.available,
            "version": self.version,
        }

"""Structured audit logging for command execution.

Every execution attempt (denied, rejected, failed or completed) is written as
one JSON Lines entry. Each line is a self-contained JSON object carrying the
call's correlation id, so a response can be matched to its record.

Log files are written as .headless-ide-audit-YYYYMMDD-HHMMSS.jsonl in the
configured directory. With no directory the log keeps a bounded in-memory
buffer instead (tests, embedded use).

Everything recorded passes through core.redaction first. Recording never
raises: a failing backend is counted and reported on stderr, and the call that
triggered it carries on.
"""

import json
import os
import sys
import threading
import time
from collections import deque
from datetime import datetime, timezone

from core.redaction import redact_all, redact_secrets

# Characters of stdout/stderr kept in a record (after redaction).
OUTPUT_PREVIEW_CHARS = 500

# Entries kept when no log file is configured.
MAX_MEMORY_ENTRIES = 1000


class AuditLog:
    """Append-only structured logger for execution events. Thread-safe."""

    def __init__(self, log_dir: str = None, max_memory_entries: int = MAX_MEMORY_ENTRIES):
        """Initialize audit logger.

        Args:
            log_dir: Directory to write the JSONL file. None keeps entries in memory only.
            max_memory_entries: Size of the in-memory buffer.
        """
        self.log_dir = log_dir
        ts = datetime.now().strftime("%Y%m%d-%H%M%S")
        self.log_path = (
            os.path.join(log_dir, f".headless-ide-audit-{ts}.jsonl") if log_dir else None
        )
        self._event_count = 0
        self._start_time = time.time()
        self._file = None
        self._lock = threading.Lock()
        self._entries = deque(maxlen=max_memory_entries)
        self.write_errors = 0
        self._reported_errors: set[str] = set()

    def _ensure_open(self):
        """Lazily open the log file on first write."""
        if self._file is None:
            os.makedirs(self.log_dir, exist_ok=True)
            self._file = open(self.log_path, "a", encoding="utf-8")

    def _write(self, event_type: str, data: dict) -> None:
        """Write a single event. Caller must hold the lock."""
        self._event_count += 1
        entry = {
            "seq": self._event_count,
            "ts": datetime.now(timezone.utc).isoformat(),
            "elapsed_s": round(time.time() - self._start_time, 2),
            "event": event_type,
            **data,
        }
        line = json.dumps(entry, separators=(",", ":"), default=str)
        if self.log_path is None:
            self._entries.append(entry)
            return
        self._ensure_open()
        self._file.write(line + "\n")
        self._file.flush()

    def record_execution(self, correlation_id: str, status: str, request,
                         result=None, error: str = "") -> None:
        """Record one execution attempt. Never raises.

        Args:
            correlation_id: Id returned to the caller for this call.
            status: completed, timed_out, denied, invalid, not_found, failed or cancelled.
            request: The ExecutionRequest (or anything with the same attributes).
            result: ExecutionResult when a process ran.
            error: Unsanitized error text for rejected/failed attempts.
        """
        try:
            data = {
                "correlation_id": correlation_id,
                "status": status,
                "user": redact_secrets(getattr(request, "user", None)) or "unknown",
                "command": redact_secrets(getattr(request, "command", "")),
                "arguments": redact_all(getattr(request, "arguments", None)),
                "working_directory": redact_secrets(getattr(request, "working_directory", None)),
                "timeout_seconds": getattr(request, "timeout_seconds", None),
                "environment_keys": sorted(getattr(request, "environment_variables", None) or {}),
            }
            if result is not None:
                data.update({
                    "exit_code": result.exit_code,
                    "timed_out": result.timed_out,
                    "duration_ms": result.execution_time_ms,
                    "stdout_length": len(result.stdout),
                    "stderr_length": len(result.stderr),
                    "stdout": redact_secrets(result.stdout)[:OUTPUT_PREVIEW_CHARS],
                    "stderr": redact_secrets(result.stderr)[:OUTPUT_PREVIEW_CHARS],
                })
            if error:
                data["error"] = redact_secrets(error)[:OUTPUT_PREVIEW_CHARS]
            with self._lock:
                self._write("command_execution", data)
        except Exception as e:
            self._report_failure(e)

    def _report_failure(self, exc: Exception) -> None:
        """Count a backend failure, and report each kind once on stderr."""
        self.write_errors += 1
        kind = type(exc).__name__
        if kind in self._reported_errors:
            return
        self._reported_errors.add(kind)
        try:
            print(f"  AUDIT WARN: audit record dropped ({kind}: {exc})", file=sys.stderr)
        except Exception:
            pass

    def entries(self) -> list[dict]:
        """Return in-memory entries (empty when writing to a file)."""
        with self._lock:
            return list(self._entries)

    def read_entries(self) -> list[dict]:
        """Return every recorded entry, from the file when one is configured."""
        if self.log_path is None:
            return self.entries()
        with self._lock:
            if self._file is not None:
                self._file.flush()
        if not os.path.exists(self.log_path):
            return []
        with open(self.log_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def close(self) -> None:
        """Flush and close the log file."""
        with self._lock:
            if self._file is not None:
                self._file.flush()
                self._file.close()
                self._file = None

    @property
    def event_count(self) -> int:
        return self._event_count

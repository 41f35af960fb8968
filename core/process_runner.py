"""Direct process execution with timeout and cancellation.

The program is launched from an argument vector with shell=False. Arguments
are never joined into a command line, so ";", "|", "&&" and backticks reach
the child as literal bytes.

The process wait and the timeout are raced in short communicate() slices
against a monotonic deadline. The slices also let a caller's cancel event
interrupt the wait. Whatever ends the wait early (timeout, cancel, an
exception in this thread) kills the child's whole process group before
returning, so no call leaves an orphan behind.
"""

import os
import signal
import subprocess
import time
from dataclasses import dataclass

from core.execution_types import TIMEOUT_EXIT_CODE

# Longest single wait before re-checking the deadline and the cancel event.
POLL_INTERVAL_SECONDS = 0.1

# Upper bound on draining output after a forced kill. A grandchild that keeps
# the pipes open cannot hold the call past this.
KILL_GRACE_SECONDS = 2.0

_POSIX = os.name == "posix"


@dataclass
class ProcessOutcome:
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool
    cancelled: bool
    duration_s: float


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Forcibly terminate proc and, on POSIX, every process in its group."""
    if _POSIX:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except OSError:
            pass
    try:
        proc.kill()
    except OSError:
        pass


def _drain_after_kill(proc: subprocess.Popen) -> tuple[str, str]:
    """Collect remaining output from a killed process within the grace period."""
    try:
        out, err = proc.communicate(timeout=KILL_GRACE_SECONDS)
        return _decode(out), _decode(err)
    except subprocess.TimeoutExpired as e:
        # Pipes still held open by something; give up on them.
        for stream in (proc.stdout, proc.stderr):
            try:
                if stream is not None:
                    stream.close()
            except OSError:
                pass
        return _decode(e.stdout), _decode(e.stderr)


def _drain_exited(proc: subprocess.Popen) -> tuple[str, str]:
    """Collect output from a process that has already exited.

    Leftover descendants still holding the pipes are killed after the grace period.
    """
    try:
        out, err = proc.communicate(timeout=KILL_GRACE_SECONDS)
        return _decode(out), _decode(err)
    except subprocess.TimeoutExpired:
        kill_process_tree(proc)
        return _drain_after_kill(proc)


def build_environment(overrides: dict | None) -> dict:
    """Inherited environment overlaid with the request's variables."""
    env = dict(os.environ)
    for key, value in (overrides or {}).items():
        env[str(key)] = str(value)
    return env


def run_process(argv: list[str], cwd: str, env: dict | None,
                timeout_seconds: float, cancel_event=None) -> ProcessOutcome:
    """Run argv in cwd and wait for it, at most timeout_seconds.

    Args:
        argv: Program followed by its arguments, passed individually.
        cwd: Canonical working directory (already validated).
        env: Full environment for the child, or None to inherit.
        timeout_seconds: Deadline measured from launch.
        cancel_event: Optional threading.Event; when set the child is killed
            and the outcome is marked cancelled.

    Returns:
        ProcessOutcome. timed_out=True always comes with exit_code=-1.

    Raises:
        OSError: The program could not be started.
    """
    start = time.monotonic()
    proc = subprocess.Popen(
        list(argv),
        cwd=cwd,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        shell=False,
        start_new_session=_POSIX,
    )

    deadline = start + timeout_seconds
    finished = False
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                kill_process_tree(proc)
                out, err = _drain_after_kill(proc)
                finished = True
                return ProcessOutcome(out, err, TIMEOUT_EXIT_CODE, False, True,
                                      time.monotonic() - start)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                # Exited just as the timer fired: that is a normal exit.
                if proc.poll() is not None:
                    out, err = _drain_exited(proc)
                    finished = True
                    return ProcessOutcome(out, err, proc.returncode,
                                          False, False, time.monotonic() - start)
                kill_process_tree(proc)
                out, err = _drain_after_kill(proc)
                finished = True
                return ProcessOutcome(out, err, TIMEOUT_EXIT_CODE, True, False,
                                      time.monotonic() - start)

            try:
                out, err = proc.communicate(timeout=min(remaining, POLL_INTERVAL_SECONDS))
            except subprocess.TimeoutExpired:
                continue
            finished = True
            return ProcessOutcome(_decode(out), _decode(err), proc.returncode,
                                  False, False, time.monotonic() - start)
    finally:
        if not finished:
            kill_process_tree(proc)
            try:
                proc.wait(timeout=KILL_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                pass

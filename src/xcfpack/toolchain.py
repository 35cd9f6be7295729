"""
Locating and invoking the external tools the pipeline drives
(curl, swift, libtool, lipo).
"""

from collections.abc import Callable
from pathlib import Path
import shutil
import subprocess

from pyvider.telemetry import logger

from .exceptions import BuildError

TERMINATE_GRACE_SECONDS = 10


def ensure_tool(tool_name: str) -> Path:
    """Returns the absolute path of a tool on PATH or raises BuildError."""
    found = shutil.which(tool_name)
    if not found:
        raise BuildError(f"'{tool_name}' not found in PATH. Please install it first.")
    return Path(found)


def terminate_process(process: subprocess.Popen[str]) -> None:
    """Asks a child to stop, killing it after a grace period."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def run_command(
    command: list[str],
    cwd: Path | str | None = None,
    on_start: Callable[[subprocess.Popen[str]], None] | None = None,
) -> str:
    """
    Runs a command to completion and returns its stripped stdout.

    A non-zero exit raises BuildError carrying stdout and stderr. On
    KeyboardInterrupt the child is terminated before the interrupt propagates.
    `on_start` receives the child as soon as it is spawned, so a caller in
    another thread can terminate it.
    """
    logger.info(f"Running command: {' '.join(command)}")
    try:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise BuildError(f"Could not start '{command[0]}': {e}") from e

    if on_start is not None:
        on_start(process)

    try:
        stdout, stderr = process.communicate()
    except KeyboardInterrupt:
        logger.warning("Interrupted, terminating child process", pid=process.pid)
        terminate_process(process)
        raise

    if process.returncode != 0:
        error_message = (
            f"Command failed with exit code {process.returncode}.\n"
            f"  Command: {' '.join(command)}\n"
            f"  Stdout:\n{stdout.strip()}\n"
            f"  Stderr:\n{stderr.strip()}"
        )
        raise BuildError(error_message)
    if stderr:
        logger.debug("Command stderr", output=stderr.strip())
    return stdout.strip()

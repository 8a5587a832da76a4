"""External command execution helpers."""

import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger("bifrost.process")

# Runners raise FileNotFoundError when the executable is missing and
# subprocess.CalledProcessError when it exits non-zero.
CommandRunner = Callable[[list[str], Path], None]
OutputRunner = Callable[[list[str], Path], str]


def _which(name: str) -> str:
    executable = shutil.which(name)
    if executable is None:
        raise FileNotFoundError(f"{name}: command not found")
    return executable


def run_command(command: list[str], cwd: Path) -> None:
    """Run a command in ``cwd``, inheriting stdio."""
    logger.debug("Running %s in %s", " ".join(command), cwd)
    subprocess.run([_which(command[0]), *command[1:]], cwd=cwd, check=True)


def capture_command(command: list[str], cwd: Path) -> str:
    """Run a command in ``cwd`` and return its stdout."""
    logger.debug("Running %s in %s", " ".join(command), cwd)
    completed = subprocess.run(
        [_which(command[0]), *command[1:]],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout

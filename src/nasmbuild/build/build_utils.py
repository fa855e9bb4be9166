"""Build utilities for running external tools.

Both the assembler and the archiver are run through run_command so that every
invocation is logged the same way and failures carry the exact command line.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence, Union

from ..errors import ProcessExitError, ProcessSpawnError, format_command

CommandArg = Union[str, Path]


def run_command(command: Sequence[CommandArg]) -> None:
    """Run an external command with stdout/stderr inherited from this process.

    Output is streamed live rather than captured so tool diagnostics show up
    as they happen.

    Args:
        command: Executable followed by its arguments

    Raises:
        ProcessSpawnError: If the process could not be started
        ProcessExitError: If the process exited with a non-zero status
    """
    cmd: List[str] = [str(arg) for arg in command]
    logging.info(f"running: {format_command(cmd)}")

    try:
        result = subprocess.run(cmd)
    except OSError as e:
        raise ProcessSpawnError(cmd, e) from e

    if result.returncode != 0:
        raise ProcessExitError(cmd, result.returncode)

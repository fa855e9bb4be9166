"""Exception types raised by nasmbuild.

Every failure the build pipeline can surface derives from NasmBuildError, so
callers can catch the whole family with one clause.
"""

import shlex
from typing import List, Optional, Sequence


class NasmBuildError(Exception):
    """Base exception for all nasmbuild failures."""
    pass


class ConfigurationError(NasmBuildError):
    """Raised when a required build input is missing and cannot be derived."""
    pass


class ToolNotFoundError(NasmBuildError):
    """Raised when no candidate assembler path can be executed."""
    pass


class ToolTooOldError(NasmBuildError):
    """Raised when an assembler was found but reports a version below the minimum."""

    def __init__(self, path: str, version_string: str, minimum: Sequence[int]):
        self.path = path
        self.version_string = version_string
        self.minimum = tuple(minimum)
        required = ".".join(str(part) for part in self.minimum)
        super().__init__(
            f"This version of NASM is too old: {version_string!r} ({path}). "
            f"Minimum required version is {required}."
        )


class MalformedVersionError(NasmBuildError):
    """Raised when assembler version output does not look like 'NAME version X.Y[.Z]'."""
    pass


class ProcessError(NasmBuildError):
    """Base exception for external process failures."""

    def __init__(self, message: str, command: List[str]):
        self.command = list(command)
        super().__init__(message)

    @property
    def command_line(self) -> str:
        return format_command(self.command)


class ProcessSpawnError(ProcessError):
    """Raised when the OS could not start an external process."""

    def __init__(self, command: List[str], reason: Optional[BaseException] = None):
        message = f"Failed to spawn process: {format_command(command)}"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message, command)


class ProcessExitError(ProcessError):
    """Raised when an external process exits with a non-zero status."""

    def __init__(self, command: List[str], returncode: int):
        self.returncode = returncode
        super().__init__(
            f"Command exited with non-zero status {returncode}: {format_command(command)}",
            command
        )


def format_command(command: Sequence[str]) -> str:
    """Render a command as a copy-pasteable shell line."""
    return " ".join(shlex.quote(str(arg)) for arg in command)

"""NASM Assembler Finder.

This module locates a usable NASM executable and checks that it meets a
minimum version.

Search order:
    1. An explicitly configured path, used exclusively when given
    2. The bare tool name, resolved by the OS
    3. The tool name joined with each directory of the search path, in order

Some platforms ship a stale bundled NASM earlier on the search path than the
one the user installed, so a candidate that is too old does not stop the
search. When every candidate fails, the first recorded error is raised.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence

from ..errors import (
    MalformedVersionError,
    NasmBuildError,
    ToolNotFoundError,
    ToolTooOldError,
)

NASM_TOOL_NAME = "nasm"
VERSION_FLAG = "-v"


class NasmVersion(NamedTuple):
    """Assembler version; ordering is lexicographic on (major, minor, micro)."""

    major: int
    minor: int = 0
    micro: int = 0

    @classmethod
    def parse(cls, version_output: str) -> 'NasmVersion':
        """Parse free-text version output such as 'NASM version 2.14.02 compiled on ...'.

        The version token is the third whitespace-separated field. Anything from
        an 'rc' marker onwards is dropped, then dot-separated numeric parts are
        read left to right until the first non-numeric one.

        Raises:
            MalformedVersionError: If there is no third field or no numeric major
        """
        fields = version_output.split()
        if len(fields) < 3:
            raise MalformedVersionError(
                f"Unable to parse NASM version string: {version_output.strip()!r}"
            )

        token = fields[2]
        rc_index = token.find("rc")
        if rc_index != -1:
            token = token[:rc_index]

        numbers: List[int] = []
        for part in token.split("."):
            if not (part.isascii() and part.isdigit()):
                break
            numbers.append(int(part))

        if not numbers:
            raise MalformedVersionError(
                f"Unable to parse NASM version string: {version_output.strip()!r}"
            )

        return cls(*numbers[:3])

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.micro}"


@dataclass(frozen=True)
class AssemblerInfo:
    """A located assembler and the version it reported."""

    path: str
    version: NasmVersion
    version_string: str


class AssemblerFinder:
    """Finds a NASM executable that satisfies a minimum version."""

    def __init__(
        self,
        nasm_path: Optional[str] = None,
        search_path: Optional[Sequence[Path]] = None,
        min_version: Sequence[int] = (1, 0, 0)
    ):
        """Initialize the finder.

        Args:
            nasm_path: Explicit assembler path; disables searching when set
            search_path: Directories to probe after the bare tool name
            min_version: Minimum acceptable (major, minor, micro)
        """
        self.nasm_path = nasm_path
        self.search_path = list(search_path or [])
        self.min_version = NasmVersion(*min_version)

    def candidates(self) -> List[str]:
        """Return the ordered list of paths to probe."""
        if self.nasm_path is not None:
            return [str(self.nasm_path)]
        return [NASM_TOOL_NAME] + [
            str(Path(directory) / NASM_TOOL_NAME) for directory in self.search_path
        ]

    def find(self) -> AssemblerInfo:
        """Probe candidates in order and return the first acceptable one.

        Raises:
            ToolNotFoundError, ToolTooOldError, MalformedVersionError: The
                first error recorded, when no candidate is acceptable
        """
        return self._first_acceptable(self.candidates())

    def _first_acceptable(self, candidates: Iterable[str]) -> AssemblerInfo:
        first_error: Optional[NasmBuildError] = None

        for candidate in candidates:
            try:
                info = self.check_candidate(candidate)
            except NasmBuildError as e:
                logging.debug(f"Rejected assembler candidate {candidate}: {e}")
                if first_error is None:
                    first_error = e
                continue

            logging.info(f"Using NASM {info.version} at {info.path}")
            return info

        if first_error is None:
            first_error = ToolNotFoundError("No NASM candidates to try")
        raise first_error

    def check_candidate(self, candidate: str) -> AssemblerInfo:
        """Run the version query on one candidate and validate the result."""
        version_string = query_version(candidate)
        version = NasmVersion.parse(version_string)
        if version < self.min_version:
            raise ToolTooOldError(candidate, version_string.strip(), self.min_version)
        return AssemblerInfo(candidate, version, version_string.strip())


def query_version(nasm_path: str) -> str:
    """Run '<nasm> -v' and return its stdout decoded as UTF-8 (lossy).

    Raises:
        ToolNotFoundError: If the process cannot be started
    """
    try:
        result = subprocess.run(
            [nasm_path, VERSION_FLAG],
            capture_output=True,
        )
    except OSError as e:
        raise ToolNotFoundError(f"Unable to run {nasm_path}: {e}") from e

    return result.stdout.decode("utf-8", errors="replace")

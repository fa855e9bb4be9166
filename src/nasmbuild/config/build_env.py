"""Host build environment.

The invoking build host (cargo or anything that speaks its conventions)
describes the build through environment variables. This module reads them
into a frozen dataclass so the rest of the package never touches os.environ
directly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

# Checked in order, first present wins
MAKEFLAGS_VARIABLES = ("CARGO_MAKEFLAGS", "MAKEFLAGS", "MFLAGS")


@dataclass(frozen=True)
class BuildEnvironment:
    """Inputs supplied by the host build system.

    Attributes:
        target: Target platform triple (TARGET)
        out_dir: Directory for build artifacts (OUT_DIR)
        source_root: Directory relative source paths are resolved against
            (CARGO_MANIFEST_DIR)
        debug: Whether the host is doing a debug build (DEBUG)
        search_path: Directories to probe for the assembler (PATH)
        makeflags: Make flags that may carry a jobserver handle
        num_jobs: Job-count hint used when no jobserver is available (NUM_JOBS)
        archiver: Archiver tool name supplied by the host (AR)
    """

    target: Optional[str] = None
    out_dir: Optional[Path] = None
    source_root: Optional[Path] = None
    debug: bool = False
    search_path: List[Path] = field(default_factory=list)
    makeflags: Optional[str] = None
    num_jobs: Optional[int] = None
    archiver: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'BuildEnvironment':
        """Read the build environment from a mapping (defaults to os.environ)."""
        if environ is None:
            environ = os.environ

        out_dir = environ.get("OUT_DIR")
        source_root = environ.get("CARGO_MANIFEST_DIR")

        return cls(
            target=environ.get("TARGET") or None,
            out_dir=Path(out_dir) if out_dir else None,
            source_root=Path(source_root) if source_root else None,
            debug=_parse_debug(environ.get("DEBUG")),
            search_path=_split_search_path(environ.get("PATH")),
            makeflags=_first_present(environ, MAKEFLAGS_VARIABLES),
            num_jobs=_parse_num_jobs(environ.get("NUM_JOBS")),
            archiver=environ.get("AR") or None,
        )


def _parse_debug(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() not in ("", "false")


def _split_search_path(value: Optional[str]) -> List[Path]:
    if not value:
        return []
    return [Path(entry) for entry in value.split(os.pathsep) if entry]


def _first_present(environ: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _parse_num_jobs(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None

"""nasmbuild - assemble NASM sources into a static library from a build script."""

from .build import BuildState, NasmBuild, compile_library
from .config import BuildEnvironment, resolve_target
from .errors import (
    ConfigurationError,
    MalformedVersionError,
    NasmBuildError,
    ProcessExitError,
    ProcessSpawnError,
    ToolNotFoundError,
    ToolTooOldError,
)
from .packages import NasmVersion

__version__ = "0.1.0"

__all__ = [
    "BuildEnvironment",
    "BuildState",
    "ConfigurationError",
    "MalformedVersionError",
    "NasmBuild",
    "NasmBuildError",
    "NasmVersion",
    "ProcessExitError",
    "ProcessSpawnError",
    "ToolNotFoundError",
    "ToolTooOldError",
    "compile_library",
    "resolve_target",
]

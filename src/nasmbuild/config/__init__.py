"""Build configuration inputs for nasmbuild.

This module provides:
- Target triple resolution (NASM format and debug flags)
- Host build environment reading
"""

from .build_env import BuildEnvironment
from .target import ResolvedTarget, is_msvc_target, resolve_target

__all__ = [
    "BuildEnvironment",
    "ResolvedTarget",
    "is_msvc_target",
    "resolve_target",
]

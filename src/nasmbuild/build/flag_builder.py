"""Assembler Flag Builder.

This module builds the NASM argument list for one compilation.

Design:
    - Output format flag comes first, resolved from the target triple
    - Debug flag follows only when debug info is enabled
    - User flags follow verbatim in the order they were added
    - Include and define helpers are shorthands that append to the same list
"""

import os
from pathlib import Path
from typing import List, Optional, Union

from ..config.target import resolve_target


class FlagBuilder:
    """Accumulates user flags and renders the final argument list.

    Flags are opaque strings: no deduplication and no syntax checks.

    Example usage:
        builder = FlagBuilder()
        builder.include("src").define("FOO", "1").flag("-Ox")
        args = builder.build("x86_64-unknown-linux-gnu", debug=False)
        # ['-felf64', '-Isrc/', '-DFOO=1', '-Ox']
    """

    def __init__(self, flags: Optional[List[str]] = None):
        self.flags: List[str] = list(flags or [])

    def flag(self, flag: str) -> 'FlagBuilder':
        """Append a raw flag."""
        self.flags.append(flag)
        return self

    def include(self, directory: Union[str, Path]) -> 'FlagBuilder':
        """Append an include-path flag, forcing a trailing path separator.

        NASM concatenates the include prefix and the file name literally, so
        the separator is required.
        """
        self.flags.append(include_flag(directory))
        return self

    def define(self, name: str, value: Optional[str] = None) -> 'FlagBuilder':
        """Append a macro definition, '-Dname' or '-Dname=value'."""
        self.flags.append(define_flag(name, value))
        return self

    def build(self, target: str, debug: bool) -> List[str]:
        """Render the argument list for a target.

        Args:
            target: Target triple used to pick the output format
            debug: Whether to emit the target's debug-info flag

        Returns:
            [format flag if known] + [debug flag if enabled] + user flags
        """
        resolved = resolve_target(target)
        # Unknown targets get no format flag at all, NASM picks its default
        args = [resolved.format_flag] if resolved.format_flag else []
        if debug:
            args.append(resolved.debug_flag)
        args.extend(self.flags)
        return args


def include_flag(directory: Union[str, Path]) -> str:
    path = str(directory)
    if not path.endswith(("/", os.sep)):
        path += os.sep
    return f"-I{path}"


def define_flag(name: str, value: Optional[str] = None) -> str:
    if value is None:
        return f"-D{name}"
    return f"-D{name}={value}"

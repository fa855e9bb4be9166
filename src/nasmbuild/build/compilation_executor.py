"""Compilation Executor.

This module runs NASM for a single source file.

Design:
    - One CompilationUnit pairs a source file with its object file
    - Object files are named '<output dir>/<source stem>.o'
    - Two sources sharing a file name map to the same object and the later
      one overwrites the earlier
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import ConfigurationError
from .build_utils import run_command


@dataclass(frozen=True)
class CompilationUnit:
    """One source file and the object file it compiles to."""

    source: Path
    output: Path

    @classmethod
    def for_source(cls, source: Path, out_dir: Path) -> 'CompilationUnit':
        return cls(source, object_path_for(source, out_dir))


def object_path_for(source: Path, out_dir: Path) -> Path:
    return out_dir / Path(source.name).with_suffix(".o")


class CompilationExecutor:
    """Runs the assembler for compilation units.

    Instances are stateless once constructed, so one executor is shared by
    every worker thread.
    """

    def __init__(self, nasm_path: str, args: Sequence[str], show_progress: bool = False):
        """Initialize compilation executor.

        Args:
            nasm_path: Path to the NASM executable
            args: Flags placed before the source path (format, debug, user flags)
            show_progress: Whether to print a line per compiled file
        """
        self.nasm_path = nasm_path
        self.args = list(args)
        self.show_progress = show_progress

    def build_command(self, unit: CompilationUnit) -> List[str]:
        """Build '<nasm> <args...> <source> -o <object>'."""
        cmd = [str(self.nasm_path)]
        cmd.extend(self.args)
        cmd.append(str(unit.source))
        cmd.extend(["-o", str(unit.output)])
        return cmd

    def compile_unit(self, unit: CompilationUnit) -> Path:
        """Assemble one unit.

        Returns:
            Path to the produced object file

        Raises:
            ConfigurationError: If the object directory cannot be created
            ProcessSpawnError: If NASM could not be started
            ProcessExitError: If NASM exited with a non-zero status
        """
        try:
            unit.output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create output directory {unit.output.parent}: {e}"
            ) from e

        if self.show_progress:
            print(f"Compiling {unit.source.name}...")

        run_command(self.build_command(unit))
        return unit.output


def compilation_units(sources: Sequence[Path], out_dir: Path) -> List[CompilationUnit]:
    """Pair each source with its object path, preserving order and duplicates."""
    return [CompilationUnit.for_source(Path(source), out_dir) for source in sources]


def describe_unit(unit: CompilationUnit, index: Optional[int] = None) -> str:
    prefix = f"[{index}] " if index is not None else ""
    return f"{prefix}{unit.source} -> {unit.output}"

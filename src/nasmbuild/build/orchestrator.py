"""
Build orchestration for nasmbuild.

This module is the entry point for assembling a set of NASM sources into a
static library. It ties the build components together:
- Host environment (target, output directory, debug signal, search path)
- Assembler discovery and minimum-version check
- Argument building for the resolved target
- Concurrent compilation under the shared job budget
- Archiving into lib<name>.a or <name>.lib
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from ..config.build_env import BuildEnvironment
from ..config.target import is_msvc_target
from ..errors import ConfigurationError
from ..packages.assembler_finder import AssemblerFinder
from .archive_creator import ArchiveCreator, resolve_archiver
from .compilation_executor import CompilationExecutor, compilation_units
from .flag_builder import FlagBuilder
from .job_coordinator import JobCoordinator
from .jobserver import JobBudget, get_shared_job_budget

PathLike = Union[str, Path]


class BuildState(Enum):
    """Where a NasmBuild is in its pipeline."""

    CONFIGURED = "configured"
    COMPILING = "compiling"
    ARCHIVING = "archiving"
    DONE = "done"
    FAILED = "failed"


class NasmBuild:
    """
    Configures and runs a NASM build.

    Setters return the builder so calls can be chained. A builder is meant to
    be configured, then consumed by one compile() or compile_objects() call.

    Example usage:
        NasmBuild() \\
            .file("src/foo.asm") \\
            .include("src") \\
            .define("DEBUG", "1") \\
            .compile("foo")
        # Produces $OUT_DIR/libfoo.a (or foo.lib for MSVC targets)
    """

    def __init__(self, show_progress: bool = False):
        """
        Initialize an empty build.

        Args:
            show_progress: Print a line per compiled file and for the archive
        """
        self.show_progress = show_progress
        self.state = BuildState.CONFIGURED

        self._files: List[Path] = []
        self._flags = FlagBuilder()
        self._target: Optional[str] = None
        self._out_dir: Optional[Path] = None
        self._archiver: Optional[str] = None
        self._archiver_is_msvc: Optional[bool] = None
        self._nasm: Optional[str] = None
        self._min_version: Tuple[int, int, int] = (1, 0, 0)
        self._debug: Optional[bool] = None
        self._parallel = True
        self._emit_directives = True
        self._env: Optional[BuildEnvironment] = None
        self._budget: Optional[JobBudget] = None

    def file(self, path: PathLike) -> 'NasmBuild':
        """Add a source file. Relative paths are resolved against the source root."""
        self._files.append(Path(path))
        return self

    def files(self, paths: Iterable[PathLike]) -> 'NasmBuild':
        for path in paths:
            self.file(path)
        return self

    def include(self, directory: PathLike) -> 'NasmBuild':
        self._flags.include(directory)
        return self

    def define(self, name: str, value: Optional[str] = None) -> 'NasmBuild':
        self._flags.define(name, value)
        return self

    def flag(self, flag: str) -> 'NasmBuild':
        self._flags.flag(flag)
        return self

    def target(self, target: str) -> 'NasmBuild':
        """Override the target triple taken from the host environment."""
        self._target = target
        return self

    def out_dir(self, out_dir: PathLike) -> 'NasmBuild':
        """Override the output directory taken from the host environment."""
        self._out_dir = Path(out_dir)
        return self

    def archiver(self, archiver: PathLike) -> 'NasmBuild':
        self._archiver = str(archiver)
        return self

    def archiver_is_msvc(self, is_msvc: bool) -> 'NasmBuild':
        """Force MSVC 'lib' syntax on or off instead of inferring it from the target."""
        self._archiver_is_msvc = is_msvc
        return self

    def nasm(self, path: PathLike) -> 'NasmBuild':
        """Use this assembler exclusively instead of searching for one."""
        self._nasm = str(path)
        return self

    def min_version(self, major: int, minor: int = 0, micro: int = 0) -> 'NasmBuild':
        self._min_version = (major, minor, micro)
        return self

    def debug(self, enable: bool) -> 'NasmBuild':
        """Emit debug info. Defaults to the host's debug-build signal."""
        self._debug = enable
        return self

    def parallel(self, enable: bool) -> 'NasmBuild':
        self._parallel = enable
        return self

    def emit_directives(self, enable: bool) -> 'NasmBuild':
        """Print the link-search directive for the host after compile()."""
        self._emit_directives = enable
        return self

    def environment(self, env: BuildEnvironment) -> 'NasmBuild':
        """Use these host inputs instead of reading os.environ."""
        self._env = env
        return self

    def job_budget(self, budget: JobBudget) -> 'NasmBuild':
        """Use this budget instead of the process-wide shared one."""
        self._budget = budget
        return self

    def get_args(self) -> List[str]:
        """Return the NASM flags (format, debug, user flags) for the active target."""
        env = self._environment()
        return self._flags.build(self._require_target(env), self._debug_enabled(env))

    def compile_objects(self) -> List[Path]:
        """
        Compile every source to an object file without archiving.

        Returns:
            Object file paths in the order the sources were added

        Raises:
            NasmBuildError: If configuration is incomplete, no usable NASM is
                found, or any unit fails to compile
        """
        self.state = BuildState.COMPILING
        try:
            objects = self._compile_objects(self._environment())
        except BaseException:
            self.state = BuildState.FAILED
            raise
        self.state = BuildState.DONE
        return objects

    def compile(self, lib_name: str) -> Path:
        """
        Compile every source and archive the objects into a static library.

        Args:
            lib_name: Library name. 'libfoo.a' and 'foo.lib' are accepted and
                reduced to 'foo'; the final file name follows the target.

        Returns:
            Path to the archive

        Raises:
            NasmBuildError: If any stage fails
        """
        env = self._environment()
        self.state = BuildState.COMPILING
        try:
            if not self._files:
                raise ConfigurationError("No source files to compile")

            target = self._require_target(env)
            out_dir = self._require_out_dir(env)
            objects = self._compile_objects(env)

            self.state = BuildState.ARCHIVING
            is_msvc = self._archive_is_msvc(target)
            creator = ArchiveCreator(
                resolve_archiver(self._archiver, env.archiver, is_msvc),
                is_msvc,
                show_progress=self.show_progress
            )
            name = library_name(lib_name)
            archive_path = creator.create_archive(out_dir / archive_file_name(name, target), objects)
        except BaseException:
            self.state = BuildState.FAILED
            raise

        self.state = BuildState.DONE
        logging.info(f"Created {archive_path}")
        if self._emit_directives:
            print(link_search_directive(out_dir))
        return archive_path

    def _compile_objects(self, env: BuildEnvironment) -> List[Path]:
        target = self._require_target(env)
        out_dir = self._require_out_dir(env)
        units = compilation_units(self._resolve_sources(env), out_dir)
        if not units:
            return []

        assembler = AssemblerFinder(
            nasm_path=self._nasm,
            search_path=env.search_path,
            min_version=self._min_version
        ).find()

        executor = CompilationExecutor(
            assembler.path,
            self._flags.build(target, self._debug_enabled(env)),
            show_progress=self.show_progress
        )
        budget = self._budget or get_shared_job_budget(env)
        return JobCoordinator(executor, budget, parallel=self._parallel).run(units)

    def _environment(self) -> BuildEnvironment:
        if self._env is None:
            self._env = BuildEnvironment.from_env()
        return self._env

    def _require_target(self, env: BuildEnvironment) -> str:
        target = self._target or env.target
        if not target:
            raise ConfigurationError("No target specified: call target() or set TARGET")
        return target

    def _require_out_dir(self, env: BuildEnvironment) -> Path:
        out_dir = self._out_dir or env.out_dir
        if out_dir is None:
            raise ConfigurationError("No output directory specified: call out_dir() or set OUT_DIR")
        return out_dir

    def _resolve_sources(self, env: BuildEnvironment) -> List[Path]:
        sources = []
        for path in self._files:
            if path.is_absolute():
                sources.append(path)
                continue
            if env.source_root is None:
                raise ConfigurationError(
                    f"Relative source {path} needs a source root: set CARGO_MANIFEST_DIR"
                )
            sources.append(env.source_root / path)
        return sources

    def _debug_enabled(self, env: BuildEnvironment) -> bool:
        if self._debug is not None:
            return self._debug
        return env.debug

    def _archive_is_msvc(self, target: str) -> bool:
        if self._archiver_is_msvc is not None:
            return self._archiver_is_msvc
        return is_msvc_target(target)


def library_name(output: str) -> str:
    """Reduce 'libfoo.a' or 'foo.lib' to 'foo'; other names pass through."""
    if output.startswith("lib") and output.endswith(".a"):
        return output[3:-2]
    if output.endswith(".lib"):
        return output[:-4]
    return output


def archive_file_name(name: str, target: str) -> str:
    """Platform file name for a static library: 'name.lib' on MSVC, else 'libname.a'."""
    if is_msvc_target(target):
        return f"{name}.lib"
    return f"lib{name}.a"


def link_search_directive(out_dir: Path) -> str:
    return f"cargo:rustc-link-search=native={out_dir}"


def compile_library(output: str, files: Iterable[PathLike]) -> Path:
    """Assemble files into a static library in one call, using host defaults.

    Example:
        compile_library("libfoo.a", ["foo.s", "bar.s"])
    """
    return NasmBuild().files(files).compile(output)

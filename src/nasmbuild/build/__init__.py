"""
Build system components for nasmbuild.

This module provides the build pipeline including:
- Argument building (format, debug and user flags)
- Compilation (nasm) under a shared job budget
- Archiving (ar / lib)
- Build orchestration
"""

from .archive_creator import ArchiveCreator, resolve_archiver
from .compilation_executor import CompilationExecutor, CompilationUnit, compilation_units
from .flag_builder import FlagBuilder
from .job_coordinator import JobCoordinator, UnitResult
from .jobserver import (
    JobBudget,
    JobToken,
    LocalJobBudget,
    PipeJobBudget,
    get_shared_job_budget,
)
from .orchestrator import BuildState, NasmBuild, compile_library

__all__ = [
    'ArchiveCreator',
    'BuildState',
    'CompilationExecutor',
    'CompilationUnit',
    'FlagBuilder',
    'JobBudget',
    'JobCoordinator',
    'JobToken',
    'LocalJobBudget',
    'NasmBuild',
    'PipeJobBudget',
    'UnitResult',
    'compilation_units',
    'compile_library',
    'get_shared_job_budget',
    'resolve_archiver',
]

"""Job Coordinator.

This module compiles a batch of independent units with bounded concurrency.

Design:
    - Units are dispatched in input order; each needs a token from the JobBudget
    - A worker releases its token as soon as its process exits, so the next
      unit can start before anyone collects the result
    - Results are collected back in input order
    - A failing unit does not cancel its siblings: every in-flight process
      runs to completion, then the first error in input order is raised
    - Sequential mode compiles one unit at a time and stops at the first failure
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from ..errors import NasmBuildError
from .compilation_executor import CompilationUnit, describe_unit
from .jobserver import JobBudget, JobToken


class UnitCompiler(Protocol):
    def compile_unit(self, unit: CompilationUnit) -> Path:
        ...


@dataclass
class UnitResult:
    """Outcome of one unit: either an object path or the error it raised."""

    unit: CompilationUnit
    object_file: Optional[Path] = None
    error: Optional[NasmBuildError] = None

    @property
    def success(self) -> bool:
        return self.error is None


class JobCoordinator:
    """Runs compilation units under a shared job budget.

    Example usage:
        coordinator = JobCoordinator(executor, get_shared_job_budget())
        objects = coordinator.run(units)
    """

    def __init__(self, compiler: UnitCompiler, budget: JobBudget, parallel: bool = True):
        """Initialize job coordinator.

        Args:
            compiler: Object whose compile_unit() runs one unit
            budget: Job budget every external process must hold a token of
            parallel: Run units concurrently (otherwise strictly in order)
        """
        self.compiler = compiler
        self.budget = budget
        self.parallel = parallel

    def run(self, units: Sequence[CompilationUnit]) -> List[Path]:
        """Compile every unit and return object paths in input order.

        Raises:
            NasmBuildError: The first failure in input order
        """
        if not units:
            return []
        if not self.parallel:
            return self._run_sequential(units)
        return self._run_parallel(units)

    def _run_sequential(self, units: Sequence[CompilationUnit]) -> List[Path]:
        # The implicit token covers one process at a time
        return [self.compiler.compile_unit(unit) for unit in units]

    def _run_parallel(self, units: Sequence[CompilationUnit]) -> List[Path]:
        futures: List[Future] = []

        with self.budget.lend_implicit_token():
            with ThreadPoolExecutor(max_workers=self._max_workers(len(units)), thread_name_prefix="nasm") as pool:
                for index, unit in enumerate(units):
                    token = self.budget.acquire()
                    logging.debug(f"Dispatching {describe_unit(unit, index)}")
                    try:
                        futures.append(pool.submit(self._run_unit, unit, token))
                    except BaseException:
                        self.budget.release(token)
                        raise
                results: List[UnitResult] = [future.result() for future in futures]

        return collect_results(results)

    def _max_workers(self, unit_count: int) -> int:
        capacity = self.budget.capacity
        if capacity is None:
            return unit_count
        return max(1, min(unit_count, capacity))

    def _run_unit(self, unit: CompilationUnit, token: JobToken) -> UnitResult:
        try:
            object_file = self.compiler.compile_unit(unit)
        except NasmBuildError as e:
            return UnitResult(unit, error=e)
        finally:
            self.budget.release(token)
        return UnitResult(unit, object_file=object_file)


def collect_results(results: Sequence[UnitResult]) -> List[Path]:
    """Return the object paths, or raise the first error in input order."""
    for result in results:
        if not result.success:
            raise result.error
    return [result.object_file for result in results]

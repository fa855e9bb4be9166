"""Job budget shared with the host build system.

A job budget hands out permits (tokens); an external process may only run
while a token is held. When the host runs a GNU make style jobserver, its
handle is found in the make flags and tokens are single bytes read from and
written back to its pipe. Otherwise a local budget is created.

Every process owns one implicit token it never has to acquire. Before fanning
work out the orchestrator lends that token to the pool and takes one back
before returning (see JobBudget.lend_implicit_token).

The budget is created once per process by get_shared_job_budget and then
passed explicitly to whoever needs it.
"""

import logging
import os
import re
import select
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import psutil

from ..config.build_env import BuildEnvironment

TOKEN_BYTE = b"+"

_JOBSERVER_ARG = re.compile(r"--jobserver-(?:auth|fds)=(\S+)")


@dataclass(frozen=True)
class JobToken:
    """A permit to run one external process."""

    value: bytes = TOKEN_BYTE


class JobBudget(ABC):
    """Capacity-limiting primitive shared by every concurrent compilation.

    Several builds in one process may lend the implicit token at the same
    time. The process only owns one, so it is released by the first active
    lender and taken back by the last.
    """

    def __init__(self):
        self._lend_lock = threading.Lock()
        self._lenders = 0

    @property
    def capacity(self) -> Optional[int]:
        """Total tokens when known locally, None for an external jobserver."""
        return None

    @abstractmethod
    def acquire(self) -> JobToken:
        """Block until a token is available and return it."""
        pass

    @abstractmethod
    def release(self, token: JobToken) -> None:
        """Return a token to the budget."""
        pass

    @contextmanager
    def lend_implicit_token(self) -> Iterator[None]:
        """Give up this process's implicit token for the duration of the block.

        Without this, a budget of one would have no token left for the first
        child and the build would deadlock. A token is always taken back on
        exit, even when the block raises.
        """
        with self._lend_lock:
            if self._lenders == 0:
                self.release(JobToken())
            self._lenders += 1
        try:
            yield
        finally:
            # Held while reacquiring so a new lender cannot release a second time
            with self._lend_lock:
                self._lenders -= 1
                if self._lenders == 0:
                    self.acquire()


class LocalJobBudget(JobBudget):
    """Budget of K tokens held in-process, one of them implicitly ours."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = max(1, limit)
        self._semaphore = threading.BoundedSemaphore(self.limit)
        # The calling process already occupies one slot of its own budget
        self._semaphore.acquire()

    @property
    def capacity(self) -> Optional[int]:
        return self.limit

    def acquire(self) -> JobToken:
        self._semaphore.acquire()
        return JobToken()

    def release(self, token: JobToken) -> None:
        self._semaphore.release()

    def __repr__(self) -> str:
        return f"LocalJobBudget(limit={self.limit})"


class PipeJobBudget(JobBudget):
    """Client of an external jobserver reachable through a pair of descriptors.

    Tokens are bytes in the jobserver's pipe. The byte read on acquire is
    written back unchanged on release.
    """

    def __init__(self, read_fd: int, write_fd: int, description: str = ""):
        super().__init__()
        self.read_fd = read_fd
        self.write_fd = write_fd
        self.description = description or f"{read_fd},{write_fd}"

    def acquire(self) -> JobToken:
        while True:
            try:
                data = os.read(self.read_fd, 1)
            except BlockingIOError:
                # Descriptor is shared non-blocking; wait until readable
                select.select([self.read_fd], [], [])
                continue
            except InterruptedError:
                continue
            if not data:
                raise OSError(f"Jobserver pipe {self.description} was closed")
            return JobToken(data)

    def release(self, token: JobToken) -> None:
        os.write(self.write_fd, token.value)

    def __repr__(self) -> str:
        return f"PipeJobBudget({self.description})"


def parse_jobserver_handle(makeflags: Optional[str]) -> Optional[str]:
    """Extract the jobserver handle from make flags; the last occurrence wins.

    Example:
        >>> parse_jobserver_handle("-j --jobserver-auth=3,4")
        '3,4'
    """
    if not makeflags:
        return None
    matches = _JOBSERVER_ARG.findall(makeflags)
    if not matches:
        return None
    return matches[-1]


def budget_from_handle(handle: str) -> Optional[JobBudget]:
    """Connect to an external jobserver, or return None when it is unusable."""
    if handle.startswith("fifo:"):
        path = handle[len("fifo:"):]
        try:
            read_fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
            write_fd = os.open(path, os.O_WRONLY)
        except OSError as e:
            logging.warning(f"Cannot open jobserver fifo {path}: {e}")
            return None
        return PipeJobBudget(read_fd, write_fd, description=handle)

    fds = handle.split(",")
    if len(fds) != 2:
        logging.warning(f"Unsupported jobserver handle {handle!r}")
        return None

    try:
        read_fd, write_fd = int(fds[0]), int(fds[1])
    except ValueError:
        logging.warning(f"Unsupported jobserver handle {handle!r}")
        return None

    # make passes -1 descriptors to sub-makes it did not mark as recursive
    if read_fd < 0 or write_fd < 0 or not (_fd_is_open(read_fd) and _fd_is_open(write_fd)):
        logging.warning(f"Jobserver descriptors {handle} are not open in this process")
        return None

    return PipeJobBudget(read_fd, write_fd, description=handle)


def default_job_count(env: BuildEnvironment) -> int:
    """Size of a local budget: the host's hint, else the logical CPU count."""
    if env.num_jobs is not None:
        return max(1, env.num_jobs)
    return psutil.cpu_count() or 1


def job_budget_from_env(env: BuildEnvironment) -> JobBudget:
    """Build a budget from the host environment without caching it."""
    handle = parse_jobserver_handle(env.makeflags)
    if handle is not None:
        budget = budget_from_handle(handle)
        if budget is not None:
            logging.debug(f"Using external jobserver {budget!r}")
            return budget
        logging.warning("Falling back to a local job budget")

    budget = LocalJobBudget(default_job_count(env))
    logging.debug(f"Using {budget!r}")
    return budget


_shared_budget: Optional[JobBudget] = None
_shared_budget_lock = threading.Lock()


def get_shared_job_budget(env: Optional[BuildEnvironment] = None) -> JobBudget:
    """Return the process-wide job budget, creating it on first use.

    The first caller's environment decides the budget; later callers get the
    same instance whatever environment they pass.
    """
    global _shared_budget
    with _shared_budget_lock:
        if _shared_budget is None:
            _shared_budget = job_budget_from_env(env or BuildEnvironment.from_env())
        return _shared_budget


def _fd_is_open(fd: int) -> bool:
    try:
        os.fstat(fd)
    except OSError:
        return False
    return True

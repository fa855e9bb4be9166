"""
Unit tests for job budgets.

Tests both the local semaphore budget and the client for an external
jobserver pipe.
"""

import os
import sys
import threading

import pytest
from unittest.mock import patch

from nasmbuild.build import jobserver
from nasmbuild.build.jobserver import (
    JobToken,
    LocalJobBudget,
    PipeJobBudget,
    budget_from_handle,
    get_shared_job_budget,
    job_budget_from_env,
    parse_jobserver_handle,
)
from nasmbuild.config.build_env import BuildEnvironment

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="jobserver pipes are POSIX only")


@pytest.fixture
def pipe_fds():
    """Create a pipe and close whatever is left open afterwards."""
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


class TestParseJobserverHandle:
    """Test suite for parse_jobserver_handle()."""

    def test_auth(self):
        assert parse_jobserver_handle("-j --jobserver-auth=3,4") == "3,4"

    def test_legacy_fds(self):
        assert parse_jobserver_handle(" -j2 --jobserver-fds=7,8") == "7,8"

    def test_fifo(self):
        assert parse_jobserver_handle("-j4 --jobserver-auth=fifo:/tmp/GMfifo123") == "fifo:/tmp/GMfifo123"

    def test_last_occurrence_wins(self):
        flags = "--jobserver-fds=3,4 -j --jobserver-auth=5,6"
        assert parse_jobserver_handle(flags) == "5,6"

    @pytest.mark.parametrize("flags", [None, "", "-j4", "-k -s"])
    def test_no_handle(self, flags):
        assert parse_jobserver_handle(flags) is None


class TestLocalJobBudget:
    """Test suite for LocalJobBudget."""

    def test_implicit_token_reserved(self):
        """Test one of K tokens is held by the creating process."""
        budget = LocalJobBudget(3)
        tokens = [budget.acquire(), budget.acquire()]

        acquired = threading.Event()

        def grab():
            budget.acquire()
            acquired.set()

        worker = threading.Thread(target=grab, daemon=True)
        worker.start()
        assert not acquired.wait(0.1)

        budget.release(tokens.pop())
        assert acquired.wait(2)
        worker.join(2)

    def test_limit_clamped(self):
        assert LocalJobBudget(0).limit == 1
        assert LocalJobBudget(-4).limit == 1

    def test_lend_implicit_token_budget_of_one(self):
        """Test a budget of one still lets one child run."""
        budget = LocalJobBudget(1)

        with budget.lend_implicit_token():
            token = budget.acquire()
            budget.release(token)

    def test_overlapping_lenders_release_once(self):
        """Test nested lenders share the single implicit token."""
        budget = LocalJobBudget(2)

        with budget.lend_implicit_token():
            with budget.lend_implicit_token():
                tokens = [budget.acquire(), budget.acquire()]
                for token in tokens:
                    budget.release(token)
            # Inner exit must not take the token back while the outer lender is active
            tokens = [budget.acquire(), budget.acquire()]
            for token in tokens:
                budget.release(token)

        budget.release(JobToken())
        with pytest.raises(ValueError):
            budget.release(JobToken())

    def test_capacity(self):
        assert LocalJobBudget(3).capacity == 3

    def test_lend_implicit_token_reacquires_on_error(self):
        """Test the implicit token is taken back when the block raises."""
        budget = LocalJobBudget(1)

        with pytest.raises(RuntimeError):
            with budget.lend_implicit_token():
                raise RuntimeError("boom")

        # Back to holding the only token: one release is allowed, two are not
        budget.release(JobToken())
        with pytest.raises(ValueError):
            budget.release(JobToken())


@posix_only
class TestPipeJobBudget:
    """Test suite for PipeJobBudget."""

    def test_acquire_returns_pipe_bytes(self, pipe_fds):
        """Test tokens are the bytes found in the pipe, handed back on release."""
        read_fd, write_fd = pipe_fds
        os.write(write_fd, b"ab")
        budget = PipeJobBudget(read_fd, write_fd)

        first = budget.acquire()
        second = budget.acquire()
        assert (first.value, second.value) == (b"a", b"b")

        budget.release(second)
        assert os.read(read_fd, 1) == b"b"

    def test_lend_implicit_token(self, pipe_fds):
        """Test lending writes a token and returns by reading one."""
        read_fd, write_fd = pipe_fds
        budget = PipeJobBudget(read_fd, write_fd)

        with budget.lend_implicit_token():
            token = budget.acquire()
            assert token.value == b"+"
            budget.release(token)

    def test_acquire_waits_on_nonblocking_pipe(self, pipe_fds):
        """Test a non-blocking descriptor waits for a token instead of failing."""
        read_fd, write_fd = pipe_fds
        os.set_blocking(read_fd, False)
        budget = PipeJobBudget(read_fd, write_fd)

        timer = threading.Timer(0.05, os.write, args=(write_fd, b"x"))
        timer.start()
        try:
            assert budget.acquire().value == b"x"
        finally:
            timer.join()

    def test_capacity_unknown(self, pipe_fds):
        assert PipeJobBudget(*pipe_fds).capacity is None

    def test_closed_pipe(self):
        read_fd, write_fd = os.pipe()
        os.close(write_fd)
        budget = PipeJobBudget(read_fd, write_fd)

        try:
            with pytest.raises(OSError, match="closed"):
                budget.acquire()
        finally:
            os.close(read_fd)


class TestBudgetFromHandle:
    """Test suite for connecting to an external jobserver."""

    @posix_only
    def test_open_descriptors(self, pipe_fds):
        read_fd, write_fd = pipe_fds

        budget = budget_from_handle(f"{read_fd},{write_fd}")

        assert isinstance(budget, PipeJobBudget)
        assert (budget.read_fd, budget.write_fd) == (read_fd, write_fd)

    def test_closed_descriptors(self):
        """Test descriptors that are not open fall back."""
        read_fd, write_fd = os.pipe()
        os.close(read_fd)
        os.close(write_fd)

        assert budget_from_handle(f"{read_fd},{write_fd}") is None

    @pytest.mark.parametrize("handle", ["-1,-1", "abc", "3", "a,b", "sem:gmake_semaphore"])
    def test_unusable_handles(self, handle):
        assert budget_from_handle(handle) is None

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires named pipes")
    def test_fifo(self, tmp_path):
        fifo = tmp_path / "jobserver"
        os.mkfifo(fifo)

        budget = budget_from_handle(f"fifo:{fifo}")
        try:
            assert isinstance(budget, PipeJobBudget)
            budget.release(JobToken(b"j"))
            assert budget.acquire().value == b"j"
        finally:
            os.close(budget.read_fd)
            os.close(budget.write_fd)

    def test_missing_fifo(self, tmp_path):
        assert budget_from_handle(f"fifo:{tmp_path / 'missing'}") is None


class TestJobBudgetFromEnv:
    """Test suite for choosing a budget from the host environment."""

    def test_num_jobs_hint(self):
        budget = job_budget_from_env(BuildEnvironment(num_jobs=3))

        assert isinstance(budget, LocalJobBudget)
        assert budget.limit == 3

    @patch('nasmbuild.build.jobserver.psutil.cpu_count')
    def test_cpu_count_fallback(self, mock_cpu_count):
        mock_cpu_count.return_value = 6

        budget = job_budget_from_env(BuildEnvironment())

        assert budget.limit == 6

    @patch('nasmbuild.build.jobserver.psutil.cpu_count')
    def test_cpu_count_unknown(self, mock_cpu_count):
        mock_cpu_count.return_value = None

        assert job_budget_from_env(BuildEnvironment()).limit == 1

    @posix_only
    def test_external_jobserver(self, pipe_fds):
        read_fd, write_fd = pipe_fds
        env = BuildEnvironment(makeflags=f"-j --jobserver-auth={read_fd},{write_fd}", num_jobs=2)

        assert isinstance(job_budget_from_env(env), PipeJobBudget)

    def test_unusable_jobserver_falls_back(self, caplog):
        env = BuildEnvironment(makeflags="-j --jobserver-auth=-1,-1", num_jobs=2)

        with caplog.at_level("WARNING"):
            budget = job_budget_from_env(env)

        assert isinstance(budget, LocalJobBudget)
        assert budget.limit == 2
        assert "Falling back to a local job budget" in caplog.text


class TestSharedJobBudget:
    """Test suite for the process-wide budget."""

    def test_created_once(self, monkeypatch):
        """Test the first caller's environment wins and the instance is reused."""
        monkeypatch.setattr(jobserver, "_shared_budget", None)

        first = get_shared_job_budget(BuildEnvironment(num_jobs=2))
        second = get_shared_job_budget(BuildEnvironment(num_jobs=9))

        assert first is second
        assert first.limit == 2

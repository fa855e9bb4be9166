"""
Integration tests for building a static library with a real NASM.

These run nasm and ar for real and only on x86_64 Linux hosts.
"""

import platform
import shutil
import subprocess
import sys

import pytest

from nasmbuild import NasmBuild, ProcessExitError
from nasmbuild.build.jobserver import LocalJobBudget
from nasmbuild.config.build_env import BuildEnvironment

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        sys.platform != "linux" or platform.machine() != "x86_64",
        reason="requires an x86_64 Linux host"
    ),
    pytest.mark.skipif(
        shutil.which("nasm") is None or shutil.which("ar") is None,
        reason="requires nasm and ar on PATH"
    ),
]

FUNCTION_SOURCE = """\
section .text
global {name}
{name}:
    mov eax, {value}
    ret
"""


@pytest.fixture
def sources(tmp_path):
    """Write a few single-function assembly files."""
    src = tmp_path / "src"
    src.mkdir()
    names = []
    for index, name in enumerate(["alpha", "beta", "gamma"]):
        (src / f"{name}.asm").write_text(FUNCTION_SOURCE.format(name=name, value=index))
        names.append(f"src/{name}.asm")
    return names


@pytest.fixture
def env(tmp_path):
    return BuildEnvironment.from_env({
        "TARGET": "x86_64-unknown-linux-gnu",
        "OUT_DIR": str(tmp_path / "out"),
        "CARGO_MANIFEST_DIR": str(tmp_path),
        "DEBUG": "true",
        "PATH": shutil.which("nasm").rsplit("/", 1)[0],
    })


class TestNasmBuild:
    """Integration tests for NasmBuild against real tools."""

    def test_build_static_library(self, sources, env, tmp_path):
        archive = NasmBuild() \
            .environment(env) \
            .job_budget(LocalJobBudget(2)) \
            .files(sources) \
            .emit_directives(False) \
            .compile("funcs")

        assert archive == tmp_path / "out" / "libfuncs.a"
        assert archive.exists()

        members = subprocess.run(
            ["ar", "t", str(archive)], capture_output=True, text=True, check=True
        ).stdout.split()
        assert members == ["alpha.o", "beta.o", "gamma.o"]

    def test_assembly_error_reported(self, env, tmp_path):
        bad = tmp_path / "bad.asm"
        bad.write_text("this is not an instruction\n")

        with pytest.raises(ProcessExitError) as exc_info:
            NasmBuild().environment(env).job_budget(LocalJobBudget(1)).file(bad).compile("bad")

        assert str(bad) in exc_info.value.command

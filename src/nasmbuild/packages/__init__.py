"""External tool discovery for nasmbuild."""

from .assembler_finder import AssemblerFinder, AssemblerInfo, NasmVersion, query_version

__all__ = [
    "AssemblerFinder",
    "AssemblerInfo",
    "NasmVersion",
    "query_version",
]

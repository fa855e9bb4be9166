"""Target triple resolution.

Maps a platform triple (ARCH-VENDOR-OS[-ENVIRONMENT]) to the NASM output
format flag and debug-info flag for that platform.

Unknown or malformed triples are not errors: they resolve to an empty format
flag and the generic ``-g`` debug flag, leaving NASM itself to complain about
anything it cannot assemble.
"""

from dataclasses import dataclass

DEFAULT_DEBUG_FLAG = "-g"
DWARF_DEBUG_FLAG = "-gdwarf"

X86_64_ARCHES = frozenset({"x86_64"})
X86_ARCHES = frozenset({"x86", "i386", "i586", "i686"})

APPLE_OSES = frozenset({"darwin", "ios", "macos"})
WINDOWS_OSES = frozenset({"windows", "uefi"})

X32_ENVIRONMENT = "gnux32"
MSVC_SUFFIX = "msvc"


@dataclass(frozen=True)
class ResolvedTarget:
    """NASM flags derived from a target triple."""

    format_flag: str
    debug_flag: str

    def as_tuple(self) -> tuple[str, str]:
        return (self.format_flag, self.debug_flag)


UNKNOWN_TARGET = ResolvedTarget("", DEFAULT_DEBUG_FLAG)


def resolve_target(triple: str) -> ResolvedTarget:
    """Resolve a target triple to NASM output-format and debug flags.

    Args:
        triple: Platform triple, e.g. "x86_64-unknown-linux-gnu"

    Returns:
        ResolvedTarget with the format flag (possibly empty) and debug flag

    Example:
        >>> resolve_target("i686-pc-windows-msvc").as_tuple()
        ('-fwin32', '-g')
    """
    parts = triple.split("-")
    if len(parts) < 3:
        return UNKNOWN_TARGET

    arch, os_name = parts[0], parts[2]
    environment = parts[3] if len(parts) > 3 else None

    if arch in X86_64_ARCHES:
        # x32 ABI is checked before the generic 64-bit dispatch
        if environment == X32_ENVIRONMENT:
            return ResolvedTarget("-felfx32", DWARF_DEBUG_FLAG)
        return _resolve_for_os(os_name, width=64)

    if arch in X86_ARCHES:
        return _resolve_for_os(os_name, width=32)

    return UNKNOWN_TARGET


def _resolve_for_os(os_name: str, width: int) -> ResolvedTarget:
    if os_name in APPLE_OSES:
        return ResolvedTarget(f"-fmacho{width}", DEFAULT_DEBUG_FLAG)
    if os_name in WINDOWS_OSES:
        return ResolvedTarget(f"-fwin{width}", DEFAULT_DEBUG_FLAG)
    return ResolvedTarget(f"-felf{width}", DWARF_DEBUG_FLAG)


def is_msvc_target(triple: str) -> bool:
    """Return True when the triple names an MSVC environment (ends in 'msvc')."""
    return triple.endswith(MSVC_SUFFIX)

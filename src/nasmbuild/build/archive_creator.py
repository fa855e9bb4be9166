"""Archive Creator.

This module creates static library archives from compiled object files.

Design:
    - Unix style: '<ar> crus <archive> <objects...>'
    - MSVC style: '<lib> /OUT:<archive> <objects...>'
    - Archiver resolution: explicit override, then the host-supplied tool
      name, then 'lib' or 'ar' by style
"""

from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import ConfigurationError
from .build_utils import run_command

UNIX_ARCHIVER = "ar"
MSVC_ARCHIVER = "lib"


def resolve_archiver(
    override: Optional[str],
    env_archiver: Optional[str],
    is_msvc: bool
) -> str:
    """Pick the archiver executable: override > environment > style default."""
    if override:
        return str(override)
    if env_archiver:
        return env_archiver
    return MSVC_ARCHIVER if is_msvc else UNIX_ARCHIVER


class ArchiveCreator:
    """Creates static library archives from object files."""

    def __init__(self, archiver: str, is_msvc: bool, show_progress: bool = False):
        """Initialize archive creator.

        Args:
            archiver: Archiver executable ('ar', 'lib' or a full path)
            is_msvc: Use MSVC librarian syntax instead of Unix ar syntax
            show_progress: Whether to print archive creation progress
        """
        self.archiver = archiver
        self.is_msvc = is_msvc
        self.show_progress = show_progress

    def build_command(self, archive_path: Path, object_files: Sequence[Path]) -> List[str]:
        if self.is_msvc:
            cmd = [self.archiver, f"/OUT:{archive_path}"]
        else:
            # c=create quietly, r=insert/replace, u=only newer, s=write index
            cmd = [self.archiver, "crus", str(archive_path)]
        cmd.extend(str(obj) for obj in object_files)
        return cmd

    def create_archive(self, archive_path: Path, object_files: Sequence[Path]) -> Path:
        """Create a static library archive.

        Args:
            archive_path: Path for the output archive
            object_files: Object files to archive, in link order

        Returns:
            Path to the archive

        Raises:
            ConfigurationError: If there are no object files or the archive
                directory cannot be created
            ProcessSpawnError: If the archiver could not be started
            ProcessExitError: If the archiver exited with a non-zero status
        """
        if not object_files:
            raise ConfigurationError("No object files provided for archive")

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create output directory {archive_path.parent}: {e}"
            ) from e

        if self.show_progress:
            print(f"Creating {archive_path.name} archive from {len(object_files)} object files...")

        run_command(self.build_command(archive_path, object_files))
        return archive_path

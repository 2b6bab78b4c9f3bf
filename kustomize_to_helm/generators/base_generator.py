"""
Base Generator Module

Provides common I/O and the overwrite policy for all generator classes.
"""
from pathlib import Path
from typing import List, Optional

from ..constants import NEVER_OVERWRITE
from ..errors import ChartWriteError
from ..filesystem import Filesystem, LocalFilesystem
from ..logging import logger


class BaseGenerator:
    """Base class for all generators with common I/O operations"""

    def __init__(self, chart_dir: Path, force: bool = False, fs: Optional[Filesystem] = None):
        """Initialize BaseGenerator

        Args:
            chart_dir: Chart root directory (<output>/chart)
            force: Overwrite previously generated files
            fs: Filesystem to write through, the local disk by default
        """
        self.chart_dir = Path(chart_dir)
        self.force = force
        self.fs = fs or LocalFilesystem()
        self.written: List[Path] = []
        self.skipped: List[Path] = []

    def _ensure_directory(self, directory: Path) -> None:
        """Ensure directory exists with error handling

        Raises:
            ChartWriteError: If directory creation fails
        """
        try:
            self.fs.makedirs(directory)
        except OSError as e:
            raise ChartWriteError(str(directory), e)

    def _should_write(self, file_path: Path) -> bool:
        """Apply the overwrite policy

        Files in the never-overwrite list are kept once they exist, whatever
        the force flag says. Every other existing file is rewritten only
        under force.
        """
        if not self.fs.exists(file_path):
            return True
        if file_path.name in NEVER_OVERWRITE:
            logger.info("Keeping existing %s (never overwritten)", file_path)
            return False
        if not self.force:
            logger.info("Skipping existing %s (use --force to overwrite)", file_path)
            return False
        return True

    def _write_file(self, file_path: Path, content: str) -> bool:
        """Write content to file, honouring the overwrite policy

        Returns:
            True if the file was written

        Raises:
            ChartWriteError: If file writing fails
        """
        file_path = Path(file_path)
        if not self._should_write(file_path):
            self.skipped.append(file_path)
            return False
        self._ensure_directory(file_path.parent)
        try:
            self.fs.write_text(file_path, content)
        except OSError as e:
            raise ChartWriteError(str(file_path), e)
        logger.debug("Wrote %s", file_path)
        self.written.append(file_path)
        return True

"""
Backup Store

Timestamped copies of files about to be overwritten, kept under one
directory as <filename>.<epoch-ms>.bak.
"""

from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List
import logging
import shutil
import time

from .contracts import BackupEntry

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"
SECONDS_PER_DAY = 24 * 60 * 60


class BackupStore:

    def __init__(self, backup_dir: Path, clock: Callable[[], float] = time.time):
        self._dir = Path(backup_dir)
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._dir

    def create(self, source: Path) -> Path:
        """Copy source into the backup directory. Raises OSError on failure."""
        self._dir.mkdir(parents=True, exist_ok=True)
        stamp = int(self._clock() * 1000)
        target = self._dir / f"{source.name}.{stamp}{BACKUP_SUFFIX}"
        shutil.copyfile(source, target)
        logger.info("Backup created: %s", target)
        return target

    def entries(self) -> List[BackupEntry]:
        if not self._dir.is_dir():
            return []
        entries = []
        for path in sorted(self._dir.iterdir()):
            if not path.name.endswith(BACKUP_SUFFIX) or not path.is_file():
                continue
            stat = path.stat()
            entries.append(BackupEntry(
                file=path.name,
                size=stat.st_size,
                modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        return entries

    def prune(self, max_age_days: float) -> int:
        """Delete backups whose mtime is older than max_age_days. Returns the count."""
        if not self._dir.is_dir():
            return 0
        cutoff = self._clock() - max_age_days * SECONDS_PER_DAY
        removed = 0
        for path in self._dir.iterdir():
            if not path.name.endswith(BACKUP_SUFFIX) or not path.is_file():
                continue
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
                logger.info("Pruned expired backup: %s", path.name)
        if removed:
            logger.info("Backup pruning removed %d file(s)", removed)
        return removed

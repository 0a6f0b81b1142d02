"""Backup copies of original uploads and restoration from them."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from .models import BackupResult, RestoreReport
from .state import MarkerStateTracker

logger = logging.getLogger("image_optimizer")


class BackupStore:
    """Keeps one untouched copy per original base name in a flat directory.

    Images that share a base name across upload folders collide on the same
    backup; the first one backed up wins.
    """

    def __init__(
        self,
        backup_dir: Path,
        uploads_root: Path,
        tracker: MarkerStateTracker,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.uploads_root = Path(uploads_root)
        self.tracker = tracker

    def ensure_directory(self) -> None:
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def backup_path_for(self, path: Path) -> Path:
        return self.backup_dir / Path(path).name

    def has_backup(self, path: Path) -> bool:
        return self.backup_path_for(path).is_file()

    def ensure_backup(self, path: Path) -> BackupResult:
        """Copy the original aside unless a backup for its base name already exists."""
        backup_path = self.backup_path_for(path)
        if backup_path.is_file():
            logger.debug("Backup already present for %s", path)
            return BackupResult(backup_path=backup_path, created=False)
        try:
            self.ensure_directory()
            shutil.copyfile(path, backup_path)
        except OSError as exc:
            return BackupResult(backup_path=backup_path, created=False, error=str(exc))
        logger.debug("Backed up %s to %s", path, backup_path)
        return BackupResult(backup_path=backup_path, created=True)

    def iter_backups(self) -> List[Path]:
        if not self.backup_dir.is_dir():
            return []
        return sorted(p for p in self.backup_dir.iterdir() if p.is_file())

    def _index_live_files(self) -> Dict[str, Dict[str, List[Path]]]:
        by_name: Dict[str, List[Path]] = {}
        by_stem: Dict[str, List[Path]] = {}
        if self.uploads_root.is_dir():
            for candidate in sorted(self.uploads_root.rglob("*")):
                if not candidate.is_file():
                    continue
                if self.backup_dir in candidate.parents:
                    continue
                by_name.setdefault(candidate.name, []).append(candidate.parent)
                by_stem.setdefault(candidate.stem, []).append(candidate.parent)
        return {"name": by_name, "stem": by_stem}

    def locate_live_path(
        self,
        backup: Path,
        index: Optional[Dict[str, Dict[str, List[Path]]]] = None,
    ) -> Optional[Path]:
        """Map a backup back to the upload folder its original lives in.

        A folder holding a file of the same name wins; otherwise any folder with a
        file of the same stem (the converted ``.jpg``, the ``.webp`` derivative or
        the marker) is used.
        """
        index = index if index is not None else self._index_live_files()
        folders = index["name"].get(backup.name) or index["stem"].get(backup.stem)
        if not folders:
            return None
        unique = sorted(set(folders))
        if len(unique) > 1:
            logger.warning(
                "Backup %s matches %d upload folders; restoring into %s",
                backup.name,
                len(unique),
                unique[0],
            )
        return unique[0] / backup.name

    def restore_all(self) -> RestoreReport:
        """Copy every backup over its live file and clear the optimization marker.

        Backups are kept, so restoring twice yields the same result.
        """
        report = RestoreReport()
        index = self._index_live_files()
        for backup in self.iter_backups():
            live_path = self.locate_live_path(backup, index)
            if live_path is None:
                report.errors.append(f"{backup.name}: no matching upload found")
                logger.warning("Could not locate upload for backup %s", backup)
                continue
            try:
                shutil.copyfile(backup, live_path)
                self.tracker.unmark(live_path)
            except OSError as exc:
                report.errors.append(f"{backup.name}: {exc}")
                logger.error("Failed to restore %s: %s", live_path, exc)
                continue
            report.restored.append(live_path)
            logger.debug("Restored %s from %s", live_path, backup)
        logger.info(report.summary)
        return report

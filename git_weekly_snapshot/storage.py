"""JSON file storage for weekly snapshots.

Each ISO week is stored as ``<output_directory>/YYYY-WW.json``. Saving backs
up the previous file to ``YYYY-WW.json.backup`` and writes through a
temporary file, so a snapshot on disk is always either the old or the new
version. Writers of the same week are serialised with a lock file.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from .errors import InvariantViolation, SnapshotStoreError
from .models import WeekSnapshot
from .weeks import WeekCoordinate, format_week_string

logger = logging.getLogger(__name__)

WEEK_FILE_PATTERN = re.compile(r"^(\d{4})-(\d{2})\.json$")


class SnapshotStore:
    """Read and write week snapshots in a directory."""

    def __init__(self, directory: str | Path, lock_timeout: float = 30.0):
        """Initialize the store.

        Args:
            directory: Directory holding the snapshot files (created on save)
            lock_timeout: Seconds to wait for another writer of the same week
        """
        self.directory = Path(directory)
        self.lock_timeout = lock_timeout

    def path_for(self, coord: WeekCoordinate) -> Path:
        """Return the file path of a week's snapshot."""
        return self.directory / f"{format_week_string(coord.year, coord.week)}.json"

    def exists(self, coord: WeekCoordinate) -> bool:
        return self.path_for(coord).is_file()

    def load(self, coord: WeekCoordinate) -> WeekSnapshot | None:
        """Load a week's snapshot.

        Returns:
            The snapshot, or None if no file exists for the week

        Raises:
            SnapshotStoreError: If the file exists but cannot be parsed
        """
        path = self.path_for(coord)
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotStoreError(f"Could not read {path}: {e}") from e

        try:
            return WeekSnapshot.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotStoreError(f"Invalid snapshot in {path}: {e}") from e

    def save(self, coord: WeekCoordinate, snapshot: WeekSnapshot) -> Path:
        """Persist a snapshot, backing up any previous version.

        Args:
            coord: Week to save under
            snapshot: Snapshot to write; its weekly totals must be up to date

        Returns:
            Path of the written file

        Raises:
            InvariantViolation: If the snapshot is for another week or inconsistent
            SnapshotStoreError: If the backup or the write fails
        """
        expected_key = format_week_string(coord.year, coord.week)
        if snapshot.week != expected_key:
            raise InvariantViolation(
                f"Refusing to save snapshot for week {snapshot.week} as {expected_key}"
            )
        snapshot.check_invariants()

        path = self.path_for(coord)
        self.directory.mkdir(parents=True, exist_ok=True)
        content = json.dumps(snapshot.to_dict(), indent=2)

        with self._lock(expected_key):
            if path.exists():
                backup_path = path.with_name(path.name + ".backup")
                try:
                    shutil.copy2(path, backup_path)
                except OSError as e:
                    raise SnapshotStoreError(f"Could not back up {path}: {e}") from e
                logger.info(f"Backed up existing file to {backup_path}")

            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{expected_key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.write("\n")
                os.replace(tmp_name, path)
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                raise SnapshotStoreError(f"Could not write {path}: {e}") from e

        logger.info(f"Saved data to {path}")
        return path

    def delete(self, coord: WeekCoordinate) -> None:
        """Delete a week's snapshot if it exists."""
        path = self.path_for(coord)
        with self._lock(format_week_string(coord.year, coord.week)):
            path.unlink(missing_ok=True)
        logger.info(f"Deleted {path}")

    def list(self) -> list[WeekCoordinate]:
        """Return the weeks with a stored snapshot, oldest first."""
        if not self.directory.is_dir():
            return []

        weeks = []
        for entry in self.directory.iterdir():
            match = WEEK_FILE_PATTERN.match(entry.name)
            if not match:
                continue
            try:
                weeks.append(WeekCoordinate(int(match.group(1)), int(match.group(2))))
            except ValueError:
                logger.warning(f"Ignoring file with invalid week number: {entry.name}")
        return sorted(weeks)

    def load_many(self, coords: Iterable[WeekCoordinate]) -> dict[str, WeekSnapshot]:
        """Load several weeks, skipping missing and unreadable files.

        Returns:
            Mapping of week string to snapshot, in the order requested
        """
        results = {}
        for coord in coords:
            try:
                snapshot = self.load(coord)
            except SnapshotStoreError as e:
                logger.warning(f"Could not load {coord}: {e}")
                continue
            if snapshot is not None:
                results[str(coord)] = snapshot
        return results

    @contextmanager
    def _lock(self, key: str) -> Iterator[None]:
        """Hold an exclusive lock file for one week key."""
        self.directory.mkdir(parents=True, exist_ok=True)
        lock_path = self.directory / f".{key}.lock"
        deadline = time.monotonic() + self.lock_timeout

        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise SnapshotStoreError(
                        f"Timed out waiting for lock {lock_path}; "
                        "remove it if no other run is active"
                    ) from None
                time.sleep(0.1)

        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            lock_path.unlink(missing_ok=True)

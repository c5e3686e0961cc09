"""JSON snapshot implementation for data persistence."""
import json
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
from builder_scout.domain.repository_interface import IStoreStorage
from builder_scout.domain.models import Store, format_timestamp


logger = logging.getLogger(__name__)


class JsonStoreStorage(IStoreStorage):
    """Single-file JSON implementation of store storage.

    The whole store is read and written at once. Saves go through a temporary
    file in the same directory followed by ``os.replace``, so a crash during a
    save leaves the previous snapshot intact. There is no locking: one writer
    process per file.
    """

    def __init__(self, path: Union[str, Path], quarantine_corrupt: bool = True):
        """Initialize snapshot storage.

        Args:
            path: Location of the snapshot file
            quarantine_corrupt: Copy unreadable snapshots aside before resetting
        """
        self._path = Path(path)
        self._quarantine_corrupt = quarantine_corrupt

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Store:
        """Load the snapshot.

        Returns:
            The persisted Store, or an empty one when the file is missing,
            blank or unreadable
        """
        if not self._path.exists():
            logger.info(f"No snapshot at {self._path}, starting with an empty store")
            return Store()

        try:
            raw = self._path.read_text(encoding="utf-8").strip()
            if not raw:
                return Store()
            store = Store.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Corrupted snapshot {self._path} ({e}), resetting store")
            if self._quarantine_corrupt:
                self._quarantine()
            return Store()

        logger.info(
            f"Loaded {len(store.builders)} builders and {len(store.repos)} repos from {self._path}"
        )
        return store

    def save(self, store: Store, now: Optional[datetime] = None) -> None:
        """Overwrite the snapshot with ``store``.

        Args:
            store: Store to persist
            now: Timestamp recorded as ``last_updated``
        """
        store.last_updated = format_timestamp(now or datetime.now(timezone.utc))
        payload = json.dumps(store.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp_name, self._path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(
            f"Saved {len(store.builders)} builders and {len(store.repos)} repos to {self._path}"
        )

    def _quarantine(self) -> Optional[Path]:
        """Copy the unreadable snapshot next to itself with a timestamp suffix."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            shutil.copy2(self._path, backup)
        except OSError as e:
            logger.error(f"Could not back up corrupted snapshot {self._path}: {e}")
            return None
        logger.warning(f"Corrupted snapshot backed up to {backup}")
        return backup

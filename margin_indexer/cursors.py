import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

class MemoryCursorStore:
    def __init__(self, cursors: dict[str, str] | None = None):
        self.cursors = dict(cursors or {})

    def load(self) -> dict[str, str]:
        return dict(self.cursors)

    def save(self, event_type: str, cursor: str):
        self.cursors[event_type] = cursor

class JsonFileCursorStore:
    """Flat ``{event_type: cursor}`` JSON file.

    Anything unreadable loads as "start of stream". Saves go through a temp
    file, fsync and rename, so a cursor is on disk before the next page is
    fetched with it. A failed save is logged and swallowed: handlers are
    idempotent, so re-reading a page is safe.
    """

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load cursors from %s, starting fresh: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Cursor file %s is not an object, starting fresh", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def save(self, event_type: str, cursor: str):
        cursors = self.load()
        cursors[event_type] = cursor
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(cursors, f, indent=2, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            logger.warning("Failed to persist cursor for %s: %s", event_type, e)

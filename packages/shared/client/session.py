"""Customer-side tracking of "my orders".

The ordering device keeps only order ids, newest first. Everything else is fetched from the
API so the device never shows stale order state.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class OrderSessionStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def ids(self) -> list[str]:
        """Stored ids, newest first. A missing or unreadable file counts as an empty session."""

        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable order session file %s", self._path)
            return []

        if not isinstance(parsed, list):
            return []
        return [x for x in parsed if isinstance(x, str)]

    def add(self, order_id: str) -> list[str]:
        ids = self.ids()
        if order_id not in ids:
            ids.insert(0, order_id)
            self._write(ids)
        return ids

    def remove(self, order_id: str) -> list[str]:
        ids = [x for x in self.ids() if x != order_id]
        self._write(ids)
        return ids

    def clear(self) -> None:
        self._write([])

    def _write(self, ids: list[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(ids), encoding="utf-8")
        tmp.replace(self._path)

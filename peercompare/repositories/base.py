"""Key-value stores backing saved configurations, custom metrics and templates.

Values are JSON-compatible (dicts, lists, scalars).  Stores only hold data;
the services decide what to save and how to validate it on load.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """What a service needs from a persistence backend."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Process-lifetime store.  Values are copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    # ── reads ────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    # ── writes ───────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store persisted as one JSON object in a file.

    The whole file is rewritten on every write.  A missing file reads as
    empty; an unreadable or corrupt file is logged and also reads as empty,
    so a damaged store never blocks startup.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read store %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store %s does not hold a JSON object; ignoring it", self.path)
            return {}
        return data

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    # ── reads ────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    # ── writes ───────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


def build_store(store_path: Optional[str] = None) -> KeyValueStore:
    """JSON file store when a path is configured, else in-memory."""
    if store_path:
        return JsonFileStore(store_path)
    return InMemoryStore()

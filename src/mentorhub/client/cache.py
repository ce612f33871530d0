"""Local progress mirror and known-identities list.

Storage is any MutableMapping[str, str] (a browser localStorage analogue);
JsonFileStorage persists one to disk. The progress cache is a strict
read-through mirror: it prefills the display and is overwritten by every
authoritative server result. It never originates a transition.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

LAST_USER_KEY = "mh_last_user"
KNOWN_USERS_KEY = "mh_known_users"


class JsonFileStorage(MutableMapping[str, str]):
    """String key/value store persisted as one JSON object. Writes through on every change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, str] = {}
        if self.path.exists():
            try:
                loaded = json.loads(self.path.read_text())
            except (OSError, json.JSONDecodeError):
                logger.warning("Ignoring unreadable storage file %s", self.path)
            else:
                if isinstance(loaded, dict):
                    self._data = {str(k): str(v) for k, v in loaded.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data))

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


def _load_json(storage: MutableMapping[str, str], key: str, default: object) -> object:
    raw = storage.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding corrupt cache entry %s", key)
        return default


@dataclass
class CachedProgress:
    unlocked: set[int] = field(default_factory=set)
    attempted: set[int] = field(default_factory=set)
    deadlines: dict[int, int] = field(default_factory=dict)  # problem id -> unlock deadline (ms)


class LocalProgressCache:
    """Per-identity mirror of unlocked/attempted problem ids and unlock deadlines."""

    def __init__(self, storage: MutableMapping[str, str], identity: int | str) -> None:
        self.storage = storage
        self.identity = str(identity)

    @property
    def unlocked_key(self) -> str:
        return f"mh_unlocked_{self.identity}"

    @property
    def attempted_key(self) -> str:
        return f"mh_attempted_{self.identity}"

    @property
    def deadlines_key(self) -> str:
        return f"mh_deadlines_{self.identity}"

    def prefill(self) -> CachedProgress:
        """Cached state for instant display before the server answers."""
        unlocked = _load_json(self.storage, self.unlocked_key, [])
        attempted = _load_json(self.storage, self.attempted_key, [])
        deadlines = _load_json(self.storage, self.deadlines_key, {})
        return CachedProgress(
            unlocked={int(p) for p in unlocked},
            attempted={int(p) for p in attempted},
            deadlines={int(p): int(ms) for p, ms in deadlines.items()},
        )

    def mirror(self, views: Iterable[dict]) -> CachedProgress:
        """Overwrite cached entries for these problems with the server's views.

        Problems not in views (other courses) keep their cached entries.
        """
        state = self.prefill()
        for view in views:
            pid = int(view["problem_id"])
            state.unlocked.discard(pid)
            state.attempted.discard(pid)
            state.deadlines.pop(pid, None)

            if view["status"] != "unattempted":
                state.attempted.add(pid)
            if view["unlocked"]:
                state.unlocked.add(pid)
            elif view.get("unlock_deadline") is not None:
                state.deadlines[pid] = int(view["unlock_deadline"])

        self.storage[self.unlocked_key] = json.dumps(sorted(state.unlocked))
        self.storage[self.attempted_key] = json.dumps(sorted(state.attempted))
        self.storage[self.deadlines_key] = json.dumps({str(p): ms for p, ms in sorted(state.deadlines.items())})
        return state

    def clear(self) -> None:
        for key in (self.unlocked_key, self.attempted_key, self.deadlines_key):
            self.storage.pop(key, None)


class KnownUsers:
    """Bounded, most-recent-first list of identities used on this device."""

    def __init__(self, storage: MutableMapping[str, str], limit: int = 5) -> None:
        self.storage = storage
        self.limit = limit

    def entries(self) -> list[dict]:
        entries = _load_json(self.storage, KNOWN_USERS_KEY, [])
        return [e for e in entries if isinstance(e, dict) and "identity" in e]

    def _save(self, entries: list[dict]) -> None:
        self.storage[KNOWN_USERS_KEY] = json.dumps(entries[: self.limit])

    def remember(self, identity: int | str, label: str) -> list[dict]:
        """Move (or add) an identity to the front, evicting the oldest beyond the limit."""
        identity = str(identity)
        entries = [e for e in self.entries() if e["identity"] != identity]
        entries.insert(0, {"identity": identity, "label": label})
        self._save(entries)
        return self.entries()

    def forget(self, identity: int | str) -> list[dict]:
        identity = str(identity)
        self._save([e for e in self.entries() if e["identity"] != identity])
        if self.storage.get(LAST_USER_KEY) == identity:
            del self.storage[LAST_USER_KEY]
        return self.entries()

    def clear(self) -> None:
        self.storage.pop(KNOWN_USERS_KEY, None)
        self.storage.pop(LAST_USER_KEY, None)

    def switch(self, identity: int | str) -> dict:
        """Make a known identity the last-used one. Raises KeyError if unknown."""
        identity = str(identity)
        for entry in self.entries():
            if entry["identity"] == identity:
                self.remember(identity, entry["label"])
                self.storage[LAST_USER_KEY] = identity
                return entry
        raise KeyError(identity)

    def last_user(self) -> str | None:
        return self.storage.get(LAST_USER_KEY)

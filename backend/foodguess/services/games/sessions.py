"""Durable per-player memory of what content has already been shown.

The record is stored as a versioned JSON envelope::

    {"version": 1, "session": {"usedDishIds": [...], ...}}

Loading never raises. Each field is parsed on its own, so one damaged or
missing field falls back to its default without discarding the others, and
fields this version does not know about are ignored.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set, TypeVar

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
RECENT_DISHES_LIMIT = 18

T = TypeVar('T')


@dataclass
class SessionRecord:
    used_dish_ids: Set[int] = field(default_factory=set)
    used_images_by_dish: Dict[int, List[int]] = field(default_factory=dict)
    recent_dish_ids: List[int] = field(default_factory=list)
    last_completed_game_dish_ids: List[int] = field(default_factory=list)
    last_played_at: float = 0.0
    games_completed: int = 0

    def to_dict(self):
        return {
            'usedDishIds': sorted(self.used_dish_ids),
            'usedImagesByDish': {str(k): list(v) for k, v in self.used_images_by_dish.items()},
            'recentDishIds': list(self.recent_dish_ids),
            'lastCompletedGameDishIds': list(self.last_completed_game_dish_ids),
            'lastPlayedAt': self.last_played_at,
            'gamesCompleted': self.games_completed,
        }

    @classmethod
    def from_dict(cls, data) -> 'SessionRecord':
        record = cls()
        if not isinstance(data, dict):
            return record
        record.used_dish_ids = set(_int_list(data.get('usedDishIds'), 'usedDishIds'))
        record.used_images_by_dish = _image_history(data.get('usedImagesByDish'))
        record.recent_dish_ids = _int_list(data.get('recentDishIds'), 'recentDishIds')
        record.last_completed_game_dish_ids = _int_list(
            data.get('lastCompletedGameDishIds'), 'lastCompletedGameDishIds'
        )
        record.last_played_at = _number(data.get('lastPlayedAt'), 0.0)
        record.games_completed = int(_number(data.get('gamesCompleted'), 0))
        return record

    def stats(self):
        return {
            'gamesCompleted': self.games_completed,
            'dishesUsed': len(self.used_dish_ids),
            'lastPlayedAt': self.last_played_at or None,
            'recentDishIds': list(self.recent_dish_ids),
        }


def encode_record(record: SessionRecord) -> str:
    return json.dumps({'version': SCHEMA_VERSION, 'session': record.to_dict()})


def decode_record(raw: Optional[str]) -> SessionRecord:
    """Parse a stored envelope, falling back to defaults on any damage."""
    if not raw:
        return SessionRecord()
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning(f"[session-corrupt] unreadable payload: {exc}")
        return SessionRecord()
    if not isinstance(payload, dict):
        logger.warning("[session-corrupt] payload is not an object")
        return SessionRecord()
    version = payload.get('version')
    if version is not None and version != SCHEMA_VERSION:
        logger.info(f"[session-version] stored={version} current={SCHEMA_VERSION}")
    # Records written before the envelope existed are the bare session object
    body = payload.get('session', payload)
    return SessionRecord.from_dict(body)


def _int_list(value, name: str) -> List[int]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        logger.warning(f"[session-corrupt] field={name} expected list")
        return []
    out = []
    for item in value:
        if isinstance(item, bool):
            continue
        try:
            out.append(int(item))
        except (TypeError, ValueError):
            logger.warning(f"[session-corrupt] field={name} dropped={item!r}")
    return out


def _image_history(value) -> Dict[int, List[int]]:
    if not isinstance(value, dict):
        if value is not None:
            logger.warning("[session-corrupt] field=usedImagesByDish expected object")
        return {}
    history = {}
    for key, indices in value.items():
        try:
            dish_id = int(key)
        except (TypeError, ValueError):
            continue
        cleaned = [i for i in _int_list(indices, 'usedImagesByDish') if i >= 0]
        if cleaned:
            history[dish_id] = cleaned
    return history


def _number(value, default):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def add_recent_games(record: SessionRecord, dish_ids: Iterable[int],
                     limit: int = RECENT_DISHES_LIMIT) -> None:
    """Append a finished game's dishes to the bounded recent queue."""
    played = [int(d) for d in dish_ids]
    recent = record.recent_dish_ids + played
    if len(recent) > limit:
        recent = recent[-limit:]
    record.recent_dish_ids = recent
    record.last_completed_game_dish_ids = played
    record.games_completed += 1


class SessionStore(Protocol):
    def load(self) -> SessionRecord:
        """Return the stored record, or defaults when absent or unreadable."""

    def save(self, record: SessionRecord) -> None:
        """Durably write the record."""

    def update(self, mutator: Callable[[SessionRecord], T]) -> T:
        """Load, mutate and save as one step; return the mutator's result."""

    def record_game_completion(self, dish_ids: List[int]) -> SessionRecord:
        """Push a finished game's dishes into the recent history."""


class BaseSessionStore:
    """load/save are left to subclasses; everything else is built on them."""

    recent_limit = RECENT_DISHES_LIMIT

    def __init__(self, recent_limit: Optional[int] = None):
        if recent_limit is not None:
            self.recent_limit = recent_limit
        self._lock = threading.RLock()

    def load(self) -> SessionRecord:
        raise NotImplementedError

    def save(self, record: SessionRecord) -> None:
        raise NotImplementedError

    def update(self, mutator: Callable[[SessionRecord], T]) -> T:
        with self._lock:
            record = self.load()
            result = mutator(record)
            self.save(record)
            return result

    def record_game_completion(self, dish_ids: List[int]) -> SessionRecord:
        def _apply(record: SessionRecord) -> SessionRecord:
            add_recent_games(record, dish_ids, self.recent_limit)
            return record

        return self.update(_apply)

    def reset_used_dishes(self) -> None:
        def _apply(record: SessionRecord) -> None:
            record.used_dish_ids.clear()

        self.update(_apply)

    def reset(self) -> None:
        with self._lock:
            self.save(SessionRecord(last_played_at=time.time()))


class InMemorySessionStore(BaseSessionStore):
    """Keeps the encoded envelope in memory, the same bytes the database would hold."""

    def __init__(self, payload: Optional[str] = None, recent_limit: Optional[int] = None):
        super().__init__(recent_limit)
        self.payload = payload
        self.writes = 0

    def load(self) -> SessionRecord:
        return decode_record(self.payload)

    def save(self, record: SessionRecord) -> None:
        self.payload = encode_record(record)
        self.writes += 1


class SqlSessionStore(BaseSessionStore):
    """Stores the envelope in the ``player_session`` row for one player key."""

    def __init__(self, player_key: str, recent_limit: Optional[int] = None):
        super().__init__(recent_limit)
        self.player_key = player_key

    def _row(self):
        from foodguess.models import PlayerSession

        return PlayerSession.query.filter_by(player_key=self.player_key).first()

    def exists(self) -> bool:
        return self._row() is not None

    def load(self) -> SessionRecord:
        row = self._row()
        return decode_record(row.payload if row else None)

    def save(self, record: SessionRecord) -> None:
        from foodguess import db
        from foodguess.models import PlayerSession

        row = self._row()
        if row is None:
            row = PlayerSession(player_key=self.player_key)
        row.payload = encode_record(record)
        row.schema_version = SCHEMA_VERSION
        try:
            db.session.add(row)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

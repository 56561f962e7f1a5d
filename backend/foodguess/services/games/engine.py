"""Single-player round lifecycle.

Phases run ``playing -> result_showing -> result_countdown -> playing`` until
the round limit is reached, at which point the game settles in
``final_score``. ``transitioning`` is occupied while the next round is being
prepared (content selection, session write, timer start) and rejects any
second "start next round" trigger. ``no_content`` is the failure state used
when the catalog cannot supply a dish.

Every timed phase runs on the shared ``TimerController``, so pausing and
resuming work the same way whichever phase is active. All actions return
``True`` when they changed the game and ``False`` when they were ignored
because the game was not in a phase that accepts them.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from .catalog import DishCard, DishCatalog
from .scoring import (
    accuracy_level,
    is_within_country,
    max_game_score,
    round_distance_km,
    score_for_distance,
    score_remark,
)
from .selection import ContentSelector, NoContentAvailable
from .sessions import RECENT_DISHES_LIMIT, SessionStore
from .timers import TimerController, TimerHandle

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, object]], None]


class Phase(str, Enum):
    IDLE = 'idle'
    TRANSITIONING = 'transitioning'
    PLAYING = 'playing'
    RESULT_SHOWING = 'result_showing'
    RESULT_COUNTDOWN = 'result_countdown'
    FINAL_SCORE = 'final_score'
    NO_CONTENT = 'no_content'


TIMED_PHASES = (Phase.PLAYING, Phase.RESULT_SHOWING, Phase.RESULT_COUNTDOWN)


@dataclass(frozen=True)
class GameRules:
    round_limit: int = 6
    guess_duration_sec: int = 60
    result_dwell_sec: int = 5
    countdown_from: int = 3
    max_recent_repeats: int = 2
    recent_dishes_limit: int = RECENT_DISHES_LIMIT

    @classmethod
    def from_config(cls, config) -> 'GameRules':
        defaults = cls()
        return cls(
            round_limit=int(config.get('ROUND_LIMIT', defaults.round_limit)),
            guess_duration_sec=int(config.get('GUESS_DURATION_SEC', defaults.guess_duration_sec)),
            result_dwell_sec=int(config.get('RESULT_DWELL_SEC', defaults.result_dwell_sec)),
            countdown_from=int(config.get('COUNTDOWN_FROM', defaults.countdown_from)),
            max_recent_repeats=int(config.get('MAX_RECENT_REPEATS', defaults.max_recent_repeats)),
            recent_dishes_limit=int(config.get('RECENT_DISHES_LIMIT', defaults.recent_dishes_limit)),
        )

    @property
    def max_score(self) -> int:
        return max_game_score(self.round_limit)


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float

    def to_dict(self):
        return {'lat': self.lat, 'lng': self.lng}


@dataclass
class Round:
    number: int
    dish: DishCard
    image_index: int
    time_left_sec: int
    guess: Optional[Position] = None
    distance_km: Optional[int] = None
    recent_repeat: bool = False

    @property
    def shown_image(self) -> str:
        return self.dish.images[self.image_index]

    @property
    def correct_position(self) -> Position:
        return Position(self.dish.latitude, self.dish.longitude)

    @property
    def score(self) -> int:
        # no distance means no guess was submitted, which is worth nothing
        if self.distance_km is None:
            return 0
        return score_for_distance(self.distance_km)

    def to_dict(self, reveal: bool = False):
        data = {
            'number': self.number,
            'dish': self.dish.public_dict(),
            'image': self.shown_image,
            'image_index': self.image_index,
            'time_left': self.time_left_sec,
            'guess': self.guess.to_dict() if self.guess else None,
        }
        if reveal:
            data.update({
                'dish': self.dish.to_dict(),
                'correct_position': self.correct_position.to_dict(),
                'distance_km': self.distance_km,
                'score': self.score,
                'accuracy': accuracy_level(self.distance_km),
            })
        return data


@dataclass
class GameSummary:
    started_at: datetime
    total_score: int = 0
    total_distance_km: int = 0
    rounds_played: int = 0
    dish_ids_played: List[int] = field(default_factory=list)
    round_history: List[Dict[str, object]] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def add_round(self, rnd: Round) -> None:
        if self.finished:
            raise RuntimeError('game summary is closed')
        self.total_score += rnd.score
        self.total_distance_km += rnd.distance_km or 0
        self.rounds_played += 1
        self.round_history.append({
            'round': rnd.number,
            'dish_id': rnd.dish.id,
            'dish_name': rnd.dish.name,
            'image_index': rnd.image_index,
            'guess': rnd.guess.to_dict() if rnd.guess else None,
            'distance_km': rnd.distance_km,
            'score': rnd.score,
            'recent_repeat': rnd.recent_repeat,
        })

    def finish(self, at: datetime) -> None:
        if not self.finished:
            self.finished_at = at

    @property
    def elapsed_sec(self) -> Optional[int]:
        if not self.finished_at:
            return None
        return int((self.finished_at - self.started_at).total_seconds())

    def to_dict(self, round_limit: int):
        return {
            'total_score': self.total_score,
            'max_score': max_game_score(round_limit),
            'total_distance_km': self.total_distance_km,
            'rounds_played': self.rounds_played,
            'dish_ids_played': list(self.dish_ids_played),
            'round_history': list(self.round_history),
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'elapsed_sec': self.elapsed_sec,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoundEngine:
    def __init__(self, catalog: DishCatalog, session_store: SessionStore,
                 timers: TimerController, rules: Optional[GameRules] = None,
                 selector: Optional[ContentSelector] = None,
                 listener: Optional[Listener] = None,
                 clock: Callable[[], datetime] = _utcnow,
                 game_id: str = ''):
        self.catalog = catalog
        self.session_store = session_store
        self.timers = timers
        self.rules = rules or GameRules()
        self.selector = selector or ContentSelector(max_recent_repeats=self.rules.max_recent_repeats)
        self.listener = listener
        self.clock = clock
        self.game_id = game_id

        self.phase = Phase.IDLE
        self.round: Optional[Round] = None
        self.summary: Optional[GameSummary] = None
        self.paused = False
        self.failure_reason: Optional[str] = None
        self.recent_repeats_used = 0
        self._timer: Optional[TimerHandle] = None
        self._paused_remaining = 0.0

    # ---- events ----

    def _emit(self, name: str, **payload) -> None:
        if self.listener is None:
            return
        try:
            self.listener(name, payload)
        except Exception:
            logger.exception(f"[event-error] game={self.game_id} event={name}")

    # ---- game lifecycle ----

    def start_game(self) -> bool:
        if self.phase not in (Phase.IDLE, Phase.NO_CONTENT):
            return False
        return self._new_game()

    def play_again(self) -> bool:
        if self.phase != Phase.FINAL_SCORE:
            return False
        return self._new_game()

    def quit(self) -> None:
        self._cancel_timer()
        self.phase = Phase.IDLE
        self.round = None
        self.summary = None
        self.paused = False
        self.failure_reason = None
        self.recent_repeats_used = 0
        logger.info(f"[game-quit] game={self.game_id}")

    def _new_game(self) -> bool:
        self._cancel_timer()
        self.summary = GameSummary(started_at=self.clock())
        self.round = None
        self.paused = False
        self.failure_reason = None
        self.recent_repeats_used = 0
        self.phase = Phase.IDLE
        return self.start_next_round()

    def start_next_round(self) -> bool:
        """Prepare and start the next round, or finish the game at the limit."""
        if self.phase in (Phase.TRANSITIONING, Phase.PLAYING, Phase.FINAL_SCORE):
            return False
        if self.summary is None:
            return False
        previous = self.phase
        self._cancel_timer()
        self.paused = False
        self.phase = Phase.TRANSITIONING

        number = self.summary.rounds_played + 1
        if number > self.rules.round_limit:
            self._finish()
            return True

        try:
            dishes = self.catalog.get_dishes()
            played = list(self.summary.dish_ids_played)
            selection = self.session_store.update(
                lambda record: self.selector.select_next_dish(
                    dishes, record,
                    exclude_ids=played,
                    recent_repeats_used=self.recent_repeats_used,
                )
            )
        except NoContentAvailable as exc:
            self.phase = Phase.NO_CONTENT
            self.failure_reason = str(exc)
            logger.warning(f"[no-content] game={self.game_id} round={number} reason={exc}")
            self._emit('game_failed', reason=self.failure_reason)
            return False
        except Exception:
            logger.warning(f"[round-start-failed] game={self.game_id} round={number}")
            if previous in (Phase.RESULT_SHOWING, Phase.RESULT_COUNTDOWN):
                # run the countdown again so the next attempt happens on its own
                self._start_countdown()
            else:
                self.phase = previous
            raise

        if selection.recent_repeat:
            self.recent_repeats_used += 1
        self.summary.dish_ids_played.append(selection.dish.id)
        self.round = Round(
            number=number,
            dish=selection.dish,
            image_index=selection.image_index,
            time_left_sec=self.rules.guess_duration_sec,
            recent_repeat=selection.recent_repeat,
        )
        self.phase = Phase.PLAYING
        self._timer = self.timers.schedule(
            self.rules.guess_duration_sec,
            on_tick=self._on_guess_tick,
            on_complete=self._on_guess_expired,
            label='guess',
        )
        logger.info(
            f"[round-start] game={self.game_id} round={number} dish={selection.dish.id} "
            f"image={selection.image_index} recent={selection.recent_repeat}"
        )
        self._emit(
            'round_started',
            round=number,
            dish=selection.dish.public_dict(),
            image=selection.image,
            time_left=self.round.time_left_sec,
        )
        return True

    # ---- playing ----

    def register_guess(self, lat: float, lng: float) -> bool:
        if self.phase != Phase.PLAYING or self.paused:
            return False
        self.round.guess = Position(float(lat), float(lng))
        self._emit('guess_registered', position=self.round.guess.to_dict())
        return True

    def submit_guess(self, lat: Optional[float] = None, lng: Optional[float] = None) -> bool:
        """Close the round with the current guess, if any.

        Coordinates given here replace the registered guess first.
        """
        if self.phase != Phase.PLAYING or self.paused:
            return False
        if lat is not None and lng is not None:
            self.register_guess(lat, lng)
        self._close_round()
        return True

    def _on_guess_tick(self, remaining: int) -> None:
        if self.phase != Phase.PLAYING:
            return
        self.round.time_left_sec = remaining
        self._emit('tick', time_left=remaining)

    def _on_guess_expired(self) -> None:
        if self.phase == Phase.PLAYING:
            logger.info(f"[timer-expired] game={self.game_id} round={self.round.number}")
            self._close_round()

    def _close_round(self) -> None:
        self._cancel_timer()
        rnd = self.round
        if rnd.guess is not None:
            rnd.distance_km = round_distance_km(
                rnd.guess.lat, rnd.guess.lng, rnd.dish.latitude, rnd.dish.longitude
            )
        self.summary.add_round(rnd)
        self.phase = Phase.RESULT_SHOWING
        logger.info(
            f"[round-scored] game={self.game_id} round={rnd.number} "
            f"distance={rnd.distance_km} score={rnd.score} total={self.summary.total_score}"
        )
        self._emit(
            'round_scored',
            round=rnd.number,
            distance_km=rnd.distance_km,
            score=rnd.score,
            correct_position=rnd.correct_position.to_dict(),
            guess=rnd.guess.to_dict() if rnd.guess else None,
            accuracy=accuracy_level(rnd.distance_km),
            within_country=is_within_country(rnd.distance_km),
            dish=rnd.dish.to_dict(),
            total_score=self.summary.total_score,
        )
        self._timer = self.timers.schedule(
            self.rules.result_dwell_sec,
            on_complete=self._on_dwell_complete,
            label='result',
        )

    # ---- results ----

    @property
    def is_last_round(self) -> bool:
        return self.summary is not None and self.summary.rounds_played >= self.rules.round_limit

    def _on_dwell_complete(self) -> None:
        if self.phase != Phase.RESULT_SHOWING:
            return
        self._timer = None
        if self.is_last_round:
            self._finish()
            return
        self._start_countdown()

    def _start_countdown(self) -> None:
        self.phase = Phase.RESULT_COUNTDOWN
        self._emit('countdown_tick', n=self.rules.countdown_from)
        self._timer = self.timers.schedule(
            self.rules.countdown_from,
            on_tick=self._on_countdown_tick,
            on_complete=self._on_countdown_complete,
            label='countdown',
        )

    def _on_countdown_tick(self, n: int) -> None:
        if self.phase == Phase.RESULT_COUNTDOWN:
            self._emit('countdown_tick', n=n)

    def _on_countdown_complete(self) -> None:
        if self.phase == Phase.RESULT_COUNTDOWN:
            self._timer = None
            self.start_next_round()

    def skip(self) -> bool:
        """Cut the result dwell or countdown short and move on."""
        if self.phase not in (Phase.RESULT_SHOWING, Phase.RESULT_COUNTDOWN):
            return False
        self._cancel_timer()
        if self.paused:
            self.paused = False
            self._emit('resumed', time_left=0)
        if self.is_last_round:
            self._finish()
        else:
            self.start_next_round()
        return True

    def _finish(self) -> None:
        self._cancel_timer()
        self.phase = Phase.TRANSITIONING
        self.summary.finish(self.clock())
        try:
            self.session_store.record_game_completion(list(self.summary.dish_ids_played))
        except Exception:
            logger.exception(f"[session-write-failed] game={self.game_id}")
        self.phase = Phase.FINAL_SCORE
        logger.info(
            f"[game-finished] game={self.game_id} score={self.summary.total_score} "
            f"rounds={self.summary.rounds_played}"
        )
        self._emit(
            'game_finished',
            summary=self.summary.to_dict(self.rules.round_limit),
            remark=score_remark(self.summary.total_score),
        )

    # ---- pause ----

    def pause(self) -> bool:
        if self.paused or self.phase not in TIMED_PHASES or self._timer is None:
            return False
        self._paused_remaining = self.timers.pause(self._timer)
        self.paused = True
        self._emit('paused', phase=self.phase.value, time_left=self.time_left)
        return True

    def resume(self) -> bool:
        if not self.paused:
            return False
        self._timer = self.timers.resume(self._timer, self._paused_remaining)
        self.paused = False
        self._emit('resumed', phase=self.phase.value, time_left=self.time_left)
        return True

    # ---- helpers ----

    @property
    def time_left(self) -> int:
        """Whole seconds left on the active phase timer."""
        if self._timer is None:
            return 0
        if self.paused:
            return int(math.ceil(self._paused_remaining))
        if self.phase == Phase.PLAYING and self.round is not None:
            return self.round.time_left_sec
        elapsed = self.timers.scheduler.now() - self._timer.armed_at
        return int(math.ceil(max(0.0, self._timer.remaining - elapsed)))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self.timers.cancel(self._timer)
            self._timer = None

    def to_dict(self):
        reveal = self.phase not in (Phase.PLAYING, Phase.TRANSITIONING)
        return {
            'game_id': self.game_id,
            'phase': self.phase.value,
            'paused': self.paused,
            'time_left': self.time_left,
            'round_limit': self.rules.round_limit,
            'max_score': self.rules.max_score,
            'round': self.round.to_dict(reveal=reveal) if self.round else None,
            'summary': self.summary.to_dict(self.rules.round_limit) if self.summary else None,
            'failure_reason': self.failure_reason,
        }

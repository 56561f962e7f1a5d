import random
import string
from dataclasses import dataclass
from typing import Dict, Optional

from flask import current_app

from .catalog import SqlDishCatalog
from .engine import GameRules, Phase, RoundEngine
from .selection import ContentSelector
from .sessions import SqlSessionStore
from .timers import BackgroundTaskScheduler, ManualScheduler, TimerController

EXTENSION_KEY = 'foodguess_games'


def generate_game_code(taken, length=6):
    """Generate a short game code not already in ``taken``."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


@dataclass
class LiveGame:
    code: str
    player_key: str
    engine: RoundEngine
    expiry_token: Optional[int] = None


class GameRegistry:
    """Live games of this process, keyed by game code.

    ``lock`` is the scheduler's lock: request handlers hold it while they
    touch an engine, and timer callbacks run under it, so the two never
    interleave.

    A game nobody has touched for ``IDLE_TIMEOUT_SEC`` is dropped, and a
    finished game is dropped once ``FINAL_SCREEN_DURATION_SEC`` has passed
    without a "play again".
    """

    def __init__(self, app, socketio, scheduler):
        self.app = app
        self.socketio = socketio
        self.scheduler = scheduler
        self.lock = scheduler.lock
        self.timers = TimerController(scheduler)
        self.rules = GameRules.from_config(app.config)
        self.idle_timeout_sec = int(app.config.get('IDLE_TIMEOUT_SEC', 120))
        self.final_hold_sec = int(app.config.get('FINAL_SCREEN_DURATION_SEC', 20))
        self._games: Dict[str, LiveGame] = {}

    def create_game(self, player_key: str) -> LiveGame:
        with self.lock:
            code = generate_game_code(self._games)
            store = SqlSessionStore(player_key, recent_limit=self.rules.recent_dishes_limit)
            engine = RoundEngine(
                catalog=SqlDishCatalog(),
                session_store=store,
                timers=self.timers,
                rules=self.rules,
                selector=ContentSelector(max_recent_repeats=self.rules.max_recent_repeats),
                game_id=code,
            )
            live = LiveGame(code=code, player_key=player_key, engine=engine)
            engine.listener = self._make_listener(live)
            self._games[code] = live
            self.app.logger.info(f"[game-create] game={code} player={player_key}")
            self._arm_expiry(live, self.idle_timeout_sec)
            engine.start_game()
            return live

    def get(self, code: str) -> Optional[LiveGame]:
        return self._games.get((code or '').upper())

    def remove(self, code: str) -> Optional[LiveGame]:
        with self.lock:
            live = self._games.pop((code or '').upper(), None)
            if live:
                self.scheduler.cancel(live.expiry_token)
                live.expiry_token = None
                live.engine.quit()
                self.app.logger.info(f"[game-remove] game={live.code}")
            return live

    def __len__(self):
        return len(self._games)

    def touch(self, live: LiveGame) -> None:
        """Record player activity; pushes the game's expiry back."""
        with self.lock:
            if self._games.get(live.code) is not live:
                return
            if live.engine.phase == Phase.FINAL_SCORE:
                self._arm_expiry(live, self.final_hold_sec)
            else:
                self._arm_expiry(live, self.idle_timeout_sec)

    def _arm_expiry(self, live: LiveGame, delay: float) -> None:
        self.scheduler.cancel(live.expiry_token)
        live.expiry_token = self.scheduler.call_later(delay, lambda: self._expire(live))

    def _expire(self, live: LiveGame) -> None:
        if self._games.get(live.code) is not live:
            return
        reason = 'finished' if live.engine.phase == Phase.FINAL_SCORE else 'idle'
        self.app.logger.info(f"[game-expire] game={live.code} reason={reason}")
        self.remove(live.code)
        self.socketio.emit(
            'game_ended',
            {'game_code': live.code, 'reason': reason},
            to=f"game:{live.code}",
            namespace='/ws',
        )

    def _make_listener(self, live: LiveGame):
        room = f"game:{live.code}"

        def _listener(name, payload):
            if name == 'game_finished':
                self._persist_result(live, payload['summary'])
                self._arm_expiry(live, self.final_hold_sec)
            self.socketio.emit(name, dict(payload, game_code=live.code), to=room, namespace='/ws')
            self.socketio.emit(
                'state_update',
                {'game_code': live.code, 'state': live.engine.to_dict()},
                to=room,
                namespace='/ws',
            )

        return _listener

    def _persist_result(self, live: LiveGame, summary) -> None:
        from foodguess import db
        from foodguess.models import GameRecord

        try:
            db.session.add(GameRecord.from_summary(live.code, live.player_key, summary))
            db.session.commit()
        except Exception:
            db.session.rollback()
            self.app.logger.exception(f"[game-record-failed] game={live.code}")


def build_registry(app, socketio) -> GameRegistry:
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        scheduler = ManualScheduler()
    else:
        scheduler = BackgroundTaskScheduler(app, socketio)
    registry = GameRegistry(app, socketio, scheduler)
    app.extensions[EXTENSION_KEY] = registry
    return registry


def get_registry() -> GameRegistry:
    return current_app.extensions[EXTENSION_KEY]

"""Round engine, scoring, timers and content selection for the dish game.

Nothing here touches HTTP or Socket.IO. The SQL-backed catalog and session
store import the models lazily; ``registry`` is the one module that wires
engines to the Flask app and the ``/ws`` rooms.
"""

from .catalog import DishCard, InMemoryDishCatalog, SqlDishCatalog
from .engine import GameRules, GameSummary, Phase, Position, Round, RoundEngine
from .scoring import great_circle_km, score_for_distance
from .selection import ContentSelector, NoContentAvailable, Selection, least_used_image
from .sessions import InMemorySessionStore, SessionRecord, SqlSessionStore
from .timers import BackgroundTaskScheduler, ManualScheduler, TimerController, TimerHandle

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from foodguess.main import main
    flask_app.register_blueprint(main)

    from foodguess.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from foodguess.api.dishes import dishes
    flask_app.register_blueprint(dishes, url_prefix='/api/dishes')

    from foodguess.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from foodguess.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Live games and their phase timers
    from foodguess.services.games.registry import build_registry
    build_registry(flask_app, socketio)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the dish catalog."""
        from foodguess.seed import seed_dishes
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            count = seed_dishes()
            print(f'Database has been reset and seeded with {count} dishes!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app

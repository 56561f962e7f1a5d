from foodguess import db
from foodguess.services.games.catalog import DishCard
import json
import time


class Dish(db.Model):
    __tablename__ = 'dish'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    country = db.Column(db.String(128), nullable=False, default='')
    city = db.Column(db.String(128), nullable=True)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)
    fact = db.Column(db.Text, nullable=True)
    difficulty_level = db.Column(db.Integer, default=1, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    images = db.relationship('DishImage', back_populates='dish', order_by='DishImage.image_order',
                             cascade='all, delete-orphan')

    @property
    def origin_label(self):
        if self.city:
            return f"{self.city}, {self.country}"
        return self.country or ''

    def to_card(self):
        return DishCard(
            id=self.id,
            name=self.name,
            latitude=self.latitude,
            longitude=self.longitude,
            images=tuple(img.url for img in self.images),
            origin_label=self.origin_label,
            description=self.description or '',
            fact=self.fact or '',
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'images': [img.url for img in self.images],
            'lat': self.latitude,
            'lng': self.longitude,
            'location': self.country or '',
            'city': self.city or '',
            'fact': self.fact or '',
            'description': self.description or '',
            'difficulty_level': self.difficulty_level,
        }


class DishImage(db.Model):
    __tablename__ = 'dish_image'
    id = db.Column(db.Integer, primary_key=True)
    dish_id = db.Column(db.Integer, db.ForeignKey('dish.id'), nullable=False, index=True)
    url = db.Column(db.String(512), nullable=False)
    image_order = db.Column(db.Integer, default=0, nullable=False)
    alt_text = db.Column(db.String(256), nullable=True)
    dish = db.relationship('Dish', back_populates='images')


class PlayerSession(db.Model):
    """Durable anti-repetition memory for one player (one row per player key)."""
    __tablename__ = 'player_session'
    id = db.Column(db.Integer, primary_key=True)
    player_key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    schema_version = db.Column(db.Integer, nullable=False, default=1)
    payload = db.Column(db.Text, nullable=True)  # JSON envelope, see services.games.sessions
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)


class GameRecord(db.Model):
    __tablename__ = 'game_record'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(8), index=True, nullable=False)
    player_key = db.Column(db.String(64), index=True, nullable=True)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    max_score = db.Column(db.Integer, nullable=False, default=0)
    total_distance_km = db.Column(db.Integer, nullable=False, default=0)
    rounds_played = db.Column(db.Integer, nullable=False, default=0)
    dish_ids = db.Column(db.Text, nullable=True)  # JSON-encoded list of dish ids
    round_history = db.Column(db.Text, nullable=True)  # JSON-encoded per-round results
    started_at = db.Column(db.String(40), nullable=True)
    finished_at = db.Column(db.String(40), nullable=True)

    @classmethod
    def from_summary(cls, game_code, player_key, summary):
        return cls(
            game_code=game_code,
            player_key=player_key,
            total_score=summary['total_score'],
            max_score=summary['max_score'],
            total_distance_km=summary['total_distance_km'],
            rounds_played=summary['rounds_played'],
            dish_ids=json.dumps(summary['dish_ids_played']),
            round_history=json.dumps(summary['round_history']),
            started_at=summary['started_at'],
            finished_at=summary['finished_at'],
        )

    def to_dict(self):
        return {
            'id': self.id,
            'game_code': self.game_code,
            'player_key': self.player_key,
            'total_score': self.total_score,
            'max_score': self.max_score,
            'total_distance_km': self.total_distance_km,
            'rounds_played': self.rounds_played,
            'dish_ids': json.loads(self.dish_ids) if self.dish_ids else [],
            'round_history': json.loads(self.round_history) if self.round_history else [],
            'started_at': self.started_at,
            'finished_at': self.finished_at,
        }

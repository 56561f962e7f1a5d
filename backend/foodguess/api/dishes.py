from flask import Blueprint, jsonify, request
from foodguess import db
from foodguess.models import Dish, GameRecord

dishes = Blueprint('dishes', __name__)


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@dishes.route('', methods=['GET'])
def list_dishes():
    """
    Returns active dishes. Supports ?country=<name>, ?difficulty=<n> and
    ?random=true&count=<n> for a random sample.
    """
    query = Dish.query.filter_by(is_active=True)

    difficulty = request.args.get('difficulty')
    if difficulty:
        try:
            query = query.filter_by(difficulty_level=int(difficulty))
        except ValueError:
            return jsonify({'error': 'difficulty must be an integer'}), 400

    if request.args.get('random') == 'true':
        count = max(1, min(_int_arg('count', 10), 100))
        rows = query.order_by(db.func.random()).limit(count).all()
    elif request.args.get('country'):
        country = request.args['country']
        rows = query.filter(db.func.lower(Dish.country) == country.lower()).order_by(Dish.name).all()
        if not rows and not Dish.query.filter(db.func.lower(Dish.country) == country.lower()).first():
            return jsonify({'error': 'Country not found'}), 404
    else:
        rows = query.order_by(Dish.name).all()

    return jsonify({'success': True, 'data': [d.to_dict() for d in rows]}), 200


@dishes.route('/stats', methods=['GET'])
def get_stats():
    total_dishes = Dish.query.filter_by(is_active=True).count()
    total_countries = db.session.query(db.func.count(db.distinct(Dish.country))).filter(Dish.is_active.is_(True)).scalar() or 0
    total_games = GameRecord.query.count()
    average = db.session.query(db.func.avg(GameRecord.total_score)).scalar()
    return jsonify({
        'totalDishes': total_dishes,
        'totalCountries': total_countries,
        'totalGames': total_games,
        'averageScore': int(round(average)) if average is not None else 0,
    }), 200

import math
from typing import Dict, Optional

MAX_ROUND_SCORE = 5000
MIN_PLACED_GUESS_SCORE = 50
SCORE_DECAY_KM = 1000.0
EARTH_RADIUS_KM = 6378.137
WITHIN_COUNTRY_KM = 500

# (upper bound in km, label), checked in order
_ACCURACY_LEVELS = (
    (50, 'excellent'),
    (200, 'very_good'),
    (500, 'good'),
    (1000, 'close'),
    (2000, 'far'),
)

_REMARKS = (
    (20000, "Absolutely incredible! You're a true master!"),
    (15000, 'Outstanding! You really know your stuff!'),
    (10000, "Excellent work! You've got serious skills!"),
    (5000, "Good job! You're getting the hang of it!"),
    (2000, 'Not bad! Keep exploring and learning!'),
    (500, "You're learning! Every guess counts!"),
)


def score_for_distance(distance_km: float) -> int:
    """Convert a guess distance into round points.

    An exact hit is worth the full 5000. Any other placed guess decays
    exponentially with distance but never drops below 50; a round with no
    guess at all is scored 0 by the engine and never reaches this function.
    """
    if distance_km <= 0:
        return MAX_ROUND_SCORE
    score = MAX_ROUND_SCORE * math.exp(-distance_km / SCORE_DECAY_KM)
    return max(MIN_PLACED_GUESS_SCORE, int(math.floor(score + 0.5)))


def great_circle_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two WGS84 points, in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


def round_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Distance used for scoring: great-circle km rounded to a whole number."""
    return int(math.floor(great_circle_km(lat1, lng1, lat2, lng2) + 0.5))


def accuracy_level(distance_km: Optional[float]) -> Optional[str]:
    if distance_km is None:
        return None
    for limit, label in _ACCURACY_LEVELS:
        if distance_km <= limit:
            return label
    return 'very_far'


def is_within_country(distance_km: Optional[float]) -> bool:
    return distance_km is not None and distance_km <= WITHIN_COUNTRY_KM


def max_game_score(rounds: int) -> int:
    return rounds * MAX_ROUND_SCORE


def score_remark(total_score: int) -> Dict[str, object]:
    """Pick the end-of-game remark tier for a total score."""
    for threshold, message in _REMARKS:
        if total_score >= threshold:
            return {'threshold': threshold, 'message': message}
    return {'threshold': 0, 'message': "Keep trying! You'll get better with practice!"}

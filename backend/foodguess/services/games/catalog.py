from dataclasses import dataclass
from typing import Iterable, List, Protocol, Tuple


@dataclass(frozen=True)
class DishCard:
    """Read-only view of a dish as the game core sees it."""

    id: int
    name: str
    latitude: float
    longitude: float
    images: Tuple[str, ...]
    origin_label: str = ''
    description: str = ''
    fact: str = ''

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0

    def public_dict(self):
        # what a player may see before the answer is revealed
        return {'id': self.id, 'name': self.name, 'image_count': len(self.images)}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'lat': self.latitude,
            'lng': self.longitude,
            'origin': self.origin_label,
            'description': self.description,
            'fact': self.fact,
            'image_count': len(self.images),
        }


class DishCatalog(Protocol):
    def get_dishes(self) -> List[DishCard]:
        """Return every dish currently offered to players."""


class InMemoryDishCatalog:
    def __init__(self, dishes: Iterable[DishCard] = ()):
        self.dishes = list(dishes)

    def get_dishes(self) -> List[DishCard]:
        return list(self.dishes)


class SqlDishCatalog:
    """Catalog backed by the ``dish`` and ``dish_image`` tables."""

    def get_dishes(self) -> List[DishCard]:
        from foodguess.models import Dish

        dishes = Dish.query.filter_by(is_active=True).order_by(Dish.name).all()
        return [dish.to_card() for dish in dishes]

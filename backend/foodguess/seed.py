from foodguess import db
from foodguess.models import Dish, DishImage

SAMPLE_DISHES = [
    {
        'name': 'Pad Thai', 'country': 'Thailand', 'city': 'Bangkok',
        'latitude': 13.7563, 'longitude': 100.5018,
        'description': 'Stir-fried rice noodles with tamarind, egg and peanuts.',
        'fact': 'Popularised in the 1930s as a national dish.',
        'images': ['pad-thai-1.jpg', 'pad-thai-2.jpg', 'pad-thai-3.jpg'],
    },
    {
        'name': 'Pierogi', 'country': 'Poland', 'city': 'Krakow',
        'latitude': 50.0647, 'longitude': 19.9450,
        'description': 'Filled dumplings, boiled and often pan-fried.',
        'fact': 'Krakow holds a pierogi festival every August.',
        'images': ['pierogi-1.jpg', 'pierogi-2.jpg'],
    },
    {
        'name': 'Feijoada', 'country': 'Brazil', 'city': 'Rio de Janeiro',
        'latitude': -22.9068, 'longitude': -43.1729,
        'description': 'Black bean stew with pork and beef.',
        'fact': 'Traditionally served on Wednesdays and Saturdays.',
        'images': ['feijoada-1.jpg', 'feijoada-2.jpg'],
    },
    {
        'name': 'Bobotie', 'country': 'South Africa', 'city': 'Cape Town',
        'latitude': -33.9249, 'longitude': 18.4241,
        'description': 'Spiced minced meat baked with an egg topping.',
        'fact': 'Its roots trace back to the Cape Malay community.',
        'images': ['bobotie-1.jpg'],
    },
    {
        'name': 'Poutine', 'country': 'Canada', 'city': 'Montreal',
        'latitude': 45.5017, 'longitude': -73.5673,
        'description': 'Fries and cheese curds topped with gravy.',
        'fact': 'Originated in rural Quebec in the 1950s.',
        'images': ['poutine-1.jpg', 'poutine-2.jpg'],
    },
    {
        'name': 'Khachapuri', 'country': 'Georgia', 'city': 'Tbilisi',
        'latitude': 41.7151, 'longitude': 44.8271,
        'description': 'Cheese-filled bread, often topped with an egg.',
        'fact': 'Each region of Georgia has its own shape of khachapuri.',
        'images': ['khachapuri-1.jpg', 'khachapuri-2.jpg', 'khachapuri-3.jpg'],
    },
    {
        'name': 'Pavlova', 'country': 'New Zealand', 'city': 'Wellington',
        'latitude': -41.2866, 'longitude': 174.7756,
        'description': 'Meringue dessert with cream and fresh fruit.',
        'fact': 'Named after the Russian ballerina Anna Pavlova.',
        'images': ['pavlova-1.jpg'],
    },
]


def seed_dishes(dishes=SAMPLE_DISHES):
    """Insert sample dishes with their ordered images. Returns the count added."""
    for entry in dishes:
        dish = Dish(
            name=entry['name'],
            country=entry['country'],
            city=entry.get('city'),
            latitude=entry['latitude'],
            longitude=entry['longitude'],
            description=entry.get('description'),
            fact=entry.get('fact'),
        )
        for order, url in enumerate(entry.get('images', [])):
            dish.images.append(DishImage(url=url, image_order=order))
        db.session.add(dish)
    db.session.commit()
    return len(dishes)

"""New York City gazetteer."""

from workflows.schemas import CityConfig, Coordinates, NamedArea

_area = NamedArea.build


CITY = CityConfig(
    slug="nyc",
    name="New York City",
    timezone="America/New_York",
    center=Coordinates(lat=40.7128, lng=-74.0060),
    areas=(
        _area("SoHo", 40.7231, -74.0030, neighbours=("Greenwich Village",)),
        _area("Greenwich Village", 40.7336, -74.0027, aliases=("west village", "the village"), neighbours=("SoHo", "Chelsea")),
        _area("East Village", 40.7265, -73.9815, aliases=("alphabet city",), neighbours=("Greenwich Village",)),
        _area("Midtown", 40.7549, -73.9840, aliases=("midtown manhattan", "times square", "hell's kitchen"), area_type="district"),
        _area("Financial District", 40.7074, -74.0113, aliases=("fidi", "wall street"), area_type="district"),
        _area("Upper West Side", 40.7870, -73.9754, aliases=("uws",)),
        _area("Upper East Side", 40.7736, -73.9566, aliases=("ues", "museum mile")),
        _area("Chelsea", 40.7465, -74.0014, aliases=("high line", "meatpacking"), neighbours=("Greenwich Village", "Midtown")),
        _area("Williamsburg", 40.7081, -73.9571, area_type="neighborhood"),
        _area("Central Park", 40.7829, -73.9654, area_type="landmark"),
    ),
    category_vocabulary={
        "restaurant": ("diner", "pizza", "deli", "food truck", "steakhouse"),
        "coffee": ("coffee shop", "cafe", "bakery", "bagel shop"),
        "shopping": ("department store", "boutique", "outlet", "flea market"),
        "entertainment": ("Broadway show", "comedy club", "museum", "concert venue"),
        "nightlife": ("bar", "cocktail lounge", "nightclub", "jazz club"),
        "fitness": ("gym", "yoga studio", "Central Park", "fitness center"),
        "grocery": ("Whole Foods", "Trader Joe's", "bodega", "supermarket"),
        "pharmacy": ("CVS", "Walgreens", "Duane Reade", "Rite Aid"),
    },
    transport_speeds_kmh={"walk": 5, "transit": 30, "driving": 15, "cycling": 20},
    filter_aliases=("new york", "ny", "nyc", "manhattan", "brooklyn", "queens", "bronx", "staten island"),
    landmarks=("MoMA", "Met", "Natural History Museum"),
    default_location="Midtown",
)

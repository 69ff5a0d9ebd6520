"""London gazetteer."""

from workflows.schemas import CityConfig, Coordinates, NamedArea

_area = NamedArea.build


CITY = CityConfig(
    slug="london",
    name="London",
    timezone="Europe/London",
    center=Coordinates(lat=51.5074, lng=-0.1278),
    areas=(
        _area("Canary Wharf", 51.5054, -0.0235, aliases=("docklands",), neighbours=("Shoreditch",), area_type="district"),
        _area("Mayfair", 51.5099, -0.1495, neighbours=("Soho", "Covent Garden", "Marylebone", "Westminster")),
        _area("Soho", 51.5136, -0.1371, neighbours=("Mayfair", "Covent Garden", "Fitzrovia")),
        _area("Covent Garden", 51.5117, -0.1240, neighbours=("Soho", "Mayfair", "Bloomsbury", "Westminster")),
        _area("Kensington", 51.5020, -0.1947, aliases=("south kensington", "south ken"), neighbours=("Chelsea", "Notting Hill")),
        _area("Chelsea", 51.4875, -0.1687, aliases=("kings road", "king's road", "sloane square"), neighbours=("Kensington",)),
        _area("Shoreditch", 51.5264, -0.0778, aliases=("old street", "brick lane"), neighbours=("Hackney", "Islington", "City of London")),
        _area("Camden", 51.5390, -0.1426, aliases=("camden town",), neighbours=("Islington", "Marylebone")),
        _area("Notting Hill", 51.5090, -0.1960, aliases=("portobello road",), neighbours=("Kensington",)),
        _area("Bloomsbury", 51.5222, -0.1250, neighbours=("Covent Garden", "Fitzrovia")),
        _area("Fitzrovia", 51.5185, -0.1365, neighbours=("Soho", "Bloomsbury", "Marylebone")),
        _area("Marylebone", 51.5203, -0.1540, neighbours=("Mayfair", "Fitzrovia", "Camden")),
        _area("Westminster", 51.4995, -0.1248, aliases=("big ben", "parliament square"), neighbours=("Mayfair", "Covent Garden")),
        _area("City of London", 51.5155, -0.0922, aliases=("square mile", "st paul's", "the city of london"), neighbours=("Shoreditch",), area_type="district"),
        _area("Islington", 51.5362, -0.1033, aliases=("angel",), neighbours=("Camden", "Shoreditch")),
        _area("Hackney", 51.5450, -0.0553, aliases=("london fields",), neighbours=("Shoreditch",), area_type="borough"),
        _area("Brixton", 51.4613, -0.1156, neighbours=("Clapham",)),
        _area("Clapham", 51.4618, -0.1384, neighbours=("Brixton",)),
        _area("South Bank", 51.5055, -0.1160, aliases=("southbank", "london eye"), neighbours=("Westminster", "Covent Garden")),
    ),
    category_vocabulary={
        "restaurant": ("pub", "gastropub", "curry house", "afternoon tea", "fish and chips"),
        "coffee": ("coffee shop", "tea room", "cafe", "patisserie"),
        "shopping": ("department store", "high street shops", "markets", "boutiques"),
        "entertainment": ("theatre", "pub", "museum", "gallery", "cinema"),
        "nightlife": ("pub", "cocktail bar", "club", "wine bar"),
        "fitness": ("gym", "swimming pool", "park", "fitness centre"),
        "grocery": ("Tesco", "Sainsbury's", "Waitrose", "M&S Food", "corner shop"),
        "pharmacy": ("Boots", "Superdrug", "pharmacy", "chemist"),
    },
    transport_speeds_kmh={"walk": 5, "transit": 25, "driving": 20, "cycling": 15},
    filter_aliases=("london", "uk", "united kingdom", "england"),
    landmarks=("British Museum", "Tower of London", "Hyde Park"),
    default_location="Central London",
)

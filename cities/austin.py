"""Austin gazetteer."""

from workflows.schemas import CityConfig, Coordinates, NamedArea

_area = NamedArea.build


CITY = CityConfig(
    slug="austin",
    name="Austin",
    timezone="America/Chicago",
    center=Coordinates(lat=30.2672, lng=-97.7431),
    areas=(
        _area("South Congress", 30.2500, -97.7494, aliases=("soco", "south congress avenue")),
        _area("East Austin", 30.2630, -97.7220, aliases=("east 6th", "east side")),
        _area("Rainey Street", 30.2590, -97.7385, aliases=("rainey",), neighbours=("Downtown",)),
        _area("Sixth Street", 30.2671, -97.7400, aliases=("6th street", "dirty sixth"), neighbours=("Downtown",)),
        _area("Zilker", 30.2669, -97.7729, aliases=("zilker park", "barton springs")),
        _area("The Domain", 30.4020, -97.7253, aliases=("domain northside",), area_type="district"),
        _area("Downtown", 30.2672, -97.7431, aliases=("4th street", "state capitol", "2nd street district"), area_type="district"),
    ),
    category_vocabulary={
        "restaurant": ("bbq joint", "tex-mex", "food truck", "taco stand"),
        "coffee": ("coffee shop", "cafe", "kolache bakery"),
        "shopping": ("boutique", "vintage store", "record store"),
        "entertainment": ("live music venue", "museum", "comedy club"),
        "nightlife": ("dive bar", "honky tonk", "cocktail bar", "brewery"),
        "fitness": ("gym", "Lady Bird Lake trail", "Barton Springs Pool"),
        "grocery": ("H-E-B", "Whole Foods", "Central Market"),
        "pharmacy": ("CVS", "Walgreens", "pharmacy"),
    },
    transport_speeds_kmh={"walk": 5, "transit": 20, "driving": 30, "cycling": 16},
    filter_aliases=("austin", "tx", "texas"),
    landmarks=("State Capitol", "Zilker Park", "6th Street"),
    default_location="Downtown",
)

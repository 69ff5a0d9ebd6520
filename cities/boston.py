"""Boston gazetteer."""

from workflows.schemas import CityConfig, Coordinates, NamedArea

_area = NamedArea.build


CITY = CityConfig(
    slug="boston",
    name="Boston",
    timezone="America/New_York",
    center=Coordinates(lat=42.3601, lng=-71.0589),
    areas=(
        _area("Back Bay", 42.3502, -71.0808, aliases=("newbury street", "copley"), neighbours=("South End", "Beacon Hill")),
        _area("North End", 42.3648, -71.0541, aliases=("little italy",), neighbours=("Downtown",)),
        _area("Beacon Hill", 42.3588, -71.0637, aliases=("boston common",), neighbours=("Back Bay", "Downtown")),
        _area("Cambridge", 42.3736, -71.1097, aliases=("harvard square", "kendall square"), area_type="district"),
        _area("South End", 42.3429, -71.0738, neighbours=("Back Bay",)),
        _area("Seaport", 42.3519, -71.0446, aliases=("seaport district", "fort point")),
        _area("Downtown", 42.3555, -71.0605, aliases=("downtown crossing", "faneuil hall", "quincy market"), area_type="district"),
        _area("Fenway", 42.3467, -71.0972, aliases=("fenway park", "kenmore")),
    ),
    category_vocabulary={
        "restaurant": ("seafood restaurant", "Irish pub", "clam chowder", "lobster roll"),
        "coffee": ("coffee shop", "cafe", "bakery", "cannoli shop"),
        "shopping": ("Quincy Market", "Faneuil Hall", "downtown crossing", "Newbury Street"),
        "entertainment": ("museum", "theater", "freedom trail", "historical site"),
        "nightlife": ("Irish pub", "craft brewery", "cocktail bar", "sports bar"),
        "fitness": ("gym", "Charles River", "Boston Common", "fitness center"),
        "grocery": ("Stop & Shop", "Whole Foods", "Star Market", "corner store"),
        "pharmacy": ("CVS", "Walgreens", "Rite Aid", "pharmacy"),
        "university": ("Harvard", "MIT", "Boston University", "academic"),
        "historical": ("Freedom Trail", "Paul Revere House", "Old North Church", "Tea Party Ships"),
    },
    transport_speeds_kmh={"walk": 4.8, "transit": 18, "driving": 15, "cycling": 14},
    filter_aliases=("boston", "ma", "massachusetts", "cambridge", "somerville", "brookline"),
    landmarks=("Freedom Trail", "Museum of Fine Arts", "Boston Common"),
    default_location="Downtown",
)

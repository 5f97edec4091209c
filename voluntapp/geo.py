import math

EARTH_RADIUS_MILES = 3959
FEET_PER_MILE = 5280


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in miles (haversine on a spherical earth).

    Inputs are not validated; NaN in, NaN out.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_distance(miles: float) -> str:
    if miles < 1:
        return f"{round_half_up(miles * FEET_PER_MILE)} ft away"
    if miles < 10:
        return f"{miles:.1f} mi away"
    return f"{round_half_up(miles)} mi away"


def has_coordinates(latitude: float | None, longitude: float | None) -> bool:
    return (
        latitude is not None
        and longitude is not None
        and math.isfinite(latitude)
        and math.isfinite(longitude)
    )

import math

EARTH_RADIUS_KM = 6371


def haversine(lat1, lon1, lat2, lon2):
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def within_radius(origin_lat, origin_lon, lat, lon, radius_km) -> tuple[bool, float | None]:
    """
    Items that were never geocoded are always in range; their distance is None.
    """
    if lat is None or lon is None:
        return True, None
    distance = haversine(origin_lat, origin_lon, lat, lon)
    return distance <= radius_km, distance

import math
from typing import Optional, Tuple

EARTH_RADIUS_M = 6371000


class GeofenceService:
    @staticmethod
    def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Great-circle distance in meters between two (lat, lon) points given in
        decimal degrees (Haversine). Missing coordinates give +inf so the
        point is never treated as inside a fence.
        """
        if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
            return float("inf")

        lat1, lon1, lat2, lon2 = map(float, [lat1, lon1, lat2, lon2])

        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlambda = math.radians(lon2 - lon1)

        a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return EARTH_RADIUS_M * c

    @staticmethod
    def check_geofence(user_lat, user_lon, site_lat, site_lon, radius_m) -> Tuple[bool, float]:
        """Returns (is_inside, distance_m); the boundary itself counts as inside."""
        dist = GeofenceService.calculate_distance(user_lat, user_lon, site_lat, site_lon)
        return dist <= radius_m, dist

    @staticmethod
    def evaluate(location, coords: Optional[dict]) -> Optional[bool]:
        """
        Inside/outside verdict for a punch at `location`.
        None when the location has no fence in force or no coordinates were sent.
        """
        lat, lon, radius = location.geo_center() if location is not None else (None, None, None)
        if lat is None or not coords:
            return None
        if coords.get("lat") is None or coords.get("lng") is None:
            return None
        inside, _ = GeofenceService.check_geofence(coords["lat"], coords["lng"], lat, lon, radius)
        return inside

import math

from wfm_api.models.org import Location
from wfm_api.services.geofence import GeofenceService


def _loc(enabled=True, lat=40.7128, lon=-74.0060, radius=100):
    return Location(geofence_enabled=enabled, latitude=lat, longitude=lon, radius_meters=radius)


def test_distance_zero_for_same_point():
    assert GeofenceService.calculate_distance(40.7128, -74.0060, 40.7128, -74.0060) == 0


def test_distance_one_degree_latitude():
    # ~111.2 km per degree on a 6371 km sphere
    d = GeofenceService.calculate_distance(0, 0, 1, 0)
    assert math.isclose(d, 111195, rel_tol=1e-3)


def test_distance_is_symmetric():
    a = (40.7128, -74.0060)
    b = (34.0522, -118.2437)
    there = GeofenceService.calculate_distance(*a, *b)
    back = GeofenceService.calculate_distance(*b, *a)
    assert math.isclose(there, back, rel_tol=1e-12)
    assert math.isclose(there, 3935746, rel_tol=5e-3)


def test_missing_coordinate_is_infinitely_far():
    assert GeofenceService.calculate_distance(None, 0, 0, 0) == float("inf")
    inside, dist = GeofenceService.check_geofence(None, None, 0, 0, 1000)
    assert inside is False
    assert dist == float("inf")


def test_boundary_counts_as_inside():
    d = GeofenceService.calculate_distance(0, 0, 0.001, 0)
    inside, _ = GeofenceService.check_geofence(0, 0, 0.001, 0, d)
    assert inside is True


def test_evaluate(app):
    loc = _loc()
    assert GeofenceService.evaluate(loc, {"lat": 40.7128, "lng": -74.0060}) is True
    assert GeofenceService.evaluate(loc, {"lat": 40.80, "lng": -74.0060}) is False
    assert GeofenceService.evaluate(loc, None) is None
    assert GeofenceService.evaluate(_loc(enabled=False), {"lat": 0, "lng": 0}) is None
    assert GeofenceService.evaluate(_loc(radius=None), {"lat": 0, "lng": 0}) is None
    assert GeofenceService.evaluate(None, {"lat": 0, "lng": 0}) is None

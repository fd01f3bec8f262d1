import pytest

from conftest import make_candidate
from domain.models import Coordinate
from services.direction_filter import (
    CLOSEST_FALLBACK_COUNT,
    angle_difference,
    bearing_degrees,
    distance_m,
    filter_by_direction,
)

ORIGIN = Coordinate(37.7749, -122.4194)


def _at(pid, d_lat=0.0, d_lon=0.0):
    return make_candidate(pid, lat=ORIGIN.latitude + d_lat, lon=ORIGIN.longitude + d_lon)


class TestGeometry:
    def test_bearing_cardinal_points(self):
        assert bearing_degrees(ORIGIN, Coordinate(37.7759, -122.4194)) == pytest.approx(0.0, abs=0.01)
        assert bearing_degrees(ORIGIN, Coordinate(37.7749, -122.4184)) == pytest.approx(90.0, abs=0.01)
        assert bearing_degrees(ORIGIN, Coordinate(37.7739, -122.4194)) == pytest.approx(180.0, abs=0.01)
        assert bearing_degrees(ORIGIN, Coordinate(37.7749, -122.4204)) == pytest.approx(270.0, abs=0.01)

    def test_distance(self):
        # 0.001 degrees of latitude is roughly 111 m
        assert distance_m(ORIGIN, Coordinate(37.7759, -122.4194)) == pytest.approx(111.2, abs=0.5)
        assert distance_m(ORIGIN, ORIGIN) == 0.0

    @pytest.mark.parametrize(
        "a,b,expected",
        [(10, 350, 20), (350, 10, 20), (0, 180, 180), (90, 45, 45), (0, 360, 0)],
    )
    def test_angle_difference_wraps(self, a, b, expected):
        assert angle_difference(a, b) == pytest.approx(expected)


class TestFilterByDirection:
    def test_drops_candidates_outside_the_view(self):
        north = _at("north", d_lat=0.0003)
        east = _at("east", d_lon=0.0004)
        south = _at("south", d_lat=-0.0003)

        kept = filter_by_direction([east, south, north], ORIGIN, direction=0.0)

        assert kept == [north]

    def test_ranks_by_offset_and_distance(self):
        north_northeast = _at("nne", d_lat=0.0002, d_lon=0.00005)
        north = _at("north", d_lat=0.0003)

        kept = filter_by_direction([north_northeast, north], ORIGIN, direction=0.0)

        assert [c.provider_id for c in kept] == ["north", "nne"]

    def test_heading_across_north_wraps(self):
        slightly_west = _at("w", d_lat=0.0003, d_lon=-0.00005)
        kept = filter_by_direction([slightly_west], ORIGIN, direction=355.0)
        assert kept == [slightly_west]

    def test_nothing_in_view_falls_back_to_closest(self):
        far = _at("far", d_lat=-0.0009)
        near = _at("near", d_lat=-0.0002)
        mid = _at("mid", d_lat=-0.0005)

        kept = filter_by_direction([far, near, mid], ORIGIN, direction=0.0)

        assert [c.provider_id for c in kept] == ["near", "mid", "far"]

    def test_closest_fallback_is_capped(self):
        behind = [_at(f"s{i}", d_lat=-0.0001 * (i + 1)) for i in range(7)]
        kept = filter_by_direction(behind, ORIGIN, direction=0.0)
        assert len(kept) == CLOSEST_FALLBACK_COUNT
        assert [c.provider_id for c in kept] == ["s0", "s1", "s2", "s3", "s4"]

    def test_empty(self):
        assert filter_by_direction([], ORIGIN, direction=90.0) == []

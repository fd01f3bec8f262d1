"""
Camera-heading re-ranking of search candidates.

When the photo carries a compass heading, candidates lying in the direction
the camera pointed are kept and ranked by angular offset and distance.
"""
from __future__ import annotations

import logging
import math
from typing import List, Sequence

from domain.models import Candidate, Coordinate

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0
DEFAULT_TOLERANCE_DEG = 45.0
# Distances beyond this no longer change the score.
DISTANCE_SCORE_CAP_M = 100.0
DIRECTION_WEIGHT = 0.7
DISTANCE_WEIGHT = 0.3
CLOSEST_FALLBACK_COUNT = 5


def bearing_degrees(origin: Coordinate, target: Coordinate) -> float:
    """Initial great-circle bearing from origin to target, 0-360 from north."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lng = math.radians(target.longitude - origin.longitude)
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def distance_m(origin: Coordinate, target: Coordinate) -> float:
    """Haversine distance in meters."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(target.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def angle_difference(a: float, b: float) -> float:
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def filter_by_direction(
    candidates: Sequence[Candidate],
    origin: Coordinate,
    direction: float,
    tolerance: float = DEFAULT_TOLERANCE_DEG,
) -> List[Candidate]:
    """
    Keep candidates within `tolerance` degrees of the camera heading.

    Kept candidates are ordered by a combined score (70% angular offset, 30%
    distance capped at 100 m; lower is better). If nothing lies in the camera's
    direction, the five closest candidates are returned instead, nearest first.
    """
    if not candidates:
        return []

    scored = []
    for index, candidate in enumerate(candidates):
        offset = angle_difference(bearing_degrees(origin, candidate.coordinate), direction)
        distance = distance_m(origin, candidate.coordinate)
        score = offset * DIRECTION_WEIGHT + min(distance, DISTANCE_SCORE_CAP_M) * DISTANCE_WEIGHT
        logger.debug(
            "%s: offset %.1f deg, %.1f m, score %.1f", candidate.name, offset, distance, score
        )
        scored.append((score, index, offset, distance, candidate))

    in_view = sorted((s for s in scored if s[2] <= tolerance), key=lambda s: (s[0], s[1]))
    if in_view:
        logger.info("Heading %.0f deg kept %d of %d candidates", direction, len(in_view), len(candidates))
        return [s[4] for s in in_view]

    logger.info("No candidates within %.0f deg of heading; using closest places", tolerance)
    closest = sorted(scored, key=lambda s: (s[3], s[1]))[:CLOSEST_FALLBACK_COUNT]
    return [s[4] for s in closest]

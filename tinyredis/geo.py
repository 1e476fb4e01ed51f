"""Geo helpers: 52-bit geohash scores and great-circle distances."""

from __future__ import annotations

import math

from tinyredis.geohash import decode_int_with_precision, encode_int_with_precision

EARTH_RADIUS_METERS = 6372797.560856


def to_geohash(long: float, lat: float) -> int:
    """Encode a longitude/latitude pair as a 52-bit geohash score."""
    return encode_int_with_precision(lat, long, 52)


def from_geohash(score: int) -> tuple[float, float]:
    """Decode a 52-bit geohash score into (longitude, latitude)."""
    lat, long = decode_int_with_precision(score, 52)
    return long, lat


def _hsin(theta: float) -> float:
    return math.sin(theta / 2) ** 2


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in meters between two points given in degrees."""
    la1 = math.radians(lat1)
    lo1 = math.radians(lon1)
    la2 = math.radians(lat2)
    lo2 = math.radians(lon2)
    h = _hsin(la2 - la1) + math.cos(la1) * math.cos(la2) * _hsin(lo2 - lo1)
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(h))
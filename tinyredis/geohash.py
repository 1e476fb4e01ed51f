"""Encoding and decoding of string and integer geohashes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

ENC_LAT = 85.05112878
ENC_LONG = 180.0

_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE = {ch: i for i, ch in enumerate(_ALPHABET)}
_INVALID = 0xFF
_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_EXP232 = math.ldexp(1.0, 32)


class Direction(IntEnum):
    """Cardinal and intercardinal directions in latitude/longitude space."""

    NORTH = 0
    NORTH_EAST = 1
    EAST = 2
    SOUTH_EAST = 3
    SOUTH = 4
    SOUTH_WEST = 5
    WEST = 6
    NORTH_WEST = 7


@dataclass(frozen=True)
class Box:
    """A rectangle in latitude/longitude space."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def center(self) -> tuple[float, float]:
        """Return the (lat, lng) centre of the box."""
        return (self.min_lat + self.max_lat) / 2.0, (self.min_lng + self.max_lng) / 2.0

    def contains(self, lat: float, lng: float) -> bool:
        """Whether (lat, lng) lies in the box, edges and corners included."""
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def base32_decode(s: str) -> int:
    """Decode a geohash string (at most 12 characters) into an integer."""
    x = 0
    for ch in s:
        x = ((x << 5) | _DECODE.get(ch, _INVALID)) & _MASK64
    return x


def base32_encode(x: int) -> str:
    """Encode the low 60 bits of an integer as a 12 character geohash string."""
    chars = []
    for _ in range(12):
        chars.append(_ALPHABET[x & 0x1F])
        x >>= 5
    return "".join(reversed(chars))


def _check_bits(bits: int) -> None:
    if not 0 <= bits <= 64:
        raise ValueError(f"precision must be between 0 and 64 bits, got {bits}")


def encode(lat: float, lng: float) -> str:
    """Encode a point as a 12 character geohash string."""
    return encode_with_precision(lat, lng, 12)


def encode_with_precision(lat: float, lng: float, chars: int) -> str:
    """Encode a point as a geohash string of `chars` characters (max 12)."""
    if not 0 <= chars <= 12:
        raise ValueError(f"precision must be between 0 and 12 characters, got {chars}")
    inthash = encode_int_with_precision(lat, lng, 5 * chars)
    return base32_encode(inthash)[12 - chars:]


def encode_int(lat: float, lng: float) -> int:
    """Encode a point as a 64-bit integer geohash."""
    return _interleave(_encode_range(lat, ENC_LAT), _encode_range(lng, ENC_LONG))


def encode_int_with_precision(lat: float, lng: float, bits: int) -> int:
    """Encode a point as an integer geohash with `bits` bits."""
    _check_bits(bits)
    return encode_int(lat, lng) >> (64 - bits)


def _error_with_precision(bits: int) -> tuple[float, float]:
    lat_bits = bits // 2
    lng_bits = bits - lat_bits
    return math.ldexp(180.0, -lat_bits), math.ldexp(360.0, -lng_bits)


def bounding_box(hash_: str) -> Box:
    """Return the region encoded by a string geohash."""
    return bounding_box_int_with_precision(base32_decode(hash_), 5 * len(hash_))


def bounding_box_int_with_precision(hash_: int, bits: int) -> Box:
    """Return the region encoded by an integer geohash of `bits` bits."""
    _check_bits(bits)
    full_hash = (hash_ << (64 - bits)) & _MASK64
    lat_int, lng_int = _deinterleave(full_hash)
    lat = _decode_range(lat_int, ENC_LAT)
    lng = _decode_range(lng_int, ENC_LONG)
    lat_err, lng_err = _error_with_precision(bits)
    return Box(min_lat=lat, max_lat=lat + lat_err, min_lng=lng, max_lng=lng + lng_err)


def bounding_box_int(hash_: int) -> Box:
    """Return the region encoded by a 64-bit integer geohash."""
    return bounding_box_int_with_precision(hash_, 64)


def decode_center(hash_: str) -> tuple[float, float]:
    """Decode a string geohash to the centre (lat, lng) of its box."""
    return bounding_box(hash_).center()


def decode_int_with_precision(hash_: int, bits: int) -> tuple[float, float]:
    """Decode an integer geohash of `bits` bits to a (lat, lng) point."""
    return bounding_box_int_with_precision(hash_, bits).center()


def decode_int(hash_: int) -> tuple[float, float]:
    """Decode a 64-bit integer geohash to a (lat, lng) point."""
    return decode_int_with_precision(hash_, 64)


def _neighbor_points(box: Box) -> list[tuple[float, float]]:
    lat, lng = box.center()
    dlat = box.max_lat - box.min_lat
    dlng = box.max_lng - box.min_lng
    return [
        (lat + dlat, lng),
        (lat + dlat, lng + dlng),
        (lat, lng + dlng),
        (lat - dlat, lng + dlng),
        (lat - dlat, lng),
        (lat - dlat, lng - dlng),
        (lat, lng - dlng),
        (lat + dlat, lng - dlng),
    ]


def neighbors(hash_: str) -> list[str]:
    """The eight neighbouring geohash strings, in Direction order."""
    precision = len(hash_)
    return [
        encode_with_precision(lat, lng, precision)
        for lat, lng in _neighbor_points(bounding_box(hash_))
    ]


def neighbors_int(hash_: int) -> list[int]:
    """The eight neighbouring 64-bit integer geohashes, in Direction order."""
    return neighbors_int_with_precision(hash_, 64)


def neighbors_int_with_precision(hash_: int, bits: int) -> list[int]:
    """The eight neighbouring integer geohashes at the given precision."""
    box = bounding_box_int_with_precision(hash_, bits)
    return [encode_int_with_precision(lat, lng, bits) for lat, lng in _neighbor_points(box)]


def neighbor(hash_: str, direction: Direction) -> str:
    """The neighbouring geohash string in one direction."""
    return neighbors(hash_)[direction]


def neighbor_int(hash_: int, direction: Direction) -> int:
    """The neighbouring 64-bit integer geohash in one direction."""
    return neighbors_int_with_precision(hash_, 64)[direction]


def neighbor_int_with_precision(hash_: int, bits: int, direction: Direction) -> int:
    """The neighbouring integer geohash in one direction at the given precision."""
    return neighbors_int_with_precision(hash_, bits)[direction]


def _encode_range(x: float, r: float) -> int:
    p = (x + r) / (2 * r)
    return int(p * _EXP232) & _MASK32


def _decode_range(x: int, r: float) -> float:
    p = float(x) / _EXP232
    return 2 * r * p - r


def _spread(x: int) -> int:
    x &= _MASK32
    x = (x | (x << 16)) & 0x0000FFFF0000FFFF
    x = (x | (x << 8)) & 0x00FF00FF00FF00FF
    x = (x | (x << 4)) & 0x0F0F0F0F0F0F0F0F
    x = (x | (x << 2)) & 0x3333333333333333
    x = (x | (x << 1)) & 0x5555555555555555
    return x


def _interleave(x: int, y: int) -> int:
    return (_spread(x) | (_spread(y) << 1)) & _MASK64


def _squash(x: int) -> int:
    x &= 0x5555555555555555
    x = (x | (x >> 1)) & 0x3333333333333333
    x = (x | (x >> 2)) & 0x0F0F0F0F0F0F0F0F
    x = (x | (x >> 4)) & 0x00FF00FF00FF00FF
    x = (x | (x >> 8)) & 0x0000FFFF0000FFFF
    x = (x | (x >> 16)) & 0x00000000FFFFFFFF
    return x


def _deinterleave(x: int) -> tuple[int, int]:
    return _squash(x), _squash(x >> 1)
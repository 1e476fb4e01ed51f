"""In-memory storage for a single numbered database."""

from __future__ import annotations

import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, localcontext
from typing import Callable, Iterable

MSG_WRONG_TYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"
MSG_INVALID_INT = "ERR value is not an integer or out of range"
MSG_INVALID_FLOAT = "ERR value is not a valid float"
MSG_KEY_NOT_FOUND = "ERR no such key"
MSG_INVALID_STREAM_ID = "ERR Invalid stream ID specified as stream command argument"
MSG_STREAM_ID_TOO_SMALL = (
    "ERR The ID specified in XADD is equal or smaller than the target stream top item"
)

_MAX_UINT64 = (1 << 64) - 1
_MIN_INT64 = -(1 << 63)
_MAX_INT64 = (1 << 63) - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")
_UINT_RE = re.compile(r"[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[Ii]nf)"
)
_BIG_PRECISION = 39
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CommandError(Exception):
    """An error reported to a client, carrying the wire message."""

    message = "ERR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class KeyNotFoundError(CommandError):
    """The key does not exist."""

    message = MSG_KEY_NOT_FOUND


class WrongTypeError(CommandError):
    """The key holds a value of another type."""

    message = MSG_WRONG_TYPE


class IntValueError(CommandError):
    """A value is not an integer."""

    message = MSG_INVALID_INT


class FloatValueError(CommandError):
    """A value is not a float."""

    message = MSG_INVALID_FLOAT


class InvalidStreamIDError(CommandError):
    """A stream ID could not be parsed."""

    message = MSG_INVALID_STREAM_ID


class StreamIDTooSmallError(CommandError):
    """A stream ID is not larger than the last ID in the stream."""

    message = MSG_STREAM_ID_TOO_SMALL


@dataclass
class StreamEntry:
    """One stream entry: its ID and flat field/value list."""

    id: str
    values: list[str] = field(default_factory=list)


def _atoi(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    value = int(text)
    if not _MIN_INT64 <= value <= _MAX_INT64:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def format_float(value: float) -> str:
    """Format a score the way replies show it: shortest form, no exponent."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _parse_big(text: str) -> Decimal:
    if not _FLOAT_RE.fullmatch(text):
        raise FloatValueError()
    return Decimal(text)


def _format_big(value: Decimal) -> str:
    if value.is_infinite():
        return "inf"
    text = format(value, ".17f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _to_decimal(delta: object) -> Decimal:
    if isinstance(delta, Decimal):
        return delta
    try:
        return Decimal(delta)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise FloatValueError() from exc


def redis_range(length: int, start: int, end: int) -> tuple[int, int]:
    """Turn an inclusive start/end pair, negatives from the end, into slice bounds."""
    if start < 0:
        start = max(length + start, 0)
    start = min(start, length)
    if end < 0:
        end = length + end
        if end < 0:
            end = -1
    end = min(end + 1, length)
    if end < start:
        return 0, 0
    return start, end


def _parse_stream_id(entry_id: str) -> tuple[int, int]:
    head, sep, tail = entry_id.partition("-")
    parts = [head, tail] if sep else [head]
    for part in parts:
        if not _UINT_RE.fullmatch(part) or int(part) > _MAX_UINT64:
            raise InvalidStreamIDError()
    return int(head), int(tail) if sep else 0


def format_stream_id(entry_id: str) -> str:
    """Normalise a stream ID to its "<ms>-<seq>" form."""
    ms, seq = _parse_stream_id(entry_id)
    return f"{ms}-{seq}"


def stream_cmp(a: str, b: str) -> int:
    """Compare two stream IDs: -1, 0 or 1. Unparsable IDs count as 0-0."""

    def parse(entry_id: str) -> tuple[int, int]:
        try:
            return _parse_stream_id(entry_id)
        except InvalidStreamIDError:
            return 0, 0

    pa, pb = parse(a), parse(b)
    return (pa > pb) - (pa < pb)


def _last_id(entries: list[StreamEntry]) -> str:
    return entries[-1].id if entries else "0-0"


def _unix_millis(moment: datetime) -> int:
    aware = moment if moment.tzinfo is not None else moment.astimezone()
    return (aware - _EPOCH) // timedelta(milliseconds=1)


def _generate_id(entries: list[StreamEntry], now: datetime) -> str:
    ms = _unix_millis(now)
    candidate = f"{ms}-0"
    last = _last_id(entries)
    if stream_cmp(last, candidate) == -1:
        return candidate
    last_ms, last_seq = _parse_stream_id(last)
    return f"{last_ms}-{(last_seq + 1) & _MAX_UINT64}"


def _by_score(sset: dict[str, float], reverse: bool = False) -> list[tuple[str, float]]:
    return sorted(sset.items(), key=lambda item: (item[1], item[0]), reverse=reverse)


class RedisDB:
    """All keys of one database, with their types, values, TTLs and versions."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._types: dict[str, str] = {}
        self._values: dict[str, object] = {}
        self.ttl: dict[str, timedelta] = {}
        self.key_version: defaultdict[str, int] = defaultdict(int)

    def _typed(self, key: str, kind: str):
        if key not in self._types:
            raise KeyNotFoundError()
        if self._types[key] != kind:
            raise WrongTypeError()
        return self._values[key]

    def _store(self, key: str, kind: str, value: object) -> None:
        self._types[key] = kind
        self._values[key] = value

    def exists(self, key: str) -> bool:
        """Whether the key exists."""
        return key in self._types

    def type_of(self, key: str) -> str:
        """The type name of a key, or "" if it does not exist."""
        return self._types.get(key, "")

    def all_keys(self) -> list[str]:
        """All keys, sorted."""
        return sorted(self._types)

    def flush(self) -> None:
        """Remove all keys, values and TTLs."""
        self._types.clear()
        self._values.clear()
        self.ttl.clear()

    def move(self, key: str, to: RedisDB) -> bool:
        """Move a key to another database; False if absent here or present there."""
        if to.exists(key) or not self.exists(key):
            return False
        to._store(key, self._types[key], self._values[key])
        to.key_version[key] += 1
        if key in self.ttl:
            to.ttl[key] = self.ttl[key]
        self.delete(key, True)
        return True

    def rename(self, src: str, dst: str) -> None:
        """Rename a key, replacing whatever was at the destination."""
        if not self.exists(src):
            raise KeyNotFoundError()
        if src == dst:
            return
        kind, value = self._types[src], self._values[src]
        self.delete(dst, True)
        self._store(dst, kind, value)
        self.key_version[dst] += 1
        if src in self.ttl:
            self.ttl[dst] = self.ttl[src]
        self.delete(src, True)

    def delete(self, key: str, del_ttl: bool = True) -> None:
        """Remove a key, and optionally its TTL."""
        if not self.exists(key):
            return
        del self._types[key]
        del self._values[key]
        self.key_version[key] += 1
        if del_ttl:
            self.ttl.pop(key, None)

    def string_get(self, key: str) -> str:
        """The string value, or "" if missing or not a string."""
        if self.type_of(key) != "string":
            return ""
        return self._values[key]  # type: ignore[return-value]

    def string_set(self, key: str, value: str) -> None:
        """Set a string key unconditionally, keeping its TTL."""
        self.delete(key, False)
        self._store(key, "string", value)
        self.key_version[key] += 1

    def string_incr(self, key: str, delta: int) -> int:
        """Add an integer to a string key and return the new value."""
        value = 0
        if self.type_of(key) == "string":
            try:
                value = _atoi(self._values[key])  # type: ignore[arg-type]
            except ValueError as exc:
                raise IntValueError() from exc
        value += delta
        self.string_set(key, str(value))
        return value

    def string_incrfloat(self, key: str, delta: object) -> Decimal:
        """Add a float to a string key and return the new value."""
        current = Decimal(0)
        if self.type_of(key) == "string":
            current = _parse_big(self._values[key])  # type: ignore[arg-type]
        with localcontext() as ctx:
            ctx.prec = _BIG_PRECISION
            result = current + _to_decimal(delta)
        self.string_set(key, _format_big(result))
        return result

    def list_lpush(self, key: str, value: str) -> int:
        """Prepend a value to a list; returns the new length."""
        items = self._values[key] if self.type_of(key) == "list" else []
        items.insert(0, value)  # type: ignore[union-attr]
        self._store(key, "list", items)
        self.key_version[key] += 1
        return len(items)  # type: ignore[arg-type]

    def list_lpop(self, key: str) -> str:
        """Remove and return the first element of a list."""
        items = self._typed(key, "list")
        value = items.pop(0)
        if not items:
            self.delete(key, True)
        self.key_version[key] += 1
        return value

    def list_push(self, key: str, *args: str) -> int:
        """Append values to a list; returns the new length."""
        items = self._values[key] if self.type_of(key) == "list" else []
        items.extend(args)  # type: ignore[union-attr]
        self._store(key, "list", items)
        self.key_version[key] += 1
        return len(items)  # type: ignore[arg-type]

    def list_pop(self, key: str) -> str:
        """Remove and return the last element of a list."""
        items = self._typed(key, "list")
        value = items.pop()
        if not items:
            self.delete(key, True)
        else:
            self.key_version[key] += 1
        return value

    def set_set(self, key: str, members: Iterable[str]) -> None:
        """Replace a whole set."""
        self._store(key, "set", set(members))
        self.key_version[key] += 1

    def set_add(self, key: str, *args: str) -> int:
        """Add members to a set; returns how many were new."""
        members = self._values[key] if self.type_of(key) == "set" else set()
        before = len(members)  # type: ignore[arg-type]
        members.update(args)  # type: ignore[union-attr]
        self._store(key, "set", members)
        self.key_version[key] += 1
        return len(members) - before  # type: ignore[arg-type]

    def set_rem(self, key: str, *args: str) -> int:
        """Remove members from a set; returns how many were removed."""
        if self.type_of(key) != "set":
            return 0
        members: set[str] = self._values[key]  # type: ignore[assignment]
        removed = len(members & set(args))
        members.difference_update(args)
        if not members:
            self.delete(key, True)
        self.key_version[key] += 1
        return removed

    def set_members(self, key: str) -> list[str]:
        """All members of a set, sorted."""
        if self.type_of(key) != "set":
            return []
        return sorted(self._values[key])  # type: ignore[arg-type]

    def set_is_member(self, key: str, value: str) -> bool:
        """Whether the value is in the set."""
        return self.type_of(key) == "set" and value in self._values[key]  # type: ignore[operator]

    def hash_fields(self, key: str) -> list[str]:
        """All fields of a hash, sorted."""
        if self.type_of(key) != "hash":
            return []
        return sorted(self._values[key])  # type: ignore[arg-type]

    def hash_get(self, key: str, field: str) -> str:
        """A hash field's value, or "" if missing."""
        if self.type_of(key) != "hash":
            return ""
        return self._values[key].get(field, "")  # type: ignore[union-attr]

    def hash_set(self, key: str, field: str, value: str) -> bool:
        """Set a hash field; returns whether the field already existed."""
        if self.exists(key) and self.type_of(key) != "hash":
            self.delete(key, True)
        fields = self._values.get(key)
        if fields is None:
            fields = {}
            self._store(key, "hash", fields)
        existed = field in fields  # type: ignore[operator]
        fields[field] = value  # type: ignore[index]
        self.key_version[key] += 1
        return existed

    def hash_incr(self, key: str, field: str, delta: int) -> int:
        """Add an integer to a hash field and return the new value."""
        value = 0
        if self.type_of(key) == "hash" and field in self._values[key]:  # type: ignore[operator]
            try:
                value = _atoi(self._values[key][field])  # type: ignore[index]
            except ValueError as exc:
                raise IntValueError() from exc
        value += delta
        self.hash_set(key, field, str(value))
        return value

    def hash_incrfloat(self, key: str, field: str, delta: object) -> Decimal:
        """Add a float to a hash field and return the new value."""
        current = Decimal(0)
        if self.type_of(key) == "hash" and field in self._values[key]:  # type: ignore[operator]
            current = _parse_big(self._values[key][field])  # type: ignore[index]
        with localcontext() as ctx:
            ctx.prec = _BIG_PRECISION
            result = current + _to_decimal(delta)
        self.hash_set(key, field, _format_big(result))
        return result

    def hash_del(self, key: str, field: str) -> None:
        """Remove a field from a hash."""
        if self.type_of(key) != "hash":
            return
        self._values[key].pop(field, None)  # type: ignore[union-attr]
        self.key_version[key] += 1

    def _sset(self, key: str) -> dict[str, float]:
        if self.type_of(key) != "zset":
            return {}
        return self._values[key]  # type: ignore[return-value]

    def sorted_set(self, key: str) -> dict[str, float]:
        """A copy of a sorted set as a member to score mapping."""
        return dict(self._sset(key))

    def sset_set(self, key: str, sset: dict[str, float]) -> None:
        """Replace a whole sorted set."""
        self._store(key, "zset", dict(sset))
        self.key_version[key] += 1

    def sset_add(self, key: str, score: float, member: str) -> bool:
        """Set a member's score; returns whether the member is new."""
        sset = self._values[key] if self.type_of(key) == "zset" else {}
        is_new = member not in sset  # type: ignore[operator]
        sset[member] = score  # type: ignore[index]
        self._store(key, "zset", sset)
        self.key_version[key] += 1
        return is_new

    def sset_members(self, key: str) -> list[str]:
        """All members, ordered by score then member."""
        return [member for member, _ in _by_score(self._sset(key))]

    def sset_elements(self, key: str) -> list[tuple[str, float]]:
        """All (member, score) pairs, ordered by score then member."""
        return _by_score(self._sset(key))

    def sset_card(self, key: str) -> int:
        """Number of members in a sorted set."""
        return len(self._sset(key))

    def sset_rank(self, key: str, member: str, reverse: bool = False) -> int | None:
        """A member's rank by score, or None if absent."""
        ordered = [m for m, _ in _by_score(self._sset(key), reverse=reverse)]
        try:
            return ordered.index(member)
        except ValueError:
            return None

    def sset_score(self, key: str, member: str) -> float:
        """A member's score, or 0.0 if absent."""
        return self._sset(key).get(member, 0.0)

    def sset_rem(self, key: str, member: str) -> bool:
        """Remove a member; the key goes with its last member."""
        sset = self._sset(key)
        existed = sset.pop(member, None) is not None
        if not sset:
            self.delete(key, True)
        return existed

    def sset_exists(self, key: str, member: str) -> bool:
        """Whether the member is in the sorted set."""
        return member in self._sset(key)

    def sset_incrby(self, key: str, member: str, delta: float) -> float:
        """Add to a member's score and return the new score."""
        if self.type_of(key) != "zset":
            self._store(key, "zset", {})
        sset: dict[str, float] = self._values[key]  # type: ignore[assignment]
        score = sset.get(member, 0.0) + delta
        sset[member] = score
        self.key_version[key] += 1
        return score

    def _set_or_empty(self, key: str) -> set[str]:
        if not self.exists(key):
            return set()
        if self.type_of(key) != "set":
            raise WrongTypeError()
        return self._values[key]  # type: ignore[return-value]

    def set_diff(self, keys: list[str]) -> set[str]:
        """Members of the first set not in any of the others."""
        first, *rest = keys
        result = set(self._set_or_empty(first))
        for other in rest:
            result -= self._set_or_empty(other)
        return result

    def set_inter(self, keys: list[str]) -> set[str]:
        """Members present in every set."""
        first, *rest = keys
        if not self.exists(first):
            return set()
        result = set(self._set_or_empty(first))
        for other in rest:
            if not self.exists(other):
                return set()
            result &= self._set_or_empty(other)
        return result

    def set_union(self, keys: list[str]) -> set[str]:
        """Members present in any set."""
        first, *rest = keys
        result = set(self._set_or_empty(first))
        for other in rest:
            result |= self._set_or_empty(other)
        return result

    def _entries(self, key: str) -> list[StreamEntry]:
        if self.type_of(key) != "stream":
            return []
        return self._values[key]  # type: ignore[return-value]

    def stream(self, key: str) -> list[StreamEntry]:
        """The stream's entries, oldest first."""
        return list(self._entries(key))

    def stream_add(self, key: str, entry_id: str, values: Iterable[str]) -> str:
        """Append an entry; an ID of "" or "*" is generated. Returns the ID."""
        entries = self._entries(key)
        if entry_id in ("", "*"):
            entry_id = _generate_id(entries, self._now())
        entry_id = format_stream_id(entry_id)
        if entry_id == "0-0" or stream_cmp(_last_id(entries), entry_id) != -1:
            raise StreamIDTooSmallError()
        entries = [*entries, StreamEntry(entry_id, list(values))]
        self._store(key, "stream", entries)
        self.key_version[key] += 1
        return entry_id

    def stream_maxlen(self, key: str, n: int) -> None:
        """Keep only the newest n entries."""
        entries = self._entries(key)
        if self.type_of(key) == "stream" and len(entries) > n:
            self._values[key] = entries[len(entries) - n:]

    def fast_forward(self, duration: timedelta) -> None:
        """Advance time: reduce every TTL and expire what runs out."""
        for key in self.all_keys():
            if key in self.ttl:
                self.ttl[key] -= duration
                self.check_ttl(key)

    def check_ttl(self, key: str) -> None:
        """Delete the key if its TTL has run out."""
        remaining = self.ttl.get(key)
        if remaining is not None and remaining <= timedelta(0):
            self.delete(key, True)
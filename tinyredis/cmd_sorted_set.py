"""Sorted set commands: ZADD, ZCARD, ZINCRBY, ZUNIONSTORE, ZPOPMAX and friends.

Every command takes the server and its arguments (without the command name)
and returns the reply: an int, a str, None for a null reply, or a list.
Errors are raised as CommandError subclasses.
"""

from __future__ import annotations

import math
import operator
import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Sequence

from tinyredis.cmd_set import _match_keys, _parse_scan_options
from tinyredis.db import (
    CommandError,
    FloatValueError,
    IntValueError,
    RedisDB,
    WrongTypeError,
    _atoi,
    format_float,
    redis_range,
)
from tinyredis.server import Miniredis

MSG_SYNTAX_ERROR = "ERR syntax error"
MSG_INVALID_CURSOR = "ERR invalid cursor"
MSG_XX_AND_NX = "ERR XX and NX options at the same time are not compatible"
MSG_SINGLE_ELEMENT_PAIR = "ERR INCR option supports a single increment-element pair"
MSG_NEED_KEYS = "ERR at least 1 input key is needed for ZUNIONSTORE/ZINTERSTORE"
MSG_WEIGHT_NOT_FLOAT = "ERR weight value is not a float"

_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)
_ZADD_FLAGS = {"NX", "XX", "CH", "INCR"}
_AGGREGATES: dict[str, Callable[[float, float], float]] = {
    "sum": operator.add,
    "min": min,
    "max": max,
}

Command = Callable[[Miniredis, Sequence[str]], object]


def _wrong_number(cmd: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{cmd}' command")


def _parse_int(text: str, error: CommandError | None = None) -> int:
    try:
        return _atoi(text)
    except ValueError as exc:
        raise (error or IntValueError()) from exc


def _parse_float(text: str, error: CommandError) -> float:
    if not _FLOAT_RE.fullmatch(text):
        raise error
    value = float(text)
    if math.isinf(value) and "inf" not in text.lower():
        raise error
    return value


def _selected(m: Miniredis) -> RedisDB:
    return m.db(m.selected_db)


def _require_zset(db: RedisDB, key: str) -> None:
    if db.exists(key) and db.type_of(key) != "zset":
        raise WrongTypeError()


def zadd(m: Miniredis, args: Sequence[str]) -> int | str | None:
    """ZADD key [NX|XX] [CH] [INCR] score member [score member ...]."""
    if len(args) < 3:
        raise _wrong_number("zadd")
    key, *rest = args
    flags: set[str] = set()
    while rest and rest[0].upper() in _ZADD_FLAGS:
        flags.add(rest.pop(0).upper())
    if not rest or len(rest) % 2:
        raise CommandError(MSG_SYNTAX_ERROR)
    elems: dict[str, float] = {}
    for score_text, member in zip(rest[::2], rest[1::2]):
        elems[member] = _parse_float(score_text, FloatValueError())
    nx, xx, ch, incr = ("NX" in flags, "XX" in flags, "CH" in flags, "INCR" in flags)
    if nx and xx:
        raise CommandError(MSG_XX_AND_NX)
    if incr and len(elems) > 1:
        raise CommandError(MSG_SINGLE_ELEMENT_PAIR)

    with m.lock:
        db = _selected(m)
        _require_zset(db, key)
        if incr:
            ((member, delta),) = elems.items()
            exists = db.sset_exists(key, member)
            if (nx and exists) or (xx and not exists):
                return None
            return format_float(db.sset_incrby(key, member, delta))

        changed = 0
        for member, score in elems.items():
            exists = db.sset_exists(key, member)
            if (nx and exists) or (xx and not exists):
                continue
            old = db.sset_score(key, member)
            if db.sset_add(key, score, member):
                changed += 1
            elif ch and old != score:
                changed += 1
        return changed


def zcard(m: Miniredis, args: Sequence[str]) -> int:
    """ZCARD key: number of members."""
    if len(args) != 1:
        raise _wrong_number("zcard")
    key = args[0]
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        _require_zset(db, key)
        return db.sset_card(key)


def zincrby(m: Miniredis, args: Sequence[str]) -> str:
    """ZINCRBY key increment member: the new score."""
    if len(args) != 3:
        raise _wrong_number("zincrby")
    key, delta_text, member = args
    delta = _parse_float(delta_text, FloatValueError())
    with m.lock:
        db = _selected(m)
        _require_zset(db, key)
        return format_float(db.sset_incrby(key, member, delta))


@dataclass
class _StoreArgs:
    destination: str
    keys: list[str]
    weights: list[float] | None
    aggregate: str


def _parse_store_args(args: Sequence[str], name: str) -> _StoreArgs:
    if len(args) < 3:
        raise _wrong_number(name)
    destination, num_text, *rest = args
    num_keys = _parse_int(num_text)
    if len(rest) < num_keys:
        raise CommandError(MSG_SYNTAX_ERROR)
    if num_keys <= 0:
        raise CommandError(MSG_NEED_KEYS)
    keys, rest = rest[:num_keys], rest[num_keys:]
    weights: list[float] | None = None
    aggregate = "sum"
    while rest:
        option = rest[0].lower()
        if option == "weights":
            if len(rest) < num_keys + 1:
                raise CommandError(MSG_SYNTAX_ERROR)
            weights = [
                _parse_float(text, CommandError(MSG_WEIGHT_NOT_FLOAT))
                for text in rest[1 : num_keys + 1]
            ]
            rest = rest[num_keys + 1 :]
        elif option == "aggregate":
            if len(rest) < 2:
                raise CommandError(MSG_SYNTAX_ERROR)
            aggregate = rest[1].lower()
            if aggregate not in _AGGREGATES:
                raise CommandError(MSG_SYNTAX_ERROR)
            rest = rest[2:]
        else:
            raise CommandError(MSG_SYNTAX_ERROR)
    return _StoreArgs(destination, keys, weights, aggregate)


def _combine(db: RedisDB, spec: _StoreArgs) -> tuple[dict[str, float], Counter[str]]:
    merge = _AGGREGATES[spec.aggregate]
    combined: dict[str, float] = {}
    counts: Counter[str] = Counter()
    for index, key in enumerate(spec.keys):
        if not db.exists(key):
            continue
        if db.type_of(key) != "zset":
            raise WrongTypeError()
        for member, score in db.sset_elements(key):
            if spec.weights is not None:
                score *= spec.weights[index]
            counts[member] += 1
            combined[member] = merge(combined[member], score) if member in combined else score
    return combined, counts


def zinterstore(m: Miniredis, args: Sequence[str]) -> int:
    """ZINTERSTORE destination numkeys key [key ...] [WEIGHTS ...] [AGGREGATE ...]."""
    spec = _parse_store_args(args, "zinterstore")
    with m.lock:
        db = _selected(m)
        db.delete(spec.destination, True)
        combined, counts = _combine(db, spec)
        result = {
            member: score
            for member, score in combined.items()
            if counts[member] == len(spec.keys)
        }
        db.sset_set(spec.destination, result)
        return len(result)


def zunionstore(m: Miniredis, args: Sequence[str]) -> int:
    """ZUNIONSTORE destination numkeys key [key ...] [WEIGHTS ...] [AGGREGATE ...]."""
    spec = _parse_store_args(args, "zunionstore")
    with m.lock:
        db = _selected(m)
        if spec.destination not in spec.keys:
            db.delete(spec.destination, True)
        combined, _ = _combine(db, spec)
        db.sset_set(spec.destination, combined)
        return len(combined)


def _zrank(m: Miniredis, args: Sequence[str], reverse: bool, name: str) -> int | None:
    if len(args) != 2:
        raise _wrong_number(name)
    key, member = args
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return None
        _require_zset(db, key)
        return db.sset_rank(key, member, reverse)


def zrank(m: Miniredis, args: Sequence[str]) -> int | None:
    """ZRANK key member: rank by ascending score, or None."""
    return _zrank(m, args, reverse=False, name="zrank")


def zrevrank(m: Miniredis, args: Sequence[str]) -> int | None:
    """ZREVRANK key member: rank by descending score, or None."""
    return _zrank(m, args, reverse=True, name="zrevrank")


def zrem(m: Miniredis, args: Sequence[str]) -> int:
    """ZREM key member [member ...]: number of members removed."""
    if len(args) < 2:
        raise _wrong_number("zrem")
    key, *members = args
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        _require_zset(db, key)
        return sum(1 for member in members if db.sset_rem(key, member))


def zscore(m: Miniredis, args: Sequence[str]) -> str | None:
    """ZSCORE key member: the score, or None."""
    if len(args) != 2:
        raise _wrong_number("zscore")
    key, member = args
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return None
        _require_zset(db, key)
        if not db.sset_exists(key, member):
            return None
        return format_float(db.sset_score(key, member))


def zscan(m: Miniredis, args: Sequence[str]) -> list[object]:
    """ZSCAN key cursor [MATCH pattern] [COUNT n]: everything in one page."""
    if len(args) < 2:
        raise _wrong_number("zscan")
    key, cursor_text, *options = args
    cursor = _parse_int(cursor_text, CommandError(MSG_INVALID_CURSOR))
    pattern = _parse_scan_options(options)
    with m.lock:
        if cursor != 0:
            return ["0", []]
        db = _selected(m)
        _require_zset(db, key)
        members = db.sset_members(key)
        if pattern is not None:
            members = _match_keys(members, pattern)
        flat: list[str] = []
        for member in members:
            flat.extend((member, format_float(db.sset_score(key, member))))
        return ["0", flat]


def _zpop(m: Miniredis, args: Sequence[str], highest: bool, name: str) -> list[str]:
    if len(args) < 1:
        raise _wrong_number(name)
    key = args[0]
    count = _parse_int(args[1]) if len(args) > 1 else 1
    if len(args) > 2:
        raise CommandError(MSG_SYNTAX_ERROR)
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return []
        _require_zset(db, key)
        members = db.sset_members(key)
        if highest:
            members.reverse()
        rs, re_ = redis_range(len(members), 0, count - 1)
        reply: list[str] = []
        for member in members[rs:re_]:
            reply.extend((member, format_float(db.sset_score(key, member))))
            db.sset_rem(key, member)
        return reply


def zpopmax(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZPOPMAX key [count]: remove the highest scored members, with scores."""
    return _zpop(m, args, highest=True, name="zpopmax")


def zpopmin(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZPOPMIN key [count]: remove the lowest scored members, with scores."""
    return _zpop(m, args, highest=False, name="zpopmin")


def commands() -> dict[str, Command]:
    """The sorted set commands by name."""
    return {
        "ZADD": zadd,
        "ZCARD": zcard,
        "ZINCRBY": zincrby,
        "ZINTERSTORE": zinterstore,
        "ZUNIONSTORE": zunionstore,
        "ZRANK": zrank,
        "ZREVRANK": zrevrank,
        "ZREM": zrem,
        "ZSCORE": zscore,
        "ZSCAN": zscan,
        "ZPOPMAX": zpopmax,
        "ZPOPMIN": zpopmin,
    }
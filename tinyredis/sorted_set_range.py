"""Sorted set range commands: ZRANGE, ZRANGEBYLEX, ZRANGEBYSCORE and friends.

Every command takes the server and its arguments (without the command name)
and returns the reply; errors are raised as CommandError subclasses.
"""

from __future__ import annotations

import math
import re
from typing import Callable, Sequence

from tinyredis.db import (
    CommandError,
    IntValueError,
    RedisDB,
    WrongTypeError,
    _atoi,
    format_float,
    redis_range,
)
from tinyredis.server import Miniredis

MSG_SYNTAX_ERROR = "ERR syntax error"
MSG_INVALID_MIN_MAX = "ERR min or max is not a float"
MSG_INVALID_RANGE_ITEM = "ERR min or max not valid string range item"

_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

Command = Callable[[Miniredis, Sequence[str]], object]
Element = tuple[str, float]


def _wrong_number(cmd: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{cmd}' command")


def _parse_int(text: str) -> int:
    try:
        return _atoi(text)
    except ValueError as exc:
        raise IntValueError() from exc


def _selected(m: Miniredis) -> RedisDB:
    return m.db(m.selected_db)


def _zset_exists(db: RedisDB, key: str) -> bool:
    """False for a missing key; raises for a key of another type."""
    if not db.exists(key):
        return False
    if db.type_of(key) != "zset":
        raise WrongTypeError()
    return True


def parse_float_range(s: str) -> tuple[float, bool]:
    """Parse a score bound: (value, inclusive). A leading '(' makes it exclusive."""
    if not s:
        return 0.0, False
    inclusive = True
    if s.startswith("("):
        s = s[1:]
        inclusive = False
    if not _FLOAT_RE.fullmatch(s):
        raise CommandError(MSG_INVALID_MIN_MAX)
    value = float(s)
    if math.isinf(value) and "inf" not in s.lower():
        raise CommandError(MSG_INVALID_MIN_MAX)
    return value, inclusive


def parse_lexrange(s: str) -> tuple[str, bool]:
    """Parse a lex bound: '[x', '(x', '+' or '-'. Returns (value, inclusive)."""
    if not s:
        raise CommandError(MSG_INVALID_RANGE_ITEM)
    if s in ("+", "-"):
        return s, False
    if s[0] == "(":
        return s[1:], False
    if s[0] == "[":
        return s[1:], True
    raise CommandError(MSG_INVALID_RANGE_ITEM)


def with_ss_range(
    members: Sequence[Element],
    min_: float,
    min_incl: bool,
    max_: float,
    max_incl: bool,
) -> list[Element]:
    """Limit score-ordered (member, score) pairs to a score range."""

    def above_min(score: float) -> bool:
        return score >= min_ if min_incl else score > min_

    def past_max(score: float) -> bool:
        return score > max_ if max_incl else score >= max_

    start = next((i for i, (_, score) in enumerate(members) if above_min(score)), None)
    if start is None:
        return []
    rest = list(members[start:])
    stop = next((i for i, (_, score) in enumerate(rest) if past_max(score)), len(rest))
    return rest[:stop]


def with_lex_range(
    members: Sequence[str],
    min_: str,
    min_incl: bool,
    max_: str,
    max_incl: bool,
) -> list[str]:
    """Limit sorted member names to a lexicographic range."""
    if max_ == "-" or min_ == "+":
        return []
    result = list(members)
    if min_ != "-":
        start = next(
            (
                i
                for i, m in enumerate(result)
                if (m >= min_ if min_incl else m > min_)
            ),
            None,
        )
        if start is None:
            return []
        result = result[start:]
    if max_ != "+":
        stop = next(
            (
                i
                for i, m in enumerate(result)
                if (m > max_ if max_incl else m >= max_)
            ),
            len(result),
        )
        result = result[:stop]
    return result


def _apply_limit(items: list, start: int, count: int) -> list:
    """SQL-like LIMIT: skip `start`, then keep `count` (negative keeps all)."""
    if start < 0:
        return []
    items = items[start:]
    if count >= 0:
        items = items[:count]
    return items


def _parse_limit(rest: list[str]) -> tuple[int, int, list[str]]:
    if len(rest) < 2:
        raise CommandError(MSG_SYNTAX_ERROR)
    return _parse_int(rest[0]), _parse_int(rest[1]), rest[2:]


def _zrange(m: Miniredis, args: Sequence[str], reverse: bool, name: str) -> list[str]:
    if len(args) < 3:
        raise _wrong_number(name)
    key = args[0]
    start = _parse_int(args[1])
    end = _parse_int(args[2])
    if len(args) > 4:
        raise CommandError(MSG_SYNTAX_ERROR)
    with_scores = False
    if len(args) == 4:
        if args[3].lower() != "withscores":
            raise CommandError(MSG_SYNTAX_ERROR)
        with_scores = True

    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return []
        members = db.sset_members(key)
        if reverse:
            members.reverse()
        rs, re_ = redis_range(len(members), start, end)
        reply: list[str] = []
        for member in members[rs:re_]:
            reply.append(member)
            if with_scores:
                reply.append(format_float(db.sset_score(key, member)))
        return reply


def zrange(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZRANGE key start stop [WITHSCORES]: members by rank, lowest first."""
    return _zrange(m, args, reverse=False, name="zrange")


def zrevrange(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZREVRANGE key start stop [WITHSCORES]: members by rank, highest first."""
    return _zrange(m, args, reverse=True, name="zrevrange")


def _zrangebylex(m: Miniredis, args: Sequence[str], reverse: bool, name: str) -> list[str]:
    if len(args) < 3:
        raise _wrong_number(name)
    key = args[0]
    min_, min_incl = parse_lexrange(args[1])
    max_, max_incl = parse_lexrange(args[2])
    rest = list(args[3:])
    limit: tuple[int, int] | None = None
    while rest:
        if rest[0].lower() != "limit":
            raise CommandError(MSG_SYNTAX_ERROR)
        start, count, rest = _parse_limit(rest[1:])
        limit = (start, count)

    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return []
        members = sorted(db.sset_members(key))
        if reverse:
            min_, max_ = max_, min_
            min_incl, max_incl = max_incl, min_incl
        members = with_lex_range(members, min_, min_incl, max_, max_incl)
        if reverse:
            members.reverse()
        if limit is not None:
            members = _apply_limit(members, *limit)
        return members


def zrangebylex(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZRANGEBYLEX key min max [LIMIT offset count]."""
    return _zrangebylex(m, args, reverse=False, name="zrangebylex")


def zrevrangebylex(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZREVRANGEBYLEX key max min [LIMIT offset count]."""
    return _zrangebylex(m, args, reverse=True, name="zrevrangebylex")


def _zrangebyscore(m: Miniredis, args: Sequence[str], reverse: bool, name: str) -> list[str]:
    if len(args) < 3:
        raise _wrong_number(name)
    key = args[0]
    min_, min_incl = parse_float_range(args[1])
    max_, max_incl = parse_float_range(args[2])
    rest = list(args[3:])
    with_scores = False
    limit: tuple[int, int] | None = None
    while rest:
        option = rest[0].lower()
        if option == "limit":
            start, count, rest = _parse_limit(rest[1:])
            limit = (start, count)
        elif option == "withscores":
            with_scores = True
            rest = rest[1:]
        else:
            raise CommandError(MSG_SYNTAX_ERROR)

    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return []
        elements = db.sset_elements(key)
        if reverse:
            min_, max_ = max_, min_
            min_incl, max_incl = max_incl, min_incl
        elements = with_ss_range(elements, min_, min_incl, max_, max_incl)
        if reverse:
            elements.reverse()
        if limit is not None:
            elements = _apply_limit(elements, *limit)
        reply: list[str] = []
        for member, score in elements:
            reply.append(member)
            if with_scores:
                reply.append(format_float(score))
        return reply


def zrangebyscore(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZRANGEBYSCORE key min max [WITHSCORES] [LIMIT offset count]."""
    return _zrangebyscore(m, args, reverse=False, name="zrangebyscore")


def zrevrangebyscore(m: Miniredis, args: Sequence[str]) -> list[str]:
    """ZREVRANGEBYSCORE key max min [WITHSCORES] [LIMIT offset count]."""
    return _zrangebyscore(m, args, reverse=True, name="zrevrangebyscore")


def zcount(m: Miniredis, args: Sequence[str]) -> int:
    """ZCOUNT key min max: number of members in the score range."""
    if len(args) != 3:
        raise _wrong_number("zcount")
    key = args[0]
    min_, min_incl = parse_float_range(args[1])
    max_, max_incl = parse_float_range(args[2])
    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return 0
        return len(with_ss_range(db.sset_elements(key), min_, min_incl, max_, max_incl))


def zlexcount(m: Miniredis, args: Sequence[str]) -> int:
    """ZLEXCOUNT key min max: number of members in the lex range."""
    if len(args) != 3:
        raise _wrong_number("zlexcount")
    key = args[0]
    min_, min_incl = parse_lexrange(args[1])
    max_, max_incl = parse_lexrange(args[2])
    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return 0
        members = sorted(db.sset_members(key))
        return len(with_lex_range(members, min_, min_incl, max_, max_incl))


def zremrangebylex(m: Miniredis, args: Sequence[str]) -> int:
    """ZREMRANGEBYLEX key min max: number of members removed."""
    if len(args) != 3:
        raise _wrong_number("zremrangebylex")
    key = args[0]
    min_, min_incl = parse_lexrange(args[1])
    max_, max_incl = parse_lexrange(args[2])
    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return 0
        members = sorted(db.sset_members(key))
        doomed = with_lex_range(members, min_, min_incl, max_, max_incl)
        for member in doomed:
            db.sset_rem(key, member)
        return len(doomed)


def zremrangebyrank(m: Miniredis, args: Sequence[str]) -> int:
    """ZREMRANGEBYRANK key start stop: number of members removed."""
    if len(args) != 3:
        raise _wrong_number("zremrangebyrank")
    key = args[0]
    start = _parse_int(args[1])
    end = _parse_int(args[2])
    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return 0
        members = db.sset_members(key)
        rs, re_ = redis_range(len(members), start, end)
        for member in members[rs:re_]:
            db.sset_rem(key, member)
        return re_ - rs


def zremrangebyscore(m: Miniredis, args: Sequence[str]) -> int:
    """ZREMRANGEBYSCORE key min max: number of members removed."""
    if len(args) != 3:
        raise _wrong_number("zremrangebyscore")
    key = args[0]
    min_, min_incl = parse_float_range(args[1])
    max_, max_incl = parse_float_range(args[2])
    with m.lock:
        db = _selected(m)
        if not _zset_exists(db, key):
            return 0
        doomed = with_ss_range(db.sset_elements(key), min_, min_incl, max_, max_incl)
        for member, _ in doomed:
            db.sset_rem(key, member)
        return len(doomed)


def commands() -> dict[str, Command]:
    """The sorted set range commands by name."""
    return {
        "ZRANGE": zrange,
        "ZREVRANGE": zrevrange,
        "ZRANGEBYLEX": zrangebylex,
        "ZREVRANGEBYLEX": zrevrangebylex,
        "ZRANGEBYSCORE": zrangebyscore,
        "ZREVRANGEBYSCORE": zrevrangebyscore,
        "ZCOUNT": zcount,
        "ZLEXCOUNT": zlexcount,
        "ZREMRANGEBYLEX": zremrangebylex,
        "ZREMRANGEBYRANK": zremrangebyrank,
        "ZREMRANGEBYSCORE": zremrangebyscore,
    }
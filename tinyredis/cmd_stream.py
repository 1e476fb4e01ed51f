"""Stream commands: XADD, XLEN, XRANGE and XREVRANGE.

Commands take the server and their arguments (without the command name) and
return the reply; errors are raised as CommandError subclasses.
"""

from __future__ import annotations

import re
from typing import Callable, Sequence

from tinyredis.db import (
    CommandError,
    IntValueError,
    InvalidStreamIDError,
    RedisDB,
    WrongTypeError,
    _atoi,
    format_stream_id,
    stream_cmp,
)
from tinyredis.server import Miniredis

MSG_SYNTAX_ERROR = "ERR syntax error"

_MAX_UINT64 = (1 << 64) - 1
_UINT_RE = re.compile(r"[0-9]+")

Command = Callable[[Miniredis, Sequence[str]], object]


def _wrong_number(cmd: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{cmd}' command")


def _parse_int(text: str) -> int:
    try:
        return _atoi(text)
    except ValueError as exc:
        raise IntValueError() from exc


def _selected(m: Miniredis) -> RedisDB:
    return m.db(m.selected_db)


def _range_bound(text: str, lower: bool) -> str:
    """A full stream ID for a range bound; partial IDs widen to cover their ms."""
    if text == "-":
        return "0-0"
    if text == "+":
        return f"{_MAX_UINT64}-{_MAX_UINT64}"
    if "-" in text:
        return format_stream_id(text)
    if not _UINT_RE.fullmatch(text) or int(text) > _MAX_UINT64:
        raise InvalidStreamIDError()
    return f"{int(text)}-{0 if lower else _MAX_UINT64}"


def xadd(m: Miniredis, args: Sequence[str]) -> str:
    """XADD key [MAXLEN [~] n] id field value [field value ...]: the new ID."""
    if len(args) < 4:
        raise _wrong_number("xadd")
    key, *rest = args
    with m.lock:
        maxlen = -1
        if rest[0].lower() == "maxlen":
            rest = rest[1:]
            if rest and rest[0] == "~":
                rest = rest[1:]
            if not rest:
                raise _wrong_number("xadd")
            n = _parse_int(rest[0])
            if n < 0:
                raise CommandError("ERR The MAXLEN argument must be >= 0.")
            maxlen = n
            rest = rest[1:]
        if not rest:
            raise _wrong_number("xadd")
        entry_id, *values = rest
        if not values or len(values) % 2:
            raise CommandError("ERR wrong number of arguments for XADD")

        db = _selected(m)
        if db.exists(key) and db.type_of(key) != "stream":
            raise WrongTypeError()
        new_id = db.stream_add(key, entry_id, values)
        if maxlen >= 0:
            db.stream_maxlen(key, maxlen)
        return new_id


def xlen(m: Miniredis, args: Sequence[str]) -> int:
    """XLEN key: number of entries, 0 for a missing key."""
    if len(args) != 1:
        raise _wrong_number("xlen")
    key = args[0]
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        if db.type_of(key) != "stream":
            raise WrongTypeError()
        return len(db.stream(key))


def _xrange(m: Miniredis, args: Sequence[str], reverse: bool, name: str) -> list[list[object]]:
    if len(args) < 3:
        raise _wrong_number(name)
    if len(args) == 4 or len(args) > 5:
        raise CommandError(MSG_SYNTAX_ERROR)
    key, start_key, end_key = args[:3]
    count_arg = "0"
    if len(args) == 5:
        if args[3].lower() != "count":
            raise CommandError(MSG_SYNTAX_ERROR)
        count_arg = args[4]

    with m.lock:
        start = _range_bound(start_key, lower=not reverse)
        end = _range_bound(end_key, lower=reverse)
        count = _parse_int(count_arg)

        db = _selected(m)
        if not db.exists(key):
            return []
        if db.type_of(key) != "stream":
            raise WrongTypeError()

        entries = db.stream(key)
        if reverse:
            entries.reverse()
        if count == 0:
            count = len(entries)

        selected = []
        for entry in entries:
            if len(selected) >= count:
                break
            if not reverse:
                if stream_cmp(entry.id, end) == 1:
                    break
                if stream_cmp(entry.id, start) == -1:
                    continue
            else:
                if stream_cmp(entry.id, end) == -1:
                    break
                if stream_cmp(entry.id, start) == 1:
                    continue
            selected.append(entry)
        return [[entry.id, list(entry.values)] for entry in selected]


def xrange(m: Miniredis, args: Sequence[str]) -> list[list[object]]:
    """XRANGE key start end [COUNT n]: entries oldest first, as [id, values]."""
    return _xrange(m, args, reverse=False, name="xrange")


def xrevrange(m: Miniredis, args: Sequence[str]) -> list[list[object]]:
    """XREVRANGE key end start [COUNT n]: entries newest first, as [id, values]."""
    return _xrange(m, args, reverse=True, name="xrevrange")


def commands() -> dict[str, Command]:
    """The stream commands by name."""
    return {
        "XADD": xadd,
        "XLEN": xlen,
        "XRANGE": xrange,
        "XREVRANGE": xrevrange,
    }
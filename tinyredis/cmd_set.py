"""Set commands: SADD, SMEMBERS, SPOP, SSCAN and friends.

Every command takes the server and its arguments (without the command name)
and returns the reply: an int, a str, None for a null reply, or a list.
Errors are raised as CommandError subclasses.
"""

from __future__ import annotations

import re
from typing import Callable, Sequence

from tinyredis.db import CommandError, IntValueError, RedisDB, WrongTypeError, _atoi
from tinyredis.server import Miniredis

MSG_SYNTAX_ERROR = "ERR syntax error"
MSG_INVALID_CURSOR = "ERR invalid cursor"

Command = Callable[[Miniredis, Sequence[str]], object]


def _wrong_number(cmd: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{cmd}' command")


def _parse_int(text: str, error: CommandError | None = None) -> int:
    try:
        return _atoi(text)
    except ValueError as exc:
        raise (error or IntValueError()) from exc


def _selected(m: Miniredis) -> RedisDB:
    return m.db(m.selected_db)


def _require_set(db: RedisDB, key: str) -> None:
    if db.exists(key) and db.type_of(key) != "set":
        raise WrongTypeError()


def _compile_glob(pattern: str) -> re.Pattern[str] | None:
    parts: list[str] = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        elif ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "[":
            body: list[str] = []
            negate = False
            for c in chars:
                if c == "]":
                    break
                if c == "\\":
                    body.append(re.escape(next(chars, "\\")))
                    continue
                if c == "^" and not body and not negate:
                    negate = True
                    continue
                body.append(c if c == "-" else re.escape(c))
            if body:
                parts.append(("[^" if negate else "[") + "".join(body) + "]")
            else:
                parts.append("." if negate else "(?!)")
        else:
            parts.append(re.escape(ch))
    try:
        return re.compile("".join(parts), re.DOTALL)
    except re.error:
        return None


def _match_keys(keys: list[str], pattern: str) -> list[str]:
    compiled = _compile_glob(pattern)
    if compiled is None:
        return []
    return [key for key in keys if compiled.fullmatch(key)]


def _parse_scan_options(options: Sequence[str]) -> str | None:
    pattern: str | None = None
    opts = iter(options)
    for opt in opts:
        name = opt.lower()
        if name not in ("count", "match"):
            raise CommandError(MSG_SYNTAX_ERROR)
        value = next(opts, None)
        if value is None:
            raise CommandError(MSG_SYNTAX_ERROR)
        if name == "count":
            _parse_int(value)  # validated, otherwise ignored
        else:
            pattern = value
    return pattern


def sadd(m: Miniredis, args: Sequence[str]) -> int:
    """SADD key member [member ...]: number of new members."""
    if len(args) < 2:
        raise _wrong_number("sadd")
    key, *elems = args
    with m.lock:
        db = _selected(m)
        _require_set(db, key)
        return db.set_add(key, *elems)


def scard(m: Miniredis, args: Sequence[str]) -> int:
    """SCARD key: number of members."""
    if len(args) != 1:
        raise _wrong_number("scard")
    key = args[0]
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        _require_set(db, key)
        return len(db.set_members(key))


def sdiff(m: Miniredis, args: Sequence[str]) -> list[str]:
    """SDIFF key [key ...]: members of the first set not in the others, sorted."""
    if len(args) < 1:
        raise _wrong_number("sdiff")
    with m.lock:
        return sorted(_selected(m).set_diff(list(args)))


def sdiffstore(m: Miniredis, args: Sequence[str]) -> int:
    """SDIFFSTORE destination key [key ...]: size of the stored result."""
    if len(args) < 2:
        raise _wrong_number("sdiffstore")
    dest, *keys = args
    with m.lock:
        db = _selected(m)
        result = db.set_diff(keys)
        db.delete(dest, True)
        db.set_set(dest, result)
        return len(result)


def sinter(m: Miniredis, args: Sequence[str]) -> list[str]:
    """SINTER key [key ...]: members present in every set, sorted."""
    if len(args) < 1:
        raise _wrong_number("sinter")
    with m.lock:
        return sorted(_selected(m).set_inter(list(args)))


def sinterstore(m: Miniredis, args: Sequence[str]) -> int:
    """SINTERSTORE destination key [key ...]: size of the stored result."""
    if len(args) < 2:
        raise _wrong_number("sinterstore")
    dest, *keys = args
    with m.lock:
        db = _selected(m)
        result = db.set_inter(keys)
        db.delete(dest, True)
        db.set_set(dest, result)
        return len(result)


def sismember(m: Miniredis, args: Sequence[str]) -> int:
    """SISMEMBER key member: 1 if present, else 0."""
    if len(args) != 2:
        raise _wrong_number("sismember")
    key, value = args
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        _require_set(db, key)
        return int(db.set_is_member(key, value))


def smembers(m: Miniredis, args: Sequence[str]) -> list[str]:
    """SMEMBERS key: all members, sorted."""
    if len(args) != 1:
        raise _wrong_number("smembers")
    key = args[0]
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return []
        _require_set(db, key)
        return db.set_members(key)


def smove(m: Miniredis, args: Sequence[str]) -> int:
    """SMOVE source destination member: 1 if moved, else 0."""
    if len(args) != 3:
        raise _wrong_number("smove")
    src, dst, member = args
    with m.lock:
        db = _selected(m)
        if not db.exists(src):
            return 0
        _require_set(db, src)
        _require_set(db, dst)
        if not db.set_is_member(src, member):
            return 0
        db.set_rem(src, member)
        db.set_add(dst, member)
        return 1


def spop(m: Miniredis, args: Sequence[str]) -> str | list[str] | None:
    """SPOP key [count]: remove random members."""
    if not args:
        raise _wrong_number("spop")
    key, *rest = args
    with m.lock:
        db = _selected(m)
        with_count = bool(rest)
        count = 1
        if rest:
            count = _parse_int(rest[0])
            if len(rest) > 1:
                raise IntValueError()
        if not db.exists(key):
            return [] if with_count else None
        _require_set(db, key)
        deleted: list[str] = []
        for _ in range(count):
            members = db.set_members(key)
            if not members:
                break
            member = members[m.rand_intn(len(members))]
            db.set_rem(key, member)
            deleted.append(member)
        if not with_count:
            return deleted[0] if deleted else None
        return deleted


def srandmember(m: Miniredis, args: Sequence[str]) -> str | list[str] | None:
    """SRANDMEMBER key [count]: random members; a negative count allows repeats."""
    if not args:
        raise _wrong_number("srandmember")
    if len(args) > 2:
        raise CommandError(MSG_SYNTAX_ERROR)
    key = args[0]
    with_count = len(args) == 2
    count = _parse_int(args[1]) if with_count else 0
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return None
        _require_set(db, key)
        members = db.set_members(key)
        if count < 0:
            return [members[m.rand_intn(len(members))] for _ in range(-count)]
        m.shuffle(members)
        if not with_count:
            return members[0]
        return members[:count]


def srem(m: Miniredis, args: Sequence[str]) -> int:
    """SREM key member [member ...]: number of members removed."""
    if len(args) < 2:
        raise _wrong_number("srem")
    key, *fields = args
    with m.lock:
        db = _selected(m)
        if not db.exists(key):
            return 0
        _require_set(db, key)
        return db.set_rem(key, *fields)


def sunion(m: Miniredis, args: Sequence[str]) -> list[str]:
    """SUNION key [key ...]: members of any set, sorted."""
    if len(args) < 1:
        raise _wrong_number("sunion")
    with m.lock:
        return sorted(_selected(m).set_union(list(args)))


def sunionstore(m: Miniredis, args: Sequence[str]) -> int:
    """SUNIONSTORE destination key [key ...]: size of the stored result."""
    if len(args) < 2:
        raise _wrong_number("sunionstore")
    dest, *keys = args
    with m.lock:
        db = _selected(m)
        result = db.set_union(keys)
        db.delete(dest, True)
        db.set_set(dest, result)
        return len(result)


def sscan(m: Miniredis, args: Sequence[str]) -> list[object]:
    """SSCAN key cursor [MATCH pattern] [COUNT n]: everything in one page."""
    if len(args) < 2:
        raise _wrong_number("sscan")
    key, cursor_text, *options = args
    cursor = _parse_int(cursor_text, CommandError(MSG_INVALID_CURSOR))
    pattern = _parse_scan_options(options)
    with m.lock:
        if cursor != 0:
            return ["0", []]
        db = _selected(m)
        _require_set(db, key)
        members = db.set_members(key)
        if pattern is not None:
            members = _match_keys(members, pattern)
        return ["0", members]


def commands() -> dict[str, Command]:
    """The set commands by name."""
    return {
        "SADD": sadd,
        "SCARD": scard,
        "SDIFF": sdiff,
        "SDIFFSTORE": sdiffstore,
        "SINTER": sinter,
        "SINTERSTORE": sinterstore,
        "SISMEMBER": sismember,
        "SMEMBERS": smembers,
        "SMOVE": smove,
        "SPOP": spop,
        "SRANDMEMBER": srandmember,
        "SREM": srem,
        "SUNION": sunion,
        "SUNIONSTORE": sunionstore,
        "SSCAN": sscan,
    }
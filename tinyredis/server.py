"""The server object: numbered databases plus direct, lock-protected access."""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, MutableSequence

from tinyredis.db import (
    KeyNotFoundError,
    RedisDB,
    StreamEntry,
    WrongTypeError,
)


class Miniredis:
    """An in-memory server: several databases, a clock, and a random source."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.signal = threading.Condition(self.lock)
        self.selected_db = 0
        self._dbs: dict[int, RedisDB] = {}
        self._now: datetime | None = None
        self._rand = random.Random()

    @contextmanager
    def _locked(self, notify: bool = False) -> Iterator[None]:
        with self.lock:
            try:
                yield
            finally:
                if notify:
                    self.signal.notify_all()

    def _selected(self) -> RedisDB:
        return self.db(self.selected_db)

    def _checked(self, key: str, kind: str) -> RedisDB:
        db = self._selected()
        if not db.exists(key):
            raise KeyNotFoundError()
        if db.type_of(key) != kind:
            raise WrongTypeError()
        return db

    def _not_other_type(self, key: str, kind: str) -> RedisDB:
        db = self._selected()
        if db.exists(key) and db.type_of(key) != kind:
            raise WrongTypeError()
        return db

    def db(self, index: int) -> RedisDB:
        """The database with this number, created on first use."""
        with self.lock:
            found = self._dbs.get(index)
            if found is None:
                found = RedisDB(now=self.effective_now)
                self._dbs[index] = found
            return found

    def select(self, index: int) -> None:
        """Choose the database that direct calls work on."""
        with self.lock:
            self.selected_db = index

    def seed(self, seed: int) -> None:
        """Seed the random source used by random commands."""
        with self.lock:
            self._rand = random.Random(seed)

    def set_time(self, moment: datetime) -> None:
        """Fix the clock used for generated stream IDs and the like."""
        with self.lock:
            self._now = moment

    def effective_now(self) -> datetime:
        """The fixed time if one was set, else the current time."""
        if self._now is not None:
            return self._now
        return datetime.now(timezone.utc)

    def rand_intn(self, n: int) -> int:
        """A random integer in [0, n)."""
        return self._rand.randrange(n)

    def shuffle(self, items: MutableSequence) -> None:
        """Shuffle a sequence in place with the server's random source."""
        self._rand.shuffle(items)

    def fast_forward(self, duration: timedelta) -> None:
        """Advance time for every database, expiring keys whose TTL runs out."""
        with self._locked(notify=True):
            for database in list(self._dbs.values()):
                database.fast_forward(duration)

    def keys(self) -> list[str]:
        """All keys of the selected database, sorted."""
        with self.lock:
            return self._selected().all_keys()

    def flush_all(self) -> None:
        """Remove all keys from all databases."""
        with self._locked(notify=True):
            for database in self._dbs.values():
                database.flush()

    def flush_db(self) -> None:
        """Remove all keys from the selected database."""
        with self._locked(notify=True):
            self._selected().flush()

    def get(self, key: str) -> str:
        """The value of a string key."""
        with self.lock:
            return self._checked(key, "string").string_get(key)

    def set(self, key: str, value: str) -> None:
        """Set a string key, removing any expire. Other types are refused."""
        with self._locked(notify=True):
            db = self._not_other_type(key, "string")
            db.delete(key, True)
            db.string_set(key, value)

    def incr(self, key: str, delta: int) -> int:
        """Add an integer to a string key; returns the new value."""
        with self._locked(notify=True):
            return self._not_other_type(key, "string").string_incr(key, delta)

    def incrfloat(self, key: str, delta: float) -> float:
        """Add a float to a string key; returns the new value."""
        with self._locked(notify=True):
            db = self._not_other_type(key, "string")
            return float(db.string_incrfloat(key, delta))

    def incr_by_float(self, key: str, delta: float) -> float:
        """Alias of incrfloat."""
        return self.incrfloat(key, delta)

    def list(self, key: str) -> list[str]:
        """All elements of a list key, first to last."""
        with self.lock:
            self._checked(key, "list")
            return list(self._selected()._typed(key, "list"))

    def lpush(self, key: str, value: str) -> int:
        """Prepend a value to a list; returns the new length."""
        with self._locked(notify=True):
            return self._not_other_type(key, "list").list_lpush(key, value)

    def lpop(self, key: str) -> str:
        """Remove and return the first element of a list."""
        with self._locked(notify=True):
            return self._checked(key, "list").list_lpop(key)

    def push(self, key: str, *args: str) -> int:
        """Append values to a list; returns the new length."""
        with self._locked(notify=True):
            return self._not_other_type(key, "list").list_push(key, *args)

    def rpush(self, key: str, *args: str) -> int:
        """Alias of push."""
        return self.push(key, *args)

    def pop(self, key: str) -> str:
        """Remove and return the last element of a list."""
        with self._locked(notify=True):
            return self._checked(key, "list").list_pop(key)

    def rpop(self, key: str) -> str:
        """Alias of pop."""
        return self.pop(key)

    def set_add(self, key: str, *args: str) -> int:
        """Add members to a set; returns the number of new members."""
        with self._locked(notify=True):
            return self._not_other_type(key, "set").set_add(key, *args)

    def sadd(self, key: str, *args: str) -> int:
        """Alias of set_add."""
        return self.set_add(key, *args)

    def members(self, key: str) -> list[str]:
        """All members of a set, sorted."""
        with self.lock:
            return self._checked(key, "set").set_members(key)

    def smembers(self, key: str) -> list[str]:
        """Alias of members."""
        return self.members(key)

    def is_member(self, key: str, value: str) -> bool:
        """Whether the value is in the set."""
        with self.lock:
            return self._checked(key, "set").set_is_member(key, value)

    def sismember(self, key: str, value: str) -> bool:
        """Alias of is_member."""
        return self.is_member(key, value)

    def srem(self, key: str, *args: str) -> int:
        """Remove members from a set; returns the number removed."""
        with self._locked(notify=True):
            return self._checked(key, "set").set_rem(key, *args)

    def hkeys(self, key: str) -> list[str]:
        """All fields of a hash, sorted."""
        with self.lock:
            return self._checked(key, "hash").hash_fields(key)

    def hget(self, key: str, field: str) -> str:
        """A hash field's value; "" when missing or not a hash."""
        with self.lock:
            return self._selected().hash_get(key, field)

    def hset(self, key: str, field: str, value: str) -> None:
        """Set a hash field, replacing a key of another type."""
        with self._locked(notify=True):
            self._selected().hash_set(key, field, value)

    def hdel(self, key: str, field: str) -> None:
        """Remove a hash field."""
        with self._locked(notify=True):
            self._selected().hash_del(key, field)

    def hincr(self, key: str, field: str, delta: int) -> int:
        """Add an integer to a hash field; returns the new value."""
        with self._locked(notify=True):
            return self._selected().hash_incr(key, field, delta)

    def hincr_by(self, key: str, field: str, delta: int) -> int:
        """Alias of hincr."""
        return self.hincr(key, field, delta)

    def hincrfloat(self, key: str, field: str, delta: float) -> float:
        """Add a float to a hash field; returns the new value."""
        with self._locked(notify=True):
            return float(self._selected().hash_incrfloat(key, field, delta))

    def hincr_by_float(self, key: str, field: str, delta: float) -> float:
        """Alias of hincrfloat."""
        return self.hincrfloat(key, field, delta)

    def delete(self, key: str) -> bool:
        """Delete a key and its expire; returns whether it existed."""
        with self._locked(notify=True):
            db = self._selected()
            if not db.exists(key):
                return False
            db.delete(key, True)
            return True

    def unlink(self, key: str) -> bool:
        """Same as delete."""
        return self.delete(key)

    def ttl(self, key: str) -> timedelta:
        """The remaining time to live, or zero if none is set."""
        with self.lock:
            return self._selected().ttl.get(key, timedelta(0))

    def set_ttl(self, key: str, ttl: timedelta) -> None:
        """Set the time to live of a key."""
        with self._locked(notify=True):
            db = self._selected()
            db.ttl[key] = ttl
            db.key_version[key] += 1

    def type(self, key: str) -> str:
        """The type name of a key, or ""."""
        with self.lock:
            return self._selected().type_of(key)

    def exists(self, key: str) -> bool:
        """Whether a key exists."""
        with self.lock:
            return self._selected().exists(key)

    def zadd(self, key: str, score: float, member: str) -> bool:
        """Add or update a sorted set member; returns whether it is new."""
        with self._locked(notify=True):
            return self._not_other_type(key, "zset").sset_add(key, score, member)

    def zmembers(self, key: str) -> list[str]:
        """All members of a sorted set, ordered by score."""
        with self.lock:
            return self._checked(key, "zset").sset_members(key)

    def sorted_set(self, key: str) -> dict[str, float]:
        """A sorted set as a member to score mapping."""
        with self.lock:
            return self._checked(key, "zset").sorted_set(key)

    def zrem(self, key: str, member: str) -> bool:
        """Remove a sorted set member; returns whether it was there."""
        with self._locked(notify=True):
            return self._checked(key, "zset").sset_rem(key, member)

    def zscore(self, key: str, member: str) -> float:
        """The score of a sorted set member."""
        with self.lock:
            return self._checked(key, "zset").sset_score(key, member)

    def xadd(self, key: str, entry_id: str, values: list[str]) -> str:
        """Add a stream entry; an ID of "" or "*" is generated."""
        with self._locked(notify=True):
            db = self._not_other_type(key, "stream")
            return db.stream_add(key, entry_id, values)

    def stream(self, key: str) -> list[StreamEntry]:
        """All stream entries, oldest first."""
        with self.lock:
            return self._checked(key, "stream").stream(key)
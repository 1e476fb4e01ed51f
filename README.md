# tinyredis

An in-memory data store that behaves like a small subset of Redis. It is
meant for tests. You create a `Miniredis` instance, fill it with data, run
your code against it and then look at what your code left behind.

## Installation

```
pip install tinyredis
```

To run the test suite, install the test extra and run pytest:

```
pip install "tinyredis[test]"
pytest
```

## Direct access

`tinyredis.server.Miniredis` holds numbered databases. Each database is
created the first time it is used, through `db(index)`. `select(index)`
chooses the database that the direct methods work on. The default is 0.

```python
from tinyredis.server import Miniredis

m = Miniredis()
m.set("greeting", "hello")
m.get("greeting")                # "hello"
m.incr("counter", 5)             # 5

m.push("queue", "a", "b", "c")
m.lpop("queue")                  # "a"
m.list("queue")                  # ["b", "c"]

m.set_add("fruit", "pear", "apple")
m.members("fruit")               # ["apple", "pear"]

m.zadd("scores", 12.4, "alice")
m.zadd("scores", 3.4, "bob")
m.zmembers("scores")             # ["bob", "alice"]

m.hset("user", "name", "Bob")
m.hkeys("user")                  # ["name"]

m.xadd("events", "*", ["type", "login"])
```

Several methods have a second, Redis-style name. These are `rpush`, `rpop`,
`sadd`, `smembers`, `sismember`, `hincr_by`, `hincr_by_float`,
`incr_by_float` and `unlink`.

Errors are raised as subclasses of `CommandError` from `tinyredis.db`:

- Reading a missing key raises `KeyNotFoundError`.
- Using a key of the wrong type raises `WrongTypeError`.
- A bad stream ID raises `InvalidStreamIDError` or `StreamIDTooSmallError`.

`tinyredis.db.RedisDB` is the storage for a single database. It can also be
used on its own.

### Time and randomness

`set_time` fixes the clock that generated stream IDs are taken from.
`fast_forward` reduces every time-to-live by the given amount and deletes
the keys whose time has run out. `seed` makes `SPOP` and `SRANDMEMBER`
repeatable.

```python
from datetime import datetime, timedelta, timezone

m.set_time(datetime(2001, 1, 1, 4, 4, 5, 4000, tzinfo=timezone.utc))
m.xadd("s", "*", ["k", "v"])     # "978321845004-0"

m.set_ttl("greeting", timedelta(seconds=10))
m.fast_forward(timedelta(seconds=10))
m.exists("greeting")             # False
```

## Commands

The command functions take the server and a list of arguments, in the same
form a client would send them, without the command name. They return the
reply:

- an `int` or a `str`
- `None` for a null reply
- a list

The commands are grouped into modules:

- `tinyredis.cmd_set` has `SADD`, `SCARD`, `SDIFF`, `SDIFFSTORE`,
  `SINTER`, `SINTERSTORE`, `SISMEMBER`, `SMEMBERS`, `SMOVE`, `SPOP`,
  `SRANDMEMBER`, `SREM`, `SUNION`, `SUNIONSTORE` and `SSCAN`.
- `tinyredis.sorted_set_range` has `ZRANGE`, `ZREVRANGE`, `ZRANGEBYLEX`,
  `ZREVRANGEBYLEX`, `ZRANGEBYSCORE`, `ZREVRANGEBYSCORE`, `ZCOUNT`,
  `ZLEXCOUNT`, `ZREMRANGEBYLEX`, `ZREMRANGEBYRANK` and `ZREMRANGEBYSCORE`.
- `tinyredis.cmd_sorted_set` has `ZADD`, `ZCARD`, `ZINCRBY`,
  `ZINTERSTORE`, `ZUNIONSTORE`, `ZRANK`, `ZREVRANK`, `ZREM`, `ZSCORE`,
  `ZSCAN`, `ZPOPMAX` and `ZPOPMIN`.
- `tinyredis.cmd_stream` has `XADD`, `XLEN`, `XRANGE` and `XREVRANGE`.

Each of these modules has a `commands()` function. It returns a mapping from
command name to handler.

```python
from tinyredis import cmd_set
from tinyredis.server import Miniredis

m = Miniredis()
cmd_set.sadd(m, ["s", "a", "b"])   # 2
cmd_set.smembers(m, ["s"])         # ["a", "b"]
```

### Connections and transactions

`tinyredis.transactions.Connection` is a client session on a server. Its
`execute` method takes a command name and its arguments and dispatches them
to the commands listed above. It also handles `MULTI`, `EXEC`, `DISCARD`,
`WATCH` and `UNWATCH`.

Inside `MULTI`, commands are checked and queued. `EXEC` runs the queue and
returns the list of replies. An error raised while the queue runs is
returned in that list as the exception.

`EXEC` refuses to run in two cases:

- If a command failed while it was being queued, `EXEC` raises an
  `EXECABORT` error.
- If a watched key changed, `EXEC` returns `None`.

```python
from tinyredis.server import Miniredis
from tinyredis.transactions import Connection

m = Miniredis()
conn = Connection(m)
conn.execute("MULTI")              # "OK"
conn.execute("SADD", "s", "a")     # "QUEUED"
conn.execute("EXEC")               # [1]
```

## Geohashes

`tinyredis.geohash` does the following:

- encodes points as geohash strings or integers
- decodes them back, either to a `Box` or to its centre
- finds neighbouring cells in any `Direction`

`tinyredis.geo` has two more helpers. `to_geohash` and `from_geohash` work
with 52-bit scores. `distance` is a great-circle distance in metres.

## What it does not do

- There is no network server and no wire protocol. Commands are plain
  function calls, either direct or through `Connection.execute`.
- String, list and hash data can only be used through the `Miniredis`
  methods. `Connection` does not accept commands such as `GET`, `SET`,
  `LPUSH` or `HSET`.
- There are no geo commands, pub/sub, scripting or key-space commands such
  as `EXPIRE` or `KEYS`.
- Time-to-live values never run out on their own. Keys expire only when
  `fast_forward` is called.
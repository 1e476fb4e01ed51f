import math

import pytest

from tinyredis.cmd_sorted_set import (
    commands,
    zadd,
    zcard,
    zincrby,
    zinterstore,
    zpopmax,
    zpopmin,
    zrank,
    zrem,
    zrevrank,
    zscan,
    zscore,
    zunionstore,
)
from tinyredis.db import CommandError, FloatValueError, IntValueError, WrongTypeError
from tinyredis.server import Miniredis


@pytest.fixture
def server():
    return Miniredis()


@pytest.fixture
def six(server):
    server.zadd("z", 1, "one")
    server.zadd("z", 2, "two")
    server.zadd("z", 2, "zwei")
    server.zadd("z", 3, "three")
    server.zadd("z", 3, "drei")
    server.zadd("z", math.inf, "inf")
    return server


def test_zadd_card_rank(server):
    assert zadd(server, ["z", "1", "one", "2", "two", "3", "three"]) == 3
    assert zcard(server, ["z"]) == 3
    assert zrank(server, ["z", "one"]) == 0
    assert zrank(server, ["z", "three"]) == 2
    assert zrevrank(server, ["z", "one"]) == 2
    assert zrevrank(server, ["z", "three"]) == 0
    assert server.type("z") == "zset"

    assert zadd(server, ["z", "2.1", "two"]) == 0
    assert zcard(server, ["z"]) == 3


def test_zadd_infinity(server):
    assert zadd(server, ["zinf", "inf", "plus inf", "-inf", "minus inf", "10", "ten"]) == 3
    assert zcard(server, ["zinf"]) == 3
    assert server.sorted_set("zinf") == {
        "plus inf": math.inf,
        "minus inf": -math.inf,
        "ten": 10.0,
    }


def test_zadd_invalid_score(server):
    with pytest.raises(FloatValueError):
        zadd(server, ["z", "noint", "two"])


def test_zrank_missing(server):
    zadd(server, ["z", "1", "one"])
    assert zrank(server, ["z", "nosuch"]) is None
    assert zrank(server, ["nosuch", "nosuch"]) is None


def test_direct_zadd(server):
    assert server.zadd("s1", 12.4, "aap") is True
    assert server.zadd("s1", 3.4, "noot") is True
    assert server.zadd("s1", 3.5, "noot") is False
    assert server.zmembers("s1") == ["noot", "aap"]


def test_rank_and_card_errors(server):
    server.set("str", "value")
    with pytest.raises(CommandError, match="wrong number"):
        zrank(server, ["str"])
    with pytest.raises(CommandError, match="wrong number"):
        zrank(server, [])
    with pytest.raises(WrongTypeError):
        zcard(server, ["str"])
    with pytest.raises(CommandError, match="wrong number"):
        zcard(server, [])
    with pytest.raises(CommandError, match="wrong number"):
        zcard(server, ["set", "spurious"])
    with pytest.raises(WrongTypeError):
        zrank(server, ["str", "member"])


def test_zadd_options(server):
    assert zadd(server, ["z", "1", "one", "2", "two", "3", "three"]) == 3
    assert zadd(server, ["z", "1", "one", "2.1", "two", "3", "three"]) == 0
    assert zadd(server, ["z", "CH", "1", "one", "2.2", "two", "3", "three"]) == 1
    assert zadd(server, ["z", "NX", "1", "one", "2.2", "two", "3", "three"]) == 0
    assert zadd(server, ["z", "NX", "1", "one", "4", "four"]) == 1
    assert zadd(server, ["z", "XX", "1.1", "one", "4", "four"]) == 0
    assert zadd(server, ["z", "XX", "CH", "1.2", "one", "4", "four"]) == 1

    assert float(zadd(server, ["z", "INCR", "1.2", "one"])) == pytest.approx(2.4)
    assert zadd(server, ["z", "INCR", "NX", "1.2", "one"]) is None
    assert float(zadd(server, ["z", "INCR", "XX", "1.2", "one"])) == pytest.approx(3.6)

    assert zadd(server, ["q", "INCR", "XX", "1.2", "one"]) is None
    assert not server.exists("q")
    assert float(zadd(server, ["q", "INCR", "NX", "1.2", "one"])) == pytest.approx(1.2)
    assert zadd(server, ["q", "INCR", "NX", "1.2", "one"]) is None

    # CH is ignored with INCR
    assert float(zadd(server, ["z", "INCR", "CH", "1.2", "one"])) == pytest.approx(4.8)


def test_zadd_errors(server):
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        server.zadd("str", 1.0, "hi")
    with pytest.raises(WrongTypeError):
        zadd(server, ["str", "1.0", "hi"])
    for args in ([], ["set"], ["set", "1.0"]):
        with pytest.raises(CommandError, match="wrong number"):
            zadd(server, args)
    with pytest.raises(CommandError, match="syntax error"):
        zadd(server, ["set", "1.0", "foo", "1.0"])
    with pytest.raises(FloatValueError):
        zadd(server, ["set", "MX", "1.0"])
    with pytest.raises(CommandError, match="syntax error"):
        zadd(server, ["set", "1.0", "key", "MX"])
    with pytest.raises(FloatValueError):
        zadd(server, ["set", "MX", "XX", "1.0", "foo"])
    with pytest.raises(CommandError, match="single increment-element pair"):
        zadd(server, ["set", "INCR", "1.0", "foo", "2.3", "bar"])
    with pytest.raises(CommandError, match="XX and NX"):
        zadd(server, ["set", "XX", "NX", "1.0", "foo"])


def test_zrem(server):
    server.zadd("z", 1, "one")
    server.zadd("z", 2, "two")
    server.zadd("z", 2, "zwei")
    assert zrem(server, ["z", "two", "zwei", "nosuch"]) == 2
    assert server.exists("z")
    assert zrem(server, ["z", "one"]) == 1
    assert not server.exists("z")
    assert zrem(server, ["nosuch", "member"]) == 0


def test_direct_zrem(server):
    server.zadd("z2", 1, "one")
    server.zadd("z2", 2, "two")
    server.zadd("z2", 2, "zwei")
    assert server.zrem("z2", "two") is True
    assert server.zmembers("z2") == ["one", "zwei"]


def test_zrem_errors(server):
    with pytest.raises(CommandError, match="wrong number"):
        zrem(server, [])
    with pytest.raises(CommandError, match="wrong number"):
        zrem(server, ["set"])
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        zrem(server, ["str", "aap"])


def test_zscore(server):
    server.zadd("z", 1, "one")
    server.zadd("z", 2, "two")
    server.zadd("z", 2, "zwei")
    assert zscore(server, ["z", "two"]) == "2"
    assert zscore(server, ["z", "nosuch"]) is None
    assert zscore(server, ["nosuch", "nosuch"]) is None

    server.zadd("z2", 1, "one")
    server.zadd("z2", 2, "two")
    assert server.zscore("z2", "two") == 2.0


def test_zscore_errors(server):
    for args in ([], ["key"], ["too", "many", "arguments"]):
        with pytest.raises(CommandError, match="wrong number"):
            zscore(server, args)
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        zscore(server, ["str", "aap"])


def test_zincrby(server):
    assert zincrby(server, ["z", "1", "member"]) == "1"
    assert zincrby(server, ["z", "2.5", "member"]) == "3.5"
    assert zincrby(server, ["z", "1", "othermember"]) == "1"
    assert server.sorted_set("z") == {"member": 3.5, "othermember": 1.0}


def test_zincrby_errors(server):
    with pytest.raises(CommandError, match="wrong number"):
        zincrby(server, [])
    with pytest.raises(CommandError, match="wrong number"):
        zincrby(server, ["set"])
    with pytest.raises(FloatValueError):
        zincrby(server, ["set", "nofloat", "a"])
    with pytest.raises(CommandError, match="wrong number"):
        zincrby(server, ["set", "1.0", "too", "many"])
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        zincrby(server, ["str", "1.0", "member"])


def test_zscan(server):
    server.zadd("h", 1.0, "field1")
    server.zadd("h", 2.0, "field2")
    assert zscan(server, ["h", "0"]) == ["0", ["field1", "1", "field2", "2"]]
    assert zscan(server, ["h", "42"]) == ["0", []]
    assert zscan(server, ["h", "0", "COUNT", "200"]) == ["0", ["field1", "1", "field2", "2"]]

    server.zadd("h", 3.0, "aap")
    server.zadd("h", 4.0, "noot")
    server.zadd("h", 5.0, "mies")
    assert zscan(server, ["h", "0", "MATCH", "mi*"]) == ["0", ["mies", "5"]]


def test_zscan_errors(server):
    with pytest.raises(CommandError, match="wrong number"):
        zscan(server, [])
    with pytest.raises(CommandError, match="wrong number"):
        zscan(server, ["set"])
    with pytest.raises(CommandError, match="invalid cursor"):
        zscan(server, ["set", "noint"])
    with pytest.raises(CommandError, match="syntax error"):
        zscan(server, ["set", "1", "MATCH"])
    with pytest.raises(CommandError, match="syntax error"):
        zscan(server, ["set", "1", "COUNT"])
    with pytest.raises(IntValueError):
        zscan(server, ["set", "1", "COUNT", "noint"])
    server.set("str", "value")
    assert zscan(server, ["str", "1"]) == ["0", []]
    with pytest.raises(WrongTypeError):
        zscan(server, ["str", "0"])


@pytest.fixture
def unions(server):
    server.zadd("h1", 1.0, "field1")
    server.zadd("h1", 2.0, "field2")
    server.zadd("h2", 1.0, "field1")
    server.zadd("h2", 2.0, "field2")
    return server


def test_zunionstore(unions):
    assert zunionstore(unions, ["new", "2", "h1", "h2"]) == 2
    assert unions.sorted_set("new") == {"field1": 2, "field2": 4}


def test_zunionstore_into_source(unions):
    unions.zadd("h3", 1.0, "field1")
    unions.zadd("h3", 3.0, "field3")
    assert zunionstore(unions, ["h3", "2", "h1", "h3"]) == 3
    assert unions.sorted_set("h3") == {"field1": 2, "field2": 2, "field3": 3}


def test_zunionstore_weights_and_aggregate(unions):
    assert zunionstore(unions, ["weighted", "2", "h1", "h2", "WeIgHtS", "4.5", "12"]) == 2
    assert unions.sorted_set("weighted") == {"field1": 16.5, "field2": 33}
    assert zunionstore(unions, ["aggr", "2", "h1", "h2", "AgGrEgAtE", "min"]) == 2
    assert unions.sorted_set("aggr") == {"field1": 1.0, "field2": 2.0}


@pytest.mark.parametrize("command", [zunionstore, zinterstore])
def test_store_errors(server, command):
    for args in ([], ["set"], ["set", "noint"]):
        with pytest.raises(CommandError, match="wrong number"):
            command(server, args)
    with pytest.raises(IntValueError):
        command(server, ["set", "noint", "key"])
    for args in (["set", "0", "key"], ["set", "-1", "key"]):
        with pytest.raises(CommandError, match="at least 1 input key"):
            command(server, args)
    syntax_cases = [
        ["set", "1", "too", "many"],
        ["set", "2", "key"],
        ["set", "2", "k1", "k2", "WEIGHTS"],
        ["set", "2", "k1", "k2", "WEIGHTS", "1", "2", "3"],
        ["set", "2", "k1", "k2", "AGGREGATE"],
        ["set", "2", "k1", "k2", "AGGREGATE", "foo"],
        ["set", "2", "k1", "k2", "AGGREGATE", "sum", "foo"],
    ]
    for args in syntax_cases:
        with pytest.raises(CommandError, match="syntax error"):
            command(server, args)
    with pytest.raises(CommandError, match="weight value is not a float"):
        command(server, ["set", "2", "k1", "k2", "WEIGHTS", "1", "nof"])
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        command(server, ["set", "1", "str"])


@pytest.fixture
def inters(server):
    server.zadd("h1", 1.0, "field1")
    server.zadd("h1", 2.0, "field2")
    server.zadd("h1", 3.0, "field3")
    server.zadd("h2", 1.0, "field1")
    server.zadd("h2", 2.0, "field2")
    server.zadd("h2", 4.0, "field4")
    return server


def test_zinterstore(inters):
    assert zinterstore(inters, ["new", "2", "h1", "h2"]) == 2
    assert inters.sorted_set("new") == {"field1": 2, "field2": 4}


def test_zinterstore_weights_and_aggregate(inters):
    assert zinterstore(inters, ["weighted", "2", "h1", "h2", "WeIgHtS", "4.5", "12"]) == 2
    assert inters.sorted_set("weighted") == {"field1": 16.5, "field2": 33}
    assert zinterstore(inters, ["aggr", "2", "h1", "h2", "AgGrEgAtE", "min"]) == 2
    assert inters.sorted_set("aggr") == {"field1": 1.0, "field2": 2.0}


def test_zinterstore_wrong_type_second_key(server):
    server.set("str", "value")
    with pytest.raises(WrongTypeError):
        zinterstore(server, ["set", "2", "set", "str"])


def test_zpopmin(six):
    assert zpopmin(six, ["z", "2"]) == ["one", "1", "two", "2"]
    assert zpopmin(six, ["z"]) == ["zwei", "2"]
    assert zpopmin(six, ["z", "-100"]) == []
    assert zpopmin(six, ["nosuch", "1"]) == []
    assert zpopmin(six, ["z", "100"]) == ["drei", "3", "three", "3", "inf", "inf"]
    assert not six.exists("z")


def test_zpopmax(six):
    assert zpopmax(six, ["z", "2"]) == ["inf", "inf", "three", "3"]
    assert zpopmax(six, ["z"]) == ["drei", "3"]
    assert zpopmax(six, ["z", "-100"]) == []
    assert zpopmax(six, ["nosuch", "1"]) == []
    assert zpopmax(six, ["z", "100"]) == ["zwei", "2", "two", "2", "one", "1"]
    assert not six.exists("z")


@pytest.mark.parametrize("command", [zpopmin, zpopmax])
def test_zpop_errors(server, command):
    with pytest.raises(CommandError, match="wrong number"):
        command(server, [])
    with pytest.raises(IntValueError):
        command(server, ["set", "noint"])
    with pytest.raises(CommandError, match="syntax error"):
        command(server, ["set", "1", "toomany"])
    server.set("str", "value")
    with pytest.raises(CommandError, match="syntax error"):
        command(server, ["str", "1", "2"])
    with pytest.raises(WrongTypeError):
        command(server, ["str", "1"])


def test_commands_table():
    table = commands()
    assert table["ZADD"] is zadd
    assert table["ZPOPMIN"] is zpopmin
    assert len(table) == 12
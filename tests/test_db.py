from datetime import datetime, timedelta, timezone

import pytest

from tinyredis.db import (
    FloatValueError,
    IntValueError,
    InvalidStreamIDError,
    KeyNotFoundError,
    RedisDB,
    StreamEntry,
    StreamIDTooSmallError,
    WrongTypeError,
    format_float,
    format_stream_id,
    redis_range,
    stream_cmp,
)

FIXED_NOW = datetime(2001, 1, 1, 4, 4, 5, 4000, tzinfo=timezone.utc)


@pytest.fixture
def db():
    return RedisDB(now=lambda: FIXED_NOW)


@pytest.fixture
def sets(db):
    db.set_add("s1", "aap", "noot", "mies")
    db.set_add("s2", "noot", "mies", "vuur")
    db.set_add("s3", "aap", "mies", "wim")
    return db


def test_format_float_pinned_values():
    assert format_float(2.0) == "2"
    assert format_float(-4.0) == "-4"
    assert format_float(3.3) == "3.3"
    assert format_float(float("inf")) == "inf"
    assert format_float(float("-inf")) == "-inf"


def test_format_float_roundtrips():
    for value in (0.1, -273.15, 1e20, 1e-7, 12.4):
        text = format_float(value)
        assert "e" not in text
        assert float(text) == value


def test_redis_range_full_and_tail():
    items = list(range(6))
    rs, re_ = redis_range(len(items), 0, -1)
    assert items[rs:re_] == items
    rs, re_ = redis_range(len(items), -2, -1)
    assert items[rs:re_] == items[-2:]
    rs, re_ = redis_range(len(items), -1, -1)
    assert items[rs:re_] == items[-1:]


@pytest.mark.parametrize("start,end", [(-100, -100), (100, 400), (0, -101)])
def test_redis_range_empty(start, end):
    items = list(range(6))
    rs, re_ = redis_range(len(items), start, end)
    assert items[rs:re_] == []


def test_format_stream_id():
    assert format_stream_id("123456") == "123456-0"
    assert format_stream_id("1234567-89") == "1234567-89"
    for bad in ("a-b", "", "-1", "1-2-3", str(2**64) + "-0"):
        with pytest.raises(InvalidStreamIDError):
            format_stream_id(bad)


def test_stream_cmp_ordering():
    assert stream_cmp("1-0", "2-1") == -1
    assert stream_cmp("2-1", "1-0") == 1
    assert stream_cmp("3-0", "3") == 0
    assert stream_cmp("3-1", "3-0") == 1


def test_set_operations(sets):
    assert sets.set_diff(["s1", "s2"]) == {"aap"}
    assert sets.set_diff(["s1", "s2", "s3"]) == set()
    assert sets.set_inter(["s1", "s2"]) == {"mies", "noot"}
    assert sets.set_inter(["s1", "s2", "s3"]) == {"mies"}
    assert sets.set_inter(["s1", "s9"]) == set()
    assert sets.set_union(["s1", "s2", "s3"]) == {"aap", "mies", "noot", "vuur", "wim"}
    assert sets.set_diff(["s9"]) == set()


def test_set_operations_wrong_type(sets):
    sets.string_set("str", "value")
    with pytest.raises(WrongTypeError):
        sets.set_diff(["str"])
    with pytest.raises(WrongTypeError):
        sets.set_inter(["s1", "str"])
    with pytest.raises(WrongTypeError):
        sets.set_union(["s1", "str"])


def test_set_add_and_rem(db):
    assert db.set_add("s", "aap", "noot", "mies") == 3
    assert db.set_add("s", "new", "noot", "mies") == 1
    assert db.set_members("s") == ["aap", "mies", "new", "noot"]
    assert db.set_is_member("s", "aap")
    assert db.set_rem("s", "aap", "nosuch") == 1
    assert not db.set_is_member("s", "aap")
    db.set_rem("s", "mies", "new", "noot")
    assert not db.exists("s")


def test_sorted_set_order_and_rank(db):
    for score, member in [(1, "one"), (2, "two"), (2, "zwei"), (3, "three"),
                          (3, "drei"), (float("inf"), "inf")]:
        db.sset_add("z", score, member)
    members = db.sset_members("z")
    assert members == ["one", "two", "zwei", "drei", "three", "inf"]
    assert [m for m, _ in db.sset_elements("z")] == members
    for member in members:
        assert db.sset_rank("z", member) == members.index(member)
        assert db.sset_rank("z", member, True) == members[::-1].index(member)
    assert db.sset_rank("z", "nosuch") is None
    assert db.sset_card("z") == len(members)


def test_sorted_set_add_and_rem(db):
    assert db.sset_add("s1", 12.4, "aap") is True
    assert db.sset_add("s1", 3.4, "noot") is True
    assert db.sset_add("s1", 3.5, "noot") is False
    assert db.sset_members("s1") == ["noot", "aap"]
    assert db.sset_score("s1", "noot") == 3.5
    assert db.sset_rem("s1", "noot") is True
    assert db.sset_rem("s1", "noot") is False
    assert db.sset_rem("s1", "aap") is True
    assert not db.exists("s1")


def test_sset_incrby(db):
    assert db.sset_incrby("z", "member", 1) == 1.0
    assert db.sset_incrby("z", "member", 2.5) == 3.5
    assert db.type_of("z") == "zset"


def test_sorted_set_copy(db):
    db.sset_set("z", {"a": 1.0})
    copy = db.sorted_set("z")
    copy["b"] = 2.0
    assert db.sorted_set("z") == {"a": 1.0}


def test_string_incr(db):
    assert db.string_incr("n", 3) == 3
    assert db.string_get("n") == "3"
    db.string_set("str", "value")
    with pytest.raises(IntValueError):
        db.string_incr("str", 1)


def test_string_incrfloat(db):
    db.string_incrfloat("f", 1.5)
    assert db.string_get("f") == "1.5"
    db.string_set("str", "value")
    with pytest.raises(FloatValueError):
        db.string_incrfloat("str", 1.0)


def test_lists(db):
    db.list_push("l", "a", "b", "c")
    db.list_lpush("l", "z")
    assert db.list_lpop("l") == "z"
    assert db.list_pop("l") == "c"
    assert db.list_pop("l") == "b"
    assert db.list_lpop("l") == "a"
    assert not db.exists("l")
    with pytest.raises(KeyNotFoundError):
        db.list_pop("l")


def test_hashes(db):
    db.string_set("h", "value")
    assert db.hash_set("h", "b", "2") is False
    assert db.type_of("h") == "hash"
    assert db.hash_set("h", "a", "1") is False
    assert db.hash_set("h", "a", "x") is True
    assert db.hash_fields("h") == ["a", "b"]
    assert db.hash_get("h", "a") == "x"
    with pytest.raises(IntValueError):
        db.hash_incr("h", "a", 1)
    db.hash_del("h", "a")
    assert db.hash_fields("h") == ["b"]


def test_move_and_rename(db):
    other = RedisDB()
    db.set_add("s", "aap")
    db.ttl["s"] = timedelta(seconds=10)
    assert db.move("s", other) is True
    assert not db.exists("s")
    assert other.set_members("s") == ["aap"]
    assert other.ttl["s"] == timedelta(seconds=10)
    assert other.move("s", other) is False
    other.rename("s", "t")
    assert other.type_of("t") == "set"
    assert not other.exists("s")
    with pytest.raises(KeyNotFoundError):
        other.rename("nosuch", "x")


def test_key_version_changes(db):
    before = db.key_version["k"]
    db.string_set("k", "v")
    after = db.key_version["k"]
    assert after > before
    db.delete("k")
    assert db.key_version["k"] > after


def test_stream_add(db):
    with pytest.raises(StreamIDTooSmallError):
        db.stream_add("s1", "0-0", ["name", "foo"])
    assert db.stream_add("s1", "12345-67", ["name", "bar"]) == "12345-67"
    with pytest.raises(StreamIDTooSmallError):
        db.stream_add("s1", "12345-0", ["name", "foo"])
    assert db.stream_add("s1", "*", ["name", "baz"]) == "978321845004-0"
    assert db.stream("s1") == [
        StreamEntry("12345-67", ["name", "bar"]),
        StreamEntry("978321845004-0", ["name", "baz"]),
    ]
    assert db.stream_add("s1", "*", ["two", "2"]) == "978321845004-1"


def test_stream_add_generates_after_large_id(db):
    big = 2**64 - 1 - 100
    assert db.stream_add("s", f"{big}-0", ["one", "11"]) == f"{big}-0"
    assert db.stream_add("s", "*", ["one", "111"]) == f"{big}-1"
    with pytest.raises(InvalidStreamIDError):
        db.stream_add("s", "a-b", ["one", "1"])


def test_stream_maxlen(db):
    ids = [db.stream_add("s", "*", ["one", "1"]) for _ in range(20)]
    db.stream_maxlen("s", 10)
    assert [e.id for e in db.stream("s")] == ids[-10:]
    db.stream_maxlen("s", 0)
    assert db.stream("s") == []


def test_fast_forward_expires(db):
    db.string_set("k", "v")
    db.ttl["k"] = timedelta(seconds=10)
    db.fast_forward(timedelta(seconds=4))
    assert db.exists("k")
    assert db.ttl["k"] == timedelta(seconds=6)
    db.fast_forward(timedelta(seconds=6))
    assert not db.exists("k")
    assert "k" not in db.ttl


def test_flush(sets):
    sets.flush()
    assert sets.all_keys() == []
    assert sets.type_of("s1") == ""
"""A client connection with MULTI/EXEC/DISCARD/WATCH/UNWATCH support."""

from __future__ import annotations

from functools import partial
from typing import Callable, Sequence

from tinyredis import cmd_set, cmd_sorted_set, cmd_stream, sorted_set_range
from tinyredis.db import (
    CommandError,
    InvalidStreamIDError,
    StreamIDTooSmallError,
    WrongTypeError,
)
from tinyredis.server import Miniredis

# Errors that only the stored data can cause; they show up when the
# transaction runs, not when the command is queued.
_RUNTIME_ERRORS = (WrongTypeError, InvalidStreamIDError, StreamIDTooSmallError)


def _wrong_number(cmd: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{cmd}' command")


class Connection:
    """One client of a server: runs commands, and queues them inside MULTI."""

    def __init__(self, server: Miniredis) -> None:
        self.server = server
        self._commands: dict[str, Callable[[Miniredis, Sequence[str]], object]] = {
            **cmd_set.commands(),
            **cmd_stream.commands(),
            **sorted_set_range.commands(),
            **cmd_sorted_set.commands(),
        }
        self._tx_commands: dict[str, Callable[[list[str]], object]] = {
            "MULTI": self._multi,
            "EXEC": self._exec,
            "DISCARD": self._discard,
            "WATCH": self._watch,
            "UNWATCH": self._unwatch,
        }
        self._queue: list[Callable[[], object]] | None = None
        self._dirty = False
        self._watched: dict[tuple[int, str], int] = {}

    @property
    def in_transaction(self) -> bool:
        """Whether MULTI is active."""
        return self._queue is not None

    def execute(self, *args: object) -> object:
        """Run one command, given as its name and arguments; returns the reply."""
        if not args:
            raise CommandError("ERR wrong number of arguments")
        name, *params = (str(arg) for arg in args)
        upper = name.upper()
        tx_command = self._tx_commands.get(upper)
        if tx_command is not None:
            return tx_command(params)
        command = self._commands.get(upper)
        if command is None:
            self._mark_dirty()
            raise CommandError(f"ERR unknown command '{name}'")
        if self._queue is None:
            return command(self.server, params)
        try:
            self._check_arguments(command, params)
        except CommandError:
            self._mark_dirty()
            raise
        self._queue.append(partial(command, self.server, params))
        return "QUEUED"

    @staticmethod
    def _check_arguments(command: Callable[[Miniredis, Sequence[str]], object], params: list[str]) -> None:
        """Validate arguments by running the command against an empty server."""
        try:
            command(Miniredis(), params)
        except _RUNTIME_ERRORS:
            pass

    def _mark_dirty(self) -> None:
        if self._queue is not None:
            self._dirty = True

    def _stop(self) -> None:
        self._queue = None
        self._dirty = False
        self._watched.clear()

    def _multi(self, params: list[str]) -> str:
        if params:
            raise _wrong_number("multi")
        if self._queue is not None:
            raise CommandError("ERR MULTI calls can not be nested")
        self._queue = []
        self._dirty = False
        return "OK"

    def _exec(self, params: list[str]) -> list[object] | None:
        if params:
            self._mark_dirty()
            raise _wrong_number("exec")
        if self._queue is None:
            raise CommandError("ERR EXEC without MULTI")
        if self._dirty:
            self._stop()
            raise CommandError("EXECABORT Transaction discarded because of previous errors.")
        with self.server.lock:
            for (index, key), version in self._watched.items():
                if self.server.db(index).key_version[key] > version:
                    self._stop()
                    return None
            results: list[object] = []
            for call in self._queue:
                try:
                    results.append(call())
                except CommandError as exc:
                    results.append(exc)
            self.server.signal.notify_all()
        self._stop()
        return results

    def _discard(self, params: list[str]) -> str:
        if params:
            self._mark_dirty()
            raise _wrong_number("discard")
        if self._queue is None:
            raise CommandError("ERR DISCARD without MULTI")
        self._stop()
        return "OK"

    def _watch(self, params: list[str]) -> str:
        if not params:
            self._mark_dirty()
            raise _wrong_number("watch")
        if self._queue is not None:
            raise CommandError("ERR WATCH in MULTI")
        with self.server.lock:
            index = self.server.selected_db
            db = self.server.db(index)
            for key in params:
                self._watched[(index, key)] = db.key_version[key]
        return "OK"

    def _unwatch(self, params: list[str]) -> str:
        if params:
            self._mark_dirty()
            raise _wrong_number("unwatch")
        self._watched.clear()
        if self._queue is not None:
            self._queue.append(lambda: "OK")
            return "QUEUED"
        return "OK"
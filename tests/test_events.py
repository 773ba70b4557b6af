"""Tests for the event emitter."""

import pytest

from music_index.events import DATABASE_CHANGED, UPDATING_CHANGED, EventEmitter


def test_emit_passes_arguments():
    emitter = EventEmitter()
    received = []
    emitter.subscribe(UPDATING_CHANGED, received.append)

    emitter.emit(UPDATING_CHANGED, True)
    emitter.emit(UPDATING_CHANGED, False)

    assert received == [True, False]


def test_unsubscribe():
    emitter = EventEmitter()
    received = []
    unsubscribe = emitter.subscribe(DATABASE_CHANGED, lambda: received.append("changed"))

    unsubscribe()
    emitter.emit(DATABASE_CHANGED)

    assert received == []


def test_failing_listener_does_not_stop_others():
    emitter = EventEmitter()
    received = []

    def broken():
        raise RuntimeError("listener bug")

    emitter.subscribe(DATABASE_CHANGED, broken)
    emitter.subscribe(DATABASE_CHANGED, lambda: received.append("ok"))

    emitter.emit(DATABASE_CHANGED)

    assert received == ["ok"]


def test_unknown_event():
    with pytest.raises(ValueError):
        EventEmitter().subscribe("library_exploded", print)

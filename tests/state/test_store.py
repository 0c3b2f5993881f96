"""Tests for the observable state store."""

import pytest

from keyplay.state.store import (
    IS_PLAYING,
    ObservableStore,
    StateCell,
    format_time,
    progress_percent,
)


class TestStateCell:
    """Tests for StateCell."""

    def test_initial_value(self) -> None:
        cell = StateCell("x", 5)
        assert cell.get() == 5

    def test_set_notifies_in_write_order(self) -> None:
        cell = StateCell("x", 0)
        seen = []
        cell.subscribe(seen.append)

        cell.set(1)
        cell.set(2)
        cell.set(3)

        assert seen == [1, 2, 3]
        assert cell.get() == 3

    def test_unsubscribe(self) -> None:
        cell = StateCell("x", 0)
        seen = []
        unsubscribe = cell.subscribe(seen.append)

        cell.set(1)
        unsubscribe()
        cell.set(2)

        assert seen == [1]
        assert cell.subscriber_count == 0

    def test_unsubscribe_twice_is_harmless(self) -> None:
        cell = StateCell("x")
        unsubscribe = cell.subscribe(lambda v: None)
        unsubscribe()
        unsubscribe()
        assert cell.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self) -> None:
        cell = StateCell("x", 0)
        seen = []

        def broken(value: int) -> None:
            raise RuntimeError("boom")

        cell.subscribe(broken)
        cell.subscribe(seen.append)
        cell.set(7)

        assert seen == [7]
        assert cell.get() == 7


class TestObservableStore:
    """Tests for ObservableStore."""

    def test_create_and_read(self) -> None:
        store = ObservableStore()
        cell = store.create_cell(IS_PLAYING, False)
        cell.set(True)
        assert store.read(IS_PLAYING) is True

    def test_single_owner(self) -> None:
        store = ObservableStore()
        store.create_cell(IS_PLAYING, False)
        with pytest.raises(ValueError):
            store.create_cell(IS_PLAYING, True)

    def test_unknown_cell(self) -> None:
        store = ObservableStore()
        with pytest.raises(KeyError):
            store.read("missing")
        with pytest.raises(KeyError):
            store.subscribe("missing", print)

    def test_subscribe_through_store(self) -> None:
        store = ObservableStore()
        cell = store.create_cell("volume", 10)
        seen = []
        store.subscribe("volume", seen.append)
        cell.set(20)
        assert seen == [20]

    def test_snapshot(self) -> None:
        store = ObservableStore()
        store.create_cell("a", 1)
        store.create_cell("b", "two")
        assert store.snapshot() == {"a": 1, "b": "two"}
        assert sorted(store.names) == ["a", "b"]


class TestDerivedValues:
    """Tests for progress and time formatting helpers."""

    def test_progress_percent(self) -> None:
        assert progress_percent(30.0, 120.0) == 25.0

    def test_progress_percent_unknown_duration(self) -> None:
        assert progress_percent(30.0, 0.0) == 0.0

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00"), (5.9, "0:05"), (65, "1:05"), (600, "10:00")],
    )
    def test_format_time(self, seconds: float, expected: str) -> None:
        assert format_time(seconds) == expected

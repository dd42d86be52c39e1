"""Tests for the block clock — height only moves forward."""

import pytest

from ecoflow.clock import BlockClock


class TestBlockClock:
    def test_starts_at_given_height(self) -> None:
        clock = BlockClock(5)
        assert clock.now() == 5
        assert clock.height == 5

    def test_advance(self) -> None:
        clock = BlockClock()
        assert clock.advance() == 1
        assert clock.advance(9) == 10

    def test_advance_to_same_height_is_allowed(self) -> None:
        clock = BlockClock(3)
        assert clock.advance_to(3) == 3

    def test_cannot_go_backwards(self) -> None:
        clock = BlockClock(10)
        with pytest.raises(ValueError):
            clock.advance_to(9)
        with pytest.raises(ValueError):
            clock.advance(-1)
        assert clock.height == 10

    def test_negative_start_rejected(self) -> None:
        with pytest.raises(ValueError):
            BlockClock(-1)

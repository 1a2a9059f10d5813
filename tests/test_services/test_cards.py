"""Tests for pinned city cards."""

import pytest

from pocketweather.models.card import WeatherCardEntry
from pocketweather.services.cache import Cache
from pocketweather.services.cards import CARDS_KEY, CardManager


@pytest.fixture
def store(temp_dir):
    return Cache(temp_dir / "cache")


def card(adcode, city):
    return WeatherCardEntry(adcode=adcode, city=city, temperature="25")


def cities(manager):
    return [entry.city for entry in manager.cards]


class TestAddCard:
    """Tests for pinning cities."""

    def test_newest_first(self, store):
        """Test new cards go to the top."""
        manager = CardManager(store)
        manager.add_card(card("440113", "番禺区"))
        manager.add_card(card("440106", "天河区"))
        assert cities(manager) == ["天河区", "番禺区"]

    def test_one_card_per_region(self, store):
        """Test a second card for the same adcode is refused."""
        manager = CardManager(store)
        assert manager.add_card(card("440113", "番禺区")) is True
        assert manager.add_card(card("440113", "番禺")) is False
        assert cities(manager) == ["番禺区"]

    def test_cards_is_a_copy(self, store):
        """Test callers cannot mutate the list in place."""
        manager = CardManager(store)
        manager.add_card(card("440113", "番禺区"))
        manager.cards.clear()
        assert len(manager.cards) == 1


class TestPersistence:
    """Tests for saving and loading cards."""

    def test_reload(self, store):
        """Test cards survive a new manager over the same store."""
        manager = CardManager(store)
        first = card("440113", "番禺区")
        manager.add_card(first)
        manager.add_card(card("440106", "天河区"))

        reloaded = CardManager(store)
        assert cities(reloaded) == ["天河区", "番禺区"]
        assert reloaded.cards[1].id == first.id

    def test_invalid_saved_card_dropped(self, store):
        """Test undecodable entries are skipped."""
        valid = card("440113", "番禺区").model_dump(mode="json")
        store.set(CARDS_KEY, [{"city": "missing adcode"}, valid])
        assert cities(CardManager(store)) == ["番禺区"]

    def test_unexpected_shape(self, store):
        """Test a non-list value loads as empty."""
        store.set(CARDS_KEY, {"cards": []})
        assert CardManager(store).cards == []


class TestRemoveCards:
    """Tests for unpinning cities."""

    @pytest.fixture
    def manager(self, store):
        manager = CardManager(store)
        for adcode, city in [("4", "D"), ("3", "C"), ("2", "B"), ("1", "A")]:
            manager.add_card(card(adcode, city))
        return manager

    def test_remove_by_index(self, manager):
        """Test removing several positions at once."""
        manager.remove_cards([0, 2])
        assert cities(manager) == ["B", "D"]

    def test_out_of_range_index_ignored(self, manager):
        """Test invalid positions are skipped."""
        manager.remove_cards([1, 9, -1])
        assert cities(manager) == ["A", "C", "D"]

    def test_remove_by_id(self, manager, store):
        """Test removing a card by its identifier."""
        target = manager.cards[1]
        assert manager.remove_card(target.id) is True
        assert manager.remove_card(target.id) is False
        assert cities(CardManager(store)) == ["A", "C", "D"]


class TestMoveCards:
    """Tests for reordering cards."""

    @pytest.fixture
    def manager(self, store):
        manager = CardManager(store)
        for adcode, city in [("4", "D"), ("3", "C"), ("2", "B"), ("1", "A")]:
            manager.add_card(card(adcode, city))
        return manager

    def test_move_down(self, manager):
        """Test moving a card before a later position."""
        manager.move_cards([0], 3)
        assert cities(manager) == ["B", "C", "A", "D"]

    def test_move_to_end(self, manager):
        """Test moving to the end of the list."""
        manager.move_cards([0, 1], 4)
        assert cities(manager) == ["C", "D", "A", "B"]

    def test_move_up(self, manager):
        """Test moving a card to the top."""
        manager.move_cards([3], 0)
        assert cities(manager) == ["D", "A", "B", "C"]

    def test_move_persists(self, manager, store):
        """Test the new order is saved."""
        manager.move_cards([2], 0)
        assert cities(CardManager(store)) == ["C", "A", "B", "D"]

"""Persistence and ordering of pinned city cards."""

import logging
import threading
from typing import Iterable

from pydantic import ValidationError

from ..models.card import WeatherCardEntry
from .cache import Cache

logger = logging.getLogger(__name__)

CARDS_KEY = "savedCards"


class CardManager:
    """Ordered list of pinned cities, at most one card per administrative code."""

    def __init__(self, store: Cache, key: str = CARDS_KEY):
        self.store = store
        self.key = key
        self._lock = threading.Lock()
        self._cards: list[WeatherCardEntry] = []
        self.load()

    @property
    def cards(self) -> list[WeatherCardEntry]:
        return list(self._cards)

    def load(self) -> None:
        """Load saved cards, dropping any that no longer decode."""
        data = self.store.get(self.key)
        if not isinstance(data, list):
            self._cards = []
            return

        cards = []
        for item in data:
            try:
                cards.append(WeatherCardEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Invalid saved card: {e}")
        self._cards = cards
        logger.debug(f"Loaded {len(cards)} cards")

    def save(self) -> None:
        self.store.set(self.key, [card.model_dump(mode="json") for card in self._cards])

    def add_card(self, card: WeatherCardEntry) -> bool:
        """Insert a card at the top unless its region is already pinned."""
        with self._lock:
            if any(existing.adcode == card.adcode for existing in self._cards):
                logger.debug(f"Card for {card.adcode} already exists")
                return False
            self._cards.insert(0, card)
            self.save()
        logger.info(f"Pinned {card.city} ({card.adcode})")
        return True

    def remove_cards(self, indices: Iterable[int]) -> None:
        """Remove the cards at the given positions."""
        with self._lock:
            doomed = set()
            for index in indices:
                if 0 <= index < len(self._cards):
                    doomed.add(index)
                else:
                    logger.warning(
                        f"Card index {index} out of range for {len(self._cards)} cards"
                    )
            self._cards = [card for i, card in enumerate(self._cards) if i not in doomed]
            self.save()

    def remove_card(self, card_id: str) -> bool:
        with self._lock:
            remaining = [card for card in self._cards if card.id != card_id]
            removed = len(remaining) != len(self._cards)
            self._cards = remaining
            if removed:
                self.save()
        return removed

    def move_cards(self, indices: Iterable[int], destination: int) -> None:
        """Move cards so they sit before the card currently at ``destination``."""
        with self._lock:
            selected = sorted(i for i in set(indices) if 0 <= i < len(self._cards))
            if not selected:
                return
            moving = [self._cards[i] for i in selected]
            offset = sum(1 for i in selected if i < destination)
            rest = [card for i, card in enumerate(self._cards) if i not in selected]
            target = max(0, min(destination - offset, len(rest)))
            self._cards = rest[:target] + moving + rest[target:]
            self.save()

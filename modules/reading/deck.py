"""
Major arcana reference table and the drawable deck pool.
"""

import logging
import random
from typing import List, Optional

from core.types import Card, OrbColors

logger = logging.getLogger(__name__)


def card_image(card_id: int) -> str:
    return f"cards/m{card_id:02d}.jpg"


_ARCANA = [
    (0, "The Fool", "Beginnings, innocence, spontaneity.",
     "Recklessness, risk-taking, inconsideration."),
    (1, "The Magician", "Manifestation, resourcefulness, power.",
     "Manipulation, poor planning, untapped talents."),
    (2, "The High Priestess", "Intuition, sacred knowledge, subconscious.",
     "Secrets, disconnected from intuition, withdrawal."),
    (3, "The Empress", "Femininity, beauty, nature, abundance.",
     "Creative block, dependence on others."),
    (4, "The Emperor", "Authority, structure, a father figure.",
     "Domination, excessive control, rigidity."),
    (5, "The Hierophant", "Spiritual wisdom, religious beliefs, tradition.",
     "Personal beliefs, freedom, challenging the status quo."),
    (6, "The Lovers", "Love, harmony, relationships, choices.",
     "Self-love, disharmony, imbalance, misalignment."),
    (7, "The Chariot", "Control, willpower, success, action.",
     "Self-discipline, opposition, lack of direction."),
    (8, "Strength", "Strength, courage, persuasion, influence.",
     "Inner strength, self-doubt, low energy, raw emotion."),
    (9, "The Hermit", "Soul-searching, introspection, solitude.",
     "Isolation, loneliness, withdrawal."),
    (10, "Wheel of Fortune", "Good luck, karma, life cycles, destiny.",
     "Bad luck, resistance to change, breaking cycles."),
    (11, "Justice", "Justice, fairness, truth, cause and effect.",
     "Unfairness, lack of accountability, dishonesty."),
    (12, "The Hanged Man", "Pause, surrender, letting go, new perspectives.",
     "Delays, resistance, stalling, indecision."),
    (13, "Death", "Endings, change, transformation, transition.",
     "Resistance to change, personal transformation, inner purging."),
    (14, "Temperance", "Balance, moderation, patience, purpose.",
     "Imbalance, excess, self-healing, re-alignment."),
    (15, "The Devil", "Shadow self, attachment, addiction, restriction.",
     "Releasing limiting beliefs, exploring dark thoughts, detachment."),
    (16, "The Tower", "Sudden change, upheaval, chaos, revelation.",
     "Personal transformation, fear of change, averting disaster."),
    (17, "The Star", "Hope, faith, purpose, renewal, spirituality.",
     "Lack of faith, despair, self-trust, disconnection."),
    (18, "The Moon", "Illusion, fear, anxiety, subconscious, intuition.",
     "Release of fear, repressed emotion, inner confusion."),
    (19, "The Sun", "Positivity, fun, warmth, success, vitality.",
     "Inner child, feeling down, overly optimistic."),
    (20, "Judgement", "Judgement, rebirth, inner calling, absolution.",
     "Self-doubt, inner critic, ignoring the call."),
    (21, "The World", "Completion, integration, accomplishment, travel.",
     "Seeking personal closure, short-cuts, delays."),
]

MAJOR_ARCANA = tuple(
    Card(id=card_id, name=name, image=card_image(card_id), meaning_up=up, meaning_rev=rev)
    for card_id, name, up, rev in _ARCANA
)

CARDS_BY_ID = {card.id: card for card in MAJOR_ARCANA}

DEFAULT_ORB_COLORS = OrbColors("#0f172a", "#4338ca", "#a855f7", "#e0e7ff", "#818cf8")

# deep, mid, light, highlight, rim
CARD_PALETTES = {
    0: OrbColors("#0c4a6e", "#0ea5e9", "#fcd34d", "#ffffff", "#bae6fd"),
    1: OrbColors("#450a0a", "#dc2626", "#fbbf24", "#fef3c7", "#fca5a5"),
    2: OrbColors("#020617", "#1e3a8a", "#94a3b8", "#e2e8f0", "#cbd5e1"),
    3: OrbColors("#064e3b", "#10b981", "#f472b6", "#fef08a", "#a7f3d0"),
    4: OrbColors("#450a0a", "#b91c1c", "#fb923c", "#feb2b2", "#f87171"),
    5: OrbColors("#3f2c22", "#ea580c", "#16a34a", "#fde047", "#fdba74"),
    6: OrbColors("#4c0519", "#db2777", "#fbbf24", "#fff1f2", "#fbcfe8"),
    7: OrbColors("#083344", "#0891b2", "#cbd5e1", "#fde047", "#67e8f9"),
    8: OrbColors("#431407", "#ea580c", "#facc15", "#fff7ed", "#fdba74"),
    9: OrbColors("#1e1b4b", "#312e81", "#fde047", "#ffffff", "#818cf8"),
    10: OrbColors("#2e1065", "#7c3aed", "#3b82f6", "#fbbf24", "#a78bfa"),
    11: OrbColors("#172554", "#2563eb", "#e2e8f0", "#ffffff", "#60a5fa"),
    12: OrbColors("#0f172a", "#0d9488", "#38bdf8", "#ccfbf1", "#99f6e4"),
    13: OrbColors("#000000", "#1e293b", "#0f172a", "#f8fafc", "#94a3b8"),
    14: OrbColors("#4a044e", "#c026d3", "#60a5fa", "#e0e7ff", "#e879f9"),
    15: OrbColors("#450a0a", "#000000", "#dc2626", "#fb923c", "#fca5a5"),
    16: OrbColors("#171717", "#b91c1c", "#facc15", "#ffffff", "#fca5a5"),
    17: OrbColors("#020617", "#3b82f6", "#60a5fa", "#ffffff", "#bfdbfe"),
    18: OrbColors("#1e1b4b", "#4f46e5", "#e2e8f0", "#f1f5f9", "#a5b4fc"),
    19: OrbColors("#7c2d12", "#f59e0b", "#fef08a", "#ffffff", "#fcd34d"),
    20: OrbColors("#312e81", "#dc2626", "#93c5fd", "#ffffff", "#a5b4fc"),
    21: OrbColors("#0f172a", "#10b981", "#8b5cf6", "#fde047", "#c4b5fd"),
}


def card_colors(card_id: int) -> OrbColors:
    return CARD_PALETTES.get(card_id, DEFAULT_ORB_COLORS)


class DeckPool:
    """Ordered pool of cards still available to draw.

    Only the hosting pipeline mutates the pool; the interaction state
    machine reads its length and indexes into it.
    """

    def __init__(self, cards=MAJOR_ARCANA, rng: Optional[random.Random] = None,
                 shuffle: bool = True):
        self._source = tuple(cards)
        self._rng = rng or random.Random()
        self._cards: List[Card] = list(self._source)
        if shuffle:
            self.shuffle()

    def shuffle(self):
        self._rng.shuffle(self._cards)

    def reset(self):
        """Restore every card and reshuffle."""
        self._cards = list(self._source)
        self.shuffle()
        logger.debug("Deck reset (%d cards)", len(self._cards))

    def remove(self, card_id: int) -> bool:
        """Remove a card by id. Returns False if it was not in the pool."""
        for i, card in enumerate(self._cards):
            if card.id == card_id:
                del self._cards[i]
                logger.debug("Removed %s from pool (%d left)", card.name, len(self._cards))
                return True
        return False

    def __contains__(self, card) -> bool:
        card_id = card.id if isinstance(card, Card) else card
        return any(c.id == card_id for c in self._cards)

    def __len__(self):
        return len(self._cards)

    def __getitem__(self, index) -> Card:
        return self._cards[index]

    def __iter__(self):
        return iter(list(self._cards))

    @property
    def cards(self) -> List[Card]:
        return list(self._cards)

# cardbeacon/card.py
# -----------------------------------------------------------------------------
# Playing-card value type carried by a card beacon.
# Immutable; every derived form (labels, glyphs, colour) is computed from
# (suit, rank) on demand.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

RANK_MIN = 1
RANK_MAX = 13

RED = "#D32F2F"
BLACK = "#000000"

_RANK_LABELS = {1: "A", 11: "J", 12: "Q", 13: "K"}
_RANK_NAMES = {1: "Ace", 11: "Jack", 12: "Queen", 13: "King"}


class Suit(Enum):
    """Suits in wire order (index 0..3 matches the beacon suit alphabet)."""
    HEARTS = "♥"
    SPADES = "♠"
    CLUBS = "♣"
    DIAMONDS = "♦"

    @property
    def glyph(self) -> str:
        return self.value

    @property
    def title(self) -> str:
        return self.name.capitalize()

    @property
    def index(self) -> int:
        return list(Suit).index(self)

    @property
    def color(self) -> str:
        return RED if self in (Suit.HEARTS, Suit.DIAMONDS) else BLACK

    @classmethod
    def parse(cls, token: str) -> "Suit":
        """Accept a glyph (♥), a letter (H) or a name (hearts)."""
        t = (token or "").strip()
        for s in cls:
            if t == s.glyph or t.upper() == s.name or t.upper() == s.name[0]:
                return s
        raise ValueError(f"unknown suit: {token!r}")

    @classmethod
    def from_index(cls, index: int) -> "Suit":
        """Inverse of `index`; only 0..3 are valid."""
        suits = list(cls)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(suits):
            raise ValueError(f"suit index out of range 0..{len(suits) - 1}: {index!r}")
        return suits[index]


@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: int  # 1=Ace .. 13=King

    def __post_init__(self):
        if not isinstance(self.suit, Suit):
            raise ValueError(f"suit must be a Suit, not {type(self.suit).__name__}")
        if isinstance(self.rank, bool) or not isinstance(self.rank, int):
            raise ValueError(f"rank must be an int, not {type(self.rank).__name__}")
        if not RANK_MIN <= self.rank <= RANK_MAX:
            raise ValueError(f"rank out of range {RANK_MIN}..{RANK_MAX}: {self.rank}")

    # ---------- display forms ----------

    @property
    def rank_label(self) -> str:
        return _RANK_LABELS.get(self.rank, str(self.rank))

    @property
    def display_name(self) -> str:
        """Long form, e.g. 'Ace of Hearts'."""
        return f"{_RANK_NAMES.get(self.rank, str(self.rank))} of {self.suit.title}"

    @property
    def short_name(self) -> str:
        """Glyph form, e.g. 'A♥'."""
        return f"{self.rank_label}{self.suit.glyph}"

    @property
    def color(self) -> str:
        return self.suit.color

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suit": self.suit.name.lower(),
            "rank": self.rank,
            "name": self.display_name,
            "short": self.short_name,
            "color": self.color,
        }

    def __str__(self) -> str:
        return self.short_name

    # ---------- parsing (tools / CLI) ----------

    @classmethod
    def parse(cls, text: str) -> "Card":
        """
        Parse a short card token: rank label followed by a suit token.
        Examples: 'A♥', 'QS', '10d', 'k♣'.
        """
        t = (text or "").strip()
        if len(t) < 2:
            raise ValueError(f"not a card: {text!r}")
        rank_tok, suit_tok = t[:-1].upper(), t[-1]
        labels = {v: k for k, v in _RANK_LABELS.items()}
        if rank_tok in labels:
            rank = labels[rank_tok]
        else:
            try:
                rank = int(rank_tok)
            except ValueError:
                raise ValueError(f"not a card rank: {rank_tok!r}") from None
        return cls(Suit.parse(suit_tok), rank)

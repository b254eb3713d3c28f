# cardbeacon/codec.py
# -----------------------------------------------------------------------------
# Card <-> beacon name codec.
#
# Wire format (one canonical grammar, positions counted in code points):
#
#   "CARD_" <suit> <sep> <b3> <b2> <b1> <b0>
#
#   suit : U+200B hearts | U+200C spades | U+200D clubs | U+200E diamonds
#   sep  : one code point, always written as U+200B, skipped when decoding
#   bN   : U+200C = 1, U+200B = 0, most-significant bit first
#
# The payload after the prefix is exactly 6 code points. Anything else, a
# bit position holding another code point, or a rank outside 1..13 is not a
# card beacon. decode() never raises; rejects are logged at DEBUG.
#
# UTF-8 size is 5 + 6*3 = 23 bytes, inside the 32-byte SSID limit.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Optional

from .card import Card, Suit, RANK_MIN, RANK_MAX

PREFIX = "CARD_"

ZWSP = "\u200b"  # zero width space
ZWNJ = "\u200c"  # zero width non-joiner
ZWJ = "\u200d"   # zero width joiner
LRM = "\u200e"   # left-to-right mark

SUIT_SYMBOLS = {
    Suit.HEARTS: ZWSP,
    Suit.SPADES: ZWNJ,
    Suit.CLUBS: ZWJ,
    Suit.DIAMONDS: LRM,
}
_SYMBOL_SUITS = {v: k for k, v in SUIT_SYMBOLS.items()}

SEPARATOR = ZWSP
BIT_ONE = ZWNJ
BIT_ZERO = ZWSP

RANK_BITS = 4
PAYLOAD_LEN = 1 + 1 + RANK_BITS  # suit + separator + rank field
NAME_LEN = len(PREFIX) + PAYLOAD_LEN

_SUIT_POS = 0
_RANK_POS = 2

log = logging.getLogger("beacon.codec")


def is_card_beacon(name: Optional[str]) -> bool:
    """Cheap prefix check; says nothing about whether the payload decodes."""
    return isinstance(name, str) and name.startswith(PREFIX)


def encode(card: Card) -> str:
    rank_field = "".join(
        BIT_ONE if (card.rank >> i) & 1 else BIT_ZERO
        for i in range(RANK_BITS - 1, -1, -1)
    )
    return PREFIX + SUIT_SYMBOLS[card.suit] + SEPARATOR + rank_field


def _reject(reason: str, name: str, **fields) -> None:
    if log.isEnabledFor(logging.DEBUG):
        log.debug("reject_%s", reason, extra={"beacon": describe(name), **fields})


def decode(name: Optional[str]) -> Optional[Card]:
    if not is_card_beacon(name):
        return None

    payload = name[len(PREFIX):]
    if len(payload) != PAYLOAD_LEN:
        _reject("length", name, length=len(payload))
        return None

    suit = _SYMBOL_SUITS.get(payload[_SUIT_POS])
    if suit is None:
        _reject("suit", name, symbol=f"U+{ord(payload[_SUIT_POS]):04X}")
        return None

    rank = 0
    for ch in payload[_RANK_POS:_RANK_POS + RANK_BITS]:
        if ch == BIT_ONE:
            bit = 1
        elif ch == BIT_ZERO:
            bit = 0
        else:
            _reject("bit", name, symbol=f"U+{ord(ch):04X}")
            return None
        rank = (rank << 1) | bit

    if not RANK_MIN <= rank <= RANK_MAX:
        _reject("range", name, rank=rank)
        return None

    return Card(suit, rank)


def describe(name: Optional[str]) -> str:
    """
    Render a beacon name for humans: printable ASCII stays as-is, everything
    else becomes <U+XXXX>. Used in logs and tools, never on the wire.
    """
    if name is None:
        return "<none>"
    return "".join(
        ch if 0x20 <= ord(ch) < 0x7F else f"<U+{ord(ch):04X}>"
        for ch in name
    )

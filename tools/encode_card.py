#!/usr/bin/env python3
"""
Print the beacon name for one or more cards, for configuring a broadcaster.

    python tools/encode_card.py AH 10D QS
    python tools/encode_card.py --decode 'CARD_\\u200b\\u200b\\u200b\\u200b\\u200b\\u200c'

For each card: the escaped name, its UTF-8 bytes in hex and the byte length
(SSIDs are limited to 32 bytes).
"""

from __future__ import annotations
import argparse
import sys

from cardbeacon.card import Card
from cardbeacon.codec import decode, describe, encode


def _unescape(s: str) -> str:
    return s.encode("latin-1", "backslashreplace").decode("unicode_escape")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Encode cards as beacon names")
    ap.add_argument("cards", nargs="*", help="cards like AH, 10D, Q♠")
    ap.add_argument("--decode", action="append", default=[],
                    help="beacon name to decode (\\uXXXX escapes allowed)")
    args = ap.parse_args(argv)

    rc = 0
    for tok in args.cards:
        try:
            card = Card.parse(tok)
        except ValueError as e:
            print(f"{tok}: {e}", file=sys.stderr)
            rc = 2
            continue
        name = encode(card)
        raw = name.encode("utf-8")
        print(f"{card.short_name:<4} {describe(name)}")
        print(f"     hex={raw.hex(' ')} bytes={len(raw)}")

    for text in args.decode:
        name = _unescape(text)
        card = decode(name)
        print(f"{describe(name)} -> {card.display_name if card else 'not a card beacon'}")
        if card is None:
            rc = rc or 1
    return rc


if __name__ == "__main__":
    raise SystemExit(main())

import sys

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer

from cardbeacon.card import Card, Suit


def on_card(addr, suit_index, rank, *rest):
    try:
        card = Card(Suit.from_index(int(suit_index)), int(rank))
    except (TypeError, ValueError) as e:
        print(f"{addr} bad payload {(suit_index, rank, *rest)}: {e}")
        return
    print(f"{addr} {card.short_name:<4} {card.display_name}")


def dump(addr, *args):
    print(f"{addr} {args}")


host = sys.argv[1] if len(sys.argv) > 1 else "127.0.0.1"
port = int(sys.argv[2]) if len(sys.argv) > 2 else 9000
path = sys.argv[3] if len(sys.argv) > 3 else "/cardbeacon/card"

disp = Dispatcher()
disp.map(path, on_card)
disp.set_default_handler(dump)

# must match publisher.osc in config/config.yaml
server = BlockingOSCUDPServer((host, port), disp)
print(f"listening on {host}:{port} ...")
server.serve_forever()

import time

from cardbeacon.card import Card, Suit
from cardbeacon.codec import decode, encode
from cardbeacon.simulator import RandomBroadcaster, SimulatedAir


class FakeClock:
    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class TestSimulatedAir:
    def test_broadcast_visible_until_ttl(self) -> None:
        clock = FakeClock()
        air = SimulatedAir(clock=clock)
        name = air.broadcast(Card(Suit.HEARTS, 7), ttl_s=5.0)

        assert name == encode(Card(Suit.HEARTS, 7))
        clock.t = 4.9
        assert air.visible_names() == [name]
        clock.t = 5.0
        assert air.visible_names() == []

    def test_rebroadcast_extends_ttl(self) -> None:
        clock = FakeClock()
        air = SimulatedAir(clock=clock)
        air.broadcast_raw("CARD_noise", ttl_s=1.0)
        clock.t = 0.5
        air.broadcast_raw("CARD_noise", ttl_s=1.0)
        clock.t = 1.2

        assert air.visible_names() == ["CARD_noise"]


class TestRandomBroadcaster:
    def test_seeded_cards_are_valid_and_repeatable(self) -> None:
        a = RandomBroadcaster(SimulatedAir(), seed=7)
        b = RandomBroadcaster(SimulatedAir(), seed=7)

        cards = [a.next_card() for _ in range(20)]
        assert cards == [b.next_card() for _ in range(20)]
        assert all(decode(encode(c)) == c for c in cards)

    def test_start_puts_a_card_on_air(self) -> None:
        air = SimulatedAir()
        bc = RandomBroadcaster(air, period_s=30.0, seed=1)
        bc.start()
        try:
            # the first broadcast happens before the first wait
            for _ in range(200):
                if air.visible_names():
                    break
                time.sleep(0.01)
        finally:
            bc.stop()

        names = air.visible_names()
        assert len(names) == 1
        assert decode(names[0]) is not None

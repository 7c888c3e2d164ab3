import asyncio

from trustgate.services.action_counter import InMemoryActionCounter, action_key


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryActionCounter:
    def test_counts_increment(self):
        counter = InMemoryActionCounter(clock=_Clock())

        async def run():
            return [await counter.hit("u:a", 3600) for _ in range(3)]

        assert asyncio.run(run()) == [1, 2, 3]

    def test_window_resets(self):
        clock = _Clock()
        counter = InMemoryActionCounter(clock=clock)

        async def run():
            await counter.hit("u:a", 60)
            await counter.hit("u:a", 60)
            clock.now += 61
            return await counter.hit("u:a", 60)

        assert asyncio.run(run()) == 1

    def test_keys_independent(self):
        counter = InMemoryActionCounter(clock=_Clock())

        async def run():
            await counter.hit("u:a", 60)
            return await counter.hit("u:b", 60)

        assert asyncio.run(run()) == 1

    def test_concurrent_hits_observe_distinct_counts(self):
        counter = InMemoryActionCounter(clock=_Clock())

        async def run():
            return await asyncio.gather(*(counter.hit("u:a", 3600) for _ in range(50)))

        assert sorted(asyncio.run(run())) == list(range(1, 51))


def test_action_key():
    assert action_key("user-1", "challenge_complete") == "user-1:challenge_complete"

"""Tests for the shared, reference-counted change-feed hub."""

import asyncio

from subly.sync import BudgetSync, ChangeFeedHub

from conftest import USER


class TestChangeFeedHub:

    def test_one_store_subscription_per_table(self, store):
        hub = ChangeFeedHub(store)
        first = hub.subscribe("goals", lambda event: None)
        second = hub.subscribe("goals", lambda event: None)
        hub.subscribe("budgets", lambda event: None)

        assert store.listener_count("goals") == 1
        assert store.listener_count("budgets") == 1
        assert hub.listener_count("goals") == 2

        first.close()
        assert store.listener_count("goals") == 1
        second.close()
        assert store.listener_count("goals") == 0
        assert not hub.is_open("goals")

    def test_fan_out(self, store):
        received_a, received_b = [], []
        hub = ChangeFeedHub(store)
        hub.subscribe("goals", received_a.append)
        hub.subscribe("goals", received_b.append)

        async def scenario():
            await store.insert("goals", {"user_id": USER})
            await store.flush()

        asyncio.run(scenario())
        assert len(received_a) == 1
        assert len(received_b) == 1

    def test_closing_twice_does_not_drop_other_listeners(self, store):
        hub = ChangeFeedHub(store)
        first = hub.subscribe("goals", lambda event: None)
        hub.subscribe("goals", lambda event: None)
        first.close()
        first.close()
        assert hub.listener_count("goals") == 1
        assert store.listener_count("goals") == 1

    def test_reopens_after_last_close(self, store):
        hub = ChangeFeedHub(store)
        hub.subscribe("goals", lambda event: None).close()
        received = []
        hub.subscribe("goals", received.append)

        async def scenario():
            await store.insert("goals", {"user_id": USER})
            await store.flush()

        asyncio.run(scenario())
        assert len(received) == 1
        assert store.listener_count("goals") == 1

    def test_close_all(self, store):
        hub = ChangeFeedHub(store)
        hub.subscribe("goals", lambda event: None)
        hub.subscribe("budgets", lambda event: None)
        hub.close()
        assert store.listener_count("goals") == 0
        assert store.listener_count("budgets") == 0

    def test_two_engines_share_one_subscription(self, store, budget_payload):
        """Two mounted engines for one table get each event exactly once."""
        async def scenario():
            hub = ChangeFeedHub(store)
            first = BudgetSync(store, feed=hub, dedupe_inserts=False)
            second = BudgetSync(store, feed=hub, dedupe_inserts=False)
            await first.set_user(USER)
            await second.set_user(USER)
            await store.insert("budgets", budget_payload())
            await store.flush()
            return first, second

        first, second = asyncio.run(scenario())
        assert store.listener_count("budgets") == 1
        assert len(first.items) == 1
        assert len(second.items) == 1

    def test_failing_listener_is_isolated(self, store):
        received = []
        hub = ChangeFeedHub(store)

        def broken(event):
            raise ValueError("bug")

        hub.subscribe("goals", broken)
        hub.subscribe("goals", received.append)

        async def scenario():
            await store.insert("goals", {"user_id": USER})
            await store.flush()

        asyncio.run(scenario())
        assert len(received) == 1


class RecordingFeed:
    """Satisfies ChangeFeed without being a store or a hub."""

    def __init__(self, store):
        self._store = store
        self.tables = []

    def subscribe(self, table, listener):
        self.tables.append(table)
        return self._store.subscribe(table, listener)


class TestCustomFeed:

    def test_engine_subscribes_through_given_feed(self, store, budget_payload):
        feed = RecordingFeed(store)

        async def scenario():
            engine = BudgetSync(store, feed=feed)
            await engine.set_user(USER)
            await store.insert("budgets", budget_payload())
            await store.flush()
            return engine

        engine = asyncio.run(scenario())
        assert feed.tables == ["budgets"]
        assert len(engine.items) == 1

    def test_defaults_to_the_store(self, store):
        async def scenario():
            engine = BudgetSync(store)
            await engine.set_user(USER)
            return engine

        engine = asyncio.run(scenario())
        assert engine.subscribed
        assert store.listener_count("budgets") == 1

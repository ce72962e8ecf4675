"""
Reactive subscription tests: liveness, fan-out, cancellation and failures.
"""
import asyncio

import pytest

from pocketjournal.db import EntryStore
from pocketjournal.errors import StorageUnavailableError
from pocketjournal.subscriptions import SubscriptionRegistry


def run(coro):
    return asyncio.run(coro)


class TestLiveness:

    def test_initial_snapshot_is_current(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                await store.insert(make_entry())
                sub = await store.get_all()
                assert sub.pending == 1
                assert [e.name for e in await anext(sub)] == ["Weight"]

        run(scenario())

    def test_matching_insert_is_emitted(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                sub = await store.get_by_name("Weight")
                assert await anext(sub) == []
                new_id = await store.insert(make_entry())
                assert [e.id for e in await anext(sub)] == [new_id]

        run(scenario())

    def test_unrelated_insert_re_emits_same_content(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                await store.insert(make_entry())
                sub = await store.get_by_name("Weight")
                before = await anext(sub)
                await store.insert(make_entry(name="Sleep"))
                assert sub.pending == 1
                assert await anext(sub) == before

        run(scenario())

    def test_each_mutation_yields_one_snapshot_in_order(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                sub = await store.get_all()
                first = await store.insert(make_entry(value="1"))
                await store.update(make_entry(value="2").with_changes(id=first))
                await store.delete_by_id(first)
                snapshots = [await anext(sub) for _ in range(4)]
                assert [[e.value for e in s] for s in snapshots] == [[], ["1"], ["2"], []]

        run(scenario())

    def test_subscribers_do_not_share_snapshots(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                a = await store.get_all()
                b = await store.get_all()
                await anext(a)
                await anext(b)
                await store.insert(make_entry())
                snap_a = await anext(a)
                snap_a.clear()
                assert len(await anext(b)) == 1
                # both share one query shape
                assert store.subscriptions.keys() == [("all",)]
                assert len(store.subscriptions) == 2

        run(scenario())

    def test_listener_receives_snapshots(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                received = []
                sub = await store.get_by_name("Weight")
                sub.add_listener(received.append)
                await store.insert(make_entry())
                await store.insert(make_entry(value="73"))
                sub.remove_listener(received.append)
                await store.insert(make_entry(value="74"))
                return received

        received = run(scenario())
        assert [[e.value for e in snap] for snap in received] == [["72.5"], ["72.5", "73"]]

    def test_failing_listener_does_not_break_writes(self, db_path, make_entry, caplog):
        async def scenario():
            async with EntryStore(db_path) as store:
                def boom(snapshot):
                    raise RuntimeError("listener bug")

                bad = await store.get_all()
                bad.add_listener(boom)
                good = await store.get_by_name("Weight")
                await anext(good)
                new_id = await store.insert(make_entry())
                assert new_id == 1
                assert [e.id for e in await anext(good)] == [new_id]
                assert not bad.closed
                return await store.count_by_name_like("Weight")

        assert run(scenario()) == 1
        assert "listener bug" in caplog.text

    def test_listener_subscription_keeps_latest_snapshot_only(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                received = []
                sub = await store.get_all()
                sub.add_listener(received.append)
                for n in range(50):
                    await store.insert(make_entry(value=str(n)))
                    assert sub.pending == 1
                latest = await anext(sub)
                assert len(latest) == 50
                assert sub.pending == 0
                return received

        assert len(run(scenario())) == 50


class TestById:

    def test_emits_updates_for_the_row(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                new_id = await store.insert(make_entry())
                sub = await store.get_by_id(new_id)
                await anext(sub)
                await store.update(make_entry(value="80").with_changes(id=new_id))
                assert (await anext(sub)).value == "80"

        run(scenario())

    def test_deleted_row_stalls(self, db_path, make_entry):
        """Assumption: a by-id stream emits nothing once its row is gone."""
        async def scenario():
            async with EntryStore(db_path) as store:
                new_id = await store.insert(make_entry())
                sub = await store.get_by_id(new_id)
                await anext(sub)
                await store.delete_by_id(new_id)
                await store.insert(make_entry(name="Sleep"))
                assert sub.pending == 0
                assert not sub.closed

        run(scenario())

    def test_absent_row_emits_once_created(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                sub = await store.get_by_id(1)
                assert sub.pending == 0
                assert await store.insert(make_entry()) == 1
                assert (await anext(sub)).id == 1

        run(scenario())


class TestCancellation:

    def test_close_discards_pending_snapshots(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                sub = await store.get_all()
                await store.insert(make_entry())
                sub.close()
                assert [snap async for snap in sub] == []
                assert len(store.subscriptions) == 0
                # later mutations are not delivered
                await store.insert(make_entry())
                with pytest.raises(StopAsyncIteration):
                    await anext(sub)

        run(scenario())

    def test_close_wakes_waiting_consumer(self, db_path):
        async def scenario():
            async with EntryStore(db_path) as store:
                sub = await store.get_all()
                await anext(sub)
                waiter = asyncio.ensure_future(anext(sub))
                await asyncio.sleep(0)
                await sub.aclose()
                with pytest.raises(StopAsyncIteration):
                    await waiter

        run(scenario())

    def test_async_with_unsubscribes(self, db_path, make_entry):
        async def scenario():
            async with EntryStore(db_path) as store:
                other = await store.get_all()
                async with await store.get_all() as sub:
                    await anext(sub)
                    assert len(store.subscriptions) == 2
                assert sub.closed
                assert len(store.subscriptions) == 1
                await store.insert(make_entry())
                await anext(other)
                assert len(await anext(other)) == 1

        run(scenario())

    def test_closing_store_ends_subscriptions(self, db_path):
        async def scenario():
            store = EntryStore(db_path)
            await store.open()
            sub = await store.get_all()
            await anext(sub)
            await store.close()
            assert sub.closed
            assert [snap async for snap in sub] == []

        run(scenario())


class TestRegistryFailures:

    def test_refresh_failure_is_raised_to_subscriber(self):
        async def scenario():
            registry = SubscriptionRegistry()
            calls = []

            async def query():
                if calls:
                    raise StorageUnavailableError("disk gone")
                calls.append(1)
                return []

            sub = await registry.open(("q",), query)
            assert await anext(sub) == []
            await registry.broadcast()
            with pytest.raises(StorageUnavailableError, match="disk gone"):
                await anext(sub)
            assert sub.closed
            assert len(registry) == 0

        run(scenario())

    def test_initial_failure_is_raised_to_caller(self):
        async def scenario():
            registry = SubscriptionRegistry()

            async def query():
                raise StorageUnavailableError("cannot read")

            with pytest.raises(StorageUnavailableError):
                await registry.open(("q",), query)
            assert len(registry) == 0

        run(scenario())

    def test_refresh_failure_reaches_listeners(self):
        async def scenario():
            registry = SubscriptionRegistry()
            broken = []

            async def query():
                if broken:
                    raise StorageUnavailableError("disk gone")
                return ["row"]

            snapshots, errors = [], []
            sub = await registry.open(("q",), query)
            sub.add_listener(snapshots.append, on_error=errors.append)
            broken.append(True)
            await registry.broadcast()
            assert [str(e) for e in errors] == ["disk gone"]
            assert sub.closed
            assert len(registry) == 0

            # later broadcasts no longer reach the failed subscription
            broken.clear()
            await registry.broadcast()
            assert snapshots == []

        run(scenario())

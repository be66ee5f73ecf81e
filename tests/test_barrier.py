"""Tests for the readiness barrier and operation handles."""

import asyncio

import pytest

from asset_pipe_client.barrier import OperationHandle, ReadinessBarrier


async def succeed(value, delay=0.01):
    await asyncio.sleep(delay)
    return value


async def fail(message, delay=0.01):
    await asyncio.sleep(delay)
    raise RuntimeError(message)


class TestReadinessBarrier:
    """Tests for ReadinessBarrier."""

    @pytest.mark.asyncio
    async def test_empty_is_ready(self):
        """A barrier without operations should be ready immediately."""
        assert await ReadinessBarrier().wait() is True

    @pytest.mark.asyncio
    async def test_waits_for_all(self):
        """wait() should return only after every operation settled."""
        barrier = ReadinessBarrier()
        publish = asyncio.create_task(succeed("a"))
        bundle = asyncio.create_task(succeed("b", delay=0.02))
        barrier.add_publish(publish)
        barrier.add_bundle(bundle)

        assert barrier.pending
        assert await barrier.wait() is True
        assert publish.done() and bundle.done()
        assert not barrier.pending

    @pytest.mark.asyncio
    async def test_failure_does_not_block(self):
        """A failed operation should still let wait() complete."""
        barrier = ReadinessBarrier()
        barrier.add_publish(asyncio.create_task(fail("boom")))
        barrier.add_publish(asyncio.create_task(succeed("ok")))

        assert await barrier.wait() is True

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        """Failures should be logged by the barrier."""
        barrier = ReadinessBarrier()
        barrier.add_bundle(asyncio.create_task(fail("boom"), name="bundle-js"))

        with caplog.at_level("WARNING"):
            await barrier.wait()
            await asyncio.sleep(0)

        assert "bundle-js failed: boom" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_waiters(self):
        """Several waiters should all observe the same settlement."""
        barrier = ReadinessBarrier()
        barrier.add_publish(asyncio.create_task(succeed("a")))

        results = await asyncio.gather(barrier.wait(), barrier.wait(), barrier.wait())

        assert results == [True, True, True]

    @pytest.mark.asyncio
    async def test_reset(self):
        """reset() should replace the operation sets with empty ones."""
        barrier = ReadinessBarrier()
        task = asyncio.create_task(succeed("a"))
        barrier.add_publish(task)

        barrier.reset()

        assert barrier.publish_operations == set()
        assert barrier.bundle_operations == set()
        await task

    @pytest.mark.asyncio
    async def test_settled_operations_are_dropped(self):
        """Adding an operation should drop the ones that already settled."""
        barrier = ReadinessBarrier()
        for value in ("a", "b", "c"):
            task = asyncio.create_task(succeed(value, delay=0))
            barrier.add_bundle(task)
            await task

        pending = asyncio.create_task(succeed("d"))
        barrier.add_bundle(pending)

        assert barrier.bundle_operations == {pending}
        assert await barrier.wait() is True


class TestOperationHandle:
    """Tests for OperationHandle."""

    @pytest.mark.asyncio
    async def test_empty(self):
        """An empty handle should resolve to an empty dict."""
        handle = OperationHandle()
        assert handle.done()
        assert await handle == {}

    @pytest.mark.asyncio
    async def test_results_by_key(self):
        """Results should be keyed like the tasks."""
        handle = OperationHandle(
            {"js": asyncio.create_task(succeed("h1")), "css": asyncio.create_task(succeed("h2"))}
        )
        assert await handle == {"js": "h1", "css": "h2"}

    @pytest.mark.asyncio
    async def test_failure_raised_after_siblings_settle(self):
        """The first failure should be raised without cancelling siblings."""
        sibling = asyncio.create_task(succeed("ok", delay=0.05))
        handle = OperationHandle({"js": asyncio.create_task(fail("boom")), "css": sibling})

        with pytest.raises(RuntimeError, match="boom"):
            await handle

        assert sibling.done()
        assert not sibling.cancelled()
        assert sibling.result() == "ok"

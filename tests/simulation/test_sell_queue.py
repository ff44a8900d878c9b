"""Tests for the sell-directive stream consumer."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from token_trust_tracker.fetch import RetryPolicy
from token_trust_tracker.simulation import SellDirective, SellQueueConsumer, publish

STREAM = "sell-directives"
GROUP = "trackers"
PAYLOAD = json.dumps({"tokenAddress": "Mint", "amount": 5, "sell_recommender_id": "rec-1"})


def make_consumer(redis: AsyncMock, handler: AsyncMock, *, prefetch: int = 10) -> SellQueueConsumer:
    return SellQueueConsumer(
        redis,
        handler,
        stream=STREAM,
        group=GROUP,
        consumer="worker-1",
        prefetch=prefetch,
        block_ms=10,
    )


class TestSellDirective:
    """Tests for directive parsing."""

    def test_from_json(self) -> None:
        directive = SellDirective.from_json(PAYLOAD)

        assert directive == SellDirective(token_address="Mint", amount=5.0, sell_recommender_id="rec-1")

    def test_to_json_keys(self) -> None:
        assert json.loads(SellDirective("Mint", 5.0, "rec-1").to_json()) == json.loads(PAYLOAD)

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[1, 2]", json.dumps({"tokenAddress": "Mint", "amount": 1})],
    )
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(ValueError):
            SellDirective.from_json(raw)

    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        redis = AsyncMock()
        redis.xadd.return_value = b"1-0"

        entry_id = await publish(redis, STREAM, SellDirective("Mint", 5.0, "rec-1"))

        assert entry_id == "1-0"
        stream, fields = redis.xadd.await_args.args
        assert stream == STREAM
        assert json.loads(fields["payload"])["tokenAddress"] == "Mint"


class TestConsumerGroup:
    """Tests for consumer-group creation."""

    @pytest.mark.asyncio
    async def test_creates_group_with_stream(self) -> None:
        redis = AsyncMock()

        await make_consumer(redis, AsyncMock()).ensure_group()

        redis.xgroup_create.assert_awaited_once_with(STREAM, GROUP, id="0", mkstream=True)

    @pytest.mark.asyncio
    async def test_existing_group_is_ignored(self) -> None:
        redis = AsyncMock()
        redis.xgroup_create.side_effect = ResponseError("BUSYGROUP Consumer Group name already exists")

        await make_consumer(redis, AsyncMock()).ensure_group()

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self) -> None:
        redis = AsyncMock()
        redis.xgroup_create.side_effect = ResponseError("WRONGTYPE")

        with pytest.raises(ResponseError):
            await make_consumer(redis, AsyncMock()).ensure_group()


class TestDispatch:
    """Tests for handling and acknowledging entries."""

    @pytest.mark.asyncio
    async def test_redrive_pending(self) -> None:
        redis = AsyncMock()
        redis.xreadgroup.side_effect = [
            [[STREAM.encode(), [(b"1-0", {b"payload": PAYLOAD.encode()})]]],
            [[STREAM.encode(), []]],
        ]
        handler = AsyncMock()
        consumer = make_consumer(redis, handler)

        count = await consumer.redrive_pending()
        await consumer.drain()

        assert count == 1
        handler.assert_awaited_once_with(SellDirective("Mint", 5.0, "rec-1"))
        redis.xack.assert_awaited_once_with(STREAM, GROUP, b"1-0")
        first_read, second_read = redis.xreadgroup.await_args_list
        assert first_read.args[2] == {STREAM: "0"}
        assert second_read.args[2] == {STREAM: "1-0"}

    @pytest.mark.asyncio
    async def test_malformed_payload_is_acknowledged(self) -> None:
        redis = AsyncMock()
        handler = AsyncMock()
        consumer = make_consumer(redis, handler)

        await consumer._dispatch(b"2-0", {b"payload": b"not json"})
        await consumer._dispatch(b"3-0", {b"other": b"x"})
        await consumer.drain()

        handler.assert_not_awaited()
        assert [c.args[2] for c in redis.xack.await_args_list] == [b"2-0", b"3-0"]

    @pytest.mark.asyncio
    async def test_handler_failure_is_acknowledged(self) -> None:
        redis = AsyncMock()
        consumer = make_consumer(redis, AsyncMock(side_effect=RuntimeError("boom")))

        await consumer._dispatch("4-0", {"payload": PAYLOAD})
        await consumer.drain()

        redis.xack.assert_awaited_once_with(STREAM, GROUP, "4-0")
        assert consumer.in_flight == 0

    @pytest.mark.asyncio
    async def test_prefetch_bounds_concurrency(self) -> None:
        redis = AsyncMock()
        release = asyncio.Event()
        active = 0
        peak = 0

        async def handler(directive: SellDirective) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1

        consumer = make_consumer(redis, handler, prefetch=2)
        await consumer._dispatch("1-0", {"payload": PAYLOAD})
        await consumer._dispatch("2-0", {"payload": PAYLOAD})
        third = asyncio.create_task(consumer._dispatch("3-0", {"payload": PAYLOAD}))
        await asyncio.sleep(0.01)

        assert not third.done()
        release.set()
        await third
        await consumer.drain()
        assert peak == 2
        assert redis.xack.await_count == 3

    @pytest.mark.asyncio
    async def test_run_until_stopped(self) -> None:
        redis = AsyncMock()
        stop_event = asyncio.Event()
        handler = AsyncMock()

        async def read(group: str, consumer: str, streams: dict[str, str], **kwargs: Any) -> Any:
            if streams[STREAM] == ">":
                stop_event.set()
                return [[STREAM.encode(), [(b"5-0", {b"payload": PAYLOAD.encode()})]]]
            return []

        redis.xreadgroup.side_effect = read

        await make_consumer(redis, handler).run(stop_event)

        redis.xgroup_create.assert_awaited_once()
        handler.assert_awaited_once()
        redis.xack.assert_awaited_once_with(STREAM, GROUP, b"5-0")


class TestReadErrors:
    """Tests for recovering from Redis failures while consuming."""

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self) -> None:
        redis = AsyncMock()
        stop_event = asyncio.Event()
        handler = AsyncMock()
        errors: list[Exception] = []
        new_reads = 0

        async def read(group: str, consumer: str, streams: dict[str, str], **kwargs: Any) -> Any:
            nonlocal new_reads
            if streams[STREAM] != ">":
                return []
            new_reads += 1
            if new_reads == 1:
                raise RedisConnectionError("connection reset")
            stop_event.set()
            return [[STREAM.encode(), [(b"6-0", {b"payload": PAYLOAD.encode()})]]]

        redis.xreadgroup.side_effect = read
        consumer = SellQueueConsumer(
            redis,
            handler,
            stream=STREAM,
            group=GROUP,
            consumer="worker-1",
            block_ms=10,
            retry_policy=RetryPolicy(initial_delay=0.01, max_delay=0.01),
            on_error=errors.append,
        )

        await asyncio.wait_for(consumer.run(stop_event), timeout=1)

        handler.assert_awaited_once_with(SellDirective("Mint", 5.0, "rec-1"))
        redis.xack.assert_awaited_once_with(STREAM, GROUP, b"6-0")
        assert consumer.read_errors == 1
        assert [str(e) for e in errors] == ["connection reset"]
        assert redis.xgroup_create.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_interrupts_backoff(self) -> None:
        redis = AsyncMock()
        redis.xreadgroup.side_effect = RedisConnectionError("down")
        stop_event = asyncio.Event()
        consumer = SellQueueConsumer(
            redis,
            AsyncMock(),
            stream=STREAM,
            group=GROUP,
            consumer="worker-1",
            retry_policy=RetryPolicy(initial_delay=60.0, max_delay=60.0),
        )

        task = asyncio.create_task(consumer.run(stop_event))
        await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

        assert consumer.read_errors == 1

    @pytest.mark.asyncio
    async def test_entry_in_flight_is_not_dispatched_twice(self) -> None:
        redis = AsyncMock()
        release = asyncio.Event()
        handled: list[SellDirective] = []

        async def handler(directive: SellDirective) -> None:
            handled.append(directive)
            await release.wait()

        consumer = make_consumer(redis, handler)

        await consumer._dispatch(b"7-0", {b"payload": PAYLOAD.encode()})
        await consumer._dispatch(b"7-0", {b"payload": PAYLOAD.encode()})
        release.set()
        await consumer.drain()

        assert len(handled) == 1
        redis.xack.assert_awaited_once_with(STREAM, GROUP, b"7-0")

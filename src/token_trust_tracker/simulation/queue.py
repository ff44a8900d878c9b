"""Sell-directive queue on Redis Streams.

Directives are stream entries with a single `payload` field holding JSON
`{"tokenAddress": str, "amount": number, "sell_recommender_id": str}`.
Entries are acknowledged only after the handler returns (or fails), giving
at-least-once delivery. On start the consumer first re-drives entries it
read but never acknowledged, then reads new ones.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError, ResponseError

from token_trust_tracker.fetch.client import RetryPolicy, calculate_delay

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from token_trust_tracker.config import SimulationSettings

logger = logging.getLogger(__name__)

PAYLOAD_FIELD = "payload"

MessageHandler = Callable[["SellDirective"], Awaitable[Any]]
ErrorCallback = Callable[[Exception], None]

# Backoff between failed stream reads; retries never run out.
READ_RETRY_POLICY = RetryPolicy(initial_delay=1.0, max_delay=30.0, backoff_factor=2.0)


@dataclass(frozen=True)
class SellDirective:
    token_address: str
    amount: float
    sell_recommender_id: str

    @classmethod
    def from_json(cls, raw: str | bytes) -> SellDirective:
        """Parse a directive.

        Raises:
            ValueError: If the payload is not valid JSON or misses a field.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Sell directive must be a JSON object")
        try:
            return cls(
                token_address=str(data["tokenAddress"]),
                amount=float(data["amount"]),
                sell_recommender_id=str(data["sell_recommender_id"]),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid sell directive: {e}") from e

    def to_json(self) -> str:
        return json.dumps(
            {
                "tokenAddress": self.token_address,
                "amount": self.amount,
                "sell_recommender_id": self.sell_recommender_id,
            }
        )


async def publish(redis: Redis, stream: str, directive: SellDirective) -> str:
    """Append a directive to the stream and return its entry id."""
    entry_id = await redis.xadd(stream, {PAYLOAD_FIELD: directive.to_json()})
    return entry_id.decode() if isinstance(entry_id, bytes) else str(entry_id)


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class SellQueueConsumer:
    """Consumer-group reader dispatching directives to a handler.

    Up to `prefetch` directives are handled concurrently.
    """

    def __init__(
        self,
        redis: Redis,
        handler: MessageHandler,
        *,
        stream: str,
        group: str,
        consumer: str,
        prefetch: int = 10,
        block_ms: int = 5000,
        retry_policy: RetryPolicy | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._redis = redis
        self._handler = handler
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._prefetch = prefetch
        self._block_ms = block_ms
        self._semaphore = asyncio.Semaphore(prefetch)
        self._tasks: set[asyncio.Task[None]] = set()
        self._handling: set[str] = set()
        self._retry_policy = retry_policy or READ_RETRY_POLICY
        self._on_error = on_error
        self.read_errors = 0

    @classmethod
    def from_settings(
        cls,
        settings: SimulationSettings,
        redis: Redis,
        handler: MessageHandler,
        *,
        on_error: ErrorCallback | None = None,
    ) -> SellQueueConsumer:
        return cls(
            redis,
            handler,
            stream=settings.stream,
            group=settings.consumer_group,
            consumer=settings.consumer_name,
            prefetch=settings.prefetch,
            block_ms=settings.block_ms,
            on_error=on_error,
        )

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def _read(self, last_id: str, *, block: int | None) -> list[tuple[Any, Any]]:
        response = await self._redis.xreadgroup(
            self._group,
            self._consumer,
            {self._stream: last_id},
            count=self._prefetch,
            block=block,
        )
        entries: list[tuple[Any, Any]] = []
        for _stream, stream_entries in response or []:
            entries.extend(stream_entries)
        return entries

    async def redrive_pending(self) -> int:
        """Dispatch entries delivered to this consumer but never acknowledged."""
        count = 0
        cursor = "0"
        while True:
            entries = await self._read(cursor, block=None)
            if not entries:
                break
            for entry_id, fields in entries:
                await self._dispatch(entry_id, fields)
                cursor = _text(entry_id)
                count += 1
        if count:
            logger.info("Re-driving %d pending sell directives", count)
        return count

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume until `stop_event` is set, then wait for in-flight handlers.

        Redis errors never end the loop: the failure is logged and reported to
        `on_error`, the consumer backs off, then re-creates the group and reads again.
        """
        attempt = 0
        group_ready = False
        redriven = False
        try:
            while not stop_event.is_set():
                try:
                    if not group_ready:
                        await self.ensure_group()
                        group_ready = True
                    if not redriven:
                        await self.redrive_pending()
                        redriven = True
                    for entry_id, fields in await self._read(">", block=self._block_ms):
                        await self._dispatch(entry_id, fields)
                    attempt = 0
                except RedisError as e:
                    attempt += 1
                    group_ready = False
                    self.read_errors += 1
                    if self._on_error is not None:
                        self._on_error(e)
                    delay = calculate_delay(attempt, self._retry_policy)
                    logger.warning("Sell-directive read failed: %s. Retrying in %.1f seconds...", e, delay)
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(stop_event.wait(), timeout=delay)
        finally:
            await self.drain()

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _dispatch(self, entry_id: Any, fields: Any) -> None:
        key = _text(entry_id)
        if key in self._handling:
            logger.debug("Sell directive %s is already being handled", key)
            return
        await self._semaphore.acquire()
        self._handling.add(key)
        task = asyncio.create_task(self._handle(entry_id, fields))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, entry_id: Any, fields: Any) -> None:
        try:
            raw = (fields or {}).get(PAYLOAD_FIELD.encode()) or (fields or {}).get(PAYLOAD_FIELD)
            if raw is None:
                logger.error("Sell directive %s has no payload", _text(entry_id))
                return
            directive = SellDirective.from_json(raw)
            logger.info("Received sell directive for %s: %s", directive.token_address, directive.amount)
            await self._handler(directive)
        except ValueError as e:
            logger.error("Discarding malformed sell directive %s: %s", _text(entry_id), e)
        except Exception:
            logger.exception("Error processing sell directive %s", _text(entry_id))
        finally:
            try:
                await self._redis.xack(self._stream, self._group, entry_id)
            except Exception as e:
                logger.warning("Failed to acknowledge sell directive %s: %s", _text(entry_id), e)
            finally:
                self._handling.discard(_text(entry_id))
                self._semaphore.release()

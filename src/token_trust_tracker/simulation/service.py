"""Simulated selling orchestrator.

Starts one monitoring process per token that still has a simulated balance,
and settles sells delivered on the sell-directive queue. A token is tracked
in the running set from a successful process start until its sell settles.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import SimulationSettings
from token_trust_tracker.simulation.queue import SellDirective, SellQueueConsumer
from token_trust_tracker.simulation.running import RunningProcessSet
from token_trust_tracker.storage.repos import RecommenderDTO
from token_trust_tracker.trust.models import SellDetails

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from token_trust_tracker.backends.process_control import ProcessControlClient
    from token_trust_tracker.storage.repos import TokenPerformanceDTO
    from token_trust_tracker.storage.trust_db import TrustScoreDatabase
    from token_trust_tracker.trust.manager import TrustScoreManager
    from token_trust_tracker.trust.models import SellDetailsData

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    """Service lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class ServiceStats:
    """Statistics for the selling service."""

    started_at: datetime | None = None
    scans_completed: int = 0
    processes_started: int = 0
    sells_executed: int = 0
    sells_skipped: int = 0
    errors: int = 0
    last_error: str | None = None


class SimulationSellingService:
    """Queue- and scan-driven simulated selling.

    Example:
        ```python
        service = SimulationSellingService(manager, db, process_control=sonar, redis=redis,
                                           wallet_address=wallet)
        async with service:
            ...
        ```
    """

    def __init__(
        self,
        manager: TrustScoreManager,
        db: TrustScoreDatabase,
        *,
        process_control: ProcessControlClient | None = None,
        redis: Redis | None = None,
        wallet_address: str = "",
        settings: SimulationSettings | None = None,
        running: RunningProcessSet | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            manager: Trust engine used to settle sells.
            db: Persistence collaborator.
            process_control: Monitoring backend; without it no process is started.
            redis: Redis client for the sell-directive stream; without it the queue is not consumed.
            wallet_address: Wallet passed to the monitoring backend.
            settings: Queue and scan settings.
            running: Running-process set (one is created if omitted).
        """
        self._manager = manager
        self._db = db
        self._process_control = process_control
        self._redis = redis
        self._wallet_address = wallet_address
        self._settings = settings or SimulationSettings()
        self._running = running or RunningProcessSet()

        self._state = ServiceState.STOPPED
        self._stats = ServiceStats()
        self._stop_event: asyncio.Event | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._scan_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def stats(self) -> ServiceStats:
        return self._stats

    @property
    def running_processes(self) -> RunningProcessSet:
        return self._running

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    async def start(self) -> None:
        """Register with the trust engine, scan once, and start the background tasks.

        Raises:
            RuntimeError: If the service is already running.
        """
        if self._state != ServiceState.STOPPED:
            raise RuntimeError(f"Cannot start service in state {self._state}")

        self._state = ServiceState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting simulation selling service...")

        try:
            self._manager.set_position_opened_callback(self.process_token_performance)
            if self._process_control is None:
                logger.warning("Process-control backend not configured; monitoring processes are disabled")
            await self.scan_and_start()

            if self._redis is not None:
                consumer = SellQueueConsumer.from_settings(
                    self._settings, self._redis, self.process_message, on_error=self._record_error
                )
                self._consumer_task = asyncio.create_task(consumer.run(self._stop_event))
            else:
                logger.warning("Redis not configured; sell-directive queue is disabled")

            if self._settings.scan_interval_seconds > 0:
                self._scan_task = asyncio.create_task(self._run_scan_loop())

            self._stats.started_at = datetime.now(UTC)
            self._state = ServiceState.RUNNING
            logger.info("Simulation selling service started")
        except Exception as e:
            self._state = ServiceState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start simulation selling service: %s", e)
            await self._stop_background_tasks()
            self._manager.set_position_opened_callback(None)
            raise

    async def stop(self) -> None:
        if self._state == ServiceState.STOPPED:
            return

        self._state = ServiceState.STOPPING
        logger.info("Stopping simulation selling service...")
        if self._stop_event:
            self._stop_event.set()
        await self._stop_background_tasks()
        self._manager.set_position_opened_callback(None)
        self._state = ServiceState.STOPPED
        logger.info("Simulation selling service stopped")

    async def _stop_background_tasks(self) -> None:
        for task in (self._consumer_task, self._scan_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self._record_error(e)
                logger.error("Background task failed before shutdown: %s", e)
        self._consumer_task = None
        self._scan_task = None

    def _record_error(self, error: Exception) -> None:
        self._stats.errors += 1
        self._stats.last_error = str(error)

    async def run(self) -> None:
        """Start the service and run until stopped or cancelled."""
        await self.start()
        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def _run_scan_loop(self) -> None:
        if not self._stop_event:
            return
        interval = self._settings.scan_interval_seconds
        while not self._stop_event.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break
                except TimeoutError:
                    pass
                await self.scan_and_start()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._stats.errors += 1
                self._stats.last_error = str(e)
                logger.exception("Scan-and-start failed")

    # Scan-and-start

    async def scan_and_start(self) -> int:
        """Start monitoring every token with a balance that is not already running.

        Returns:
            Number of processes started.
        """
        performances = await self._db.get_all_token_performances_with_balance()
        candidates = [p for p in performances if p.token_address not in self._running]
        results = await asyncio.gather(*(self._start_for_scan(p) for p in candidates), return_exceptions=True)
        self._stats.scans_completed += 1
        started = 0
        for perf, result in zip(candidates, results):
            if isinstance(result, Exception):
                self._record_error(result)
                logger.error("Failed to start monitoring for %s: %s", perf.token_address, result)
            elif result is True:
                started += 1
        logger.info("Scan found %d tokens with balance, started %d processes", len(performances), started)
        return started

    async def _start_for_scan(self, performance: TokenPerformanceDTO) -> bool:
        recommendations = await self._db.get_recommendations_by_token(performance.token_address)
        if not recommendations:
            logger.warning("No recommendation found for %s; not monitoring", performance.token_address)
            return False
        return await self._start_process(performance, recommendations[0].recommender_id)

    async def process_token_performance(self, token_address: str, recommender_id: str) -> bool:
        """Start monitoring a single token after a buy was recorded."""
        try:
            performance = await self._db.get_token_performance(token_address)
            if performance is None:
                return False
            return await self._start_process(performance, recommender_id)
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Error getting token performance for %s: %s", token_address, e)
            return False

    async def _start_process(self, performance: TokenPerformanceDTO, recommender_id: str) -> bool:
        if self._process_control is None:
            return False
        address = performance.token_address
        if not await self._running.claim(address):
            logger.debug("Monitoring process already running for %s", address)
            return False

        result: Any = None
        try:
            result = await self._process_control.start_process(
                address,
                performance.balance,
                True,
                recommender_id,
                performance.initial_market_cap,
                self._wallet_address,
            )
        finally:
            if result is None:
                await self._running.release(address)
        if result is None:
            logger.warning("Failed to start monitoring process for %s", address)
            return False
        self._stats.processes_started += 1
        return True

    # Queue-driven sell

    async def process_message(self, directive: SellDirective) -> SellDetailsData | None:
        """Handle one sell directive; never raises for a failed sell."""
        performance = await self._db.get_token_performance(directive.token_address)
        if performance is None:
            logger.warning("No token performance for %s; ignoring sell directive", directive.token_address)
            return None
        recommender = RecommenderDTO(id=directive.sell_recommender_id, address=directive.sell_recommender_id)
        return await self.execute_sell(directive.token_address, directive.amount, recommender)

    async def execute_sell(
        self,
        token_address: str,
        amount: float,
        recommender: RecommenderDTO,
    ) -> SellDetailsData | None:
        logger.info("Executing sell for token %s: %s", token_address, amount)
        try:
            result = await self._manager.update_sell_details(
                SellDetails(
                    token_address=token_address,
                    amount=amount,
                    recommender=recommender,
                    timestamp=datetime.now(UTC),
                    is_simulation=True,
                )
            )
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.exception("Error executing sell for token %s", token_address)
            return None

        if result is None:
            self._stats.sells_skipped += 1
            return None

        self._stats.sells_executed += 1
        if self._process_control is not None:
            await self._process_control.stop_process(token_address)
        await self._running.release(token_address)
        return result

    async def __aenter__(self) -> SimulationSellingService:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

"""Simulated selling orchestrator."""

from token_trust_tracker.simulation.queue import SellDirective, SellQueueConsumer, publish
from token_trust_tracker.simulation.running import RunningProcessSet
from token_trust_tracker.simulation.service import (
    ServiceState,
    ServiceStats,
    SimulationSellingService,
)

__all__ = [
    "RunningProcessSet",
    "SellDirective",
    "SellQueueConsumer",
    "ServiceState",
    "ServiceStats",
    "SimulationSellingService",
    "publish",
]

"""Outbound collaborators: analytics mirror and process-control backend."""

from token_trust_tracker.backends.analytics import TrustScoreBackendClient
from token_trust_tracker.backends.process_control import ProcessControlClient

__all__ = ["ProcessControlClient", "TrustScoreBackendClient"]

"""Concurrency-safe membership set of tokens with a running monitoring process."""

from __future__ import annotations

import asyncio


class RunningProcessSet:
    """Set of token addresses guarded by an asyncio lock.

    `claim` is an atomic check-and-insert: of several concurrent claims for the
    same address exactly one succeeds.
    """

    def __init__(self) -> None:
        self._tokens: set[str] = set()
        self._lock = asyncio.Lock()

    async def claim(self, token_address: str) -> bool:
        """Mark a token as running; False if it already was."""
        async with self._lock:
            if token_address in self._tokens:
                return False
            self._tokens.add(token_address)
            return True

    async def release(self, token_address: str) -> bool:
        """Mark a token as idle; False if it was not running."""
        async with self._lock:
            if token_address not in self._tokens:
                return False
            self._tokens.discard(token_address)
            return True

    def __contains__(self, token_address: object) -> bool:
        return token_address in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._tokens)

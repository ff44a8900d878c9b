"""Wallet provider: portfolio valuation and report for the configured wallet."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from token_trust_tracker.providers.base import ProviderTtls

if TYPE_CHECKING:
    from token_trust_tracker.providers.birdeye import BirdeyeClient
    from token_trust_tracker.providers.models import Prices, WalletPortfolio, WalletPortfolioItem

logger = logging.getLogger(__name__)

WALLET_REPORT_FALLBACK = "Unable to fetch wallet information. Please try again later."


class WalletProvider:
    def __init__(self, wallet_address: str, birdeye: BirdeyeClient, *, ttls: ProviderTtls | None = None) -> None:
        self.wallet_address = wallet_address
        self._birdeye = birdeye
        self._ttls = ttls or ProviderTtls()

    async def fetch_portfolio_value(self) -> WalletPortfolio:
        return await self._birdeye.fetch_portfolio_value(
            self.wallet_address,
            chain="solana",
            expires=self._ttls.portfolio,
        )

    async def fetch_prices(self) -> Prices:
        return await self._birdeye.fetch_prices(expires=self._ttls.price)

    async def get_tokens_in_wallet(self) -> list[WalletPortfolioItem]:
        portfolio = await self.fetch_portfolio_value()
        return list(portfolio.items)

    async def get_token_from_wallet(self, symbol: str) -> str | None:
        """Address of the first held token with the given symbol, or None."""
        try:
            items = await self.get_tokens_in_wallet()
        except Exception as e:
            logger.error("Error checking token %s in wallet: %s", symbol, e)
            return None
        for item in items:
            if item.symbol == symbol:
                return item.address
        return None

    def format_portfolio(self, portfolio: WalletPortfolio, prices: Prices) -> str:
        output = f"Wallet Address: {self.wallet_address}\n\n"
        output += f"Total Value: ${portfolio.total_usd:.2f} ({portfolio.total_sol} SOL)\n\n"
        output += "Token Balances:\n"

        non_zero = [item for item in portfolio.items if item.ui_amount > 0]
        if not non_zero:
            output += "No tokens found with non-zero balance\n"
        for item in non_zero:
            output += (
                f"{item.name} ({item.symbol}): {item.ui_amount:.6f} "
                f"(${item.value_usd:.2f} | {item.value_sol} SOL)\n"
            )

        output += "\nMarket Prices:\n"
        output += f"SOL: ${prices.solana:.2f}\n"
        output += f"BTC: ${prices.bitcoin:.2f}\n"
        output += f"ETH: ${prices.ethereum:.2f}\n"
        return output

    async def get_formatted_portfolio(self) -> str:
        """Human-readable portfolio report, or a fixed fallback message on any failure."""
        try:
            portfolio = await self.fetch_portfolio_value()
            prices = await self.fetch_prices()
            return self.format_portfolio(portfolio, prices)
        except Exception:
            logger.exception("Error generating portfolio report for %s", self.wallet_address)
            return WALLET_REPORT_FALLBACK

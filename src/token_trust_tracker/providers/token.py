"""Token provider: aggregates provider adapters into ProcessedTokenData.

The provider is stateless with respect to tokens; every operation takes the
token address. Each adapter call carries the TTL configured for its kind of
data (short for trade and price data, long for static metadata).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from token_trust_tracker.providers.base import ProviderTtls
from token_trust_tracker.providers.models import (
    CalculatedBuyAmounts,
    HighValueHolder,
    HolderData,
    Prices,
    ProcessedTokenData,
    TokenSecurity,
    TokenTradeData,
)

if TYPE_CHECKING:
    from token_trust_tracker.providers.birdeye import BirdeyeClient
    from token_trust_tracker.providers.codex import CodexClient
    from token_trust_tracker.providers.dexscreener import DexscreenerClient
    from token_trust_tracker.providers.helius import HeliusClient

logger = logging.getLogger(__name__)

TOKEN_REPORT_FALLBACK = "Unable to fetch token information. Please try again later."

HOLDER_TREND_INCREASE_THRESHOLD = 10.0
HOLDER_TREND_DECREASE_THRESHOLD = -10.0
HIGH_VALUE_HOLDER_USD = Decimal("5")
HIGH_SUPPLY_HOLDER_SHARE = Decimal("0.02")
USD_QUANTUM = Decimal("0.01")

MIN_MARKET_CAP_USD = 100_000.0
MIN_LIQUIDITY_USD = 1_000.0
BUY_IMPACT_LOW = 0.01
BUY_IMPACT_MEDIUM = 0.05
BUY_IMPACT_HIGH = 0.10

VOLUME_24H_USD_THRESHOLD = 1_000.0
PRICE_CHANGE_24H_THRESHOLD = 10.0
PRICE_CHANGE_12H_THRESHOLD = 5.0
UNIQUE_WALLET_24H_THRESHOLD = 100
TOP10_HOLDER_PERCENT_THRESHOLD = 0.05


class PriceSource(Protocol):
    async def fetch_prices(self) -> Prices: ...


def analyze_holder_distribution(trade_data: TokenTradeData) -> str:
    """Classify unique-wallet movement as "increasing", "decreasing" or "stable"."""
    changes = [change for change in trade_data.unique_wallet_change_percents if change is not None]
    if not changes:
        return "stable"
    average = sum(changes) / len(changes)
    if average > HOLDER_TREND_INCREASE_THRESHOLD:
        return "increasing"
    if average < HOLDER_TREND_DECREASE_THRESHOLD:
        return "decreasing"
    return "stable"


def filter_high_value_holders(holders: list[HolderData], price: float) -> list[HighValueHolder]:
    """Holders whose position is worth more than $5."""
    token_price = Decimal(str(price))
    result = []
    for holder in holders:
        balance_usd = holder.balance * token_price
        if balance_usd > HIGH_VALUE_HOLDER_USD:
            result.append(HighValueHolder(address=holder.address, balance_usd=balance_usd.quantize(USD_QUANTUM)))
    return result


def count_high_supply_holders(holders: list[HolderData], security: TokenSecurity) -> int:
    """Count holders owning more than 2% of the owner plus creator supply.

    Returns 0 when the supply cannot be determined.
    """
    try:
        total_supply = Decimal(str(security.owner_balance)) + Decimal(str(security.creator_balance))
        return sum(1 for holder in holders if holder.balance / total_supply > HIGH_SUPPLY_HOLDER_SHARE)
    except ArithmeticError as e:
        logger.error("Error counting high supply holders: %s", e)
        return 0


class TokenProvider:
    """Aggregated market view of a token.

    Example:
        ```python
        provider = TokenProvider(birdeye, dexscreener, helius=helius, prices=coingecko)
        report = await provider.get_formatted_token_report(address)
        ```
    """

    def __init__(
        self,
        birdeye: BirdeyeClient,
        dexscreener: DexscreenerClient,
        *,
        helius: HeliusClient | None = None,
        prices: PriceSource | None = None,
        codex: CodexClient | None = None,
        ttls: ProviderTtls | None = None,
    ) -> None:
        """Initialize the token provider.

        Args:
            birdeye: Source of security, overview and trade data.
            dexscreener: Source of trading pairs.
            helius: Holder-list source; without it holder analytics are empty.
            prices: Native price source; defaults to Birdeye.
            codex: Optional source of the scam flag.
            ttls: Cache lifetimes per kind of data.
        """
        self._birdeye = birdeye
        self._dexscreener = dexscreener
        self._helius = helius
        self._prices = prices or birdeye
        self._codex = codex
        self._ttls = ttls or ProviderTtls()

    async def fetch_prices(self) -> Prices:
        return await self._prices.fetch_prices()

    async def fetch_token_security(self, address: str) -> TokenSecurity:
        return await self._birdeye.fetch_token_security(address, chain="solana", expires=self._ttls.security)

    async def fetch_token_trade_data(self, address: str) -> TokenTradeData:
        return await self._birdeye.fetch_token_trade_data(address, chain="solana", expires=self._ttls.trade_data)

    async def fetch_holder_list(self, address: str) -> list[HolderData]:
        if self._helius is None:
            logger.warning("Helius is not configured; holder analytics for %s are empty", address)
            return []
        return await self._helius.fetch_holder_list(address, expires=self._ttls.holders)

    async def fetch_is_scam(self, address: str) -> bool:
        if self._codex is None:
            return False
        try:
            token = await self._codex.fetch_token(address, expires=self._ttls.overview)
        except Exception as e:
            logger.warning("Codex lookup failed for %s: %s", address, e)
            return False
        return token.is_scam

    async def get_processed_token_data(self, address: str) -> ProcessedTokenData:
        """Fetch and combine everything known about a token.

        Raises:
            RequestError: If a required provider fails.
            ProviderError: If a required provider returns an unusable payload.
        """
        security = await self.fetch_token_security(address)
        token = await self._birdeye.fetch_token_overview(address, chain="solana", expires=self._ttls.overview)
        trade_data = await self.fetch_token_trade_data(address)
        dex_data = await self._dexscreener.search(address, expires=self._ttls.pairs)
        holders = await self.fetch_holder_list(address)

        return ProcessedTokenData(
            token=token,
            security=security,
            trade_data=trade_data,
            holder_distribution_trend=analyze_holder_distribution(trade_data),
            high_value_holders=tuple(filter_high_value_holders(holders, trade_data.price)),
            recent_trades=trade_data.volume_24h_usd > 0,
            high_supply_holders_count=count_high_supply_holders(holders, security),
            dex_screener_data=dex_data,
            is_dex_screener_listed=bool(dex_data.pairs),
            is_dex_screener_paid=any(pair.boosts_active > 0 for pair in dex_data.pairs),
            is_scam=await self.fetch_is_scam(address),
        )

    async def calculate_buy_amounts(self, address: str) -> CalculatedBuyAmounts:
        """Suggested buy sizes in SOL at 1%, 5% and 10% of the top pair's liquidity."""
        dex_data = await self._dexscreener.search(address, expires=self._ttls.pairs)
        pair = dex_data.highest_liquidity_pair()
        if pair is None or pair.liquidity_usd == 0 or pair.market_cap < MIN_MARKET_CAP_USD:
            return CalculatedBuyAmounts()

        prices = await self.fetch_prices()
        sol_price = float(prices.solana)
        return CalculatedBuyAmounts(
            none=0.0,
            low=pair.liquidity_usd * BUY_IMPACT_LOW / sol_price,
            medium=pair.liquidity_usd * BUY_IMPACT_MEDIUM / sol_price,
            high=pair.liquidity_usd * BUY_IMPACT_HIGH / sol_price,
        )

    async def should_trade_token(self, address: str) -> bool:
        """Screen a token for trading.

        Tokens without a pair, with thin liquidity, a small market cap or a
        shrinking holder base are rejected. Otherwise any sign of activity
        qualifies the token.
        """
        data = await self.get_processed_token_data(address)
        pair = data.top_pair
        if pair is None:
            return False
        if pair.liquidity_usd < MIN_LIQUIDITY_USD or pair.market_cap < MIN_MARKET_CAP_USD:
            return False
        if data.holder_distribution_trend == "decreasing":
            return False

        trade = data.trade_data
        return (
            trade.volume_24h_usd >= VOLUME_24H_USD_THRESHOLD
            or trade.price_change_24h_percent >= PRICE_CHANGE_24H_THRESHOLD
            or trade.price_change_12h_percent >= PRICE_CHANGE_12H_THRESHOLD
            or trade.unique_wallet_24h >= UNIQUE_WALLET_24H_THRESHOLD
            or data.security.top10_holder_percent >= TOP10_HOLDER_PERCENT_THRESHOLD
        )

    def format_token_data(self, address: str, data: ProcessedTokenData) -> str:
        security = data.security
        trade = data.trade_data
        lines = [
            "**Token Security and Trade Report**",
            f"Token Address: {address}",
            "",
            "**Ownership Distribution:**",
            f"- Owner Balance: {security.owner_balance}",
            f"- Creator Balance: {security.creator_balance}",
            f"- Owner Percentage: {security.owner_percentage}%",
            f"- Creator Percentage: {security.creator_percentage}%",
            f"- Top 10 Holders Balance: {security.top10_holder_balance}",
            f"- Top 10 Holders Percentage: {security.top10_holder_percent}%",
            "",
            "**Trade Data:**",
            f"- Holders: {trade.holder}",
            f"- Unique Wallets (24h): {trade.unique_wallet_24h:g}",
            f"- Price Change (24h): {trade.price_change_24h_percent}%",
            f"- Price Change (12h): {trade.price_change_12h_percent}%",
            f"- Volume (24h USD): ${trade.volume_24h_usd:.2f}",
            f"- Current Price: ${trade.price:.2f}",
            "",
            f"**Holder Distribution Trend:** {data.holder_distribution_trend}",
            "",
            "**High-Value Holders (>$5 USD):**",
        ]
        if data.high_value_holders:
            lines.extend(f"- {holder.address}: ${holder.balance_usd}" for holder in data.high_value_holders)
        else:
            lines.append("- No high-value holders found or data not available.")
        lines += [
            "",
            f"**Recent Trades (Last 24h):** {'Yes' if data.recent_trades else 'No'}",
            "",
            f"**Holders with >2% Supply:** {data.high_supply_holders_count}",
            "",
            f"**DexScreener Listing:** {'Yes' if data.is_dex_screener_listed else 'No'}",
        ]
        if data.is_dex_screener_listed:
            pairs = data.dex_screener_data.pairs
            lines += [
                f"- Listing Type: {'Paid' if data.is_dex_screener_paid else 'Free'}",
                f"- Number of DexPairs: {len(pairs)}",
                "",
                "**DexScreener Pairs:**",
            ]
            for index, pair in enumerate(pairs, start=1):
                lines += [
                    "",
                    f"**Pair {index}:**",
                    f"- DEX: {pair.dex_id}",
                    f"- URL: {pair.url}",
                    f"- Price USD: ${pair.price_usd:.6f}",
                    f"- Volume (24h USD): ${pair.volume_h24:.2f}",
                    f"- Boosts Active: {pair.boosts_active}",
                    f"- Liquidity USD: ${pair.liquidity_usd:.2f}",
                ]
        return "\n".join(lines) + "\n\n"

    async def get_formatted_token_report(self, address: str) -> str:
        """Human-readable token report, or a fixed fallback message on any failure."""
        try:
            data = await self.get_processed_token_data(address)
            return self.format_token_data(address, data)
        except Exception:
            logger.exception("Error generating token report for %s", address)
            return TOKEN_REPORT_FALLBACK

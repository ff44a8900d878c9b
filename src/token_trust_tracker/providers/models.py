"""Normalized market-data models.

Each provider payload is parsed at the adapter boundary into one of these
frozen dataclasses. Absent numeric fields resolve to 0 (or None where the
distinction matters to scoring).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

SOL_ADDRESS = "So11111111111111111111111111111111111111112"
BTC_ADDRESS = "3NZ9JMVBmGAqocybic2c7LQCJScmgsAZ6vQqTDzcqmJh"
ETH_ADDRESS = "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs"
SOLANA_NETWORK_ID = 1399811149


def _float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


@dataclass(frozen=True)
class Prices:
    """USD prices of the reference assets."""

    solana: Decimal
    bitcoin: Decimal
    ethereum: Decimal

    @classmethod
    def from_coingecko(cls, data: dict[str, Any]) -> Prices:
        """Parse a `simple/price` response keyed by coin id."""
        return cls(
            solana=_decimal(data["solana"]["usd"]),
            bitcoin=_decimal(data["bitcoin"]["usd"]),
            ethereum=_decimal(data["ethereum"]["usd"]),
        )

    @classmethod
    def from_birdeye(cls, data: dict[str, Any]) -> Prices:
        """Parse a `multi_price` response keyed by mint address."""
        return cls(
            solana=_decimal(data[SOL_ADDRESS]["value"]),
            bitcoin=_decimal(data[BTC_ADDRESS]["value"]),
            ethereum=_decimal(data[ETH_ADDRESS]["value"]),
        )


@dataclass(frozen=True)
class TokenSecurity:
    """Ownership concentration snapshot for a token."""

    owner_balance: float = 0.0
    creator_balance: float = 0.0
    owner_percentage: float = 0.0
    creator_percentage: float = 0.0
    top10_holder_balance: float = 0.0
    top10_holder_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenSecurity:
        return cls(
            owner_balance=_float(data.get("ownerBalance")),
            creator_balance=_float(data.get("creatorBalance")),
            owner_percentage=_float(data.get("ownerPercentage")),
            creator_percentage=_float(data.get("creatorPercentage")),
            top10_holder_balance=_float(data.get("top10HolderBalance")),
            top10_holder_percent=_float(data.get("top10HolderPercent")),
        )


@dataclass(frozen=True)
class TokenTradeData:
    """Trade activity snapshot for a token."""

    address: str
    price: float = 0.0
    holder: int = 0
    unique_wallet_24h: float = 0.0
    unique_wallet_30m_change_percent: float | None = None
    unique_wallet_1h_change_percent: float | None = None
    unique_wallet_2h_change_percent: float | None = None
    unique_wallet_4h_change_percent: float | None = None
    unique_wallet_8h_change_percent: float | None = None
    unique_wallet_24h_change_percent: float | None = None
    price_change_12h_percent: float = 0.0
    price_change_24h_percent: float = 0.0
    volume_24h: float = 0.0
    volume_24h_usd: float = 0.0
    volume_24h_change_percent: float | None = None
    trade_24h_change_percent: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenTradeData:
        return cls(
            address=str(data.get("address", "")),
            price=_float(data.get("price")),
            holder=int(_float(data.get("holder"))),
            unique_wallet_24h=_float(data.get("unique_wallet_24h")),
            unique_wallet_30m_change_percent=_optional_float(data.get("unique_wallet_30m_change_percent")),
            unique_wallet_1h_change_percent=_optional_float(data.get("unique_wallet_1h_change_percent")),
            unique_wallet_2h_change_percent=_optional_float(data.get("unique_wallet_2h_change_percent")),
            unique_wallet_4h_change_percent=_optional_float(data.get("unique_wallet_4h_change_percent")),
            unique_wallet_8h_change_percent=_optional_float(data.get("unique_wallet_8h_change_percent")),
            unique_wallet_24h_change_percent=_optional_float(data.get("unique_wallet_24h_change_percent")),
            price_change_12h_percent=_float(data.get("price_change_12h_percent")),
            price_change_24h_percent=_float(data.get("price_change_24h_percent")),
            volume_24h=_float(data.get("volume_24h")),
            volume_24h_usd=_float(data.get("volume_24h_usd")),
            volume_24h_change_percent=_optional_float(data.get("volume_24h_change_percent")),
            trade_24h_change_percent=_optional_float(data.get("trade_24h_change_percent")),
        )

    @property
    def unique_wallet_change_percents(self) -> tuple[float | None, ...]:
        """Unique-wallet change over 30m, 1h, 2h, 4h, 8h and 24h windows."""
        return (
            self.unique_wallet_30m_change_percent,
            self.unique_wallet_1h_change_percent,
            self.unique_wallet_2h_change_percent,
            self.unique_wallet_4h_change_percent,
            self.unique_wallet_8h_change_percent,
            self.unique_wallet_24h_change_percent,
        )


@dataclass(frozen=True)
class TokenOverview:
    """Static token metadata."""

    address: str
    symbol: str = ""
    name: str = ""
    decimals: int = 0
    liquidity: float = 0.0
    market_cap: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenOverview:
        return cls(
            address=str(data.get("address", "")),
            symbol=str(data.get("symbol") or ""),
            name=str(data.get("name") or ""),
            decimals=int(_float(data.get("decimals"))),
            liquidity=_float(data.get("liquidity")),
            market_cap=_float(data.get("mc")),
        )


@dataclass(frozen=True)
class DexScreenerPair:
    """A trading pair with known liquidity and market cap."""

    chain_id: str
    dex_id: str
    url: str
    pair_address: str
    base_token_address: str
    base_token_symbol: str
    price_usd: float
    volume_h24: float
    liquidity_usd: float
    market_cap: float
    boosts_active: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DexScreenerPair | None:
        """Parse a pair; pairs missing liquidity or market cap are treated as absent."""
        liquidity = data.get("liquidity") or {}
        liquidity_usd = _optional_float(liquidity.get("usd"))
        market_cap = _optional_float(data.get("marketCap"))
        if liquidity_usd is None or market_cap is None:
            return None
        base_token = data.get("baseToken") or {}
        boosts = data.get("boosts") or {}
        return cls(
            chain_id=str(data.get("chainId", "")),
            dex_id=str(data.get("dexId", "")),
            url=str(data.get("url", "")),
            pair_address=str(data.get("pairAddress", "")),
            base_token_address=str(base_token.get("address", "")),
            base_token_symbol=str(base_token.get("symbol", "")),
            price_usd=_float(data.get("priceUsd")),
            volume_h24=_float((data.get("volume") or {}).get("h24")),
            liquidity_usd=liquidity_usd,
            market_cap=market_cap,
            boosts_active=int(_float(boosts.get("active"))),
        )


@dataclass(frozen=True)
class DexScreenerData:
    """Pair search result."""

    schema_version: str = "1.0.0"
    pairs: tuple[DexScreenerPair, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DexScreenerData:
        parsed = (DexScreenerPair.from_dict(pair) for pair in data.get("pairs") or [])
        return cls(
            schema_version=str(data.get("schemaVersion", "1.0.0")),
            pairs=tuple(pair for pair in parsed if pair is not None),
        )

    def highest_liquidity_pair(self) -> DexScreenerPair | None:
        """Pair with the most liquidity, ties broken by larger market cap."""
        if not self.pairs:
            return None
        return max(self.pairs, key=lambda pair: (pair.liquidity_usd, pair.market_cap))


@dataclass(frozen=True)
class HolderData:
    """Aggregated token balance of one owner."""

    address: str
    balance: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HolderData:
        return cls(address=str(data["address"]), balance=_decimal(data["balance"]))

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "balance": str(self.balance)}


@dataclass(frozen=True)
class HighValueHolder:
    address: str
    balance_usd: Decimal


@dataclass(frozen=True)
class WalletPortfolioItem:
    """A single token holding valued in USD and SOL."""

    address: str
    name: str
    symbol: str
    decimals: int
    balance: Decimal
    ui_amount: Decimal
    price_usd: Decimal
    value_usd: Decimal
    value_sol: Decimal


@dataclass(frozen=True)
class WalletPortfolio:
    total_usd: Decimal
    total_sol: Decimal
    items: tuple[WalletPortfolioItem, ...] = ()


@dataclass(frozen=True)
class CalculatedBuyAmounts:
    """Suggested buy sizes in SOL."""

    none: float = 0.0
    low: float = 0.0
    medium: float = 0.0
    high: float = 0.0


@dataclass(frozen=True)
class ProcessedTokenData:
    """Everything the trust engine needs to know about a token."""

    token: TokenOverview
    security: TokenSecurity
    trade_data: TokenTradeData
    holder_distribution_trend: str
    high_value_holders: tuple[HighValueHolder, ...]
    recent_trades: bool
    high_supply_holders_count: int
    dex_screener_data: DexScreenerData
    is_dex_screener_listed: bool
    is_dex_screener_paid: bool
    is_scam: bool = False

    @property
    def top_pair(self) -> DexScreenerPair | None:
        return self.dex_screener_data.highest_liquidity_pair()

    @property
    def market_cap(self) -> float:
        pair = self.top_pair
        return pair.market_cap if pair else 0.0

    @property
    def liquidity(self) -> float:
        pair = self.top_pair
        return pair.liquidity_usd if pair else 0.0

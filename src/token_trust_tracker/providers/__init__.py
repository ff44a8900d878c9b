"""Market-data provider adapters and composites."""

from token_trust_tracker.providers.base import ProviderClient, ProviderError, ProviderTtls
from token_trust_tracker.providers.birdeye import BirdeyeClient
from token_trust_tracker.providers.codex import CodexClient, CodexToken
from token_trust_tracker.providers.coingecko import CoingeckoClient
from token_trust_tracker.providers.dexscreener import DexscreenerClient
from token_trust_tracker.providers.helius import HeliusClient
from token_trust_tracker.providers.models import (
    BTC_ADDRESS,
    ETH_ADDRESS,
    SOL_ADDRESS,
    SOLANA_NETWORK_ID,
    CalculatedBuyAmounts,
    DexScreenerData,
    DexScreenerPair,
    HighValueHolder,
    HolderData,
    Prices,
    ProcessedTokenData,
    TokenOverview,
    TokenSecurity,
    TokenTradeData,
    WalletPortfolio,
    WalletPortfolioItem,
)
from token_trust_tracker.providers.solana_rpc import SolanaRpcClient
from token_trust_tracker.providers.token import TOKEN_REPORT_FALLBACK, TokenProvider
from token_trust_tracker.providers.wallet import WALLET_REPORT_FALLBACK, WalletProvider

__all__ = [
    "BTC_ADDRESS",
    "ETH_ADDRESS",
    "SOL_ADDRESS",
    "SOLANA_NETWORK_ID",
    "TOKEN_REPORT_FALLBACK",
    "WALLET_REPORT_FALLBACK",
    "BirdeyeClient",
    "CalculatedBuyAmounts",
    "CodexClient",
    "CodexToken",
    "CoingeckoClient",
    "DexScreenerData",
    "DexScreenerPair",
    "DexscreenerClient",
    "HeliusClient",
    "HighValueHolder",
    "HolderData",
    "Prices",
    "ProcessedTokenData",
    "ProviderClient",
    "ProviderError",
    "ProviderTtls",
    "SolanaRpcClient",
    "TokenOverview",
    "TokenProvider",
    "TokenSecurity",
    "TokenTradeData",
    "WalletPortfolio",
    "WalletPortfolioItem",
]

"""Command-line entry point.

Usage:
    token-trust-tracker run
    token-trust-tracker init-db
    token-trust-tracker token-report ADDRESS
    token-trust-tracker portfolio
    token-trust-tracker recommendations --days 7
    token-trust-tracker trust-score RECOMMENDER_ID NAME
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime, timedelta

from token_trust_tracker.app import TrustTrackerApp
from token_trust_tracker.config import Settings, get_settings

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings, verbose: bool = False) -> None:
    """Configure logging for CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.get_logging_level(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="token-trust-tracker",
        description="Recommender trust scoring and simulated token selling",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("run", help="Run the simulated selling service")
    commands.add_parser("init-db", help="Create missing database tables")

    report = commands.add_parser("token-report", help="Print the token analysis report")
    report.add_argument("address", help="Token mint address")

    commands.add_parser("portfolio", help="Print the configured wallet's portfolio")

    recommendations = commands.add_parser("recommendations", help="Summarize recent recommendations")
    recommendations.add_argument("--days", type=int, default=7, help="Look-back window in days (default: 7)")

    trust_score = commands.add_parser("trust-score", help="Print a recommender's trust summary")
    trust_score.add_argument("recommender_id")
    trust_score.add_argument("name")
    return parser


async def _run_command(app: TrustTrackerApp, args: argparse.Namespace) -> int:
    if args.command == "run":
        await app.run()
        return 0

    async with app:
        if args.command == "init-db":
            await app.init_schema()
            print("Database schema initialized")
        elif args.command == "token-report":
            print(await app.token_provider.get_formatted_token_report(args.address))
        elif args.command == "portfolio":
            wallet = app.wallet_provider
            if wallet is None:
                logger.error("SOLANA_PUBLIC_KEY is not configured")
                return 1
            print(await wallet.get_formatted_portfolio())
        elif args.command == "recommendations":
            end = datetime.now(UTC)
            summaries = await app.manager.get_recommendations(end - timedelta(days=args.days), end)
            if not summaries:
                print("No recommendations in range")
            for summary in summaries:
                print(
                    f"{summary.token_address}: trust {summary.average_trust_score:.2f}, "
                    f"risk {summary.average_risk_score:.2f}, "
                    f"consistency {summary.average_consistency_score:.2f}, "
                    f"{len(summary.recommenders)} recommenders"
                )
        elif args.command == "trust-score":
            print(await app.manager.get_formatted_trust_score(args.recommender_id, args.name))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings, verbose=args.verbose)

    try:
        return asyncio.run(_run_command(TrustTrackerApp(settings), args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception("Command failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

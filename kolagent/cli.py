#!/usr/bin/env python3
"""
KOL Agent CLI Tool

Trigger a single pipeline run or inspect prompts without receiving webhooks.
"""

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional
from kolagent.config import get_settings
from kolagent.logging_config import setup_logging, get_logger
from kolagent.orchestration.tasks import build_pipeline
from kolagent.services.prompts import PROMPT_POOL
from kolagent.services.types import TokenIdentity, TransferEvent

logger = get_logger(__name__)

SAMPLE_ADDRESS = "So11111111111111111111111111111111111111112"


def run_once(address: str, amount: Optional[Decimal], dry_run: bool = False) -> int:
    """Run the full pipeline for one address and print the outcome."""
    settings = get_settings()
    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})

    event = TransferEvent(token_address=address, amount_transferred=amount or Decimal("0"))
    outcome = asyncio.run(build_pipeline(settings).run(event))

    print(f"\n{'='*60}")
    print("PIPELINE OUTCOME")
    print(f"{'='*60}")
    print(f"Token:    {outcome.token_address}")
    print(f"Ticker:   {outcome.ticker_symbol or '-'}")
    print(f"Status:   {outcome.status}")
    if outcome.external_id:
        print(f"Post ID:  {outcome.external_id}")
    if outcome.detail:
        print(f"Detail:   {outcome.detail}")
    print(f"{'='*60}\n")

    return 0 if outcome.published else 1


def show_prompts(ticker: str) -> None:
    """Print every template rendered for a sample token."""
    identity = TokenIdentity(address=SAMPLE_ADDRESS, ticker_symbol=ticker, display_name=f"{ticker} Coin")
    for template in PROMPT_POOL:
        print(f"[{template.name}]")
        print(template.render(identity))
        print()


def serve(host: str, port: Optional[int]) -> None:
    import uvicorn

    uvicorn.run("kolagent.main:app", host=host, port=port or get_settings().port)


def _amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value}")


def main():
    parser = argparse.ArgumentParser(
        description="KOL Agent CLI - run the promotion pipeline by hand",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate and log a post without publishing
  kolagent run --address <MINT> --amount 1000 --dry-run

  # Show all prompt templates
  kolagent prompts --ticker FOO

  # Start the webhook server
  kolagent serve --port 3000
        """
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: LOG_LEVEL setting)'
    )
    subparsers = parser.add_subparsers(dest='command')

    run_parser = subparsers.add_parser('run', help='Run the pipeline for one token address')
    run_parser.add_argument('--address', '-a', required=True, help='Token mint address')
    run_parser.add_argument('--amount', type=_amount, help='Amount transferred')
    run_parser.add_argument('--dry-run', action='store_true', help='Log the post instead of publishing')

    prompts_parser = subparsers.add_parser('prompts', help='Print every prompt template')
    prompts_parser.add_argument('--ticker', '-t', default='FOO', help='Sample ticker (default: FOO)')

    serve_parser = subparsers.add_parser('serve', help='Run the webhook server')
    serve_parser.add_argument('--host', default='0.0.0.0')
    serve_parser.add_argument('--port', '-p', type=int, help='Port (default: PORT setting)')

    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.command == 'run':
        sys.exit(run_once(args.address, args.amount, args.dry_run))
    elif args.command == 'prompts':
        show_prompts(args.ticker)
    elif args.command == 'serve':
        serve(args.host, args.port)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()

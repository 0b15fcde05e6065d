# src/main.py — v1
"""CLI entry point — serve, generate, credits commands.

Usage:
    pokefusion serve [--host H] [--port P]
    pokefusion generate <name1> <image1> <name2> <image2> --fusion-name N --user U
    pokefusion credits balance <user>
    pokefusion credits grant <user> <amount>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pokefusion.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args.verbose)
        result = args.func(args, settings)
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
        return int(result)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pokefusion",
        description=f"pokefusion v{__version__} — Multi-provider fusion generator",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    p_serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    p_serve.set_defaults(func=_cmd_serve)

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Run one fusion and print its progress")
    p_gen.add_argument("name_1", help="First Pokémon name")
    p_gen.add_argument("image_1", help="First Pokémon image (URL, data URI or path)")
    p_gen.add_argument("name_2", help="Second Pokémon name")
    p_gen.add_argument("image_2", help="Second Pokémon image (URL, data URI or path)")
    p_gen.add_argument("--fusion-name", required=True, help="Name of the fused creature")
    p_gen.add_argument("--user", default="cli", help="User to charge (default: cli)")
    p_gen.set_defaults(func=_cmd_generate)

    # --- credits ---
    p_credits = subparsers.add_parser("credits", help="Inspect or adjust credit balances")
    credit_sub = p_credits.add_subparsers(dest="credits_command", required=True)

    p_balance = credit_sub.add_parser("balance", help="Show a user's balance")
    p_balance.add_argument("user", help="User id")
    p_balance.set_defaults(func=_cmd_balance)

    p_grant = credit_sub.add_parser("grant", help="Add credits to a user")
    p_grant.add_argument("user", help="User id")
    p_grant.add_argument("amount", type=int, help="Credits to add (> 0)")
    p_grant.add_argument(
        "--reason", choices=["grant", "purchase"], default="grant",
        help="Ledger reason (default: grant)",
    )
    p_grant.add_argument("--note", default="", help="Ledger description")
    p_grant.set_defaults(func=_cmd_grant)

    return parser


def _cmd_serve(args: argparse.Namespace, settings) -> int:
    """Run the FastAPI app under uvicorn."""
    import uvicorn

    from pokefusion.api.server import create_app

    app = create_app(settings)
    logger.info("Serving on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


async def _cmd_generate(args: argparse.Namespace, settings) -> int:
    """Execute one fusion, printing each progress event as it arrives."""
    from pokefusion.api.facade import build_orchestrator
    from pokefusion.core.models import GenerationRequest
    from pokefusion.credits.gate import PaymentRequiredError
    from pokefusion.progress.stream_channel import StreamProgressChannel

    request = GenerationRequest(
        source_image_1=args.image_1,
        source_image_2=args.image_2,
        name_1=args.name_1,
        name_2=args.name_2,
        target_name=args.fusion_name,
    )
    orchestrator = build_orchestrator(settings)
    channel = StreamProgressChannel()

    async def _print_events() -> None:
        async for event in channel.subscribe():
            line = f"  [{event.sequence}] {event.stage}: {event.status}"
            if event.error:
                line += f" ({event.error})"
            print(line)

    printer = asyncio.create_task(_print_events())
    try:
        outcome = await orchestrator.run(request, args.user, channel)
    except PaymentRequiredError as exc:
        printer.cancel()
        print(f"Insufficient credits for {args.user} (balance={exc.balance})")
        return 2
    await printer

    print(f"\nFusion {'fell back' if outcome.is_fallback else 'complete'}:")
    print(f"  Image:   {outcome.final_artifact}")
    print(f"  Saved:   {outcome.saved} (id={outcome.record_id})")
    print(f"  Charged: {outcome.debited}")
    if outcome.message:
        print(f"  Note:    {outcome.message}")
    return 0


async def _cmd_balance(args: argparse.Namespace, settings) -> int:
    """Print a user's balance."""
    from pokefusion.storage.store_factory import create_store

    store = create_store(settings)
    print(f"{args.user}: {await store.balance(args.user)} credit(s)")
    return 0


async def _cmd_grant(args: argparse.Namespace, settings) -> int:
    """Add credits to a user."""
    from pokefusion.credits.gate import CreditGate
    from pokefusion.storage.store_factory import create_store

    gate = CreditGate(create_store(settings), fusion_cost=settings.fusion_cost)
    await gate.grant(args.user, args.amount, reason=args.reason, description=args.note)
    print(f"{args.user}: {await gate.balance(args.user)} credit(s)")
    return 0


def _load_settings(verbose: bool):
    """Load settings and configure logging for CLI usage."""
    from pokefusion.config.settings import load_settings
    from pokefusion.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    return settings


if __name__ == "__main__":
    sys.exit(main())

"""DAO bridge — operator CLI.

Small diagnostics around the webhook pipeline, rendered with Rich:

    python cli.py decode <tx_hash>                 fetch a receipt and show its CogniAction signal
    python cli.py actions                          list the registered action:target pairs
    python cli.py verify <body_file> <signature>   check an Alchemy signature locally

decode needs the full service configuration (EVM_RPC_URL, SIGNAL_CONTRACT,
...). verify only needs ALCHEMY_SIGNING_KEY, or --key.
"""

import argparse
import asyncio
import os
import pathlib
import sys
import time

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from web3 import AsyncWeb3

from config import ConfigError, Settings
from core.registry import build_action_registry
from onchain.alchemy import verify_alchemy_signature
from schemas.signal import Signal
from signals.fetcher import ReceiptSignalFetcher
from signals.validation import SignalValidationError, check_chain_and_dao, ensure_fresh, parse_params

console = Console()


# ── Rendering ─────────────────────────────────────────────────────────────────

def _print_signal(tx_hash: str, signal: Signal, settings: Settings) -> None:
    """Render a decoded signal and the outcome of every validation gate."""
    table = Table(title=f"CogniAction in {tx_hash}", show_lines=True, border_style="bright_black")
    table.add_column("Field", style="bold", min_width=14)
    table.add_column("Value", min_width=40)

    table.add_row("dao", signal.dao)
    table.add_row("chain_id", str(signal.chain_id))
    table.add_row("vcs", signal.vcs.value)
    table.add_row("repo_url", signal.repo_url)
    table.add_row("action", f"[cyan]{signal.action_key}[/cyan]")
    table.add_row("resource", signal.resource)
    table.add_row("nonce", str(signal.nonce))
    table.add_row("deadline", f"{signal.deadline} ({time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime(signal.deadline))} UTC)")
    table.add_row("params_json", signal.params_json or "[dim](empty)[/dim]")
    table.add_row("executor", signal.executor)
    table.add_row("extra", "decoded" if signal.extra_decoded else "[yellow]fallback defaults[/yellow]")

    console.print()
    console.print(table)

    gates = (
        ("chain/DAO", lambda: check_chain_and_dao(signal, settings.chain_id, settings.allowed_dao)),
        ("freshness", lambda: ensure_fresh(signal, require_extra=settings.require_signal_extra)),
        ("params", lambda: parse_params(signal)),
    )
    for name, gate in gates:
        try:
            gate()
        except SignalValidationError as exc:
            console.print(f"  [bold red]✗[/bold red]  {name:<10} {exc}")
        else:
            console.print(f"  [bold green]✓[/bold green]  {name}")
    console.print()


# ── Commands ──────────────────────────────────────────────────────────────────

async def _decode(tx_hash: str) -> int:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        return 2

    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.evm_rpc_url))
    try:
        signal = await ReceiptSignalFetcher(w3.eth).fetch_and_decode(tx_hash, settings.signal_contract)
    finally:
        await w3.provider.disconnect()

    if signal is None:
        console.print(f"[yellow]No CogniAction log from {settings.signal_contract} in {tx_hash}.[/yellow]")
        return 1
    _print_signal(tx_hash, signal, settings)
    return 0


def _actions() -> int:
    registry = build_action_registry()
    table = Table(title="Registered actions", border_style="bright_black")
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Action", style="bold cyan", min_width=22)
    table.add_column("Description")

    for i, meta in enumerate(registry.metadata(), 1):
        table.add_row(str(i), f"{meta['action']}:{meta['target']}", meta["description"])

    console.print()
    console.print(table)
    console.print()
    return 0


def _verify(body_file: str, signature: str, key: str | None) -> int:
    key = key or os.environ.get("ALCHEMY_SIGNING_KEY")
    if not key:
        console.print("[red]No signing key: pass --key or set ALCHEMY_SIGNING_KEY.[/red]")
        return 2

    body = pathlib.Path(body_file).read_bytes()
    if verify_alchemy_signature(body, signature, key):
        console.print(f"[bold green]✓  Signature valid[/bold green] [dim]({len(body)} bytes)[/dim]")
        return 0
    console.print(f"[bold red]✗  Signature invalid[/bold red] [dim]({len(body)} bytes)[/dim]")
    return 1


# ── Entry point ───────────────────────────────────────────────────────────────

def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cli.py", description="DAO bridge operator tools")
    sub = parser.add_subparsers(dest="command", required=True)

    decode = sub.add_parser("decode", help="fetch a transaction and decode its CogniAction signal")
    decode.add_argument("tx_hash")

    sub.add_parser("actions", help="list registered action:target pairs")

    verify = sub.add_parser("verify", help="verify an Alchemy webhook signature")
    verify.add_argument("body_file", help="file holding the exact request body")
    verify.add_argument("signature", help="X-Alchemy-Signature header value")
    verify.add_argument("--key", help="signing key (defaults to ALCHEMY_SIGNING_KEY)")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parser().parse_args(argv)

    if args.command == "decode":
        return asyncio.run(_decode(args.tx_hash))
    if args.command == "actions":
        return _actions()
    return _verify(args.body_file, args.signature, args.key)


if __name__ == "__main__":
    sys.exit(main())

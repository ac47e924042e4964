#!/usr/bin/env python3
"""
pinspire-agent: CLI for the Pinspire autonomous buyer
Browse the marketplace, buy images through x402 and manage the agent wallet.

Usage:
    python -m pinspire_agent.cli info [--json]
    python -m pinspire_agent.cli browse [--json]
    python -m pinspire_agent.cli buy <image_id> [--json]
    python -m pinspire_agent.cli run [--auto]
    python -m pinspire_agent.cli balance [--json]
    python -m pinspire_agent.cli airdrop [--sol 1]
    python -m pinspire_agent.cli wallet [--json]
"""

import argparse
import asyncio
import json as json_lib
import logging
import sys
from typing import List, Optional

import httpx
import structlog
from rich.console import Console
from rich.panel import Panel
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException

from pinspire_agent.buyer.agent import BuyerAgent, PurchaseRecord
from pinspire_agent.config import AgentConfig, get_agent_config
from pinspire_agent.marketplace.client import MarketplaceError
from pinspire_agent.purchase.events import PurchaseEvent
from pinspire_agent.wallet import AgentWallet, load_or_create_wallet

logger = structlog.get_logger()

STATE_STYLES = {
    "initiated": "dim",
    "challenge_received": "yellow",
    "proof_submitted": "cyan",
    "completed": "bold green",
    "failed": "bold red",
}


def configure_logging(level: str = "INFO", fmt: str = "text"):
    """Configure structlog; logs go to stderr so --json output stays clean"""
    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


class AgentCLI:
    """CLI wrapper around BuyerAgent and the wallet"""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        json_output: bool = False,
        wallet: Optional[AgentWallet] = None,
        agent: Optional[BuyerAgent] = None,
        console: Optional[Console] = None,
    ):
        self.config = config or get_agent_config()
        self.json_output = json_output
        self.console = console or Console(quiet=json_output)
        self.wallet = wallet or load_or_create_wallet(self.config)
        self.agent = agent or BuyerAgent.create(self.config, self.wallet, console=self.console)
        self.agent.orchestrator.events.subscribe(self.render_event)

        if self.wallet.generated and not json_output:
            self.show_generated_key()

    def _output(self, data: dict, human_message: str = None):
        """Output data in JSON or human-readable format"""
        if self.json_output:
            print(json_lib.dumps(data, indent=2, default=str))
        elif human_message:
            self.console.print(human_message)

    def render_event(self, event: PurchaseEvent):
        style = STATE_STYLES.get(event.to_state.value, "")
        self.console.print(f"[{style}]  -> {event.to_state.value}[/{style}] [dim]#{event.resource_id}[/dim]")

    def show_generated_key(self):
        self.console.print(
            Panel(
                f"No AGENT_PRIVATE_KEY found, generated a new wallet.\n\n"
                f"[bold]Address:[/bold] {self.wallet.address}\n"
                f"[bold]Private key (save this!):[/bold]\n{self.wallet.export_base58()}\n\n"
                f"Add this to your .env file:\n"
                f"AGENT_PRIVATE_KEY={self.wallet.export_base58()}",
                title="New Wallet",
                border_style="yellow",
            )
        )

    async def info(self) -> int:
        """Show marketplace information"""
        info = await self.agent.discover_marketplace()
        self._output(info.model_dump(mode="json"))
        return 0

    async def browse(self) -> int:
        """List images for sale"""
        result = await self.agent.browse_images()
        if result is None:
            self._output({"error": "browse failed"})
            return 1
        self._output(result.model_dump(mode="json"))
        return 0

    async def buy(self, image_id: str) -> int:
        """Buy a single image"""
        record = await self.agent.purchase_image(image_id)
        self._output(self._record_dict(record))
        return 0 if record.success else 1

    async def run(self, auto: bool = False) -> int:
        """Run the agent, automatically or from an interactive menu"""
        self.console.print(
            Panel(
                f"Target: {self.config.pinspire_api_url}\n"
                f"Agent ID: {self.config.agent_id}\n"
                f"Wallet: {self.wallet.address}",
                title="Pinspire Agent" + (" (auto)" if auto else ""),
                border_style="cyan",
            )
        )
        await self._warn_low_balances()

        if auto:
            await self.agent.run_auto()
        else:
            await self.agent.run_interactive(self.console.input)

        self._output(self.agent.summary())
        return 0

    async def balance(self) -> int:
        """Show wallet balances"""
        balances = await self.wallet.get_balances(self.agent.ledger, self.config.usdc_mint)
        warnings = balances.warnings(self.config.low_sol_warning, self.config.low_usdc_warning)

        if self.json_output:
            self._output({
                "address": self.wallet.address,
                "network": self.config.network,
                "sol_balance": float(balances.sol),
                "usdc_balance": float(balances.usdc),
                "warnings": warnings,
            })
            return 0

        self.console.print(Panel(
            f"[bold]Address:[/bold] {self.wallet.address}\n"
            f"[bold]Network:[/bold] {self.config.network}\n"
            f"[bold]SOL:[/bold] {balances.sol:.4f} SOL\n"
            f"[bold]USDC:[/bold] [green]${balances.usdc:.6f}[/green]",
            title="Wallet",
            border_style="yellow",
        ))
        for warning in warnings:
            self.console.print(f"[yellow]{warning}[/yellow]")
        return 0

    async def airdrop(self, sol: float = 1.0) -> int:
        """Request devnet SOL"""
        if self.config.network != "solana-devnet":
            self._output(
                {"error": "Airdrops are only available on solana-devnet"},
                "[red]Airdrops are only available on solana-devnet[/red]",
            )
            return 1

        signature = await self.wallet.request_airdrop(self.agent.ledger, sol)
        self._output(
            {"address": self.wallet.address, "sol": sol, "signature": signature},
            f"[green]Airdrop confirmed:[/green] {signature}",
        )
        return 0

    async def show_wallet(self) -> int:
        """Show the wallet address, and the key when it was just generated"""
        data = {"address": self.wallet.address, "network": self.config.network, "generated": self.wallet.generated}
        if self.wallet.generated:
            data["private_key"] = self.wallet.export_base58()
        self._output(data, f"[bold]Address:[/bold] {self.wallet.address}")
        return 0

    async def _warn_low_balances(self):
        try:
            balances = await self.wallet.get_balances(self.agent.ledger, self.config.usdc_mint)
        except (SolanaRpcException, RPCException, httpx.HTTPError) as e:
            logger.warning("balance_check_failed", error=str(e))
            self.console.print("[yellow]Could not check balance (network issue?)[/yellow]")
            return

        self.console.print(f"Balances: {balances.sol:.4f} SOL, ${balances.usdc:.6f} USDC")
        for warning in balances.warnings(self.config.low_sol_warning, self.config.low_usdc_warning):
            self.console.print(f"[yellow]{warning}[/yellow]")

    def _record_dict(self, record: PurchaseRecord) -> dict:
        data = {
            "image_id": record.image_id,
            "title": record.title,
            "success": record.success,
            "transaction_hash": record.transaction_hash,
            "error": record.error,
        }
        if record.attempt:
            data["state"] = record.attempt.state.value
            data["events"] = [event.to_dict() for event in record.attempt.events]
            if record.attempt.error:
                data["error_kind"] = record.attempt.error.kind.value
        return data

    async def close(self):
        await self.agent.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pinspire-agent",
        description="Pinspire autonomous buyer: x402 payments on Solana",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pinspire-agent browse --json
  pinspire-agent buy 42
  pinspire-agent run --auto
  pinspire-agent airdrop --sol 0.5
""",
    )

    # Global --json flag
    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format (for scripting/agents)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("info", help="Show marketplace information")
    subparsers.add_parser("browse", help="List images for sale")

    buy_parser = subparsers.add_parser("buy", help="Buy an image")
    buy_parser.add_argument("image_id", help="Image ID")

    run_parser = subparsers.add_parser("run", help="Run the buyer agent")
    run_parser.add_argument("--auto", "-a", action="store_true", help="Buy the first listed image without prompting")

    subparsers.add_parser("balance", help="Show wallet balances")

    airdrop_parser = subparsers.add_parser("airdrop", help="Request devnet SOL")
    airdrop_parser.add_argument("--sol", type=float, default=1.0, help="Amount of SOL")

    subparsers.add_parser("wallet", help="Show (or generate) the agent wallet")

    return parser


async def dispatch(cli: AgentCLI, args: argparse.Namespace) -> int:
    try:
        if args.command == "info":
            return await cli.info()
        elif args.command == "browse":
            return await cli.browse()
        elif args.command == "buy":
            return await cli.buy(args.image_id)
        elif args.command == "run":
            return await cli.run(auto=args.auto)
        elif args.command == "balance":
            return await cli.balance()
        elif args.command == "airdrop":
            return await cli.airdrop(args.sol)
        elif args.command == "wallet":
            return await cli.show_wallet()
        return 1
    except (MarketplaceError, httpx.HTTPError) as e:
        cli._output({"error": str(e)}, f"[red]Marketplace error: {e}[/red]")
        return 1
    except (SolanaRpcException, RPCException) as e:
        cli._output({"error": str(e)}, f"[red]Ledger error: {e}[/red]")
        return 1
    finally:
        await cli.close()


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = get_agent_config()
    configure_logging(config.log_level, config.log_format)

    async def run():
        try:
            wallet = load_or_create_wallet(config)
        except ValueError as e:
            Console(stderr=True).print(f"[red]{e}[/red]")
            return 1
        cli = AgentCLI(config, json_output=args.json, wallet=wallet)
        return await dispatch(cli, args)

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()

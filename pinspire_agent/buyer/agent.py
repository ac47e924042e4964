"""
Pinspire Buyer Agent
Discovers the marketplace, browses images and buys them through x402,
either automatically or from an interactive menu.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import httpx
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pinspire_agent.config import AgentConfig
from pinspire_agent.marketplace.client import MarketplaceClient, MarketplaceError
from pinspire_agent.marketplace.models import BrowseResult, ImageListing, MarketplaceInfo
from pinspire_agent.models import PurchaseAttempt
from pinspire_agent.payments.errors import PurchaseError
from pinspire_agent.payments.ledger import SolanaLedger
from pinspire_agent.payments.processor import PaymentHandler
from pinspire_agent.payments.transaction import SolanaTransactionBuilder
from pinspire_agent.purchase.orchestrator import PurchaseOrchestrator
from pinspire_agent.wallet import AgentWallet

logger = structlog.get_logger()

Prompt = Callable[[str], str]


@dataclass
class PurchaseRecord:
    """Outcome of one purchase as seen by the agent"""
    image_id: str
    title: str
    success: bool
    attempt: Optional[PurchaseAttempt] = None
    error: Optional[str] = None

    @property
    def transaction_hash(self) -> Optional[str]:
        return self.attempt.transaction_hash if self.attempt else None


class BuyerAgent:
    """
    Autonomous buyer:
    1. Discover the marketplace
    2. Browse available images
    3. Buy images (first listed, or chosen interactively)
    4. Keep a purchase history
    """

    def __init__(
        self,
        config: AgentConfig,
        wallet: AgentWallet,
        marketplace: MarketplaceClient,
        orchestrator: PurchaseOrchestrator,
        ledger: Optional[SolanaLedger] = None,
        console: Optional[Console] = None,
    ):
        self.config = config
        self.wallet = wallet
        self.marketplace = marketplace
        self.orchestrator = orchestrator
        self.ledger = ledger
        self.console = console or Console()
        self.purchase_history: List[PurchaseRecord] = []

    @classmethod
    def create(
        cls,
        config: AgentConfig,
        wallet: AgentWallet,
        ledger: Optional[SolanaLedger] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        console: Optional[Console] = None,
    ) -> "BuyerAgent":
        """Wire marketplace client, ledger, payment handler and orchestrator from config"""
        ledger = ledger or SolanaLedger.for_network(config.network, config.rpc_url or None)
        marketplace = MarketplaceClient(
            config.pinspire_api_url,
            agent_id=config.agent_id,
            timeout=config.request_timeout,
            http_client=http_client,
        )
        handler = PaymentHandler(
            ledger,
            SolanaTransactionBuilder(
                compute_unit_price=config.compute_unit_price,
                compute_unit_limit=config.compute_unit_limit,
            ),
        )
        orchestrator = PurchaseOrchestrator(marketplace, handler, wallet)
        return cls(config, wallet, marketplace, orchestrator, ledger=ledger, console=console)

    @property
    def purchase_count(self) -> int:
        return sum(1 for record in self.purchase_history if record.success)

    @property
    def limit_reached(self) -> bool:
        return self.purchase_count >= self.config.max_purchases

    async def discover_marketplace(self) -> MarketplaceInfo:
        """Connect to the marketplace; failures propagate"""
        info = await self.marketplace.get_marketplace_info()
        self.console.print(
            Panel(
                f"[bold]{info.marketplace}[/bold] v{info.version}\n"
                f"Currency: {info.currency}  Network: {info.network}\n"
                f"Price per image: {info.price_per_image}\n"
                f"Features: {len(info.features)} capabilities",
                title="Marketplace",
                border_style="cyan",
            )
        )
        return info

    async def browse_images(self) -> Optional[BrowseResult]:
        """List images for sale, None if the listing cannot be fetched"""
        try:
            result = await self.marketplace.browse_images()
        except (MarketplaceError, httpx.HTTPError) as e:
            logger.error("browse_failed", error=str(e))
            self.console.print(f"[red]Browse failed: {e}[/red]")
            return None

        self.display_images(result.images)
        return result

    def display_images(self, images: List[ImageListing]):
        if not images:
            self.console.print("[yellow]No images available[/yellow]")
            return

        purchased = {record.image_id for record in self.purchase_history if record.success}
        table = Table(title="Available Images", show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Price (USDC)", justify="right", style="green")
        table.add_column("Sales", justify="right")
        table.add_column("Status")

        for i, image in enumerate(images, start=1):
            table.add_row(
                str(i),
                str(image.id),
                image.title,
                f"${image.price}",
                str(image.purchases),
                "[green]purchased[/green]" if str(image.id) in purchased else "",
            )
        self.console.print(table)

    async def purchase_image(self, image_id: Union[int, str], title: str = "") -> PurchaseRecord:
        """
        Fetch image details, then run the x402 purchase.

        Taxonomy and marketplace errors are recorded as a failed purchase;
        unexpected errors propagate.
        """
        key = str(image_id)
        try:
            info = await self.marketplace.get_image_info(key)
            title = info.image.title or title
            logger.info(
                "image_selected",
                image_id=key,
                title=title,
                creator=info.image.creator,
                amount=info.purchase.amount if info.purchase else None,
            )
            attempt = await self.orchestrator.purchase(key)
        except (MarketplaceError, httpx.HTTPError, PurchaseError) as e:
            logger.error("purchase_failed", image_id=key, error=str(e))
            record = PurchaseRecord(image_id=key, title=title, success=False, error=str(e))
            self.purchase_history.append(record)
            return record

        record = PurchaseRecord(
            image_id=key,
            title=title,
            success=attempt.succeeded,
            attempt=attempt,
            error=attempt.error.message if attempt.error else None,
        )
        self.purchase_history.append(record)
        self.display_record(record)
        return record

    def display_record(self, record: PurchaseRecord):
        if not record.success:
            self.console.print(f"[red]Purchase of #{record.image_id} failed: {record.error}[/red]")
            return

        lines = [f"Image: {record.title or record.image_id}"]
        settlement = record.attempt.settlement if record.attempt else None
        if settlement and settlement.transaction and settlement.transaction.hash:
            lines.append(f"Transaction: {settlement.transaction.hash}")
        if settlement and settlement.resource and settlement.resource.url:
            lines.append(f"Image URL: {settlement.resource.url}")
        if settlement and settlement.counterpart and settlement.counterpart.earned_this_sale is not None:
            lines.append(f"Creator earned: ${settlement.counterpart.earned_this_sale}")
        self.console.print(Panel("\n".join(lines), title="Purchase Complete", border_style="green"))

    async def run_auto(self) -> List[PurchaseRecord]:
        """Non-interactive mode: buy the first listed image"""
        await self.discover_marketplace()
        listing = await self.browse_images()
        if not listing or not listing.images:
            self.console.print("[yellow]No images available for purchase. Exiting.[/yellow]")
            return self.purchase_history

        target = listing.images[0]
        self.console.print(f"Selected target: [bold]{target.title}[/bold] (ID: {target.id})")
        await self.purchase_image(target.id, target.title)
        self.display_summary()
        return self.purchase_history

    async def run_interactive(self, prompt: Prompt) -> List[PurchaseRecord]:
        """
        Interactive mode: numbered menu, confirm, repeat.

        Args:
            prompt: Reads one line of user input for a question
        """
        await self.discover_marketplace()
        listing = await self.browse_images()
        if not listing or not listing.images:
            self.console.print("[yellow]No images available for purchase. Exiting.[/yellow]")
            return self.purchase_history

        images = listing.images
        while True:
            answer = prompt("Enter the number of the image to buy (0 to exit): ").strip()
            try:
                selection = int(answer)
            except ValueError:
                self.console.print("[red]Invalid input. Please enter a number.[/red]")
                continue

            if selection == 0:
                break
            if selection < 1 or selection > len(images):
                self.console.print(f"[red]Please enter a number between 1 and {len(images)}.[/red]")
                continue

            image = images[selection - 1]
            self.console.print(f"Selected: [bold]{image.title}[/bold] (ID: {image.id}), price ${image.price} USDC")
            if not _is_yes(prompt("Confirm purchase? (y/n): ")):
                self.console.print("[yellow]Purchase cancelled.[/yellow]")
                continue

            await self.purchase_image(image.id, image.title)

            if self.limit_reached:
                self.console.print(f"[yellow]Reached maximum purchase limit ({self.config.max_purchases}).[/yellow]")
                break
            if not _is_yes(prompt("Purchase another image? (y/n): ")):
                break
            self.display_images(images)

        self.display_summary()
        return self.purchase_history

    def summary(self) -> dict:
        successful = [r for r in self.purchase_history if r.success]
        return {
            "agent_id": self.config.agent_id,
            "wallet": self.wallet.address,
            "attempted": len(self.purchase_history),
            "successful": len(successful),
            "failed": len(self.purchase_history) - len(successful),
            "purchases": [
                {
                    "image_id": r.image_id,
                    "title": r.title,
                    "success": r.success,
                    "transaction_hash": r.transaction_hash,
                    "error": r.error,
                }
                for r in self.purchase_history
            ],
        }

    def display_summary(self):
        data = self.summary()
        self.console.print(
            Panel(
                f"Agent: {data['agent_id']}\n"
                f"Wallet: {data['wallet']}\n"
                f"Attempted: {data['attempted']}  "
                f"Successful: [green]{data['successful']}[/green]  "
                f"Failed: [red]{data['failed']}[/red]",
                title="Agent Summary",
                border_style="blue",
            )
        )
        for i, record in enumerate(self.purchase_history, start=1):
            mark = "[green]ok[/green]" if record.success else "[red]failed[/red]"
            self.console.print(f"  {i}. {mark} [ID:{record.image_id}] {record.title}")

    async def close(self):
        await self.marketplace.close()
        if self.ledger:
            await self.ledger.close()


def _is_yes(answer: str) -> bool:
    return answer.strip().lower() in ("y", "yes")

"""
Purchase lifecycle: orchestrator state machine and transition events
"""

from pinspire_agent.purchase.events import PurchaseEvent, PurchaseEventStream
from pinspire_agent.purchase.orchestrator import PurchaseOrchestrator

__all__ = [
    "PurchaseEvent",
    "PurchaseEventStream",
    "PurchaseOrchestrator",
]

from pinspire_agent.buyer.agent import BuyerAgent, PurchaseRecord

__all__ = ["BuyerAgent", "PurchaseRecord"]

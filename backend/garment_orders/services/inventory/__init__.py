"""Product stock ledger."""

from garment_orders.services.inventory.ledger import InventoryLedger

__all__ = ["InventoryLedger"]

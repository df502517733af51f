"""Domain services: order lifecycle and inventory ledger."""

"""Use-case orchestration over an InventoryStore."""

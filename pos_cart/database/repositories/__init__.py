from .inventory_repo import InventoryRepo

__all__ = ["InventoryRepo"]

from .controller import CartEditorController
from .fields import EditField
from .focus import Direction
from .model import CartLine, WarehouseAllocation

__all__ = ["CartEditorController", "CartLine", "Direction", "EditField", "WarehouseAllocation"]

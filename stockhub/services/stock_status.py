from typing import Protocol

from sqlalchemy import case
from sqlalchemy.sql.elements import ColumnElement

from stockhub.core.outlets import Outlet


class StockStatusPolicy(Protocol):
    name: str
    statuses: tuple[str, ...]

    def derive(self, current_stock: float, reorder_point: float) -> str:
        ...

    def sql_expression(self, current_stock, reorder_point) -> ColumnElement:
        ...


class RetailStockStatus:
    name = "retail"
    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"
    statuses = (IN_STOCK, LOW_STOCK, OUT_OF_STOCK)

    def derive(self, current_stock: float, reorder_point: float) -> str:
        if current_stock <= 0:
            return self.OUT_OF_STOCK
        if current_stock <= (reorder_point or 0):
            return self.LOW_STOCK
        return self.IN_STOCK

    def sql_expression(self, current_stock, reorder_point) -> ColumnElement:
        return case(
            (current_stock <= 0, self.OUT_OF_STOCK),
            (current_stock <= reorder_point, self.LOW_STOCK),
            else_=self.IN_STOCK,
        )


class CentralKitchenStockStatus:
    """Production facility vocabulary: a line is either producible or idle."""

    name = "central_kitchen"
    ACTIVE = "Active"
    MAINTENANCE = "Maintenance"
    statuses = (ACTIVE, MAINTENANCE)

    def derive(self, current_stock: float, reorder_point: float) -> str:
        return self.ACTIVE if current_stock > 0 else self.MAINTENANCE

    def sql_expression(self, current_stock, reorder_point) -> ColumnElement:
        return case((current_stock > 0, self.ACTIVE), else_=self.MAINTENANCE)


_RETAIL = RetailStockStatus()
_CENTRAL_KITCHEN = CentralKitchenStockStatus()


def status_policy_for(outlet: Outlet) -> StockStatusPolicy:
    return _CENTRAL_KITCHEN if outlet.is_central_kitchen else _RETAIL

"""Domain errors raised by the stock movement engine.

Every error carries an HTTP status, a stable machine-readable code and an
optional list of per-item details. The API layer turns them into the standard
error envelope (see ``stockhub.core.observability``).
"""

from typing import Any


class StockHubError(Exception):
    http_status = 400
    error_code = "bad_request"

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StockHubError):
    http_status = 422
    error_code = "validation_error"


class NotFound(StockHubError):
    http_status = 404
    error_code = "not_found"


class ItemNotFoundInSource(NotFound):
    error_code = "item_not_found_in_source"

    def __init__(self, item_code: str, outlet_name: str, *, details: list[dict[str, Any]] | None = None):
        super().__init__(f"Item '{item_code}' not found in {outlet_name}", details=details)
        self.item_code = item_code


class BomNotFound(NotFound):
    error_code = "bom_not_found"

    def __init__(self, bom_code: str):
        super().__init__(f"BOM '{bom_code}' not found")
        self.bom_code = bom_code


class InsufficientStock(StockHubError):
    http_status = 409
    error_code = "insufficient_stock"

    def __init__(
        self,
        item_code: str,
        *,
        requested: float,
        available: float,
        details: list[dict[str, Any]] | None = None,
    ):
        super().__init__(
            f"Insufficient stock for '{item_code}': requested {requested:g}, available {available:g}",
            details=details,
        )
        self.item_code = item_code
        self.requested = requested
        self.available = available


class StockValidationError(StockHubError):
    http_status = 409
    error_code = "stock_validation_failed"


class CircularBomReference(StockHubError):
    http_status = 422
    error_code = "circular_bom_reference"

    def __init__(self, path: list[str]):
        super().__init__(
            "Circular BOM reference: " + " -> ".join(path),
            details=[{"path": list(path)}],
        )
        self.path = list(path)


class InvalidStatusTransition(StockHubError):
    http_status = 400
    error_code = "invalid_status_transition"

    def __init__(self, entity: str, current_status: str, next_status: str):
        super().__init__(f"Cannot transition {entity} from '{current_status}' to '{next_status}'")
        self.current_status = current_status
        self.next_status = next_status


class UniquenessConflict(StockHubError):
    http_status = 409
    error_code = "conflict"


class MissingLocationMapping(StockHubError):
    http_status = 424
    error_code = "missing_location_mapping"

    def __init__(self, outlet_name: str):
        super().__init__(
            f"No external location mapped for '{outlet_name}'. Refresh the location list first."
        )
        self.outlet_name = outlet_name


class MissingItemMapping(StockHubError):
    http_status = 424
    error_code = "missing_item_mapping"

    def __init__(self, item_codes: list[str]):
        super().__init__(
            "No line items could be mapped to external item ids. Refresh the item list first.",
            details=[{"item_code": code, "reason": "unmapped"} for code in item_codes],
        )
        self.item_codes = list(item_codes)


class RemoteApiError(StockHubError):
    http_status = 502
    error_code = "remote_api_error"

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PartialTransferFailure(StockHubError):
    http_status = 500
    error_code = "partial_transfer_failure"

    def __init__(self, message: str, *, compensated: bool, details: list[dict[str, Any]] | None = None):
        super().__init__(message, details=details)
        self.compensated = compensated

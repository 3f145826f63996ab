"""
ExploreValley API - Error taxonomy

Every failure that reaches a client carries a stable string code. The code
resolves to an ErrorKind through ERROR_CODES, and the kind resolves to an HTTP
status through HTTP_STATUS_BY_KIND. Handlers never string-match messages.
"""
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    CAPACITY = "capacity"
    STOCK_CONFLICT = "stock_conflict"
    CONFIGURATION = "configuration"
    STORAGE = "storage"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CAPACITY: 400,
    ErrorKind.STOCK_CONFLICT: 409,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.STORAGE: 502,
    ErrorKind.INTERNAL: 500,
}

# Codes with a ":<detail>" suffix (e.g. OUT_OF_STOCK_FOR_CONFIRMED_ORDER:Momos)
# resolve by the part before the colon.
ERROR_CODES: dict[str, ErrorKind] = {
    # ── Not found / unavailable ────────────────────────────────
    "TOUR_UNAVAILABLE": ErrorKind.NOT_FOUND,
    "HOTEL_UNAVAILABLE": ErrorKind.NOT_FOUND,
    "ROOM_TYPE_UNAVAILABLE": ErrorKind.NOT_FOUND,
    "RESTAURANT_UNAVAILABLE": ErrorKind.NOT_FOUND,
    "MENU_ITEM_NOT_FOUND": ErrorKind.NOT_FOUND,
    "ITEM_UNAVAILABLE": ErrorKind.NOT_FOUND,
    "BOOKING_NOT_FOUND": ErrorKind.NOT_FOUND,
    "ORDER_NOT_FOUND": ErrorKind.NOT_FOUND,
    "CAB_BOOKING_NOT_FOUND": ErrorKind.NOT_FOUND,
    "ROUTE_NOT_FOUND": ErrorKind.NOT_FOUND,
    "BIKE_NOT_FOUND": ErrorKind.NOT_FOUND,
    "PAGE_NOT_FOUND": ErrorKind.NOT_FOUND,
    # ── Ownership ──────────────────────────────────────────────
    "NOT_YOUR_ORDER": ErrorKind.FORBIDDEN,
    # ── Validation ─────────────────────────────────────────────
    "INVALID_INPUT": ErrorKind.VALIDATION,
    "INVALID_BOOKING_TYPE": ErrorKind.VALIDATION,
    "INVALID_TOUR_BOOKING_DATA": ErrorKind.VALIDATION,
    "INVALID_HOTEL_BOOKING_DATA": ErrorKind.VALIDATION,
    "INVALID_STAY_RANGE": ErrorKind.VALIDATION,
    "INVALID_STAY_LENGTH": ErrorKind.VALIDATION,
    "INVALID_DATE_RANGE": ErrorKind.VALIDATION,
    "HOTEL_ROOM_CAPACITY_EXCEEDED": ErrorKind.VALIDATION,
    "HOTEL_DATE_CLOSED": ErrorKind.VALIDATION,
    "TOUR_DATE_CLOSED": ErrorKind.VALIDATION,
    "MAX_GUESTS_EXCEEDED": ErrorKind.VALIDATION,
    "MAX_PER_ORDER_EXCEEDED": ErrorKind.VALIDATION,
    "MAX_DAYS_EXCEEDED": ErrorKind.VALIDATION,
    "MIN_ORDER_NOT_MET": ErrorKind.VALIDATION,
    "MIXED_RESTAURANTS_NOT_ALLOWED": ErrorKind.VALIDATION,
    "COUPON_INVALID": ErrorKind.VALIDATION,
    "INVALID_SEAT_SELECTION": ErrorKind.VALIDATION,
    "INVALID_STATUS": ErrorKind.VALIDATION,
    "INVALID_TRIP": ErrorKind.VALIDATION,
    "PROFILE_REQUIRED": ErrorKind.VALIDATION,
    "MAX_CART_ITEMS_EXCEEDED": ErrorKind.VALIDATION,
    "DOCUMENT_SCHEMA_INVALID": ErrorKind.VALIDATION,
    # ── Capacity conflicts ─────────────────────────────────────
    "TOUR_OCCUPANCY_FULL": ErrorKind.CAPACITY,
    "HOTEL_OCCUPANCY_FULL": ErrorKind.CAPACITY,
    "SEAT_ALREADY_BOOKED": ErrorKind.CAPACITY,
    # ── Stock conflicts ────────────────────────────────────────
    "OUT_OF_STOCK_FOR_CONFIRMED_ORDER": ErrorKind.STOCK_CONFLICT,
    "OUT_OF_STOCK": ErrorKind.STOCK_CONFLICT,
    "INSUFFICIENT_BIKE_STOCK": ErrorKind.STOCK_CONFLICT,
    # ── Configuration ──────────────────────────────────────────
    "STORE_NOT_CONFIGURED": ErrorKind.CONFIGURATION,
    # ── Storage ────────────────────────────────────────────────
    "STORAGE_ERROR": ErrorKind.STORAGE,
    "STORAGE_COLUMN_MISSING": ErrorKind.STORAGE,
    "STORAGE_TABLE_MISSING": ErrorKind.STORAGE,
    "PERSISTENCE_INCOMPLETE": ErrorKind.STORAGE,
}


def kind_for_code(code: str) -> ErrorKind:
    if code in ERROR_CODES:
        return ERROR_CODES[code]
    prefix = code.split(":", 1)[0]
    return ERROR_CODES.get(prefix, ErrorKind.INTERNAL)


def http_status_for(code: str) -> int:
    return HTTP_STATUS_BY_KIND[kind_for_code(code)]


class ExploreValleyError(Exception):
    """Base for every failure with a documented code."""

    def __init__(self, code: str, detail: str | None = None):
        super().__init__(code)
        self.code = code
        self.detail = detail or code

    @property
    def kind(self) -> ErrorKind:
        return kind_for_code(self.code)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_payload(self) -> dict:
        return {"error": self.code, "detail": self.detail}


class OperationalRuleError(ExploreValleyError):
    """Raised by availability validators and the operational rules engine."""


class BookingRequestError(ExploreValleyError):
    """Raised by route-level fast-fail pre-checks."""


class DocumentValidationError(ExploreValleyError):
    def __init__(self, detail: str):
        super().__init__("DOCUMENT_SCHEMA_INVALID", detail)


class ConfigurationError(ExploreValleyError):
    def __init__(self, detail: str):
        super().__init__("STORE_NOT_CONFIGURED", detail)


class StorageError(ExploreValleyError):
    """The remote store rejected a read or write."""

    def __init__(self, table: str, detail: str, code: str = "STORAGE_ERROR", status: int | None = None):
        super().__init__(code, f"{table}: {detail}")
        self.table = table
        self.status = status


class MissingColumnError(StorageError):
    def __init__(self, table: str, column: str, detail: str):
        super().__init__(table, detail, code="STORAGE_COLUMN_MISSING")
        self.column = column


class MissingTableError(StorageError):
    def __init__(self, table: str, detail: str):
        super().__init__(table, detail, code="STORAGE_TABLE_MISSING")


class PersistenceError(StorageError):
    """A table write failed after earlier tables were already written."""

    def __init__(self, table: str, detail: str, written_tables: list[str], pending_tables: list[str]):
        super().__init__(table, detail, code="PERSISTENCE_INCOMPLETE")
        self.written_tables = written_tables
        self.pending_tables = pending_tables

    def to_payload(self) -> dict:
        return {
            "error": self.code,
            "detail": self.detail,
            "failedTable": self.table,
            "writtenTables": self.written_tables,
            "pendingTables": self.pending_tables,
        }

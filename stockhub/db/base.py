from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Central store: BOMs, transfer orders, sales orders, sync caches."""


class LedgerBase(DeclarativeBase):
    """Per-outlet ledger databases: raw materials and finished goods."""

from ledger.client import LedgerClient

__all__ = ["LedgerClient"]

from .ledger import UsageLedger, UsageRecord, error_status

__all__ = ["UsageLedger", "UsageRecord", "error_status"]

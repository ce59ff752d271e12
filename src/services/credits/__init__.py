"""Credit ledger services."""

from .service import ConsumptionResult, CreditLedgerService, SearchRecordResult

__all__ = ["ConsumptionResult", "CreditLedgerService", "SearchRecordResult"]

from .appreciation import AppreciationResult, RateLimitStatus, TransactionEntry
from .tokens import PurchaseResult, TokenBalanceResponse
from .conversion import ConversionResult, ConversionStatus
from .reconciliation import LedgerAnalysis, ReconciliationReport

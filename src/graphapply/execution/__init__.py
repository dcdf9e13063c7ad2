from .cancellation import CancellationToken
from .executor import Executor
from .report import OperationResult, OperationStatus, RunReport
from .retry import RetryPolicy

__all__ = [
    "CancellationToken",
    "Executor",
    "OperationResult",
    "OperationStatus",
    "RetryPolicy",
    "RunReport",
]

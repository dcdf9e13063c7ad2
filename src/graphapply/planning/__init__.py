from .models import ActionType, AttributeChange, Operation, OperationKind, Plan
from .planner import Planner

__all__ = [
    "ActionType",
    "AttributeChange",
    "Operation",
    "OperationKind",
    "Plan",
    "Planner",
]

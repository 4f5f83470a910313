# tokenomics/__init__.py
"""
Token Supply Schedule Module

Fixed-point arithmetic, the three-phase issuance schedule, and the
issuance trigger that mints scheduled supply on the ledger.
"""

from .fixed_point import (
    UNIT,
    DivisionByZero,
    FixedPointOverflow,
    multiply,
    divide,
    power,
)
from .schedule import (
    ScheduleConfig,
    ScheduleState,
    SupplySchedule,
    IssuanceEvent,
    SchedulePhase,
    ScheduleStatus,
    SupplyQueryError,
)
from .issuer import (
    IssuanceTrigger,
    IssuanceReceipt,
    IssuanceNotDue,
    NotAuthorized,
)

__all__ = [
    "UNIT",
    "DivisionByZero",
    "FixedPointOverflow",
    "multiply",
    "divide",
    "power",
    "ScheduleConfig",
    "ScheduleState",
    "SupplySchedule",
    "IssuanceEvent",
    "SchedulePhase",
    "ScheduleStatus",
    "SupplyQueryError",
    "IssuanceTrigger",
    "IssuanceReceipt",
    "IssuanceNotDue",
    "NotAuthorized",
]

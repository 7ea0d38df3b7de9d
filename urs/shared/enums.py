from __future__ import annotations

from enum import Enum


class Env(str, Enum):
    dev = "dev"
    prod = "prod"
    test = "test"


class TransactionType(str, Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    REDEMPTION = "REDEMPTION"
    SWITCHING_IN = "SWITCHING_IN"
    SWITCHING_OUT = "SWITCHING_OUT"


class MinRestType(str, Enum):
    AMOUNT = "AMOUNT"
    UNIT = "UNIT"


class RecordOutcomeKind(str, Enum):
    SUCCESS = "SUCCESS"
    SKIPPED_MISSING_FIELD = "SKIPPED_MISSING_FIELD"
    SKIPPED_UNRESOLVED_LINK = "SKIPPED_UNRESOLVED_LINK"
    FAILED = "FAILED"

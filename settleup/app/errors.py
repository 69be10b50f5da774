"""
errors.py — Error types and the code registries.

Services raise AppError (or a subclass) and never build responses; the
handler registered in app/__init__.py renders

    {"error": {"code", "message", "field"?, "details"?}}

with the error's http_status.

Two ledger-specific subclasses:
  SplitValidationError   the allocator cannot honour the caller's input
                         (422). Sum mismatches carry expected/actual.
  LedgerConsistencyError the allocator's own output does not reconcile
                         (500). A bug, never user input; the write aborts.
"""

from __future__ import annotations

from decimal import Decimal


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        body.update((k, v) for k, v in (("field", self.field), ("details", self.details)) if v)
        return {"error": body}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}, {self.http_status}: {self.message!r})"


def _totals(expected: Decimal | None, actual: Decimal | None) -> dict | None:
    if expected is None and actual is None:
        return None
    return {"expected": expected, "actual": actual}


class SplitValidationError(AppError):
    """Rejected split request; `expected` / `actual` are set for sum mismatches."""

    def __init__(
            self,
            code: str,
            message: str,
            expected: Decimal | None = None,
            actual: Decimal | None = None,
            field: str | None = "splits",
    ) -> None:
        super().__init__(code, message, 422, field=field, details=_totals(expected, actual))
        self.expected, self.actual = expected, actual


class LedgerConsistencyError(AppError):

    def __init__(self, message: str, expected: Decimal, actual: Decimal) -> None:
        super().__init__(
            ErrorCode.SPLIT_CONSISTENCY, message, 500, details=_totals(expected, actual)
        )
        self.expected, self.actual = expected, actual


# Codes are part of the API contract: clients match on these strings.

class ErrorCode:

    # 400, raised by the request schemas
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION = "INVALID_AMOUNT_PRECISION"
    INVALID_CATEGORY = "INVALID_CATEGORY"
    SPLITS_SENT_FOR_EQUAL_POLICY = "SPLITS_SENT_FOR_EQUAL_POLICY"
    DUPLICATE_SPLIT_USER = "DUPLICATE_SPLIT_USER"

    # 401 means unknown caller, 403 means known but not allowed
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"

    # 404
    USER_NOT_FOUND = "USER_NOT_FOUND"
    GROUP_NOT_FOUND = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND = "EXPENSE_NOT_FOUND"

    # 409
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME = "DUPLICATE_USERNAME"
    ALREADY_MEMBER = "ALREADY_MEMBER"

    # 422, split allocation
    INVALID_SPLIT_POLICY = "INVALID_SPLIT_POLICY"
    NO_PARTICIPANTS = "NO_PARTICIPANTS"
    SPLITS_REQUIRED = "SPLITS_REQUIRED"
    SPLIT_SUM_MISMATCH = "SPLIT_SUM_MISMATCH"
    PERCENTAGE_SUM_MISMATCH = "PERCENTAGE_SUM_MISMATCH"
    INVALID_SHARES = "INVALID_SHARES"

    # 422, membership and state rules
    PAYER_NOT_MEMBER = "PAYER_NOT_MEMBER"
    SPLIT_USER_NOT_MEMBER = "SPLIT_USER_NOT_MEMBER"
    RECIPIENT_NOT_MEMBER = "RECIPIENT_NOT_MEMBER"
    SELF_SETTLEMENT = "SELF_SETTLEMENT"
    EXPENSE_DELETED = "EXPENSE_DELETED"

    # 500
    SPLIT_CONSISTENCY = "SPLIT_CONSISTENCY"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Messages for schema validators that fail with a bare error code.
SCHEMA_CODE_MESSAGES: dict[str, str] = {
    ErrorCode.INVALID_AMOUNT_PRECISION: "Amount has more decimal places than allowed.",
    ErrorCode.INVALID_CATEGORY: "The category value is not valid.",
    ErrorCode.SPLITS_SENT_FOR_EQUAL_POLICY: "Do not send a splits array when split_policy is 'equal'.",
    ErrorCode.DUPLICATE_SPLIT_USER: "The same user_id appears more than once in the splits array.",
}


class WarningCode:
    """Codes for the `warnings` array of a successful response."""

    # A settlement larger than what the payee owes the payer; still recorded.
    OVERPAYMENT = "OVERPAYMENT"

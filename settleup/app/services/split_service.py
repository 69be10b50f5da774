"""
services/split_service.py — Split allocation policies.

Turns one expense amount plus a split policy into per-member owed/paid
rows. This is the only place owed amounts are computed; expense_service
calls allocate_splits() before it writes anything, so a rejected
allocation never leaves an expense with partial splits.

Policies:
  equal       round2(A / N) each over the group members in membership
              order. The residual round2(A - per * N) goes to the FIRST
              member, so the total reconciles to the cent.
  exact       one value per listed member; round2(sum) must equal
              round2(A) (SPLIT_SUM_MISMATCH otherwise).
  percentage  round2(sum of pcts) must equal 100.00
              (PERCENTAGE_SUM_MISMATCH otherwise). Owed = round2(A * pct / 100).
  shares      every weight must be > 0 (INVALID_SHARES otherwise).
              Owed = round2(A * weight / total).

percentage and shares do not reconcile rounding drift across members;
the owed total may differ from A by a few cents. That drift is accepted
and must not be redistributed here.

Layer rules:
  - No Flask imports, no session. Pure functions over Decimal.
  - Raises SplitValidationError (422) for caller input and
    LedgerConsistencyError (500) if equal/exact output fails its sum check.
"""

from __future__ import annotations

from decimal import Decimal

from settleup.app.errors import ErrorCode, LedgerConsistencyError, SplitValidationError
from settleup.app.models.expense import SplitPolicy
from settleup.app.money import HUNDRED, ZERO, round2, to_decimal


# ── Private helpers ────────────────────────────────────────────────────────

def resolve_policy(policy) -> SplitPolicy:
    """Accepts a SplitPolicy or its string value."""
    if isinstance(policy, SplitPolicy):
        return policy
    try:
        return SplitPolicy(policy)
    except ValueError:
        raise SplitValidationError(
            ErrorCode.INVALID_SPLIT_POLICY,
            f"Unknown split policy {policy!r}. "
            f"Expected one of: {', '.join(p.value for p in SplitPolicy)}.",
            field="split_policy",
        ) from None


def _require_inputs(policy: SplitPolicy, inputs: list[dict] | None) -> list[dict]:
    if not inputs:
        raise SplitValidationError(
            ErrorCode.SPLITS_REQUIRED,
            f"The '{policy.value}' split policy requires a value for each participant.",
        )
    return inputs


def _row(user_id: int, owed: Decimal, payer_id: int, amount: Decimal,
         share_value: Decimal | None) -> dict:
    return {
        "user_id": user_id,
        "owed_amount": owed,
        "paid_amount": amount if user_id == payer_id else ZERO,
        "share_value": share_value,
    }


def _check_reconciles(rows: list[dict], amount: Decimal, policy: SplitPolicy) -> None:
    """Post-condition for the reconciling policies (equal, exact)."""
    total = round2(sum((r["owed_amount"] for r in rows), ZERO))
    if total != amount:
        raise LedgerConsistencyError(
            f"{policy.value} split produced owed total {total} "
            f"for expense amount {amount}.",
            expected=amount,
            actual=total,
        )


# ── Policies ───────────────────────────────────────────────────────────────

def split_equal(amount: Decimal, payer_id: int, member_ids: list[int]) -> list[dict]:
    """
    Divides amount across member_ids. The first id absorbs the residual,
    so callers must pass members in a stable order (joined_at, id).
    """
    if not member_ids:
        raise SplitValidationError(
            ErrorCode.NO_PARTICIPANTS,
            "An equal split needs at least one participant.",
        )

    n = len(member_ids)
    per_member = round2(amount / Decimal(n))
    residual = round2(amount - per_member * n)

    rows = [_row(uid, per_member, payer_id, amount, None) for uid in member_ids]
    rows[0]["owed_amount"] = round2(per_member + residual)

    _check_reconciles(rows, amount, SplitPolicy.EQUAL)
    return rows


def split_exact(amount: Decimal, payer_id: int, inputs: list[dict]) -> list[dict]:
    """Each listed member owes exactly their value."""
    values = [(i["user_id"], to_decimal(i["value"])) for i in inputs]
    actual = round2(sum((v for _, v in values), ZERO))
    if actual != amount:
        raise SplitValidationError(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts ({actual}) do not equal expense amount ({amount}).",
            expected=amount,
            actual=actual,
        )

    rows = [_row(uid, round2(v), payer_id, amount, v) for uid, v in values]
    _check_reconciles(rows, amount, SplitPolicy.EXACT)
    return rows


def split_percentage(amount: Decimal, payer_id: int, inputs: list[dict]) -> list[dict]:
    """Each listed member owes pct% of amount. Percentages total 100.00."""
    values = [(i["user_id"], to_decimal(i["value"])) for i in inputs]
    actual = round2(sum((v for _, v in values), ZERO))
    if actual != round2(HUNDRED):
        raise SplitValidationError(
            ErrorCode.PERCENTAGE_SUM_MISMATCH,
            f"Percentages must total 100.00, got {actual}.",
            expected=round2(HUNDRED),
            actual=actual,
        )

    return [
        _row(uid, round2(amount * pct / HUNDRED), payer_id, amount, pct)
        for uid, pct in values
    ]


def split_shares(amount: Decimal, payer_id: int, inputs: list[dict]) -> list[dict]:
    """Each listed member owes amount * weight / total_weight."""
    values = [(i["user_id"], to_decimal(i["value"])) for i in inputs]
    for uid, w in values:
        if w <= ZERO:
            raise SplitValidationError(
                ErrorCode.INVALID_SHARES,
                f"Share weight for user {uid} must be greater than zero, got {w}.",
            )
    total = sum((w for _, w in values), ZERO)

    return [
        _row(uid, round2(amount * w / total), payer_id, amount, w)
        for uid, w in values
    ]


# ── Public entry point ─────────────────────────────────────────────────────

def allocate_splits(
        amount,
        payer_id: int,
        policy,
        member_ids: list[int],
        inputs: list[dict] | None = None,
) -> list[dict]:
    """
    Computes split rows for one expense.

    Args:
        amount:     Expense amount (> 0). Coerced to Decimal and rounded to cents.
        payer_id:   The member who fronted the money. Their row (if any)
                    carries paid_amount = amount.
        policy:     SplitPolicy or its string value.
        member_ids: Group members in membership order. Used only by 'equal'.
        inputs:     [{"user_id": int, "value": Decimal}] for exact,
                    percentage and shares. Ignored by 'equal'.

    Returns:
        [{"user_id", "owed_amount", "paid_amount", "share_value"}, ...]

    Raises:
        SplitValidationError   — INVALID_SPLIT_POLICY, NO_PARTICIPANTS,
                                 SPLITS_REQUIRED, SPLIT_SUM_MISMATCH,
                                 PERCENTAGE_SUM_MISMATCH, INVALID_SHARES (422)
        LedgerConsistencyError — equal/exact output does not sum to amount (500)
    """
    resolved = resolve_policy(policy)
    amount = round2(amount)

    if resolved == SplitPolicy.EQUAL:
        return split_equal(amount, payer_id, list(member_ids))

    rows_input = _require_inputs(resolved, inputs)
    if resolved == SplitPolicy.EXACT:
        return split_exact(amount, payer_id, rows_input)
    if resolved == SplitPolicy.PERCENTAGE:
        return split_percentage(amount, payer_id, rows_input)
    return split_shares(amount, payer_id, rows_input)

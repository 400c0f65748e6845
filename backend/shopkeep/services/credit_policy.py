# Overview: Advisory credit checks consulted before the ledger is written.

"""
Credit Policy

The ledger records facts; this module answers "should the operator be
warned first?". Nothing here writes to the database and nothing in the
ledger calls it. Callers (checkout, the customer credit routes) consult it
and decide whether to ask for an explicit override.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import Customer


@dataclass(frozen=True)
class CreditCheck:
    """
    Outcome of a policy check.

    allowed: the write may go ahead without asking anyone.
    requires_override: the write is possible but the operator must confirm.
    """
    allowed: bool
    requires_override: bool
    reason: str | None
    current_balance_cents: int
    proposed_balance_cents: int
    credit_limit_cents: int

    @property
    def available_credit_cents(self) -> int:
        return max(0, self.credit_limit_cents - self.proposed_balance_cents)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "requires_override": self.requires_override,
            "reason": self.reason,
            "current_balance_cents": self.current_balance_cents,
            "proposed_balance_cents": self.proposed_balance_cents,
            "credit_limit_cents": self.credit_limit_cents,
            "available_credit_cents": self.available_credit_cents,
        }


def check_credit_sale(customer: Customer | None, proposed_total_cents: int) -> CreditCheck:
    """
    Would a credit sale of proposed_total_cents push the customer past the limit?

    A credit sale without a customer is never allowed (nobody to bill).
    """
    if customer is None:
        return CreditCheck(
            allowed=False,
            requires_override=False,
            reason="A customer is required for credit sales",
            current_balance_cents=0,
            proposed_balance_cents=proposed_total_cents,
            credit_limit_cents=0,
        )

    new_balance = customer.current_balance_cents + proposed_total_cents
    exceeds = new_balance > customer.credit_limit_cents
    return CreditCheck(
        allowed=not exceeds,
        requires_override=exceeds,
        reason=(
            f"Sale would exceed {customer.name}'s credit limit of {customer.credit_limit_cents}"
            if exceeds else None
        ),
        current_balance_cents=customer.current_balance_cents,
        proposed_balance_cents=new_balance,
        credit_limit_cents=customer.credit_limit_cents,
    )


def check_credit_payment(customer: Customer, amount_cents: int) -> CreditCheck:
    """A payment above the outstanding balance needs confirmation (it leaves a credit)."""
    new_balance = customer.current_balance_cents - amount_cents
    overpays = amount_cents > customer.current_balance_cents
    return CreditCheck(
        allowed=not overpays,
        requires_override=overpays,
        reason=(
            f"Payment of {amount_cents} exceeds the current balance of {customer.current_balance_cents}"
            if overpays else None
        ),
        current_balance_cents=customer.current_balance_cents,
        proposed_balance_cents=new_balance,
        credit_limit_cents=customer.credit_limit_cents,
    )

from __future__ import annotations

"""Payment instruments applied to an invoice."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    credit_card = "credit_card"
    bank_transfer = "bank_transfer"
    paypal = "paypal"
    gift_card = "gift_card"
    points = "points"
    split = "split"


_DISPLAY_NAMES = {
    PaymentMethod.credit_card: "Credit Card",
    PaymentMethod.bank_transfer: "Bank Transfer",
    PaymentMethod.paypal: "PayPal",
    PaymentMethod.gift_card: "Gift Card",
    PaymentMethod.points: "Points/Rewards",
    PaymentMethod.split: "Split Payment",
}


class Payment(BaseModel):
    """One payment applied to an invoice.

    Allocation (bank account + payment type) is all-or-nothing: allocate() sets
    every allocation field and flips allocation_complete at once.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[int] = None
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    amount: float = Field(gt=0)
    fa_bank_account: Optional[int] = None
    fa_payment_type: Optional[int] = None
    allocation_complete: bool = False
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self.payment_method]

    def allocate(
        self,
        bank_account: int,
        payment_type: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> None:
        self.fa_bank_account = bank_account
        self.fa_payment_type = payment_type
        if notes is not None:
            self.notes = notes
        self.allocation_complete = True

    def validate(self) -> list[str]:
        errors: list[str] = []
        if self.amount <= 0:
            errors.append("Amount must be greater than zero")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payment":
        return cls.model_validate(data)


__all__ = ["Payment", "PaymentMethod"]

"""
Transfer Validation

DESIGN DECISION: Every check runs BEFORE the ledger is touched.
A rejected transfer leaves no trace in storage.

Checks, in order:
1. ACCOUNTS - both sides are recognized accounts and they differ
2. AMOUNT   - numeric, finite, and positive after rounding to paise

IMPORTANT: Validation NEVER silently fixes a bad request.
The only normalization is rounding the amount to two decimal places,
and an amount that rounds to zero is rejected.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, NamedTuple

from echopay.models.ledger import Account


class TransferValidationError(Exception):
    """Base exception for transfers rejected before storage."""

    code = "invalid_transfer"


class InvalidAmountError(TransferValidationError):
    """Amount is missing, non-numeric, or not positive."""

    code = "invalid_amount"


class InvalidAccountsError(TransferValidationError):
    """An account is unknown, or both sides are the same account."""

    code = "invalid_accounts"


class ValidatedTransfer(NamedTuple):
    from_account: Account
    to_account: Account
    amount: Decimal


_PAISE = Decimal("0.01")


def parse_account(value: Any) -> Account:
    """
    Resolve a raw value to one of the two accounts.

    Raises:
        InvalidAccountsError: If the value is not a recognized account
    """
    if isinstance(value, Account):
        return value
    if isinstance(value, str):
        try:
            return Account(value.strip())
        except ValueError:
            pass
    raise InvalidAccountsError(
        f"Unknown account {value!r}: only user-a and user-b are supported"
    )


def parse_amount(value: Any) -> Decimal:
    """
    Convert a raw amount to a positive Decimal with two decimal places.

    Raises:
        InvalidAmountError: If the value is not a usable positive number
    """
    # bool is an int subclass; True is not a payment
    if value is None or isinstance(value, bool):
        raise InvalidAmountError("Amount is required and must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Amount {value!r} is not a number")
    else:
        raise InvalidAmountError("Amount must be a number")

    if not amount.is_finite():
        raise InvalidAmountError("Amount must be a finite number")

    try:
        amount = amount.quantize(_PAISE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmountError("Amount is too large")
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than 0")

    return amount


class TransferValidator:
    """
    Validates a transfer request against the fixed two-account channel.
    """

    def validate(
        self,
        from_account: Any,
        to_account: Any,
        amount: Any,
    ) -> ValidatedTransfer:
        """
        Run all checks and return the normalized transfer.

        Raises:
            InvalidAccountsError: Unknown account, or payer == payee
            InvalidAmountError: Amount not numeric or not positive
        """
        payer = parse_account(from_account)
        payee = parse_account(to_account)
        if payer == payee:
            raise InvalidAccountsError("Cannot transfer to the same account")

        return ValidatedTransfer(
            from_account=payer,
            to_account=payee,
            amount=parse_amount(amount),
        )

"""Transfer validation package."""

from echopay.validation.validator import (
    InvalidAccountsError,
    InvalidAmountError,
    TransferValidationError,
    TransferValidator,
    ValidatedTransfer,
    parse_account,
    parse_amount,
)

__all__ = [
    "InvalidAccountsError",
    "InvalidAmountError",
    "TransferValidationError",
    "TransferValidator",
    "ValidatedTransfer",
    "parse_account",
    "parse_amount",
]

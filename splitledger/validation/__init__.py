"""Transaction draft validation."""

from splitledger.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]

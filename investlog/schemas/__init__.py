"""Pydantic schema exports."""

from .transactions import TransactionCreateRequest, TransactionUpdateRequest

__all__ = ["TransactionCreateRequest", "TransactionUpdateRequest"]

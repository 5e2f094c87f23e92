# Overview: Domain exception hierarchy shared by the ledger services and mapped to HTTP errors by routes.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base for every recoverable domain failure.

    `kind` is a stable machine-readable tag surfaced in API responses;
    `details` carries structured context (short items, remaining limit, ...).
    """
    kind = "LedgerError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class NotFoundError(LedgerError):
    kind = "NotFound"


# Inventory

class InventoryError(LedgerError):
    kind = "InventoryError"


class InsufficientStockError(InventoryError):
    kind = "InsufficientStock"


class CatalogError(LedgerError):
    kind = "CatalogError"


class PurchaseOrderError(LedgerError):
    kind = "PurchaseOrderError"


# Pricing

class PromotionError(LedgerError):
    kind = "PromotionError"


class InvalidPromotionError(PromotionError):
    kind = "InvalidPromotion"


class DuplicatePromotionCodeError(PromotionError):
    kind = "DuplicatePromotionCode"


class GiftCardError(LedgerError):
    kind = "GiftCardError"


class InvalidGiftCardError(GiftCardError):
    kind = "InvalidGiftCard"


# Credit

class CreditError(LedgerError):
    kind = "CreditError"


class CreditBlockedError(CreditError):
    kind = "CreditBlocked"


class CreditLimitExceededError(CreditError):
    kind = "CreditLimitExceeded"

    def __init__(self, message: str, remaining_cents: int, details: dict | None = None):
        details = dict(details or {})
        details.setdefault("remaining_cents", remaining_cents)
        super().__init__(message, details)
        self.remaining_cents = remaining_cents


# Sales / returns

class SaleError(LedgerError):
    kind = "SaleError"


class ReturnError(LedgerError):
    kind = "ReturnError"


class InvalidReturnQuantityError(ReturnError):
    kind = "InvalidReturnQuantity"


# Reporting / sync

class ReportError(LedgerError):
    kind = "ReportError"


class StatementError(LedgerError):
    kind = "StatementError"


class LoyaltyError(LedgerError):
    kind = "LoyaltyError"


class SyncError(LedgerError):
    kind = "SyncError"

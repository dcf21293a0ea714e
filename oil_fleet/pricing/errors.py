"""Помилки ціноутворення.

Кожен клас несе http_status: обробник у api.main рендерить їх у JSON
без окремого маппінгу в кожному роуті.
"""
from __future__ import annotations


class PricingError(Exception):
    http_status: int = 500
    message: str = "Pricing error"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        super().__init__(message or self.message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"ok": False, "error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailure(PricingError):
    """Невалідні вхідні дані. details: {поле: повідомлення}."""

    http_status = 400
    message = "Validation failed"

    def __init__(self, fields: dict[str, str], message: str | None = None) -> None:
        super().__init__(message, details={"fields": fields})
        self.fields = fields


class NotFound(PricingError):
    http_status = 404
    message = "Not found"


class OverlapConflict(PricingError):
    http_status = 409
    message = "A price already applies to part of this period"


class StorageFailure(PricingError):
    """Сховище недоступне або транзакцію перервано. Повтор безпечний."""

    http_status = 500
    message = "Storage failure, please retry"


class SerializationConflict(StorageFailure):
    """Паралельний запис у той самий scope: транзакцію відкотив PostgreSQL."""

    http_status = 409
    message = "Concurrent price update, please retry"

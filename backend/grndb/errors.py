from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Rejected input: quantities over their ceilings, locked receipts, bad state."""

    def __init__(self, detail: Any, *, headers: Optional[Dict[str, str]] = None) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, headers=headers)


class NotFoundError(HTTPException):
    def __init__(self, detail: Any, *, headers: Optional[Dict[str, str]] = None) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, headers=headers)


class InsufficientStockError(ValidationError):
    pass


class SecondaryEffectFailure(Exception):
    """
    Raised by receipt side-effect handlers.

    Never reaches the caller of create/update: the effect runner records it on
    the outbox row and logs a warning.
    """

    def __init__(self, effect_type: str, message: str) -> None:
        super().__init__(f"{effect_type}: {message}")
        self.effect_type = effect_type
        self.message = message

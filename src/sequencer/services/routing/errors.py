"""Routing engine exceptions."""

from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Malformed optimizer input. Never repaired silently."""

    def __init__(self, message: str, *, stop_id: Optional[str] = None, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.stop_id = stop_id
        self.field = field

    def to_dict(self) -> dict:
        return {"message": str(self), "stop_id": self.stop_id, "field": self.field}

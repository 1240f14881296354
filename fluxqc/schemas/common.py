from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Uniform response wrapper: {success, data?, error?}."""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None


def ok(data: Any = None) -> dict:
    return {"success": True, "data": data}


def fail(error: str) -> dict:
    return {"success": False, "error": error}

# grocery_admin/schemas/common.py
import math
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

FlashLevel = Literal["success", "error", "warning", "info"]


class Page(BaseModel, Generic[T]):
    """
    One page of a server-side paginated listing.
    """

    data: list[T]
    current_page: int
    last_page: int
    per_page: int
    total: int

    @classmethod
    def build(cls, data: list, *, page: int, per_page: int, total: int) -> "Page":
        return cls(
            data=data,
            current_page=page,
            last_page=max(1, math.ceil(total / per_page)) if per_page else 1,
            per_page=per_page,
            total=total,
        )


class ActionResult(BaseModel):
    """
    Result of a mutation, carrying the one-shot message the admin sees.
    """

    success: bool = True
    level: FlashLevel = "success"
    message: str

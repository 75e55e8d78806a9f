"""Standardized JSON response envelope helpers."""


from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from apitoolbox.core.exceptions import AppException
from apitoolbox.core.pagination import Page


class Result(BaseModel):
    """Outcome of one controller operation: `{ success, data?, message?, errorCode? }`

    Instances are frozen; build them with :meth:`ok`, :meth:`fail` or
    :meth:`from_exception`.
    """

    success: bool
    data: Any = None
    message: str | None = None
    error_code: str | None = None
    status_code: int = Field(default=200, exclude=True)

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
    }

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None, status_code: int = 200) -> "Result":
        return cls(success=True, data=data, message=message, status_code=status_code)

    @classmethod
    def fail(
        cls,
        message: str | None = None,
        *,
        data: Any = None,
        error_code: str | None = None,
        status_code: int = 200,
    ) -> "Result":
        return cls(
            success=False,
            data=data,
            message=message,
            error_code=error_code,
            status_code=status_code,
        )

    @classmethod
    def from_exception(cls, exc: AppException) -> "Result":
        return cls.fail(
            exc.message,
            data=getattr(exc, "errors", None) or None,
            error_code=exc.code,
            status_code=exc.status_code,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def paginated(page: Page, items: list | None = None) -> dict:
    """Build a paginated response dict: `{ data: [...], meta: {...} }`."""
    return {
        "data": page.items if items is None else items,
        "meta": page.meta.model_dump(),
    }

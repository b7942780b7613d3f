"""
==============================================================================
Common Schemas Module
==============================================================================

Shared response schemas used across all API endpoints.

==============================================================================
"""

from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field


# Emails are matched case-insensitively everywhere, so store them lowercase
LowerEmail = Annotated[EmailStr, AfterValidator(lambda v: v.strip().lower())]


class SuccessResponse(BaseModel):
    """Standard success response wrapper."""
    success: bool = Field(default=True)
    data: Optional[Any] = Field(default=None)


class MessageResponse(BaseModel):
    """Simple message response."""
    success: bool = Field(default=True)
    message: str


class Pagination(BaseModel):
    """Page metadata for list endpoints."""
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_pages: int = Field(ge=0)
    total_items: int = Field(ge=0)

    @classmethod
    def create(cls, total: int, page: int, limit: int) -> "Pagination":
        """Factory computing the page count."""
        total_pages = (total + limit - 1) // limit if total > 0 else 0
        return cls(page=page, limit=limit, total_pages=total_pages, total_items=total)

    def with_navigation(self, total_key: str = "total_items") -> Dict[str, Any]:
        """
        Dump with has_next / has_previous flags.

        Args:
            total_key: Name for the total count, e.g. "total_orders"
        """
        data = self.model_dump()
        data[total_key] = data.pop("total_items")
        data["has_next"] = self.page < self.total_pages
        data["has_previous"] = self.page > 1
        return data

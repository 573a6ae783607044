"""
Pagination model for list responses returned by the remote service.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Pagination(BaseModel):
    """Server pagination block ({currentPage, totalPages, totalItems, hasNext, hasPrev})."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    current_page: int = Field(default=1, ge=1, validation_alias=AliasChoices("currentPage", "current_page", "page"))
    total_pages: int = Field(default=1, ge=0, validation_alias=AliasChoices("totalPages", "total_pages"))
    total_items: int = Field(default=0, ge=0, validation_alias=AliasChoices("totalItems", "total_items", "total"))
    has_next: bool = Field(default=False, validation_alias=AliasChoices("hasNext", "has_next"))
    has_prev: bool = Field(default=False, validation_alias=AliasChoices("hasPrev", "has_prev"))

    @classmethod
    def fallback(cls, page: int, limit: int, item_count: int) -> "Pagination":
        """Build a pagination block when the server omitted one."""
        total_pages = (item_count + limit - 1) // limit if item_count > 0 else 0
        return cls(
            current_page=page,
            total_pages=max(total_pages, 1),
            total_items=item_count,
            has_next=False,
            has_prev=page > 1,
        )

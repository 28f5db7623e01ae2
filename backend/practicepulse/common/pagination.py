from pydantic import BaseModel, Field


class PageRequest(BaseModel):
    """One offset/limit page of a RecordSource scan (zero-based page number)."""

    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=1000, ge=1)

    @property
    def offset(self) -> int:
        return self.page * self.page_size

    def next(self) -> "PageRequest":
        return PageRequest(page=self.page + 1, page_size=self.page_size)

    def is_last(self, row_count: int) -> bool:
        """A short (or empty) page signals the scan is exhausted."""
        return row_count < self.page_size

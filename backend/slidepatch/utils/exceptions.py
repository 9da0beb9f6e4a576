from __future__ import annotations


class SlidePatchError(Exception):
    """Base class for application errors."""


class DocumentLoadError(SlidePatchError):
    pass


class PageOutOfRange(SlidePatchError):
    def __init__(self, page_number: int, page_count: int):
        super().__init__(f"Page {page_number} is outside 1..{page_count}")
        self.page_number = page_number
        self.page_count = page_count


class SessionNotFound(SlidePatchError):
    pass

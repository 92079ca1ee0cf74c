"""Page size normalization shared by every list operation."""

MIN_PAGE_SIZE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 90


def normalize_page_size(size: int | None) -> int:
    """Clamp a requested page size; zero or missing means the default."""
    if not size:
        return DEFAULT_PAGE_SIZE
    if size < MIN_PAGE_SIZE:
        return MIN_PAGE_SIZE
    if size > MAX_PAGE_SIZE:
        return MAX_PAGE_SIZE
    return size

import math

from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class HealthResponse(BaseModel):
    status: str
    version: str
    users_count: int
    agents_count: int
    orders_count: int


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` rows at ``limit`` per page."""
    return math.ceil(total / limit) if limit else 0


def choice_pattern(values) -> str:
    """Regex accepting exactly one of ``values``, for Field/Query ``pattern=``."""
    return "^(" + "|".join(values) + ")$"

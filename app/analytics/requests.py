"""Typed query parameters for the aggregation queries."""
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import InvalidQueryError

MIN_HOURS, MAX_HOURS, DEFAULT_HOURS = 1, 168, 24
MIN_LIMIT, MAX_LIMIT, DEFAULT_LIMIT = 1, 100, 10
COUNTRY_BREAKDOWN_LIMIT = 20


class SourceFilter(str, Enum):
    """Source filter accepted by queries; ``all`` disables filtering."""
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    ALL = "all"


class AnalyticsQuery(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TimeSeriesQuery(AnalyticsQuery):
    hours: int = Field(default=DEFAULT_HOURS, ge=MIN_HOURS, le=MAX_HOURS, strict=True)
    source: SourceFilter | None = None


class TopEntitiesQuery(AnalyticsQuery):
    limit: int = Field(default=DEFAULT_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT, strict=True)


class CountryBreakdownQuery(AnalyticsQuery):
    source: SourceFilter = SourceFilter.ALL


class TopUsersQuery(TopEntitiesQuery):
    # ``all`` is accepted and produces an empty ranking
    source: SourceFilter


Q = TypeVar("Q", bound=AnalyticsQuery)


def validate_query(model: type[Q], **params: Any) -> Q:
    """
    Build a query model, turning validation failures into InvalidQueryError.

    Parameters passed as None fall back to the model defaults.

    Raises:
        InvalidQueryError: If a parameter is out of range or unrecognized
    """
    params = {k: v for k, v in params.items() if v is not None}
    try:
        return model(**params)
    except ValidationError as e:
        error = e.errors()[0]
        parameter = ".".join(str(part) for part in error["loc"]) or "query"
        raise InvalidQueryError(parameter, f"Invalid value for '{parameter}': {error['msg']}") from e

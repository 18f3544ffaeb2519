"""
Canonical field extraction from source-specific payloads.

Each (source, funnel stage) pair has its own payload shape. A canonical
field is resolved through a dispatch table keyed by ``(shape, field)`` that
lists candidate paths, tried in order. Resolution never raises: a missing
node, a non-mapping intermediate, a non-scalar leaf or a failed numeric
validation all resolve to ``None`` (absent).
"""
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from ..event_models import Event, EventSource, FunnelStage
from .coercion import parse_strict_decimal, parse_strict_non_negative_int, scalar_text

Path = tuple[str, ...]


class CanonicalField(str, Enum):
    """Logical attributes whose physical location varies by source."""
    COUNTRY = "country"
    USER_ID = "userId"
    DISPLAY_NAME = "displayName"
    CAMPAIGN_ID = "campaignId"
    PURCHASE_AMOUNT = "purchaseAmount"
    FOLLOWER_COUNT = "followerCount"


class PayloadShape(str, Enum):
    """Tagged union of the payload shapes the platforms publish."""
    FACEBOOK_TOP = "facebook.top"
    FACEBOOK_BOTTOM = "facebook.bottom"
    TIKTOK_TOP = "tiktok.top"
    TIKTOK_BOTTOM = "tiktok.bottom"


_SHAPES = {
    (EventSource.FACEBOOK, FunnelStage.TOP): PayloadShape.FACEBOOK_TOP,
    (EventSource.FACEBOOK, FunnelStage.BOTTOM): PayloadShape.FACEBOOK_BOTTOM,
    (EventSource.TIKTOK, FunnelStage.TOP): PayloadShape.TIKTOK_TOP,
    (EventSource.TIKTOK, FunnelStage.BOTTOM): PayloadShape.TIKTOK_BOTTOM,
}

# Facebook location first, TikTok engagement second, whatever the source.
COUNTRY_PATHS: tuple[Path, ...] = (
    ("user", "location", "country"),
    ("engagement", "country"),
)
USER_ID_PATHS: tuple[Path, ...] = (("user", "userId"),)
PURCHASE_AMOUNT_PATHS: tuple[Path, ...] = (("engagement", "purchaseAmount"),)

FIELD_PATHS: dict[tuple[PayloadShape, CanonicalField], tuple[Path, ...]] = {
    (PayloadShape.FACEBOOK_TOP, CanonicalField.COUNTRY): COUNTRY_PATHS,
    (PayloadShape.FACEBOOK_TOP, CanonicalField.USER_ID): USER_ID_PATHS,
    (PayloadShape.FACEBOOK_TOP, CanonicalField.DISPLAY_NAME): (("user", "name"),),

    (PayloadShape.FACEBOOK_BOTTOM, CanonicalField.COUNTRY): COUNTRY_PATHS,
    (PayloadShape.FACEBOOK_BOTTOM, CanonicalField.USER_ID): USER_ID_PATHS,
    (PayloadShape.FACEBOOK_BOTTOM, CanonicalField.DISPLAY_NAME): (("user", "name"),),
    (PayloadShape.FACEBOOK_BOTTOM, CanonicalField.CAMPAIGN_ID): (("engagement", "campaignId"),),
    (PayloadShape.FACEBOOK_BOTTOM, CanonicalField.PURCHASE_AMOUNT): PURCHASE_AMOUNT_PATHS,

    (PayloadShape.TIKTOK_TOP, CanonicalField.COUNTRY): COUNTRY_PATHS,
    (PayloadShape.TIKTOK_TOP, CanonicalField.USER_ID): USER_ID_PATHS,
    (PayloadShape.TIKTOK_TOP, CanonicalField.DISPLAY_NAME): (("user", "username"),),
    (PayloadShape.TIKTOK_TOP, CanonicalField.FOLLOWER_COUNT): (("user", "followers"),),

    (PayloadShape.TIKTOK_BOTTOM, CanonicalField.COUNTRY): COUNTRY_PATHS,
    (PayloadShape.TIKTOK_BOTTOM, CanonicalField.USER_ID): USER_ID_PATHS,
    (PayloadShape.TIKTOK_BOTTOM, CanonicalField.DISPLAY_NAME): (("user", "username"),),
    (PayloadShape.TIKTOK_BOTTOM, CanonicalField.FOLLOWER_COUNT): (("user", "followers"),),
    (PayloadShape.TIKTOK_BOTTOM, CanonicalField.PURCHASE_AMOUNT): PURCHASE_AMOUNT_PATHS,
}

_COERCERS: dict[CanonicalField, Callable[[Any], Any]] = {
    CanonicalField.PURCHASE_AMOUNT: parse_strict_decimal,
    CanonicalField.FOLLOWER_COUNT: parse_strict_non_negative_int,
}


def payload_shape(source: Any, funnel_stage: Any) -> PayloadShape | None:
    """Shape tag for a (source, funnel stage) pair, or None if either is unknown."""
    try:
        return _SHAPES.get((EventSource(source), FunnelStage(funnel_stage)))
    except ValueError:
        return None


def dig(payload: Any, path: Path) -> Any:
    """Walk ``path`` through nested mappings; None when any step is missing."""
    node = payload
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
        if node is None:
            return None
    return node


def _first_present(payload: Any, paths: tuple[Path, ...], coerce: Callable[[Any], Any] | None = None) -> Any:
    """First non-None value along ``paths``; with ``coerce``, the first that survives it."""
    for path in paths:
        value = dig(payload, path)
        if coerce is not None:
            value = coerce(value)
        if value is not None:
            return value
    return None


def _paths(source: Any, funnel_stage: Any, field: CanonicalField) -> tuple[Path, ...]:
    shape = payload_shape(source, funnel_stage)
    if shape is None:
        return ()
    return FIELD_PATHS.get((shape, field), ())


def extract_raw(source: Any, funnel_stage: Any, payload: Any, field: CanonicalField) -> Any:
    """
    Resolve a canonical field to its unvalidated leaf.

    Used for presence tests, where a non-null value counts even when it
    fails numeric validation.

    Returns:
        The leaf value, or None if the field is absent for this shape
    """
    return _first_present(payload, _paths(source, funnel_stage, CanonicalField(field)))


def extract(source: Any, funnel_stage: Any, payload: Any, field: CanonicalField) -> Any:
    """
    Resolve a canonical field to a validated value.

    Numeric fields come back as Decimal (purchaseAmount) or int
    (followerCount); identifier and label fields come back as text.
    A candidate path whose leaf fails validation falls through to the next.

    Returns:
        The value, or None when absent
    """
    field = CanonicalField(field)
    return _first_present(payload, _paths(source, funnel_stage, field), _COERCERS.get(field, scalar_text))


def resolve_country(payload: Any) -> str | None:
    """Country through the fallback chain, independent of the source tag."""
    return _first_present(payload, COUNTRY_PATHS, scalar_text)


def event_field(event: Event, field: CanonicalField) -> Any:
    """``extract`` applied to a stored event."""
    return extract(event.source, event.funnel_stage, event.payload, field)


def event_has_field(event: Event, field: CanonicalField) -> bool:
    """Whether the field is present (non-null) on the event, valid or not."""
    return extract_raw(event.source, event.funnel_stage, event.payload, field) is not None

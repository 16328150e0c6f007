from typing import Any, Optional

from .. import schemas
from ..kinds import kind_of
from ..pagination import Page, PageRequest


def enum_value(value) -> Optional[str]:
    return getattr(value, "value", value)


def user_summary(user) -> Optional[schemas.UserSummary]:
    if user is None:
        return None
    return schemas.UserSummary(id=user.id, name=user.name, email=user.email, role=enum_value(user.role))


def listing_ref(listing) -> Optional[schemas.ListingRef]:
    kind = kind_of(listing)
    if listing is None or kind is None:
        return None
    return schemas.ListingRef(id=listing.id, kind=kind.name, title=listing.title, city=listing.city)


def page_meta(page: Page) -> schemas.PageMeta:
    return schemas.PageMeta(**page.meta())


def echo(filters) -> dict[str, Any]:
    """
    The filters as the client sent them, so the view can re-render its
    controls. Page and limit are echoed as they were applied.
    """
    echoed = filters.model_dump(by_alias=True, exclude_none=True)
    page_request = PageRequest.of(filters.page, filters.limit)
    echoed.update(page=page_request.page, limit=page_request.limit)
    return echoed

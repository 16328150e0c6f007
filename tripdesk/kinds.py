"""
The three listing kinds (properties, vehicles, tours) share one admin
workflow but differ in column names. ``ListingKind`` records those
differences once so the filter, metric and loader code can stay generic.
"""

from dataclasses import dataclass
from typing import Any

from . import models

bookings_table = models.Booking.__table__


@dataclass(frozen=True)
class ListingKind:
    name: str
    label: str
    model: Any
    booking_model: Any
    booking_type: str
    service_type: models.ServiceType
    owner_attr: str
    type_attr: str
    price_attr: str
    search_attrs: tuple[str, ...]

    @property
    def owner(self):
        """Relationship to the owning user (the guide, for tours)."""
        return getattr(self.model, self.owner_attr)

    @property
    def owner_id(self):
        return getattr(self.model, f"{self.owner_attr}_id")

    @property
    def type_column(self):
        return getattr(self.model, self.type_attr)

    @property
    def price(self):
        return getattr(self.model, self.price_attr)

    @property
    def search_columns(self):
        return [getattr(self.model, attr) for attr in self.search_attrs]

    @property
    def booking_fk(self):
        """``bookings.<kind>_id`` as a plain table column."""
        return bookings_table.c[f"{self.booking_type}_id"]

    @property
    def review_fk(self):
        return getattr(models.Review, f"{self.booking_type}_id")


PROPERTIES = ListingKind(
    name="properties",
    label="Property",
    model=models.Property,
    booking_model=models.PropertyBooking,
    booking_type="property",
    service_type=models.ServiceType.PROPERTY,
    owner_attr="owner",
    type_attr="type",
    price_attr="base_price",
    search_attrs=("name", "description", "city", "address"),
)

VEHICLES = ListingKind(
    name="vehicles",
    label="Vehicle",
    model=models.Vehicle,
    booking_model=models.VehicleBooking,
    booking_type="vehicle",
    service_type=models.ServiceType.VEHICLE,
    owner_attr="owner",
    type_attr="type",
    price_attr="base_price",
    search_attrs=("brand", "model", "description", "city"),
)

TOURS = ListingKind(
    name="tours",
    label="Tour",
    model=models.Tour,
    booking_model=models.TourBooking,
    booking_type="tour",
    service_type=models.ServiceType.TOUR,
    owner_attr="guide",
    type_attr="category",
    price_attr="price_per_person",
    search_attrs=("title", "description", "city"),
)

LISTING_KINDS = {kind.name: kind for kind in (PROPERTIES, VEHICLES, TOURS)}

# Booking and review filters accept either the singular or the plural name
KIND_ALIASES = {
    **{kind.name: kind for kind in LISTING_KINDS.values()},
    **{kind.booking_type: kind for kind in LISTING_KINDS.values()},
}


def resolve_kind(value: str | None) -> ListingKind | None:
    if value is None:
        return None
    return KIND_ALIASES.get(value.strip().lower())


def kind_of(listing) -> ListingKind | None:
    for kind in LISTING_KINDS.values():
        if isinstance(listing, kind.model):
            return kind
    return None

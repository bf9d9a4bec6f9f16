"""Product domain models for catalog records consumed by search."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel

PRODUCT_TYPES = ("ready_to_ship", "made_to_order", "scheduled_order")

Period = Literal["daily", "weekly", "monthly"]


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps coming from the catalog as UTC."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class CamelModel(BaseModel):
    """Base model accepting the catalog's camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class GeoLocation(CamelModel):
    """Location stored either as GeoJSON coordinates or explicit lat/lng."""

    coordinates: list[float] | None = Field(
        None,
        description="GeoJSON order: [longitude, latitude]",
    )
    latitude: float | None = None
    longitude: float | None = None

    def lat_lng(self) -> tuple[float, float] | None:
        if self.coordinates and len(self.coordinates) >= 2:
            return self.coordinates[1], self.coordinates[0]
        if self.latitude is not None and self.longitude is not None:
            return self.latitude, self.longitude
        return None


class Rating(CamelModel):
    average: float = 0.0
    count: int = 0


class DeliveryStats(CamelModel):
    on_time_rate: float = 0.0


class ArtisanRef(CamelModel):
    """Read-only view of the artisan owning a product."""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(None, alias="_id")
    business_name: str | None = None
    rating: Rating = Field(default_factory=Rating)
    is_verified: bool = False
    location: GeoLocation | None = None
    delivery_stats: DeliveryStats = Field(default_factory=DeliveryStats)
    complaint_rate: float = 0.0


class BaseProduct(CamelModel):
    """Attributes shared by every product variant."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., alias="_id", min_length=1)
    name: str = ""
    description: str | None = None
    category: str | None = None
    subcategory: str | None = None
    price: float = Field(0.0, ge=0)
    unit: str | None = None
    created_at: datetime | None = None
    rating: Rating = Field(default_factory=Rating)
    location: GeoLocation | None = None
    artisan: ArtisanRef | str | None = None
    tags: list[str] = Field(default_factory=list)
    badges: list[str] = Field(default_factory=list)
    total_sales: int = 0
    favorite_count: int = 0
    is_featured: bool = False
    is_seasonal: bool = False
    is_curated: bool = False
    is_organic: bool = False

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @property
    def artisan_profile(self) -> ArtisanRef | None:
        """Return the populated artisan, ignoring bare id references."""
        return self.artisan if isinstance(self.artisan, ArtisanRef) else None

    def coordinates(self) -> tuple[float, float] | None:
        """Product coordinates as (lat, lng), falling back to the artisan's."""

        if self.location is not None:
            point = self.location.lat_lng()
            if point is not None:
                return point
        artisan = self.artisan_profile
        if artisan is not None and artisan.location is not None:
            return artisan.location.lat_lng()
        return None


class ReadyToShipProduct(BaseProduct):
    product_type: Literal["ready_to_ship"] = "ready_to_ship"
    stock: int = 0
    low_stock_threshold: int = 5

    @field_validator("stock")
    @classmethod
    def _clamp_stock(cls, value: int) -> int:
        return max(0, value)


class MadeToOrderProduct(BaseProduct):
    product_type: Literal["made_to_order"] = "made_to_order"
    total_capacity: int = 0
    remaining_capacity: int = 0
    capacity_period: Period | None = None
    last_capacity_restore: datetime | None = None

    @field_validator("total_capacity", "remaining_capacity")
    @classmethod
    def _clamp_capacity(cls, value: int) -> int:
        return max(0, value)

    @field_validator("last_capacity_restore")
    @classmethod
    def _restore_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class ScheduledOrderProduct(BaseProduct):
    product_type: Literal["scheduled_order"] = "scheduled_order"
    available_quantity: int = 0
    next_available_date: datetime | None = None
    schedule_type: Period = "daily"
    total_production_quantity: int | None = None

    @field_validator("available_quantity")
    @classmethod
    def _clamp_quantity(cls, value: int) -> int:
        return max(0, value)

    @field_validator("next_available_date")
    @classmethod
    def _next_date_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class UnclassifiedProduct(BaseProduct):
    """Product whose type is missing or unknown; rendered but never gated."""

    product_type: str | None = None


def _product_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("productType", value.get("product_type"))
    else:
        kind = getattr(value, "product_type", None)
    return kind if kind in PRODUCT_TYPES else "unclassified"


Product = Annotated[
    Union[
        Annotated[ReadyToShipProduct, Tag("ready_to_ship")],
        Annotated[MadeToOrderProduct, Tag("made_to_order")],
        Annotated[ScheduledOrderProduct, Tag("scheduled_order")],
        Annotated[UnclassifiedProduct, Tag("unclassified")],
    ],
    Discriminator(_product_kind),
]

_product_adapter: TypeAdapter[Product] = TypeAdapter(Product)


def parse_product(record: dict[str, Any] | BaseProduct) -> Product:
    """Validate a raw catalog record into its product variant."""

    if isinstance(record, BaseProduct):
        return record
    return _product_adapter.validate_python(record)

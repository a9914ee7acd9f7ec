"""Pydantic models describing the Google Business Profile payloads.

Only the fields the domain reads are declared. Every model keeps unknown keys
(``extra="allow"``) because the raw location payload is stored verbatim.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

StarRating = Literal["ONE", "TWO", "THREE", "FOUR", "FIVE", "STAR_RATING_UNSPECIFIED"]

STAR_RATING_VALUES: dict[str, int] = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}

LOCATION_READ_MASK = ",".join(
    (
        "name",
        "title",
        "storefrontAddress",
        "phoneNumbers",
        "websiteUri",
        "categories",
        "profile",
        "regularHours",
        "specialHours",
        "moreHours",
        "openInfo",
        "latlng",
        "labels",
        "serviceItems",
        "metadata",
    )
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class GbpBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class PostalAddress(GbpBaseModel):
    address_lines: list[str] = Field(default_factory=list, alias="addressLines")
    locality: str | None = None
    administrative_area: str | None = Field(default=None, alias="administrativeArea")
    postal_code: str | None = Field(default=None, alias="postalCode")
    region_code: str | None = Field(default=None, alias="regionCode")

    def formatted(self) -> str | None:
        parts = [
            *self.address_lines,
            self.locality,
            self.administrative_area,
            self.postal_code,
            self.region_code,
        ]
        text = ", ".join(part.strip() for part in parts if part and part.strip())
        return text or None


class PhoneNumbers(GbpBaseModel):
    primary_phone: str | None = Field(default=None, alias="primaryPhone")

    _normalize_phone = field_validator("primary_phone", mode="before")(_blank_to_none)


class Category(GbpBaseModel):
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")


class Categories(GbpBaseModel):
    primary_category: Category | None = Field(default=None, alias="primaryCategory")


class LocationPayload(GbpBaseModel):
    name: str
    title: str | None = None
    storefront_address: PostalAddress | None = Field(default=None, alias="storefrontAddress")
    phone_numbers: PhoneNumbers | None = Field(default=None, alias="phoneNumbers")
    website_uri: str | None = Field(default=None, alias="websiteUri")
    categories: Categories | None = None
    update_time: datetime | None = Field(default=None, alias="updateTime")

    _normalize_website = field_validator("website_uri", mode="before")(_blank_to_none)


class ListLocationsResponse(GbpBaseModel):
    locations: list[dict[str, object]] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")

    _normalize_token = field_validator("next_page_token", mode="before")(_blank_to_none)


class Reviewer(GbpBaseModel):
    display_name: str | None = Field(default=None, alias="displayName")
    is_anonymous: bool = Field(default=False, alias="isAnonymous")


class ReviewReply(GbpBaseModel):
    comment: str
    update_time: datetime | None = Field(default=None, alias="updateTime")


class ReviewPayload(GbpBaseModel):
    name: str
    review_id: str | None = Field(default=None, alias="reviewId")
    reviewer: Reviewer | None = None
    star_rating: StarRating = Field(default="STAR_RATING_UNSPECIFIED", alias="starRating")
    comment: str | None = None
    create_time: datetime = Field(alias="createTime")
    update_time: datetime | None = Field(default=None, alias="updateTime")
    review_reply: ReviewReply | None = Field(default=None, alias="reviewReply")

    @property
    def rating(self) -> int | None:
        return STAR_RATING_VALUES.get(self.star_rating)


class ListReviewsResponse(GbpBaseModel):
    reviews: list[dict[str, object]] = Field(default_factory=list)
    average_rating: float | None = Field(default=None, alias="averageRating")
    total_review_count: int | None = Field(default=None, alias="totalReviewCount")
    next_page_token: str | None = Field(default=None, alias="nextPageToken")

    _normalize_token = field_validator("next_page_token", mode="before")(_blank_to_none)


class ErrorDetail(GbpBaseModel):
    code: int | None = None
    message: str | None = None
    status: str | None = None


class ErrorResponse(GbpBaseModel):
    error: ErrorDetail


__all__ = [
    "LOCATION_READ_MASK",
    "STAR_RATING_VALUES",
    "ErrorResponse",
    "ListLocationsResponse",
    "ListReviewsResponse",
    "LocationPayload",
    "ReviewPayload",
    "ReviewReply",
    "StarRating",
]

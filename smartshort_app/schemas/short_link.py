from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from fastapi import status
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from smartshort_app.config import settings
from smartshort_app.models.short_link import as_utc

T = TypeVar("T")


class CamelModel(BaseModel):
    """JSON uses camelCase; Python code uses the snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OwnerScoped(CamelModel):
    user_id: str = Field(..., min_length=1, description="Owner of the link")


class ShortLinkCreate(OwnerScoped):
    # Plain str: the service validates it and stores it unmodified
    original_url: Optional[str] = Field(None, description="The original URL to be shortened")
    custom_alias: Optional[str] = Field(None, description="3-20 letters, digits or hyphens")
    title: Optional[str] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None


class ShortLinkUpdate(OwnerScoped):
    """Only fields present in the request body are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    custom_alias: Optional[str] = None
    expires_at: Optional[datetime] = None
    keywords: Optional[List[str]] = None
    preview_image: Optional[str] = None
    is_active: Optional[bool] = None


class BulkDeleteRequest(OwnerScoped):
    url_ids: List[str] = Field(..., min_length=1)


class OwnerRequest(OwnerScoped):
    pass


class ShortLinkResponse(CamelModel):
    """Serializes a ShortLink row (from_attributes = ORM mode)."""

    id: str
    original_url: str
    short_code: str
    custom_alias: Optional[str] = None
    owner_id: str = Field(..., alias="userId")
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    preview_image: Optional[str] = None
    domain: Optional[str] = None
    is_active: bool
    expires_at: Optional[datetime] = None
    clicks: int
    last_clicked: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_validator("expires_at", "last_clicked", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords(cls, value):
        return value or []

    @computed_field(alias="shortUrl")
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/r/{self.short_code}"


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CreationMetadata(CamelModel):
    suggested_alias: Optional[str] = None
    category: Optional[str] = None


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class CreatedResponse(ApiResponse[ShortLinkResponse]):
    metadata: CreationMetadata


class PaginatedResponse(ApiResponse[List[ShortLinkResponse]]):
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


# Error envelope produced by the exception handlers in main.py
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}

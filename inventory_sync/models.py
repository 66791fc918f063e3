"""
Pydantic models shared by the session manager, the product store and the API client.

Wire names used by the inventory API (``_id``, ``imageUrl``, ``totalValue``,
``lowStockCount``) are mapped to snake_case attributes through aliases.
"""

import mimetypes
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SessionStatus(str, Enum):
    """Lifecycle states of a session."""

    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    INVALID = "invalid"


class Principal(BaseModel):
    """Identity of the authenticated user."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: Optional[str] = None
    role: str = "user"


class Product(BaseModel):
    """
    Inventory product as returned by the API.

    Instances are immutable; the store replaces them instead of mutating them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = Field(min_length=1)
    description: str = ""
    category: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=0, ge=0)
    image_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("imageUrl", "image_ref")
    )

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def stock_value(self) -> Decimal:
        return self.price * self.quantity

    def is_low_stock(self, threshold: int = 5) -> bool:
        return self.quantity <= threshold


class InventoryStats(BaseModel):
    """Aggregates reported by the server alongside a product listing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    count: int = Field(default=0, ge=0)
    total_value: Decimal = Field(
        default=Decimal("0"), validation_alias=AliasChoices("totalValue", "total_value")
    )
    low_stock_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("lowStockCount", "low_stock_count"),
    )


class ProductListing(BaseModel):
    """Result of a list request: products in server order plus server aggregates."""

    model_config = ConfigDict(frozen=True)

    items: Tuple[Product, ...] = ()
    stats: InventoryStats = InventoryStats()

    @classmethod
    def from_response(cls, body: Dict[str, Any]) -> "ProductListing":
        """
        Build a listing from a ``GET /api/products`` response body.

        The aggregates are taken from the body as reported; ``count`` falls
        back to the number of items only when the server omits it.
        """
        items = tuple(Product.model_validate(item) for item in body.get("data") or [])
        stats = InventoryStats.model_validate(
            {
                "count": body.get("count", len(items)),
                "totalValue": body.get("totalValue", 0),
                "lowStockCount": body.get("lowStockCount", 0),
            }
        )
        return cls(items=items, stats=stats)


class AuthResult(BaseModel):
    """Credential and identity returned by the login and register endpoints."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    principal: Principal


class ImageAttachment(BaseModel):
    """Image file to upload with a product draft."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ImageAttachment":
        file_path = Path(path)
        content_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            filename=file_path.name,
            content=file_path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        )

    def as_upload(self) -> Tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


class ProductDraft(BaseModel):
    """
    Product form state submitted for create or update.

    Every field is optional so an incomplete form can be represented; the
    store rejects drafts that miss required fields before any request is sent.
    Blank strings for numeric fields are treated as missing.
    """

    model_config = ConfigDict(frozen=True)

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("name", "category", "price")

    name: Optional[str] = None
    description: str = ""
    category: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None
    image: Optional[ImageAttachment] = None

    @field_validator("price", "quantity", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_fields(self) -> List[str]:
        """Names of required fields that are absent or blank."""
        missing = []
        for field_name in self.REQUIRED_FIELDS:
            value = getattr(self, field_name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(field_name)
        return missing

    def negative_fields(self) -> List[str]:
        negative = []
        if self.price is not None and self.price < 0:
            negative.append("price")
        if self.quantity is not None and self.quantity < 0:
            negative.append("quantity")
        return negative

    @property
    def is_multipart(self) -> bool:
        return self.image is not None

    def to_fields(self) -> Dict[str, Any]:
        """Scalar fields as sent in a JSON body."""
        fields: Dict[str, Any] = {
            "name": (self.name or "").strip(),
            "description": self.description,
            "category": (self.category or "").strip(),
            "price": float(self.price) if self.price is not None else None,
            "quantity": self.quantity if self.quantity is not None else 0,
        }
        return fields

    def to_form_fields(self) -> Dict[str, str]:
        """Scalar fields as multipart form values."""
        return {
            key: str(value) for key, value in self.to_fields().items() if value is not None
        }


class FilterSpec(BaseModel):
    """Search, category and sort criteria for one product list request."""

    model_config = ConfigDict(frozen=True)

    search_term: Optional[str] = None
    category: Optional[str] = None
    sort_key: Optional[str] = None

"""
Shared value objects.

Immutable, validated domain primitives.
Following DDD value object pattern.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserId(BaseModel):
    """
    User ID value object.

    Wraps string ID with validation and type safety.

    Example:
        >>> user_id = UserId(value="user_123")
        >>> assert str(user_id) == "user_123"
        >>> user_id2 = UserId.from_string("user_456")
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1, description="User identifier")

    @field_validator("value")
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Ensure not empty or whitespace."""
        if not v.strip():
            raise ValueError("UserId cannot be empty or whitespace")
        return v.strip()

    def __str__(self) -> str:
        """String representation."""
        return self.value

    def __repr__(self) -> str:
        """Debug representation."""
        return f"UserId('{self.value}')"

    def __hash__(self) -> int:
        """Allow use as dict key."""
        return hash(self.value)

    @classmethod
    def from_string(cls, s: str) -> UserId:
        """Create from string."""
        return cls(value=s)


class ProductId(BaseModel):
    """
    Product record ID value object.

    Identifies the persisted product row an analysis belongs to
    (barcode products and photo scans alike).

    Example:
        >>> product_id = ProductId(value="prod_42")
        >>> assert str(product_id) == "prod_42"
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1, description="Product identifier")

    @field_validator("value")
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Ensure not empty or whitespace."""
        if not v.strip():
            raise ValueError("ProductId cannot be empty or whitespace")
        return v.strip()

    def __str__(self) -> str:
        """String representation."""
        return self.value

    def __repr__(self) -> str:
        """Debug representation."""
        return f"ProductId('{self.value}')"

    def __hash__(self) -> int:
        """Allow use as dict key."""
        return hash(self.value)

    @classmethod
    def from_string(cls, s: str) -> ProductId:
        """Create from string."""
        return cls(value=s)


class AnalysisKey(BaseModel):
    """
    Composite (product, user) key.

    Used by the result cache and by the orchestrator in-flight marker.

    Example:
        >>> key = AnalysisKey.of("prod_1", "user_1")
        >>> assert str(key) == "prod_1:user_1"
    """

    model_config = ConfigDict(frozen=True)

    product_id: ProductId
    user_id: UserId

    def __str__(self) -> str:
        """String representation."""
        return f"{self.product_id}:{self.user_id}"

    def __hash__(self) -> int:
        """Allow use as dict key."""
        return hash((self.product_id.value, self.user_id.value))

    @classmethod
    def of(cls, product_id: str, user_id: str) -> AnalysisKey:
        """Create from raw strings."""
        return cls(
            product_id=ProductId.from_string(product_id),
            user_id=UserId.from_string(user_id),
        )


USER_INGREDIENT_PREFIX = "user_"


def generate_user_ingredient_id() -> str:
    """
    Generate id for a user-added ingredient.

    User ids live in their own namespace ("user_<hex>") so they never
    collide with ids emitted by the model ("1", "2", ...).

    Example:
        >>> new_id = generate_user_ingredient_id()
        >>> assert new_id.startswith("user_")
    """
    return f"{USER_INGREDIENT_PREFIX}{uuid.uuid4().hex[:12]}"

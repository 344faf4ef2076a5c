"""
Product attribute definition schemas.
"""

from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema


class ProductAttributeOption(BaseSchema):
    """Selectable value of an enum-type attribute."""
    id: int
    definition_id: Optional[int] = None
    label: str
    slug: Optional[str] = None
    is_archived: bool = False
    merged_into_id: Optional[int] = None


class ProductAttributeDefinition(BaseSchema):
    """Custom product attribute (e.g. fabric weight, fit)."""
    id: int
    key: str
    label: str
    data_type: str
    is_required: bool = False
    is_filterable: bool = False
    enum_options: Optional[Any] = None
    validation: Optional[Any] = None
    applies_to_product_types: list[str] = Field(default_factory=list)
    applies_to_category_ids: list[int] = Field(default_factory=list)
    applies_to_subcategory_ids: list[int] = Field(default_factory=list)
    display_width: str = "full"
    options: list[ProductAttributeOption] = Field(default_factory=list)
    sort_order: int = 0

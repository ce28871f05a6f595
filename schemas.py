# schemas.py

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from utils import format_price

# Validation error types meaning "absent or empty" rather than "wrong type or out of range".
MISSING_VALUE_ERROR_TYPES = {"missing", "string_too_short", "too_short"}

# Upper bound on the significant digits of a unit price.
MAX_PRICE_DIGITS = 18


def has_missing_value(error: ValidationError) -> bool:
    """True when at least one problem is an absent, null or empty value."""
    return any(
        err["type"] in MISSING_VALUE_ERROR_TYPES or err.get("input", "") is None
        for err in error.errors()
    )


def summarize_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in error.errors()
    )


class CaseInsensitiveModel(BaseModel):
    """Immutable model whose wire keys are matched regardless of case."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _match_keys_case_insensitively(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        canonical = {(field.alias or name).lower(): field.alias or name for name, field in cls.model_fields.items()}
        return {canonical.get(str(key).lower(), key): value for key, value in data.items()}


class OrderedArticle(CaseInsensitiveModel):
    article_name: str = Field(alias="articleName", min_length=1)
    quantity: int = Field(gt=0)
    price_per_unit: Decimal = Field(alias="pricePerUnit", ge=0, max_digits=MAX_PRICE_DIGITS)

    @property
    def quantity_text(self) -> str:
        return str(self.quantity)

    @property
    def price_text(self) -> str:
        return format_price(self.price_per_unit)


class Order(CaseInsensitiveModel):
    """A validated purchase order. Article order is the order of entry into the target UI."""
    customer_name: str = Field(alias="customerName", min_length=1)
    ordered_articles: Tuple[OrderedArticle, ...] = Field(alias="orderedArticles", min_length=1)


class RequiredRole(str, Enum):
    CUSTOMER_NAME = "customerName"
    ARTICLE_NAME = "articleName"
    QUANTITY = "quantity"
    PRICE_PER_UNIT = "pricePerUnit"
    ADD_ITEM_BUTTON = "addItemButton"
    SAVE_ORDER_BUTTON = "saveOrderButton"

    @property
    def wire_key(self) -> str:
        return f"elementId{self.value[0].upper()}{self.value[1:]}"


REQUIRED_ROLES: FrozenSet[RequiredRole] = frozenset(RequiredRole)

ROLE_DESCRIPTIONS: Dict[RequiredRole, str] = {
    RequiredRole.CUSTOMER_NAME: "the text input for the customer name",
    RequiredRole.ARTICLE_NAME: "the text input for the article (product) name",
    RequiredRole.QUANTITY: "the input for the ordered quantity",
    RequiredRole.PRICE_PER_UNIT: "the input for the price per unit",
    RequiredRole.ADD_ITEM_BUTTON: "the button that adds the current article as a line item",
    RequiredRole.SAVE_ORDER_BUTTON: "the button that saves the whole order",
}


class ElementRoleMap(CaseInsensitiveModel):
    """Element identifiers of the resolved roles, taken from one automation tree snapshot."""
    customer_name: Optional[str] = Field(None, alias="elementIdCustomerName", min_length=1)
    article_name: Optional[str] = Field(None, alias="elementIdArticleName", min_length=1)
    quantity: Optional[str] = Field(None, alias="elementIdQuantity", min_length=1)
    price_per_unit: Optional[str] = Field(None, alias="elementIdPricePerUnit", min_length=1)
    add_item_button: Optional[str] = Field(None, alias="elementIdAddItemButton", min_length=1)
    save_order_button: Optional[str] = Field(None, alias="elementIdSaveOrderButton", min_length=1)

    @property
    def resolved_roles(self) -> FrozenSet[RequiredRole]:
        return frozenset(role for role, name in _ROLE_FIELDS.items() if getattr(self, name) is not None)

    def element_for(self, role: RequiredRole) -> str:
        element_id = getattr(self, _ROLE_FIELDS[role])
        if element_id is None:
            raise KeyError(f"Role '{role.value}' was not resolved.")
        return element_id


_ROLE_FIELDS = {
    RequiredRole.CUSTOMER_NAME: "customer_name",
    RequiredRole.ARTICLE_NAME: "article_name",
    RequiredRole.QUANTITY: "quantity",
    RequiredRole.PRICE_PER_UNIT: "price_per_unit",
    RequiredRole.ADD_ITEM_BUTTON: "add_item_button",
    RequiredRole.SAVE_ORDER_BUTTON: "save_order_button",
}


class DocumentSnapshot(BaseModel):
    """Raw visual snapshot of the source document."""
    image_bytes: bytes = b""
    success: bool
    mime_type: str = "image/jpeg"
    message: Optional[str] = None


class WindowInfo(BaseModel):
    """A top-level window as reported by the automation server. Unknown fields are kept."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)
    id: str
    title: Optional[str] = None


class SystemOverview(BaseModel):
    focused_window: Optional[WindowInfo] = None
    windows: List[WindowInfo] = Field(default_factory=list)


class AutomationTreeSnapshot(BaseModel):
    """Serialized automation tree of one window."""
    window_id: str
    title: Optional[str] = None
    tree_json: str
    has_elements: bool = True


class RunStatus(BaseModel):
    """Defines the schema for a pipeline run's status response."""
    run_id: str
    status: str
    details: str
    state: str = "Idle"
    failed_stage: Optional[str] = None
    failure_reason: Optional[str] = None
    customer_name: Optional[str] = None
    total_articles: int = 0
    articles_filled: int = 0
    progress_percent: float = 0.0

# src/models/entities.py
"""
Entity kinds and their typed field declarations.

Describes what each input file must contain and how its values are typed,
independently of the ORM mapping in models.py.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple


class EntityKind(str, Enum):
    CUSTOMER = "customers"
    PRODUCT = "products"
    ORDER = "orders"
    ORDER_PAYMENT = "order_payments"
    ORDER_ITEM = "order_items"


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType = FieldType.STRING
    mandatory: bool = False
    non_negative: bool = False
    aliases: Tuple[str, ...] = ()

    @property
    def headers(self) -> Tuple[str, ...]:
        """Header names accepted for this field."""
        return (self.name,) + self.aliases


ENTITY_FIELDS: Dict[EntityKind, Tuple[FieldSpec, ...]] = {
    EntityKind.CUSTOMER: (
        FieldSpec("customer_id", mandatory=True),
        FieldSpec("customer_unique_id", mandatory=True),
        FieldSpec("customer_zip_code_prefix"),
        FieldSpec("customer_city"),
        FieldSpec("customer_state"),
    ),
    EntityKind.PRODUCT: (
        FieldSpec("product_id", mandatory=True),
        FieldSpec("product_category_name"),
        # The public dataset ships these two headers misspelled
        FieldSpec(
            "product_name_length", FieldType.INTEGER, aliases=("product_name_lenght",)
        ),
        FieldSpec(
            "product_description_length",
            FieldType.INTEGER,
            aliases=("product_description_lenght",),
        ),
        FieldSpec("product_photos_qty", FieldType.INTEGER),
        FieldSpec("product_weight_g", FieldType.INTEGER),
        FieldSpec("product_length_cm", FieldType.INTEGER),
        FieldSpec("product_height_cm", FieldType.INTEGER),
        FieldSpec("product_width_cm", FieldType.INTEGER),
    ),
    EntityKind.ORDER: (
        FieldSpec("order_id", mandatory=True),
        FieldSpec("customer_id", mandatory=True),
        FieldSpec("order_status", mandatory=True),
        FieldSpec("order_purchase_timestamp", FieldType.TIMESTAMP, mandatory=True),
        FieldSpec("order_approved_at", FieldType.TIMESTAMP),
        FieldSpec("order_delivered_carrier_date", FieldType.TIMESTAMP),
        FieldSpec("order_delivered_customer_date", FieldType.TIMESTAMP),
        FieldSpec("order_estimated_delivery_date", FieldType.TIMESTAMP),
    ),
    EntityKind.ORDER_PAYMENT: (
        FieldSpec("order_id", mandatory=True),
        FieldSpec("payment_sequential", FieldType.INTEGER, mandatory=True),
        FieldSpec("payment_type"),
        FieldSpec("payment_installments", FieldType.INTEGER),
        FieldSpec(
            "payment_value", FieldType.DECIMAL, mandatory=True, non_negative=True
        ),
    ),
    EntityKind.ORDER_ITEM: (
        FieldSpec("order_id", mandatory=True),
        FieldSpec("order_item_id", FieldType.INTEGER, mandatory=True),
        FieldSpec("product_id", mandatory=True),
        FieldSpec("seller_id"),
        FieldSpec("shipping_limit_date", FieldType.TIMESTAMP),
        FieldSpec("price", FieldType.DECIMAL, mandatory=True, non_negative=True),
        FieldSpec(
            "freight_value", FieldType.DECIMAL, mandatory=True, non_negative=True
        ),
    ),
}

# Primary key columns per entity kind (composite where needed)
KEY_FIELDS: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.CUSTOMER: ("customer_id",),
    EntityKind.PRODUCT: ("product_id",),
    EntityKind.ORDER: ("order_id",),
    EntityKind.ORDER_PAYMENT: ("order_id", "payment_sequential"),
    EntityKind.ORDER_ITEM: ("order_id", "order_item_id"),
}

# Foreign key column -> referenced entity kind
FOREIGN_KEYS: Dict[EntityKind, Dict[str, EntityKind]] = {
    EntityKind.CUSTOMER: {},
    EntityKind.PRODUCT: {},
    EntityKind.ORDER: {"customer_id": EntityKind.CUSTOMER},
    EntityKind.ORDER_PAYMENT: {"order_id": EntityKind.ORDER},
    EntityKind.ORDER_ITEM: {
        "order_id": EntityKind.ORDER,
        "product_id": EntityKind.PRODUCT,
    },
}

# Parents before children
LOAD_ORDER: List[EntityKind] = [
    EntityKind.CUSTOMER,
    EntityKind.PRODUCT,
    EntityKind.ORDER,
    EntityKind.ORDER_PAYMENT,
    EntityKind.ORDER_ITEM,
]

# Children before parents
CLEAR_ORDER: List[EntityKind] = [
    EntityKind.ORDER_ITEM,
    EntityKind.ORDER_PAYMENT,
    EntityKind.ORDER,
    EntityKind.CUSTOMER,
    EntityKind.PRODUCT,
]


def parents_of(kind: EntityKind) -> List[EntityKind]:
    """Direct parents of an entity kind, in load order."""
    referenced = set(FOREIGN_KEYS[kind].values())
    return [k for k in LOAD_ORDER if k in referenced]


def ancestors_of(kind: EntityKind) -> List[EntityKind]:
    """All entity kinds that must be loaded before `kind`, in load order."""
    found = set()
    pending = parents_of(kind)
    while pending:
        parent = pending.pop()
        if parent not in found:
            found.add(parent)
            pending.extend(parents_of(parent))
    return [k for k in LOAD_ORDER if k in found]

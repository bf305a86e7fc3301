# tests/conftest.py

import os
import sys

import pytest

# make the project root importable (so both src/ and config/ work)
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from src.loaders.data_loader import DataLoader  # noqa: E402
from src.models.database import Database  # noqa: E402
from src.models.entities import EntityKind  # noqa: E402

# Headers exactly as shipped in the public dataset
HEADERS = {
    EntityKind.CUSTOMER: [
        "customer_id",
        "customer_unique_id",
        "customer_zip_code_prefix",
        "customer_city",
        "customer_state",
    ],
    EntityKind.PRODUCT: [
        "product_id",
        "product_category_name",
        "product_name_lenght",
        "product_description_lenght",
        "product_photos_qty",
        "product_weight_g",
        "product_length_cm",
        "product_height_cm",
        "product_width_cm",
    ],
    EntityKind.ORDER: [
        "order_id",
        "customer_id",
        "order_status",
        "order_purchase_timestamp",
        "order_approved_at",
        "order_delivered_carrier_date",
        "order_delivered_customer_date",
        "order_estimated_delivery_date",
    ],
    EntityKind.ORDER_PAYMENT: [
        "order_id",
        "payment_sequential",
        "payment_type",
        "payment_installments",
        "payment_value",
    ],
    EntityKind.ORDER_ITEM: [
        "order_id",
        "order_item_id",
        "product_id",
        "seller_id",
        "shipping_limit_date",
        "price",
        "freight_value",
    ],
}

SAMPLE_ROWS = {
    EntityKind.CUSTOMER: [
        ["c1", "u1", "01310", "sao paulo", "SP"],
        ["c2", "u2", "20040", "rio de janeiro", "RJ"],
        ["c3", "u3", "30130", "belo horizonte", "MG"],
    ],
    EntityKind.PRODUCT: [
        ["p1", "toys", "40", "287", "1", "225", "16", "10", "14"],
        ["p2", "toys", "44", "276", "1", "1000", "30", "18", "20"],
        ["p3", "books", "", "", "", "154", "18", "9", "15"],
        ["p4", "", "", "", "", "", "", "", ""],
    ],
    EntityKind.ORDER: [
        ["o1", "c1", "delivered", "2017-01-05 10:00:00", "2017-01-05 10:15:00",
         "2017-01-06 09:00:00", "2017-01-10 14:00:00", "2017-01-20 00:00:00"],
        ["o2", "c2", "delivered", "2017-01-20 12:30:00", "2017-01-20 13:00:00",
         "2017-01-21 08:00:00", "2017-01-25 16:00:00", "2017-02-05 00:00:00"],
        ["o3", "c3", "delivered", "2017-02-03 08:00:00", "2017-02-03 08:05:00",
         "2017-02-04 10:00:00", "2017-02-09 11:00:00", "2017-02-20 00:00:00"],
        ["o4", "c1", "canceled", "2017-02-10 09:00:00", "", "", "", "2017-02-28 00:00:00"],
    ],
    EntityKind.ORDER_PAYMENT: [
        ["o1", "1", "credit_card", "1", "60.00"],
        ["o1", "2", "voucher", "1", "40.00"],
        ["o2", "1", "boleto", "1", "250.00"],
        ["o3", "1", "credit_card", "3", "40.00"],
        ["o4", "1", "credit_card", "1", "999.00"],
    ],
    EntityKind.ORDER_ITEM: [
        ["o1", "1", "p1", "s1", "2017-01-09 10:00:00", "50.00", "10.00"],
        ["o1", "2", "p3", "s2", "2017-01-09 10:00:00", "30.00", "10.00"],
        ["o2", "1", "p1", "s1", "2017-01-24 12:30:00", "230.00", "20.00"],
        ["o3", "1", "p2", "s1", "2017-02-07 08:00:00", "35.00", "5.00"],
        ["o4", "1", "p4", "s3", "2017-02-14 09:00:00", "900.00", "99.00"],
        ["o4", "2", "p3", "s2", "2017-02-14 09:00:00", "0.00", "0.00"],
    ],
}


def write_delimited(path, header, rows, delimiter=";"):
    lines = [delimiter.join(header)] + [delimiter.join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def write_source(tmp_path):
    """Factory writing one source file for an entity kind and returning its path."""

    def _write(kind, rows, header=None, delimiter=";", name=None):
        kind = EntityKind(kind)
        path = tmp_path / (name or f"{kind.value}.csv")
        return write_delimited(path, header or HEADERS[kind], rows, delimiter)

    return _write


@pytest.fixture
def sample_sources(write_source):
    """The five sample files, keyed by entity kind."""
    return {kind: write_source(kind, rows) for kind, rows in SAMPLE_ROWS.items()}


@pytest.fixture
def database(tmp_path):
    """An opened database on a temporary SQLite file."""
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.open()
    yield db
    db.close()


@pytest.fixture
def loaded_database(database, sample_sources):
    DataLoader(database).load_all(sample_sources)
    return database

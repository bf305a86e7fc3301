import json

import pytest
from sqlalchemy import func, select

from src.errors import ErrorKind, TablesNotEmptyError
from src.loaders.data_loader import DataLoader, default_sources, load_all
from src.loaders.load_report import EntityStatus
from src.models.database import LoadStatus
from src.models.entities import EntityKind
from src.models.models import Customer, Order, OrderItem, OrderPayment, Product

from conftest import HEADERS, SAMPLE_ROWS

ALL_MODELS = (Customer, Product, Order, OrderPayment, OrderItem)


def _count(db, model):
    with db.session() as session:
        return session.scalar(select(func.count()).select_from(model))


def _snapshot(db):
    """Every row of every table, as sorted tuples of column values."""
    snapshot = {}
    with db.session() as session:
        for model in ALL_MODELS:
            table = model.__table__
            rows = session.execute(select(table)).all()
            snapshot[table.name] = sorted(tuple(str(v) for v in row) for row in rows)
    return snapshot


def test_load_all_inserts_every_valid_row(database, sample_sources):
    loader = DataLoader(database)
    report = loader.load_all(sample_sources)

    for kind, rows in SAMPLE_ROWS.items():
        assert report[kind].status == EntityStatus.LOADED
        assert report[kind].inserted == len(rows)
        assert report[kind].rejected == []

    assert _count(database, Customer) == 3
    assert _count(database, OrderItem) == 6
    assert loader.status == LoadStatus.COMPLETE
    assert not report.has_failures
    assert report.started_at.tzinfo is not None


def test_loaded_values_are_typed(loaded_database):
    with loaded_database.session() as session:
        order = session.get(Order, "o1")
        assert order.order_purchase_timestamp.year == 2017
        assert order.customer.customer_unique_id == "u1"
        assert len(order.payments) == 2
        product = session.get(Product, "p4")
        assert product.product_category_name is None
        assert session.get(Product, "p1").product_name_length == 40


def test_mandatory_field_missing_is_rejected(database, write_source):
    sources = {
        EntityKind.CUSTOMER: write_source(
            EntityKind.CUSTOMER,
            [["c1", "u1", "", "", ""], ["", "u2", "", "", ""], ["c3", "", "", "", ""]],
        )
    }
    report = DataLoader(database).load_all(sources)

    result = report[EntityKind.CUSTOMER]
    assert result.inserted == 1
    assert [r.error_kind for r in result.rejected] == [
        ErrorKind.MANDATORY_FIELD_MISSING,
        ErrorKind.MANDATORY_FIELD_MISSING,
    ]
    assert [r.line_number for r in result.rejected] == [3, 4]
    assert _count(database, Customer) == 1


def test_duplicate_keys_are_rejected(database, write_source):
    sources = {
        EntityKind.CUSTOMER: write_source(EntityKind.CUSTOMER, [["c1", "u1", "", "", ""]]),
        EntityKind.ORDER: write_source(
            EntityKind.ORDER,
            [
                ["o1", "c1", "delivered", "2017-01-05 10:00:00", "", "", "", ""],
                ["o1", "c1", "shipped", "2017-01-06 10:00:00", "", "", "", ""],
            ],
        ),
        EntityKind.ORDER_PAYMENT: write_source(
            EntityKind.ORDER_PAYMENT,
            [["o1", "1", "boleto", "1", "10"], ["o1", "1", "boleto", "1", "20"]],
        ),
    }
    report = DataLoader(database).load_all(sources)

    assert report[EntityKind.ORDER].inserted == 1
    (rejected,) = report[EntityKind.ORDER].rejected
    assert rejected.error_kind == ErrorKind.UNIQUENESS_VIOLATION
    assert rejected.line_number == 3

    assert report[EntityKind.ORDER_PAYMENT].inserted == 1
    assert report[EntityKind.ORDER_PAYMENT].rejected[0].error_kind == (
        ErrorKind.UNIQUENESS_VIOLATION
    )


def test_orders_without_customers_are_referential_violations(database, sample_sources):
    sources = {EntityKind.ORDER: sample_sources[EntityKind.ORDER]}
    report = DataLoader(database).load_all(sources)

    result = report[EntityKind.ORDER]
    assert result.status == EntityStatus.LOADED
    assert result.inserted == 0
    assert len(result.rejected) == len(SAMPLE_ROWS[EntityKind.ORDER])
    assert all(r.error_kind == ErrorKind.REFERENTIAL_VIOLATION for r in result.rejected)
    assert all(r.field == "customer_id" for r in result.rejected)
    assert _count(database, Order) == 0


def test_parents_from_previous_run_satisfy_references(database, sample_sources):
    loader = DataLoader(database)
    loader.load_all({EntityKind.CUSTOMER: sample_sources[EntityKind.CUSTOMER]})
    report = loader.load_all({EntityKind.ORDER: sample_sources[EntityKind.ORDER]})

    assert report[EntityKind.ORDER].inserted == 4
    assert report[EntityKind.ORDER].rejected == []


def test_item_with_unknown_product_is_rejected(database, sample_sources, write_source):
    sources = dict(sample_sources)
    sources[EntityKind.ORDER_ITEM] = write_source(
        EntityKind.ORDER_ITEM,
        SAMPLE_ROWS[EntityKind.ORDER_ITEM]
        + [["o2", "2", "p999", "s1", "2017-01-24 12:30:00", "1.00", "1.00"]],
    )
    report = DataLoader(database).load_all(sources)

    result = report[EntityKind.ORDER_ITEM]
    assert result.inserted == 6
    (rejected,) = result.rejected
    assert rejected.error_kind == ErrorKind.REFERENTIAL_VIOLATION
    assert rejected.field == "product_id"


def test_missing_parent_file_skips_dependents(database, sample_sources, tmp_path):
    sources = dict(sample_sources)
    sources[EntityKind.CUSTOMER] = tmp_path / "does_not_exist.csv"
    loader = DataLoader(database)
    report = loader.load_all(sources)

    assert report[EntityKind.CUSTOMER].status == EntityStatus.FAILED
    assert "does_not_exist.csv" in report[EntityKind.CUSTOMER].error

    # products do not depend on customers
    assert report[EntityKind.PRODUCT].status == EntityStatus.LOADED
    assert report[EntityKind.PRODUCT].inserted == 4

    for kind in (EntityKind.ORDER, EntityKind.ORDER_PAYMENT, EntityKind.ORDER_ITEM):
        assert report[kind].status == EntityStatus.SKIPPED
        assert report[kind].skipped == len(SAMPLE_ROWS[kind])
        assert report[kind].inserted == 0

    assert _count(database, Order) == 0
    assert loader.status == LoadStatus.FAILED
    assert report.has_failures
    assert report.total_skipped == 4 + 5 + 6


def test_header_mismatch_fails_file_and_skips_items(database, sample_sources, write_source):
    sources = dict(sample_sources)
    sources[EntityKind.PRODUCT] = write_source(
        EntityKind.PRODUCT, [["p1", "toys"]], header=["product_id", "category"]
    )
    report = DataLoader(database).load_all(sources)

    assert report[EntityKind.PRODUCT].status == EntityStatus.FAILED
    assert report[EntityKind.ORDER].status == EntityStatus.LOADED
    assert report[EntityKind.ORDER_PAYMENT].status == EntityStatus.LOADED
    assert report[EntityKind.ORDER_ITEM].status == EntityStatus.SKIPPED


def test_undecodable_row_does_not_fail_the_file(database, write_source, tmp_path):
    customers = tmp_path / "customers.csv"
    customers.write_bytes(
        ";".join(HEADERS[EntityKind.CUSTOMER]).encode()
        + b"\nc1;u1;01310;campinas;SP\nc2;u2;01310;s\xe3o paulo;SP\n"
    )
    orders = write_source(
        EntityKind.ORDER,
        [["o1", "c1", "delivered", "2017-01-05 10:00:00", "", "", "", ""]],
    )
    loader = DataLoader(database)
    report = loader.load_all({EntityKind.CUSTOMER: customers, EntityKind.ORDER: orders})

    result = report[EntityKind.CUSTOMER]
    assert result.status == EntityStatus.LOADED
    assert result.inserted == 1
    assert [(r.line_number, r.error_kind) for r in result.rejected] == [
        (3, ErrorKind.FIELD_COERCION)
    ]
    assert report[EntityKind.ORDER].inserted == 1
    assert loader.status == LoadStatus.COMPLETE


def test_reload_into_populated_tables_is_refused(loaded_database, sample_sources):
    loader = DataLoader(loaded_database)
    with pytest.raises(TablesNotEmptyError) as exc:
        loader.load_all(sample_sources)

    assert "customers" in exc.value.tables
    assert loader.status == LoadStatus.COMPLETE
    assert _count(loaded_database, Customer) == 3


def test_clear_then_reload_is_identical(database, sample_sources):
    loader = DataLoader(database)
    loader.load_all(sample_sources)
    first = _snapshot(database)

    database.clear_all()
    assert loader.status == LoadStatus.NOT_LOADED
    loader.load_all(sample_sources)

    assert _snapshot(database) == first


def test_small_batches(database, sample_sources):
    report = DataLoader(database, batch_size=2).load_all(sample_sources)
    assert report.total_inserted == sum(len(rows) for rows in SAMPLE_ROWS.values())
    assert _count(database, OrderPayment) == 5


def test_database_rejections_fall_back_to_row_by_row(
    database, sample_sources, write_source, monkeypatch
):
    """Rows the pre-checks miss are still rejected individually by the engine."""

    class _KnowsEverything(set):
        def __contains__(self, item):
            return True

    original = DataLoader._key_set

    def fake_key_set(self, session, kind, keys):
        if kind == EntityKind.CUSTOMER:
            return _KnowsEverything()
        return original(self, session, kind, keys)

    # c3 is left out so its order fails the database foreign key check
    customers = write_source(EntityKind.CUSTOMER, SAMPLE_ROWS[EntityKind.CUSTOMER][:2])
    DataLoader(database).load_all({EntityKind.CUSTOMER: customers})

    monkeypatch.setattr(DataLoader, "_key_set", fake_key_set)
    report = DataLoader(database).load_all(
        {EntityKind.ORDER: sample_sources[EntityKind.ORDER]}
    )

    result = report[EntityKind.ORDER]
    assert result.inserted == 3
    (rejected,) = result.rejected
    assert rejected.error_kind == ErrorKind.REFERENTIAL_VIOLATION
    assert rejected.line_number == 4


def test_string_keys_and_module_shortcut(database, sample_sources):
    sources = {kind.value: str(path) for kind, path in sample_sources.items()}
    report = load_all(database, sources)
    assert report.total_inserted == 22


def test_report_saved_as_json(database, sample_sources, write_source, tmp_path):
    sources = dict(sample_sources)
    sources[EntityKind.CUSTOMER] = write_source(
        EntityKind.CUSTOMER, SAMPLE_ROWS[EntityKind.CUSTOMER] + [["", "u9", "", "", ""]]
    )
    report = DataLoader(database).load_all(sources)
    path = report.save_to_file(str(tmp_path / "out" / "report.json"))

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    customers = data["results"]["customers"]
    assert customers["inserted"] == 3
    assert customers["rejections_by_kind"] == {"mandatory_field_missing": 1}
    assert customers["rejected"][0]["line_number"] == 5
    assert data["summary"]["total_rejected"] == 1
    assert data["summary"]["entities"]["order_items"]["status"] == "loaded"


def test_default_sources_use_configured_names(tmp_path):
    sources = default_sources(str(tmp_path))
    assert set(sources) == set(EntityKind)
    assert sources[EntityKind.ORDER].endswith("olist_orders_dataset.csv")


def test_headers_fixture_matches_entities():
    # sanity check on the shared fixture data
    for kind, rows in SAMPLE_ROWS.items():
        assert all(len(row) == len(HEADERS[kind]) for row in rows)

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from packing.db.models import MaxPerBoxSetting
from packing.services.capacity import (
    CapacityResolver,
    bulk_upsert_settings,
    deactivate_setting,
    get_setting_by_catalog,
    list_settings,
    update_setting,
    upsert_setting,
)


def test_resolve_by_catalog_then_item_id():
    resolver = CapacityResolver([
        MaxPerBoxSetting(catalog_number="A", max_quantity=10, item_id="100", is_active=True),
        MaxPerBoxSetting(catalog_number="B", max_quantity=4, is_active=True),
    ])

    assert resolver.resolve("A") == 10
    assert resolver.resolve("B", "100") == 4
    assert resolver.resolve("UNKNOWN", "100") == 10
    assert resolver.resolve("UNKNOWN") is None
    assert resolver.resolve(None) is None


def test_inactive_and_non_positive_settings_are_ignored():
    resolver = CapacityResolver([
        MaxPerBoxSetting(catalog_number="A", max_quantity=10, is_active=False),
        MaxPerBoxSetting(catalog_number="B", max_quantity=0, is_active=True),
        MaxPerBoxSetting(catalog_number="C", max_quantity=-2, is_active=True),
    ])

    assert len(resolver) == 0
    assert resolver.resolve("A") is None
    assert resolver.resolve("B") is None


def test_load_reads_active_settings(db):
    upsert_setting(db, catalog_number="A", max_quantity=6)
    s = upsert_setting(db, catalog_number="B", max_quantity=3)
    deactivate_setting(db, s.id)
    db.commit()

    resolver = CapacityResolver.load(db)
    assert resolver.resolve("A") == 6
    assert resolver.resolve("B") is None


def test_load_failure_means_unbounded():
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("no such table"))

    resolver = CapacityResolver.load(db)
    assert len(resolver) == 0
    assert resolver.resolve("A") is None


def test_upsert_updates_and_reactivates(db):
    first = upsert_setting(db, catalog_number="A", max_quantity=6, description="Widget")
    deactivate_setting(db, first.id)
    again = upsert_setting(db, catalog_number="A", max_quantity=8)
    db.commit()

    assert again.id == first.id
    assert again.max_quantity == 8
    assert again.description == "Widget"
    assert again.is_active is True
    assert [s.catalog_number for s in list_settings(db)] == ["A"]


def test_upsert_rejects_non_positive(db):
    with pytest.raises(ValueError):
        upsert_setting(db, catalog_number="A", max_quantity=0)


def test_bulk_upsert_and_lookup(db):
    rows = bulk_upsert_settings(db, [
        {"catalog_number": "B", "max_quantity": 2},
        {"catalog_number": "A", "max_quantity": 5, "item_id": "77"},
    ])
    db.commit()

    assert len(rows) == 2
    assert [s.catalog_number for s in list_settings(db)] == ["A", "B"]
    assert get_setting_by_catalog(db, "A").item_id == "77"
    assert get_setting_by_catalog(db, "Z") is None


def test_update_and_deactivate(db):
    s = upsert_setting(db, catalog_number="A", max_quantity=5)
    update_setting(db, s.id, max_quantity=12, description="Boxed")
    assert s.max_quantity == 12 and s.description == "Boxed"

    with pytest.raises(ValueError):
        update_setting(db, s.id, max_quantity=-1)
    with pytest.raises(LookupError):
        update_setting(db, 999, max_quantity=1)
    with pytest.raises(LookupError):
        deactivate_setting(db, 999)

    deactivate_setting(db, s.id)
    db.commit()
    assert list_settings(db) == []
    assert len(list_settings(db, active_only=False)) == 1

import pytest
from pydantic import ValidationError

from chefsync.sync.collections import COLLECTIONS, validate_item, canonical_values
from chefsync.sync.kv import deep_merge, append_log


def test_canonical_fields_match_columns():
    for coll in COLLECTIONS.values():
        columns = set(coll.model.__table__.c.keys())
        assert set(coll.canonical_fields) <= columns, coll.section


def test_unknown_fields_land_in_extension_bag():
    item = validate_item(COLLECTIONS["shoppingList"], {"id": "s1", "name": "Tea", "isChecked": True, "aisle": 4})
    assert item.model_extra == {"aisle": 4}
    assert canonical_values(COLLECTIONS["shoppingList"], item) == {"name": "Tea", "is_checked": True}


def test_explicit_null_on_required_column_uses_default():
    item = validate_item(COLLECTIONS["inventory"], {"id": "a1", "name": "Tea", "quantity": None})
    assert canonical_values(COLLECTIONS["inventory"], item)["quantity"] == 1


def test_whitespace_id_rejected():
    with pytest.raises(ValidationError):
        validate_item(COLLECTIONS["recipes"], {"id": "   ", "title": "x"})


def test_deep_merge_recurses_into_objects():
    assert deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"b": 5}, "e": 3}) == {"a": {"b": 5, "c": 2}, "d": 1, "e": 3}
    assert deep_merge(None, {"a": 1}) == {"a": 1}


def test_append_log_skips_known_ids():
    merged = append_log([{"id": "1"}, {"note": "no id"}], [{"id": "1"}, {"id": "2"}, {"note": "no id"}])
    assert merged == [{"id": "1"}, {"note": "no id"}, {"id": "2"}, {"note": "no id"}]

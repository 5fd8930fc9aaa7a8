from __future__ import annotations

from batchaudit.domain.diff import changed_attribute_names, diff

TRACKED = ["name", "category", "atime", "version"]


def test_diff_reports_only_changed_tracked_attributes() -> None:
    old = {"name": "a", "category": "x", "version": 1}
    new = {"name": "b", "category": "x", "version": 1, "amount": 5}

    assert diff(TRACKED, new, old) == {"name": "b"}


def test_diff_is_independent_of_tracked_order() -> None:
    old = {"name": "a", "category": "x"}
    new = {"name": "b", "category": "y"}

    assert diff(["name", "category"], new, old) == diff(["category", "name"], new, old)


def test_diff_never_compares_time_field() -> None:
    old = {"name": "a", "atime": "2024-01-01 00:00:00.000000+00:00"}
    new = {"name": "a", "atime": "2024-06-01 00:00:00.000000+00:00"}

    assert diff(TRACKED, new, old, time_field="atime") == {}


def test_diff_treats_missing_old_value_as_first_population() -> None:
    assert diff(TRACKED, {"name": "a"}, {}) == {"name": "a"}


def test_diff_ignores_attributes_missing_from_new_values() -> None:
    assert diff(TRACKED, {}, {"name": "a"}) == {}


def test_diff_none_versus_none_is_not_a_change() -> None:
    assert diff(TRACKED, {"category": None}, {"category": None}) == {}


def test_diff_none_versus_value_is_a_change() -> None:
    assert diff(TRACKED, {"category": None}, {"category": "x"}) == {"category": None}


def test_changed_names_include_rewritten_fields_in_tracked_order() -> None:
    names = changed_attribute_names(TRACKED, {"name": "b"}, rewritten=("atime", "version"))

    assert names == ["name", "atime", "version"]


def test_changed_names_empty_without_changes() -> None:
    assert changed_attribute_names(TRACKED, {}, rewritten=("atime", "version")) == []


def test_changed_names_skip_rewritten_fields_that_are_not_tracked() -> None:
    names = changed_attribute_names(["name"], {"name": "b"}, rewritten=("atime", "version"))

    assert names == ["name"]

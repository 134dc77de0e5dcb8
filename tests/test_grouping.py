"""Tests for grouping.py."""

from prep_admin.grouping import flatten_groups, group_by_week, week_summary


def _item(title, week, order, minutes=30):
    return {"title": title, "week_number": week, "order_index": order, "estimated_minutes": minutes}


ITEMS = [
    _item("Listening 2", 1, 2),
    _item("Review", 3, 1, 45),
    _item("Listening 1", 1, 1),
    _item("Reading 1", 2, 1, 60),
]


def test_weeks_ascending_and_items_ordered():
    grouped = group_by_week(ITEMS)
    assert list(grouped) == [1, 2, 3]
    assert [item["title"] for item in grouped[1]] == ["Listening 1", "Listening 2"]


def test_grouping_is_idempotent():
    grouped = group_by_week(ITEMS)
    assert group_by_week(flatten_groups(grouped)) == grouped


def test_missing_week_and_order_default_to_zero():
    grouped = group_by_week([_item("Late", 1, 3), _item("No order", 1, None), _item("No week", None, 1)])
    assert list(grouped) == [0, 1]
    assert [item["title"] for item in grouped[1]] == ["No order", "Late"]


def test_ties_keep_input_order():
    grouped = group_by_week([_item("first", 1, 1), _item("second", 1, 1)])
    assert [item["title"] for item in grouped[1]] == ["first", "second"]


def test_empty_input():
    assert group_by_week([]) == {}


def test_week_summary():
    summary = week_summary(group_by_week(ITEMS))
    assert summary[1] == {"items": 2, "minutes": 60}
    assert summary[3] == {"items": 1, "minutes": 45}


def test_objects_are_grouped_by_attribute():
    class Item:
        def __init__(self, week_number, order_index):
            self.week_number = week_number
            self.order_index = order_index

    first, second = Item(2, 1), Item(1, 1)
    assert list(group_by_week([first, second]).items()) == [(1, [second]), (2, [first])]

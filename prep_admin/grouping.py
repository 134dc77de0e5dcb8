"""Week-grouped view of a learning path's curriculum."""

from collections import OrderedDict


def _field(item, name):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def group_by_week(items):
    """Group curriculum items by ``week_number``, each week sorted by ``order_index``.

    A missing week groups under 0 and a missing order index sorts as 0.
    Weeks come out in ascending order; items sharing an order index keep
    their input order. Grouping the flattened result again gives the same
    mapping.
    """
    weeks = {}
    for item in items:
        week = _field(item, "week_number") or 0
        weeks.setdefault(week, []).append(item)

    grouped = OrderedDict()
    for week in sorted(weeks):
        grouped[week] = sorted(weeks[week], key=lambda item: _field(item, "order_index") or 0)
    return grouped


def flatten_groups(grouped):
    return [item for week_items in grouped.values() for item in week_items]


def week_summary(grouped):
    """Per-week item count and total estimated minutes, for the detail page."""
    return OrderedDict(
        (
            week,
            {
                "items": len(week_items),
                "minutes": sum(_field(item, "estimated_minutes") or 0 for item in week_items),
            },
        )
        for week, week_items in grouped.items()
    )

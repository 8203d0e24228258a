"""Roll-up of grocery spending by buyer and by category."""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from flatmate.models.common import to_money
from flatmate.models.groceries import ContributionFilters, ContributionTotal, GroceryItem


def select_items(
    items: Iterable[GroceryItem],
    filters: ContributionFilters,
) -> list[GroceryItem]:
    """Items purchased inside the inclusive date range that match the filters."""
    selected = []
    for item in items:
        if not filters.start_date <= item.purchased_at <= filters.end_date:
            continue
        if filters.member_id and item.added_by != filters.member_id:
            continue
        if filters.category and item.category != filters.category:
            continue
        selected.append(item)
    return selected


def _add(bucket: ContributionTotal, item: GroceryItem) -> None:
    bucket.count += 1
    bucket.total = to_money(bucket.total + item.cost)
    bucket.items.append(item)


def summarize_contributions(
    items: Iterable[GroceryItem],
) -> tuple[dict[UUID, ContributionTotal], dict[str, ContributionTotal], Decimal]:
    """(by_member, by_category, total) over the given items."""
    by_member: dict[UUID, ContributionTotal] = {}
    by_category: dict[str, ContributionTotal] = {}
    total = Decimal("0")

    for item in items:
        _add(by_member.setdefault(item.added_by, ContributionTotal()), item)
        _add(by_category.setdefault(item.category, ContributionTotal()), item)
        total += item.cost

    return by_member, by_category, to_money(total)

"""
Tests for the split calculators.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from flatmate.ledger import SplitError, split_by_ratio, split_custom, split_equal
from flatmate.models import Member


def amounts(participants):
    return [p.amount for p in participants]


class TestSplitEqual:

    def test_even_split(self):
        ids = [uuid4(), uuid4()]
        assert amounts(split_equal("20.00", ids)) == [Decimal("10.00"), Decimal("10.00")]

    def test_leftover_cents_go_to_first_members(self):
        ids = [uuid4(), uuid4(), uuid4()]
        participants = split_equal(Decimal("10.00"), ids)
        assert amounts(participants) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]
        assert [p.member_id for p in participants] == ids

    def test_total_preserved(self):
        ids = [uuid4() for _ in range(7)]
        assert sum(amounts(split_equal("100.00", ids))) == Decimal("100.00")

    def test_rejects_empty(self):
        with pytest.raises(SplitError):
            split_equal("10.00", [])

    def test_rejects_duplicates(self):
        member = uuid4()
        with pytest.raises(SplitError, match="only once"):
            split_equal("10.00", [member, member])

    def test_rejects_amount_below_one_cent_each(self):
        with pytest.raises(SplitError, match="too small"):
            split_equal("0.02", [uuid4(), uuid4(), uuid4()])


class TestSplitByRatio:

    def test_weighted_split(self):
        full, half = Member(name="Full"), Member(name="Half", share_ratio=0.5)
        participants = split_by_ratio("30.00", [full, half])
        assert amounts(participants) == [Decimal("20.00"), Decimal("10.00")]
        assert [p.percentage for p in participants] == [66.67, 33.33]

    def test_all_zero_ratios_split_equally(self):
        a, b = Member(name="A", share_ratio=0), Member(name="B", share_ratio=0)
        assert amounts(split_by_ratio("9.00", [a, b])) == [Decimal("4.50"), Decimal("4.50")]

    def test_zero_share_member_left_out(self):
        a, b = Member(name="A"), Member(name="B", share_ratio=0)
        participants = split_by_ratio("9.00", [a, b])
        assert [p.member_id for p in participants] == [a.id]
        assert amounts(participants) == [Decimal("9.00")]

    def test_total_preserved(self):
        members = [
            Member(name="A", share_ratio=0.3),
            Member(name="B", share_ratio=0.3),
            Member(name="C", share_ratio=0.3),
        ]
        assert sum(amounts(split_by_ratio("10.00", members))) == Decimal("10.00")

    def test_rejects_empty(self):
        with pytest.raises(SplitError):
            split_by_ratio("10.00", [])


class TestSplitCustom:

    def test_explicit_amounts(self):
        a, b = uuid4(), uuid4()
        participants = split_custom("10.00", {a: "7.50", b: Decimal("2.50")})
        assert amounts(participants) == [Decimal("7.50"), Decimal("2.50")]

    def test_rejects_mismatched_total(self):
        with pytest.raises(SplitError, match="expected 10.00"):
            split_custom("10.00", {uuid4(): "7.50", uuid4(): "2.00"})

    def test_rejects_non_positive_allocation(self):
        with pytest.raises(SplitError, match="must be positive"):
            split_custom("10.00", {uuid4(): "10.00", uuid4(): "0"})

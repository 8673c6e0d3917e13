"""
Tests for license tier ordering.
"""

import pytest

from membership_access.entitlements.tiers import Tier, rank, meets


class TestTierOrdering:
    def test_ranks_are_strictly_increasing(self):
        assert rank(Tier.NONE) < rank(Tier.STARTER) < rank(Tier.PRO) < rank(Tier.ELITE)

    def test_labels_are_lowercase_names(self):
        assert [t.label for t in Tier] == ["none", "starter", "pro", "elite"]

    @pytest.mark.parametrize("value,expected", [
        ("pro", Tier.PRO),
        ("  ELITE ", Tier.ELITE),
        ("none", Tier.NONE),
        ("transformation", None),
        (None, None),
        (3, None),
    ])
    def test_from_name_is_strict(self, value, expected):
        assert Tier.from_name(value) is expected


class TestMeets:
    """meets(user, required) is rank comparison with NONE special-cased."""

    def test_none_requirement_is_open_to_everyone(self):
        for tier in Tier:
            assert meets(tier, Tier.NONE)

    def test_none_user_meets_nothing_else(self):
        for required in (Tier.STARTER, Tier.PRO, Tier.ELITE):
            assert not meets(Tier.NONE, required)

    def test_higher_tier_meets_lower_requirement(self):
        assert meets(Tier.ELITE, Tier.STARTER)
        assert meets(Tier.PRO, Tier.PRO)

    def test_lower_tier_does_not_meet_higher_requirement(self):
        assert not meets(Tier.PRO, Tier.ELITE)
        assert not meets(Tier.STARTER, Tier.PRO)

    def test_meets_agrees_with_rank_for_every_pair(self):
        for user in Tier:
            for required in Tier:
                if required == Tier.NONE:
                    continue
                expected = user != Tier.NONE and rank(user) >= rank(required)
                assert meets(user, required) is expected

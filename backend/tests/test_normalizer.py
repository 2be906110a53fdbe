"""Tests for coupon normalization and de-duplication."""

import pytest

from app.scrapers.base import SENTINEL_CODE, CouponRecord, RawOffer, is_real_code
from app.scrapers.normalizer import normalize


def _offer(code, verified=False, discount="Discount", local_id=1) -> RawOffer:
    return RawOffer(local_id=local_id, discount=discount, verified=verified, direct_code=code)


class TestIsRealCode:
    """Test the sentinel/blank check."""

    @pytest.mark.parametrize("value", [None, "", "  ", SENTINEL_CODE, f" {SENTINEL_CODE} "])
    def test_not_real(self, value):
        assert not is_real_code(value)

    def test_real(self):
        assert is_real_code("SAVE20")


class TestNormalize:
    """Test normalize()."""

    def test_drops_sentinel_and_unresolved(self):
        """Test offers without a real code never become records."""
        offers = [_offer(None), _offer(SENTINEL_CODE), _offer("OK")]

        records = normalize("acme.com", offers)

        assert [r.code for r in records] == ["OK"]
        assert all(r.code != SENTINEL_CODE for r in records)

    def test_unique_per_code(self):
        """Test the same code appears once per domain."""
        offers = [_offer("A", local_id=1), _offer("B", local_id=2), _offer("A", local_id=3)]

        records = normalize("acme.com", offers)

        assert sorted(r.key for r in records) == [("acme.com", "A"), ("acme.com", "B")]

    def test_verified_beats_unverified(self):
        """Test a later verified duplicate replaces an unverified one."""
        offers = [
            _offer("A", verified=False, discount="first"),
            _offer("A", verified=True, discount="verified"),
            _offer("A", verified=False, discount="last"),
        ]

        (record,) = normalize("acme.com", offers)

        assert record.verified is True
        assert record.discount == "verified"

    def test_first_seen_wins_on_equal_flags(self):
        """Test ties keep the first offer."""
        offers = [_offer("A", verified=True, discount="first"), _offer("A", verified=True, discount="second")]

        (record,) = normalize("acme.com", offers)

        assert record.discount == "first"

    def test_codes_are_stripped(self):
        """Test whitespace around codes is not part of the identity."""
        records = normalize("acme.com", [_offer(" A "), _offer("A")])

        assert [r.code for r in records] == ["A"]

    def test_filtering_is_monotonic(self):
        """Test normalize never invents records."""
        offers = [_offer("A"), _offer(None), _offer("B")]

        assert len(normalize("acme.com", offers)) <= len(offers)


class TestCouponRecord:
    """Test CouponRecord validation."""

    def test_rejects_sentinel(self):
        with pytest.raises(ValueError):
            CouponRecord(domain="acme.com", code=SENTINEL_CODE)

    def test_rejects_empty_domain(self):
        with pytest.raises(ValueError):
            CouponRecord(domain="", code="A")

    def test_row_mapping(self):
        record = CouponRecord(domain="acme.com", code="A", discount="5% off", terms="t", verified=True)

        assert record.to_row() == {
            "domain": "acme.com",
            "code": "A",
            "discount": "5% off",
            "terms": "t",
            "verified": True,
        }

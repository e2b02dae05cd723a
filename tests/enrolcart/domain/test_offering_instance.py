"""Tests for OfferingInstance availability, pricing and enrolment window."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from enrolcart.offering.instance import OfferingInstance, OfferingStatus
from enrolcart.pricing import DiscountType

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def _instance(**fields):
    fields.setdefault("course_id", "course-1")
    fields.setdefault("cost", 1000.0)
    return OfferingInstance(**fields)


class TestAvailability:
    def test_enabled_without_window_is_open(self):
        assert _instance().is_available_at(NOW)

    def test_disabled_is_closed(self):
        assert not _instance(status=OfferingStatus.DISABLED.value).is_available_at(NOW)

    def test_not_yet_open(self):
        assert not _instance(enrol_start_date=NOW + timedelta(days=1)).is_available_at(NOW)

    def test_start_boundary_is_exclusive(self):
        assert not _instance(enrol_start_date=NOW).is_available_at(NOW)

    def test_already_closed(self):
        assert not _instance(enrol_end_date=NOW - timedelta(days=1)).is_available_at(NOW)

    def test_inside_window(self):
        instance = _instance(enrol_start_date=NOW - timedelta(days=1), enrol_end_date=NOW + timedelta(days=1))
        assert instance.is_available_at(NOW)

    def test_naive_dates_are_utc(self):
        instance = _instance(enrol_end_date=(NOW + timedelta(hours=1)).replace(tzinfo=None))
        assert instance.is_available_at(NOW)

    def test_window_must_be_ordered(self):
        instance = _instance(enrol_start_date=NOW)
        with pytest.raises(ValidationError):
            instance.enrol_end_date = NOW - timedelta(days=1)


class TestPricing:
    def test_percentage_discount(self):
        instance = _instance(discount_type=DiscountType.PERCENTAGE.value, discount_amount="10")
        assert instance.price == Decimal("1000.00")
        assert instance.payable == Decimal("900.00")
        assert instance.has_discount
        assert instance.discount_percentage == 10

    def test_no_discount(self):
        instance = _instance()
        assert instance.payable == Decimal("1000.00")
        assert not instance.has_discount
        assert instance.discount_percentage is None


class TestEnrolmentWindow:
    def test_unlimited_period(self):
        assert _instance().enrolment_window(NOW) == (None, None)

    def test_limited_period(self):
        start, end = _instance(enrol_period=3600).enrolment_window(NOW)
        assert start == NOW
        assert end == NOW + timedelta(hours=1)

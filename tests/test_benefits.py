"""Tests for the benefit applicator (pure, no DB)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import pytest

from services.benefits import (
    PICKUP_INCLUDED_NOTE, PICKUP_OVER_QUOTA_NOTE,
    PickupCharge, RequestedLine, apply_benefits, split_line,
)
from services.catalog import quota_eligibility

TAX = 0.06
STANDARD = 1
RUSH = 2
PICKUP = 3
is_eligible = quota_eligibility("standard_bag")


def _standard(qty, notes=None):
    return RequestedLine(STANDARD, "standard_bag", qty, 30.00, notes)


def _rush(qty):
    return RequestedLine(RUSH, "rush_bag", qty, 10.00)


def test_full_coverage_within_quota():
    """Bags within the remaining quota are all covered and the order is free."""
    result = apply_benefits([_standard(4)], 6, is_eligible, TAX)
    assert [(l.quantity, l.price) for l in result.lines] == [(4, 0.0)]
    assert result.covered_units == 4
    assert result.remaining_quota_units == 2
    assert result.total == 0
    assert not result.requires_payment


def test_boundary_split_into_covered_and_charged():
    """7 bags against 6 remaining: 6 covered, 1 charged at $30."""
    result = apply_benefits([_standard(7, "heavy")], 6, is_eligible, TAX)
    assert [(l.quantity, l.price) for l in result.lines] == [(6, 0.0), (1, 30.00)]
    assert all(l.notes == "heavy" for l in result.lines)
    assert result.covered_units == 6
    assert result.charged_eligible_units == 1
    assert result.subtotal == 30.00
    assert result.tax == 1.80
    assert result.total == 31.80
    assert result.requires_payment


def test_non_eligible_service_never_covered():
    """Rush bags are charged in full and leave the quota untouched."""
    result = apply_benefits([_rush(3)], 6, is_eligible, TAX)
    assert [(l.quantity, l.price) for l in result.lines] == [(3, 10.00)]
    assert result.covered_units == 0
    assert result.remaining_quota_units == 6
    assert result.subtotal == 30.00


def test_mixed_order_charges_only_rush():
    """2 standard + 1 rush with quota left: only the rush bag is paid."""
    result = apply_benefits([_standard(2), _rush(1)], 6, is_eligible, TAX)
    assert result.covered_units == 2
    assert result.subtotal == 10.00
    assert result.tax == 0.60
    assert result.total == 10.60


def test_quota_is_shared_across_lines_in_request_order():
    result = apply_benefits([_standard(2), _standard(3)], 4, is_eligible, TAX)
    assert [(l.quantity, l.price) for l in result.lines] == [(2, 0.0), (2, 0.0), (1, 30.00)]
    assert result.remaining_quota_units == 0


def test_zero_remaining_charges_everything():
    result = apply_benefits([_standard(2)], 0, is_eligible, TAX)
    assert [(l.quantity, l.price) for l in result.lines] == [(2, 30.00)]
    assert result.covered_units == 0


def test_negative_remaining_treated_as_zero():
    result = apply_benefits([_standard(1)], -3, is_eligible, TAX)
    assert result.lines[0].price == 30.00
    assert result.remaining_quota_units == 0


def test_zero_and_negative_quantity_lines_dropped():
    result = apply_benefits([_standard(0), _rush(-1), _rush(1)], 6, is_eligible, TAX)
    assert [(l.service_id, l.quantity) for l in result.lines] == [(RUSH, 1)]


def test_empty_request():
    result = apply_benefits([], 6, is_eligible, TAX)
    assert result.lines == []
    assert result.total == 0


def test_split_line_never_emits_empty_sub_lines():
    lines, covered = split_line(_standard(3), 5)
    assert covered == 3
    assert len(lines) == 1
    lines, covered = split_line(_standard(3), 0)
    assert covered == 0
    assert [(l.quantity, l.price) for l in lines] == [(3, 30.00)]


def test_pickup_included_while_pickups_remain():
    pickup = PickupCharge(PICKUP, 10.00, pickups_remaining=1)
    result = apply_benefits([_standard(1)], 6, is_eligible, TAX, pickup=pickup)
    assert result.lines[0].service_id == PICKUP
    assert result.lines[0].price == 0
    assert result.lines[0].notes == PICKUP_INCLUDED_NOTE
    assert result.pickup_covered is True
    assert result.total == 0


def test_pickup_charged_once_pickups_used_up():
    pickup = PickupCharge(PICKUP, 10.00, pickups_remaining=0)
    result = apply_benefits([_standard(1)], 6, is_eligible, TAX, pickup=pickup)
    assert result.lines[0].price == 10.00
    assert result.lines[0].notes == PICKUP_OVER_QUOTA_NOTE
    assert result.pickup_covered is False
    assert result.subtotal == 10.00


def test_pickup_included_without_subscription():
    pickup = PickupCharge(PICKUP, 10.00, pickups_remaining=None)
    result = apply_benefits([_standard(1)], 0, is_eligible, TAX, pickup=pickup)
    assert result.lines[0].price == 0
    assert result.subtotal == 30.00


def test_tip_added_after_tax():
    result = apply_benefits([_rush(1)], 0, is_eligible, TAX, tip=5)
    assert result.tax == 0.60
    assert result.total == pytest.approx(15.60)

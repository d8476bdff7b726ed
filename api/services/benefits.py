"""
Benefit Applicator: splits requested order lines against subscription quota.

Rules:
  1. Lines are processed in request order; quantity <= 0 lines are dropped.
  2. Non-eligible services (rush, bedding, add-ons) are always charged in full
     and never touch the bag quota.
  3. Eligible services (standard bag) are covered up to the remaining bag quota.
     A line that straddles the quota boundary becomes two sub-lines:
     covered (price 0) followed by charged (unit price).
  4. The pickup event is its own line and its own quota dimension: included
     while the subscription has a pickup left, charged at the pickup fee once
     the period's pickups are used up. Non-subscribers get it included.
  5. subtotal = Σ quantity × price, tax = subtotal × rate, total = subtotal + tax + tip.
"""

from dataclasses import dataclass, field
from typing import Callable


PICKUP_INCLUDED_NOTE = "Pickup Service (Included)"
PICKUP_OVER_QUOTA_NOTE = "Pickup Service (Over Quota)"


# ── Data classes ───────────────────────────────────────────

@dataclass
class RequestedLine:
    service_id: int
    service_name: str
    quantity: int
    unit_price: float
    notes: str | None = None


@dataclass
class PricedLine:
    service_id: int
    quantity: int
    price: float          # unit price as charged, 0.0 = covered
    notes: str | None = None

    @property
    def is_covered(self) -> bool:
        return self.price == 0

    @property
    def line_total(self) -> float:
        return self.quantity * self.price


@dataclass
class PickupCharge:
    """Pickup-event fee line. pickups_remaining=None means no subscription."""
    service_id: int
    fee: float
    pickups_remaining: int | None = None


@dataclass
class BenefitResult:
    lines: list[PricedLine] = field(default_factory=list)
    covered_units: int = 0
    charged_eligible_units: int = 0
    remaining_quota_units: int = 0
    pickup_covered: bool | None = None
    subtotal: float = 0.0
    tax: float = 0.0
    tip: float = 0.0
    total: float = 0.0

    @property
    def requires_payment(self) -> bool:
        return self.total > 0


# ── Core Functions ─────────────────────────────────────────

def split_line(
    line: RequestedLine,
    remaining_quota_units: int,
) -> tuple[list[PricedLine], int]:
    """
    Split one quota-eligible line against the remaining quota.

    Returns:
        (sub-lines, units covered)
    """
    covered = min(line.quantity, max(remaining_quota_units, 0))
    charged = line.quantity - covered

    sub_lines: list[PricedLine] = []
    if covered > 0:
        sub_lines.append(PricedLine(line.service_id, covered, 0.0, line.notes))
    if charged > 0:
        sub_lines.append(PricedLine(line.service_id, charged, line.unit_price, line.notes))
    return sub_lines, covered


def pickup_line(pickup: PickupCharge) -> PricedLine:
    """Price the pickup event: included with a pickup left (or no subscription)."""
    if pickup.pickups_remaining is not None and pickup.pickups_remaining <= 0:
        return PricedLine(pickup.service_id, 1, pickup.fee, PICKUP_OVER_QUOTA_NOTE)
    return PricedLine(pickup.service_id, 1, 0.0, PICKUP_INCLUDED_NOTE)


def apply_benefits(
    lines: list[RequestedLine],
    remaining_quota_units: int,
    is_quota_eligible: Callable[[str], bool],
    tax_rate: float,
    pickup: PickupCharge | None = None,
    tip: float = 0.0,
) -> BenefitResult:
    """
    Apply subscription benefits to the requested lines and price the order.

    Args:
        lines: Requested lines in customer order
        remaining_quota_units: Covered bag units left this period (0 = no coverage)
        is_quota_eligible: Predicate on the service name
        tax_rate: Fraction applied to the subtotal (e.g. 0.06)
        pickup: Optional pickup-event line
        tip: Optional tip added after tax

    Returns:
        BenefitResult with the emitted lines and totals
    """
    result = BenefitResult()
    remaining = max(remaining_quota_units, 0)

    if pickup is not None:
        line = pickup_line(pickup)
        result.pickup_covered = line.is_covered
        result.lines.append(line)

    for line in lines:
        if line.quantity <= 0:
            continue

        if not is_quota_eligible(line.service_name):
            result.lines.append(
                PricedLine(line.service_id, line.quantity, line.unit_price, line.notes)
            )
            continue

        sub_lines, covered = split_line(line, remaining)
        remaining -= covered
        result.covered_units += covered
        result.charged_eligible_units += line.quantity - covered
        result.lines.extend(sub_lines)

    subtotal = sum(l.line_total for l in result.lines)
    tax = subtotal * tax_rate

    result.remaining_quota_units = remaining
    result.subtotal = round(subtotal, 2)
    result.tax = round(tax, 2)
    result.tip = round(tip, 2)
    result.total = round(result.subtotal + result.tax + result.tip, 2)
    return result

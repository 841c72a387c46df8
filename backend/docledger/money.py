# Overview: Pure money/tax arithmetic over integer cents and basis points.

"""
Money & VAT calculator.

All amounts are integer cents, all rates are basis points (10000 = 100%).
Nothing here touches the database; every service that needs a total calls
into this module so there is exactly one rounding rule in the system.

Rounding rule:
- round_half_up_div() rounds half away from zero.
- Document VAT is rounded ONCE on the taxable sum, never per line.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import ValidationError

BPS_SCALE = 10_000

VAT_MODES = {"exclusive", "inclusive", "none"}
DISCOUNT_TYPES = {"none", "percent", "amount"}


def round_half_up_div(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ValidationError("denominator must be positive", {"denominator": denominator})
    if numerator >= 0:
        return (numerator + denominator // 2) // denominator
    return -((-numerator + denominator // 2) // denominator)


@dataclass(frozen=True)
class MoneyLine:
    qty: int
    unit_price_cents: int
    discount_cents: int = 0
    taxable: bool = True
    is_vat_exempt: bool = False

    @property
    def total_cents(self) -> int:
        return line_total(self.qty, self.unit_price_cents, self.discount_cents)

    @property
    def is_taxed(self) -> bool:
        return self.taxable and not self.is_vat_exempt


@dataclass(frozen=True)
class DocumentTotals:
    sub_total_cents: int
    vat_total_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "sub_total_cents": self.sub_total_cents,
            "vat_total_cents": self.vat_total_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class GRVLineAmounts:
    discount_cents: int
    subtotal_cents: int
    vat_amount_cents: int
    total_cents: int


def _check_non_negative(value: int, field: str) -> None:
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", {"field": field, "value": value})


def line_total(qty: int, unit_price_cents: int, discount_cents: int = 0) -> int:
    _check_non_negative(qty, "qty")
    _check_non_negative(unit_price_cents, "unit_price_cents")
    _check_non_negative(discount_cents, "discount_cents")
    return max(0, qty * unit_price_cents - discount_cents)


def check_vat_mode(vat_mode: str) -> str:
    if vat_mode not in VAT_MODES:
        raise ValidationError(
            f"Invalid vat_mode. Must be one of: {', '.join(sorted(VAT_MODES))}",
            {"vat_mode": vat_mode},
        )
    return vat_mode


def document_totals(lines: Iterable[MoneyLine], vat_rate_bps: int, vat_mode: str) -> DocumentTotals:
    """
    Compute sub/vat/total for a quote or invoice.

    exclusive: prices exclude VAT, VAT is added on top.
    inclusive: prices include VAT, VAT is extracted from the taxable portion.
    none:      no VAT at all.
    """
    check_vat_mode(vat_mode)
    _check_non_negative(vat_rate_bps, "vat_rate_bps")

    lines_sum = 0
    taxable_sum = 0
    for line in lines:
        amount = line.total_cents
        lines_sum += amount
        if line.is_taxed:
            taxable_sum += amount

    if vat_mode == "none":
        return DocumentTotals(lines_sum, 0, lines_sum)

    if vat_mode == "exclusive":
        vat = round_half_up_div(taxable_sum * vat_rate_bps, BPS_SCALE)
        return DocumentTotals(lines_sum, vat, lines_sum + vat)

    # inclusive
    vat = round_half_up_div(taxable_sum * vat_rate_bps, BPS_SCALE + vat_rate_bps)
    return DocumentTotals(lines_sum - vat, vat, lines_sum)


def grv_line_amounts(
    received_qty: int,
    unit_cost_cents: int,
    discount_type: str = "none",
    discount_value: int = 0,
    vat_rate_bps: int = 0,
    is_vat_exempt: bool = False,
) -> GRVLineAmounts:
    """
    Amounts for one goods-received line.

    percent discounts carry `discount_value` in basis points of the gross;
    amount discounts carry a per-unit cent value.
    """
    _check_non_negative(received_qty, "received_qty")
    _check_non_negative(unit_cost_cents, "unit_cost_cents")
    _check_non_negative(discount_value, "discount_value")
    _check_non_negative(vat_rate_bps, "vat_rate_bps")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(
            f"Invalid discount_type. Must be one of: {', '.join(sorted(DISCOUNT_TYPES))}",
            {"discount_type": discount_type},
        )

    gross = unit_cost_cents * received_qty
    if discount_type == "percent":
        if discount_value > BPS_SCALE:
            raise ValidationError(
                "percent discount cannot exceed 100%",
                {"discount_value": discount_value},
            )
        discount = round_half_up_div(gross * discount_value, BPS_SCALE)
    elif discount_type == "amount":
        discount = discount_value * received_qty
    else:
        discount = 0

    subtotal = max(0, gross - discount)
    vat = 0 if is_vat_exempt else round_half_up_div(subtotal * vat_rate_bps, BPS_SCALE)
    return GRVLineAmounts(
        discount_cents=discount,
        subtotal_cents=subtotal,
        vat_amount_cents=vat,
        total_cents=subtotal + vat,
    )


def sum_grv_totals(lines) -> dict:
    """Header totals for a GRV or supplier bill from per-line amounts."""
    subtotal = 0
    discount = 0
    vat = 0
    for line in lines:
        subtotal += line.subtotal_cents
        discount += line.discount_cents
        vat += line.vat_amount_cents
    return {
        "subtotal_cents": subtotal,
        "discount_total_cents": discount,
        "vat_total_cents": vat,
        "grand_total_cents": subtotal + vat,
    }


def balance_due(total_cents: int, paid_cents: int) -> int:
    return total_cents - paid_cents


def weighted_average_cost(on_hand: int, average_cost_cents: int, qty: int, unit_cost_cents: int) -> int:
    """New running average after receiving `qty` units at `unit_cost_cents`."""
    units = on_hand + qty
    if units <= 0:
        return unit_cost_cents
    return round_half_up_div(on_hand * average_cost_cents + qty * unit_cost_cents, units)


def format_cents(cents: int, symbol: str = "R") -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole:,}.{frac:02d}"


def parse_cents(text: str) -> int:
    """Parse a display amount ("R1,234.50", "12.5", "-3") into cents."""
    if text is None:
        raise ValidationError("amount is required")
    raw = str(text).strip().replace(",", "").replace(" ", "")
    negative = raw.startswith("-")
    if negative:
        raw = raw[1:]
    raw = raw.lstrip("R").lstrip("$")
    if not raw or raw.count(".") > 1:
        raise ValidationError("invalid amount", {"value": text})
    whole, _, frac = raw.partition(".")
    if not (whole or frac) or (whole and not whole.isdigit()) or (frac and not frac.isdigit()):
        raise ValidationError("invalid amount", {"value": text})
    if len(frac) > 2:
        raise ValidationError("amount has more than two decimal places", {"value": text})
    cents = int(whole or "0") * 100 + int(frac.ljust(2, "0") or "0")
    return -cents if negative else cents


def bps_from_percent(pct) -> int:
    """15 -> 1500, "7.5" -> 750. At most two decimal places."""
    text = str(pct).strip()
    whole, _, frac = text.partition(".")
    if not whole.isdigit() or (frac and not frac.isdigit()) or len(frac) > 2:
        raise ValidationError("invalid percentage", {"value": pct})
    return int(whole) * 100 + int(frac.ljust(2, "0") or "0")

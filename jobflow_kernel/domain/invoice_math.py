"""
Invoice pricing -- pure functions from quote data to invoice lines and totals.

Pricing order: subtotal -> discount -> tax -> grand total.  A positive
discount percentage takes precedence over a flat discount amount.  Every
figure is rounded half-up to cents independently, after being computed from
unrounded inputs.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

DEFAULT_LINE_DESCRIPTION = "Service"


def to_decimal(value: Any) -> Decimal:
    """Lenient numeric coercion: None, blanks and garbage become zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return Decimal("0")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    grand_total: Decimal


def _line_amount(item: Mapping[str, Any]) -> tuple[Decimal, Decimal, Decimal]:
    """(quantity, unit_price, amount) for a quote line item."""
    if item.get("price") not in (None, ""):
        amount = to_decimal(item.get("price"))
        return Decimal("1"), amount, amount
    quantity = to_decimal(item.get("quantity", 1))
    unit_price = to_decimal(item.get("unit_price"))
    return quantity, unit_price, quantity * unit_price


def build_invoice_lines(
    quote_line_items: Iterable[Mapping[str, Any]] | None,
    stump_grinding_price: Any = None,
    add_ons: Iterable[Mapping[str, Any]] | None = None,
    default_description: str = DEFAULT_LINE_DESCRIPTION,
) -> list[InvoiceLine]:
    """
    Build invoice lines from a quote.

    Only line items with a truthy ``selected`` flag are billed.  A positive
    stump-grinding price and each positive add-on become lines of their own.
    """
    lines: list[InvoiceLine] = []
    for item in quote_line_items or ():
        if not item.get("selected"):
            continue
        quantity, unit_price, amount = _line_amount(item)
        lines.append(
            InvoiceLine(
                description=item.get("description") or item.get("name") or default_description,
                quantity=quantity,
                unit_price=round_money(unit_price),
                amount=round_money(amount),
            )
        )

    stump = to_decimal(stump_grinding_price)
    if stump > 0:
        lines.append(InvoiceLine("Stump grinding", Decimal("1"), round_money(stump), round_money(stump)))

    for add_on in add_ons or ():
        price = to_decimal(add_on.get("price"))
        if price <= 0:
            continue
        lines.append(
            InvoiceLine(
                description=add_on.get("description") or add_on.get("name") or "Add-on",
                quantity=Decimal("1"),
                unit_price=round_money(price),
                amount=round_money(price),
            )
        )
    return lines


def calculate_invoice_totals(
    amounts: Iterable[Any],
    discount_amount: Any = 0,
    discount_percentage: Any = 0,
    tax_rate: Any = 0,
) -> InvoiceTotals:
    """
    Compute invoice totals from line amounts.

    Example:
        calculate_invoice_totals([500, 300]).grand_total == Decimal("800.00")
    """
    subtotal = sum((to_decimal(a) for a in amounts), Decimal("0"))
    percentage = to_decimal(discount_percentage)
    rate = to_decimal(tax_rate)

    if percentage > 0:
        discount = subtotal * percentage / HUNDRED
    else:
        discount = to_decimal(discount_amount)

    total = subtotal - discount
    tax = total * rate / HUNDRED
    grand = total + tax

    return InvoiceTotals(
        subtotal=round_money(subtotal),
        discount_amount=round_money(discount),
        discount_percentage=percentage,
        tax_rate=rate,
        tax_amount=round_money(tax),
        total_amount=round_money(total),
        grand_total=round_money(grand),
    )

"""Invoice totals from a work schedule, line items, discount and tax.

Discount is taken off the subtotal first and tax is charged on what is
left. Nothing is rounded here; display rounding belongs to the renderer.
"""

from .models import InvoiceTotals, LineItem, WorkDay


def included_days(work_days: list[WorkDay]) -> list[WorkDay]:
    """Days that count: flagged as included AND with hours entered."""
    return [d for d in work_days if d.is_included and d.hours > 0]


def compute_totals(
    work_days: list[WorkDay],
    line_items: list[LineItem],
    hourly_rate: float,
    discount_percent: float,
    tax_percent: float,
) -> InvoiceTotals:
    """Derive every total of an invoice from its inputs.

    Inputs are assumed validated (non-negative rate and percentages,
    hours within 0..24); no clamping is done.

    Example: 10 h at 100 with 10% discount and 10% tax gives subtotal 1000,
    discount 100, tax 90 (on 900, not on 1000) and total 990.
    """
    days = included_days(work_days)
    total_hours = sum(d.hours for d in days)

    hourly_subtotal = total_hours * hourly_rate
    line_items_total = sum(item.amount for item in line_items)
    subtotal = hourly_subtotal + line_items_total

    discount_amount = subtotal * (discount_percent / 100)
    after_discount = subtotal - discount_amount
    tax_amount = after_discount * (tax_percent / 100)

    return InvoiceTotals(
        total_days=len(days),
        total_hours=total_hours,
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total_amount=after_discount + tax_amount,
    )

"""Aggregate reporting over finalized invoices."""

from collections import defaultdict

from .models import Invoice, InvoiceStatus

PENDING_STATUSES = {
    InvoiceStatus.TO_SEND.value,
    InvoiceStatus.SENT.value,
    InvoiceStatus.VIEWED.value,
    InvoiceStatus.PAYMENT_PENDING.value,
    InvoiceStatus.PARTIAL_PAYMENT.value,
}
SENT_STATUSES = {
    InvoiceStatus.SENT.value,
    InvoiceStatus.VIEWED.value,
    InvoiceStatus.PAYMENT_PENDING.value,
}
SETTLED_STATUSES = {
    InvoiceStatus.PAID.value,
    InvoiceStatus.CANCELLED.value,
    InvoiceStatus.REFUNDED.value,
}

UNKNOWN_CLIENT = "Unknown"


def active_invoices(invoices: list[Invoice], include_archived: bool = False) -> list[Invoice]:
    if include_archived:
        return list(invoices)
    return [inv for inv in invoices if not inv.is_archived]


def _client_name(invoice: Invoice) -> str:
    return invoice.to_party.name or UNKNOWN_CLIENT


def _sum_amount(invoices: list[Invoice]) -> float:
    return sum(inv.totals.total_amount for inv in invoices)


def compute_analytics(invoices: list[Invoice], include_archived: bool = False) -> dict:
    """Summary figures across invoices: amounts, counts and breakdowns."""
    invoices = active_invoices(invoices, include_archived)
    count = len(invoices)

    total_amount = _sum_amount(invoices)
    total_hours = sum(inv.totals.total_hours for inv in invoices)
    total_days = sum(inv.totals.total_days for inv in invoices)

    by_status = defaultdict(list)
    for inv in invoices:
        by_status[inv.status].append(inv)
    paid = by_status[InvoiceStatus.PAID.value]
    overdue = by_status[InvoiceStatus.OVERDUE.value]
    pending = [inv for inv in invoices if inv.status in PENDING_STATUSES]

    currency_breakdown: dict[str, dict] = {}
    client_breakdown: dict[str, dict] = {}
    for inv in invoices:
        for breakdown, key in ((currency_breakdown, inv.currency), (client_breakdown, _client_name(inv))):
            entry = breakdown.setdefault(key, {"count": 0, "total": 0})
            entry["count"] += 1
            entry["total"] += inv.totals.total_amount

    dates = sorted(inv.issue_date for inv in invoices)

    return {
        "invoice_count": count,
        "total_amount": total_amount,
        "total_hours": total_hours,
        "total_days": total_days,
        "average_amount": total_amount / count if count else 0,
        "average_hours_per_invoice": total_hours / count if count else 0,
        "paid_amount": _sum_amount(paid),
        "pending_amount": _sum_amount(pending),
        "overdue_amount": _sum_amount(overdue),
        "draft_count": len(by_status[InvoiceStatus.DRAFT.value]),
        "sent_count": sum(1 for inv in invoices if inv.status in SENT_STATUSES),
        "paid_count": len(paid),
        "overdue_count": len(overdue),
        "currency_breakdown": currency_breakdown,
        "client_breakdown": client_breakdown,
        "oldest_invoice_date": dates[0] if dates else None,
        "newest_invoice_date": dates[-1] if dates else None,
    }


def analytics_by_status(invoices: list[Invoice], include_archived: bool = False) -> dict[str, dict]:
    groups = defaultdict(list)
    for inv in active_invoices(invoices, include_archived):
        groups[inv.status].append(inv)

    result = {}
    for status, group in groups.items():
        total_amount = _sum_amount(group)
        result[status] = {
            "count": len(group),
            "total_amount": total_amount,
            "total_hours": sum(inv.totals.total_hours for inv in group),
            "average_amount": total_amount / len(group),
        }
    return result


def analytics_by_client(invoices: list[Invoice], include_archived: bool = False) -> list[dict]:
    """Per-client figures, largest total first.

    Pending here means anything not yet settled (paid, cancelled or
    refunded), so drafts and overdue invoices count as pending.
    """
    groups = defaultdict(list)
    for inv in active_invoices(invoices, include_archived):
        groups[_client_name(inv)].append(inv)

    rows = []
    for client_name, group in groups.items():
        total_amount = _sum_amount(group)
        rows.append({
            "client_name": client_name,
            "invoice_count": len(group),
            "total_amount": total_amount,
            "total_hours": sum(inv.totals.total_hours for inv in group),
            "paid_amount": _sum_amount([i for i in group if i.status == InvoiceStatus.PAID.value]),
            "pending_amount": _sum_amount([i for i in group if i.status not in SETTLED_STATUSES]),
            "average_amount": total_amount / len(group),
            "last_invoice_date": max(inv.issue_date for inv in group),
        })
    rows.sort(key=lambda r: r["total_amount"], reverse=True)
    return rows


def monthly_analytics(invoices: list[Invoice], year: int, include_archived: bool = False) -> list[dict]:
    """Twelve rows (YYYY-MM) of invoiced, paid, hours and count for a year."""
    months = {
        f"{year}-{month:02d}": {"invoiced": 0, "paid": 0, "hours": 0, "count": 0}
        for month in range(1, 13)
    }
    for inv in active_invoices(invoices, include_archived):
        key = inv.issue_date[:7]
        if key not in months:
            continue
        row = months[key]
        row["invoiced"] += inv.totals.total_amount
        row["hours"] += inv.totals.total_hours
        row["count"] += 1
        if inv.status == InvoiceStatus.PAID.value:
            row["paid"] += inv.totals.total_amount
    return [{"month": month, **data} for month, data in months.items()]

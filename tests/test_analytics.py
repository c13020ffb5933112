"""Tests for invoice analytics."""

import pytest

from timebill.analytics import (
    analytics_by_client,
    analytics_by_status,
    compute_analytics,
    monthly_analytics,
)
from timebill.models import Invoice, InvoiceTotals, PartyInfo


def _invoice(number, client, amount, status="DRAFT", issue_date="2024-01-10",
             hours=0, days=0, currency="USD", archived=False):
    return Invoice(
        id=number,
        invoice_number=number,
        to_party=PartyInfo(name=client),
        status=status,
        issue_date=issue_date,
        currency=currency,
        is_archived=archived,
        totals=InvoiceTotals(total_days=days, total_hours=hours, total_amount=amount),
    )


@pytest.fixture
def invoices():
    return [
        _invoice("INV-000001", "Acme", 1000, "PAID", "2024-01-15", hours=10, days=2),
        _invoice("INV-000002", "Acme", 500, "SENT", "2024-02-01", hours=5, days=1),
        _invoice("INV-000003", "Globex", 2000, "OVERDUE", "2024-02-20", hours=20, days=3, currency="EUR"),
        _invoice("INV-000004", "", 300, "DRAFT", "2023-12-28"),
        _invoice("INV-000005", "Acme", 9999, "PAID", "2024-03-01", archived=True),
    ]


class TestComputeAnalytics:
    def test_totals_exclude_archived(self, invoices):
        result = compute_analytics(invoices)
        assert result["invoice_count"] == 4
        assert result["total_amount"] == 3800
        assert result["total_hours"] == 35
        assert result["total_days"] == 6
        assert result["average_amount"] == 950

    def test_status_buckets(self, invoices):
        result = compute_analytics(invoices)
        assert result["paid_amount"] == 1000
        assert result["pending_amount"] == 500
        assert result["overdue_amount"] == 2000
        assert (result["draft_count"], result["sent_count"], result["paid_count"], result["overdue_count"]) == (1, 1, 1, 1)

    def test_breakdowns(self, invoices):
        result = compute_analytics(invoices)
        assert result["currency_breakdown"] == {
            "USD": {"count": 3, "total": 1800},
            "EUR": {"count": 1, "total": 2000},
        }
        assert result["client_breakdown"]["Unknown"] == {"count": 1, "total": 300}

    def test_date_range(self, invoices):
        result = compute_analytics(invoices)
        assert result["oldest_invoice_date"] == "2023-12-28"
        assert result["newest_invoice_date"] == "2024-02-20"

    def test_include_archived(self, invoices):
        result = compute_analytics(invoices, include_archived=True)
        assert result["invoice_count"] == 5
        assert result["paid_count"] == 2

    def test_empty(self):
        result = compute_analytics([])
        assert result["invoice_count"] == 0
        assert result["average_amount"] == 0
        assert result["oldest_invoice_date"] is None


class TestAnalyticsByStatus:
    def test_groups(self, invoices):
        result = analytics_by_status(invoices)
        assert set(result) == {"PAID", "SENT", "OVERDUE", "DRAFT"}
        assert result["PAID"] == {"count": 1, "total_amount": 1000, "total_hours": 10, "average_amount": 1000}


class TestAnalyticsByClient:
    def test_sorted_by_total_descending(self, invoices):
        rows = analytics_by_client(invoices)
        assert [r["client_name"] for r in rows] == ["Globex", "Acme", "Unknown"]

    def test_pending_is_anything_unsettled(self, invoices):
        rows = {r["client_name"]: r for r in analytics_by_client(invoices)}
        assert rows["Acme"]["paid_amount"] == 1000
        assert rows["Acme"]["pending_amount"] == 500
        assert rows["Globex"]["pending_amount"] == 2000
        assert rows["Unknown"]["pending_amount"] == 300
        assert rows["Acme"]["last_invoice_date"] == "2024-02-01"


class TestMonthlyAnalytics:
    def test_twelve_months(self, invoices):
        rows = monthly_analytics(invoices, 2024)
        assert [r["month"] for r in rows] == [f"2024-{m:02d}" for m in range(1, 13)]

    def test_buckets_by_issue_month(self, invoices):
        rows = {r["month"]: r for r in monthly_analytics(invoices, 2024)}
        assert rows["2024-01"] == {"month": "2024-01", "invoiced": 1000, "paid": 1000, "hours": 10, "count": 1}
        assert rows["2024-02"]["invoiced"] == 2500
        assert rows["2024-02"]["count"] == 2
        assert rows["2024-03"]["count"] == 0

    def test_other_years_ignored(self, invoices):
        rows = monthly_analytics(invoices, 2023)
        assert sum(r["count"] for r in rows) == 1

"""HTML and PDF rendering for invoices."""

import logging
from datetime import date
from html import escape
from pathlib import Path

from .models import Invoice, PartyInfo
from .periods import MONTH_NAMES
from .totals import included_days

logger = logging.getLogger("timebill.render")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "PHP": "₱",
    "JPY": "¥",
    "AUD": "A$",
    "CAD": "C$",
    "SGD": "S$",
}

PAYMENT_TERMS_LABELS = {
    "DUE_ON_RECEIPT": "Due on Receipt",
    "NET_7": "Net 7 Days",
    "NET_15": "Net 15 Days",
    "NET_30": "Net 30 Days",
    "NET_45": "Net 45 Days",
    "NET_60": "Net 60 Days",
    "CUSTOM": "Custom",
}

# Width and height in millimetres
PAGE_SIZES = {
    "A4": {"width": 210, "height": 297, "label": "A4"},
    "LETTER": {"width": 215.9, "height": 279.4, "label": "Letter"},
    "LEGAL": {"width": 215.9, "height": 355.6, "label": "Legal"},
    "LONG": {"width": 215.9, "height": 330.2, "label": 'Long Bond (8.5" x 13")'},
    "SHORT": {"width": 215.9, "height": 266.7, "label": 'Short Bond (8.5" x 10.5")'},
    "A5": {"width": 148, "height": 210, "label": "A5"},
    "B5": {"width": 176, "height": 250, "label": "B5"},
}

DEFAULT_JOB_TITLE = "Professional Services"


def format_currency(amount: float, currency: str) -> str:
    """Format an amount with its currency symbol: $1,234.50, -€20.00."""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def _format_date(value: str | None) -> str:
    if not value:
        return ""
    d = date.fromisoformat(value)
    return f"{MONTH_NAMES[d.month - 1]} {d.day:02d}, {d.year}"


def _terms_text(invoice: Invoice) -> str:
    if invoice.payment_terms == "CUSTOM" and invoice.custom_payment_terms:
        return invoice.custom_payment_terms
    return PAYMENT_TERMS_LABELS.get(invoice.payment_terms, invoice.payment_terms)


def _party_html(party: PartyInfo) -> str:
    locality = ", ".join(p for p in (party.city, party.state, party.postal_code) if p)
    lines = [f"<strong>{escape(party.name)}</strong>"]
    lines += [escape(v) for v in (party.address, locality, party.country, party.email, party.phone) if v]
    if party.tax_id:
        lines.append(f"Tax ID: {escape(party.tax_id)}")
    return "<br>".join(lines)


def _detailed_hours_html(invoice: Invoice) -> str:
    days = included_days(invoice.work_days)
    if not invoice.show_detailed_hours or not days:
        return ""
    rows = "".join(
        f"""
            <tr>
                <td>{_format_date(d.date)}</td>
                <td>{escape(d.notes or "")}</td>
                <td class="right">{d.hours:.1f}</td>
            </tr>"""
        for d in days
    )
    return f"""
    <table class="hours">
        <thead>
            <tr><th>Date</th><th>Notes</th><th class="right">Hours</th></tr>
        </thead>
        <tbody>{rows}
        </tbody>
    </table>"""


def _payment_html(invoice: Invoice) -> str:
    bank = invoice.bank_details
    if bank is None:
        return ""
    fields = [
        ("Bank", bank.bank_name),
        ("Account Name", bank.account_name),
        ("Account Number", bank.account_number),
        ("Routing Number", bank.routing_number),
        ("SWIFT", bank.swift_code),
        ("IBAN", bank.iban),
    ]
    rows = "".join(
        f'<div class="meta-row"><span class="meta-label">{label}:</span> {escape(value)}</div>'
        for label, value in fields if value
    )
    if not rows:
        return ""
    return f"""
    <div class="payment">
        <div class="section-label">Payment Information</div>
        {rows}
    </div>"""


def generate_invoice_html(invoice: Invoice) -> str:
    """Generate HTML for an invoice, suitable for PDF conversion."""
    currency = invoice.currency
    totals = invoice.totals
    page = PAGE_SIZES.get(invoice.page_size, PAGE_SIZES["A4"])

    items_html = ""
    if totals.total_hours > 0:
        job_title = escape(invoice.job_title or DEFAULT_JOB_TITLE)
        items_html += f"""
            <tr>
                <td>{job_title} ({totals.total_days} days, {totals.total_hours:.1f} hrs)</td>
                <td class="right">{totals.total_hours:.2f}</td>
                <td class="right">{format_currency(invoice.hourly_rate, currency)}</td>
                <td class="right">{format_currency(totals.total_hours * invoice.hourly_rate, currency)}</td>
            </tr>"""
    for item in invoice.line_items:
        items_html += f"""
            <tr>
                <td>{escape(item.description)}</td>
                <td class="right">{item.quantity:.2f}</td>
                <td class="right">{format_currency(item.unit_price, currency)}</td>
                <td class="right">{format_currency(item.amount, currency)}</td>
            </tr>"""

    summary_html = f"""
            <tr class="summary-row">
                <td colspan="3" class="right"><strong>Subtotal</strong></td>
                <td class="right">{format_currency(totals.subtotal, currency)}</td>
            </tr>"""
    if invoice.discount_percent:
        summary_html += f"""
            <tr class="summary-row">
                <td colspan="3" class="right"><strong>Discount ({invoice.discount_percent:g}%)</strong></td>
                <td class="right">-{format_currency(totals.discount_amount, currency)}</td>
            </tr>"""
    if invoice.tax_percent:
        summary_html += f"""
            <tr class="summary-row">
                <td colspan="3" class="right"><strong>Tax ({invoice.tax_percent:g}%)</strong></td>
                <td class="right">{format_currency(totals.tax_amount, currency)}</td>
            </tr>"""
    summary_html += f"""
            <tr class="summary-row">
                <td colspan="3" class="right"><strong>TOTAL DUE</strong></td>
                <td class="right amount-due">{format_currency(totals.total_amount, currency)}</td>
            </tr>"""

    period_html = ""
    if invoice.period_start and invoice.period_end:
        period_html = (
            '<div class="meta-row"><span class="meta-label">Period:</span> '
            f"{_format_date(invoice.period_start)} - {_format_date(invoice.period_end)}</div>"
        )
    due_html = ""
    if invoice.due_date:
        due_html = f'<div class="meta-row"><span class="meta-label">Due:</span> {_format_date(invoice.due_date)}</div>'

    notes_html = ""
    for label, text in (("Notes", invoice.notes), ("Terms & Conditions", invoice.terms)):
        if text:
            notes_html += f"""
    <div class="notes">
        <div class="section-label">{label}</div>
        <div style="white-space: pre-line;">{escape(text)}</div>
    </div>"""

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Invoice {escape(invoice.invoice_number)}</title>
    <style>
        @page {{
            size: {page["width"]}mm {page["height"]}mm;
            margin: 18mm;
        }}
        body {{
            font-family: "Helvetica Neue", Helvetica, Arial, sans-serif;
            font-size: 10.5pt;
            color: #333;
            margin: 0;
        }}
        .header {{
            display: flex;
            justify-content: space-between;
            margin-bottom: 32px;
            padding-bottom: 16px;
            border-bottom: 2px solid #1f3a5f;
        }}
        .invoice-title {{
            font-size: 20pt;
            font-weight: bold;
            color: #1f3a5f;
        }}
        .meta-row {{ margin: 3px 0; }}
        .meta-label {{ font-weight: bold; color: #7f8c8d; }}
        .section-label {{
            font-weight: bold;
            color: #7f8c8d;
            text-transform: uppercase;
            font-size: 8.5pt;
            margin-bottom: 6px;
        }}
        .bill-to {{ margin-bottom: 28px; }}
        table {{ width: 100%; border-collapse: collapse; margin-bottom: 24px; }}
        th {{
            background: #1f3a5f;
            color: white;
            padding: 8px 10px;
            text-align: left;
            font-size: 9pt;
            text-transform: uppercase;
        }}
        th.right, td.right {{ text-align: right; }}
        td {{ padding: 8px 10px; border-bottom: 1px solid #e0e0e0; }}
        table.hours td {{ font-size: 9pt; padding: 4px 10px; }}
        tfoot .summary-row td {{ border-bottom: none; padding: 5px 10px; }}
        tfoot .amount-due {{
            font-size: 13pt;
            font-weight: bold;
            color: #1f3a5f;
            border-top: 2px solid #1f3a5f;
        }}
        .payment, .notes {{
            margin-top: 20px;
            padding: 12px;
            background: #f8f9fa;
            border-left: 4px solid #1f3a5f;
        }}
    </style>
</head>
<body>
    <div class="header">
        <div>{_party_html(invoice.from_party)}</div>
        <div style="text-align: right;">
            <div class="invoice-title">INVOICE</div>
            <div class="meta-row"><span class="meta-label">Number:</span> {escape(invoice.invoice_number)}</div>
            <div class="meta-row"><span class="meta-label">Date:</span> {_format_date(invoice.issue_date)}</div>
            {due_html}
            {period_html}
            <div class="meta-row"><span class="meta-label">Terms:</span> {escape(_terms_text(invoice))}</div>
        </div>
    </div>

    <div class="bill-to">
        <div class="section-label">Bill To</div>
        {_party_html(invoice.to_party)}
    </div>
    {_detailed_hours_html(invoice)}
    <table>
        <thead>
            <tr>
                <th>Description</th>
                <th class="right">Qty</th>
                <th class="right">Rate</th>
                <th class="right">Amount</th>
            </tr>
        </thead>
        <tbody>{items_html}
        </tbody>
        <tfoot>{summary_html}
        </tfoot>
    </table>
    {_payment_html(invoice)}
    {notes_html}
</body>
</html>"""


def generate_invoice_pdf(html: str, output_path: Path) -> None:
    """Convert invoice HTML to PDF using WeasyPrint."""
    from weasyprint import HTML

    output_path.parent.mkdir(parents=True, exist_ok=True)
    HTML(string=html).write_pdf(str(output_path))
    logger.info("Wrote invoice PDF %s", output_path)


def invoice_filename(invoice: Invoice) -> str:
    return f"invoice-{invoice.invoice_number}-{invoice.issue_date}.pdf"

"""Invoice data model shared by the period engine, totals and the draft store."""

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date, timedelta
from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    TO_SEND = "TO_SEND"
    SENT = "SENT"
    VIEWED = "VIEWED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PARTIAL_PAYMENT = "PARTIAL_PAYMENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentTerms(str, Enum):
    DUE_ON_RECEIPT = "DUE_ON_RECEIPT"
    NET_7 = "NET_7"
    NET_15 = "NET_15"
    NET_30 = "NET_30"
    NET_45 = "NET_45"
    NET_60 = "NET_60"
    CUSTOM = "CUSTOM"


_NET_DAYS = {
    PaymentTerms.DUE_ON_RECEIPT: 0,
    PaymentTerms.NET_7: 7,
    PaymentTerms.NET_15: 15,
    PaymentTerms.NET_30: 30,
    PaymentTerms.NET_45: 45,
    PaymentTerms.NET_60: 60,
}

MAX_HOURS_PER_DAY = 24


def validate_hours(hours: float) -> float:
    """Hours for one day must be within 0..24."""
    if not 0 <= hours <= MAX_HOURS_PER_DAY:
        raise ValueError(f"Hours must be between 0 and {MAX_HOURS_PER_DAY}, got {hours}")
    return hours


def validate_rate(rate: float) -> float:
    if rate < 0:
        raise ValueError(f"Hourly rate cannot be negative, got {rate}")
    return rate


def validate_percent(percent: float, name: str = "Percent") -> float:
    if not 0 <= percent <= 100:
        raise ValueError(f"{name} must be between 0 and 100, got {percent}")
    return percent


def known_fields(cls, data: dict) -> dict:
    """Subset of `data` that `cls` accepts; keys from other versions are dropped."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass(frozen=True)
class WorkDay:
    date: str  # YYYY-MM-DD, identity within a schedule
    hours: float
    is_included: bool
    notes: str | None = None


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str
    quantity: float
    unit_price: float
    amount: float

    def updated(self, **changes) -> "LineItem":
        """Copy with changes applied; amount is always re-derived."""
        changes.pop("amount", None)
        changes.pop("id", None)
        item = replace(self, **changes)
        return replace(item, amount=item.quantity * item.unit_price)


def make_line_item(description: str, quantity: float, unit_price: float) -> LineItem:
    return LineItem(
        id=uuid.uuid4().hex,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        amount=quantity * unit_price,
    )


@dataclass(frozen=True)
class InvoiceTotals:
    total_days: int = 0
    total_hours: float = 0
    subtotal: float = 0
    discount_amount: float = 0
    tax_amount: float = 0
    total_amount: float = 0


@dataclass
class PartyInfo:
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    email: str = ""
    phone: str = ""
    tax_id: str = ""


@dataclass
class BankDetails:
    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    routing_number: str = ""
    swift_code: str = ""
    iban: str = ""


@dataclass
class StatusChange:
    status: str
    changed_at: str  # ISO timestamp
    notes: str | None = None


@dataclass
class ScheduleConfig:
    """How billing periods are picked and prefilled for new drafts."""
    frequency: str = "BOTH_15TH_AND_LAST"
    day_policy: str = "WEEKDAYS_ONLY"
    custom_dates: list[str] = field(default_factory=list)
    default_hours_per_day: float = 8


@dataclass
class Invoice:
    id: str = ""
    invoice_number: str = ""
    status: str = InvoiceStatus.DRAFT.value
    status_history: list[StatusChange] = field(default_factory=list)
    issue_date: str = ""
    due_date: str | None = None
    period_start: str | None = None
    period_end: str | None = None
    sent_at: str | None = None
    paid_at: str | None = None
    viewed_at: str | None = None
    from_party: PartyInfo = field(default_factory=PartyInfo)
    to_party: PartyInfo = field(default_factory=PartyInfo)
    hourly_rate: float = 0
    default_hours_per_day: float = 8
    work_days: list[WorkDay] = field(default_factory=list)
    line_items: list[LineItem] = field(default_factory=list)
    discount_percent: float = 0
    tax_percent: float = 0
    totals: InvoiceTotals = field(default_factory=InvoiceTotals)
    currency: str = "USD"
    payment_terms: str = PaymentTerms.NET_30.value
    custom_payment_terms: str = ""
    bank_details: BankDetails | None = None
    notes: str = ""
    terms: str = ""
    job_title: str = ""
    tags: list[str] = field(default_factory=list)
    is_archived: bool = False
    archived_at: str | None = None
    show_detailed_hours: bool = False
    page_size: str = "A4"
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Invoice":
        """Rebuild an invoice from to_dict() output, ignoring unknown keys."""
        data = known_fields(cls, data)
        data["from_party"] = PartyInfo(**known_fields(PartyInfo, data.get("from_party") or {}))
        data["to_party"] = PartyInfo(**known_fields(PartyInfo, data.get("to_party") or {}))
        if data.get("bank_details") is not None:
            data["bank_details"] = BankDetails(**known_fields(BankDetails, data["bank_details"]))
        data["status_history"] = [StatusChange(**known_fields(StatusChange, s)) for s in data.get("status_history", [])]
        data["work_days"] = [WorkDay(**known_fields(WorkDay, d)) for d in data.get("work_days", [])]
        data["line_items"] = [LineItem(**known_fields(LineItem, i)) for i in data.get("line_items", [])]
        data["totals"] = InvoiceTotals(**known_fields(InvoiceTotals, data.get("totals") or {}))
        return cls(**data)


def format_invoice_number(number: int) -> str:
    """Format invoice number with zero-padding: INV-000001."""
    return f"INV-{number:06d}"


def parse_invoice_number(invoice_number: str) -> int | None:
    """Numeric part of an INV-NNNNNN number, or None for free-form numbers."""
    prefix, _, digits = invoice_number.partition("-")
    if prefix != "INV" or not digits.isdigit():
        return None
    return int(digits)


def compute_due_date(issue_date: str, payment_terms: str) -> str | None:
    """Due date implied by payment terms. CUSTOM terms have no fixed date."""
    try:
        days = _NET_DAYS[PaymentTerms(payment_terms)]
    except (KeyError, ValueError):
        return None
    return (date.fromisoformat(issue_date) + timedelta(days=days)).isoformat()

"""In-progress invoice draft plus the finalized invoices and party profiles.

Every change to the draft goes through _commit(), which builds the new
draft and its totals together and assigns them in one step, so the totals
shown for a draft always match its schedule, line items, rate, discount
and tax.

Only the finalized invoices, the two profile lists and the schedule fields
changed through update_schedule_config() are persisted (one snapshot
through the injected SnapshotStorage); the draft itself lives in memory.
Persisted schedule fields override the configured defaults field by
field, so defaults the user never touched keep following the config file.
"""

import copy
import logging
import uuid
from dataclasses import asdict, replace
from datetime import date, datetime, timezone
from typing import Callable

from .models import (
    BankDetails,
    Invoice,
    InvoiceStatus,
    LineItem,
    PartyInfo,
    ScheduleConfig,
    StatusChange,
    WorkDay,
    compute_due_date,
    format_invoice_number,
    known_fields,
    make_line_item,
    parse_invoice_number,
    validate_hours,
    validate_percent,
    validate_rate,
)
from .storage import MemoryStorage, SnapshotStorage
from .totals import compute_totals

logger = logging.getLogger("timebill.draft")

# Status -> timestamp field stamped on the first transition into it
_STATUS_TIMESTAMPS = {
    InvoiceStatus.SENT.value: "sent_at",
    InvoiceStatus.PAID.value: "paid_at",
    InvoiceStatus.VIEWED.value: "viewed_at",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DraftStore:
    def __init__(
        self,
        storage: SnapshotStorage | None = None,
        today: Callable[[], date] | None = None,
        clock: Callable[[], datetime] | None = None,
        schedule_defaults: ScheduleConfig | None = None,
        invoice_defaults: dict | None = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self._today = today or date.today
        self._clock = clock or _utc_now
        self._invoice_defaults = dict(invoice_defaults or {})

        self._schedule_defaults = schedule_defaults or ScheduleConfig()
        self._schedule_overrides: dict = {}
        self.schedule_config = self._schedule_defaults
        self.saved_invoices: list[Invoice] = []
        self.from_profiles: list[PartyInfo] = []
        self.to_profiles: list[PartyInfo] = []
        self._load()

        self.draft = self._new_draft()

    # --- persistence ---

    def snapshot(self) -> dict:
        return {
            "saved_invoices": [inv.to_dict() for inv in self.saved_invoices],
            "from_profiles": [asdict(p) for p in self.from_profiles],
            "to_profiles": [asdict(p) for p in self.to_profiles],
            "schedule_overrides": dict(self._schedule_overrides),
        }

    @staticmethod
    def _hydrate(kind: str, records: list, build: Callable) -> list:
        """Build each record, skipping (and logging) the ones that don't fit."""
        items = []
        for record in records or []:
            try:
                items.append(build(record))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping unreadable %s in snapshot: %s", kind, e)
        return items

    def _load(self) -> None:
        try:
            data = self.storage.load()
        except Exception as e:
            logger.error("Failed to load invoice snapshot: %s", e)
            return
        if not data:
            return
        if not isinstance(data, dict):
            logger.error("Ignoring invoice snapshot of type %s", type(data).__name__)
            return

        self.saved_invoices = self._hydrate("invoice", data.get("saved_invoices"), Invoice.from_dict)
        self.from_profiles = self._hydrate(
            "sender profile", data.get("from_profiles"), lambda p: PartyInfo(**known_fields(PartyInfo, p)),
        )
        self.to_profiles = self._hydrate(
            "client profile", data.get("to_profiles"), lambda p: PartyInfo(**known_fields(PartyInfo, p)),
        )
        overrides = data.get("schedule_overrides") or {}
        if isinstance(overrides, dict):
            self._schedule_overrides = known_fields(ScheduleConfig, overrides)
            self.schedule_config = replace(self._schedule_defaults, **self._schedule_overrides)
        logger.debug(
            "Loaded %d saved invoice(s), %d/%d profile(s)",
            len(self.saved_invoices), len(self.from_profiles), len(self.to_profiles),
        )

    def _persist(self) -> None:
        # Storage failures are logged, never raised
        try:
            self.storage.save(self.snapshot())
        except Exception as e:
            logger.error("Failed to persist invoice snapshot: %s", e)

    # --- draft lifecycle ---

    def _now(self) -> str:
        return self._clock().isoformat()

    def _new_draft(self, invoice_number: str = "") -> Invoice:
        draft = Invoice(
            invoice_number=invoice_number,
            issue_date=self._today().isoformat(),
            default_hours_per_day=self.schedule_config.default_hours_per_day,
            **self._invoice_defaults,
        )
        return replace(draft, totals=self._totals_for(draft))

    @staticmethod
    def _totals_for(invoice: Invoice):
        return compute_totals(
            invoice.work_days,
            invoice.line_items,
            invoice.hourly_rate,
            invoice.discount_percent,
            invoice.tax_percent,
        )

    def _commit(self, **changes) -> Invoice:
        draft = replace(self.draft, **changes)
        self.draft = replace(draft, totals=self._totals_for(draft))
        return self.draft

    def set_draft(self, invoice: Invoice) -> Invoice:
        self.draft = replace(invoice, totals=self._totals_for(invoice))
        return self.draft

    def update_draft(self, **fields) -> Invoice:
        fields.pop("totals", None)
        if "hourly_rate" in fields:
            validate_rate(fields["hourly_rate"])
        if "default_hours_per_day" in fields:
            validate_hours(fields["default_hours_per_day"])
        for name in ("discount_percent", "tax_percent"):
            if name in fields:
                validate_percent(fields[name], name)
        if "work_days" in fields:
            self._check_days(fields["work_days"])
        return self._commit(**fields)

    def reset_draft(self) -> Invoice:
        self.draft = self._new_draft(invoice_number=self.next_invoice_number())
        return self.draft

    def recalculate_totals(self) -> Invoice:
        return self._commit()

    # --- parties ---

    def update_from_party(self, **fields) -> Invoice:
        return self._commit(from_party=replace(self.draft.from_party, **fields))

    def update_to_party(self, **fields) -> Invoice:
        return self._commit(to_party=replace(self.draft.to_party, **fields))

    def update_bank_details(self, **fields) -> Invoice:
        current = self.draft.bank_details or BankDetails()
        return self._commit(bank_details=replace(current, **fields))

    # --- work schedule ---

    def set_period(self, start: date | str, end: date | str) -> Invoice:
        return self._commit(period_start=str(start), period_end=str(end))

    @staticmethod
    def _check_days(days: list[WorkDay]) -> None:
        for d in days:
            validate_hours(d.hours)

    def set_work_days(self, days: list[WorkDay]) -> Invoice:
        days = list(days)
        self._check_days(days)
        return self._commit(work_days=days)

    def merge_work_days(self, days: list[WorkDay]) -> Invoice:
        """Replace the schedule with `days`, keeping entries already edited.

        A date that already exists in the draft keeps its hours, inclusion
        and notes; dates not in `days` are dropped.
        """
        days = list(days)
        self._check_days(days)
        existing = {d.date: d for d in self.draft.work_days}
        return self._commit(work_days=[existing.get(d.date, d) for d in days])

    def update_day_hours(self, day: str, hours: float, notes: str | None = None) -> Invoice:
        """Set hours for a date, adding the date as an included day if new.

        Raises ValueError when hours fall outside 0..24.
        """
        validate_hours(hours)
        updated = []
        found = False
        for d in self.draft.work_days:
            if d.date == day:
                d = replace(d, hours=hours, notes=notes if notes is not None else d.notes)
                found = True
            updated.append(d)
        if not found:
            updated.append(WorkDay(date=day, hours=hours, is_included=True, notes=notes))
        return self._commit(work_days=updated)

    def toggle_workday(self, day: str) -> Invoice:
        return self._commit(work_days=[
            replace(d, is_included=not d.is_included) if d.date == day else d
            for d in self.draft.work_days
        ])

    # --- line items ---

    def add_line_item(self, description: str, quantity: float, unit_price: float) -> LineItem:
        item = make_line_item(description, quantity, unit_price)
        self._commit(line_items=[*self.draft.line_items, item])
        return item

    def update_line_item(self, item_id: str, **changes) -> Invoice:
        return self._commit(line_items=[
            item.updated(**changes) if item.id == item_id else item
            for item in self.draft.line_items
        ])

    def remove_line_item(self, item_id: str) -> Invoice:
        return self._commit(line_items=[
            item for item in self.draft.line_items if item.id != item_id
        ])

    # --- financial settings ---

    def set_hourly_rate(self, rate: float) -> Invoice:
        return self._commit(hourly_rate=validate_rate(rate))

    def set_discount_percent(self, percent: float) -> Invoice:
        return self._commit(discount_percent=validate_percent(percent, "Discount"))

    def set_tax_percent(self, percent: float) -> Invoice:
        return self._commit(tax_percent=validate_percent(percent, "Tax"))

    def set_currency(self, currency: str) -> Invoice:
        return self._commit(currency=currency)

    def set_payment_terms(self, terms: str) -> Invoice:
        return self._commit(payment_terms=terms)

    def set_page_size(self, page_size: str) -> Invoice:
        return self._commit(page_size=page_size)

    # --- schedule config ---

    def update_schedule_config(self, **fields) -> ScheduleConfig:
        """Override schedule fields; the overrides are persisted."""
        if "default_hours_per_day" in fields:
            validate_hours(fields["default_hours_per_day"])
        self.schedule_config = replace(self.schedule_config, **fields)
        self._schedule_overrides.update(fields)
        self._persist()
        return self.schedule_config

    def reset_schedule_config(self) -> ScheduleConfig:
        """Drop persisted overrides and follow the configured defaults again."""
        self._schedule_overrides = {}
        self.schedule_config = self._schedule_defaults
        self._persist()
        return self.schedule_config

    # --- finalized invoices ---

    def _find(self, invoice_id: str) -> int | None:
        for idx, inv in enumerate(self.saved_invoices):
            if inv.id == invoice_id:
                return idx
        return None

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        idx = self._find(invoice_id)
        return None if idx is None else self.saved_invoices[idx]

    def next_invoice_number(self) -> str:
        numbers = [parse_invoice_number(inv.invoice_number) for inv in self.saved_invoices]
        return format_invoice_number(max((n for n in numbers if n is not None), default=0) + 1)

    def save_invoice(self) -> Invoice | None:
        """Finalize the draft into saved_invoices.

        Returns None, leaving everything untouched, when the invoice number
        or either party name is missing. Saving a draft that was saved
        before replaces the earlier record.
        """
        current = self.draft
        if not current.invoice_number or not current.from_party.name or not current.to_party.name:
            logger.warning(
                "Not saving invoice %r: invoice number, sender and recipient names are required",
                current.invoice_number,
            )
            return None

        now = self._now()
        issue_date = current.issue_date or self._today().isoformat()
        status_history = current.status_history or [StatusChange(status=current.status, changed_at=now)]
        invoice = copy.deepcopy(replace(
            current,
            id=current.id or uuid.uuid4().hex,
            issue_date=issue_date,
            due_date=current.due_date or compute_due_date(issue_date, current.payment_terms),
            status_history=status_history,
            totals=self._totals_for(current),
            created_at=current.created_at or now,
            updated_at=now,
        ))

        idx = self._find(invoice.id)
        if idx is None:
            self.saved_invoices = [*self.saved_invoices, invoice]
        else:
            self.saved_invoices = [
                invoice if i == idx else inv for i, inv in enumerate(self.saved_invoices)
            ]
        self.draft = copy.deepcopy(invoice)
        self._persist()

        logger.info(
            "Saved invoice %s for %s, total %.2f %s",
            invoice.invoice_number, invoice.to_party.name,
            invoice.totals.total_amount, invoice.currency,
        )
        return invoice

    def load_invoice(self, invoice_id: str) -> bool:
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return False
        self.set_draft(copy.deepcopy(invoice))
        return True

    def delete_invoice(self, invoice_id: str) -> bool:
        remaining = [inv for inv in self.saved_invoices if inv.id != invoice_id]
        if len(remaining) == len(self.saved_invoices):
            return False
        self.saved_invoices = remaining
        self._persist()
        logger.info("Deleted invoice %s", invoice_id)
        return True

    def _update_saved(self, invoice_id: str, **changes) -> Invoice | None:
        idx = self._find(invoice_id)
        if idx is None:
            return None
        updated = replace(self.saved_invoices[idx], **changes)
        self.saved_invoices = [
            updated if i == idx else inv for i, inv in enumerate(self.saved_invoices)
        ]
        if self.draft.id == invoice_id:
            self._commit(**changes)
        self._persist()
        return updated

    def update_status(
        self, invoice_id: str, status: InvoiceStatus | str, notes: str | None = None,
    ) -> Invoice | None:
        """Move a saved invoice to `status`, recording it in the history.

        The first move into SENT, PAID or VIEWED also stamps sent_at,
        paid_at or viewed_at; later moves keep the original timestamp.
        Raises ValueError for an unknown status.
        """
        status = InvoiceStatus(status).value
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return None

        now = self._now()
        changes = {
            "status": status,
            "status_history": [*invoice.status_history, StatusChange(status=status, changed_at=now, notes=notes)],
            "updated_at": now,
        }
        stamp_field = _STATUS_TIMESTAMPS.get(status)
        if stamp_field and not getattr(invoice, stamp_field):
            changes[stamp_field] = now

        updated = self._update_saved(invoice_id, **changes)
        logger.info("Invoice %s: %s -> %s", invoice.invoice_number, invoice.status, status)
        return updated

    def archive_invoice(self, invoice_id: str) -> Invoice | None:
        now = self._now()
        return self._update_saved(invoice_id, is_archived=True, archived_at=now, updated_at=now)

    def unarchive_invoice(self, invoice_id: str) -> Invoice | None:
        return self._update_saved(invoice_id, is_archived=False, archived_at=None, updated_at=self._now())

    def bulk_update_status(
        self, invoice_ids: list[str], status: InvoiceStatus | str, notes: str | None = None,
    ) -> int:
        """update_status() for each id; returns how many invoices were found."""
        status = InvoiceStatus(status)
        return sum(1 for i in invoice_ids if self.update_status(i, status, notes=notes) is not None)

    def bulk_archive(self, invoice_ids: list[str]) -> int:
        return sum(1 for i in invoice_ids if self.archive_invoice(i) is not None)

    def duplicate_invoice(
        self,
        source_id: str,
        invoice_number: str | None = None,
        copy_work_days: bool = False,
        copy_tags: bool = False,
    ) -> Invoice | None:
        """Save a fresh DRAFT copy of a saved invoice.

        Parties, rate, line items and settings carry over. The period, due
        date and every lifecycle timestamp are cleared; work days and tags
        are copied only when asked for.
        """
        source = self.get_invoice(source_id)
        if source is None:
            return None

        now = self._now()
        duplicate = copy.deepcopy(replace(
            source,
            id=uuid.uuid4().hex,
            invoice_number=invoice_number or self.next_invoice_number(),
            status=InvoiceStatus.DRAFT.value,
            status_history=[StatusChange(
                status=InvoiceStatus.DRAFT.value,
                changed_at=now,
                notes=f"Duplicated from invoice {source.invoice_number}",
            )],
            issue_date=self._today().isoformat(),
            due_date=None,
            period_start=None,
            period_end=None,
            sent_at=None,
            paid_at=None,
            viewed_at=None,
            work_days=source.work_days if copy_work_days else [],
            tags=source.tags if copy_tags else [],
            is_archived=False,
            archived_at=None,
            created_at=now,
            updated_at=now,
        ))
        duplicate = replace(duplicate, totals=self._totals_for(duplicate))
        self.saved_invoices = [*self.saved_invoices, duplicate]
        self._persist()
        logger.info("Duplicated invoice %s as %s", source.invoice_number, duplicate.invoice_number)
        return duplicate

    def list_invoices(
        self,
        status: InvoiceStatus | str | None = None,
        client: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        search: str | None = None,
        tags: list[str] | None = None,
        archived: bool | None = False,
        limit: int | None = None,
    ) -> list[Invoice]:
        """Saved invoices matching every given filter, newest first.

        `archived` picks non-archived (False), archived (True) or both
        (None). `client` is a case-insensitive substring of the client
        name; `search` also matches the invoice number and job title.
        Dates compare against issue_date, both ends inclusive. An invoice
        must carry all of `tags`.
        """
        invoices = [
            inv for inv in self.saved_invoices
            if archived is None or inv.is_archived == archived
        ]
        if status is not None:
            status = InvoiceStatus(status).value
            invoices = [inv for inv in invoices if inv.status == status]
        if client:
            needle = client.lower()
            invoices = [inv for inv in invoices if needle in inv.to_party.name.lower()]
        if date_from:
            invoices = [inv for inv in invoices if inv.issue_date >= date_from]
        if date_to:
            invoices = [inv for inv in invoices if inv.issue_date <= date_to]
        if search:
            query = search.lower()
            invoices = [
                inv for inv in invoices
                if query in inv.invoice_number.lower()
                or query in inv.to_party.name.lower()
                or query in inv.job_title.lower()
            ]
        if tags:
            invoices = [inv for inv in invoices if all(t in inv.tags for t in tags)]

        invoices.sort(key=lambda inv: inv.created_at or "", reverse=True)
        return invoices[:limit] if limit else invoices

    # --- tags ---

    def add_tag(self, invoice_id: str, tag: str) -> Invoice | None:
        tag = tag.strip()
        if not tag:
            raise ValueError("Tag cannot be empty")
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return None
        if tag in invoice.tags:
            return invoice
        return self._update_saved(invoice_id, tags=[*invoice.tags, tag], updated_at=self._now())

    def remove_tag(self, invoice_id: str, tag: str) -> Invoice | None:
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return None
        if tag not in invoice.tags:
            return invoice
        return self._update_saved(
            invoice_id, tags=[t for t in invoice.tags if t != tag], updated_at=self._now(),
        )

    def invoices_by_tag(self, tag: str) -> list[Invoice]:
        """Every saved invoice carrying `tag`, archived ones included."""
        return [inv for inv in self.saved_invoices if tag in inv.tags]

    # --- profiles ---

    def save_from_profile(self, profile: PartyInfo) -> None:
        self.from_profiles = [*self.from_profiles, replace(profile)]
        self._persist()

    def save_to_profile(self, profile: PartyInfo) -> None:
        self.to_profiles = [*self.to_profiles, replace(profile)]
        self._persist()

    def load_from_profile(self, index: int) -> bool:
        if not 0 <= index < len(self.from_profiles):
            return False
        self._commit(from_party=replace(self.from_profiles[index]))
        return True

    def load_to_profile(self, index: int) -> bool:
        if not 0 <= index < len(self.to_profiles):
            return False
        self._commit(to_party=replace(self.to_profiles[index]))
        return True

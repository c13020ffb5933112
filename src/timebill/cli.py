"""Command-line interface for timebill.

Every command returns a dict that main() prints as JSON; a result with
status "error" (or an uncaught exception) exits with code 1.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from . import db
from .analytics import analytics_by_client, analytics_by_status, compute_analytics, monthly_analytics
from .config import Config, load_config
from .draft import DraftStore
from .logging_setup import setup_logging
from .models import Invoice, InvoiceStatus, PartyInfo, validate_hours, validate_percent, validate_rate
from .periods import (
    Batch,
    BillingPeriod,
    DayPolicy,
    Frequency,
    detect_period,
    filter_days,
    generate_work_schedule,
    period_by_batch,
    period_options,
)
from .render import generate_invoice_html, generate_invoice_pdf, invoice_filename
from .storage import SqliteStorage
from .totals import included_days

logger = logging.getLogger("timebill.cli")


def _today(config: Config) -> date:
    return datetime.now(ZoneInfo(config.timezone)).date()


def _reference_date(args, config: Config) -> date:
    if getattr(args, "date", None):
        return date.fromisoformat(args.date)
    return _today(config)


def _open_store(config: Config) -> DraftStore:
    return DraftStore(
        storage=SqliteStorage(config.db_path, user_id=config.user_id),
        today=lambda: _today(config),
        schedule_defaults=config.schedule.to_schedule_config(),
        invoice_defaults=config.invoice.to_draft_fields(),
    )


def _find_invoice(store: DraftStore, ref: str) -> Invoice | None:
    """Look up a saved invoice by id or by invoice number."""
    for inv in store.saved_invoices:
        if ref in (inv.id, inv.invoice_number):
            return inv
    return None


def _summary(inv: Invoice) -> dict:
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "client": inv.to_party.name,
        "status": inv.status,
        "issue_date": inv.issue_date,
        "due_date": inv.due_date,
        "period": f"{inv.period_start} to {inv.period_end}" if inv.period_start else None,
        "total_hours": inv.totals.total_hours,
        "total": round(inv.totals.total_amount, 2),
        "currency": inv.currency,
        "archived": inv.is_archived,
    }


def build_schedule(start, end, hours: float, policy: str, custom_dates: list[str] | None = None):
    """Work days for [start, end] with inclusion decided by the day policy."""
    days = generate_work_schedule(start, end, hours)
    if DayPolicy(policy) is DayPolicy.WEEKDAYS_ONLY:
        return days
    selected = set(filter_days(start, end, policy, custom_dates))
    return [replace(d, is_included=d.date in selected) for d in days]


def parse_item(item_str: str) -> tuple[str, float, float]:
    """Parse "description:quantity:unit_price"."""
    parts = item_str.rsplit(":", 2)
    if len(parts) != 3:
        raise ValueError(f'Invalid item format: {item_str}. Use: "description:quantity:unit_price"')
    description, quantity, unit_price = parts
    return description.strip(), float(quantity), float(unit_price)


# --- commands ---

def cmd_init(args, config: Config) -> dict:
    db.init_db(config.db_path)
    return {"status": "ok", "db_path": str(config.db_path)}


def cmd_period_detect(args, config: Config) -> dict:
    store = _open_store(config)
    frequency = args.frequency or store.schedule_config.frequency
    period = detect_period(frequency, _reference_date(args, config))
    return {"status": "ok", "frequency": frequency, "period": period.to_dict()}


def cmd_period_batch(args, config: Config) -> dict:
    period = period_by_batch(args.batch, _reference_date(args, config))
    return {"status": "ok", "period": period.to_dict()}


def cmd_period_options(args, config: Config) -> dict:
    options = period_options(_reference_date(args, config))
    return {"status": "ok", "options": [p.to_dict() for p in options]}


def cmd_schedule(args, config: Config) -> dict:
    store = _open_store(config)
    sched = store.schedule_config
    hours = validate_hours(args.hours if args.hours is not None else sched.default_hours_per_day)
    policy = args.policy or sched.day_policy
    custom = args.custom_dates or sched.custom_dates
    days = build_schedule(args.start, args.end, hours, policy, custom)
    included = included_days(days)
    return {
        "status": "ok",
        "days": [asdict(d) for d in days],
        "included_days": len(included),
        "included_hours": sum(d.hours for d in included),
    }


def _resolve_period(args, store: DraftStore, today: date) -> BillingPeriod | None:
    if args.start and args.end:
        return None
    if args.batch:
        return period_by_batch(args.batch, today)
    return detect_period(args.frequency or store.schedule_config.frequency, today)


def cmd_invoice_create(args, config: Config) -> dict:
    """Build a draft from arguments, finalize it and optionally render it."""
    if bool(args.start) != bool(args.end):
        return {"status": "error", "error": "--start and --end must be given together"}
    try:
        if args.hours is not None:
            validate_hours(args.hours)
        if args.rate is not None:
            validate_rate(args.rate)
        if args.discount is not None:
            validate_percent(args.discount, "Discount")
        if args.tax is not None:
            validate_percent(args.tax, "Tax")
    except ValueError as e:
        return {"status": "error", "error": str(e)}

    store = _open_store(config)
    today = _today(config)
    store.reset_draft()

    if args.from_profile is not None and not store.load_from_profile(args.from_profile):
        return {"status": "error", "error": f"No sender profile at index {args.from_profile}"}
    if args.to_profile is not None and not store.load_to_profile(args.to_profile):
        return {"status": "error", "error": f"No client profile at index {args.to_profile}"}
    if args.from_name:
        store.update_from_party(name=args.from_name)
    if args.to_name:
        store.update_to_party(name=args.to_name)

    period = _resolve_period(args, store, today)
    start, end = (args.start, args.end) if period is None else (period.start, period.end)
    store.set_period(start, end)

    sched = store.schedule_config
    hours = args.hours if args.hours is not None else sched.default_hours_per_day
    store.merge_work_days(build_schedule(start, end, hours, args.policy or sched.day_policy, sched.custom_dates))
    for day in args.toggle or []:
        store.toggle_workday(day)

    for item_str in args.items or []:
        try:
            description, quantity, unit_price = parse_item(item_str)
        except ValueError as e:
            return {"status": "error", "error": str(e)}
        store.add_line_item(description, quantity, unit_price)

    if args.rate is not None:
        store.set_hourly_rate(args.rate)
    if args.discount is not None:
        store.set_discount_percent(args.discount)
    if args.tax is not None:
        store.set_tax_percent(args.tax)
    if args.currency:
        store.set_currency(args.currency)
    if args.terms:
        store.set_payment_terms(args.terms)
    extra = {k: v for k, v in (("invoice_number", args.number), ("job_title", args.job_title), ("notes", args.notes)) if v}
    if extra:
        store.update_draft(**extra)

    invoice = store.save_invoice()
    if invoice is None:
        return {"status": "error", "error": "Invoice number, sender name and client name are required"}

    result = {"status": "ok", "invoice": _summary(invoice)}
    if period is not None:
        result["period_label"] = period.label
    if args.pdf:
        result["file"] = str(_render(invoice, config.output_dir))
    return result


def cmd_invoice_list(args, config: Config) -> dict:
    store = _open_store(config)
    invoices = store.list_invoices(
        status=args.status,
        client=args.client,
        date_from=args.date_from,
        date_to=args.date_to,
        search=args.search,
        tags=args.tags,
        archived=None if args.all else args.archived,
        limit=args.limit,
    )
    return {"status": "ok", "count": len(invoices), "invoices": [_summary(inv) for inv in invoices]}


def _resolve_many(store: DraftStore, refs: list[str]) -> tuple[list[Invoice], list[str]]:
    found, missing = [], []
    for ref in refs:
        invoice = _find_invoice(store, ref)
        if invoice is None:
            missing.append(ref)
        else:
            found.append(invoice)
    return found, missing


def cmd_invoice_duplicate(args, config: Config) -> dict:
    store = _open_store(config)
    source = _find_invoice(store, args.invoice)
    if source is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    duplicate = store.duplicate_invoice(
        source.id,
        invoice_number=args.number,
        copy_work_days=args.copy_days,
        copy_tags=args.copy_tags,
    )
    return {"status": "ok", "source": source.invoice_number, "invoice": _summary(duplicate)}


def cmd_invoice_bulk_status(args, config: Config) -> dict:
    store = _open_store(config)
    invoices, missing = _resolve_many(store, args.invoices)
    updated = store.bulk_update_status([inv.id for inv in invoices], args.new_status, notes=args.notes)
    return {"status": "ok", "updated": updated, "not_found": missing}


def cmd_invoice_bulk_archive(args, config: Config) -> dict:
    store = _open_store(config)
    invoices, missing = _resolve_many(store, args.invoices)
    archived = store.bulk_archive([inv.id for inv in invoices])
    return {"status": "ok", "archived": archived, "not_found": missing}


def cmd_invoice_tag(args, config: Config) -> dict:
    store = _open_store(config)
    invoice = _find_invoice(store, args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    if args.remove:
        updated = store.remove_tag(invoice.id, args.tag)
    else:
        updated = store.add_tag(invoice.id, args.tag)
    return {"status": "ok", "invoice_number": updated.invoice_number, "tags": updated.tags}


def cmd_invoice_tagged(args, config: Config) -> dict:
    invoices = _open_store(config).invoices_by_tag(args.tag)
    return {"status": "ok", "tag": args.tag, "count": len(invoices), "invoices": [_summary(inv) for inv in invoices]}


def cmd_invoice_show(args, config: Config) -> dict:
    invoice = _find_invoice(_open_store(config), args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    return {"status": "ok", "invoice": invoice.to_dict()}


def cmd_invoice_status(args, config: Config) -> dict:
    store = _open_store(config)
    invoice = _find_invoice(store, args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    updated = store.update_status(invoice.id, args.new_status, notes=args.notes)
    return {"status": "ok", "invoice": _summary(updated), "history": [asdict(s) for s in updated.status_history]}


def cmd_invoice_archive(args, config: Config) -> dict:
    store = _open_store(config)
    invoice = _find_invoice(store, args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    if args.undo:
        updated = store.unarchive_invoice(invoice.id)
    else:
        updated = store.archive_invoice(invoice.id)
    return {"status": "ok", "invoice": _summary(updated)}


def cmd_invoice_delete(args, config: Config) -> dict:
    store = _open_store(config)
    invoice = _find_invoice(store, args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    store.delete_invoice(invoice.id)
    return {"status": "ok", "deleted": invoice.invoice_number}


def _render(invoice: Invoice, output_dir: Path) -> Path:
    pdf_path = Path(output_dir) / invoice.issue_date[:4] / invoice_filename(invoice)
    generate_invoice_pdf(generate_invoice_html(invoice), pdf_path)
    return pdf_path


def cmd_invoice_render(args, config: Config) -> dict:
    invoice = _find_invoice(_open_store(config), args.invoice)
    if invoice is None:
        return {"status": "error", "error": f"Invoice {args.invoice} not found"}
    if args.html:
        Path(args.html).write_text(generate_invoice_html(invoice), encoding="utf-8")
        return {"status": "ok", "file": args.html}
    output_dir = Path(args.output) if args.output else config.output_dir
    return {"status": "ok", "file": str(_render(invoice, output_dir))}


def cmd_profile_add(args, config: Config) -> dict:
    store = _open_store(config)
    profile = PartyInfo(
        name=args.name,
        address=args.address or "",
        city=args.city or "",
        country=args.country or "",
        email=args.email or "",
        tax_id=args.tax_id or "",
    )
    if args.side == "from":
        store.save_from_profile(profile)
        index = len(store.from_profiles) - 1
    else:
        store.save_to_profile(profile)
        index = len(store.to_profiles) - 1
    return {"status": "ok", "side": args.side, "index": index, "name": profile.name}


def cmd_profile_list(args, config: Config) -> dict:
    store = _open_store(config)
    return {
        "status": "ok",
        "from": [asdict(p) for p in store.from_profiles],
        "to": [asdict(p) for p in store.to_profiles],
    }


def cmd_analytics(args, config: Config) -> dict:
    invoices = _open_store(config).saved_invoices
    if args.by == "status":
        return {"status": "ok", "by_status": analytics_by_status(invoices, args.all)}
    if args.by == "client":
        return {"status": "ok", "by_client": analytics_by_client(invoices, args.all)}
    if args.by == "monthly":
        year = args.year or _today(config).year
        return {"status": "ok", "year": year, "months": monthly_analytics(invoices, year, args.all)}
    return {"status": "ok", "analytics": compute_analytics(invoices, args.all)}


def build_parser():
    parser = argparse.ArgumentParser(prog="timebill", description="Hourly invoice billing CLI")
    parser.add_argument("--config", "-c", type=Path, help="Path to config.toml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database")

    # period
    p_period = sub.add_parser("period", help="Billing period helpers")
    period_sub = p_period.add_subparsers(dest="period_command", required=True)
    p_detect = period_sub.add_parser("detect", help="Detect the period to bill for a date")
    p_detect.add_argument("--frequency", "-f", choices=[f.value for f in Frequency])
    p_detect.add_argument("--date", "-d", help="Reference date (YYYY-MM-DD, default: today)")
    p_batch = period_sub.add_parser("batch", help="Period for a batch of the reference month")
    p_batch.add_argument("batch", choices=[b.value for b in Batch])
    p_batch.add_argument("--date", "-d", help="Reference date (YYYY-MM-DD, default: today)")
    p_options = period_sub.add_parser("options", help="Selectable periods around a date")
    p_options.add_argument("--date", "-d", help="Reference date (YYYY-MM-DD, default: today)")

    # schedule
    p_sched = sub.add_parser("schedule", help="Preview a work schedule")
    p_sched.add_argument("--start", required=True)
    p_sched.add_argument("--end", required=True)
    p_sched.add_argument("--hours", type=float)
    p_sched.add_argument("--policy", choices=[p.value for p in DayPolicy])
    p_sched.add_argument("--custom-date", dest="custom_dates", action="append")

    # invoice
    p_inv = sub.add_parser("invoice", help="Invoice operations")
    inv_sub = p_inv.add_subparsers(dest="invoice_command", required=True)

    p_create = inv_sub.add_parser("create", help="Create and finalize an invoice")
    p_create.add_argument("--from", dest="from_name", help="Sender name")
    p_create.add_argument("--to", dest="to_name", help="Client name")
    p_create.add_argument("--from-profile", type=int, help="Saved sender profile index")
    p_create.add_argument("--to-profile", type=int, help="Saved client profile index")
    p_create.add_argument("--number", help="Invoice number (default: next INV-NNNNNN)")
    p_create.add_argument("--rate", type=float, help="Hourly rate")
    p_create.add_argument("--hours", type=float, help="Hours per working day")
    p_create.add_argument("--start", help="Period start (YYYY-MM-DD)")
    p_create.add_argument("--end", help="Period end (YYYY-MM-DD)")
    p_create.add_argument("--frequency", choices=[f.value for f in Frequency])
    p_create.add_argument("--batch", choices=[b.value for b in Batch])
    p_create.add_argument("--policy", choices=[p.value for p in DayPolicy])
    p_create.add_argument("--toggle", action="append", help="Flip inclusion of a date (repeatable)")
    p_create.add_argument("--item", dest="items", action="append", help='Line item "description:qty:price" (repeatable)')
    p_create.add_argument("--discount", type=float, help="Discount percent")
    p_create.add_argument("--tax", type=float, help="Tax percent")
    p_create.add_argument("--currency")
    p_create.add_argument("--terms", help="Payment terms, e.g. NET_30")
    p_create.add_argument("--job-title")
    p_create.add_argument("--notes")
    p_create.add_argument("--pdf", action="store_true", help="Also render the PDF")

    p_list = inv_sub.add_parser("list", help="List saved invoices, newest first")
    p_list.add_argument("--all", action="store_true", help="Include archived invoices")
    p_list.add_argument("--archived", action="store_true", help="Only archived invoices")
    p_list.add_argument("--status", choices=[s.value for s in InvoiceStatus])
    p_list.add_argument("--client", help="Client name contains (case-insensitive)")
    p_list.add_argument("--since", dest="date_from", help="Issued on or after (YYYY-MM-DD)")
    p_list.add_argument("--until", dest="date_to", help="Issued on or before (YYYY-MM-DD)")
    p_list.add_argument("--search", "-s", help="Match invoice number, client or job title")
    p_list.add_argument("--tag", dest="tags", action="append", help="Require tag (repeatable)")
    p_list.add_argument("--limit", "-n", type=int)

    p_dup = inv_sub.add_parser("duplicate", help="Save a new draft copy of an invoice")
    p_dup.add_argument("invoice", help="Invoice id or number")
    p_dup.add_argument("--number", help="Number for the copy (default: next INV-NNNNNN)")
    p_dup.add_argument("--copy-days", action="store_true", help="Keep the work days")
    p_dup.add_argument("--copy-tags", action="store_true", help="Keep the tags")

    p_bstatus = inv_sub.add_parser("bulk-status", help="Change the status of several invoices")
    p_bstatus.add_argument("new_status", choices=[s.value for s in InvoiceStatus])
    p_bstatus.add_argument("invoices", nargs="+", help="Invoice ids or numbers")
    p_bstatus.add_argument("--notes")

    p_barchive = inv_sub.add_parser("bulk-archive", help="Archive several invoices")
    p_barchive.add_argument("invoices", nargs="+", help="Invoice ids or numbers")

    p_tag = inv_sub.add_parser("tag", help="Add or remove an invoice tag")
    p_tag.add_argument("invoice", help="Invoice id or number")
    p_tag.add_argument("tag")
    p_tag.add_argument("--remove", action="store_true", help="Remove the tag instead")

    p_tagged = inv_sub.add_parser("tagged", help="Invoices carrying a tag, archived included")
    p_tagged.add_argument("tag")

    p_show = inv_sub.add_parser("show", help="Show a saved invoice")
    p_show.add_argument("invoice", help="Invoice id or number")

    p_status = inv_sub.add_parser("status", help="Change invoice status")
    p_status.add_argument("invoice", help="Invoice id or number")
    p_status.add_argument("new_status", choices=[s.value for s in InvoiceStatus])
    p_status.add_argument("--notes")

    p_archive = inv_sub.add_parser("archive", help="Archive an invoice")
    p_archive.add_argument("invoice", help="Invoice id or number")
    p_archive.add_argument("--undo", action="store_true", help="Unarchive instead")

    p_delete = inv_sub.add_parser("delete", help="Delete an invoice")
    p_delete.add_argument("invoice", help="Invoice id or number")

    p_render = inv_sub.add_parser("render", help="Render an invoice to PDF")
    p_render.add_argument("invoice", help="Invoice id or number")
    p_render.add_argument("--output", "-o", help="Output directory")
    p_render.add_argument("--html", help="Write HTML to this file instead of a PDF")

    # profile
    p_prof = sub.add_parser("profile", help="Saved sender and client profiles")
    prof_sub = p_prof.add_subparsers(dest="profile_command", required=True)
    p_padd = prof_sub.add_parser("add", help="Save a profile")
    p_padd.add_argument("side", choices=["from", "to"])
    p_padd.add_argument("name")
    p_padd.add_argument("--address")
    p_padd.add_argument("--city")
    p_padd.add_argument("--country")
    p_padd.add_argument("--email")
    p_padd.add_argument("--tax-id")
    prof_sub.add_parser("list", help="List saved profiles")

    # analytics
    p_an = sub.add_parser("analytics", help="Invoice analytics")
    p_an.add_argument("--by", choices=["status", "client", "monthly"])
    p_an.add_argument("--year", "-y", type=int, help="Year for monthly analytics (default: current year)")
    p_an.add_argument("--all", action="store_true", help="Include archived invoices")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    nested_commands = {
        "period": ("period_command", {
            "detect": cmd_period_detect,
            "batch": cmd_period_batch,
            "options": cmd_period_options,
        }),
        "invoice": ("invoice_command", {
            "create": cmd_invoice_create,
            "list": cmd_invoice_list,
            "show": cmd_invoice_show,
            "status": cmd_invoice_status,
            "archive": cmd_invoice_archive,
            "delete": cmd_invoice_delete,
            "render": cmd_invoice_render,
            "duplicate": cmd_invoice_duplicate,
            "bulk-status": cmd_invoice_bulk_status,
            "bulk-archive": cmd_invoice_bulk_archive,
            "tag": cmd_invoice_tag,
            "tagged": cmd_invoice_tagged,
        }),
        "profile": ("profile_command", {
            "add": cmd_profile_add,
            "list": cmd_profile_list,
        }),
    }

    commands = {
        "init": cmd_init,
        "schedule": cmd_schedule,
        "analytics": cmd_analytics,
    }

    try:
        config = load_config(args.config)
        setup_logging(config, verbose=args.verbose)
        if args.command in nested_commands:
            dest, table = nested_commands[args.command]
            result = table[getattr(args, dest)](args, config)
        else:
            result = commands[args.command](args, config)
        print(json.dumps(result, indent=2, ensure_ascii=False))
        if result.get("status") == "error":
            sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(json.dumps({"status": "error", "error": str(e)}))
        sys.exit(1)


if __name__ == "__main__":
    main()

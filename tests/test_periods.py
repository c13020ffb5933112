"""Tests for billing period detection and work schedule generation."""

import locale
from datetime import date

import pytest

from timebill.periods import (
    Batch,
    DayPolicy,
    Frequency,
    PeriodKind,
    detect_period,
    filter_days,
    generate_work_schedule,
    last_day_of_month,
    ordinal_suffix,
    parse_date,
    period_by_batch,
    period_options,
)


class TestOrdinalSuffix:
    @pytest.mark.parametrize("n,suffix", [
        (1, "st"), (2, "nd"), (3, "rd"), (4, "th"),
        (11, "th"), (12, "th"), (13, "th"),
        (21, "st"), (22, "nd"), (23, "rd"),
        (28, "th"), (29, "th"), (30, "th"), (31, "st"),
    ])
    def test_suffix(self, n, suffix):
        assert ordinal_suffix(n) == suffix


class TestLastDayOfMonth:
    def test_leap_february(self):
        assert last_day_of_month(2024, 2) == 29

    def test_common_february(self):
        assert last_day_of_month(2023, 2) == 28

    def test_century_rules(self):
        assert last_day_of_month(1900, 2) == 28
        assert last_day_of_month(2000, 2) == 29

    def test_thirty_and_thirty_one(self):
        assert last_day_of_month(2024, 4) == 30
        assert last_day_of_month(2024, 12) == 31


class TestDetectPeriodBothHalves:
    def test_early_january_rolls_back_to_december(self):
        period = detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 1, 10))
        assert period.start == date(2023, 12, 16)
        assert period.end == date(2023, 12, 31)
        assert period.label == "16th - 31st Dec 2023"
        assert period.kind is PeriodKind.SECOND_HALF
        assert period.is_auto_detected is True

    def test_after_fifteenth_bills_first_half(self):
        period = detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 1, 20))
        assert period.start == date(2024, 1, 1)
        assert period.end == date(2024, 1, 15)
        assert period.label == "1st - 15th Jan 2024"
        assert period.kind is PeriodKind.FIRST_HALF

    def test_fifteenth_still_bills_previous_month(self):
        period = detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 3, 15))
        assert period.start == date(2024, 2, 16)
        assert period.end == date(2024, 2, 29)
        assert period.label == "16th - 29th Feb 2024"

    def test_sixteenth_switches_to_current_month(self):
        period = detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 3, 16))
        assert period.start == date(2024, 3, 1)
        assert period.end == date(2024, 3, 15)

    def test_accepts_string_frequency(self):
        period = detect_period("BOTH_15TH_AND_LAST", date(2024, 1, 10))
        assert period.start == date(2023, 12, 16)


class TestDetectPeriodSingleBoundary:
    def test_every_15th_before_boundary_uses_previous_month(self):
        period = detect_period(Frequency.EVERY_15TH, date(2024, 3, 10))
        assert (period.start, period.end) == (date(2024, 2, 1), date(2024, 2, 15))

    def test_every_15th_after_boundary_uses_current_month(self):
        period = detect_period(Frequency.EVERY_15TH, date(2024, 3, 20))
        assert (period.start, period.end) == (date(2024, 3, 1), date(2024, 3, 15))

    def test_every_15th_january_rollover(self):
        period = detect_period(Frequency.EVERY_15TH, date(2024, 1, 3))
        assert (period.start, period.end) == (date(2023, 12, 1), date(2023, 12, 15))

    def test_leap_year_boundary(self):
        assert detect_period(Frequency.EVERY_LAST_DAY, date(2024, 2, 20)).end == date(2024, 2, 29)
        assert detect_period(Frequency.EVERY_LAST_DAY, date(2023, 2, 20)).end == date(2023, 2, 28)

    def test_every_last_day_leap_february(self):
        period = detect_period(Frequency.EVERY_LAST_DAY, date(2024, 3, 10))
        assert (period.start, period.end) == (date(2024, 2, 16), date(2024, 2, 29))
        assert period.label == "16th - 29th Feb 2024"

    def test_every_last_day_common_february(self):
        period = detect_period(Frequency.EVERY_LAST_DAY, date(2023, 3, 10))
        assert period.end == date(2023, 2, 28)
        assert period.label == "16th - 28th Feb 2023"

    def test_every_last_day_after_boundary(self):
        period = detect_period(Frequency.EVERY_LAST_DAY, date(2024, 4, 20))
        assert (period.start, period.end) == (date(2024, 4, 16), date(2024, 4, 30))
        assert period.label == "16th - 30th Apr 2024"


class TestDetectPeriodCustom:
    def test_custom_is_full_current_month(self):
        period = detect_period(Frequency.CUSTOM, date(2024, 1, 10))
        assert (period.start, period.end) == (date(2024, 1, 1), date(2024, 1, 31))
        assert period.label == "Full January 2024"
        assert period.kind is PeriodKind.FULL_MONTH

    def test_unknown_frequency_falls_back_to_full_month(self):
        period = detect_period("WEEKLY", date(2024, 2, 5))
        assert (period.start, period.end) == (date(2024, 2, 1), date(2024, 2, 29))
        assert period.label == "Full February 2024"


class TestPeriodByBatch:
    def test_first_batch(self):
        period = period_by_batch(Batch.FIRST_BATCH, date(2024, 1, 20))
        assert (period.start, period.end) == (date(2024, 1, 1), date(2024, 1, 15))
        assert period.label == "1st Batch (1-15 Jan)"
        assert period.is_auto_detected is False

    def test_second_batch(self):
        period = period_by_batch(Batch.SECOND_BATCH, date(2024, 1, 2))
        assert (period.start, period.end) == (date(2024, 1, 16), date(2024, 1, 31))
        assert period.label == "2nd Batch (16-31 Jan)"

    def test_second_batch_leap_february(self):
        period = period_by_batch("SECOND_BATCH", date(2024, 2, 1))
        assert period.end == date(2024, 2, 29)
        assert period.label == "2nd Batch (16-29 Feb)"

    def test_whole_month(self):
        period = period_by_batch(Batch.WHOLE_MONTH, date(2024, 1, 20))
        assert (period.start, period.end) == (date(2024, 1, 1), date(2024, 1, 31))
        assert period.label == "Whole Month (January)"

    def test_unknown_batch_raises(self):
        with pytest.raises(ValueError):
            period_by_batch("THIRD_BATCH", date(2024, 1, 1))


class TestPeriodOptions:
    def test_six_options_in_order(self):
        options = period_options(date(2024, 1, 10))
        assert [(p.start, p.end) for p in options] == [
            (date(2024, 1, 1), date(2024, 1, 15)),
            (date(2024, 1, 16), date(2024, 1, 31)),
            (date(2023, 12, 1), date(2023, 12, 15)),
            (date(2023, 12, 16), date(2023, 12, 31)),
            (date(2024, 1, 1), date(2024, 1, 31)),
            (date(2023, 12, 1), date(2023, 12, 31)),
        ]

    def test_options_are_not_auto_detected(self):
        assert not any(p.is_auto_detected for p in period_options(date(2024, 5, 5)))

    def test_full_month_labels(self):
        options = period_options(date(2024, 1, 10))
        assert options[4].label == "Full January 2024"
        assert options[5].label == "Full December 2023"

    def test_to_dict(self):
        data = period_options(date(2024, 1, 10))[0].to_dict()
        assert data == {
            "start": "2024-01-01",
            "end": "2024-01-15",
            "label": "1st - 15th Jan 2024",
            "is_auto_detected": False,
            "kind": "FIRST_HALF",
        }


class TestGenerateWorkSchedule:
    def test_weekends_excluded_by_default(self):
        days = generate_work_schedule("2024-01-05", "2024-01-08", 8)
        assert [d.date for d in days] == ["2024-01-05", "2024-01-06", "2024-01-07", "2024-01-08"]
        assert [d.is_included for d in days] == [True, False, False, True]

    def test_every_day_carries_default_hours(self):
        days = generate_work_schedule(date(2024, 1, 5), date(2024, 1, 8), 6.5)
        assert all(d.hours == 6.5 for d in days)
        assert all(d.notes is None for d in days)

    def test_single_day_range(self):
        days = generate_work_schedule("2024-02-29", "2024-02-29", 8)
        assert len(days) == 1
        assert days[0].date == "2024-02-29"

    def test_start_after_end_is_empty(self):
        assert generate_work_schedule("2024-01-10", "2024-01-01", 8) == []

    def test_full_leap_february(self):
        assert len(generate_work_schedule("2024-02-01", "2024-02-29", 8)) == 29

    def test_invalid_date_raises(self):
        with pytest.raises(ValueError):
            generate_work_schedule("2024-02-30", "2024-03-01", 8)


class TestFilterDays:
    def test_all_days(self):
        assert filter_days("2024-01-05", "2024-01-08", DayPolicy.ALL_DAYS) == [
            "2024-01-05", "2024-01-06", "2024-01-07", "2024-01-08",
        ]

    def test_weekdays_only(self):
        assert filter_days("2024-01-05", "2024-01-08", "WEEKDAYS_ONLY") == ["2024-01-05", "2024-01-08"]

    def test_custom_keeps_range_order(self):
        result = filter_days(
            "2024-01-01", "2024-01-31", DayPolicy.CUSTOM,
            custom_dates=["2024-01-09", "2024-01-02"],
        )
        assert result == ["2024-01-02", "2024-01-09"]

    def test_custom_ignores_dates_outside_range(self):
        result = filter_days("2024-01-01", "2024-01-05", DayPolicy.CUSTOM, custom_dates=["2024-02-01"])
        assert result == []

    def test_custom_without_dates_is_empty(self):
        assert filter_days("2024-01-01", "2024-01-05", DayPolicy.CUSTOM) == []


class TestParseDate:
    def test_passes_dates_through(self):
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("January 1st")


class TestLabelsIgnoreLocale:
    @pytest.fixture
    def german_time_locale(self):
        previous = locale.setlocale(locale.LC_TIME)
        try:
            locale.setlocale(locale.LC_TIME, "de_DE.UTF-8")
        except locale.Error:
            pytest.skip("de_DE.UTF-8 locale not installed")
        yield
        locale.setlocale(locale.LC_TIME, previous)

    def test_labels_stay_english(self, german_time_locale):
        assert detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 3, 10)).label == "16th - 29th Feb 2024"
        assert period_by_batch(Batch.WHOLE_MONTH, date(2024, 3, 1)).label == "Whole Month (March)"
        assert period_options(date(2024, 5, 5))[4].label == "Full May 2024"

    def test_every_month_name(self):
        labels = [period_by_batch(Batch.FIRST_BATCH, date(2024, m, 1)).label for m in range(1, 13)]
        assert labels == [
            f"1st Batch (1-15 {abbr})"
            for abbr in ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
        ]

"""Tests for duration and date formatting."""
from datetime import datetime, timedelta, timezone

import pytest

from pipeline_ledger.domain.durations import (
    INSTANT_TOKEN,
    RECENT_TOKEN,
    as_utc,
    calculate_duration,
    format_date_range,
    format_duration,
    format_duration_detailed,
    format_stage_update_date,
    get_stage_display_duration,
)

pytestmark = pytest.mark.unit

START = datetime(2025, 10, 31, 8, 0, 0, tzinfo=timezone.utc)


class TestFormatDuration:
    """Compact single-unit format."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (0, "Récent"),
            (59, "Récent"),
            (60, "1m"),
            (3599, "59m"),
            (3600, "1h"),
            (86399, "23h"),
            (86400, "1j"),
            (5 * 86400 + 7200, "5j"),
        ],
    )
    def test_thresholds(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_negative_is_clamped(self):
        assert format_duration(-120) == RECENT_TOKEN


class TestFormatDurationDetailed:
    """Verbose two-unit format."""

    def test_zero_is_instant(self):
        assert format_duration_detailed(0) == INSTANT_TOKEN

    def test_negative_is_clamped_to_instant(self):
        assert format_duration_detailed(-5) == INSTANT_TOKEN

    def test_seconds_shown_literally(self):
        assert format_duration_detailed(45) == "45 secondes"
        assert format_duration_detailed(1) == "1 seconde"

    def test_minutes_with_seconds(self):
        assert format_duration_detailed(90) == "1 minute 30s"
        assert format_duration_detailed(120) == "2 minutes"

    def test_hours_with_minutes(self):
        assert format_duration_detailed(3600) == "1 heure"
        assert format_duration_detailed(2 * 3600 + 15 * 60) == "2 heures 15m"

    def test_days_with_hours(self):
        assert format_duration_detailed(86400) == "1 jour"
        assert format_duration_detailed(3 * 86400 + 4 * 3600 + 59) == "3 jours 4h"


class TestCalculateDuration:
    def test_floors_partial_seconds(self):
        end = START + timedelta(seconds=3600, milliseconds=999)
        assert calculate_duration(START, end) == 3600

    def test_naive_datetimes_are_utc(self):
        naive_start = START.replace(tzinfo=None)
        assert calculate_duration(naive_start, START + timedelta(minutes=2)) == 120

    def test_defaults_end_to_now(self):
        start = datetime.now(timezone.utc) - timedelta(seconds=30)
        assert 30 <= calculate_duration(start) <= 32


class TestStageDisplayDuration:
    def test_active_is_live_and_ignores_stored_duration(self):
        now = START + timedelta(hours=3)
        text = get_stage_display_duration(True, START, None, 12, now=now)
        assert text == "En cours · 3h"

    def test_closed_prefers_stored_duration(self):
        text = get_stage_display_duration(False, START, START + timedelta(days=9), 5 * 86400)
        assert text == "5j"

    def test_closed_falls_back_to_timestamps(self):
        text = get_stage_display_duration(False, START, START + timedelta(minutes=42), None)
        assert text == "42m"

    def test_no_end_and_no_duration_is_recent(self):
        assert get_stage_display_duration(False, START, None, None) == RECENT_TOKEN


class TestDateFormatting:
    def test_open_range(self):
        assert format_date_range(START) == "depuis le 31/10/2025"

    def test_closed_range(self):
        assert format_date_range(START, START + timedelta(days=3)) == "du 31/10/2025 au 03/11/2025"

    def test_stage_update_date_with_author(self):
        assert format_stage_update_date(START, "Tazi") == "Mis à jour: 31 oct. — par Tazi"

    def test_stage_update_date_without_author(self):
        assert format_stage_update_date(START) == "Mis à jour: 31 oct."

    def test_as_utc_converts_offsets(self):
        paris = timezone(timedelta(hours=1))
        assert as_utc(datetime(2025, 1, 1, 10, 0, tzinfo=paris)).hour == 9

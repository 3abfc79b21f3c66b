import sys
from unittest import mock

import pytest
from app_start_tracing import clock
from app_start_tracing.clock import ManualClock, get_process_start_time_ms, monotonic_ms


def test_manual_clock():
    manual = ManualClock(start_ms=100)
    assert manual() == 100.0
    assert manual.advance(50) == 150.0
    manual.set(10)
    assert manual() == 10.0


def test_monotonic_ms_increases():
    first = monotonic_ms()
    second = monotonic_ms()
    assert second >= first


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="needs procfs")
def test_process_start_is_in_the_past():
    now = monotonic_ms()
    assert get_process_start_time_ms() <= now


def test_process_start_parses_stat_with_spaces_in_command():
    """The command name can contain spaces and parentheses."""
    fields = ["S"] + ["0"] * 18 + ["500"] + ["0"] * 10
    stat = "1234 (my (odd) app) " + " ".join(fields)
    with mock.patch("builtins.open", mock.mock_open(read_data=stat)), mock.patch.object(
        clock.os, "sysconf", return_value=100
    ), mock.patch.object(clock.time, "clock_gettime", return_value=7.0):
        assert clock._process_age_ms() == pytest.approx(2000.0)


def test_process_start_falls_back_to_now():
    with mock.patch.object(
        clock, "_process_age_ms", side_effect=OSError("no procfs")
    ), mock.patch.object(clock, "monotonic_ms", return_value=42.0):
        assert get_process_start_time_ms() == 42.0


def test_process_start_subtracts_age():
    with mock.patch.object(clock, "_process_age_ms", return_value=300.0), mock.patch.object(
        clock, "monotonic_ms", return_value=1000.0
    ):
        assert get_process_start_time_ms() == 700.0

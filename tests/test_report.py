"""Tests for the report module (full-report grammar)."""

from datetime import datetime, timezone

import pytest

from pt502_decoder.models import Alarm
from pt502_decoder.report import build_time, decode_report, float_or, int_or

SCENARIO_A = (
    "$GOF,123456789,103000.000,A,3723.4567,N,12202.3456,W,10.5,90.0,150324,,,"
    "001/010/1A,5000/TAG1/0A3"
)

FIELD_SAMPLE = (
    "$POS,20178,195207.000,A,0543.6435,S,03917.8975,E,0.00,0.00,150312,,,"
    "A/00000,00000/0/23895000//"
)


def _report(tail: str, head: str = "$POS,20178,195207.000,A,0543.6435,S,03917.8975,E,0.00,0.00,150312,,,"):
    return decode_report(head + tail)


def test_scenario_a_full_record() -> None:
    """The reference report decodes every field."""
    report = decode_report(SCENARIO_A)
    assert report is not None
    position = report.position

    assert report.type == "GOF"
    assert report.identifier == "123456789"
    assert report.photo_size is None
    assert position.valid is True
    assert position.device_time == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert position.fix_time == position.device_time
    assert position.latitude == pytest.approx(37 + 23.4567 / 60)
    assert position.longitude == pytest.approx(-(122 + 2.3456 / 60))
    assert position.speed == 10.5
    assert position.course == 90.0
    assert position.attributes == {
        "alarm": Alarm.GEOFENCE,
        "input": "001",
        "output": "010",
        "adc1": 0x1A,
        "odometer": 5000,
        "driverUniqueId": "TAG1",
        "battery": 0,
        "rssi": 10,
        "sat": 3,
    }


def test_field_sample_with_mode_prefix() -> None:
    """A report with ``A/`` before the inputs and an empty RFID block."""
    report = decode_report(FIELD_SAMPLE)
    assert report is not None
    position = report.position

    assert report.identifier == "20178"
    assert position.device_time == datetime(2012, 3, 15, 19, 52, 7, tzinfo=timezone.utc)
    assert position.latitude == pytest.approx(-(5 + 43.6435 / 60))
    assert position.longitude == pytest.approx(39 + 17.8975 / 60)
    assert position.speed == 0.0
    assert position.attributes == {
        "input": "00000",
        "output": "00000",
        "adc1": 0,
        "odometer": 23895000,
    }


def test_leading_and_trailing_noise() -> None:
    """Bytes before ``$`` and after the last field are ignored."""
    report = decode_report("\x00\x01junk" + FIELD_SAMPLE + "\r\n")
    assert report is not None
    assert report.identifier == "20178"


def test_milliseconds_are_kept() -> None:
    """The fractional seconds of the time field end up in the timestamp."""
    report = decode_report(SCENARIO_A.replace("103000.000", "103000.250"))
    assert report.position.device_time.microsecond == 250000


def test_invalid_fix() -> None:
    """Any validity letter other than A is an invalid fix."""
    report = decode_report(SCENARIO_A.replace(",A,3723", ",V,3723"))
    assert report.position.valid is False


def test_missing_speed_and_course_default_to_zero() -> None:
    """Empty speed and course fields become 0."""
    report = decode_report(SCENARIO_A.replace("10.5,90.0,", ",,"))
    assert report is not None
    assert report.position.speed == 0.0
    assert report.position.course == 0.0


def test_multiple_analog_channels_are_hex() -> None:
    """Each comma-separated analog reading becomes adcN, parsed as hex."""
    report = _report("A/00000,00000/0A,FF,10/100//")
    assert report.position.attributes["adc1"] == 10
    assert report.position.attributes["adc2"] == 255
    assert report.position.attributes["adc3"] == 16
    assert report.position.attributes["odometer"] == 100


def test_malformed_analog_reading_defaults_to_zero() -> None:
    """A non-hex analog reading degrades to 0 instead of failing the record."""
    report = _report("A/00000,00000/ZZ,1F/100//")
    assert report is not None
    assert report.position.attributes["adc1"] == 0
    assert report.position.attributes["adc2"] == 31


def test_missing_analog_block() -> None:
    """An empty analog field leaves no adc attributes."""
    report = _report("A/00000,00000//100//")
    assert report is not None
    assert not any(key.startswith("adc") for key in report.position.attributes)
    assert report.position.attributes["odometer"] == 100


def test_rfid_without_status() -> None:
    """The driver tag is kept even when no status word follows."""
    report = _report("A/00000,00000/0/100/DRV42")
    assert report.position.attributes["driverUniqueId"] == "DRV42"
    assert "battery" not in report.position.attributes


def test_status_must_be_three_hex_digits() -> None:
    """Four hex digits are not a status word."""
    report = decode_report(SCENARIO_A.replace("/0A3", "/0A3F"))
    assert report is not None
    assert report.position.attributes["driverUniqueId"] == "TAG1"
    assert "battery" not in report.position.attributes


def test_photo_announcement_type() -> None:
    """``PHO<size>`` types expose the announced size and carry no alarm."""
    report = decode_report(SCENARIO_A.replace("$GOF,", "$PHO6000,"))
    assert report.photo_size == 6000
    assert "alarm" not in report.position.attributes


@pytest.mark.parametrize(
    "message",
    [
        "",
        "hello",
        "@\x00\x04\x05\x045000",
        SCENARIO_A.replace("3723.4567", "3723.45"),
        SCENARIO_A.replace(",N,", ",X,"),
        SCENARIO_A.replace("150324,,,", "150324,,"),
        SCENARIO_A.replace("$GOF,123456789", "$GOF,ABC"),
    ],
)
def test_structural_mismatch_returns_none(message: str) -> None:
    """Messages that do not follow the skeleton are not full reports."""
    assert decode_report(message) is None


def test_int_or() -> None:
    """Malformed or empty numbers fall back to the default."""
    assert int_or("42") == 42
    assert int_or("1A", base=16) == 26
    assert int_or("xyz") == 0
    assert int_or(None, default=7) == 7
    assert int_or("") == 0


def test_float_or() -> None:
    """Malformed or empty decimals fall back to the default."""
    assert float_or("10.5") == 10.5
    assert float_or("1.2.3") == 0.0
    assert float_or(None) == 0.0


def test_build_time() -> None:
    """Two-digit years are in the 2000s and the result is UTC."""
    assert build_time(15, 3, 24, 10, 30, 0, 0) == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def test_build_time_rolls_over_zero_day_and_month() -> None:
    """Out-of-range parts roll over instead of raising."""
    assert build_time(0, 3, 24) == datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert build_time(1, 0, 24) == datetime(2023, 12, 1, tzinfo=timezone.utc)
    assert build_time(0, 0, 0) == datetime(1999, 11, 30, tzinfo=timezone.utc)
    assert build_time(32, 13, 24) == datetime(2025, 2, 1, tzinfo=timezone.utc)


def test_zero_date_still_yields_timestamps() -> None:
    """A report dated 000000 still carries device and fix times."""
    report = decode_report(SCENARIO_A.replace("150324,,,", "000000,,,"))
    assert report is not None
    assert report.position.device_time is not None
    assert report.position.fix_time is not None

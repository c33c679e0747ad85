"""Tests for the decoder module (dispatch)."""

from datetime import datetime, timezone

import pytest

from pt502_decoder import DecodeError, Pt502Decoder
from pt502_decoder.models import Alarm, FieldTag, PhotoHandshake
from pt502_decoder.providers import InMemoryDeviceRegistry, InMemoryPositionStore

SESSION = "conn-1"

SCENARIO_A = (
    "$GOF,123456789,103000.000,A,3723.4567,N,12202.3456,W,10.5,90.0,150324,,,"
    "001/010/1A,5000/TAG1/0A3"
)


def _entry(tag: int, index: int, payload: bytes) -> bytes:
    return bytes([tag, index, len(payload)]) + payload


def _frame(*entries: bytes) -> bytes:
    return b"@\x00" + b"".join(entries)


@pytest.fixture
def registry() -> InMemoryDeviceRegistry:
    return InMemoryDeviceRegistry({"123456789": 7, "123456000": 8})


@pytest.fixture
def positions() -> InMemoryPositionStore:
    return InMemoryPositionStore()


@pytest.fixture
def replies() -> list:
    return []


@pytest.fixture
def decoder(registry, positions, replies) -> Pt502Decoder:
    return Pt502Decoder(registry, positions, send_reply=replies.append)


def test_full_report(decoder) -> None:
    """A full report resolves its identifier to the device handle."""
    position = decoder.decode(SESSION, SCENARIO_A)
    assert position is not None
    assert position.device_id == 7
    assert position.protocol == "pt502"
    assert position.attributes["alarm"] is Alarm.GEOFENCE
    assert position.device_time == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def test_full_report_as_bytes(decoder) -> None:
    """Byte input is matched against the text grammar first."""
    position = decoder.decode(SESSION, SCENARIO_A.encode("ascii"))
    assert position is not None
    assert position.device_id == 7
    assert position.speed == 10.5


def test_full_report_binds_session(decoder, registry) -> None:
    """After a full report, the session resolves to its device."""
    decoder.decode(SESSION, SCENARIO_A)
    assert registry.resolve_session(SESSION) == 7


def test_unknown_device(decoder) -> None:
    """Reports from unregistered identifiers yield no record."""
    assert decoder.decode(SESSION, SCENARIO_A.replace("123456789", "999")) is None


def test_unknown_device_registered_on_demand(positions) -> None:
    """With auto-registration, unknown identifiers get a fresh handle."""
    registry = InMemoryDeviceRegistry({"1": 4}, register_unknown=True)
    position = Pt502Decoder(registry, positions).decode(SESSION, SCENARIO_A)
    assert position.device_id == 5
    assert registry.get_unique_id(5) == "123456789"


def test_delta_after_full_report(decoder, positions) -> None:
    """A delta frame patches the stored baseline of the session's device."""
    baseline = decoder.decode(SESSION, SCENARIO_A)
    positions.update(baseline)

    position = decoder.decode(SESSION, _frame(_entry(FieldTag.LATITUDE, 5, b"5000")))
    assert position.device_id == 7
    assert position.latitude == pytest.approx(37 + 23.5 / 60)
    assert position.longitude == baseline.longitude
    assert position.device_time == baseline.device_time
    assert position.attributes["driverUniqueId"] == "TAG1"


def test_delta_as_text(decoder, positions) -> None:
    """Text input that fails the grammar is decoded as a delta frame."""
    positions.update(decoder.decode(SESSION, SCENARIO_A))
    position = decoder.decode(SESSION, "@\x00\x00\x00\x03HDA")
    assert position.attributes["alarm"] is Alarm.HARD_ACCELERATION


def test_delta_identifier_extension(decoder, positions) -> None:
    """A delta frame may move the session to a longer identifier."""
    positions.update(decoder.decode(SESSION, SCENARIO_A))
    position = decoder.decode(SESSION, _frame(_entry(FieldTag.GID, 6, b"000")))
    assert position.device_id == 8


def test_no_op_delta_is_discarded(decoder, positions) -> None:
    """A frame whose entries apply nothing produces no record."""
    positions.update(decoder.decode(SESSION, SCENARIO_A))
    frame = _frame(_entry(FieldTag.SPEED, 0, b"1.0"), _entry(FieldTag.CMD, 0, b"POS"))
    assert decoder.decode(SESSION, frame) is None


def test_truncated_delta_raises(decoder, positions) -> None:
    """Truncated frames are the one fatal decode failure."""
    positions.update(decoder.decode(SESSION, SCENARIO_A))
    with pytest.raises(DecodeError):
        decoder.decode(SESSION, b"@\x00\x04\x05\x0550")


def test_garbage_yields_nothing(decoder) -> None:
    """Unrecognized input is dropped, not an error."""
    assert decoder.decode(SESSION, "hello") is None
    assert decoder.decode(SESSION, b"\xff\xfe") is None
    assert decoder.decode(SESSION, "") is None


class TestPhotoHandshake:
    """Tests for the ``PHO<size>`` announcement."""

    def test_large_photo_requests_max_chunk(self, decoder, replies) -> None:
        """Photos above 960 bytes are requested in 960-byte chunks."""
        position = decoder.decode(SESSION, SCENARIO_A.replace("$GOF,", "$PHO6000,"))
        assert replies == ["#PHD0,960\r\n"]
        assert decoder.expected_photo_size == 6000
        assert position is not None
        assert "alarm" not in position.attributes

    def test_small_photo_requests_whole_photo(self, decoder, replies) -> None:
        """Photos up to 960 bytes are requested in one chunk."""
        decoder.decode(SESSION, SCENARIO_A.replace("$GOF,", "$PHO500,"))
        assert replies == ["#PHD0,500\r\n"]

    def test_decode_message_has_no_side_effects(self, decoder, replies) -> None:
        """The pure entry point returns the reply instead of sending it."""
        outcome = decoder.decode_message(SESSION, SCENARIO_A.replace("$GOF,", "$PHO6000,"))
        assert outcome.reply == PhotoHandshake(photo_size=6000, chunk_size=960)
        assert outcome.reply.text == "#PHD0,960\r\n"
        assert outcome.position.device_id == 7
        assert replies == []
        assert decoder.expected_photo_size is None

    def test_not_writable(self, registry, positions) -> None:
        """Without a reply channel the announcement is decoded but not answered."""
        decoder = Pt502Decoder(registry, positions)
        position = decoder.decode(SESSION, SCENARIO_A.replace("$GOF,", "$PHO6000,"))
        assert position is not None
        assert decoder.expected_photo_size is None

    def test_unknown_device_still_answered(self, decoder, replies) -> None:
        """The handshake is sent even when the identifier is unknown."""
        message = SCENARIO_A.replace("$GOF,123456789", "$PHO2000,42")
        assert decoder.decode(SESSION, message) is None
        assert replies == ["#PHD0,960\r\n"]

    def test_ordinary_report_has_no_reply(self, decoder, replies) -> None:
        """Non-photo reports never produce a reply."""
        outcome = decoder.decode_message(SESSION, SCENARIO_A)
        assert outcome.reply is None
        decoder.decode(SESSION, SCENARIO_A)
        assert replies == []

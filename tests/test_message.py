import struct

import pytest

from rtping.message import MIN_REQUEST_LENGTH, MessageError, RtMessage, Tag


def _request(nonce: bytes) -> RtMessage:
    req = RtMessage()
    req.add_field(Tag.NONC, nonce)
    req.add_field(Tag.PAD, b"")
    pad = req.calculate_padding_length()
    req.clear()
    req.add_field(Tag.NONC, nonce)
    req.add_field(Tag.PAD, bytes(pad))
    return req


def test_empty_message_encoding():
    assert RtMessage().encode() == b"\x00\x00\x00\x00"
    assert RtMessage.from_bytes(b"\x00\x00\x00\x00") == RtMessage()


def test_padded_request_reaches_minimum_length():
    encoded = _request(bytes(64)).encode()
    assert len(encoded) == MIN_REQUEST_LENGTH == 1024


def test_request_header_layout():
    encoded = _request(b"\x2a" * 64).encode()
    assert encoded[:4] == struct.pack("<I", 2)
    assert encoded[4:8] == struct.pack("<I", 64)
    assert encoded[8:12] == b"NONC"
    assert encoded[12:16] == b"PAD\xff"
    assert encoded[16:80] == b"\x2a" * 64


def test_round_trip_preserves_fields():
    msg = RtMessage({Tag.SREP: b"abcd" * 3, Tag.INDX: b"\x01\x00\x00\x00", Tag.SIG: bytes(64)})
    parsed = RtMessage.from_bytes(msg.encode())
    assert parsed == msg
    assert parsed.get_field(Tag.SREP) == b"abcd" * 3
    assert parsed.get_field(Tag.INDX) == b"\x01\x00\x00\x00"


def test_insertion_order_does_not_change_encoding():
    first = RtMessage()
    first.add_field(Tag.PAD, bytes(8))
    first.add_field(Tag.NONC, bytes(4))
    second = RtMessage()
    second.add_field(Tag.NONC, bytes(4))
    second.add_field(Tag.PAD, bytes(8))
    assert first.encode() == second.encode()


def test_items_in_wire_order():
    msg = RtMessage({Tag.PAD: b"", Tag.NONC: b"", Tag.SIG: b""})
    tags = [tag for tag, _ in msg.items()]
    orders = [int.from_bytes(tag, "little") for tag in tags]
    assert orders == sorted(orders)
    assert set(tags) == {b"PAD\xff", b"NONC", b"SIG\x00"}


def test_duplicate_tag_rejected():
    msg = RtMessage()
    msg.add_field(Tag.NONC, bytes(4))
    with pytest.raises(MessageError):
        msg.add_field(Tag.NONC, bytes(4))


def test_misaligned_value_rejected():
    with pytest.raises(MessageError):
        RtMessage().add_field(Tag.NONC, b"abc")


def test_bad_tag_length_rejected():
    with pytest.raises(MessageError):
        RtMessage().add_field(b"ABC", bytes(4))


def test_unknown_tag_by_bytes():
    msg = RtMessage({b"ZZZZ": b"1234"})
    parsed = RtMessage.from_bytes(msg.encode())
    assert parsed.get_field(b"ZZZZ") == b"1234"
    assert b"ZZZZ" in parsed


def test_missing_field_is_none():
    assert RtMessage({Tag.NONC: bytes(4)}).get_field(Tag.PAD) is None


def test_clear_empties_message():
    msg = RtMessage({Tag.NONC: bytes(4)})
    msg.clear()
    assert len(msg) == 0
    assert msg.encode() == RtMessage().encode()


def test_no_padding_when_already_large():
    msg = RtMessage({Tag.NONC: bytes(2000)})
    assert msg.calculate_padding_length() == 0


def test_padding_ignores_existing_pad_value():
    msg = RtMessage({Tag.NONC: bytes(64), Tag.PAD: bytes(100)})
    pad = msg.calculate_padding_length()
    rebuilt = RtMessage({Tag.NONC: bytes(64), Tag.PAD: bytes(pad)})
    assert len(rebuilt.encode()) == MIN_REQUEST_LENGTH


@pytest.mark.parametrize("data", [b"", b"\x01\x00", b"\x01\x00\x00\x00\x00"])
def test_bad_lengths_rejected(data):
    with pytest.raises(MessageError):
        RtMessage.from_bytes(data)


def test_truncated_header_rejected():
    with pytest.raises(MessageError):
        RtMessage.from_bytes(struct.pack("<II", 5, 0))


def test_zero_tags_with_trailing_bytes_rejected():
    with pytest.raises(MessageError):
        RtMessage.from_bytes(struct.pack("<II", 0, 0))


def test_unordered_tags_rejected():
    encoded = RtMessage({Tag.NONC: bytes(4), Tag.PAD: bytes(4)}).encode()
    swapped = encoded[:8] + encoded[12:16] + encoded[8:12] + encoded[16:]
    with pytest.raises(MessageError):
        RtMessage.from_bytes(swapped)


def test_decreasing_offsets_rejected():
    raw = struct.pack("<III", 3, 8, 4) + b"CERT" + b"INDX" + b"MIDP" + bytes(12)
    with pytest.raises(MessageError):
        RtMessage.from_bytes(raw)


def test_offset_beyond_payload_rejected():
    raw = struct.pack("<II", 2, 8) + b"CERT" + b"INDX" + bytes(4)
    with pytest.raises(MessageError):
        RtMessage.from_bytes(raw)
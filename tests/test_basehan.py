import pytest

import basehan
from basehan import (
    ALPHABET_BASE,
    END_BASE,
    CorruptedStream,
    EndOfStream,
    InvalidSymbol,
    StreamDecoder,
    StreamEncoder,
    decode,
    encode,
)


def _encode_chunks(chunks):
    enc = StreamEncoder()
    return "".join(enc.update(c) for c in chunks) + enc.finalize()


def _decode_chunks(chunks):
    dec = StreamDecoder()
    out = b"".join(dec.update(c) for c in chunks)
    assert dec.closed
    assert dec.finalize() is None
    return out


def test_empty_input_roundtrip():
    text = encode(b"")
    assert len(text) == 1
    assert ord(text) == END_BASE + 1
    assert decode(text) == b""


def test_single_ff_byte():
    enc = StreamEncoder()
    assert enc.update(b"\xff") == ""
    terminal = enc.finalize()
    assert ord(terminal) - END_BASE == 0x1FF
    dec = StreamDecoder()
    assert dec.update(terminal) == b"\xff"
    assert dec.finalize() is None


def test_single_zero_byte_differs_from_empty():
    assert encode(b"\x00") != encode(b"")
    assert decode(encode(b"\x00")) == b"\x00"


def test_thirteen_ff_bytes_fill_eight_symbols():
    enc = StreamEncoder()
    body = enc.update(b"\xff" * 13)
    assert len(body) == 8
    assert set(body) == {chr(ALPHABET_BASE + 0x1FFF)}
    assert basehan.split_terminal_offset(ord(enc.finalize()) - END_BASE) == (
        0, 0)


@pytest.mark.parametrize("n", range(0, 27))
def test_roundtrip_every_length(n):
    for fill in (0x00, 0xFF, 0x5A):
        data = bytes([fill]) * n
        assert decode(encode(data)) == data
    data = bytes((i * 37 + 11) & 0xFF for i in range(n))
    assert decode(encode(data)) == data


def test_roundtrip_random(payload):
    for n in (0, 1, 6, 7, 100, 999, 1000):
        assert decode(encode(payload[:n])) == payload[:n]


def test_encoder_chunk_invariance(payload, chunkings):
    expected = encode(payload)
    for seed in range(3):
        for chunks in chunkings(payload, seed):
            assert _encode_chunks(chunks) == expected


def test_decoder_chunk_invariance(payload, chunkings):
    text = encode(payload[:300])
    for seed in range(3):
        for chunks in chunkings(text, seed):
            assert _decode_chunks(chunks) == payload[:300]


def test_decoder_accepts_code_point_ints():
    text = encode(b"abc")
    assert decode([ord(c) for c in text]) == b"abc"


def test_alphabet_disjointness(payload):
    text = encode(payload)
    assert all(ALPHABET_BASE <= ord(c) < END_BASE for c in text[:-1])
    assert END_BASE <= ord(text[-1]) < END_BASE + 8192
    assert ALPHABET_BASE + 8191 < END_BASE


def test_terminal_offset_fits_range():
    assert basehan.terminal_offset(0, 0) == 1
    assert basehan.terminal_offset(0xFFF, 12) == 8191
    with pytest.raises(ValueError):
        basehan.terminal_offset(0, 13)
    with pytest.raises(ValueError):
        basehan.terminal_offset(4, 2)
    with pytest.raises(ValueError):
        basehan.split_terminal_offset(0)


def test_truncation_detection(payload):
    data = payload[:40]
    text = encode(data)
    for cut in range(len(text)):
        dec = StreamDecoder()
        out = dec.update(text[:cut])
        assert not dec.closed
        leftover = dec.finalize()
        if (13 * cut) % 8:
            assert leftover is not None
        else:
            assert leftover is None
        assert data.startswith(out)


def test_decode_helper_rejects_missing_terminal():
    text = encode(b"hello world")
    with pytest.raises(CorruptedStream):
        decode(text[:-1])


def test_input_after_terminal_raises():
    text = encode(b"hi")
    dec = StreamDecoder()
    dec.update(text)
    with pytest.raises(EndOfStream):
        dec.update(chr(ALPHABET_BASE))


def test_input_after_terminal_in_same_chunk_is_ignored():
    text = encode(b"hi")
    dec = StreamDecoder()
    assert dec.update(text + chr(ALPHABET_BASE)) == b"hi"
    assert dec.closed


def test_decode_helper_stops_at_terminal():
    assert decode(encode(b"xy") + encode(b"z")) == b"xy"


def test_zero_scalar_stops_chunk():
    text = encode(b"payload")
    dec = StreamDecoder()
    out = dec.update(text + "\x00" * 16)
    assert out == b"payload"
    dec2 = StreamDecoder()
    assert dec2.update("\x00" + text) == b""
    assert not dec2.closed


def test_invalid_symbol_reports_position():
    dec = StreamDecoder()
    with pytest.raises(InvalidSymbol) as exc:
        dec.update(chr(ALPHABET_BASE) + "A")
    assert exc.value.code_point == ord("A")
    assert exc.value.position == 1
    assert isinstance(exc.value, ValueError)


def test_zero_terminal_offset_is_invalid():
    with pytest.raises(InvalidSymbol):
        StreamDecoder().update(chr(END_BASE))


def test_misaligned_terminal_is_corrupted():
    text = encode(b"\x01\x02")
    dec = StreamDecoder()
    with pytest.raises(CorruptedStream):
        dec.update(text[:-1] + chr(END_BASE + basehan.terminal_offset(0, 0)))


def test_encoder_is_single_use():
    enc = StreamEncoder()
    enc.finalize()
    with pytest.raises(EndOfStream):
        enc.finalize()
    with pytest.raises(EndOfStream):
        enc.update(b"x")


def test_decoder_is_single_use():
    dec = StreamDecoder()
    dec.update(encode(b""))
    dec.finalize()
    with pytest.raises(EndOfStream):
        dec.update("")
    with pytest.raises(EndOfStream):
        dec.finalize()


def test_update_into_appends_to_caller_buffer():
    enc = StreamEncoder()
    out = ["x"]
    assert enc.update_into(b"\x00" * 13, out) == 8
    assert len(out) == 9 and out[0] == "x"
    dec = StreamDecoder()
    buf = bytearray(b"prefix")
    assert dec.update_into("".join(out[1:]) + enc.finalize(), buf) == 13
    assert buf == b"prefix" + b"\x00" * 13

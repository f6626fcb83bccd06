from pathlib import Path

import pytest

from stackeval.core.errors import (
    AddressContinuityError,
    EncodingError,
    FormatError,
    TokenWidthError,
)
from stackeval.core.models import ByteOrder, MemoryDump
from stackeval.parsers.dump_decoder import (
    DumpDecoder,
    convert_tokens,
    encode_tokens,
    format_dump,
    token_byte_size,
)
from stackeval.parsers.grammars import DataLine, StandardGrammar


@pytest.mark.parametrize(
    "line, offset, expected, order",
    [
        (
            "0000000000000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  |........ ........|",
            0x80,
            bytes(range(16)),
            ByteOrder.BIG,
        ),
        (
            "0000000000000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  |........ ........|",
            0x80,
            bytes([1, 0, 3, 2, 5, 4, 7, 6, 9, 8, 0xB, 0xA, 0xD, 0xC, 0xF, 0xE]),
            ByteOrder.LITTLE,
        ),
        (
            "0x01549090:  01020304 05060708 a1a2a3a4 a5a6a7a8   *................*",
            0x1549090,
            bytes([1, 2, 3, 4, 5, 6, 7, 8, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5, 0xA6, 0xA7, 0xA8]),
            ByteOrder.BIG,
        ),
        (
            "0x9098:  01020304 05060708 a1a2a3a4 a5a6a7a8   *................*",
            0x9098,
            bytes([4, 3, 2, 1, 8, 7, 6, 5, 0xA4, 0xA3, 0xA2, 0xA1, 0xA8, 0xA7, 0xA6, 0xA5]),
            ByteOrder.LITTLE,
        ),
        (
            "0x01549090:  41 02 03 04 05 06 07 08 a1 a2 a3 a4 a5 a6 a7 a8   *................*",
            0x1549090,
            bytes([0x41, 2, 3, 4, 5, 6, 7, 8, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5, 0xA6, 0xA7, 0xA8]),
            ByteOrder.LITTLE,
        ),
        (
            "0x01549090:  0102030405060708 a1a2a3a4a5a6a7a8   *................*",
            0x1549090,
            bytes([1, 2, 3, 4, 5, 6, 7, 8, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5, 0xA6, 0xA7, 0xA8]),
            ByteOrder.BIG,
        ),
        (
            "0x9098:  0102030405060708 a1a2a3a4a5a6a7a8   *................*",
            0x9098,
            bytes([8, 7, 6, 5, 4, 3, 2, 1, 0xA8, 0xA7, 0xA6, 0xA5, 0xA4, 0xA3, 0xA2, 0xA1]),
            ByteOrder.LITTLE,
        ),
        (
            "0x01549090:  01020304 05060708 a1a2a3a4 a5         *.............   *",
            0x1549090,
            bytes([1, 2, 3, 4, 5, 6, 7, 8, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5]),
            ByteOrder.BIG,
        ),
    ],
)
def test_data_line_bytes(line, offset, expected, order):
    match = StandardGrammar().match_data_line(line)

    assert match.offset == offset
    assert convert_tokens(match.text, order) == expected


def test_two_byte_token_byte_order():
    assert convert_tokens("0001", ByteOrder.BIG) == b"\x00\x01"
    assert convert_tokens("0001", ByteOrder.LITTLE) == b"\x01\x00"


@pytest.mark.parametrize(
    "token, size",
    [("1", 1), ("ab", 1), ("abc", 2), ("abcd", 2), ("abcde", 4), ("12345678", 4),
     ("123456789", 8), ("0123456789abcdef", 8)],
)
def test_token_byte_size(token, size):
    assert token_byte_size(token) == size


def test_oversize_token_rejected():
    with pytest.raises(TokenWidthError, match="oversize"):
        convert_tokens("0123456789abcdef0", ByteOrder.BIG)


def test_inconsistent_token_width_rejected():
    with pytest.raises(TokenWidthError, match="inconsistent"):
        convert_tokens("0001 020304 0506", ByteOrder.BIG)


def test_shorter_final_token_accepted():
    assert convert_tokens("00010203 0405", ByteOrder.BIG) == bytes(range(6))


def test_non_hex_token_rejected():
    with pytest.raises(EncodingError):
        convert_tokens("0g", ByteOrder.BIG)


def test_empty_token_text():
    assert convert_tokens("   ", ByteOrder.BIG) == b""


def test_encode_tokens_splits_partial_tail():
    data = bytes([1, 2, 3, 4, 5, 6, 7, 8, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5])

    assert encode_tokens(data, 4, ByteOrder.BIG) == ["01020304", "05060708", "a1a2a3a4", "a5"]
    assert encode_tokens(b"\x01\x00", 2, ByteOrder.LITTLE) == ["0001"]


def test_decode_contiguous_lines():
    text = "\n".join([
        "0x00001000:  00000000 00000000 00000000 00000000   *................*",
        "0x00001010:  deadbeef 00000000 00000000 00000000   *................*",
    ])
    decoder = DumpDecoder(word_width=4, byte_order=ByteOrder.BIG)
    dump = decoder.decode_text(text)

    assert dump.base_address == 0x1000
    assert dump.size == 32
    assert dump.end_address == 0x1020
    assert dump.words()[4] == (0x1010, 0xDEADBEEF)
    assert decoder.stats.data_lines == 2
    assert decoder.stats.mismatched_lines == 0


def test_decode_rejects_gap():
    text = "\n".join([
        "0x00001000:  00000000 00000000 00000000 00000000",
        "0x00001014:  00000000 00000000 00000000 00000000",
    ])

    with pytest.raises(AddressContinuityError) as excinfo:
        DumpDecoder().decode_text(text)

    err = excinfo.value
    assert isinstance(err, FormatError)
    assert err.line_number == 2
    assert err.expected == 0x1010
    assert err.actual == 0x1014
    assert "0x1010" in str(err) and "0x1014" in str(err) and "line 2" in str(err)


def test_decode_rejects_overlap():
    text = "\n".join([
        "0x00001000:  00000000 00000000 00000000 00000000",
        "0x00001008:  00000000 00000000",
    ])

    with pytest.raises(AddressContinuityError):
        DumpDecoder().decode_text(text)


def test_absolute_offset_lines():
    text = "\n".join([
        "Physaddr:10867C000",
        "0000000000000000: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  |........ ........|",
        "0000000000000010: 1011 1213 1415 1617 1819 1a1b 1c1d 1e1f  |........ ........|",
        "Physaddr:10867C020",
        "0000000000000020: 2021 2223 2425 2627 2829 2a2b 2c2d 2e2f  |........ ........|",
    ])
    decoder = DumpDecoder(word_width=8, byte_order=ByteOrder.BIG)
    dump = decoder.decode_text(text)

    assert dump.base_address == 0x10867C000
    assert dump.data == bytes(range(48))
    assert decoder.stats.absolute_lines == 2


def test_absolute_offset_mismatch():
    text = "\n".join([
        "Physaddr:1000",
        "0000000000000000: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f",
        "Physaddr:2000",
    ])

    with pytest.raises(AddressContinuityError, match="unexpected base address") as excinfo:
        DumpDecoder().decode_text(text)

    assert excinfo.value.expected == 0x1010
    assert excinfo.value.actual == 0x2000
    assert excinfo.value.line_number == 3


def test_relative_offset_mismatch_in_absolute_mode():
    text = "\n".join([
        "Physaddr:1000",
        "0000000000000000: 0001 0203 0405 0607",
        "0000000000000010: 0001 0203 0405 0607",
    ])

    with pytest.raises(AddressContinuityError) as excinfo:
        DumpDecoder().decode_text(text)

    assert excinfo.value.expected == 0x1008
    assert excinfo.value.actual == 0x1010


def test_token_errors_carry_line_number():
    text = "\n".join([
        "0x00001000:  00000000 00000000",
        "0x00001008:  0001 020304 0506",
    ])

    with pytest.raises(TokenWidthError) as excinfo:
        DumpDecoder().decode_text(text)

    assert excinfo.value.line_number == 2
    assert excinfo.value.line == "0x00001008:  0001 020304 0506"
    assert excinfo.value.expected == 0x1008
    assert excinfo.value.actual == 0x1008
    assert "expected 0x1008, got 0x1008 on line 2" in str(excinfo.value)


class LooseGrammar(StandardGrammar):
    """Hands everything after the colon to the decoder, hex or not."""

    def match_data_line(self, line):
        address, _, text = line.partition(":")
        return DataLine(int(address, 16), text)


def test_encoding_error_carries_addresses():
    text = "\n".join([
        "Physaddr:2000",
        "0000000000000000: 0001 0203",
        "0000000000000004: 0405 zz07",
    ])

    with pytest.raises(EncodingError) as excinfo:
        DumpDecoder(LooseGrammar()).decode_text(text)

    assert excinfo.value.line_number == 3
    assert excinfo.value.expected == 0x2004
    assert excinfo.value.actual == 0x2004


def test_preview_read_as_data_is_counted_as_mismatch():
    decoder = DumpDecoder()

    dump = decoder.decode_text(
        "0x00001000:  00000001 00000002 00000003 00000004   cafebabe"
    )

    assert dump.size == 20
    assert decoder.stats.mismatched_lines == 1


@pytest.mark.parametrize("token", ["1", "ABC", "12345", "0000000000001"])
def test_odd_width_tokens_do_not_read_back(token):
    decoder = DumpDecoder()

    decoder.decode_text(f"0x00001000:  {token}")

    assert decoder.stats.mismatched_lines == 1


def test_uppercase_tokens_read_back():
    decoder = DumpDecoder()

    decoder.decode_text("0x00001000:  DEADBEEF 0000ABCD 0102")

    assert decoder.stats.mismatched_lines == 0


def test_round_trip_check_can_be_disabled():
    decoder = DumpDecoder(verify_round_trip=False)

    decoder.decode_text("0x00001000:  1 2 3")

    assert decoder.stats.mismatched_lines == 0


def test_unrecognised_lines_are_skipped():
    text = "\n".join([
        "-> d 0x1000",
        "0x00001000:  00000001 00000002",
        "some banner text",
        "0x00001008:  00000003 00000004",
        "value = 0 = 0x0",
    ])
    decoder = DumpDecoder()
    dump = decoder.decode_text(text)

    assert [w for _, w in dump.words()] == [1, 2, 3, 4]
    assert decoder.stats.lines == 5
    assert decoder.stats.skipped_lines == 3


def test_partial_trailing_word_then_continuation():
    text = "\n".join([
        "0x01549090:  01020304 05060708 a1a2a3a4 a5         *.............   *",
        "0x0154909d:  a6a7a8",
    ])
    dump = DumpDecoder().decode_text(text)

    assert dump.size == 13 + 4
    assert dump.end_address == 0x1549090 + 17


def test_empty_input():
    dump = DumpDecoder().decode_text("nothing to see\n")

    assert dump.base_address == 0
    assert dump.size == 0
    assert dump.words() == []


def test_decode_file(tmp_path: Path):
    path = tmp_path / "dump.txt"
    path.write_text("0x00002000:  0000abcd 00001234\r\n0x00002008:  ffffffff\r\n")

    dump = DumpDecoder(byte_order="little").decode_file(path)

    assert dump.byte_order is ByteOrder.LITTLE
    assert dump.data[:4] == b"\xcd\xab\x00\x00"
    assert dump.words()[0] == (0x2000, 0xABCD)


def test_invalid_word_width():
    with pytest.raises(ValueError):
        DumpDecoder(word_width=2)


def test_format_dump_reproduces_input():
    lines = [
        "0x00001000:  00000000 00000000 00000000 00000000   *................*",
        "0x00001010:  deadbeef 00000000 41424344 00000000   *........ABCD....*",
    ]
    dump = DumpDecoder().decode_text("\n".join(lines))

    assert format_dump(dump, "standard") == lines


def test_format_dump_little_endian_halfwords():
    line = "0000000000000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  |........ ........|"
    dump = DumpDecoder(word_width=8, byte_order=ByteOrder.LITTLE).decode_text(line)

    reformatted = format_dump(dump, "xxd", token_bytes=2)

    assert reformatted == ["00000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  ................"]
    again = DumpDecoder(
        "xxd", word_width=8, byte_order=ByteOrder.LITTLE
    ).decode_text(reformatted[0])
    assert again.data == dump.data


def test_memory_dump_unaligned_head_and_tail():
    dump = MemoryDump(base_address=0x1002, data=bytes(range(12)), word_width=4)

    assert dump.head_bytes == b"\x00\x01"
    assert dump.tail_bytes == bytes([10, 11])
    assert dump.words() == [(0x1004, 0x02030405), (0x1008, 0x06070809)]

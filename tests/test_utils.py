import io
from typing import Any
from typing import Mapping
from typing import Type

import pytest

from firmwarefile.utils import hexlify
from firmwarefile.utils import iter_lines
from firmwarefile.utils import parse_hex
from firmwarefile.utils import parse_int
from firmwarefile.utils import unhexlify

PARSE_INT_PASS: Mapping[Any, int] = {
    None: None,

    '123': 123,
    ' 123 ': 123,
    '+123': 123,
    '-123': -123,

    '0x08000100': 0x08000100,
    '0XDEADBEEF': 0xDEADBEEF,
    'DEADBEEFh': 0xDEADBEEF,

    '0b101100111000': 0b101100111000,

    '01234567': 0o1234567,
    '0o1234567': 0o1234567,

    '4k': 4 * 2**10,
    '1 mib': 2**20,
    '1MB': 10**6,

    b'456': 456,
    123: 123,
}

PARSE_INT_FAIL: Mapping[Any, Type[BaseException]] = {
    Ellipsis: TypeError,
    'x': ValueError,
    '0b1h': ValueError,
    '0o1h': ValueError,
    '': ValueError,
}


def test_hexlify_doctest():
    ans_out = hexlify(b'\xAA\xBB\xCC')
    ans_ref = b'AABBCC'
    assert ans_out == ans_ref

    ans_out = hexlify(b'\xAA\xBB\xCC', sep=b' ')
    ans_ref = b'AA BB CC'
    assert ans_out == ans_ref

    ans_out = hexlify(b'\xAA\xBB\xCC', sep=b'-')
    ans_ref = b'AA-BB-CC'
    assert ans_out == ans_ref

    ans_out = hexlify(b'\xAA\xBB\xCC', upper=False)
    ans_ref = b'aabbcc'
    assert ans_out == ans_ref


def test_iter_lines_bytes():
    stream = io.BytesIO(b'abc\r\ndef\rghi\njkl')
    assert list(iter_lines(stream)) == ['abc', 'def', 'ghi', 'jkl']


def test_iter_lines_blank():
    stream = io.BytesIO(b'\n\r\n\rabc\n\n')
    assert list(iter_lines(stream)) == ['', '', '', 'abc', '']


def test_iter_lines_empty():
    assert list(iter_lines(io.BytesIO(b''))) == []
    assert list(iter_lines(io.StringIO(''))) == []


def test_iter_lines_byte_order_mark():
    stream = io.BytesIO(b'\xEF\xBB\xBFabc\n\xEF\xBB\xBFdef\n')
    assert list(iter_lines(stream)) == ['abc', '\ufeffdef']


def test_iter_lines_decode_errors():
    stream = io.BytesIO(b'ab\xFFc\n')
    assert list(iter_lines(stream)) == ['ab\ufffdc']


def test_iter_lines_text():
    stream = io.StringIO('\ufeffabc\r\ndef\n\nghi')
    assert list(iter_lines(stream)) == ['abc', 'def', '', 'ghi']


def test_parse_hex():
    assert parse_hex('00') == 0
    assert parse_hex('FF') == 0xFF
    assert parse_hex('ff') == 0xFF
    assert parse_hex('08000100') == 0x08000100


def test_parse_hex_raises():
    for text in ('', ' 1', '1 ', '+1', '-1', '0x1', '1_0', 'G0', '1h'):
        with pytest.raises(ValueError, match='Invalid hexadecimal value'):
            parse_hex(text)


def test_parse_int_doctest():
    assert parse_int('0x08000100') == 134217984
    assert parse_int('100h') == 256
    assert parse_int('4k') == 4096
    assert parse_int(None) is None


def test_parse_int_fail():
    for value_in, raised_exception in PARSE_INT_FAIL.items():
        with pytest.raises(raised_exception):
            parse_int(value_in)


def test_parse_int_pass():
    for value_in, value_out in PARSE_INT_PASS.items():
        assert parse_int(value_in) == value_out


def test_unhexlify_doctest():
    ans_out = unhexlify('AABBCC')
    ans_ref = b'\xaa\xbb\xcc'
    assert ans_out == ans_ref

    ans_out = unhexlify('aabbcc')
    assert ans_out == ans_ref

    ans_out = unhexlify('')
    assert ans_out == b''


def test_unhexlify_raises():
    for text in ('A', 'AAB', 'AA BB', 'AABB\n', 'GG', '+1'):
        with pytest.raises(ValueError, match='Invalid hexadecimal value'):
            unhexlify(text)

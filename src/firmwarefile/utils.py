# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Generic utility functions."""

import binascii
import os
import re
import sys
from typing import IO
from typing import Any
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Union

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

AnyBytes: TypeAlias = Union[bytes, bytearray, memoryview]
AnyPath: TypeAlias = Union[bytes, bytearray, str, os.PathLike]

SUFFIX_SCALE: Mapping[str, int] = {
    'k': 2**10,
    'm': 2**20,
    'g': 2**30,

    'kib': 2**10,
    'mib': 2**20,
    'gib': 2**30,

    'kb': 10**3,
    'mb': 10**6,
    'gb': 10**9,
}
r"""Integer suffix to scale factor."""

INT_REGEX = re.compile(r'^\s*(?P<sign>[+-]?)\s*'
                       r'(?P<prefix>(0x|0b|0o|0)?)'
                       r'(?P<value>[a-f0-9]+)'
                       r'(?P<suffix>h?)'
                       r'\s*(?P<scale>('
                       r'k|m|g|'
                       r'kib|mib|gib|'
                       r'kb|mb|gb'
                       r')?)\s*$')

HEX_REGEX = re.compile(r'(?:[0-9A-Fa-f]{2})*')
r"""Sequence of hexadecimal digit pairs, without any prefix or separator."""

BYTE_ORDER_MARK: str = '\ufeff'

__BINASCII_HEXLIFY_HAS_SEP = (sys.version_info >= (3, 8))


def hexlify(
    bytestr: Union[bytes, bytearray],
    sep: Optional[Union[bytes, bytearray]] = None,
    upper: bool = True,
) -> bytes:
    r"""Converts raw bytes into a hexadecimal byte string.

    Args:
        bytestr (bytes):
            Source byte string.

        sep (bytes):
            Optional byte separator.

        upper (bool):
            Uppercase hexadecimal string.

    Returns:
        bytes: Hexadecimal byte string.

    Examples:
        >>> from firmwarefile.utils import hexlify
        >>> hexlify(b'\xAA\xBB\xCC')
        b'AABBCC'
        >>> hexlify(b'\xAA\xBB\xCC', sep=b' ')
        b'AA BB CC'
        >>> hexlify(b'\xAA\xBB\xCC', upper=False)
        b'aabbcc'
    """

    if sep:
        pass  # coverage
        if __BINASCII_HEXLIFY_HAS_SEP:  # pragma: no cover
            hexstr = binascii.hexlify(bytestr, sep)
        else:  # pragma: no cover
            hexstr = sep.join(b'%02x' % b for b in bytestr)
    else:
        hexstr = binascii.hexlify(bytestr)

    if upper:
        hexstr = hexstr.upper()

    return hexstr


def iter_lines(stream: IO) -> Iterator[str]:
    r"""Iterates the text lines of a stream.

    Binary streams are split by universal newlines (``\n``, ``\r``,
    ``\r\n``), and each line is decoded as UTF-8, replacing undecodable
    bytes.
    A byte order mark at the very beginning of the stream is dropped.

    Text streams are iterated as they are, with line terminators removed.

    Args:
        stream (IO):
            Binary or text input stream.

    Yields:
        str: Text line, without terminator.

    Examples:
        >>> import io
        >>> from firmwarefile.utils import iter_lines
        >>> list(iter_lines(io.BytesIO(b'abc\r\n\rxyz')))
        ['abc', '', 'xyz']
        >>> list(iter_lines(io.StringIO('abc\nxyz\n')))
        ['abc', 'xyz']
    """

    first = True

    for chunk in stream:
        if isinstance(chunk, str):
            lines = [chunk.rstrip('\r\n')]
        else:
            lines = [line.decode('utf-8', errors='replace')
                     for line in bytes(chunk).splitlines()] or ['']

        for line in lines:
            if first:
                first = False
                if line.startswith(BYTE_ORDER_MARK):
                    line = line[len(BYTE_ORDER_MARK):]
            yield line


def parse_hex(text: str) -> int:
    r"""Parses an unsigned hexadecimal field.

    Only hexadecimal digits are accepted: no sign, prefix, separator, or
    whitespace.

    Args:
        text (str):
            Hexadecimal digits.

    Returns:
        int: Parsed value.

    Raises:
        ValueError: Invalid hexadecimal value.

    Examples:
        >>> from firmwarefile.utils import parse_hex
        >>> parse_hex('7EFE')
        32510
        >>> parse_hex('+1')
        Traceback (most recent call last):
            ...
        ValueError: Invalid hexadecimal value
    """

    if not text or not all(c in '0123456789ABCDEFabcdef' for c in text):
        raise ValueError('Invalid hexadecimal value')
    return int(text, 16)


def parse_int(
    value: Union[str, Any],
) -> Optional[int]:
    r"""Parses an integer.

    Args:
        value:
            A generic object to convert to integer.
            In case `value` is a :obj:`str` (case-insensitive), it can be
            either prefixed with ``0x`` or postfixed with ``h`` to convert
            from a hexadecimal representation, or prefixed with ``0b`` from
            binary; a prefix of only ``0`` converts from octal.
            A further suffix applies a scale factor as per
            :data:`SUFFIX_SCALE`.
            A ``None`` value evaluates as ``None``.
            Any other object class will call the standard :func:`int`.

    Returns:
        int: None if `value` is ``None``, its integer conversion otherwise.

    Examples:
        >>> parse_int('0x08000100')
        134217984

        >>> parse_int('100h')
        256

        >>> parse_int('4k')
        4096

        >>> parse_int(None) is None
        True
    """
    if value is None:
        return None

    elif isinstance(value, str):
        value = value.lower()
        m = INT_REGEX.match(value)
        if not m:
            raise ValueError(f'invalid syntax: {value!r}')
        g = m.groupdict()
        sign = g['sign']
        prefix = g['prefix']
        value = g['value']
        suffix = g['suffix']
        scale = g['scale']
        if prefix in ('0b', '0o') and suffix == 'h':
            raise ValueError(f'invalid syntax: {value!r}')

        if prefix == '0x' or suffix == 'h':
            i = int(value, 16)
        elif prefix == '0b':
            i = int(value, 2)
        elif prefix == '0' or prefix == '0o':
            i = int(value, 8)
        else:
            i = int(value, 10)

        i *= SUFFIX_SCALE.get((scale or '').lower(), 1)

        if sign == '-':
            i = -i

        return i

    else:
        return int(value)


def unhexlify(hexstr: str) -> bytes:
    r"""Converts a hexadecimal string into raw bytes.

    Args:
        hexstr (str):
            Sequence of hexadecimal digit pairs.

    Returns:
        bytes: Raw byte string.

    Raises:
        ValueError: Invalid hexadecimal value.

    Examples:
        >>> from firmwarefile.utils import unhexlify
        >>> unhexlify('AABBcc')
        b'\xaa\xbb\xcc'
        >>> unhexlify('AA BB')
        Traceback (most recent call last):
            ...
        ValueError: Invalid hexadecimal value
    """

    if not HEX_REGEX.fullmatch(hexstr):
        raise ValueError('Invalid hexadecimal value')
    return bytes.fromhex(hexstr)

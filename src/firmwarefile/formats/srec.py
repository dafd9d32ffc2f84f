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

r"""Motorola S-record format.

See Also:
    `<https://en.wikipedia.org/wiki/SREC_(file_format)>`_
"""

import enum
import logging
from typing import Sequence
from typing import Type
from typing import cast as _cast

from ..base import BaseRecord
from ..base import BaseTag
from ..base import LineLoader
from ..utils import parse_hex
from ..utils import unhexlify

_logger = logging.getLogger(__name__)


class SrecTag(BaseTag, enum.IntEnum):
    r"""Motorola S-record tag."""

    HEADER = 0
    r"""Header string. Optional."""

    DATA_16 = 1
    r"""16-bit address data record."""

    DATA_24 = 2
    r"""24-bit address data record."""

    DATA_32 = 3
    r"""32-bit address data record."""

    RESERVED = 4
    r"""Reserved tag."""

    COUNT_16 = 5
    r"""16-bit record count. Optional."""

    COUNT_24 = 6
    r"""24-bit record count. Optional."""

    START_32 = 7
    r"""32-bit start address. Terminates :attr:`DATA_32`."""

    START_24 = 8
    r"""24-bit start address. Terminates :attr:`DATA_24`."""

    START_16 = 9
    r"""16-bit start address. Terminates :attr:`DATA_16`."""

    @classmethod
    def from_code(cls, code: str) -> 'SrecTag':
        r"""Converts a record type code.

        Args:
            code (str):
                Record type code, like ``S1``; case sensitive.

        Returns:
            :class:`SrecTag`: Matching tag.

        Raises:
            ValueError: Unsupported record type.

        Examples:
            >>> from firmwarefile.formats.srec import SrecTag
            >>> SrecTag.from_code('S3')
            <SrecTag.DATA_32: 3>
            >>> SrecTag.from_code('s3')
            Traceback (most recent call last):
                ...
            ValueError: Unsupported record type 's3'
        """

        if len(code) != 2 or code[0] != 'S' or code[1] not in '0123456789':
            raise ValueError(f"Unsupported record type '{code}'")
        return cls(int(code[1]))

    def get_address_size(self) -> int:
        r"""Address field size, in bytes.

        Returns:
            int: Address field size.

        Examples:
            >>> from firmwarefile.formats.srec import SrecTag
            >>> SrecTag.DATA_24.get_address_size()
            3
            >>> SrecTag.START_24.get_address_size()
            2
        """

        return _ADDRESS_SIZES[self]

    def is_data(self) -> bool:

        return (self == self.DATA_16 or
                self == self.DATA_24 or
                self == self.DATA_32)


_ADDRESS_SIZES: Sequence[int] = (2, 2, 3, 4, 2, 2, 2, 2, 2, 2)


class SrecRecord(BaseRecord):
    r"""Motorola S-record object.

    Syntax: ``STCCAAAA[AA[AA]][DD...]KK``, where ``T`` is the tag digit,
    ``CC`` the byte count (address, data, and checksum), ``AAAA`` the address
    field, 4, 6 or 8 digits wide depending on the tag, ``DD`` the data bytes,
    and ``KK`` the checksum.
    """

    Tag: Type[SrecTag] = SrecTag

    MIN_LENGTH: int = 10
    r"""Length of a record with a 16-bit address and no data."""

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        It is the one's complement of the 8-bit sum of the count, address,
        and data bytes.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> from firmwarefile.formats.srec import SrecRecord
            >>> record = SrecRecord.parse('S10612346162638D')
            >>> hex(record.compute_checksum())
            '0x8d'
        """

        count = self.count & 0xFF
        address = self.address & 0xFFFFFFFF
        sum_address = sum(address.to_bytes(4, byteorder='big'))
        sum_data = sum(iter(self.data))
        checksum = (count + sum_address + sum_data)
        checksum = (checksum & 0xFF) ^ 0xFF
        return checksum

    def compute_count(self) -> int:

        tag = _cast(SrecTag, self.tag)
        return tag.get_address_size() + len(self.data) + 1

    @classmethod
    def parse(cls, line: str) -> 'SrecRecord':
        r"""Parses a record from a line of text.

        Args:
            line (str):
                Line of text to parse, without terminator.

        Returns:
            :class:`SrecRecord`: Parsed record.

        Raises:
            ValueError: Malformed record.

        Examples:
            >>> from firmwarefile.formats.srec import SrecRecord
            >>> record = SrecRecord.parse('S10612346162638D')
            >>> record.tag, hex(record.address), record.data, record.count
            (<SrecTag.DATA_16: 1>, '0x1234', b'abc', 6)
            >>> SrecRecord.parse('S10612346162638E')
            Traceback (most recent call last):
                ...
            ValueError: Invalid checksum (expected: 8Dh, reported: 8Eh)
        """

        if len(line) < cls.MIN_LENGTH:
            raise ValueError('Truncated record')

        tag = cls.Tag.from_code(line[0:2])
        address_width = tag.get_address_size() * 2
        address_endex = 4 + address_width

        count = parse_hex(line[2:4])
        address_text = line[4:address_endex]
        if len(address_text) < address_width:
            raise ValueError('Invalid hexadecimal value')
        address = parse_hex(address_text)

        if len(line) != 4 + (count * 2):
            raise ValueError('Invalid record length')

        data_size = count - tag.get_address_size() - 1
        if data_size < 0:
            raise ValueError('Invalid record length')

        data_endex = address_endex + (data_size * 2)
        data = unhexlify(line[address_endex:data_endex])
        checksum = parse_hex(line[data_endex:])

        record = cls(tag, address=address, data=data, count=count, checksum=checksum)
        record.validate()
        return record


class SrecLoader(LineLoader):
    r"""Motorola S-record file loader.

    Only data records (``S1``, ``S2``, ``S3``) are written into the image.
    All the other records are validated, then ignored.

    Examples:
        >>> from firmwarefile import SrecLoader
        >>> buffer = b'''
        ... S0030000FC
        ... S10612346162638D
        ... S9031234B6
        ... '''
        >>> SrecLoader.parse(buffer).to_blocks()
        [[4660, b'abc']]
    """

    FILE_EXT: Sequence[str] = [
        # https://en.wikipedia.org/wiki/SREC_(file_format)
        '.s19', '.s28', '.s37', '.s', '.s1', '.s2', '.s3',
        '.sx', '.srec', '.exo', '.mot', '.mxt',
    ]

    Record: Type[SrecRecord] = SrecRecord

    def apply_record(self, record: SrecRecord) -> None:

        tag = _cast(SrecTag, record.tag)

        if tag.is_data():
            self._image.set_data(record.address, record.data)
        else:
            _logger.debug('ignoring %s record', tag.name)

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

r"""Intel HEX format.

Only linear addressing is supported: *Extended Segment Address* and
*Start Segment Address* records are rejected as unsupported.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import enum
import logging
from typing import Sequence
from typing import Type
from typing import cast as _cast

from ..base import BaseRecord
from ..base import BaseTag
from ..base import LineLoader
from ..memory import ADDRESS_MASK
from ..utils import parse_hex
from ..utils import unhexlify

_logger = logging.getLogger(__name__)


class IhexTag(BaseTag, enum.IntEnum):
    r"""Intel HEX tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    EXTENDED_LINEAR_ADDRESS = 4
    r"""Extended Linear Address."""

    START_LINEAR_ADDRESS = 5
    r"""Start Linear Address."""

    def is_data(self) -> bool:

        return self == self.DATA

    def is_eof(self) -> bool:
        r"""Tells whether this is an End Of File record tag.

        Returns:
            bool: This is an End Of File record tag.

        Examples:
            >>> from firmwarefile.formats.ihex import IhexTag
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_extension(self) -> bool:

        return self == self.EXTENDED_LINEAR_ADDRESS

    def is_start(self) -> bool:

        return self == self.START_LINEAR_ADDRESS


class IhexRecord(BaseRecord):
    r"""Intel HEX record object.

    Syntax: ``:CCAAAATT[DD...]KK``, all hexadecimal digits (case insensitive)
    with no spaces, where ``CC`` is the data byte count, ``AAAA`` the 16-bit
    address, ``TT`` the tag, ``DD`` the data bytes, and ``KK`` the checksum.
    """

    Tag: Type[IhexTag] = IhexTag

    START_CODE: str = ':'
    r"""Start code character."""

    MIN_LENGTH: int = 11
    r"""Length of a record without data."""

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        It is the two's complement of the 8-bit sum of the count, address,
        tag, and data bytes.

        Returns:
            int: Computed checksum value.

        Examples:
            >>> from firmwarefile.formats.ihex import IhexRecord
            >>> record = IhexRecord.parse(':0300300002337A1E')
            >>> hex(record.compute_checksum())
            '0x1e'
        """

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        sum_address = (address >> 8) + (address & 0xFF)
        sum_data = sum(iter(self.data))
        tag = _cast(IhexTag, self.tag) & 0xFF
        checksum = (count + sum_address + tag + sum_data)
        checksum = (0x100 - (checksum & 0xFF)) & 0xFF
        return checksum

    @classmethod
    def parse(cls, line: str) -> 'IhexRecord':
        r"""Parses a record from a line of text.

        Args:
            line (str):
                Line of text to parse, without terminator.

        Returns:
            :class:`IhexRecord`: Parsed record.

        Raises:
            ValueError: Malformed record.

        Examples:
            >>> from firmwarefile.formats.ihex import IhexRecord
            >>> record = IhexRecord.parse(':10010000214601360121470136007EFE09D2190140')
            >>> record.tag, hex(record.address), len(record.data), hex(record.checksum)
            (<IhexTag.DATA: 0>, '0x100', 16, '0x40')
            >>> IhexRecord.parse('S00000001FF')
            Traceback (most recent call last):
                ...
            ValueError: Invalid start code 'S' (53h)
        """

        if len(line) < cls.MIN_LENGTH:
            raise ValueError('Truncated record')

        start_code = line[0]
        if start_code != cls.START_CODE:
            raise ValueError(f"Invalid start code '{start_code}' ({ord(start_code):02X}h)")

        count = parse_hex(line[1:3])
        address = parse_hex(line[3:7])
        tag_code = parse_hex(line[7:9])

        if len(line) != cls.MIN_LENGTH + (count * 2):
            raise ValueError('Invalid record length')

        try:
            tag = cls.Tag(tag_code)
        except ValueError:
            raise ValueError(f"Unsupported record type '{tag_code:02X}h'") from None

        data_endex = 9 + (count * 2)
        data = unhexlify(line[9:data_endex])
        checksum = parse_hex(line[data_endex:])

        record = cls(tag, address=address, data=data, count=count, checksum=checksum)
        record.validate()
        return record


class IhexLoader(LineLoader):
    r"""Intel HEX file loader.

    *Data* records are written into the image at their address, added to
    the current *Extended Linear Address* offset (initially zero).

    Any records after the *End Of File* record are not allowed, while
    *Start Linear Address* records are just ignored.

    Examples:
        >>> from firmwarefile import IhexLoader
        >>> buffer = b'''
        ... :020000040800F2
        ... :0300300002337A1E
        ... :00000001FF
        ... '''
        >>> image = IhexLoader.parse(buffer)
        >>> image.to_blocks()
        [[134217776, b'\x023z']]
        >>> image.has_explicit_addresses
        True
    """

    FILE_EXT: Sequence[str] = [
        # https://en.wikipedia.org/wiki/Intel_HEX
        # General purpose:
        '.hex', '.mcs', '.int', '.ihex', '.ihe', '.ihx',
        # Platform specific:
        '.h80', '.h86', '.a43', '.a90',
        # Binary or Intel hex:
        '.obj', '.obl', '.obh', '.rom', '.eep',
    ]

    Record: Type[IhexRecord] = IhexRecord

    def __init__(self):

        super().__init__()

        self._eof_seen: bool = False
        self._extension: int = 0

    def apply_record(self, record: IhexRecord) -> None:

        tag = _cast(IhexTag, record.tag)

        if tag.is_data():
            address = (record.address + self._extension) & ADDRESS_MASK
            self._image.set_data(address, record.data)

        elif tag.is_eof():
            self._eof_seen = True

        elif tag.is_extension():
            data = record.data
            if len(data) != 2:
                raise ValueError("Invalid data length for 'Extended Linear Address' record")
            self._extension = (data[0] << 24) + (data[1] << 16)

        else:
            _logger.debug('ignoring %s record', tag.name)

    def check_sequence(self) -> None:

        if self._eof_seen:
            raise ValueError('Record found after EOF record')

    @property
    def eof_seen(self) -> bool:
        r"""bool: The *End Of File* record was processed."""

        return self._eof_seen

    @property
    def extension(self) -> int:
        r"""int: Current *Extended Linear Address* offset."""

        return self._extension

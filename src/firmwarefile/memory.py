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

r"""Sparse memory image of a firmware.

A firmware *image* is a set of *blocks*, each one holding a contiguous run
of bytes starting at some address of a 32-bit address space.

+---+---+---+---+---+---+---+---+---+
| 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
+===+===+===+===+===+===+===+===+===+
|   |[A | B | C]|   |   |[x | y | z]|
+---+---+---+---+---+---+---+---+---+

>>> from firmwarefile.memory import MemoryImage
>>> image = MemoryImage()
>>> image.set_data(1, b'ABC')
>>> image.set_data(6, b'xyz')
>>> image.to_blocks()
[[1, b'ABC'], [6, b'xyz']]

Blocks of an image never overlap, and they are never *contiguous*: writing
data which touches or overlaps existing blocks merges all of them into a
single block.

>>> image.set_data(4, b'!!')
>>> image.to_blocks()
[[1, b'ABC!!xyz']]

Addresses are unsigned 32-bit integers, and all the address arithmetic
wraps around at ``2**32``.
"""

import bisect
from typing import List
from typing import Optional
from typing import Tuple

from bytesparse import Memory

from .utils import AnyBytes

ADDRESS_MASK: int = 0xFFFFFFFF
r"""Mask of the 32-bit address space."""


class ConsistencyError(RuntimeError):
    r"""Broken internal invariant of a memory image.

    This is never expected from any input data, and denotes a bug.
    """


def _check_address(address: int) -> int:

    address = address.__index__()
    if not 0 <= address <= ADDRESS_MASK:
        raise ValueError('address overflow')
    return address


def _check_size(size: int) -> int:

    size = size.__index__()
    if not 0 <= size <= ADDRESS_MASK:
        raise ValueError('size overflow')
    return size


class MemoryBlock:
    r"""Contiguous block of memory.

    A block holds a contiguous run of bytes, starting at
    :attr:`start_address`.

    Blocks are owned by a :class:`MemoryImage`, which mutates them only via
    its own merge and split logic.

    Args:
        start_address (int):
            Address of the first byte.

        data (bytes):
            Byte contents.

    Examples:
        >>> from firmwarefile.memory import MemoryBlock
        >>> block = MemoryBlock(0x8000, b'abc')
        >>> block.start_address, block.size, hex(block.endex)
        (32768, 3, '0x8003')
        >>> block.data
        b'abc'
    """

    def __eq__(self, other: object) -> bool:

        if not isinstance(other, MemoryBlock):
            return NotImplemented

        return (self._start_address == other._start_address and
                self._data == other._data)

    def __init__(
        self,
        start_address: int,
        data: AnyBytes = b'',
    ):

        self._start_address: int = _check_address(start_address)
        self._data: bytearray = bytearray(data)

    def __len__(self) -> int:

        return len(self._data)

    def __repr__(self) -> str:

        return (f'<{self.__class__.__name__} '
                f'start_address=0x{self._start_address:08X} '
                f'size={len(self._data)}>')

    def append(self, data: AnyBytes) -> None:
        r"""Appends data after the last byte.

        Args:
            data (bytes):
                Data to append.
        """

        self._data.extend(data)

    def copy(self) -> 'MemoryBlock':
        r"""Deep copy.

        Returns:
            :class:`MemoryBlock`: Independent copy of the block.
        """

        return type(self)(self._start_address, self._data)

    @property
    def data(self) -> bytes:
        r"""bytes: Copy of the byte contents."""

        return bytes(self._data)

    @property
    def endex(self) -> int:
        r"""int: Exclusive end address, wrapped to 32 bits."""

        return (self._start_address + len(self._data)) & ADDRESS_MASK

    def erase_after(self, offset: int) -> None:
        r"""Erases the bytes from an offset onwards.

        Args:
            offset (int):
                Offset of the first byte to erase.
                Nothing happens if beyond the last byte.

        Examples:
            >>> from firmwarefile.memory import MemoryBlock
            >>> block = MemoryBlock(0x8000, b'abcdef')
            >>> block.erase_after(2)
            >>> block.start_address, block.data
            (32768, b'ab')
        """

        if offset < len(self._data):
            del self._data[offset:]

    def erase_before(self, offset: int) -> None:
        r"""Erases the bytes before an offset.

        The start address advances by `offset`.
        If `offset` reaches the end of the block, the block becomes empty.

        Args:
            offset (int):
                Offset of the first byte to keep.

        Examples:
            >>> from firmwarefile.memory import MemoryBlock
            >>> block = MemoryBlock(0x8000, b'abcdef')
            >>> block.erase_before(2)
            >>> hex(block.start_address), block.data
            ('0x8002', b'cdef')
        """

        if offset < len(self._data):
            del self._data[:offset]
            self._start_address = (self._start_address + offset) & ADDRESS_MASK
        else:
            self._data.clear()

    @property
    def size(self) -> int:
        r"""int: Number of bytes."""

        return len(self._data)

    def splice(self, offset: int, data: AnyBytes) -> None:
        r"""Writes data at a block offset.

        The written region must overlap or touch the current block region,
        i.e. `offset` must fall within ``[-len(data), size]``.
        Existing bytes are overwritten, and the block is extended on either
        side as needed.
        A negative `offset` moves the start address backwards.

        Args:
            offset (int):
                Offset of the first byte to write, relative to
                :attr:`start_address`.

            data (bytes):
                Data to write.

        Raises:
            ValueError: Inserted region does not overlap the block.

        Examples:
            >>> from firmwarefile.memory import MemoryBlock
            >>> block = MemoryBlock(0x8000, b'abcdef')
            >>> block.splice(4, b'XYZ')
            >>> block.data
            b'abcdXYZ'
            >>> block.splice(-2, b'123')
            >>> hex(block.start_address), block.data
            ('0x7ffe', b'123bcdXYZ')
            >>> block.splice(20, b'!')
            Traceback (most recent call last):
                ...
            ValueError: inserted region does not overlap the block
        """

        size = len(self._data)
        endex = offset + len(data)

        if 0 <= offset <= size:
            self._data[offset:endex] = data

        elif offset < 0 <= endex:
            self._start_address = (self._start_address + offset) & ADDRESS_MASK
            self._data[:endex] = data

        else:
            raise ValueError('inserted region does not overlap the block')

    @property
    def start_address(self) -> int:
        r"""int: Address of the first byte."""

        return self._start_address


class MemoryImage:
    r"""Sparse memory image.

    It holds the blocks of a firmware, sorted by start address.

    At any time, no two blocks overlap, no two blocks are contiguous, and no
    block is empty.

    Args:
        has_explicit_addresses (bool):
            The source of the image stated actual memory addresses, as
            opposed to data placed at the implicit address zero.

    Examples:
        >>> from firmwarefile.memory import MemoryImage
        >>> image = MemoryImage(has_explicit_addresses=True)
        >>> image.set_data(0x1000, b'\x01\x02\x2D\x03\xFF')
        >>> image.set_data(0x1002, b'\x2D\x03\x91\x20\x00\x63')
        >>> image.to_blocks()
        [[4096, b'\x01\x02-\x03\x91 \x00c']]
        >>> image.get_data(0x1003, 2)
        b'\x03\x91'
        >>> image.erase_data(0x1002, 2)
        >>> image.to_blocks()
        [[4096, b'\x01\x02'], [4100, b'\x91 \x00c']]
        >>> image.get_data(0x1000, 8) is None
        True
    """

    def __bool__(self) -> bool:

        return bool(self._blocks)

    def __eq__(self, other: object) -> bool:

        if not isinstance(other, MemoryImage):
            return NotImplemented

        return (self._has_explicit_addresses == other._has_explicit_addresses and
                self._blocks == other._blocks)

    def __init__(self, has_explicit_addresses: bool = False):

        self._has_explicit_addresses: bool = bool(has_explicit_addresses)
        self._blocks: List[MemoryBlock] = []

    def __len__(self) -> int:

        return len(self._blocks)

    def __repr__(self) -> str:

        return (f'<{self.__class__.__name__} '
                f'has_explicit_addresses={self._has_explicit_addresses!r} '
                f'blocks={len(self._blocks)} '
                f'total_size={self.total_size}>')

    def _insert_block(self, block: MemoryBlock) -> None:

        starts = [b.start_address for b in self._blocks]
        index = bisect.bisect_right(starts, block.start_address)
        self._blocks.insert(index, block)

    def _remove_overwritten_blocks(self, start: int, endex: int) -> None:

        self._blocks = [block for block in self._blocks
                        if not (block.start_address >= start and block.endex <= endex)]

    @property
    def blocks(self) -> List[MemoryBlock]:
        r"""list of :class:`MemoryBlock`: Copies of the blocks.

        Blocks are sorted by start address.
        Being copies, editing them does not affect the image.
        """

        return [block.copy() for block in self._blocks]

    @property
    def endex(self) -> Optional[int]:
        r"""int: Exclusive end address of the last block, or ``None``."""

        if self._blocks:
            return self._blocks[-1].endex
        return None

    def erase_data(self, start_address: int, size: int) -> None:
        r"""Erases a region of memory.

        Blocks are deleted, trimmed, or split as needed.

        Each block is checked against the same erased region, so that a
        single call can affect many blocks.

        Args:
            start_address (int):
                Address of the first byte to erase.

            size (int):
                Number of bytes to erase.
                Nothing happens if zero.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abcdef')
            >>> image.set_data(0x20, b'ghijkl')
            >>> image.erase_data(0x12, 2)
            >>> image.to_blocks()
            [[16, b'ab'], [20, b'ef'], [32, b'ghijkl']]
            >>> image.erase_data(0x15, 0x0D)
            >>> image.to_blocks()
            [[16, b'ab'], [20, b'e'], [34, b'ijkl']]
        """

        start = _check_address(start_address)
        size = _check_size(size)
        if not size:
            return

        endex = (start + size) & ADDRESS_MASK
        blocks = []

        for block in self._blocks:
            block_start = block.start_address
            block_endex = block.endex

            if block_start < start and block_endex > endex:
                # Region within the block: split
                offset = (endex - block_start) & ADDRESS_MASK
                tail = MemoryBlock(endex, block.data[offset:])
                block.erase_after((start - block_start) & ADDRESS_MASK)
                blocks.append(block)
                blocks.append(tail)

            elif block_start >= start and block_endex <= endex:
                pass  # whole block erased

            elif start <= block_start < endex:
                block.erase_before((endex - block_start) & ADDRESS_MASK)
                blocks.append(block)

            elif start < block_endex <= endex:
                block.erase_after((start - block_start) & ADDRESS_MASK)
                blocks.append(block)

            else:
                blocks.append(block)

        self._blocks = [block for block in blocks if block.size]

    def get_data(self, start_address: int, size: int) -> Optional[bytes]:
        r"""Reads a region of memory.

        Data is returned only if a single block contains the whole region.
        It is never assembled across many blocks.

        Args:
            start_address (int):
                Address of the first byte to read.

            size (int):
                Number of bytes to read.

        Returns:
            bytes: Data within the region, or ``None`` if the region is not
            fully defined.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abc')
            >>> image.set_data(0x20, b'xyz')
            >>> image.get_data(0x11, 2)
            b'bc'
            >>> image.get_data(0x12, 2) is None
            True
            >>> image.get_data(0x12, 0x10) is None
            True
        """

        start = _check_address(start_address)
        size = _check_size(size)
        endex = (start + size) & ADDRESS_MASK

        for block in self._blocks:
            block_start = block.start_address

            if block_start <= start and block.endex >= endex:
                offset = start - block_start
                if offset + size <= block.size:
                    return block.data[offset:(offset + size)]

        return None

    def get_spans(self) -> List[Tuple[int, int]]:
        r"""Gets the block spans.

        Returns:
            list of couples: ``(start, endex)`` address couple of each block.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abc')
            >>> image.set_data(0x20, b'xyz')
            >>> image.get_spans()
            [(16, 19), (32, 35)]
        """

        return [(block.start_address, block.endex) for block in self._blocks]

    @property
    def has_explicit_addresses(self) -> bool:
        r"""bool: The source stated actual memory addresses."""

        return self._has_explicit_addresses

    def set_data(self, start_address: int, data: AnyBytes) -> None:
        r"""Writes data into memory.

        Any data previously stored within the written region is overwritten.
        Blocks are created, extended, or merged as needed, so that no
        overlapping or contiguous blocks are left.

        Args:
            start_address (int):
                Address of the first byte to write.

            data (bytes):
                Data to write.
                Nothing happens if empty.

        Raises:
            ConsistencyError: Blocks were found overlapping.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abc')
            >>> image.set_data(0x16, b'xyz')
            >>> image.to_blocks()
            [[16, b'abc'], [22, b'xyz']]
            >>> image.set_data(0x13, b'123')
            >>> image.to_blocks()
            [[16, b'abc123xyz']]
        """

        start = _check_address(start_address)
        size = _check_size(len(data))
        if not size:
            return

        data = bytes(data)
        endex = (start + size) & ADDRESS_MASK
        self._remove_overwritten_blocks(start, endex)
        blocks = self._blocks
        start_index = None
        endex_index = None

        for index, block in enumerate(blocks):
            block_start = block.start_address
            block_endex = block.endex

            if block_start <= start <= block_endex:
                if start_index is not None:
                    raise ConsistencyError('INTERNAL ERROR: blocks are overlapping')
                start_index = index

            if block_start <= endex <= block_endex:
                if endex_index is not None:
                    raise ConsistencyError('INTERNAL ERROR: blocks are overlapping')
                endex_index = index

        if endex_index == start_index:
            endex_index = None

        if start_index is not None and endex_index is not None:
            # Bridge two blocks: extend the start block, then merge the end block
            start_block = blocks[start_index]
            endex_block = blocks[endex_index]
            start_block.splice((start - start_block.start_address) & ADDRESS_MASK, data)
            offset = (endex - endex_block.start_address) & ADDRESS_MASK
            start_block.append(endex_block.data[offset:])
            del blocks[endex_index]

        elif start_index is not None:
            # Overwrite the middle or extend the tail
            block = blocks[start_index]
            block.splice((start - block.start_address) & ADDRESS_MASK, data)

        elif endex_index is not None:
            # Extend the head
            block = blocks.pop(endex_index)
            block.splice(-((block.start_address - start) & ADDRESS_MASK), data)
            self._insert_block(block)

        else:
            self._insert_block(MemoryBlock(start, data))

    @property
    def start_address(self) -> Optional[int]:
        r"""int: Start address of the first block, or ``None``."""

        if self._blocks:
            return self._blocks[0].start_address
        return None

    def to_blocks(self) -> List[List]:
        r"""Exports as a block list.

        Returns:
            list: ``[start_address, data]`` couple of each block, with `data`
            as :obj:`bytes`.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abc')
            >>> image.to_blocks()
            [[16, b'abc']]
        """

        return [[block.start_address, block.data] for block in self._blocks]

    def to_memory(self) -> Memory:
        r"""Exports as a sparse memory object.

        The returned :class:`bytesparse.Memory` is independent from the
        image, and provides advanced editing and analysis features.

        Returns:
            :class:`bytesparse.Memory`: Equivalent memory object.

        Examples:
            >>> from firmwarefile.memory import MemoryImage
            >>> image = MemoryImage()
            >>> image.set_data(0x10, b'abc')
            >>> image.set_data(0x20, b'xyz')
            >>> memory = image.to_memory()
            >>> [(start, bytes(data)) for start, data in memory.to_blocks()]
            [(16, b'abc'), (32, b'xyz')]
            >>> memory.span
            (16, 35)
        """

        return Memory.from_blocks(self.to_blocks())

    @property
    def total_size(self) -> int:
        r"""int: Total number of bytes stored within the blocks."""

        return sum(block.size for block in self._blocks)

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

r"""Base types and classes."""

import abc
import io
import logging
import os
import sys
from typing import IO
from typing import Any
from typing import MutableMapping
from typing import Optional
from typing import Sequence
from typing import Type
from typing import TypeVar
from typing import Union

from .memory import MemoryImage
from .utils import AnyBytes
from .utils import AnyPath
from .utils import TypeAlias
from .utils import iter_lines

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

_logger = logging.getLogger(__name__)

loader_types: MutableMapping[str, Type['BaseLoader']] = {}
r"""Registered loader types.

This is an ordered mapping, where the first item has top priority."""


def _is_stream(obj: Any) -> bool:
    return isinstance(obj, io.IOBase) or callable(getattr(obj, 'read', None))



class FormatError(ValueError):
    r"""Format error within a text file.

    It tells the line where the error was found, while the original error is
    chained as the cause (``__cause__``).

    Args:
        message (str):
            Human readable description.

        line (int):
            Line number, starting from 1.

    Examples:
        >>> from firmwarefile.base import FormatError
        >>> error = FormatError('Truncated record', 3)
        >>> error.line, error.message
        (3, 'Truncated record')
        >>> str(error)
        '[Line 3] Truncated record'
    """

    def __init__(self, message: str, line: int):

        super().__init__(message, line)
        self.message: str = message
        self.line: int = line

    def __str__(self) -> str:

        return f'[Line {self.line}] {self.message}'


class ShortReadError(OSError):
    r"""A stream provided less data than expected."""


def guess_format_name(file_path: AnyPath) -> str:
    r"""Guesses the file format name.

    It analyzes the file extension by `file_path` against all the formats
    registered into :data:`loader_types`.
    The first format to match the extension within its own
    :attr:`BaseLoader.FILE_EXT` is returned.
    Extensions are compared case-insensitively.

    Args:
        file_path (str):
            File path to analyze.

    Returns:
        str: Format name registered within :data:`loader_types`.

    Raises:
        ValueError: Cannot guess the file format.

    Examples:
        >>> from firmwarefile import guess_format_name
        >>> guess_format_name('firmware.hex')
        'ihex'
        >>> guess_format_name('firmware.S19')
        'srec'
        >>> guess_format_name('firmware.bin')
        'raw'
    """

    file_ext = os.path.splitext(os.fsdecode(file_path))[1].lower()

    for name, loader_type in loader_types.items():
        if file_ext in loader_type.FILE_EXT:
            return name

    raise ValueError(f'extension not found: {file_ext!r}')


def guess_format_type(file_path: AnyPath) -> Type['BaseLoader']:
    r"""Guesses the loader type.

    It calls :func:`guess_format_name` to return the registered loader type
    within :data:`loader_types`.

    Args:
        file_path (str):
            File path to analyze.

    Returns:
        type: Loader type registered within :data:`loader_types`.

    Raises:
        ValueError: Cannot guess the file format.

    Examples:
        >>> from firmwarefile import guess_format_type
        >>> guess_format_type('firmware.hex')
        <class 'firmwarefile.formats.ihex.IhexLoader'>
        >>> guess_format_type('firmware.mot')
        <class 'firmwarefile.formats.srec.SrecLoader'>
    """

    name = guess_format_name(file_path)
    return loader_types[name]


def load(
    in_path_or_stream: Optional[Union[AnyPath, IO]],
    in_format: Optional[str] = None,
) -> MemoryImage:
    r"""Loads a firmware image.

    This is a simple helper function to load a firmware file from the
    filesystem, or from an already open stream.

    Args:
        in_path_or_stream (str or IO):
            Input file path or stream.
            If ``None``, ``sys.stdin.buffer`` is used.

        in_format (str):
            Name of the input format, within :data:`loader_types`.
            If ``None``, it is guessed via :func:`guess_format_name`; streams
            require it.

    Returns:
        :class:`MemoryImage`: The loaded firmware image.

    Raises:
        FormatError: Malformed file contents.

        ValueError: Unknown file format.

    See Also:
        :data:`loader_types`
        :func:`guess_format_name`
        :meth:`BaseLoader.load`

    Examples:
        >>> from firmwarefile import load
        >>> image = load('firmware.hex')  # doctest: +SKIP
        >>> image = load('firmware.dat', in_format='raw')  # doctest: +SKIP
    """

    if in_format is None:
        if in_path_or_stream is None or _is_stream(in_path_or_stream):
            raise ValueError('stream requires input format')
        loader_type = guess_format_type(in_path_or_stream)
    else:
        loader_type = loader_types[in_format]

    return loader_type.load(in_path_or_stream)


class BaseTag:
    r"""Record tag.

    The *record tag* indicates the *nature* of a record.
    The record tag class usually enumerates all the possible natures of a
    record within a *record file format*.
    """

    @abc.abstractmethod
    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        Data records carry bytes to be written into the memory image.

        Returns:
            bool: This is a data record tag.

        Examples:
            >>> from firmwarefile import IhexLoader
            >>> IhexLoader.Record.Tag.DATA.is_data()
            True
            >>> IhexLoader.Record.Tag.END_OF_FILE.is_data()
            False
        """
        ...


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='BaseRecord')


class BaseRecord(abc.ABC):
    r"""Record.

    A *record* is a line of text carrying some binary data in hexadecimal
    representation, or some *meta* information, usually allocated at some
    *address* of the target system.

    Records are transient: a loader parses a record from each line, applies
    it to the memory image, then discards it.

    Attributes:
        tag (:class:`BaseTag`):
            The *tag*, indicating the *nature* of the record.

        address (int):
            Address field, as stated by the record itself.

        data (bytes):
            Data field.

        count (int):
            Byte count field.

        checksum (int):
            Checksum field, as stated by the record itself.

    Args:
        tag (:class:`BaseTag`):
            See :attr:`tag` attribute.

        address (int):
            See :attr:`address` attribute.

        data (bytes):
            See :attr:`data` attribute.

        count (int):
            See :attr:`count` attribute.
            If ``None``, it is set to the size of `data`.

        checksum (int):
            See :attr:`checksum` attribute.
            If ``None``, it is computed via :meth:`compute_checksum`.
    """

    EQUALITY_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Meta keys for equality checks."""

    Tag: Type[BaseTag] = None  # override
    r"""Tag object type."""

    def __eq__(self, other: object) -> bool:

        return not self != other

    def __init__(
        self,
        tag: BaseTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[int] = None,
        checksum: Optional[int] = None,
    ):

        self.tag: BaseTag = tag
        self.address: int = address.__index__()
        self.data: bytes = bytes(data)
        self.count: int = self.compute_count() if count is None else count.__index__()
        self.checksum: int = self.compute_checksum() if checksum is None else checksum.__index__()

    def __ne__(self, other: object) -> bool:

        for key in self.EQUALITY_KEYS:
            if not hasattr(other, key):
                return True
            if getattr(self, key) != getattr(other, key):
                return True

        return False

    def __repr__(self) -> str:

        meta = {key: getattr(self, key) for key in sorted(self.EQUALITY_KEYS)}
        text = f'<{self.__class__!s} @0x{id(self):08X} '
        text += ' '.join(f'{key!s}:={value!r}' for key, value in meta.items())
        text += '>'
        return text

    @abc.abstractmethod
    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        It computes and returns the format-specific checksum of the record
        fields.

        Returns:
            int: Computed checksum value.
        """
        ...

    def compute_count(self) -> int:
        r"""Computes the count field value.

        Returns:
            int: Computed count value; the data size by default.
        """

        return len(self.data)

    @classmethod
    @abc.abstractmethod
    def parse(cls, line: str) -> Self:
        r"""Parses a record from a line of text.

        The line must not contain any line terminator, nor trailing
        whitespace.

        Args:
            line (str):
                Line of text to parse.

        Returns:
            :class:`BaseRecord`: Parsed record.

        Raises:
            ValueError: Malformed record.
        """
        ...

    def validate(self) -> Self:
        r"""Validates the checksum.

        The stated :attr:`checksum` must match the one returned by
        :meth:`compute_checksum`.

        Returns:
            :class:`BaseRecord`: *self*.

        Raises:
            ValueError: Invalid checksum.

        Examples:
            >>> from firmwarefile import IhexLoader
            >>> IhexRecord = IhexLoader.Record
            >>> record = IhexRecord(IhexRecord.Tag.END_OF_FILE, checksum=0xFE)
            >>> _ = record.validate()
            Traceback (most recent call last):
                ...
            ValueError: Invalid checksum (expected: FFh, reported: FEh)
        """

        expected = self.compute_checksum()
        if self.checksum != expected:
            raise ValueError(f'Invalid checksum (expected: {expected:02X}h, '
                             f'reported: {self.checksum:02X}h)')
        return self


class BaseLoader(abc.ABC):
    r"""Firmware file loader.

    A loader reads a firmware file, populating a brand new
    :class:`MemoryImage`.

    Each loader instance populates a single image, and it is meant to be
    used just once, typically via the :meth:`load` or :meth:`parse` class
    methods.
    The image is returned only if the whole file was read successfully;
    any error aborts loading, and the partial image is discarded.
    """

    EXPLICIT_ADDRESSES: bool = False
    r"""The file format states actual memory addresses.

    It is assigned to :attr:`MemoryImage.has_explicit_addresses`.
    """

    FILE_EXT: Sequence[str] = []
    r"""Supported filename extensions.

    Sequence of lowercase file name extension substrings (e.g. ``.hex``).
    This list is used by functions like :func:`guess_format_name` to manage
    mapping of file *formats*.
    """

    def __init__(self):

        self._image: MemoryImage = MemoryImage(self.EXPLICIT_ADDRESSES)

    @abc.abstractmethod
    def consume(self, stream: IO) -> None:
        r"""Reads a whole stream into the image.

        Args:
            stream (IO):
                Input stream, read until exhausted.
        """
        ...

    @property
    def image(self) -> MemoryImage:
        r""":class:`MemoryImage`: The image being populated."""

        return self._image

    @classmethod
    def load(
        cls,
        in_path_or_stream: Optional[Union[AnyPath, IO]],
    ) -> MemoryImage:
        r"""Loads a firmware image from the filesystem.

        The file is opened in binary mode, and always closed upon return.

        Args:
            in_path_or_stream (str or IO):
                Path of the file within the filesystem, or input stream.
                If ``None``, ``sys.stdin.buffer`` is used.

        Returns:
            :class:`MemoryImage`: Loaded firmware image.

        See Also:
            :meth:`parse`

        Examples:
            >>> from firmwarefile import IhexLoader
            >>> image = IhexLoader.load('firmware.hex')  # doctest: +SKIP
            >>> image.to_blocks()  # doctest: +SKIP
            [[256, b'!F\x016\x01!G\x016\x00~\xfe\t\xd2\x19\x01']]
        """

        if in_path_or_stream is None:
            in_path_or_stream = sys.stdin.buffer

        if _is_stream(in_path_or_stream):
            return cls.parse(in_path_or_stream)
        else:
            _logger.debug('loading %s file %r', cls.__name__, in_path_or_stream)
            with open(in_path_or_stream, 'rb') as stream:
                return cls.parse(stream)

    @classmethod
    def parse(cls, stream: Union[AnyBytes, IO]) -> MemoryImage:
        r"""Parses a firmware image from a stream.

        Args:
            stream (IO or bytes):
                Input stream (any object with a ``read`` method), or byte
                buffer.

        Returns:
            :class:`MemoryImage`: Parsed firmware image.

        Examples:
            >>> from firmwarefile import SrecLoader
            >>> image = SrecLoader.parse(b'S10612346162638D\n')
            >>> image.to_blocks()
            [[4660, b'abc']]
        """

        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(stream)
        elif not isinstance(stream, io.IOBase):
            data = stream.read()
            stream = io.StringIO(data) if isinstance(data, str) else io.BytesIO(data)

        loader = cls()
        loader.consume(stream)
        image = loader.image
        _logger.debug('parsed %d blocks, %d bytes', len(image), image.total_size)
        return image


class LineLoader(BaseLoader):
    r"""Line oriented record loader.

    It reads the input stream line by line, with trailing whitespace removed.
    Empty lines are skipped, though they count for line numbering.
    Each other line is parsed into a :attr:`Record`, then applied to the
    image via :meth:`apply_record`.

    Any :class:`ValueError` raised while processing a line is converted into
    a :class:`FormatError` stating the line number.
    """

    EXPLICIT_ADDRESSES: bool = True

    Record: Type[BaseRecord] = None  # override
    r"""Record object type."""

    @abc.abstractmethod
    def apply_record(self, record: BaseRecord) -> None:
        r"""Applies a record to the image.

        Args:
            record (:class:`BaseRecord`):
                Record parsed from the current line.

        Raises:
            ValueError: Invalid record for the current loader state.
        """
        ...

    def check_sequence(self) -> None:
        r"""Checks whether another record can follow.

        Called before parsing each non-empty line.

        Raises:
            ValueError: No more records expected.
        """

    def consume(self, stream: IO) -> None:

        Record = self.Record

        for row, line in enumerate(iter_lines(stream), start=1):
            line = line.rstrip()
            if not line:
                continue

            try:
                self.check_sequence()
                record = Record.parse(line)
                self.apply_record(record)
            except ValueError as exc:
                raise FormatError(str(exc), row) from exc

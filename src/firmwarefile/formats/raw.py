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

r"""Binary format.

This format is actually used to hold binary chunks of raw data (`bytes`).
Being address-less, its contents always start at address zero.
"""

import io
import logging
from typing import IO
from typing import Sequence

from ..base import BaseLoader
from ..base import ShortReadError

_logger = logging.getLogger(__name__)


class RawLoader(BaseLoader):
    r"""Raw binary file loader.

    The whole stream is read as a single block starting at address zero.
    An empty stream leads to an empty image.

    Examples:
        >>> from firmwarefile import RawLoader
        >>> image = RawLoader.parse(b'abc')
        >>> image.to_blocks()
        [[0, b'abc']]
        >>> image.has_explicit_addresses
        False
    """

    FILE_EXT: Sequence[str] = [
        '.bin', '.dat', '.raw',
    ]

    def consume(self, stream: IO) -> None:

        if isinstance(stream, io.TextIOBase):
            raise TypeError('binary stream required')

        expected = None
        if stream.seekable():
            offset = stream.tell()
            expected = stream.seek(0, io.SEEK_END) - offset
            stream.seek(offset, io.SEEK_SET)

        data = stream.read()
        if isinstance(data, str):
            raise TypeError('binary stream required')

        if expected is not None and len(data) != expected:
            _logger.debug('read %d bytes out of %d', len(data), expected)
            raise ShortReadError("Couldn't read binary file contents")

        self._image.set_data(0, data)

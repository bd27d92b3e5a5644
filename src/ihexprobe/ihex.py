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

Record decoding and permissive memory reconstruction.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import binascii
import enum
import io
import logging
import re
import sys
from typing import IO
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import Type
from typing import Union

from bytesparse import Memory

from .base import AnyBytes
from .base import AnyPath
from .base import MalformedRecordError
from .base import SemanticViolationError
from .base import colorize_tokens

logger = logging.getLogger(__name__)

HEX_REGEX = re.compile(b'[0-9A-Fa-f]*')
r"""Matches a run of hexadecimal digits."""

MIN_LINE_SIZE: int = 11
r"""Size of the shortest record line: ``:CCAAAATTSS``."""

LINE_TRAILER: bytes = b' \r\n'
r"""Trailing characters ignored by strict record decoding."""

VERIFY_TRAILER: bytes = b' \t\r\n'
r"""Trailing characters ignored by strict file parsing."""

ADDRESS_MASK: int = 0xFFFFFFFF
r"""Absolute addresses wrap around at 32 bits."""


class IhexTag(enum.IntEnum):
    r"""Intel HEX tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    EXTENDED_SEGMENT_ADDRESS = 2
    r"""Extended Segment Address."""

    START_SEGMENT_ADDRESS = 3
    r"""Start Segment Address."""

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
            >>> from ihexprobe.ihex import IhexTag
            >>> IhexTag.END_OF_FILE.is_eof()
            True
            >>> IhexTag.DATA.is_eof()
            False
        """

        return self == self.END_OF_FILE

    def is_linear_extension(self) -> bool:

        return self == self.EXTENDED_LINEAR_ADDRESS


def _unhexlify_field(line: bytes, start: int, endex: int, row: int) -> bytes:

    chunk = line[start:endex]
    if not HEX_REGEX.fullmatch(chunk):
        raise MalformedRecordError(f'Invalid hex character at line {row}', row=row)
    if len(chunk) != endex - start:
        raise MalformedRecordError(f'Line {row} too short.', row=row)
    return binascii.unhexlify(chunk)


class IhexRecord:
    r"""Intel HEX record object.

    A record is a single line of an Intel HEX file, decoded into its fields.

    Attributes:
        tag (:class:`IhexTag` or int):
            Record type. Types outside of :class:`IhexTag` are kept as plain
            integers.

        address (int):
            16-bit address, local to the record.

        data (bytes):
            Payload bytes.

        count (int):
            Byte count field, as stated by the record.

        checksum (int):
            Checksum field, as stated by the record; ``None`` if missing.

        coords (int couple):
            Line number and column of the parsed record, for diagnostics.
    """

    EQUALITY_KEYS: Sequence[str] = [
        'address',
        'checksum',
        'count',
        'data',
        'tag',
    ]
    r"""Attribute names compared by :meth:`__eq__`."""

    Tag: Type[IhexTag] = IhexTag

    def __eq__(self, other: Any) -> bool:

        return not self != other

    def __init__(
        self,
        tag: Union[IhexTag, int],
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[int] = Ellipsis,
        checksum: Optional[int] = Ellipsis,
        coords: Tuple[int, int] = (-1, -1),
    ):

        self.address: int = address.__index__()
        self.checksum: Optional[int] = None
        self.coords: Tuple[int, int] = coords
        self.count: Optional[int] = None
        self.data: bytes = bytes(data)
        self.tag: Union[IhexTag, int] = self.lookup_tag(tag)

        if count is Ellipsis:
            self.count = self.compute_count()
        elif count is not None:
            self.count = count.__index__()

        if checksum is Ellipsis:
            self.checksum = self.compute_checksum()
        elif checksum is not None:
            self.checksum = checksum.__index__()

    def __ne__(self, other: Any) -> bool:

        for key in self.EQUALITY_KEYS:
            if not hasattr(other, key):
                return True
            if getattr(self, key) != getattr(other, key):
                return True

        return False

    def __repr__(self) -> str:

        meta = {key: getattr(self, key) for key in self.EQUALITY_KEYS}
        meta['coords'] = self.coords
        text = f'<{self.__class__!s} @0x{id(self):08X} '
        text += ' '.join(f'{key!s}:={value!r}' for key, value in meta.items())
        text += '>'
        return text

    def compute_checksum(self) -> int:
        r"""Computes the checksum field value.

        The checksum is the two's complement of the sum of all the other
        record bytes, so that the sum of all the record bytes is zero
        (modulo 256).

        Returns:
            int: Computed checksum value.

        Raises:
            ValueError: Missing :attr:`count`.

        Examples:
            >>> from ihexprobe.ihex import IhexRecord, IhexTag
            >>> IhexRecord(IhexTag.DATA, 0x0030, b'\x02\x33\x7A').compute_checksum()
            30
            >>> IhexRecord(IhexTag.END_OF_FILE).compute_checksum()
            255
        """

        if self.count is None:
            raise ValueError('missing count')

        count = self.count & 0xFF
        address = self.address & 0xFFFF
        sum_address = (address >> 8) + (address & 0xFF)
        sum_data = sum(iter(self.data))
        tag = self.tag & 0xFF
        checksum = (count + sum_address + tag + sum_data)
        checksum = (0x100 - (checksum & 0xFF)) & 0xFF
        return checksum

    def compute_count(self) -> int:

        return len(self.data)

    def get_linear_extension(self) -> int:
        r"""Extended Linear Address value.

        The upper 16 bits of the following absolute addresses are taken from
        the first two data bytes, big-endian. Any further bytes are ignored.

        Returns:
            int: Extension value, zero if there is no data.

        Examples:
            >>> from ihexprobe.ihex import IhexRecord, IhexTag
            >>> record = IhexRecord(IhexTag.EXTENDED_LINEAR_ADDRESS, data=b'\x08\x00')
            >>> hex(record.get_linear_extension())
            '0x800'
        """

        return int.from_bytes(self.data[:2], byteorder='big')

    @classmethod
    def lookup_tag(cls, value: int) -> Union[IhexTag, int]:
        r"""Converts a record type value into its tag, if known.

        Args:
            value (int):
                Record type value.

        Returns:
            :class:`IhexTag` or int: The matching tag, or `value` itself if
            not enumerated by :attr:`Tag`.
        """

        try:
            return cls.Tag(value)
        except ValueError:
            return value.__index__()

    @classmethod
    def parse(
        cls,
        line: Union[AnyBytes, str],
        row: int = 0,
        verify: bool = True,
    ) -> 'IhexRecord':
        r"""Decodes a record line.

        Trailing whitespace (newline included) is ignored. When `verify` is
        true, only the characters of :data:`LINE_TRAILER` are ignored, so that
        any other trailing character is reported as an invalid hex character.

        When `verify` is true, the following checks are performed in order,
        each raising its own diagnosis:

        #. the line begins with ``:``;
        #. all the following characters are hexadecimal digits;
        #. the line is at least :data:`MIN_LINE_SIZE` characters long;
        #. the line length matches the byte count field;
        #. the checksum is correct.

        When `verify` is false, only the begin marker is checked, and only
        the fields actually needed are decoded; a malformed field still
        raises.

        The record type range is not checked.

        Args:
            line (bytes):
                Record line to decode.

            row (int):
                1-based line number, used for diagnostics.

            verify (bool):
                Performs the full line syntax checks.

        Returns:
            :class:`IhexRecord`: Decoded record.

        Raises:
            :class:`MalformedRecordError`: Syntax error.

        Examples:
            >>> from ihexprobe.ihex import IhexRecord
            >>> record = IhexRecord.parse(b':0300300002337A1E\r\n', row=1)
            >>> record.address, record.data, record.checksum
            (48, b'\x023z', 30)
            >>> IhexRecord.parse(b':0300300002337A1F', row=7)
            Traceback (most recent call last):
                ...
            ihexprobe.base.MalformedRecordError: Checksum mismatch at line 7
        """

        if isinstance(line, str):
            line = line.encode()
        line = bytes(line)
        line = line.rstrip(LINE_TRAILER) if verify else line.rstrip()

        if line[:1] != b':':
            raise MalformedRecordError(f"Line {row} does not start with ':'", row=row)

        if verify:
            if not HEX_REGEX.fullmatch(line, 1):
                raise MalformedRecordError(f'Invalid hex character at line {row}', row=row)

            if len(line) < MIN_LINE_SIZE:
                raise MalformedRecordError(f'Line {row} too short.', row=row)

            count = int(line[1:3], 16)
            if len(line) != 1 + 2 * (count + 5):
                raise MalformedRecordError(f'Incorrect line length at line {row}', row=row)

            values = binascii.unhexlify(line[1:])
            if sum(values) & 0xFF:
                raise MalformedRecordError(f'Checksum mismatch at line {row}', row=row)

            data = values[4:-1]
            checksum = values[-1]
        else:
            values = _unhexlify_field(line, 1, 9, row)
            count = values[0]
            data_endex = 9 + count * 2
            data = _unhexlify_field(line, 9, data_endex, row)

            tail = line[data_endex:(data_endex + 2)]
            if len(tail) == 2 and HEX_REGEX.fullmatch(tail):
                checksum = int(tail, 16)
            else:
                checksum = None

        address = (values[1] << 8) | values[2]
        tag = values[3]

        record = cls(tag,
                     address=address,
                     data=data,
                     count=count,
                     checksum=checksum,
                     coords=(row, 0))
        return record

    def print(
        self,
        stream: Optional[IO] = None,
        color: bool = False,
        end: AnyBytes = b'\n',
    ) -> 'IhexRecord':
        r"""Prints the record.

        The record is converted into tokens (eventually colorized) then joined
        and written onto a byte stream (*stdout* by default).

        Args:
            stream (bytes IO):
                The byte stream where the record tokens are printed.
                If ``None``, *stdout* is selected.

            color (bool):
                Tokens are colorized before printing.

            end (bytes):
                Line termination.

        Returns:
            :class:`IhexRecord`: *self*.
        """

        if stream is None:
            stream = sys.stdout.buffer
        stream.write(self.to_bytestr(end=end, color=color))
        return self

    def to_bytestr(self, end: AnyBytes = b'\n', color: bool = False) -> bytes:
        r"""Converts into a byte string.

        Args:
            end (bytes):
                Line termination.

            color (bool):
                Tokens are colorized.

        Returns:
            bytes: Byte string representation.

        Examples:
            >>> from ihexprobe.ihex import IhexRecord
            >>> IhexRecord.parse(b':0312340061626391').to_bytestr()
            b':0312340061626391\n'
        """

        tokens = self.to_tokens(end=end)
        if color:
            tokens = colorize_tokens(tokens)
        return b''.join(tokens.values())

    def to_tokens(self, end: AnyBytes = b'\n') -> Mapping[str, bytes]:
        r"""Splits the record fields into textual tokens.

        Fields are rendered as they were decoded, checksum included, so that a
        wrong checksum is shown as such.

        Args:
            end (bytes):
                Line termination token.

        Returns:
            dict: Token name to token bytes.
        """

        checksum = self.checksum
        return {
            'begin': b':',
            'count': b'%02X' % ((self.count or 0) & 0xFF),
            'address': b'%04X' % (self.address & 0xFFFF),
            'tag': b'%02X' % (self.tag & 0xFF),
            'data': binascii.hexlify(self.data).upper(),
            'checksum': b'' if checksum is None else b'%02X' % (checksum & 0xFF),
            'end': bytes(end),
        }


class IhexFile:
    r"""Intel HEX file object.

    It holds both the *records* parsed from a file and the *memory* image
    they describe, built on demand by :meth:`apply_records`.
    """

    Record: Type[IhexRecord] = IhexRecord

    def __init__(self):

        self._memory: Optional[Memory] = None
        self._records: Optional[List[IhexRecord]] = None

    def apply_records(self) -> 'IhexFile':
        r"""Builds the memory image out of the records.

        *Data* records are written at their absolute address, obtained by
        combining the record address with the last *Extended Linear Address*
        (initially zero). Addresses wrap around at :data:`ADDRESS_MASK`.
        Later writes overwrite earlier ones.
        Any other record type is ignored.

        Returns:
            :class:`IhexFile`: *self*.

        Raises:
            ValueError: :attr:`records` not populated.
        """

        if self._records is None:
            raise ValueError('records required')

        memory = Memory()
        extension = 0

        for record in self._records:
            tag = record.tag
            if not isinstance(tag, IhexTag):
                continue

            if tag.is_data():
                address = (extension << 16) | record.address
                data = record.data
                overflow = address + len(data) - (ADDRESS_MASK + 1)
                if overflow > 0:
                    memory.write(0, data[-overflow:])
                    data = data[:-overflow]
                if data:
                    memory.write(address, data)

            elif tag.is_linear_extension():
                extension = record.get_linear_extension()

        self._memory = memory
        return self

    @classmethod
    def from_records(cls, records: Sequence[IhexRecord]) -> 'IhexFile':

        file = cls()
        file._records = list(records)
        return file

    @classmethod
    def load(
        cls,
        in_path_or_stream: Optional[Union[AnyPath, IO]],
        verify: bool = False,
    ) -> 'IhexFile':
        r"""Loads a file object from the filesystem.

        Args:
            in_path_or_stream (str or bytes IO):
                Path of the file within the filesystem, or byte input stream.
                If ``None``, ``sys.stdin.buffer`` is used.

            verify (bool):
                Forwarded to :meth:`parse`.

        Returns:
            :class:`IhexFile`: Loaded file object.

        Raises:
            OSError: The file cannot be opened.
        """

        if in_path_or_stream is None:
            in_path_or_stream = sys.stdin.buffer

        if isinstance(in_path_or_stream, io.IOBase):
            return cls.parse(in_path_or_stream, verify=verify)
        else:
            logger.debug('loading %s', in_path_or_stream)
            with open(in_path_or_stream, 'rb') as stream:
                return cls.parse(stream, verify=verify)

    @property
    def memory(self) -> Memory:
        r""":class:`bytesparse.Memory`: Memory image.

        Built by :meth:`apply_records` if not yet available.
        """

        if self._memory is None:
            self.apply_records()
        return self._memory

    @classmethod
    def parse(
        cls,
        stream: Union[AnyBytes, IO],
        verify: bool = False,
    ) -> 'IhexFile':
        r"""Parses records from a byte stream.

        By default parsing is permissive: lines either empty or not beginning
        with ``:`` are skipped, and no line checks are performed beyond field
        decoding.

        When `verify` is true, trailing :data:`VERIFY_TRAILER` characters are
        ignored and blank lines are still skipped, but any other line must be
        a fully valid record, *Extended Linear Address* records must carry
        exactly 2 data bytes, and an *End Of File* record is required.

        In both cases parsing stops at the first *End Of File* record.

        Args:
            stream (bytes IO or buffer):
                Stream or byte buffer to parse records from.

            verify (bool):
                Performs strict checks.

        Returns:
            :class:`IhexFile`: Parsed file object.

        Raises:
            :class:`MalformedRecordError`: Undecodable record.

            :class:`SemanticViolationError`: Missing End Of File record
            (`verify` only).

        Examples:
            >>> from ihexprobe.ihex import IhexFile
            >>> buffer = b'''
            ... :0312340061626391
            ... :02000004ABCD82
            ... :0356780078797AC4
            ... :00000001FF
            ... '''
            >>> file = IhexFile.parse(buffer)
            >>> [(start, bytes(data)) for start, data in file.memory.to_blocks()]
            [(4660, b'abc'), (2882360952, b'xyz')]
        """

        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(stream)

        Record = cls.Record
        records = []
        row = 0
        eof_found = False

        for line in stream:
            row += 1

            if verify:
                line = line.rstrip(VERIFY_TRAILER)
                if not line:
                    continue
            elif line[:1] != b':':
                continue

            record = Record.parse(line, row=row, verify=verify)
            records.append(record)
            tag = record.tag
            if not isinstance(tag, IhexTag):
                continue

            if verify and tag.is_linear_extension() and record.count != 2:
                raise MalformedRecordError(f'Invalid extended linear address at line {row}',
                                           row=row)

            if tag.is_eof():
                eof_found = True
                break

        if verify and not eof_found:
            raise SemanticViolationError('Missing EOF record.')

        logger.debug('parsed %d records out of %d lines', len(records), row)
        file = cls.from_records(records)
        return file

    @property
    def records(self) -> List[IhexRecord]:
        r"""list of :class:`IhexRecord`: Parsed records."""

        if self._records is None:
            raise ValueError('records required')
        return self._records


def load_memory(
    in_path_or_stream: Optional[Union[AnyPath, IO]],
    verify: bool = False,
) -> Memory:
    r"""Loads the memory image of an Intel HEX file.

    Args:
        in_path_or_stream (str or bytes IO):
            Path of the file within the filesystem, or byte input stream.

        verify (bool):
            Performs strict checks, see :meth:`IhexFile.parse`.

    Returns:
        :class:`bytesparse.Memory`: Sparse memory image, owned by the caller.

    Raises:
        OSError: The file cannot be opened.

        :class:`MalformedRecordError`: Undecodable record.

    Examples:
        >>> import io
        >>> from ihexprobe import load_memory
        >>> stream = io.BytesIO(b':0312340061626391\n:00000001FF\n')
        >>> memory = load_memory(stream)
        >>> memory.peek(0x1235)
        98
    """

    return IhexFile.load(in_path_or_stream, verify=verify).memory

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

r"""Intel HEX file validation.

Validation checks a whole record file against the format grammar, stopping at
the first violation with a human readable diagnosis.

Line syntax checks (performed by :meth:`IhexRecord.parse`):

* each line begins with ``:``, blank lines included;
* all the following characters are hexadecimal digits;
* the line is at least 11 characters long;
* the line length matches the byte count field;
* the checksum is correct.

Record checks:

* the record type is within ``0x00`` and ``0x05``;
* there is no more than one *End Of File* record;
* *data* records do not overlap any byte written by previous *data* records,
  with absolute addresses extended by *Extended Linear Address* records and
  wrapping around at 32 bits.

File checks:

* there is at least one *End Of File* record.
"""

import io
import logging
import os
import sys
from typing import IO
from typing import Optional
from typing import Set
from typing import Union

from .base import AnyBytes
from .base import AnyPath
from .base import HexFileError
from .base import MalformedRecordError
from .base import SemanticViolationError
from .ihex import ADDRESS_MASK
from .ihex import IhexRecord
from .ihex import IhexTag

logger = logging.getLogger(__name__)


class ValidationResult:
    r"""Validation outcome.

    It evaluates as true when the validated file is valid.

    Args:
        error (Exception):
            The error which stopped validation; ``None`` if valid.

        message (str):
            Diagnosis text; ``None`` picks the `error` text.

    Examples:
        >>> from ihexprobe.validator import ValidationResult
        >>> bool(ValidationResult())
        True
        >>> result = ValidationResult(ValueError('bad'))
        >>> bool(result), result.message
        (False, 'bad')
    """

    def __bool__(self) -> bool:

        return self.ok

    def __init__(
        self,
        error: Optional[Exception] = None,
        message: Optional[str] = None,
    ):

        if message is None and error is not None:
            message = str(error)

        self.error: Optional[Exception] = error
        self.message: str = message or ''

    def __repr__(self) -> str:

        if self.ok:
            return f'<{self.__class__.__name__} ok>'
        return f'<{self.__class__.__name__} error:={self.message!r}>'

    @property
    def address(self) -> Optional[int]:
        r"""int: Absolute address involved in the violation, if any."""

        return getattr(self.error, 'address', None)

    @property
    def ok(self) -> bool:
        r"""bool: The file is valid."""

        return self.error is None

    @property
    def row(self) -> Optional[int]:
        r"""int: 1-based line number of the violation, if line-local."""

        return getattr(self.error, 'row', None)


def validate_stream(stream: Union[AnyBytes, IO]) -> None:
    r"""Validates records from a byte stream.

    Args:
        stream (bytes IO or buffer):
            Stream or byte buffer to validate.

    Raises:
        :class:`MalformedRecordError`: Line syntax error, or unknown record
        type.

        :class:`SemanticViolationError`: Multiple End Of File records,
        overlapping data, or missing End Of File record.

    Examples:
        >>> from ihexprobe.validator import validate_stream
        >>> validate_stream(b':0312340061626391\n:00000001FF\n')
        >>> validate_stream(b':0312340061626391\n')
        Traceback (most recent call last):
            ...
        ihexprobe.base.SemanticViolationError: Missing EOF record.
    """

    if isinstance(stream, (bytes, bytearray, memoryview)):
        stream = io.BytesIO(stream)

    row = 0
    eof_found = False
    extension = 0
    written: Set[int] = set()

    for line in stream:
        row += 1
        record = IhexRecord.parse(line, row=row, verify=True)
        tag = record.tag

        if not isinstance(tag, IhexTag):
            raise MalformedRecordError(f'Unknown record type at line {row}', row=row)

        if tag.is_eof():
            if eof_found:
                raise SemanticViolationError('Multiple EOF records detected.', row=row)
            eof_found = True

        elif tag.is_data():
            start = (extension << 16) | record.address
            for offset in range(record.count):
                address = (start + offset) & ADDRESS_MASK
                if address in written:
                    raise SemanticViolationError(f'Overlapping data at address 0x{address:X}',
                                                 row=row, address=address)
                written.add(address)

        elif tag.is_linear_extension():
            extension = record.get_linear_extension()

    if not eof_found:
        raise SemanticViolationError('Missing EOF record.')

    logger.debug('validated %d lines, %d data bytes', row, len(written))


def validate_hex_file(
    in_path_or_stream: Optional[Union[AnyPath, IO]],
) -> ValidationResult:
    r"""Validates an Intel HEX file.

    Unlike :func:`validate_stream`, format violations are not raised, but
    reported by the returned object.

    Args:
        in_path_or_stream (str or bytes IO):
            Path of the file within the filesystem, or byte input stream.
            If ``None``, ``sys.stdin.buffer`` is used.

    Returns:
        :class:`ValidationResult`: Validation outcome.

    Examples:
        >>> import io
        >>> from ihexprobe import validate_hex_file
        >>> stream = io.BytesIO(b':00000001FF\n:00000001FF\n')
        >>> result = validate_hex_file(stream)
        >>> result.ok, result.message
        (False, 'Multiple EOF records detected.')
        >>> validate_hex_file('missing.hex').message
        'Failed to open file: missing.hex'
    """

    if in_path_or_stream is None:
        in_path_or_stream = sys.stdin.buffer

    if isinstance(in_path_or_stream, io.IOBase):
        return _validate(in_path_or_stream)

    path = os.fsdecode(in_path_or_stream)
    try:
        stream = open(in_path_or_stream, 'rb')
    except OSError as exc:
        logger.debug('cannot open %s: %s', path, exc)
        return ValidationResult(exc, message=f'Failed to open file: {path}')

    with stream:
        result = _validate(stream)

    logger.debug('validated %s: %s', path, result.message or 'ok')
    return result


def _validate(stream: IO) -> ValidationResult:

    try:
        validate_stream(stream)
    except HexFileError as exc:
        return ValidationResult(exc)
    return ValidationResult()

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

r"""Bootloader version lookup.

Firmware images embed a fixed :data:`BOOTLOADER_SIGNATURE` (placed by the
linker script), immediately followed by the version bytes:

=========  =====================================================
Offset     Content
=========  =====================================================
``+0``     *major* version number, binary value (e.g. ``0x06``)
``+1``     *minor* version, ASCII character code (e.g. ``0x68``)
``+2``     optional checksum, ``(major + minor) & 0xFF``
=========  =====================================================

The optional checksum byte is never verified: images lacking it, or carrying
a different value, are still accepted.
"""

import logging
from typing import IO
from typing import NamedTuple
from typing import Optional
from typing import Union

from bytesparse import Memory

from .base import AnyBytes
from .base import AnyPath
from .ihex import load_memory

logger = logging.getLogger(__name__)

BOOTLOADER_SIGNATURE: bytes = bytes([
    0x20, 0x0F, 0xF9, 0xA7, 0x17, 0x7D, 0x4E, 0x99,
    0xDB, 0x53, 0xA2, 0x72, 0xE7, 0xC3, 0xE1, 0xFA,
])
r"""Bootloader signature, as defined by the linker script."""

BOOTLOADER_SIGNATURE_SIZE: int = len(BOOTLOADER_SIGNATURE)
r"""Byte size of :data:`BOOTLOADER_SIGNATURE`."""


class BootloaderVersion(NamedTuple):
    r"""Bootloader version numbers.

    Examples:
        >>> from ihexprobe.locator import BootloaderVersion
        >>> version = BootloaderVersion(0x06, 0x68)
        >>> version.text
        '6.h'
    """

    major: int
    r"""Major version number (binary value)."""

    minor: int
    r"""Minor version (ASCII character code)."""

    @property
    def text(self) -> str:
        r"""str: Human readable version, as ``<major>.<minor character>``."""

        return f'{self.major}.{chr(self.minor)}'


def find_pattern(
    memory: Memory,
    pattern: AnyBytes,
) -> Optional[int]:
    r"""Finds a byte pattern within a memory image.

    The pattern must be stored contiguously: any memory hole within the
    candidate range disqualifies it.

    Args:
        memory (:class:`bytesparse.Memory`):
            Memory image to scan, by ascending address.

        pattern (bytes):
            Byte pattern to find.

    Returns:
        int: Lowest address where `pattern` begins; ``None`` if not found.

    Raises:
        ValueError: Empty pattern.

    Examples:
        >>> from bytesparse import Memory
        >>> from ihexprobe.locator import find_pattern
        >>> memory = Memory.from_blocks([[0x100, b'xab'], [0x104, b'cabc']])
        >>> find_pattern(memory, b'abc')
        261
        >>> find_pattern(memory, b'abca') is None
        True
    """

    if not pattern:
        raise ValueError('empty pattern')

    address = memory.find(bytes(pattern))
    if address < 0:
        return None
    return address


def read_bootloader_version(memory: Memory) -> Optional[BootloaderVersion]:
    r"""Reads the bootloader version from a memory image.

    Args:
        memory (:class:`bytesparse.Memory`):
            Memory image holding the bootloader.

    Returns:
        :class:`BootloaderVersion`: Version numbers; ``None`` if either the
        signature or any version byte is missing.
    """

    signature_address = find_pattern(memory, BOOTLOADER_SIGNATURE)
    if signature_address is None:
        logger.debug('bootloader signature not found')
        return None

    version_address = signature_address + BOOTLOADER_SIGNATURE_SIZE
    major = memory.peek(version_address)
    minor = memory.peek(version_address + 1)
    if major is None or minor is None:
        logger.debug('incomplete bootloader version at 0x%08X', version_address)
        return None

    logger.debug('bootloader signature at 0x%08X', signature_address)
    return BootloaderVersion(major, minor)


def extract_bootloader_version(
    in_path_or_stream: Union[AnyPath, IO],
    verify: bool = True,
) -> Optional[BootloaderVersion]:
    r"""Extracts the bootloader version from an Intel HEX file.

    By default the whole file must be valid and terminated by an *End Of File*
    record, otherwise the call fails.

    Args:
        in_path_or_stream (str or bytes IO):
            Path of the file within the filesystem, or byte input stream.

        verify (bool):
            Loads the file with strict checks, see
            :meth:`ihexprobe.ihex.IhexFile.parse`.
            If false, the file is parsed permissively.

    Returns:
        :class:`BootloaderVersion`: Version numbers; ``None`` if not found.

    Raises:
        OSError: The file cannot be opened.

        :class:`ihexprobe.base.HexFileError`: The file cannot be parsed.
    """

    memory = load_memory(in_path_or_stream, verify=verify)
    return read_bootloader_version(memory)

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

r"""Flash page accounting."""

from typing import IO
from typing import Union

from bytesparse import Memory

from .base import AnyPath
from .ihex import load_memory

DEFAULT_PAGE_SIZE: int = 2048
r"""Default flash page size, as per STM32 devices."""


def compute_pages_used(memory: Memory, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    r"""Counts the flash pages spanned by a memory image.

    All the pages between the one holding the lowest address and the one
    holding the highest address are counted, holes included.

    Args:
        memory (:class:`bytesparse.Memory`):
            Memory image.

        page_size (int):
            Flash page size, in bytes.

    Returns:
        int: Number of pages; zero for an empty image.

    Raises:
        ValueError: Non-positive page size.

    Examples:
        >>> from bytesparse import Memory
        >>> from ihexprobe.pages import compute_pages_used
        >>> compute_pages_used(Memory.from_bytes(b'\0', offset=2047), 2048)
        1
        >>> compute_pages_used(Memory.from_bytes(b'\0\0', offset=2047), 2048)
        2
    """

    page_size = page_size.__index__()
    if page_size <= 0:
        raise ValueError('invalid page size')

    if not memory:
        return 0

    first_page = memory.start // page_size
    last_page = memory.endin // page_size
    return last_page - first_page + 1


def calculate_flash_pages_used(
    in_path_or_stream: Union[AnyPath, IO],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> int:
    r"""Counts the flash pages used by an Intel HEX file.

    Args:
        in_path_or_stream (str or bytes IO):
            Path of the file within the filesystem, or byte input stream.

        page_size (int):
            Flash page size, in bytes.

    Returns:
        int: Number of pages, see :func:`compute_pages_used`.

    Raises:
        OSError: The file cannot be opened.

        :class:`ihexprobe.base.HexFileError`: The file cannot be parsed.
    """

    memory = load_memory(in_path_or_stream)
    return compute_pages_used(memory, page_size)

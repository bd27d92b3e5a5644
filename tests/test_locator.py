import io
from pathlib import Path

import pytest
from bytesparse import Memory

from ihexprobe.base import MalformedRecordError
from ihexprobe.base import SemanticViolationError
from ihexprobe.locator import BOOTLOADER_SIGNATURE
from ihexprobe.locator import BOOTLOADER_SIGNATURE_SIZE
from ihexprobe.locator import BootloaderVersion
from ihexprobe.locator import extract_bootloader_version
from ihexprobe.locator import find_pattern
from ihexprobe.locator import read_bootloader_version

SIGNATURE_ADDRESS = 0x08004000

BOOTLOADER_BUFFER = (
    b':020000040800F2\n'
    b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686EC0\n'
    b':00000001FF\n'
)


@pytest.fixture
def tmppath(tmpdir):
    return Path(str(tmpdir))


def make_memory(*trailing):
    memory = Memory()
    memory.write(SIGNATURE_ADDRESS, BOOTLOADER_SIGNATURE)
    if trailing:
        memory.write(SIGNATURE_ADDRESS + BOOTLOADER_SIGNATURE_SIZE, bytes(trailing))
    return memory


def test_bootloader_signature():
    assert BOOTLOADER_SIGNATURE == bytes([
        0x20, 0x0F, 0xF9, 0xA7, 0x17, 0x7D, 0x4E, 0x99,
        0xDB, 0x53, 0xA2, 0x72, 0xE7, 0xC3, 0xE1, 0xFA,
    ])
    assert BOOTLOADER_SIGNATURE_SIZE == 16
    assert isinstance(BOOTLOADER_SIGNATURE, bytes)


class TestBootloaderVersion:

    def test_fields(self):
        version = BootloaderVersion(0x06, 0x68)
        assert version.major == 6
        assert version.minor == 0x68
        assert version == (6, 0x68)

    def test_text(self):
        assert BootloaderVersion(0x06, 0x68).text == '6.h'
        assert BootloaderVersion(12, ord('a')).text == '12.a'


class TestFindPattern:

    def test_found(self):
        memory = Memory.from_blocks([[0x100, b'xyzabcxyz']])
        assert find_pattern(memory, b'abc') == 0x103

    def test_lowest(self):
        memory = Memory.from_blocks([[0x100, b'abc'], [0x200, b'abc']])
        assert find_pattern(memory, b'abc') == 0x100
        assert find_pattern(memory, bytearray(b'bc')) == 0x101

    def test_hole_disqualifies(self):
        memory = Memory.from_blocks([[0x100, b'xab'], [0x104, b'cabc']])
        assert find_pattern(memory, b'abc') == 0x105

    def test_hole_not_found(self):
        memory = Memory.from_blocks([[0x100, b'ab'], [0x103, b'c']])
        assert find_pattern(memory, b'abc') is None

    def test_not_found(self):
        memory = Memory.from_blocks([[0x100, b'abc']])
        assert find_pattern(memory, b'abd') is None

    def test_too_small(self):
        memory = Memory.from_blocks([[0x100, b'ab']])
        assert find_pattern(memory, b'abc') is None

    def test_empty_memory(self):
        assert find_pattern(Memory(), b'abc') is None

    def test_raises_empty_pattern(self):
        with pytest.raises(ValueError, match='empty pattern'):
            find_pattern(Memory(), b'')

    def test_signature(self):
        memory = make_memory(0x06, 0x68)
        assert find_pattern(memory, BOOTLOADER_SIGNATURE) == SIGNATURE_ADDRESS


class TestReadBootloaderVersion:

    def test_found(self):
        memory = make_memory(0x06, 0x68)
        assert read_bootloader_version(memory) == BootloaderVersion(0x06, 0x68)

    def test_checksum_not_verified(self):
        assert read_bootloader_version(make_memory(0x06, 0x68, 0x6E)) == (0x06, 0x68)
        assert read_bootloader_version(make_memory(0x06, 0x68, 0x00)) == (0x06, 0x68)

    def test_missing_major(self):
        memory = make_memory(0x06, 0x68)
        memory.clear(SIGNATURE_ADDRESS + 16, SIGNATURE_ADDRESS + 17)
        assert read_bootloader_version(memory) is None

    def test_missing_minor(self):
        memory = make_memory(0x06)
        assert read_bootloader_version(memory) is None

    def test_minor_after_hole(self):
        memory = make_memory(0x06)
        memory.poke(SIGNATURE_ADDRESS + 17, 0x68)
        assert read_bootloader_version(memory) == (0x06, 0x68)

    def test_missing_signature(self):
        memory = make_memory(0x06, 0x68)
        memory.poke(SIGNATURE_ADDRESS + 3, 0x00)
        assert read_bootloader_version(memory) is None

    def test_empty(self):
        assert read_bootloader_version(Memory()) is None


class TestExtractBootloaderVersion:

    def test_found(self, tmppath):
        path = tmppath / 'bootloader.hex'
        path.write_bytes(BOOTLOADER_BUFFER)
        version = extract_bootloader_version(str(path))
        assert version == BootloaderVersion(0x06, 0x68)
        assert version.text == '6.h'

    def test_stream(self):
        with io.BytesIO(BOOTLOADER_BUFFER) as stream:
            version = extract_bootloader_version(stream)
        assert version == (0x06, 0x68)

    def test_split_records(self):
        buffer = (
            b':020000040800F2\n'
            b':10400000200FF9A7177D4E99DB53A272E7C3E1FA9F\n'
            b':02401000066840\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) == (0x06, 0x68)

    def test_split_signature(self):
        buffer = (
            b':020000040800F2\n'
            b':08400000200FF9A7177D4E996E\n'
            b':0A400800DB53A272E7C3E1FA066879\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) == (0x06, 0x68)

    def test_signature_hole(self):
        buffer = (
            b':020000040800F2\n'
            b':08400000200FF9A7177D4E996E\n'
            b':08400900DB53A272E7C3E1FAE8\n'
            b':02401000066840\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) is None

    def test_missing_minor(self):
        buffer = (
            b':020000040800F2\n'
            b':11400000200FF9A7177D4E99DB53A272E7C3E1FA0698\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) is None

    def test_missing_major(self):
        buffer = (
            b':020000040800F2\n'
            b':10400000200FF9A7177D4E99DB53A272E7C3E1FA9F\n'
            b':014011006846\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) is None

    def test_missing_version(self):
        buffer = (
            b':020000040800F2\n'
            b':10400000200FF9A7177D4E99DB53A272E7C3E1FA9F\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) is None

    def test_wrong_version_checksum(self):
        buffer = (
            b':020000040800F2\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA0668002E\n'
            b':00000001FF\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) == (0x06, 0x68)

    def test_after_eof_ignored(self):
        buffer = (
            b':00000001FF\n'
            b':020000040800F2\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686EC0\n'
        )
        assert extract_bootloader_version(io.BytesIO(buffer)) is None

    def test_raises_missing_file(self, tmppath):
        with pytest.raises(OSError):
            extract_bootloader_version(str(tmppath / 'missing.hex'))

    def test_raises_undecodable(self):
        buffer = (
            b':020000040800F2\n'
            b':13400000XX\n'
            b':00000001FF\n'
        )
        with pytest.raises(MalformedRecordError):
            extract_bootloader_version(io.BytesIO(buffer))

    def test_raises_missing_eof(self):
        buffer = (
            b':020000040800F2\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686EC0\n'
        )
        with pytest.raises(SemanticViolationError, match='Missing EOF record.'):
            extract_bootloader_version(io.BytesIO(buffer))

    def test_raises_checksum(self):
        buffer = (
            b':020000040800F2\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686E00\n'
        )
        with pytest.raises(MalformedRecordError, match='Checksum mismatch at line 2'):
            extract_bootloader_version(io.BytesIO(buffer))

    def test_raises_extension_size(self):
        buffer = (
            b':0100000408F3\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686EC0\n'
            b':00000001FF\n'
        )
        with pytest.raises(MalformedRecordError,
                           match='Invalid extended linear address at line 1'):
            extract_bootloader_version(io.BytesIO(buffer))

    def test_raises_junk_line(self):
        buffer = b'junk\n' + BOOTLOADER_BUFFER
        with pytest.raises(MalformedRecordError, match="Line 1 does not start with ':'"):
            extract_bootloader_version(io.BytesIO(buffer))

    def test_lenient(self):
        buffer = (
            b'junk\n'
            b':020000040800F2\n'
            b':13400000200FF9A7177D4E99DB53A272E7C3E1FA06686E00\n'
        )
        version = extract_bootloader_version(io.BytesIO(buffer), verify=False)
        assert version == (0x06, 0x68)

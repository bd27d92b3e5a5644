import os
from pathlib import Path

import pytest

from ihexprobe.utils import SUFFIX_SCALE
from ihexprobe.utils import file_exists
from ihexprobe.utils import parse_int


@pytest.fixture
def tmppath(tmpdir):
    return Path(str(tmpdir))


def test_file_exists(tmppath):
    path = tmppath / 'firmware.hex'
    path.write_bytes(b':00000001FF\n')
    assert file_exists(str(path)) is True
    assert file_exists(path) is True


def test_file_exists_missing(tmppath):
    path = str(tmppath / 'missing.hex')
    assert not os.path.exists(path)
    assert file_exists(path) is False


def test_file_exists_directory(tmppath):
    assert file_exists(str(tmppath)) is False


def test_parse_int_fail():
    for value in ('', '0x', 'x', '1.5', '2q', '0bh1'):
        with pytest.raises(ValueError, match='invalid syntax'):
            parse_int(value)

    for value in ('0b2', '0o8'):
        with pytest.raises(ValueError):
            parse_int(value)


def test_parse_int_pass():
    vector = [
        ('0', 0),
        ('2048', 2048),
        ('0x800', 2048),
        ('800h', 2048),
        ('0X800', 2048),
        ('0b100000000000', 2048),
        ('04000', 2048),
        ('0o4000', 2048),
        ('2k', 2048),
        ('2K', 2048),
        ('2kib', 2048),
        ('2kb', 2000),
        ('1m', 1 << 20),
        ('-16', -16),
        (' + 16 ', 16),
        (None, None),
        (2048, 2048),
        (2048.5, 2048),
    ]
    for value, expected in vector:
        assert parse_int(value) == expected


def test_suffix_scale():
    assert SUFFIX_SCALE['k'] == 1024
    assert SUFFIX_SCALE['kb'] == 1000

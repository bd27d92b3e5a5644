import io
import sys
from typing import IO
from typing import Optional

import pytest

from ihexprobe.base import TOKEN_COLOR_CODES
from ihexprobe.base import HexFileError
from ihexprobe.base import MalformedRecordError
from ihexprobe.base import SemanticViolationError
from ihexprobe.base import colorize_tokens


def memory_blocks(memory):
    return [[start, bytes(data)] for start, data in memory.to_blocks()]


class replace_stdin:

    def __init__(self, stream: IO):
        self.buffer = stream
        self.original = sys.stdin

    def __enter__(self):
        sys.stdin = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stdin = self.original


class replace_stdout:

    def __init__(self, stream: Optional[IO] = None):
        if stream is None:
            stream = io.BytesIO()
        self.buffer = stream
        self.original = sys.stdout

    def __enter__(self):
        sys.stdout = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stdout = self.original


class TestHexFileError:

    def test___init__(self):
        error = HexFileError('message', row=3, address=0x1234)
        assert str(error) == 'message'
        assert error.message == 'message'
        assert error.row == 3
        assert error.address == 0x1234

    def test___init___defaults(self):
        error = HexFileError('message')
        assert error.row is None
        assert error.address is None

    def test_hierarchy(self):
        assert issubclass(HexFileError, ValueError)
        assert issubclass(MalformedRecordError, HexFileError)
        assert issubclass(SemanticViolationError, HexFileError)
        assert not issubclass(MalformedRecordError, SemanticViolationError)

    def test_catch_as_value_error(self):
        with pytest.raises(ValueError, match='Checksum mismatch at line 1'):
            raise MalformedRecordError('Checksum mismatch at line 1', row=1)


def test_colorize_tokens():
    codes = TOKEN_COLOR_CODES
    tokens = {
        'begin': b':',
        'count': b'03',
        'address': b'1234',
        'tag': b'00',
        'data': b'616263',
        'checksum': b'91',
        'end': b'\n',
    }
    colorized = colorize_tokens(tokens)
    assert list(colorized.keys()) == ['<', 'begin', 'count', 'address', 'tag',
                                      'data', 'checksum', 'end', '>']
    assert colorized['<'] == codes['<']
    assert colorized['begin'] == codes['begin'] + b':'
    assert colorized['count'] == codes['count'] + b'03'
    assert colorized['address'] == codes['address'] + b'1234'
    assert colorized['tag'] == codes['tag'] + b'00'
    assert colorized['data'] == (codes['data'] + b'61' +
                                 codes['dataalt'] + b'62' +
                                 codes['data'] + b'63')
    assert colorized['checksum'] == codes['checksum'] + b'91'
    assert colorized['end'] == codes['end'] + b'\n'
    assert colorized['>'] == codes['>']


def test_colorize_tokens_no_altdata():
    codes = TOKEN_COLOR_CODES
    colorized = colorize_tokens({'data': b'616263'}, altdata=False)
    assert colorized['data'] == codes['data'] + b'616263'


def test_colorize_tokens_empty():
    codes = TOKEN_COLOR_CODES
    colorized = colorize_tokens({'data': b'', 'end': b''})
    assert colorized == {'<': codes['<'], '>': codes['>']}


def test_colorize_tokens_unknown_key():
    codes = TOKEN_COLOR_CODES
    colorized = colorize_tokens({'junk': b'xyz'})
    assert colorized[''] == codes[''] + b'xyz'

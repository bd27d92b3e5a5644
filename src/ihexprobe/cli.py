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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m ihexprobe` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``ihexprobe.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``ihexprobe.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import logging
from typing import Optional

import click

from .__init__ import __version__
from .base import HexFileError
from .ihex import IhexFile
from .locator import extract_bootloader_version
from .pages import DEFAULT_PAGE_SIZE
from .pages import calculate_flash_pages_used
from .utils import parse_int
from .validator import validate_hex_file


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


BASED_INT = BasedIntParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)
FILE_PATH_ANY = click.Path(dir_okay=False, allow_dash=True)


# ----------------------------------------------------------------------------

def input_path_or_none(input_path: Optional[str]) -> Optional[str]:

    if input_path is None or input_path == '-':
        return None
    return input_path


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ============================================================================

@click.group()
@click.option('--version', is_flag=True, is_eager=True, expose_value=False,
              callback=print_version, help="""
    Prints the package version number.
""")
@click.option('-v', '--verbose', is_flag=True, help="""
    Logs debug messages onto the standard error.
""")
def main(verbose: bool) -> None:
    """
    A set of command line utilities to inspect Intel HEX firmware files.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for the standard input.
    """

    if verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(levelname)s:%(name)s: %(message)s')


# ----------------------------------------------------------------------------

@main.command()
@click.option('--color', is_flag=True, help="""
    Colorizes the record fields.
""")
@click.argument('infile', type=FILE_PATH_IN, required=False)
def dump(
    color: bool,
    infile: str,
) -> None:
    r"""Prints the records of a file.

    Records are parsed permissively, up to the End Of File record.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    file = IhexFile.load(input_path_or_none(infile))

    for record in file.records:
        click.echo(record.to_bytestr(color=color), nl=False)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-p', '--page-size', type=BASED_INT, default=DEFAULT_PAGE_SIZE,
              show_default=True, help="""
    Flash page size, in bytes.
""")
@click.argument('infile', type=FILE_PATH_IN, required=False)
def pages(
    page_size: int,
    infile: str,
) -> None:
    r"""Counts the flash pages used by a file.

    All the pages between the lowest and the highest address are counted,
    holes included.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    if page_size <= 0:
        raise click.BadParameter('must be positive', param_hint='--page-size')

    count = calculate_flash_pages_used(input_path_or_none(infile), page_size)
    click.echo(str(count))


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infile', type=FILE_PATH_ANY, required=False)
def validate(
    infile: str,
) -> None:
    r"""Validates a file.

    Nothing is printed for a valid file.
    Otherwise, the first violation is printed, with exit code 1.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    result = validate_hex_file(input_path_or_none(infile))
    if not result:
        raise click.ClickException(result.message)


# ----------------------------------------------------------------------------

@main.command()
@click.option('--lenient', is_flag=True, help="""
    Parses permissively, skipping lines without record marker and not
    requiring the End Of File record.
""")
@click.argument('infile', type=FILE_PATH_IN, required=False)
def version(
    lenient: bool,
    infile: str,
) -> None:
    r"""Extracts the bootloader version of a file.

    It prints the major version number, the minor version character code,
    and the human readable version (e.g. ``6 104 6.h``).

    The whole file must be valid, unless `--lenient` is given.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input.
    """

    try:
        found = extract_bootloader_version(input_path_or_none(infile), verify=not lenient)
    except HexFileError as exc:
        raise click.ClickException(str(exc))

    if found is None:
        raise click.ClickException('bootloader version not found')

    click.echo(f'{found.major} {found.minor} {found.text}')

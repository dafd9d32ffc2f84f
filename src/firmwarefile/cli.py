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

  - When you run `python -m firmwarefile` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``firmwarefile.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``firmwarefile.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

from typing import Callable
from typing import Mapping
from typing import Optional
from typing import Type

import click
import colorama

from .__init__ import __version__
from .__init__ import loader_types
from .base import BaseLoader
from .base import guess_format_name
from .memory import MemoryImage
from .utils import hexlify
from .utils import parse_int

TOKEN_COLOR_CODES: Mapping[str, str] = {
    '':         colorama.Style.RESET_ALL,
    'address':  colorama.Fore.RED,
    'endex':    colorama.Fore.YELLOW,
    'size':     colorama.Fore.BLUE,
    'data':     colorama.Fore.CYAN,
}


class BasedIntParamType(click.ParamType):
    name = 'integer'

    def convert(self, value, param, ctx):
        try:
            return parse_int(value)
        except ValueError:
            self.fail(f'invalid integer: {value!r}', param, ctx)


class SizeIntParamType(click.ParamType):
    name = 'size'

    def convert(self, value, param, ctx):
        try:
            i = parse_int(value)
            if i < 0:
                raise ValueError()
            return i
        except ValueError:
            self.fail(f'invalid size: {value!r}', param, ctx)


BASED_INT = BasedIntParamType()
SIZE_INT = SizeIntParamType()

FILE_PATH_IN = click.Path(dir_okay=False, allow_dash=True, readable=True, exists=True)

FORMAT_CHOICE = click.Choice(list(sorted(loader_types.keys())))

DATA_FMT_FORMATTERS: Mapping[str, Callable[[bytes], bytes]] = {
    'hex': lambda b: hexlify(b, upper=False),
    'HEX': lambda b: hexlify(b, upper=True),
}

DATA_FMT_CHOICE = click.Choice(list(DATA_FMT_FORMATTERS.keys()))


# ----------------------------------------------------------------------------

def guess_input_type(
    input_path: Optional[str],
    input_format: Optional[str] = None,
) -> Type[BaseLoader]:

    if input_format:
        input_type = loader_types[input_format]
    elif input_path is None or input_path == '-':
        raise ValueError('standard input requires input format')
    else:
        name = guess_format_name(input_path)
        input_type = loader_types[name]
    return input_type


def load_image(
    input_path: Optional[str],
    input_format: Optional[str] = None,
) -> MemoryImage:
    r"""Loads a firmware image for a command.

    Any loading failure is reported as a :class:`click.ClickException`.

    Args:
        input_path (str):
            Path of the input file; ``-`` or ``None`` for the standard input.

        input_format (str):
            Name of the input format, within :data:`loader_types`.

    Returns:
        :class:`MemoryImage`: Loaded firmware image.

    Raises:
        click.ClickException: Loading failed.
    """

    if input_path == '-':
        input_path = None

    try:
        input_type = guess_input_type(input_path, input_format)
        return input_type.load(input_path)
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def colorize(text: str, key: str, color: bool = False) -> str:

    if color:
        text = f'{TOKEN_COLOR_CODES[key]}{text}{TOKEN_COLOR_CODES[""]}'
    return text


def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


# ============================================================================

@click.group()
@click.option('-V', '--version', is_flag=True, is_eager=True,
              expose_value=False, callback=print_version, help="""
    Prints the package version number.
""")
def main() -> None:
    """
    A set of command line utilities to inspect firmware files.

    Being built with `Click <https://click.palletsprojects.com/en/stable/>`_, all the
    commands follow POSIX-like syntax rules, as well as reserving the virtual
    file path ``-`` for the standard input.
    """


# ----------------------------------------------------------------------------

@main.command()
@click.option('-i', '--input-format', type=FORMAT_CHOICE, help="""
    Forces the input file format.
    Required for the standard input.
""")
@click.option('--color', is_flag=True, help="""
    Highlights addresses and sizes.
""")
@click.argument('infile', type=FILE_PATH_IN)
def info(
    input_format: Optional[str],
    color: bool,
    infile: str,
) -> None:
    r"""Prints the memory blocks of a firmware file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input; input format required.
    """

    image = load_image(infile, input_format)

    for block in image.blocks:
        start = block.start_address
        size = block.size
        endex = block.endex
        text = (
            f'Memory block: '
            f'StartAddress={colorize(f"0x{start:08X}", "address", color)} '
            f'EndAddress={colorize(f"0x{endex:08X}", "endex", color)} '
            f'Size={colorize(f"0x{size:X} ({size:d})", "size", color)}'
        )
        click.echo(text, color=color)


# ----------------------------------------------------------------------------

# noinspection PyShadowingBuiltins
@main.command()
@click.option('-i', '--input-format', type=FORMAT_CHOICE, help="""
    Forces the input file format.
    Required for the standard input.
""")
@click.option('-f', '--format', 'format', type=DATA_FMT_CHOICE,
              default='HEX', show_default=True, help="""
    Output data format.
""")
@click.option('-s', '--start', type=BASED_INT, required=True, help="""
    Address of the first byte to read.
""")
@click.option('-n', '--size', type=SIZE_INT, required=True, help="""
    Number of bytes to read.
""")
@click.argument('infile', type=FILE_PATH_IN)
def read(
    input_format: Optional[str],
    format: str,
    start: int,
    size: int,
    infile: str,
) -> None:
    r"""Prints a data range of a firmware file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input; input format required.

    The whole range must be defined within a single memory block.
    """

    image = load_image(infile, input_format)

    try:
        data = image.get_data(start, size)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    if data is None:
        raise click.ClickException('data not fully defined')

    formatter = DATA_FMT_FORMATTERS[format]
    click.echo(formatter(data).decode())


# ----------------------------------------------------------------------------

@main.command()
@click.option('-i', '--input-format', type=FORMAT_CHOICE, help="""
    Forces the input file format.
    Required for the standard input.
""")
@click.argument('infile', type=FILE_PATH_IN)
def validate(
    input_format: Optional[str],
    infile: str,
) -> None:
    r"""Validates a firmware file.

    ``INFILE`` is the path of the input file.
    Set to ``-`` to read from standard input; input format required.

    Exits with a non-zero status, printing the error, if the file is invalid.
    """

    load_image(infile, input_format)

"""
rvasm - Assembler Command-Line Interface
========================================

This module implements the command-line interface for the assembler.

Usage Examples
--------------
Basic assembly (writes prog.bin):
    $ rvasm prog.s

With output file:
    $ rvasm prog.s -o image.bin

Print the image as binary words:
    $ rvasm prog.s -f binary

Custom instruction set, defines and base address:
    $ rvasm -s rv32i.yaml -s ext.yaml -D STACK=0x8000 -b 0x8000_0000 prog.s

Verbose mode:
    $ rvasm -v prog.s

Environment
-----------
RVASM_BASE_ADDRESS, RVASM_MAX_IMAGE_SIZE and RVASM_SPEC_PATH provide
defaults (see rvasm.config); command-line options override them.
"""

from pathlib import Path
from typing import Optional
import logging
import re

import click

from rvasm import __version__
from rvasm.assembler import Assembler
from rvasm.cli.errors import handle_cli_exception
from rvasm.config import AssemblerConfig
from rvasm.numbers import parse_number
from rvasm.output import OUTPUT_FORMATS, format_binary_words

logger = logging.getLogger(__name__)

# Same characters the lexer accepts in identifiers
SYMBOL_NAME = re.compile(r"[A-Za-z._][A-Za-z0-9._]*")


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def parse_define(definition: str) -> tuple[str, int]:
    """
    Parse a -D option (NAME=VALUE, or NAME alone for 1).

    Raises:
        click.BadParameter: If the name is not a valid symbol name or the
            value is not a valid integer literal
    """
    name, _, value_str = definition.partition("=")
    name = name.strip()
    if not SYMBOL_NAME.fullmatch(name):
        raise click.BadParameter(f"invalid symbol name in -D {definition}")

    if "=" not in definition:
        return name, 1

    try:
        return name, parse_number(value_str)
    except ValueError as e:
        raise click.BadParameter(f"invalid value in -D {definition}: {e}") from None


def _parse_base(ctx, param, value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return parse_number(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: input.bin for flat, stdout for binary)",
)
@click.option(
    "-f", "--format", "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="flat",
    show_default=True,
    help="flat: raw image bytes. binary: one line of 32 binary digits per word",
)
@click.option(
    "-s", "--spec",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Instruction definition file (can be repeated; later files override)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define symbol (format: NAME=VALUE)",
)
@click.option(
    "-b", "--base",
    callback=_parse_base,
    help="Base address of the image (default: 0)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="rvasm")
def main(
    input_file: Path,
    output: Optional[Path],
    output_format: str,
    spec: tuple[Path, ...],
    define: tuple[str, ...],
    base: Optional[int],
    verbose: bool,
) -> None:
    """
    Assemble RISC-V-family source code into a flat binary image.

    INPUT_FILE is the assembly source file to assemble.

    \b
    Examples:
        rvasm prog.s                 # Outputs prog.bin
        rvasm prog.s -o out.bin      # Specify output file
        rvasm prog.s -f binary       # Print words as binary digits
        rvasm -D DEBUG=1 prog.s      # Define symbol
    """
    setup_logging(verbose)

    try:
        config = AssemblerConfig.from_env()
        if base is not None:
            config.base_address = base
        if spec:
            config.spec_paths = list(spec)

        defines = dict(parse_define(defn) for defn in define)

        asm = Assembler(config=config, defines=defines)
        logger.debug(f"Instruction set: {asm.spec.name}")

        code = asm.assemble_file(input_file)

        if output is None and output_format == "binary":
            if code:
                click.echo(format_binary_words(code))
        else:
            output_file = output if output is not None else input_file.with_suffix(".bin")
            asm.write_binary(output_file, output_format)

        logger.debug(
            f"Assembly complete: {len(code)} bytes at 0x{asm.get_origin():X}, "
            f"{len(asm.get_symbols())} symbols"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Definition")


if __name__ == "__main__":
    main()

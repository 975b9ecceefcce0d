"""
RISC-V Assembler - Main Interface
=================================

This module provides the main Assembler class, which is the primary
interface for assembling source code. It coordinates the lexer, parser
and code generator to produce a flat binary image.

Example Usage
-------------
>>> from rvasm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> asm.assemble_string('''
...     .org 0x100
... start:
...     addi a0, zero, 5
...     j start
... ''')
>>>
>>> code = asm.get_code()
>>> print(f"Generated {len(code)} bytes")
>>>
>>> asm.write_binary("start.bin")

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ rvasm start.s -o start.bin

Options:
    -o, --output FILE      Output file
    -f, --format FORMAT    flat (default) or binary
    -s, --spec FILE        Instruction definition file (repeatable)
    -D, --define SYM=VAL   Pre-define symbol
    -b, --base ADDR        Base address of the image
    -v, --verbose          Verbose output
"""

from pathlib import Path
from typing import Optional
import logging

from rvasm.assembler.parser import parse_source
from rvasm.assembler.codegen import CodeGenerator
from rvasm.config import AssemblerConfig
from rvasm.errors import AssemblerError
from rvasm.isa import InstructionSpec, default_spec, load_spec
from rvasm.output import write_output

logger = logging.getLogger(__name__)


class Assembler:
    """
    Main assembler class.

    One Assembler holds one instruction specification, one configuration
    and a set of predefined symbols; it can assemble any number of sources
    in turn. The results of the most recent run are available through
    get_code() and get_symbols().

    Attributes:
        spec: The instruction specification in use
        config: The assembler configuration in use
    """

    def __init__(
        self,
        spec: Optional[InstructionSpec] = None,
        config: Optional[AssemblerConfig] = None,
        defines: Optional[dict[str, int]] = None,
    ):
        """
        Initialize the assembler.

        Args:
            spec: Instruction specification. If None, the files listed in
                  config.spec_paths are loaded, or the bundled RV32I
                  definition when there are none.
            config: Assembler configuration (defaults if None)
            defines: Pre-defined symbols (name -> value)
        """
        self.config = config or AssemblerConfig()

        if spec is None:
            if self.config.spec_paths:
                spec = load_spec(*self.config.spec_paths)
            else:
                spec = default_spec()
        self.spec = spec

        self._codegen = CodeGenerator(self.spec, self.config)
        self._defines: dict[str, int] = {}
        for name, value in (defines or {}).items():
            self.define_symbol(name, value)

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a symbol (like -D on command line).

        Args:
            name: Symbol name
            value: Symbol value
        """
        self._defines[name] = value
        self._codegen.define_symbol(name, value)

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source code from a string.

        The assembly pipeline is:
        1. Parse source into a program tree (lexer -> parser)
        2. Generate code (code generator, two passes)

        Args:
            source: Assembly source code
            filename: Virtual filename for error messages

        Returns:
            The flat image

        Raises:
            AssemblerError: If assembly fails
        """
        logger.info(f"Assembling {filename} for {self.spec.name}")

        try:
            root = parse_source(source, self.spec, filename)
        except AssemblerError:
            self._codegen.clear()
            raise
        logger.debug(f"Parsed {len(root.items)} labels and instructions")

        try:
            code = self._codegen.generate(root)
        except AssemblerError as e:
            e.attach_source(source.splitlines())
            raise
        logger.info(f"Generated {len(code)} bytes")

        return code

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Assemble source code from a file.

        Args:
            filepath: Path to assembly source file

        Returns:
            The flat image

        Raises:
            AssemblerError: If assembly fails
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        source = filepath.read_text()
        return self.assemble_string(source, str(filepath))

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_code(self) -> bytes:
        """Get the image from the most recent run."""
        return self._codegen.get_code()

    def get_origin(self) -> int:
        """Address of the first image byte."""
        return self._codegen.get_origin()

    def get_symbols(self) -> dict[str, int]:
        """
        Get the symbol table.

        Returns:
            Dictionary mapping qualified symbol names to values
        """
        return self._codegen.get_symbols()

    def write_binary(self, filepath: str | Path, output_format: str = "flat") -> None:
        """
        Write the image to a file.

        Args:
            filepath: Output file path
            output_format: "flat" for raw bytes, "binary" for one line of
                           binary digits per word
        """
        code = self.get_code()
        write_output(filepath, code, output_format)
        logger.info(f"Wrote {len(code)} bytes to {filepath} ({output_format})")


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(
    source: str,
    spec: Optional[InstructionSpec] = None,
    *,
    filename: str = "<input>",
    config: Optional[AssemblerConfig] = None,
) -> bytes:
    """
    Convenience function to assemble source code.

    Args:
        source: Assembly source code
        spec: Instruction specification (bundled RV32I if None)
        filename: Virtual filename for errors
        config: Assembler configuration

    Returns:
        The flat image

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(spec, config).assemble_string(source, filename)


def assemble_file(
    filepath: str | Path,
    spec: Optional[InstructionSpec] = None,
    *,
    config: Optional[AssemblerConfig] = None,
) -> bytes:
    """
    Convenience function to assemble a file.

    Args:
        filepath: Path to source file
        spec: Instruction specification (bundled RV32I if None)
        config: Assembler configuration

    Returns:
        The flat image

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(spec, config).assemble_file(filepath)

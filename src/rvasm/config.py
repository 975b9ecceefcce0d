"""
rvasm Configuration
===================

Assembler settings that are not part of the source text. Configuration
can come from:
- Default values (defined here)
- Environment variables
- Command-line options (the CLI overrides the environment)

Environment Variables
---------------------
| Variable              | Field           | Example                  |
|-----------------------|-----------------|--------------------------|
| RVASM_BASE_ADDRESS    | base_address    | 0x8000_0000              |
| RVASM_MAX_IMAGE_SIZE  | max_image_size  | 0x10000                  |
| RVASM_SPEC_PATH       | spec_paths      | base.yaml:ext.yaml       |

Numbers accept the same radix prefixes as the assembler (0x, 0o, 0b, 0d)
and '_' separators. RVASM_SPEC_PATH is split on os.pathsep.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional
import logging
import os

from rvasm.numbers import parse_number

logger = logging.getLogger(__name__)


# 16 MiB
DEFAULT_MAX_IMAGE_SIZE = 16 * 1024 * 1024


@dataclass
class AssemblerConfig:
    """
    Configuration for one assembler run.

    Attributes:
        base_address: Address of the first byte of the output image; PC
                      starts here and .org may not go below it (default: 0)
        max_image_size: Largest image, in bytes, the assembler will build
                        (default: 16 MiB)
        spec_paths: Instruction definition files, merged in order
                    (default: empty, meaning the bundled RV32I definition)
    """

    base_address: int = 0
    max_image_size: int = DEFAULT_MAX_IMAGE_SIZE
    spec_paths: List[Path] = field(default_factory=list)

    @property
    def end_address(self) -> int:
        """First address past the largest permitted image."""
        return self.base_address + self.max_image_size

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AssemblerConfig":
        """
        Create AssemblerConfig from environment variables.

        Invalid numeric values are logged and ignored.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            AssemblerConfig with values from the environment
        """
        env = os.environ if environ is None else environ
        config = cls()

        if base := env.get("RVASM_BASE_ADDRESS"):
            value = _parse_setting(base, "RVASM_BASE_ADDRESS")
            if value is not None:
                config.base_address = value

        if size := env.get("RVASM_MAX_IMAGE_SIZE"):
            value = _parse_setting(size, "RVASM_MAX_IMAGE_SIZE")
            if value:
                config.max_image_size = value

        if spec_path := env.get("RVASM_SPEC_PATH"):
            config.spec_paths = [Path(p) for p in spec_path.split(os.pathsep) if p]

        return config


def _parse_setting(text: str, variable: str) -> Optional[int]:
    try:
        return parse_number(text)
    except ValueError as e:
        logger.warning(f"Ignoring {variable}={text!r}: {e}")
        return None

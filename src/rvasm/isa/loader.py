"""
Instruction Definition Loader
=============================

Reads instruction-set definition files (YAML) and builds the immutable
InstructionSpec that the assembler consumes.

Several files can be combined: each top-level section (registers,
constants, formats, instructions) is merged key by key, with later files
overriding earlier ones. This lets a project layer a small extension on
top of the bundled RV32I definition:

    spec = load_spec(BUNDLED_RV32I, "my_extension.yaml")

File Format
-----------
See InstructionSpec.from_dict() for the document shape, and
rvasm/isa/data/rv32i.yaml for a complete example.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from rvasm.errors import SpecError
from rvasm.isa.spec import InstructionSpec

logger = logging.getLogger(__name__)

# Definition shipped with the package
BUNDLED_RV32I = Path(__file__).parent / "data" / "rv32i.yaml"

# Sections merged key by key across files
MERGED_SECTIONS = ("registers", "constants", "formats", "instructions")


def read_definition(path: str | Path) -> dict[str, Any]:
    """
    Parse one definition file.

    Args:
        path: YAML file path

    Returns:
        The parsed document

    Raises:
        SpecError: If the file is not valid YAML or not a mapping
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    try:
        document = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise SpecError(f"{path}: invalid YAML syntax: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise SpecError(f"{path}: definition must be a YAML mapping")

    logger.debug(f"Read instruction definition {path}")
    return document


def merge_definitions(documents: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Merge parsed definition documents, later ones taking precedence.

    Scalar top-level keys (such as `name`) are replaced; the sections in
    MERGED_SECTIONS are merged one level deep.
    """
    merged: dict[str, Any] = {section: {} for section in MERGED_SECTIONS}

    for document in documents:
        for key, value in document.items():
            if key in MERGED_SECTIONS:
                if value is None:
                    continue
                if not isinstance(value, dict):
                    raise SpecError(f"'{key}' must be a mapping")
                merged[key].update(value)
            else:
                merged[key] = value

    return merged


def load_spec(*paths: str | Path) -> InstructionSpec:
    """
    Load and merge definition files into an InstructionSpec.

    Args:
        paths: Definition files, in increasing order of precedence.
               With no paths the bundled RV32I definition is used.

    Returns:
        The validated specification

    Raises:
        SpecError: If any file is malformed
    """
    if not paths:
        return default_spec()

    documents = [read_definition(path) for path in paths]
    spec = InstructionSpec.from_dict(merge_definitions(documents))

    logger.debug(
        f"Loaded {spec.name}: {len(spec.mnemonics)} mnemonics, "
        f"{len(spec.register_names)} register names"
    )
    return spec


@lru_cache(maxsize=1)
def default_spec() -> InstructionSpec:
    """The bundled RV32I specification (parsed once per process)."""
    return InstructionSpec.from_dict(read_definition(BUNDLED_RV32I))

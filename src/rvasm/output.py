"""
Output Writers
==============

Writers for an assembled image.

| Format | Content                                                      |
|--------|--------------------------------------------------------------|
| flat   | The raw image bytes, no header                               |
| binary | One line of 32 '0'/'1' characters per little-endian word,    |
|        | most significant bit first                                   |

The binary format is meant for reading and for feeding simple HDL
testbenches ($readmemb); a trailing partial word is zero-padded.
"""

from pathlib import Path
from typing import Iterator


OUTPUT_FORMATS = ("flat", "binary")

WORD_BYTES = 4


def iter_words(data: bytes) -> Iterator[int]:
    """Yield little-endian 32-bit words, zero-padding a partial last word."""
    for offset in range(0, len(data), WORD_BYTES):
        chunk = data[offset:offset + WORD_BYTES]
        yield int.from_bytes(chunk.ljust(WORD_BYTES, b"\x00"), "little")


def format_binary_words(data: bytes) -> str:
    """
    Render an image as binary digits, one word per line.

    >>> format_binary_words(bytes([0x93, 0x00, 0x50, 0x00]))
    '00000000010100000000000010010011'
    """
    return "\n".join(f"{word:032b}" for word in iter_words(data))


def write_flat(filepath: str | Path, data: bytes) -> None:
    Path(filepath).write_bytes(data)


def write_binary_text(filepath: str | Path, data: bytes) -> None:
    text = format_binary_words(data)
    Path(filepath).write_text(text + "\n" if text else "")


def write_output(filepath: str | Path, data: bytes, output_format: str = "flat") -> None:
    """
    Write an image in the given format.

    Raises:
        ValueError: If the format is unknown
    """
    if output_format == "flat":
        write_flat(filepath, data)
    elif output_format == "binary":
        write_binary_text(filepath, data)
    else:
        raise ValueError(f"unknown output format '{output_format}'")

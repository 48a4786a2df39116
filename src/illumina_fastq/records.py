"""
FASTQ record reading.

Provides a minimal four-line FASTQ reader that yields raw records
(identifier, sequence, quality) with an empty metadata store attached.
Identifier parsing happens downstream, see `illumina_fastq.annotate`.
"""

import gzip
import logging
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, TextIO, Union

logger = logging.getLogger(__name__)


class FASTQParseError(Exception):
    """Raised when FASTQ parsing encounters an error."""
    pass


@dataclass
class FastqRecord:
    """
    A single FASTQ record.

    Parameters
    ----------
    identifier : str
        Header line verbatim, including the leading '@' and without the
        line terminator.
    sequence : str
        Sequence line.
    quality : str
        Quality line.
    metadata : dict
        Per-record key-value store, filled in by the annotator.
    """

    identifier: str
    sequence: str
    quality: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Read name: identifier without '@', up to the first whitespace."""
        parts = self.identifier[1:].split(maxsplit=1)
        return parts[0] if parts else ''


def open_fastq(path: Union[PathLike, str]) -> TextIO:
    """Open a FASTQ file for reading text, transparently handling gzip."""
    path = Path(path)
    if path.suffix == '.gz':
        return gzip.open(path, 'rt')
    return open(path, 'r')


def iter_fastq_records(lines: Iterable[str]) -> Iterator[FastqRecord]:
    """
    Lazily parse FASTQ records from an iterable of lines.

    Parameters
    ----------
    lines : iterable of str
        Open text handle or any iterable of lines.

    Yields
    ------
    FastqRecord
        One record per four-line block.

    Raises
    ------
    FASTQParseError
        On a malformed or truncated record. The message carries the
        1-based line number of the offending line.
    """
    block = []
    start_line = 1

    for line_num, line in enumerate(lines, start=1):
        line = line.rstrip('\r\n')

        if not block:
            if not line.strip():
                # Blank lines between/after records
                continue
            start_line = line_num
            if not line.startswith('@'):
                raise FASTQParseError(
                    f"Line {line_num}: expected '@' identifier line, got {line[:50]!r}"
                )

        block.append(line)

        if len(block) == 4:
            yield _make_record(block, start_line)
            block = []

    if block:
        raise FASTQParseError(
            f"Line {start_line}: truncated record ({len(block)} of 4 lines)"
        )


def _make_record(block, start_line: int) -> FastqRecord:
    identifier, sequence, separator, quality = block

    if not separator.startswith('+'):
        raise FASTQParseError(
            f"Line {start_line + 2}: expected '+' separator line, got {separator[:50]!r}"
        )

    if len(sequence) != len(quality):
        raise FASTQParseError(
            f"Line {start_line + 3}: quality length {len(quality)} "
            f"does not match sequence length {len(sequence)}"
        )

    return FastqRecord(identifier=identifier, sequence=sequence, quality=quality)


def read_fastq(path: Union[PathLike, str]) -> Iterator[FastqRecord]:
    """
    Yield records from a FASTQ file (plain or gzipped).

    The file is closed once the generator is exhausted or discarded.
    Call again to restart from the beginning.
    """
    logger.debug(f"Opening {path}")
    with open_fastq(path) as f:
        yield from iter_fastq_records(f)

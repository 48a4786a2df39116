"""
Attach Illumina identifier fields to FASTQ record metadata.
"""

import logging
from typing import Iterable, Iterator, Literal

from .identifier import UnrecognizedIdentifierFormat, classify
from .records import FastqRecord

logger = logging.getLogger(__name__)

ON_ERROR_CHOICES = ('raise', 'skip', 'keep')


def annotate_record(record: FastqRecord) -> FastqRecord:
    """
    Parse the record's identifier and merge its fields into `record.metadata`.

    Existing metadata keys with the same name are overwritten. If the
    identifier is not recognized the record is left untouched.

    Parameters
    ----------
    record : FastqRecord
        Record to annotate in place.

    Returns
    -------
    FastqRecord
        The same record, for chaining.

    Raises
    ------
    UnrecognizedIdentifierFormat
        If the identifier matches neither Illumina grammar.
    """
    # Classify fully before touching the record
    fields = classify(record.identifier)
    record.metadata.update(fields)
    return record


def annotate_records(
    records: Iterable[FastqRecord],
    on_error: Literal['raise', 'skip', 'keep'] = 'raise',
) -> Iterator[FastqRecord]:
    """
    Lazily annotate a stream of records.

    Parameters
    ----------
    records : iterable of FastqRecord
        Records from a FASTQ reader.
    on_error : {'raise', 'skip', 'keep'}, default 'raise'
        What to do with a record whose identifier is not recognized:
        propagate the error, drop the record, or yield it without
        identifier metadata.

    Returns
    -------
    iterator of FastqRecord
        Annotated records, in input order. The policy is checked
        immediately; records are processed as the iterator is consumed.

    Raises
    ------
    ValueError
        If `on_error` is not a known policy.
    """
    if on_error not in ON_ERROR_CHOICES:
        raise ValueError(f"Unknown on_error policy: {on_error}")

    return _annotate_stream(records, on_error)


def _annotate_stream(records: Iterable[FastqRecord], on_error: str) -> Iterator[FastqRecord]:
    n_failed = 0
    for record in records:
        try:
            annotate_record(record)
        except UnrecognizedIdentifierFormat as e:
            if on_error == 'raise':
                raise
            n_failed += 1
            if on_error == 'skip':
                logger.warning(f"Skipping record: {e}")
                continue
            logger.debug(f"Keeping unannotated record: {e}")
        yield record

    if n_failed:
        action = 'skipped' if on_error == 'skip' else 'kept unannotated'
        logger.info(f"{n_failed:,} records with unrecognized identifiers {action}")

"""
illumina-fastq - Illumina read identifier parsing for FASTQ files.

This package reads FASTQ files and extracts the acquisition metadata
that Illumina's CASAVA software encodes in each read identifier, for
both the pre-1.8 and the 1.8+ naming conventions.

Main Classes
------------
IlluminaFASTQ
    Read FASTQ files and collect per-read identifier metadata.

FastqRecord
    A single FASTQ record with a metadata store.

FormatVariant
    Which CASAVA naming convention an identifier follows.

Functions
---------
classify
    Extract the typed fields of a read identifier.
annotate_record
    Merge identifier fields into a record's metadata.
tally_indexes
    Build an index x file read count matrix.

Examples
--------
>>> from illumina_fastq import classify
>>> classify('@HWI-ST1276:73:C1162ACXX:1:1101:1208:2458 1:N:0:CGATGT')['FlowCell']
'C1162ACXX'
>>> from illumina_fastq import IlluminaFASTQ
>>> reader = IlluminaFASTQ(fastq_path='/path/to/fastq')
>>> reader.read()
>>> reader.serialize('/path/to/results')
"""

from .annotate import annotate_record, annotate_records
from .barcodes import correct_index, tally_indexes
from .constants import LEGACY_FIELDS, MODERN_FIELDS
from .identifier import (
    FieldMap,
    FormatVariant,
    UnrecognizedIdentifierFormat,
    classify,
    classify_variant,
    detect_variant,
    field_names,
)
from .illumina import IlluminaFASTQ, load_index_whitelist
from .records import FASTQParseError, FastqRecord, iter_fastq_records, open_fastq, read_fastq

__all__ = [
    # Main classes
    "IlluminaFASTQ",
    "FastqRecord",
    "FormatVariant",
    # Errors
    "FASTQParseError",
    "UnrecognizedIdentifierFormat",
    # Identifier parsing
    "FieldMap",
    "classify",
    "classify_variant",
    "detect_variant",
    "field_names",
    "annotate_record",
    "annotate_records",
    # Reading
    "iter_fastq_records",
    "open_fastq",
    "read_fastq",
    # Convenience functions
    "correct_index",
    "tally_indexes",
    "load_index_whitelist",
    # Constants
    "LEGACY_FIELDS",
    "MODERN_FIELDS",
]

__version__ = "0.1.0"

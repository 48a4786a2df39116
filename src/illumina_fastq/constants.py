"""
Constants for Illumina FASTQ identifier parsing.

Contains the read identifier grammars for the two CASAVA naming conventions
and the metadata field names each one produces.
"""

# Before CASAVA 1.8 (sans whitespace):
# @ Instrument : Lane : Tile : X : Y # Index / PairMember
LEGACY_IDENTIFIER_PATTERN = (
    r"@([^:]+):([0-9]+):([0-9]+):([0-9]+):([0-9]+)#([0-9]+)/([12])"
)

# CASAVA 1.8 and later:
# @ Instrument : Run : FlowCell : Lane : Tile : X : Y  PairMember : IsFiltered : ControlBits : IndexSequence
MODERN_IDENTIFIER_PATTERN = (
    r"@([A-Za-z0-9_-]+):([0-9]+):([A-Za-z0-9]+):([0-9]+):([0-9]+):([0-9]+):([0-9]+)"
    r" ([12]):([YN]):([0-9]+):([ACGT]+)"
)

# Metadata keys in capture-group order
LEGACY_FIELDS = (
    'Instrument',
    'Lane',
    'Tile',
    'X',
    'Y',
    'Index',
    'PairMember',
)

MODERN_FIELDS = (
    'Instrument',
    'Run',
    'FlowCell',
    'Lane',
    'Tile',
    'X',
    'Y',
    'PairMember',
    'IsFiltered',
    'ControlBits',
    'IndexSequence',
)

# Fields kept as text; everything else is an integer except the filter flag
TEXT_FIELDS = frozenset({'Instrument', 'FlowCell', 'IndexSequence'})
FLAG_FIELDS = frozenset({'IsFiltered'})

# Filter flag value meaning "read failed filter"
FILTERED_FLAG = 'Y'

# Signed 32-bit range, as written by CASAVA
MAX_FIELD_VALUE = 2**31 - 1

# FASTQ file extensions picked up when a directory is given
FASTQ_SUFFIXES = ('.fastq', '.fq', '.fastq.gz', '.fq.gz')

# Records processed per file in debug mode
DEBUG_RECORD_LIMIT = 100_000

# Progress logging interval (records)
PROGRESS_INTERVAL = 100_000

"""
Illumina read identifier classification.

Decides which CASAVA naming convention a FASTQ identifier follows and
extracts its fields as typed values.

Before CASAVA 1.8 the identifier reads::

    @HWUSI-EAS100R:6:73:941:1973#0/1

giving Instrument, Lane, Tile, X, Y, Index and PairMember. From 1.8 on::

    @HWI-ST1276:73:C1162ACXX:1:1101:1208:2458 1:N:0:CGATGT

giving Instrument, Run, FlowCell, Lane, Tile, X, Y, PairMember,
IsFiltered, ControlBits and IndexSequence.

The two grammars differ in the character after the y-coordinate ('#'
versus a space), so no identifier can satisfy both.
"""

import enum
import re
from typing import Dict, Optional, Tuple, Union

from .constants import (
    FILTERED_FLAG,
    FLAG_FIELDS,
    LEGACY_FIELDS,
    LEGACY_IDENTIFIER_PATTERN,
    MAX_FIELD_VALUE,
    MODERN_FIELDS,
    MODERN_IDENTIFIER_PATTERN,
    TEXT_FIELDS,
)
from .records import FASTQParseError

FieldValue = Union[str, int, bool]
FieldMap = Dict[str, FieldValue]


class UnrecognizedIdentifierFormat(FASTQParseError):
    """
    Raised when a read identifier matches neither Illumina grammar.

    Also raised when an identifier matches but one of its numeric fields
    does not fit the 32-bit range CASAVA writes.

    Attributes
    ----------
    identifier : str
        The offending raw identifier.
    field : str or None
        Name of the out-of-range field, if that was the cause.
    """

    def __init__(self, identifier: str, field: Optional[str] = None):
        self.identifier = identifier
        self.field = field
        if field is None:
            message = f"Sequence identifier not in Illumina format: {identifier!r}"
        else:
            message = (
                f"Sequence identifier field '{field}' out of range: {identifier!r}"
            )
        super().__init__(message)

    def __reduce__(self):
        # Keep the exception picklable across worker processes
        return (self.__class__, (self.identifier, self.field))


class FormatVariant(enum.Enum):
    """Illumina identifier naming convention."""

    LEGACY = 'legacy'
    MODERN = 'modern'


# Compiled once at import; the import lock makes this a single initialization
_GRAMMARS = (
    (FormatVariant.LEGACY, re.compile(LEGACY_IDENTIFIER_PATTERN), LEGACY_FIELDS),
    (FormatVariant.MODERN, re.compile(MODERN_IDENTIFIER_PATTERN), MODERN_FIELDS),
)


def field_names(variant: FormatVariant) -> Tuple[str, ...]:
    """Ordered metadata field names produced for `variant`."""
    for grammar_variant, _, fields in _GRAMMARS:
        if grammar_variant is variant:
            return fields
    raise ValueError(f"Unknown format variant: {variant}")


def detect_variant(raw: str) -> Optional[FormatVariant]:
    """
    Return the naming convention `raw` follows, or None.

    Only checks the grammars; field values are not decoded, so an
    identifier with an out-of-range number still reports its variant.
    """
    for variant, pattern, _ in _GRAMMARS:
        if pattern.fullmatch(raw):
            return variant
    return None


def classify_variant(raw: str) -> Tuple[FormatVariant, FieldMap]:
    """
    Classify an identifier and extract its fields.

    Parameters
    ----------
    raw : str
        Identifier line including the leading '@'.

    Returns
    -------
    variant : FormatVariant
        The grammar that matched.
    fields : dict
        Field name to value, in grammar order.

    Raises
    ------
    UnrecognizedIdentifierFormat
        If neither grammar matches the whole string, or a numeric field
        exceeds the 32-bit range.
    """
    # Legacy grammar is tried first
    for variant, pattern, fields in _GRAMMARS:
        m = pattern.fullmatch(raw)
        if m is not None:
            return variant, _decode(raw, fields, m.groups())

    raise UnrecognizedIdentifierFormat(raw)


def classify(raw: str) -> FieldMap:
    """
    Extract the typed fields of an Illumina read identifier.

    Examples
    --------
    >>> classify('@HWUSI-EAS100R:6:73:941:1973#0/1')
    {'Instrument': 'HWUSI-EAS100R', 'Lane': 6, 'Tile': 73, 'X': 941, 'Y': 1973, 'Index': 0, 'PairMember': 1}
    """
    _, fields = classify_variant(raw)
    return fields


def _decode(raw: str, names: Tuple[str, ...], values: Tuple[str, ...]) -> FieldMap:
    decoded: FieldMap = {}
    for name, value in zip(names, values):
        if name in TEXT_FIELDS:
            decoded[name] = value
        elif name in FLAG_FIELDS:
            decoded[name] = value == FILTERED_FLAG
        else:
            number = int(value, 10)
            if number > MAX_FIELD_VALUE:
                raise UnrecognizedIdentifierFormat(raw, field=name)
            decoded[name] = number
    return decoded

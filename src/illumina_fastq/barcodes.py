"""
Index (barcode) tallies for demultiplexing summaries.

Counts reads per multiplexing index and FASTQ file, and corrects observed
index sequences to a whitelist of expected barcodes by Hamming distance.
"""

from typing import Iterable, List, Optional, Tuple

import pandas as pd
from rapidfuzz.distance import Hamming
from rapidfuzz.process import extractOne


def tally_indexes(
    indexes: Iterable[str],
    files: Iterable[str],
    whitelist: Optional[List[str]] = None,
    file_list: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Build an index x file read count matrix.

    Parameters
    ----------
    indexes : iterable of str
        Index label of each read.
    files : iterable of str
        File name of each read, parallel to `indexes`.
    whitelist : list of str, optional
        Expected indexes; present as rows even when no read carries them.
    file_list : list of str, optional
        Files to report as columns even when they contributed no reads.

    Returns
    -------
    pd.DataFrame
        Integer counts, rows and columns sorted, index named 'Index'.

    Examples
    --------
    >>> tally_indexes(['CGATGT', 'CGATGT'], ['L001', 'L001'], whitelist=['TTAGGC'])
            L001
    Index
    CGATGT     2
    TTAGGC     0
    """
    reads = pd.DataFrame({'Index': list(indexes), 'File': list(files)})

    if reads.empty:
        counts = pd.DataFrame(dtype=int)
    else:
        counts = reads.groupby(['Index', 'File']).size().unstack(fill_value=0)

    rows = sorted(set(counts.index) | set(whitelist or []))
    columns = sorted(set(counts.columns) | set(file_list or []))
    counts = counts.reindex(index=rows, columns=columns, fill_value=0).astype(int)
    counts.index.name = 'Index'
    counts.columns.name = None

    return counts




def correct_index(
    index: str,
    whitelist: List[str],
    read_error_threshold: int = 1,
) -> Tuple[Optional[str], int]:
    """
    Find the whitelisted barcode closest to an observed index sequence.

    Parameters
    ----------
    index : str
        Observed index sequence.
    whitelist : list of str
        Expected barcodes.
    read_error_threshold : int, default 1
        Maximum Hamming distance for a valid match.

    Returns
    -------
    corrected_index : str or None
        Best matching barcode, or None if no barcode is close enough.
    edit_distance : int
        Hamming distance to the best match (threshold+1 if there is none
        of the same length).

    Examples
    --------
    >>> correct_index('CGATGA', ['CGATGT', 'TTAGGC'])
    ('CGATGT', 1)
    """
    if index in whitelist:
        return index, 0

    # Hamming distance is only defined for equal lengths
    candidates = [w for w in whitelist if len(w) == len(index)]
    if not candidates:
        return None, read_error_threshold + 1

    result = extractOne(
        query=index,
        choices=candidates,
        scorer=Hamming.distance,
    )

    if result is None:
        return None, read_error_threshold + 1

    corrected, edit_distance, _ = result

    if edit_distance > read_error_threshold:
        return None, edit_distance

    return corrected, edit_distance

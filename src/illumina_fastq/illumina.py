"""
Illumina FASTQ reader.

Reads FASTQ files, parses each record's Illumina read identifier and
collects the per-read metadata into a DataFrame. Files are processed in
parallel, one file per worker.
"""

import argparse
import logging
import os
from itertools import islice
from multiprocessing import Pool, cpu_count
from os import PathLike
from pathlib import Path
from typing import Iterator, List, Literal, Optional, Union

import pandas as pd

from .annotate import ON_ERROR_CHOICES, annotate_records
from .barcodes import correct_index, tally_indexes
from .constants import (
    DEBUG_RECORD_LIMIT,
    FASTQ_SUFFIXES,
    FLAG_FIELDS,
    LEGACY_FIELDS,
    MODERN_FIELDS,
    PROGRESS_INTERVAL,
    TEXT_FIELDS,
)
from .records import FASTQParseError, FastqRecord, read_fastq

logger = logging.getLogger(__name__)

# Bucket for reads whose index cannot be determined or corrected
UNDETERMINED = 'Undetermined'


class IlluminaFASTQ:
    """
    FASTQ reader that parses Illumina read identifiers.

    Composes a plain FASTQ record reader with the identifier classifier:
    every record yielded carries its identifier fields in
    `record.metadata`.

    Parameters
    ----------
    fastq_path : PathLike or str
        A FASTQ file, or a directory of FASTQ files (*.fastq, *.fq,
        optionally gzipped).
    on_error : {'raise', 'skip', 'keep'}, default 'raise'
        Policy for records whose identifier is not in Illumina format.
    debug : bool, default False
        Enable debug mode (limits records processed per file).
    num_cores : int, optional
        Number of CPU cores for parallel processing.
        Defaults to (available cores - 2).

    Attributes
    ----------
    metadata_df : pd.DataFrame
        One row per read after calling `read()`: 'File', 'ReadName' and
        the identifier fields.
    index_counts_df : pd.DataFrame
        Reads per index and file after calling `index_counts()`.

    Examples
    --------
    >>> reader = IlluminaFASTQ('/path/to/fastq')
    >>> for record in reader.parse():
    ...     print(record.metadata['Lane'], record.metadata['Tile'])
    >>> reader.read()
    >>> reader.serialize('/path/to/results')
    """

    def __init__(
        self,
        fastq_path: Union[PathLike, str],
        on_error: Literal['raise', 'skip', 'keep'] = 'raise',
        debug: bool = False,
        num_cores: Optional[int] = None,
    ):
        if on_error not in ON_ERROR_CHOICES:
            raise ValueError(f"Unknown on_error policy: {on_error}")

        self._fastq_path = Path(fastq_path)
        self._on_error = on_error
        self._debug = debug

        if self._debug:
            logger.info("Running in DEBUG mode")

        # Determine number of cores
        if num_cores is None:
            if hasattr(os, 'sched_getaffinity'):
                self._num_cores = max(1, len(os.sched_getaffinity(0)) - 2)
            else:
                self._num_cores = max(1, cpu_count() - 2)
        else:
            self._num_cores = num_cores
        logger.info(f"Using {self._num_cores} cores for parallel processing")

        self._find_fastq_files()

        self.metadata_df = pd.DataFrame()
        self.index_counts_df = pd.DataFrame()

    def _find_fastq_files(self) -> None:
        """Locate FASTQ files at the specified path."""
        if not self._fastq_path.exists():
            raise FileNotFoundError(f"FASTQ path does not exist: {self._fastq_path}")

        if self._fastq_path.is_file():
            self._file_list = [str(self._fastq_path)]
        else:
            self._file_list = sorted(
                str(f) for f in self._fastq_path.iterdir()
                if f.is_file() and f.name.endswith(FASTQ_SUFFIXES)
            )

        if not self._file_list:
            raise FASTQParseError(f"No FASTQ files found in {self._fastq_path}")

        logger.info(f"Found {len(self._file_list)} FASTQ files")

    @property
    def files(self) -> List[str]:
        """FASTQ files this reader processes, in order."""
        return list(self._file_list)

    def parse(self, path: Optional[Union[PathLike, str]] = None) -> Iterator[FastqRecord]:
        """
        Lazily yield annotated records.

        Parameters
        ----------
        path : PathLike or str, optional
            A single FASTQ file. If None, all files found at `fastq_path`
            are read in order.

        Yields
        ------
        FastqRecord
            Records with identifier fields in `metadata`.
        """
        paths = [path] if path is not None else self._file_list
        for fn in paths:
            records = annotate_records(read_fastq(fn), on_error=self._on_error)
            if self._debug:
                records = islice(records, DEBUG_RECORD_LIMIT)
            yield from records

    def read(self) -> None:
        """
        Read all FASTQ files and collect per-read metadata.

        Uses multiprocessing to parse files in parallel. Results are
        concatenated, in file order, into `self.metadata_df`.
        """
        arguments = [(fn, self._on_error, self._debug) for fn in self._file_list]

        logger.info(f"Processing {len(arguments)} FASTQ files...")

        if self._num_cores == 1 or len(arguments) == 1:
            frames = [self._read_file(*args) for args in arguments]
        else:
            with Pool(processes=min(self._num_cores, len(arguments))) as pool:
                frames = pool.starmap(self._read_file, arguments)

        frames = [f for f in frames if len(f) > 0]

        if not frames:
            logger.warning("No records obtained from any file")
            self.metadata_df = pd.DataFrame(columns=['File', 'ReadName'])
            return

        self.metadata_df = _cast_field_dtypes(pd.concat(frames, ignore_index=True))

        logger.info(f"Collected metadata for {len(self.metadata_df):,} reads")

    @staticmethod
    def _read_file(
        fastq_fn: str,
        on_error: str,
        debug: bool,
    ) -> pd.DataFrame:
        """
        Parse a single FASTQ file and return its per-read metadata.

        This is a static method to enable multiprocessing.
        """
        file_name = Path(fastq_fn).name
        records = annotate_records(read_fastq(fastq_fn), on_error=on_error)
        if debug:
            records = islice(records, DEBUG_RECORD_LIMIT)

        rows = []
        for record_num, record in enumerate(records, start=1):
            if record_num % PROGRESS_INTERVAL == 0:
                logger.info(f"{file_name}: {record_num:,} reads processed...")

            rows.append({'File': file_name, 'ReadName': record.name, **record.metadata})

        logger.info(f"{file_name}: Complete - {len(rows):,} reads")
        return pd.DataFrame(rows)

    def index_counts(
        self,
        whitelist: Optional[List[str]] = None,
        read_error_threshold: int = 1,
    ) -> pd.DataFrame:
        """
        Count reads per multiplexing index and file.

        The index is the IndexSequence of CASAVA 1.8+ reads and the
        numeric Index of older reads. Reads with no index field are
        counted as 'Undetermined'.

        Parameters
        ----------
        whitelist : list of str, optional
            Expected index sequences. Observed sequences are corrected to
            the nearest barcode within `read_error_threshold`; the rest
            are counted as 'Undetermined'.
        read_error_threshold : int, default 1
            Maximum Hamming distance for barcode correction.

        Returns
        -------
        pd.DataFrame
            Count matrix with indexes as rows and files as columns.
        """
        if self.metadata_df.empty:
            self.read()

        df = self.metadata_df
        sequences = df['IndexSequence'] if 'IndexSequence' in df else [None] * len(df)
        numbers = df['Index'] if 'Index' in df else [None] * len(df)

        indexes = []
        for sequence, number in zip(sequences, numbers):
            if isinstance(sequence, str):
                index = sequence
                if whitelist:
                    index, _ = correct_index(sequence, whitelist, read_error_threshold)
                    index = index or UNDETERMINED
            elif pd.notna(number):
                index = str(int(number))
            else:
                index = UNDETERMINED
            indexes.append(index)

        self.index_counts_df = tally_indexes(
            indexes,
            df['File'],
            whitelist=whitelist,
            file_list=[Path(fn).name for fn in self._file_list],
        )

        logger.info(
            f"Counted {len(indexes):,} reads across {len(self.index_counts_df)} indexes"
        )
        return self.index_counts_df

    def serialize(
        self,
        results_path: Union[PathLike, str],
        format: Literal['excel', 'csv'] = 'csv',
    ) -> None:
        """
        Save results to disk.

        Parameters
        ----------
        results_path : PathLike or str
            Directory to save results.
        format : {'excel', 'csv'}, default 'csv'
            Output format.
        """
        results_path = Path(results_path)
        results_path.mkdir(parents=True, exist_ok=True)

        if format == 'excel':
            self.metadata_df.to_excel(results_path / 'read_metadata.xlsx', index=False)
            if not self.index_counts_df.empty:
                self.index_counts_df.to_excel(results_path / 'index_counts.xlsx')
        else:
            self.metadata_df.to_csv(results_path / 'read_metadata.csv', index=False)
            if not self.index_counts_df.empty:
                self.index_counts_df.to_csv(results_path / 'index_counts.csv')

        logger.info(f"Results saved to {results_path}")

    def print_summary(self) -> None:
        """Print a summary of the parsed data."""
        print(f"FASTQ Path: {self._fastq_path}")
        print(f"FASTQ Files: {len(self._file_list)}")
        print(f"Reads: {len(self.metadata_df):,}")
        if len(self.metadata_df) > 0:
            df = self.metadata_df
            # 'Run' only exists in 1.8+ identifiers, 'Index' only in older ones
            n_modern = int(df['Run'].notna().sum()) if 'Run' in df else 0
            n_legacy = int(df['Index'].notna().sum()) if 'Index' in df else 0
            print(f"CASAVA 1.8+ identifiers: {n_modern:,}")
            print(f"Pre-1.8 identifiers: {n_legacy:,}")
            if 'Lane' in df:
                lanes = sorted(int(v) for v in df['Lane'].dropna().unique())
                print(f"Lanes: {lanes}")


def _cast_field_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    """
    Restore identifier field types after rows are combined.

    Reads missing a field (mixed naming conventions, or unannotated
    records) leave gaps that pandas fills with NaN, upcasting integers to
    float. Integer fields become nullable 'Int64' and the filter flag
    nullable 'boolean'; text fields are left as they are.
    """
    df = df.copy()
    for name in dict.fromkeys(LEGACY_FIELDS + MODERN_FIELDS):
        if name not in df or name in TEXT_FIELDS:
            continue
        df[name] = df[name].astype('boolean' if name in FLAG_FIELDS else 'Int64')
    return df


def load_index_whitelist(whitelist_fn: Union[PathLike, str]) -> List[str]:
    """
    Load expected index sequences.

    Excel (.xlsx) files must contain an 'Index' column; any other file is
    read as plain text with one sequence per line.
    """
    whitelist_fn = Path(whitelist_fn)
    if not whitelist_fn.exists():
        raise FileNotFoundError(f"Index whitelist not found: {whitelist_fn}")

    if whitelist_fn.suffix == '.xls':
        raise ValueError(f"Legacy .xls workbooks are not supported, save as .xlsx: {whitelist_fn}")

    if whitelist_fn.suffix == '.xlsx':
        df = pd.read_excel(
            whitelist_fn,
            sheet_name=0,
            dtype=str,
            header=0,
            engine='openpyxl',
        )
        if 'Index' not in df.columns:
            raise FASTQParseError(f"Index whitelist missing 'Index' column: {whitelist_fn}")
        whitelist = [s.strip().upper() for s in df['Index'].dropna()]
    else:
        with open(whitelist_fn) as f:
            whitelist = [line.strip().upper() for line in f if line.strip()]

    logger.info(f"Index whitelist contains {len(whitelist)} sequences")
    return whitelist


def main():
    """Command-line interface for IlluminaFASTQ."""
    parser = argparse.ArgumentParser(
        description='Parse Illumina read identifiers from FASTQ files'
    )

    parser.add_argument(
        '-f', '--fastq_path',
        required=True,
        help='Path to a FASTQ file or a directory containing FASTQ files',
    )
    parser.add_argument(
        '--results_path',
        required=True,
        help='Path to output directory',
    )
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Enable debug mode',
    )
    parser.add_argument(
        '--on_error',
        choices=list(ON_ERROR_CHOICES),
        default='raise',
        help='What to do with records whose identifier is not in Illumina format',
    )
    parser.add_argument(
        '--num_cores',
        type=int,
        default=None,
        help='Number of CPU cores',
    )
    parser.add_argument(
        '--index_whitelist',
        default=None,
        help='Expected index sequences (Excel with an "Index" column, or one per line)',
    )
    parser.add_argument(
        '--read_error_threshold',
        type=int,
        default=1,
        help='Maximum Hamming distance for index correction',
    )
    parser.add_argument(
        '--format',
        choices=['excel', 'csv'],
        default='csv',
        help='Output format',
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    whitelist = None
    if args.index_whitelist is not None:
        whitelist = load_index_whitelist(args.index_whitelist)

    reader = IlluminaFASTQ(
        fastq_path=args.fastq_path,
        on_error=args.on_error,
        debug=args.debug,
        num_cores=args.num_cores,
    )

    reader.read()
    reader.index_counts(
        whitelist=whitelist,
        read_error_threshold=args.read_error_threshold,
    )
    reader.serialize(args.results_path, format=args.format)
    reader.print_summary()


if __name__ == '__main__':
    main()

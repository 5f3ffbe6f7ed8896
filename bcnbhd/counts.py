#!/usr/bin/env python3

"""
Barcode count tables.

A count table is tab-delimited text with one ``barcode<TAB>count`` line per
distinct barcode. This module reads and writes those tables, tallies barcodes
from FASTQ/FASTA reads, and implements the ``bcnbhd-count`` tool.
"""

import argparse
import logging
import re
import sys
from collections import Counter
from typing import Dict, Iterable, Iterator, List, TextIO, Tuple

from Bio import SeqIO
from tqdm import tqdm

from bcnbhd import __version__

# Unsigned decimal count: no sign, digit separators or padding
COUNT_FIELD = re.compile(r"[0-9]+")


class CountTableError(ValueError):
    """Malformed count table line."""


class SampleCounts:
    """Tabulation of barcode counts in one sample."""

    def __init__(self, counts: Dict[str, int] = None):
        self._counts: Dict[str, int] = dict(counts) if counts else {}

    @classmethod
    def read(cls, handle: Iterable[str]) -> 'SampleCounts':
        """Parse a count table from an iterable of lines.

        Raises CountTableError naming the (1-based) line number and barcode
        for a missing or malformed count, extra fields, or a duplicate barcode.
        Blank lines are only allowed at the end of the table.
        """
        counts = {}
        blank_line_no = None
        for line_no, line in enumerate(handle, start=1):
            line = line.rstrip('\r\n')
            if not line:
                if blank_line_no is None:
                    blank_line_no = line_no
                continue
            if blank_line_no is not None:
                raise CountTableError(f"Missing count line {blank_line_no}: blank line before line {line_no}")
            fields = line.split('\t')
            barcode = fields[0]
            if len(fields) < 2:
                raise CountTableError(f"Missing count line {line_no} barcode {barcode}")
            if len(fields) > 2:
                raise CountTableError(f"Extra fields after count line {line_no} barcode {barcode}: {line!r}")
            count_field = fields[1]
            if count_field.startswith('-') and COUNT_FIELD.fullmatch(count_field[1:]):
                raise CountTableError(f"Negative count line {line_no} barcode {barcode}: {count_field}")
            if not COUNT_FIELD.fullmatch(count_field):
                raise CountTableError(
                    f"Malformed count line {line_no} barcode {barcode}: {count_field!r}")
            if barcode in counts:
                raise CountTableError(f"Duplicate entry line {line_no} barcode {barcode}")
            counts[barcode] = int(count_field)
        return cls(counts)

    @classmethod
    def from_file(cls, filename: str) -> 'SampleCounts':
        with open(filename, 'r') as f:
            try:
                return cls.read(f)
            except CountTableError as e:
                raise CountTableError(f"Reading file {filename}: {e}") from None

    @classmethod
    def from_sequences(cls, sequences: Iterable[str]) -> 'SampleCounts':
        return cls(Counter(sequences))

    @classmethod
    def from_records(cls, records) -> 'SampleCounts':
        """Tally the sequences of Bio.SeqIO records."""
        return cls.from_sequences(str(rec.seq) for rec in records)

    def count_map(self) -> Dict[str, int]:
        """Return a fresh barcode -> count dict, safe to consume by clustering."""
        return dict(self._counts)

    def barcode_count(self, barcode: str) -> int:
        return self._counts.get(barcode, 0)

    @staticmethod
    def barcode_count_vec(samples: Iterable['SampleCounts'], barcode: str) -> List[int]:
        """Counts for one barcode across samples, 0 where it is absent."""
        return [sample.barcode_count(barcode) for sample in samples]

    @staticmethod
    def total_counts(samples: Iterable['SampleCounts']) -> 'SampleCounts':
        total = Counter()
        for sample in samples:
            total.update(sample._counts)
        return SampleCounts(total)

    def __add__(self, other: 'SampleCounts') -> 'SampleCounts':
        return SampleCounts.total_counts([self, other])

    def __len__(self) -> int:
        return len(self._counts)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._counts.items())

    def __eq__(self, other) -> bool:
        return isinstance(other, SampleCounts) and self._counts == other._counts

    def write(self, out: TextIO) -> None:
        for barcode, count in self._counts.items():
            out.write(f"{barcode}\t{count}\n")

    def write_freq_table(self, out: TextIO) -> None:
        """Write times-seen<TAB>number-of-barcodes, ascending by times-seen."""
        freq_counts = Counter(self._counts.values())
        for freq in sorted(freq_counts):
            out.write(f"{freq}\t{freq_counts[freq]}\n")


def guess_format(filename: str) -> str:
    """Pick a Bio.SeqIO format from a filename, defaulting to FASTQ."""
    lowered = filename.lower()
    if lowered.endswith(('.fasta', '.fa', '.fna')):
        return 'fasta'
    return 'fastq'


def read_sequence_counts(filename: str, seq_format: str = None, show_progress: bool = False) -> SampleCounts:
    """Count barcode reads in a FASTQ/FASTA file ('-' reads stdin)."""
    seq_format = seq_format or guess_format(filename)
    handle = sys.stdin if filename == '-' else open(filename, 'r')
    try:
        records = SeqIO.parse(handle, seq_format)
        if show_progress:
            records = tqdm(records, desc="Counting barcodes", unit=" reads")
        counts = SampleCounts.from_records(records)
    finally:
        if handle is not sys.stdin:
            handle.close()
    logging.info(f"Counted {len(counts)} distinct barcodes in {filename}")
    return counts


def main():
    parser = argparse.ArgumentParser(
        description="Count barcode sequences from a FASTQ or FASTA file"
    )
    parser.add_argument("-f", "--fastq", required=True,
                        help="FASTQ/FASTA file of barcode sequences ('-' for stdin)")
    parser.add_argument("-o", "--output", required=True,
                        help="Tab-delimited barcode count table ('-' for stdout)")
    parser.add_argument("--format", choices=["fastq", "fasta"], default=None,
                        help="Input format (default: guessed from the file name)")
    parser.add_argument("--freq", default=None,
                        help="Also write a frequency table (times seen, number of barcodes)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--version", action="version",
                        version=f"bcnbhd {__version__}",
                        help="Show program's version number and exit")

    args = parser.parse_args()

    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format=log_format
    )

    try:
        counts = read_sequence_counts(args.fastq, args.format,
                                      show_progress=args.log_level in ("DEBUG", "INFO"))
    except (ValueError, OSError) as e:
        logging.error(f"Failed to read barcodes from '{args.fastq}': {e}")
        sys.exit(1)

    if args.output == '-':
        counts.write(sys.stdout)
    else:
        with open(args.output, 'w') as f:
            counts.write(f)

    if args.freq:
        with open(args.freq, 'w') as f:
            counts.write_freq_table(f)
        logging.info(f"Wrote frequency table to {args.freq}")


if __name__ == "__main__":
    main()

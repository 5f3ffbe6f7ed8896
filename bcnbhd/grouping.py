#!/usr/bin/env python3

"""
Group paired reads by error-corrected barcode.

The barcode read and the sequence read of each pair come from two FASTQ
files in the same order. Pairs are grouped by barcode, the barcodes are
collapsed into neighborhoods, and every sequence read is written out renamed
to ``<key barcode>_<n>``, so reads whose barcodes differ only by sequencing
errors end up under one name.
"""

import argparse
import logging
import sys
from collections import defaultdict
from itertools import zip_longest
from typing import Dict, Iterable, Iterator, List, TextIO, Tuple

from Bio import SeqIO
from Bio.SeqRecord import SeqRecord
from tqdm import tqdm

from bcnbhd import __version__
from bcnbhd.neighborhood import Neighborhood, gather_neighborhoods
from bcnbhd.tables import write_collapse_tables

ReadPair = Tuple[SeqRecord, SeqRecord]


def base_read_id(read_id: str) -> str:
    """Strip a trailing /1 or /2 mate suffix."""
    if len(read_id) > 2 and read_id[-2] == '/' and read_id[-1] in '12':
        return read_id[:-2]
    return read_id


def pair_records(barcode_records: Iterable[SeqRecord],
                 sequence_records: Iterable[SeqRecord]) -> Iterator[ReadPair]:
    """Zip barcode and sequence reads, checking that they belong together.

    Raises:
        ValueError: when one file runs out before the other, or when read ids
            disagree
    """
    for n, (bc_rec, seq_rec) in enumerate(zip_longest(barcode_records, sequence_records), start=1):
        if bc_rec is None:
            raise ValueError(f"Barcode reads ended before sequence reads at record {n} ({seq_rec.id})")
        if seq_rec is None:
            raise ValueError(f"Sequence reads ended before barcode reads at record {n} ({bc_rec.id})")
        if base_read_id(bc_rec.id) != base_read_id(seq_rec.id):
            raise ValueError(f"Read id mismatch at record {n}: {bc_rec.id} vs {seq_rec.id}")
        yield bc_rec, seq_rec


def group_by_barcode(pairs: Iterable[ReadPair]) -> Dict[str, List[ReadPair]]:
    groups = defaultdict(list)
    for bc_rec, seq_rec in pairs:
        groups[str(bc_rec.seq)].append((bc_rec, seq_rec))
    return dict(groups)


def grouped_neighborhoods(groups: Dict[str, List[ReadPair]],
                          progress=None) -> List[Neighborhood[List[ReadPair]]]:
    """Collapse barcode groups into neighborhoods, largest group first in each.

    groups is consumed.
    """
    nbhds = gather_neighborhoods(groups, progress=progress)
    for nbhd in nbhds:
        nbhd.sort_by_counts()
    nbhds.sort(key=lambda nbhd: nbhd.key_barcode()[0])
    return nbhds


def renamed_reads(nbhds: Iterable[Neighborhood[List[ReadPair]]]) -> Iterator[SeqRecord]:
    for nbhd in nbhds:
        key, _ = nbhd.key_barcode()
        n = 0
        for barcode, pairs in nbhd.barcodes():
            for _, seq_rec in pairs:
                n += 1
                yield SeqRecord(seq_rec.seq, id=f"{key}_{n}",
                                description=f"barcode={barcode}",
                                letter_annotations=dict(seq_rec.letter_annotations))


def write_grouped_fastq(nbhds: List[Neighborhood[List[ReadPair]]], out: TextIO) -> int:
    """Write every sequence read under its neighborhood key; returns the read count."""
    return SeqIO.write(renamed_reads(nbhds), out, "fastq")


def main():
    parser = argparse.ArgumentParser(
        description="Group paired reads under error-corrected barcodes"
    )
    parser.add_argument("-b", "--barcodes", required=True, help="FASTQ file of barcode reads")
    parser.add_argument("-s", "--sequences", required=True, help="FASTQ file of sequence reads")
    parser.add_argument("-o", "--output", required=True,
                        help="Output FASTQ of sequence reads named by key barcode ('-' for stdout)")
    parser.add_argument("--outbase", default=None,
                        help="Also write neighborhood tables of read counts with this base name")
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

    logging.info(f"Pairing reads from {args.barcodes} and {args.sequences}")
    try:
        pairs = pair_records(SeqIO.parse(args.barcodes, "fastq"), SeqIO.parse(args.sequences, "fastq"))
        groups = group_by_barcode(tqdm(pairs, desc="Reading pairs", unit=" pairs"))
    except (ValueError, OSError) as e:
        logging.error(f"{e}")
        sys.exit(1)
    logging.info(f"Found {len(groups)} distinct barcodes")

    with tqdm(total=len(groups), desc="Gathering neighborhoods", unit=" barcodes") as pbar:
        nbhds = grouped_neighborhoods(groups, progress=lambda nbhd: pbar.update(len(nbhd)))

    if args.output == '-':
        n_reads = write_grouped_fastq(nbhds, sys.stdout)
    else:
        with open(args.output, 'w') as f:
            n_reads = write_grouped_fastq(nbhds, f)
    logging.info(f"Wrote {n_reads} reads in {len(nbhds)} neighborhoods")

    if args.outbase:
        write_collapse_tables([nbhd.to_counts() for nbhd in nbhds], args.outbase)


if __name__ == "__main__":
    main()

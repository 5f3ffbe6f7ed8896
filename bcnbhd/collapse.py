#!/usr/bin/env python3

"""
Collapse barcode sequences into one-edit neighborhoods.

Reads barcodes (one per line, FASTQ/FASTA, or a count table), gathers
neighborhoods of one-edit-reachable barcodes and writes three reports:

- ``<base>-nbhd-count.txt``: key barcode and neighborhood total
- ``<base>-barcode-to-nbhd.txt``: each barcode with its key, count, total and fraction
- ``<base>-nbhds.txt``: one row per neighborhood listing every member
"""

import argparse
import logging
import sys
from collections import Counter
from typing import Dict, Iterable, Iterator, List

from Bio import SeqIO
from tqdm import tqdm

from bcnbhd import __version__
from bcnbhd.config import CollapseConfig, INPUT_FORMATS
from bcnbhd.counts import SampleCounts, read_sequence_counts
from bcnbhd.incremental import NeighborhoodIndex
from bcnbhd.neighborhood import Neighborhood, gather_neighborhoods
from bcnbhd.tables import write_collapse_tables


def count_barcode_lines(lines: Iterable[str]) -> Dict[str, int]:
    """Tally barcodes given one per line; blank lines are skipped."""
    return dict(Counter(iter_barcode_lines(lines)))


def iter_barcode_lines(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        barcode = line.rstrip('\r\n')
        if barcode:
            yield barcode


def load_counts(config: CollapseConfig) -> Dict[str, int]:
    if config.input_format in ('fastq', 'fasta'):
        return read_sequence_counts(config.input, config.input_format,
                                    show_progress=config.show_progress).count_map()

    handle = sys.stdin if config.input == '-' else open(config.input, 'r')
    try:
        if config.input_format == 'counts':
            return SampleCounts.read(handle).count_map()
        return count_barcode_lines(handle)
    finally:
        if handle is not sys.stdin:
            handle.close()


def finish_neighborhoods(nbhds: List[Neighborhood[int]], min_total: int = 0) -> List[Neighborhood[int]]:
    """Sort members of each neighborhood, filter small ones, and order by total then key."""
    for nbhd in nbhds:
        nbhd.sort_by_counts()

    if min_total > 0:
        kept = [nbhd for nbhd in nbhds if nbhd.total() >= min_total]
        logging.info(f"Dropped {len(nbhds) - len(kept)} neighborhoods with total below {min_total}")
        nbhds = kept

    nbhds.sort(key=lambda nbhd: (-nbhd.total(), nbhd.key_barcode()[0]))

    singletons = sum(1 for nbhd in nbhds if len(nbhd) == 1)
    logging.info(f"Found {len(nbhds)} neighborhoods ({singletons} singletons)")
    return nbhds


def collapse_counts(bc_counts: Dict[str, int], min_total: int = 0,
                    show_progress: bool = False) -> List[Neighborhood[int]]:
    """Cluster a barcode -> count map into sorted neighborhoods.

    bc_counts is consumed. Each neighborhood is sorted so that its key is the
    most abundant barcode, and the neighborhoods are ordered by total count
    (descending) then key barcode, which makes the output deterministic.
    """
    n_barcodes = len(bc_counts)
    logging.info(f"Gathering neighborhoods for {n_barcodes} distinct barcodes")

    with tqdm(total=n_barcodes, desc="Gathering neighborhoods", unit=" barcodes",
              disable=not show_progress) as pbar:
        nbhds = gather_neighborhoods(bc_counts, progress=lambda nbhd: pbar.update(len(nbhd)))

    return finish_neighborhoods(nbhds, min_total)


def collapse_online(barcodes: Iterable[str], min_total: int = 0,
                    show_progress: bool = False) -> List[Neighborhood[int]]:
    """Assign each barcode read to a neighborhood as it arrives.

    See bcnbhd.incremental for how this differs from collapse_counts.
    """
    index = NeighborhoodIndex()
    for barcode in tqdm(barcodes, desc="Assigning barcodes", unit=" reads", disable=not show_progress):
        index.insert(barcode)
    return finish_neighborhoods(list(index.neighborhoods()), min_total)


def iter_input_barcodes(config: CollapseConfig) -> Iterator[str]:
    handle = sys.stdin if config.input == '-' else open(config.input, 'r')
    try:
        if config.input_format in ('fastq', 'fasta'):
            for rec in SeqIO.parse(handle, config.input_format):
                yield str(rec.seq)
        else:
            yield from iter_barcode_lines(handle)
    finally:
        if handle is not sys.stdin:
            handle.close()


def run_collapse(config: CollapseConfig):
    if config.online:
        nbhds = collapse_online(iter_input_barcodes(config), config.min_total, config.show_progress)
    else:
        bc_counts = load_counts(config)
        if not bc_counts:
            logging.warning("No barcodes found in input. Nothing to collapse.")
        nbhds = collapse_counts(bc_counts, config.min_total, config.show_progress)
    return write_collapse_tables(nbhds, config.output_base, headers=config.write_headers)


def main():
    parser = argparse.ArgumentParser(
        description="Collapse barcode sequences into one-edit neighborhoods"
    )
    parser.add_argument("-i", "--input", default="-",
                        help="Input barcodes ('-' for stdin, default)")
    parser.add_argument("-o", "--outbase", dest="output_base", required=True,
                        help="Base name for output files")
    parser.add_argument("--input-format", choices=list(INPUT_FORMATS), default="lines",
                        help="Input format: one barcode per line (default), fastq, fasta, "
                             "or a barcode<TAB>count table")
    parser.add_argument("--min-total", type=int, default=0,
                        help="Omit neighborhoods with fewer total reads (default: 0, keep all)")
    parser.add_argument("--online", action="store_true",
                        help="Assign barcodes to neighborhoods while reading (order dependent, "
                             "does not merge neighborhoods bridged by later barcodes)")
    parser.add_argument("--headers", action="store_true",
                        help="Write a header line in each output table")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable progress bars")
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
        config = CollapseConfig.from_args(args)
        run_collapse(config)
    except (ValueError, OSError) as e:
        logging.error(f"{e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

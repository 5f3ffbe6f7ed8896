#!/usr/bin/env python3

"""
Tabulate barcode counts across samples.

Each input is a barcode count table for one sample. The output has one row
per barcode and one column per sample, with barcodes ordered by their total
count across samples. Barcodes can be filtered by total count, by number of
samples they occur in, or by their largest single-sample count.
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence, TextIO, Tuple

import numpy as np

from bcnbhd import __version__
from bcnbhd.config import TabulateConfig
from bcnbhd.counts import SampleCounts


def is_omitted(count_vec: Sequence[int],
               mintotal: Optional[int] = None,
               minsamples: Optional[int] = None,
               mininsample: Optional[int] = None) -> bool:
    counts = np.asarray(count_vec)
    if mintotal is not None and counts.sum() < mintotal:
        return True
    if minsamples is not None and np.count_nonzero(counts) < minsamples:
        return True
    if mininsample is not None and (counts.max() if counts.size else 0) < mininsample:
        return True
    return False


def count_matrix(samples: List[SampleCounts]) -> Tuple[List[str], np.ndarray]:
    """Barcodes ordered by total count (descending, then barcode) and their barcodes x samples counts."""
    total = SampleCounts.total_counts(samples)
    barcodes = [bc for bc, _ in sorted(total, key=lambda entry: (-entry[1], entry[0]))]
    matrix = np.zeros((len(barcodes), len(samples)), dtype=np.int64)
    for i, barcode in enumerate(barcodes):
        matrix[i, :] = SampleCounts.barcode_count_vec(samples, barcode)
    return barcodes, matrix


def tabulate(samples: List[Tuple[str, SampleCounts]], out: TextIO,
             mintotal: Optional[int] = None,
             minsamples: Optional[int] = None,
             mininsample: Optional[int] = None,
             omit: Optional[TextIO] = None) -> int:
    """Write the barcode x sample table; returns the number of barcodes omitted."""
    names = [name for name, _ in samples]
    barcodes, matrix = count_matrix([counts for _, counts in samples])

    out.write("\t".join(["barcode"] + names) + "\n")

    omitted = 0
    for barcode, row in zip(barcodes, matrix):
        if is_omitted(row, mintotal, minsamples, mininsample):
            omitted += 1
            if omit is not None:
                omit.write(f"{barcode}\n")
        else:
            out.write("\t".join([barcode] + [str(ct) for ct in row]) + "\n")

    logging.info(f"Tabulated {len(barcodes) - omitted} barcodes across {len(samples)} samples "
                 f"({omitted} omitted)")
    return omitted


def run_tabulate(config: TabulateConfig) -> int:
    samples = []
    for input_file in config.inputs:
        logging.info(f"Reading counts from {input_file}")
        samples.append((input_file, SampleCounts.from_file(input_file)))

    with open(config.output, 'w') as out:
        if config.omitfile:
            with open(config.omitfile, 'w') as omit:
                return tabulate(samples, out, config.mintotal, config.minsamples,
                                config.mininsample, omit)
        return tabulate(samples, out, config.mintotal, config.minsamples, config.mininsample)


def main():
    parser = argparse.ArgumentParser(
        description="Tabulate barcode counts across samples"
    )
    parser.add_argument("inputs", nargs="+", help="Barcode count tables, one per sample")
    parser.add_argument("-o", "--output", required=True, help="Output table")
    parser.add_argument("--mintotal", type=int, default=None,
                        help="Omit barcodes with fewer total counts across all samples")
    parser.add_argument("--minsamples", type=int, default=None,
                        help="Omit barcodes seen in fewer samples")
    parser.add_argument("--mininsample", type=int, default=None,
                        help="Omit barcodes whose highest count in any one sample is lower")
    parser.add_argument("--omitfile", default=None,
                        help="Write omitted barcodes to this file")
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
        run_tabulate(TabulateConfig.from_args(args))
    except (ValueError, OSError) as e:
        logging.error(f"{e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Tab-delimited neighborhood reports.

The row writers only append to an open text stream; opening and closing files
is left to the caller (see write_collapse_tables).
"""

import logging
import os
from typing import Iterable, TextIO, Tuple

from bcnbhd.neighborhood import Neighborhood

BARCODE_COUNTS_HEADER = "barcode\tneighborhood\tcount\ttotal\tfraction"
NBHD_COUNTS_HEADER = "neighborhood\tnum_barcodes\ttotal\tfract_nbhd"
TOTAL_COUNTS_HEADER = "neighborhood\ttotal"

NBHD_COUNT_SUFFIX = "-nbhd-count.txt"
BARCODE_TO_NBHD_SUFFIX = "-barcode-to-nbhd.txt"
NBHDS_SUFFIX = "-nbhds.txt"


def format_fraction(count: int, total: int) -> str:
    return f"{count / total:0.3f}"


def write_total_counts(nbhd: Neighborhood[int], out: TextIO) -> None:
    """key<TAB>total"""
    key, _ = nbhd.key_barcode()
    out.write(f"{key}\t{nbhd.total()}\n")


def write_barcode_counts(nbhd: Neighborhood[int], out: TextIO) -> None:
    """One row per member: member, key, count, total, fraction of total."""
    key, _ = nbhd.key_barcode()
    total = nbhd.total()
    for bc, ct in nbhd.barcodes():
        out.write(f"{bc}\t{key}\t{ct}\t{total}\t{format_fraction(ct, total)}\n")


def write_nbhd_counts(nbhd: Neighborhood[int], out: TextIO) -> None:
    """One row per neighborhood: key, size, total, key fraction, then every member and its count."""
    key, key_count = nbhd.key_barcode()
    total = nbhd.total()
    fields = [key, str(len(nbhd)), str(total), format_fraction(key_count, total)]
    for bc, ct in nbhd.barcodes():
        fields.append(bc)
        fields.append(str(ct))
    out.write("\t".join(fields) + "\n")


def output_filename(output_base: str, suffix: str) -> str:
    """Append suffix to the last component of output_base.

    A trailing separator names the directory itself, so "out/" gives
    "out-nbhds.txt" rather than a hidden file inside out/.

    >>> output_filename("out/sample", "-nbhds.txt")
    'out/sample-nbhds.txt'
    """
    directory, name = os.path.split(os.path.normpath(output_base))
    return os.path.join(directory, name + suffix)


def write_collapse_tables(nbhds: Iterable[Neighborhood[int]], output_base: str,
                          headers: bool = False) -> Tuple[str, str, str]:
    """Write the three neighborhood reports next to output_base.

    Each neighborhood is sorted in place before writing so its key is the
    most abundant member.

    Returns:
        Paths of the total-count, barcode-to-neighborhood and full
        neighborhood tables.
    """
    nbhd_count_path = output_filename(output_base, NBHD_COUNT_SUFFIX)
    barcode_to_nbhd_path = output_filename(output_base, BARCODE_TO_NBHD_SUFFIX)
    nbhds_path = output_filename(output_base, NBHDS_SUFFIX)

    output_dir = os.path.dirname(nbhds_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    written = 0
    with open(nbhd_count_path, 'w') as nbhd_count_out, \
            open(barcode_to_nbhd_path, 'w') as barcode_to_nbhd_out, \
            open(nbhds_path, 'w') as nbhds_out:
        if headers:
            nbhd_count_out.write(TOTAL_COUNTS_HEADER + "\n")
            barcode_to_nbhd_out.write(BARCODE_COUNTS_HEADER + "\n")
            nbhds_out.write(NBHD_COUNTS_HEADER + "\n")

        for nbhd in nbhds:
            nbhd.sort_by_counts()
            write_total_counts(nbhd, nbhd_count_out)
            write_barcode_counts(nbhd, barcode_to_nbhd_out)
            write_nbhd_counts(nbhd, nbhds_out)
            written += 1

    logging.info(f"Wrote {written} neighborhoods to {nbhds_path}")
    return nbhd_count_path, barcode_to_nbhd_path, nbhds_path

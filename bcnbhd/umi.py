#!/usr/bin/env python3

"""
Per-barcode UMI counting and deduplication.

Barcode reads carry their UMI in the FASTQ description as ``umi=SEQUENCE``.
Reads are tallied into barcode -> UMI -> read count. Two clustering passes
can then be applied:

- UMI deduplication: within one barcode, UMIs one edit apart are treated as
  sequencing errors of the same molecular tag and folded into the most
  abundant UMI of their neighborhood.
- Barcode collapsing: barcodes one edit apart are grouped, and the key barcode
  (most distinct UMIs) absorbs the UMI tallies of the other members.
"""

import argparse
import logging
import sys
from collections import Counter
from typing import Dict, Iterator, List, Optional, TextIO, Tuple

import numpy as np
from Bio import SeqIO
from tqdm import tqdm

from bcnbhd import __version__
from bcnbhd.neighborhood import Neighborhood, gather_neighborhoods
from bcnbhd.tables import write_collapse_tables


def find_umi(description: str) -> Optional[str]:
    """Return the token after ``umi=`` in a read description, if any."""
    _, sep, rest = description.partition("umi=")
    if not sep:
        return None
    tokens = rest.split()
    return tokens[0] if tokens else None


class UmiTally:
    """UMI -> read count for a single barcode.

    Weighs by the number of distinct UMIs and merges with ``+`` (union of
    UMIs, read counts summed where they overlap).
    """

    def __init__(self, umis=None):
        self.umis = Counter(umis) if umis else Counter()

    def count_one(self, umi: str, reads: int = 1) -> None:
        self.umis[umi] += reads

    def weight(self) -> int:
        return len(self.umis)

    def __len__(self) -> int:
        return len(self.umis)

    def __add__(self, other: 'UmiTally') -> 'UmiTally':
        merged = UmiTally(self.umis)
        merged.umis.update(other.umis)
        return merged

    def __eq__(self, other) -> bool:
        return isinstance(other, UmiTally) and self.umis == other.umis

    def __repr__(self) -> str:
        return f"UmiTally({dict(self.umis)!r})"

    def read_counts(self) -> np.ndarray:
        """Per-UMI read counts, largest first."""
        return np.sort(np.fromiter(self.umis.values(), dtype=np.int64, count=len(self.umis)))[::-1]

    def total_reads(self) -> int:
        return int(self.read_counts().sum())

    def median_reads(self) -> int:
        """Read count of the middle UMI when sorted largest first (lower median for even sizes)."""
        counts = self.read_counts()
        return int(counts[len(counts) // 2])

    def dedup(self, progress=None) -> 'UmiTally':
        """Fold UMIs one edit apart into the most abundant UMI of their neighborhood."""
        deduped = UmiTally()
        for nbhd in gather_neighborhoods(dict(self.umis), progress=progress):
            nbhd.sort_by_counts()
            key, reads = nbhd.merged()
            deduped.umis[key] = reads
        return deduped


class UmiCounts:
    """Barcode -> UmiTally for a whole sample."""

    def __init__(self, tallies: Dict[str, UmiTally] = None):
        self._tallies: Dict[str, UmiTally] = dict(tallies) if tallies else {}

    def count_one(self, barcode: str, umi: str) -> None:
        tally = self._tallies.get(barcode)
        if tally is None:
            tally = self._tallies[barcode] = UmiTally()
        tally.count_one(umi)

    @classmethod
    def from_records(cls, records) -> 'UmiCounts':
        """Tally Bio.SeqIO barcode records whose descriptions carry ``umi=``."""
        umi_counts = cls()
        for rec in records:
            umi = find_umi(rec.description)
            if umi is None:
                raise ValueError(f"No umi= field in description of read {rec.id}")
            umi_counts.count_one(str(rec.seq), umi)
        return umi_counts

    def tally(self, barcode: str) -> UmiTally:
        return self._tallies.get(barcode, UmiTally())

    def __len__(self) -> int:
        return len(self._tallies)

    def __iter__(self) -> Iterator[Tuple[str, UmiTally]]:
        return iter(self._tallies.items())

    def dedup_umis(self) -> 'UmiCounts':
        return UmiCounts({bc: tally.dedup() for bc, tally in self._tallies.items()})

    def collapse_barcodes(self, progress=None) -> Tuple['UmiCounts', List[Neighborhood[int]]]:
        """Merge barcode neighborhoods into their key barcode.

        Returns:
            The merged counts, and for reporting the sorted neighborhoods with
            each barcode's distinct-UMI count as its payload.
        """
        collapsed = {}
        sizes = []
        for nbhd in gather_neighborhoods(dict(self._tallies), progress=progress):
            tallies = dict(nbhd.barcodes())
            size_nbhd = nbhd.with_mapped_values(UmiTally.weight)
            size_nbhd.sort_by_counts()
            ordered = Neighborhood([(bc, tallies[bc]) for bc, _ in size_nbhd.barcodes()])
            key, merged = ordered.merged()
            collapsed[key] = merged
            sizes.append(size_nbhd)
        logging.info(f"Collapsed {len(self._tallies)} barcodes into {len(collapsed)} neighborhoods")
        return UmiCounts(collapsed), sizes

    def write(self, out: TextIO) -> None:
        """barcode, total reads, distinct UMIs, median reads per UMI, then all per-UMI counts."""
        for barcode, tally in self._tallies.items():
            counts = tally.read_counts()
            count_list = "".join(f"{ct}," for ct in counts)
            out.write(f"{barcode}\t{int(counts.sum())}\t{len(counts)}\t"
                      f"{int(counts[len(counts) // 2])}\t{count_list}\n")


def read_umi_counts(handle: TextIO) -> UmiCounts:
    return UmiCounts.from_records(
        tqdm(SeqIO.parse(handle, "fastq"), desc="Counting UMIs", unit=" reads"))


def main():
    parser = argparse.ArgumentParser(
        description="Count UMIs per barcode, optionally deduplicating near-identical UMIs and barcodes"
    )
    parser.add_argument("-f", "--fastq", required=True,
                        help="FASTQ file of barcode reads with umi=SEQ in the description ('-' for stdin)")
    parser.add_argument("-o", "--output", required=True,
                        help="Tab-delimited per-barcode UMI count table ('-' for stdout)")
    parser.add_argument("--collapse-barcodes", action="store_true",
                        help="Merge barcodes one edit apart into their key barcode")
    parser.add_argument("--dedup-umis", action="store_true",
                        help="Merge UMIs one edit apart within each barcode")
    parser.add_argument("-n", "--neighborhood", dest="nbhd_base", default=None,
                        help="With --collapse-barcodes, write neighborhood tables with this base name")
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
        if args.fastq == '-':
            umi_counts = read_umi_counts(sys.stdin)
        else:
            with open(args.fastq, 'r') as handle:
                umi_counts = read_umi_counts(handle)
    except (ValueError, OSError) as e:
        logging.error(f"Failed to read '{args.fastq}': {e}")
        sys.exit(1)
    logging.info(f"Counted UMIs for {len(umi_counts)} barcodes")

    if args.collapse_barcodes:
        with tqdm(total=len(umi_counts), desc="Collapsing barcodes", unit=" barcodes") as pbar:
            umi_counts, sizes = umi_counts.collapse_barcodes(progress=lambda nbhd: pbar.update(len(nbhd)))
        if args.nbhd_base:
            write_collapse_tables(sizes, args.nbhd_base)
    elif args.nbhd_base:
        logging.warning("--neighborhood has no effect without --collapse-barcodes")

    if args.dedup_umis:
        umi_counts = umi_counts.dedup_umis()
        logging.info("Deduplicated UMIs within each barcode")

    if args.output == '-':
        umi_counts.write(sys.stdout)
    else:
        with open(args.output, 'w') as f:
            umi_counts.write(f)


if __name__ == "__main__":
    main()

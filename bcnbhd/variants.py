"""One-edit variant generation for short DNA barcodes.

Every generator here is lazy and yields plain strings. Variants are only ever
used as membership probes against a dict of observed sequences, so the
occasional duplicate (e.g. an insertion and a substitution that coincide) is
harmless.
"""

from itertools import chain
from typing import Iterator

NUCLEOTIDES = "ACGT"


def substitutions(seq: str) -> Iterator[str]:
    """Yield every single-base substitution of seq over A/C/G/T.

    Positions holding a non-ACGT symbol (e.g. 'N') are replaced by all four
    nucleotides, but no substitution ever produces such a symbol.
    """
    for i, orig in enumerate(seq):
        for nt in NUCLEOTIDES:
            if nt != orig:
                yield seq[:i] + nt + seq[i + 1:]


def insertions(seq: str) -> Iterator[str]:
    """Yield every single-base insertion, 4 * (len(seq) + 1) in total."""
    for i in range(len(seq) + 1):
        for nt in NUCLEOTIDES:
            yield seq[:i] + nt + seq[i:]


def deletions(seq: str) -> Iterator[str]:
    """Yield every single-base deletion, len(seq) in total."""
    for i in range(len(seq)):
        yield seq[:i] + seq[i + 1:]


def one_edit_variants(seq: str) -> Iterator[str]:
    """Chain substitutions, deletions and insertions of seq."""
    return chain(substitutions(seq), deletions(seq), insertions(seq))

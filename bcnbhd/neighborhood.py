"""
Barcode neighborhoods: connected components of observed sequences under the
one-edit relation.

A neighborhood is a cluster of sequences that are presumed to be noisy reads
of the same true barcode or UMI. Two sequences are linked when one is a single
substitution, insertion or deletion away from the other; a neighborhood is
everything reachable through such links, so members may be several edits
apart from each other.

Payloads are generic. The container only needs two things from them:

- a weight, used to pick the canonical (key) member: an ``int`` payload is its
  own weight, an object with a ``weight()`` method reports it, and anything
  sized is weighed by ``len()``
- an additive combination (``+``), used when the key member absorbs the rest
  of the neighborhood
"""

import logging
from functools import reduce
from operator import add
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from bcnbhd.variants import one_edit_variants

T = TypeVar('T')
U = TypeVar('U')


def payload_weight(value) -> int:
    """Return the weight used to rank a payload within its neighborhood."""
    if isinstance(value, int):
        return value
    weight = getattr(value, 'weight', None)
    if callable(weight):
        return weight()
    try:
        return len(value)
    except TypeError:
        raise TypeError(f"Cannot weigh payload of type {type(value).__name__}") from None


class Neighborhood(Generic[T]):
    """Ordered (sequence, payload) members of one error cluster.

    Membership is fixed once clustering finishes, but the order is not
    meaningful until sort_by_counts() has been called. After sorting the
    first member is the key barcode.
    """

    def __init__(self, barcodes: Optional[List[Tuple[str, T]]] = None):
        self._barcodes: List[Tuple[str, T]] = list(barcodes) if barcodes else []

    def insert(self, barcode: str, value: T) -> None:
        self._barcodes.append((barcode, value))

    def barcodes(self) -> Iterator[Tuple[str, T]]:
        return iter(self._barcodes)

    def sequences(self) -> List[str]:
        return [bc for bc, _ in self._barcodes]

    def __len__(self) -> int:
        return len(self._barcodes)

    def __iter__(self) -> Iterator[Tuple[str, T]]:
        return self.barcodes()

    def __repr__(self) -> str:
        return f"Neighborhood({self._barcodes!r})"

    def key_barcode(self) -> Tuple[str, T]:
        """Return the first (sequence, payload) pair.

        Raises IndexError on an empty neighborhood, which clustering never
        produces.
        """
        if not self._barcodes:
            raise IndexError("key_barcode() called on an empty neighborhood")
        return self._barcodes[0]

    def sort_by_counts(self) -> None:
        """Sort members by weight, descending, breaking ties by ascending sequence."""
        self._barcodes.sort(key=lambda entry: (-payload_weight(entry[1]), entry[0]))

    def total(self) -> int:
        return sum(ct for _, ct in self._barcodes)

    def to_counts(self) -> 'Neighborhood[int]':
        """Project list-valued payloads onto their lengths."""
        return Neighborhood([(bc, len(values)) for bc, values in self._barcodes])

    def with_mapped_values(self, func: Callable[[T], U]) -> 'Neighborhood[U]':
        return Neighborhood([(bc, func(value)) for bc, value in self._barcodes])

    def merged(self) -> Tuple[str, T]:
        """Fold every member payload into the key member with ``+``.

        Call after sort_by_counts() so the key is the canonical member.
        """
        key, key_value = self.key_barcode()
        others = [value for _, value in self._barcodes[1:]]
        return key, reduce(add, others, key_value)


def gather_neighborhoods(bc_map: Dict[str, T],
                         progress: Optional[Callable[[Neighborhood[T]], None]] = None
                         ) -> List[Neighborhood[T]]:
    """Partition bc_map into neighborhoods of one-edit-reachable sequences.

    The dict is consumed: every entry is removed exactly once and bc_map is
    empty on return. Pass a copy if the counts are still needed afterwards.

    1. Pop an arbitrary entry and push it onto a work stack.
    2. Pop from the stack, move every one-edit variant still present in
       bc_map onto the stack, and add the popped entry to the neighborhood.
    3. When the stack is empty the neighborhood is complete; repeat until
       bc_map is empty.

    For sequences over ACGT the partition does not depend on dict order; the
    order of neighborhoods and of members within each neighborhood does. N is
    never generated as a variant, so a sequence containing N is only reached from other
    sequences containing N, which makes its membership seed dependent.

    Args:
        bc_map: sequence -> payload, consumed
        progress: optional callable invoked with each finished neighborhood
    """
    neighborhoods = []
    initial_size = len(bc_map)

    while bc_map:
        work_stack = [bc_map.popitem()]
        neighborhood = Neighborhood()

        while work_stack:
            curr, curr_value = work_stack.pop()
            for neighbor in one_edit_variants(curr):
                if neighbor in bc_map:
                    work_stack.append((neighbor, bc_map.pop(neighbor)))
            neighborhood.insert(curr, curr_value)

        neighborhoods.append(neighborhood)
        if progress is not None:
            progress(neighborhood)

    logging.debug(f"Gathered {len(neighborhoods)} neighborhoods from {initial_size} sequences")
    return neighborhoods

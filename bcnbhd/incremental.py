"""Online barcode neighborhoods, built one read at a time.

Unlike gather_neighborhoods, which partitions a complete count map, this
index assigns each incoming barcode as it arrives: an exact match increments
its count, otherwise the first known one-edit variant decides which
neighborhood it joins. Neighborhoods that would be bridged by a later
barcode are not merged, so the result depends on arrival order and may split
a connected component. Use it for streaming input when that is acceptable.

Neighborhoods live in an arena indexed by integer id; each known barcode maps
to the id of its neighborhood.
"""

from typing import Dict, Iterator, List, TextIO

from bcnbhd.neighborhood import Neighborhood
from bcnbhd.tables import write_nbhd_counts
from bcnbhd.variants import one_edit_variants


class NeighborhoodIndex:

    def __init__(self):
        self._nbhds: List[Dict[str, int]] = []
        self._barcode_nbhd: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._nbhds)

    def __contains__(self, barcode: str) -> bool:
        return barcode in self._barcode_nbhd

    def nbhd_id(self, barcode: str) -> int:
        return self._barcode_nbhd[barcode]

    def insert(self, barcode: str) -> int:
        """Count one read of barcode and return the id of its neighborhood."""
        nbhd_id = self._barcode_nbhd.get(barcode)
        if nbhd_id is None:
            for variant in one_edit_variants(barcode):
                nbhd_id = self._barcode_nbhd.get(variant)
                if nbhd_id is not None:
                    break
            else:
                nbhd_id = len(self._nbhds)
                self._nbhds.append({})
            self._barcode_nbhd[barcode] = nbhd_id

        members = self._nbhds[nbhd_id]
        members[barcode] = members.get(barcode, 0) + 1
        return nbhd_id

    def neighborhood(self, nbhd_id: int) -> Neighborhood[int]:
        return Neighborhood(list(self._nbhds[nbhd_id].items()))

    def neighborhoods(self) -> Iterator[Neighborhood[int]]:
        """Neighborhoods in creation order, members in arrival order."""
        for nbhd_id in range(len(self._nbhds)):
            yield self.neighborhood(nbhd_id)

    def write_nbhds(self, out: TextIO) -> None:
        for nbhd in self.neighborhoods():
            nbhd.sort_by_counts()
            write_nbhd_counts(nbhd, out)

    def write_barcode_nbhds(self, out: TextIO) -> None:
        for barcode, nbhd_id in self._barcode_nbhd.items():
            out.write(barcode)
            for bc, ct in self._nbhds[nbhd_id].items():
                out.write(f"\t{bc}\t{ct}")
            out.write("\n")

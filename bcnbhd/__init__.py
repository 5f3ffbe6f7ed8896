"""
bcnbhd: error-tolerant collapsing of DNA barcode and UMI reads.

Observed sequences are grouped into neighborhoods of sequences reachable
through single substitutions, insertions and deletions, and their counts are
reassigned to the most abundant member of each neighborhood.
"""

__version__ = "0.3.0"

from .neighborhood import Neighborhood, gather_neighborhoods
from .counts import SampleCounts, CountTableError
from .umi import UmiCounts, UmiTally
from .collapse import main as collapse_main

__all__ = [
    "Neighborhood",
    "gather_neighborhoods",
    "SampleCounts",
    "CountTableError",
    "UmiCounts",
    "UmiTally",
    "collapse_main",
    "__version__",
]

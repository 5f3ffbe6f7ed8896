"""
Shared pytest fixtures for bcnbhd tests.
"""

import tempfile
from pathlib import Path

import pytest


# Three neighborhoods with totals 10 (ACGT...), 12 (CGTA...) and 23 (GTAC...)
THREE_NBHD_TABLE = """ACGTACGT\t5
ACGTTCGT\t3
ACATACGT\t2
CGTACGTA\t8
CGTACGAA\t4
GTACGTACG\t7
GTACGTCG\t1
GTACGCACG\t9
GTACGCATCG\t6
"""


@pytest.fixture
def three_nbhd_table():
    """Count table text for the three-neighborhood example."""
    return THREE_NBHD_TABLE


@pytest.fixture
def three_nbhd_counts():
    counts = {}
    for line in THREE_NBHD_TABLE.splitlines():
        barcode, count = line.split("\t")
        counts[barcode] = int(count)
    return counts


@pytest.fixture
def barcode_reads(three_nbhd_counts):
    """One barcode per read, in table order."""
    return [bc for bc, ct in three_nbhd_counts.items() for _ in range(ct)]


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="bcnbhd_test_") as tmpdir:
        yield Path(tmpdir)

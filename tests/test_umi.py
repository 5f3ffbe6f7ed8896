#!/usr/bin/env python3
"""
Tests for UMI counting, UMI deduplication and barcode collapsing with UMI payloads.
"""

import io
import sys

import pytest
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from bcnbhd.neighborhood import Neighborhood
from bcnbhd.umi import UmiCounts, UmiTally, find_umi, main


def barcode_record(read_id, barcode, umi):
    rec = SeqRecord(Seq(barcode), id=read_id, description=f"{read_id} umi={umi} sample=1")
    rec.letter_annotations["phred_quality"] = [35] * len(barcode)
    return rec


def test_find_umi():
    assert find_umi("read1 umi=ACGTAC") == "ACGTAC"
    assert find_umi("read1 umi=ACGTAC sample=3") == "ACGTAC"
    assert find_umi("read1 sample=3") is None
    assert find_umi("read1 umi=") is None


class TestUmiTally:

    def test_merge_sums_shared_umis(self):
        a = UmiTally({"AAAA": 2, "CCCC": 1})
        b = UmiTally({"CCCC": 4, "GGGG": 1})
        merged = a + b
        assert merged.umis == {"AAAA": 2, "CCCC": 5, "GGGG": 1}
        # Operands are untouched
        assert a.umis == {"AAAA": 2, "CCCC": 1}

    def test_weight_is_distinct_umis(self):
        assert UmiTally({"AAAA": 10, "CCCC": 1}).weight() == 2

    def test_summary_statistics(self):
        tally = UmiTally({"AAAA": 5, "CCCC": 1, "GGGG": 3, "TTTT": 2})
        assert list(tally.read_counts()) == [5, 3, 2, 1]
        assert tally.total_reads() == 11
        assert tally.median_reads() == 2

    def test_dedup_folds_one_edit_umis(self):
        tally = UmiTally({"ACGTAC": 10, "ACGTAA": 2, "ACGTC": 1, "TTTTTT": 4})
        deduped = tally.dedup()
        assert deduped.umis == {"ACGTAC": 13, "TTTTTT": 4}

    def test_dedup_tie_break_is_lexicographic(self):
        deduped = UmiTally({"CCGT": 3, "ACGT": 3}).dedup()
        assert deduped.umis == {"ACGT": 6}


class TestUmiCounts:

    def test_from_records(self):
        records = [
            barcode_record("r1", "ACGTACGT", "AAAA"),
            barcode_record("r2", "ACGTACGT", "AAAA"),
            barcode_record("r3", "ACGTACGT", "CCCC"),
            barcode_record("r4", "TTGGCCAA", "GGGG"),
        ]
        counts = UmiCounts.from_records(records)
        assert len(counts) == 2
        assert counts.tally("ACGTACGT").umis == {"AAAA": 2, "CCCC": 1}
        assert counts.tally("GGGGGGGG").umis == {}

    def test_from_records_requires_umi(self):
        rec = SeqRecord(Seq("ACGT"), id="r9", description="r9 sample=1")
        with pytest.raises(ValueError) as excinfo:
            UmiCounts.from_records([rec])
        assert "r9" in str(excinfo.value)

    def test_write(self):
        counts = UmiCounts()
        for umi in ["AAAA", "AAAA", "AAAA", "CCCC", "GGGG", "GGGG"]:
            counts.count_one("ACGTACGT", umi)
        out = io.StringIO()
        counts.write(out)
        assert out.getvalue() == "ACGTACGT\t6\t3\t2\t3,2,1,\n"

    def test_collapse_barcodes_merges_into_key(self):
        counts = UmiCounts({
            "ACGTACGT": UmiTally({"AAAA": 1, "CCCC": 1, "GGGG": 1}),
            "ACGTTCGT": UmiTally({"AAAA": 5, "TTTT": 2}),
            "CGTACGTA": UmiTally({"ACAC": 1}),
        })
        collapsed, sizes = counts.collapse_barcodes()

        assert len(collapsed) == 2
        assert collapsed.tally("ACGTACGT").umis == {"AAAA": 6, "CCCC": 1, "GGGG": 1, "TTTT": 2}
        assert collapsed.tally("ACGTTCGT").umis == {}
        assert collapsed.tally("CGTACGTA").umis == {"ACAC": 1}

        by_key = {nbhd.key_barcode()[0]: nbhd for nbhd in sizes}
        assert list(by_key["ACGTACGT"].barcodes()) == [("ACGTACGT", 3), ("ACGTTCGT", 2)]

    def test_collapse_barcodes_leaves_input_unchanged(self):
        counts = UmiCounts({"ACGT": UmiTally({"AAAA": 1}), "ACGA": UmiTally({"CCCC": 1})})
        counts.collapse_barcodes()
        assert len(counts) == 2

    def test_sorting_tallies_directly_matches_size_projection(self):
        nbhd = Neighborhood([("ACGA", UmiTally({"A": 1})), ("ACGT", UmiTally({"A": 1, "C": 1}))])
        nbhd.sort_by_counts()
        assert nbhd.key_barcode()[0] == "ACGT"

    def test_dedup_umis(self):
        counts = UmiCounts({"ACGT": UmiTally({"AAAAAA": 4, "AAAAAT": 1})})
        assert counts.dedup_umis().tally("ACGT").umis == {"AAAAAA": 5}


def test_main(temp_dir, monkeypatch):
    records = [
        barcode_record("r1", "ACGTACGT", "AAAAAA"),
        barcode_record("r2", "ACGTACGT", "AAAAAT"),
        barcode_record("r3", "ACGTACGT", "CCCCCC"),
        barcode_record("r4", "ACGTTCGT", "GGGGGG"),
    ]
    fastq_path = temp_dir / "barcodes.fastq"
    SeqIO.write(records, str(fastq_path), "fastq")
    out_path = temp_dir / "umis.txt"
    nbhd_base = temp_dir / "umi"

    monkeypatch.setattr(sys, "argv", ["bcnbhd-umi", "-f", str(fastq_path), "-o", str(out_path),
                                      "--collapse-barcodes", "--dedup-umis",
                                      "-n", str(nbhd_base)])
    main()

    assert out_path.read_text() == "ACGTACGT\t4\t3\t1\t2,1,1,\n"
    assert (temp_dir / "umi-nbhds.txt").read_text() == \
        "ACGTACGT\t2\t4\t0.750\tACGTACGT\t3\tACGTTCGT\t1\n"


def test_main_reports_missing_input(temp_dir, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["bcnbhd-umi", "-f", str(temp_dir / "absent.fastq"),
                                      "-o", str(temp_dir / "umis.txt")])
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 1

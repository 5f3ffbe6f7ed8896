#!/usr/bin/env python3
"""
Tests for grouping paired reads under neighborhood key barcodes.
"""

import io
import sys

import pytest
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from bcnbhd.grouping import (
    base_read_id,
    group_by_barcode,
    grouped_neighborhoods,
    main,
    pair_records,
    write_grouped_fastq,
)


def fastq_record(read_id, seq):
    rec = SeqRecord(Seq(seq), id=read_id, description="")
    rec.letter_annotations["phred_quality"] = [30] * len(seq)
    return rec


def make_reads(barcodes):
    """Barcode and sequence records for pairs named r1, r2, ..."""
    bc_recs = []
    seq_recs = []
    for n, barcode in enumerate(barcodes, start=1):
        bc_recs.append(fastq_record(f"r{n}/1", barcode))
        seq_recs.append(fastq_record(f"r{n}/2", "ACGT" * 5 + "A" * n))
    return bc_recs, seq_recs


BARCODES = ["AAAACCCC", "GGGGTTTT", "AAAACCCC", "AAAACCCG", "AAAACCCC"]


def test_base_read_id():
    assert base_read_id("read7/1") == "read7"
    assert base_read_id("read7/2") == "read7"
    assert base_read_id("read7/3") == "read7/3"
    assert base_read_id("read7") == "read7"


class TestPairRecords:

    def test_pairs_in_order(self):
        bc_recs, seq_recs = make_reads(BARCODES)
        pairs = list(pair_records(bc_recs, seq_recs))
        assert len(pairs) == len(BARCODES)
        assert all(base_read_id(b.id) == base_read_id(s.id) for b, s in pairs)

    def test_length_mismatch(self):
        bc_recs, seq_recs = make_reads(BARCODES)
        with pytest.raises(ValueError, match="Sequence reads ended"):
            list(pair_records(bc_recs, seq_recs[:-1]))
        with pytest.raises(ValueError, match="Barcode reads ended"):
            list(pair_records(bc_recs[:-1], seq_recs))

    def test_id_mismatch(self):
        bc_recs, seq_recs = make_reads(BARCODES)
        seq_recs[2], seq_recs[3] = seq_recs[3], seq_recs[2]
        with pytest.raises(ValueError, match="record 3"):
            list(pair_records(bc_recs, seq_recs))


def test_grouped_neighborhoods():
    groups = group_by_barcode(pair_records(*make_reads(BARCODES)))
    assert sorted(len(pairs) for pairs in groups.values()) == [1, 1, 3]

    nbhds = grouped_neighborhoods(groups)
    assert groups == {}
    assert [nbhd.key_barcode()[0] for nbhd in nbhds] == ["AAAACCCC", "GGGGTTTT"]
    assert [(bc, ct) for bc, ct in nbhds[0].to_counts().barcodes()] == [("AAAACCCC", 3), ("AAAACCCG", 1)]


def test_write_grouped_fastq():
    nbhds = grouped_neighborhoods(group_by_barcode(pair_records(*make_reads(BARCODES))))
    out = io.StringIO()
    assert write_grouped_fastq(nbhds, out) == 5

    out.seek(0)
    records = list(SeqIO.parse(out, "fastq"))
    assert [rec.id for rec in records] == [
        "AAAACCCC_1", "AAAACCCC_2", "AAAACCCC_3", "AAAACCCC_4", "GGGGTTTT_1"]
    assert records[3].description.endswith("barcode=AAAACCCG")
    # Reads within a barcode keep their input order; r4 carried the error barcode
    assert str(records[3].seq) == "ACGT" * 5 + "A" * 4
    assert records[0].letter_annotations["phred_quality"] == [30] * 21


def test_main(temp_dir, monkeypatch):
    bc_recs, seq_recs = make_reads(BARCODES)
    bc_path = temp_dir / "barcodes.fastq"
    seq_path = temp_dir / "sequences.fastq"
    SeqIO.write(bc_recs, str(bc_path), "fastq")
    SeqIO.write(seq_recs, str(seq_path), "fastq")
    out_path = temp_dir / "grouped.fastq"

    monkeypatch.setattr(sys, "argv", ["bcnbhd-group", "-b", str(bc_path), "-s", str(seq_path),
                                      "-o", str(out_path), "--outbase", str(temp_dir / "grouped")])
    main()

    assert len(list(SeqIO.parse(str(out_path), "fastq"))) == 5
    assert (temp_dir / "grouped-nbhd-count.txt").read_text() == "AAAACCCC\t4\nGGGGTTTT\t1\n"


def test_main_mismatched_inputs(temp_dir, monkeypatch):
    bc_recs, seq_recs = make_reads(BARCODES)
    bc_path = temp_dir / "barcodes.fastq"
    seq_path = temp_dir / "sequences.fastq"
    SeqIO.write(bc_recs, str(bc_path), "fastq")
    SeqIO.write(seq_recs[:2], str(seq_path), "fastq")

    monkeypatch.setattr(sys, "argv", ["bcnbhd-group", "-b", str(bc_path), "-s", str(seq_path),
                                      "-o", str(temp_dir / "grouped.fastq")])
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 1


def test_main_reports_missing_input(temp_dir, monkeypatch):
    bc_recs, _ = make_reads(BARCODES)
    bc_path = temp_dir / "barcodes.fastq"
    SeqIO.write(bc_recs, str(bc_path), "fastq")

    monkeypatch.setattr(sys, "argv", ["bcnbhd-group", "-b", str(bc_path),
                                      "-s", str(temp_dir / "absent.fastq"),
                                      "-o", str(temp_dir / "grouped.fastq")])
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 1

"""Tests for the IlluminaFASTQ reader."""
import gzip

import pandas as pd
import pytest

from illumina_fastq import FASTQParseError, IlluminaFASTQ, UnrecognizedIdentifierFormat, load_index_whitelist

MODERN_FASTQ = (
    "@HWI-ST1276:73:C1162ACXX:1:1101:1208:2458 1:N:0:CGATGT\n"
    "ACGT\n"
    "+\n"
    "IIII\n"
    "@HWI-ST1276:73:C1162ACXX:2:1101:1300:2461 1:Y:0:CGATGA\n"
    "TTGC\n"
    "+\n"
    "IIII\n"
    "@HWI-ST1276:73:C1162ACXX:2:1102:1400:2470 1:N:0:TTAGGC\n"
    "GGCA\n"
    "+\n"
    "IIII\n"
)

LEGACY_FASTQ = (
    "@HWUSI-EAS100R:6:73:941:1973#0/1\n"
    "ACGT\n"
    "+\n"
    "IIII\n"
    "@HWUSI-EAS100R:6:73:950:1980#0/1\n"
    "ACGA\n"
    "+\n"
    "IIII\n"
)

BAD_FASTQ = (
    "@read1\n"
    "ACGT\n"
    "+\n"
    "IIII\n"
) + LEGACY_FASTQ


@pytest.fixture
def fastq_dir(tmp_path):
    (tmp_path / "a_modern.fastq").write_text(MODERN_FASTQ)
    with gzip.open(tmp_path / "b_legacy.fq.gz", "wt") as f:
        f.write(LEGACY_FASTQ)
    (tmp_path / "notes.txt").write_text("not a fastq file\n")
    return tmp_path


def test_finds_fastq_files(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)

    assert [p.rsplit("/", 1)[-1] for p in reader.files] == ["a_modern.fastq", "b_legacy.fq.gz"]


def test_missing_path(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        IlluminaFASTQ(tmp_path / "missing", num_cores=1)


def test_empty_directory(tmp_path) -> None:
    with pytest.raises(FASTQParseError):
        IlluminaFASTQ(tmp_path, num_cores=1)


def test_bad_policy(fastq_dir) -> None:
    with pytest.raises(ValueError):
        IlluminaFASTQ(fastq_dir, on_error="ignore", num_cores=1)


def test_parse_all_files(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)

    records = list(reader.parse())

    assert len(records) == 5
    assert records[0].metadata["Run"] == 73
    assert records[1].metadata["IsFiltered"] is True
    assert records[3].metadata["Instrument"] == "HWUSI-EAS100R"
    assert records[3].metadata["Index"] == 0
    assert "Run" not in records[3].metadata


def test_parse_single_file(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(MODERN_FASTQ)
    reader = IlluminaFASTQ(path, num_cores=1)

    lanes = [record.metadata["Lane"] for record in reader.parse(path)]

    assert lanes == [1, 2, 2]


def test_parse_unrecognized_raises(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(BAD_FASTQ)
    reader = IlluminaFASTQ(path, num_cores=1)

    with pytest.raises(UnrecognizedIdentifierFormat, match="read1"):
        list(reader.parse())


def test_parse_unrecognized_skip(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(BAD_FASTQ)
    reader = IlluminaFASTQ(path, on_error="skip", num_cores=1)

    records = list(reader.parse())

    assert [r.name for r in records] == [
        "HWUSI-EAS100R:6:73:941:1973#0/1",
        "HWUSI-EAS100R:6:73:950:1980#0/1",
    ]


def test_read_metadata_frame(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)

    reader.read()
    df = reader.metadata_df

    assert len(df) == 5
    assert list(df.columns[:2]) == ["File", "ReadName"]
    assert df["File"].tolist() == ["a_modern.fastq"] * 3 + ["b_legacy.fq.gz"] * 2
    assert df["ReadName"].iloc[0] == "HWI-ST1276:73:C1162ACXX:1:1101:1208:2458"
    assert df["Lane"].tolist() == [1, 2, 2, 6, 6]
    assert df["IndexSequence"].iloc[:3].tolist() == ["CGATGT", "CGATGA", "TTAGGC"]
    assert df["Run"].iloc[3:].isna().all()


def test_mixed_conventions_keep_integer_fields(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)

    reader.read()
    df = reader.metadata_df

    for name in ("Run", "Lane", "Tile", "X", "Y", "PairMember", "ControlBits", "Index"):
        assert df[name].dtype == "Int64", name
    assert df["IsFiltered"].dtype == "boolean"
    assert df["Run"].tolist()[:3] == [73, 73, 73]
    assert df["Index"].iloc[3:].tolist() == [0, 0]
    assert df["IsFiltered"].iloc[1]
    assert df["IsFiltered"].iloc[3:].isna().all()


def test_mixed_conventions_csv_has_no_floats(fastq_dir, tmp_path) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)
    reader.read()
    results = tmp_path / "results"

    reader.serialize(results, format="csv")

    lines = (results / "read_metadata.csv").read_text().splitlines()
    assert lines[1] == (
        "a_modern.fastq,HWI-ST1276:73:C1162ACXX:1:1101:1208:2458,"
        "HWI-ST1276,73,C1162ACXX,1,1101,1208,2458,1,False,0,CGATGT,"
    )
    assert lines[4] == (
        "b_legacy.fq.gz,HWUSI-EAS100R:6:73:941:1973#0/1,"
        "HWUSI-EAS100R,,,6,73,941,1973,1,,,,0"
    )


def test_unannotated_rows_keep_integer_fields(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(BAD_FASTQ)
    reader = IlluminaFASTQ(path, on_error="keep", num_cores=1)

    reader.read()
    df = reader.metadata_df

    assert df["Lane"].dtype == "Int64"
    assert df["Lane"].isna().tolist() == [True, False, False]
    assert df["Lane"].iloc[1:].tolist() == [6, 6]
    assert df["Index"].dtype == "Int64"


def test_read_in_parallel(fastq_dir) -> None:
    serial = IlluminaFASTQ(fastq_dir, num_cores=1)
    serial.read()
    parallel = IlluminaFASTQ(fastq_dir, num_cores=2)
    parallel.read()

    pd.testing.assert_frame_equal(serial.metadata_df, parallel.metadata_df)


def test_read_propagates_errors(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(BAD_FASTQ)
    reader = IlluminaFASTQ(path, num_cores=1)

    with pytest.raises(UnrecognizedIdentifierFormat):
        reader.read()


def test_index_counts(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)

    counts = reader.index_counts()

    assert counts.loc["CGATGT", "a_modern.fastq"] == 1
    assert counts.loc["CGATGA", "a_modern.fastq"] == 1
    assert counts.loc["TTAGGC", "a_modern.fastq"] == 1
    assert counts.loc["0", "b_legacy.fq.gz"] == 2
    assert counts.loc["0", "a_modern.fastq"] == 0


def test_index_counts_with_whitelist(fastq_dir) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)
    reader.read()

    counts = reader.index_counts(whitelist=["CGATGT", "ACAGTG"], read_error_threshold=1)

    assert counts.loc["CGATGT", "a_modern.fastq"] == 2
    assert counts.loc["ACAGTG", "a_modern.fastq"] == 0
    assert counts.loc["Undetermined", "a_modern.fastq"] == 1
    assert "CGATGA" not in counts.index


def test_index_counts_unannotated_records(tmp_path) -> None:
    path = tmp_path / "reads.fastq"
    path.write_text(BAD_FASTQ)
    reader = IlluminaFASTQ(path, on_error="keep", num_cores=1)

    counts = reader.index_counts()

    assert counts.loc["Undetermined", "reads.fastq"] == 1
    assert counts.loc["0", "reads.fastq"] == 2


def test_serialize_csv(fastq_dir, tmp_path) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)
    reader.read()
    reader.index_counts()
    results = tmp_path / "results"

    reader.serialize(results, format="csv")

    metadata = pd.read_csv(results / "read_metadata.csv")
    counts = pd.read_csv(results / "index_counts.csv", index_col=0, dtype={"Index": str})
    assert len(metadata) == 5
    assert metadata["Tile"].tolist() == [1101, 1101, 1102, 73, 73]
    assert counts.loc["CGATGT", "a_modern.fastq"] == 1


def test_serialize_excel(fastq_dir, tmp_path) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)
    reader.read()
    results = tmp_path / "results"

    reader.serialize(results, format="excel")

    metadata = pd.read_excel(results / "read_metadata.xlsx", engine="openpyxl")
    assert metadata["FlowCell"].iloc[0] == "C1162ACXX"
    assert not (results / "index_counts.xlsx").exists()


def test_print_summary(fastq_dir, capsys) -> None:
    reader = IlluminaFASTQ(fastq_dir, num_cores=1)
    reader.read()

    reader.print_summary()

    out = capsys.readouterr().out
    assert "Reads: 5" in out
    assert "CASAVA 1.8+ identifiers: 3" in out
    assert "Pre-1.8 identifiers: 2" in out
    assert "Lanes: [1, 2, 6]" in out


def test_load_index_whitelist_text(tmp_path) -> None:
    path = tmp_path / "barcodes.txt"
    path.write_text("cgatgt\n\nTTAGGC\n")

    assert load_index_whitelist(path) == ["CGATGT", "TTAGGC"]


def test_load_index_whitelist_excel(tmp_path) -> None:
    path = tmp_path / "barcodes.xlsx"
    pd.DataFrame({"Sample": ["S1", "S2"], "Index": ["CGATGT", "TTAGGC"]}).to_excel(path, index=False)

    assert load_index_whitelist(path) == ["CGATGT", "TTAGGC"]


def test_load_index_whitelist_rejects_xls(tmp_path) -> None:
    path = tmp_path / "barcodes.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")

    with pytest.raises(ValueError, match=r"\.xlsx"):
        load_index_whitelist(path)


def test_main(fastq_dir, tmp_path, monkeypatch) -> None:
    from illumina_fastq.illumina import main

    results = tmp_path / "out"
    monkeypatch.setattr(
        "sys.argv",
        ["illumina-fastq", "-f", str(fastq_dir), "--results_path", str(results), "--num_cores", "1"],
    )

    main()

    assert (results / "read_metadata.csv").exists()
    assert (results / "index_counts.csv").exists()

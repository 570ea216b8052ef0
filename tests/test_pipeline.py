"""End-to-end tests: file input, the analysis pipeline, the CLI and plotting."""

import warnings

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest
from click.testing import CliRunner

import arraydeg
from arraydeg.cli import ANNOTATED_NAME, DEGS_NAME, FULL_RESULTS_NAME, cli
from arraydeg.config import AnalysisConfig
from arraydeg.errors import (
    CardinalityMismatchError,
    InvalidGroupLabelError,
    JoinKeyMismatchError,
    MalformedInputError,
    RankDeficientDesignError,
)
from arraydeg.experiment import get_matrix, row_column
from arraydeg.io import read_annotation, read_intensity_dir, read_probe_map, write_table
from arraydeg.pipeline import run_analysis
from arraydeg.volcano_plot import volcano_plot


def write_raw_dir(raw, directory):
    """Write one CSV per sample plus a probe map; returns the probe map path."""
    directory.mkdir()
    probes = list(raw.row_names)
    x = get_matrix(raw, "intensity")
    for j, sample in enumerate(raw.column_names):
        pd.DataFrame({"probe_id": probes, "intensity": x[:, j]}).to_csv(
            directory / f"{sample}.csv", index=False
        )
    probe_map = directory.parent / "probes.tsv"
    pd.DataFrame({"probe_id": probes, "feature_id": row_column(raw, "feature_id")}).to_csv(
        probe_map, sep="\t", index=False
    )
    return probe_map


class TestRunAnalysis:
    """Test run_analysis."""

    def test_recovers_de_features(self, mock_raw):
        raw, de = mock_raw
        res = run_analysis(raw, "100111000")

        assert res.results.shape[0] == 300
        assert set(res.degs["feature_id"]) == set(de)
        assert (res.degs["log_fc"] > 2.0).all()
        assert (res.degs["adj_p_value"] < 0.05).all()
        assert res.calls["Up"] == 10
        assert res.calls["Down"] == 0
        assert res.n_flagged == 0
        assert res.annotated is None
        assert res.design["control"].sum() == 5
        assert res.design["case"].sum() == 4
        assert res.model.contrast.name == "case-control"

    def test_degs_subset_of_results(self, mock_raw):
        raw, _ = mock_raw
        res = run_analysis(raw, "100111000")
        full = res.results.set_index("feature_id")
        for _, row in res.degs.iterrows():
            assert full.loc[row["feature_id"], "p_value"] == row["p_value"]
        assert np.all(np.diff(res.degs["adj_p_value"].to_numpy()) >= 0)

    def test_reversed_contrast(self, mock_raw):
        raw, de = mock_raw
        config = AnalysisConfig(contrast=("control", "case"))
        res = run_analysis(raw, "100111000", config=config)
        assert set(res.degs["feature_id"]) == set(de)
        assert (res.degs["log_fc"] < -2.0).all()
        assert res.calls["Down"] == 10

    def test_strict_thresholds_select_nothing(self, mock_raw):
        raw, _ = mock_raw
        res = run_analysis(raw, "100111000", config=AnalysisConfig(lfc=10.0))
        assert len(res.degs) == 0
        assert list(res.degs.columns) == list(res.results.columns)

    def test_excluded_sample(self, mock_raw):
        raw, de = mock_raw
        res = run_analysis(raw, "1001110X0")
        assert res.expression.shape == (300, 8)
        assert "GSM107" not in list(res.expression.column_names)
        assert set(res.degs["feature_id"]) == set(de)

    def test_label_list(self, mock_raw):
        raw, de = mock_raw
        labels = ["case", "control", "control", "case", "case", "case", "control", "control", "control"]
        res = run_analysis(raw, labels)
        assert set(res.degs["feature_id"]) == set(de)

    def test_annotation(self, mock_raw, mock_annotation):
        raw, _ = mock_raw
        with pytest.warns(JoinKeyMismatchError, match="1003_at"):
            res = run_analysis(raw, "100111000", annotation=mock_annotation)
        assert len(res.annotated) == 11
        assert res.annotated["Gene.symbol"].isna().sum() == 1

    def test_annotation_first_policy(self, mock_raw, mock_annotation):
        raw, _ = mock_raw
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", JoinKeyMismatchError)
            res = run_analysis(
                raw, "100111000",
                config=AnalysisConfig(duplicates="first"),
                annotation=mock_annotation,
            )
        assert len(res.annotated) == 10

    @pytest.mark.parametrize(
        "groups, error",
        [
            ("10011100", CardinalityMismatchError),
            ("100121000", InvalidGroupLabelError),
            ("000000000", RankDeficientDesignError),
            ("XXXXXXXX1", RankDeficientDesignError),
        ],
    )
    def test_fails_before_normalization(self, mock_raw, monkeypatch, groups, error):
        """Bad group input is rejected before any computation."""
        raw, _ = mock_raw

        def fail(*args, **kwargs):
            raise AssertionError("normalization should not run")

        monkeypatch.setattr(arraydeg.limma, "rma", fail)
        with pytest.raises(error):
            run_analysis(raw, groups)

    def test_missing_annotation_key_fails_early(self, mock_raw, mock_annotation, monkeypatch):
        raw, _ = mock_raw

        def fail(*args, **kwargs):
            raise AssertionError("normalization should not run")

        monkeypatch.setattr(arraydeg.limma, "rma", fail)
        with pytest.raises(JoinKeyMismatchError):
            run_analysis(raw, "100111000", annotation=mock_annotation.drop(columns="ID"))

    def test_malformed_intensities(self, mock_raw):
        raw, _ = mock_raw
        x = get_matrix(raw, "intensity")
        x[5, 2] = np.nan
        bad = raw.set_assay("intensity", x, in_place=False)
        with pytest.raises(MalformedInputError) as info:
            run_analysis(bad, "100111000")
        assert info.value.stage == "normalize"


class TestIO:
    """Test reading and writing files."""

    def test_read_intensity_dir(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        probe_map = write_raw_dir(raw, tmp_path / "raw")
        loaded = read_intensity_dir(tmp_path / "raw", probe_map=probe_map)

        assert loaded.shape == raw.shape
        assert list(loaded.column_names) == list(raw.column_names)
        np.testing.assert_allclose(get_matrix(loaded, "intensity"), get_matrix(raw, "intensity"))
        assert row_column(loaded, "feature_id") == row_column(raw, "feature_id")

    def test_without_probe_map(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        write_raw_dir(raw, tmp_path / "raw")
        loaded = read_intensity_dir(tmp_path / "raw")
        assert row_column(loaded, "feature_id") == list(raw.row_names)

    def test_mismatched_probes(self, tmp_path):
        raw_dir = tmp_path / "raw"
        raw_dir.mkdir()
        pd.DataFrame({"probe_id": ["a", "b"], "intensity": [1.0, 2.0]}).to_csv(raw_dir / "s1.csv", index=False)
        pd.DataFrame({"probe_id": ["a", "c"], "intensity": [1.0, 2.0]}).to_csv(raw_dir / "s2.csv", index=False)
        with pytest.raises(MalformedInputError, match="same probes") as info:
            read_intensity_dir(raw_dir)
        assert info.value.stage == "read"

    def test_missing_columns(self, tmp_path):
        raw_dir = tmp_path / "raw"
        raw_dir.mkdir()
        pd.DataFrame({"probe": ["a"], "value": [1.0]}).to_csv(raw_dir / "s1.csv", index=False)
        with pytest.raises(MalformedInputError) as info:
            read_intensity_dir(raw_dir)
        assert str(info.value).startswith("[read]")

    def test_empty_dir(self, tmp_path):
        with pytest.raises(MalformedInputError):
            read_intensity_dir(tmp_path)

    def test_unmapped_probe(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        probe_map = write_raw_dir(raw, tmp_path / "raw")
        partial = read_probe_map(probe_map).iloc[1:]
        with pytest.raises(MalformedInputError, match="probe map"):
            read_intensity_dir(tmp_path / "raw", probe_map=partial)

    def test_read_annotation_skips_comments(self, tmp_path):
        path = tmp_path / "GPL.txt"
        path.write_text("#ID = probeset\nID\tGene.symbol\n1000_at\tTP53\n1001_at\t\n")
        ann = read_annotation(path)
        assert list(ann["ID"]) == ["1000_at", "1001_at"]
        assert ann["Gene.symbol"].iloc[0] == "TP53"

    def test_write_table(self, tmp_path):
        df = pd.DataFrame({"feature_id": ["a", "b"], "adj_p_value": [0.01, np.nan]})
        path = write_table(df, tmp_path / "out" / "degs.tsv")
        text = path.read_text().splitlines()
        assert text[0] == "feature_id\tadj_p_value"
        assert text[2] == "b\tNA"


class TestCLI:
    """Test the command-line interface."""

    def test_run(self, tmp_path, mock_raw, mock_annotation):
        raw, de = mock_raw
        probe_map = write_raw_dir(raw, tmp_path / "raw")
        ann_path = tmp_path / "annotation.csv"
        mock_annotation.to_csv(ann_path, index=False)
        out_dir = tmp_path / "results"

        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", str(tmp_path / "raw"),
            "--groups", "100111000",
            "--out-dir", str(out_dir),
            "--probe-map", str(probe_map),
            "--annotation", str(ann_path),
            "--volcano", str(out_dir / "volcano.png"),
        ])

        assert result.exit_code == 0, result.output
        assert "10 DEGs of 300 features" in result.output
        full = pd.read_csv(out_dir / FULL_RESULTS_NAME)
        degs = pd.read_csv(out_dir / DEGS_NAME)
        annotated = pd.read_csv(out_dir / ANNOTATED_NAME)
        assert len(full) == 300
        assert set(degs["feature_id"]) == set(de)
        assert len(annotated) == 11
        assert (out_dir / "volcano.png").exists()

    def test_config_and_overrides(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        write_raw_dir(raw, tmp_path / "raw")
        config = tmp_path / "analysis.toml"
        config.write_text("[analysis]\nlfc = 10.0\n")
        out_dir = tmp_path / "results"

        result = CliRunner().invoke(cli, [
            "run", str(tmp_path / "raw"),
            "--groups", "100111000",
            "--out-dir", str(out_dir),
            "--config", str(config),
            "--p-value", "0.01",
        ])
        assert result.exit_code == 0, result.output
        assert "0 DEGs" in result.output
        assert len(pd.read_csv(out_dir / DEGS_NAME)) == 0
        assert not (out_dir / ANNOTATED_NAME).exists()

    def test_bad_groups(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        write_raw_dir(raw, tmp_path / "raw")
        result = CliRunner().invoke(cli, [
            "run", str(tmp_path / "raw"),
            "--groups", "1001",
            "--out-dir", str(tmp_path / "results"),
        ])
        assert result.exit_code == 1
        assert "[design]" in result.output
        assert not (tmp_path / "results").exists()

    def test_bad_method_in_config(self, tmp_path, mock_raw, monkeypatch):
        """Method names from a config file are checked before any computation."""
        raw, _ = mock_raw
        write_raw_dir(raw, tmp_path / "raw")
        config = tmp_path / "analysis.toml"
        config.write_text('[analysis]\nnormalize_method = "loess"\n')

        def fail(*args, **kwargs):
            raise AssertionError("normalization should not run")

        monkeypatch.setattr(arraydeg.limma, "rma", fail)
        result = CliRunner().invoke(cli, [
            "run", str(tmp_path / "raw"),
            "--groups", "100111000",
            "--out-dir", str(tmp_path / "results"),
            "--config", str(config),
        ])
        assert result.exit_code == 1
        assert "normalize_method" in result.output
        assert not (tmp_path / "results").exists()


class TestVolcanoPlot:
    """Test volcano_plot."""

    def test_returns_figure_and_saves(self, tmp_path, mock_raw):
        raw, _ = mock_raw
        res = run_analysis(raw, "100111000")
        path = tmp_path / "volcano.png"
        fig = volcano_plot(res.results, save_path=str(path), dpi=50)
        assert isinstance(fig, plt.Figure)
        assert path.exists()
        plt.close(fig)

    def test_handles_nan_and_zero(self):
        results = pd.DataFrame({
            "log_fc": [3.0, -3.0, 0.1, 1.0],
            "adj_p_value": [0.0, 1e-4, 0.9, np.nan],
        })
        fig = volcano_plot(results)
        assert isinstance(fig, plt.Figure)
        plt.close(fig)

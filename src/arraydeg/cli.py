"""Command-line entry point: ``arraydeg run`` over a directory of intensity files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import click

from .config import AnalysisConfig, parse_pair
from .errors import ArrayDEGError
from .io import read_annotation, read_intensity_dir, write_table
from .limma.p_adjust import ADJUST_METHODS
from .pipeline import run_analysis

logger = logging.getLogger(__name__)

FULL_RESULTS_NAME = "full_results.csv"
DEGS_NAME = "degs.csv"
ANNOTATED_NAME = "degs_annotated.csv"


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool) -> None:
    """Differential expression analysis of two-group microarray experiments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("run")
@click.argument("raw_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--groups",
    required=True,
    help="One character per sample in file-name order, e.g. 100111000. 'X' excludes a sample.",
)
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("results"),
    show_default=True,
    help="Directory for the result tables.",
)
@click.option(
    "--probe-map",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="CSV/TSV with probe_id and feature_id columns.",
)
@click.option(
    "--annotation",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Annotation table keyed by feature id.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML or JSON analysis configuration; command-line options override it.",
)
@click.option("--contrast", help="Contrast as A-B, e.g. case-control.")
@click.option("--p-value", type=click.FloatRange(0, 1, min_open=True), help="Adjusted p-value threshold.")
@click.option("--lfc", type=click.FloatRange(0), help="Absolute log2 fold-change threshold.")
@click.option(
    "--proportion",
    type=click.FloatRange(0, 1, min_open=True, max_open=True),
    help="Assumed proportion of differentially expressed features.",
)
@click.option("--adjust", type=click.Choice(ADJUST_METHODS), help="Multiple testing method.")
@click.option("--exclude", multiple=True, help="Sample id to drop before normalization (repeatable).")
@click.option(
    "--volcano",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a volcano plot to this image file.",
)
def run_command(
    raw_dir: Path,
    groups: str,
    out_dir: Path,
    probe_map: Optional[Path],
    annotation: Optional[Path],
    config_path: Optional[Path],
    contrast: Optional[str],
    p_value: Optional[float],
    lfc: Optional[float],
    proportion: Optional[float],
    adjust: Optional[str],
    exclude: Iterable[str],
    volcano: Optional[Path],
) -> None:
    """Run the full analysis on a directory of per-sample intensity files."""
    try:
        config = AnalysisConfig.from_file(config_path) if config_path else AnalysisConfig()
        config = config.with_overrides(
            contrast=parse_pair(contrast) if contrast else None,
            p_value=p_value,
            lfc=lfc,
            proportion=proportion,
            adjust_method=adjust,
        )
        raw = read_intensity_dir(raw_dir, probe_map=probe_map)
        ann = read_annotation(annotation, key=config.annotation_key) if annotation else None
        result = run_analysis(raw, groups, config=config, annotation=ann, exclude=exclude)
    except (ArrayDEGError, ValueError, KeyError) as exc:
        message = str(exc) if isinstance(exc, ArrayDEGError) else f"[input] {exc}"
        logger.error("analysis failed: %s", message)
        click.echo(f"Error: {message}", err=True)
        raise SystemExit(1) from exc

    write_table(result.results, out_dir / FULL_RESULTS_NAME)
    write_table(result.degs, out_dir / DEGS_NAME)
    if result.annotated is not None:
        write_table(result.annotated, out_dir / ANNOTATED_NAME)
    if volcano is not None:
        from .volcano_plot import volcano_plot

        volcano_plot(
            result.results,
            fdr_threshold=config.p_value,
            logfc_threshold=config.lfc,
            title=f"Differential expression: {result.model.contrast.name}",
            save_path=str(volcano),
        )

    click.echo(
        f"{len(result.degs)} DEGs of {len(result.results)} features "
        f"(up {result.calls['Up']}, down {result.calls['Down']}, flagged {result.n_flagged}); "
        f"tables in {out_dir}"
    )


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()

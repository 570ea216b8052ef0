"""
File input and output.

Reads a directory of per-sample intensity files into a raw experiment,
reads annotation tables, and writes result tables. Delimiter is chosen from
the file suffix (``.tsv``/``.txt`` → tab, anything else → comma).
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .errors import MalformedInputError
from .experiment import make_experiment

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
SAMPLE_SUFFIXES = (".csv", ".tsv", ".txt")


def _sep(path: Path) -> str:
    return "\t" if path.suffix.lower() in (".tsv", ".txt") else ","


def _read_table(path: Path, **kwargs) -> pd.DataFrame:
    return pd.read_csv(path, sep=_sep(path), **kwargs)


def read_probe_map(path: PathLike) -> pd.Series:
    """Read a ``probe_id → feature_id`` table into a Series indexed by probe id."""
    path = Path(path)
    df = _read_table(path, dtype=str)
    missing = {"probe_id", "feature_id"} - set(df.columns)
    if missing:
        raise MalformedInputError(f"Probe map {path} lacks columns {sorted(missing)}", stage="read")
    if df["probe_id"].duplicated().any():
        raise MalformedInputError(f"Probe map {path} lists a probe more than once", stage="read")
    return df.set_index("probe_id")["feature_id"]


def read_intensity_dir(
    directory: PathLike,
    probe_map: Optional[Union[PathLike, pd.Series]] = None,
    assay: str = "intensity",
):
    """
    Load per-sample intensity files into a raw SummarizedExperiment.

    Each file holds columns ``probe_id`` and ``intensity``; the sample id is
    the file stem. Samples are ordered by file name, which is the order
    group strings refer to.

    Args:
        directory: Directory with one ``.csv``/``.tsv``/``.txt`` file per sample.
        probe_map: Optional probe → feature mapping (path or Series). Without
            it every probe is its own feature.
        assay: Name of the intensity assay. Default: "intensity".

    Returns:
        SummarizedExperiment (probes × samples) with row-data ``feature_id``.

    Raises:
        MalformedInputError: No sample files, missing columns, or samples
            that disagree on the probe set.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MalformedInputError(f"Raw data directory {directory} does not exist", stage="read")
    files = sorted(p for p in directory.iterdir() if p.suffix.lower() in SAMPLE_SUFFIXES)
    if not files:
        raise MalformedInputError(f"No sample files ({', '.join(SAMPLE_SUFFIXES)}) in {directory}", stage="read")

    probes: Optional[pd.Index] = None
    columns = []
    for path in files:
        df = _read_table(path, dtype={"probe_id": str})
        missing = {"probe_id", "intensity"} - set(df.columns)
        if missing:
            raise MalformedInputError(f"Sample file {path.name} lacks columns {sorted(missing)}", stage="read")
        if df["probe_id"].duplicated().any():
            raise MalformedInputError(f"Sample file {path.name} lists a probe more than once", stage="read")
        series = pd.to_numeric(df.set_index("probe_id")["intensity"], errors="coerce")
        if probes is None:
            probes = series.index
        elif not series.index.sort_values().equals(probes.sort_values()):
            raise MalformedInputError(
                f"Sample file {path.name} does not list the same probes as {files[0].name}",
                stage="read",
            )
        columns.append(series.reindex(probes).to_numpy(dtype=float))

    if isinstance(probe_map, (str, Path)):
        probe_map = read_probe_map(probe_map)
    if probe_map is not None:
        unmapped = probes.difference(probe_map.index)
        if len(unmapped):
            raise MalformedInputError(
                f"{len(unmapped)} probes have no entry in the probe map (e.g. {unmapped[0]!r})",
                stage="read",
            )
        features = probe_map.reindex(probes).tolist()
    else:
        features = list(probes)

    logger.info("read %d samples × %d probes from %s", len(files), len(probes), directory)
    return make_experiment(
        {assay: np.column_stack(columns)},
        row_names=list(probes),
        column_names=[p.stem for p in files],
        row_data={"feature_id": features},
        metadata={"source": str(directory)},
    )


def read_annotation(path: PathLike, key: str = "ID") -> pd.DataFrame:
    """
    Read an annotation table, keeping every column as text.

    Lines starting with ``#`` are skipped, as in platform annotation exports.
    """
    path = Path(path)
    df = _read_table(path, dtype=str, comment="#")
    if key not in df.columns:
        logger.warning("annotation file %s has no '%s' column", path, key)
    return df


def write_table(df: pd.DataFrame, path: PathLike) -> Path:
    """Write a results table as CSV or TSV (by suffix); returns the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep=_sep(path), index=False, na_rep="NA")
    logger.info("wrote %d rows to %s", len(df), path)
    return path

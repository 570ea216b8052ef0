"""
SummarizedExperiment helpers.

Raw intensities and normalized expression both travel as BiocPy
``SummarizedExperiment`` objects (features × samples). These helpers build
them and pull dense numpy views back out, so the numerical stages only ever
see plain arrays.

Usage:
    >>> from arraydeg.experiment import make_experiment, get_matrix
    >>> se = make_experiment({"intensity": mat}, row_names=probes,
    ...                      column_names=samples,
    ...                      row_data={"feature_id": features})
    >>> get_matrix(se, "intensity").shape
    (len(probes), len(samples))
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence
import numpy as np

from biocframe import BiocFrame
from summarizedexperiment import SummarizedExperiment


def make_experiment(
    assays: Mapping[str, np.ndarray],
    row_names: Sequence[str],
    column_names: Sequence[str],
    row_data: Optional[Mapping[str, Sequence[Any]]] = None,
    column_data: Optional[Mapping[str, Sequence[Any]]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> SummarizedExperiment:
    """
    Create a SummarizedExperiment from dense assays and plain column mappings.

    Args:
        assays: Assay name → 2D array (features × samples).
        row_names: Feature (or probe) identifiers.
        column_names: Sample identifiers.
        row_data: Optional per-feature columns.
        column_data: Optional per-sample columns.
        metadata: Optional free-form metadata.

    Returns:
        SummarizedExperiment with string row/column names.
    """
    row_names = [str(x) for x in row_names]
    column_names = [str(x) for x in column_names]
    row_bf = BiocFrame(
        {k: list(v) for k, v in (row_data or {}).items()},
        number_of_rows=len(row_names),
        row_names=row_names,
    )
    col_bf = BiocFrame(
        {k: list(v) for k, v in (column_data or {}).items()},
        number_of_rows=len(column_names),
        row_names=column_names,
    )
    return SummarizedExperiment(
        assays={k: np.asarray(v, dtype=float) for k, v in assays.items()},
        row_data=row_bf,
        column_data=col_bf,
        row_names=row_names,
        column_names=column_names,
        metadata=dict(metadata or {}),
    )


def check_se(se: Any, name: str = "se") -> None:
    """Check that input is a SummarizedExperiment-like object."""
    for attr in ("assays", "assay_names"):
        if not hasattr(se, attr):
            raise TypeError(
                f"Expected `{name}` to be a SummarizedExperiment-like object, "
                f"got {type(se).__name__} which lacks '{attr}'"
            )


def check_assay_exists(se: Any, assay: str) -> None:
    """Check that the specified assay exists in the SummarizedExperiment."""
    if assay not in se.assay_names:
        available = list(se.assay_names)
        raise KeyError(
            f"Assay '{assay}' not found. Available assays: {available}"
        )


def get_matrix(se: Any, assay: str) -> np.ndarray:
    """Return a dense float copy of an assay."""
    check_se(se)
    check_assay_exists(se, assay)
    return np.array(se.assay(assay), dtype=float)


def row_names(se: Any) -> List[str]:
    if se.row_names is None:
        return [str(i) for i in range(se.shape[0])]
    return [str(x) for x in se.row_names]


def column_names(se: Any) -> List[str]:
    if se.column_names is None:
        return [str(i) for i in range(se.shape[1])]
    return [str(x) for x in se.column_names]


def row_column(se: Any, column: str) -> Optional[List[Any]]:
    """Return a row-data column as a list, or None if absent."""
    rd = se.get_row_data()
    if rd is None or column not in rd.column_names:
        return None
    return list(rd[column])


def column_column(se: Any, column: str) -> Optional[List[Any]]:
    """Return a column-data column as a list, or None if absent."""
    cd = se.get_column_data()
    if cd is None or column not in cd.column_names:
        return None
    return list(cd[column])


def subset_samples(se: Any, keep: Sequence[bool]) -> SummarizedExperiment:
    """Return a new experiment restricted to the samples where ``keep`` is True."""
    keep = np.asarray(keep, dtype=bool)
    if keep.shape != (se.shape[1],):
        raise ValueError(
            f"Sample mask has length {keep.shape[0]} but experiment has {se.shape[1]} samples"
        )
    cols = column_names(se)
    cd = se.get_column_data()
    col_data = None
    if cd is not None:
        col_data = {
            c: [v for v, k in zip(cd[c], keep) if k] for c in cd.column_names
        }
    rd = se.get_row_data()
    row_data = None
    if rd is not None:
        row_data = {c: list(rd[c]) for c in rd.column_names}
    return make_experiment(
        {name: np.asarray(se.assay(name), dtype=float)[:, keep] for name in se.assay_names},
        row_names=row_names(se),
        column_names=[c for c, k in zip(cols, keep) if k],
        row_data=row_data,
        column_data=col_data,
        metadata=dict(se.metadata or {}),
    )

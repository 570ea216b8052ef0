"""
Turn a raw probe-level intensity experiment into a log2 expression matrix.

Stages: input validation, between-array normalization, log2 transform with
an offset, and summarization of probes to probesets by Tukey median polish.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TypeVar
import numpy as np
import pandas as pd

from .checks import check_se, check_assay_exists
from .normalize_between_arrays import normalize_between_arrays
from ..errors import MalformedInputError

logger = logging.getLogger(__name__)

SE = TypeVar("SE")


@dataclass(frozen=True)
class MedianPolish:
    """Additive fit ``z[i, j] = overall + row[i] + col[j] + residuals[i, j]``."""
    overall: float
    row: np.ndarray
    col: np.ndarray
    residuals: np.ndarray
    converged: bool


def median_polish(z: np.ndarray, eps: float = 0.01, maxiter: int = 10) -> MedianPolish:
    """Tukey median polish of a 2D array (rows = probes, columns = samples)."""
    z = np.array(z, dtype=float)
    nr, nc = z.shape
    overall = 0.0
    row = np.zeros(nr)
    col = np.zeros(nc)
    oldsum = 0.0
    converged = False
    for _ in range(maxiter):
        rdelta = np.median(z, axis=1)
        z -= rdelta[:, None]
        row += rdelta
        delta = np.median(col)
        col -= delta
        overall += delta

        cdelta = np.median(z, axis=0)
        z -= cdelta[None, :]
        col += cdelta
        delta = np.median(row)
        row -= delta
        overall += delta

        newsum = np.abs(z).sum()
        converged = newsum == 0 or abs(newsum - oldsum) < eps * newsum
        if converged:
            break
        oldsum = newsum
    return MedianPolish(overall, row, col, z, converged)


def validate_intensities(x: np.ndarray) -> None:
    """Raise MalformedInputError unless ``x`` is a non-empty, finite, non-negative matrix."""
    if x.ndim != 2:
        raise MalformedInputError(f"Intensity matrix must be 2D, got {x.ndim}D")
    n_probes, n_samples = x.shape
    if n_probes == 0 or n_samples == 0:
        raise MalformedInputError(
            f"Intensity matrix is empty ({n_probes} probes × {n_samples} samples)"
        )
    bad = ~np.isfinite(x)
    if bad.any():
        raise MalformedInputError(f"Intensity matrix contains {int(bad.sum())} NaN/infinite values")
    neg = x < 0
    if neg.any():
        raise MalformedInputError(f"Intensity matrix contains {int(neg.sum())} negative values")


def summarize_probes(
    log_x: np.ndarray,
    probe_features: pd.Series,
    eps: float = 0.01,
    maxiter: int = 10,
) -> pd.DataFrame:
    """
    Reduce probe rows to one row per feature by median polish.

    Features appear in order of the first probe that maps to them.

    Returns:
        DataFrame (features × samples) of summarized log2 values, with an
        ``n_probes`` attribute Series in ``df.attrs``.
    """
    groups = pd.Series(np.arange(len(probe_features))).groupby(
        probe_features.to_numpy(), sort=False
    ).indices
    features = list(pd.unique(probe_features.to_numpy()))
    out = np.empty((len(features), log_x.shape[1]))
    n_probes = np.empty(len(features), dtype=int)
    n_unconverged = 0
    for i, feat in enumerate(features):
        idx = groups[feat]
        n_probes[i] = len(idx)
        if len(idx) == 1:
            out[i] = log_x[idx[0]]
            continue
        mp = median_polish(log_x[idx], eps=eps, maxiter=maxiter)
        n_unconverged += not mp.converged
        out[i] = mp.overall + mp.col
    if n_unconverged:
        logger.debug("median polish hit maxiter=%d for %d features", maxiter, n_unconverged)
    df = pd.DataFrame(out, index=[str(f) for f in features])
    df.attrs["n_probes"] = pd.Series(n_probes, index=df.index)
    return df


def rma(
    se: SE,
    assay: str = "intensity",
    feature_column: str = "feature_id",
    method: str = "quantile",
    offset: float = 1.0,
    eps: float = 0.01,
    maxiter: int = 10,
    expr_assay: str = "log_expr",
):
    """
    Normalize and summarize raw probe intensities into log2 expression.

    Args:
        se: Raw experiment (probes × samples) with a non-negative intensity assay.
        assay: Raw intensity assay name. Default: "intensity".
        feature_column: Row-data column mapping probes to features. If
            absent, every probe is its own feature.
        method: Between-array normalization method. Default: "quantile".
        offset: Added before the log2 transform. Default: 1.0.
        eps: Median polish tolerance. Default: 0.01.
        maxiter: Median polish iteration limit. Default: 10.
        expr_assay: Output assay name. Default: "log_expr".

    Returns:
        SummarizedExperiment (features × samples) with ``expr_assay`` and
        row-data column ``n_probes``. Column data is carried over.

    Raises:
        MalformedInputError: Empty matrix, or NaN/infinite/negative intensities.

    Example:
        >>> import arraydeg.limma as limma
        >>> eset = limma.rma(raw_se)
        >>> eset.assay("log_expr").shape
    """
    from ..experiment import get_matrix, make_experiment, row_names, column_names, row_column

    check_se(se)
    check_assay_exists(se, assay)
    x = get_matrix(se, assay)
    validate_intensities(x)

    normed = normalize_between_arrays(se, assay=assay, normalized_assay="_normalized", method=method)
    log_x = np.log2(get_matrix(normed, "_normalized") + offset)
    if not np.all(np.isfinite(log_x)):
        raise MalformedInputError(
            "log2 transform produced non-finite values; use a positive offset for zero intensities"
        )

    probes = row_names(se)
    features = row_column(se, feature_column)
    if features is None:
        features = probes
    summarized = summarize_probes(
        log_x, pd.Series([str(f) for f in features]), eps=eps, maxiter=maxiter
    )
    logger.info(
        "normalized %d probes into %d features across %d samples (method=%s)",
        len(probes), summarized.shape[0], summarized.shape[1], method,
    )

    cd = se.get_column_data()
    col_data = {c: list(cd[c]) for c in cd.column_names} if cd is not None else None
    return make_experiment(
        {expr_assay: summarized.to_numpy()},
        row_names=list(summarized.index),
        column_names=column_names(se),
        row_data={"n_probes": summarized.attrs["n_probes"].tolist()},
        column_data=col_data,
        metadata={"normalization": method, "offset": offset},
    )

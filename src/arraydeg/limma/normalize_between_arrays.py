"""
Normalize intensities between arrays.

Aligns the marginal intensity distributions of all samples so that values
are comparable across arrays.
"""

from __future__ import annotations
from typing import TypeVar
import numpy as np
from scipy.stats import rankdata

from .checks import check_se, check_assay_exists
from ..errors import MalformedInputError

# Type variable for SummarizedExperiment variants
SE = TypeVar("SE")

NORMALIZE_METHODS = ("quantile", "scale", "none")


def quantile_normalize(x: np.ndarray) -> np.ndarray:
    """Quantile-normalize the columns of ``x``.

    Every column is mapped onto the mean of the sorted columns. Tied values
    receive the mean of the reference quantiles their ranks span, so the
    result does not depend on the order of ties.
    """
    x = np.asarray(x, dtype=float)
    reference = np.sort(x, axis=0).mean(axis=1)
    csum = np.concatenate([[0.0], np.cumsum(reference)])
    lo = rankdata(x, method="min", axis=0).astype(int)
    hi = rankdata(x, method="max", axis=0).astype(int)
    out = (csum[hi] - csum[lo - 1]) / (hi - lo + 1)
    return out


def scale_normalize(x: np.ndarray) -> np.ndarray:
    """Scale columns of ``x`` to a common median (the mean column median)."""
    x = np.asarray(x, dtype=float)
    med = np.median(x, axis=0)
    if np.any(med <= 0):
        bad = np.flatnonzero(med <= 0).tolist()
        raise MalformedInputError(
            f"Cannot scale-normalize: samples at positions {bad} have median intensity 0"
        )
    return x * (med.mean() / med)


def normalize_between_arrays(
    se: SE,
    assay: str = "intensity",
    normalized_assay: str = "intensity_norm",
    method: str = "quantile",
) -> SE:
    """
    Normalize intensity values between arrays/samples.

    Args:
        se: Input SummarizedExperiment.
        assay: Input assay name. Default: "intensity".
        normalized_assay: Output assay name. Default: "intensity_norm".
        method: "quantile", "scale" or "none". Default: "quantile".

    Returns:
        A new SummarizedExperiment with the normalized assay added.

    Example:
        >>> import arraydeg.limma as limma
        >>> se = limma.normalize_between_arrays(se, method="quantile")
    """
    from ..experiment import get_matrix

    check_se(se)
    check_assay_exists(se, assay)
    if method not in NORMALIZE_METHODS:
        raise ValueError(f"Unknown normalization method {method!r}; choose from {NORMALIZE_METHODS}")

    x = get_matrix(se, assay)
    if method == "quantile":
        out = quantile_normalize(x)
    elif method == "scale":
        out = scale_normalize(x)
    else:
        out = x

    return se.set_assay(normalized_assay, out, in_place=False)

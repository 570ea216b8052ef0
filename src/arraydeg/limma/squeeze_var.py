"""
Shrink per-feature residual variances toward a common prior.

The sample variances are modelled as scaled F (equivalently scaled
inverse-chi-squared) draws; the prior degrees of freedom and scale are
estimated by matching moments of the log variances (Smyth 2004).
"""

from __future__ import annotations
import warnings
from typing import Tuple
import numpy as np
from scipy.special import digamma

from .utils import trigamma, trigamma_inverse


def fit_f_dist(x, df1) -> Tuple[float, float]:
    """
    Estimate the scale and denominator df of a scaled F distribution.

    Args:
        x: Sample variances.
        df1: Degrees of freedom of each variance (scalar or per-feature).

    Returns:
        ``(scale, df2)``, i.e. the prior variance ``s0^2`` and prior df
        ``d0``. ``df2`` is ``inf`` when the variances are no more dispersed
        than chi-square sampling alone explains. ``(nan, nan)`` when no
        usable variance is left, ``(x, 0)`` for a single one.
    """
    x = np.asarray(x, dtype=float)
    df1 = np.broadcast_to(np.asarray(df1, dtype=float), x.shape)
    ok = np.isfinite(df1) & (df1 > 1e-15) & np.isfinite(x) & (x > -1e-15)
    x = x[ok]
    df1 = df1[ok]
    n = x.size
    if n == 0:
        return float("nan"), float("nan")
    if n == 1:
        return float(x[0]), 0.0

    x = np.maximum(x, 0)
    m = np.median(x)
    if m == 0:
        warnings.warn(
            "More than half of residual variances are exactly zero: eBayes unreliable",
            RuntimeWarning,
            stacklevel=2,
        )
        m = 1.0
    elif np.any(x == 0):
        warnings.warn(
            "Zero sample variances detected, have been offset away from zero",
            RuntimeWarning,
            stacklevel=2,
        )
    x = np.maximum(x, 1e-5 * m)

    z = np.log(x)
    e = z - digamma(df1 / 2) + np.log(df1 / 2)
    emean = e.mean()
    evar = ((e - emean) ** 2).sum() / (n - 1)
    evar -= trigamma(df1 / 2).mean()

    if evar > 0:
        df2 = 2 * float(trigamma_inverse(evar))
        s20 = float(np.exp(emean + digamma(df2 / 2) - np.log(df2 / 2)))
    else:
        df2 = float("inf")
        s20 = float(np.exp(emean))
    return s20, df2


def squeeze_var(var, df, var_prior: float, df_prior: float) -> np.ndarray:
    """
    Posterior variances: df-weighted average of each variance and the prior.

    Features whose own df is zero receive the prior variance; with an
    infinite prior df every feature receives the prior variance.
    """
    var = np.asarray(var, dtype=float)
    df = np.broadcast_to(np.asarray(df, dtype=float), var.shape)
    if np.isinf(df_prior):
        return np.full(var.shape, var_prior)
    if not np.isfinite(var_prior) or df_prior == 0:
        return var.copy()
    own = np.where(df > 0, df * np.nan_to_num(var, nan=0.0), 0.0)
    return (own + df_prior * var_prior) / (df + df_prior)

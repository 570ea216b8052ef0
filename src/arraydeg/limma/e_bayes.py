"""
Empirical Bayes moderation of contrast statistics.

This module provides a functional interface to compute moderated
t-statistics, p-values and log-odds of differential expression.
"""

from __future__ import annotations
import logging
import math
import warnings
from dataclasses import replace
from typing import Optional, Sequence, Tuple
import numpy as np
from scipy import stats

from .checks import check_limma_model_contrasted
from .lm_fit import EBayesFit, LimmaModel
from .squeeze_var import fit_f_dist, squeeze_var

logger = logging.getLogger(__name__)


def tmixture_vector(
    tstat: np.ndarray,
    stdev_unscaled: np.ndarray,
    df: np.ndarray,
    proportion: float,
    v0_lim: Optional[Tuple[float, float]] = None,
) -> float:
    """
    Estimate the prior variance of non-zero log fold-changes.

    Compares the largest ``proportion/2`` of the absolute t-statistics with
    the order statistics expected under a two-component mixture.

    Returns:
        The estimate, or NaN when too few features are available.
    """
    ok = np.isfinite(tstat)
    tstat = np.abs(tstat[ok])
    stdev_unscaled = stdev_unscaled[ok]
    df = np.asarray(df, dtype=float)[ok].copy()
    ngenes = tstat.size
    ntarget = math.ceil(proportion / 2 * ngenes)
    if ntarget < 1:
        return float("nan")
    p = max(ntarget / ngenes, proportion)

    # Put every statistic on the largest df
    max_df = df.max()
    lower = df < max_df
    if lower.any():
        tail = stats.t.logsf(tstat[lower], df[lower])
        tstat[lower] = stats.t.isf(np.exp(tail), max_df)
        df[lower] = max_df

    order = np.argsort(-tstat, kind="mergesort")[:ntarget]
    tstat = tstat[order]
    v1 = stdev_unscaled[order] ** 2

    r = np.arange(1, ntarget + 1)
    p0 = 2 * stats.t.sf(tstat, max_df)
    ptarget = ((r - 0.5) / ngenes - (1 - p) * p0) / p
    v0 = np.zeros(ntarget)
    pos = ptarget > p0
    if pos.any():
        qtarget = stats.t.isf(ptarget[pos] / 2, max_df)
        v0[pos] = v1[pos] * ((tstat[pos] / qtarget) ** 2 - 1)
    if v0_lim is not None:
        v0 = np.clip(v0, v0_lim[0], v0_lim[1])
    return float(v0.mean())


def _lods(t, stdev_unscaled, df_total, df_prior, var_prior, proportion):
    r = (stdev_unscaled ** 2 + var_prior) / stdev_unscaled ** 2
    t2 = t ** 2
    with np.errstate(invalid="ignore", divide="ignore"):
        if df_prior > 1e6:
            kernel = t2 * (1 - 1 / r) / 2
        else:
            kernel = (1 + df_total) / 2 * np.log((t2 + df_total) / (t2 / r + df_total))
    return math.log(proportion / (1 - proportion)) - np.log(r) / 2 + kernel


def e_bayes(
    model: LimmaModel,
    proportion: float = 0.01,
    stdev_coef_lim: Sequence[float] = (0.1, 4.0),
) -> LimmaModel:
    """
    Compute empirical Bayes moderated statistics.

    Estimates a prior for the residual variances from all features at once,
    shrinks every feature's variance toward it and recomputes the contrast
    t-statistic with the shrunken variance. The prior fit is a single
    reduction over all features; everything after it is per feature.

    Args:
        model: LimmaModel from contrasts_fit().
        proportion: Assumed proportion of DE features. Default: 0.01.
        stdev_coef_lim: Limits for the prior standard deviation of true
            log fold-changes. Default: (0.1, 4).

    Returns:
        LimmaModel: With ebayes slot set.

    Raises:
        TypeError: If model is not a LimmaModel.
        ValueError: If model has no contrast or proportion is not in (0, 1).

    Example:
        >>> import arraydeg.limma as limma
        >>> model = limma.contrasts_fit(limma.lm_fit(eset, design), "case-control")
        >>> model_eb = limma.e_bayes(model, proportion=0.01)
        >>> results = limma.top_table(model_eb)
    """
    check_limma_model_contrasted(model)
    if not 0 < proportion < 1:
        raise ValueError(f"proportion must lie in (0, 1), got {proportion}")

    fit = model.contrast
    sigma2 = model.sigma2
    df_residual = model.df_residual

    s2_prior, df_prior = fit_f_dist(sigma2, df_residual)
    s2_post = squeeze_var(sigma2, df_residual, s2_prior, df_prior)

    with np.errstate(invalid="ignore", divide="ignore"):
        t = fit.log_fc / (fit.stdev_unscaled * np.sqrt(s2_post))

    usable = np.isfinite(sigma2) & (df_residual > 0)
    df_pooled = float(df_residual[usable].sum())
    df_total = np.minimum(df_residual + df_prior, df_pooled)
    with np.errstate(invalid="ignore"):
        p_value = np.where(df_total > 0, 2 * stats.t.sf(np.abs(t), np.maximum(df_total, 1e-15)), np.nan)

    if np.isfinite(s2_prior) and s2_prior > 0:
        lim = np.asarray(stdev_coef_lim, dtype=float) ** 2 / s2_prior
        var_prior = tmixture_vector(t, fit.stdev_unscaled, df_total, proportion, (lim[0], lim[1]))
        if not np.isfinite(var_prior):
            var_prior = 1 / s2_prior
            warnings.warn(
                "Estimation of var_prior failed - set to default value",
                RuntimeWarning,
                stacklevel=2,
            )
        lods = _lods(t, fit.stdev_unscaled, df_total, df_prior, var_prior, proportion)
    else:
        var_prior = float("nan")
        lods = np.full(model.n_features, np.nan)

    logger.info(
        "empirical Bayes prior: df_prior=%.3g s2_prior=%.4g var_prior=%.4g",
        df_prior, s2_prior, var_prior,
    )

    eb = EBayesFit(
        df_prior=df_prior,
        s2_prior=s2_prior,
        var_prior=var_prior,
        proportion=proportion,
        s2_post=s2_post,
        t=t,
        df_total=df_total,
        p_value=p_value,
        lods=lods,
    )
    return replace(model, ebayes=eb)

"""
Extract the per-feature results table.

This module provides a functional interface to turn a moderated fit into a
tidy DataFrame with adjusted p-values and per-feature quality flags.
"""

from __future__ import annotations
from typing import Optional
import numpy as np
import pandas as pd

from .checks import check_limma_model_contrasted
from .lm_fit import LimmaModel
from .p_adjust import p_adjust

RESULT_COLUMNS = [
    "feature_id",
    "log_fc",
    "ave_expr",
    "t_statistic",
    "p_value",
    "adj_p_value",
    "b_statistic",
    "se",
    "raw_t",
    "sigma2",
    "s2_post",
    "df_total",
    "flag",
]

_SORT_KEYS = {
    "PValue": ("p_value", True),
    "B": ("b_statistic", False),
    "logFC": ("abs_log_fc", False),
    "AveExpr": ("ave_expr", False),
}

FLAG_NO_DF = "no_residual_df"
FLAG_ZERO_VAR = "zero_variance"
FLAG_UNDEFINED = "undefined_statistic"


def flag_features(model: LimmaModel) -> np.ndarray:
    """Per-feature quality flag; empty string for clean rows."""
    eb = model.ebayes
    flags = np.full(model.n_features, "", dtype=object)
    undefined = ~np.isfinite(eb.t) | ~np.isfinite(eb.p_value)
    flags[undefined] = FLAG_UNDEFINED
    flags[model.sigma2 == 0] = FLAG_ZERO_VAR
    flags[model.df_residual <= 0] = FLAG_NO_DF
    return flags


def top_table(
    model: LimmaModel,
    n: Optional[int] = None,
    adjust_method: str = "BH",
    sort_by: str = "PValue",
) -> pd.DataFrame:
    """
    Extract the results table of a contrast.

    Will run e_bayes if not already done. Adjustment is always done over all
    features, before sorting and truncation.

    Args:
        model: LimmaModel with a contrast (and optionally ebayes) slot.
        n: Number of top features (None = all).
        adjust_method: Multiple testing method. Default: "BH".
        sort_by: "PValue", "B", "logFC" (absolute), "AveExpr" or "none".
            Default: "PValue". Sorting is stable; NaN sorts last.

    Returns:
        pd.DataFrame: Results table with columns:
            - feature_id: feature identifier
            - log_fc: log2 fold-change of the contrast
            - ave_expr: average log2 expression
            - t_statistic: moderated t-statistic
            - p_value: raw p-value
            - adj_p_value: adjusted p-value
            - b_statistic: log-odds of differential expression
            - se, raw_t, sigma2: unmoderated standard error, t and variance
            - s2_post, df_total: moderated variance and degrees of freedom
            - flag: "" or a per-feature numerical problem

    Example:
        >>> import arraydeg.limma as limma
        >>> model = limma.lm_fit(eset, design).contrasts_fit("case-control").e_bayes()
        >>> results = limma.top_table(model, n=100)
    """
    from .e_bayes import e_bayes

    check_limma_model_contrasted(model)
    if sort_by != "none" and sort_by not in _SORT_KEYS:
        raise ValueError(f"Unknown sort_by {sort_by!r}; choose from {sorted(_SORT_KEYS) + ['none']}")

    if model.ebayes is None:
        model = e_bayes(model)
    eb = model.ebayes
    fit = model.contrast

    df = pd.DataFrame({
        "feature_id": [str(f) for f in model.feature_names],
        "log_fc": fit.log_fc,
        "ave_expr": model.amean,
        "t_statistic": eb.t,
        "p_value": eb.p_value,
        "adj_p_value": p_adjust(eb.p_value, adjust_method),
        "b_statistic": eb.lods,
        "se": fit.se,
        "raw_t": fit.t,
        "sigma2": model.sigma2,
        "s2_post": eb.s2_post,
        "df_total": eb.df_total,
        "flag": flag_features(model),
    })
    df.attrs["contrast"] = fit.name
    df.attrs["adjust_method"] = adjust_method

    if sort_by != "none":
        key, ascending = _SORT_KEYS[sort_by]
        if key == "abs_log_fc":
            order = df["log_fc"].abs().sort_values(ascending=ascending, kind="mergesort", na_position="last").index
            df = df.loc[order]
        else:
            df = df.sort_values(key, ascending=ascending, kind="mergesort", na_position="last")
        df = df.reset_index(drop=True)

    if n is not None:
        df = df.head(n)
    return df

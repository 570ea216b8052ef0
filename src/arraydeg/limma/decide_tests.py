"""
Select differentially expressed features.

This module provides the threshold filter that turns the full results table
into the DEG table, and the -1/0/+1 classification of every feature.
"""

from __future__ import annotations
from typing import Union
import numpy as np
import pandas as pd

from .checks import check_limma_model_contrasted
from .lm_fit import LimmaModel


def _check_results(results: pd.DataFrame) -> None:
    if not isinstance(results, pd.DataFrame):
        raise TypeError(f"Expected a results DataFrame, got {type(results).__name__}")
    missing = [c for c in ("feature_id", "log_fc", "p_value", "adj_p_value") if c not in results.columns]
    if missing:
        raise KeyError(f"Results table lacks columns {missing}")


def _significant(results: pd.DataFrame, p_value: float, lfc: float) -> pd.Series:
    # NaN compares False, so flagged rows never pass
    return (results["adj_p_value"] < p_value) & (results["log_fc"].abs() > lfc)


def select_degs(
    results: pd.DataFrame,
    p_value: float = 0.05,
    lfc: float = 2.0,
) -> pd.DataFrame:
    """
    Keep features with ``adj_p_value < p_value`` and ``|log_fc| > lfc``.

    All columns are kept. Rows are ordered by ascending ``adj_p_value``,
    then ascending ``p_value``; ties keep their input order. Applying the
    same thresholds to the output returns it unchanged.

    Args:
        results: Full results table from top_table().
        p_value: Adjusted p-value threshold. Default: 0.05.
        lfc: Absolute log fold-change threshold. Default: 2.0.

    Returns:
        pd.DataFrame: The DEG table.

    Example:
        >>> import arraydeg.limma as limma
        >>> degs = limma.select_degs(limma.top_table(model), p_value=0.05, lfc=1.0)
    """
    _check_results(results)
    degs = results.loc[_significant(results, p_value, lfc)]
    degs = degs.sort_values(["adj_p_value", "p_value"], kind="mergesort")
    return degs.reset_index(drop=True)


def decide_tests(
    model_or_results: Union[LimmaModel, pd.DataFrame],
    adjust_method: str = "BH",
    p_value: float = 0.05,
    lfc: float = 0,
) -> pd.Series:
    """
    Classify features as significantly up, down, or not significant.

    Args:
        model_or_results: LimmaModel with a contrast, or a results table.
        adjust_method: Multiple testing method when given a model. Default: "BH".
        p_value: Adjusted p-value threshold. Default: 0.05.
        lfc: Absolute log fold-change threshold. Default: 0.

    Returns:
        pd.Series: -1 (down), 0 (not significant), 1 (up), indexed by feature id.

    Example:
        >>> calls = limma.decide_tests(model, p_value=0.01)
        >>> n_up = (calls == 1).sum()
    """
    from .top_table import top_table

    if isinstance(model_or_results, LimmaModel):
        check_limma_model_contrasted(model_or_results)
        results = top_table(model_or_results, adjust_method=adjust_method, sort_by="none")
    else:
        results = model_or_results
    _check_results(results)

    sig = _significant(results, p_value, lfc).to_numpy()
    calls = np.where(sig, np.sign(results["log_fc"].to_numpy()), 0).astype(int)
    return pd.Series(calls, index=results["feature_id"].to_numpy(), name="call")


def summarize_calls(calls: pd.Series) -> pd.Series:
    """Count Down/NotSig/Up calls."""
    counts = calls.value_counts()
    return pd.Series(
        {label: int(counts.get(code, 0)) for code, label in ((-1, "Down"), (0, "NotSig"), (1, "Up"))},
        name=calls.name,
    )

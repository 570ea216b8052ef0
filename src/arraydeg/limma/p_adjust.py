"""Adjust p-values for multiple comparisons."""

from __future__ import annotations
import numpy as np

ADJUST_METHODS = ("BH", "fdr", "BY", "bonferroni", "holm", "none")


def p_adjust(p, method: str = "BH") -> np.ndarray:
    """
    Adjust p-values for the number of tests.

    NaN p-values are passed through and do not count as tests.

    Args:
        p: Raw p-values, any order.
        method: "BH" (Benjamini–Hochberg FDR, alias "fdr"), "BY"
            (Benjamini–Yekutieli), "bonferroni", "holm" or "none".

    Returns:
        Adjusted p-values in the input order, capped at 1.

    Example:
        >>> p_adjust([0.01, 0.04, 0.03, 0.005])
        array([0.02, 0.04, 0.04, 0.02])
    """
    if method not in ADJUST_METHODS:
        raise ValueError(f"Unknown adjust method {method!r}; choose from {ADJUST_METHODS}")
    p = np.asarray(p, dtype=float)
    out = np.full(p.shape, np.nan)
    ok = ~np.isnan(p)
    pv = p[ok]
    n = pv.size
    if n == 0 or method == "none":
        out[ok] = pv
        return out

    if method == "bonferroni":
        adj = np.minimum(pv * n, 1.0)
    elif method == "holm":
        order = np.argsort(pv, kind="mergesort")
        scaled = (n - np.arange(n)) * pv[order]
        adj = np.empty(n)
        adj[order] = np.minimum(np.maximum.accumulate(scaled), 1.0)
    else:
        # Step-up: walk from the largest p-value down, keeping a running minimum
        order = np.argsort(pv, kind="mergesort")[::-1]
        rank = np.arange(n, 0, -1)
        factor = np.sum(1.0 / np.arange(1, n + 1)) if method == "BY" else 1.0
        scaled = factor * n / rank * pv[order]
        adj = np.empty(n)
        adj[order] = np.minimum(np.minimum.accumulate(scaled), 1.0)

    out[ok] = adj
    return out

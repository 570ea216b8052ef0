"""
Apply a contrast to a fitted linear model.

This module provides a functional interface to estimate one linear
combination of coefficients per feature, e.g. ``case - control``.
"""

from __future__ import annotations
from typing import Sequence, Union
from dataclasses import replace
import numpy as np
import pandas as pd

from .checks import check_limma_model_fitted
from .lm_fit import ContrastFit, LimmaModel
from ..errors import InvalidGroupLabelError

ContrastSpec = Union[str, Sequence[str], Sequence[float], pd.Series]


def make_contrasts(contrast: ContrastSpec, levels: Sequence[str]) -> pd.Series:
    """
    Turn a contrast specification into a weight vector over design columns.

    Args:
        contrast: ``"A-B"``, ``("A", "B")``, a numeric vector aligned with
            ``levels``, or a Series indexed by level.
        levels: Design column names.

    Returns:
        pd.Series of weights indexed by ``levels``, named ``"A-B"`` for
        pairwise contrasts.

    Raises:
        InvalidGroupLabelError: A named group is not a design column.
        ValueError: A numeric vector has the wrong length or is all zero.

    Example:
        >>> make_contrasts("case-control", ["control", "case"])
        control   -1.0
        case       1.0
        Name: case-control, dtype: float64
    """
    levels = [str(lv) for lv in levels]
    if isinstance(contrast, str):
        parts = [p.strip() for p in contrast.split("-")]
        if len(parts) != 2:
            raise ValueError(f"Contrast string must look like 'A-B', got {contrast!r}")
        contrast = parts

    if isinstance(contrast, pd.Series):
        unknown = [str(k) for k in contrast.index if str(k) not in levels]
        if unknown:
            raise InvalidGroupLabelError(
                f"Contrast names {unknown} are not design columns {levels}", stage="contrasts_fit"
            )
        vec = pd.Series(0.0, index=levels, name=contrast.name)
        vec[[str(k) for k in contrast.index]] = contrast.to_numpy(dtype=float)
    elif len(contrast) == 2 and all(isinstance(c, str) for c in contrast):
        a, b = contrast
        for g in (a, b):
            if g not in levels:
                raise InvalidGroupLabelError(
                    f"Contrast group {g!r} is not a design column {levels}", stage="contrasts_fit"
                )
        if a == b:
            raise ValueError(f"Contrast compares {a!r} with itself")
        vec = pd.Series(0.0, index=levels, name=f"{a}-{b}")
        vec[a] = 1.0
        vec[b] = -1.0
    else:
        arr = np.asarray(contrast, dtype=float)
        if arr.shape != (len(levels),):
            raise ValueError(
                f"Contrast vector has length {arr.size} but design has {len(levels)} columns"
            )
        vec = pd.Series(arr, index=levels, name="contrast")

    if not np.any(vec.to_numpy() != 0):
        raise ValueError("Contrast vector is all zero")
    return vec


def contrasts_fit(
    model: LimmaModel,
    contrast: ContrastSpec,
) -> LimmaModel:
    """
    Apply contrast to fitted linear model.

    Returns LimmaModel with contrast slot set. Any previous empirical Bayes
    result is cleared, since it belonged to another contrast.

    Args:
        model: LimmaModel from lm_fit().
        contrast: See make_contrasts().

    Returns:
        LimmaModel: With contrast slot set.

    Raises:
        TypeError: If model is not a LimmaModel.
        ValueError: If model is not fitted.

    Example:
        >>> import arraydeg.limma as limma
        >>> model = limma.lm_fit(eset, design)
        >>> model_c = limma.contrasts_fit(model, ("case", "control"))
        >>> results = model_c.e_bayes().top_table()
    """
    check_limma_model_fitted(model)

    vec = make_contrasts(contrast, model.coefficients.columns)
    c = vec.to_numpy()
    log_fc = model.coefficients.to_numpy() @ c
    cov = model.cov_coefficients.to_numpy()
    stdev = np.full(model.n_features, np.sqrt(c @ cov @ c))

    with np.errstate(invalid="ignore", divide="ignore"):
        se = np.sqrt(model.sigma2) * stdev
        t = log_fc / se

    fit = ContrastFit(
        name=str(vec.name),
        vector=vec,
        log_fc=log_fc,
        stdev_unscaled=stdev,
        se=se,
        t=t,
    )
    return replace(model, contrast=fit, ebayes=None)

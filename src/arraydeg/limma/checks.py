"""
Input validation utilities for limma functions.

Provides centralized checks for design matrices and LimmaModel inputs.
"""

from __future__ import annotations
from typing import Any, Optional, Sequence
import numpy as np
import pandas as pd

from ..experiment import check_se, check_assay_exists
from ..errors import CardinalityMismatchError, RankDeficientDesignError

__all__ = [
    "check_se",
    "check_assay_exists",
    "check_design",
    "check_design_rank",
    "align_design",
    "check_limma_model",
    "check_limma_model_fitted",
    "check_limma_model_contrasted",
]


def check_design(design: Any, n_samples: Optional[int] = None) -> None:
    """Check that design is a valid pandas DataFrame."""
    if not isinstance(design, pd.DataFrame):
        raise TypeError(
            f"Expected `design` to be a pandas DataFrame, "
            f"got {type(design).__name__}"
        )
    if n_samples is not None and len(design) != n_samples:
        raise ValueError(
            f"Design matrix has {len(design)} rows but expected {n_samples} samples"
        )


def align_design(design: pd.DataFrame, sample_names: Sequence[str]) -> pd.DataFrame:
    """
    Order design rows to match the samples of the expression matrix.

    A design indexed by sample id is reordered to ``sample_names``; a design
    with an integer index is taken to be in sample order already.

    Raises:
        CardinalityMismatchError: The index names samples that are not in
            ``sample_names``.
    """
    index = [str(i) for i in design.index]
    samples = [str(s) for s in sample_names]
    if index == samples:
        return design
    if len(set(index)) == len(index) and set(index) == set(samples):
        pos = {s: i for i, s in enumerate(index)}
        return design.iloc[[pos[s] for s in samples]]
    if pd.api.types.is_integer_dtype(design.index):
        return design
    unknown = sorted(set(index) - set(samples))[:5]
    raise CardinalityMismatchError(
        f"Design rows do not match the sample names (e.g. {unknown})", stage="lm_fit"
    )


def check_design_rank(design: pd.DataFrame) -> None:
    """Raise RankDeficientDesignError for empty columns or a singular design."""
    x = design.to_numpy(dtype=float)
    empty = [str(c) for c, s in zip(design.columns, np.abs(x).sum(axis=0)) if s == 0]
    if empty:
        raise RankDeficientDesignError(
            f"Design columns {empty} have no members; the model cannot be fitted"
        )
    rank = np.linalg.matrix_rank(x)
    if rank < x.shape[1]:
        raise RankDeficientDesignError(
            f"Design matrix has rank {rank} but {x.shape[1]} columns"
        )


def check_limma_model(model: Any) -> None:
    """Check that input is a valid LimmaModel."""
    from .lm_fit import LimmaModel
    if not isinstance(model, LimmaModel):
        raise TypeError(
            f"Expected a LimmaModel, got {type(model).__name__}"
        )


def check_limma_model_fitted(model: Any) -> None:
    """Check that LimmaModel has coefficients set."""
    check_limma_model(model)
    if model.coefficients is None:
        raise ValueError("LimmaModel.coefficients is None - model has not been fitted")


def check_limma_model_contrasted(model: Any) -> None:
    """Check that LimmaModel carries a single contrast."""
    check_limma_model_fitted(model)
    if model.contrast is None:
        raise ValueError(
            "LimmaModel has no contrast - call contrasts_fit() before e_bayes()/top_table()"
        )

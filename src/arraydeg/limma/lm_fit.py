"""
Fit per-feature linear models by ordinary least squares.

This module provides the LimmaModel dataclass for storing fit results
and the lm_fit function for fitting the model.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Sequence, TypeVar, Union
from dataclasses import dataclass
import numpy as np
import pandas as pd

from .checks import align_design, check_se, check_assay_exists, check_design, check_design_rank
from ..errors import MalformedInputError

logger = logging.getLogger(__name__)

# Type variable for SummarizedExperiment variants
SE = TypeVar("SE")


@dataclass(frozen=True, eq=False)
class ContrastFit:
    """Per-feature estimate of one contrast of the fitted coefficients.

    Attributes:
        name: Contrast label, e.g. ``"case-control"``.
        vector: Contrast weights indexed by design column.
        log_fc: Contrast estimate per feature (log2 fold-change).
        stdev_unscaled: ``sqrt(c' (X'X)^-1 c)`` per feature.
        se: Unmoderated standard error, ``sqrt(sigma2) * stdev_unscaled``.
        t: Unmoderated t-statistic, ``log_fc / se``.
    """
    name: str
    vector: pd.Series
    log_fc: np.ndarray
    stdev_unscaled: np.ndarray
    se: np.ndarray
    t: np.ndarray


@dataclass(frozen=True, eq=False)
class EBayesFit:
    """Empirical Bayes moderated statistics for one contrast.

    Attributes:
        df_prior: Prior degrees of freedom (may be ``inf``).
        s2_prior: Prior variance.
        var_prior: Prior variance of non-zero log fold-changes.
        proportion: Assumed proportion of DE features.
        s2_post: Shrunken per-feature variances.
        t: Moderated t-statistics.
        df_total: Residual plus prior degrees of freedom, capped at the pooled df.
        p_value: Two-sided p-values of the moderated t.
        lods: Log-odds of differential expression (B-statistic).
    """
    df_prior: float
    s2_prior: float
    var_prior: float
    proportion: float
    s2_post: np.ndarray
    t: np.ndarray
    df_total: np.ndarray
    p_value: np.ndarray
    lods: np.ndarray


@dataclass(frozen=True, eq=False)
class LimmaModel:
    """Container for linear model fit results.

    Each step returns a new LimmaModel with one more slot filled; earlier
    slots are never modified.

    Attributes:
        sample_names: Sample names (column names) from the input SE.
        feature_names: Feature names (row names) from the input SE.
        design: Design matrix used for fitting.
        coefficients: Features × design columns estimates.
        stdev_unscaled: Features × design columns unscaled standard deviations.
        cov_coefficients: Unscaled coefficient covariance ``(X'X)^-1``.
        sigma2: Residual variance per feature (NaN when no residual df).
        df_residual: Residual degrees of freedom per feature.
        amean: Average log expression per feature.
        contrast: ContrastFit from contrasts_fit (optional).
        ebayes: EBayesFit from e_bayes (optional).
        metadata: Additional metadata.
    """
    sample_names: Optional[Sequence[str]] = None
    feature_names: Optional[Sequence[str]] = None
    design: Optional[pd.DataFrame] = None
    coefficients: Optional[pd.DataFrame] = None
    stdev_unscaled: Optional[pd.DataFrame] = None
    cov_coefficients: Optional[pd.DataFrame] = None
    sigma2: Optional[np.ndarray] = None
    df_residual: Optional[np.ndarray] = None
    amean: Optional[np.ndarray] = None
    contrast: Optional[ContrastFit] = None
    ebayes: Optional[EBayesFit] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def n_features(self) -> int:
        return 0 if self.coefficients is None else self.coefficients.shape[0]

    def contrasts_fit(
        self,
        contrast: Union[str, Sequence[str], Sequence[float], pd.Series],
    ) -> "LimmaModel":
        """
        Apply contrast to fitted model.

        Convenience method that delegates to the contrasts_fit function.

        Returns:
            LimmaModel with contrast slot set.
        """
        from .contrasts_fit import contrasts_fit as _contrasts_fit
        return _contrasts_fit(self, contrast=contrast)

    def e_bayes(self, proportion: float = 0.01) -> "LimmaModel":
        """
        Apply empirical Bayes moderation.

        Convenience method that delegates to the e_bayes function.

        Returns:
            LimmaModel with ebayes slot set.
        """
        from .e_bayes import e_bayes as _e_bayes
        return _e_bayes(self, proportion=proportion)

    def top_table(
        self,
        n: Optional[int] = None,
        adjust_method: str = "BH",
        sort_by: str = "PValue",
    ) -> pd.DataFrame:
        """
        Extract the full results table.

        Convenience method that delegates to the top_table function.

        Returns:
            pd.DataFrame with DE results.
        """
        from .top_table import top_table as _top_table
        return _top_table(self, n=n, adjust_method=adjust_method, sort_by=sort_by)

    def decide_tests(
        self,
        adjust_method: str = "BH",
        p_value: float = 0.05,
        lfc: float = 0,
    ) -> pd.Series:
        """
        Classify features as up/down/not significant.

        Convenience method that delegates to the decide_tests function.

        Returns:
            pd.Series with -1 (down), 0 (not sig), 1 (up).
        """
        from .decide_tests import decide_tests as _decide_tests
        return _decide_tests(self, adjust_method=adjust_method, p_value=p_value, lfc=lfc)


def lm_fit(
    se: SE,
    design: pd.DataFrame,
    assay: str = "log_expr",
) -> LimmaModel:
    """
    Fit a linear model to each feature of an expression matrix.

    All features are solved together: with ``Y`` the features × samples
    matrix and ``X`` the design, ``B = Y X (X'X)^-1``. For an indicator
    design without intercept the coefficients are the group means and the
    residual variance is the pooled within-group variance.

    Args:
        se: SummarizedExperiment with a log expression assay.
        design: Design matrix (samples × covariates) as pandas DataFrame. Rows indexed
            by sample id are matched to the samples by name.
        assay: Expression assay to use. Default: "log_expr".

    Returns:
        LimmaModel: Container with fitted model.

    Raises:
        TypeError: If inputs are invalid.
        KeyError: If assay doesn't exist.
        CardinalityMismatchError: If the design is indexed by ids that are not the sample names.
        RankDeficientDesignError: If a design column is empty or the design is singular.
        MalformedInputError: If the expression matrix has non-finite values.

    Example:
        >>> import arraydeg.limma as limma
        >>> design = model_matrix(["control"] * 3 + ["case"] * 3)
        >>> model = limma.lm_fit(eset, design)
        >>> results = model.contrasts_fit("case-control").e_bayes().top_table()
    """
    from ..experiment import get_matrix, row_names, column_names

    check_se(se)
    check_assay_exists(se, assay)
    y = get_matrix(se, assay)
    n_samples = y.shape[1]
    check_design(design, n_samples)
    design = align_design(design, column_names(se))
    check_design_rank(design)
    if not np.all(np.isfinite(y)):
        raise MalformedInputError(
            f"Assay '{assay}' contains non-finite values; drop those features before fitting",
            stage="lm_fit",
        )

    x = design.to_numpy(dtype=float)
    n_coef = x.shape[1]
    cov = np.linalg.inv(x.T @ x)
    amean = y.mean(axis=1)

    # When the design spans the intercept, fit rows shifted by their first
    # value and add it back; constant features then give exactly zero residuals.
    w = cov @ x.T @ np.ones(n_samples)
    if np.allclose(x @ w, 1.0):
        shift = y[:, 0].copy()
        yc = y - shift[:, None]
        coef_c = yc @ x @ cov
        resid = yc - coef_c @ x.T
        coef = coef_c + shift[:, None] * w[None, :]
    else:
        coef = y @ x @ cov
        resid = y - coef @ x.T
    df = n_samples - n_coef

    with np.errstate(invalid="ignore", divide="ignore"):
        sigma2 = (resid ** 2).sum(axis=1) / df if df > 0 else np.full(y.shape[0], np.nan)

    features = row_names(se)
    columns = [str(c) for c in design.columns]
    stdev = np.tile(np.sqrt(np.diag(cov)), (y.shape[0], 1))
    logger.debug("fitted %d features on %d coefficients (df=%d)", y.shape[0], n_coef, df)

    return LimmaModel(
        sample_names=column_names(se),
        feature_names=features,
        design=design,
        coefficients=pd.DataFrame(coef, index=features, columns=columns),
        stdev_unscaled=pd.DataFrame(stdev, index=features, columns=columns),
        cov_coefficients=pd.DataFrame(cov, index=columns, columns=columns),
        sigma2=sigma2,
        df_residual=np.full(y.shape[0], float(df)),
        amean=amean,
    )

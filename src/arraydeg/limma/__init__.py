"""Linear models and empirical Bayes statistics for microarray data.

The numerical core of the package: normalization of raw intensities,
per-feature least-squares fits, contrasts, variance moderation, multiple
testing correction and DEG selection, all in numpy/scipy.

Functional API:
    >>> import arraydeg.limma as limma
    >>> eset = limma.rma(raw_se)
    >>> model = limma.lm_fit(eset, design)
    >>> model = limma.contrasts_fit(model, "case-control")
    >>> results = limma.top_table(limma.e_bayes(model))
    >>> degs = limma.select_degs(results, p_value=0.05, lfc=2.0)

Method chaining:
    >>> results = limma.lm_fit(eset, design).contrasts_fit("case-control").e_bayes().top_table()
"""

from .normalize_between_arrays import normalize_between_arrays, quantile_normalize
from .rma import rma, median_polish, summarize_probes, MedianPolish
from .lm_fit import lm_fit, LimmaModel, ContrastFit, EBayesFit
from .contrasts_fit import contrasts_fit, make_contrasts
from .squeeze_var import fit_f_dist, squeeze_var
from .e_bayes import e_bayes
from .p_adjust import p_adjust
from .top_table import top_table
from .decide_tests import decide_tests, select_degs, summarize_calls

__all__ = [
    # Normalization
    "normalize_between_arrays",
    "quantile_normalize",
    "rma",
    "median_polish",
    "summarize_probes",
    "MedianPolish",
    # Modelling
    "lm_fit",
    "contrasts_fit",
    "make_contrasts",
    "fit_f_dist",
    "squeeze_var",
    "e_bayes",
    "p_adjust",
    "top_table",
    "decide_tests",
    "select_degs",
    "summarize_calls",
    # Model classes
    "LimmaModel",
    "ContrastFit",
    "EBayesFit",
]

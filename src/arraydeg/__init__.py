"""arraydeg: differential expression analysis for two-group microarray studies.

Normalizes raw probe intensities, fits per-feature linear models, moderates
variances with empirical Bayes, controls the false discovery rate and
selects and annotates differentially expressed genes.

Usage:
    >>> import arraydeg
    >>> raw = arraydeg.read_intensity_dir("raw/", probe_map="probes.csv")
    >>> res = arraydeg.run_analysis(raw, "100111000")
    >>> res.degs.head()

The numerical building blocks live in ``arraydeg.limma``.
"""

from __future__ import annotations

from .annotation import merge_annotation
from .config import AnalysisConfig
from .design import exclude_samples, model_matrix, parse_group_string
from .errors import (
    ArrayDEGError,
    CardinalityMismatchError,
    InvalidGroupLabelError,
    JoinKeyMismatchError,
    MalformedInputError,
    RankDeficientDesignError,
)
from .experiment import make_experiment
from .io import read_annotation, read_intensity_dir, read_probe_map, write_table
from .pipeline import AnalysisResult, run_analysis
from .volcano_plot import volcano_plot
from . import limma

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "run_analysis",
    "make_experiment",
    "parse_group_string",
    "exclude_samples",
    "model_matrix",
    "merge_annotation",
    "read_intensity_dir",
    "read_probe_map",
    "read_annotation",
    "write_table",
    "ArrayDEGError",
    "MalformedInputError",
    "InvalidGroupLabelError",
    "CardinalityMismatchError",
    "RankDeficientDesignError",
    "JoinKeyMismatchError",
    "volcano_plot",
    "limma",
]

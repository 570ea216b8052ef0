"""
End-to-end two-group analysis.

Chains normalization, design, model fit, contrast, empirical Bayes,
multiple testing correction, DEG selection and (optionally) annotation.
All inputs are validated before any computation starts.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union
import pandas as pd

from . import limma
from .annotation import merge_annotation
from .config import AnalysisConfig
from .design import exclude_samples, model_matrix, parse_group_string
from .errors import CardinalityMismatchError, JoinKeyMismatchError
from .experiment import column_names
from .limma.checks import check_design_rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Outputs of one pipeline run.

    Attributes:
        expression: Normalized expression experiment (features × samples).
        design: Design matrix used for the fit.
        model: LimmaModel with contrast and ebayes slots set.
        results: Full results table, one row per feature.
        degs: Rows of ``results`` passing both thresholds.
        annotated: ``degs`` joined with the annotation table, if one was given.
        calls: Down/NotSig/Up counts under the DEG thresholds.
    """
    expression: object
    design: pd.DataFrame
    model: limma.LimmaModel
    results: pd.DataFrame
    degs: pd.DataFrame
    annotated: Optional[pd.DataFrame]
    calls: pd.Series

    @property
    def n_flagged(self) -> int:
        return int((self.results["flag"] != "").sum())


def resolve_labels(
    groups: Union[str, Sequence[Optional[str]]],
    n_samples: int,
    config: AnalysisConfig,
) -> List[Optional[str]]:
    """Turn a group string or label list into per-sample labels (None = excluded)."""
    if isinstance(groups, str):
        return parse_group_string(groups, n_samples=n_samples, codes=config.group_codes)
    labels = list(groups)
    if len(labels) != n_samples:
        raise CardinalityMismatchError(
            f"Got {len(labels)} group labels for {n_samples} samples"
        )
    return labels


def run_analysis(
    raw,
    groups: Union[str, Sequence[Optional[str]]],
    config: Optional[AnalysisConfig] = None,
    annotation: Optional[pd.DataFrame] = None,
    exclude: Iterable[str] = (),
    assay: str = "intensity",
) -> AnalysisResult:
    """
    Run the full differential expression analysis.

    Args:
        raw: Raw experiment (probes × samples) with an intensity assay and
            optional row-data ``feature_id``.
        groups: Group string (``"100111000"``) or one label per sample;
            ``"X"`` / ``None`` excludes a sample.
        config: Analysis configuration. Default: AnalysisConfig().
        annotation: Optional annotation table for the DEG join.
        exclude: Sample ids to drop before normalization.
        assay: Raw intensity assay name. Default: "intensity".

    Returns:
        AnalysisResult.

    Example:
        >>> from arraydeg import run_analysis, read_intensity_dir
        >>> raw = read_intensity_dir("raw/", probe_map="probes.csv")
        >>> res = run_analysis(raw, "100111000")
        >>> res.degs.head()
    """
    config = config or AnalysisConfig()

    labels = resolve_labels(groups, raw.shape[1], config)
    raw, labels = exclude_samples(raw, labels, exclude)
    design = model_matrix(labels, config.group_order, sample_names=column_names(raw))
    check_design_rank(design)
    if annotation is not None and config.annotation_key not in annotation.columns:
        raise JoinKeyMismatchError(
            f"Annotation table has no key column '{config.annotation_key}'"
        )

    eset = limma.rma(
        raw,
        assay=assay,
        method=config.normalize_method,
        offset=config.offset,
        eps=config.polish_eps,
        maxiter=config.polish_maxiter,
    )
    logger.info(
        "design: %s",
        ", ".join(f"{g}={int(n)}" for g, n in design.sum(axis=0).items()),
    )

    model = limma.lm_fit(eset, design)
    model = limma.contrasts_fit(model, config.contrast)
    model = limma.e_bayes(model, proportion=config.proportion)
    results = limma.top_table(model, adjust_method=config.adjust_method, sort_by="PValue")

    degs = limma.select_degs(results, p_value=config.p_value, lfc=config.lfc)
    calls = limma.summarize_calls(
        limma.decide_tests(results, p_value=config.p_value, lfc=config.lfc)
    )
    logger.info(
        "%d of %d features are DEGs (adj p < %g, |logFC| > %g): %d up, %d down",
        len(degs), len(results), config.p_value, config.lfc, calls["Up"], calls["Down"],
    )

    annotated = None
    if annotation is not None:
        annotated = merge_annotation(
            degs,
            annotation,
            key=config.annotation_key,
            duplicates=config.duplicates,
        )

    result = AnalysisResult(
        expression=eset,
        design=design,
        model=model,
        results=results,
        degs=degs,
        annotated=annotated,
        calls=calls,
    )
    if result.n_flagged:
        logger.warning("%d features carry a numerical flag; see the 'flag' column", result.n_flagged)
    return result

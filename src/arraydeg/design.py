"""
Build two-group design matrices from per-sample group labels.

Group membership is usually given as a short string with one character per
sample, positionally aligned with the sample order of the raw data
(``"100111000"``). Character ``"X"`` marks a sample for exclusion; excluded
samples are dropped from the raw experiment before normalization.

Example:
    >>> labels = parse_group_string("0011", n_samples=4)
    >>> model_matrix(labels, ("control", "case"))
       control  case
    0      1.0   0.0
    1      1.0   0.0
    2      0.0   1.0
    3      0.0   1.0
"""

from __future__ import annotations
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

from .config import DEFAULT_GROUP_CODES, DEFAULT_GROUP_ORDER, EXCLUDE_CODE
from .errors import CardinalityMismatchError, InvalidGroupLabelError

logger = logging.getLogger(__name__)


def parse_group_string(
    groups: str,
    n_samples: Optional[int] = None,
    codes: Mapping[str, str] = DEFAULT_GROUP_CODES,
) -> List[Optional[str]]:
    """
    Decode a group-membership string into per-sample labels.

    Args:
        groups: One character per sample. Whitespace is ignored.
        n_samples: Expected number of samples, checked when given.
        codes: Character → group label mapping. ``"X"`` always means excluded.

    Returns:
        List of labels, ``None`` for excluded samples.

    Raises:
        CardinalityMismatchError: Length differs from ``n_samples``.
        InvalidGroupLabelError: A character is neither a known code nor ``"X"``.
    """
    chars = [c for c in groups if not c.isspace()]
    if n_samples is not None and len(chars) != n_samples:
        raise CardinalityMismatchError(
            f"Group string has {len(chars)} characters but there are {n_samples} samples"
        )
    labels: List[Optional[str]] = []
    for pos, ch in enumerate(chars):
        if ch.upper() == EXCLUDE_CODE:
            labels.append(None)
        elif ch in codes:
            labels.append(codes[ch])
        else:
            raise InvalidGroupLabelError(
                f"Unrecognized group code {ch!r} at position {pos}; "
                f"expected one of {sorted(codes)} or {EXCLUDE_CODE!r}"
            )
    return labels


def exclude_samples(
    se: Any,
    labels: Sequence[Optional[str]],
    exclude: Iterable[str] = (),
) -> Tuple[Any, List[str]]:
    """
    Drop excluded samples from a raw experiment.

    A sample is excluded when its label is ``None`` or its id is listed in
    ``exclude``.

    Returns:
        ``(filtered_se, remaining_labels)``; the input is left untouched.

    Raises:
        CardinalityMismatchError: ``labels`` does not match the sample count.
        InvalidGroupLabelError: An id in ``exclude`` is not a sample of ``se``.
    """
    from .experiment import column_names, subset_samples

    samples = column_names(se)
    if len(labels) != len(samples):
        raise CardinalityMismatchError(
            f"Got {len(labels)} group labels for {len(samples)} samples"
        )
    exclude = set(exclude)
    unknown = exclude - set(samples)
    if unknown:
        raise InvalidGroupLabelError(f"Cannot exclude unknown samples {sorted(unknown)}")

    keep = [lab is not None and s not in exclude for s, lab in zip(samples, labels)]
    dropped = [s for s, k in zip(samples, keep) if not k]
    if not dropped:
        return se, list(labels)
    logger.info("excluding %d samples before normalization: %s", len(dropped), ", ".join(dropped))
    return subset_samples(se, keep), [lab for lab, k in zip(labels, keep) if k]


def model_matrix(
    labels: Sequence[str],
    group_order: Sequence[str] = DEFAULT_GROUP_ORDER,
    sample_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Build an indicator design matrix (``~ 0 + group``).

    Args:
        labels: Group label per sample.
        group_order: Canonical column order, reference group first. The
            order fixes the sign of downstream fold-changes.
        sample_names: Row index; defaults to ``0..n-1``.

    Returns:
        pd.DataFrame: Samples × groups, float 0/1, every row sums to 1.

    Raises:
        InvalidGroupLabelError: A label is not in ``group_order``.
        CardinalityMismatchError: ``sample_names`` length differs from labels.
    """
    labels = list(labels)
    unknown = sorted({str(lab) for lab in labels if lab not in group_order})
    if unknown:
        raise InvalidGroupLabelError(
            f"Labels {unknown} are not among the recognized groups {list(group_order)}"
        )
    if sample_names is not None and len(sample_names) != len(labels):
        raise CardinalityMismatchError(
            f"Got {len(labels)} group labels for {len(sample_names)} samples"
        )
    index = list(sample_names) if sample_names is not None else list(range(len(labels)))
    x = np.array([[float(lab == g) for g in group_order] for lab in labels]).reshape(len(labels), len(group_order))
    return pd.DataFrame(x, index=index, columns=list(group_order))

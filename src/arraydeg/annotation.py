"""
Attach gene identifiers to DEG tables.

The annotation table is an external reference keyed by probeset id (the
platform annotation), joined to the DEG table by exact string match.
"""

from __future__ import annotations
import logging
import warnings
from typing import Optional, Sequence
import pandas as pd

from .errors import JoinKeyMismatchError

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("fanout", "first", "collapse", "error")

# Separator used by array annotation files for multi-gene probesets
MULTI_VALUE_SEP = " /// "


def _resolve_duplicates(annotation: pd.DataFrame, key: str, policy: str) -> pd.DataFrame:
    dup = annotation[key].duplicated(keep=False)
    if not dup.any() or policy == "fanout":
        return annotation
    n_keys = annotation.loc[dup, key].nunique()
    if policy == "error":
        raise JoinKeyMismatchError(
            f"Annotation table has {n_keys} duplicated keys in column '{key}'"
        )
    if policy == "first":
        return annotation.drop_duplicates(key, keep="first")

    def _join(values: pd.Series) -> Optional[str]:
        seen = list(dict.fromkeys(str(v) for v in values.dropna()))
        return MULTI_VALUE_SEP.join(seen) if seen else None

    return annotation.groupby(key, sort=False, as_index=False).agg(_join)


def merge_annotation(
    degs: pd.DataFrame,
    annotation: pd.DataFrame,
    key: str = "ID",
    feature_column: str = "feature_id",
    columns: Optional[Sequence[str]] = None,
    duplicates: str = "fanout",
) -> pd.DataFrame:
    """
    Left-join a DEG table with an annotation table.

    Every DEG row appears in the output: unmatched rows get null annotation
    fields and are reported with a ``JoinKeyMismatchError`` warning. With
    ``duplicates="fanout"`` a key listed k times in the annotation yields k
    output rows.

    Args:
        degs: DEG (or full results) table.
        annotation: Reference table with one row per probeset/gene pair.
        key: Annotation column holding the feature id. Default: "ID".
        feature_column: DEG column holding the feature id. Default: "feature_id".
        columns: Annotation columns to attach (default: all but the key).
        duplicates: "fanout" (default), "first" (keep first row per key),
            "collapse" (join distinct values with " /// ") or "error".

    Returns:
        pd.DataFrame: DEG columns followed by annotation columns, in DEG order.

    Raises:
        JoinKeyMismatchError: The key column is missing from either table, or
            ``duplicates="error"`` and a key is duplicated.
        ValueError: Unknown duplicates policy.

    Example:
        >>> annotated = merge_annotation(degs, gpl_table, key="ID",
        ...                              columns=["Gene.symbol", "Gene.title"])
    """
    if duplicates not in DUPLICATE_POLICIES:
        raise ValueError(f"Unknown duplicates policy {duplicates!r}; choose from {DUPLICATE_POLICIES}")
    if key not in annotation.columns:
        raise JoinKeyMismatchError(
            f"Annotation table has no key column '{key}' (columns: {list(annotation.columns)})"
        )
    if feature_column not in degs.columns:
        raise JoinKeyMismatchError(f"DEG table has no key column '{feature_column}'")

    if columns is None:
        columns = [c for c in annotation.columns if c != key]
    missing = [c for c in columns if c not in annotation.columns]
    if missing:
        raise KeyError(f"Annotation table lacks columns {missing}")

    ann = annotation.loc[:, [key, *columns]].copy()
    ann[key] = ann[key].astype(str)
    ann = _resolve_duplicates(ann, key, duplicates)
    ann = ann.rename(columns={key: "__join_key__"})

    left = degs.copy()
    left["__join_key__"] = left[feature_column].astype(str)
    merged = left.merge(ann, how="left", on="__join_key__", sort=False, suffixes=("", "_annotation"))
    merged = merged.drop(columns="__join_key__")

    unmatched = sorted(set(left["__join_key__"]) - set(ann["__join_key__"]))
    if unmatched:
        preview = ", ".join(unmatched[:5]) + (", ..." if len(unmatched) > 5 else "")
        warnings.warn(
            JoinKeyMismatchError(
                f"{len(unmatched)} features have no annotation entry: {preview}"
            ),
            stacklevel=2,
        )
    if len(merged) > len(degs):
        logger.info(
            "annotation join fanned out %d DEG rows into %d rows", len(degs), len(merged)
        )
    return merged

"""
Analysis configuration.

All tunables of the pipeline live in one dataclass that is threaded through
every stage explicitly; no stage reads ambient state.
"""

from __future__ import annotations
import json
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from .annotation import DUPLICATE_POLICIES
from .limma.normalize_between_arrays import NORMALIZE_METHODS
from .limma.p_adjust import ADJUST_METHODS

DEFAULT_GROUP_CODES: Dict[str, str] = {"0": "control", "1": "case"}
DEFAULT_GROUP_ORDER: Tuple[str, str] = ("control", "case")
EXCLUDE_CODE = "X"


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for a two-group differential expression run.

    Attributes:
        group_codes: Mapping from group-string character to group label.
        group_order: Canonical group order, reference group first. Determines
            design column order.
        contrast: ``(A, B)``; fold-changes are reported as A relative to B.
        proportion: Assumed proportion of differentially expressed features,
            used by the empirical Bayes log-odds.
        adjust_method: Multiple testing method (see ``limma.p_adjust``).
        p_value: Adjusted p-value threshold for DEG selection (strict ``<``).
        lfc: Absolute log2 fold-change threshold for DEG selection (strict ``>``).
        normalize_method: Between-array normalization (``"quantile"``,
            ``"scale"`` or ``"none"``).
        offset: Added to intensities before the log2 transform.
        polish_maxiter: Median polish iteration limit.
        polish_eps: Median polish convergence tolerance.
        annotation_key: Feature-id column of the annotation table.
        duplicates: Policy for duplicated annotation keys.
    """
    group_codes: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_GROUP_CODES))
    group_order: Tuple[str, ...] = DEFAULT_GROUP_ORDER
    contrast: Tuple[str, str] = ("case", "control")
    proportion: float = 0.01
    adjust_method: str = "BH"
    p_value: float = 0.05
    lfc: float = 2.0
    normalize_method: str = "quantile"
    offset: float = 1.0
    polish_maxiter: int = 10
    polish_eps: float = 0.01
    annotation_key: str = "ID"
    duplicates: str = "fanout"

    def __post_init__(self) -> None:
        if len(self.group_order) != 2:
            raise ValueError(
                f"Exactly two groups are supported, got {list(self.group_order)}"
            )
        if len(set(self.group_order)) != 2:
            raise ValueError(f"Group names must be distinct, got {list(self.group_order)}")
        unknown = set(self.group_codes.values()) - set(self.group_order)
        if unknown:
            raise ValueError(
                f"Group codes map to labels {sorted(unknown)} not in group_order {list(self.group_order)}"
            )
        if EXCLUDE_CODE in self.group_codes:
            raise ValueError(f"Group code {EXCLUDE_CODE!r} is reserved for excluded samples")
        if len(self.contrast) != 2 or set(self.contrast) != set(self.group_order):
            raise ValueError(
                f"Contrast {list(self.contrast)} must name both groups of {list(self.group_order)}"
            )
        if not 0 < self.proportion < 1:
            raise ValueError(f"proportion must lie in (0, 1), got {self.proportion}")
        if not 0 < self.p_value <= 1:
            raise ValueError(f"p_value must lie in (0, 1], got {self.p_value}")
        if self.lfc < 0:
            raise ValueError(f"lfc must be non-negative, got {self.lfc}")
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")
        for name, allowed in (
            ("adjust_method", ADJUST_METHODS),
            ("duplicates", DUPLICATE_POLICIES),
            ("normalize_method", NORMALIZE_METHODS),
        ):
            value = getattr(self, name)
            if value not in allowed:
                raise ValueError(f"Unknown {name} {value!r}; choose from {allowed}")

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Return a copy with the non-None ``overrides`` applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a config from a plain mapping, ignoring nothing silently."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        kwargs = dict(data)
        for key in ("group_order", "contrast"):
            if key in kwargs:
                kwargs[key] = parse_pair(kwargs[key])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AnalysisConfig":
        """Load a config from a ``.toml`` or ``.json`` file."""
        path = Path(path)
        if path.suffix == ".toml":
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        elif path.suffix == ".json":
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix!r} (use .toml or .json)")
        return cls.from_mapping(data.get("analysis", data))


def parse_pair(value: Union[str, Sequence[str]], sep: str = "-") -> Tuple[str, ...]:
    """Parse ``"case-control"`` or ``["case", "control"]`` into a tuple."""
    if isinstance(value, str):
        parts = tuple(p.strip() for p in value.split(sep))
    else:
        parts = tuple(value)
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Expected two names, got {value!r}")
    return parts

"""Shared fixtures: small synthetic microarray experiments."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from arraydeg.design import model_matrix
from arraydeg.experiment import make_experiment

N_DE = 10
PROBES_PER_FEATURE = 2


def simulate_raw(groups="100111000", n_features=300, seed=7):
    """Raw intensities with the first N_DE features up 16-fold in case samples.

    Returns ``(raw_se, de_feature_ids)``. Feature baselines spread over
    4..12 on the log2 scale; DE features start near 6 so quantile
    normalization barely moves them.
    """
    rng = np.random.default_rng(seed)
    n_samples = len(groups)
    is_case = np.array([g == "1" for g in groups])

    base = rng.uniform(4, 12, size=n_features)
    base[:N_DE] = rng.uniform(5.5, 6.5, size=N_DE)
    log_feature = np.repeat(base[:, None], n_samples, axis=1)
    log_feature[:N_DE, is_case] += 4.0

    affinity = rng.normal(0, 0.3, size=n_features * PROBES_PER_FEATURE)
    log_probe = np.repeat(log_feature, PROBES_PER_FEATURE, axis=0) + affinity[:, None]
    log_probe += rng.normal(0, 0.15, size=log_probe.shape)

    features = [f"{i + 1000}_at" for i in range(n_features)]
    probes = [f"{f}:{k}" for f in features for k in range(PROBES_PER_FEATURE)]
    probe_features = [f for f in features for _ in range(PROBES_PER_FEATURE)]
    samples = [f"GSM{100 + j}" for j in range(n_samples)]

    raw = make_experiment(
        {"intensity": 2.0 ** log_probe},
        row_names=probes,
        column_names=samples,
        row_data={"feature_id": probe_features},
    )
    return raw, features[:N_DE]


@pytest.fixture
def mock_raw():
    """Raw experiment (600 probes × 9 samples) and its DE feature ids."""
    return simulate_raw()


@pytest.fixture
def mock_expression():
    """Log expression: 200 features × 6 samples, 20 up in case, one constant."""
    rng = np.random.default_rng(42)
    expr = rng.normal(8.0, 0.3, size=(200, 6))
    expr[:20, 3:] += 3.0
    expr[199] = 7.25
    features = [f"Gene_{i:03d}" for i in range(200)]
    samples = [f"S{i}" for i in range(6)]
    return make_experiment({"log_expr": expr}, row_names=features, column_names=samples)


@pytest.fixture
def mock_design(mock_expression):
    """Control × 3 then case × 3."""
    return model_matrix(
        ["control"] * 3 + ["case"] * 3,
        ("control", "case"),
        sample_names=list(mock_expression.column_names),
    )


@pytest.fixture
def mock_annotation():
    """Annotation for features 1000_at..1009_at minus 1003_at, with 1005_at listed twice."""
    ids = [f"{1000 + i}_at" for i in range(N_DE) if i != 3]
    rows = [{"ID": i, "Gene.symbol": f"GENE{i[:4]}", "Gene.title": f"gene {i}"} for i in ids]
    rows.append({"ID": "1005_at", "Gene.symbol": "GENE1005B", "Gene.title": "second gene"})
    return pd.DataFrame(rows)

"""Special-function helpers shared by the empirical Bayes routines."""

from __future__ import annotations
import warnings
import numpy as np
from scipy.special import polygamma


def trigamma(x):
    return polygamma(1, x)


def trigamma_inverse(x, tol: float = 1e-8, maxiter: int = 50):
    """Solve ``trigamma(y) = x`` for ``y`` by Newton iteration.

    Args:
        x: Positive scalar or array.
        tol: Relative convergence tolerance on the step size.
        maxiter: Iteration limit; a warning is emitted if it is reached.

    Returns:
        Array (or scalar for scalar input) of the same shape as ``x``.
        Non-positive entries map to NaN.
    """
    x = np.asarray(x, dtype=float)
    scalar = x.ndim == 0
    x = np.atleast_1d(x)
    y = np.full_like(x, np.nan)

    # Asymptotes: trigamma(y) ~ 1/y for large y and ~ 1/y^2 for small y
    big = x > 1e7
    small = (x < 1e-6) & (x > 0)
    y[big] = 1.0 / np.sqrt(x[big])
    y[small] = 1.0 / x[small]
    todo = (x > 0) & ~big & ~small

    if np.any(todo):
        xt = x[todo]
        yt = 0.5 + 1.0 / xt
        for _ in range(maxiter):
            tri = trigamma(yt)
            dif = tri * (1.0 - tri / xt) / polygamma(2, yt)
            yt = yt + dif
            if np.max(-dif / yt) < tol:
                break
        else:
            warnings.warn("trigamma_inverse: iteration limit exceeded", RuntimeWarning, stacklevel=2)
        y[todo] = yt

    return y[0] if scalar else y

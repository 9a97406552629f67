"""Linear algebra utilities for the peak fitting iterations.

This module encapsulates the solve of the (small, dense) normal equations
built for one peak at a time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

import numpy as np
from scipy.linalg import cho_factor, cho_solve

if TYPE_CHECKING:
    from multifit.core.shared.typing import FloatArray


def solve_normal_equations(hessian: FloatArray, jacobian: FloatArray) -> FloatArray | None:
    """Solve ``hessian @ delta = jacobian`` by Cholesky decomposition.

    Args:
        hessian: Symmetric (n, n) matrix, normally a damped Gauss-Newton Hessian
        jacobian: Right hand side vector of length n

    Returns
    -------
        The solution vector, or None when the matrix is not positive definite
        or the solution is not finite. The inputs are not modified.
    """
    try:
        factor = cho_factor(hessian, lower=False, overwrite_a=False, check_finite=True)
        delta = cho_solve(factor, jacobian, overwrite_b=False, check_finite=False)
    except (np.linalg.LinAlgError, ValueError):
        return None

    if not np.all(np.isfinite(delta)):
        return None
    return cast("FloatArray", np.asarray(delta, dtype=np.float64))

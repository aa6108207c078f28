"""Module for the low-rank compression of single channel matrices.

Includes:

- `Factorization` — the thin SVD `(U, Σ, Vᵗ)` of a channel matrix, with rank-`r` reconstruction
- `factorize` — compute the `Factorization` of a matrix with the LAPACK SVD from `scipy.linalg`
- `truncate` — build the rank-`r` approximation `U[:, :r] · diag(Σ[:r]) · Vᵗ[:r, :]` from a `Factorization`

For an `m x n` matrix with `k = min(m, n)`, `U` is `m x k`, `Σ` holds `k` non-negative singular values in descending
order and `Vᵗ` is `k x n`. Truncation uses the reduced `r x r` diagonal, so the product is always `m x n`. A rank
larger than `k` is clamped to `k`, which gives the exact reconstruction (up to floating-point rounding).

!!! Note "Repeated singular values"
    When singular values repeat, the singular vectors spanning that subspace are not unique and depend on the
    LAPACK driver's tie-breaking. The rank-`r` approximation is then only unique if the truncation does not split the
    repeated group. This is accepted behavior of the library primitive.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.linalg

from svdcompress.exceptions import FactorizationError
from svdcompress.serialize import PickleSerializable
from svdcompress.utils import check_rank

__all__ = ['Factorization', 'factorize', 'truncate', 'LAPACK_DRIVERS']

LAPACK_DRIVERS = ('gesdd', 'gesvd')  # divide-and-conquer (fast) and QR-iteration (robust)


@dataclass
class Factorization(PickleSerializable):
    """The thin singular value decomposition of an `m x n` channel matrix.

    :ivar u: `(m, k)` - the left singular vectors (columns)
    :ivar s: `(k,)` - the singular values, non-negative and in descending order
    :ivar vt: `(k, n)` - the right singular vectors (rows)
    """
    u: np.ndarray
    s: np.ndarray
    vt: np.ndarray

    @property
    def shape(self) -> tuple[int, int]:
        """Shape `(m, n)` of the factorized matrix."""
        return self.u.shape[0], self.vt.shape[1]

    @property
    def max_rank(self) -> int:
        """Number of singular triplets `k = min(m, n)`."""
        return len(self.s)

    def effective_rank(self, rank: int) -> int:
        """Clamp a (validated) target rank to the number of available singular triplets."""
        return min(check_rank(rank), self.max_rank)

    def reconstruct(self, rank: int = None) -> np.ndarray:
        """Rank-`rank` approximation of the original matrix (full reconstruction if `rank` is `None`)."""
        return truncate(self, self.max_rank if rank is None else rank)

    def energy(self, rank: int) -> float:
        """Fraction of the total energy `sum(Σ²)` kept by the leading `rank` singular values. A zero matrix keeps
        all of its (zero) energy at any rank.
        """
        r = self.effective_rank(rank)
        total = float(np.sum(self.s ** 2))
        if total == 0:
            return 1.0
        return float(np.sum(self.s[:r] ** 2) / total)

    def storage_size(self, rank: int) -> int:
        """Number of floats needed to store the rank-`rank` factors, i.e. `r * (m + n + 1)`."""
        m, n = self.shape
        return self.effective_rank(rank) * (m + n + 1)


def factorize(matrix: np.ndarray, lapack_driver: str = 'gesdd') -> Factorization:
    """Compute the thin SVD of a channel matrix, including both sets of singular vectors.

    If the requested LAPACK driver fails to converge, the factorization is retried once with `gesvd` (slower but more
    robust) before giving up.

    :param matrix: `(m, n)` - the matrix to factorize
    :param lapack_driver: the LAPACK routine to use, one of `gesdd` or `gesvd`
    :returns: the `Factorization` of `matrix`
    :raises FactorizationError: if `matrix` is not a 2d finite array or the SVD does not converge
    """
    if lapack_driver not in LAPACK_DRIVERS:
        raise ValueError(f"LAPACK driver must be one of {LAPACK_DRIVERS}, not '{lapack_driver}'.")
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.size == 0:
        raise FactorizationError(f'Can only factorize a non-empty 2d matrix, got shape {matrix.shape}.')
    if not np.all(np.isfinite(matrix)):
        raise FactorizationError('Matrix contains non-finite values (nan or inf).')

    drivers = [lapack_driver] if lapack_driver == 'gesvd' else [lapack_driver, 'gesvd']
    for i, driver in enumerate(drivers):
        try:
            u, s, vt = scipy.linalg.svd(matrix, full_matrices=False, compute_uv=True, check_finite=False,
                                        lapack_driver=driver)
            return Factorization(u=u, s=s, vt=vt)
        except np.linalg.LinAlgError as e:
            if i == len(drivers) - 1:
                raise FactorizationError(f'SVD did not converge with the {driver} driver: {e}') from e


def truncate(factorization: Factorization, rank: int) -> np.ndarray:
    """Construct the rank-`rank` approximation of the factorized matrix.

    Keeps the first `r = min(rank, k)` columns of `U`, singular values of `Σ`, and rows of `Vᵗ`, and returns
    `U_r · diag(Σ_r) · Vᵗ_r` (the diagonal is `r x r`; it is applied by broadcasting rather than built explicitly).

    :param factorization: the `(U, Σ, Vᵗ)` factors of an `m x n` matrix
    :param rank: the number of leading singular triplets to keep, must be a positive integer
    :returns: `(m, n)` - the approximated matrix; values may fall outside the range of the original matrix
    :raises InvalidRankError: if `rank` is not a positive integer
    """
    r = factorization.effective_rank(rank)
    u_r = factorization.u[:, :r]
    s_r = factorization.s[:r]
    vt_r = factorization.vt[:r, :]
    return (u_r * s_r) @ vt_r

"""Stochastic photon detection.

Detection during one simulation step is sampled as `n_events` independent
elementary trials.  In each trial the molecule absorbs with probability `g` (the
excitation PSF evaluated at the molecule) and emits with probability `q`; a photon
is counted when both happen.  The two gates use separate uniform draws, taken in
the order ``(absorb, emit)`` for every trial.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy import stats

if TYPE_CHECKING:
    import numpy.typing as npt


def gaussian_psf(
    position: tuple[float, float, float],
    centers: npt.ArrayLike,
    w_xy: float,
    w_z: float,
) -> npt.NDArray[np.float64]:
    """Evaluate a 3D Gaussian PSF centered at each of `centers`.

    Parameters
    ----------
    position : tuple[float, float, float]
        (x, y, z) of the molecule.
    centers : array-like
        (N, 3) array of PSF centers (the scan reference points).
    w_xy, w_z : float
        1/e^2 lateral and axial waists.

    Returns
    -------
    np.ndarray
        (N,) detection probabilities, in [0, 1].
    """
    c = np.atleast_2d(np.asarray(centers, dtype=float))
    dx = position[0] - c[:, 0]
    dy = position[1] - c[:, 1]
    dz = position[2] - c[:, 2]
    return np.exp(-2 * (dx * dx + dy * dy) / (w_xy * w_xy) - 2 * dz * dz / (w_z * w_z))


def axial_psf(z: float, center_z: float, w_z: float) -> float:
    """Evaluate a Gaussian light sheet (no lateral dependence)."""
    dz = z - center_z
    return float(np.exp(-2 * dz * dz / (w_z * w_z)))


def detect_photons(
    g: npt.ArrayLike, n_events: int, q: float, rng: np.random.Generator
) -> npt.NDArray[np.int64]:
    """Count photons detected in `n_events` trials, for every value of `g`.

    Parameters
    ----------
    g : array-like
        Absorption probability for each reference point, shape (N,) or scalar.
    n_events : int
        Number of elementary trials in one simulation step.
    q : float
        Emission probability per trial.
    rng : np.random.Generator
        Generator shared by the whole run.

    Returns
    -------
    np.ndarray
        Integer photon counts, same shape as `g`.
    """
    g = np.asarray(g, dtype=float)
    # trailing axis holds (u_abs, u_emit) for each trial
    u = rng.random((*g.shape, n_events, 2))
    hits = (g[..., None] > u[..., 0]) & (u[..., 1] < q)
    return hits.sum(axis=-1, dtype=np.int64)


def detector_noise(
    counts: npt.ArrayLike, rng: np.random.Generator
) -> npt.NDArray[np.int64]:
    """Return the noise counts to add to each completed pixel or sample.

    The noise is ``Poisson(sqrt(counts))`` plus the positive tail of a standard
    normal, truncated to an integer.
    """
    counts = np.asarray(counts)
    # FIXME: shot noise should probably be Poisson(counts), not Poisson(sqrt(counts))
    shot = stats.poisson.rvs(np.sqrt(counts), size=counts.shape, random_state=rng)
    dark = stats.halfnorm.rvs(size=counts.shape, random_state=rng)
    return (shot + dark).astype(np.int64)

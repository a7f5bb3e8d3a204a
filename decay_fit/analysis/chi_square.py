"""
Chi-square objective with asymmetric uncertainties.

For each measurement the residual diff = prediction - observed is normalized
by the uncertainty on the side of the measurement where the prediction falls:

    χ² = Σ diff² / σ²,   σ = err_plus  if diff > 0
                         σ = err_minus otherwise

A prediction exactly on the measurement (diff == 0) takes err_minus. This is
only a consequence of the strict comparison; the term is zero either way.
"""

from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray

from decay_fit.data import Dataset, DEFAULT_DATASET
from decay_fit.models.base import DecayParameters, ParameterIndex
from decay_fit.models.exponential import ExponentialDecayModel


_MODEL = ExponentialDecayModel()


def _residuals(
    params: DecayParameters,
    dataset: Dataset
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Signed residuals and the uncertainty selected for each of them."""
    diff = _MODEL.predict(params, dataset.times) - dataset.observed
    sigma = np.where(diff > 0.0, dataset.err_plus, dataset.err_minus)
    return diff, sigma


def chi_square_terms(
    params: DecayParameters,
    dataset: Dataset = DEFAULT_DATASET
) -> NDArray[np.float64]:
    """Per-point chi-square contributions, in dataset order."""
    diff, sigma = _residuals(params, dataset)
    return (diff * diff) / (sigma * sigma)


def chi_square(
    params: DecayParameters,
    dataset: Dataset = DEFAULT_DATASET
) -> float:
    """
    Asymmetric-error chi-square of the decay law against a dataset.

    Args:
        params: Decay constant and initial activity
        dataset: Measurements to compare against

    Returns:
        Sum of squared, error-normalized residuals (always >= 0)
    """
    return float(np.sum(chi_square_terms(params, dataset)))


def chi_square_gradient(
    params: DecayParameters,
    dataset: Dataset = DEFAULT_DATASET
) -> NDArray[np.float64]:
    """
    Analytic gradient of the chi-square in ParameterIndex order.

    ∂χ²/∂θ = Σ 2 · diff / σ² · ∂A/∂θ

    The selected σ switches where diff changes sign, but both the term and
    its slope vanish there, so the gradient is continuous.
    """
    diff, sigma = _residuals(params, dataset)
    weights = 2.0 * diff / (sigma * sigma)
    return _MODEL.gradient(params, dataset.times) @ weights


class ChiSquareObjective:
    """
    Chi-square bound to a dataset, evaluated on raw parameter arrays.

    This is the function handed to a minimizer: it takes an array in
    ParameterIndex order and returns a float. Evaluations are counted.

    Example:
        >>> objective = ChiSquareObjective()
        >>> objective([0.1, 1000.0])
        >>> objective.n_calls
        1
    """

    ndim: int = len(ParameterIndex)

    def __init__(self, dataset: Optional[Dataset] = None):
        self.dataset = dataset if dataset is not None else DEFAULT_DATASET
        self.n_calls = 0

    def __call__(self, x: ArrayLike) -> float:
        self.n_calls += 1
        return chi_square(DecayParameters.from_array(x), self.dataset)

    def jacobian(self, x: ArrayLike) -> NDArray[np.float64]:
        """Gradient with respect to the parameter array."""
        return chi_square_gradient(DecayParameters.from_array(x), self.dataset)

    @property
    def n_points(self) -> int:
        return len(self.dataset)

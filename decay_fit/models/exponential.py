"""
Exponential (radioactive) decay model.

The decay law:
    A(t) = A0 · exp(-λ · t)

Where:
    - A0: initial activity at t = 0
    - λ: decay constant
    - half-life t½ = ln 2 / λ
    - mean lifetime τ = 1 / λ

No domain checks are made: λ < 0 describes growth, and very large λ·t
under- or overflows the exponential.
"""

from typing import Union
import numpy as np
from numpy.typing import ArrayLike, NDArray

from decay_fit.models.base import DecayParameters, ParameterIndex


class ExponentialDecayModel:
    """
    Single-exponential decay model.

    Example:
        >>> model = ExponentialDecayModel()
        >>> params = DecayParameters(decay_constant=0.1, initial_activity=1000.0)
        >>> model.predict(params, np.array([0.0, 10.0]))
        array([1000.        ,  367.87944117])
    """

    def predict(
        self,
        params: DecayParameters,
        t: Union[float, ArrayLike]
    ) -> Union[float, NDArray[np.float64]]:
        """
        Evaluate the decay law.

        Args:
            params: Decay constant and initial activity
            t: Time or array of times

        Returns:
            Predicted activity A0·exp(-λt), same shape as t
        """
        return params.initial_activity * np.exp(-params.decay_constant * np.asarray(t, dtype=np.float64))

    def gradient(
        self,
        params: DecayParameters,
        t: Union[float, ArrayLike]
    ) -> NDArray[np.float64]:
        """
        Derivatives of the prediction with respect to the parameters.

        ∂A/∂λ = -t · A0 · exp(-λt)
        ∂A/∂A0 = exp(-λt)

        Returns:
            Array of shape (2, *t.shape), rows in ParameterIndex order
        """
        t = np.asarray(t, dtype=np.float64)
        decay = np.exp(-params.decay_constant * t)

        grad = np.empty((len(ParameterIndex),) + t.shape, dtype=np.float64)
        grad[ParameterIndex.LAMBDA] = -t * params.initial_activity * decay
        grad[ParameterIndex.A0] = decay
        return grad

    @staticmethod
    def half_life(decay_constant: float) -> float:
        """t½ = ln 2 / λ."""
        return np.log(2.0) / decay_constant

    @staticmethod
    def mean_lifetime(decay_constant: float) -> float:
        """τ = 1 / λ."""
        return 1.0 / decay_constant


_MODEL = ExponentialDecayModel()


def predict(
    params: DecayParameters,
    t: Union[float, ArrayLike]
) -> Union[float, NDArray[np.float64]]:
    """Predicted activity A0·exp(-λt) at time(s) t."""
    return _MODEL.predict(params, t)

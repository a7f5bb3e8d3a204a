"""
Parameter and result containers for the decay fit.

The two fit parameters travel through the minimizer as a raw array. Their
positions are fixed by ParameterIndex so that the objective function and the
minimizer's variable registration cannot disagree.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray


class ParameterIndex(IntEnum):
    """Position of each parameter in the minimizer's parameter array."""
    LAMBDA = 0
    A0 = 1


# Variable names registered with the minimizer, in ParameterIndex order
PARAMETER_NAMES: tuple[str, ...] = ("lambda", "A0")


@dataclass(frozen=True)
class DecayParameters:
    """
    Parameters of the decay law A(t) = A0 · exp(-λ · t).

    Attributes:
        decay_constant: λ, unconstrained (λ < 0 gives growth)
        initial_activity: A0, activity at t = 0
    """
    decay_constant: float
    initial_activity: float

    @classmethod
    def from_array(cls, values: ArrayLike) -> "DecayParameters":
        """Build from a parameter array in ParameterIndex order."""
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (len(ParameterIndex),):
            raise ValueError(
                f"Expected {len(ParameterIndex)} parameters, got shape {values.shape}"
            )
        return cls(
            decay_constant=float(values[ParameterIndex.LAMBDA]),
            initial_activity=float(values[ParameterIndex.A0]),
        )

    def to_array(self) -> NDArray[np.float64]:
        """Parameter array in ParameterIndex order."""
        values = np.empty(len(ParameterIndex), dtype=np.float64)
        values[ParameterIndex.LAMBDA] = self.decay_constant
        values[ParameterIndex.A0] = self.initial_activity
        return values


@dataclass
class FitResult:
    """
    Container for the decay fit results.

    Attributes:
        parameters: Best-fit parameters
        errors: Standard errors of the parameters (from the Hessian)
        chi_square: Minimum chi-square value
        converged: Whether the minimizer reported success
        n_points: Number of data points fitted
        n_parameters: Number of free parameters
        covariance: Parameter covariance matrix in ParameterIndex order
        n_function_calls: Number of objective evaluations
        n_iterations: Number of minimizer iterations
        status: Minimizer status message
    """
    parameters: DecayParameters
    errors: DecayParameters
    chi_square: float
    converged: bool
    n_points: int
    n_parameters: int = len(ParameterIndex)
    covariance: Optional[NDArray[np.float64]] = field(default=None, repr=False)
    n_function_calls: int = 0
    n_iterations: int = 0
    status: str = ""

    @property
    def ndof(self) -> int:
        """Degrees of freedom."""
        return self.n_points - self.n_parameters

    @property
    def reduced_chi_square(self) -> float:
        return self.chi_square / self.ndof if self.ndof > 0 else float("nan")

    def correlation(self) -> Optional[NDArray[np.float64]]:
        """Correlation matrix derived from the covariance, if available."""
        if self.covariance is None:
            return None
        sigma = np.sqrt(np.diag(self.covariance))
        with np.errstate(divide="ignore", invalid="ignore"):
            return self.covariance / np.outer(sigma, sigma)

"""
Decay Fitting Module.

Provides:
    - Configuration of the minimizer from settings
    - A single chi-square minimization of the decay law
    - Console report of the fit
"""

from typing import Optional
import warnings

from config.settings import FitSettings, get_settings
from decay_fit.analysis.chi_square import ChiSquareObjective
from decay_fit.analysis.minimizer import Optimizer, create_minimizer
from decay_fit.data import Dataset, DEFAULT_DATASET
from decay_fit.models.base import (
    DecayParameters,
    FitResult,
    ParameterIndex,
    PARAMETER_NAMES,
)


class DecayFitter:
    """
    Fit the exponential decay law by chi-square minimization.

    The minimizer is created from the configured name and algorithm, used
    for exactly one minimization and released afterwards. A fit that does not
    converge is still returned, with ``converged=False``.

    Example:
        >>> fitter = DecayFitter()
        >>> result = fitter.fit()
        >>> print(result.parameters.decay_constant, result.errors.decay_constant)
    """

    def __init__(self, config: Optional[FitSettings] = None):
        """
        Initialize fitter.

        Args:
            config: Fit settings (defaults to the global settings)
        """
        self.config = config if config is not None else get_settings().fit

    def create_minimizer(self) -> Optimizer:
        """
        Instantiate and configure the minimizer, without variables.

        Raises:
            ValueError: If the configured minimizer or algorithm is unknown
        """
        minimizer = create_minimizer(self.config.minimizer, self.config.algorithm)
        minimizer.set_strategy(self.config.strategy)
        minimizer.set_max_function_calls(self.config.max_function_calls)
        minimizer.set_max_iterations(self.config.max_iterations)
        minimizer.set_tolerance(self.config.tolerance)
        minimizer.set_error_def(self.config.error_def)
        return minimizer

    def fit(
        self,
        dataset: Optional[Dataset] = None,
        minimizer: Optional[Optimizer] = None
    ) -> FitResult:
        """
        Run the fit.

        Args:
            dataset: Measurements to fit (defaults to the embedded dataset)
            minimizer: Minimizer from create_minimizer() (created if omitted);
                released when the fit returns

        Returns:
            FitResult with best-fit parameters, errors and minimum chi-square
        """
        dataset = dataset if dataset is not None else DEFAULT_DATASET
        objective = ChiSquareObjective(dataset)
        if minimizer is None:
            minimizer = self.create_minimizer()

        with minimizer:
            minimizer.set_function(objective, objective.ndim)
            minimizer.set_variable(
                ParameterIndex.LAMBDA,
                PARAMETER_NAMES[ParameterIndex.LAMBDA],
                self.config.lambda_initial,
                self.config.lambda_step,
            )
            minimizer.set_variable(
                ParameterIndex.A0,
                PARAMETER_NAMES[ParameterIndex.A0],
                self.config.a0_initial,
                self.config.a0_step,
            )

            success = minimizer.minimize()

            result = FitResult(
                parameters=DecayParameters.from_array(minimizer.best_parameters()),
                errors=DecayParameters.from_array(minimizer.parameter_errors()),
                chi_square=minimizer.min_value(),
                converged=success,
                n_points=len(dataset),
                n_parameters=objective.ndim,
                covariance=minimizer.covariance(),
                n_function_calls=minimizer.n_calls,
                n_iterations=minimizer.n_iterations,
                status=minimizer.status,
            )

        if not result.converged:
            warnings.warn(f"Fit did not converge: {result.status}")

        return result


def format_fit_report(result: FitResult) -> str:
    """
    Four-line console report of a fit.

    Numbers are printed with six significant digits.
    """
    p, e = result.parameters, result.errors
    lines = [
        f"Fit success: {'yes' if result.converged else 'no'}",
        f"lambda = {p.decay_constant:g} ± {e.decay_constant:g}",
        f"A0     = {p.initial_activity:g} ± {e.initial_activity:g}",
        f"chi2   = {result.chi_square:g} "
        f"(Npoints = {result.n_points}, Npar = {result.n_parameters})",
    ]
    return "\n".join(lines)


def fit_decay(
    dataset: Optional[Dataset] = None,
    config: Optional[FitSettings] = None
) -> FitResult:
    """
    Convenience function to fit the decay law.

    Args:
        dataset: Measurements to fit (defaults to the embedded dataset)
        config: Fit settings (defaults to the global settings)

    Returns:
        FitResult
    """
    return DecayFitter(config).fit(dataset)

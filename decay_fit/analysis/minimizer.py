"""
Minimizer interface and scipy binding.

The fit talks to the numerical optimizer only through the Optimizer
interface: register the objective and the variables, configure convergence,
run once, read back the minimum and the parameter uncertainties.

Parameter uncertainties follow the usual curvature rule

    V = 2 · up · H⁻¹

where H is the Hessian of the objective at the minimum and up is the
objective increase that defines one standard deviation (1 for a chi-square).

Example:
    >>> with create_minimizer("scipy", "BFGS") as minimizer:
    ...     minimizer.set_function(objective, 2)
    ...     minimizer.set_variable(0, "lambda", 0.2, 0.01)
    ...     minimizer.set_variable(1, "A0", 900.0, 10.0)
    ...     success = minimizer.minimize()
    ...     print(minimizer.best_parameters(), minimizer.parameter_errors())
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional, Type
import warnings
import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize


@dataclass
class Variable:
    """A named minimizer variable with its starting point and step size."""
    name: str
    value: float
    step: float


class CallLimitReached(Exception):
    """Raised internally when the objective call budget is exhausted."""


class Optimizer(ABC):
    """
    Abstract minimizer capability.

    Subclasses implement minimize(); configuration, result storage and the
    accessors are shared.
    """

    name: ClassVar[str] = "BaseOptimizer"
    algorithms: ClassVar[tuple[str, ...]] = ()

    def __init__(self, algorithm: Optional[str] = None):
        if algorithm is None:
            algorithm = self.algorithms[0]
        if algorithm not in self.algorithms:
            raise ValueError(
                f"Unsupported algorithm for {self.name}: {algorithm}. "
                f"Available: {list(self.algorithms)}"
            )
        self.algorithm = algorithm

        self._function: Optional[Callable[[NDArray[np.float64]], float]] = None
        self._gradient: Optional[Callable[[NDArray[np.float64]], NDArray[np.float64]]] = None
        self._ndim = 0
        self._variables: dict[int, Variable] = {}

        self.strategy = 1
        self.max_function_calls = 10000
        self.max_iterations = 10000
        self.tolerance = 1e-6
        self.error_def = 1.0

        self._minimized = False
        self._x: Optional[NDArray[np.float64]] = None
        self._errors: Optional[NDArray[np.float64]] = None
        self._covariance: Optional[NDArray[np.float64]] = None
        self._min_value = float("nan")
        self.n_calls = 0
        self.n_iterations = 0
        self.edm = float("nan")
        self.status = ""

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_function(
        self,
        function: Callable[[NDArray[np.float64]], float],
        ndim: int
    ) -> None:
        """
        Register the objective.

        If the objective has a ``jacobian`` method it is used as the
        analytic gradient; otherwise gradients are taken numerically.
        """
        if ndim < 1:
            raise ValueError(f"Dimensionality must be positive, got {ndim}")
        self._function = function
        self._gradient = getattr(function, "jacobian", None)
        self._ndim = ndim
        self._variables = {}

    def set_variable(self, index: int, name: str, value: float, step: float) -> None:
        if not 0 <= index < self._ndim:
            raise ValueError(f"Variable index {index} out of range for dimension {self._ndim}")
        if step <= 0:
            raise ValueError(f"Step size for {name} must be positive, got {step}")
        self._variables[index] = Variable(name=name, value=float(value), step=float(step))

    def set_strategy(self, level: int) -> None:
        if level not in (0, 1, 2):
            raise ValueError(f"Strategy must be 0, 1 or 2, got {level}")
        self.strategy = level

    def set_max_function_calls(self, n: int) -> None:
        self.max_function_calls = int(n)

    def set_max_iterations(self, n: int) -> None:
        self.max_iterations = int(n)

    def set_tolerance(self, eps: float) -> None:
        self.tolerance = float(eps)

    def set_error_def(self, up: float) -> None:
        self.error_def = float(up)

    @property
    def variable_names(self) -> list[str]:
        return [self._variables[i].name for i in sorted(self._variables)]

    # ------------------------------------------------------------------
    # Minimization
    # ------------------------------------------------------------------

    @abstractmethod
    def minimize(self) -> bool:
        """
        Run the minimization once.

        Returns:
            True if the minimizer converged
        """
        pass

    def _check_ready(self) -> None:
        if self._function is None:
            raise RuntimeError("No objective function set")
        missing = [i for i in range(self._ndim) if i not in self._variables]
        if missing:
            raise RuntimeError(f"Variables not set for indices {missing}")

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _check_minimized(self) -> None:
        if not self._minimized:
            raise RuntimeError("minimize() has not been called")

    def best_parameters(self) -> NDArray[np.float64]:
        self._check_minimized()
        return self._x.copy()

    def parameter_errors(self) -> NDArray[np.float64]:
        self._check_minimized()
        return self._errors.copy()

    def covariance(self) -> Optional[NDArray[np.float64]]:
        self._check_minimized()
        return None if self._covariance is None else self._covariance.copy()

    def min_value(self) -> float:
        self._check_minimized()
        return self._min_value

    # ------------------------------------------------------------------
    # Scoped use
    # ------------------------------------------------------------------

    def release(self) -> None:
        """Drop the bound objective. Results stay readable."""
        self._function = None
        self._gradient = None

    def __enter__(self) -> "Optimizer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class MinimizerRegistry:
    """
    Registry for minimizer implementations.

    Example:
        >>> @MinimizerRegistry.register
        ... class MyMinimizer(Optimizer):
        ...     name = "mine"
        >>> minimizer = MinimizerRegistry.create("mine")
    """

    _minimizers: ClassVar[dict[str, Type[Optimizer]]] = {}

    @classmethod
    def register(cls, minimizer_class: Type[Optimizer]) -> Type[Optimizer]:
        cls._minimizers[minimizer_class.name] = minimizer_class
        return minimizer_class

    @classmethod
    def create(cls, name: str, algorithm: Optional[str] = None) -> Optimizer:
        """Instantiate a registered minimizer; ValueError if unknown."""
        if name not in cls._minimizers:
            available = list(cls._minimizers.keys())
            raise ValueError(f"Unknown minimizer: {name}. Available: {available}")
        return cls._minimizers[name](algorithm)

    @classmethod
    def list_minimizers(cls) -> list[str]:
        return list(cls._minimizers.keys())


def create_minimizer(name: str = "scipy", algorithm: Optional[str] = None) -> Optimizer:
    """Create a minimizer by registered name and algorithm."""
    return MinimizerRegistry.create(name, algorithm)


@MinimizerRegistry.register
class ScipyMinimizer(Optimizer):
    """
    Quasi-Newton minimizer backed by scipy.optimize.minimize.

    The optimizer works in step-scaled coordinates u = (x - x0) / step, so
    the step sizes set the scale of the numerical gradient and of the line
    search. Convergence is reached when the gradient norm in these
    coordinates drops below the tolerance, or when the optimizer stops on
    precision loss with an estimated distance to minimum
    (EDM = ½ gᵀH⁻¹g) below 0.002 · tolerance · up.

    Strategy:
        0: errors from the optimizer's own inverse-Hessian approximation
        1: errors from a finite-difference Hessian at the minimum
        2: as 1, and a Hessian that is not positive definite fails the fit
    """

    name: ClassVar[str] = "scipy"
    algorithms: ClassVar[tuple[str, ...]] = ("BFGS", "L-BFGS-B")

    # Finite-difference step for the Hessian, in units of the variable steps
    hessian_step: ClassVar[float] = 1e-3

    # scipy status for a stalled line search (BFGS and L-BFGS-B alike);
    # status 1 is the iteration or evaluation limit
    PRECISION_LOSS_STATUS: ClassVar[int] = 2

    def minimize(self) -> bool:
        self._check_ready()

        n = self._ndim
        x0 = np.array([self._variables[i].value for i in range(n)], dtype=np.float64)
        steps = np.array([self._variables[i].step for i in range(n)], dtype=np.float64)
        function = self._function
        gradient = self._gradient

        self.n_calls = 0
        self.n_iterations = 0
        best = {"u": np.zeros(n), "f": np.inf}

        def to_x(u: NDArray[np.float64]) -> NDArray[np.float64]:
            return x0 + steps * u

        def fun(u: NDArray[np.float64]) -> float:
            if self.n_calls >= self.max_function_calls:
                raise CallLimitReached()
            self.n_calls += 1
            f = float(function(to_x(u)))
            if f < best["f"]:
                best["u"], best["f"] = np.array(u, dtype=np.float64), f
            return f

        def jac(u: NDArray[np.float64]) -> NDArray[np.float64]:
            return np.asarray(gradient(to_x(u)), dtype=np.float64) * steps

        def count_iteration(*args: Any) -> None:
            self.n_iterations += 1

        options: dict[str, Any] = {"maxiter": self.max_iterations, "gtol": self.tolerance}
        if self.algorithm == "L-BFGS-B":
            options["maxfun"] = self.max_function_calls

        result = None
        try:
            result = minimize(
                fun,
                np.zeros(n),
                jac=jac if gradient is not None else None,
                method=self.algorithm,
                callback=count_iteration,
                options=options,
            )
        except CallLimitReached:
            success = False
            self.status = f"Call limit of {self.max_function_calls} reached"
            u_min, f_min = best["u"], best["f"]
        else:
            success = bool(result.success)
            self.status = str(result.message)
            u_min, f_min = np.asarray(result.x, dtype=np.float64), float(result.fun)

        def objective_u(u: NDArray[np.float64]) -> float:
            return float(function(to_x(u)))

        hessian_u = self._hessian(objective_u, u_min, result)
        cov_u = self._invert(hessian_u)

        if cov_u is not None:
            g = jac(u_min) if gradient is not None else self._numeric_gradient(objective_u, u_min)
            self.edm = 0.5 * float(g @ (cov_u @ g)) / (2.0 * self.error_def)
            if (
                not success
                and self._stopped_on_precision_loss(result)
                and self.edm < 0.002 * self.tolerance * self.error_def
            ):
                success = True
                self.status = f"Converged within EDM tolerance ({self.status})"
            self._covariance = cov_u * np.outer(steps, steps)
            self._errors = np.sqrt(np.clip(np.diag(self._covariance), 0.0, None))
        else:
            self.edm = float("nan")
            self._covariance = None
            self._errors = np.zeros(n)

        if self.strategy == 2 and not self._is_positive_definite(hessian_u):
            warnings.warn("Hessian at the minimum is not positive definite")
            success = False
            self.status = f"Hessian not positive definite ({self.status})"

        self._x = to_x(u_min)
        self._min_value = f_min
        self._minimized = True
        return success

    def _hessian(
        self,
        objective_u: Callable[[NDArray[np.float64]], float],
        u: NDArray[np.float64],
        opt_result: Any
    ) -> NDArray[np.float64]:
        """Hessian in scaled coordinates."""
        if self.strategy == 0 and opt_result is not None and hasattr(opt_result, "hess_inv"):
            hess_inv = opt_result.hess_inv
            if hasattr(hess_inv, "todense"):
                hess_inv = hess_inv.todense()
            hess_inv = np.asarray(hess_inv, dtype=np.float64)
            try:
                return np.linalg.inv(hess_inv)
            except np.linalg.LinAlgError:
                pass

        h = self.hessian_step
        n = len(u)
        f0 = objective_u(u)
        hessian = np.zeros((n, n))
        for i in range(n):
            ei = np.zeros(n)
            ei[i] = h
            hessian[i, i] = (objective_u(u + ei) - 2.0 * f0 + objective_u(u - ei)) / (h * h)
            for j in range(i + 1, n):
                ej = np.zeros(n)
                ej[j] = h
                hessian[i, j] = hessian[j, i] = (
                    objective_u(u + ei + ej)
                    - objective_u(u + ei - ej)
                    - objective_u(u - ei + ej)
                    + objective_u(u - ei - ej)
                ) / (4.0 * h * h)
        return hessian

    def _numeric_gradient(
        self,
        objective_u: Callable[[NDArray[np.float64]], float],
        u: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        h = self.hessian_step
        grad = np.zeros(len(u))
        for i in range(len(u)):
            ei = np.zeros(len(u))
            ei[i] = h
            grad[i] = (objective_u(u + ei) - objective_u(u - ei)) / (2.0 * h)
        return grad

    def _invert(self, hessian: NDArray[np.float64]) -> Optional[NDArray[np.float64]]:
        """Covariance 2·up·H⁻¹, or None if H is singular."""
        try:
            return 2.0 * self.error_def * np.linalg.inv(hessian)
        except np.linalg.LinAlgError:
            warnings.warn("Singular Hessian at the minimum; parameter errors unavailable")
            return None

    @classmethod
    def _stopped_on_precision_loss(cls, opt_result: Any) -> bool:
        return opt_result is not None and getattr(opt_result, "status", None) == cls.PRECISION_LOSS_STATUS

    @staticmethod
    def _is_positive_definite(matrix: NDArray[np.float64]) -> bool:
        try:
            return bool(np.all(np.linalg.eigvalsh(matrix) > 0))
        except np.linalg.LinAlgError:
            return False

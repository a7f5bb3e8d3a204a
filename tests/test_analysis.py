"""Tests for the chi-square objective, minimizer and fit driver."""

import warnings
from types import SimpleNamespace

import numpy as np
import pytest

from config.settings import FitSettings
from decay_fit.analysis.chi_square import (
    ChiSquareObjective,
    chi_square,
    chi_square_gradient,
    chi_square_terms,
)
from decay_fit.analysis.fitting import DecayFitter, fit_decay, format_fit_report
from decay_fit.analysis.minimizer import (
    MinimizerRegistry,
    ScipyMinimizer,
    create_minimizer,
)
from decay_fit.data import DataPoint, Dataset, DEFAULT_DATASET
from decay_fit.models.base import DecayParameters, ParameterIndex
from decay_fit.models.exponential import ExponentialDecayModel


TRUE_PARAMS = DecayParameters(decay_constant=0.1, initial_activity=1000.0)
INITIAL_PARAMS = DecayParameters(decay_constant=0.2, initial_activity=900.0)


@pytest.fixture
def single_point():
    """One measurement with a wider lower than upper uncertainty."""
    return Dataset.from_points([DataPoint(observed=100.0, t=0.0, err_minus=10.0, err_plus=5.0)])


class TestChiSquare:
    """Tests for the asymmetric chi-square."""

    def test_overshoot_uses_upper_error(self, single_point):
        """Prediction above the measurement is normalized by err_plus."""
        params = DecayParameters(decay_constant=0.3, initial_activity=110.0)
        assert chi_square(params, single_point) == pytest.approx(4.0)

    def test_undershoot_uses_lower_error(self, single_point):
        """Prediction below the measurement is normalized by err_minus."""
        params = DecayParameters(decay_constant=0.3, initial_activity=90.0)
        assert chi_square(params, single_point) == pytest.approx(1.0)

    def test_exact_prediction_is_zero(self, single_point):
        params = DecayParameters(decay_constant=0.3, initial_activity=100.0)
        assert chi_square(params, single_point) == 0.0

    def test_non_negative(self):
        """Chi-square is non-negative across parameter space."""
        rng = np.random.default_rng(42)
        for lam, A0 in zip(rng.uniform(-0.05, 1.0, 200), rng.uniform(-500.0, 3000.0, 200)):
            assert chi_square(DecayParameters(lam, A0), DEFAULT_DATASET) >= 0.0

    def test_true_parameters_near_noise_floor(self):
        """Generating parameters give a small chi-square compared to the initial guess."""
        chi2_true = chi_square(TRUE_PARAMS)
        chi2_initial = chi_square(INITIAL_PARAMS)

        assert chi2_true < 2 * len(DEFAULT_DATASET)
        assert chi2_true < 0.01 * chi2_initial

    def test_idempotent(self):
        """Repeated evaluation is bit-identical."""
        params = DecayParameters(decay_constant=0.137, initial_activity=987.6)
        values = [chi_square(params, DEFAULT_DATASET) for _ in range(5)]
        assert all(v == values[0] for v in values)

    def test_terms_sum_to_total(self):
        terms = chi_square_terms(INITIAL_PARAMS)
        assert len(terms) == len(DEFAULT_DATASET)
        assert all(terms >= 0)
        assert np.sum(terms) == pytest.approx(chi_square(INITIAL_PARAMS))

    def test_order_independent(self):
        """The metric is a sum, so point order does not matter."""
        reversed_data = Dataset.from_points(reversed(DEFAULT_DATASET.points))
        assert chi_square(INITIAL_PARAMS, reversed_data) == pytest.approx(
            chi_square(INITIAL_PARAMS, DEFAULT_DATASET), rel=1e-12
        )

    def test_gradient_matches_finite_differences(self):
        """Test analytic chi-square gradient."""
        x = np.array([0.15, 950.0])
        grad = chi_square_gradient(DecayParameters.from_array(x))

        steps = np.array([1e-7, 1e-3])
        numeric = np.zeros(2)
        for i in range(2):
            dx = np.zeros(2)
            dx[i] = steps[i]
            numeric[i] = (
                chi_square(DecayParameters.from_array(x + dx))
                - chi_square(DecayParameters.from_array(x - dx))
            ) / (2 * steps[i])

        np.testing.assert_allclose(grad, numeric, rtol=1e-5)

    def test_gradient_vanishes_at_exact_fit(self, single_point):
        params = DecayParameters(decay_constant=0.3, initial_activity=100.0)
        np.testing.assert_array_equal(chi_square_gradient(params, single_point), [0.0, 0.0])


class TestChiSquareObjective:
    """Tests for the objective handed to the minimizer."""

    def test_evaluates_in_index_order(self):
        objective = ChiSquareObjective()
        x = np.empty(2)
        x[ParameterIndex.LAMBDA] = 0.1
        x[ParameterIndex.A0] = 1000.0

        assert objective(x) == chi_square(TRUE_PARAMS)
        assert objective.ndim == 2
        assert objective.n_points == 9

    def test_counts_calls(self):
        objective = ChiSquareObjective()
        for _ in range(3):
            objective([0.2, 900.0])
        assert objective.n_calls == 3

    def test_custom_dataset(self, single_point):
        objective = ChiSquareObjective(single_point)
        assert objective([0.0, 110.0]) == pytest.approx(4.0)
        np.testing.assert_allclose(objective.jacobian([0.0, 110.0]), [0.0, 0.8])


class Quadratic:
    """Chi-square-like bowl with minimum at (1, -2) and errors (0.5, 2)."""

    def __call__(self, x):
        return ((x[0] - 1.0) / 0.5) ** 2 + ((x[1] + 2.0) / 2.0) ** 2


class TestMinimizer:
    """Tests for the scipy minimizer binding."""

    def test_registry(self):
        assert "scipy" in MinimizerRegistry.list_minimizers()
        assert isinstance(create_minimizer("scipy"), ScipyMinimizer)
        assert create_minimizer("scipy").algorithm == "BFGS"

    def test_unknown_minimizer(self):
        """Test error on unknown minimizer name."""
        with pytest.raises(ValueError):
            create_minimizer("nonexistent_minimizer")

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            create_minimizer("scipy", "Simplex")

    def test_results_before_minimize(self):
        minimizer = create_minimizer("scipy")
        with pytest.raises(RuntimeError):
            minimizer.best_parameters()
        with pytest.raises(RuntimeError):
            minimizer.min_value()

    def test_minimize_without_function(self):
        with pytest.raises(RuntimeError):
            create_minimizer("scipy").minimize()

    def test_minimize_without_all_variables(self):
        minimizer = create_minimizer("scipy")
        minimizer.set_function(Quadratic(), 2)
        minimizer.set_variable(0, "a", 0.0, 1.0)
        with pytest.raises(RuntimeError):
            minimizer.minimize()

    def test_invalid_configuration(self):
        minimizer = create_minimizer("scipy")
        minimizer.set_function(Quadratic(), 2)
        with pytest.raises(ValueError):
            minimizer.set_variable(2, "c", 0.0, 1.0)
        with pytest.raises(ValueError):
            minimizer.set_variable(0, "a", 0.0, 0.0)
        with pytest.raises(ValueError):
            minimizer.set_strategy(3)

    @pytest.mark.parametrize("algorithm", ["BFGS", "L-BFGS-B"])
    @pytest.mark.parametrize("strategy", [1, 2])
    def test_quadratic_minimum_and_errors(self, algorithm, strategy):
        """Errors follow V = 2·up·H⁻¹ for a numerical-gradient objective."""
        with create_minimizer("scipy", algorithm) as minimizer:
            minimizer.set_function(Quadratic(), 2)
            minimizer.set_variable(0, "a", 3.0, 0.1)
            minimizer.set_variable(1, "b", 5.0, 1.0)
            minimizer.set_strategy(strategy)
            success = minimizer.minimize()

        assert success
        np.testing.assert_allclose(minimizer.best_parameters(), [1.0, -2.0], atol=1e-3)
        np.testing.assert_allclose(minimizer.parameter_errors(), [0.5, 2.0], rtol=1e-3)
        assert minimizer.min_value() == pytest.approx(0.0, abs=1e-6)
        assert minimizer.variable_names == ["a", "b"]

    def test_error_definition_scales_errors(self):
        with create_minimizer("scipy") as minimizer:
            minimizer.set_function(Quadratic(), 2)
            minimizer.set_variable(0, "a", 3.0, 0.1)
            minimizer.set_variable(1, "b", 5.0, 1.0)
            minimizer.set_error_def(4.0)
            minimizer.minimize()

        np.testing.assert_allclose(minimizer.parameter_errors(), [1.0, 4.0], rtol=1e-3)

    def test_call_limit(self):
        """Exhausting the call budget ends the fit without success."""
        with create_minimizer("scipy") as minimizer:
            minimizer.set_function(ChiSquareObjective(), 2)
            minimizer.set_variable(0, "lambda", 0.2, 0.01)
            minimizer.set_variable(1, "A0", 900.0, 10.0)
            minimizer.set_max_function_calls(3)
            success = minimizer.minimize()

        assert not success
        assert minimizer.n_calls == 3
        assert "Call limit" in minimizer.status
        assert minimizer.min_value() <= chi_square(INITIAL_PARAMS)

    def test_release_on_exit(self):
        with create_minimizer("scipy") as minimizer:
            minimizer.set_function(Quadratic(), 2)
            minimizer.set_variable(0, "a", 0.0, 1.0)
            minimizer.set_variable(1, "b", 0.0, 1.0)
            minimizer.minimize()

        assert minimizer._function is None
        with pytest.raises(RuntimeError):
            minimizer.minimize()
        # Results survive release
        assert minimizer.best_parameters().shape == (2,)

    def test_positive_definite_check(self):
        assert ScipyMinimizer._is_positive_definite(np.array([[2.0, 0.5], [0.5, 1.0]]))
        assert not ScipyMinimizer._is_positive_definite(np.array([[1.0, 0.0], [0.0, -1.0]]))

    @pytest.mark.parametrize("status,expected", [(0, False), (1, False), (2, True), (3, False)])
    def test_precision_loss_status(self, status, expected):
        """Only a stalled line search qualifies for the EDM check."""
        assert ScipyMinimizer._stopped_on_precision_loss(SimpleNamespace(status=status)) is expected
        assert not ScipyMinimizer._stopped_on_precision_loss(None)

    def test_iteration_limit_is_not_converged(self):
        """A stop on max iterations fails even when the EDM is already small."""
        with create_minimizer("scipy") as minimizer:
            minimizer.set_function(Quadratic(), 2)
            minimizer.set_variable(0, "a", 1.0 + 1e-5, 1.0)
            minimizer.set_variable(1, "b", -2.0 + 1.6e-4, 1.0)
            minimizer.set_tolerance(1e-5)
            minimizer.set_max_iterations(1)
            success = minimizer.minimize()

        assert not success
        assert minimizer.edm < 0.002 * minimizer.tolerance
        assert "EDM" not in minimizer.status


class TestDecayFitter:
    """End-to-end tests for the decay fit."""

    def test_fit_recovers_generating_parameters(self):
        """Fit of the embedded data converges to λ ≈ 0.1, A0 ≈ 1000."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            result = DecayFitter(FitSettings()).fit()

        assert not [w for w in caught if "converge" in str(w.message)]
        assert result.converged
        assert result.parameters.decay_constant == pytest.approx(0.1, rel=0.05)
        assert result.parameters.initial_activity == pytest.approx(1000.0, rel=0.05)

        for err in (result.errors.decay_constant, result.errors.initial_activity):
            assert np.isfinite(err)
            assert err > 0

        assert result.chi_square <= chi_square(TRUE_PARAMS)
        assert result.chi_square == pytest.approx(chi_square(result.parameters))
        assert result.n_points == 9
        assert result.n_parameters == 2
        assert result.n_function_calls > 0

    def test_errors_match_linearized_covariance(self):
        """Hessian errors agree with the Gauss-Newton covariance (JᵀWJ)⁻¹."""
        result = fit_decay(config=FitSettings())

        model = ExponentialDecayModel()
        J = model.gradient(result.parameters, DEFAULT_DATASET.times).T
        W = np.diag(1.0 / DEFAULT_DATASET.err_minus ** 2)
        expected = np.sqrt(np.diag(np.linalg.inv(J.T @ W @ J)))

        np.testing.assert_allclose(result.errors.to_array(), expected, rtol=0.1)
        np.testing.assert_allclose(np.sqrt(np.diag(result.covariance)), result.errors.to_array())

    def test_parameters_are_correlated(self):
        """λ and A0 estimates are positively correlated for decay data."""
        result = fit_decay(config=FitSettings())
        corr = result.correlation()
        assert corr[0, 0] == pytest.approx(1.0)
        assert 0.0 < corr[0, 1] < 1.0

    @pytest.mark.parametrize("strategy", [0, 1])
    def test_lower_strategies(self, strategy):
        result = fit_decay(config=FitSettings(strategy=strategy))

        assert result.converged
        assert result.parameters.decay_constant == pytest.approx(0.1, rel=0.05)
        assert result.errors.decay_constant > 0
        assert result.errors.initial_activity > 0

    def test_lbfgsb_algorithm(self):
        result = fit_decay(config=FitSettings(algorithm="L-BFGS-B"))

        assert result.converged
        assert result.parameters.initial_activity == pytest.approx(1000.0, rel=0.05)

    def test_custom_dataset(self):
        """A dataset generated without noise is reproduced exactly."""
        t = np.arange(0.0, 30.0, 3.0)
        A = 500.0 * np.exp(-0.05 * t)
        data = Dataset.from_points(
            DataPoint(observed=a, t=ti, err_minus=0.05 * a, err_plus=0.02 * a)
            for a, ti in zip(A, t)
        )
        result = fit_decay(data, FitSettings(a0_initial=450.0, lambda_initial=0.08))

        assert result.converged
        assert result.parameters.decay_constant == pytest.approx(0.05, rel=1e-4)
        assert result.parameters.initial_activity == pytest.approx(500.0, rel=1e-4)
        assert result.chi_square == pytest.approx(0.0, abs=1e-6)

    def test_non_convergence_still_returns_result(self):
        """A failed fit warns and still reports values."""
        with pytest.warns(UserWarning, match="did not converge"):
            result = fit_decay(config=FitSettings(max_function_calls=3))

        assert not result.converged
        assert np.isfinite(result.chi_square)
        assert "Fit success: no" in format_fit_report(result)

    def test_unknown_minimizer_raises(self):
        with pytest.raises(ValueError):
            fit_decay(config=FitSettings(minimizer="nonexistent_minimizer"))

    def test_fit_with_supplied_minimizer(self):
        """A minimizer created up front is used for the fit and released."""
        fitter = DecayFitter(FitSettings())
        minimizer = fitter.create_minimizer()
        result = fitter.fit(minimizer=minimizer)

        assert result.converged
        assert result.n_function_calls == minimizer.n_calls
        assert minimizer.variable_names == ["lambda", "A0"]
        with pytest.raises(RuntimeError):
            minimizer.minimize()


class TestReport:
    """Tests for the console report."""

    def test_report_lines(self):
        result = fit_decay(config=FitSettings())
        lines = format_fit_report(result).splitlines()

        assert len(lines) == 4
        assert lines[0] == "Fit success: yes"
        assert lines[1].startswith("lambda = ")
        assert " ± " in lines[1]
        assert lines[2].startswith("A0     = ")
        assert lines[3].startswith("chi2   = ")
        assert lines[3].endswith("(Npoints = 9, Npar = 2)")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

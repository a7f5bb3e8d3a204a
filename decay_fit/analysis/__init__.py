"""
Analysis Module.

Pipeline Components:

1. Chi-Square Objective (chi_square.py)
   - Asymmetric-uncertainty chi-square
   - Analytic gradient
   - Callable objective bound to a dataset

2. Minimizer (minimizer.py)
   - Optimizer capability interface
   - scipy.optimize binding with Hessian-based errors
   - Registry and factory

3. Fitting (fitting.py)
   - Single minimization driven from settings
   - Console report
"""

from decay_fit.analysis.chi_square import (
    ChiSquareObjective,
    chi_square,
    chi_square_gradient,
    chi_square_terms,
)
from decay_fit.analysis.minimizer import (
    MinimizerRegistry,
    Optimizer,
    ScipyMinimizer,
    create_minimizer,
)
from decay_fit.analysis.fitting import (
    DecayFitter,
    fit_decay,
    format_fit_report,
)

__all__ = [
    "ChiSquareObjective",
    "chi_square",
    "chi_square_gradient",
    "chi_square_terms",
    "MinimizerRegistry",
    "Optimizer",
    "ScipyMinimizer",
    "create_minimizer",
    "DecayFitter",
    "fit_decay",
    "format_fit_report",
]

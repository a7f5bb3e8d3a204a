"""
Radioactive Decay Fit

Parameter estimation for the radioactive decay law from measurements with
asymmetric uncertainties.

Core Components:
    - data: Measurement records and the embedded dataset
    - models: Decay law, parameter vector and fit result
    - analysis: Asymmetric chi-square, minimizer binding and fit driver

Mathematical Framework:
    A(t) = A0 · exp(-λ · t)

    χ² = Σ (A(tᵢ) - Aᵢ)² / σᵢ²

    Where σᵢ is the upper uncertainty of point i when the prediction lies
    above the measurement and the lower uncertainty otherwise.

Author: Research Team
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Research Team"
__license__ = "MIT"

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from decay_fit.models import ExponentialDecayModel
    from decay_fit.analysis import DecayFitter

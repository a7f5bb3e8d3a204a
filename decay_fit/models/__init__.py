"""
Radioactive Decay Model Module

Decay law: A(t) = A0 · exp(-λ · t)

   - A0: initial activity
   - λ: decay constant
   - half-life t½ = ln 2 / λ

Provides the parameter vector (named, with a fixed positional index),
the model evaluator with its analytic gradient, and the fit result container.
"""

from decay_fit.models.base import (
    DecayParameters,
    FitResult,
    ParameterIndex,
    PARAMETER_NAMES,
)
from decay_fit.models.exponential import ExponentialDecayModel, predict

__all__ = [
    "DecayParameters",
    "FitResult",
    "ParameterIndex",
    "PARAMETER_NAMES",
    "ExponentialDecayModel",
    "predict",
]

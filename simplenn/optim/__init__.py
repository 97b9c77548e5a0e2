"""Update methods, learning-rate decay and the parameters optimizer."""

from .decay import DecayMethod, ExponentialDecay, HyperbolicDecay, NoDecay, StepDecay
from .optimizer import ParamsOptimizer
from .update_methods import (
    ADAMMethod,
    AdaGradMethod,
    L2Regularization,
    LearningRateMethod,
    MomentumMethod,
    RMSPropMethod,
    UpdateMethod,
)

__all__ = [
    "DecayMethod",
    "ExponentialDecay",
    "HyperbolicDecay",
    "NoDecay",
    "StepDecay",
    "ParamsOptimizer",
    "ADAMMethod",
    "AdaGradMethod",
    "L2Regularization",
    "LearningRateMethod",
    "MomentumMethod",
    "RMSPropMethod",
    "UpdateMethod",
]

"""
Gamma and Beta variate generation for Thompson Sampling.

Uniform and normal draws come from a private numpy Generator; the
Gamma sampler itself is Marsaglia & Tsang (2000), with the
U^(1/k) boost for shapes below one.
"""

import math
from typing import Optional

import numpy as np


class RandomVariateSampler:
    """
    Draws Gamma(shape, 1) and Beta(alpha, beta) variates.

    Each instance owns its random source, so seeding one sampler never
    affects another.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    def _uniform_open(self) -> float:
        """Uniform draw on the open interval (0, 1)."""
        u = 0.0
        while u == 0.0:
            u = float(self._rng.random())
        return u

    def gamma(self, shape: float) -> float:
        """Sample from Gamma(shape, 1)."""
        if not math.isfinite(shape) or shape <= 0:
            raise ValueError(f"gamma shape must be a finite positive number, got {shape!r}")

        if shape < 1.0:
            # Gamma(k) = Gamma(k + 1) * U^(1/k)
            return self.gamma(shape + 1.0) * self._uniform_open() ** (1.0 / shape)

        d = shape - 1.0 / 3.0
        c = 1.0 / math.sqrt(9.0 * d)

        while True:
            v = 0.0
            while v <= 0.0:
                x = float(self._rng.standard_normal())
                v = 1.0 + c * x

            v = v * v * v
            u = self._uniform_open()

            # Squeeze test avoids the logs most of the time
            if u < 1.0 - 0.0331 * (x * x) * (x * x):
                return d * v
            if math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
                return d * v

    def beta(self, alpha: float, beta: float) -> float:
        """Sample from Beta(alpha, beta) as X / (X + Y) with X, Y Gamma-distributed."""
        x = self.gamma(alpha)
        y = self.gamma(beta)
        if x + y == 0.0:
            return 0.5
        return x / (x + y)

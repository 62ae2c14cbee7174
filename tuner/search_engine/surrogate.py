import logging
import warnings
from typing import Optional, Tuple

import numpy as np
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel, Matern, WhiteKernel

from tuner.utils.exceptions import SurrogateOptimizationFailure


class GaussianProcessSurrogate:
    """
    Gaussian process model of performance over the encoded parameter space.

    Inputs are expected on the unit hypercube (see `ParameterSpace.encode`);
    targets are scores where larger is better.
    """

    def __init__(self, n_restarts: int = 2, nu: float = 2.5, noise_level: float = 1e-5,
                 random_state: Optional[int] = None, logger: Optional[logging.Logger] = None):
        self.n_restarts = n_restarts
        self.nu = nu
        self.noise_level = noise_level
        self.random_state = random_state
        self.logger = logger or logging.getLogger(__name__)
        self.model: Optional[GaussianProcessRegressor] = None

    def _create_kernel(self, n_dims: int):
        return ConstantKernel(1.0, (0.1, 10.0)) * Matern(
            length_scale=np.ones(n_dims), length_scale_bounds=(1e-2, 1e2), nu=self.nu
        ) + WhiteKernel(self.noise_level, (1e-6, 1e-1))

    def fit(self, X: np.ndarray, y: np.ndarray) -> "GaussianProcessSurrogate":
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        keep = np.isfinite(y)
        X, y = X[keep], y[keep]
        if len(y) < 2:
            raise SurrogateOptimizationFailure(
                f"The surrogate needs at least 2 finite observations, got {len(y)}"
            )

        self.model = GaussianProcessRegressor(
            kernel=self._create_kernel(X.shape[1]),
            alpha=1e-6,
            normalize_y=True,
            n_restarts_optimizer=self.n_restarts,
            random_state=self.random_state
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                self.model.fit(X, y)
            except Exception as e:
                self.model = None
                raise SurrogateOptimizationFailure(f"Gaussian process fit failed: {e}") from e
        for w in caught:
            self.logger.debug(f"Surrogate fit warning: {w.category.__name__}: {w.message}")

        self.logger.debug(f"Surrogate fitted on {len(y)} observations: {self.model.kernel_}")
        return self

    def predict(self, X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        if self.model is None:
            raise SurrogateOptimizationFailure("The surrogate has not been fitted")
        try:
            mean, std = self.model.predict(np.asarray(X, dtype=float), return_std=True)
        except Exception as e:
            raise SurrogateOptimizationFailure(f"Gaussian process prediction failed: {e}") from e
        return np.asarray(mean, dtype=float), np.asarray(std, dtype=float)

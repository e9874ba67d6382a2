"""Online mixture-of-Gaussians clustering of feature vectors."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

_INT_MAX = 2**31 - 1
_INT_MIN = -(2**31)


def _log(x: float) -> float:
    return math.log(x) if x > 0 else -math.inf


def _truncate_to_int(x: float) -> int:
    if math.isnan(x):
        return _INT_MIN
    if x >= _INT_MAX:
        return _INT_MAX
    if x <= _INT_MIN:
        return _INT_MIN
    return int(x)


def _as_vector(feature) -> np.ndarray:
    values = np.asarray(feature, dtype=np.float64)
    if values.ndim == 2 and values.shape[1] == 1:
        values = values[:, 0]
    if values.ndim != 1:
        raise ValueError("feature must be a column vector")
    return values


@dataclass(eq=False)
class MogCluster:
    """One Gaussian: mean vector, isotropic variance and mixture weight."""

    mean: np.ndarray
    sigma: float
    weight: float


class OnlineClusterMog:
    """A mixture of at most ``k`` Gaussians updated one feature at a time."""

    def __init__(self, k, alpha, t, init_sigma) -> None:
        self.k = int(k)
        self.alpha = float(alpha)
        self.t = float(t)
        self.init_sigma = float(init_sigma)
        self.clusters: list[MogCluster] = []

    def __len__(self) -> int:
        return len(self.clusters)

    def _ranked(self) -> list[tuple[int, MogCluster]]:
        """Clusters with their indices, most reliable (largest weight/sigma) first."""
        def ratio(item: tuple[int, MogCluster]) -> float:
            c = item[1]
            if c.sigma == 0:
                return math.inf if c.weight > 0 else 0.0
            return c.weight / c.sigma

        return sorted(enumerate(self.clusters), key=ratio, reverse=True)

    def _normalize(self) -> None:
        total = sum(c.weight for c in self.clusters)
        for c in self.clusters:
            c.weight /= total

    def cluster(self, feature) -> int:
        """Update the mixture with ``feature`` and return the cluster it belongs to."""
        f = _as_vector(feature)
        if self.clusters and f.shape != self.clusters[0].mean.shape:
            raise ValueError(
                f"feature has {f.shape[0]} rows, expected {self.clusters[0].mean.shape[0]}"
            )

        matched = False
        match_idx = 0
        max_likelihood = _INT_MIN
        with np.errstate(all="ignore"):
            for i, c in enumerate(self.clusters):
                diff = f - c.mean
                accu = float(np.sum(diff * diff))
                b = accu / c.sigma if c.sigma else math.inf
                likelihood = -0.5 * len(diff) * _log(c.sigma) - 0.5 * b
                if b < 9 and likelihood > max_likelihood:
                    max_likelihood = _truncate_to_int(likelihood)
                    match_idx = i
                    matched = True

            for i, c in enumerate(self.clusters):
                if i == match_idx:
                    diff = f - c.mean
                    accu = float(np.sum(diff * diff))
                    b = accu / c.sigma if c.sigma else math.inf
                    r = math.exp(-0.5 * b)
                    c.weight = (1 - self.alpha) * c.weight + self.alpha
                    c.mean = (1 - self.alpha * r) * c.mean + self.alpha * r * f
                    c.sigma = (1 - self.alpha * r) * c.sigma + self.alpha * r * accu
                else:
                    c.weight = (1 - self.alpha) * c.weight
        if self.clusters:
            self._normalize()

        idx = match_idx
        if not matched:
            idx = len(self.clusters)
            if idx >= self.k:
                min_weight = float(_INT_MAX)
                for i, c in enumerate(self.clusters):
                    if c.weight < min_weight:
                        min_weight, idx = c.weight, i
                replaced = self.clusters[idx]
                replaced.mean = f.copy()
                replaced.sigma = self.init_sigma
                replaced.weight = 0.01 / self.k
            else:
                self.clusters.append(MogCluster(f.copy(), self.init_sigma, 0.01 / self.k))
            self._normalize()
        return idx

    def is_background(self, cluster: int) -> bool:
        """Whether ``cluster`` is among the clusters that explain the background."""
        ranked = self._ranked()
        if not ranked:
            return False
        first_weight = ranked[0][1].weight
        w = 0.0
        for i, (index, c) in enumerate(ranked):
            if cluster == index:
                return True
            w += c.weight
            if w > self.t:
                return i > 0 and abs(c.weight - first_weight) < 0.01
        return False

    def background(self) -> np.ndarray:
        """Mean of the most reliable cluster."""
        ranked = self._ranked()
        if not ranked:
            raise ValueError("no clusters yet")
        return ranked[0][1].mean.copy()

    def true_background(self, feature) -> int:
        """Index of the most likely cluster for ``feature`` among the background ones."""
        f = _as_vector(feature)
        ranked = self._ranked()
        w = 0.0
        max_likelihood = float(-_INT_MAX)
        idx = 0
        with np.errstate(all="ignore"):
            for i, (index, c) in enumerate(ranked):
                diff = f - c.mean
                accu = float(np.sum(diff * diff))
                b = accu / c.sigma if c.sigma else math.inf
                likelihood = (
                    _log(c.weight)
                    - 0.5 * _log(len(diff) * self.clusters[i].sigma)
                    - 0.5 * b
                )
                if likelihood > max_likelihood:
                    max_likelihood = likelihood
                    idx = index
                if w > self.t and not (
                    i > 0 and abs(c.weight - ranked[i - 1][1].weight) < 0.01
                ):
                    return idx
                w += c.weight
        return idx

    def center(self, cluster: int) -> np.ndarray:
        """A copy of a cluster mean."""
        return self.clusters[cluster].mean.copy()
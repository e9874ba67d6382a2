"""Online sequential clustering (BSAS) of feature vectors."""

from __future__ import annotations

import numpy as np

_INT_MAX = 2**31 - 1


def _as_vector(feature) -> np.ndarray:
    values = np.asarray(feature, dtype=np.float64)
    return values.reshape(-1)


class OnlineClusterBsas:
    """Clusters features online, tracking how often and how recently each is hit."""

    def __init__(
        self,
        max_num_cluster,
        diff_threshold,
        learning_rate,
        background_hist_threshold,
        hist_replace_threshold,
        last_seen_threshold,
        merge_threshold,
    ) -> None:
        self.max_num_cluster = int(max_num_cluster)
        self.diff_threshold = float(diff_threshold)
        self.learning_rate = float(learning_rate)
        self.background_hist_threshold = background_hist_threshold
        self.hist_replace_threshold = hist_replace_threshold
        self.last_seen_threshold = last_seen_threshold
        self.merge_threshold = float(merge_threshold)
        self._centroids: list[np.ndarray] = []
        self._hist: list[int] = []
        self._last: list[int] = []

    def __len__(self) -> int:
        return len(self._centroids)

    def cluster(self, feature) -> int:
        """Assign ``feature`` to a cluster, updating the model; return its index."""
        f = _as_vector(feature)
        min_diff = float(_INT_MAX)
        index = 0
        for i, centroid in enumerate(self._centroids):
            d = float(np.linalg.norm(f - centroid))
            if d < min_diff:
                index, min_diff = i, d

        if min_diff < self.diff_threshold:
            rate = max(self.learning_rate, 1.0 / (self._hist[index] + 1.0))
            self._centroids[index] = self._centroids[index] * (1 - rate) + f * rate
            self._hist[index] += 1
            self._last[index] = -1
        elif len(self._centroids) < self.max_num_cluster:
            index = len(self._centroids)
            self._centroids.append(f.copy())
            self._hist.append(1)
            self._last.append(-1)
        else:
            min_hist = _INT_MAX
            min_index = 0
            for i, count in enumerate(self._hist):
                if count < min_hist:
                    min_hist, min_index = count, i
            if min_hist < self.hist_replace_threshold:
                self._centroids[min_index] = f.copy()
                self._hist[min_index] = 1
                self._last[min_index] = -1
            index = min_index

        for i in range(len(self._last)):
            self._last[i] += 1
            if self._last[i] > self.last_seen_threshold:
                self._hist[i] = max(self._hist[i] - 1, 0)

        for i in range(len(self._centroids) - 1, -1, -1):
            nearest = float(_INT_MAX)
            j_best = 0
            for j in range(i):
                d = float(np.linalg.norm(self._centroids[i] - self._centroids[j]))
                if d < nearest:
                    nearest, j_best = d, j
            if nearest < self.merge_threshold:
                total = self._hist[j_best] + self._hist[i]
                if total:
                    merged = (
                        self._centroids[j_best] * self._hist[j_best]
                        + self._centroids[i] * self._hist[i]
                    ) / total
                else:
                    merged = (self._centroids[j_best] + self._centroids[i]) / 2
                self._centroids[j_best] = merged
                self._hist[j_best] = total
                self._last[j_best] = min(self._last[j_best], self._last[i])
                del self._centroids[i]
                del self._hist[i]
                del self._last[i]
                if index == i:
                    index = j_best
        return index

    def diff(self, feature, cluster: int) -> float:
        """Euclidean distance from ``feature`` to a cluster centre."""
        return float(np.linalg.norm(self._centroids[cluster] - _as_vector(feature)))

    def is_matched(self, feature, cluster: int) -> bool:
        return self.diff(feature, cluster) < self.diff_threshold

    def hist_count(self, cluster: int) -> int:
        return self._hist[cluster]

    def is_background(self, cluster: int) -> bool:
        return self._hist[cluster] > self.background_hist_threshold

    def center(self, cluster: int) -> np.ndarray:
        """A copy of a cluster centre."""
        return self._centroids[cluster].copy()
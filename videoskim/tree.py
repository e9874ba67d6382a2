"""Online video skimming by pruned binary decision trees over shots."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import IO, Iterable, Sequence

import numpy as np

SHOT_LENGTH = 30
SUMMARY_RATE = 0.05
WINDOW = 30
PRUNE_SIZE = 1000
_INT_MAX = 2**31 - 1

_SIZE_WEIGHT = 0.2
_CONTINUITY_WEIGHT = 0.0
_R_WEIGHT = 0.6
_A_WEIGHT = 0.3


@dataclass(eq=False)
class Node:
    """A decision to include or exclude one shot, with the running scores of its path."""

    select: bool = False
    n_frames: int = 0
    activity: float = 0.0
    mean_distance: float = 0.0
    total_frames: int = 0
    include_frames: int = 0
    include_count: int = 0
    continuity: int = 0
    r_score: float = 0.0
    a_score: float = 0.0
    size_score: float = 0.0
    continuity_score: float = 0.0
    parent: "Node | None" = field(default=None, repr=False)
    children: list = field(default_factory=lambda: [None, None], repr=False)

    def attach(self, parent: "Node") -> None:
        """Hang this node under ``parent`` on the side given by its decision."""
        parent.children[1 if self.select else 0] = self
        self.parent = parent

    def update_from_parent(self) -> None:
        """Recompute the path totals and scores from the parent's values."""
        parent = self.parent
        self.total_frames = parent.total_frames + self.n_frames
        self.include_frames = parent.include_frames + (self.n_frames if self.select else 0)
        self.include_count = parent.include_count + (1 if self.select else 0)
        self.continuity = parent.continuity + (1 if self.select and parent.select else 0)

        if self.include_frames == 0:
            self.r_score = 0.0
            self.a_score = 0.0
        else:
            self.r_score = (
                parent.r_score * parent.include_frames + self.mean_distance * self.n_frames
            ) / self.include_frames
            self.a_score = (
                parent.a_score * parent.include_frames + self.activity * self.n_frames
            ) / self.include_frames

        rate = self.include_frames / (self.total_frames * SUMMARY_RATE)
        self.size_score = 1 / rate if rate > 1 else math.sqrt(rate)
        self.continuity_score = (
            0.0 if self.include_count == 0 else self.continuity / self.include_count
        )


def _vectors(features: Iterable) -> list[np.ndarray]:
    return [np.asarray(f, dtype=np.float64).reshape(-1) for f in features]


def _norm(a: np.ndarray, b: np.ndarray) -> float:
    if a.shape != b.shape:
        raise ValueError("feature vectors differ in size")
    return float(np.linalg.norm(a - b))


def shot_distance(f1: Sequence, f2: Sequence) -> float:
    """Mean Euclidean distance over all pairs of frame features of two shots."""
    a = _vectors(f1)
    b = _vectors(f2)
    total = sum(_norm(x, y) for x in a for y in b)
    count = len(a) * len(b)
    return total / count if count else 0.0


def shot_activity(features: Sequence) -> float:
    """Sum of distances between consecutive frame features, over the frame count."""
    vectors = _vectors(features)
    total = sum(_norm(x, y) for x, y in zip(vectors, vectors[1:]))
    return total / len(vectors) if vectors else 0.0


def normalized_score(node: Node, upper: Node, lower: Node) -> float:
    """Weighted sum of the node's scores rescaled between ``lower`` and ``upper``."""
    s = 0.0
    for name, weight in (
        ("size_score", _SIZE_WEIGHT),
        ("continuity_score", _CONTINUITY_WEIGHT),
        ("r_score", _R_WEIGHT),
        ("a_score", _A_WEIGHT),
    ):
        span = getattr(upper, name) - getattr(lower, name)
        if span:
            s += weight * (getattr(node, name) - getattr(lower, name)) / span
    return s


def _bounds(nodes: Sequence[Node]) -> tuple[Node, Node]:
    names = ("size_score", "continuity_score", "r_score", "a_score")
    upper = Node(**{n: float(-_INT_MAX) for n in names})
    lower = Node(**{n: float(_INT_MAX) for n in names})
    for node in nodes:
        for n in names:
            value = getattr(node, n)
            setattr(upper, n, max(getattr(upper, n), value))
            setattr(lower, n, min(getattr(lower, n), value))
    return upper, lower


def _mean_distance(dists: Sequence[float], node: Node) -> float:
    if not node.select:
        return 0.0
    total = 0.0
    ancestor = node
    for d in reversed(dists):
        ancestor = ancestor.parent
        if ancestor.select:
            total += d
    return total / (node.parent.include_count + 1)


def _reroot(new_root: Node, distances: Sequence[Sequence[float]]) -> None:
    """Make ``new_root`` the root and remove its contribution from the subtree."""
    new_root.total_frames = 0
    new_root.include_frames = 0
    new_root.include_count = 0
    new_root.continuity = 0
    new_root.mean_distance = 0.0
    new_root.activity = 0.0
    new_root.r_score = 0.0
    new_root.a_score = 0.0
    new_root.size_score = 0.0
    new_root.continuity_score = 0.0

    layer_nodes = [c for c in new_root.children if c is not None]
    layer = 1
    while layer_nodes:
        if new_root.select:
            dist, excluded = distances[layer][0], 1
        else:
            dist, excluded = 0.0, 0
        next_nodes: list[Node] = []
        for node in layer_nodes:
            next_nodes.extend(c for c in node.children if c is not None)
            if node.select:
                node.mean_distance = (
                    node.mean_distance * node.include_count - dist
                ) / (node.include_count - excluded)
            else:
                node.mean_distance = 0.0
            node.update_from_parent()
        layer += 1
        layer_nodes = next_nodes


class TreeSummarizer:
    """Decides shot by shot which shots go into the summary, with a fixed delay.

    Selected frame ranges are written to ``output`` as ``start end`` lines and
    collected in :attr:`segments`.
    """

    def __init__(self, output: IO[str]) -> None:
        self._output = output
        self.window = WINDOW
        self.prune_size = PRUNE_SIZE
        self.root = Node()
        self._leaves: list[Node] = [self.root]
        self._frames: deque[int] = deque()
        self._features: deque[list[np.ndarray]] = deque()
        self._distances: deque[deque[float]] = deque()
        self._delay_idx = 0
        self._shot_start = False
        self._shot_start_idx = 0
        self.segments: list[tuple[int, int]] = []

    def _emit(self, start: int, end: int) -> None:
        self._output.write(f"{start} {end}\n")
        self.segments.append((start, end))

    def _decide(self, select: bool, n_frames: int) -> None:
        if select:
            if not self._shot_start:
                self._shot_start_idx = self._delay_idx
                self._shot_start = True
        elif self._shot_start:
            self._shot_start = False
            self._emit(self._shot_start_idx, self._delay_idx + n_frames)
        self._delay_idx += n_frames

    def _top_ancestor(self, node: Node) -> Node:
        while node.parent is not self.root:
            node = node.parent
        return node

    def add_shot(self, shot_features: Sequence, n_frames: int) -> None:
        """Add the next shot, given its per-frame features and its frame count."""
        n_frames = int(n_frames)
        if n_frames <= 0:
            raise ValueError("a shot must have at least one frame")
        feature = _vectors(shot_features)
        self._frames.append(n_frames)
        self._features.append(feature)
        previous = list(self._features)[:-1]
        dists = deque(shot_distance(prev, feature) for prev in previous)
        self._distances.append(dists)
        activity = shot_activity(feature)

        new_leaves: list[Node] = []
        for leaf in self._leaves:
            for select in (True, False):
                node = Node(select=select, n_frames=n_frames, activity=activity)
                node.attach(leaf)
                node.mean_distance = _mean_distance(dists, node)
                node.update_from_parent()
                new_leaves.append(node)

        upper, lower = _bounds(new_leaves)
        new_leaves.sort(key=lambda n: normalized_score(n, upper, lower), reverse=True)

        if len(self._frames) == self.window:
            new_root = self._top_ancestor(new_leaves[0])
            kept = [n for n in new_leaves if self._top_ancestor(n) is new_root]
            self._leaves = kept[: self.prune_size]
            self.root = new_root
            self._decide(new_root.select, self._frames[0])
            _reroot(new_root, self._distances)
            self._features.popleft()
            self._distances.popleft()
            for d in self._distances:
                d.popleft()
            self._frames.popleft()
        else:
            self._leaves = new_leaves[: self.prune_size]

    def finish(self) -> list[tuple[int, int]]:
        """Decide the shots still pending and return all selected ranges."""
        upper, lower = _bounds(self._leaves)
        best: Node | None = None
        best_score = 0.0
        for leaf in self._leaves:
            s = normalized_score(leaf, upper, lower)
            if s > best_score:
                best, best_score = leaf, s
        if best is None:
            best = self._leaves[0]

        path: list[Node] = []
        node = best
        while node is not self.root:
            path.append(node)
            node = node.parent
        for node in reversed(path):
            n_frames = self._frames.popleft()
            self._features.popleft()
            self._decide(node.select, n_frames)

        if self._shot_start:
            self._shot_start = False
            self._emit(self._shot_start_idx, self._delay_idx)
        return list(self.segments)
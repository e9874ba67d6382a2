"""Keyframe selection by maximal marginal relevance over colour features."""

from __future__ import annotations

import argparse
import os
from typing import Sequence

import numpy as np

from videoskim.dataset import Dataset
from videoskim.records import Keyframe, write_keyframes

LAMBDA = 0.4
FEATURE_DIM = 256
_INT_MIN = float(-(2**31))


def feature_distance(a, b) -> float:
    """Euclidean distance between two feature vectors."""
    x = np.asarray(a, dtype=np.float32).reshape(-1)
    y = np.asarray(b, dtype=np.float32).reshape(-1)
    if x.shape != y.shape:
        raise ValueError("features differ in size")
    return float(np.sqrt(np.sum((x - y) ** 2)))


def _float_tokens(text: str) -> list[float]:
    values: list[float] = []
    for token in text.split():
        try:
            values.append(float(token))
        except ValueError:
            break
    return values


def load_features(dataset_dir: str, video_count: int) -> list[tuple[np.ndarray, Keyframe]]:
    """Read ``ms_feature/<i>.txt`` of every video, skipping all-zero features."""
    table: list[tuple[np.ndarray, Keyframe]] = []
    for vid in range(video_count):
        path = os.path.join(dataset_dir, "ms_feature", f"{vid}.txt")
        with open(path, encoding="utf-8") as stream:
            values = _float_tokens(stream.read())
        if len(values) % FEATURE_DIM:
            raise ValueError(f"{path}: incomplete feature vector at the end")
        for line, start in enumerate(range(0, len(values), FEATURE_DIM)):
            feature = np.array(values[start:start + FEATURE_DIM], dtype=np.float32)
            weight = float(feature[0]) + float(np.sum(np.abs(feature[1:])))
            if weight < 1e-6:
                continue
            table.append((feature, Keyframe(vid, line)))
    return table


def distance_table(features: Sequence) -> np.ndarray:
    """Symmetric matrix of pairwise feature distances."""
    n = len(features)
    if n == 0:
        return np.zeros((0, 0), dtype=np.float32)
    stacked = np.stack([np.asarray(f, dtype=np.float32).reshape(-1) for f in features])
    table = np.empty((n, n), dtype=np.float32)
    for i, row in enumerate(stacked):
        table[i] = np.sqrt(np.sum((stacked - row) ** 2, axis=1))
    table = np.minimum(table, table.T)
    np.fill_diagonal(table, 0)
    return table


def load_distance_table(path: str, n: int) -> np.ndarray:
    """Read an ``n`` x ``n`` table of native float32 values."""
    data = np.fromfile(path, dtype=np.float32, count=n * n)
    if data.size != n * n:
        raise ValueError(f"{path}: expected {n * n} distances, found {data.size}")
    return data.reshape(n, n)


def save_distance_table(table, path: str) -> None:
    """Write a distance table as raw native float32 rows."""
    with open(path, "wb") as stream:
        stream.write(np.ascontiguousarray(table, dtype=np.float32).tobytes())


def select_mmr(table, count: int) -> list[int]:
    """Greedily pick ``count`` indices balancing centrality and novelty."""
    dist = np.asarray(table, dtype=np.float64)
    n = dist.shape[0]
    if count > n:
        raise ValueError(f"cannot select {count} of {n} frames")
    used = np.zeros(n, dtype=bool)
    chosen: list[int] = []
    for _ in range(count):
        unused = ~used
        first = dist[:, unused].sum(axis=1) / max(int(unused.sum()), 1)
        if used.any():
            second = np.minimum(dist[:, used].min(axis=1), 1.0)
        else:
            second = np.ones(n)
        score = -LAMBDA * first + (1 - LAMBDA) * second
        best, best_score = -1, _INT_MIN
        for j in np.flatnonzero(unused):
            if score[j] > best_score:
                best, best_score = int(j), score[j]
        if best < 0:
            raise ValueError("no frame scores above the minimum")
        used[best] = True
        chosen.append(best)
    return chosen


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mmr")
    parser.add_argument("dataset_dir")
    parser.add_argument("k", type=int)
    parser.add_argument("output")
    parser.add_argument("dist_table", nargs="?")
    args = parser.parse_args(argv)

    dataset = Dataset(args.dataset_dir)
    print("Parse feature files...")
    entries = load_features(args.dataset_dir, len(dataset.videos))
    print(f"Total frames: {len(entries)}")

    if args.dist_table:
        print("Load all pairs distance")
        table = load_distance_table(args.dist_table, len(entries))
    else:
        print("Compute all pairs distance")
        table = distance_table([f for f, _ in entries])
        save_distance_table(table, "dist_table.txt")

    print("Compute MMR")
    summary = [entries[i][1] for i in select_mmr(table, args.k)]
    for key in summary:
        print(f"{key.video_id} {key.frame_id}")
    with open(args.output, "w", encoding="utf-8") as stream:
        write_keyframes(summary, stream)
    return 0
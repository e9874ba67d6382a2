import io

import numpy as np
import pytest

from videoskim.tree import (
    SHOT_LENGTH,
    Node,
    TreeSummarizer,
    normalized_score,
    shot_activity,
    shot_distance,
)


def test_shot_distance_single_pair():
    assert shot_distance([[0.0, 0.0]], [[3.0, 4.0]]) == pytest.approx(5.0)


def test_shot_distance_identical_is_zero():
    shot = [np.array([1.0, 2.0, 3.0]), np.array([1.0, 2.0, 3.0])]
    assert shot_distance(shot, shot) == 0.0


def test_shot_distance_empty_is_zero():
    assert shot_distance([], [[1.0, 2.0]]) == 0.0


def test_shot_distance_symmetric():
    rng = np.random.default_rng(1)
    a = list(rng.random((3, 5)))
    b = list(rng.random((4, 5)))
    assert shot_distance(a, b) == pytest.approx(shot_distance(b, a))


def test_shot_distance_size_mismatch():
    with pytest.raises(ValueError):
        shot_distance([[1.0, 2.0]], [[1.0, 2.0, 3.0]])


def test_activity_constant_shot_is_zero():
    assert shot_activity([[1.0, 1.0]] * 5) == 0.0


def test_activity_empty_is_zero():
    assert shot_activity([]) == 0.0


def test_activity_scales_linearly():
    rng = np.random.default_rng(2)
    frames = rng.random((6, 4))
    assert shot_activity(list(2 * frames)) == pytest.approx(2 * shot_activity(list(frames)))


def _bounds():
    upper = Node(size_score=1.0, continuity_score=1.0, r_score=1.0, a_score=1.0)
    lower = Node(size_score=0.0, continuity_score=0.0, r_score=0.0, a_score=0.0)
    return upper, lower


def test_normalized_score_lower_is_zero():
    upper, lower = _bounds()
    assert normalized_score(lower, upper, lower) == 0.0


def test_normalized_score_upper_is_weight_sum():
    upper, lower = _bounds()
    assert normalized_score(upper, upper, lower) == pytest.approx(0.2 + 0.6 + 0.3)


def test_normalized_score_flat_bounds():
    node = Node(size_score=0.5, r_score=0.5, a_score=0.5)
    assert normalized_score(node, node, node) == 0.0


def test_no_shots():
    out = io.StringIO()
    summarizer = TreeSummarizer(out)
    assert summarizer.finish() == []
    assert out.getvalue() == ""


def test_single_shot_is_kept():
    rng = np.random.default_rng(3)
    out = io.StringIO()
    summarizer = TreeSummarizer(out)
    summarizer.add_shot(list(rng.random((SHOT_LENGTH, 8))), SHOT_LENGTH)
    assert summarizer.finish() == [(0, SHOT_LENGTH)]
    assert out.getvalue() == f"0 {SHOT_LENGTH}\n"


def test_empty_shot_rejected():
    summarizer = TreeSummarizer(io.StringIO())
    with pytest.raises(ValueError):
        summarizer.add_shot([], 0)


def _run(seed, shots, window):
    rng = np.random.default_rng(seed)
    out = io.StringIO()
    summarizer = TreeSummarizer(out)
    summarizer.window = window
    for i in range(shots):
        base = rng.random(6) * (1 + i % 3)
        frames = base + 0.1 * rng.random((5, 6))
        summarizer.add_shot(list(frames), 30)
    return summarizer.finish(), out.getvalue()


def test_segments_are_ordered_and_on_shot_boundaries():
    segments, text = _run(4, 12, 4)
    last_end = 0
    for start, end in segments:
        assert start % 30 == 0 and end % 30 == 0
        assert start <= end <= 12 * 30
        assert start >= last_end
        last_end = end
    assert text == "".join(f"{s} {e}\n" for s, e in segments)


def test_deterministic():
    first_segments, first_text = _run(5, 10, 3)
    second_segments, second_text = _run(5, 10, 3)
    assert first_segments == second_segments
    assert first_text == second_text
    assert first_text == "".join(f"{s} {e}\n" for s, e in first_segments)
    assert sum(end - start for start, end in first_segments) <= 10 * 30
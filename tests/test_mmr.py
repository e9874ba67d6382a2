import os

import numpy as np
import pytest

from videoskim.mmr import (
    distance_table,
    feature_distance,
    load_distance_table,
    load_features,
    main,
    save_distance_table,
    select_mmr,
)
from videoskim.records import Keyframe


def _line(values):
    full = list(values) + [0.0] * (256 - len(values))
    return " ".join(f"{v:f}" for v in full) + "\n"


def test_feature_distance_pythagorean():
    assert feature_distance([3.0, 4.0], [0.0, 0.0]) == pytest.approx(5.0)
    assert feature_distance([1.0, 2.0], [1.0, 2.0]) == 0.0


def test_feature_distance_size_mismatch():
    with pytest.raises(ValueError):
        feature_distance([1.0], [1.0, 2.0])


def test_distance_table_symmetric_zero_diagonal():
    rng = np.random.default_rng(1)
    feats = [rng.random(8) for _ in range(5)]
    table = distance_table(feats)
    assert table.shape == (5, 5)
    np.testing.assert_array_equal(table, table.T)
    np.testing.assert_array_equal(np.diag(table), 0)
    assert table[1, 3] == pytest.approx(feature_distance(feats[1], feats[3]), rel=1e-5)


def test_table_file_round_trip(tmp_path):
    table = distance_table([np.arange(4.0), np.ones(4), np.zeros(4)])
    path = tmp_path / "table.bin"
    save_distance_table(table, str(path))
    assert path.stat().st_size == 9 * 4
    np.testing.assert_array_equal(load_distance_table(str(path), 3), table)


def test_load_table_too_short(tmp_path):
    path = tmp_path / "short.bin"
    save_distance_table(np.zeros((2, 2)), str(path))
    with pytest.raises(ValueError):
        load_distance_table(str(path), 3)


def test_select_mmr_picks_most_central_first():
    table = distance_table([[0.0], [1.0], [10.0]])
    order = select_mmr(table, 3)
    assert order[0] == 1
    assert sorted(order) == [0, 1, 2]


def test_select_mmr_too_many():
    with pytest.raises(ValueError):
        select_mmr(np.zeros((2, 2)), 3)


def _make_dataset(root):
    (root / "ms_feature").mkdir()
    (root / "index.txt").write_text("v0.avi 0\nv1.avi 100\n")
    (root / "ms_feature" / "0.txt").write_text(
        _line([0.5, 0.5]) + _line([]) + _line([0.1, 0.9])
    )
    (root / "ms_feature" / "1.txt").write_text(_line([1.0]))


def test_load_features_skips_empty_lines(tmp_path):
    _make_dataset(tmp_path)
    entries = load_features(str(tmp_path), 2)
    assert [k for _, k in entries] == [Keyframe(0, 0), Keyframe(0, 2), Keyframe(1, 0)]
    assert all(f.shape == (256,) for f, _ in entries)


def test_load_features_incomplete_vector(tmp_path):
    (tmp_path / "ms_feature").mkdir()
    (tmp_path / "ms_feature" / "0.txt").write_text("1 2 3\n")
    with pytest.raises(ValueError):
        load_features(str(tmp_path), 1)


def test_main_writes_summary_and_table(tmp_path, monkeypatch):
    _make_dataset(tmp_path)
    monkeypatch.chdir(tmp_path)
    out = tmp_path / "summary.txt"
    assert main([str(tmp_path), "2", str(out)]) == 0
    lines = out.read_text().splitlines()
    assert len(lines) == 2
    assert len(set(lines)) == 2
    assert all(line in {"0 0", "0 2", "1 0"} for line in lines)
    assert os.path.getsize(tmp_path / "dist_table.txt") == 9 * 4

    again = tmp_path / "again.txt"
    assert main([str(tmp_path), "2", str(again), str(tmp_path / "dist_table.txt")]) == 0
    assert again.read_text() == out.read_text()
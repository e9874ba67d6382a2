import pytest

from videoskim.dataset import Dataset
from videoskim.evaluate import (
    concat_single_view_skim_main,
    eval_keyframe_main,
    eval_multi_view_skim_main,
    eval_single_view_skim_main,
)
from videoskim.records import Keyframe, Segment


@pytest.fixture
def dataset_dir(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    (root / "index.txt").write_text("a.avi 0\nb.avi 50\n")
    (root / "event.txt").write_text("0 0 10\n\n1 60 70\n")
    return root


def test_keyframe_main_prints_report(dataset_dir, tmp_path, capsys):
    keyfile = tmp_path / "keys.txt"
    keyfile.write_text("0 3\n1 65\n1 5\n")
    assert eval_keyframe_main([str(dataset_dir), str(keyfile)]) == 0
    expected = Dataset(str(dataset_dir)).evaluate_keyframes(
        [Keyframe(0, 3), Keyframe(1, 65), Keyframe(1, 5)]
    )
    assert capsys.readouterr().out == f"{expected}\n"


def test_multi_view_skim_main(dataset_dir, tmp_path, capsys):
    skimfile = tmp_path / "skim.txt"
    skimfile.write_text("0 0 10\n1 60 70\n")
    assert eval_multi_view_skim_main([str(dataset_dir), str(skimfile)]) == 0
    expected = Dataset(str(dataset_dir)).evaluate_multi_view_skim(
        [[Segment(0, 0, 10)], [Segment(1, 60, 70)]]
    )
    assert capsys.readouterr().out == f"{expected}\n"
    assert expected.true_positives == expected.gt_length


def test_single_view_skim_main_applies_offset(dataset_dir, tmp_path, capsys):
    skimfile = tmp_path / "skim.txt"
    skimfile.write_text("10 20\n")
    assert eval_single_view_skim_main([str(dataset_dir), "1", str(skimfile)]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "precision: 10/10"
    assert out[2] == "event recall: 1/1"


def test_concat_main(dataset_dir, tmp_path, capsys):
    skimdir = tmp_path / "skims"
    skimdir.mkdir()
    (skimdir / "0.txt").write_text("1 2\n")
    (skimdir / "1.txt").write_text("3 4\n")
    assert concat_single_view_skim_main([str(dataset_dir), str(skimdir)]) == 0
    assert capsys.readouterr().out.splitlines() == ["0 1 2", "1 53 54"]


def test_usage_error_exits():
    with pytest.raises(SystemExit):
        eval_keyframe_main([])


def test_missing_dataset_raises(tmp_path):
    keyfile = tmp_path / "keys.txt"
    keyfile.write_text("0 1\n")
    with pytest.raises(FileNotFoundError):
        eval_keyframe_main([str(tmp_path / "nowhere"), str(keyfile)])
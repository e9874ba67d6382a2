"""Command-line entry points for evaluating summaries against a dataset."""

from __future__ import annotations

import argparse
from typing import Sequence

from videoskim.dataset import Dataset
from videoskim.records import (
    parse_keyframes,
    parse_multi_view_skim,
    parse_multi_view_skim_from_dir,
    parse_single_view_skim,
)


def eval_keyframe_main(argv: Sequence[str] | None = None) -> int:
    """Evaluate a keyframe list against a dataset's events."""
    parser = argparse.ArgumentParser(prog="eval-multi-view-keyframe")
    parser.add_argument("dataset")
    parser.add_argument("keyframes")
    args = parser.parse_args(argv)
    dataset = Dataset(args.dataset)
    with open(args.keyframes, encoding="utf-8") as stream:
        keyframes = parse_keyframes(stream)
    print(dataset.evaluate_keyframes(keyframes))
    return 0


def eval_multi_view_skim_main(argv: Sequence[str] | None = None) -> int:
    """Evaluate a multi-view skim file against a dataset's events."""
    parser = argparse.ArgumentParser(prog="eval-multi-view-skim")
    parser.add_argument("database")
    parser.add_argument("skimming")
    args = parser.parse_args(argv)
    dataset = Dataset(args.database)
    with open(args.skimming, encoding="utf-8") as stream:
        skim = parse_multi_view_skim(stream, dataset.videos)
    print(dataset.evaluate_multi_view_skim(skim))
    return 0


def eval_single_view_skim_main(argv: Sequence[str] | None = None) -> int:
    """Evaluate a single-view skim file of one video."""
    parser = argparse.ArgumentParser(prog="eval-single-view-skim")
    parser.add_argument("database")
    parser.add_argument("video_id", type=int)
    parser.add_argument("skimming")
    args = parser.parse_args(argv)
    dataset = Dataset(args.database)
    offset = dataset.videos[args.video_id].offset
    with open(args.skimming, encoding="utf-8") as stream:
        skim = parse_single_view_skim(stream, 0, offset)
    print(dataset.evaluate_single_view_skim(skim, args.video_id))
    return 0


def concat_single_view_skim_main(argv: Sequence[str] | None = None) -> int:
    """Join per-video skim files into one multi-view skim on stdout."""
    parser = argparse.ArgumentParser(prog="concat-single-view-skim")
    parser.add_argument("database")
    parser.add_argument("skimming_dir")
    args = parser.parse_args(argv)
    dataset = Dataset(args.database)
    for view in parse_multi_view_skim_from_dir(args.skimming_dir, dataset.videos):
        for seg in view:
            print(f"{seg.video_id} {seg.start} {seg.end}")
    return 0
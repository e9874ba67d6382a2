"""A multi-view video dataset with ground-truth events, and its evaluation."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Sequence

from videoskim.records import Keyframe, Segment, VideoInfo


def _ratio(num: int, den: int) -> float:
    return num / den if den else math.nan


def _half(value: int) -> int:
    """Integer halving that truncates toward zero."""
    return value // 2 if value >= 0 else -((-value) // 2)


@dataclass(frozen=True)
class KeyframeReport:
    true_positives: int
    total: int
    event_hits: int
    event_count: int
    redundant: int

    @property
    def precision(self) -> float:
        return _ratio(self.true_positives, self.total)

    @property
    def recall(self) -> float:
        return _ratio(self.event_hits, self.event_count)

    @property
    def redundancy(self) -> float:
        return _ratio(self.redundant, self.total)

    def __str__(self) -> str:
        return (
            f"precision: {self.true_positives}/{self.total}({self.precision:.6f})\n"
            f"recall: {self.event_hits}/{self.event_count}({self.recall:.6f})\n"
            f"redundant frame: {self.redundant}/{self.total}({self.redundancy:.6f})"
        )


@dataclass(frozen=True)
class SkimReport:
    true_positives: int
    summary_length: int
    gt_length: int
    event_hits: int
    event_count: int

    def __str__(self) -> str:
        return (
            f"precision: {self.true_positives}/{self.summary_length}\n"
            f"recall: {self.true_positives}/{self.gt_length}\n"
            f"event recall: {self.event_hits}/{self.event_count}"
        )


@dataclass(frozen=True)
class MultiViewReport:
    true_positives: int
    summary_length: int
    gt_length: int

    def __str__(self) -> str:
        return (
            f"precision: {self.true_positives}/{self.summary_length}\n"
            f"recall: {self.true_positives}/{self.gt_length}"
        )


class Dataset:
    """Videos listed in ``index.txt`` and events listed in ``event.txt``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.videos: list[VideoInfo] = []
        self.events: list[list[Segment]] = []

        index_path = os.path.join(path, "index.txt")
        try:
            with open(index_path, encoding="utf-8") as stream:
                tokens = stream.read().split()
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Failed to open database index: {path}") from exc
        for name, offset in zip(tokens[0::2], tokens[1::2]):
            try:
                value = int(offset)
            except ValueError:
                break
            self.videos.append(VideoInfo(f"{path}/{name}", value))

        event_path = os.path.join(path, "event.txt")
        if not os.path.exists(event_path):
            return
        event: list[Segment] = []
        with open(event_path, encoding="utf-8") as stream:
            for line in stream:
                if not line.strip():
                    if event:
                        self.events.append(event)
                        event = []
                elif line.startswith("#"):
                    continue
                else:
                    fields = line.split()
                    try:
                        vid, start, end = (int(f) for f in fields[:3])
                    except ValueError as exc:
                        raise ValueError(f"malformed event line: {line!r}") from exc
                    event.append(Segment(vid, start, end))
        if event:
            self.events.append(event)

    def evaluate_keyframes(self, keyframes: Sequence[Keyframe]) -> KeyframeReport:
        """Score keyframes against the events they fall in."""
        tp = redundant = event_get = 0
        event_hit = [False] * len(self.events)
        for key in keyframes:
            added = False
            for e, event in enumerate(self.events):
                for seg in event:
                    if seg.video_id != key.video_id:
                        continue
                    if seg.start <= key.frame_id < seg.end:
                        if event_hit[e]:
                            redundant += 1
                        else:
                            event_get += 1
                        event_hit[e] = True
                        if not added:
                            tp += 1
                        added = True
                        break
        return KeyframeReport(tp, len(keyframes), event_get, len(self.events), redundant)

    def evaluate_single_view_skim(self, skim: Sequence[Segment], video_id: int) -> SkimReport:
        """Score a skim of one video against that video's event segments."""
        gt = [seg for event in self.events for seg in event if seg.video_id == video_id]

        tp = 0
        for part in skim:
            pieces = [[part.start, part.end]]
            for g in gt:
                removed: list[int] = []
                for k in range(len(pieces)):
                    piece = pieces[k]
                    if g.start <= piece[0]:
                        if g.end >= piece[1]:
                            tp += piece[1] - piece[0]
                            removed.append(k)
                        elif g.end > piece[0]:
                            tp += g.end - piece[0]
                            piece[0] = g.end
                    elif g.start < piece[1]:
                        if g.end >= piece[1]:
                            tp += piece[1] - g.start
                            piece[1] = g.start
                        else:
                            tp += g.end - g.start
                            pieces.append([g.end, piece[1]])
                            piece[1] = g.start
                for k in reversed(removed):
                    del pieces[k]

        gt_length = 0
        last = 0
        for g in sorted(gt, key=lambda s: s.start):
            covered = g.end - max(g.start, last)
            if covered > 0:
                gt_length += covered
            last = g.end

        summary_length = sum(s.end - s.start for s in skim)

        event_get = 0
        for g in gt:
            cover = 0
            half = _half(g.end - g.start)
            for s in skim:
                start = max(s.start, g.start)
                end = min(s.end, g.end)
                if end > start:
                    cover += end - start
                if cover > half:
                    event_get += 1
                    break

        return SkimReport(tp, summary_length, gt_length, event_get, len(gt))

    def evaluate_multi_view_skim(self, skim: Sequence[Sequence[Segment]]) -> MultiViewReport:
        """Score a per-view skim frame by frame against all events."""
        length = max((seg.end for view in skim for seg in view), default=0)
        length = max(length, 0)

        positions = [0] * len(skim)
        tp = sum_length = gt_length = 0
        for i in range(length):
            got_event = [False] * len(self.events)
            for j, view in enumerate(skim):
                while positions[j] < len(view) and i >= view[positions[j]].end:
                    positions[j] += 1
                if positions[j] >= len(view):
                    continue
                if i >= view[positions[j]].start:
                    tp_added = False
                    for e, event in enumerate(self.events):
                        if got_event[e]:
                            continue
                        for seg in event:
                            if seg.video_id != j:
                                continue
                            if seg.start <= i < seg.end:
                                got_event[e] = True
                                if not tp_added:
                                    tp += 1
                                    tp_added = True
                    sum_length += 1
            for event in self.events:
                if any(seg.start <= i < seg.end for seg in event):
                    gt_length += 1
        return MultiViewReport(tp, sum_length, gt_length)
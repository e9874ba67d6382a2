"""Plain records shared by the dataset tools, and their text formats."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, Sequence


@dataclass(frozen=True)
class Segment:
    """A half-open frame range ``[start, end)`` of one video."""

    video_id: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Keyframe:
    """A single frame of one video."""

    video_id: int
    frame_id: int


@dataclass(frozen=True)
class VideoInfo:
    """A video file and its frame offset on the shared timeline."""

    path: str
    offset: int


def _int_groups(stream: IO[str], size: int) -> Iterator[tuple[int, ...]]:
    """Yield complete groups of integers until a token is not an integer."""
    group: list[int] = []
    for line in stream:
        for token in line.split():
            try:
                group.append(int(token))
            except ValueError:
                return
            if len(group) == size:
                yield tuple(group)
                group = []


def write_keyframes(keyframes: Iterable[Keyframe], stream: IO[str]) -> None:
    """Write one ``video_id frame_id`` line per keyframe."""
    for key in keyframes:
        stream.write(f"{key.video_id} {key.frame_id}\n")


def parse_keyframes(stream: IO[str]) -> list[Keyframe]:
    """Read ``video_id frame_id`` pairs."""
    return [Keyframe(vid, fid) for vid, fid in _int_groups(stream, 2)]


def parse_single_view_skim(stream: IO[str], video_id: int, offset: int) -> list[Segment]:
    """Read ``start end`` pairs, shifting them by ``offset``."""
    return [
        Segment(video_id, start + offset, end + offset)
        for start, end in _int_groups(stream, 2)
    ]


def parse_multi_view_skim(stream: IO[str], infos: Sequence[VideoInfo]) -> list[list[Segment]]:
    """Read ``video_id start end`` triples, grouped per video."""
    skim: list[list[Segment]] = [[] for _ in infos]
    for vid, start, end in _int_groups(stream, 3):
        if not 0 <= vid < len(skim):
            raise ValueError(f"video id {vid} out of range (0..{len(skim) - 1})")
        skim[vid].append(Segment(vid, start, end))
    return skim


def parse_multi_view_skim_from_dir(dirname: str, infos: Sequence[VideoInfo]) -> list[list[Segment]]:
    """Read ``<dirname>/<i>.txt`` single-view skims for every video."""
    skim: list[list[Segment]] = []
    for i, info in enumerate(infos):
        with open(os.path.join(dirname, f"{i}.txt"), encoding="utf-8") as stream:
            skim.append(parse_single_view_skim(stream, i, info.offset))
    return skim
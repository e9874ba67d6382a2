"""Merge the shots streamed by several sensors into one time-ordered summary."""

from __future__ import annotations

import heapq
import itertools
from collections import deque
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, Sequence

TIME_GAP = 400
_UINT32_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class Seg:
    """A streamed shot: start and stop time in ms, frame count and view."""

    s_time: int
    e_time: int
    n_frm: int
    vid: int


def _triples(stream: IO[str]) -> Iterator[tuple[int, int, int]]:
    group: list[int] = []
    for line in stream:
        for token in line.split():
            try:
                group.append(int(token) & _UINT32_MASK)
            except ValueError:
                return
            if len(group) == 3:
                yield group[0], group[1], group[2]
                group = []


def read_info(stream: IO[str], video_id: int) -> list[Seg]:
    """Read ``start_time stop_time n_frames`` lines of one view."""
    return [Seg(s, e, n, video_id) for s, e, n in _triples(stream)]


def schedule(
    queues: Iterable[Sequence[Seg]], time_gap: int, min_frames: int
) -> list[tuple[list[Seg], bool]]:
    """Order the views' shots by start time, grouping close shots of one view.

    Returns each group with whether its total frame count exceeds
    ``min_frames``; frames of groups marked ``False`` are read but not kept.
    """
    counter = itertools.count()
    heap: list[tuple[int, int, deque[Seg]]] = []
    for q in queues:
        pending = deque(q)
        if pending:
            heapq.heappush(heap, (pending[0].s_time, next(counter), pending))

    result: list[tuple[list[Seg], bool]] = []
    while heap:
        _, _, pending = heapq.heappop(heap)
        group: list[Seg] = []
        total = 0
        while pending:
            gap = (pending[0].s_time - group[-1].e_time) & _UINT32_MASK if group else 0
            if group and gap > time_gap:
                break
            total += pending[0].n_frm
            group.append(pending.popleft())
        result.append((group, total > min_frames))
        if pending:
            heapq.heappush(heap, (pending[0].s_time, next(counter), pending))
    return result
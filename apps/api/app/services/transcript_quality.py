from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable

MIN_ALLOWED_GAP_SEC = 30
ALLOWED_GAP_RATIO = 0.2


@dataclass(frozen=True)
class QualityVerdict:
    passed: bool
    gap_seconds: float | None = None
    allowed_gap_seconds: float | None = None
    reason: str | None = None


def _field(seg: Any, name: str) -> Any:
    if isinstance(seg, dict):
        return seg.get(name)
    return getattr(seg, name, None)


def _segment_end(seg: Any) -> float | None:
    start = _field(seg, "start")
    duration = _field(seg, "duration")
    try:
        if start is not None and duration is not None:
            return float(start) + float(duration)
        end = _field(seg, "end")
        return float(end) if end is not None else None
    except (TypeError, ValueError):
        return None


def estimate_spoken_duration(segments: Iterable[Any]) -> int | None:
    """
    Latest cue end (start + duration, or `end` when duration is missing), whole seconds.
    Accepts Segment objects or {start, duration|end} dicts.
    """
    ends = [e for e in (_segment_end(s) for s in segments) if e is not None and math.isfinite(e)]
    if not ends:
        return None
    return int(round(max(ends)))


def _usable(v: float | None) -> bool:
    return v is not None and isinstance(v, (int, float)) and math.isfinite(v)


def allowed_gap(total_duration: float) -> int:
    return max(MIN_ALLOWED_GAP_SEC, int(round(ALLOWED_GAP_RATIO * total_duration)))


def check_completeness(video_duration: float | None, transcript_duration: float | None) -> QualityVerdict:
    """
    Reject when the transcript ends too long before the video does.

    Without both numbers there's nothing to judge, so the gate passes.
    """
    if not _usable(video_duration) or not _usable(transcript_duration):
        return QualityVerdict(passed=True)

    gap = float(video_duration) - float(transcript_duration)
    allowed = allowed_gap(float(video_duration))
    if gap > allowed:
        return QualityVerdict(
            passed=False,
            gap_seconds=gap,
            allowed_gap_seconds=allowed,
            reason=(
                f"Transcript too short: covers {int(transcript_duration)}s of a {int(video_duration)}s video "
                f"(gap {int(gap)}s > allowed {allowed}s)"
            ),
        )
    return QualityVerdict(passed=True, gap_seconds=gap, allowed_gap_seconds=allowed)

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from app.services.subtitles import Segment, segments_to_plain_text, segments_to_srt

# source_model values for caption-based transcripts (speech models report their own id)
MODEL_MANUAL_CAPTIONS = "youtube-captions-manual"
MODEL_AUTO_CAPTIONS = "youtube-captions-auto"


@dataclass(frozen=True)
class TranscriptResult:
    text: str
    srt: str
    segments: tuple[Segment, ...] = field(default_factory=tuple)
    language_code: str = "unknown"
    video_duration_seconds: float | None = None
    source_model: str = "unknown"

    @classmethod
    def from_segments(
        cls,
        segments: Sequence[Segment],
        *,
        language_code: str,
        source_model: str,
        video_duration_seconds: float | None = None,
    ) -> "TranscriptResult":
        segs = tuple(segments)
        return cls(
            text=segments_to_plain_text(segs),
            srt=segments_to_srt(segs),
            segments=segs,
            language_code=language_code or "unknown",
            video_duration_seconds=video_duration_seconds,
            source_model=source_model,
        )

    def segments_as_dicts(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.segments]

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Sequence

SourceKind = Literal["human", "auto"]

SOURCE_KINDS: tuple[SourceKind, ...] = ("human", "auto")

# Best first. Anything not listed ranks after all of these.
FORMAT_PRIORITY: tuple[str, ...] = ("vtt", "srt", "ttml", "srv3", "json3")

# Codes that all mean "Indonesian" on the caption host ("in" is the legacy ISO code)
LANGUAGE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "id": ("id", "in"),
}


@dataclass(frozen=True)
class SubtitleTrack:
    language_code: str
    source_kind: SourceKind
    format: str
    url: str


@dataclass(frozen=True)
class CaptionManifest:
    video_id: str | None
    title: str | None
    duration_seconds: float | None
    tracks: tuple[SubtitleTrack, ...]

    @classmethod
    def from_ytdlp(cls, data: dict[str, Any]) -> "CaptionManifest":
        """
        Build from `yt-dlp --dump-single-json` output:
          subtitles           -> human tracks
          automatic_captions  -> auto tracks
        each shaped {lang: [{"ext": "vtt", "url": "..."}, ...]}
        """
        tracks: list[SubtitleTrack] = []
        for key, kind in (("subtitles", "human"), ("automatic_captions", "auto")):
            by_lang = data.get(key) or {}
            if not isinstance(by_lang, dict):
                continue
            for lang, entries in by_lang.items():
                for e in entries or []:
                    if not isinstance(e, dict):
                        continue
                    url = (e.get("url") or "").strip()
                    ext = (e.get("ext") or "").strip().lower()
                    if not url or not ext:
                        continue
                    tracks.append(SubtitleTrack(language_code=str(lang), source_kind=kind, format=ext, url=url))

        duration = data.get("duration")
        try:
            duration_s = float(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration_s = None

        return cls(
            video_id=(data.get("id") or None),
            title=(data.get("title") or None),
            duration_seconds=duration_s,
            tracks=tuple(tracks),
        )

    @property
    def languages(self) -> list[str]:
        seen: list[str] = []
        for t in self.tracks:
            if t.language_code not in seen:
                seen.append(t.language_code)
        return seen


def format_rank(fmt: str) -> int:
    f = (fmt or "").lower()
    return FORMAT_PRIORITY.index(f) if f in FORMAT_PRIORITY else len(FORMAT_PRIORITY)


def bare_language(code: str) -> str:
    return (code or "").replace("_", "-").split("-")[0].lower()


def language_variants(code: str) -> list[str]:
    """
    "id-ID" -> ["id-ID", "id"]; "en" -> ["en"]
    """
    c = (code or "").strip()
    if not c:
        return []
    bare = bare_language(c)
    return [c] if c.lower() == bare else [c, bare]


def build_language_preferences(target: str, fallbacks: Iterable[str] = ()) -> list[str]:
    """
    Regional locale, bare code, known synonyms, then fallbacks; de-duplicated, order kept.

    build_language_preferences("id-ID", ["en"]) -> ["id-ID", "id", "in", "en"]
    """
    prefs: list[str] = []

    def add(code: str) -> None:
        if code and code.lower() not in {p.lower() for p in prefs}:
            prefs.append(code)

    for v in language_variants(target):
        add(v)
    for syn in LANGUAGE_SYNONYMS.get(bare_language(target), ()):
        add(syn)
    for fb in fallbacks:
        for v in language_variants(fb):
            add(v)
    return prefs


def _rank_candidates(candidates: list[SubtitleTrack]) -> list[SubtitleTrack]:
    # sorted() is stable, so tracks collected first (human) win format ties
    return sorted(candidates, key=lambda t: format_rank(t.format))


def _allowed(tracks: Iterable[SubtitleTrack], source_kinds: Sequence[SourceKind]) -> list[SubtitleTrack]:
    kinds = tuple(source_kinds)
    ordered = [t for k in kinds for t in tracks if t.source_kind == k]
    return ordered


def select_track(
    tracks: Iterable[SubtitleTrack],
    languages: Sequence[str],
    source_kinds: Sequence[SourceKind] = SOURCE_KINDS,
) -> SubtitleTrack | None:
    """
    First preferred language with any candidate wins; lower-priority languages
    are not searched once a match exists. Within that language the best format wins.
    """
    pool = _allowed(tracks, source_kinds)

    for lang in languages:
        for variant in language_variants(lang):
            candidates = [t for t in pool if t.language_code.lower() == variant.lower()]
            if candidates:
                return _rank_candidates(candidates)[0]
    return None


def select_any_track(
    tracks: Iterable[SubtitleTrack],
    source_kinds: Sequence[SourceKind] = SOURCE_KINDS,
) -> SubtitleTrack | None:
    """
    Secondary search across every language in the manifest: languages with the
    most available tracks first, then format quality.
    """
    pool = _allowed(tracks, source_kinds)
    if not pool:
        return None

    counts = Counter(t.language_code for t in pool)
    best = min(
        enumerate(pool),
        key=lambda it: (-counts[it[1].language_code], format_rank(it[1].format), it[0]),
    )
    return best[1]

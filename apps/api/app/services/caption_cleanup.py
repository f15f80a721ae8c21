"""
Cleanup for auto-generated captions.

Auto tracks are "rolling": each cue repeats the tail of the previous one, and
stage directions like [Music] or [Musik] are sprinkled in. Manual tracks don't
need this.
"""
from __future__ import annotations

import os
import re
from typing import Sequence

from app.services.subtitles import Segment

_OVERLAP_MAX_WORDS = int(os.getenv("YLC_OVERLAP_MAX_WORDS", "18"))
_OVERLAP_MIN_WORDS = int(os.getenv("YLC_OVERLAP_MIN_WORDS", "3"))

_NOISE_WORDS = r"(music|musik|applause|tepuk tangan|laughter|tertawa|silence|sfx|sound effects?)"
_NOISE_FULL_RE = re.compile(rf"^\s*\[{_NOISE_WORDS}\]\s*$", re.IGNORECASE)
_NOISE_ANY_RE = re.compile(rf"\[{_NOISE_WORDS}\]|\u266a+", re.IGNORECASE)

_word_re = re.compile(r"[^\w']+", re.UNICODE)


def _word_key(token: str) -> str:
    return _word_re.sub("", token.lower()).strip("'")


def _keyed_tokens(s: str) -> list[tuple[int, str]]:
    """
    (index into s.split(), comparison key) for every token that has a key.
    """
    out = []
    for i, tok in enumerate((s or "").split()):
        key = _word_key(tok)
        if key:
            out.append((i, key))
    return out


def _words(s: str) -> list[str]:
    return [key for _, key in _keyed_tokens(s)]


def _normalize_space(s: str) -> str:
    return re.sub(r"\s+", " ", (s or "").replace("\u200b", " ")).strip()


def strip_rolling_overlap(prev_text: str, cur_text: str, *, max_words: int, min_words: int) -> str:
    """
    Drop the longest head of cur_text that repeats the tail of prev_text:
      suffix(prev, k) == prefix(cur, k), k in [max_words..min_words]
    Words are compared case- and punctuation-insensitively; the cut happens on
    the same whitespace tokens that were compared.
    """
    pw = _words(prev_text)
    cur = _keyed_tokens(cur_text)
    cw = [key for _, key in cur]
    max_k = min(max_words, len(pw), len(cw))
    if max_k < min_words:
        return cur_text

    for k in range(max_k, min_words - 1, -1):
        if pw[-k:] == cw[:k]:
            tokens = cur_text.split()
            return " ".join(tokens[cur[k - 1][0] + 1 :])
    return cur_text


def clean_auto_segments(
    segments: Sequence[Segment],
    *,
    overlap_max_words: int = _OVERLAP_MAX_WORDS,
    overlap_min_words: int = _OVERLAP_MIN_WORDS,
) -> list[Segment]:
    """
    - drop pure noise cues ("[Music]") and inline noise tags
    - strip rolling overlap against the previous kept cue
    - fold consecutive duplicates into the previous cue's timing
    Timing coverage is preserved: swallowed cues extend the previous segment.
    """
    cleaned: list[Segment] = []

    def extend_last(end: float) -> None:
        last = cleaned[-1]
        if end > last.end:
            cleaned[-1] = Segment(start=last.start, duration=end - last.start, text=last.text)

    for seg in segments:
        if _NOISE_FULL_RE.match(seg.text or ""):
            continue
        txt = _normalize_space(_NOISE_ANY_RE.sub(" ", seg.text or ""))
        if not txt:
            continue

        if cleaned:
            prev = cleaned[-1].text
            if _words(prev) == _words(txt):
                extend_last(seg.end)
                continue

            txt = _normalize_space(
                strip_rolling_overlap(prev, txt, max_words=overlap_max_words, min_words=overlap_min_words)
            )
            if not txt:
                extend_last(seg.end)
                continue

        cleaned.append(Segment(start=seg.start, duration=seg.duration, text=txt))

    return cleaned

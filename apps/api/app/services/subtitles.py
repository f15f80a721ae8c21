"""
Caption payload parsers.

Every parser takes the raw text of one caption file and returns an ordered
list of Segment. Malformed input never raises: it degrades to fewer (or zero)
segments, and the caller treats an empty result as a failed attempt.
"""
from __future__ import annotations

import html
import io
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import webvtt
from webvtt.errors import MalformedCaptionError, MalformedFileError


@dataclass(frozen=True)
class Segment:
    start: float
    duration: float
    text: str

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "duration": self.duration}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Segment":
        return cls(
            start=float(d.get("start") or 0.0),
            duration=float(d.get("duration") or 0.0),
            text=str(d.get("text") or ""),
        )


# -----------------------------
# Timestamp + text helpers
# -----------------------------
_CLOCK_RE = re.compile(r"^(?:(?P<h>\d+):)?(?P<m>\d{1,2}):(?P<s>\d{1,2})(?:[.,](?P<frac>\d+))?$")
_OFFSET_RE = re.compile(r"^(?P<num>\d+(?:\.\d+)?)(?P<unit>h|m|s|ms)?$")
_TAG_RE = re.compile(r"<[^>]+>")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)


def parse_timestamp(value: str | None) -> float | None:
    """
    Flexible timestamp parser shared by VTT, SRT and TTML.

    Accepts "01:02:03.456", "02:03.456", "00:00:01,000", "12.5s", "1500ms", "12.5".
    Returns seconds, or None if the value can't be read.
    """
    v = (value or "").strip()
    if not v:
        return None

    m = _CLOCK_RE.match(v)
    if m:
        h = int(m.group("h") or 0)
        mi = int(m.group("m"))
        s = int(m.group("s"))
        frac = m.group("frac")
        ms = float(f"0.{frac}") if frac else 0.0
        return h * 3600.0 + mi * 60.0 + s + ms

    m = _OFFSET_RE.match(v)
    if m:
        num = float(m.group("num"))
        unit = m.group("unit") or "s"
        if unit == "ms":
            return num / 1000.0
        if unit == "m":
            return num * 60.0
        if unit == "h":
            return num * 3600.0
        return num

    return None


def _clean_cue_text(raw: str) -> str:
    s = _BR_RE.sub(" ", raw or "")
    s = _TAG_RE.sub("", s)
    s = html.unescape(s)
    return re.sub(r"\s+", " ", s).strip()


def _segment(start: float, end: float | None, text: str) -> Segment:
    duration = max(0.0, (end if end is not None else start) - start)
    return Segment(start=start, duration=duration, text=text)


def _lines(payload: str) -> list[str]:
    s = (payload or "").lstrip("\ufeff")
    return s.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _blocks(payload: str) -> list[list[str]]:
    out: list[list[str]] = []
    cur: list[str] = []
    for line in _lines(payload):
        if line.strip():
            cur.append(line.strip())
        elif cur:
            out.append(cur)
            cur = []
    if cur:
        out.append(cur)
    return out


_COMMA_MS_RE = re.compile(r"(\d{2}),(\d{3})")


def _normalize_vtt(payload: str) -> str:
    lines = _lines(payload)
    # yt-dlp / some hosts emit SRT-style "00:00:01,000" in VTT cue headers
    lines = [_COMMA_MS_RE.sub(r"\1.\2", ln) if "-->" in ln else ln for ln in lines]
    if not lines or not lines[0].strip().startswith("WEBVTT"):
        lines = ["WEBVTT", ""] + lines
    return "\n".join(lines)


def _normalize_srt(payload: str) -> str:
    # index lines are optional in the wild; webvtt-py requires them
    blocks = []
    for idx, rows in enumerate(_blocks(payload), start=1):
        if "-->" in rows[0]:
            rows = [str(idx)] + rows
        blocks.append("\n".join(rows))
    return "\n\n".join(blocks) + "\n"


def _read_captions(text: str, fmt: str) -> list[Segment]:
    try:
        captions = webvtt.from_buffer(io.StringIO(text), format=fmt)
    except (MalformedFileError, MalformedCaptionError, ValueError):
        return []

    out: list[Segment] = []
    for caption in captions:
        start = parse_timestamp(caption.start)
        end = parse_timestamp(caption.end)
        if start is None:
            continue
        cue = _clean_cue_text(caption.text or "")
        if cue:
            out.append(_segment(start, end, cue))
    return out


# -----------------------------
# Parsers
# -----------------------------
def parse_vtt(payload: str) -> list[Segment]:
    if not (payload or "").strip():
        return []
    return _read_captions(_normalize_vtt(payload), "vtt")


def parse_srt(payload: str) -> list[Segment]:
    if not (payload or "").strip():
        return []
    return _read_captions(_normalize_srt(payload), "srt")


_P_RE = re.compile(r"<p\b([^>]*)>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_ATTR_RE = re.compile(r"""([\w:.-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")


def _attrs(raw: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, dq, sq in _ATTR_RE.findall(raw or ""):
        # drop namespace prefixes: tts:begin -> begin
        out[name.split(":")[-1].lower()] = dq or sq
    return out


def parse_ttml(payload: str) -> list[Segment]:
    out: list[Segment] = []
    for raw_attrs, inner in _P_RE.findall(payload or ""):
        a = _attrs(raw_attrs)
        start = parse_timestamp(a.get("begin"))
        if start is None:
            continue

        end = parse_timestamp(a.get("end"))
        if end is None:
            dur = parse_timestamp(a.get("dur"))
            end = start + dur if dur is not None else None

        text = _clean_cue_text(inner)
        if text:
            out.append(_segment(start, end, text))
    return out


def parse_srv3(payload: str) -> list[Segment]:
    """
    YouTube timed-text XML: <p t="1200" d="2300">text</p>, offsets in ms.
    """
    out: list[Segment] = []
    for raw_attrs, inner in _P_RE.findall(payload or ""):
        a = _attrs(raw_attrs)
        try:
            start = float(a["t"]) / 1000.0
            dur = float(a.get("d") or 0.0) / 1000.0
        except (KeyError, ValueError):
            continue

        text = _clean_cue_text(inner)
        if text:
            out.append(Segment(start=start, duration=max(0.0, dur), text=text))
    return out


def parse_json3(payload: str) -> list[Segment]:
    try:
        data = json.loads(payload or "")
    except (TypeError, ValueError):
        return []

    events = data.get("events") if isinstance(data, dict) else None
    if not isinstance(events, list):
        return []

    out: list[Segment] = []
    for ev in events:
        if not isinstance(ev, dict):
            continue
        segs = ev.get("segs")
        if not isinstance(segs, list):
            continue

        text = "".join(str(s.get("utf8") or "") for s in segs if isinstance(s, dict))
        text = re.sub(r"\s+", " ", text).strip()
        if not text:
            continue

        try:
            start = float(ev.get("tStartMs") or 0) / 1000.0
            dur = float(ev.get("dDurationMs") or 0) / 1000.0
        except (TypeError, ValueError):
            continue

        out.append(Segment(start=start, duration=max(0.0, dur), text=text))
    return out


PARSERS_BY_EXT: dict[str, Callable[[str], list[Segment]]] = {
    "vtt": parse_vtt,
    "srt": parse_srt,
    "ttml": parse_ttml,
    "dfxp": parse_ttml,
    "xml": parse_ttml,
    "srv3": parse_srv3,
    "json3": parse_json3,
}


def parse_subtitle_payload(payload: str, ext: str | None) -> list[Segment]:
    parser = PARSERS_BY_EXT.get((ext or "").lower().lstrip("."))
    if parser is not None:
        return parser(payload)

    # unknown extension: most caption hosts serve something VTT- or SRT-shaped
    segments = parse_vtt(payload)
    if segments:
        return segments
    return parse_srt(payload)


# -----------------------------
# Derived renderings
# -----------------------------
def segments_to_plain_text(segments: Iterable[Segment]) -> str:
    parts = [s.text.strip() for s in segments if (s.text or "").strip()]
    return " ".join(parts)


def format_srt_timestamp(seconds: float) -> str:
    total_ms = int(round(max(0.0, seconds) * 1000))
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def segments_to_srt(segments: Iterable[Segment]) -> str:
    blocks: list[str] = []
    for idx, seg in enumerate(segments, start=1):
        blocks.append(
            f"{idx}\n"
            f"{format_srt_timestamp(seg.start)} --> {format_srt_timestamp(seg.start + seg.duration)}\n"
            f"{seg.text}\n"
        )
    return "\n".join(blocks)

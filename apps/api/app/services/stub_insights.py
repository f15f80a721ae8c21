from __future__ import annotations

import re
from typing import Any

STUB_MODEL_ID = "stub-no-openai-key"

_DISTRACTORS = ["Tidak disebutkan di video", "Kebalikan dari isi video", "Detail yang tidak berkaitan"]


# ----------------------------
# Text helpers
# ----------------------------

def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _simple_sentence_split(text: str) -> list[str]:
    """
    - Punctuation-based split first
    - Caption dumps without punctuation fall back to music notes / stage tags,
      then to fixed-size chunks
    """
    text = _clean_text(text)
    if not text:
        return []

    parts = re.split(r"(?<=[.!?])\s+", text)
    parts = [p.strip() for p in parts if p.strip()]

    if len(parts) <= 1:
        alt = re.split(r"(?:♪+|\[.*?\]|\s-\s|\s\|\s)", text)
        alt = [a.strip() for a in alt if a.strip()]
        if len(alt) <= 1 and len(text) > 300:
            step = 180
            alt = [text[i:i + step].strip() for i in range(0, len(text), step) if text[i:i + step].strip()]
        return alt

    return parts


def _short(text: str, limit: int = 60) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rsplit(" ", 1)[0].rstrip(",;:") + "..."


# ----------------------------
# Deterministic generator
# ----------------------------

def build_stub_insights(
    transcript: str,
    prompt: str = "",
    *,
    quiz_count: int | None = None,
    duration_seconds: float | None = None,
) -> dict[str, Any]:
    """
    Offline stand-in for the LLM: every feature is derived from the first
    sentences of the transcript. Same input -> same output.
    """
    text = _clean_text(transcript)
    sents = _simple_sentence_split(text) or ([text] if text else [])
    key_points = sents[:5]
    focus = _clean_text(prompt)

    overview = " ".join(sents[:3]) if sents else text[:400]
    if focus:
        overview = f"{overview} (Fokus: {focus})"

    summary = {
        "title": _short(sents[0]) if sents else "Ringkasan",
        "overview": overview,
        "key_points": key_points,
        "takeaways": key_points[:3],
    }

    qa = {
        "items": [
            {"question": f"Apa poin penting ke-{i} dari video ini?", "answer": s}
            for i, s in enumerate(key_points, start=1)
        ]
    }

    nodes: list[dict[str, Any]] = [
        {
            "id": "n1",
            "label": "Peta Pikiran",
            "note": "",
            "children": [f"n{i}" for i in range(2, len(key_points) + 2)],
        }
    ]
    for i, s in enumerate(key_points, start=2):
        nodes.append({"id": f"n{i}", "label": _short(s, 40), "note": "", "children": []})
    mindmap = {"title": "Peta Pikiran", "nodes": nodes}

    count = quiz_count or 10
    items: list[dict[str, Any]] = []
    for i in range(count):
        if not key_points:
            break
        s = key_points[i % len(key_points)]
        items.append(
            {
                "question": f"Manakah pernyataan yang sesuai dengan isi video? (#{i + 1})",
                "options": [s, *_DISTRACTORS],
                "answer_index": 0,
                "explanation": "Pernyataan ini diambil langsung dari transkrip.",
            }
        )
    quiz = {
        "items": items,
        "meta": {"question_count": len(items), "duration_seconds": duration_seconds},
    }

    return {
        "summary": summary,
        "qa": qa,
        "mindmap": mindmap,
        "quiz": quiz,
        "model": STUB_MODEL_ID,
    }

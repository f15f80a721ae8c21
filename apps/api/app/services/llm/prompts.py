from __future__ import annotations

import os
import re
from dataclasses import dataclass

# ----------------------------
# Shared rules
# ----------------------------
_BASE_RULES = """Hard rules:
- Work only from the transcript; do not invent facts.
- Ignore stage directions like [Music], [Musik], filler words and repeated caption artifacts.
- Answer in the language of the transcript (Bahasa Indonesia when unsure).
- Output MUST be a single valid JSON object. No markdown, no commentary.
- The JSON MUST match the shape shown below exactly.
"""

SUMMARY_SYSTEM = (
    """You are an expert note-taker turning a long YouTube talk into a study summary.

"""
    + _BASE_RULES
    + """
Return JSON with this exact shape:
{
  "summary": {
    "title": "...",
    "overview": "...",
    "key_points": ["...", "..."],
    "takeaways": ["...", "..."]
  }
}

Constraints:
- overview: 120-220 words, synthesized, not transcript-like phrasing.
- key_points: 5-10 items, each a distinct idea, <= 25 words.
- takeaways: 3-6 practical lessons.
"""
)

QA_SYSTEM = (
    """You are a tutor writing question-and-answer study notes for a YouTube talk.

"""
    + _BASE_RULES
    + """
Return JSON with this exact shape:
{
  "qa": {
    "items": [{"question": "...", "answer": "..."}]
  }
}

Constraints:
- 8-15 items covering the whole video, in the order topics appear.
- Questions test understanding (why/how/what); answers are 1-3 sentences.
"""
)

MINDMAP_SYSTEM = (
    """You are an instructional designer drawing a mind map of a YouTube talk.

"""
    + _BASE_RULES
    + """
Return JSON with this exact shape:
{
  "mindmap": {
    "title": "...",
    "nodes": [
      {"id": "n1", "label": "...", "note": "...", "children": ["n2", "n3"]}
    ]
  }
}

Constraints:
- "n1" is the root (the video's main topic); every other node is reachable from it.
- 3-7 branches under the root, at most 3 levels deep, 12-40 nodes total.
- label: <= 6 words. note: optional, <= 15 words.
"""
)

QUIZ_SYSTEM_TEMPLATE = (
    """You are an assessment writer creating a multiple-choice quiz for a YouTube talk.

"""
    + _BASE_RULES
    + """
Return JSON with this exact shape:
{{
  "quiz": {{
    "items": [
      {{"question": "...", "options": ["...", "...", "...", "..."], "answer_index": 0, "explanation": "..."}}
    ],
    "meta": {{"question_count": {quiz_count}, "duration_seconds": {duration}}}
  }}
}}

Constraints:
- Exactly {quiz_count} questions spread across the whole video.
- 4 plausible options each; exactly one correct.
- answer_index is 0-based and MUST point to the correct option.
- explanation: 1-2 sentences on why the answer is correct.
"""
)

USER_TEMPLATE = """Video: {video_title}
Duration: {duration_label}
Extra instruction from the learner: {instruction}

Transcript:
{transcript}
"""


@dataclass(frozen=True)
class PromptInput:
    video_title: str
    transcript: str
    prompt: str = ""
    duration_seconds: float | None = None
    quiz_count: int | None = None


@dataclass(frozen=True)
class BuiltPrompt:
    system_prompt: str
    user_content: str


# ----------------------------
# Transcript fitting
# ----------------------------
_MAX_TRANSCRIPT_CHARS = int(os.getenv("OPENAI_TRANSCRIPT_MAX_CHARS", "60000"))


def _pick_evenly(items: list[str], k: int) -> list[str]:
    if k <= 0 or not items:
        return []
    if len(items) <= k:
        return items
    if k == 1:
        return [items[0]]
    idxs = sorted({round(i * (len(items) - 1) / (k - 1)) for i in range(k)})
    return [items[int(ix)] for ix in idxs]


def fit_transcript(transcript: str, max_chars: int = _MAX_TRANSCRIPT_CHARS) -> str:
    """
    Normalize whitespace; if still too long, keep evenly spaced sentences so the
    whole video stays covered instead of truncating the tail.
    """
    t = re.sub(r"\s+", " ", transcript or "").strip()
    if len(t) <= max_chars:
        return t

    sents = [s.strip() for s in re.split(r"(?<=[.!?])\s+", t) if s.strip()]
    if len(sents) < 2:
        return t[:max_chars].rsplit(" ", 1)[0].strip()

    avg = max(1, len(t) // len(sents))
    picks = _pick_evenly(sents, max(1, max_chars // avg))
    out = " ".join(picks)
    if len(out) > max_chars:
        out = out[:max_chars].rsplit(" ", 1)[0].strip()
    return out


def _duration_label(duration_seconds: float | None) -> str:
    if not duration_seconds:
        return "unknown"
    minutes, seconds = divmod(int(round(duration_seconds)), 60)
    return f"{minutes} min {seconds:02d} s"


def build_user_content(inp: PromptInput) -> str:
    return USER_TEMPLATE.format(
        video_title=inp.video_title,
        duration_label=_duration_label(inp.duration_seconds),
        instruction=(inp.prompt or "").strip() or "-",
        transcript=fit_transcript(inp.transcript),
    )


def build_summary_prompt(inp: PromptInput) -> BuiltPrompt:
    return BuiltPrompt(SUMMARY_SYSTEM, build_user_content(inp))


def build_qa_prompt(inp: PromptInput) -> BuiltPrompt:
    return BuiltPrompt(QA_SYSTEM, build_user_content(inp))


def build_mindmap_prompt(inp: PromptInput) -> BuiltPrompt:
    return BuiltPrompt(MINDMAP_SYSTEM, build_user_content(inp))


def build_quiz_prompt(inp: PromptInput) -> BuiltPrompt:
    count = inp.quiz_count or 10
    duration = "null" if inp.duration_seconds is None else f"{inp.duration_seconds:g}"
    system = QUIZ_SYSTEM_TEMPLATE.format(quiz_count=count, duration=duration)
    return BuiltPrompt(system, build_user_content(inp))

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.core.exceptions import GenerationJsonInvalid, InvalidFeatureRequest
from app.services.llm.prompts import (
    BuiltPrompt,
    PromptInput,
    build_mindmap_prompt,
    build_qa_prompt,
    build_quiz_prompt,
    build_summary_prompt,
)
from app.services.mindmap import build_mindmap_chart
from app.services.youtube import build_video_url

FeatureKind = Literal["summary", "qa", "mindmap", "quiz"]

MIN_TRANSCRIPT_CHARS = 10
DEFAULT_VIDEO_TITLE = "Transkrip YouTube"


# ----------------------------
# Request
# ----------------------------

def require_transcript_text(v: str) -> str:
    if len(v.strip()) < MIN_TRANSCRIPT_CHARS:
        raise InvalidFeatureRequest("Transcript kosong atau tidak valid.")
    return v


class FeatureInput(BaseModel):
    """
    Fields shared by every generation request. Clients may send either
    camelCase (`durationSeconds`, `quizCount`, ...) or snake_case keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transcript: str
    prompt: str = ""
    youtube_url: str | None = None
    video_id: str | None = None
    transcript_id: int | None = None
    duration_seconds: float | None = None
    quiz_count: int | None = Field(default=None, ge=1, le=50)

    @field_validator("transcript")
    @classmethod
    def _transcript_not_blank(cls, v: str) -> str:
        return require_transcript_text(v)

    @field_validator("duration_seconds")
    @classmethod
    def _normalize_duration(cls, v: float | None) -> float | None:
        # negative / NaN durations are treated as unknown
        if v is None or not math.isfinite(v) or v < 0:
            return None
        return v


class FeatureRequest(FeatureInput):
    feature: FeatureKind


# ----------------------------
# Result schemas
# ----------------------------

class SummaryResult(BaseModel):
    title: str = ""
    overview: str
    key_points: list[str] = []
    takeaways: list[str] = []


class QaItem(BaseModel):
    question: str
    answer: str


class QaResult(BaseModel):
    items: list[QaItem]


class MindmapNode(BaseModel):
    id: str
    label: str
    note: str = ""
    children: list[str] = []


class MindmapResult(BaseModel):
    title: str = ""
    nodes: list[MindmapNode]


class QuizItem(BaseModel):
    question: str
    options: list[str] = Field(min_length=2)
    answer_index: int
    explanation: str = ""

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizItem":
        if not 0 <= self.answer_index < len(self.options):
            raise ValueError("answer_index out of range")
        return self


class QuizMeta(BaseModel):
    question_count: int | None = None
    duration_seconds: float | None = None


class QuizResult(BaseModel):
    items: list[QuizItem]
    meta: QuizMeta = QuizMeta()


# ----------------------------
# Feature bundles
# ----------------------------

@dataclass(frozen=True)
class FeatureSpec:
    key: FeatureKind
    build_prompt: Callable[[PromptInput], BuiltPrompt]
    result_model: type[BaseModel]
    include_duration: bool = False

    def extract_result(self, parsed: Any) -> Any:
        if not isinstance(parsed, dict):
            return {}
        return parsed.get(self.key) or {}


FEATURES: dict[str, FeatureSpec] = {
    "summary": FeatureSpec("summary", build_summary_prompt, SummaryResult),
    "qa": FeatureSpec("qa", build_qa_prompt, QaResult),
    "mindmap": FeatureSpec("mindmap", build_mindmap_prompt, MindmapResult),
    "quiz": FeatureSpec("quiz", build_quiz_prompt, QuizResult, include_duration=True),
}


def get_feature(kind: str) -> FeatureSpec:
    try:
        return FEATURES[kind]
    except KeyError:
        raise ValueError(f"Unknown feature: {kind!r}") from None


# ----------------------------
# Helpers
# ----------------------------

def decide_quiz_count(duration_seconds: float | None) -> int:
    if not duration_seconds or not math.isfinite(duration_seconds):
        return 10
    minutes = duration_seconds / 60
    if minutes < 15:
        return 10
    if minutes < 30:
        return 15
    if minutes < 60:
        return 25
    if minutes > 120:
        return 30
    return 25


def resolve_video_title(video_id: str | None, youtube_url: str | None) -> str:
    if youtube_url:
        return youtube_url
    if video_id:
        return build_video_url(video_id)
    return DEFAULT_VIDEO_TITLE


def resolve_quiz_count(req: FeatureRequest) -> int | None:
    if req.feature != "quiz":
        return None
    return req.quiz_count or decide_quiz_count(req.duration_seconds)


def build_prompt_input(req: FeatureRequest) -> PromptInput:
    return PromptInput(
        video_title=resolve_video_title(req.video_id, req.youtube_url),
        transcript=req.transcript,
        prompt=req.prompt,
        duration_seconds=req.duration_seconds,
        quiz_count=resolve_quiz_count(req),
    )


def build_feature_prompt(req: FeatureRequest) -> BuiltPrompt:
    return get_feature(req.feature).build_prompt(build_prompt_input(req))


# ----------------------------
# Parsing / payload
# ----------------------------

def validate_result(spec: FeatureSpec, result: Any) -> dict[str, Any]:
    try:
        model = spec.result_model.model_validate(result)
    except ValidationError as e:
        raise GenerationJsonInvalid(f"LLM result does not match the {spec.key} schema: {e.error_count()} error(s)") from e

    out = model.model_dump()
    if spec.key == "mindmap":
        out["chart"] = build_mindmap_chart(out["nodes"], out.get("title") or "Peta Pikiran")
    return out


def parse_completion(spec: FeatureSpec, raw_content: str) -> dict[str, Any]:
    """
    Parse an accumulated completion and return the validated feature result.
    Raises GenerationJsonInvalid when the text is empty, not JSON, or off-schema.
    """
    if not (raw_content or "").strip():
        raise GenerationJsonInvalid("LLM tidak mengirim konten.")
    try:
        parsed = json.loads(raw_content)
    except json.JSONDecodeError as e:
        raise GenerationJsonInvalid("LLM gagal menghasilkan JSON streaming.") from e
    return validate_result(spec, spec.extract_result(parsed))


def build_payload(
    spec: FeatureSpec,
    result: dict[str, Any],
    *,
    duration_seconds: float | None,
    model: str,
    transcript_id: int | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {spec.key: result}
    if spec.include_duration:
        meta = result.get("meta") or {}
        payload["durationSeconds"] = duration_seconds if duration_seconds is not None else meta.get("duration_seconds")
    if transcript_id is not None:
        payload["transcriptId"] = transcript_id
    payload["model"] = model
    return payload

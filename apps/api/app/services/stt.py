# apps/api/app/services/stt.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from faster_whisper import WhisperModel
from openai import OpenAI

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import TranscriptionFailed
from app.services.subtitles import Segment

logger = logging.getLogger(__name__)

# model id reported when no speech backend is configured
STUB_MODEL_ID = "stub-no-whisper-key"


@dataclass
class STTResult:
    language: str
    model: str
    text: str
    segments: list[Segment] = field(default_factory=list)
    duration_seconds: float | None = None

    @property
    def is_stub(self) -> bool:
        return self.model == STUB_MODEL_ID


_MODEL: WhisperModel | None = None


def _get_model(cfg: Settings) -> WhisperModel:
    """
    Keep a single model instance per worker process.
    """
    global _MODEL
    if _MODEL is not None:
        return _MODEL

    _MODEL = WhisperModel(cfg.whisper_model, device=cfg.whisper_device, compute_type=cfg.whisper_compute_type)
    return _MODEL


def _segments_text(segments: list[Segment]) -> str:
    return " ".join(s.text for s in segments if s.text).strip()


def _transcribe_local(audio_path: str, language: str | None, cfg: Settings) -> STTResult:
    model = _get_model(cfg)

    segments_iter, info = model.transcribe(
        audio_path,
        language=language,  # optional hint
        vad_filter=True,  # reduce empty/noise segments
        beam_size=5,
    )

    segs: list[Segment] = []
    for s in segments_iter:
        txt = (s.text or "").strip()
        if not txt:
            continue
        start = float(s.start)
        segs.append(Segment(start=start, duration=max(0.0, float(s.end) - start), text=txt))

    used_lang = (getattr(info, "language", "") or "").strip() or language or "unknown"
    duration = getattr(info, "duration", None)
    return STTResult(
        language=used_lang,
        model=f"faster-whisper-{cfg.whisper_model}",
        text=_segments_text(segs),
        segments=segs,
        duration_seconds=float(duration) if duration else None,
    )


def _transcribe_openai(audio_path: str, language: str | None, cfg: Settings) -> STTResult:
    client = OpenAI(api_key=cfg.whisper_api_key, timeout=cfg.openai_timeout_sec, max_retries=cfg.openai_max_retries)

    with open(audio_path, "rb") as fh:
        resp = client.audio.transcriptions.create(
            model=cfg.openai_whisper_model,
            file=fh,
            response_format="verbose_json",
            language=language or None,
        )

    segs: list[Segment] = []
    for s in getattr(resp, "segments", None) or []:
        txt = (getattr(s, "text", "") or "").strip()
        if not txt:
            continue
        start = float(getattr(s, "start", 0.0) or 0.0)
        end = float(getattr(s, "end", start) or start)
        segs.append(Segment(start=start, duration=max(0.0, end - start), text=txt))

    text = (getattr(resp, "text", "") or "").strip() or _segments_text(segs)
    duration = getattr(resp, "duration", None)
    return STTResult(
        language=(getattr(resp, "language", "") or language or "unknown"),
        model=cfg.openai_whisper_model,
        text=text,
        segments=segs,
        duration_seconds=float(duration) if duration else None,
    )


def transcribe_stub(source: str) -> STTResult:
    """Placeholder that avoids any network or model work."""
    return STTResult(
        language="unknown",
        model=STUB_MODEL_ID,
        text=f'Transcription placeholder for "{source}".',
    )


def transcribe_audio(
    audio_path: str | Path,
    *,
    language: str | None = None,
    cfg: Settings = default_settings,
) -> STTResult:
    """
    Speech-to-text against a local audio file.

    Backend: OpenAI transcription API when WHISPER_API_KEY is set, local
    faster-whisper when YLC_WHISPER_LOCAL=1, otherwise the stub.
    """
    path = str(audio_path)
    try:
        if cfg.whisper_api_key:
            return _transcribe_openai(path, language, cfg)
        if cfg.whisper_local:
            return _transcribe_local(path, language, cfg)
    except Exception as e:
        raise TranscriptionFailed(f"Speech-to-text failed: {e}") from e

    logger.info("no speech-to-text backend configured; returning stub transcript")
    return transcribe_stub(path)


def stt_backend_configured(cfg: Settings = default_settings) -> bool:
    return bool(cfg.whisper_api_key) or cfg.whisper_local

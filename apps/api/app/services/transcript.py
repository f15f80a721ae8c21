# apps/api/app/services/transcript.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import AcquisitionFailure, AllSourcesExhausted, QualityRejection
from app.core.youtube_settings import YouTubeSettings, youtube_settings
from app.services.caption_cleanup import clean_auto_segments
from app.services.captions import CaptionFetcher
from app.services.stt import STTResult, stt_backend_configured, transcribe_audio, transcribe_stub
from app.services.subtitle_tracks import CaptionManifest, bare_language, build_language_preferences
from app.services.subtitles import segments_to_srt
from app.services.transcript_quality import check_completeness, estimate_spoken_duration
from app.services.transcript_result import TranscriptResult
from app.services.youtube import build_video_url, extract_youtube_video_id
from app.services.youtube_audio import downloaded_audio

logger = logging.getLogger(__name__)

STRATEGY_STT = "speech_to_text"
STRATEGY_HUMAN = "human_captions"
STRATEGY_AUTO = "auto_captions"


@dataclass
class _Attempt:
    """Per-call state shared by the strategies of one acquisition."""

    video_id: str
    video_url: str
    language: str
    languages: list[str]
    load_manifest: Callable[[], CaptionManifest]
    stub_fallback: TranscriptResult | None = None
    reasons: list[tuple[str, str]] = field(default_factory=list)
    _manifest: CaptionManifest | None = None
    _manifest_error: AcquisitionFailure | None = None

    def manifest(self) -> CaptionManifest:
        # one yt-dlp call per acquisition, failures included
        if self._manifest_error is not None:
            raise self._manifest_error
        if self._manifest is None:
            try:
                self._manifest = self.load_manifest()
            except AcquisitionFailure as e:
                self._manifest_error = e
                raise
        return self._manifest


def apply_quality_gate(result: TranscriptResult) -> TranscriptResult:
    estimated = estimate_spoken_duration(result.segments)
    verdict = check_completeness(result.video_duration_seconds, estimated)
    if not verdict.passed:
        raise QualityRejection(verdict.reason or "Transcript judged incomplete")
    return result


class TranscriptOrchestrator:
    """
    Tries, in order: speech-to-text, human captions, auto captions.

    The first result that isn't rejected wins. A stub speech-to-text result is
    never accepted at priority 1, but is returned as a last resort when every
    strategy fails and it has text.
    """

    def __init__(
        self,
        captions: CaptionFetcher | None = None,
        *,
        cfg: Settings = default_settings,
        yt: YouTubeSettings = youtube_settings,
        transcribe: Callable[..., STTResult] = transcribe_audio,
        download_audio=downloaded_audio,
    ) -> None:
        self.cfg = cfg
        self.yt = yt
        self.captions = captions or CaptionFetcher(yt)
        self._transcribe = transcribe
        self._download_audio = download_audio

    # -----------------------------
    # Strategies
    # -----------------------------
    def _speech_to_text(self, attempt: _Attempt) -> TranscriptResult:
        if stt_backend_configured(self.cfg):
            with self._download_audio(attempt.video_id, settings=self.yt) as audio_path:
                stt = self._transcribe(audio_path, language=bare_language(attempt.language), cfg=self.cfg)
        else:
            stt = transcribe_stub(attempt.video_url)

        result = TranscriptResult(
            text=(stt.text or "").strip(),
            srt=segments_to_srt(stt.segments),
            segments=tuple(stt.segments),
            language_code=stt.language,
            video_duration_seconds=stt.duration_seconds,
            source_model=stt.model,
        )

        if stt.is_stub:
            if result.text:
                attempt.stub_fallback = result
            raise QualityRejection("Speech-to-text is not configured (stub transcript)")
        if not result.text:
            raise QualityRejection("Speech-to-text produced an empty transcript")
        return result

    def _human_captions(self, attempt: _Attempt) -> TranscriptResult:
        result = self.captions.fetch(
            attempt.video_url,
            languages=attempt.languages,
            source_kinds=("human",),
            manifest=attempt.manifest(),
        )
        return apply_quality_gate(result)

    def _auto_captions(self, attempt: _Attempt) -> TranscriptResult:
        raw = self.captions.fetch(
            attempt.video_url,
            languages=attempt.languages,
            source_kinds=("auto",),
            manifest=attempt.manifest(),
        )
        cleaned = clean_auto_segments(raw.segments) or list(raw.segments)
        result = TranscriptResult.from_segments(
            cleaned,
            language_code=raw.language_code,
            source_model=raw.source_model,
            video_duration_seconds=raw.video_duration_seconds,
        )
        return apply_quality_gate(result)

    def strategies(self) -> list[tuple[str, Callable[[_Attempt], TranscriptResult]]]:
        return [
            (STRATEGY_STT, self._speech_to_text),
            (STRATEGY_HUMAN, self._human_captions),
            (STRATEGY_AUTO, self._auto_captions),
        ]

    # -----------------------------
    # Public API
    # -----------------------------
    def acquire(self, video: str, language: str | None = None) -> TranscriptResult:
        video_id = extract_youtube_video_id(video)
        if not video_id:
            raise ValueError(f"Not a YouTube video URL or id: {video!r}")

        video_url = build_video_url(video_id)
        target = (language or "").strip() or self.yt.target_language
        attempt = _Attempt(
            video_id=video_id,
            video_url=video_url,
            language=target,
            # target language only: no cross-language fallback at this stage
            languages=build_language_preferences(target),
            load_manifest=lambda: self.captions.load_manifest(video_url, bare_language(target)),
        )

        for name, strategy in self.strategies():
            try:
                result = strategy(attempt)
            except (AcquisitionFailure, QualityRejection) as e:
                attempt.reasons.append((name, str(e)))
                logger.info("transcript strategy rejected video=%s strategy=%s reason=%s", video_id, name, e)
                continue

            logger.info(
                "transcript acquired video=%s strategy=%s model=%s chars=%d",
                video_id,
                name,
                result.source_model,
                len(result.text),
            )
            return result

        if attempt.stub_fallback is not None and attempt.stub_fallback.text:
            logger.warning("all transcript sources rejected video=%s; returning stub transcript", video_id)
            return attempt.stub_fallback

        # Only the last reason reaches the caller; the full list is logged and attached.
        last = attempt.reasons[-1][1] if attempt.reasons else "Transcript fetch failed"
        logger.warning(
            "all transcript sources exhausted video=%s reasons=%s",
            video_id,
            "; ".join(f"{n}: {r}" for n, r in attempt.reasons),
        )
        raise AllSourcesExhausted(last, attempt.reasons)

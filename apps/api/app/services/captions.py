from __future__ import annotations

import json
import logging
import subprocess
from typing import Sequence

import httpx

from app.core.exceptions import EmptyOrUnparsable, FetchFailed, ManifestUnavailable, NoTrackAvailable
from app.core.youtube_settings import YouTubeSettings, youtube_settings
from app.services.subtitle_tracks import (
    SOURCE_KINDS,
    CaptionManifest,
    SourceKind,
    SubtitleTrack,
    bare_language,
    select_any_track,
    select_track,
)
from app.services.subtitles import parse_subtitle_payload
from app.services.transcript_result import MODEL_AUTO_CAPTIONS, MODEL_MANUAL_CAPTIONS, TranscriptResult

logger = logging.getLogger(__name__)


class CaptionFetcher:
    """
    yt-dlp for the track manifest, plain HTTP for the chosen track's payload.

    Pass `http_client` to reuse a connection pool (or a mock transport in tests);
    otherwise a short-lived client is opened per fetch.
    """

    def __init__(self, settings: YouTubeSettings = youtube_settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._http = http_client

    # -----------------------------
    # Manifest (subprocess)
    # -----------------------------
    def _manifest_args(self, video_url: str, language: str) -> list[str]:
        args = [
            self.settings.ytdlp_bin,
            "--dump-single-json",
            "--skip-download",
            "--no-playlist",
            "--no-warnings",
            # ask yt-dlp to materialize one language's auto track up front
            "--write-auto-subs",
            "--sub-langs",
            language,
            "--sub-format",
            "vtt",
        ]
        if self.settings.cookies_file:
            args.extend(["--cookies", self.settings.cookies_file])
        if self.settings.proxy_url:
            args.extend(["--proxy", self.settings.proxy_url])
        args.append(video_url)
        return args

    def load_manifest(self, video_url: str, language: str) -> CaptionManifest:
        try:
            p = subprocess.run(
                self._manifest_args(video_url, language),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.settings.manifest_timeout_sec,
            )
        except FileNotFoundError as e:
            raise ManifestUnavailable("yt-dlp not found. Install it and ensure it is on PATH (or set YTDLP_PATH).") from e
        except subprocess.TimeoutExpired as e:
            raise ManifestUnavailable("yt-dlp timed out while fetching the caption manifest.") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise ManifestUnavailable(f"yt-dlp failed: {stderr or 'unknown error'}") from e

        raw = (p.stdout or "").strip()
        if not raw:
            raise ManifestUnavailable("yt-dlp returned empty output for the caption manifest.")

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ManifestUnavailable("Could not parse yt-dlp JSON output for the caption manifest.") from e
        if not isinstance(data, dict):
            raise ManifestUnavailable("yt-dlp manifest is not a JSON object.")

        manifest = CaptionManifest.from_ytdlp(data)
        logger.debug(
            "caption manifest video=%s tracks=%d languages=%s",
            manifest.video_id,
            len(manifest.tracks),
            ",".join(manifest.languages[:20]),
        )
        return manifest

    # -----------------------------
    # Payload (HTTP)
    # -----------------------------
    def _headers(self, video_url: str) -> dict[str, str]:
        return {
            "User-Agent": self.settings.user_agent,
            "Referer": video_url,
            "Accept-Language": self.settings.accept_language,
        }

    def download_track(self, track: SubtitleTrack, video_url: str) -> str:
        headers = self._headers(video_url)
        try:
            if self._http is not None:
                r = self._http.get(track.url, headers=headers)
            else:
                with httpx.Client(
                    timeout=self.settings.http_timeout_sec,
                    follow_redirects=True,
                    proxy=self.settings.proxy_url or None,
                ) as client:
                    r = client.get(track.url, headers=headers)
        except httpx.HTTPError as e:
            raise FetchFailed(f"Caption fetch failed ({track.language_code}/{track.format}): {e}") from e

        if not r.is_success:
            raise FetchFailed(f"Caption fetch returned HTTP {r.status_code} ({track.language_code}/{track.format})")
        return r.text

    # -----------------------------
    # Public API
    # -----------------------------
    def fetch(
        self,
        video_url: str,
        *,
        languages: Sequence[str],
        source_kinds: Sequence[SourceKind] = SOURCE_KINDS,
        allow_any_language: bool = False,
        manifest: CaptionManifest | None = None,
    ) -> TranscriptResult:
        if manifest is None:
            hint = bare_language(languages[0]) if languages else "en"
            manifest = self.load_manifest(video_url, hint)

        track = select_track(manifest.tracks, languages, source_kinds)
        if track is None and allow_any_language:
            track = select_any_track(manifest.tracks, source_kinds)
        if track is None:
            kinds = "/".join(source_kinds)
            raise NoTrackAvailable(f"No {kinds} captions for languages {', '.join(languages) or '-'}")

        payload = self.download_track(track, video_url)
        segments = parse_subtitle_payload(payload, track.format)
        if not segments:
            raise EmptyOrUnparsable(f"Caption track {track.language_code}/{track.format} is empty or unparsable")

        logger.info(
            "captions fetched kind=%s lang=%s format=%s segments=%d",
            track.source_kind,
            track.language_code,
            track.format,
            len(segments),
        )
        return TranscriptResult.from_segments(
            segments,
            language_code=track.language_code,
            source_model=MODEL_MANUAL_CAPTIONS if track.source_kind == "human" else MODEL_AUTO_CAPTIONS,
            video_duration_seconds=manifest.duration_seconds,
        )

import os
from dataclasses import dataclass, field

# importing config loads apps/api/.env before the defaults below are read
import app.core.config  # noqa: F401


def _split_langs(raw: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in (raw or "").split(",") if p.strip())


@dataclass(frozen=True)
class YouTubeSettings:
    # yt-dlp binary (pip install yt-dlp puts it on PATH)
    ytdlp_bin: str = os.getenv("YTDLP_PATH", "yt-dlp")

    # Optional: path to cookies.txt (Netscape format). Helps bypass anon blocks.
    cookies_file: str | None = os.getenv("YOUTUBE_COOKIES_FILE")

    # Optional: proxy URL, e.g. http://127.0.0.1:7890
    proxy_url: str | None = os.getenv("YOUTUBE_PROXY_URL")

    # Language the transcript should be in (locale or bare code)
    target_language: str = os.getenv("YOUTUBE_TARGET_LANGUAGE", "id-ID")

    # Tried after the target language (and its synonyms) when a caller allows it
    fallback_languages: tuple[str, ...] = field(
        default_factory=lambda: _split_langs(os.getenv("YOUTUBE_FALLBACK_LANGUAGES", "en"))
    )

    manifest_timeout_sec: float = float(os.getenv("YOUTUBE_MANIFEST_TIMEOUT_SEC", "60"))
    http_timeout_sec: float = float(os.getenv("YOUTUBE_HTTP_TIMEOUT_SEC", "30"))
    audio_timeout_sec: float = float(os.getenv("YOUTUBE_AUDIO_TIMEOUT_SEC", "900"))

    # The caption host rejects bare requests; look like a browser
    user_agent: str = os.getenv(
        "YOUTUBE_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    )
    accept_language: str = "id,en;q=0.9"


youtube_settings = YouTubeSettings()

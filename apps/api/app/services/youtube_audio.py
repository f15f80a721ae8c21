from __future__ import annotations

import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from app.core.exceptions import AudioDownloadError
from app.core.youtube_settings import YouTubeSettings, youtube_settings


@contextmanager
def downloaded_audio(video_id: str, *, settings: YouTubeSettings = youtube_settings) -> Iterator[Path]:
    """
    Download the best available audio for a video with yt-dlp and yield its path.
    The temp directory (and the file) is removed when the block exits.

    The container is kept as-is (m4a/webm/...); both STT backends accept it.
    """
    url = f"https://www.youtube.com/watch?v={video_id}"

    with tempfile.TemporaryDirectory(prefix="ylc-audio-") as td:
        tmp_dir = Path(td)
        # Keep template without extension; yt-dlp will add it.
        outtmpl = str(tmp_dir / f"{video_id}.%(ext)s")

        args = [
            settings.ytdlp_bin,
            "--no-playlist",
            "--no-warnings",
            "-f",
            "bestaudio/best",
            "-o",
            outtmpl,
        ]
        if settings.cookies_file:
            args.extend(["--cookies", settings.cookies_file])
        if settings.proxy_url:
            args.extend(["--proxy", settings.proxy_url])
        args.append(url)

        try:
            p = subprocess.run(args, capture_output=True, text=True, timeout=settings.audio_timeout_sec)
        except FileNotFoundError as e:
            raise AudioDownloadError("yt-dlp not found. Install it and ensure it is on PATH.") from e
        except subprocess.TimeoutExpired as e:
            raise AudioDownloadError("yt-dlp timed out while downloading audio.") from e

        if p.returncode != 0:
            raise AudioDownloadError(p.stderr.strip() or p.stdout.strip() or "yt-dlp audio download failed")

        # Should be exactly one file for this id; take the largest if yt-dlp left fragments
        candidates = sorted(tmp_dir.glob(f"{video_id}.*"), key=lambda x: x.stat().st_size, reverse=True)
        if not candidates:
            raise AudioDownloadError("yt-dlp succeeded but no audio file was produced")

        yield candidates[0]

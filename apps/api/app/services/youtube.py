import re
from urllib.parse import parse_qs, urlparse

_YT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")

# path prefixes that carry the id as the next path component
_ID_PATH_PREFIXES = ("shorts/", "embed/", "live/", "v/")


def extract_youtube_video_id(value: str) -> str | None:
    """
    Supports:
    - VIDEOID (bare 11-char id)
    - https://www.youtube.com/watch?v=VIDEOID
    - https://youtu.be/VIDEOID
    - https://www.youtube.com/shorts/VIDEOID, /embed/VIDEOID, /live/VIDEOID
    """
    raw = (value or "").strip()
    if _YT_ID_RE.match(raw):
        return raw

    try:
        u = urlparse(raw)
    except ValueError:
        return None

    host = (u.netloc or "").lower()
    path = (u.path or "").strip("/")

    if "youtu.be" in host:
        vid = path.split("/")[0] if path else ""
        return vid if _YT_ID_RE.match(vid) else None

    if "youtube.com" in host or "youtube-nocookie.com" in host:
        if path == "watch":
            vid = (parse_qs(u.query or "").get("v", [""])[0]).strip()
            return vid if _YT_ID_RE.match(vid) else None

        for prefix in _ID_PATH_PREFIXES:
            if path.startswith(prefix):
                parts = path.split("/")
                vid = parts[1] if len(parts) > 1 else ""
                return vid if _YT_ID_RE.match(vid) else None

    return None


def build_video_url(video_id: str) -> str:
    """Canonical watch URL; also used as the Referer for caption fetches."""
    return f"https://www.youtube.com/watch?v={video_id}"

import pytest

from app.services.youtube import build_video_url, extract_youtube_video_id


@pytest.mark.parametrize(
    "value",
    [
        "dQw4w9WgXcQ",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
        "https://youtu.be/dQw4w9WgXcQ?si=abc",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://m.youtube.com/live/dQw4w9WgXcQ",
    ],
)
def test_extract_video_id(value):
    assert extract_youtube_video_id(value) == "dQw4w9WgXcQ"


@pytest.mark.parametrize("value", ["", "https://example.com/watch?v=dQw4w9WgXcQ", "https://www.youtube.com/playlist?list=PL1"])
def test_extract_video_id_rejects(value):
    assert extract_youtube_video_id(value) is None


def test_canonical_url():
    assert build_video_url("dQw4w9WgXcQ") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

from app.services.subtitle_tracks import (
    CaptionManifest,
    SubtitleTrack,
    build_language_preferences,
    select_any_track,
    select_track,
)


def _t(lang, kind, fmt):
    return SubtitleTrack(language_code=lang, source_kind=kind, format=fmt, url=f"https://captions.test/{lang}/{kind}.{fmt}")


def test_language_preferences_for_indonesian():
    assert build_language_preferences("id-ID", ["en"]) == ["id-ID", "id", "in", "en"]
    assert build_language_preferences("en") == ["en"]


def test_first_preferred_language_wins_even_with_better_format_elsewhere():
    tracks = [_t("en", "human", "vtt"), _t("id", "human", "json3")]
    picked = select_track(tracks, ["id-ID", "id", "en"])
    assert picked.language_code == "id"


def test_best_format_wins_within_language():
    tracks = [_t("id", "auto", "json3"), _t("id", "auto", "srv3"), _t("id", "auto", "ttml"), _t("id", "auto", "vtt")]
    assert select_track(tracks, ["id"]).format == "vtt"


def test_unknown_formats_rank_last_and_human_beats_auto_on_ties():
    tracks = [_t("id", "auto", "vtt"), _t("id", "human", "sbv"), _t("id", "human", "vtt")]
    picked = select_track(tracks, ["id"])
    assert (picked.source_kind, picked.format) == ("human", "vtt")


def test_source_kind_filter_and_no_match():
    tracks = [_t("id", "human", "vtt")]
    assert select_track(tracks, ["id"], ("auto",)) is None
    assert select_track(tracks, ["fr"]) is None


def test_regional_variant_then_bare_code():
    tracks = [_t("id", "human", "vtt"), _t("id-ID", "human", "srt")]
    assert select_track(tracks, ["id-ID"]).language_code == "id-ID"


def test_legacy_indonesian_code_is_a_synonym():
    tracks = [_t("in", "auto", "vtt")]
    assert select_track(tracks, build_language_preferences("id-ID")).language_code == "in"


def test_any_track_prefers_language_with_most_tracks():
    tracks = [_t("de", "human", "vtt"), _t("fr", "human", "json3"), _t("fr", "auto", "srt")]
    picked = select_any_track(tracks)
    assert picked.language_code == "fr"
    assert picked.format == "srt"


def test_manifest_from_ytdlp_maps_sources():
    data = {
        "id": "dQw4w9WgXcQ",
        "title": "Belajar",
        "duration": 1200,
        "subtitles": {"id": [{"ext": "vtt", "url": "https://h/vtt"}]},
        "automatic_captions": {"id": [{"ext": "json3", "url": "https://a/json3"}, {"ext": "srv3"}]},
    }
    m = CaptionManifest.from_ytdlp(data)
    assert m.duration_seconds == 1200.0
    assert [(t.source_kind, t.format) for t in m.tracks] == [("human", "vtt"), ("auto", "json3")]
    assert m.languages == ["id"]

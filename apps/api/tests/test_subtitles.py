import json

import pytest

from app.services.subtitles import (
    Segment,
    format_srt_timestamp,
    parse_json3,
    parse_srt,
    parse_srv3,
    parse_subtitle_payload,
    parse_timestamp,
    parse_ttml,
    parse_vtt,
    segments_to_plain_text,
    segments_to_srt,
)

EXPECTED_TEXT = "Halo semuanya. Hari ini kita belajar Python. Sampai jumpa!"

VTT = """WEBVTT
Kind: captions
Language: id

1
00:00:01.000 --> 00:00:03.500 align:start position:0%
Halo <c>semuanya.</c>

00:00:03.500 --> 00:00:07.250
Hari ini kita
belajar Python.

NOTE this is a comment

00:07.250 --> 00:09.000
Sampai jumpa!
"""

SRT = """1
00:00:01,000 --> 00:00:03,500
Halo semuanya.

2
00:00:03,500 --> 00:00:07,250
Hari ini kita
belajar Python.

3
00:00:07,250 --> 00:00:09,000
Sampai jumpa!
"""

TTML = """<?xml version="1.0" encoding="utf-8"?>
<tt xmlns="http://www.w3.org/ns/ttml"><body><div>
<p begin="00:00:01.000" end="00:00:03.500">Halo semuanya.</p>
<p begin="3.5s" dur="3750ms">Hari ini kita<br/>belajar Python.</p>
<p begin="00:00:07.250" end="00:00:09.000">Sampai jumpa&#33;</p>
</div></body></tt>
"""

JSON3 = json.dumps(
    {
        "events": [
            {"tStartMs": 0, "dDurationMs": 1000},
            {"tStartMs": 1000, "dDurationMs": 2500, "segs": [{"utf8": "Halo "}, {"utf8": "semuanya."}]},
            {"tStartMs": 3500, "dDurationMs": 3750, "segs": [{"utf8": "Hari ini kita\nbelajar Python."}]},
            {"tStartMs": 7250, "dDurationMs": 1750, "segs": [{"utf8": "Sampai jumpa!"}]},
        ]
    }
)

SRV3 = """<?xml version="1.0" encoding="utf-8" ?><timedtext format="3"><body>
<p t="1000" d="2500">Halo semuanya.</p>
<p t="3500" d="3750">Hari ini kita belajar Python.</p>
<p t="7250" d="1750">Sampai jumpa!</p>
</body></timedtext>
"""


def test_parse_timestamp_forms():
    assert parse_timestamp("01:02:03.456") == pytest.approx(3723.456)
    assert parse_timestamp("02:03.5") == 123.5
    assert parse_timestamp("00:00:01,000") == 1.0
    assert parse_timestamp("12.5s") == 12.5
    assert parse_timestamp("1500ms") == 1.5
    assert parse_timestamp("12") == 12.0
    assert parse_timestamp("garbage") is None
    assert parse_timestamp("") is None


def test_every_format_yields_same_plain_text():
    for payload, parser in ((VTT, parse_vtt), (SRT, parse_srt), (TTML, parse_ttml), (JSON3, parse_json3), (SRV3, parse_srv3)):
        segments = parser(payload)
        assert len(segments) == 3, parser.__name__
        assert segments_to_plain_text(segments) == EXPECTED_TEXT, parser.__name__
        assert [s.start for s in segments] == [1.0, 3.5, 7.25], parser.__name__


def test_vtt_strips_positioning_and_inline_tags():
    segs = parse_vtt(VTT)
    assert segs[0] == Segment(start=1.0, duration=2.5, text="Halo semuanya.")
    assert segs[1].end == 7.25


def test_ttml_accepts_dur_when_end_missing():
    segs = parse_ttml(TTML)
    assert segs[1].duration == 3.75


def test_malformed_input_yields_empty_list():
    assert parse_json3("{not json") == []
    assert parse_json3(json.dumps({"events": "nope"})) == []
    assert parse_vtt("WEBVTT\n\nno cues here") == []
    assert parse_srt("1\nnot a time line\ntext") == []
    assert parse_ttml("<tt><p>no timing</p></tt>") == []


def test_srt_round_trip_keeps_timing_windows():
    original = parse_srt(SRT)
    again = parse_srt(segments_to_srt(original))
    assert [(round(s.start, 3), round(s.end, 3)) for s in again] == [
        (round(s.start, 3), round(s.end, 3)) for s in original
    ]
    assert [s.text for s in again] == [s.text for s in original]


def test_srt_rendering_rounds_to_milliseconds():
    assert format_srt_timestamp(3723.4567) == "01:02:03,457"
    out = segments_to_srt([Segment(start=0.0, duration=1.25, text="a"), Segment(start=1.25, duration=1.0, text="b")])
    assert out == "1\n00:00:00,000 --> 00:00:01,250\na\n\n2\n00:00:01,250 --> 00:00:02,250\nb\n"


def test_dispatch_by_extension_and_generic_fallback():
    assert segments_to_plain_text(parse_subtitle_payload(JSON3, "json3")) == EXPECTED_TEXT
    assert segments_to_plain_text(parse_subtitle_payload(SRT, ".SRT")) == EXPECTED_TEXT
    # unknown extension: VTT, then SRT
    assert segments_to_plain_text(parse_subtitle_payload(SRT, "sbv")) == EXPECTED_TEXT


def test_vtt_accepts_comma_milliseconds_and_missing_header():
    payload = "00:00:01,000 --> 00:00:02,500 align:start\nHalo <c>semua</c>\n"
    assert parse_vtt(payload) == [Segment(start=1.0, duration=1.5, text="Halo semua")]


def test_srt_without_index_lines():
    payload = "00:00:02,500 --> 00:00:04,000\nhello\n\n00:00:04,000 --> 00:00:05,000\nworld\n"
    segs = parse_srt(payload)
    assert [(s.start, s.text) for s in segs] == [(2.5, "hello"), (4.0, "world")]


def test_garbage_caption_files_do_not_raise():
    assert parse_vtt("this is not a caption file at all") == []
    assert parse_srt("\x00\x01 --> ???") == []
    assert parse_vtt("") == []

import pytest

from mediaflow_transcoder.transcoder.errors import SetupError
from mediaflow_transcoder.transcoder.profiles import (
    AUDIO,
    AUDIO_ONLY,
    DEFAULT_PROFILES,
    SUBTITLE,
    VIDEO,
    get_profile,
    parse_bitrate,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("4M", 4_000_000),
        ("128k", 128_000),
        ("12.2k", 12_200),
        (" 5000000 ", 5_000_000),
        (64000, 64000),
    ],
)
def test_parse_bitrate(value, expected):
    assert parse_bitrate(value) == expected


def test_lookup_is_case_insensitive():
    assert get_profile(" MP3 ") is DEFAULT_PROFILES["mp3"]


def test_unknown_profile_lists_available_formats():
    with pytest.raises(SetupError, match="Unknown output format: 'aiff'") as exc_info:
        get_profile("aiff")
    assert "ntsilk" in str(exc_info.value)


def test_table_and_profiles_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_PROFILES["mp3"] = DEFAULT_PROFILES["wav"]
    with pytest.raises(AttributeError):
        DEFAULT_PROFILES["mp3"].bit_rate = 1


def test_codec_for():
    mkv = DEFAULT_PROFILES["mkv"]
    assert mkv.codec_for(AUDIO) == "aac"
    assert mkv.codec_for(VIDEO) == "libx264"
    assert mkv.codec_for(SUBTITLE) is None
    assert mkv.codec_for("data") is None


def test_constrained_profiles():
    amr = DEFAULT_PROFILES["amr"]
    assert (amr.forced_sample_rate, amr.channel_layout, amr.max_audio_streams) == (8000, "mono", 1)
    assert DEFAULT_PROFILES["ntsilk"].default_frame_size == 480
    assert DEFAULT_PROFILES["opus"].forced_sample_rate == 48000
    assert all(DEFAULT_PROFILES[name].media_types == AUDIO_ONLY for name in ("mp3", "wav", "pcm", "amr", "ntsilk"))

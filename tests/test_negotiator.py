from fractions import Fraction

import pytest

from fakes import audio_encoder, audio_stream, video_encoder, video_stream
from mediaflow_transcoder.transcoder.negotiator import (
    DEFAULT_FRAME_RATE,
    SAMPLE_RATE_LADDER,
    closest_rate,
    encoder_time_base,
    negotiate_audio,
    negotiate_sample_rate,
    negotiate_video,
)
from mediaflow_transcoder.transcoder.profiles import DEFAULT_PROFILES, FormatProfile


class TestSampleRateLadder:
    @pytest.mark.parametrize("rate", SAMPLE_RATE_LADDER)
    def test_ladder_rate_kept(self, rate):
        assert negotiate_sample_rate(rate) == rate

    @pytest.mark.parametrize(
        "source, expected",
        [
            (96000, 48000),
            (22050, 24000),
            (11025, 12000),
            (6000, 8000),
            (40000, 44100),
            (37000, 32000),
            (20000, 24000),
        ],
    )
    def test_closest_candidate(self, source, expected):
        assert negotiate_sample_rate(source) == expected

    def test_closest_minimizes_distance(self):
        for source in range(4000, 100000, 997):
            chosen = negotiate_sample_rate(source)
            assert abs(source - chosen) == min(abs(source - c) for c in SAMPLE_RATE_LADDER)

    @pytest.mark.parametrize(
        "source, expected",
        [
            (46050, 48000),  # midway 48000 / 44100
            (28000, 32000),  # midway 32000 / 24000
            (14000, 16000),  # midway 16000 / 12000
            (10000, 12000),  # midway 12000 / 8000
        ],
    )
    def test_tie_goes_to_higher_rate(self, source, expected):
        assert negotiate_sample_rate(source) == expected

    def test_explicit_rate_used_verbatim(self):
        assert negotiate_sample_rate(44100, explicit_rate=22050) == 22050

    def test_forced_rate_beats_ladder_and_explicit_rate(self):
        assert negotiate_sample_rate(44100, forced_rate=8000) == 8000
        assert negotiate_sample_rate(44100, explicit_rate=16000, forced_rate=8000) == 8000

    def test_closest_rate_uses_first_on_tie(self):
        assert closest_rate(15, (20, 10)) == 20
        assert closest_rate(15, (10, 20)) == 10


class TestNegotiateAudio:
    def test_narrow_band_profile_forces_8000_mono(self):
        stream = audio_stream(sample_rate=44100, channel_layout="stereo", sample_format="fltp")
        encoder = audio_encoder("libopencore_amrnb", sample_formats=("s16",))

        target = negotiate_audio(stream, DEFAULT_PROFILES["amr"], encoder)

        assert target.sample_rate == 8000
        assert target.channel_layout == "mono"
        assert target.sample_format == "s16"

    def test_16000_is_a_ladder_hit(self):
        target = negotiate_audio(audio_stream(sample_rate=16000), DEFAULT_PROFILES["wav"])
        assert target.sample_rate == 16000

    def test_explicit_rate(self):
        target = negotiate_audio(audio_stream(sample_rate=48000), DEFAULT_PROFILES["pcm"], explicit_rate=24000)
        assert target.sample_rate == 24000
        assert target.channel_layout == "mono"

    def test_source_layout_kept_without_profile_layout(self):
        target = negotiate_audio(audio_stream(channel_layout="5.1"), DEFAULT_PROFILES["mp3"], audio_encoder())
        assert target.channel_layout == "5.1"

    def test_layout_from_channel_count_when_unnamed(self):
        stream = audio_stream(channel_layout="")
        stream.channels = 1
        target = negotiate_audio(stream, DEFAULT_PROFILES["flac"])
        assert target.channel_layout == "mono"

    @pytest.mark.parametrize(
        "reported, channels, expected",
        [("1 channels", 1, "mono"), ("2 channels", 2, "stereo"), ("6 channels", 6, "5.1")],
    )
    def test_unspecified_order_layout_gets_default_name(self, reported, channels, expected):
        stream = audio_stream(channel_layout=reported)
        stream.channels = channels
        target = negotiate_audio(stream, DEFAULT_PROFILES["mp3"], audio_encoder())
        assert target.channel_layout == expected

    def test_profile_format_kept_when_supported(self):
        target = negotiate_audio(audio_stream(), DEFAULT_PROFILES["mp3"], audio_encoder())
        assert target.sample_format == "s16p"

    def test_unsupported_profile_format_falls_back_to_first_declared(self):
        encoder = audio_encoder(sample_formats=("fltp", "s32p"))
        target = negotiate_audio(audio_stream(), DEFAULT_PROFILES["mp3"], encoder)
        assert target.sample_format == "fltp"

    def test_profile_without_format_uses_encoder_then_source(self):
        profile = FormatProfile(name="x", container="x", audio_codec="x")
        assert negotiate_audio(audio_stream(), profile, audio_encoder(sample_formats=("s16",))).sample_format == "s16"
        assert negotiate_audio(audio_stream(sample_format="dbl"), profile).sample_format == "dbl"

    def test_rate_snapped_to_encoder_declared_rates(self):
        encoder = audio_encoder("libopus", sample_rates=(48000, 24000, 16000, 12000, 8000))
        profile = FormatProfile(name="x", container="ogg", audio_codec="libopus")

        assert negotiate_audio(audio_stream(sample_rate=44100), profile, encoder).sample_rate == 48000
        assert negotiate_audio(audio_stream(sample_rate=32000), profile, encoder).sample_rate == 24000


class TestNegotiateVideo:
    def test_encoder_pixel_format_and_passthrough_size(self):
        target = negotiate_video(video_stream(width=640, height=360, pixel_format="yuvj420p"), video_encoder())
        assert (target.pixel_format, target.width, target.height) == ("yuv420p", 640, 360)

    def test_source_pixel_format_without_declared_formats(self):
        target = negotiate_video(video_stream(pixel_format="nv12"), video_encoder(pixel_formats=()))
        assert target.pixel_format == "nv12"

    def test_frame_rate_fallback(self):
        assert negotiate_video(video_stream(frame_rate=None)).frame_rate == DEFAULT_FRAME_RATE
        assert negotiate_video(video_stream(frame_rate=Fraction(30000, 1001))).frame_rate == Fraction(30000, 1001)


def test_encoder_time_base():
    audio = negotiate_audio(audio_stream(sample_rate=44100), DEFAULT_PROFILES["wav"])
    video = negotiate_video(video_stream(frame_rate=Fraction(25)))

    assert encoder_time_base(audio=audio) == Fraction(1, 44100)
    assert encoder_time_base(video=video) == Fraction(1, 25)
    with pytest.raises(ValueError):
        encoder_time_base()

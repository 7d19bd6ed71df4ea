from contextlib import ExitStack

import pytest

from fakes import FakeBackend, audio_encoder, audio_stream, other_stream, video_encoder, video_stream
from mediaflow_transcoder.transcoder.errors import SetupError
from mediaflow_transcoder.transcoder.profiles import DEFAULT_PROFILES
from mediaflow_transcoder.transcoder.stream_selector import StreamAction, select_streams

ENCODERS = {
    "libmp3lame": audio_encoder("libmp3lame"),
    "aac": audio_encoder("aac", sample_formats=("fltp",)),
    "libx264": video_encoder(),
    "ntsilk_s16le": audio_encoder("ntsilk_s16le", sample_formats=("s16",)),
}


def _select(streams, profile_name, **backend_kwargs):
    backend = FakeBackend(streams=streams, encoders=backend_kwargs.pop("encoders", ENCODERS), **backend_kwargs)
    with ExitStack() as resources:
        selections = select_streams(streams, DEFAULT_PROFILES[profile_name], backend, resources)
    return selections, backend


def test_audio_and_video_encoded_in_input_order():
    selections, _ = _select([video_stream(0), audio_stream(1)], "mp4")
    assert [(s.stream.index, s.action) for s in selections] == [
        (0, StreamAction.ENCODE),
        (1, StreamAction.ENCODE),
    ]
    assert selections[0].encoder_info.name == "libx264"
    assert selections[1].encoder_info.name == "aac"


def test_non_media_streams_dropped():
    selections, _ = _select([other_stream(0, "data"), audio_stream(1), other_stream(2, "attachment")], "mp3")
    assert [s.action for s in selections] == [StreamAction.DROP, StreamAction.ENCODE, StreamAction.DROP]


def test_missing_or_broken_decoder_is_dropped_not_copied():
    streams = [audio_stream(0, codec_name="weird"), audio_stream(1, codec_name="broken"), audio_stream(2)]
    selections, _ = _select(streams, "mkv", missing_decoders=("weird",), unopenable_decoders=("broken",))
    assert [s.action for s in selections] == [StreamAction.DROP, StreamAction.DROP, StreamAction.ENCODE]


def test_no_encoder_means_copy():
    streams = [video_stream(0), audio_stream(1), other_stream(2, "subtitle", "subrip")]
    selections, _ = _select(streams, "mkv", encoders={"aac": ENCODERS["aac"]})
    assert [s.action for s in selections] == [StreamAction.COPY, StreamAction.ENCODE, StreamAction.COPY]
    assert selections[0].decoder is not None
    assert selections[0].encoder_info is None


def test_audio_only_profile_drops_video():
    selections, _ = _select([video_stream(0), audio_stream(1)], "mp3")
    assert [s.action for s in selections] == [StreamAction.DROP, StreamAction.ENCODE]


def test_single_audio_stream_profile_keeps_first_usable_stream():
    streams = [audio_stream(0, codec_name="weird"), audio_stream(1), audio_stream(2)]
    selections, _ = _select(streams, "ntsilk", missing_decoders=("weird",))
    assert [s.action for s in selections] == [StreamAction.DROP, StreamAction.ENCODE, StreamAction.DROP]


def test_no_usable_stream_is_setup_error():
    with pytest.raises(SetupError, match="No usable streams"):
        _select([video_stream(0), other_stream(1)], "wav")


def test_opened_decoders_released_with_resources():
    streams = [audio_stream(0), audio_stream(1)]
    _, backend = _select(streams, "mkv")
    assert backend.events == ["open decoder 0", "open decoder 1", "close decoder 1", "close decoder 0"]

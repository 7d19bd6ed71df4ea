"""
Target parameter negotiation.

Computes the encoder-side parameters of one stream from the source stream,
the output format profile and the concrete encoder's declared capabilities.

Audio sample rate policy (in precedence order):
  1. profile hard constraint (``forced_sample_rate``)
  2. explicit caller rate, used verbatim
  3. source rate if it is on the ladder, otherwise the closest ladder
     candidate (ties go to the higher, i.e. earlier, candidate)

If the encoder declares a fixed list of supported rates and the result is
not on it, the closest declared rate is used instead.
"""

import logging
from collections.abc import Sequence
from fractions import Fraction

from mediaflow_transcoder.transcoder.backend import AudioTarget, EncoderInfo, StreamInfo, VideoTarget
from mediaflow_transcoder.transcoder.profiles import FormatProfile

logger = logging.getLogger(__name__)

SAMPLE_RATE_LADDER: tuple[int, ...] = (48000, 44100, 32000, 24000, 16000, 12000, 8000)

DEFAULT_FRAME_RATE = Fraction(24, 1)

# Used when the source reports no layout, or only a channel count
_CHANNEL_LAYOUT_MAP = {
    1: "mono",
    2: "stereo",
    3: "2.1",
    4: "quad",
    6: "5.1",
    8: "7.1",
}


def closest_rate(source_rate: int, candidates: Sequence[int]) -> int:
    """Return the candidate closest to ``source_rate``; ties go to the earliest candidate."""
    best = candidates[0]
    best_diff = abs(source_rate - best)
    for candidate in candidates[1:]:
        diff = abs(source_rate - candidate)
        if diff < best_diff:
            best, best_diff = candidate, diff
    return best


def source_channel_layout(stream: StreamInfo) -> str:
    """
    Return a named layout for the source.

    FFmpeg reports unspecified-order layouts as "<n> channels" (plain WAV
    files do this), which encoders refuse; those map to the default layout
    for the channel count.
    """
    name = stream.channel_layout
    if name and not name.endswith(" channels"):
        return name
    return _CHANNEL_LAYOUT_MAP.get(stream.channels, "stereo")


def negotiate_sample_rate(
    source_rate: int,
    explicit_rate: int | None = None,
    forced_rate: int | None = None,
    ladder: Sequence[int] = SAMPLE_RATE_LADDER,
) -> int:
    if forced_rate:
        return forced_rate
    if explicit_rate:
        return explicit_rate
    if source_rate in ladder:
        return source_rate
    return closest_rate(source_rate, ladder)


def negotiate_audio(
    stream: StreamInfo,
    profile: FormatProfile,
    encoder: EncoderInfo | None = None,
    explicit_rate: int | None = None,
) -> AudioTarget:
    """Compute (sample rate, channel layout, sample format) for one audio stream."""
    rate = negotiate_sample_rate(stream.sample_rate, explicit_rate, profile.forced_sample_rate)
    if encoder is not None and encoder.sample_rates and rate not in encoder.sample_rates:
        supported = closest_rate(rate, encoder.sample_rates)
        logger.warning(
            "[negotiator] %s does not support %dHz, using %dHz",
            encoder.name,
            rate,
            supported,
        )
        rate = supported

    layout = profile.channel_layout or source_channel_layout(stream)

    declared = encoder.sample_formats if encoder is not None else ()
    sample_format = profile.sample_format
    if sample_format is None or (declared and sample_format not in declared):
        if declared:
            if sample_format is not None:
                logger.info(
                    "[negotiator] %s does not support %s, using %s",
                    encoder.name,
                    sample_format,
                    declared[0],
                )
            sample_format = declared[0]
        else:
            sample_format = sample_format or stream.sample_format

    target = AudioTarget(sample_rate=rate, channel_layout=layout, sample_format=sample_format)
    logger.debug(
        "[negotiator] Stream %d: %dHz %s %s -> %dHz %s %s",
        stream.index,
        stream.sample_rate,
        stream.channel_layout,
        stream.sample_format,
        target.sample_rate,
        target.channel_layout,
        target.sample_format,
    )
    return target


def negotiate_video(stream: StreamInfo, encoder: EncoderInfo | None = None) -> VideoTarget:
    """Compute (pixel format, width, height, frame rate) for one video stream."""
    if encoder is not None and encoder.pixel_formats:
        pixel_format = encoder.pixel_formats[0]
    else:
        pixel_format = stream.pixel_format

    frame_rate = stream.frame_rate if stream.frame_rate else DEFAULT_FRAME_RATE
    return VideoTarget(
        pixel_format=pixel_format,
        width=stream.width,
        height=stream.height,
        frame_rate=Fraction(frame_rate),
    )


def encoder_time_base(audio: AudioTarget | None = None, video: VideoTarget | None = None) -> Fraction:
    """1/sample_rate for audio encoders, 1/frame_rate for video encoders."""
    if audio is not None:
        return Fraction(1, audio.sample_rate)
    if video is not None:
        return 1 / video.frame_rate
    raise ValueError("encoder_time_base needs an audio or video target")

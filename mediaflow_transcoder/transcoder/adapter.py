"""
Resample/rescale adapters.

An adapter converts decoded frames into the negotiated target parameters
before they reach the frame aligner / encoder. A pipeline whose decoder
output already matches the target has no adapter at all.

Audio:
  decoded frame (any length) -> resample() -> 0..n frames at the target
  rate/layout/format. The resampler keeps an internal delay of in-flight
  samples; ``flush()`` drains it at end of stream.

Video:
  decoded frame -> reformat() -> exactly one frame in the target pixel
  format and size.
"""

import logging

from mediaflow_transcoder.transcoder.backend import AudioTarget, MediaBackend, StreamInfo, VideoTarget

logger = logging.getLogger(__name__)


def needs_audio_adapter(source: StreamInfo, target: AudioTarget) -> bool:
    return (
        source.sample_rate != target.sample_rate
        or source.channel_layout != target.channel_layout
        or source.sample_format != target.sample_format
    )


def needs_video_adapter(source: StreamInfo, target: VideoTarget) -> bool:
    return (
        source.pixel_format != target.pixel_format
        or source.width != target.width
        or source.height != target.height
    )


class AudioResampleAdapter:
    """
    Stateful audio resampler with delay accounting.

    ``delay`` is the number of source-rate samples accepted but not yet
    returned (input minus output, output converted back to source-rate
    units). Each conversion's output is bounded by
    ``ceil((delay + n) * target_rate / source_rate)``.

    Raises:
        AdapterInitError: at construction when the target cannot be
            configured, or on the first frame when the source cannot be
            reconciled with the target.
    """

    def __init__(self, backend: MediaBackend, source: StreamInfo, target: AudioTarget) -> None:
        self.target = target
        self.source_rate = source.sample_rate or target.sample_rate
        self._resampler = backend.create_resampler(target)
        self._samples_in = 0
        self._samples_out = 0
        self._flushed = False

        logger.debug(
            "[adapter] Audio: %dHz %s %s -> %dHz %s %s",
            source.sample_rate,
            source.channel_layout,
            source.sample_format,
            target.sample_rate,
            target.channel_layout,
            target.sample_format,
        )

    @property
    def delay(self) -> int:
        # out * source / target, rounded up so a partial sample still counts as consumed
        consumed = -(-self._samples_out * self.source_rate // self.target.sample_rate)
        return max(0, self._samples_in - consumed)

    def output_capacity(self, input_samples: int) -> int:
        return -(-(self.delay + input_samples) * self.target.sample_rate // self.source_rate)

    def convert(self, frame) -> list:
        capacity = self.output_capacity(frame.samples)
        converted = self._resampler.resample(frame)
        produced = sum(f.samples for f in converted)
        if produced > capacity:
            logger.warning(
                "[adapter] Resampler returned %d samples, expected at most %d",
                produced,
                capacity,
            )
        self._samples_in += frame.samples
        self._samples_out += produced
        return converted

    def flush(self) -> list:
        """Drain the resampler's remaining delay. Safe to call more than once."""
        if self._flushed:
            return []
        self._flushed = True
        remaining = self._resampler.resample(None)
        produced = sum(f.samples for f in remaining)
        self._samples_out += produced
        logger.debug("[adapter] Flushed %d delayed samples", produced)
        return remaining


class VideoRescaleAdapter:
    """
    Pixel format / size conversion, one frame in, one frame out.

    Raises:
        AdapterInitError: at construction for an unknown target format.
        RescaleError: when a frame cannot be converted.
    """

    def __init__(self, backend: MediaBackend, source: StreamInfo, target: VideoTarget) -> None:
        self.target = target
        self._rescaler = backend.create_rescaler(target)
        logger.debug(
            "[adapter] Video: %s %dx%d -> %s %dx%d",
            source.pixel_format,
            source.width,
            source.height,
            target.pixel_format,
            target.width,
            target.height,
        )

    def convert(self, frame) -> list:
        return [self._rescaler.reformat(frame)]

    def flush(self) -> list:
        return []

"""
PyAV implementation of the media backend.

Wraps FFmpeg (via PyAV) behind the send/receive contract the transcode
core expects. PyAV's ``decode()`` / ``encode()`` return lists; the
handles below queue those results and hand them out one at a time from
``receive()``, raising ``NeedMoreInput`` when the queue is empty and
``EndOfStream`` once the codec has been flushed and drained.

PyAV errors are translated into the transcoder error taxonomy here; no
``av.error`` exception crosses this module's boundary.

Mapping:
  open_demuxer      av.open(path, "r"), container.demux()
  open_decoder      stream.codec_context.decode()
  find_encoder      av.Codec(name, "w")
  open_muxer        av.open(path, "w", format=...), add_stream(),
                    add_stream_from_template(), start_encoding(), mux_one()
  new_sample_buffer av.AudioFifo
  create_resampler  av.AudioResampler
  create_rescaler   VideoFrame.reformat()
"""

import logging
from collections import deque
from fractions import Fraction

import av
from av.audio.resampler import AudioResampler
from av.codec.codec import Capabilities

from mediaflow_transcoder.transcoder.backend import (
    AudioTarget,
    EncoderInfo,
    EncoderSpec,
    StreamInfo,
    VideoTarget,
)
from mediaflow_transcoder.transcoder.errors import (
    AdapterInitError,
    DecoderNotFoundError,
    DecoderOpenError,
    DemuxError,
    EncoderNotFoundError,
    EncoderOpenError,
    EndOfStream,
    FrameRejectedError,
    MuxError,
    NeedMoreInput,
    RescaleError,
    TransientDecodeError,
    WriteError,
)
from mediaflow_transcoder.transcoder.profiles import AUDIO, SUBTITLE, VIDEO

logger = logging.getLogger(__name__)


def describe_stream(stream) -> StreamInfo:
    """Build a ``StreamInfo`` from a PyAV input stream."""
    ctx = getattr(stream, "codec_context", None)
    info = StreamInfo(
        index=stream.index,
        media_type=stream.type,
        codec_name=ctx.name if ctx is not None else "",
        time_base=stream.time_base,
        duration=float(stream.duration * stream.time_base) if stream.duration and stream.time_base else None,
        native=stream,
    )
    if ctx is None:
        return info
    if stream.type == AUDIO:
        info.sample_rate = ctx.sample_rate or 0
        if ctx.layout is not None:
            info.channel_layout = ctx.layout.name
            info.channels = len(ctx.layout.channels)
        info.sample_format = ctx.format.name if ctx.format is not None else ""
    elif stream.type == VIDEO:
        info.width = ctx.width or 0
        info.height = ctx.height or 0
        info.pixel_format = ctx.pix_fmt or ""
        rate = stream.guessed_rate or stream.average_rate
        info.frame_rate = Fraction(rate) if rate else None
    return info


class _QueuedCodec:
    """Send/receive facade over a list-returning PyAV codec call."""

    def __init__(self) -> None:
        self._pending: deque = deque()
        self._flushed = False

    def receive(self):
        if self._pending:
            return self._pending.popleft()
        if self._flushed:
            raise EndOfStream
        raise NeedMoreInput

    def close(self) -> None:
        self._pending.clear()


class PyAVDecoder(_QueuedCodec):
    def __init__(self, codec_context) -> None:
        super().__init__()
        self._ctx = codec_context

    def send(self, packet) -> None:
        if self._flushed:
            return
        try:
            frames = self._ctx.decode(packet)
        except av.error.EOFError:
            frames = []
        except (av.error.FFmpegError, ValueError) as e:
            if packet is not None:
                raise TransientDecodeError(str(e)) from e
            logger.debug("[pyav_backend] Decoder flush error: %s", e)
            frames = []
        if packet is None:
            self._flushed = True
        self._pending.extend(frames)


class PyAVEncoder(_QueuedCodec):
    def __init__(self, codec_context) -> None:
        super().__init__()
        self._ctx = codec_context

    @property
    def frame_size(self) -> int:
        # Video codec contexts have no frame_size
        return getattr(self._ctx, "frame_size", 0) or 0

    @property
    def time_base(self) -> Fraction:
        return self._ctx.time_base

    def send(self, frame) -> None:
        if self._flushed:
            return
        try:
            packets = self._ctx.encode(frame)
        except av.error.EOFError:
            packets = []
        except (av.error.FFmpegError, ValueError) as e:
            if frame is not None:
                raise FrameRejectedError(str(e)) from e
            logger.debug("[pyav_backend] Encoder flush error: %s", e)
            packets = []
        if frame is None:
            self._flushed = True
        self._pending.extend(packets)


class PyAVOutputStream:
    def __init__(self, stream) -> None:
        self.stream = stream

    @property
    def index(self) -> int:
        return self.stream.index

    @property
    def time_base(self) -> Fraction | None:
        return self.stream.time_base


class PyAVDemuxer:
    def __init__(self, path: str) -> None:
        try:
            self._container = av.open(path, mode="r")
        except (av.error.FFmpegError, OSError, ValueError) as e:
            raise DemuxError(f"Cannot open input {path}: {e}") from e
        self.streams = [describe_stream(s) for s in self._container.streams]
        self.format_name = self._container.format.name
        self.duration = self._container.duration / av.time_base if self._container.duration else None

    def packets(self):
        try:
            for packet in self._container.demux():
                # Flush packets are generated by PyAV at end of each stream
                if packet.size == 0:
                    continue
                yield packet
        except av.error.FFmpegError as e:
            logger.warning("[pyav_backend] Demuxing stopped early: %s", e)

    def close(self) -> None:
        self._container.close()


class PyAVMuxer:
    def __init__(self, path: str, container_name: str) -> None:
        try:
            self._container = av.open(path, mode="w", format=container_name)
        except (av.error.FFmpegError, OSError, ValueError) as e:
            raise MuxError(f"Cannot create {container_name} output {path}: {e}") from e
        self._closed = False

    def add_encoded_stream(self, spec: EncoderSpec) -> tuple[PyAVEncoder, PyAVOutputStream]:
        try:
            if spec.audio is not None:
                stream = self._container.add_stream(spec.codec_name, rate=spec.audio.sample_rate)
            else:
                stream = self._container.add_stream(spec.codec_name)
        except (av.error.FFmpegError, ValueError) as e:
            raise EncoderNotFoundError(f"Encoder {spec.codec_name} unavailable: {e}") from e

        ctx = stream.codec_context
        try:
            if spec.audio is not None:
                ctx.sample_rate = spec.audio.sample_rate
                ctx.layout = spec.audio.channel_layout
                ctx.format = spec.audio.sample_format
            if spec.video is not None:
                ctx.width = spec.video.width
                ctx.height = spec.video.height
                ctx.pix_fmt = spec.video.pixel_format
                ctx.framerate = spec.video.frame_rate
            ctx.time_base = spec.time_base
            if spec.bit_rate:
                ctx.bit_rate = spec.bit_rate
            if spec.options:
                ctx.options = dict(spec.options)
            ctx.open()
        except (av.error.FFmpegError, ValueError, TypeError) as e:
            raise EncoderOpenError(f"Cannot open encoder {spec.codec_name}: {e}") from e

        stream.time_base = spec.time_base
        logger.debug(
            "[pyav_backend] Output stream %d: %s (frame_size=%d)",
            stream.index,
            spec.codec_name,
            getattr(ctx, "frame_size", 0) or 0,
        )
        return PyAVEncoder(ctx), PyAVOutputStream(stream)

    def add_copy_stream(self, stream: StreamInfo) -> PyAVOutputStream:
        try:
            out = self._container.add_stream_from_template(stream.native)
        except (av.error.FFmpegError, ValueError) as e:
            raise MuxError(f"Cannot copy stream {stream.index} ({stream.codec_name}): {e}") from e
        return PyAVOutputStream(out)

    def write_header(self) -> None:
        try:
            self._container.start_encoding()
        except (av.error.FFmpegError, ValueError) as e:
            raise MuxError(f"Cannot write header: {e}") from e

    def write_packet(self, packet, stream: PyAVOutputStream) -> None:
        packet.stream = stream.stream
        try:
            self._container.mux_one(packet)
        except (av.error.FFmpegError, ValueError) as e:
            raise WriteError(str(e)) from e

    def finalize(self) -> None:
        try:
            self._container.close()
        except (av.error.FFmpegError, OSError) as e:
            raise WriteError(f"Cannot write trailer: {e}") from e
        finally:
            self._closed = True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._container.close()
        except (av.error.FFmpegError, OSError) as e:
            logger.warning("[pyav_backend] Error closing output: %s", e)


class PyAVResampler:
    def __init__(self, target: AudioTarget) -> None:
        try:
            av.AudioFormat(target.sample_format)
            av.AudioLayout(target.channel_layout)
        except (ValueError, TypeError) as e:
            raise AdapterInitError(
                f"Invalid resample target {target.sample_format}/{target.channel_layout}: {e}"
            ) from e
        if target.sample_rate <= 0:
            raise AdapterInitError(f"Invalid resample rate {target.sample_rate}")
        self._target = target
        self._resampler = AudioResampler(
            format=target.sample_format,
            layout=target.channel_layout,
            rate=target.sample_rate,
        )

    def resample(self, frame) -> list:
        try:
            frames = self._resampler.resample(frame)
        except (av.error.FFmpegError, ValueError) as e:
            raise AdapterInitError(
                f"Cannot resample to {self._target.sample_rate}Hz "
                f"{self._target.channel_layout} {self._target.sample_format}: {e}"
            ) from e
        return [f for f in frames if f is not None]


class PyAVRescaler:
    def __init__(self, target: VideoTarget) -> None:
        try:
            av.VideoFormat(target.pixel_format)
        except (ValueError, TypeError) as e:
            raise AdapterInitError(f"Invalid pixel format {target.pixel_format!r}: {e}") from e
        self._target = target

    def reformat(self, frame):
        try:
            return frame.reformat(
                width=self._target.width or None,
                height=self._target.height or None,
                format=self._target.pixel_format,
            )
        except (av.error.FFmpegError, ValueError) as e:
            raise RescaleError(f"Cannot convert {frame.format.name} to {self._target.pixel_format}: {e}") from e


class PyAVBackend:
    """Production ``MediaBackend`` on top of PyAV."""

    def open_demuxer(self, path: str) -> PyAVDemuxer:
        return PyAVDemuxer(path)

    def open_decoder(self, stream: StreamInfo) -> PyAVDecoder:
        ctx = getattr(stream.native, "codec_context", None)
        if ctx is None:
            raise DecoderNotFoundError(f"No decoder for stream {stream.index}")
        try:
            av.Codec(ctx.name, "r")
        except (av.error.FFmpegError, ValueError) as e:
            raise DecoderNotFoundError(f"No decoder for {stream.codec_name or 'unknown codec'}") from e
        try:
            ctx.open(strict=False)
        except (av.error.FFmpegError, ValueError) as e:
            raise DecoderOpenError(f"Cannot open {ctx.name} decoder: {e}") from e
        return PyAVDecoder(ctx)

    def find_encoder(self, codec_name: str, media_type: str) -> EncoderInfo | None:
        try:
            codec = av.Codec(codec_name, "w")
        except (av.error.FFmpegError, ValueError):
            logger.info("[pyav_backend] Encoder %s not available in this FFmpeg build", codec_name)
            return None
        if codec.type != media_type:
            return None
        if media_type == SUBTITLE:
            # PyAV has no subtitle encoding API
            return None
        return EncoderInfo(
            name=codec.name,
            media_type=media_type,
            sample_formats=tuple(f.name for f in codec.audio_formats or ()),
            pixel_formats=tuple(f.name for f in codec.video_formats or ()),
            sample_rates=tuple(codec.audio_rates or ()),
            variable_frame_size=bool(codec.capabilities & Capabilities.variable_frame_size),
        )

    def open_muxer(self, path: str, container_name: str) -> PyAVMuxer:
        return PyAVMuxer(path, container_name)

    def new_sample_buffer(self) -> av.AudioFifo:
        return av.AudioFifo()

    def create_resampler(self, target: AudioTarget) -> PyAVResampler:
        return PyAVResampler(target)

    def create_rescaler(self, target: VideoTarget) -> PyAVRescaler:
        return PyAVRescaler(target)

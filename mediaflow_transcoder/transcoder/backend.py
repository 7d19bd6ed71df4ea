"""
Collaborator contract between the transcode core and the codec/container layer.

The core (stream selection, negotiation, adaptation, alignment, encode/mux
and flush sequencing) never talks to FFmpeg directly. It sees demuxers,
codecs and muxers only through the protocols below. ``PyAVBackend``
(``pyav_backend.py``) is the production implementation; tests use
in-memory fakes.

Codec handles follow the send/receive model: ``send()`` pushes one input
(``None`` signals end-of-input), ``receive()`` returns one output or raises
``NeedMoreInput`` / ``EndOfStream``.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Protocol, runtime_checkable


@dataclass(slots=True)
class StreamInfo:
    """Metadata about one input stream, as reported by the demuxer."""

    index: int
    media_type: str  # "audio", "video", "subtitle", "data", "attachment"
    codec_name: str
    time_base: Fraction | None = None
    duration: float | None = None  # seconds
    # Audio-specific
    sample_rate: int = 0
    channel_layout: str = ""
    channels: int = 0
    sample_format: str = ""
    # Video-specific
    width: int = 0
    height: int = 0
    pixel_format: str = ""
    frame_rate: Fraction | None = None
    # Backend stream object (av.stream.Stream for PyAV)
    native: Any = None


@dataclass(frozen=True, slots=True)
class EncoderInfo:
    """Static capabilities of an encoder found in the codec library."""

    name: str
    media_type: str
    sample_formats: tuple[str, ...] = ()
    pixel_formats: tuple[str, ...] = ()
    sample_rates: tuple[int, ...] = ()
    variable_frame_size: bool = False


@dataclass(frozen=True, slots=True)
class AudioTarget:
    sample_rate: int
    channel_layout: str
    sample_format: str


@dataclass(frozen=True, slots=True)
class VideoTarget:
    pixel_format: str
    width: int
    height: int
    frame_rate: Fraction


@dataclass(frozen=True, slots=True)
class EncoderSpec:
    """Everything needed to open one encoder."""

    codec_name: str
    media_type: str
    time_base: Fraction
    bit_rate: int = 0
    audio: AudioTarget | None = None
    video: VideoTarget | None = None
    # Private encoder options (e.g. x264 "preset")
    options: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class Demuxer(Protocol):
    streams: list[StreamInfo]
    format_name: str
    duration: float | None  # container duration in seconds

    def packets(self) -> Iterator[Any]:
        """Yield packets in demux order. Exhaustion means end of input."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class DecoderHandle(Protocol):
    def send(self, packet: Any | None) -> None:
        """
        Push one packet (``None`` = end of input).

        Raises:
            TransientDecodeError: The packet was rejected.
        """
        ...

    def receive(self) -> Any:
        """
        Return the next decoded frame.

        Raises:
            NeedMoreInput: Nothing available until more packets are sent.
            EndOfStream: The decoder has been fully drained.
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class EncoderHandle(Protocol):
    @property
    def frame_size(self) -> int:
        """Required samples per input frame (0 = variable)."""
        ...

    @property
    def time_base(self) -> Fraction: ...

    def send(self, frame: Any | None) -> None:
        """
        Push one frame (``None`` = end of input).

        Raises:
            FrameRejectedError: The frame was refused.
        """
        ...

    def receive(self) -> Any:
        """
        Return the next encoded packet.

        Raises:
            NeedMoreInput: Nothing available until more frames are sent.
            EndOfStream: The encoder has been fully drained.
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class OutputStream(Protocol):
    @property
    def index(self) -> int: ...

    @property
    def time_base(self) -> Fraction | None:
        """Output stream time base (final only once the header is written)."""
        ...


@runtime_checkable
class Muxer(Protocol):
    def add_encoded_stream(self, spec: EncoderSpec) -> tuple[EncoderHandle, OutputStream]:
        """
        Allocate an output stream backed by a freshly opened encoder.

        Raises:
            EncoderNotFoundError, EncoderOpenError
        """
        ...

    def add_copy_stream(self, stream: StreamInfo) -> OutputStream: ...

    def write_header(self) -> None: ...

    def write_packet(self, packet: Any, stream: OutputStream) -> None:
        """
        Hand one packet to the container (interleaving is the muxer's job).

        Raises:
            WriteError: The container rejected the packet.
        """
        ...

    def finalize(self) -> None:
        """Write the trailer."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class SampleBuffer(Protocol):
    """FIFO of audio samples: append frames at the tail, read slices from the head."""

    @property
    def samples(self) -> int: ...

    def write(self, frame: Any) -> None: ...

    def read(self, samples: int) -> Any:
        """Return a frame holding exactly ``samples`` samples from the head."""
        ...


@runtime_checkable
class Resampler(Protocol):
    def resample(self, frame: Any | None) -> list[Any]:
        """Convert one frame (``None`` = flush remaining delay)."""
        ...


@runtime_checkable
class Rescaler(Protocol):
    def reformat(self, frame: Any) -> Any: ...


@runtime_checkable
class MediaBackend(Protocol):
    def open_demuxer(self, path: str) -> Demuxer: ...

    def open_decoder(self, stream: StreamInfo) -> DecoderHandle: ...

    def find_encoder(self, codec_name: str, media_type: str) -> EncoderInfo | None: ...

    def open_muxer(self, path: str, container_name: str) -> Muxer: ...

    def new_sample_buffer(self) -> SampleBuffer: ...

    def create_resampler(self, target: AudioTarget) -> Resampler: ...

    def create_rescaler(self, target: VideoTarget) -> Rescaler: ...

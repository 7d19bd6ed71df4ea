"""
Media queries built on the transcode backend.

  get_duration()        container duration, else the longest stream
  get_video_info()      dimensions, codec, duration and a BMP thumbnail
                        of the first decodable video frame
  decode_audio_to_pcm() first audio stream -> raw mono s16le PCM file

All calls are blocking; run them through ``JobRunner.run_blocking`` from
async code.
"""

import logging
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass

from mediaflow_transcoder.transcoder.backend import DecoderHandle, Demuxer, MediaBackend, VideoTarget
from mediaflow_transcoder.transcoder.bitmap import encode_bmp
from mediaflow_transcoder.transcoder.errors import EndOfStream, NeedMoreInput, SetupError, TransientDecodeError
from mediaflow_transcoder.transcoder.job import JobRequest, TranscodeJob
from mediaflow_transcoder.transcoder.negotiator import DEFAULT_FRAME_RATE
from mediaflow_transcoder.transcoder.profiles import AUDIO, DEFAULT_PROFILES, VIDEO, FormatProfile

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_FORMATS = frozenset({"bmp", "bmp24"})

PCM_FORMAT = "pcm"


@dataclass(slots=True)
class VideoInfo:
    width: int
    height: int
    duration: float
    format_name: str
    video_codec: str
    image: bytes


@dataclass(slots=True)
class PcmResult:
    output_path: str
    sample_rate: int
    channels: int = 1


def _default_backend(backend: MediaBackend | None) -> MediaBackend:
    if backend is not None:
        return backend
    from mediaflow_transcoder.transcoder.pyav_backend import PyAVBackend

    return PyAVBackend()


def _container_duration(demuxer: Demuxer) -> float:
    if demuxer.duration:
        return float(demuxer.duration)
    return max((s.duration for s in demuxer.streams if s.duration), default=0.0)


def get_duration(path: str, backend: MediaBackend | None = None) -> float:
    """Return the media duration in seconds (0.0 if unknown)."""
    demuxer = _default_backend(backend).open_demuxer(path)
    try:
        return _container_duration(demuxer)
    finally:
        demuxer.close()


def _first_frame(demuxer: Demuxer, decoder: DecoderHandle, stream_index: int):
    for packet in demuxer.packets():
        if packet.stream_index != stream_index:
            continue
        try:
            decoder.send(packet)
        except TransientDecodeError as e:
            logger.debug("[media_info] Decode error (skipping packet): %s", e)
            continue
        try:
            return decoder.receive()
        except NeedMoreInput:
            continue
        except EndOfStream:
            return None

    decoder.send(None)
    try:
        return decoder.receive()
    except (NeedMoreInput, EndOfStream):
        return None


def frame_rows(frame) -> list[bytes]:
    """Split the first plane of a packed RGB24 frame into rows (stride padding kept)."""
    plane = frame.planes[0]
    data = bytes(plane)
    stride = plane.line_size
    return [data[y * stride : (y + 1) * stride] for y in range(frame.height)]


def get_video_info(path: str, image_format: str = "bmp", backend: MediaBackend | None = None) -> VideoInfo:
    """
    Probe a video file and render its first frame as a BMP.

    Raises:
        ValueError: Unsupported ``image_format``.
        SetupError: Unreadable input, no video stream or no decodable frame.
    """
    if image_format.lower() not in SUPPORTED_IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {image_format!r} (supported: bmp, bmp24)")

    backend = _default_backend(backend)
    with ExitStack() as resources:
        demuxer = backend.open_demuxer(path)
        resources.callback(demuxer.close)

        stream = next((s for s in demuxer.streams if s.media_type == VIDEO), None)
        if stream is None:
            raise SetupError(f"No video stream in {path}")

        decoder = backend.open_decoder(stream)
        resources.callback(decoder.close)

        frame = _first_frame(demuxer, decoder, stream.index)
        if frame is None:
            raise SetupError(f"No decodable video frame in {path}")

        rescaler = backend.create_rescaler(
            VideoTarget(
                pixel_format="rgb24",
                width=frame.width,
                height=frame.height,
                frame_rate=stream.frame_rate or DEFAULT_FRAME_RATE,
            )
        )
        rgb = rescaler.reformat(frame)
        image = encode_bmp(rgb.width, rgb.height, frame_rows(rgb))

        info = VideoInfo(
            width=rgb.width,
            height=rgb.height,
            duration=_container_duration(demuxer),
            format_name=demuxer.format_name,
            video_codec=stream.codec_name,
            image=image,
        )

    logger.info(
        "[media_info] %s: %dx%d %s/%s %.2fs",
        path,
        info.width,
        info.height,
        info.format_name,
        info.video_codec,
        info.duration,
    )
    return info


def decode_audio_to_pcm(
    input_path: str,
    output_path: str,
    target_sample_rate: int | None = None,
    backend: MediaBackend | None = None,
    profiles: Mapping[str, FormatProfile] = DEFAULT_PROFILES,
) -> PcmResult:
    """Decode the first audio stream to raw mono s16le PCM at the negotiated rate."""
    job = TranscodeJob(
        JobRequest(input_path, output_path, PCM_FORMAT, target_sample_rate),
        profiles,
        _default_backend(backend),
    )
    result = job.run()
    audio = next((s for s in result.streams if s.media_type == AUDIO), None)
    if audio is None:
        raise SetupError(f"No audio stream in {input_path}")
    return PcmResult(output_path=output_path, sample_rate=audio.sample_rate, channels=1)

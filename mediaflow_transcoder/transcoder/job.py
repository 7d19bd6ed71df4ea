"""
Transcode job orchestration.

A ``TranscodeJob`` runs one request synchronously on the calling thread:

  1. look up the output profile
  2. open the demuxer, classify streams (opens decoders)
  3. open the muxer, build one pipeline per selected stream
     (negotiate -> open encoder -> adapter -> aligner)
  4. write the header
  5. route packets in demux order to ``pipelines[stream_index]``
  6. flush every pipeline in stream order
  7. write the trailer

Every resource is registered on an ``ExitStack`` as soon as it is
acquired, so all of them are released in reverse acquisition order on
every exit path. A failure after the header never deletes the output.
With PyAV, closing the output container also writes the trailer, so the
file is closed with whatever was muxed before the failure rather than
left without a trailer.

``JobRunner`` bridges jobs to asyncio: each job runs on a worker thread
via ``run_in_executor``. Jobs share nothing but the read-only profile
table.

Usage:
    runner = JobRunner(max_workers=2)
    result = await runner.convert(JobRequest("in.flac", "out.mp3", "mp3"))
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass, field

from mediaflow_transcoder.transcoder.adapter import (
    AudioResampleAdapter,
    VideoRescaleAdapter,
    needs_audio_adapter,
    needs_video_adapter,
)
from mediaflow_transcoder.transcoder.backend import EncoderSpec, MediaBackend, Muxer
from mediaflow_transcoder.transcoder.flush import FlushSequencer
from mediaflow_transcoder.transcoder.frame_aligner import FrameAligner
from mediaflow_transcoder.transcoder.negotiator import encoder_time_base, negotiate_audio, negotiate_video
from mediaflow_transcoder.transcoder.pipeline import StreamPipeline
from mediaflow_transcoder.transcoder.profiles import AUDIO, DEFAULT_PROFILES, VIDEO, FormatProfile, get_profile
from mediaflow_transcoder.transcoder.sink import EncodeMuxSink, StreamCopySink
from mediaflow_transcoder.transcoder.stream_selector import StreamAction, StreamSelection, select_streams

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class JobRequest:
    input_path: str
    output_path: str
    target_format: str
    target_sample_rate: int | None = None


@dataclass(slots=True)
class StreamSummary:
    """Per-stream outcome of a job."""

    index: int
    media_type: str
    mode: str
    codec_name: str
    sample_rate: int = 0
    channel_layout: str = ""
    sample_format: str = ""
    pixel_format: str = ""
    frame_size: int = 0
    packets_in: int = 0
    packets_skipped: int = 0
    frames_decoded: int = 0
    frames_encoded: int = 0
    packets_written: int = 0
    write_errors: int = 0


@dataclass(slots=True)
class JobResult:
    success: bool
    output_path: str
    streams: list[StreamSummary] = field(default_factory=list)


class TranscodeJob:
    def __init__(
        self,
        request: JobRequest,
        profiles: Mapping[str, FormatProfile] = DEFAULT_PROFILES,
        backend: MediaBackend | None = None,
        video_bit_rate: int = 0,
        audio_bit_rate: int = 0,
        video_preset: str | None = None,
    ) -> None:
        """
        Args:
            request: What to convert and where to.
            profiles: Read-only profile table to resolve ``target_format``.
            backend: Codec/container layer (defaults to PyAV).
            video_bit_rate: Video encoder bit rate in bits/s (0 = encoder default).
            audio_bit_rate: Audio bit rate used when the profile sets none.
            video_preset: x264 preset for libx264 video encoders.
        """
        if backend is None:
            from mediaflow_transcoder.transcoder.pyav_backend import PyAVBackend

            backend = PyAVBackend()
        self.request = request
        self.profiles = profiles
        self.backend = backend
        self.video_bit_rate = video_bit_rate
        self.audio_bit_rate = audio_bit_rate
        self.video_preset = video_preset
        self.pipelines: dict[int, StreamPipeline] = {}
        self._summaries: dict[int, StreamSummary] = {}

    def run(self) -> JobResult:
        """
        Run the job to completion.

        Raises:
            SetupError: Nothing was written (bad format, unreadable input,
                no usable stream, encoder could not be opened, ...).
            AdapterInitError: A resampler/rescaler could not be configured.
            TranscodeError: Any other unrecoverable failure.
        """
        request = self.request
        profile = get_profile(request.target_format, self.profiles)
        logger.info(
            "[job] %s -> %s (%s)",
            request.input_path,
            request.output_path,
            profile.name,
        )

        with ExitStack() as resources:
            demuxer = self.backend.open_demuxer(request.input_path)
            resources.callback(demuxer.close)

            selections = select_streams(demuxer.streams, profile, self.backend, resources)

            muxer = self.backend.open_muxer(request.output_path, profile.container)
            resources.callback(muxer.close)

            for selection in selections:
                if selection.action is StreamAction.DROP:
                    continue
                self.pipelines[selection.stream.index] = self._build_pipeline(selection, profile, muxer, resources)

            muxer.write_header()

            for packet in demuxer.packets():
                pipeline = self.pipelines.get(packet.stream_index)
                if pipeline is None:
                    continue
                pipeline.process_packet(packet)

            sequencer = FlushSequencer()
            for index in sorted(self.pipelines):
                sequencer.run(self.pipelines[index])

            muxer.finalize()

        result = JobResult(success=True, output_path=request.output_path, streams=self._summarize())
        logger.info(
            "[job] Done: %s (%s)",
            request.output_path,
            ", ".join(f"#{s.index} {s.mode} {s.codec_name}" for s in result.streams),
        )
        return result

    def _build_pipeline(
        self,
        selection: StreamSelection,
        profile: FormatProfile,
        muxer: Muxer,
        resources: ExitStack,
    ) -> StreamPipeline:
        stream = selection.stream

        if selection.action is StreamAction.COPY:
            output_stream = muxer.add_copy_stream(stream)
            self._summaries[stream.index] = StreamSummary(
                index=stream.index,
                media_type=stream.media_type,
                mode=StreamAction.COPY.value,
                codec_name=stream.codec_name,
            )
            sink = StreamCopySink(muxer, output_stream, stream.index, stream.time_base)
            return StreamPipeline(stream.index, stream.media_type, selection.decoder, stream.time_base, sink)

        info = selection.encoder_info
        summary = StreamSummary(
            index=stream.index,
            media_type=stream.media_type,
            mode=StreamAction.ENCODE.value,
            codec_name=info.name,
        )
        audio_target = video_target = None
        if stream.media_type == AUDIO:
            audio_target = negotiate_audio(stream, profile, info, self.request.target_sample_rate)
            spec = EncoderSpec(
                codec_name=info.name,
                media_type=AUDIO,
                time_base=encoder_time_base(audio=audio_target),
                bit_rate=profile.bit_rate or self.audio_bit_rate,
                audio=audio_target,
            )
            summary.sample_rate = audio_target.sample_rate
            summary.channel_layout = audio_target.channel_layout
            summary.sample_format = audio_target.sample_format
        else:
            video_target = negotiate_video(stream, info)
            spec = EncoderSpec(
                codec_name=info.name,
                media_type=VIDEO,
                time_base=encoder_time_base(video=video_target),
                bit_rate=self.video_bit_rate,
                video=video_target,
                options={"preset": self.video_preset} if self.video_preset and info.name == "libx264" else {},
            )
            summary.pixel_format = video_target.pixel_format

        encoder, output_stream = muxer.add_encoded_stream(spec)
        resources.callback(encoder.close)

        adapter = None
        aligner = None
        if audio_target is not None:
            if needs_audio_adapter(stream, audio_target):
                adapter = AudioResampleAdapter(self.backend, stream, audio_target)
            frame_size = encoder.frame_size
            if not frame_size and not info.variable_frame_size:
                frame_size = profile.default_frame_size or 0
            if frame_size and not info.variable_frame_size:
                aligner = FrameAligner(self.backend.new_sample_buffer(), frame_size, audio_target.sample_rate)
                summary.frame_size = frame_size
        elif video_target is not None and needs_video_adapter(stream, video_target):
            adapter = VideoRescaleAdapter(self.backend, stream, video_target)

        logger.info(
            "[job] Stream %d: %s -> %s (adapter=%s, frame_size=%d)",
            stream.index,
            stream.codec_name,
            info.name,
            "yes" if adapter is not None else "no",
            summary.frame_size,
        )
        self._summaries[stream.index] = summary
        sink = EncodeMuxSink(encoder, muxer, output_stream, stream.index)
        return StreamPipeline(
            stream.index,
            stream.media_type,
            selection.decoder,
            stream.time_base,
            sink,
            encoder=encoder,
            adapter=adapter,
            aligner=aligner,
        )

    def _summarize(self) -> list[StreamSummary]:
        summaries = []
        for index in sorted(self.pipelines):
            pipeline = self.pipelines[index]
            summary = self._summaries[index]
            summary.packets_in = pipeline.stats.packets_in
            summary.packets_skipped = pipeline.stats.packets_skipped
            summary.frames_decoded = pipeline.stats.frames_decoded
            summary.frames_encoded = pipeline.stats.frames_encoded
            summary.packets_written = pipeline.sink.packets_written
            summary.write_errors = pipeline.sink.write_errors
            summaries.append(summary)
        return summaries


class JobRunner:
    """Runs independent jobs on a thread pool."""

    def __init__(
        self,
        max_workers: int | None = None,
        profiles: Mapping[str, FormatProfile] = DEFAULT_PROFILES,
        backend_factory: Callable[[], MediaBackend] | None = None,
        video_bit_rate: int = 0,
        audio_bit_rate: int = 0,
        video_preset: str | None = None,
    ) -> None:
        self.profiles = profiles
        self._backend_factory = backend_factory
        self._video_bit_rate = video_bit_rate
        self._audio_bit_rate = audio_bit_rate
        self._video_preset = video_preset
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transcode")

    def create_backend(self) -> MediaBackend | None:
        """Fresh backend for one job (None selects PyAV)."""
        return self._backend_factory() if self._backend_factory is not None else None

    def create_job(self, request: JobRequest) -> TranscodeJob:
        return TranscodeJob(
            request,
            self.profiles,
            self.create_backend(),
            video_bit_rate=self._video_bit_rate,
            audio_bit_rate=self._audio_bit_rate,
            video_preset=self._video_preset,
        )

    async def convert(self, request: JobRequest) -> JobResult:
        """Run one job on a worker thread; raises the job's typed failure."""
        job = self.create_job(request)
        return await self.run_blocking(job.run)

    async def run_blocking(self, func: Callable, *args):
        """Run any blocking media call (probe, decode, ...) on the job pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

"""
Per-stream pipeline state.

A ``StreamPipeline`` bundles everything one selected input stream needs:
decoder, optional adapter, optional frame aligner, encoder and sink (or a
copy sink), time bases, the running output pts and counters. The job keeps
one pipeline per stream index and routes demuxed packets to it.

Encode path:
  packet -> decoder -> [adapter] -> [aligner | pts stamping] -> encoder -> mux
Copy path:
  packet -> rescale -> mux
"""

import logging
from dataclasses import dataclass
from fractions import Fraction

from mediaflow_transcoder.transcoder.adapter import AudioResampleAdapter, VideoRescaleAdapter
from mediaflow_transcoder.transcoder.backend import DecoderHandle, EncoderHandle
from mediaflow_transcoder.transcoder.errors import EndOfStream, NeedMoreInput, TransientDecodeError
from mediaflow_transcoder.transcoder.flush import FlushState
from mediaflow_transcoder.transcoder.frame_aligner import FrameAligner
from mediaflow_transcoder.transcoder.profiles import AUDIO, VIDEO
from mediaflow_transcoder.transcoder.sink import EncodeMuxSink, StreamCopySink, rescale_ts
from mediaflow_transcoder.transcoder.stream_selector import StreamAction

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineStats:
    packets_in: int = 0
    packets_skipped: int = 0
    frames_decoded: int = 0
    frames_encoded: int = 0


class StreamPipeline:
    def __init__(
        self,
        index: int,
        media_type: str,
        decoder: DecoderHandle,
        input_time_base: Fraction | None,
        sink: EncodeMuxSink | StreamCopySink,
        encoder: EncoderHandle | None = None,
        adapter: AudioResampleAdapter | VideoRescaleAdapter | None = None,
        aligner: FrameAligner | None = None,
    ) -> None:
        self.index = index
        self.media_type = media_type
        self.decoder = decoder
        self.encoder = encoder
        self.adapter = adapter
        self.aligner = aligner
        self.sink = sink
        self.input_time_base = input_time_base
        self.output_time_base = encoder.time_base if encoder is not None else input_time_base
        self.flush_state = FlushState.STREAMING
        self.stats = PipelineStats()
        # pts counter for frames that bypass the aligner
        self._next_pts = 0

    @property
    def mode(self) -> StreamAction:
        return StreamAction.COPY if self.encoder is None else StreamAction.ENCODE

    @property
    def next_pts(self) -> int:
        """Running output pts in the encoder time base."""
        if self.aligner is not None:
            return self.aligner.next_pts
        return self._next_pts

    def process_packet(self, packet) -> int:
        """Route one demuxed packet through the pipeline; return the number of packets muxed."""
        self.stats.packets_in += 1
        if self.encoder is None:
            return self.sink.push(packet)

        try:
            self.decoder.send(packet)
        except TransientDecodeError as e:
            self.stats.packets_skipped += 1
            logger.debug("[pipeline] Stream %d: decode error (skipping packet): %s", self.index, e)
            return 0
        return self._receive_frames()

    # ── Flush stages (driven by FlushSequencer) ──────────────────────

    def drain_decoder(self) -> int:
        try:
            self.decoder.send(None)
        except TransientDecodeError as e:
            logger.debug("[pipeline] Stream %d: decoder flush error: %s", self.index, e)
        return self._receive_frames()

    def drain_adapter(self) -> int:
        if self.adapter is None:
            return 0
        return self._forward(self.adapter.flush())

    def drain_aligner(self) -> int:
        if self.aligner is None:
            return 0
        return sum(self._encode(frame) for frame in self.aligner.drain())

    def drain_encoder(self) -> int:
        return self.sink.drain()

    # ── Internals ────────────────────────────────────────────────────

    def _receive_frames(self) -> int:
        written = 0
        while True:
            try:
                frame = self.decoder.receive()
            except (NeedMoreInput, EndOfStream):
                return written
            self.stats.frames_decoded += 1
            converted = self.adapter.convert(frame) if self.adapter is not None else [frame]
            written += self._forward(converted)

    def _forward(self, frames: list) -> int:
        written = 0
        for frame in frames:
            if self.aligner is not None:
                for aligned in self.aligner.push(frame):
                    written += self._encode(aligned)
            else:
                self._stamp(frame)
                written += self._encode(frame)
        return written

    def _stamp(self, frame) -> None:
        if self.media_type == VIDEO:
            frame.pts = self._next_pts
            frame.time_base = self.output_time_base
            self._next_pts += 1
        elif self.media_type == AUDIO:
            # Variable frame size encoder: keep the frame's own timestamp
            if frame.pts is None:
                frame.pts = self._next_pts
                frame.time_base = self.output_time_base
                start = frame.pts
            elif frame.time_base is not None and frame.time_base != self.output_time_base:
                start = rescale_ts(frame.pts, frame.time_base, self.output_time_base)
            else:
                start = frame.pts
            self._next_pts = max(self._next_pts, start + frame.samples)

    def _encode(self, frame) -> int:
        self.stats.frames_encoded += 1
        return self.sink.push(frame)

"""
Encode/mux sinks.

``EncodeMuxSink`` feeds frames to an encoder and drains every packet it
produces; ``StreamCopySink`` forwards demuxed packets untouched. Both
rescale packet timestamps into the output stream's time base before
handing packets to the muxer. The output time base is read per packet
because containers may replace the requested value when the header is
written.
"""

import logging
from fractions import Fraction

from mediaflow_transcoder.transcoder.backend import EncoderHandle, Muxer, OutputStream
from mediaflow_transcoder.transcoder.errors import EndOfStream, FrameRejectedError, NeedMoreInput, WriteError

logger = logging.getLogger(__name__)

_HALF = Fraction(1, 2)


def rescale_ts(value: int | None, src: Fraction, dst: Fraction) -> int | None:
    """Rescale a timestamp between time bases, rounding half away from zero."""
    if value is None:
        return None
    if src == dst:
        return value
    exact = value * Fraction(src) / Fraction(dst)
    if exact >= 0:
        return int(exact + _HALF)
    return -int(-exact + _HALF)


def rescale_packet(packet, src: Fraction, dst: Fraction) -> None:
    packet.pts = rescale_ts(packet.pts, src, dst)
    packet.dts = rescale_ts(packet.dts, src, dst)
    if packet.duration:
        packet.duration = rescale_ts(packet.duration, src, dst)
    packet.time_base = dst


class _PacketWriter:
    def __init__(self, muxer: Muxer, output_stream: OutputStream, stream_index: int) -> None:
        self._muxer = muxer
        self._output_stream = output_stream
        self.stream_index = stream_index
        self.packets_written = 0
        self.write_errors = 0

    def _write(self, packet, src_time_base: Fraction | None) -> None:
        dst_time_base = self._output_stream.time_base or src_time_base
        if src_time_base is not None and dst_time_base is not None:
            rescale_packet(packet, src_time_base, dst_time_base)
        try:
            self._muxer.write_packet(packet, self._output_stream)
        except WriteError as e:
            # Not distinguished from success beyond this counter
            self.write_errors += 1
            logger.warning("[sink] Stream %d: write failed: %s", self.stream_index, e)
        self.packets_written += 1


class EncodeMuxSink(_PacketWriter):
    """Encoder → rescale → muxer for one stream."""

    def __init__(
        self,
        encoder: EncoderHandle,
        muxer: Muxer,
        output_stream: OutputStream,
        stream_index: int,
    ) -> None:
        super().__init__(muxer, output_stream, stream_index)
        self._encoder = encoder
        self.frames_sent = 0
        self.frames_rejected = 0

    def push(self, frame) -> int:
        """Encode one frame; return the number of packets muxed."""
        try:
            self._encoder.send(frame)
        except FrameRejectedError as e:
            self.frames_rejected += 1
            logger.debug("[sink] Stream %d: encoder rejected frame (dropping): %s", self.stream_index, e)
            return 0
        self.frames_sent += 1
        return self._drain_packets()

    def drain(self) -> int:
        """Signal end of input and mux every remaining packet."""
        try:
            self._encoder.send(None)
        except FrameRejectedError as e:
            logger.debug("[sink] Stream %d: encoder flush error: %s", self.stream_index, e)
        return self._drain_packets()

    def _drain_packets(self) -> int:
        written = 0
        while True:
            try:
                packet = self._encoder.receive()
            except (NeedMoreInput, EndOfStream):
                return written
            self._write(packet, self._encoder.time_base)
            written += 1


class StreamCopySink(_PacketWriter):
    """Demuxed packet → rescale → muxer, no decode/encode."""

    def __init__(
        self,
        muxer: Muxer,
        output_stream: OutputStream,
        stream_index: int,
        input_time_base: Fraction | None,
    ) -> None:
        super().__init__(muxer, output_stream, stream_index)
        self._input_time_base = input_time_base

    def push(self, packet) -> int:
        self._write(packet, self._input_time_base or packet.time_base)
        return 1

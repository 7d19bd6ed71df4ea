"""
Audio frame aligner.

Encoders such as MP3 (1152) or AAC (1024) require an exact number of
samples per input frame, while resampled output comes in arbitrary
lengths. The aligner appends every frame to a sample FIFO and slices
encoder-sized frames off its head:

  push(frame) -> [frame_size, frame_size, ...]   (remainder stays buffered)
  drain()     -> [frame_size, ..., final < frame_size]

Output frames are stamped with a running pts counter in 1/sample_rate
units, so consecutive pts differ by exactly the previous frame's sample
count. The final short frame is emitted as-is (never padded).
"""

import logging
from fractions import Fraction

from mediaflow_transcoder.transcoder.backend import SampleBuffer

logger = logging.getLogger(__name__)


class FrameAligner:
    def __init__(self, buffer: SampleBuffer, frame_size: int, sample_rate: int) -> None:
        if frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {frame_size}")
        self.frame_size = frame_size
        self.time_base = Fraction(1, sample_rate)
        self.next_pts = 0
        self.samples_in = 0
        self.samples_out = 0
        self._buffer = buffer

    @property
    def buffered(self) -> int:
        """Samples waiting in the FIFO."""
        return self._buffer.samples

    def push(self, frame) -> list:
        """Append one frame and return every full frame now available."""
        # The FIFO rejects pts that do not continue its own sequence
        frame.pts = None
        self._buffer.write(frame)
        self.samples_in += frame.samples
        return self._emit_full_frames()

    def drain(self) -> list:
        """Emit all remaining samples, including a final short frame."""
        out = self._emit_full_frames()
        remainder = self._buffer.samples
        if remainder > 0:
            out.append(self._stamp(self._buffer.read(remainder)))
            logger.debug("[aligner] Emitted final partial frame of %d samples", remainder)
        return out

    def _emit_full_frames(self) -> list:
        out = []
        while self._buffer.samples >= self.frame_size:
            out.append(self._stamp(self._buffer.read(self.frame_size)))
        return out

    def _stamp(self, frame):
        frame.pts = self.next_pts
        frame.time_base = self.time_base
        self.next_pts += frame.samples
        self.samples_out += frame.samples
        return frame

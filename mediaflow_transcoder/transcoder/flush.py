"""
End-of-stream flush sequencing.

Each encode pipeline is walked through:

  STREAMING -> DRAIN_DECODER -> DRAIN_ADAPTER -> DRAIN_ALIGNER -> DRAIN_ENCODER -> DONE

Every stage is exhausted before the next one starts:
  DRAIN_DECODER  end-of-input to the decoder, push remaining frames through
                 adapter/aligner/encoder as in steady state
  DRAIN_ADAPTER  flush the resampler delay into the aligner
  DRAIN_ALIGNER  emit buffered samples, including a final short frame
  DRAIN_ENCODER  end-of-input to the encoder, mux remaining packets

Copy pipelines have nothing buffered and go straight to DONE. DONE is
terminal: running the sequencer again is a no-op.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mediaflow_transcoder.transcoder.pipeline import StreamPipeline

logger = logging.getLogger(__name__)


class FlushState(str, Enum):
    STREAMING = "streaming"
    DRAIN_DECODER = "drain_decoder"
    DRAIN_ADAPTER = "drain_adapter"
    DRAIN_ALIGNER = "drain_aligner"
    DRAIN_ENCODER = "drain_encoder"
    DONE = "done"


class FlushSequencer:
    """Runs the drain stages of one pipeline in order."""

    def run(self, pipeline: "StreamPipeline") -> int:
        """Flush ``pipeline``; return the number of packets muxed while draining."""
        if pipeline.flush_state is FlushState.DONE:
            return 0
        if pipeline.encoder is None:
            pipeline.flush_state = FlushState.DONE
            return 0

        stages = (
            (FlushState.DRAIN_DECODER, pipeline.drain_decoder),
            (FlushState.DRAIN_ADAPTER, pipeline.drain_adapter),
            (FlushState.DRAIN_ALIGNER, pipeline.drain_aligner),
            (FlushState.DRAIN_ENCODER, pipeline.drain_encoder),
        )
        total = 0
        for state, stage in stages:
            pipeline.flush_state = state
            written = stage()
            logger.debug("[flush] Stream %d: %s muxed %d packets", pipeline.index, state.value, written)
            total += written

        pipeline.flush_state = FlushState.DONE
        logger.info("[flush] Stream %d: flushed, %d packets muxed while draining", pipeline.index, total)
        return total

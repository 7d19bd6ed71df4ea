"""
Error taxonomy for the transcode pipeline.

Setup failures abort a job before any output is written. Adapter
failures abort the whole job. Transient decode errors are swallowed by
the pipeline (the packet is skipped). Write errors are logged and
counted by the sink but not otherwise distinguished from success.

``NeedMoreInput`` and ``EndOfStream`` are not errors: they are the
receive-side signals of the send/receive codec contract.
"""


class TranscodeError(Exception):
    """Base class for every failure raised by the transcoder."""


# ── Setup phase ──────────────────────────────────────────────────────


class SetupError(TranscodeError):
    """Input/output cannot be opened, no usable stream, or codec unavailable."""


class DemuxError(SetupError):
    """The input container could not be opened or probed."""


class MuxError(SetupError):
    """The output container could not be allocated, opened or started."""


class DecoderNotFoundError(SetupError):
    pass


class DecoderOpenError(SetupError):
    pass


class EncoderNotFoundError(SetupError):
    pass


class EncoderOpenError(SetupError):
    pass


# ── Adapter ──────────────────────────────────────────────────────────


class AdapterInitError(TranscodeError):
    """Source and target channel layout / format / rate cannot be reconciled."""


class RescaleError(TranscodeError):
    """A video frame could not be converted to the target pixel format/size."""


# ── Streaming phase ──────────────────────────────────────────────────


class TransientDecodeError(TranscodeError):
    """A single packet was rejected by the decoder. The packet is skipped."""


class FrameRejectedError(TranscodeError):
    """The encoder refused a frame. The frame is dropped."""


class WriteError(TranscodeError):
    """The muxer rejected a packet."""


# ── Codec receive signals ────────────────────────────────────────────


class NeedMoreInput(Exception):
    """The codec has no output available until it is sent more input."""


class EndOfStream(Exception):
    """The codec has been fully drained after end-of-input."""

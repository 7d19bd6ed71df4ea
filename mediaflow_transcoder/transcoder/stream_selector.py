"""
Input stream classification.

Every input stream ends up in exactly one bucket:

  DROP    not audio/video/subtitle, not accepted by the profile, over the
          profile's per-type stream limit, or no usable decoder
  COPY    decodable, but no encoder exists for its type (the profile has
          no codec for it, or the codec is missing from the FFmpeg build)
  ENCODE  decode, adapt and re-encode

A stream without a usable decoder is always dropped, never copied.
"""

import logging
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum

from mediaflow_transcoder.transcoder.backend import DecoderHandle, EncoderInfo, MediaBackend, StreamInfo
from mediaflow_transcoder.transcoder.errors import DecoderNotFoundError, DecoderOpenError, SetupError
from mediaflow_transcoder.transcoder.profiles import ALL_MEDIA_TYPES, AUDIO, FormatProfile

logger = logging.getLogger(__name__)


class StreamAction(str, Enum):
    ENCODE = "encode"
    COPY = "copy"
    DROP = "drop"


@dataclass(slots=True)
class StreamSelection:
    stream: StreamInfo
    action: StreamAction
    reason: str = ""
    decoder: DecoderHandle | None = None
    encoder_info: EncoderInfo | None = None


def select_streams(
    streams: list[StreamInfo],
    profile: FormatProfile,
    backend: MediaBackend,
    resources: ExitStack,
) -> list[StreamSelection]:
    """
    Classify input streams, in input order.

    Opened decoders are registered on ``resources`` so they are released
    with the rest of the job.

    Raises:
        SetupError: No stream was selected.
    """
    selections: list[StreamSelection] = []
    selected_per_type: Counter[str] = Counter()

    for stream in streams:
        selection = _classify(stream, profile, backend, resources, selected_per_type)
        if selection.action is not StreamAction.DROP:
            selected_per_type[stream.media_type] += 1
        logger.info(
            "[stream_selector] Stream %d (%s/%s): %s%s",
            stream.index,
            stream.media_type,
            stream.codec_name,
            selection.action.value,
            f" ({selection.reason})" if selection.reason else "",
        )
        selections.append(selection)

    if not any(s.action is not StreamAction.DROP for s in selections):
        raise SetupError("No usable streams")
    return selections


def _classify(
    stream: StreamInfo,
    profile: FormatProfile,
    backend: MediaBackend,
    resources: ExitStack,
    selected_per_type: Counter[str],
) -> StreamSelection:
    if stream.media_type not in ALL_MEDIA_TYPES:
        return StreamSelection(stream, StreamAction.DROP, "unsupported media type")
    if stream.media_type not in profile.media_types:
        return StreamSelection(stream, StreamAction.DROP, f"not accepted by {profile.name}")
    if (
        stream.media_type == AUDIO
        and profile.max_audio_streams is not None
        and selected_per_type[AUDIO] >= profile.max_audio_streams
    ):
        return StreamSelection(stream, StreamAction.DROP, "audio stream limit reached")

    try:
        decoder = backend.open_decoder(stream)
    except (DecoderNotFoundError, DecoderOpenError) as e:
        return StreamSelection(stream, StreamAction.DROP, str(e))
    resources.callback(decoder.close)

    codec_name = profile.codec_for(stream.media_type)
    encoder_info = backend.find_encoder(codec_name, stream.media_type) if codec_name else None
    if encoder_info is None:
        reason = f"no {codec_name} encoder" if codec_name else f"{profile.name} has no {stream.media_type} codec"
        return StreamSelection(stream, StreamAction.COPY, reason, decoder=decoder)
    return StreamSelection(stream, StreamAction.ENCODE, decoder=decoder, encoder_info=encoder_info)

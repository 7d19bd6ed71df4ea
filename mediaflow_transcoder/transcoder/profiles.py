"""
Declarative output format profiles.

A profile names the output container, the codec to use per media type,
and any hard constraint the codec imposes (a narrow-band codec that only
accepts 8 kHz, a codec that needs a fixed frame size the encoder does not
advertise, ...). Profiles are immutable; the table is a read-only mapping
handed to each job at construction time.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from mediaflow_transcoder.transcoder.errors import SetupError

AUDIO = "audio"
VIDEO = "video"
SUBTITLE = "subtitle"

ALL_MEDIA_TYPES = frozenset({AUDIO, VIDEO, SUBTITLE})
AUDIO_ONLY = frozenset({AUDIO})


@dataclass(frozen=True, slots=True)
class FormatProfile:
    """Immutable output format description, looked up by name."""

    name: str
    container: str
    audio_codec: str | None = None
    video_codec: str | None = None
    # Nominal encoder sample format; replaced by the encoder's first
    # declared format when the concrete encoder does not support it.
    sample_format: str | None = None
    # None keeps the source channel layout.
    channel_layout: str | None = None
    bit_rate: int = 0
    # Hard constraint: overrides both the ladder result and an explicit rate.
    forced_sample_rate: int | None = None
    # Used when the encoder reports frame_size == 0 without declaring
    # variable frame size support.
    default_frame_size: int | None = None
    media_types: frozenset[str] = field(default=ALL_MEDIA_TYPES)
    max_audio_streams: int | None = None

    def codec_for(self, media_type: str) -> str | None:
        """Return the profile codec for a media type (None = no encoder, subtitles included)."""
        if media_type == AUDIO:
            return self.audio_codec
        if media_type == VIDEO:
            return self.video_codec
        return None


def parse_bitrate(bitrate: str | int) -> int:
    """Parse a bitrate string like '4M', '128k', '12.2k', '5000000' to int bits/s."""
    if isinstance(bitrate, int):
        return bitrate
    s = bitrate.strip().lower()
    if s.endswith("m"):
        return int(float(s[:-1]) * 1_000_000)
    if s.endswith("k"):
        return int(float(s[:-1]) * 1_000)
    return int(s)


DEFAULT_PROFILES: Mapping[str, FormatProfile] = MappingProxyType(
    {
        p.name: p
        for p in (
            FormatProfile(
                name="mp3",
                container="mp3",
                audio_codec="libmp3lame",
                sample_format="s16p",
                bit_rate=parse_bitrate("128k"),
                media_types=AUDIO_ONLY,
                max_audio_streams=1,
            ),
            FormatProfile(
                name="wav",
                container="wav",
                audio_codec="pcm_s16le",
                sample_format="s16",
                media_types=AUDIO_ONLY,
            ),
            FormatProfile(
                name="flac",
                container="flac",
                audio_codec="flac",
                sample_format="s16",
                media_types=AUDIO_ONLY,
            ),
            FormatProfile(
                name="ogg",
                container="ogg",
                audio_codec="libvorbis",
                sample_format="fltp",
                bit_rate=parse_bitrate("128k"),
                media_types=AUDIO_ONLY,
            ),
            FormatProfile(
                name="opus",
                container="opus",
                audio_codec="libopus",
                bit_rate=parse_bitrate("64k"),
                forced_sample_rate=48000,
                media_types=AUDIO_ONLY,
            ),
            FormatProfile(
                name="m4a",
                container="ipod",
                audio_codec="aac",
                sample_format="fltp",
                bit_rate=parse_bitrate("128k"),
                media_types=AUDIO_ONLY,
            ),
            FormatProfile(
                name="amr",
                container="amr",
                audio_codec="libopencore_amrnb",
                sample_format="s16",
                channel_layout="mono",
                bit_rate=parse_bitrate("12.2k"),
                forced_sample_rate=8000,
                media_types=AUDIO_ONLY,
                max_audio_streams=1,
            ),
            FormatProfile(
                name="ntsilk",
                container="ntsilk_s16le",
                audio_codec="ntsilk_s16le",
                sample_format="s16",
                channel_layout="mono",
                default_frame_size=480,
                media_types=AUDIO_ONLY,
                max_audio_streams=1,
            ),
            FormatProfile(
                name="pcm",
                container="s16le",
                audio_codec="pcm_s16le",
                sample_format="s16",
                channel_layout="mono",
                media_types=AUDIO_ONLY,
                max_audio_streams=1,
            ),
            FormatProfile(
                name="mp4",
                container="mp4",
                audio_codec="aac",
                video_codec="libx264",
                sample_format="fltp",
                bit_rate=parse_bitrate("128k"),
            ),
            FormatProfile(
                name="mkv",
                container="matroska",
                audio_codec="aac",
                video_codec="libx264",
                sample_format="fltp",
                bit_rate=parse_bitrate("128k"),
            ),
        )
    }
)


def get_profile(name: str, profiles: Mapping[str, FormatProfile] = DEFAULT_PROFILES) -> FormatProfile:
    """Look up a profile by (case-insensitive) name."""
    profile = profiles.get(name.strip().lower())
    if profile is None:
        raise SetupError(f"Unknown output format: {name!r} (available: {', '.join(sorted(profiles))})")
    return profile

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConvertRequest(BaseModel):
    input_path: str = Field(..., description="Path of the media file to convert.")
    output_path: str = Field(..., description="Path the converted file is written to.")
    target_format: str = Field(..., description="Output format profile name (e.g. mp3, wav, ntsilk).")
    target_sample_rate: Optional[int] = Field(
        None, gt=0, description="Explicit output sample rate in Hz. Ignored by profiles with a fixed rate."
    )


class DecodePcmRequest(BaseModel):
    input_path: str = Field(..., description="Path of the media file to decode.")
    output_path: str = Field(..., description="Path the raw s16le mono PCM is written to.")
    target_sample_rate: Optional[int] = Field(
        None, gt=0, description="Output sample rate in Hz. If not provided, the closest standard rate is used."
    )


class StreamSummaryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class ConvertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    output_path: str
    streams: list[StreamSummaryModel] = Field(default_factory=list)


class ProfileModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    container: str
    audio_codec: Optional[str] = None
    video_codec: Optional[str] = None
    sample_format: Optional[str] = None
    channel_layout: Optional[str] = None
    bit_rate: int = 0
    forced_sample_rate: Optional[int] = None
    media_types: list[str] = Field(default_factory=list)


class DurationResponse(BaseModel):
    path: str
    duration: float = Field(..., description="Duration in seconds (0 if unknown).")


class VideoInfoResponse(BaseModel):
    width: int
    height: int
    duration: float
    format_name: str
    video_codec: str
    image_format: Literal["bmp"] = "bmp"
    image: str = Field(..., description="Base64-encoded BMP of the first video frame.")


class PcmResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    output_path: str
    sample_rate: int
    channels: int = 1

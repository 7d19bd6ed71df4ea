import base64
import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Query

from mediaflow_transcoder.configs import settings
from mediaflow_transcoder.schemas import (
    ConvertRequest,
    ConvertResponse,
    DecodePcmRequest,
    DurationResponse,
    PcmResponse,
    ProfileModel,
    VideoInfoResponse,
)
from mediaflow_transcoder.transcoder.errors import SetupError, TranscodeError
from mediaflow_transcoder.transcoder.job import JobRequest, JobRunner
from mediaflow_transcoder.transcoder.media_info import (
    SUPPORTED_IMAGE_FORMATS,
    decode_audio_to_pcm,
    get_duration,
    get_video_info,
)
from mediaflow_transcoder.transcoder.profiles import parse_bitrate

logger = logging.getLogger(__name__)

transcode_router = APIRouter()

job_runner = JobRunner(
    max_workers=settings.transcode_max_workers,
    video_bit_rate=parse_bitrate(settings.transcode_video_bitrate),
    audio_bit_rate=parse_bitrate(settings.transcode_audio_bitrate),
    video_preset=settings.transcode_video_preset,
)


def resolve_path(path: str) -> str:
    """Resolve a caller-supplied path, confined to ``transcode_work_dir`` when one is configured."""
    if not settings.transcode_work_dir:
        return path
    work_dir = Path(settings.transcode_work_dir).resolve()
    resolved = (work_dir / path).resolve()
    if not resolved.is_relative_to(work_dir):
        raise HTTPException(status_code=400, detail=f"Path outside of the work directory: {path}")
    return str(resolved)


async def _run_blocking(func, *args):
    try:
        return await job_runner.run_blocking(func, *args)
    except SetupError as e:
        logger.warning("[transcode] %s failed: %s", func.__name__, e)
        raise HTTPException(status_code=400, detail=str(e))
    except TranscodeError as e:
        logger.error("[transcode] %s failed: %s", func.__name__, e)
        raise HTTPException(status_code=500, detail=str(e))


@transcode_router.get("/profiles", summary="List output format profiles", response_model=list[ProfileModel])
async def list_profiles():
    return [
        ProfileModel.model_validate(
            {
                "name": p.name,
                "container": p.container,
                "audio_codec": p.audio_codec,
                "video_codec": p.video_codec,
                "sample_format": p.sample_format,
                "channel_layout": p.channel_layout,
                "bit_rate": p.bit_rate,
                "forced_sample_rate": p.forced_sample_rate,
                "media_types": sorted(p.media_types),
            }
        )
        for p in job_runner.profiles.values()
    ]


@transcode_router.post("/convert", summary="Convert a media file", response_model=ConvertResponse)
async def convert(request: ConvertRequest):
    """Convert ``input_path`` to ``output_path`` using the ``target_format`` profile."""
    job = job_runner.create_job(
        JobRequest(
            input_path=resolve_path(request.input_path),
            output_path=resolve_path(request.output_path),
            target_format=request.target_format,
            target_sample_rate=request.target_sample_rate,
        )
    )
    result = await _run_blocking(job.run)
    return ConvertResponse.model_validate(result)


@transcode_router.get("/duration", summary="Get media duration", response_model=DurationResponse)
async def duration(path: str = Query(..., description="Path of the media file.")):
    seconds = await _run_blocking(get_duration, resolve_path(path), job_runner.create_backend())
    return DurationResponse(path=path, duration=seconds)


@transcode_router.get("/video-info", summary="Get video info and first-frame thumbnail", response_model=VideoInfoResponse)
async def video_info(
    path: str = Query(..., description="Path of the video file."),
    image_format: str = Query("bmp", description="Thumbnail format (bmp or bmp24)."),
):
    if image_format.lower() not in SUPPORTED_IMAGE_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported image format: {image_format}")
    info = await _run_blocking(get_video_info, resolve_path(path), image_format, job_runner.create_backend())
    return VideoInfoResponse(
        width=info.width,
        height=info.height,
        duration=info.duration,
        format_name=info.format_name,
        video_codec=info.video_codec,
        image=base64.b64encode(info.image).decode("ascii"),
    )


@transcode_router.post("/decode-pcm", summary="Decode audio to raw mono s16le PCM", response_model=PcmResponse)
async def decode_pcm(request: DecodePcmRequest):
    result = await _run_blocking(
        decode_audio_to_pcm,
        resolve_path(request.input_path),
        resolve_path(request.output_path),
        request.target_sample_rate,
        job_runner.create_backend(),
        job_runner.profiles,
    )
    return PcmResponse.model_validate(result)

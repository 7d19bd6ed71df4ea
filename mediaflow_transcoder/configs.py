from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_password: str | None = None  # The password for protecting the API endpoints.
    log_level: str = "INFO"  # The logging level to use.
    disable_docs: bool = False  # Whether to disable the API documentation (Swagger UI).

    # Transcoding settings
    transcode_max_workers: int = 2  # Number of jobs that may run concurrently.
    transcode_video_bitrate: str = "4M"  # Video encoder bit rate (e.g. "4M", "2500k").
    transcode_video_preset: str = "medium"  # x264 preset for libx264 video encoders.
    transcode_audio_bitrate: str = "128k"  # Audio bit rate for profiles that do not set one.
    transcode_work_dir: str | None = None  # If set, input/output paths must resolve inside this directory.

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

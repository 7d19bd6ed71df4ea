"""
Media transcoder package.

Converts media files between container/codec representations using
PyAV (FFmpeg), one synchronous pipeline per job:

- errors: Transcode error taxonomy and codec receive signals
- profiles: Immutable output format profiles and the default table
- backend: Collaborator protocols (demuxer, codecs, muxer, buffers)
- pyav_backend: PyAV implementation of the backend protocols
- stream_selector: Per-stream encode / copy / drop decision
- negotiator: Target sample rate, layout, sample/pixel format
- adapter: Stateful audio resampler and video rescaler wrappers
- frame_aligner: FIFO that re-slices audio into encoder-sized frames
- sink: Encode -> timestamp rescale -> mux
- pipeline: Per-stream state bundle and packet routing
- flush: End-of-stream drain state machine
- job: Job orchestration and the thread-pool runner
- media_info: Duration, video info / thumbnail, PCM decode
- bitmap: 24-bit BMP serializer
"""

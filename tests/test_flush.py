from fakes import build_audio_pipeline
from mediaflow_transcoder.transcoder.flush import FlushSequencer, FlushState


def _feed(pipeline, backend) -> int:
    return sum(pipeline.process_packet(packet) for packet in backend.packets)


def _record_stages(pipeline) -> list:
    seen = []
    for name in ("drain_decoder", "drain_adapter", "drain_aligner", "drain_encoder"):
        stage = getattr(pipeline, name)

        def wrapper(stage=stage, name=name):
            seen.append((name, pipeline.flush_state))
            return stage()

        setattr(pipeline, name, wrapper)
    return seen


def test_stages_run_in_order():
    pipeline, _ = build_audio_pipeline()
    seen = _record_stages(pipeline)

    FlushSequencer().run(pipeline)

    assert seen == [
        ("drain_decoder", FlushState.DRAIN_DECODER),
        ("drain_adapter", FlushState.DRAIN_ADAPTER),
        ("drain_aligner", FlushState.DRAIN_ALIGNER),
        ("drain_encoder", FlushState.DRAIN_ENCODER),
    ]
    assert pipeline.flush_state is FlushState.DONE


def test_every_buffered_stage_is_emptied():
    pipeline, backend = build_audio_pipeline(
        packets_frames=[(1024,), (1024,)],
        frame_size=1152,
        encoder_latency=1,
        flush_frames=(500,),
    )
    encoder = backend.muxer.encoders[0]

    assert _feed(pipeline, backend) == 0  # one 1152 frame, held by the encoder
    assert pipeline.aligner.buffered == 896

    flushed = FlushSequencer().run(pipeline)

    # decoder tail (500) -> one more full frame, aligner remainder 244, encoder tail
    assert encoder.frame_sizes == [1152, 1152, 244]
    assert flushed == 3
    assert len(backend.muxer.packets) == 3
    assert sum(encoder.frame_sizes) == 1024 + 1024 + 500
    assert pipeline.aligner.buffered == 0


def test_resampler_delay_reaches_the_encoder():
    pipeline, backend = build_audio_pipeline(
        packets_frames=[(4410,)],
        frame_size=160,
        source_rate=44100,
        target_rate=8000,
        with_adapter=True,
        resampler_lag=10,
    )
    encoder = backend.muxer.encoders[0]

    _feed(pipeline, backend)
    assert encoder.frame_sizes == [160] * 4
    assert pipeline.aligner.buffered == 150

    FlushSequencer().run(pipeline)

    assert encoder.frame_sizes == [160] * 5
    assert [f.pts for f in encoder.frames] == [0, 160, 320, 480, 640]


def test_flush_with_nothing_buffered_produces_no_packets():
    pipeline, backend = build_audio_pipeline()
    assert FlushSequencer().run(pipeline) == 0
    assert backend.muxer.packets == []


def test_second_run_is_a_no_op():
    pipeline, backend = build_audio_pipeline(packets_frames=[(1000,)], encoder_latency=2)
    sequencer = FlushSequencer()
    _feed(pipeline, backend)

    assert sequencer.run(pipeline) == 1
    packets = len(backend.muxer.packets)

    assert sequencer.run(pipeline) == 0
    assert len(backend.muxer.packets) == packets
    assert backend.decoders[0].flush_calls == 1


def test_copy_pipeline_goes_straight_to_done():
    pipeline, _ = build_audio_pipeline()
    pipeline.encoder = None
    seen = _record_stages(pipeline)

    assert FlushSequencer().run(pipeline) == 0
    assert seen == []
    assert pipeline.flush_state is FlushState.DONE

"""Tests for tick sources, the playback phase controller and the engine."""

import dataclasses

import numpy as np
import pytest

from reactive_engine.config import DetectorSettings, EngineConfig, PaletteSettings, SamplerSettings
from reactive_engine.core.contracts import PlaybackPhase
from reactive_engine.core.errors import InvalidConfiguration, NoDefaultCue
from reactive_engine.pipeline.orchestrator import ReactiveEngine
from reactive_engine.pipeline.phase_controller import PlaybackPhaseController
from reactive_engine.pipeline.tick_source import IntervalTickSource, ManualTickSource, TickSource
from reactive_engine.pipeline.transport import ElapsedTimeClock


# ============================================================
# TICK SOURCES
# ============================================================

class TestTickSource:

    def test_fire_delivers_to_subscribers(self):
        source = TickSource()
        received = []
        source.subscribe(received.append)

        assert source.fire(1.5) == 1
        assert received == [1.5]
        assert source.subscriber_count == 1

    def test_release_is_synchronous_and_idempotent(self):
        source = TickSource()
        received = []
        handle = source.subscribe(received.append)

        handle.release()
        handle.release()
        source.fire(1.0)

        assert not handle.active
        assert received == []
        assert source.subscriber_count == 0

    def test_release_during_fire_stops_later_delivery(self):
        source = TickSource()
        received = []
        second = None

        def first_callback(now):
            second.release()

        source.subscribe(first_callback)
        second = source.subscribe(received.append)

        assert source.fire(1.0) == 1
        assert received == []

    def test_manual_tick_source(self):
        source = ManualTickSource(start=2.0)
        received = []
        source.subscribe(received.append)

        source.advance(0.5)
        source.advance(0.5)

        assert received == [2.5, 3.0]
        assert source.ticks_fired == 2


class TestIntervalTickSource:

    def test_runs_until_subscribers_release(self, fake_clock):
        source = IntervalTickSource(rate_hz=10, clock=fake_clock, sleep=fake_clock.sleep)
        times = []

        def on_tick(now):
            times.append(now)
            if len(times) == 5:
                handle.release()

        handle = source.subscribe(on_tick)

        assert source.run() == 5
        assert times == pytest.approx([0.0, 0.1, 0.2, 0.3, 0.4])

    def test_should_stop_predicate(self, fake_clock):
        source = IntervalTickSource(rate_hz=60, clock=fake_clock, sleep=fake_clock.sleep)
        times = []
        source.subscribe(times.append)

        assert source.run(should_stop=lambda: len(times) >= 3) == 3

    def test_stop_request(self, fake_clock):
        source = IntervalTickSource(rate_hz=60, clock=fake_clock, sleep=fake_clock.sleep)
        source.subscribe(lambda now: source.stop())

        assert source.run() == 1

    def test_no_subscribers_returns_immediately(self, fake_clock):
        source = IntervalTickSource(rate_hz=60, clock=fake_clock, sleep=fake_clock.sleep)
        assert source.run() == 0

    def test_rejects_bad_rate(self):
        with pytest.raises(InvalidConfiguration):
            IntervalTickSource(rate_hz=0)


class TestElapsedTimeClock:

    def test_elapsed_and_ended(self, fake_clock):
        clock = ElapsedTimeClock(duration_seconds=10.0, clock=fake_clock)
        assert clock.current_time_seconds() == 0.0
        assert not clock.is_ended()

        fake_clock.now = 100.0
        clock.start()
        fake_clock.now = 104.0
        assert clock.current_time_seconds() == pytest.approx(4.0)
        assert not clock.is_ended()

        fake_clock.now = 110.0
        assert clock.is_ended()

    def test_open_ended(self, fake_clock):
        clock = ElapsedTimeClock(clock=fake_clock)
        clock.start()
        fake_clock.now = 1e6
        assert not clock.is_ended()


# ============================================================
# PHASE CONTROLLER
# ============================================================

class TestPlaybackPhaseController:

    def _controller(self):
        source = ManualTickSource()
        ticks = []
        return PlaybackPhaseController(source, ticks.append), source, ticks

    def test_starts_idle_without_polling(self):
        controller, source, ticks = self._controller()
        source.advance(0.1)

        assert controller.phase == PlaybackPhase.IDLE
        assert not controller.is_polling
        assert ticks == []

    def test_begin_is_idempotent(self):
        controller, source, ticks = self._controller()

        assert controller.begin()
        assert not controller.begin()
        assert controller.phase == PlaybackPhase.ENGAGED
        assert controller.is_polling
        assert source.subscriber_count == 1

        source.advance(0.1)
        assert len(ticks) == 1

    def test_mark_ended_stops_polling(self):
        controller, source, ticks = self._controller()
        controller.begin()
        source.advance(0.1)

        assert controller.mark_ended()
        assert not controller.mark_ended()
        assert controller.phase == PlaybackPhase.FINISHED
        assert not controller.is_polling
        assert source.subscriber_count == 0

        source.advance(0.1)
        assert len(ticks) == 1

    def test_finished_is_terminal(self):
        controller, source, _ = self._controller()
        controller.begin()
        controller.mark_ended()

        assert not controller.begin()
        controller.teardown()
        assert controller.phase == PlaybackPhase.FINISHED
        assert source.subscriber_count == 0

    def test_mark_ended_from_idle_is_ignored(self):
        controller, _, _ = self._controller()
        assert not controller.mark_ended()
        assert controller.phase == PlaybackPhase.IDLE

    def test_observe_ended(self):
        controller, _, _ = self._controller()
        controller.begin()

        assert not controller.observe_ended(False)
        assert controller.phase == PlaybackPhase.ENGAGED
        assert controller.observe_ended(True)
        assert controller.phase == PlaybackPhase.FINISHED

    def test_teardown_from_any_phase(self):
        idle, _, _ = self._controller()
        idle.teardown()
        assert idle.phase == PlaybackPhase.FINISHED

        engaged, source, _ = self._controller()
        engaged.begin()
        engaged.teardown()
        engaged.teardown()
        assert engaged.phase == PlaybackPhase.FINISHED
        assert source.subscriber_count == 0

    def test_ending_from_inside_a_tick(self):
        source = ManualTickSource()
        ticks = []

        def on_tick(now):
            ticks.append(now)
            controller.mark_ended()

        controller = PlaybackPhaseController(source, on_tick)
        controller.begin()
        source.advance(0.1)
        source.advance(0.1)

        assert len(ticks) == 1
        assert controller.phase == PlaybackPhase.FINISHED


# ============================================================
# ENGINE
# ============================================================

def _config(**palette):
    return EngineConfig(
        sampler=SamplerSettings(buffer_size=8, fft_size=16, mode="waveform"),
        detector=DetectorSettings(refractory_ms=500.0),
        palette=PaletteSettings(**palette),
        cues=[{"time": 0, "id": "grid"}, {"time": 30, "id": "cube"}],
        reveals=[
            {"id": "date", "time": 10, "text": "ABCDEFGHIJ", "duration": 1.0},
            {"id": "artwork", "time": 20},
        ],
    )


@pytest.fixture
def ticks():
    return ManualTickSource()


@pytest.fixture
def engine(transport, ticks):
    return ReactiveEngine(transport, ticks, _config())


class TestReactiveEngine:

    def test_ticks_ignored_before_begin(self, engine, ticks):
        assert engine.tick(0.0) is None
        ticks.advance(0.1)

        assert engine.phase == PlaybackPhase.IDLE
        assert engine.stats.ticks_ignored == 1
        assert engine.last_output is None

    def test_reads_transport_in_tick_order_with_one_snapshot(self, engine, transport, ticks):
        engine.begin()
        transport.calls.clear()

        ticks.advance(1 / 60)
        assert transport.calls == ["is_ended", "feed", "current_time"]

        ticks.advance(1 / 60)
        assert transport.calls.count("current_time") == 2

    def test_cue_resolution(self, engine, transport, ticks):
        engine.begin()

        ticks.advance(0.1)
        first = engine.last_output
        assert first.cue_id == "grid"
        assert first.cue_changed

        ticks.advance(0.1)
        assert not engine.last_output.cue_changed

        transport.time_seconds = 30.0
        ticks.advance(0.1)
        assert engine.last_output.cue_id == "cube"
        assert engine.last_output.cue_changed
        assert engine.active_cue_id() == "cube"
        assert engine.active_cue_id(5.0) == "grid"
        assert engine.stats.cue_changes == 2

    def test_reveals_and_letters_latch_across_seek(self, engine, transport, ticks):
        engine.begin()

        transport.time_seconds = 10.5
        ticks.advance(0.1)
        output = engine.last_output
        assert output.revealed == {"date": True, "artwork": False}
        assert output.revealed_text == {"date": "ABCDE"}

        transport.time_seconds = 5.0
        ticks.advance(0.1)
        assert engine.last_output.revealed["date"]
        assert engine.is_revealed("date")
        assert not engine.is_revealed("artwork")
        assert engine.revealed_text("date") == "ABCDE"
        assert engine.revealed_text("artwork") == ""

    def test_palette_follows_playback_time(self, engine, transport, ticks):
        engine.begin()
        transport.time_seconds = 37.5
        ticks.advance(0.1)

        palette = engine.last_output.palette
        assert palette.active_index == 2
        assert palette.blend_to_next == pytest.approx(0.5)
        assert engine.palette_state() == palette

    def test_returned_palette_states_are_copies(self, engine, transport, ticks):
        engine.begin()
        ticks.advance(0.1)
        first = engine.last_output.palette

        transport.time_seconds = 16.0
        ticks.advance(0.1)
        assert first.active_index == 0
        assert engine.last_output.palette.active_index == 1

        snapshot = engine.palette_state()
        snapshot.active_index = 3
        assert engine.palette_state().active_index == 1

    def test_event_pulse_advances_palette_in_event_mode(self, transport, ticks):
        engine = ReactiveEngine(transport, ticks, _config(mode="event"))
        engine.begin()

        transport.level = 0.0
        ticks.advance(0.016)
        assert not engine.event_pulse()

        transport.level = 0.9
        ticks.advance(0.016)
        output = engine.last_output
        assert output.event_pulse
        assert engine.event_pulse()
        assert output.time_since_last_event_ms == 0.0
        assert output.palette.active_palette == "sunset"
        assert engine.stats.events_fired == 1

        ticks.advance(0.016)
        assert not engine.event_pulse()

    def test_texture_exposed_for_rendering(self, engine, transport, ticks):
        engine.begin()
        transport.level = 0.5
        ticks.advance(0.1)

        texture = engine.get_encoded_texture()
        assert texture.shape == (8 * 4,)
        assert engine.max_amplitude == 1.0
        np.testing.assert_allclose(engine.samples(), 0.5)

    def test_transport_end_finishes_session(self, engine, transport, ticks):
        engine.begin()
        ticks.advance(0.1)

        transport.ended = True
        transport.level = 0.9
        ticks.advance(0.1)

        assert engine.phase == PlaybackPhase.FINISHED
        assert not engine.is_polling
        assert not engine.event_pulse()
        assert ticks.subscriber_count == 0

        processed = engine.stats.ticks_processed
        ticks.advance(0.1)
        assert engine.stats.ticks_processed == processed == 1

    def test_teardown_before_begin(self, engine, ticks):
        engine.teardown()
        assert engine.phase == PlaybackPhase.FINISHED
        assert not engine.begin()
        assert ticks.subscriber_count == 0

    def test_stats_track_latency(self, engine, ticks):
        engine.begin()
        for _ in range(5):
            ticks.advance(0.1)

        stats = engine.stats
        assert stats.ticks_processed == 5
        assert stats.max_tick_latency_ms >= stats.mean_tick_latency_ms >= 0.0
        assert engine.last_output.tick_id == 5

    def test_configuration_errors_raise_at_construction(self, transport, ticks):
        config = _config()
        config.cues = [{"time": 5, "id": "grid"}]
        with pytest.raises(NoDefaultCue):
            ReactiveEngine(transport, ticks, config)

        config = _config()
        config.sampler = dataclasses.replace(config.sampler, buffer_size=6)
        with pytest.raises(InvalidConfiguration):
            ReactiveEngine(transport, ticks, config)

        config = _config()
        config.cues = [{"time": 0, "id": "fireworks"}]
        with pytest.raises(InvalidConfiguration):
            ReactiveEngine(transport, ticks, config)

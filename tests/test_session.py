import unittest

import numpy as np

from vocal_range.core.events import SessionEvent
from vocal_range.mock_audio_provider import MockAudioProvider
from vocal_range.session import CaptureSession, CaptureState

SAMPLE_RATE = 44100


def sine(freq, size=4096, amplitude=0.5):
    t = np.arange(size) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


LOW_FRAME = sine(130.0)  # C3
HIGH_FRAME = sine(520.0)  # C5
SILENT_FRAME = np.zeros(4096, dtype=np.float32)


class TestCaptureSession(unittest.TestCase):
    def setUp(self):
        self.session = CaptureSession()

    def _complete(self, first_frame, second_frame):
        self.session.begin()
        self.session.on_frame(first_frame, SAMPLE_RATE)
        self.assertTrue(self.session.capture())
        self.session.on_frame(second_frame, SAMPLE_RATE)
        self.assertTrue(self.session.capture())

    def test_starts_idle(self):
        self.assertIs(self.session.state, CaptureState.IDLE)
        self.assertIsNone(self.session.live_note)
        self.assertIsNone(self.session.low_note)
        self.assertIsNone(self.session.high_note)
        self.assertIsNone(self.session.endpoints)

    def test_frames_ignored_while_idle(self):
        self.assertIsNone(self.session.on_frame(LOW_FRAME, SAMPLE_RATE))
        self.assertIsNone(self.session.live_note)

    def test_begin(self):
        self.assertTrue(self.session.begin())
        self.assertIs(self.session.state, CaptureState.AWAITING_LOW)
        # Only valid from idle
        self.assertFalse(self.session.begin())
        self.assertIs(self.session.state, CaptureState.AWAITING_LOW)

    def test_live_note_follows_frames(self):
        self.session.begin()
        note = self.session.on_frame(LOW_FRAME, SAMPLE_RATE)
        self.assertEqual(note.name, "C3")
        self.assertEqual(self.session.live_note, note)

        self.assertIsNone(self.session.on_frame(SILENT_FRAME, SAMPLE_RATE))
        self.assertIsNone(self.session.live_note)

    def test_capture_without_live_note_is_noop(self):
        self.session.begin()
        self.session.on_frame(SILENT_FRAME, SAMPLE_RATE)
        self.assertFalse(self.session.capture())
        self.assertIs(self.session.state, CaptureState.AWAITING_LOW)
        self.assertIsNone(self.session.low_note)

    def test_capture_while_idle_is_noop(self):
        self.assertFalse(self.session.capture())
        self.assertIs(self.session.state, CaptureState.IDLE)

    def test_low_then_high(self):
        self.session.begin()
        self.session.on_frame(LOW_FRAME, SAMPLE_RATE)
        self.assertTrue(self.session.capture())
        self.assertIs(self.session.state, CaptureState.AWAITING_HIGH)
        self.assertEqual(self.session.low_note.name, "C3")

        self.session.on_frame(HIGH_FRAME, SAMPLE_RATE)
        self.assertTrue(self.session.capture())
        self.assertIs(self.session.state, CaptureState.COMPLETE)
        self.assertEqual(self.session.low_note.name, "C3")
        self.assertEqual(self.session.high_note.name, "C5")
        self.assertEqual(self.session.endpoints, ("C3", "C5"))

    def test_high_sung_first_is_reordered(self):
        self._complete(HIGH_FRAME, LOW_FRAME)
        self.assertIs(self.session.state, CaptureState.COMPLETE)
        self.assertEqual(self.session.low_note.name, "C3")
        self.assertEqual(self.session.high_note.name, "C5")
        self.assertLess(self.session.low_note.frequency, self.session.high_note.frequency)

    def test_second_capture_is_noop(self):
        self.session.begin()
        self.session.on_frame(LOW_FRAME, SAMPLE_RATE)
        self.assertTrue(self.session.capture())
        low = self.session.low_note

        self.assertFalse(self.session.capture())
        self.assertIs(self.session.state, CaptureState.AWAITING_HIGH)
        self.assertIs(self.session.low_note, low)
        self.assertIsNone(self.session.high_note)

    def test_complete_is_terminal(self):
        self._complete(LOW_FRAME, HIGH_FRAME)
        self.assertIsNone(self.session.on_frame(HIGH_FRAME, SAMPLE_RATE))
        self.assertFalse(self.session.capture())
        self.assertFalse(self.session.begin())
        self.assertEqual(self.session.endpoints, ("C3", "C5"))

    def test_reset_from_every_state(self):
        def idle(session):
            pass

        def awaiting_low(session):
            session.begin()
            session.on_frame(LOW_FRAME, SAMPLE_RATE)

        def awaiting_high(session):
            awaiting_low(session)
            session.capture()
            session.on_frame(HIGH_FRAME, SAMPLE_RATE)

        def complete(session):
            awaiting_high(session)
            session.capture()

        for prepare in (idle, awaiting_low, awaiting_high, complete):
            with self.subTest(state=prepare.__name__):
                session = CaptureSession()
                prepare(session)
                fresh = session.reset()
                self.assertIsNot(fresh, session)
                self.assertIs(fresh.state, CaptureState.IDLE)
                self.assertIsNone(fresh.live_note)
                self.assertIsNone(fresh.low_note)
                self.assertIsNone(fresh.high_note)
                self.assertIs(session.state, CaptureState.IDLE)

    def test_reset_session_can_run_again(self):
        self._complete(LOW_FRAME, HIGH_FRAME)
        session = self.session.reset()
        self.assertTrue(session.begin())
        session.on_frame(HIGH_FRAME, SAMPLE_RATE)
        self.assertEqual(session.live_note.name, "C5")

    def test_custom_note_mapper(self):
        session = CaptureSession(note_mapper=lambda hz: None)
        session.begin()
        self.assertIsNone(session.on_frame(LOW_FRAME, SAMPLE_RATE))
        self.assertFalse(session.capture())


class TestCaptureSessionAudioSource(unittest.TestCase):
    def setUp(self):
        self.audio = MockAudioProvider(sample_rate=SAMPLE_RATE)
        self.session = CaptureSession()
        self.audio.start(lambda frame: self.session.on_frame(frame, SAMPLE_RATE))
        self.session.begin(self.audio)

    def test_frames_from_provider(self):
        self.audio.push(LOW_FRAME)
        self.assertEqual(self.session.live_note.name, "C3")

    def test_source_stopped_on_completion(self):
        self.audio.push(LOW_FRAME)
        self.session.capture()
        self.assertEqual(self.audio.stop_calls, 0)
        self.audio.push(HIGH_FRAME)
        self.session.capture()
        self.assertEqual(self.audio.stop_calls, 1)
        self.assertFalse(self.audio.is_running)

        # Already released
        self.session.reset()
        self.assertEqual(self.audio.stop_calls, 1)

    def test_source_stopped_on_reset(self):
        self.session.reset()
        self.assertEqual(self.audio.stop_calls, 1)


class FailingStopAudioProvider(MockAudioProvider):
    def stop(self):
        super().stop()
        raise OSError("device gone")


class TestCaptureSessionFailingAudioSource(unittest.TestCase):
    def setUp(self):
        self.audio = FailingStopAudioProvider(sample_rate=SAMPLE_RATE)
        self.session = CaptureSession()
        self.audio.start(lambda frame: self.session.on_frame(frame, SAMPLE_RATE))
        self.session.begin(self.audio)

    def test_reset_survives_stop_error(self):
        with self.assertLogs("vocal_range.session", level="ERROR"):
            fresh = self.session.reset()
        self.assertIs(fresh.state, CaptureState.IDLE)
        self.assertIs(self.session.state, CaptureState.IDLE)
        self.assertEqual(self.audio.stop_calls, 1)

    def test_completion_survives_stop_error(self):
        completed = []
        self.session.on(SessionEvent.COMPLETED, lambda low, high: completed.append((low.name, high.name)))

        self.audio.push(LOW_FRAME)
        self.assertTrue(self.session.capture())
        self.audio.push(HIGH_FRAME)
        with self.assertLogs("vocal_range.session", level="ERROR"):
            self.assertTrue(self.session.capture())

        self.assertIs(self.session.state, CaptureState.COMPLETE)
        self.assertEqual(completed, [("C3", "C5")])
        self.assertEqual(self.session.endpoints, ("C3", "C5"))


class TestCaptureSessionEvents(unittest.TestCase):
    def setUp(self):
        self.session = CaptureSession()
        self.events = []
        for event in SessionEvent:
            self.session.on(
                event, lambda *args, event=event: self.events.append((event, args))
            )

    def test_events_for_full_run(self):
        self.session.begin()
        self.session.on_frame(LOW_FRAME, SAMPLE_RATE)
        self.session.capture()
        self.session.on_frame(HIGH_FRAME, SAMPLE_RATE)
        self.session.capture()

        kinds = [event for event, _ in self.events]
        self.assertEqual(
            kinds,
            [
                SessionEvent.STATE_CHANGED,
                SessionEvent.LIVE_NOTE,
                SessionEvent.ENDPOINT_CAPTURED,
                SessionEvent.STATE_CHANGED,
                SessionEvent.LIVE_NOTE,
                SessionEvent.ENDPOINT_CAPTURED,
                SessionEvent.STATE_CHANGED,
                SessionEvent.COMPLETED,
            ],
        )
        self.assertEqual(
            self.events[0][1], (CaptureState.IDLE, CaptureState.AWAITING_LOW)
        )
        low, high = self.events[-1][1]
        self.assertEqual((low.name, high.name), ("C3", "C5"))

    def test_failing_listener_does_not_break_session(self):
        def broken(note):
            raise RuntimeError("listener failure")

        self.session.on(SessionEvent.LIVE_NOTE, broken)
        self.session.begin()
        note = self.session.on_frame(LOW_FRAME, SAMPLE_RATE)
        self.assertEqual(note.name, "C3")
        self.assertTrue(self.session.capture())

    def test_rejected_capture_emits_nothing(self):
        self.session.capture()
        self.assertEqual(self.events, [])


if __name__ == "__main__":
    unittest.main()

import json
import os
import tempfile
import unittest
from unittest import mock

from vocal_range.core.config import ConfigManager
from vocal_range.core.factory import ComponentFactory
from vocal_range.services.audio_providers import LiveAudioProvider
from vocal_range.services.gemini_advisor import GeminiRangeAdvisor
from vocal_range.session import CaptureState


class TestConfigManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults_written(self):
        manager = ConfigManager(self.config_dir)
        for name in ("pitch_estimator", "note_mapper", "audio_input", "advisor"):
            self.assertTrue(os.path.exists(os.path.join(self.config_dir, f"{name}.json")))

        self.assertEqual(manager.get_config("pitch_estimator")["silence_rms"], 0.01)
        self.assertEqual(manager.get_config("pitch_estimator")["trim_threshold"], 0.2)
        self.assertEqual(manager.get_config("note_mapper")["min_frequency"], 20.0)
        self.assertEqual(manager.get_config("note_mapper")["max_frequency"], 8000.0)
        self.assertEqual(manager.get_config("advisor")["timeout_seconds"], 15.0)

    def test_update_persists(self):
        manager = ConfigManager(self.config_dir)
        self.assertTrue(manager.update_config("pitch_estimator", {"silence_rms": 0.05}))

        reloaded = ConfigManager(self.config_dir)
        self.assertEqual(reloaded.get_config("pitch_estimator")["silence_rms"], 0.05)

    def test_missing_keys_filled_from_defaults(self):
        with open(os.path.join(self.config_dir, "audio_input.json"), "w") as f:
            json.dump({"sample_rate": 48000}, f)

        config = ConfigManager(self.config_dir).get_config("audio_input")
        self.assertEqual(config["sample_rate"], 48000)
        self.assertEqual(config["frames_per_buffer"], 2048)

    def test_corrupt_file_falls_back_to_defaults(self):
        with open(os.path.join(self.config_dir, "note_mapper.json"), "w") as f:
            f.write("{not json")

        config = ConfigManager(self.config_dir).get_config("note_mapper")
        self.assertEqual(config["min_frequency"], 20.0)

    def test_reset_config(self):
        manager = ConfigManager(self.config_dir)
        manager.update_config("advisor", {"timeout_seconds": 1.0})
        self.assertTrue(manager.reset_config("advisor"))
        self.assertEqual(manager.get_config("advisor")["timeout_seconds"], 15.0)

    def test_unknown_config(self):
        manager = ConfigManager(self.config_dir)
        self.assertFalse(manager.update_config("nope", {}))
        self.assertFalse(manager.reset_config("nope"))
        self.assertEqual(manager.get_config("nope"), {})

    def test_get_config_returns_copy(self):
        manager = ConfigManager(self.config_dir)
        manager.get_config("advisor")["timeout_seconds"] = 0.0
        self.assertEqual(manager.get_config("advisor")["timeout_seconds"], 15.0)


class TestComponentFactory(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.manager = ConfigManager(self._tmp.name)
        self.factory = ComponentFactory(self.manager)

    def tearDown(self):
        self._tmp.cleanup()

    def test_pitch_estimator_from_config(self):
        self.manager.update_config("pitch_estimator", {"silence_rms": 0.02})
        estimator = self.factory.create_pitch_estimator()
        self.assertEqual(estimator.silence_rms, 0.02)
        self.assertEqual(estimator.trim_threshold, 0.2)

    def test_pitch_estimator_overrides(self):
        estimator = self.factory.create_pitch_estimator(trim_threshold=0.3)
        self.assertEqual(estimator.trim_threshold, 0.3)

    def test_note_mapper_uses_configured_range(self):
        self.manager.update_config("note_mapper", {"min_frequency": 80.0})
        mapper = self.factory.create_note_mapper()
        self.assertIsNone(mapper(60.0))
        self.assertEqual(mapper(440.0).name, "A4")

    def test_create_session(self):
        session = self.factory.create_session()
        self.assertIs(session.state, CaptureState.IDLE)

    def test_create_live_audio_does_not_open_device(self):
        provider = self.factory.create_live_audio(device_id=3)
        self.assertIsInstance(provider, LiveAudioProvider)
        self.assertEqual(provider.sample_rate, 44100)
        self.assertEqual(provider.channels, 1)
        self.assertFalse(provider.is_running)

    def test_create_advisor_from_config(self):
        self.manager.update_config("advisor", {"model": "gemini-test", "timeout_seconds": 5.0})
        advisor = self.factory.create_advisor(api_key="key")
        self.assertIsInstance(advisor, GeminiRangeAdvisor)
        self.assertEqual(advisor.model, "gemini-test")

    def test_request_analysis_uses_configured_timeout(self):
        self.manager.update_config("advisor", {"timeout_seconds": 2.5})
        session = self.factory.create_session()
        with mock.patch("vocal_range.advisor.request_analysis", return_value="report") as request:
            self.assertEqual(self.factory.request_analysis(session, advisor=None), "report")
        request.assert_called_once_with(session, None, timeout=2.5)


if __name__ == "__main__":
    unittest.main()

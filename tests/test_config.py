import logging
from pathlib import Path

from dictaphone.config import DictaphoneSettings, get_settings
from dictaphone.logging_config import setup_logging


def test_settings_defaults():
    settings = DictaphoneSettings()

    assert settings.latch_tolerance_ms == 200.0
    assert settings.player_program == "mplayer"
    assert settings.recorder_backend in {"sox", "sounddevice"}


def test_settings_overrides_and_audio_path():
    settings = DictaphoneSettings(audio_dir="recordings", default_speed=1.25)

    assert settings.audio_path == Path("recordings")
    assert settings.default_speed == 1.25
    assert settings.model_copy(update={"log_level": "DEBUG"}).log_level == "DEBUG"


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_setup_logging_configures_package_logger(tmp_path):
    log_file = tmp_path / "dictaphone.log"

    setup_logging("debug", str(log_file))
    setup_logging("debug", str(log_file))
    logging.getLogger("dictaphone.transport").debug("hello")

    logger = logging.getLogger("dictaphone")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    for handler in logger.handlers:
        handler.flush()
    assert "dictaphone.transport - DEBUG - hello" in log_file.read_text(encoding="utf-8")

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

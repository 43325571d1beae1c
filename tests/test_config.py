import pytest
from pydantic import ValidationError

from backend.config import Settings


class TestSettings:
    def test_defaults_are_valid(self) -> None:
        settings = Settings()
        assert settings.learning_steps
        assert settings.easy_bonus >= 1

    def test_empty_learning_steps_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("NEXUS_LEARNING_STEPS", "[]")
        with pytest.raises(ValidationError):
            Settings()

    def test_easy_bonus_below_one_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(easy_bonus=0.5)

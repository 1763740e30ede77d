"""
Unit tests for environment-driven settings.
"""
import pytest
from pydantic import ValidationError

from record_sync.config import DEFAULT_CHUNK_SIZE, DEFAULT_SCHEDULE, Settings

ENV_VARS = (
    "DB_URL", "CHUNK_SIZE", "SYNC_SCHEDULE", "LOG_FORMAT", "LOG_DIR",
    "STORE_CONNECT_FATAL", "DATA_FILE", "PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run each test without inherited variables or a stray .env file"""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings"""

    def test_defaults(self):
        settings = Settings()
        assert settings.chunk_size == DEFAULT_CHUNK_SIZE == 10
        assert settings.sync_schedule == DEFAULT_SCHEDULE == "0 0,12 * * *"
        assert settings.data_file == "MOCK_DATA.json"
        assert settings.log_dir == "logs"
        assert settings.port == 3000
        assert settings.store_connect_fatal is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CHUNK_SIZE", "25")
        monkeypatch.setenv("STORE_CONNECT_FATAL", "true")
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        monkeypatch.setenv("DB_URL", "postgresql://u:p@db:5432/x")

        settings = Settings()

        assert settings.chunk_size == 25
        assert settings.store_connect_fatal is True
        assert settings.log_format == "json"
        assert settings.db_url == "postgresql://u:p@db:5432/x"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("DATA_FILE=/data/batch.json\nPORT=8080\n", encoding="utf-8")

        settings = Settings()

        assert settings.data_file == "/data/batch.json"
        assert settings.port == 8080

    @pytest.mark.parametrize("name, value", [
        ("CHUNK_SIZE", "0"),
        ("CHUNK_SIZE", "-3"),
        ("SYNC_SCHEDULE", "0 12 * *"),
        ("LOG_FORMAT", "xml"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings()

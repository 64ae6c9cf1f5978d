import os

import pytest

from farepass.core.env import get_project_root, load_dotenv_if_present, resolve_project_path
from farepass.core.logging import configure_logging
from farepass.core.time import to_aware


@pytest.fixture(autouse=True)
def _fresh_env_cache():
    get_project_root.cache_clear()
    load_dotenv_if_present.cache_clear()
    yield
    get_project_root.cache_clear()
    load_dotenv_if_present.cache_clear()


def test_root_is_found_from_a_subdirectory(monkeypatch, tmp_path):
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n", encoding="utf-8")
    nested = tmp_path / "deploy" / "bin"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert get_project_root() == tmp_path.resolve()
    assert resolve_project_path(".data/farepass") == tmp_path.resolve() / ".data" / "farepass"
    assert resolve_project_path(tmp_path / "abs") == tmp_path / "abs"


def test_dotenv_never_overrides_real_env(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("MONGODB_URI=mongodb://from-dotenv\nFAREPASS_MONGO_DATABASE=dotenv_db\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FAREPASS_ENV_FILE", raising=False)
    monkeypatch.delenv("MONGODB_URI", raising=False)
    monkeypatch.setenv("FAREPASS_MONGO_DATABASE", "real_db")

    assert load_dotenv_if_present() == tmp_path.resolve() / ".env"
    try:
        assert os.environ["MONGODB_URI"] == "mongodb://from-dotenv"
        assert os.environ["FAREPASS_MONGO_DATABASE"] == "real_db"
    finally:
        os.environ.pop("MONGODB_URI", None)


def test_explicit_env_file_missing_loads_nothing(monkeypatch, tmp_path):
    monkeypatch.setenv("FAREPASS_ENV_FILE", str(tmp_path / "nope.env"))
    assert load_dotenv_if_present() is None


def test_to_aware_handles_zulu_and_naive_times():
    assert to_aware("2026-01-05T10:00:00Z", "Asia/Kolkata").utcoffset().total_seconds() == 0
    assert to_aware("2026-01-05T10:00:00", "Asia/Kolkata").utcoffset().total_seconds() == 5.5 * 3600
    with pytest.raises(ValueError):
        to_aware("yesterday", "UTC")


def test_configure_logging_leaves_the_packaged_config_alone():
    from farepass.config.settings import get_logging_config

    before = get_logging_config()["handlers"]["console"]["level"]
    assert configure_logging("debug") == "DEBUG"
    assert get_logging_config()["handlers"]["console"]["level"] == before
    configure_logging("INFO")
    with pytest.raises(ValueError):
        configure_logging("loud")

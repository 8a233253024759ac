import pytest
from pydantic import ValidationError
from slotbook.config import Settings, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BOOKING_TIMEZONE", "BOOKING_INITIAL_STATUS", "BATCH_POLICY", "ECHO_SQL"):
        monkeypatch.delenv(name, raising=False)
    settings = get_settings()
    assert settings.timezone == "UTC"
    assert settings.initial_status == "approved"
    assert settings.batch_policy == "all_or_nothing"
    assert settings.echo_sql is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOOKING_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("BOOKING_INITIAL_STATUS", "pending")
    monkeypatch.setenv("BATCH_POLICY", "best_effort")
    monkeypatch.setenv("ECHO_SQL", "1")
    settings = get_settings()
    assert settings.zone.key == "Europe/Berlin"
    assert settings.initial_status == "pending"
    assert settings.batch_policy == "best_effort"
    assert settings.echo_sql is True


def test_settings_are_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("BOOKING_TIMEZONE", "Asia/Tokyo")
    assert get_settings() is first


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(timezone="Mars/Olympus_Mons")


def test_unknown_batch_policy_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(batch_policy="sometimes")

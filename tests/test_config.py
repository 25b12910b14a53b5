from pathlib import Path

import pytest

from ridetrack.config import RideTrackConfig, load_config, load_config_or_default, resolve_config_path


def test_default_model_has_expected_values():
    cfg = RideTrackConfig()
    assert cfg.tracking.min_distance_km == 0.001
    assert cfg.tracking.min_speed_kmh == 0.25
    assert cfg.store.key == "routes"
    assert cfg.log_file.as_posix() == "logs/ridetrack.log"


def test_yaml_loads_and_validates(tmp_path: Path):
    yml = tmp_path / "ridetrack.yml"
    yml.write_text(
        """
tracking:
  min_distance_km: 0.005
  current_speed_from_rejected: false
logging:
  level: debug
        """.strip(),
        encoding="utf-8",
    )
    cfg = load_config(yml)
    assert cfg.tracking.min_distance_km == 0.005
    assert cfg.tracking.current_speed_from_rejected is False
    assert cfg.logging.level == "DEBUG"


def test_empty_file_gives_defaults(tmp_path: Path):
    yml = tmp_path / "ridetrack.yml"
    yml.write_text("", encoding="utf-8")
    assert load_config(yml) == RideTrackConfig()


@pytest.mark.parametrize(
    "body",
    [
        "tracking:\n  min_distance_km: -1",
        "logging:\n  level: LOUD",
        "provider:\n  port: 0",
        "- just\n- a list",
    ],
)
def test_invalid_values_raise(tmp_path: Path, body: str):
    yml = tmp_path / "ridetrack.yml"
    yml.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(yml)


def test_resolve_prefers_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "a.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("RIDETRACK_CONFIG", str(tmp_path / "b.yml"))
    assert resolve_config_path(cfg) == cfg.resolve()


def test_resolve_env_when_no_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "b.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv("RIDETRACK_CONFIG", str(cfg))
    assert resolve_config_path(None) == cfg.resolve()


def test_missing_file_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RIDETRACK_CONFIG", raising=False)
    cfg = load_config_or_default(tmp_path / "nope.yml")
    assert cfg == RideTrackConfig()

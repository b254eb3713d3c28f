from pathlib import Path

import pytest

from cardbeacon import config_loader


@pytest.fixture(autouse=True)
def restore_config():
    saved = config_loader.CONFIG
    yield
    config_loader.CONFIG = saved


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "config.yaml"
    p.write_text(text, encoding="utf-8")
    return p


class TestLoadConfig:
    def test_repo_default_config_loads(self) -> None:
        cfg = config_loader.load_config()

        assert cfg["app"]["scan"]["interval_ms"] == 500
        assert cfg["app"]["scan"]["cache_flush_ms"] == 10000
        assert config_loader.get_facility_cfg()["type"] == "mock"

    def test_explicit_path_becomes_active(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """
app:
  scan: {interval_ms: 250, cache_mode: sliding}
  facility: {type: nmcli}
  history: {size: 3}
publisher:
  modes: [http]
log:
  level: debug
  heartbeat_s: 2.5
""")
        config_loader.load_config(path)

        assert config_loader.get_scan_cfg() == {"interval_ms": 250, "cache_mode": "sliding"}
        assert config_loader.get_facility_cfg() == {"type": "nmcli"}
        assert config_loader.get_history_cfg() == {"size": 3}
        assert config_loader.get_publisher_cfg() == {"modes": ["http"]}
        assert config_loader.get_log_level() == "DEBUG"
        assert config_loader.get_heartbeat_s() == 2.5

    def test_missing_sections_give_defaults(self, tmp_path: Path) -> None:
        config_loader.load_config(_write(tmp_path, "app: {}\n"))

        assert config_loader.get_scan_cfg() == {}
        assert config_loader.get_publisher_cfg() == {}
        assert config_loader.get_log_level("WARNING") == "WARNING"
        assert config_loader.get_heartbeat_s() == 10.0

    def test_bad_heartbeat_falls_back(self, tmp_path: Path) -> None:
        config_loader.load_config(_write(tmp_path, "app: {}\nlog: {heartbeat_s: soon}\n"))
        assert config_loader.get_heartbeat_s(4.0) == 4.0

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="No config file"):
            config_loader.load_config(tmp_path / "nope.yaml")

    def test_broken_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="not valid YAML"):
            config_loader.load_config(_write(tmp_path, "app: [unclosed\n"))

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="must hold a mapping"):
            config_loader.load_config(_write(tmp_path, "- a\n- b\n"))

    def test_app_section_required(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="app"):
            config_loader.load_config(_write(tmp_path, "publisher: {}\n"))

    def test_failed_load_keeps_previous_config(self, tmp_path: Path) -> None:
        config_loader.load_config(_write(tmp_path, "app: {history: {size: 4}}\n"))
        with pytest.raises(RuntimeError):
            config_loader.load_config(tmp_path / "nope.yaml")

        assert config_loader.get_history_cfg() == {"size": 4}

    def test_accessors_read_an_explicit_dict(self, tmp_path: Path) -> None:
        config_loader.load_config(_write(tmp_path, "app: {history: {size: 4}}\n"))
        other = {
            "app": {"history": {"size": 7}, "facility": {"type": "nmcli"}},
            "log": {"level": "warning", "heartbeat_s": 3},
        }

        assert config_loader.get_history_cfg(other) == {"size": 7}
        assert config_loader.get_facility_cfg(other) == {"type": "nmcli"}
        assert config_loader.get_publisher_cfg(other) == {}
        assert config_loader.get_log_level(cfg=other) == "WARNING"
        assert config_loader.get_heartbeat_s(cfg=other) == 3.0
        assert config_loader.get_history_cfg() == {"size": 4}

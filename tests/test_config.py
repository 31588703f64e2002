import json

from flowmap.config import load_config, load_settings, name_debounce_seconds, DEFAULTS


def test_missing_config_is_empty(tmp_path):
    assert load_config(tmp_path / "config.json") == {}


def test_unreadable_config_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path) == {}


def test_load_config_reads_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"backend": "supabase"}), encoding="utf-8")
    assert load_config(path) == {"backend": "supabase"}


def test_defaults(tmp_path):
    settings = load_settings(tmp_path / "config.json", environ={})
    assert settings == DEFAULTS


def test_environment_overrides_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"backend": "supabase", "api_base_url": "http://file/api/v1", "unknown": 1}),
                    encoding="utf-8")

    settings = load_settings(path, environ={
        "FLOWMAP_API_URL": "http://env/api/v1",
        "FLOWMAP_TIMEOUT": "2.5",
        "FLOWMAP_WORKSPACE_ID": "ws-9",
    })

    assert settings["backend"] == "supabase"
    assert settings["api_base_url"] == "http://env/api/v1"
    assert settings["request_timeout"] == 2.5
    assert settings["workspace_id"] == "ws-9"
    assert "unknown" not in settings


def test_bad_numeric_falls_back_to_default(tmp_path):
    settings = load_settings(tmp_path / "config.json", environ={"FLOWMAP_NAME_DEBOUNCE": "soon"})
    assert settings["name_debounce_ms"] == DEFAULTS["name_debounce_ms"]


def test_name_debounce_seconds(tmp_path):
    settings = load_settings(tmp_path / "config.json", environ={"FLOWMAP_NAME_DEBOUNCE": "250"})
    assert name_debounce_seconds(settings) == 0.25

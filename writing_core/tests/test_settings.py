import json
import logging

from writing_core.config.settings import Settings
from writing_core.infrastructure.logging.logger import JsonFormatter


def test_settings_from_yaml(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(
        "\n".join(
            [
                'provider: "Ollama (For Experts)"',
                "max_conversation_messages: 10",
                "providers:",
                '  "Ollama (For Experts)":',
                "    model_name: mistral",
                "    keep_alive: 15",
                "actions:",
                "  - name: Rewrite",
                '    prefix: "Rewrite this: "',
                "    instruction: You are an editor.",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("WRITING_CONFIG_FILE", str(cfg_file))
    cfg = Settings()
    assert cfg.provider == "Ollama (For Experts)"
    assert cfg.max_conversation_messages == 10
    provider_cfg = cfg.provider_configs()["Ollama (For Experts)"]
    assert provider_cfg.model_name == "mistral"
    assert provider_cfg.keep_alive == "15"
    assert cfg.actions[0]["name"] == "Rewrite"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text('provider: "openai"\n', encoding="utf-8")
    monkeypatch.setenv("WRITING_CONFIG_FILE", str(cfg_file))
    monkeypatch.setenv("WRITING_PROVIDER", "gemini")
    assert Settings().provider == "gemini"


def test_settings_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("WRITING_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)
    cfg = Settings()
    assert cfg.temperature == 0.7
    assert cfg.ollama_timeout > cfg.http_timeout
    assert cfg.provider_configs() == {}


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("writing_core", logging.INFO, __file__, 1, "stream.start", None, None)
    record.extra = {"provider": "Gemini", "model": "gemini-2.0-flash"}
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "stream.start"
    assert payload["provider"] == "Gemini"
    assert payload["level"] == "INFO"
    assert payload["ts"].endswith("Z")


def test_json_formatter_redacts_long_messages():
    record = logging.LogRecord("writing_core", logging.INFO, __file__, 1, "x" * 100, None, None)
    payload = json.loads(JsonFormatter(redact_content=True).format(record))
    assert len(payload["msg"]) == 64

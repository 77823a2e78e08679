"""Relay configuration validation and YAML loading."""

import pytest
import yaml
from pydantic import ValidationError

from support_relay.config import KnowledgeConfig, RelayConfig, Settings
from support_relay.core import ConfigurationException
from support_relay.triage.infrastructure import RelayConfigManager

from tests.conftest import BASE_CONFIG


@pytest.fixture
def write_config(tmp_path):
    def _write(data, name="config.yaml"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path
    return _write


class TestRelayConfig:

    def test_from_alias_maps_to_field(self, relay_config):
        assert relay_config.language.from_ == "from"

    def test_defaults(self):
        config = RelayConfig(staffchat_id="-1")
        assert config.spam_max_messages == 5
        assert config.spam_window_seconds == 300
        assert config.parse_mode == "Markdown"
        assert config.autoreply_confirmation is True
        assert config.llm.null_sentinels == ["null", "Null"]
        assert config.llm.timeout_seconds == 30

    def test_integer_staffchat_id_is_coerced(self):
        assert RelayConfig(staffchat_id=-100123).staffchat_id == "-100123"

    def test_staffchat_id_required(self):
        with pytest.raises(ValidationError):
            RelayConfig()

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            RelayConfig(staffchat_id="-1", use_lmm=True)

    def test_use_llm_requires_model(self):
        with pytest.raises(ValidationError, match="llm.model"):
            RelayConfig(staffchat_id="-1", use_llm=True, llm={"knowledge": "kb"})

    def test_use_llm_requires_knowledge(self):
        with pytest.raises(ValidationError, match="knowledge"):
            RelayConfig(staffchat_id="-1", use_llm=True, llm={"model": "m", "knowledge": "  "})

    def test_unknown_parse_mode_rejected(self):
        with pytest.raises(ValidationError):
            RelayConfig(staffchat_id="-1", parse_mode="BBCode")

    def test_empty_faq_question_rejected(self):
        with pytest.raises(ValidationError):
            RelayConfig(staffchat_id="-1", autoreply=[{"question": "", "answer": "x"}])

    def test_config_is_read_only(self, relay_config):
        with pytest.raises(ValidationError):
            relay_config.use_llm = True


class TestKnowledgeConfig:

    def test_knowledge_read_from_file(self, tmp_path):
        path = tmp_path / "knowledge.md"
        path.write_text("Opening hours: 9-17", encoding="utf-8")

        config = KnowledgeConfig(model="m", knowledge_path=path)

        assert config.knowledge == "Opening hours: 9-17"

    def test_inline_knowledge_wins_over_file(self, tmp_path):
        path = tmp_path / "knowledge.md"
        path.write_text("from file", encoding="utf-8")

        assert KnowledgeConfig(knowledge="inline", knowledge_path=path).knowledge == "inline"

    def test_missing_knowledge_file(self, tmp_path):
        with pytest.raises(ValidationError, match="knowledge_path"):
            KnowledgeConfig(knowledge_path=tmp_path / "missing.md")

    def test_reasoning_effort_values(self):
        assert KnowledgeConfig().reasoning_effort is None
        assert KnowledgeConfig(reasoning_effort="low").reasoning_effort == "low"
        with pytest.raises(ValidationError):
            KnowledgeConfig(reasoning_effort="extreme")


class TestRelayConfigManager:

    def test_load_valid_file(self, write_config):
        path = write_config(BASE_CONFIG)

        manager = RelayConfigManager()
        config = manager.load(path)

        assert config.staffchat_id == "-123456789"
        assert config.language.from_ == "from"
        assert manager.config is config

    def test_missing_file(self, tmp_path):
        path = tmp_path / "nope.yaml"
        with pytest.raises(ConfigurationException, match="not found") as exc_info:
            RelayConfigManager().load(path)
        assert exc_info.value.source == str(path)

    def test_invalid_yaml(self, write_config):
        path = write_config("language: [unclosed")
        with pytest.raises(ConfigurationException, match="Invalid YAML"):
            RelayConfigManager().load(path)

    def test_non_mapping(self, write_config):
        path = write_config("- just\n- a list\n")
        with pytest.raises(ConfigurationException, match="mapping"):
            RelayConfigManager().load(path)

    def test_validation_errors_are_reported(self, write_config):
        path = write_config({**BASE_CONFIG, "spam_max_messages": 0})

        with pytest.raises(ConfigurationException) as exc_info:
            RelayConfigManager().load(path)

        locations = [tuple(err["loc"]) for err in exc_info.value.details["errors"]]
        assert ("spam_max_messages",) in locations

    def test_reload_picks_up_changes(self, write_config):
        path = write_config(BASE_CONFIG)
        manager = RelayConfigManager()
        manager.load(path)

        write_config({**BASE_CONFIG, "use_llm": True, "llm": {"model": "m", "knowledge": "kb"}})

        assert manager.reload().use_llm is True

    def test_config_before_load(self):
        with pytest.raises(RuntimeError):
            RelayConfigManager().config

    def test_example_config_is_valid(self):
        from pathlib import Path

        example = Path(__file__).resolve().parents[2] / "config.example.yaml"
        config = RelayConfigManager().load(example)
        assert config.staffchat_id


class TestSettings:

    def test_environment_validated(self):
        with pytest.raises(ValidationError):
            Settings(environment="moon")

    def test_log_level_upper_cased(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

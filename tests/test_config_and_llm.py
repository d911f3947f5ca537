"""
Tests for configuration loading and the Bedrock LLM client wrapper.
"""

import logging
import sys
from dataclasses import replace

import pytest
from botocore.exceptions import ClientError

from lifegraph.utils import bedrock_llm, logging_config
from lifegraph.utils.bedrock_llm import BedrockLLM, BedrockLLMError
from lifegraph.utils.config import config, load_config


class FakeRuntime:
    """bedrock-runtime stand-in that fails a fixed number of times."""

    def __init__(self, failures=0, text='OK'):
        self.failures = failures
        self.text = text
        self.calls = 0

    def converse(self, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise ClientError({'Error': {'Code': 'ThrottlingException', 'Message': 'slow down'}}, 'Converse')
        return {
            'output': {'message': {'content': [{'text': self.text}]}},
            'usage': {'inputTokens': 3, 'outputTokens': 1}
        }


@pytest.fixture
def llm_config():
    return replace(config.bedrock_llm, retry_attempts=3, retry_delay=0.0)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(bedrock_llm.time, 'sleep', lambda seconds: None)


class TestLoadConfig:

    def test_defaults(self, monkeypatch):
        for name in ('GRAPH_LABEL_LENGTH', 'GRAPH_CASE_FOLD_ENTITIES', 'ANALYTICS_TOP_K', 'INSIGHT_HIGH_ACTIVITY_RATIO'):
            monkeypatch.delenv(name, raising=False)
        loaded = load_config()
        assert loaded.graph.label_length == 50
        assert loaded.graph.case_fold_entities is True
        assert loaded.analytics.top_k == 10
        assert loaded.analytics.high_activity_ratio == 1.5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('GRAPH_LABEL_LENGTH', '20')
        monkeypatch.setenv('GRAPH_CASE_FOLD_ENTITIES', 'false')
        monkeypatch.setenv('INSIGHT_POSITIVE_RATIO', '0.9')
        loaded = load_config()
        assert loaded.graph.label_length == 20
        assert loaded.graph.case_fold_entities is False
        assert loaded.analytics.positive_ratio == 0.9


class TestLogging:

    def test_stdio_transport_logs_to_stderr(self):
        stdio = replace(config, mcp=replace(config.mcp, transport='stdio'))
        sse = replace(config, mcp=replace(config.mcp, transport='sse'))
        assert logging_config._stream(stdio) is sys.stderr
        assert logging_config._stream(sse) is sys.stdout

    def test_unknown_level_falls_back_to_info(self):
        assert logging_config._level(replace(config, log_level='chatty')) == logging.INFO
        assert logging_config._level(replace(config, log_level='debug')) == logging.DEBUG

    def test_sdk_loggers_capped(self):
        logging_config.setup_logging(replace(config, log_level='DEBUG'))
        assert logging.getLogger('botocore').level == logging.WARNING

        logging_config.setup_logging(replace(config, log_level='ERROR'))
        assert logging.getLogger('botocore').level == logging.ERROR

    def test_get_logger_uses_configured_level(self):
        logger = logging_config.get_logger('lifegraph.tests', replace(config, log_level='WARNING'))
        assert logger.level == logging.WARNING


class TestBedrockLLM:

    def test_generate_response(self, llm_config):
        runtime = FakeRuntime(text='{"shouldSave": false}')
        text, usage = BedrockLLM(llm_config, client=runtime).generate_response(
            [{'role': 'user', 'content': [{'text': 'hi'}]}], 'system')
        assert text == '{"shouldSave": false}'
        assert usage['outputTokens'] == 1

    def test_retries_then_succeeds(self, llm_config):
        runtime = FakeRuntime(failures=2)
        text, _ = BedrockLLM(llm_config, client=runtime).generate_response([], 'system')
        assert text == 'OK'
        assert runtime.calls == 3

    def test_gives_up_after_retry_attempts(self, llm_config):
        runtime = FakeRuntime(failures=5)
        with pytest.raises(BedrockLLMError):
            BedrockLLM(llm_config, client=runtime).generate_response([], 'system')
        assert runtime.calls == 3

    def test_health_check(self, llm_config):
        assert BedrockLLM(llm_config, client=FakeRuntime()).health_check()
        assert not BedrockLLM(llm_config, client=FakeRuntime(failures=5)).health_check()

"""CLI tests driven through typer's CliRunner with mocked vendor transports."""

import base64
import importlib
import json
import logging

import httpx
import pytest
from typer.testing import CliRunner

from airouter import __version__
from airouter.cli.main import _mask_secret, app
from airouter.pricing import estimator
from airouter.pricing.cache import ModelPricing, PricingCache, now_ms
from airouter.providers.implementations import GoogleProvider, OpenAIProvider, OpenRouterProvider
from airouter.providers.registry import ProviderRegistry

from helpers import RecordingHandler, SleepRecorder, chat_completion, json_response, sse_body

# airouter.cli re-exports the main() function under the submodule name
cli_main = importlib.import_module("airouter.cli.main")

runner = CliRunner()

_ADAPTERS = (("openai", OpenAIProvider), ("google", GoogleProvider), ("openrouter", OpenRouterProvider))


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """The CLI reconfigures logging onto the runner's stderr; put pytest's handlers back."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def vendors(monkeypatch):
    """Install a registry whose adapters talk to the given handlers."""

    def install(**handlers: RecordingHandler) -> None:
        def build() -> ProviderRegistry:
            registry = ProviderRegistry()
            for provider_id, adapter_cls in _ADAPTERS:
                handler = handlers.get(provider_id) or RecordingHandler(httpx.Response(599, text="unexpected call"))
                registry.register(
                    provider_id,
                    lambda cls=adapter_cls, h=handler: cls(transport=h.transport, sleep=SleepRecorder()),
                )
            return registry

        monkeypatch.setattr(cli_main, "build_default_registry", build)

    return install


@pytest.fixture
def fixed_tokens(monkeypatch):
    monkeypatch.setattr(estimator, "count_tokens", lambda text, model: 100)


def write_config(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


def cached_pricing(models):
    cache = PricingCache(
        last_updated=now_ms(),
        models={k: ModelPricing(input=i, output=o) for k, (i, o) in models.items()},
    )
    return cache.model_dump(by_alias=True)


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"ai-router {__version__}" in result.output


class TestProviders:
    def test_list(self):
        result = runner.invoke(app, ["providers", "list"])

        assert result.exit_code == 0
        assert "Available providers:" in result.output
        assert "OpenAI (openai)" in result.output
        assert "Capabilities: text, image, audio, embedding" in result.output
        assert "Google AI (google)" in result.output
        assert "OpenRouter (openrouter)" in result.output

    def test_info(self):
        result = runner.invoke(app, ["providers", "info", "openai"])

        assert result.exit_code == 0
        assert "Provider: OpenAI" in result.output
        assert "ID: openai" in result.output
        assert "- text (gpt-4o, gpt-4o-mini" in result.output
        assert "Usage example:" in result.output
        assert 'ai-router generate-audio -p openai --prompt "Hello"' in result.output

    def test_info_unknown_provider(self):
        result = runner.invoke(app, ["providers", "info", "mistral"])

        assert result.exit_code == 1
        assert "Unknown provider: mistral" in result.output
        assert "Available providers: openai, google, openrouter" in result.output


class TestConfigCommands:
    def test_path(self, config_path):
        result = runner.invoke(app, ["config", "path"])

        assert result.exit_code == 0
        assert result.output.strip() == str(config_path)

    def test_explicit_config_option(self, tmp_path):
        other = tmp_path / "elsewhere.json"

        result = runner.invoke(app, ["--config", str(other), "config", "path"])

        assert result.output.strip() == str(other)

    def test_init_and_refuse_overwrite(self, config_path):
        first = runner.invoke(app, ["config", "init"])
        second = runner.invoke(app, ["config", "init"])
        forced = runner.invoke(app, ["config", "init", "--force"])

        assert first.exit_code == 0
        assert f"Config file created at: {config_path}" in first.output
        assert config_path.exists()
        assert second.exit_code == 1
        assert "already exists" in second.output
        assert forced.exit_code == 0

    def test_set_masks_api_keys_and_show_masks_too(self, config_path):
        set_result = runner.invoke(app, ["config", "set", "openai.apiKey", "sk-abcdefghijklmnop"])
        show_result = runner.invoke(app, ["config", "show"])

        assert set_result.exit_code == 0
        assert "Set openai.apiKey = sk-abcde...mnop" in set_result.output
        assert json.loads(config_path.read_text())["providers"]["openai"]["apiKey"] == "sk-abcdefghijklmnop"
        assert show_result.exit_code == 0
        assert "sk-abcde...mnop" in show_result.output
        assert "sk-abcdefghijklmnop" not in show_result.output

    def test_set_plain_value(self):
        result = runner.invoke(app, ["config", "set", "defaultProvider", "google"])

        assert result.exit_code == 0
        assert "Set defaultProvider = google" in result.output

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "nope.nothing", "1"])

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_show_summarizes_pricing(self, config_path):
        write_config(config_path, {"pricing": cached_pricing({"a/b": (1, 2), "c/d": (3, 4)})})

        result = runner.invoke(app, ["config", "show"])

        assert '"models": "2 models"' in result.output

    def test_refresh_pricing(self, monkeypatch):
        seen = {}

        async def fake_refresh(config, api_key, store=None, transport=None, force=False):
            seen.update(api_key=api_key, force=force)
            return PricingCache(last_updated=now_ms(), models={"a/b": ModelPricing(input=1, output=2)})

        monkeypatch.setattr(cli_main, "ensure_pricing_available", fake_refresh)
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")

        result = runner.invoke(app, ["config", "refresh-pricing"])

        assert result.exit_code == 0
        assert "Pricing cached for 1 models." in result.output
        assert seen == {"api_key": "or-key", "force": True}


class TestGenerateText:
    def test_json_output(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        handler = RecordingHandler(json_response(chat_completion("Hello!", usage={"total_tokens": 5})))
        vendors(openai=handler)

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--json"])

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["success"] is True
        assert body["data"] == "Hello!"
        assert body["meta"]["provider"] == "openai"
        assert "error" not in body
        assert handler.requests[0].headers["Authorization"] == "Bearer sk-test"

    def test_provider_and_model_flags(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        handler = RecordingHandler(json_response(chat_completion("yo")))
        vendors(openrouter=handler)

        result = runner.invoke(
            app,
            ["generate-text", "--prompt", "Hi", "-p", "openrouter", "-m", "openai/gpt-5", "--output-format", "text"],
        )

        assert result.exit_code == 0, result.output
        assert result.output.strip() == "yo"
        assert handler.last_json["model"] == "openai/gpt-5"

    def test_default_provider_from_config(self, vendors, monkeypatch, config_path):
        write_config(config_path, {"defaultProvider": "google", "output": {"format": "text"}})
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        handler = RecordingHandler(json_response({"candidates": [{"content": {"parts": [{"text": "gemini"}]}}]}))
        vendors(google=handler)

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi"])

        assert result.exit_code == 0, result.output
        assert result.output.strip() == "gemini"

    def test_missing_api_key(self, vendors):
        vendors()

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--json"])

        assert result.exit_code == 1
        assert "No API key configured for 'openai'" in result.output
        assert '"success": false' in result.output

    def test_invalid_temperature(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        vendors()

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--temperature", "3"])

        assert result.exit_code == 1
        assert "temperature" in result.output

    def test_unknown_output_format(self):
        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--output-format", "yaml"])

        assert result.exit_code == 1
        assert "Unknown output format: yaml" in result.output

    def test_provider_error_is_reported(self, vendors, monkeypatch, config_path):
        write_config(config_path, {"providers": {"openai": {"maxRetries": 1}}})
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        vendors(openai=RecordingHandler(httpx.Response(401, text="invalid key")))

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--output-format", "text"])

        assert result.exit_code == 1
        assert "Error: [openai] API error: 401 - invalid key" in result.output

    def test_stream_prints_chunks(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        body = sse_body([{"choices": [{"delta": {"content": "Hello"}}]}, {"choices": [{"delta": {"content": " world"}}]}])
        vendors(openai=RecordingHandler(httpx.Response(200, content=body)))

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--stream", "--output-format", "text"])

        assert result.exit_code == 0, result.output
        assert "Hello world" in result.output

    def test_stream_json_collects_chunks(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        body = sse_body([{"choices": [{"delta": {"content": "a"}}]}, {"choices": [{"delta": {"content": "b"}}]}])
        vendors(openai=RecordingHandler(httpx.Response(200, content=body)))

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "-s", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"] == "ab"


class TestCostGuard:
    def test_limit_exceeded_blocks_request(self, vendors, monkeypatch, config_path, fixed_tokens):
        write_config(config_path, {"pricing": cached_pricing({"openai/gpt-4o": (1000.0, 1000.0)})})
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        openai = RecordingHandler(json_response(chat_completion("should not happen")))
        vendors(openai=openai)

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--max-cost", "0.01"])

        assert result.exit_code == 1
        assert "Cost limit exceeded" in result.output
        assert "Increase --max-cost" in result.output
        assert openai.requests == []

    def test_requires_openrouter_key(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        vendors()

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--max-cost", "1"])

        assert result.exit_code == 1
        assert "Cost checking requires an OpenRouter API key" in result.output

    def test_show_cost_within_limit(self, vendors, monkeypatch, config_path, fixed_tokens):
        write_config(config_path, {"pricing": cached_pricing({"openai/gpt-4o": (1.0, 2.0)})})
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        usage = {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150}
        openai = RecordingHandler(json_response(chat_completion("cheap", usage=usage)))
        vendors(openai=openai)

        result = runner.invoke(
            app,
            ["generate-text", "--prompt", "Hi", "--max-tokens", "200", "--max-cost", "1", "--show-cost"],
        )

        assert result.exit_code == 0, result.output
        assert "Cost estimate for openai/gpt-4o:" in result.output
        assert "Input: ~100 tokens" in result.output
        assert "Output: ~200 tokens" in result.output
        assert "Actual usage:" in result.output
        assert "Fetching model pricing" not in result.output
        assert len(openai.requests) == 1

    def test_zero_max_cost_disables_guard(self, vendors, monkeypatch, config_path, fixed_tokens):
        write_config(config_path, {"pricing": cached_pricing({"openai/gpt-4o": (1000.0, 1000.0)})})
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        vendors(openai=RecordingHandler(json_response(chat_completion("ok"))))

        result = runner.invoke(app, ["generate-text", "--prompt", "Hi", "--max-cost", "0", "--json"])

        assert result.exit_code == 0, result.output
        assert "Warning: estimated cost" in result.output


class TestMediaCommands:
    def test_generate_image_saves_file(self, vendors, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        encoded = base64.b64encode(b"png").decode()
        handler = RecordingHandler(json_response({"data": [{"b64_json": encoded}]}))
        vendors(openai=handler)
        target = tmp_path / "art" / "sunset.png"

        result = runner.invoke(
            app, ["generate-image", "--prompt", "A sunset", "-o", str(target), "--size", "1792x1024", "--json"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"][0]["file_path"] == str(target)
        assert target.read_bytes() == b"png"
        assert handler.last_json["size"] == "1792x1024"

    def test_generate_image_pretty(self, vendors, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        encoded = base64.b64encode(b"png").decode()
        vendors(openai=RecordingHandler(json_response({"data": [{"b64_json": encoded, "revised_prompt": "sunset!"}]})))

        result = runner.invoke(
            app,
            ["generate-image", "--prompt", "A sunset", "-o", str(tmp_path / "s.png"), "--output-format", "pretty"],
        )

        assert result.exit_code == 0, result.output
        assert "[SUCCESS]" in result.output
        assert "Provider: openai" in result.output
        assert f"File: {tmp_path / 's.png'}" in result.output
        assert "Revised prompt: sunset!" in result.output

    def test_generate_image_default_path_uses_output_dir(self, vendors, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("AI_ROUTER_OUTPUT_DIR", str(tmp_path / "media"))
        encoded = base64.b64encode(b"png").decode()
        vendors(openai=RecordingHandler(json_response({"data": [{"b64_json": encoded}]})))

        result = runner.invoke(app, ["generate-image", "--prompt", "A sunset", "--json"])

        assert result.exit_code == 0, result.output
        saved = list((tmp_path / "media").glob("image_*.png"))
        assert len(saved) == 1

    def test_audio_unsupported_by_google(self, vendors, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        vendors()

        result = runner.invoke(app, ["generate-audio", "--prompt", "Hello", "-p", "google"])

        assert result.exit_code == 1
        assert "Provider 'google' does not support audio generation" in result.output

    def test_generate_audio(self, vendors, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        handler = RecordingHandler(httpx.Response(200, content=b"mp3"))
        vendors(openai=handler)
        target = tmp_path / "hello.flac"

        result = runner.invoke(
            app,
            ["generate-audio", "--prompt", "Hello", "-o", str(target), "--voice", "nova", "--format", "flac", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert handler.last_json["voice"] == "nova"
        assert handler.last_json["response_format"] == "flac"
        assert target.read_bytes() == b"mp3"

    def test_video_unsupported_by_openai(self, vendors, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        vendors()

        result = runner.invoke(app, ["generate-video", "--prompt", "Waves"])

        assert result.exit_code == 1
        assert "does not support video generation" in result.output


def test_mask_secret():
    assert _mask_secret("") == ""
    assert _mask_secret("${OPENAI_API_KEY}") == "${OPENAI_API_KEY}"
    assert _mask_secret("short") == "***"
    assert _mask_secret("sk-1234567890abcdef") == "sk-12345...cdef"

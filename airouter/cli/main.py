"""ai-router command line interface."""

import asyncio
import json
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from airouter import __version__
from airouter.cli.output import OUTPUT_FORMATS, format_error, format_output, stream_output
from airouter.config import ConfigStore, RouterConfig
from airouter.errors import AIRouterError, CLIError, ConfigError, CostLimitExceededError
from airouter.observability.logging import configure_logging, get_logger, set_correlation_id
from airouter.pricing import (
    check_cost_limit,
    cost_from_usage,
    ensure_pricing_available,
    estimate_cost,
    format_cost,
    is_pricing_cache_valid,
    qualified_model_id,
)
from airouter.pricing.estimator import DEFAULT_EXPECTED_OUTPUT_TOKENS
from airouter.providers.interfaces import (
    AudioGenerationRequest,
    Capability,
    ImageGenerationRequest,
    ProviderAdapter,
    TextGenerationRequest,
    VideoGenerationRequest,
    get_capability_method,
)
from airouter.providers.media import get_output_path
from airouter.providers.registry import ProviderRegistry, build_default_registry

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, help="ai-router: one CLI for many AI generation APIs")
providers_app = typer.Typer(add_completion=False, help="List and inspect available providers")
config_app = typer.Typer(add_completion=False, help="Manage configuration")
app.add_typer(providers_app, name="providers")
app.add_typer(config_app, name="config")


@dataclass
class CLIState:
    store: ConfigStore
    registry: ProviderRegistry


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ai-router {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Config file path [default: $AI_ROUTER_CONFIG or ~/.config/ai-router/config.json]"
    ),
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    configure_logging()
    set_correlation_id()
    ctx.obj = CLIState(store=ConfigStore(config_path), registry=build_default_registry())


# ============================================================================
# Shared helpers
# ============================================================================


@contextmanager
def _reporting_errors(output_format: str = "text") -> Iterator[None]:
    """Print router and validation errors in the chosen format and exit 1."""
    try:
        yield
    except (AIRouterError, ValidationError) as e:
        logger.debug("command_failed", error_type=type(e).__name__, error=str(e))
        typer.echo(format_error(e, output_format), err=True)
        raise typer.Exit(code=1) from e


def _run(coro: Any, output_format: str) -> None:
    with _reporting_errors(output_format):
        asyncio.run(coro)


def _load_config(state: CLIState) -> RouterConfig:
    config = state.store.load()
    log_file = Path(config.logging.file).expanduser() if config.logging.file else None
    configure_logging(level=config.logging.level, format=config.logging.format, log_file=log_file)
    return config


def _output_format(config: RouterConfig, as_json: bool, output_format: Optional[str]) -> str:
    if as_json:
        return "json"
    chosen = output_format or config.output.format
    if chosen not in OUTPUT_FORMATS:
        raise CLIError(f"Unknown output format: {chosen}. Use one of: {', '.join(OUTPUT_FORMATS)}")
    return chosen


def _select_provider(
    state: CLIState,
    config: RouterConfig,
    provider_id: Optional[str],
    capability: Capability,
) -> ProviderAdapter:
    provider_id = provider_id or config.default_provider
    provider_config = config.provider(provider_id)
    if not provider_config.api_key:
        raise ConfigError(
            f"No API key configured for '{provider_id}'.\n"
            f"Set it with: ai-router config set {provider_id}.apiKey <key>"
        )
    provider = state.registry.get(provider_id, provider_config)
    if get_capability_method(provider, capability) is None:
        raise CLIError(f"Provider '{provider_id}' does not support {capability.value} generation")
    return provider


def _default_output(config: RouterConfig, output: Optional[str], media_type: str, extension: str) -> str:
    if output:
        return output
    return get_output_path(config.output.directory, config.output.filename_pattern, media_type, extension)


def _mask_secret(value: str) -> str:
    if not value or value.startswith("${"):
        return value
    if len(value) <= 12:
        return "***"
    return f"{value[:8]}...{value[-4:]}"


def _resolve(ctx: typer.Context, as_json: bool, output_format: Optional[str]):
    state: CLIState = ctx.obj
    with _reporting_errors("json" if as_json else "text"):
        config = _load_config(state)
        fmt = _output_format(config, as_json, output_format)
    return state, config, fmt


# ============================================================================
# generate-* commands
# ============================================================================


async def _generate_text(
    state: CLIState,
    config: RouterConfig,
    provider_id: Optional[str],
    request: TextGenerationRequest,
    max_cost: Optional[float],
    show_cost: bool,
    fmt: str,
) -> None:
    provider_id = provider_id or config.default_provider
    provider = _select_provider(state, config, provider_id, Capability.TEXT)

    model = (
        request.model
        or config.provider(provider_id).models.text
        or next(iter(provider.get_models(Capability.TEXT)), "unknown")
    )
    full_model = qualified_model_id(provider_id, model)

    pricing = None
    if max_cost is not None:
        openrouter_config = config.providers.get("openrouter")
        if openrouter_config is None or not openrouter_config.api_key:
            raise CLIError(
                "Cost checking requires an OpenRouter API key to fetch pricing.\n"
                "Set it with: ai-router config set openrouter.apiKey <key>"
            )
        if not is_pricing_cache_valid(config.pricing):
            typer.echo("Fetching model pricing...", err=True)
        pricing = await ensure_pricing_available(config, openrouter_config.api_key, state.store)

        estimate = estimate_cost(
            full_model,
            request.prompt,
            request.system_prompt,
            request.max_tokens or DEFAULT_EXPECTED_OUTPUT_TOKENS,
            pricing,
        )
        if show_cost:
            default_note = " (using default pricing)" if estimate.is_estimate else ""
            typer.echo(f"Cost estimate for {full_model}:", err=True)
            typer.echo(f"  Input: ~{estimate.input_tokens} tokens ({format_cost(estimate.input_cost)})", err=True)
            typer.echo(
                f"  Output: ~{estimate.estimated_output_tokens} tokens ({format_cost(estimate.output_cost)})",
                err=True,
            )
            typer.echo(f"  Total: {format_cost(estimate.total_cost)}{default_note}", err=True)
            typer.echo(f"  Max allowed: {format_cost(max_cost)}", err=True)

        try:
            check_cost_limit(estimate, max_cost)
        except CostLimitExceededError as e:
            raise CLIError(
                f"Cost limit exceeded: estimated {format_cost(e.estimate.total_cost)}"
                f" > max {format_cost(e.max_cost)}\nIncrease --max-cost to allow this request."
            ) from e

        if config.cost.warn_threshold > 0 and estimate.total_cost > config.cost.warn_threshold:
            typer.echo(
                f"Warning: estimated cost {format_cost(estimate.total_cost)} is above the"
                f" warning threshold {format_cost(config.cost.warn_threshold)}",
                err=True,
            )

    logger.info("text_request_dispatched", provider=provider_id, model=model, stream=request.stream)

    stream_method = getattr(provider, "generate_text_stream", None)
    if request.stream and callable(stream_method):
        streaming = await stream_method(request)
        await stream_output(streaming.stream, fmt)
        return

    response = await provider.generate_text(request)
    if show_cost and pricing is not None and response.usage is not None:
        actual = cost_from_usage(full_model, response.usage, pricing)
        typer.echo("Actual usage:", err=True)
        typer.echo(
            f"  Input: {response.usage.prompt_tokens} tokens ({format_cost(actual['input_cost'])})", err=True
        )
        typer.echo(
            f"  Output: {response.usage.completion_tokens} tokens ({format_cost(actual['output_cost'])})",
            err=True,
        )
        typer.echo(f"  Total: {format_cost(actual['total_cost'])}", err=True)
    typer.echo(format_output(response, fmt))


@app.command("generate-text")
def generate_text(
    ctx: typer.Context,
    prompt: str = typer.Option(..., "--prompt", help="The prompt to send"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider id [default: from config]"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id [default: from config]"),
    system_prompt: Optional[str] = typer.Option(None, "--system-prompt", help="System prompt for context"),
    temperature: Optional[float] = typer.Option(None, "--temperature", help="Temperature (0-2)"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Maximum tokens to generate"),
    stream: bool = typer.Option(False, "--stream", "-s", help="Stream the response"),
    max_cost: Optional[float] = typer.Option(None, "--max-cost", help="Abort if the estimated cost (USD) is higher"),
    show_cost: bool = typer.Option(False, "--show-cost", help="Show cost estimate before and after the request"),
    as_json: bool = typer.Option(False, "--json", help="Output in JSON format"),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="json, text or pretty"),
) -> None:
    """Generate text using an AI model."""
    state, config, fmt = _resolve(ctx, as_json, output_format)
    with _reporting_errors(fmt):
        request = TextGenerationRequest(
            prompt=prompt,
            model=model,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=stream,
        )
    _run(_generate_text(state, config, provider, request, max_cost, show_cost, fmt), fmt)


async def _generate_media(
    state: CLIState,
    config: RouterConfig,
    provider_id: Optional[str],
    capability: Capability,
    request: Any,
    fmt: str,
) -> None:
    provider = _select_provider(state, config, provider_id, capability)
    method = get_capability_method(provider, capability)
    logger.info(
        "media_request_dispatched",
        provider=provider.meta.id,
        capability=capability.value,
        output_path=request.output_path,
    )
    response = await method(request)
    typer.echo(format_output(response, fmt))


@app.command("generate-image")
def generate_image(
    ctx: typer.Context,
    prompt: str = typer.Option(..., "--prompt", help="The prompt to send"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path"),
    size: str = typer.Option("1024x1024", "--size", help="256x256, 512x512, 1024x1024, 1792x1024 or 1024x1792"),
    quality: str = typer.Option("standard", "--quality", help="standard or hd"),
    style: str = typer.Option("vivid", "--style", help="natural or vivid"),
    n: int = typer.Option(1, "-n", help="Number of images to generate"),
    as_json: bool = typer.Option(False, "--json", help="Output in JSON format"),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="json, text or pretty"),
) -> None:
    """Generate images using an AI model."""
    state, config, fmt = _resolve(ctx, as_json, output_format)
    with _reporting_errors(fmt):
        request = ImageGenerationRequest(
            prompt=prompt,
            model=model,
            output_path=_default_output(config, output, "image", "png"),
            size=size,
            quality=quality,
            style=style,
            n=n,
        )
    _run(_generate_media(state, config, provider, Capability.IMAGE, request, fmt), fmt)


@app.command("generate-audio")
def generate_audio(
    ctx: typer.Context,
    prompt: str = typer.Option(..., "--prompt", help="The text to convert to speech"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path"),
    voice: str = typer.Option("alloy", "--voice", help="alloy, echo, fable, onyx, nova or shimmer"),
    audio_format: str = typer.Option("mp3", "--format", help="mp3, opus, aac, flac or wav"),
    speed: float = typer.Option(1.0, "--speed", help="Playback speed (0.25-4.0)"),
    as_json: bool = typer.Option(False, "--json", help="Output in JSON format"),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="json, text or pretty"),
) -> None:
    """Generate audio (text-to-speech) using an AI model."""
    state, config, fmt = _resolve(ctx, as_json, output_format)
    with _reporting_errors(fmt):
        request = AudioGenerationRequest(
            prompt=prompt,
            model=model,
            output_path=_default_output(config, output, "audio", audio_format),
            voice=voice,
            format=audio_format,
            speed=speed,
        )
    _run(_generate_media(state, config, provider, Capability.AUDIO, request, fmt), fmt)


@app.command("generate-video")
def generate_video(
    ctx: typer.Context,
    prompt: str = typer.Option(..., "--prompt", help="The prompt to send"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path"),
    duration: Optional[int] = typer.Option(None, "--duration", help="Length in seconds"),
    fps: Optional[int] = typer.Option(None, "--fps"),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="e.g. 720p or 1080p"),
    as_json: bool = typer.Option(False, "--json", help="Output in JSON format"),
    output_format: Optional[str] = typer.Option(None, "--output-format", help="json, text or pretty"),
) -> None:
    """Generate video using an AI model."""
    state, config, fmt = _resolve(ctx, as_json, output_format)
    with _reporting_errors(fmt):
        request = VideoGenerationRequest(
            prompt=prompt,
            model=model,
            output_path=_default_output(config, output, "video", "mp4"),
            duration=duration,
            fps=fps,
            resolution=resolution,
        )
    _run(_generate_media(state, config, provider, Capability.VIDEO, request, fmt), fmt)


# ============================================================================
# providers
# ============================================================================


@providers_app.command("list")
def providers_list(ctx: typer.Context) -> None:
    """List available providers and their capabilities."""
    state: CLIState = ctx.obj
    typer.echo("Available providers:\n")
    for provider_id in state.registry.list_providers():
        meta = state.registry.describe(provider_id)
        if meta is None:
            continue
        typer.echo(f"  {meta.name} ({meta.id})")
        typer.echo(f"    Capabilities: {', '.join(c.value for c in meta.capabilities)}")
        typer.echo()


_USAGE_EXAMPLES = {
    Capability.TEXT: 'ai-router generate-text -p {id} --prompt "Hello, world!"',
    Capability.IMAGE: 'ai-router generate-image -p {id} --prompt "A sunset" -o sunset.png',
    Capability.AUDIO: 'ai-router generate-audio -p {id} --prompt "Hello" -o hello.mp3',
    Capability.VIDEO: 'ai-router generate-video -p {id} --prompt "Waves at dusk" -o waves.mp4',
}


@providers_app.command("info")
def providers_info(ctx: typer.Context, provider_id: str = typer.Argument(..., help="Provider id")) -> None:
    """Show details and default models for one provider."""
    state: CLIState = ctx.obj
    with _reporting_errors():
        meta = state.registry.describe(provider_id)
        if meta is None:
            raise CLIError(
                f"Unknown provider: {provider_id}\n"
                f"Available providers: {', '.join(state.registry.list_providers())}"
            )
        provider = state.registry.get(provider_id)

    typer.echo(f"Provider: {meta.name}")
    typer.echo(f"ID: {meta.id}")
    typer.echo(f"Version: {meta.version}")
    typer.echo("\nCapabilities:")
    for capability in meta.capabilities:
        models = provider.get_models(capability)
        suffix = f" ({', '.join(models)})" if models else ""
        typer.echo(f"  - {capability.value}{suffix}")

    examples = [_USAGE_EXAMPLES[c].format(id=meta.id) for c in meta.capabilities if c in _USAGE_EXAMPLES]
    if examples:
        typer.echo("\nUsage example:")
        for example in examples:
            typer.echo(f"  {example}")


# ============================================================================
# config
# ============================================================================


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
) -> None:
    """Create a new config file with defaults."""
    state: CLIState = ctx.obj
    with _reporting_errors():
        path = state.store.init(force=force)
    typer.echo(f"Config file created at: {path}")
    typer.echo("\nNext steps:")
    typer.echo("1. Set your API keys:")
    typer.echo("   ai-router config set openai.apiKey <your-key>")
    typer.echo("   ai-router config set google.apiKey <your-key>")
    typer.echo("   ai-router config set openrouter.apiKey <your-key>")
    typer.echo("\n2. Or set environment variables:")
    typer.echo("   export OPENAI_API_KEY=<your-key>")
    typer.echo("   export GOOGLE_API_KEY=<your-key>")
    typer.echo("   export OPENROUTER_API_KEY=<your-key>")


def _display_config(config: RouterConfig) -> Dict[str, Any]:
    data = config.to_json_dict()
    for provider_data in data.get("providers", {}).values():
        if provider_data.get("apiKey"):
            provider_data["apiKey"] = _mask_secret(provider_data["apiKey"])
    pricing = data.get("pricing")
    if pricing:
        pricing["models"] = f"{len(pricing.get('models', {}))} models"
    return data


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Display the current configuration with API keys masked."""
    state: CLIState = ctx.obj
    with _reporting_errors():
        config = _load_config(state)
    typer.echo(f"Config file: {state.store.path}")
    typer.echo("\nCurrent configuration:")
    typer.echo(json.dumps(_display_config(config), indent=2))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dotted key, e.g. openai.apiKey or defaultProvider"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set a configuration value."""
    state: CLIState = ctx.obj
    with _reporting_errors():
        state.store.set_value(key, value)
    shown = _mask_secret(value) if key.lower().endswith("apikey") else value
    typer.echo(f"Set {key} = {shown}")


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Show the config file path."""
    state: CLIState = ctx.obj
    typer.echo(str(state.store.path))


async def _refresh_pricing(state: CLIState, config: RouterConfig) -> None:
    openrouter_config = config.providers.get("openrouter")
    api_key = openrouter_config.api_key if openrouter_config else None
    typer.echo("Fetching model pricing from OpenRouter...", err=True)
    cache = await ensure_pricing_available(config, api_key or None, state.store, force=True)
    typer.echo(f"Pricing cached for {len(cache.models)} models.")


@config_app.command("refresh-pricing")
def config_refresh_pricing(ctx: typer.Context) -> None:
    """Fetch and cache model pricing from OpenRouter."""
    state: CLIState = ctx.obj
    with _reporting_errors():
        config = _load_config(state)
    _run(_refresh_pricing(state, config), "text")


def main() -> None:
    load_dotenv()
    app()


if __name__ == "__main__":
    main()

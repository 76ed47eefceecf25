"""Rendering of generation responses for the CLI (json, text or pretty)."""

from __future__ import annotations

import json
from typing import AsyncIterator, List, Literal

import typer

from airouter.providers.interfaces import GenerationResponse, TextGenerationResponse

OutputFormat = Literal["json", "text", "pretty"]
OUTPUT_FORMATS = ("json", "text", "pretty")


def format_output(response: GenerationResponse, format: OutputFormat) -> str:
    if format == "json":
        return response.model_dump_json(indent=2, exclude_none=True)

    if format == "text":
        if not response.success:
            return f"Error: {response.error}"
        if isinstance(response.data, str):
            return response.data
        return json.dumps(_jsonable(response.data))

    return _format_pretty(response)


def _jsonable(data: object) -> object:
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    if hasattr(data, "model_dump"):
        return data.model_dump(exclude_none=True)
    return data


def _format_pretty(response: GenerationResponse) -> str:
    if not response.success:
        return "\n".join([typer.style("[ERROR]", fg=typer.colors.RED), response.error or "Unknown error"])

    lines: List[str] = [typer.style("[SUCCESS]", fg=typer.colors.GREEN)]
    if response.meta:
        lines.append(f"Provider: {response.meta.provider}")
        lines.append(f"Model: {response.meta.model}")
        lines.append(f"Duration: {response.meta.duration_ms:.0f}ms")
    if response.usage and response.usage.total_tokens:
        usage = response.usage
        lines.append(
            f"Tokens: {usage.prompt_tokens} prompt + {usage.completion_tokens} completion"
            f" = {usage.total_tokens} total"
        )
    lines.append("---")

    data = response.data
    if isinstance(data, str):
        lines.append(data)
    else:
        for item in data if isinstance(data, list) else [data]:
            if getattr(item, "file_path", None):
                lines.append(f"File: {item.file_path}")
            elif getattr(item, "url", None):
                lines.append(f"URL: {item.url}")
            if getattr(item, "revised_prompt", None):
                lines.append(f"Revised prompt: {item.revised_prompt}")
    return "\n".join(lines)


def format_error(error: BaseException, format: OutputFormat) -> str:
    return format_output(GenerationResponse(success=False, error=str(error)), format)


async def stream_output(stream: AsyncIterator[str], format: OutputFormat) -> str:
    """
    Write a text stream to stdout and return the full text.

    In json mode nothing is printed until the stream ends, then a single
    response document is written.
    """
    chunks: List[str] = []
    async for chunk in stream:
        chunks.append(chunk)
        if format != "json":
            typer.echo(chunk, nl=False)

    text = "".join(chunks)
    if format == "json":
        typer.echo(format_output(TextGenerationResponse(success=True, data=text), "json"))
    else:
        typer.echo()
    return text


__all__ = ["OutputFormat", "OUTPUT_FORMATS", "format_output", "format_error", "stream_output"]

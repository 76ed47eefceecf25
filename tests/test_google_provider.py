"""Tests for the Google AI adapter."""

import base64

import httpx
import pytest

from airouter.errors import ProviderError
from airouter.providers.implementations.google import GoogleProvider, candidate_text
from airouter.providers.interfaces import (
    ImageGenerationRequest,
    ProviderConfig,
    TextGenerationRequest,
    VideoGenerationRequest,
)

from helpers import RecordingHandler, json_response, sse_body


def make_provider(handler, sleeps, **config) -> GoogleProvider:
    provider = GoogleProvider(transport=handler.transport, sleep=sleeps)
    provider.initialize(ProviderConfig(api_key="g-key", **config))
    return provider


def gemini_body(*texts):
    return {
        "candidates": [{"content": {"parts": [{"text": t} for t in texts]}}],
        "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 6, "totalTokenCount": 10},
    }


@pytest.mark.asyncio
async def test_generate_text_uses_key_param_and_system_instruction(sleeps):
    handler = RecordingHandler(json_response(gemini_body("Bonjour", " monde")))
    provider = make_provider(handler, sleeps)

    response = await provider.generate_text(
        TextGenerationRequest(prompt="Say hi", system_prompt="Answer in French", max_tokens=20)
    )

    url = handler.requests[0].url
    assert url.path == "/v1beta/models/gemini-1.5-pro:generateContent"
    assert url.params["key"] == "g-key"
    body = handler.last_json
    assert body["contents"] == [{"role": "user", "parts": [{"text": "Say hi"}]}]
    assert body["systemInstruction"] == {"parts": [{"text": "Answer in French"}]}
    assert body["generationConfig"] == {"maxOutputTokens": 20}
    assert response.data == "Bonjour monde"
    assert response.usage.prompt_tokens == 4
    assert response.usage.completion_tokens == 6


@pytest.mark.asyncio
async def test_generate_text_rejects_missing_candidates(sleeps):
    handler = RecordingHandler(json_response({"promptFeedback": {"blockReason": "SAFETY"}}))
    provider = make_provider(handler, sleeps)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate_text(TextGenerationRequest(prompt="blocked"))

    assert "Invalid response from Google AI API" in str(exc_info.value)
    assert "SAFETY" in str(exc_info.value)
    assert len(handler.requests) == 1


def test_candidate_text_joins_text_parts_only():
    assert candidate_text(gemini_body("a", "b")) == "ab"
    assert candidate_text({"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]}) is None
    assert candidate_text({"candidates": []}) is None


@pytest.mark.asyncio
async def test_stream_requests_sse(sleeps):
    body = sse_body([gemini_body("One"), gemini_body(" two")], done=False)
    handler = RecordingHandler(httpx.Response(200, content=body))
    provider = make_provider(handler, sleeps)

    streaming = await provider.generate_text_stream(TextGenerationRequest(prompt="Count", model="gemini-1.5-flash"))
    chunks = [chunk async for chunk in streaming.stream]

    url = handler.requests[0].url
    assert url.path == "/v1beta/models/gemini-1.5-flash:streamGenerateContent"
    assert url.params["alt"] == "sse"
    assert chunks == ["One", " two"]


@pytest.mark.asyncio
async def test_generate_image_decodes_predictions(sleeps, tmp_path):
    encoded = base64.b64encode(b"jpeg-data").decode()
    handler = RecordingHandler(
        json_response({"predictions": [{"bytesBase64Encoded": encoded, "mimeType": "image/jpeg"}]})
    )
    provider = make_provider(handler, sleeps)

    response = await provider.generate_image(
        ImageGenerationRequest(prompt="mountains", size="1792x1024", output_path=str(tmp_path / "m.jpg"))
    )

    assert handler.requests[0].url.path.endswith(":predict")
    assert handler.last_json["parameters"] == {"sampleCount": 1, "aspectRatio": "16:9"}
    assert response.data[0].file_path == str(tmp_path / "m.jpg")
    assert (tmp_path / "m.jpg").read_bytes() == b"jpeg-data"


@pytest.mark.asyncio
async def test_generate_image_without_output_path_returns_base64(sleeps, tmp_path):
    encoded = base64.b64encode(b"png-data").decode()
    handler = RecordingHandler(json_response({"predictions": [{"bytesBase64Encoded": encoded}]}))
    provider = make_provider(handler, sleeps)

    response = await provider.generate_image(ImageGenerationRequest(prompt="hills"))

    assert response.data[0].base64 == encoded
    assert response.data[0].file_path is None
    assert not (tmp_path / "output").exists()


@pytest.mark.asyncio
async def test_generate_image_without_predictions_fails(sleeps):
    handler = RecordingHandler(json_response({"predictions": []}))
    provider = make_provider(handler, sleeps)

    with pytest.raises(ProviderError, match="Invalid response"):
        await provider.generate_image(ImageGenerationRequest(prompt="void"))


class VeoServer:
    """Simulates submit, two polls and the download of a Veo operation."""

    def __init__(self, final_operation):
        self.final_operation = final_operation
        self.polls = 0
        self.paths = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path.endswith(":predictLongRunning"):
            return json_response({"name": "operations/op-1"})
        if request.url.path == "/v1beta/operations/op-1":
            self.polls += 1
            if self.polls < 2:
                return json_response({"name": "operations/op-1", "done": False})
            return json_response(self.final_operation)
        if request.url.path == "/v1beta/files/vid-1:download":
            assert request.url.params["alt"] == "media"
            assert request.url.params["key"] == "g-key"
            return httpx.Response(200, content=b"mp4-bytes")
        return httpx.Response(404, text="unexpected")


@pytest.mark.asyncio
async def test_generate_video_polls_operation_and_downloads(sleeps, tmp_path):
    server = VeoServer(
        {
            "name": "operations/op-1",
            "done": True,
            "response": {
                "generateVideoResponse": {
                    "generatedSamples": [
                        {"video": {"uri": "https://generativelanguage.googleapis.com/v1beta/files/vid-1:download?alt=media"}}
                    ]
                }
            },
        }
    )
    provider = make_provider(RecordingHandler(server), sleeps)
    target = tmp_path / "clip.mp4"

    response = await provider.generate_video(
        VideoGenerationRequest(prompt="waves", duration=5, output_path=str(target))
    )

    assert server.polls == 2
    assert sleeps.calls == [GoogleProvider.poll_interval_seconds] * 2
    assert response.data.file_path == str(target)
    assert response.data.format == "mp4"
    assert response.data.duration == 5
    assert target.read_bytes() == b"mp4-bytes"


FINISHED_OPERATION = {
    "name": "operations/op-1",
    "done": True,
    "response": {
        "generateVideoResponse": {
            "generatedSamples": [
                {"video": {"uri": "https://generativelanguage.googleapis.com/v1beta/files/vid-1:download?alt=media"}}
            ]
        }
    },
}


@pytest.mark.asyncio
async def test_generate_video_retries_transient_poll_failure(sleeps, tmp_path):
    server = VeoServer(FINISHED_OPERATION)
    handler = RecordingHandler(
        json_response({"name": "operations/op-1"}),
        httpx.Response(503, text="unavailable"),
        server,
    )
    provider = make_provider(handler, sleeps)

    response = await provider.generate_video(
        VideoGenerationRequest(prompt="waves", output_path=str(tmp_path / "clip.mp4"))
    )

    poll = GoogleProvider.poll_interval_seconds
    assert sleeps.calls == [poll, 1.0, poll]
    assert server.polls == 2
    assert (tmp_path / "clip.mp4").read_bytes() == b"mp4-bytes"
    assert response.data.file_path == str(tmp_path / "clip.mp4")


@pytest.mark.asyncio
async def test_generate_video_rejects_non_object_poll_result(sleeps):
    handler = RecordingHandler(
        json_response({"name": "operations/op-1"}),
        json_response(["not", "an", "operation"]),
    )
    provider = make_provider(handler, sleeps)

    with pytest.raises(ProviderError, match="Invalid response"):
        await provider.generate_video(VideoGenerationRequest(prompt="waves"))


@pytest.mark.asyncio
async def test_generate_video_reports_operation_error(sleeps):
    server = VeoServer({"name": "operations/op-1", "done": True, "error": {"message": "quota exhausted"}})
    provider = make_provider(RecordingHandler(server), sleeps)

    with pytest.raises(ProviderError, match="Video generation failed: quota exhausted"):
        await provider.generate_video(VideoGenerationRequest(prompt="waves"))


@pytest.mark.asyncio
async def test_generate_video_gives_up_after_max_polls(sleeps):
    handler = RecordingHandler(
        json_response({"name": "operations/op-1"}),
        json_response({"name": "operations/op-1", "done": False}),
    )
    provider = make_provider(handler, sleeps)
    provider.max_polls = 3

    with pytest.raises(ProviderError, match="did not finish"):
        await provider.generate_video(VideoGenerationRequest(prompt="waves"))

    assert len(sleeps.calls) == 3

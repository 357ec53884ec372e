"""Tests for simage.core.pipeline — request orchestration."""

import asyncio

import httpx
import pytest

from simage.core.errors import AuthError, ValidationError
from simage.core.pipeline import (
    GenerationInput,
    GenerationPipeline,
    GenerationRequest,
    PipelineStage,
    validate_input,
)
from tests.conftest import PNG_B64

DEFAULT = "google/gemini-2.5-flash-image-preview"
FULL_TRACE = [
    PipelineStage.IDLE,
    PipelineStage.VALIDATING,
    PipelineStage.ENCODING,
    PipelineStage.SENDING,
    PipelineStage.EXTRACTING,
]


@pytest.fixture
def pipeline(test_config, upstream_client) -> GenerationPipeline:
    return GenerationPipeline(test_config, upstream_client)


def run(pipeline, **fields):
    fields.setdefault("api_key", "sk-or-test")
    return asyncio.run(pipeline.run(GenerationInput(**fields)))


class TestValidateInput:
    """validate_input ordering and rules."""

    def test_valid_minimal(self):
        request = validate_input(GenerationInput(prompt="a cat", api_key="k"), DEFAULT)
        assert request == GenerationRequest(prompt="a cat", model=DEFAULT, credential="k")

    def test_credential_checked_first(self):
        """Missing credential wins over a missing prompt."""
        with pytest.raises(AuthError):
            validate_input(GenerationInput(prompt=None, api_key=None), DEFAULT)

    @pytest.mark.parametrize("prompt", [None, "", "   \n\t", 42, ["a"]])
    def test_bad_prompt(self, prompt):
        with pytest.raises(ValidationError, match="A prompt is required"):
            validate_input(GenerationInput(prompt=prompt, api_key="k"), DEFAULT)

    def test_prompt_kept_verbatim(self):
        request = validate_input(GenerationInput(prompt=" padded ", api_key="k"), DEFAULT)
        assert request.prompt == " padded "

    def test_reference_image_parsed(self):
        request = validate_input(
            GenerationInput(prompt="p", api_key="k", image_data=f"data:image/png;base64,{PNG_B64}"),
            DEFAULT,
        )
        assert request.reference_image.mime_type == "image/png"

    def test_empty_image_data_means_no_image(self):
        request = validate_input(GenerationInput(prompt="p", api_key="k", image_data=""), DEFAULT)
        assert request.reference_image is None

    def test_credential_not_in_repr(self):
        request = validate_input(GenerationInput(prompt="p", api_key="sk-or-secret"), DEFAULT)
        assert "sk-or-secret" not in repr(request)
        assert "sk-or-secret" not in repr(GenerationInput(prompt="p", api_key="sk-or-secret"))


class TestPipelineSuccess:
    def test_image_url_result(self, pipeline, fake_upstream):
        fake_upstream.respond({"images": ["https://cdn.test/out.png"]})
        outcome = run(pipeline, prompt="a lighthouse")
        assert outcome.succeeded
        assert outcome.error is None
        assert outcome.result.image_url == "https://cdn.test/out.png"
        assert outcome.trace == FULL_TRACE + [PipelineStage.SUCCEEDED]

    def test_reference_image_is_sent_first(self, pipeline, fake_upstream):
        run(pipeline, prompt="add snow", image_data=PNG_B64)
        content = fake_upstream.last_json()["messages"][0]["content"]
        assert content[0]["image_url"]["url"] == f"data:image/png;base64,{PNG_B64}"
        assert "add snow" in content[1]["text"]

    def test_default_model_used(self, pipeline, fake_upstream):
        run(pipeline, prompt="p")
        assert fake_upstream.last_json()["model"] == DEFAULT

    def test_selected_model_used(self, pipeline, fake_upstream):
        run(pipeline, prompt="p", model="black-forest-labs/flux-1.1-pro")
        assert fake_upstream.last_json()["model"] == "black-forest-labs/flux-1.1-pro"


class TestPipelineFailures:
    def test_validation_makes_no_network_call(self, pipeline, fake_upstream):
        outcome = run(pipeline, prompt="p", image_data="AAAAA")
        assert outcome.stage is PipelineStage.FAILED
        assert outcome.error.status_code == 400
        assert outcome.trace == [PipelineStage.IDLE, PipelineStage.VALIDATING, PipelineStage.FAILED]
        assert fake_upstream.requests == []

    def test_missing_credential(self, pipeline, fake_upstream):
        outcome = run(pipeline, prompt="p", api_key="")
        assert outcome.error.status_code == 401
        assert fake_upstream.requests == []

    def test_unknown_model(self, pipeline, fake_upstream):
        outcome = run(pipeline, prompt="p", model="acme/unknown")
        assert outcome.error.status_code == 400
        assert fake_upstream.requests == []

    def test_no_image_is_not_found(self, pipeline, fake_upstream):
        fake_upstream.respond({"choices": [{"message": {"content": "I cannot draw that."}}]})
        outcome = run(pipeline, prompt="p")
        assert outcome.stage is PipelineStage.FAILED
        assert outcome.error.status_code == 500
        assert outcome.error.error == "No valid response from the API."
        assert outcome.trace == FULL_TRACE + [PipelineStage.FAILED]

    def test_credit_error(self, pipeline, fake_upstream):
        fake_upstream.respond({"error": {"message": "Insufficient credits"}}, status_code=402)
        outcome = run(pipeline, prompt="p")
        assert outcome.error.status_code == 402
        assert outcome.trace[-2] is PipelineStage.SENDING

    def test_transport_error(self, pipeline, fake_upstream):
        fake_upstream.fail_with(httpx.ConnectError)
        outcome = run(pipeline, prompt="p")
        assert outcome.error.status_code == 502

    def test_unexpected_exception_becomes_500(self, pipeline, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline.client, "send", explode)
        outcome = run(pipeline, prompt="p")
        assert outcome.error.status_code == 500
        assert outcome.error.to_payload() == {"error": "Internal Server Error", "details": "boom"}

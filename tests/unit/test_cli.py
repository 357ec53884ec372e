"""Tests for simage.cli — the command-line client.

Network calls are avoided by patching ``UpstreamClient`` inside the CLI
module with a factory that injects the fake provider's transport.
"""

import base64

import pytest

from simage import cli
from simage.core.errors import ValidationError
from simage.core.preferences import PreferenceStore
from simage.core.upstream import UpstreamClient
from tests.conftest import PNG_B64


@pytest.fixture
def patched_client(monkeypatch, fake_upstream):
    """Route every client the CLI creates through the fake provider."""

    def factory(settings):
        return UpstreamClient(settings, transport=fake_upstream.transport)

    monkeypatch.setattr(cli, "UpstreamClient", factory)
    return fake_upstream


@pytest.fixture
def stored_key(test_config):
    store = PreferenceStore(test_config.preferences_file)
    store.set_api_key("sk-or-stored")
    return store


class TestSettingsCommand:
    def test_updates_and_masks(self, test_config, capsys):
        code = cli.main(
            ["settings", "--api-key", "sk-or-v1-0123456789", "--theme", "dark"],
            settings=test_config,
        )
        out = capsys.readouterr().out
        assert code == 0
        assert "sk-o...6789" in out
        assert "0123456789" not in out
        assert "theme:   dark" in out
        assert PreferenceStore(test_config.preferences_file).load().theme == "dark"

    def test_rejects_unknown_model(self, test_config):
        with pytest.raises(SystemExit):
            cli.main(["settings", "--model", "acme/unknown"], settings=test_config)


class TestGenerateCommand:
    def test_prints_url(self, test_config, stored_key, patched_client, capsys):
        patched_client.respond({"images": ["https://cdn.test/out.png"]})
        code = cli.main(["generate", "a lighthouse"], settings=test_config)
        assert code == 0
        assert capsys.readouterr().out.strip() == "https://cdn.test/out.png"
        assert patched_client.last_request.headers["Authorization"] == "Bearer sk-or-stored"

    def test_writes_data_uri_output(self, test_config, stored_key, patched_client, temp_dir):
        patched_client.respond({"images": [{"b64_json": PNG_B64}]})
        output = temp_dir / "out" / "image.png"
        code = cli.main(["generate", "a lighthouse", "--output", str(output)], settings=test_config)
        assert code == 0
        assert output.read_bytes() == base64.b64decode(PNG_B64)

    def test_non_base64_data_uri_output_fails(
        self, test_config, stored_key, patched_client, temp_dir, capsys
    ):
        patched_client.respond({"result": {"url": "data:text/plain,hello"}})
        output = temp_dir / "image.png"
        code = cli.main(["generate", "a lighthouse", "--output", str(output)], settings=test_config)
        assert code == 1
        captured = capsys.readouterr()
        assert "not a base64 image" in captured.err
        assert captured.out.strip() == "data:text/plain,hello"
        assert not output.exists()

    def test_missing_key_fails(self, test_config, patched_client, capsys):
        code = cli.main(["generate", "a lighthouse"], settings=test_config)
        assert code == 1
        assert "API Key is missing" in capsys.readouterr().err
        assert patched_client.requests == []

    def test_preset_with_image(self, test_config, stored_key, patched_client, temp_dir):
        image = temp_dir / "photo.png"
        image.write_bytes(base64.b64decode(PNG_B64))
        code = cli.main(
            ["generate", "--image", str(image), "--preset", "vintage"], settings=test_config
        )
        assert code == 0
        content = patched_client.last_json()["messages"][0]["content"]
        assert content[0]["image_url"]["url"] == f"data:image/png;base64,{PNG_B64}"
        assert "vintage film look" in content[1]["text"]

    def test_preset_without_image_fails(self, test_config, stored_key, patched_client, capsys):
        code = cli.main(["generate", "--preset", "cinematic"], settings=test_config)
        assert code == 1
        assert "upload an image" in capsys.readouterr().err
        assert patched_client.requests == []

    def test_upstream_error_reported(self, test_config, stored_key, patched_client, capsys):
        patched_client.respond({"error": {"message": "Insufficient credits"}}, status_code=402)
        code = cli.main(["generate", "a lighthouse"], settings=test_config)
        assert code == 1
        assert "Error (402)" in capsys.readouterr().err


class TestCreditsCommand:
    def test_prints_key_info(self, test_config, stored_key, patched_client, capsys):
        patched_client.respond({"data": {"usage": 2.5, "limit": None}})
        code = cli.main(["credits"], settings=test_config)
        assert code == 0
        assert '"usage": 2.5' in capsys.readouterr().out

    def test_missing_key(self, test_config, patched_client, capsys):
        code = cli.main(["credits"], settings=test_config)
        assert code == 1
        assert "API Key missing" in capsys.readouterr().err


class TestHelpers:
    def test_write_output_skips_urls(self, temp_dir):
        assert not cli.write_output("https://x/a.png", temp_dir / "a.png")

    def test_write_output_rejects_non_base64_data_uri(self, temp_dir):
        with pytest.raises(ValidationError, match="not a base64 image"):
            cli.write_output("data:text/plain,hello", temp_dir / "a.txt")

    def test_write_output_ignores_line_breaks(self, temp_dir):
        output = temp_dir / "a.png"
        wrapped = PNG_B64[:8] + "\n" + PNG_B64[8:]
        assert cli.write_output(f"data:image/png;base64,{wrapped}", output)
        assert output.read_bytes() == base64.b64decode(PNG_B64)

    def test_unreadable_image(self, temp_dir, stored_key):
        args = cli.build_parser().parse_args(
            ["generate", "p", "--image", str(temp_dir / "missing.png")]
        )
        with pytest.raises(ValidationError, match="Could not read"):
            cli.resolve_generation_input(args, stored_key)

"""
Unit tests for AI title generation.
"""

from unittest.mock import MagicMock

import httpx
import pytest
from openai import APIConnectionError

from photofolio.errors import ConfigurationError, TransientIOError
from photofolio.services.title_generator import TitleGenerator, clean_title, title_from_filename


def _completion(content):
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = content
    return completion


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion('"A Quiet Beach at Dawn."')
    return client


class TestCleanTitle:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('"Sunset Over Water"', "Sunset Over Water"),
            ("“Golden Hour”", "Golden Hour"),
            ("One two three four five six seven", "One two three four five"),
            ("  Misty morning.  ", "Misty morning"),
            ("", ""),
        ],
    )
    def test_clean_title(self, raw, expected):
        assert clean_title(raw) == expected

    @pytest.mark.parametrize(
        "filename,expected",
        [("summer_beach-01.jpg", "summer beach 01"), ("IMG.PNG", "IMG"), (".jpg", ".jpg"), ("", "Untitled")],
    )
    def test_title_from_filename(self, filename, expected):
        assert title_from_filename(filename) == expected


class TestTitleGenerator:
    """Vision model calls."""

    def test_generate_title(self, openai_client, sample_image_data):
        generator = TitleGenerator(api_key="sk-test", model="vision-test", client=openai_client)

        title = generator.generate_title(sample_image_data)

        assert title == "A Quiet Beach at Dawn"
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "vision-test"
        assert kwargs["max_tokens"] == 20
        content = kwargs["messages"][0]["content"]
        assert content[0]["type"] == "text"
        assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    def test_missing_api_key(self, sample_image_data):
        generator = TitleGenerator()

        with pytest.raises(ConfigurationError):
            generator.generate_title(sample_image_data)

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        assert TitleGenerator().api_key == "sk-env"

    def test_api_failure(self, openai_client, sample_image_data):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        openai_client.chat.completions.create.side_effect = APIConnectionError(request=request)
        generator = TitleGenerator(api_key="sk-test", client=openai_client)

        with pytest.raises(TransientIOError) as exc_info:
            generator.generate_title(sample_image_data)

        assert exc_info.value.code == "title_generation_failed"

    def test_empty_response(self, openai_client, sample_image_data):
        openai_client.chat.completions.create.return_value = _completion('""')
        generator = TitleGenerator(api_key="sk-test", client=openai_client)

        with pytest.raises(TransientIOError):
            generator.generate_title(sample_image_data)


class TestSuggestTitle:
    """Fallback to the filename."""

    def test_uses_generated_title(self, openai_client, sample_image_data):
        generator = TitleGenerator(api_key="sk-test", client=openai_client)

        assert generator.suggest_title(sample_image_data, "img_001.png") == "A Quiet Beach at Dawn"

    def test_falls_back_without_api_key(self, sample_image_data):
        assert TitleGenerator().suggest_title(sample_image_data, "summer_beach.png") == "summer beach"

    def test_falls_back_on_unreadable_image(self, openai_client):
        generator = TitleGenerator(api_key="sk-test", client=openai_client)

        assert generator.suggest_title(b"not an image", "broken-file.jpg") == "broken file"
        openai_client.chat.completions.create.assert_not_called()

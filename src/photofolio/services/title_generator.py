"""AI-generated photo titles."""

from pathlib import Path

from openai import OpenAI, OpenAIError

from ..config import get_env
from ..errors import ConfigurationError, ImageProcessingError, TransientIOError
from ..logging_config import get_logger
from .image_processor import ImageProcessor

logger = get_logger(__name__)

MAX_TITLE_WORDS = 5

TITLE_PROMPT = (
    "You are an expert in photography. Generate a short, descriptive title for the following image. "
    f"The title should be no more than {MAX_TITLE_WORDS} words. Do not include quotes in the title."
)


def clean_title(raw: str) -> str:
    """Strip quotes and trailing punctuation, keep at most five words."""
    words = raw.replace('"', "").replace("'", "").replace("“", "").replace("”", "").split()
    return " ".join(words[:MAX_TITLE_WORDS]).strip(" .")


def title_from_filename(filename: str) -> str:
    stem = Path(filename).stem.replace("_", " ").replace("-", " ").strip()
    return stem or "Untitled"


class TitleGenerator:
    """Asks a vision model for a short title describing a photo."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: OpenAI | None = None,
        image_processor: ImageProcessor | None = None,
    ):
        self.api_key = api_key or get_env("OPENAI_API_KEY")
        self.model = model or get_env("OPENAI_MODEL", "gpt-4o-mini")
        self._client = client
        self.image_processor = image_processor or ImageProcessor()

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("OPENAI_API_KEY is not configured.", details={"key": "OPENAI_API_KEY"})
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def generate_title(self, image_data: bytes) -> str:
        """
        Generate a title of at most five words.

        Raises:
            ConfigurationError: No API key
            ImageProcessingError: Image cannot be decoded
            TransientIOError: The model call failed or returned nothing
        """
        client = self.client
        data_uri = self.image_processor.to_data_uri(self.image_processor.prepare_preview(image_data))

        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": TITLE_PROMPT},
                            {"type": "image_url", "image_url": {"url": data_uri}},
                        ],
                    }
                ],
                max_tokens=20,
            )
        except OpenAIError as e:
            raise TransientIOError(
                f"Title generation failed: {e}",
                code="title_generation_failed",
                user_message="Could not generate a title. Please enter one manually.",
                original_exception=e,
            ) from e

        title = clean_title(completion.choices[0].message.content or "")
        if not title:
            raise TransientIOError(
                "Title generation returned an empty title",
                code="title_generation_failed",
                user_message="Could not generate a title. Please enter one manually.",
            )

        logger.info("title_generated", model=self.model, title=title)
        return title

    def suggest_title(self, image_data: bytes, filename: str) -> str:
        """Generated title, or one derived from the filename when generation is unavailable."""
        try:
            return self.generate_title(image_data)
        except (ConfigurationError, TransientIOError, ImageProcessingError) as e:
            logger.warning("title_generation_fallback", filename=filename, error=str(e))
            return title_from_filename(filename)

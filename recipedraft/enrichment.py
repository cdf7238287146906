import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence

import openai

from recipedraft.config import Config
from recipedraft.errors import EnrichmentError
from recipedraft.models import RecipeDraft


logger = logging.getLogger(__name__)


MAX_PROMPT_CHARS = 900
IMAGE_ATTEMPTS = 3

PHOTO_STYLE = (
    ", shot with natural lighting, shallow depth of field, garnished beautifully, "
    "restaurant quality presentation, high resolution, food styling, "
    "appetizing colors"
)

CATEGORY_CONTEXT = {
    "dessert": ", beautifully plated dessert",
    "breakfast": ", appetizing breakfast dish",
    "main course": ", elegantly presented main dish",
    "lunch": ", elegantly presented main dish",
    "dinner": ", elegantly presented main dish",
    "appetizer": ", attractive appetizer",
    "snack": ", delicious snack",
    "beverage": ", refreshing beverage",
    "soup": ", steaming bowl of soup",
    "salad": ", fresh and colorful salad",
}


class EmbeddingCapability(Protocol):
    async def generate_embedding_from_recipe(
        self,
        name: str,
        description: str,
        ingredients: Sequence[str],
        category: str,
        dietary: Sequence[str],
    ) -> list[float]:
        ...


class ImageCapability(Protocol):
    async def generate_recipe_image(self, draft: RecipeDraft) -> str:
        ...


def embedding_text(
    name: str,
    description: str,
    ingredients: Sequence[str],
    category: str,
    dietary: Sequence[str],
) -> str:
    return (
        f"{name} {description} Ingredients: {', '.join(ingredients)} "
        f"Category: {category} Dietary: {', '.join(dietary)}"
    )


def build_recipe_image_prompt(draft: RecipeDraft) -> str:
    subject = draft.name.lower()
    if draft.description:
        subject += f", {draft.description.lower()}"

    cuisine = draft.cuisine.lower()
    style = f", {cuisine} style" if cuisine and cuisine != "unknown" else ""
    context = CATEGORY_CONTEXT.get(draft.category.lower(), "")

    prompt = (
        f"A professional food photography shot of {subject}{style}{context}"
        f"{PHOTO_STYLE}"
    )
    return prompt[:MAX_PROMPT_CHARS]


class OpenAIEmbeddingService:
    def __init__(
        self,
        config: Config,
        *,
        openai_client: openai.AsyncClient | None = None,
    ) -> None:
        self.model = config.embedding_model
        self.openai_client = (
            openai.AsyncClient(api_key=config.openai_api_key)
            if openai_client is None
            else openai_client
        )

    async def embeddings(self, content: str) -> list[float]:
        try:
            emb = await self.openai_client.embeddings.create(
                input=content,
                model=self.model,
                encoding_format="float",
            )
        except openai.OpenAIError as e:
            raise EnrichmentError(f"Failed to generate embedding: {e}") from e
        if not emb.data:
            raise EnrichmentError("No embedding data received.")
        return emb.data[0].embedding

    async def generate_embedding_from_recipe(
        self,
        name: str,
        description: str,
        ingredients: Sequence[str],
        category: str,
        dietary: Sequence[str],
    ) -> list[float]:
        text = embedding_text(name, description, ingredients, category, dietary)
        return await self.embeddings(text)


class OpenAIImageService:
    """Generates a photo for a recipe and returns its url.

    The url is the provider's own and is short lived; copying the image into
    permanent storage is left to whoever persists the finished recipe.
    """

    def __init__(
        self,
        config: Config,
        *,
        openai_client: openai.AsyncClient | None = None,
        attempts: int = IMAGE_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.model = config.image_model
        self.size = config.image_size
        self.attempts = attempts
        self._sleep = asyncio.sleep if sleep is None else sleep
        self.openai_client = (
            openai.AsyncClient(
                api_key=config.openai_api_key,
                timeout=config.image_timeout,
            )
            if openai_client is None
            else openai_client
        )

    async def _generate(self, prompt: str) -> str:
        resp = await self.openai_client.images.generate(
            model=self.model,
            prompt=prompt,
            n=1,
            size=self.size,  # pyright: ignore[reportArgumentType]
            quality="standard",
            response_format="url",
        )
        if not resp.data or not resp.data[0].url:
            raise EnrichmentError("No image data received.")
        return resp.data[0].url

    async def generate_image_from_prompt(self, prompt: str) -> str:
        for attempt in range(1, self.attempts + 1):
            logger.info("Image generation attempt %d/%d", attempt, self.attempts)
            try:
                return await self._generate(prompt)
            except (openai.OpenAIError, EnrichmentError) as e:
                logger.warning("Image attempt %d failed: %s", attempt, e)
                if attempt == self.attempts:
                    raise EnrichmentError(
                        f"Failed to generate image after {self.attempts} attempts: {e}"
                    ) from e
                await self._sleep(attempt)
        raise EnrichmentError("Image generation was not attempted.")

    async def generate_recipe_image(self, draft: RecipeDraft) -> str:
        prompt = build_recipe_image_prompt(draft)
        logger.info("Generating image for recipe %r", draft.name)
        logger.debug("Image prompt: %s", prompt)
        return await self.generate_image_from_prompt(prompt)

import logging

from recipedraft.enrichment import EmbeddingCapability, ImageCapability
from recipedraft.errors import EnrichmentError
from recipedraft.models import RecipeDraft
from recipedraft.store import DraftStore


logger = logging.getLogger(__name__)


class Finalizer:
    """Adds an embedding and an image to a stored draft.

    Either capability may be missing. Neither is allowed to fail the draft:
    errors are logged and the draft is returned with whatever succeeded.
    Existing embeddings and images are never replaced.
    """

    def __init__(
        self,
        store: DraftStore,
        *,
        embeddings: EmbeddingCapability | None = None,
        images: ImageCapability | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.images = images

    async def _embed(self, draft: RecipeDraft) -> bool:
        if self.embeddings is None or draft.has_embedding:
            return False
        try:
            embedding = await self.embeddings.generate_embedding_from_recipe(
                draft.name,
                draft.description,
                draft.ingredients,
                draft.category,
                draft.dietary_preferences,
            )
        except EnrichmentError as e:
            logger.warning("Failed to generate embedding for draft %s: %s", draft.id, e)
            return False
        except Exception:
            logger.exception("Unexpected error generating embedding for draft %s", draft.id)
            return False
        if not embedding:
            logger.warning("Empty embedding returned for draft %s", draft.id)
            return False
        draft.embedding = embedding
        return True

    async def _illustrate(self, draft: RecipeDraft) -> bool:
        if self.images is None or draft.image_url:
            return False
        try:
            url = await self.images.generate_recipe_image(draft)
        except EnrichmentError as e:
            logger.warning("Failed to generate image for draft %s: %s", draft.id, e)
            return False
        except Exception:
            logger.exception("Unexpected error generating image for draft %s", draft.id)
            return False
        if not url:
            return False
        draft.image_url = url
        return True

    async def finalize(self, draft_id: str) -> RecipeDraft:
        draft = await self.store.get(draft_id)
        embedded = await self._embed(draft)
        illustrated = await self._illustrate(draft)
        if embedded or illustrated:
            await self.store.update(draft)
            logger.info(
                "Finalized draft %s (embedding: %s, image: %s)",
                draft_id,
                embedded,
                illustrated,
            )
        else:
            logger.info("Nothing to finalize for draft %s", draft_id)
        return draft

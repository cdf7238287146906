"""Generate a recipe draft from the command line."""
import argparse
import asyncio
import logging
from typing import Sequence

from rich import print

from recipedraft.config import Config
from recipedraft.enrichment import OpenAIEmbeddingService, OpenAIImageService
from recipedraft.finalizer import Finalizer
from recipedraft.generation import GenerationClient
from recipedraft.nutrition import NutritionCalculator
from recipedraft.services import generate_recipe
from recipedraft.store import DraftStore, MemoryBackend


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("query", help="What to cook, e.g. 'chickpea curry'.")
    parser.add_argument(
        "--diet",
        action="append",
        default=[],
        help="Dietary preference the recipe must respect. Repeatable.",
    )
    parser.add_argument(
        "--allergen",
        action="append",
        default=[],
        help="Allergen the recipe must avoid. Repeatable.",
    )
    parser.add_argument(
        "--redis",
        action="store_true",
        help="Keep drafts in redis instead of memory.",
    )
    return parser.parse_args(argv)


async def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    config = Config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = (
        DraftStore.from_config(config)
        if args.redis
        else DraftStore(MemoryBackend(), ttl_seconds=config.draft_ttl_seconds)
    )
    generator = GenerationClient(config)
    finalizer = (
        Finalizer(
            store,
            embeddings=OpenAIEmbeddingService(config),
            images=OpenAIImageService(config),
        )
        if config.has_openai
        else None
    )

    try:
        draft = await generate_recipe(
            args.query,
            generator=generator,
            calculator=NutritionCalculator(generator),
            store=store,
            finalizer=finalizer,
            dietary_preferences=args.diet,
            allergens=args.allergen,
        )
    finally:
        await generator.close()

    print(draft.model_dump(exclude={"embedding"}))
    print(f"Embedding: {len(draft.embedding)} dimensions")


if __name__ == "__main__":
    asyncio.run(main())

"""The recipe draft flows. Every collaborator is passed in by keyword."""
import logging
from typing import Sequence

from recipedraft.errors import RecipeDraftError
from recipedraft.finalizer import Finalizer
from recipedraft.generation import GenerationClient
from recipedraft.models import Macros, RecipeDraft
from recipedraft.nutrition import NutritionCalculator, apply_macros
from recipedraft.prompts import build_recipe_prompt
from recipedraft.store import DraftStore


logger = logging.getLogger(__name__)


async def generate_basic_recipe(
    query: str,
    *,
    generator: GenerationClient,
    store: DraftStore,
    dietary_preferences: Sequence[str] = (),
    allergens: Sequence[str] = (),
    user_id: str = "",
) -> RecipeDraft:
    prompt = build_recipe_prompt(
        query,
        dietary_preferences=dietary_preferences,
        allergens=allergens,
        basic=True,
    )
    generation = await generator.generate(prompt)
    draft = RecipeDraft.from_record(
        generation.record,
        user_id=user_id,
        dietary_preferences=list(dietary_preferences),
    )
    await store.save(draft)
    return draft


async def calculate_recipe_nutrition(
    draft_id: str,
    *,
    calculator: NutritionCalculator,
    store: DraftStore,
) -> Macros:
    draft = await store.get(draft_id)
    macros = await calculator.calculate(draft.ingredients)
    apply_macros(draft, macros)
    await store.update(draft)
    return macros


async def finalize_recipe(draft_id: str, *, finalizer: Finalizer) -> RecipeDraft:
    return await finalizer.finalize(draft_id)


async def _try_nutrition(
    draft: RecipeDraft,
    *,
    calculator: NutritionCalculator,
    store: DraftStore,
) -> RecipeDraft:
    """Nutrition is an enhancement; without it the draft is still returned."""
    try:
        await calculate_recipe_nutrition(draft.id, calculator=calculator, store=store)
    except RecipeDraftError as e:
        logger.warning("Failed to calculate nutrition for draft %s: %s", draft.id, e)
        return draft
    return await store.get(draft.id)


async def generate_recipe(
    query: str,
    *,
    generator: GenerationClient,
    calculator: NutritionCalculator,
    store: DraftStore,
    finalizer: Finalizer | None = None,
    dietary_preferences: Sequence[str] = (),
    allergens: Sequence[str] = (),
    user_id: str = "",
) -> RecipeDraft:
    """Basic generation, then nutrition, then finalization.

    Only the generation step can fail the whole flow.
    """
    draft = await generate_basic_recipe(
        query,
        generator=generator,
        store=store,
        dietary_preferences=dietary_preferences,
        allergens=allergens,
        user_id=user_id,
    )
    draft = await _try_nutrition(draft, calculator=calculator, store=store)
    if finalizer is None:
        return draft
    try:
        return await finalize_recipe(draft.id, finalizer=finalizer)
    except RecipeDraftError as e:
        logger.warning("Failed to finalize draft %s: %s", draft.id, e)
        return draft


async def modify_recipe(
    draft_id: str,
    query: str,
    *,
    generator: GenerationClient,
    calculator: NutritionCalculator,
    store: DraftStore,
    dietary_preferences: Sequence[str] = (),
    allergens: Sequence[str] = (),
) -> RecipeDraft:
    draft = await store.get(draft_id)
    prompt = build_recipe_prompt(
        query,
        dietary_preferences=dietary_preferences,
        allergens=allergens,
        original=draft,
    )
    generation = await generator.generate(prompt)
    draft.apply_content(generation.draft)
    if dietary_preferences:
        draft.dietary_preferences = list(dietary_preferences)
    await store.update(draft)
    logger.info("Modified draft %s", draft.id)
    return await _try_nutrition(draft, calculator=calculator, store=store)


async def fork_recipe(
    original: RecipeDraft,
    query: str,
    *,
    generator: GenerationClient,
    calculator: NutritionCalculator,
    store: DraftStore,
    dietary_preferences: Sequence[str] = (),
    allergens: Sequence[str] = (),
    user_id: str = "",
) -> RecipeDraft:
    """A new draft for `user_id` derived from someone else's recipe."""
    prompt = build_recipe_prompt(
        query,
        dietary_preferences=dietary_preferences,
        allergens=allergens,
        original=original,
    )
    generation = await generator.generate(prompt)
    draft = RecipeDraft.from_record(
        generation.record,
        user_id=user_id,
        dietary_preferences=list(dietary_preferences),
    )
    await store.save(draft)
    logger.info("Forked %r into draft %s", original.name, draft.id)
    return await _try_nutrition(draft, calculator=calculator, store=store)

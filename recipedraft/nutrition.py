import logging
import math
import re
from typing import Iterable, Protocol

from pydantic import ValidationError

from recipedraft.decoder import strip_code_fence
from recipedraft.errors import DecodeError
from recipedraft.models import Macros, RecipeDraft
from recipedraft.prompts import Prompt, build_nutrition_prompt


logger = logging.getLogger(__name__)


SERVINGS_NUMBER = re.compile(r"\d+\.?\d*")


class Completer(Protocol):
    async def complete(self, prompt: Prompt) -> str:
        ...


def extract_servings(text: str) -> float:
    """Leading serving count in free text, 1 when there is none.

    >>> extract_servings("24 cookies")
    24.0
    >>> extract_servings("serves a crowd")
    1.0
    """
    m = SERVINGS_NUMBER.search(text)
    if m is not None:
        n = float(m[0])
        if n > 0:
            return n
    return 1.0


def round_one(x: float) -> float:
    """Round to one decimal place, halves away from zero."""
    return math.copysign(math.floor(abs(x) * 10 + 0.5), x) / 10


def apply_macros(draft: RecipeDraft, macros: Macros) -> None:
    servings = extract_servings(draft.servings)
    logger.info("Parsed %s servings from %r", servings, draft.servings)
    draft.calories = macros.calories
    draft.protein = macros.protein
    draft.carbs = macros.carbs
    draft.fat = macros.fat
    draft.calories_per_serving = round_one(macros.calories / servings)
    draft.protein_per_serving = round_one(macros.protein / servings)
    draft.carbs_per_serving = round_one(macros.carbs / servings)
    draft.fat_per_serving = round_one(macros.fat / servings)


class NutritionCalculator:
    def __init__(self, generator: Completer) -> None:
        self.generator = generator

    async def calculate(self, ingredients: Iterable[str]) -> Macros:
        text = await self.generator.complete(build_nutrition_prompt(ingredients))
        text = strip_code_fence(text)
        try:
            macros = Macros.model_validate_json(text)
        except ValidationError as e:
            logger.debug("Unparseable nutrition response: %s", text)
            raise DecodeError(f"Failed to parse nutrition data: {e}") from e
        logger.info(
            "Calculated nutrition: %s kcal, %sg protein, %sg carbs, %sg fat",
            macros.calories,
            macros.protein,
            macros.carbs,
            macros.fat,
        )
        return macros

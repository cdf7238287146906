import httpx
import pytest

from recipedraft.config import Config
from recipedraft.errors import DecodeError, TransportError
from recipedraft.generation import GenerationClient
from recipedraft.models import Macros, RecipeDraft
from recipedraft.nutrition import (
    NutritionCalculator,
    apply_macros,
    extract_servings,
    round_one,
)

from tests.conftest import CURRY_NUTRITION, ScriptedApi


@pytest.mark.parametrize(
    "text,expected",
    (
        ("24 cookies", 24),
        ("4 servings", 4),
        ("4", 4),
        ("Serves 6", 6),
        ("2.5 portions", 2.5),
        ("a crowd", 1),
        ("", 1),
        ("0", 1),
    ),
)
def test_extract_servings(text: str, expected: float) -> None:
    assert extract_servings(text) == expected


@pytest.mark.parametrize(
    "x,expected",
    (
        (450.0, 450.0),
        (33.33333, 33.3),
        (0.25, 0.3),
        (-0.25, -0.3),
        (0, 0),
    ),
)
def test_round_one(x: float, expected: float) -> None:
    assert round_one(x) == expected


def test_apply_macros(curry: RecipeDraft) -> None:
    apply_macros(curry, Macros(calories=1800, protein=60, carbs=200, fat=90))
    assert curry.calories == 1800
    assert curry.calories_per_serving == 450
    assert curry.protein_per_serving == 15
    assert curry.carbs_per_serving == 50
    assert curry.fat_per_serving == 22.5


def test_apply_macros_without_servings() -> None:
    draft = RecipeDraft(name="Soup", ingredients=["water"], servings="")
    apply_macros(draft, Macros(calories=100, protein=1, carbs=2, fat=3))
    assert draft.calories_per_serving == 100
    assert draft.fat_per_serving == 3


def test_apply_macros_rounds() -> None:
    draft = RecipeDraft(servings="3 bowls")
    apply_macros(draft, Macros(calories=100, protein=10, carbs=20, fat=1))
    assert draft.calories_per_serving == 33.3
    assert draft.protein_per_serving == 3.3
    assert draft.carbs_per_serving == 6.7
    assert draft.fat_per_serving == 0.3


@pytest.mark.parametrize(
    "reply",
    (
        CURRY_NUTRITION,
        f"```json\n{CURRY_NUTRITION}\n```",
        f"```\n{CURRY_NUTRITION}\n```",
    ),
)
@pytest.mark.asyncio
async def test_calculate(config: Config, reply: str) -> None:
    api = ScriptedApi(reply)
    calculator = NutritionCalculator(GenerationClient(config, client=api.client()))
    macros = await calculator.calculate(["2 cans chickpeas", "1 can coconut milk"])
    assert macros == Macros(calories=1800, protein=60, carbs=200, fat=90)
    assert b"2 cans chickpeas\\n1 can coconut milk" in api.requests[0].content


@pytest.mark.asyncio
async def test_calculate_unparseable(config: Config) -> None:
    api = ScriptedApi("About 1800 calories in total.")
    calculator = NutritionCalculator(GenerationClient(config, client=api.client()))
    with pytest.raises(DecodeError):
        await calculator.calculate(["rice"])


@pytest.mark.asyncio
async def test_calculate_is_a_single_attempt(config: Config) -> None:
    api = ScriptedApi(httpx.ConnectError("down"), CURRY_NUTRITION)
    calculator = NutritionCalculator(GenerationClient(config, client=api.client()))
    with pytest.raises(TransportError):
        await calculator.calculate(["rice"])
    assert len(api.requests) == 1

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from recipedraft.models import RecipeDraft


SAFETY_RULES = """
⚠️ CRITICAL SAFETY RULES:
1. When a user has dietary restrictions (vegan, vegetarian, gluten-free, etc.), you MUST ensure ALL ingredients comply
2. For vegan recipes: NO meat, dairy, eggs, honey, or ANY animal products
3. For vegetarian recipes: NO meat, poultry, or fish (dairy and eggs are allowed unless specified otherwise)
4. For gluten-free: NO wheat, barley, rye, or ingredients containing gluten
5. For dairy-free: NO milk, cheese, butter, cream, yogurt, or ANY dairy products
6. For allergens: NEVER include the specified allergens in ANY form, including traces or derivatives
7. NEVER include ingredients violating the stated dietary preferences or containing the stated allergens
8. ALWAYS suggest appropriate substitutes that maintain the recipe's integrity
9. BE DECISIVE: Choose specific substitute ingredients instead of giving options (e.g., use "seitan" not "seitan or tofu")
10. ADAPT RECIPE NAMES: Update the recipe name to reflect the actual ingredients used""".strip()

FORMAT = """
🔧 REQUIRED FORMAT - CUSTOM STRUCTURED FORMAT ONLY:

You MUST respond using this EXACT Custom Structured Format:

NAME: Recipe Name Here
DESCRIPTION: Brief description of the recipe
CATEGORY: Main Course
CUISINE: Italian
INGREDIENTS: 2 cups flour|1 cup sugar|3 large eggs|1/2 cup butter
INSTRUCTIONS: step1|step2|step3|step4
PREP_TIME: 15 minutes
COOK_TIME: 30 minutes
SERVINGS: 4
DIFFICULTY: Easy

⚠️ CRITICAL FORMATTING RULES:
- Use exactly "NAME:", "DESCRIPTION:", etc. (uppercase with colon)
- INGREDIENTS MUST include specific quantities (e.g., "2 cups flour", "1 tbsp salt")
- Separate ingredients with pipe symbols (|)
- Separate instructions with pipe symbols (|)
- NO JSON, NO YAML, NO other formats - ONLY this Custom Structured Format
- Each field on its own line
- No extra text before or after the structured data""".strip()

BASIC_PREAMBLE = (
    "You are a professional chef who STRICTLY RESPECTS dietary restrictions "
    "and allergens."
)

RECIPE_PREAMBLE = (
    "You are a professional chef and nutritionist who STRICTLY RESPECTS dietary "
    "restrictions and allergens."
)

MODIFY_PREAMBLE = (
    "You are a professional chef and nutritionist who adapts existing recipes "
    "while STRICTLY RESPECTING dietary restrictions and allergens. Keep what the "
    "user did not ask to change."
)

REMINDER = "REMEMBER: User safety depends on you following dietary restrictions EXACTLY!"

RECIPE_SYSTEM_PROMPT = """{preamble}

{safety_rules}

{format}

{reminder}"""

NUTRITION_SYSTEM_PROMPT = """
You are a professional nutritionist who calculates PRECISE macronutrient values based on USDA nutritional databases.

CRITICAL REQUIREMENTS:
1. Calculate the nutritional content for each ingredient based on:
   - The specific quantity given (e.g., "1 cup", "2 tbsp", "400g")
   - Standard nutritional values from USDA or similar databases
2. For each ingredient, calculate calories, protein, carbs and fat for the quantity given
3. Sum ALL ingredients to get TOTAL recipe nutrition
4. Return ONLY a JSON object: {"calories":0,"protein":0,"carbs":0,"fat":0}
   - NO markdown formatting, NO code blocks, NO explanations
   - Just the raw JSON object

Example calculation process (DO NOT include in response):
- 2 cups pasta (400g) = 740 calories, 26g protein, 156g carbs, 2g fat
- 1 cup tomato sauce = 70 calories, 3g protein, 16g carbs, 0g fat
- 2 tbsp olive oil = 240 calories, 0g protein, 0g carbs, 28g fat
TOTAL = {"calories":1050,"protein":29,"carbs":172,"fat":30}""".strip()

NUTRITION_USER_PROMPT = """Calculate the TOTAL nutritional content for this COMPLETE recipe based on these ingredients:

{ingredients}

Provide accurate nutritional values considering:
- The actual quantities specified (cups, tablespoons, etc.)
- That this represents the ENTIRE recipe, not per serving
- Common nutritional databases for each ingredient

Return ONLY a JSON object with the fields calories, protein, carbs and fat."""

BATCH_SYSTEM_PROMPT = """
You are a professional chef and nutritionist. For each recipe prompt, respond with
one JSON object of the form {"recipes": [...]} where every recipe has the fields
name, description, category, cuisine, ingredients (list of strings with quantities),
instructions (list of strings), prep_time, cook_time, servings and difficulty
(one of Easy, Medium, Hard).""".strip()

FORMAT_REMINDER = "Generate the recipe using the Custom Structured Format specified above."


class Kind(Enum):
    basic = "basic"
    recipe = "recipe"
    modify = "modify"
    nutrition = "nutrition"
    batch = "batch"


@dataclass(frozen=True)
class Sampling:
    max_tokens: int
    temperature: float
    top_p: float
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    long_running: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


# Structured output wants low temperature and top_p.
SAMPLING: dict[Kind, Sampling] = {
    Kind.basic: Sampling(3072, 0.2, 0.8, 0.5, 0.5),
    Kind.recipe: Sampling(3000, 0.1, 0.7, long_running=True),
    Kind.modify: Sampling(3000, 0.1, 0.7, long_running=True),
    Kind.nutrition: Sampling(1024, 0.1, 0.9),
    Kind.batch: Sampling(4000, 0.2, 0.8, 0.5, 0.5, long_running=True),
}


@dataclass(frozen=True)
class Prompt:
    kind: Kind
    system: str
    user: str | list[str]

    @property
    def sampling(self) -> Sampling:
        return SAMPLING[self.kind]

    def to_messages(self) -> list[dict[str, str]]:
        users = [self.user] if isinstance(self.user, str) else self.user
        return [{"role": "system", "content": self.system}] + [
            {"role": "user", "content": u} for u in users
        ]


def build_constraints(
    dietary_preferences: Iterable[str],
    allergens: Iterable[str],
) -> str:
    """Constraint block appended to a recipe request, empty without constraints."""
    dietary = [d for d in dietary_preferences if d]
    avoid = [a for a in allergens if a]
    if not (dietary or avoid):
        return ""

    s = "\n\n⚠️ CRITICAL DIETARY REQUIREMENTS (MUST BE FOLLOWED):\n"
    if dietary:
        s += f"- This recipe MUST be suitable for: {', '.join(dietary)}\n"
        s += "- NEVER include ingredients that violate these dietary preferences\n"
    if avoid:
        s += f"- ABSOLUTELY AVOID these allergens: {', '.join(avoid)}\n"
        s += "- Check ALL ingredients and sub-ingredients for these allergens\n"
    s += "\nFAILURE TO FOLLOW THESE RESTRICTIONS COULD CAUSE SERIOUS HARM!"
    return s


class RecipeSystemPrompt:
    def __init__(
        self,
        preamble: str | None = None,
        safety_rules: str | None = None,
        format: str | None = None,
        reminder: str | None = None,
    ) -> None:
        self.preamble = RECIPE_PREAMBLE if preamble is None else preamble
        self.safety_rules = SAFETY_RULES if safety_rules is None else safety_rules
        self.format = FORMAT if format is None else format
        self.reminder = REMINDER if reminder is None else reminder

    def __str__(self) -> str:
        return RECIPE_SYSTEM_PROMPT.format(
            preamble=self.preamble,
            safety_rules=self.safety_rules,
            format=self.format,
            reminder=self.reminder,
        )


def build_recipe_prompt(
    query: str,
    *,
    dietary_preferences: Iterable[str] = (),
    allergens: Iterable[str] = (),
    original: RecipeDraft | None = None,
    basic: bool = False,
) -> Prompt:
    """Request for a new recipe or, given `original`, a modification of it."""
    constraints = build_constraints(dietary_preferences, allergens)

    if original is not None:
        ingredients = "\n".join(original.ingredients)
        instructions = "\n".join(original.instructions)
        user = (
            f"Modify this recipe: {original.name}\n\n"
            "Original recipe:\n"
            f"Name: {original.name}\n"
            f"Description: {original.description}\n"
            f"Ingredients: {ingredients}\n"
            f"Instructions: {instructions}\n\n"
            f"Modification request: {query}{constraints}"
        )
        system = RecipeSystemPrompt(preamble=MODIFY_PREAMBLE)
        return Prompt(Kind.modify, str(system), f"{user}\n\n{FORMAT_REMINDER}")

    user = f"Generate a recipe for: {query}{constraints}"
    if basic:
        system = RecipeSystemPrompt(preamble=BASIC_PREAMBLE)
        return Prompt(Kind.basic, str(system), user)

    return Prompt(Kind.recipe, str(RecipeSystemPrompt()), f"{user}\n\n{FORMAT_REMINDER}")


def build_nutrition_prompt(ingredients: Iterable[str]) -> Prompt:
    user = NUTRITION_USER_PROMPT.format(ingredients="\n".join(ingredients))
    return Prompt(Kind.nutrition, NUTRITION_SYSTEM_PROMPT, user)


def build_batch_prompt(queries: Iterable[str]) -> Prompt:
    users = [f"Generate a recipe for: {q}" for q in queries]
    return Prompt(Kind.batch, BATCH_SYSTEM_PROMPT, users)

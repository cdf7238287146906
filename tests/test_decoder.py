import json

import pytest

from recipedraft.decoder import (
    REPAIR_RULES,
    Tier,
    TokenType,
    decode,
    parse_json,
    parse_structured,
    repair_json,
    strip_code_fence,
    tokenize,
    validate_record,
)
from recipedraft.errors import DecodeError

from tests.conftest import CURRY


RULES = {rule.name: rule for rule in REPAIR_RULES}


def test_structured_pipe_lists() -> None:
    record = parse_structured(CURRY)
    assert record is not None
    assert record["name"] == "Vegan Chickpea Curry"
    assert record["ingredients"] == [
        "2 cans chickpeas",
        "1 can coconut milk",
        "1 onion",
        "2 tbsp curry powder",
    ]
    assert record["instructions"] == [
        "Saute the onion",
        "Stir in the curry powder",
        "Add chickpeas and coconut milk",
        "Simmer for 20 minutes",
    ]
    assert record["servings"] == "4"
    assert record["prep_time"] == "10 minutes"
    assert record["difficulty"] == "Easy"


def test_structured_skips_preamble() -> None:
    text = "Here is your recipe!\n\n" + CURRY
    record = parse_structured(text)
    assert record is not None
    assert record["name"] == "Vegan Chickpea Curry"


def test_structured_bullets_and_numbered_steps() -> None:
    text = (
        "Name: Pancakes\n"
        "Ingredients:\n"
        "- 1 cup flour\n"
        "- 1 cup oat milk\n"
        "\n"
        "- 1 tbsp sugar\n"
        "Instructions:\n"
        "1. Whisk everything\n"
        "2. Fry in a hot pan\n"
        "Servings: 2\n"
    )
    record = parse_structured(text)
    assert record is not None
    assert record["ingredients"] == ["1 cup flour", "1 cup oat milk", "1 tbsp sugar"]
    assert record["instructions"] == ["1. Whisk everything", "2. Fry in a hot pan"]
    assert record["servings"] == "2"


def test_structured_markdown_keys_and_aliases() -> None:
    text = (
        "**NAME:** Toast\n"
        "**INGREDIENTS:** bread|butter\n"
        "PrepTime: 1 minute\n"
        "Cook-Time: 2 minutes\n"
        "Carbohydrates: 30g\n"
    )
    record = parse_structured(text)
    assert record is not None
    assert record["name"] == "Toast"
    assert record["ingredients"] == ["bread", "butter"]
    assert record["prep_time"] == "1 minute"
    assert record["cook_time"] == "2 minutes"
    assert record["carbs"] == 30.0


def test_structured_drops_empty_pipe_items() -> None:
    record = parse_structured("NAME: Salad\nINGREDIENTS: lettuce|| tomato |\n")
    assert record is not None
    assert record["ingredients"] == ["lettuce", "tomato"]


def test_structured_stops_at_commentary() -> None:
    text = (
        "NAME: Salad\n"
        "INGREDIENTS: lettuce|tomato\n"
        "Note that all ingredients are vegan\n"
        "DIFFICULTY: Hard\n"
    )
    record = parse_structured(text)
    assert record is not None
    assert "difficulty" not in record


@pytest.mark.parametrize(
    "text",
    (
        "INGREDIENTS: a|b\nSERVINGS: 2",
        "NAME: Nothing\nSERVINGS: 2",
        "NAME: \nINGREDIENTS: a|b",
        "Just some chat about food.",
        "",
    ),
)
def test_structured_requires_name_and_ingredients(text: str) -> None:
    assert parse_structured(text) is None


def test_tokenize_classifies_lines() -> None:
    tokens = tokenize("NAME: x\n- bullet\n1. step\nplain\n\n")
    assert [t.type for t in tokens] == [
        TokenType.key,
        TokenType.bullet,
        TokenType.numbered,
        TokenType.text,
        TokenType.blank,
    ]
    assert tokens[1].text == "bullet"


@pytest.mark.parametrize(
    "given,expected",
    (
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('{"a": 1}', '{"a": 1}'),
    ),
)
def test_strip_code_fence(given: str, expected: str) -> None:
    assert strip_code_fence(given) == expected


def test_rules_run_in_documented_order() -> None:
    assert [rule.name for rule in REPAIR_RULES] == [
        "strip_code_fence",
        "close_brace",
        "single_to_double_quotes",
        "collapse_doubled_quotes",
        "drop_empty_entries",
        "quote_difficulty",
        "quote_steps",
        "quote_bare_properties",
        "repair_interior_quotes",
        "join_broken_values",
        "restore_property_quote",
    ]


@pytest.mark.parametrize(
    "rule,given,expected",
    (
        (
            "close_brace",
            '{"name": "Soup", "difficulty": "Easy",',
            '{"name": "Soup", "difficulty": "Easy"\n}',
        ),
        (
            "close_brace",
            '{"name": "Soup", "servings": "2", "difficulty": "Ea',
            '{"name": "Soup", "servings": "2"\n}',
        ),
        (
            "close_brace",
            '{"name": "Soup"',
            '{"name": "Soup"\n}',
        ),
        (
            "single_to_double_quotes",
            "{'name': 'Soup'}",
            '{"name": "Soup"}',
        ),
        (
            "collapse_doubled_quotes",
            '{"name": ""Soup""}',
            '{"name": "Soup"}',
        ),
        (
            "drop_empty_entries",
            '{"ingredients": ["", "salt", "", "pepper", ""]}',
            '{"ingredients": ["salt", "pepper"]}',
        ),
        (
            "quote_difficulty",
            '{"difficulty": Medium}',
            '{"difficulty": "Medium"}',
        ),
        (
            "quote_steps",
            '{"instructions": [\n  Step 1: Boil water\n  Step 2: Add pasta\n]}',
            '{"instructions": [\n  "Step 1: Boil water",\n  "Step 2: Add pasta"\n]}',
        ),
        (
            "quote_bare_properties",
            '{\n  name: Soup,\n  calories: 200\n}',
            '{\n  "name": "Soup",\n  "calories": 200\n}',
        ),
        (
            "repair_interior_quotes",
            '{"name": "Grandma"s stew"}',
            '{"name": "Grandma\'s stew"}',
        ),
        (
            "join_broken_values",
            '{"description": "\n  A warm soup"}',
            '{"description": "A warm soup"}',
        ),
        (
            "restore_property_quote",
            '{"name": "Soup",\n  servings": "2"}',
            '{"name": "Soup",\n  "servings": "2"}',
        ),
    ),
)
def test_repair_rule(rule: str, given: str, expected: str) -> None:
    got = RULES[rule](given)
    assert got == expected
    json.loads(got)


@pytest.mark.parametrize(
    "rule,given",
    (
        ("close_brace", '{"name": "Soup"}'),
        ("single_to_double_quotes", '{"name": "Soup"}'),
        ("collapse_doubled_quotes", '{"name": "", "a": ["x"]}'),
        ("drop_empty_entries", '{"a": ["x"]}'),
        ("quote_difficulty", '{"difficulty": "Easy"}'),
        ("quote_steps", '{"instructions": ["Step 1: Boil"]}'),
    ),
)
def test_repair_rule_untriggered(rule: str, given: str) -> None:
    assert RULES[rule](given) == given


def test_parse_json_leaves_valid_json_alone() -> None:
    text = '{"name": "It\'s \\"fine\\"", "ingredients": ["a"]}'
    assert parse_json(text) == json.loads(text)


def test_parse_json_repairs_fenced_truncated_json() -> None:
    text = (
        "```json\n"
        "{'name': 'Lentil Soup', 'ingredients': ['1 cup lentils', '', '1 onion'], "
        "'difficulty': Easy,"
        "\n```"
    )
    record = parse_json(text)
    assert record == {
        "name": "Lentil Soup",
        "ingredients": ["1 cup lentils", "1 onion"],
        "difficulty": "Easy",
    }


def test_repair_json_gives_up_on_prose() -> None:
    assert parse_json("I cannot help with that.") is None
    assert repair_json("plain") == "plain\n}"


def test_decode_prefers_structured() -> None:
    result = decode(CURRY)
    assert result.ok
    assert result.tier is Tier.structured


def test_decode_falls_back_to_json() -> None:
    result = decode('{"name": "Soup", "ingredients": ["water"], "servings": 2}')
    assert result.ok
    assert result.tier is Tier.json_repair
    assert result.record is not None
    assert result.record["servings"] == 2


BARE_KEY_JSON = """{
  name: Lentil Soup,
  ingredients: ["1 cup lentils", "1 onion"],
  difficulty: Easy
}"""


@pytest.mark.parametrize(
    "text",
    (
        BARE_KEY_JSON,
        f"```json\n{BARE_KEY_JSON}\n```",
    ),
)
def test_decode_sends_json_past_structured_tier(text: str) -> None:
    result = decode(text)
    assert result.tier is Tier.json_repair
    assert result.record == {
        "name": "Lentil Soup",
        "ingredients": ["1 cup lentils", "1 onion"],
        "difficulty": "Easy",
    }


def test_decode_failure() -> None:
    result = decode("Sorry, I can only talk about recipes.")
    assert not result.ok
    assert result.tier is None


def test_validate_record() -> None:
    draft = validate_record({"name": "Soup", "ingredients": ["water"], "servings": 2})
    assert draft.servings == "2"


def test_validate_record_keeps_structured_totals() -> None:
    record = parse_structured(f"{CURRY}\nCALORIES: 1800 kcal\nPROTEIN: 60g")
    assert record is not None
    draft = validate_record(record)
    assert draft.calories == 1800
    assert draft.protein == 60
    assert draft.fat == 0


@pytest.mark.parametrize(
    "record",
    (
        {"name": "", "ingredients": ["water"]},
        {"name": "Soup", "ingredients": []},
        {"name": "Soup", "ingredients": ["water"], "servings": [4]},
    ),
)
def test_validate_record_rejects(record: dict[str, object]) -> None:
    with pytest.raises(DecodeError):
        validate_record(record)

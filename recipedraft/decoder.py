"""Turns free text from the generation endpoint into a recipe record.

Two tiers. The model is asked for the line oriented "Custom Structured Format"
(`NAME: ...`, `INGREDIENTS: a|b|c`) and mostly produces it, so that is tried
first. Older prompts asked for JSON, which the model often gets slightly
wrong; tier two runs a fixed sequence of textual repairs over near-JSON and
hands the result to `json.loads`.
"""
from dataclasses import dataclass
from enum import Enum
import json
import logging
import re
from typing import Any, Callable

from pydantic import ValidationError

from recipedraft.errors import DecodeError
from recipedraft.models import RecipeDraft


logger = logging.getLogger(__name__)


LIST_FIELDS = frozenset({"ingredients", "instructions"})
NUMERIC_FIELDS = frozenset({"calories", "protein", "carbs", "fat"})
TEXT_FIELDS = frozenset(
    {
        "name",
        "description",
        "category",
        "cuisine",
        "prep_time",
        "cook_time",
        "servings",
        "difficulty",
    }
)
KNOWN_KEYS = LIST_FIELDS | NUMERIC_FIELDS | TEXT_FIELDS
KEY_ALIASES = {
    "preptime": "prep_time",
    "cooktime": "cook_time",
    "carbohydrates": "carbs",
}
COMMENTARY_MARKERS = ("note", "safety", "✔")

KEY_LINE = re.compile(r"^[*#\s]*([A-Za-z][A-Za-z _-]*?)\**\s*:\s*\**\s*(.*)$")
NUMBERED_LINE = re.compile(r"^\d+\.")
BULLET_LINE = re.compile(r"^(?:-|•|\*\s)\s*(.*)$")
NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


class Tier(Enum):
    structured = 1
    json_repair = 2


class TokenType(Enum):
    key = "key"
    bullet = "bullet"
    numbered = "numbered"
    text = "text"
    blank = "blank"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    key: str = ""
    value: str = ""


@dataclass(frozen=True)
class DecodeResult:
    record: dict[str, Any] | None
    tier: Tier | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def canonical_key(raw: str) -> str:
    key = re.sub(r"[\s-]+", "_", raw.strip().lower())
    return KEY_ALIASES.get(key, key)


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    for line in text.splitlines():
        s = line.strip()
        if not s:
            tokens.append(Token(TokenType.blank, s))
            continue
        if NUMBERED_LINE.match(s):
            tokens.append(Token(TokenType.numbered, s))
            continue
        m = KEY_LINE.match(s)
        if m and canonical_key(m[1]) in KNOWN_KEYS:
            value = m[2].strip()
            tokens.append(Token(TokenType.key, s, canonical_key(m[1]), value))
            continue
        m = BULLET_LINE.match(s)
        if m:
            tokens.append(Token(TokenType.bullet, m[1].strip()))
            continue
        tokens.append(Token(TokenType.text, s))
    return tokens


def is_commentary(token: Token) -> bool:
    if token.type is not TokenType.text or ":" in token.text:
        return False
    lowered = token.text.lower()
    return any(marker in lowered for marker in COMMENTARY_MARKERS)


def first_number(value: str) -> float | None:
    m = NUMBER.search(value)
    return float(m[0]) if m else None


def split_pipes(value: str) -> list[str]:
    return [item.strip() for item in value.split("|") if item.strip()]


def read_list(head: Token, tokens: list[Token], i: int) -> tuple[list[str], int]:
    """Items of a list field and the index of the first token after it."""
    if "|" in head.value:
        return split_pipes(head.value), i

    items = [head.value] if head.value else []
    wanted = TokenType.bullet if head.key == "ingredients" else TokenType.numbered
    while i < len(tokens):
        token = tokens[i]
        if token.type is TokenType.key or is_commentary(token):
            break
        i += 1
        if token.type is wanted and token.text:
            items.append(token.text)
    return items, i


def parse_structured(text: str) -> dict[str, Any] | None:
    """Tier one. None unless both NAME and INGREDIENTS were found."""
    tokens = tokenize(text)
    start = next(
        (
            i
            for i, t in enumerate(tokens)
            if t.type is TokenType.key and t.key == "name"
        ),
        None,
    )
    if start is None:
        logger.debug("No NAME: line, not the structured format")
        return None

    record: dict[str, Any] = {}
    i = start
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if is_commentary(token):
            break
        if token.type is not TokenType.key:
            continue
        if token.key in LIST_FIELDS:
            items, i = read_list(token, tokens, i)
            if items:
                record[token.key] = items
        elif token.key in NUMERIC_FIELDS:
            number = first_number(token.value)
            if number is not None:
                record[token.key] = number
        else:
            record[token.key] = token.value

    if not record.get("name") or not record.get("ingredients"):
        logger.debug(
            "Structured format missing required fields - name: %s, ingredients: %s",
            bool(record.get("name")),
            bool(record.get("ingredients")),
        )
        return None
    return record


def strip_code_fence(text: str) -> str:
    s = text.strip()
    if s.startswith("```json"):
        s = s.removeprefix("```json")
    elif s.startswith("```"):
        s = s.removeprefix("```")
    else:
        return s
    return s.removesuffix("```").strip()


@dataclass(frozen=True)
class RepairRule:
    name: str
    applies: Callable[[str], bool]
    repair: Callable[[str], str]

    def __call__(self, text: str) -> str:
        if not self.applies(text):
            return text
        logger.debug("Applying JSON repair %s", self.name)
        return self.repair(text)


def _close_brace(text: str) -> str:
    trimmed = text.strip().removesuffix(",")
    if re.search(r'"difficulty":\s*"(?:Easy|Medium|Hard)"$', trimmed):
        return trimmed + "\n}"
    if '"difficulty":' in trimmed:
        # The truncation happened inside the last field, drop it.
        last_comma = trimmed.rfind(",")
        if last_comma > 0:
            return trimmed[:last_comma] + "\n}"
    return trimmed + "\n}"


DOUBLED_QUOTES = re.compile(r'""(?=\w)|(?<=[\w.!?)])""')
EMPTY_ENTRY = re.compile(r'[\[,]\s*""\s*[,\]]')
BARE_DIFFICULTY = re.compile(r'"difficulty":\s*(Easy|Medium|Hard)\b')
BARE_STEP = re.compile(r'^([ \t]*)(Step \d+:[^"\n]*?)(,?)[ \t]*$', re.MULTILINE)
TRAILING_COMMA = re.compile(r",(\s*[\]}])")
BARE_PROPERTY = re.compile(r"((?:^|\n|\{)\s*)([A-Za-z_]+):\s*([^,\n}]+)")
LITERAL_VALUE = re.compile(r'^(?:["\[{]|-?\d+(?:\.\d+)?$|true$|false$|null$)')
INTERIOR_QUOTE = re.compile(r'"([^"]*)"([st])\s+([^"]*)"')
BROKEN_VALUE = re.compile(r'("[^"]+"):\s*"\s*\n\s*([^"]+)"')
HALF_QUOTED_PROPERTY = re.compile(r'(\n\s*)([a-z_]+"):\s*"')


def _drop_empty_entries(text: str) -> str:
    text = re.sub(r',\s*""(?=\s*[,\]])', "", text)
    return re.sub(r'\[\s*""\s*,?\s*', "[", text)


def _quote_steps(text: str) -> str:
    text = BARE_STEP.sub(r'\1"\2",', text)
    return TRAILING_COMMA.sub(r"\1", text)


def _quote_bare_property(m: re.Match[str]) -> str:
    lead, prop, value = m.groups()
    value = value.strip()
    if not LITERAL_VALUE.match(value):
        value = f'"{value}"'
    return f'{lead}"{prop}": {value}'


REPAIR_RULES: tuple[RepairRule, ...] = (
    RepairRule(
        "strip_code_fence",
        lambda s: s.strip().startswith("```"),
        strip_code_fence,
    ),
    RepairRule(
        "close_brace",
        lambda s: not s.strip().endswith("}"),
        _close_brace,
    ),
    RepairRule(
        "single_to_double_quotes",
        lambda s: "'" in s,
        lambda s: s.replace("'", '"'),
    ),
    RepairRule(
        "collapse_doubled_quotes",
        lambda s: DOUBLED_QUOTES.search(s) is not None,
        lambda s: DOUBLED_QUOTES.sub('"', s),
    ),
    RepairRule(
        "drop_empty_entries",
        lambda s: EMPTY_ENTRY.search(s) is not None,
        _drop_empty_entries,
    ),
    RepairRule(
        "quote_difficulty",
        lambda s: BARE_DIFFICULTY.search(s) is not None,
        lambda s: BARE_DIFFICULTY.sub(r'"difficulty": "\1"', s),
    ),
    RepairRule(
        "quote_steps",
        lambda s: BARE_STEP.search(s) is not None,
        _quote_steps,
    ),
    RepairRule(
        "quote_bare_properties",
        lambda s: BARE_PROPERTY.search(s) is not None,
        lambda s: BARE_PROPERTY.sub(_quote_bare_property, s),
    ),
    RepairRule(
        "repair_interior_quotes",
        lambda s: INTERIOR_QUOTE.search(s) is not None,
        lambda s: INTERIOR_QUOTE.sub(lambda m: f"\"{m[1]}'{m[2]} {m[3]}\"", s),
    ),
    RepairRule(
        "join_broken_values",
        lambda s: BROKEN_VALUE.search(s) is not None,
        lambda s: BROKEN_VALUE.sub(r'\1: "\2"', s),
    ),
    RepairRule(
        "restore_property_quote",
        lambda s: HALF_QUOTED_PROPERTY.search(s) is not None,
        lambda s: HALF_QUOTED_PROPERTY.sub(r'\1"\2: "', s),
    ),
)


def repair_json(text: str, rules: tuple[RepairRule, ...] = REPAIR_RULES) -> str:
    for rule in rules:
        text = rule(text)
    return text


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_json(text: str) -> dict[str, Any] | None:
    """Tier two. Valid JSON is returned untouched, anything else is repaired."""
    record = _loads_object(text)
    if record is not None:
        return record
    repaired = repair_json(text)
    record = _loads_object(repaired)
    if record is None:
        logger.debug("JSON repair failed, repaired text: %s", repaired)
    return record


def looks_like_json(text: str) -> bool:
    return strip_code_fence(text).startswith(("{", "["))


def decode(text: str) -> DecodeResult:
    record = None if looks_like_json(text) else parse_structured(text)
    if record is not None:
        logger.info("Decoded structured format with %d fields", len(record))
        return DecodeResult(record, Tier.structured)

    record = parse_json(text)
    if record is not None:
        logger.info("Decoded repaired JSON with %d fields", len(record))
        return DecodeResult(record, Tier.json_repair)

    return DecodeResult(None)


def validate_record(record: dict[str, Any]) -> RecipeDraft:
    """The validation pass a generation attempt has to survive."""
    try:
        draft = RecipeDraft.from_record(record)
    except ValidationError as e:
        raise DecodeError(f"Decoded record is not a recipe: {e}") from e
    if not draft.name.strip():
        raise DecodeError("Decoded recipe has no name.")
    if not draft.ingredients:
        raise DecodeError("Decoded recipe has no ingredients.")
    return draft

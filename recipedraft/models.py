from datetime import datetime
from enum import Enum
import logging
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


DRAFT_CONTENT_FIELDS = (
    "name",
    "description",
    "category",
    "cuisine",
    "ingredients",
    "instructions",
    "prep_time",
    "cook_time",
    "servings",
    "difficulty",
)
NUTRITION_FIELDS = ("calories", "protein", "carbs", "fat")


class ServingsShape(Enum):
    number = "number"
    text = "text"
    object = "object"
    missing = "missing"


class Servings(NamedTuple):
    value: str
    shape: ServingsShape


def decode_servings(raw: Any) -> Servings:
    """Normalise the servings value the model sent to a single piece of text.

    Models send `4`, `"4 servings"` or `{"Value": "4"}` for the same thing.
    """
    match raw:
        case None:
            return Servings("", ServingsShape.missing)
        case bool():
            raise ValueError(f"Invalid servings format: {raw!r}")
        case int() | float():
            return Servings(str(int(raw)), ServingsShape.number)
        case str():
            return Servings(raw, ServingsShape.text)
        case dict():
            for key, value in raw.items():
                if str(key).lower() != "value":
                    continue
                if isinstance(value, str):
                    return Servings(value, ServingsShape.object)
                if isinstance(value, int | float) and not isinstance(value, bool):
                    return Servings(str(int(value)), ServingsShape.object)
            raise ValueError(f"Invalid servings format: {raw!r}")
        case _:
            raise ValueError(f"Invalid servings format: {raw!r}")


class Macros(BaseModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class RecipeDraft(BaseModel):
    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    name: str = ""
    description: str = ""
    category: str = ""
    cuisine: str = ""
    image_url: str = ""
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    prep_time: str = ""
    cook_time: str = ""
    servings: str = ""
    difficulty: str = ""

    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    calories_per_serving: float = 0
    protein_per_serving: float = 0
    carbs_per_serving: float = 0
    fat_per_serving: float = 0

    user_id: str = ""
    dietary_preferences: list[str] = Field(default_factory=list)
    embedding: list[float] = Field(default_factory=list)

    @field_validator("servings", mode="before")
    @classmethod
    def _servings(cls, raw: Any) -> str:
        servings = decode_servings(raw)
        logger.debug("Servings %r decoded as %s", raw, servings.shape.value)
        return servings.value

    @field_validator(
        "ingredients", "instructions", "dietary_preferences", "embedding", mode="before"
    )
    @classmethod
    def _null_list(cls, raw: Any) -> Any:
        return [] if raw is None else raw

    @field_validator(
        "name",
        "description",
        "category",
        "cuisine",
        "image_url",
        "prep_time",
        "cook_time",
        "difficulty",
        mode="before",
    )
    @classmethod
    def _null_text(cls, raw: Any) -> Any:
        return "" if raw is None else raw

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        *,
        user_id: str = "",
        dietary_preferences: list[str] | None = None,
    ) -> "RecipeDraft":
        """Build a fresh draft from a decoded model response.

        Recipe content and any numeric nutrition totals are taken from the
        record. Identity and ownership never come from model output.
        """
        content = {k: record[k] for k in DRAFT_CONTENT_FIELDS if k in record}
        totals = {
            k: record[k]
            for k in NUTRITION_FIELDS
            if isinstance(record.get(k), (int, float))
            and not isinstance(record.get(k), bool)
        }
        return cls(
            **content,
            **totals,
            user_id=user_id,
            dietary_preferences=[] if dietary_preferences is None else dietary_preferences,
        )

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0

    def apply_content(self, other: "RecipeDraft") -> None:
        for field in DRAFT_CONTENT_FIELDS:
            setattr(self, field, getattr(other, field))

    def __repr__(self) -> str:
        return f"<RecipeDraft(id={self.id}, name={self.name})>"

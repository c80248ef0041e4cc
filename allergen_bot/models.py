"""Request, result and record types shared by the analysis pipeline."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable

from allergen_bot.constants import DEFAULT_ALLERGEN, DEFAULT_IMAGE_MIME


class Status(str, Enum):
    SAFE = "SAFE"
    UNSAFE = "UNSAFE"
    UNCERTAIN = "UNCERTAIN"


class CheckType(str, Enum):
    IMAGE = "image"
    MANUAL = "manual"


def normalize_allergens(allergens: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, de-duplicate and always lead with the default allergen."""
    cleaned = (a.strip().lower() for a in allergens)
    ordered = dict.fromkeys([DEFAULT_ALLERGEN, *filter(None, cleaned)])
    return tuple(ordered)


@dataclass(frozen=True)
class ImageRequest:
    image: bytes
    allergens: tuple[str, ...] = (DEFAULT_ALLERGEN,)
    mime_type: str = DEFAULT_IMAGE_MIME

    def __post_init__(self) -> None:
        object.__setattr__(self, "allergens", normalize_allergens(self.allergens))


@dataclass(frozen=True)
class TextRequest:
    content: str
    allergens: tuple[str, ...] = (DEFAULT_ALLERGEN,)

    def __post_init__(self) -> None:
        object.__setattr__(self, "allergens", normalize_allergens(self.allergens))


AnalysisRequest = ImageRequest | TextRequest


@dataclass(frozen=True)
class AnalysisResult:
    status: Status
    flagged_ingredients: tuple[str, ...] = ()
    explanation: str = ""
    extracted_text: str | None = None


@dataclass(frozen=True)
class CheckOutcome:
    safe: bool
    flagged_ingredients: tuple[str, ...]
    explanation: str

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "CheckOutcome":
        return cls(
            safe=result.status is Status.SAFE,
            flagged_ingredients=result.flagged_ingredients,
            explanation=result.explanation,
        )


@dataclass(frozen=True)
class CheckRecord:
    """One persisted check. Field names on disk follow the stored document shape."""

    user_id: str
    check_type: CheckType
    ingredient_text: str
    allergens: tuple[str, ...]
    result: CheckOutcome
    id: str = ""
    timestamp: float = 0.0
    is_favorite: bool = False

    def with_updates(self, **changes) -> "CheckRecord":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "checkType": self.check_type.value,
            "ingredientText": self.ingredient_text,
            "allergens": list(self.allergens),
            "results": {
                "safe": self.result.safe,
                "flaggedIngredients": list(self.result.flagged_ingredients),
                "explanation": self.result.explanation,
            },
            "timestamp": self.timestamp,
            "isFavorite": self.is_favorite,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckRecord":
        results = data.get("results", {})
        return cls(
            id=data["id"],
            user_id=data["userId"],
            check_type=CheckType(data["checkType"]),
            ingredient_text=data.get("ingredientText", ""),
            allergens=tuple(data.get("allergens", ())),
            result=CheckOutcome(
                safe=bool(results.get("safe", False)),
                flagged_ingredients=tuple(results.get("flaggedIngredients", ())),
                explanation=results.get("explanation", ""),
            ),
            timestamp=float(data.get("timestamp", 0.0)),
            is_favorite=bool(data.get("isFavorite", False)),
        )

"""Chat messages for the image and text checks."""
import base64

from allergen_bot.constants import (
    IMAGE_DETAIL,
    IMAGE_PROMPT_TEMPLATE,
    SYSTEM_PROMPT_IMAGE,
    SYSTEM_PROMPT_TEXT,
    TEXT_PROMPT_TEMPLATE,
)


def _allergen_list(allergens: tuple[str, ...]) -> str:
    return ", ".join(allergens)


def image_data_url(image: bytes, mime_type: str) -> str:
    encoded = base64.standard_b64encode(image).decode()
    return f"data:{mime_type};base64,{encoded}"


def image_messages(image: bytes, mime_type: str, allergens: tuple[str, ...]) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT_IMAGE},
        {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": IMAGE_PROMPT_TEMPLATE.format(allergens=_allergen_list(allergens)),
                },
                {
                    "type": "image_url",
                    "image_url": {
                        "url": image_data_url(image, mime_type),
                        "detail": IMAGE_DETAIL,
                    },
                },
            ],
        },
    ]


def text_messages(ingredients: str, allergens: tuple[str, ...]) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT_TEXT},
        {
            "role": "user",
            "content": TEXT_PROMPT_TEMPLATE.format(
                allergens=_allergen_list(allergens),
                ingredients=ingredients,
            ),
        },
    ]

from __future__ import annotations

from adwizard.models import AdSize, AdTemplate, FontStyle, SceneCategory


AD_SIZE_LABELS: dict[AdSize, tuple[str, str]] = {
    AdSize.SQUARE: ("Square", "Instagram Post"),
    AdSize.STORY: ("Portrait", "Instagram Story"),
    AdSize.LANDSCAPE: ("Landscape", "Facebook Ad"),
    AdSize.SQUARE_HD: ("High quality", "Square HD"),
}


AD_TEMPLATES: tuple[AdTemplate, ...] = (
    AdTemplate(
        id="template-1",
        name="Simple focus",
        description="Clean, modern look that puts the product details first.",
        preview_image_url="https://images.unsplash.com/photo-1593359677879-a4bb92f82d82?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A simple, clean studio backdrop with a single soft light from the side, "
            "casting a gentle gradient over a neutral-colored surface."
        ),
        font_style=FontStyle.MODERN,
        text_prompt_instruction=(
            "Place the headline in a large, clean font at the top center. "
            "Place the body text in a smaller font at the bottom center."
        ),
        category=SceneCategory.STUDIO,
    ),
    AdTemplate(
        id="template-2",
        name="Vivid and bold",
        description="Bold colors and an eye-catching layout that grab attention instantly.",
        preview_image_url="https://images.unsplash.com/photo-1557682250-33bd709cbe85?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A backdrop of bold, vibrant colors with a blue-to-purple gradient "
            "and hard shadows that add depth."
        ),
        font_style=FontStyle.IMPACTFUL,
        text_prompt_instruction=(
            "Set the headline very large and slightly tilted across the top in an extra-bold font. "
            "Place the body text in the lower right corner."
        ),
        category=SceneCategory.ABSTRACT,
    ),
    AdTemplate(
        id="template-3",
        name="Luxury elegance",
        description="A refined, premium look for high-end products.",
        preview_image_url="https://images.unsplash.com/photo-1581993192008-63e896f4f744?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A dark marble surface under dim, warm light that highlights the product, "
            "with a touch of silky satin fabric in the background."
        ),
        font_style=FontStyle.ELEGANT,
        text_prompt_instruction=(
            "Place the headline in an elegant, delicate font at the bottom right. "
            "Place the body text directly above it in a slightly smaller font."
        ),
        category=SceneCategory.LUXURY,
    ),
    AdTemplate(
        id="template-4",
        name="Natural and organic",
        description="Earthy, calm atmosphere for natural and eco-friendly products.",
        preview_image_url="https://images.unsplash.com/photo-1556821832-de78f73d4034?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A light wood backdrop with green leaves and soft, natural shadows "
            "from sunlight filtered through a window."
        ),
        font_style=FontStyle.PLAYFUL,
        text_prompt_instruction=(
            "Place the headline at the top left in a playful font. "
            "Place the body text right below it, left aligned."
        ),
        category=SceneCategory.COZY,
    ),
    AdTemplate(
        id="template-5",
        name="Tech and future",
        description="A dark, modern design for electronics and tech products.",
        preview_image_url="https://images.unsplash.com/photo-1611141643241-698d2508d29c?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A dark backdrop with glowing geometric patterns and faint blue neon lines, "
            "giving a sense of depth and high technology."
        ),
        font_style=FontStyle.BOLD,
        text_prompt_instruction=(
            "Place the headline in a bold font in the top left corner. "
            "Place the body text directly below it in a smaller size."
        ),
        category=SceneCategory.ABSTRACT,
    ),
    AdTemplate(
        id="template-6",
        name="Tasty and delicious",
        description="A warm, inviting mood for food and drink ads.",
        preview_image_url="https://images.unsplash.com/photo-1478749485172-27618a08d223?q=80&w=2400&auto=format&fit=crop",
        scene_description=(
            "A rustic wooden table with warm, soft lighting. Blurred fresh ingredients "
            "such as herbs and tomatoes sit in the background for an authentic feel."
        ),
        font_style=FontStyle.CURSIVE,
        text_prompt_instruction=(
            "Place the headline at the top center in an appealing script font. "
            "Place the body text at the bottom in a simpler but matching style."
        ),
        category=SceneCategory.COZY,
    ),
)


def get_template(template_id: str) -> AdTemplate:
    for t in AD_TEMPLATES:
        if t.id == template_id:
            return t
    raise KeyError(template_id)

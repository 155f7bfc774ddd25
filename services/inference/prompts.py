"""Prompt builders for resale listing analysis."""

CONDITIONS = ("New with tags", "Like new", "Very good", "Good", "Satisfactory")

NO_FLAWS = "No visible flaws detected"

_CONDITION_CHOICES = ", ".join(f'"{c}"' for c in CONDITIONS)

_DESCRIPTION_TEMPLATE = (
    "• Brand: [brand name]\n"
    "• Size: [size if visible, or \"See measurements\"]\n"
    "• Condition: [condition with flaw details]\n"
    "• Material: [material]\n"
    "• Colour: [colour]\n"
    "• Details: [1-2 key selling points]\n"
    "\n"
    "[One punchy selling sentence about the item]\n"
    "\n"
    "#[brand] #[category] #[relevant trend/style tag]"
)


def build_stream_system_prompt() -> str:
    """Return the system prompt for streaming analysis, including flaw scanning."""
    return (
        "You are a top-selling Vinted UK clothing reseller assistant. "
        "Analyze the clothing item in the ORIGINAL unedited photo(s) carefully.\n\n"
        "Return a JSON object with these fields:\n\n"
        "- brand: The brand name (look at labels, tags, logos carefully)\n"
        "- category: The clothing category (e.g., T-Shirt, Jeans, Jacket, Dress, Sneakers, Hoodie)\n"
        "- title: A punchy Vinted listing title (max 80 chars), include brand + size if visible\n"
        "- material: The likely material composition\n"
        f"- condition: One of {_CONDITION_CHOICES}\n"
        '- conditionScore: A Vinted-style condition score, e.g. "Very Good - minor signs of wear on collar" '
        'or "Satisfactory - small stain on front" or "Like New - no visible flaws". '
        "Be specific about any flaws you see.\n"
        "- flaws: List any imperfections found: stains, holes, pilling, loose threads, fading, "
        "stretched elastic, broken zips, missing buttons, or signs of wear. "
        f'If none found, say "{NO_FLAWS}". Be honest and detailed.\n'
        "- description: Write a punchy, bullet-pointed Vinted UK listing description in this exact format:\n\n"
        f"{_DESCRIPTION_TEMPLATE}\n\n"
        "IMPORTANT: Scan the image carefully for ANY imperfections: stains, holes, pilling, bobbling, "
        "loose threads, fading, discolouration, stretched areas, or general wear. "
        "Report them honestly in conditionScore and flaws fields.\n\n"
        "If multiple images are provided, they show the same item from different angles. "
        "Combine all information into one listing.\n"
        "Return ONLY valid JSON, no markdown formatting or code blocks."
    )


def build_system_prompt() -> str:
    """Return the shorter system prompt used by the non-streaming analysis."""
    return (
        "You are a top-selling Vinted UK clothing reseller assistant. Analyze the clothing item carefully.\n\n"
        "Return a JSON object with these fields:\n"
        "- brand: The brand name\n"
        "- category: The clothing category\n"
        "- title: A punchy Vinted listing title (max 80 chars)\n"
        "- material: The likely material composition\n"
        f"- condition: One of {_CONDITION_CHOICES}\n"
        "- conditionScore: A Vinted-style condition score with details\n"
        "- flaws: Any imperfections found\n"
        "- description: A bullet-pointed Vinted UK listing description\n\n"
        "Return ONLY valid JSON, no markdown formatting or code blocks."
    )


def build_user_prompt(photo_count: int) -> str:
    """Return the user instruction for one photo or several views of one item."""
    if photo_count == 1:
        return "Analyze this clothing item for resale on Vinted UK."
    return (
        f"These {photo_count} photos show the same clothing item from different angles. "
        "Analyze them together and return a single listing for Vinted UK."
    )

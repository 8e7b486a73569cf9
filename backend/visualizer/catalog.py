"""Style and room knowledge used by the prompt compiler and the conversation.

Pure data plus two lookups. Keys match the ``DesignStyle`` / ``RoomType``
literals in the contracts; anything else is treated as a custom value.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StyleEntry:
    label: str
    summary: str
    narrative: str
    materials: tuple[str, ...]
    colors: tuple[str, ...]
    finishes: tuple[str, ...]
    fixtures: tuple[str, ...]
    lighting: str


@dataclass(frozen=True)
class RoomEntry:
    label: str
    focus: str
    preservation_priority: tuple[str, ...]
    default_style: str


STYLE_CATALOG: dict[str, StyleEntry] = {
    "modern": StyleEntry(
        label="Modern",
        summary=(
            "Clean lines, flat surfaces, minimal ornamentation, neutral palette with bold accents"
        ),
        narrative=(
            "A sophisticated modern aesthetic featuring clean horizontal lines and a seamless "
            "blend of indoor-outdoor living. The space emphasizes geometric precision with flat "
            "surfaces and minimal ornamentation."
        ),
        materials=(
            "polished concrete",
            "tempered glass",
            "brushed stainless steel",
            "engineered quartz",
            "porcelain tiles",
        ),
        colors=("crisp white", "warm gray", "charcoal", "black accents", "occasional navy"),
        finishes=("matte lacquer", "high-gloss paint", "brushed metal", "honed stone"),
        fixtures=(
            "frameless cabinets",
            "handleless drawers",
            "integrated appliances",
            "waterfall countertops",
        ),
        lighting="recessed LED lighting, linear pendant fixtures, and strategic accent lighting",
    ),
    "traditional": StyleEntry(
        label="Traditional",
        summary="Classic symmetry, rich woodwork, crown molding, warm and refined details",
        narrative=(
            "A timeless traditional aesthetic rooted in classical design principles. The space "
            "features elegant symmetry, rich woodwork, and refined details that create a sense "
            "of established comfort."
        ),
        materials=(
            "solid hardwood",
            "natural stone",
            "ceramic tile",
            "crown molding",
            "wainscoting panels",
        ),
        colors=("warm cream", "rich burgundy", "forest green", "navy blue", "warm gold accents"),
        finishes=("stained wood", "glazed ceramics", "polished brass", "antique bronze"),
        fixtures=(
            "raised panel cabinets",
            "decorative hardware",
            "apron-front sinks",
            "bridge faucets",
        ),
        lighting="crystal chandeliers, brass sconces, and under-cabinet task lighting",
    ),
    "farmhouse": StyleEntry(
        label="Farmhouse",
        summary="Rustic warmth, shiplap, reclaimed wood, apron sinks, vintage-inspired fixtures",
        narrative=(
            "A warm farmhouse aesthetic that blends rustic charm with modern comfort. The space "
            "celebrates natural imperfections and handcrafted elements while staying practical "
            "for everyday living."
        ),
        materials=("reclaimed wood", "shiplap planks", "subway tile", "butcher block", "cast iron"),
        colors=(
            "antique white",
            "soft sage green",
            "barn red accents",
            "natural wood tones",
            "muted blue",
        ),
        finishes=("distressed wood", "matte paint", "oil-rubbed bronze", "galvanized metal"),
        fixtures=(
            "farmhouse sinks",
            "open shelving",
            "barn door hardware",
            "vintage-style faucets",
        ),
        lighting="mason jar pendants, wrought iron chandeliers, and Edison bulb fixtures",
    ),
    "industrial": StyleEntry(
        label="Industrial",
        summary="Exposed brick and steel, raw concrete, metal fixtures, warehouse character",
        narrative=(
            "A bold industrial aesthetic inspired by converted warehouses and urban lofts. The "
            "space celebrates raw materials and exposed structure for an edgy yet refined "
            "atmosphere."
        ),
        materials=(
            "exposed brick",
            "raw concrete",
            "blackened steel",
            "reclaimed timber",
            "weathered metal",
        ),
        colors=(
            "charcoal gray",
            "rust orange accents",
            "matte black",
            "warm wood tones",
            "cement gray",
        ),
        finishes=("raw steel", "brushed concrete", "oxidized metal", "sealed brick"),
        fixtures=(
            "metal-frame cabinets",
            "pipe shelving",
            "commercial-style faucets",
            "wire mesh accents",
        ),
        lighting="exposed Edison bulbs, metal cage pendants, and track lighting",
    ),
    "minimalist": StyleEntry(
        label="Minimalist",
        summary="Clutter-free surfaces, hidden storage, pale palette, every element with a purpose",
        narrative=(
            "A serene minimalist aesthetic that elevates simplicity. Every element serves a "
            "purpose, with clutter-free surfaces and hidden storage creating a calm sanctuary."
        ),
        materials=(
            "white oak",
            "seamless quartz",
            "frosted glass",
            "ultra-matte surfaces",
            "microcement",
        ),
        colors=("pure white", "warm greige", "soft black", "natural wood", "single accent color"),
        finishes=("ultra-matte paint", "satin wood", "finger-pull edges", "seamless transitions"),
        fixtures=(
            "handleless cabinets",
            "integrated appliances",
            "wall-mounted fixtures",
            "hidden storage",
        ),
        lighting="concealed LED strips, minimal downlights, and maximized natural light",
    ),
    "contemporary": StyleEntry(
        label="Contemporary",
        summary="Current trends, sculptural statements, mixed textures and bold color moments",
        narrative=(
            "A dynamic contemporary aesthetic that embraces current design trends while "
            "remaining timeless. The space features bold statements, artistic elements, and a "
            "curated mix of textures."
        ),
        materials=(
            "mixed metals",
            "textured tiles",
            "statement stone",
            "velvet upholstery",
            "sculptural elements",
        ),
        colors=(
            "bold jewel tones",
            "dramatic black",
            "warm metallics",
            "deep teal",
            "terracotta accents",
        ),
        finishes=("high-gloss lacquer", "hammered metal", "textured wallcovering", "mixed sheens"),
        fixtures=(
            "sculptural hardware",
            "statement faucets",
            "artistic light fixtures",
            "custom built-ins",
        ),
        lighting="statement pendant clusters, sculptural chandeliers, and dramatic accent lighting",
    ),
}


ROOM_CATALOG: dict[str, RoomEntry] = {
    "kitchen": RoomEntry(
        label="kitchen",
        focus="cabinetry, countertops, backsplash, hardware, and task lighting",
        preservation_priority=(
            "cabinet box locations",
            "appliance positions",
            "window placement",
            "ceiling height",
        ),
        default_style="modern",
    ),
    "bathroom": RoomEntry(
        label="bathroom",
        focus="vanity, tile, shower enclosure, mirror, and fixtures",
        preservation_priority=(
            "plumbing fixture locations",
            "window position",
            "shower/tub footprint",
            "door swing",
        ),
        default_style="contemporary",
    ),
    "living_room": RoomEntry(
        label="living room",
        focus="seating, wall treatments, flooring, window treatments, and layered lighting",
        preservation_priority=(
            "room dimensions",
            "window locations",
            "fireplace position",
            "ceiling features",
        ),
        default_style="contemporary",
    ),
    "bedroom": RoomEntry(
        label="bedroom",
        focus="bed and headboard, bedding, case goods, and soft lighting",
        preservation_priority=(
            "room layout",
            "closet doors",
            "window positions",
            "ceiling height",
        ),
        default_style="minimalist",
    ),
    "basement": RoomEntry(
        label="basement",
        focus="flooring, ceiling treatment, lighting strategy, and wall finish",
        preservation_priority=(
            "ceiling height",
            "column locations",
            "window wells",
            "stairway position",
        ),
        default_style="industrial",
    ),
    "dining_room": RoomEntry(
        label="dining room",
        focus="dining set, statement lighting, wall treatment, and storage pieces",
        preservation_priority=(
            "room dimensions",
            "window placement",
            "door locations",
            "ceiling height",
        ),
        default_style="traditional",
    ),
    "exterior": RoomEntry(
        label="exterior",
        focus="siding, entry, trim, roofing materials, and landscape lighting",
        preservation_priority=(
            "building footprint",
            "roof line",
            "window positions",
            "structural elements",
        ),
        default_style="farmhouse",
    ),
}

FALLBACK_STYLE = "modern"


def get_style(style: str | None) -> StyleEntry | None:
    """Catalog entry for a style key, or None for custom/unknown styles."""
    if not style:
        return None
    return STYLE_CATALOG.get(style.strip().lower())


def get_room(room_type: str | None) -> RoomEntry | None:
    """Catalog entry for a room key, or None for custom/unknown rooms."""
    if not room_type:
        return None
    return ROOM_CATALOG.get(room_type.strip().lower().replace(" ", "_"))


def room_label(room_type: str) -> str:
    """Human label: ``living_room`` -> ``living room``; custom text is echoed."""
    entry = get_room(room_type)
    return entry.label if entry else room_type.replace("_", " ").strip()

"""Imprint to parent publisher mapping.

ComicVine reports imprints ("Vertigo", "Marvel Knights") as publishers.
Metadata is normalized to the parent publisher with the imprint kept
separately.
"""

from __future__ import annotations

_IMPRINTS_BY_PUBLISHER: dict[str, tuple[str, ...]] = {
    "DC Comics": (
        "Vertigo",
        "Wildstorm",
        "Homage Comics",
        "Paradox Press",
        "Zuda Comics",
        "CMX",
        "Black Label",
        "DC Black Label",
        "DC Vertigo",
        "DC Ink",
        "DC Zoom",
        "Earth M",
        "Earth One",
        "Johnny DC",
        "Minx",
        "Piranha Press",
        "Tangent Comics",
        "All Star DC Comics",
        "Helix",
        "America's Best Comics",
        "Milestone Media",
    ),
    "Marvel": (
        "Max",
        "Marvel Max",
        "Max Comics",
        "Marvel Knights",
        "Icon Comics",
        "Icon",
        "Ultimate Comics",
        "Soleil",
        "Marvel Music",
        "Marvel Age",
        "Marvel Soleil",
        "Epic Comics",
        "Epic",
        "Star Comics",
        "Curtis Magazines",
        "Atlas Comics",
        "Timely Comics",
        "MC2",
        "Marvel Adventures",
        "Marvel Illustrated",
        "Marvel Next",
        "Marvel Noir",
        "Marvel UK",
        "Razorline",
        "Paramount Comics",
        "Malibu Comics",
        "Malibu",
        "Ultraverse",
    ),
    "Image": (
        "Cliffhanger",
        "Homage",
        "Skybound",
        "Skybound Entertainment",
        "Top Cow",
        "Top Cow Productions",
        "Todd McFarlane Productions",
        "Extreme Studios",
        "Highbrow Entertainment",
        "Shadowline",
        "WildStorm Productions",
    ),
    "Dark Horse Comics": (
        "Dark Horse Manga",
        "Legend",
        "Maverick",
        "M Press",
        "Rocket Comics",
        "DH Press",
        "Dark Horse Books",
        "Dark Horse Deluxe",
    ),
    "IDW Publishing": (
        "Idea and Design Works",
        "IDW",
        "Top Shelf Productions",
        "Top Shelf",
        "Yoe Books",
        "SLG Publishing",
        "Devil's Due Publishing",
    ),
    "Dynamite Entertainment": (
        "Dynamite",
        "Harris Comics",
        "Chaos! Comics",
    ),
    "Boom! Studios": (
        "Boom!",
        "Boom! Box",
        "Archaia",
        "KaBOOM!",
    ),
    "Valiant Entertainment": (
        "Acclaim Comics",
        "Valiant",
        "Valiant Comics",
    ),
    "Humanoids Publishing": ("Humanoids",),
    "Rebellion": ("2000 AD", "Fleetway", "Quality Comics"),
    "Comics Legends": ("First Comics",),
    "Disney": ("CrossGen",),
    "NBM Publishing": ("Papercutz",),
    "Zenescope Entertainment": ("Zenescope",),
}

# Keys are casefolded; lookups are case-insensitive.
IMPRINT_TO_PUBLISHER: dict[str, str] = {
    imprint.casefold(): publisher
    for publisher, imprints in _IMPRINTS_BY_PUBLISHER.items()
    for imprint in imprints
}


def try_resolve(name: str | None) -> str | None:
    """Return the parent publisher of an imprint, or None if ``name`` is not an imprint."""
    if not name:
        return None
    return IMPRINT_TO_PUBLISHER.get(name.strip().casefold())


def is_imprint(name: str | None) -> bool:
    return try_resolve(name) is not None


def resolve_publisher(name: str) -> str:
    """Return the parent publisher for an imprint, or ``name`` unchanged."""
    return try_resolve(name) or name


def split_publisher(name: str | None) -> tuple[str | None, str | None]:
    """Split a catalog publisher into ``(publisher, imprint)``.

    >>> split_publisher("Vertigo")
    ('DC Comics', 'Vertigo')
    >>> split_publisher("DC Comics")
    ('DC Comics', None)
    """
    parent = try_resolve(name)
    if parent is None:
        return name, None
    return parent, name

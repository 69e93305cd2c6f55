"""Families to seed, in priority order, with their search query variants."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FamilySeed:
    brand: str
    family: str
    search_terms: tuple[str, ...] = field(default_factory=tuple)


def search_terms_for(brand: str, family: str) -> tuple[str, ...]:
    """Default query variants for a family named on the command line."""
    return (
        f"{brand} {family} watch",
        f"{brand} {family} men watch",
        f"{brand} {family} automatic",
    )


def parse_family_arg(value: str) -> FamilySeed:
    """
    Parse ``"Brand:Family"`` into a seed with default search terms.

    Raises:
        ValueError: If either side is missing
    """
    brand, sep, family = value.partition(":")
    brand, family = brand.strip(), family.strip()
    if not sep or not brand or not family:
        raise ValueError(f"Expected 'Brand:Family', got {value!r}")

    for seed in PRIORITY_FAMILIES:
        if seed.brand.lower() == brand.lower() and seed.family.lower() == family.lower():
            return seed
    return FamilySeed(brand, family, search_terms_for(brand, family))


PRIORITY_FAMILIES: list[FamilySeed] = [
    FamilySeed('Citizen', 'Eco-Drive', ('Citizen Eco-Drive watch', 'Citizen Eco-Drive men', 'Citizen Eco-Drive solar')),
    FamilySeed('Tissot', 'PRX', ('Tissot PRX watch', 'Tissot PRX automatic', 'Tissot PRX Powermatic')),
    FamilySeed('Hamilton', 'Khaki', ('Hamilton Khaki watch', 'Hamilton Khaki Field', 'Hamilton Khaki automatic')),
    FamilySeed('Bulova', 'Precisionist', ('Bulova Precisionist watch', 'Bulova Precisionist chronograph')),
    FamilySeed('Casio', 'G-Shock', ('Casio G-Shock watch', 'G-Shock digital', 'G-Shock analog')),
    FamilySeed('Invicta', 'Pro Diver', ('Invicta Pro Diver watch', 'Invicta Pro Diver men watch', 'Invicta Pro Diver automatic')),
    FamilySeed('Invicta', 'Speedway', ('Invicta Speedway watch', 'Invicta Speedway chronograph')),
    FamilySeed('Invicta', 'Bolt', ('Invicta Bolt watch', 'Invicta Bolt Zeus')),
    FamilySeed('Invicta', 'Subaqua', ('Invicta Subaqua watch', 'Invicta Subaqua Noma')),
    FamilySeed('Invicta', 'Reserve', ('Invicta Reserve watch', 'Invicta Reserve collection')),
    FamilySeed('Seiko', 'Prospex', ('Seiko Prospex watch', 'Seiko Prospex diver', 'Seiko Prospex automatic')),
    FamilySeed('Seiko', 'Presage', ('Seiko Presage watch', 'Seiko Presage cocktail', 'Seiko Presage automatic')),
    FamilySeed('Seiko', '5 Sports', ('Seiko 5 Sports watch', 'Seiko 5 automatic')),
    FamilySeed('Seiko', 'SKX', ('Seiko SKX watch', 'Seiko SKX007', 'Seiko SKX009')),
    FamilySeed('Seiko', 'Turtle', ('Seiko Turtle watch', 'Seiko Turtle diver', 'Seiko SRPE')),
    FamilySeed('Orient', 'Bambino', ('Orient Bambino watch', 'Orient Bambino automatic', 'Orient Bambino dress')),
    FamilySeed('Orient', 'Kamasu', ('Orient Kamasu watch', 'Orient Kamasu diver')),
    FamilySeed('Orient', 'Mako', ('Orient Mako watch', 'Orient Mako II', 'Orient Mako diver')),
    FamilySeed('Citizen', 'Promaster', ('Citizen Promaster watch', 'Citizen Promaster diver')),
    FamilySeed('Fossil', 'Grant', ('Fossil Grant watch', 'Fossil Grant chronograph')),
    FamilySeed('Fossil', 'Machine', ('Fossil Machine watch', 'Fossil Machine chronograph')),
    FamilySeed('Fossil', 'Townsman', ('Fossil Townsman watch', 'Fossil Townsman automatic')),
    FamilySeed('Fossil', 'Minimalist', ('Fossil Minimalist watch', 'Fossil Minimalist leather')),
    FamilySeed('Michael Kors', 'Bradshaw', ('Michael Kors Bradshaw watch', 'MK Bradshaw')),
    FamilySeed('Michael Kors', 'Lexington', ('Michael Kors Lexington watch', 'MK Lexington')),
    FamilySeed('Michael Kors', 'Parker', ('Michael Kors Parker watch', 'MK Parker')),
    FamilySeed('Michael Kors', 'Runway', ('Michael Kors Runway watch', 'MK Runway')),
    FamilySeed('Movado', 'Bold', ('Movado Bold watch', 'Movado Bold Evolution')),
    FamilySeed('Movado', 'Museum Classic', ('Movado Museum Classic watch', 'Movado Museum watch')),
    FamilySeed('Casio', 'Edifice', ('Casio Edifice watch', 'Casio Edifice chronograph')),
    FamilySeed('Casio', 'Duro', ('Casio Duro watch', 'Casio Duro Marlin', 'Casio MDV106')),
    FamilySeed('Bulova', 'Marine Star', ('Bulova Marine Star watch', 'Bulova Marine Star chronograph')),
    FamilySeed('Bulova', 'Lunar Pilot', ('Bulova Lunar Pilot watch', 'Bulova Moon watch')),
    FamilySeed('Timex', 'Expedition', ('Timex Expedition watch', 'Timex Expedition Scout')),
    FamilySeed('Timex', 'Weekender', ('Timex Weekender watch', 'Timex Weekender Chrono')),
    FamilySeed('Timex', 'Waterbury', ('Timex Waterbury watch', 'Timex Waterbury Classic')),
    FamilySeed('Tag Heuer', 'Carrera', ('Tag Heuer Carrera watch', 'Tag Heuer Carrera automatic')),
    FamilySeed('Tag Heuer', 'Formula 1', ('Tag Heuer Formula 1 watch', 'Tag Heuer F1')),
    FamilySeed('Tag Heuer', 'Aquaracer', ('Tag Heuer Aquaracer watch', 'Tag Heuer Aquaracer diver')),
    FamilySeed('Omega', 'Seamaster Diver 300M', ('Omega Seamaster 300M watch', 'Omega Seamaster diver')),
    FamilySeed('Omega', 'Speedmaster Professional', ('Omega Speedmaster Professional watch', 'Omega Speedmaster Moon')),
    FamilySeed('Garmin', 'Fenix', ('Garmin Fenix watch', 'Garmin Fenix 7', 'Garmin Fenix 6')),
    FamilySeed('Garmin', 'Instinct', ('Garmin Instinct watch', 'Garmin Instinct Solar')),
    FamilySeed('Apple', 'Watch Series', ('Apple Watch Series 9', 'Apple Watch Series 8', 'Apple Watch Ultra')),
    FamilySeed('Samsung', 'Galaxy Watch', ('Samsung Galaxy Watch', 'Galaxy Watch 6', 'Galaxy Watch 5')),
]

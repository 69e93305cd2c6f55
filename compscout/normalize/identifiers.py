"""Identifier extraction from free-text watch listing titles.

Classification is table driven: each dictionary is an ordered list of
(pattern, label) rules and the first matching rule wins, so dictionary
order encodes tie-break priority. Extending a dictionary never touches
control flow.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Pattern, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Rule = Tuple[Union[str, Pattern[str]], str]


class KeywordClassifier:
    """
    Ordered (pattern, label) classifier.

    String patterns match as case-insensitive substrings; compiled regex
    patterns are searched as-is. ``classify`` returns the label of the first
    matching rule.
    """

    def __init__(self, rules: Iterable[Rule]):
        self.rules: list[Tuple[Union[str, Pattern[str]], str]] = []
        for pattern, label in rules:
            if isinstance(pattern, str):
                pattern = pattern.lower()
            self.rules.append((pattern, label))

    @classmethod
    def from_keywords(cls, keywords: Sequence[str]) -> "KeywordClassifier":
        """Each keyword labels itself."""
        return cls((kw, kw) for kw in keywords)

    def classify(self, text: str) -> Optional[str]:
        lowered = text.lower()
        for pattern, label in self.rules:
            if isinstance(pattern, str):
                if pattern in lowered:
                    return label
            elif pattern.search(text):
                return label
        return None

    def labels(self) -> list[str]:
        return [label for _, label in self.rules]


# Order matters: first substring match wins.
WATCH_BRANDS = [
    'rolex', 'omega', 'seiko', 'citizen', 'casio', 'tissot', 'hamilton', 'bulova',
    'orient', 'invicta', 'timex', 'fossil', 'movado', 'tag heuer', 'breitling',
    'cartier', 'longines', 'oris', 'tudor', 'iwc', 'panerai', 'hublot', 'audemars',
    'patek', 'vacheron', 'jaeger', 'zenith', 'grand seiko', 'ball', 'sinn', 'nomos',
    'junghans', 'mido', 'certina', 'rado', 'frederique', 'maurice lacroix', 'stuhrling',
    'alpina', 'glycine', 'marathon', 'luminox', 'victorinox', 'g-shock', 'garmin',
    'apple', 'samsung', 'fitbit', 'suunto', 'polar',
]

WATCH_FAMILIES: dict[str, list[str]] = {
    'seiko': ['prospex', 'presage', 'turtle', 'skx', 'samurai', 'monster', 'alpinist',
              'cocktail time', '5 sports', 'king seiko', 'astron', 'premier', 'solar', 'kinetic'],
    'citizen': ['eco-drive', 'promaster', 'nighthawk', 'chandler', 'corso', 'axiom', 'stiletto'],
    'casio': ['g-shock', 'edifice', 'oceanus', 'pro trek', 'mudmaster', 'rangeman',
              'frogman', 'gravitymaster'],
    'tissot': ['prx', 'powermatic', 'gentleman', 'seastar', 'prs', 'le locle', 'visodate',
               'chemin des tourelles', 't-sport', 't-race'],
    'hamilton': ['khaki', 'jazzmaster', 'ventura', 'intra-matic', 'boulton', 'american classic'],
    'bulova': ['precisionist', 'lunar pilot', 'accutron', 'curv', 'marine star', 'classic', 'sutton'],
    'orient': ['bambino', 'mako', 'ray', 'kamasu', 'star', 'sun & moon', 'triton'],
    'invicta': ['pro diver', 'bolt', 'speedway', 'subaqua', 'specialty', 'reserve', 'activa',
                'activa summit', 'elements', 'aviator', 'coalition forces', 'objet d art'],
    'omega': ['speedmaster', 'seamaster', 'constellation', 'de ville', 'aqua terra',
              'planet ocean', 'moonwatch'],
    'rolex': ['submariner', 'datejust', 'daytona', 'gmt master', 'explorer', 'oyster perpetual',
              'day-date', 'sea-dweller', 'yacht-master', 'air-king'],
    'tudor': ['black bay', 'pelagos', 'ranger', '1926', 'glamour'],
    'tag heuer': ['carrera', 'aquaracer', 'formula 1', 'monaco', 'autavia'],
    'apple': ['watch ultra 2', 'watch ultra', 'watch series 10', 'watch series 9',
              'watch series 8', 'watch series 7', 'watch series 6', 'watch series 5',
              'watch series 4', 'watch series 3', 'watch se 2', 'watch se'],
    'samsung': ['galaxy watch ultra', 'galaxy watch 7', 'galaxy watch 6', 'galaxy watch 5',
                'galaxy watch 4', 'galaxy watch 3', 'galaxy watch active', 'gear s3', 'gear s2'],
    'garmin': ['fenix 8', 'fenix 7', 'fenix 6', 'fenix 5', 'forerunner 965', 'forerunner 955',
               'forerunner 945', 'forerunner 745', 'forerunner 265', 'forerunner 255',
               'venu 3', 'venu 2', 'instinct 2', 'instinct', 'epix'],
    'fitbit': ['sense 2', 'sense', 'versa 4', 'versa 3', 'versa 2', 'charge 6', 'charge 5',
               'inspire 3', 'luxe'],
    'suunto': ['race', '9 peak', 'vertical', 'core', 'spartan'],
    'polar': ['vantage v3', 'vantage v2', 'grit x2', 'pacer pro', 'ignite 3'],
}

MOVEMENT_KEYWORDS = [
    'automatic', 'mechanical', 'hand-wound', 'handwound', 'manual', 'quartz', 'solar',
    'kinetic', 'eco-drive', 'nh35', 'nh36', 'nh38', 'sw200', 'sw300', 'eta 2824',
    'eta 2892', 'miyota', 'sellita', '7s26', '4r35', '4r36', '6r15', '6r35', '8l35',
    '9s65', 'caliber', 'cal.', 'movement',
]

# Tried in order; the first pattern producing a >= 4 char model wins.
MODEL_NUMBER_PATTERNS = [
    re.compile(r'\b([A-Z]{2,4}[0-9]{3,6}(?:-[0-9]{1,4})?)\b', re.IGNORECASE),  # ACW8082-007
    re.compile(r'\b([A-Z]{2,4}-?[0-9]{4,8})\b', re.IGNORECASE),
    re.compile(r'\b(ref\.?\s*[0-9A-Z\-]{4,12})\b', re.IGNORECASE),
    re.compile(r'\b([0-9]{3,6}[A-Z]{1,3})\b', re.IGNORECASE),
    re.compile(r'\b([0-9]{4,6})\b'),  # Bare model number like 47484
]
_BASE_MODEL_RE = re.compile(r'^([A-Z]{2,4}[0-9]{4,6})')

CASE_SIZE_RE = re.compile(r'\b(\d{2})\s*mm\b', re.IGNORECASE)

WOMENS_RE = re.compile(r"\b(women'?s?|ladies?|female)\b", re.IGNORECASE)
MENS_RE = re.compile(r"\b(men'?s?|gents?|male)\b", re.IGNORECASE)

# Case-size thresholds (mm) used when the title names no demographic
WOMENS_MAX_CASE_MM = 34
MENS_MIN_CASE_MM = 40

brand_classifier = KeywordClassifier.from_keywords(WATCH_BRANDS)
family_classifiers = {
    brand: KeywordClassifier.from_keywords(families)
    for brand, families in WATCH_FAMILIES.items()
}
movement_classifier = KeywordClassifier.from_keywords(MOVEMENT_KEYWORDS)
material_classifier = KeywordClassifier([
    (re.compile(r'\b(stainless\s*steel|ss|316l)\b', re.IGNORECASE), 'stainless steel'),
    (re.compile(r'\b(gold|18k|14k|rose gold|yellow gold)\b', re.IGNORECASE), 'gold'),
    (re.compile(r'\b(titanium|ti)\b', re.IGNORECASE), 'titanium'),
    (re.compile(r'\b(ceramic)\b', re.IGNORECASE), 'ceramic'),
    (re.compile(r'\b(bronze)\b', re.IGNORECASE), 'bronze'),
])
demographic_classifier = KeywordClassifier([
    (WOMENS_RE, 'womens'),
    (MENS_RE, 'mens'),
])


@dataclass
class Identifiers:
    """Structured attributes parsed from a listing title."""

    brand: str = ""
    family: str = ""
    model_number: Optional[str] = None
    movement: Optional[str] = None
    case_size: Optional[str] = None
    material: Optional[str] = None
    demographic: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def extract_brand(title: str) -> str:
    return brand_classifier.classify(title) or ""


def extract_family(title: str, brand: str) -> str:
    """Only look for families of the detected brand."""
    classifier = family_classifiers.get(brand)
    if not classifier:
        return ""
    return classifier.classify(title) or ""


def extract_model_number(title: str) -> Optional[str]:
    for pattern in MODEL_NUMBER_PATTERNS:
        match = pattern.search(title)
        if not match:
            continue
        cleaned = match.group(1).upper()
        # ACW8082-007 -> ACW8082
        base = _BASE_MODEL_RE.match(cleaned)
        if base:
            cleaned = base.group(1)
        if len(cleaned) >= 4:
            return cleaned
    return None


def extract_movement(title: str) -> Optional[str]:
    return movement_classifier.classify(title)


def extract_case_size(title: str) -> Optional[str]:
    match = CASE_SIZE_RE.search(title)
    if match:
        return f"{match.group(1)}mm"
    return None


def extract_material(title: str) -> Optional[str]:
    return material_classifier.classify(title)


def infer_demographic(title: str, case_size: Optional[str]) -> Optional[str]:
    """Explicit gender words win; otherwise fall back to case size thresholds."""
    explicit = demographic_classifier.classify(title)
    if explicit:
        return explicit
    if not case_size:
        return None
    size = int(case_size.rstrip("m"))
    if size <= WOMENS_MAX_CASE_MM:
        return 'womens'
    if size >= MENS_MIN_CASE_MM:
        return 'mens'
    return 'unisex'


def extract_identifiers(title: str) -> Identifiers:
    """
    Extract watch identifiers from a listing title.

    Each secondary attribute is extracted independently; a miss on one
    never blocks the others.

    Args:
        title: Free-text listing title

    Returns:
        Identifiers (brand/family are "" when not found)
    """
    if not title:
        return Identifiers()

    brand = extract_brand(title)
    family = extract_family(title, brand)
    case_size = extract_case_size(title)

    return Identifiers(
        brand=brand,
        family=family,
        model_number=extract_model_number(title),
        movement=extract_movement(title),
        case_size=case_size,
        material=extract_material(title),
        demographic=infer_demographic(title, case_size),
    )

# pokeprofit/filters/product_normalizer.py

"""Listing title recognition: map raw titles to canonical products."""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal

from pokeprofit.models.product import NormalizedProduct, ProductCategory

logger = logging.getLogger("pokeprofit.normalizer")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def canonicalize(text: str) -> str:
    """Lowercase, strip accents, turn punctuation runs into single spaces."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(
        ch for ch in decomposed if not unicodedata.combining(ch)
    )
    recomposed = unicodedata.normalize("NFC", stripped)
    return _NON_ALNUM_RE.sub(" ", recomposed).strip()


def _keyword_regex(
    keyword: str, whole_word: bool = False,
) -> re.Pattern[str]:
    """Match a canonical keyword at the start of a word.

    With ``whole_word`` the keyword must also end the word, so "magic"
    does not match "magicarpe".
    """
    pattern = r"(?<![a-z0-9])" + re.escape(canonicalize(keyword))
    if whole_word:
        pattern += r"(?![a-z0-9])"
    return re.compile(pattern)


@dataclass
class ProductPattern:
    """A curated product: set keywords + type keywords -> canonical name.

    A title must hit at least one keyword of each group and none of
    ``exclude_keywords`` for the pattern to score.
    """

    set_keywords: list[str]
    type_keywords: list[str]
    normalized_name: str
    set_name: str
    set_code: str
    category: ProductCategory
    msrp: Decimal | None = None
    exclude_keywords: list[str] = field(
        default_factory=lambda: list[str]()
    )


@dataclass(frozen=True)
class NormalizerWeights:
    """Confidence weights for curated and generic matching."""

    set_weight: float = 0.4
    type_weight: float = 0.6
    pattern_cap: float = 0.9
    generic_base: float = 0.3
    generic_category: float = 0.5
    set_bonus: float = 0.2


# Broad type keywords for generic matching, checked in this order
GENERIC_TYPE_KEYWORDS: list[tuple[ProductCategory, list[str]]] = [
    (ProductCategory.DISPLAY, [
        "display", "boite 36", "boîte 36", "box 36", "booster box",
        "36 boosters", "36 packs", "coffret 36",
    ]),
    (ProductCategory.ETB, [
        "etb", "elite trainer", "coffret dresseur", "trainer box",
        "coffret d'entrainement", "coffret entrainement",
    ]),
    (ProductCategory.COLLECTION, [
        "coffret", "collection", "premium collection", "ultra premium",
        "upc", "special collection", "coffret premium",
    ]),
    (ProductCategory.BUNDLE, [
        "bundle", "pack 6", "6 boosters", "pack boosters",
    ]),
    (ProductCategory.TIN, [
        "tin", "pokebox", "poke box", "metal box", "boite metal",
    ]),
    (ProductCategory.BOOSTER, [
        "booster", "pack", "pochette", "sachet",
    ]),
    (ProductCategory.SINGLE, [
        "carte", "card", "holo", "reverse", "full art", "alt art",
        "secret rare", "illustration rare", "special art",
    ]),
]

# Set detectors over canonical text, most specific first
SET_DETECTORS: list[tuple[str, str]] = [
    ("sv-151", r"\b151\b"),
    ("sv-paldean-fates", r"\bpaldea|\bpaldean|destinees? de paldea"),
    ("sv-prismatic-evo", r"evolutions? prismatiques?|prismatic evolutions?"),
    ("sv-twilight", r"masques? du crepuscule|twilight masquerade"),
    ("sv-temporal", r"forces? temporelles?|temporal forces?"),
    ("sv-obsidian", r"flammes? obsidiennes?|obsidian flames?"),
    ("sv-paradox", r"faille paradoxe?|paradox rift"),
    ("sv-base", r"ecarlate.*violet|scarlet.*violet"),
]

SET_NAMES: dict[str, str] = {
    "sv-151": "Écarlate et Violet 151",
    "sv-paldean-fates": "Destinées de Paldea",
    "sv-prismatic-evo": "Évolutions Prismatiques",
    "sv-twilight": "Masques du Crépuscule",
    "sv-temporal": "Forces Temporelles",
    "sv-obsidian": "Flammes Obsidiennes",
    "sv-paradox": "Faille Paradoxe",
    "sv-base": "Écarlate et Violet",
}

CATEGORY_PREFIXES: dict[ProductCategory, str] = {
    ProductCategory.DISPLAY: "Display",
    ProductCategory.ETB: "ETB",
    ProductCategory.COLLECTION: "Coffret",
    ProductCategory.BUNDLE: "Bundle",
    ProductCategory.TIN: "Tin",
    ProductCategory.BOOSTER: "Booster",
    ProductCategory.SINGLE: "Carte",
}

# Off-topic goods, counterfeits and other trading-card games
EXCLUDE_KEYWORDS: list[str] = [
    "lot de", "bundle lot", "fake", "proxy", "custom",
    "yugioh", "yu-gi-oh", "magic", "mtg", "one piece",
    "digimon", "dragon ball", "weiss schwarz",
]

MAX_GENERIC_NAME_LENGTH = 50

_DISPLAY_TYPES = ["display", "boite 36", "36 boosters"]
_ETB_TYPES = ["etb", "elite trainer", "coffret dresseur"]
_UPC_TYPES = ["ultra premium", "upc"]


def default_patterns() -> list[ProductPattern]:
    """Curated sealed products with their French MSRP."""
    display_msrp = Decimal("159.99")
    etb_msrp = Decimal("54.99")
    upc_msrp = Decimal("119.99")
    return [
        ProductPattern(
            set_keywords=["151"],
            type_keywords=_DISPLAY_TYPES,
            normalized_name="Display Écarlate et Violet 151",
            set_name="Écarlate et Violet 151",
            set_code="sv-151",
            category=ProductCategory.DISPLAY,
            msrp=display_msrp,
        ),
        ProductPattern(
            set_keywords=["paldea", "paldean", "destinées"],
            type_keywords=_DISPLAY_TYPES,
            normalized_name="Display Destinées de Paldea",
            set_name="Destinées de Paldea",
            set_code="sv-paldean-fates",
            category=ProductCategory.DISPLAY,
            msrp=display_msrp,
        ),
        ProductPattern(
            set_keywords=["prismatique", "prismatic"],
            type_keywords=_DISPLAY_TYPES,
            normalized_name="Display Évolutions Prismatiques",
            set_name="Évolutions Prismatiques",
            set_code="sv-prismatic-evo",
            category=ProductCategory.DISPLAY,
            msrp=display_msrp,
        ),
        ProductPattern(
            set_keywords=["crépuscule", "twilight", "masque"],
            type_keywords=_DISPLAY_TYPES,
            normalized_name="Display Masques du Crépuscule",
            set_name="Masques du Crépuscule",
            set_code="sv-twilight",
            category=ProductCategory.DISPLAY,
            msrp=display_msrp,
        ),
        ProductPattern(
            set_keywords=["temporelles", "temporal"],
            type_keywords=_DISPLAY_TYPES,
            normalized_name="Display Forces Temporelles",
            set_name="Forces Temporelles",
            set_code="sv-temporal",
            category=ProductCategory.DISPLAY,
            msrp=display_msrp,
        ),
        ProductPattern(
            set_keywords=["151"],
            type_keywords=_ETB_TYPES,
            normalized_name="ETB Écarlate et Violet 151",
            set_name="Écarlate et Violet 151",
            set_code="sv-151",
            category=ProductCategory.ETB,
            msrp=etb_msrp,
        ),
        ProductPattern(
            set_keywords=["paldea", "paldean", "destinées"],
            type_keywords=_ETB_TYPES,
            normalized_name="ETB Destinées de Paldea",
            set_name="Destinées de Paldea",
            set_code="sv-paldean-fates",
            category=ProductCategory.ETB,
            msrp=etb_msrp,
        ),
        ProductPattern(
            set_keywords=["prismatique", "prismatic"],
            type_keywords=_ETB_TYPES,
            normalized_name="ETB Évolutions Prismatiques",
            set_name="Évolutions Prismatiques",
            set_code="sv-prismatic-evo",
            category=ProductCategory.ETB,
            msrp=etb_msrp,
        ),
        ProductPattern(
            set_keywords=["dracaufeu", "charizard"],
            type_keywords=_UPC_TYPES,
            normalized_name="Coffret Dracaufeu Ultra Premium",
            set_name="Écarlate et Violet",
            set_code="sv-charizard-upc",
            category=ProductCategory.COLLECTION,
            msrp=upc_msrp,
        ),
        ProductPattern(
            set_keywords=["mew", "151"],
            type_keywords=_UPC_TYPES,
            normalized_name="Coffret Mew Ultra Premium",
            set_name="Écarlate et Violet 151",
            set_code="sv-151-upc",
            category=ProductCategory.COLLECTION,
            msrp=upc_msrp,
        ),
    ]


class _CompiledPattern:
    """A ProductPattern with its keyword regexes prepared once."""

    def __init__(self, pattern: ProductPattern) -> None:
        self.pattern = pattern
        self.set_res = [_keyword_regex(k) for k in pattern.set_keywords]
        self.type_res = [_keyword_regex(k) for k in pattern.type_keywords]
        self.exclude_res = [
            _keyword_regex(k, whole_word=True)
            for k in pattern.exclude_keywords
        ]


class ProductNormalizer:
    """Recognize the canonical product behind a marketplace title.

    Curated patterns are tried first; when none scores, a generic match
    guesses category and set from broad keyword groups.  Confidence is
    advisory: callers decide their own acceptance floor.
    """

    def __init__(
        self,
        patterns: list[ProductPattern] | None = None,
        weights: NormalizerWeights | None = None,
    ) -> None:
        self.weights = weights or NormalizerWeights()
        self._patterns: list[_CompiledPattern] = [
            _CompiledPattern(p)
            for p in (default_patterns() if patterns is None else patterns)
        ]
        self._exclude_res = [
            _keyword_regex(k, whole_word=True) for k in EXCLUDE_KEYWORDS
        ]
        self._type_res = [
            (category, [_keyword_regex(k) for k in keywords])
            for category, keywords in GENERIC_TYPE_KEYWORDS
        ]
        self._set_res = [
            (code, re.compile(expr)) for code, expr in SET_DETECTORS
        ]

    @staticmethod
    def canonicalize(text: str) -> str:
        return canonicalize(text)

    def add_pattern(self, pattern: ProductPattern) -> None:
        """Register an extra curated pattern (lowest precedence on ties)."""
        self._patterns.append(_CompiledPattern(pattern))

    @property
    def pattern_count(self) -> int:
        return len(self._patterns)

    def normalize(self, title: str) -> tuple[NormalizedProduct, float]:
        """Return the recognized product and its confidence in [0, 1]."""
        text = canonicalize(title)

        for regex in self._exclude_res:
            if regex.search(text):
                logger.debug("Excluded title: %r", title)
                return NormalizedProduct(), 0.0

        product, score = self._match_known(text)
        if score > 0:
            return product, score
        return self._match_generic(text, title)

    def _score(self, text: str, compiled: _CompiledPattern) -> float:
        for regex in compiled.exclude_res:
            if regex.search(text):
                return 0.0
        set_hits = sum(1 for r in compiled.set_res if r.search(text))
        type_hits = sum(1 for r in compiled.type_res if r.search(text))
        if not set_hits or not type_hits:
            return 0.0

        w = self.weights
        raw = (
            w.set_weight * set_hits / len(compiled.set_res)
            + w.type_weight * type_hits / len(compiled.type_res)
        )
        return min(w.pattern_cap, raw)

    def _match_known(self, text: str) -> tuple[NormalizedProduct, float]:
        best: ProductPattern | None = None
        best_score = 0.0
        for compiled in self._patterns:
            score = self._score(text, compiled)
            if score > best_score:
                best, best_score = compiled.pattern, score

        if best is None:
            return NormalizedProduct(), 0.0
        return NormalizedProduct(
            normalized_name=best.normalized_name,
            category=best.category,
            set_name=best.set_name,
            set_code=best.set_code,
            msrp=best.msrp,
            confidence=best_score,
        ), best_score

    def _match_generic(
        self, text: str, title: str,
    ) -> tuple[NormalizedProduct, float]:
        w = self.weights
        confidence = w.generic_base

        category: ProductCategory | None = None
        for candidate, regexes in self._type_res:
            if any(r.search(text) for r in regexes):
                category = candidate
                confidence = w.generic_category
                break
        if category is None:
            category = ProductCategory.SINGLE

        set_code = ""
        for code, regex in self._set_res:
            if regex.search(text):
                set_code = code
                confidence += w.set_bonus
                break

        product = NormalizedProduct(
            normalized_name=self.generate_name(category, set_code, title),
            category=category,
            set_name=SET_NAMES.get(set_code, ""),
            set_code=set_code,
            confidence=confidence,
        )
        return product, confidence

    @staticmethod
    def generate_name(
        category: ProductCategory, set_code: str, title: str,
    ) -> str:
        """Build 'Prefix Set Name', or truncate the title without a set."""
        if not set_code:
            title = title.strip()
            if len(title) > MAX_GENERIC_NAME_LENGTH:
                return title[:MAX_GENERIC_NAME_LENGTH] + "..."
            return title

        set_name = SET_NAMES.get(set_code, set_code)
        prefix = CATEGORY_PREFIXES.get(category, "Produit")
        return f"{prefix} {set_name}"

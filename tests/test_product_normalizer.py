# tests/test_product_normalizer.py

"""Tests for listing title recognition."""

import unittest
from decimal import Decimal

from pokeprofit.filters.product_normalizer import (
    NormalizerWeights,
    ProductNormalizer,
    ProductPattern,
    canonicalize,
)
from pokeprofit.models.product import ProductCategory


class TestCanonicalize(unittest.TestCase):

    def test_strips_accents_and_punctuation(self) -> None:
        self.assertEqual(
            canonicalize("  Écarlate & Violet—151 !! "),
            "ecarlate violet 151",
        )

    def test_collapses_whitespace(self) -> None:
        self.assertEqual(canonicalize("Boîte\t36\n  Boosters"), "boite 36 boosters")


class TestKnownPatterns(unittest.TestCase):
    """Curated product patterns."""

    def setUp(self) -> None:
        self.normalizer = ProductNormalizer()

    def test_display_151_full_match_is_capped(self) -> None:
        product, confidence = self.normalizer.normalize(
            "Display Pokémon 151 Boîte 36 Boosters FR Scellée"
        )
        self.assertEqual(product.normalized_name, "Display Écarlate et Violet 151")
        self.assertEqual(product.category, ProductCategory.DISPLAY)
        self.assertEqual(product.set_code, "sv-151")
        self.assertEqual(product.msrp, Decimal("159.99"))
        self.assertAlmostEqual(confidence, 0.9)
        self.assertAlmostEqual(product.confidence, confidence)

    def test_accented_keywords_match(self) -> None:
        """'destinées' and 'coffret dresseur' match after canonicalization."""
        product, confidence = self.normalizer.normalize(
            "Coffret Dresseur d'Élite ETB Destinées de Paldea"
        )
        self.assertEqual(product.normalized_name, "ETB Destinées de Paldea")
        self.assertEqual(product.category, ProductCategory.ETB)
        self.assertAlmostEqual(confidence, 0.4 * 2 / 3 + 0.6 * 2 / 3)

    def test_partial_type_match_score(self) -> None:
        product, confidence = self.normalizer.normalize("ETB 151 neuf")
        self.assertEqual(product.normalized_name, "ETB Écarlate et Violet 151")
        self.assertAlmostEqual(confidence, 0.4 + 0.6 / 3)

    def test_best_pattern_wins(self) -> None:
        product, _ = self.normalizer.normalize(
            "Coffret Ultra Premium Mew 151 UPC"
        )
        self.assertEqual(product.normalized_name, "Coffret Mew Ultra Premium")
        self.assertEqual(product.msrp, Decimal("119.99"))

    def test_pattern_exclude_keywords_match_whole_words(self) -> None:
        normalizer = ProductNormalizer(patterns=[
            ProductPattern(
                set_keywords=["151"],
                type_keywords=["display"],
                exclude_keywords=["vide"],
                normalized_name="Display 151",
                set_name="151",
                set_code="sv-151",
                category=ProductCategory.DISPLAY,
            ),
        ])
        product, _ = normalizer.normalize("Display 151 videos unboxing")
        self.assertEqual(product.normalized_name, "Display 151")

    def test_pattern_exclude_keywords_disqualify(self) -> None:
        normalizer = ProductNormalizer(patterns=[
            ProductPattern(
                set_keywords=["151"],
                type_keywords=["display"],
                exclude_keywords=["vide"],
                normalized_name="Display 151",
                set_name="151",
                set_code="sv-151",
                category=ProductCategory.DISPLAY,
            ),
        ])
        product, _ = normalizer.normalize("Display 151 vide")
        self.assertNotEqual(product.normalized_name, "Display 151")

    def test_add_pattern(self) -> None:
        count = self.normalizer.pattern_count
        self.normalizer.add_pattern(ProductPattern(
            set_keywords=["couronne", "zenith"],
            type_keywords=["etb"],
            normalized_name="ETB Zénith Suprême",
            set_name="Zénith Suprême",
            set_code="swsh-crown-zenith",
            category=ProductCategory.ETB,
            msrp=Decimal("59.99"),
        ))
        self.assertEqual(self.normalizer.pattern_count, count + 1)
        product, confidence = self.normalizer.normalize("ETB Zénith Suprême")
        self.assertEqual(product.normalized_name, "ETB Zénith Suprême")
        self.assertAlmostEqual(confidence, 0.4 * 0.5 + 0.6)

    def test_custom_weights(self) -> None:
        normalizer = ProductNormalizer(
            weights=NormalizerWeights(pattern_cap=0.5),
        )
        _, confidence = normalizer.normalize("Display 151 boite 36 36 boosters")
        self.assertAlmostEqual(confidence, 0.5)


class TestExclusions(unittest.TestCase):

    def test_excluded_titles_score_zero(self) -> None:
        normalizer = ProductNormalizer()
        for title in (
            "Lot de 50 cartes Pokémon",
            "Yu-Gi-Oh! booster display",
            "Magic The Gathering display",
            "Proxy Dracaufeu 151",
        ):
            with self.subTest(title=title):
                product, confidence = normalizer.normalize(title)
                self.assertEqual(confidence, 0.0)
                self.assertEqual(product.normalized_name, "")
                self.assertIsNone(product.category)


class TestGenericMatch(unittest.TestCase):
    """Fallback recognition without a curated pattern."""

    def setUp(self) -> None:
        self.normalizer = ProductNormalizer()

    def test_exclusions_match_whole_words_only(self) -> None:
        """Magicarpe cards are not Magic: The Gathering listings."""
        product, confidence = self.normalizer.normalize(
            "Carte Pokemon Magicarpe holo 151"
        )
        self.assertEqual(product.category, ProductCategory.SINGLE)
        self.assertEqual(product.set_code, "sv-151")
        self.assertAlmostEqual(confidence, 0.7)

        product, confidence = self.normalizer.normalize(
            "Carte Léviator Magicarpe full art"
        )
        self.assertEqual(product.category, ProductCategory.SINGLE)
        self.assertAlmostEqual(confidence, 0.5)

    def test_category_and_set(self) -> None:
        product, confidence = self.normalizer.normalize(
            "Booster Flammes Obsidiennes Pokémon"
        )
        self.assertEqual(product.category, ProductCategory.BOOSTER)
        self.assertEqual(product.set_code, "sv-obsidian")
        self.assertEqual(product.set_name, "Flammes Obsidiennes")
        self.assertEqual(product.normalized_name, "Booster Flammes Obsidiennes")
        self.assertIsNone(product.msrp)
        self.assertAlmostEqual(confidence, 0.7)

    def test_keywords_match_at_word_start(self) -> None:
        """'tin' inside 'destinées' must not classify as a tin."""
        product, _ = self.normalizer.normalize(
            "Pochette Destinées de Paldea"
        )
        self.assertEqual(product.category, ProductCategory.BOOSTER)
        self.assertEqual(product.normalized_name, "Booster Destinées de Paldea")

    def test_category_without_set_keeps_title(self) -> None:
        product, confidence = self.normalizer.normalize("Pokebox Noël Pikachu")
        self.assertEqual(product.category, ProductCategory.TIN)
        self.assertEqual(product.normalized_name, "Pokebox Noël Pikachu")
        self.assertAlmostEqual(confidence, 0.5)

    def test_nothing_identified_defaults_to_single(self) -> None:
        title = "Pikachu " + "x" * 60
        product, confidence = self.normalizer.normalize(title)
        self.assertEqual(product.category, ProductCategory.SINGLE)
        self.assertAlmostEqual(confidence, 0.3)
        self.assertEqual(product.normalized_name, title[:50] + "...")

    def test_specific_set_detected_before_base_set(self) -> None:
        product, _ = self.normalizer.normalize(
            "Bundle Écarlate et Violet Faille Paradoxe"
        )
        self.assertEqual(product.set_code, "sv-paradox")
        self.assertEqual(product.normalized_name, "Bundle Faille Paradoxe")

    def test_generate_name_unknown_set_code(self) -> None:
        self.assertEqual(
            ProductNormalizer.generate_name(
                ProductCategory.TIN, "sv-unknown", "ignored",
            ),
            "Tin sv-unknown",
        )

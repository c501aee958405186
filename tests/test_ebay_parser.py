# tests/test_ebay_parser.py

"""Tests for the eBay.fr sold-listing HTML parser."""

import unittest
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from bs4 import BeautifulSoup

from pokeprofit.scrapers.ebay_parser import EbayParser, load_selectors

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0)


def _load_soup(fixture_name: str) -> BeautifulSoup:
    """Parse a fixture HTML file."""
    html = (FIXTURES_DIR / fixture_name).read_text(encoding="utf-8")
    return BeautifulSoup(html, "lxml")


class TestParseSearchResults(unittest.TestCase):
    """Page-level extraction from a saved results page."""

    def setUp(self) -> None:
        self.parser = EbayParser(clock=lambda: FIXED_NOW)
        self.sales = self.parser.parse_search_results(
            _load_soup("ebay_sold_page.html")
        )

    def test_skips_placeholder_and_priceless_cards(self) -> None:
        """'Shop on eBay' and cards without a price are dropped."""
        self.assertEqual(len(self.sales), 3)
        titles = [s.title for s in self.sales]
        self.assertNotIn("Shop on eBay", titles)
        self.assertFalse(any("sans prix" in t for t in titles))

    def test_preserves_dom_order(self) -> None:
        self.assertTrue(self.sales[0].title.startswith("Display"))
        self.assertTrue(self.sales[1].title.startswith("Coffret"))
        self.assertTrue(self.sales[2].title.startswith("Booster"))

    def test_first_sale_fields(self) -> None:
        sale = self.sales[0]
        self.assertEqual(
            sale.title,
            "Display Pokémon 151 Boîte 36 Boosters FR Scellée",
        )
        self.assertEqual(sale.price, Decimal("159.99"))
        self.assertEqual(sale.currency, "EUR")
        self.assertEqual(sale.platform, "ebay")
        self.assertEqual(sale.sold_at, datetime(2024, 1, 12))

    def test_url_is_cleaned(self) -> None:
        """Query strings and fragments are stripped from listing URLs."""
        self.assertEqual(
            self.sales[0].url,
            "https://www.ebay.fr/itm/Display-Pokemon-151/123456789012",
        )
        self.assertEqual(
            self.sales[1].url, "https://www.ebay.fr/itm/234567890123",
        )

    def test_title_noise_removed(self) -> None:
        """'Nouvelle annonce' badges are not part of the title."""
        self.assertEqual(
            self.sales[1].title,
            "Coffret Dresseur d'Élite ETB Destinées de Paldea",
        )

    def test_metadata(self) -> None:
        meta = self.sales[0].metadata
        self.assertEqual(meta["condition"], "Neuf")
        self.assertIn("livraison", meta["shipping"])
        self.assertEqual(meta["item_id"], "123456789012")
        self.assertNotIn("condition", self.sales[2].metadata)

    def test_price_range_uses_lower_bound(self) -> None:
        self.assertEqual(self.sales[2].price, Decimal("10.00"))

    def test_empty_page_returns_empty_list(self) -> None:
        sales = self.parser.parse_search_results(
            _load_soup("ebay_empty_page.html")
        )
        self.assertEqual(sales, [])

    def test_missing_sold_date_falls_back_to_clock(self) -> None:
        html = (
            '<li class="s-item">'
            '<div class="s-item__title">Booster 151</div>'
            '<span class="s-item__price">5,00 EUR</span>'
            "</li>"
        )
        sales = self.parser.parse_search_results(
            BeautifulSoup(html, "lxml")
        )
        self.assertEqual(len(sales), 1)
        self.assertEqual(sales[0].sold_at, FIXED_NOW)
        self.assertEqual(sales[0].url, "")


class TestParsePrice(unittest.TestCase):
    """French-formatted price extraction."""

    def test_price_formats(self) -> None:
        cases = {
            "159,99 EUR": Decimal("159.99"),
            "EUR 12,50": Decimal("12.50"),
            "45,00\xa0€": Decimal("45.00"),
            "1 299,00 €": Decimal("1299.00"),
            "1 299,00 EUR": Decimal("1299.00"),
            "1.299,00 €": Decimal("1299.00"),
            "€1,299.99": Decimal("1299.99"),
            "1,299.99 EUR": Decimal("1299.99"),
            "100,00 à 150,00 EUR": Decimal("100.00"),
            "42": Decimal("42"),
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(EbayParser.parse_price(text), expected)

    def test_unparseable_returns_zero(self) -> None:
        for text in ("", None, "Gratuit", "EUR"):
            with self.subTest(text=text):
                self.assertEqual(EbayParser.parse_price(text), Decimal(0))


class TestParseSoldDate(unittest.TestCase):
    """'Vendu le ...' fragments against a fixed clock."""

    def setUp(self) -> None:
        self.parser = EbayParser(clock=lambda: FIXED_NOW)

    def test_explicit_year(self) -> None:
        self.assertEqual(
            self.parser.parse_sold_date("Vendu le 12 janv. 2024"),
            datetime(2024, 1, 12),
        )

    def test_accented_and_full_month_names(self) -> None:
        cases = {
            "Vendu le 3 févr. 2024": datetime(2024, 2, 3),
            "Vendu le 15 août 2023": datetime(2023, 8, 15),
            "Vendu le 9 septembre 2023": datetime(2023, 9, 9),
            "Vendu le 1 juillet 2023": datetime(2023, 7, 1),
            "Vendu le 21 juin 2023": datetime(2023, 6, 21),
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(self.parser.parse_sold_date(text), expected)

    def test_missing_year_uses_current_year(self) -> None:
        self.assertEqual(
            self.parser.parse_sold_date("Vendu le 1 mars"),
            datetime(2024, 3, 1),
        )

    def test_future_date_rolls_back_one_year(self) -> None:
        """A yearless date after 'now' belongs to last year."""
        self.assertEqual(
            self.parser.parse_sold_date("Vendu le 20 déc."),
            datetime(2023, 12, 20),
        )

    def test_no_date_returns_none(self) -> None:
        self.assertIsNone(self.parser.parse_sold_date("Livraison gratuite"))
        self.assertIsNone(self.parser.parse_sold_date(""))
        self.assertIsNone(self.parser.parse_sold_date(None))

    def test_impossible_date_returns_none(self) -> None:
        self.assertIsNone(
            self.parser.parse_sold_date("Vendu le 31 févr. 2024")
        )
        self.assertIsNone(self.parser.parse_sold_date("Vendu le 31 févr."))

    def test_leap_day_without_year_in_common_year(self) -> None:
        """29 Feb read in a non-leap year belongs to the last leap year."""
        parser = EbayParser(clock=lambda: datetime(2025, 1, 3, 9, 0, 0))
        self.assertEqual(
            parser.parse_sold_date("Vendu  le 29 févr."),
            datetime(2024, 2, 29),
        )

    def test_future_leap_day_rolls_back_to_previous_leap_year(self) -> None:
        parser = EbayParser(clock=lambda: datetime(2024, 1, 10))
        self.assertEqual(
            parser.parse_sold_date("Vendu le 29 févr."),
            datetime(2020, 2, 29),
        )


class TestFieldHelpers(unittest.TestCase):
    """Month mapping, URL cleaning and pagination signals."""

    def test_parse_month(self) -> None:
        self.assertEqual(EbayParser.parse_month("janv"), 1)
        self.assertEqual(EbayParser.parse_month("févr."), 2)
        self.assertEqual(EbayParser.parse_month("AOUT"), 8)
        self.assertEqual(EbayParser.parse_month("dec"), 12)
        self.assertEqual(EbayParser.parse_month("??"), 1)

    def test_clean_url(self) -> None:
        self.assertEqual(
            EbayParser.clean_url(
                "https://www.ebay.fr/itm/123?hash=abc&var=1#top"
            ),
            "https://www.ebay.fr/itm/123",
        )
        self.assertEqual(EbayParser.clean_url(""), "")

    def test_pagination_and_result_count(self) -> None:
        parser = EbayParser()
        soup = _load_soup("ebay_sold_page.html")
        self.assertTrue(parser.has_next_page(soup))
        self.assertIn("_pgn=2", parser.get_next_page_url(soup))
        self.assertEqual(parser.get_result_count(soup), 1234)

        empty = _load_soup("ebay_empty_page.html")
        self.assertFalse(parser.has_next_page(empty))
        self.assertEqual(parser.get_next_page_url(empty), "")
        self.assertEqual(parser.get_result_count(empty), 0)

    def test_load_selectors(self) -> None:
        selectors = load_selectors("ebay")
        self.assertEqual(selectors["product_card"], ".s-item")
        self.assertEqual(load_selectors("unknown"), {})

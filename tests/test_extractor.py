import pytest

from config import PricingPolicy, Settings
from extractor import build_item, parse_number, parse_price, parse_stock
from models import Gender


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12", 12.0),
        ("$1,234.50", 1234.5),
        ("  7 units ", 7.0),
        ("-3", -3.0),
        ("", 0.0),
        (None, 0.0),
        ("n/a", 0.0),
        ("-", 0.0),
        ("1.2.3", 0.0),
    ],
)
def test_parse_number_strips_noise(raw, expected):
    assert parse_number(raw) == expected


def test_parse_stock_reads_first_known_column():
    assert parse_stock({"Current Stock": "1,024"}) == 1024
    assert parse_stock({"Qty": "5"}) == 5
    assert parse_stock({"Current Stock": "", "Available": "3"}) == 3


def test_parse_stock_never_negative_or_fractional():
    assert parse_stock({"Qty": "-4"}) == 0
    assert parse_stock({"Qty": "2.9"}) == 2
    assert parse_stock({}) == 0


def test_parse_stock_safety_buffer():
    assert parse_stock({"Qty": "5"}, safety_buffer=2) == 3
    assert parse_stock({"Qty": "2"}, safety_buffer=2) == 0


def test_parse_price_policies():
    row = {"WholesalePrice": "$10.00"}
    assert parse_price(row) is None
    assert parse_price(row, PricingPolicy.MARKUP, 1.35) == 13.5
    assert parse_price({"Cost": "19.99"}, PricingPolicy.MARKUP, 1.35) == 26.99
    assert parse_price({"Price": "0"}, PricingPolicy.MARKUP, 1.35) == 0
    assert parse_price({}, PricingPolicy.MARKUP, 1.35) == 0


def test_build_item_full_row():
    row = {
        "SKU": " TS-100 ",
        "Product Name": "Classic  Crew <b>Tee</b>",
        "Brand": "Harbor &amp; Pine",
        "Category": "Tops",
        "Gender": "Men's",
        "Current Stock": "12",
        "Thumb Image URL": "//cdn.example.com/a.jpg",
    }
    item = build_item(row)

    assert item.sku == "TS-100"
    assert item.name == "Classic Crew Tee"
    assert item.brand == "Harbor & Pine"
    assert item.gender == Gender.MENS
    assert item.qty == 12
    assert item.in_stock is True
    assert item.image == ""
    assert item.source_image == "https://cdn.example.com/a.jpg"
    assert item.price is None


def test_build_item_uses_variant_columns_and_category_for_gender():
    row = {"Item": "X1", "Title": "Parka", "Manufacturer": "Acme", "Type": "Ladies Outerwear", "Quantity": "0"}
    item = build_item(row)

    assert (item.sku, item.name, item.brand, item.category) == ("X1", "Parka", "Acme", "Ladies Outerwear")
    assert item.gender == Gender.WOMENS
    assert item.qty == 0
    assert item.in_stock is False


def test_build_item_with_markup_and_buffer():
    settings = Settings(pricing_policy="markup", price_markup=2, safety_buffer=1)
    item = build_item({"SKU": "A", "Qty": "3", "Cost": "4.005"}, settings)

    assert item.qty == 2
    assert item.price == 8.01


def test_in_stock_always_matches_qty():
    for qty in ("0", "1", "-2", "abc", "99"):
        item = build_item({"SKU": "A", "Qty": qty})
        assert item.in_stock == (item.qty > 0)

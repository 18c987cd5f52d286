import pytest

from models import CatalogItem, Gender
from taxonomy import apply_overrides, load_overrides, normalize_gender


@pytest.mark.parametrize(
    "raw, category, expected",
    [
        ("Men's", "", Gender.MENS),
        ("MENS", "", Gender.MENS),
        ("male", "", Gender.MENS),
        ("Women", "", Gender.WOMENS),
        ("womens", "", Gender.WOMENS),
        ("FEMALE", "", Gender.WOMENS),
        ("Ladies", "", Gender.WOMENS),
        ("Sportswomen", "", Gender.WOMENS),
        ("Men's & Women's", "", Gender.WOMENS),
        ("Unisex", "", Gender.UNISEX),
        ("uni", "", Gender.UNISEX),
        ("Kids", "", Gender.CHILDRENS),
        ("Youth Boys", "", Gender.CHILDRENS),
        ("baby", "", Gender.CHILDRENS),
        ("Shop All", "", Gender.UNISEX),
        ("Misc", "", Gender.UNISEX),
        ("gizmo", "", Gender.UNISEX),
        ("", "", Gender.UNISEX),
        (None, None, Gender.UNISEX),
        ("", "Womens Footwear", Gender.WOMENS),
        ("  ", "Mens Hats", Gender.MENS),
        ("Men", "Women's Shoes", Gender.MENS),
    ],
)
def test_normalize_gender(raw, category, expected):
    assert normalize_gender(raw, category) == expected


def test_normalize_gender_never_outside_enum():
    for text in ("", "???", "all", "other", "123", "m/l", "w"):
        assert normalize_gender(text, "") in set(Gender)


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


def _write(tmp_path, text):
    path = tmp_path / "gender-overrides.json"
    path.write_text(text)
    return path


def test_missing_override_file_is_empty(tmp_path):
    assert load_overrides(tmp_path / "nope.json") == []


@pytest.mark.parametrize("text", ["{not json", '{"sku": "A", "gender": "MENS"}', ""])
def test_malformed_override_file_is_empty(tmp_path, text):
    assert load_overrides(_write(tmp_path, text)) == []


def test_bad_rules_are_skipped(tmp_path):
    path = _write(
        tmp_path,
        '[{"sku": "A", "gender": "ALIENS"}, {"gender": "MENS"}, "junk",'
        ' {"name_regex": "([", "gender": "MENS"}, {"sku": "B", "gender": "mens"}]',
    )
    overrides = load_overrides(path)

    assert len(overrides) == 1
    assert overrides[0].sku == "b"
    assert overrides[0].gender == Gender.MENS


def test_sku_override_is_case_insensitive(tmp_path):
    overrides = load_overrides(_write(tmp_path, '[{"sku": "ABC123", "gender": "WOMENS"}]'))
    item = CatalogItem(sku="abc123", name="Tee", qty=1)

    assert item.gender == Gender.UNISEX
    assert apply_overrides(item, overrides) == Gender.WOMENS


def test_numeric_sku_override(tmp_path):
    overrides = load_overrides(_write(tmp_path, '[{"sku": 1001, "gender": "MENS"}]'))
    assert apply_overrides(CatalogItem(sku="1001", qty=1), overrides) == Gender.MENS


def test_name_regex_with_inline_flag(tmp_path):
    overrides = load_overrides(_write(tmp_path, '[{"name_regex": "(?i)\\\\bmaternity\\\\b", "gender": "WOMENS"}]'))

    assert apply_overrides(CatalogItem(sku="Z", name="MATERNITY Jeans", qty=1), overrides) == Gender.WOMENS
    assert apply_overrides(CatalogItem(sku="Z", name="Paternity Jeans", qty=1), overrides) is None


def test_sku_rules_beat_earlier_name_rules(tmp_path):
    overrides = load_overrides(
        _write(
            tmp_path,
            '[{"name_regex": "tee", "gender": "CHILDRENS"}, {"sku": "A1", "gender": "MENS"}]',
        )
    )

    assert apply_overrides(CatalogItem(sku="a1", name="Tee", qty=1), overrides) == Gender.MENS
    assert apply_overrides(CatalogItem(sku="other", name="Tee", qty=1), overrides) == Gender.CHILDRENS


def test_first_matching_name_rule_wins(tmp_path):
    overrides = load_overrides(
        _write(
            tmp_path,
            '[{"name_regex": "jacket", "gender": "MENS"}, {"name_regex": "rain", "gender": "CHILDRENS"}]',
        )
    )
    assert apply_overrides(CatalogItem(name="Rain Jacket", qty=1), overrides) == Gender.MENS


def test_no_match_returns_none():
    assert apply_overrides(CatalogItem(sku="A", name="Tee", qty=1), []) is None

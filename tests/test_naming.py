import pytest

from schoolshop.services.naming import attributed_image_filename, image_type_label, normalize


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Größe XL!", "gr_e_xl"),
        ("  Rot/Blau  ", "rot_blau"),
        ("Off-White", "off_white"),
        ("ABC123", "abc123"),
    ],
)
def test_normalize_collapses_non_token_characters(raw, expected):
    assert normalize(raw) == expected


def test_normalize_is_idempotent():
    once = normalize("Schul Hoodie / Navy")
    assert normalize(once) == once


def test_normalize_falls_back_for_empty_input():
    assert normalize(None) == "x"
    assert normalize("!!!") == "x"
    assert normalize("", "shop") == "shop"


def test_image_type_label_maps_unknown_values_to_side():
    assert image_type_label("front") == "front"
    assert image_type_label("back") == "back"
    assert image_type_label("sleeve") == "side"
    assert image_type_label(None) == "side"


def test_attributed_image_filename_combines_shop_product_color_and_type():
    name = attributed_image_filename(
        shop_slug="gap-1a2b3c4d",
        product_name="Organic Hoodie - Stanley/Stella",
        color="Off-White",
        image_type="back",
        extension="png",
    )
    assert name == "gap_1a2b3c4d_organic_hoodie_stanley_stella_off_white_back.png"

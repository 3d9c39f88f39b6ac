from schoolshop.services.variant_matrix import STANDARD_VARIANT_NAME, VariantSpec, build_variants


def test_colors_and_sizes_give_one_variant_per_pair():
    variants = build_variants(["Rot", "Blau"], ["S", "M"])
    assert variants == [
        VariantSpec(name="S", color_name="Rot"),
        VariantSpec(name="S", color_name="Blau"),
        VariantSpec(name="M", color_name="Rot"),
        VariantSpec(name="M", color_name="Blau"),
    ]


def test_colors_only_give_standard_variants():
    variants = build_variants(["Rot"], [])
    assert variants == [VariantSpec(name=STANDARD_VARIANT_NAME, color_name="Rot")]


def test_sizes_only_give_colorless_variants():
    assert build_variants(None, ["S", "L"]) == [VariantSpec(name="S"), VariantSpec(name="L")]


def test_duplicates_and_blanks_are_dropped():
    variants = build_variants(["Rot", " Rot ", "", None], ["S", "S"])
    assert variants == [VariantSpec(name="S", color_name="Rot")]


def test_nothing_selected_gives_nothing():
    assert build_variants([], []) == []

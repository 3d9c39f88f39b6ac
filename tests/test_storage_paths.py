from schoolshop.services.storage_paths import (
    StoragePath,
    StorageUrlParseError,
    image_content_type,
    parse_storage_url,
    print_file_content_type,
    print_file_upload_path,
    public_url,
)


def test_parse_public_object_url():
    parsed = parse_storage_url(
        "https://storage.example.com/storage/v1/object/public/product-images/shop/hoodie%20front.png"
    )
    assert parsed == StoragePath(bucket="product-images", path="shop/hoodie front.png")


def test_parse_signed_object_url_ignores_query():
    parsed = parse_storage_url(
        "https://storage.example.com/storage/v1/object/sign/print-files/lead-configs/T1/file.pdf?token=abc"
    )
    assert parsed == StoragePath(bucket="print-files", path="lead-configs/T1/file.pdf")


def test_parse_falls_back_to_known_bucket_segment():
    parsed = parse_storage_url("https://cdn.example.com/assets/product-images/a/b.jpg")
    assert parsed == StoragePath(bucket="product-images", path="a/b.jpg")


def test_parse_reports_unmatched_urls_as_values():
    parsed = parse_storage_url("https://cdn.example.com/other/a.jpg")
    assert isinstance(parsed, StorageUrlParseError)
    assert parsed.reason == "no bucket/path pattern matched"

    assert isinstance(parse_storage_url(""), StorageUrlParseError)
    assert isinstance(parse_storage_url("product-images/a.jpg"), StorageUrlParseError)


def test_public_url_round_trips_through_parser():
    url = public_url("product-images", "shop/a b.png")
    assert url == "https://storage.example.com/storage/v1/object/public/product-images/shop/a%20b.png"
    assert parse_storage_url(url) == StoragePath(bucket="product-images", path="shop/a b.png")


def test_storage_path_with_filename_keeps_directory():
    location = StoragePath(bucket="product-images", path="shops/gap/old.JPG")
    assert location.extension == "JPG"
    assert location.with_filename("new.JPG") == StoragePath(bucket="product-images", path="shops/gap/new.JPG")
    assert StoragePath(bucket="b", path="root.png").with_filename("x.png").path == "x.png"


def test_print_file_upload_path_is_normalized():
    path = print_file_upload_path(
        textile_id="T1", color="Off-White", position="front", base_name="Logo Final!", extension=".pdf"
    )
    assert path == "lead-configs/T1/print/off_white/front_logo_final.pdf"


def test_content_types():
    assert print_file_content_type("PDF") == "application/pdf"
    assert print_file_content_type("zip") == "application/octet-stream"
    assert image_content_type("png") == "image/png"
    assert image_content_type("") == "image/jpeg"

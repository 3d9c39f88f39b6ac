from decimal import Decimal

from schoolshop.db.models import Textile
from schoolshop.services.textile_import import TextileImportReport, import_textiles, parse_json_array, parse_rows

CSV_CONTENT = (
    "id,produktname,herstellername,produktfarben,produktgrößen\n"
    'T1,Organic Hoodie,Stanley/Stella,"[""Rot"", ""Blau""]","[""S"", ""M""]"\n'
    "T2,Basic Tee,,,\n"
    ",Ohne Id,Brand,,\n"
)


def test_parse_json_array_handles_csv_quoting():
    assert parse_json_array('["S", "M"]') == ["S", "M"]
    assert parse_json_array('"[""Rot""]"') == ["Rot"]
    assert parse_json_array("") == []
    assert parse_json_array("not json") == []
    assert parse_json_array('{"a": 1}') == []


def test_parse_rows_skips_rows_without_id_or_name():
    report = TextileImportReport()
    rows = parse_rows(
        [
            {"id": "T1", "produktname": "Hoodie", "produktfarben": '["Rot"]'},
            {"id": "", "produktname": "Nameless"},
            {"id": "T3", "produktname": " "},
        ],
        report,
    )
    assert [row["id"] for row in rows] == ["T1"]
    assert rows[0]["available_colors"] == ["Rot"]
    assert rows[0]["brand"] is None
    assert report.skipped == 2


def test_import_creates_then_updates(db_session):
    report = import_textiles(db_session, CSV_CONTENT)
    assert (report.created, report.updated, report.skipped) == (2, 0, 1)

    hoodie = db_session.get(Textile, "T1")
    assert hoodie.brand == "Stanley/Stella"
    assert hoodie.available_colors == ["Rot", "Blau"]
    assert hoodie.available_sizes == ["S", "M"]
    assert hoodie.base_price == Decimal("0")
    assert hoodie.active is True

    hoodie.base_price = Decimal("12.00")
    db_session.commit()

    again = import_textiles(db_session, CSV_CONTENT)
    assert (again.created, again.updated) == (0, 2)
    db_session.refresh(hoodie)
    assert hoodie.base_price == Decimal("12.00")

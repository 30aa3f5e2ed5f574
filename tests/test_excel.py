import pandas as pd
import pytest

from alx_editor.importing.excel_import import export_workbook, import_workbook, sheet_rows
from alx_editor.models.game_session import GameSession


def test_workbook_round_trip(disc_path, tmp_path):
    workbook = tmp_path / "soa.xlsx"
    types = ["accessory", "character", "enemy"]
    with GameSession.open(disc_path) as session:
        counts = export_workbook(session, workbook, types)
        assert counts == {"accessory": 80, "character": 6, "enemy": 7}
        results = import_workbook(workbook, session.descriptors(types), session.item_database())
        assert sorted(results) == sorted(types)
        for type_name in types:
            assert results[type_name].ok, results[type_name].issues
            assert results[type_name].records == session.read_entries(type_name)


def test_unknown_sheets_are_skipped(disc_path, tmp_path):
    workbook = tmp_path / "mixed.xlsx"
    with GameSession.open(disc_path) as session:
        export_workbook(session, workbook, ["treasure_chest"])
        with pd.ExcelWriter(workbook, engine="openpyxl", mode="a") as writer:
            pd.DataFrame({"note": ["hello"]}).to_excel(writer, sheet_name="Notes", index=False)
        results = import_workbook(workbook, session.descriptors())
    assert list(results) == ["treasure_chest"]
    assert results["treasure_chest"].ok


def test_unreadable_workbook(tmp_path):
    bogus = tmp_path / "bogus.xlsx"
    bogus.write_bytes(b"not a workbook")
    with pytest.raises(RuntimeError):
        import_workbook(bogus, {})


def test_sheet_rows_keeps_text():
    df = pd.DataFrame({"id": ["0", "1"], "flags": ["0b00000001", ""]})
    assert sheet_rows(df) == [["id", "flags"], ["0", "0b00000001"], ["1", ""]]

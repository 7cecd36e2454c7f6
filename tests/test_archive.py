from pathlib import Path

from archive import archive_workbooks, clean_archive_dir


def test_clean_archive_dir_creates_missing_dir(tmp_path: Path) -> None:
    target = tmp_path / "old_excel_files"

    assert clean_archive_dir(target) == 0
    assert target.is_dir()


def test_clean_archive_dir_removes_files(tmp_path: Path) -> None:
    target = tmp_path / "old_excel_files"
    target.mkdir()
    (target / "formations_a.xlsx").write_bytes(b"x")
    (target / "notes.txt").write_text("y")

    assert clean_archive_dir(target) == 2
    assert list(target.iterdir()) == []


def test_archive_workbooks_moves_only_xlsx(tmp_path: Path) -> None:
    archive_dir = tmp_path / "old_excel_files"
    (tmp_path / "formations_psychologie.xlsx").write_bytes(b"x")
    (tmp_path / "formations_physique.xlsx").write_bytes(b"x")
    (tmp_path / "README.md").write_text("keep")

    moved = archive_workbooks(tmp_path, archive_dir)

    assert sorted(p.name for p in moved) == ["formations_physique.xlsx", "formations_psychologie.xlsx"]
    assert not list(tmp_path.glob("*.xlsx"))
    assert (tmp_path / "README.md").exists()
    assert (archive_dir / "formations_psychologie.xlsx").exists()

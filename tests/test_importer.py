# tests/test_importer.py
from study_tools.db import init_db, get_connection
from study_tools.importer import (
    collapse_whitespace, get_imported_content, import_file, list_imported_content,
    read_file_content, strip_html,
)

def test_read_txt_file(tmp_path):
    f = tmp_path / "notes.txt"
    f.write_text("Photosynthesis converts light into chemical energy.")
    content = read_file_content(str(f))
    assert "Photosynthesis" in content

def test_read_md_file(tmp_path):
    f = tmp_path / "notes.md"
    f.write_text("# Cells\n\nMitochondria produce energy for the cell.")
    content = read_file_content(str(f))
    assert "Mitochondria" in content

def test_read_json_file(tmp_path):
    f = tmp_path / "notes.json"
    f.write_text('{"notes": "The French revolution began in 1789"}')
    content = read_file_content(str(f))
    assert "1789" in content

def test_read_yaml_file(tmp_path):
    f = tmp_path / "notes.yaml"
    f.write_text("topic: Plate tectonics\nsummary: Continents drift slowly\n")
    content = read_file_content(str(f))
    assert "Plate tectonics" in content

def test_read_html_file_keeps_paragraphs(tmp_path):
    f = tmp_path / "page.html"
    f.write_text("<html><body><h1>Title</h1><p>First paragraph.</p><script>x()</script><p>Second one.</p></body></html>")
    content = read_file_content(str(f))
    assert content == "Title\n\nFirst paragraph.\n\nSecond one."

def test_read_docx_file(tmp_path):
    from docx import Document
    doc = Document()
    doc.add_paragraph("Newton described three laws of motion.")
    doc.add_paragraph("Force equals mass times acceleration.")
    path = tmp_path / "physics.docx"
    doc.save(str(path))
    content = read_file_content(str(path))
    assert "Newton described three laws of motion.\n\nForce equals mass times acceleration." in content

def test_strip_html():
    assert collapse_whitespace(strip_html("<p>One</p><p>Two <b>three</b></p>")) == "One Two three"

def test_collapse_whitespace():
    assert collapse_whitespace("  a \n\n b\t c ") == "a b c"

def test_import_file(tmp_path, tmp_db):
    init_db(tmp_db)
    f = tmp_path / "study.txt"
    f.write_text("The water cycle moves water between land, sea and sky.")
    result = import_file(tmp_db, str(f))
    assert result["filename"] == "study.txt"
    assert result["length"] == len("The water cycle moves water between land, sea and sky.")
    conn = get_connection(tmp_db)
    imported = conn.execute("SELECT * FROM imported_content").fetchall()
    assert len(imported) == 1
    assert "water cycle" in imported[0]["content_text"]
    conn.close()

def test_list_and_get_imported_content(tmp_path, tmp_db):
    init_db(tmp_db)
    for name in ("a.txt", "b.txt"):
        f = tmp_path / name
        f.write_text(f"Contents of {name}")
        import_file(tmp_db, str(f))
    items = list_imported_content(tmp_db)
    assert [i["filename"] for i in items] == ["a.txt", "b.txt"]
    assert items[1]["length"] == len("Contents of b.txt")
    assert get_imported_content(tmp_db, items[0]["id"]) == "Contents of a.txt"
    assert get_imported_content(tmp_db, 999) is None

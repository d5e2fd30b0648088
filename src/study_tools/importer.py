"""Import study material from various file formats."""
import json
import re
from datetime import datetime
from pathlib import Path

from bs4 import BeautifulSoup

from study_tools.db import get_connection


def strip_html(content: str) -> str:
    """Plain text of an HTML fragment. Block boundaries become spaces."""
    return BeautifulSoup(content, "html.parser").get_text(" ")


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text()
    elif suffix == ".json":
        data = json.loads(path.read_text())
        return json.dumps(data, indent=2) if isinstance(data, dict) else str(data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
        return str(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        # Blank line between paragraphs so question generation can split on them
        return "\n\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        html = path.read_text()
        soup = BeautifulSoup(html, "html.parser")
        blocks = [el.get_text(" ", strip=True) for el in soup.find_all(["p", "li", "h1", "h2", "h3"])]
        blocks = [b for b in blocks if b]
        return "\n\n".join(blocks) if blocks else soup.get_text()
    else:
        # Try reading as plain text
        return path.read_text()


def import_file(db_path: str, file_path: str) -> dict:
    """Import a file into the database as quiz source material."""
    content = read_file_content(file_path)
    conn = get_connection(db_path)
    cursor = conn.execute(
        "INSERT INTO imported_content (filename, content_text, imported_at) VALUES (?, ?, ?)",
        (Path(file_path).name, content, datetime.now().isoformat()),
    )
    conn.commit()
    content_id = cursor.lastrowid
    conn.close()
    return {"id": content_id, "filename": Path(file_path).name, "length": len(content)}


def list_imported_content(db_path: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT id, filename, imported_at, LENGTH(content_text) as length FROM imported_content ORDER BY id"
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_imported_content(db_path: str, content_id: int) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT content_text FROM imported_content WHERE id = ?", (content_id,)
    ).fetchone()
    conn.close()
    return row["content_text"] if row else None

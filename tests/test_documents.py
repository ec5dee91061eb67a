"""
Document store and its owner-scoped HTTP routes.
"""

import pytest

from src.documents.store import DocumentStore, count_words, make_excerpt

BODY = """Pendahuluan penelitian tentang pertanian berkelanjutan.

Daftar Pustaka
[1] Mollison, B. Permaculture: A Designers' Manual.
2. Holmgren, D. Permaculture principles (2002)
"""


@pytest.fixture
def docs(engine):
    return DocumentStore(engine)


def test_counts_and_excerpt(docs):
    doc = docs.create("alice", "Proposal", content=BODY, doc_type="academic")
    assert doc["word_count"] == count_words(BODY)
    assert doc["page_count"] == 1
    assert doc["reference_count"] == 2
    assert doc["excerpt"].startswith("Pendahuluan penelitian")


def test_excerpt_truncates():
    assert make_excerpt("kata " * 100).endswith("...")
    assert len(make_excerpt("kata " * 100)) <= 203


def test_invalid_doc_type(docs):
    with pytest.raises(ValueError):
        docs.create("alice", "X", doc_type="spreadsheet")


def test_foreign_document_behaves_as_missing(docs):
    doc = docs.create("alice", "Milik Alice", content="isi")
    assert docs.get("bob", doc["id"]) is None
    assert docs.update("bob", doc["id"], title="diambil") is None
    assert docs.delete("bob", doc["id"]) is False
    assert docs.get("alice", doc["id"])["title"] == "Milik Alice"


def test_update_recounts_content(docs):
    doc = docs.create("alice", "Draft", content="satu dua")
    updated = docs.update("alice", doc["id"], content="satu dua tiga empat")
    assert updated["word_count"] == 4
    assert updated["excerpt"] == "satu dua tiga empat"


# ── HTTP ──

def test_document_routes(api):
    resp = api.post("/documents", json={"title": "Laporan: Akhir", "content": "isi laporan", "type": "generated"})
    assert resp.status_code == 201
    doc_id = resp.json()["id"]

    assert [d["id"] for d in api.get("/documents").json()] == [doc_id]

    download = api.get(f"/documents/{doc_id}/download")
    assert download.status_code == 200
    assert download.text == "isi laporan"
    assert "Laporan_ Akhir.txt" in download.headers["content-disposition"].replace("%20", " ")

    api.login_as("bob")
    assert api.get(f"/documents/{doc_id}").status_code == 404
    assert api.delete(f"/documents/{doc_id}").status_code == 404

    api.login_as("alice")
    assert api.put(f"/documents/{doc_id}", json={"title": "Baru"}).json()["title"] == "Baru"
    assert api.delete(f"/documents/{doc_id}").json() == {"document_id": doc_id, "deleted": True}
    assert api.get(f"/documents/{doc_id}").status_code == 404

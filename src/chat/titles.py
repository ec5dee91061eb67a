"""Descriptive chat titles derived from the first user message."""

from typing import List, Tuple

from src.chat.prompts import DEFAULT_CHAT_TITLES

MAX_FALLBACK_CHARS = 35

# (keywords, title) checked in order against the lower-cased message.
_TOPIC_TITLES: List[Tuple[Tuple[str, ...], str]] = [
    (("permaculture", "permakultur"), "Riset Permaculture"),
    (("climate", "iklim"), "Riset Perubahan Iklim"),
    (("education", "pendidikan"), "Riset Pendidikan"),
    (("technology", "teknologi"), "Riset Teknologi"),
    (("health", "kesehatan"), "Riset Kesehatan"),
    (("economic", "ekonomi"), "Riset Ekonomi"),
    (("social", "sosial"), "Riset Sosial"),
    (("lingkungan", "environment"), "Riset Lingkungan"),
    (("budaya", "culture"), "Riset Budaya"),
    (("politik", "political"), "Riset Politik"),
]

_DOC_TYPE_TITLES: List[Tuple[Tuple[str, ...], str]] = [
    (("proposal",), "Proposal Penelitian"),
    (("artikel", "article"), "Artikel Jurnal"),
    (("laporan", "report"), "Laporan Penelitian"),
    (("makalah", "paper"), "Makalah Ilmiah"),
    (("skripsi",), "Skripsi"),
    (("tesis", "thesis"), "Tesis"),
    (("disertasi",), "Disertasi"),
]

_KEY_TERMS = (
    "hukum", "law", "psikologi", "psychology", "komunikasi", "communication",
    "manajemen", "management", "bisnis", "business",
)

_STOPWORDS = frozenset({
    "dengan", "untuk", "pada", "dalam", "dari", "yang", "adalah", "akan", "dapat",
    "bisa", "harus", "telah", "riset", "mengenai", "tentang", "buat", "buatkan",
})

_PREFIX = {"research": "Riset", "create": "Dokumen", "edit": "Edit"}


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def generate_chat_title(content: str, mode: str) -> str:
    if not content or not content.strip():
        return DEFAULT_CHAT_TITLES.get(mode, DEFAULT_CHAT_TITLES["research"])

    text = content.lower().strip()
    for table in (_TOPIC_TITLES, _DOC_TYPE_TITLES):
        for keywords, title in table:
            if any(k in text for k in keywords):
                return title

    prefix = _PREFIX.get(mode, "Riset")
    words = text.split()
    for term in _KEY_TERMS:
        if any(term in w for w in words):
            return f"{prefix} {_capitalize(term)}"

    meaningful = [w for w in words if len(w) > 3 and w not in _STOPWORDS]
    if meaningful:
        return f"{prefix} " + " ".join(_capitalize(w) for w in meaningful[:2])

    stripped = content.strip()
    if len(stripped) > MAX_FALLBACK_CHARS:
        return stripped[:MAX_FALLBACK_CHARS].strip() + "..."
    return stripped

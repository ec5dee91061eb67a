"""
Chat modes and their system prompts.

The mode only selects the persona text sent ahead of the history; the
pipeline mechanics are identical for every mode.
"""

from typing import Dict, Optional

MODES = ("research", "create", "edit")

# Legacy/client spellings accepted on input.
MODE_ALIASES: Dict[str, str] = {
    "riset": "research",
    "research": "research",
    "create": "create",
    "buat": "create",
    "edit": "edit",
}

DEFAULT_CHAT_TITLES: Dict[str, str] = {
    "research": "Riset Baru",
    "create": "Buat Dokumen",
    "edit": "Edit Dokumen",
}

BASE_PROMPT = (
    "Anda adalah Mitra AI, asisten penulisan akademik. "
    "Berikan respons dalam bahasa Indonesia yang jelas, terstruktur, dan ringkas."
)

_MODE_PROMPTS: Dict[str, str] = {
    "research": """Mode Riset - Bantu dengan:
- Analisis literatur dan metodologi penelitian
- Saran desain penelitian kualitatif/kuantitatif
- Formulasi pertanyaan dan hipotesis penelitian
- Referensi jurnal akademik kredibel
- Interpretasi data dan temuan

Berikan jawaban terstruktur dengan subheading dan saran praktis.""",
    "create": """Mode Pembuatan Dokumen - Bantu dengan:
- Outline dan struktur dokumen akademik
- Penulisan bagian dokumen (abstrak, pendahuluan, metodologi, hasil, pembahasan)
- Format citation APA/MLA/IEEE
- Template sesuai standar jurnal
- Pengembangan argumen yang kuat

Pastikan konten sesuai kaidah penulisan ilmiah.""",
    "edit": """Mode Edit Dokumen - Bantu dengan:
- Review struktur dan alur dokumen
- Perbaikan koherensi dan clarity
- Konsistensi format dan referensi
- Saran perbaikan metodologi
- Fact-checking dan verifikasi

Berikan feedback konstruktif dan spesifik.""",
}


def normalize_mode(mode: Optional[str], default: str = "research") -> str:
    """Map a client mode string to one of MODES; ValueError for anything unknown."""
    if mode is None or not str(mode).strip():
        return default
    key = str(mode).strip().lower()
    if key not in MODE_ALIASES:
        raise ValueError(f"unknown mode {mode!r}; expected one of {MODES}")
    return MODE_ALIASES[key]


def system_prompt(mode: str) -> str:
    body = _MODE_PROMPTS.get(mode)
    if body is None:
        return f"{BASE_PROMPT} Bantu dengan tugas akademik."
    return f"{BASE_PROMPT}\n\n{body}"

from src.documents.store import DocumentStore, count_words, make_excerpt

__all__ = ["DocumentStore", "count_words", "make_excerpt"]

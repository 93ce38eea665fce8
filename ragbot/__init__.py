"""ragbot - retrieval-augmented chatbot backend with hybrid BM25 + vector search"""

__version__ = "0.1.0"

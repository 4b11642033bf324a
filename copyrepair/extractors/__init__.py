"""Draft parsing: line lexer and field-tree extractor."""
from .lexer import DraftLexer, HeaderMatch, normalize_header_line
from .structure_extractor import FieldValue, HeaderSite, StructureExtractor

__all__ = [
    "DraftLexer",
    "HeaderMatch",
    "normalize_header_line",
    "FieldValue",
    "HeaderSite",
    "StructureExtractor",
]

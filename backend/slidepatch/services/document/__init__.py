from .pdf_mutator import PdfDocumentMutator
from .pdf_source import PdfDocumentSource, TextInfo, parse_font_name

__all__ = ["PdfDocumentMutator", "PdfDocumentSource", "TextInfo", "parse_font_name"]

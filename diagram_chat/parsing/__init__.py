"""Attachment decoding and validation.

Responsibilities:
    - Base64 data URI encoding and decoding
    - PDF readability checks with pypdf

Shared by the client encoder and the server-side composition step.
"""

from diagram_chat.parsing.data_uri import (
    DataURIError,
    decode_data_uri,
    encode_data_uri,
    is_data_uri,
)
from diagram_chat.parsing.pdf_parser import MAX_FILE_SIZE, PDFInfo, PDFParseError, inspect_pdf

__all__ = [
    "MAX_FILE_SIZE",
    "DataURIError",
    "PDFInfo",
    "PDFParseError",
    "decode_data_uri",
    "encode_data_uri",
    "inspect_pdf",
    "is_data_uri",
]

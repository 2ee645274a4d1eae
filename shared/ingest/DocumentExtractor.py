"""Converts uploaded files into plain text segments, one strategy per file type."""

import io
import json
from pathlib import Path

import docx2txt
import pandas as pd
from docx import Document as DocxDocument
from PIL import Image
from pypdf import PdfReader

from shared.errors import ExtractionError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import RawSegment

TEXT_ENCODINGS = ("utf-8", "cp1252")

FILE_TYPE_PDF = "pdf"
FILE_TYPE_WORD = "word"
FILE_TYPE_TEXT = "text"
FILE_TYPE_IMAGE = "image"
FILE_TYPE_DOCUMENT = "document"

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tiff"}


def file_type_for(name: str) -> str:
    """Coarse file category shown in file listings ("pdf", "word", "text", "image" or "document")."""
    ext = Path(name).suffix.lower()
    if ext == ".pdf":
        return FILE_TYPE_PDF
    if ext in (".doc", ".docx"):
        return FILE_TYPE_WORD
    if ext in (".txt", ".md", ".markdown"):
        return FILE_TYPE_TEXT
    if ext in IMAGE_EXTENSIONS:
        return FILE_TYPE_IMAGE
    return FILE_TYPE_DOCUMENT


def decode_text(data: bytes) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte, including the five cp1252 leaves undefined
    return data.decode("latin-1")


class DocumentExtractor:
    """Dispatches on the lowercased file extension.

    Strategies raise freely; ``extract`` turns any failure into a single
    placeholder segment so one broken file never stops a compile run.
    """

    _STRATEGIES = {
        ".txt": "_extract_text",
        ".md": "_extract_text",
        ".markdown": "_extract_text",
        ".pdf": "_extract_pdf",
        ".docx": "_extract_word",
        ".doc": "_extract_word",
        ".xlsx": "_extract_spreadsheet",
        ".xlsm": "_extract_spreadsheet",
        ".csv": "_extract_csv",
        **{ext: "_extract_image" for ext in IMAGE_EXTENSIONS},
    }
    _DEFAULT_STRATEGY = "_extract_unsupported"

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()

    def extract(self, file_path: Path, file_bytes: bytes | None = None) -> list[RawSegment]:
        """Extract text segments from a file.

        Args:
            file_path (Path): Path of the file; the extension selects the strategy.
            file_bytes (bytes | None): File content, read from ``file_path`` when omitted.

        Returns:
            list[RawSegment]: At least one segment. Never raises.
        """
        file_path = Path(file_path)
        ext = file_path.suffix.lower()
        strategy = getattr(self, self._STRATEGIES.get(ext, self._DEFAULT_STRATEGY))
        try:
            data = file_bytes if file_bytes is not None else file_path.read_bytes()
            segments = strategy(file_path.name, data)
        except Exception as e:
            error = ExtractionError(f"Could not extract {file_path.name}", detail=str(e))
            self.logging.error("%s: %s", error.message, error.detail)
            return [self._placeholder(file_path.name, "extraction failed")]

        if not segments:
            return [self._placeholder(file_path.name, "no extractable text")]
        return segments

    def _placeholder(self, name: str, reason: str) -> RawSegment:
        return RawSegment(text=f"File: {name} (Content not extracted - {reason})", metadata={"placeholder": True})

    ##########################################
    ############### STRATEGIES ###############
    ##########################################

    def _extract_text(self, name: str, data: bytes) -> list[RawSegment]:
        return [RawSegment(text=decode_text(data))]

    def _extract_pdf(self, name: str, data: bytes) -> list[RawSegment]:
        reader = PdfReader(io.BytesIO(data))
        segments = []
        for number, page in enumerate(reader.pages, start=1):
            text = page.extract_text() or ""
            if text.strip():
                segments.append(RawSegment(text=text, metadata={"page": number}))
        self.logging.debug("Extracted %d of %d pages from %s", len(segments), len(reader.pages), name)
        return segments

    def _extract_word(self, name: str, data: bytes) -> list[RawSegment]:
        try:
            document = DocxDocument(io.BytesIO(data))
            parts = [p.text for p in document.paragraphs if p.text.strip()]
            for table in document.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        parts.append(" | ".join(cells))
            text = "\n\n".join(parts)
        except Exception as e:
            self.logging.warning("python-docx could not read %s (%s), trying docx2txt", name, e)
            text = docx2txt.process(io.BytesIO(data)) or ""
        return [RawSegment(text=text)] if text.strip() else []

    def _extract_spreadsheet(self, name: str, data: bytes) -> list[RawSegment]:
        sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, engine="openpyxl")
        segments = []
        for sheet_name, frame in sheets.items():
            frame = frame.astype(object).where(frame.notna(), None)
            rows = [json.dumps(record, ensure_ascii=False, default=str) for record in frame.to_dict(orient="records")]
            text = "\n".join([f"Sheet: {sheet_name}", *rows])
            segments.append(RawSegment(text=text, metadata={"sheet": str(sheet_name)}))
        return segments

    def _extract_csv(self, name: str, data: bytes) -> list[RawSegment]:
        frame = pd.read_csv(io.StringIO(decode_text(data)))
        blocks = []
        for record in frame.to_dict(orient="records"):
            lines = [f"{column}: {value}" for column, value in record.items() if not pd.isna(value)]
            if lines:
                blocks.append("\n".join(lines))
        return [RawSegment(text="\n\n".join(blocks))] if blocks else []

    def _extract_image(self, name: str, data: bytes) -> list[RawSegment]:
        # metadata only, the visual content is not described
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            text = (
                f"Image file: {name}\n"
                f"Format: {image.format}\n"
                f"Dimensions: {width}x{height} pixels\n"
                f"Color mode: {image.mode}\n"
                f"File size: {len(data)} bytes"
            )
        return [RawSegment(text=text, metadata={"width": width, "height": height})]

    def _extract_unsupported(self, name: str, data: bytes) -> list[RawSegment]:
        ext = Path(name).suffix.lower() or "without extension"
        return [RawSegment(text=f"File: {name} (unsupported file type {ext}, {len(data)} bytes)")]

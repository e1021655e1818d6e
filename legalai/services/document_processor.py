import io
from typing import Optional

import docx
import fitz  # PyMuPDF

from legalai.errors import ValidationError
from legalai.utils.logger import logger

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TXT = "text/plain"

EXTENSION_TYPES = {
    ".pdf": PDF,
    ".docx": DOCX,
    ".txt": TXT,
}


class DocumentProcessorService:
    def __init__(self, max_file_size_mb: int = 10, max_pages: int = 200):
        self.max_bytes = max_file_size_mb * 1024 * 1024
        self.max_pages = max_pages

    def resolve_type(self, filename: Optional[str], content_type: Optional[str]) -> str:
        """Picks the document type from the declared MIME type, falling back to the file extension."""
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type in EXTENSION_TYPES.values():
            return content_type

        name = (filename or "").lower()
        for ext, mime in EXTENSION_TYPES.items():
            if name.endswith(ext):
                return mime

        raise ValidationError("Invalid file type. Upload a PDF, DOCX, or TXT file.")

    def validate(self, data: bytes, mime_type: str):
        """Raises ValidationError if the upload is empty, too large, or an unsupported type."""
        if not data:
            raise ValidationError("No file uploaded. Please upload a valid document.")
        if len(data) > self.max_bytes:
            raise ValidationError(f"File exceeds the {self.max_bytes // (1024 * 1024)}MB limit.")
        if mime_type not in EXTENSION_TYPES.values():
            raise ValidationError("Invalid file type. Upload a PDF, DOCX, or TXT file.")

    def extract_text(self, data: bytes, mime_type: str) -> str:
        """Extracts normalized plain text. Raises ValidationError when nothing usable comes out."""
        self.validate(data, mime_type)

        try:
            if mime_type == PDF:
                text = self._extract_pdf(data)
            elif mime_type == DOCX:
                text = self._extract_docx(data)
            else:
                text = data.decode("utf-8", errors="replace")
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Error extracting text from {mime_type} upload: {str(e)}")
            raise ValidationError("File is not a valid document or is corrupted.") from e

        # Collapse runs of whitespace
        text = " ".join(text.replace("\x00", "").split())
        if not text:
            raise ValidationError("Unable to extract text from the document.")
        return text

    def _extract_pdf(self, data: bytes) -> str:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            if len(doc) > self.max_pages:
                raise ValidationError(f"PDF exceeds maximum allowed pages ({self.max_pages}).")
            full_text = []
            for page_num in range(len(doc)):
                text = doc.load_page(page_num).get_text("text")
                if text:
                    full_text.append(text)
            return "\n".join(full_text)
        finally:
            doc.close()

    def _extract_docx(self, data: bytes) -> str:
        document = docx.Document(io.BytesIO(data))
        paragraphs = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    paragraphs.append(" | ".join(cells))
        return "\n".join(paragraphs)

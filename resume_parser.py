"""
Resume text extraction
Pulls plain text out of uploaded resumes so resume-based interviews can quote them
"""

import os
import re
import logging
import pdfplumber
import PyPDF2
from docx import Document

RESUME_FORMATS = ['.pdf', '.doc', '.docx', '.txt']

# Resume text passed to the interviewer prompt is capped at this many characters
MAX_RESUME_CHARS = 20000

# A legacy .doc scrape shorter than this is treated as unreadable
MIN_DOC_SCRAPE_CHARS = 50


class ResumeParser:
    """Extracts raw text from the resume formats accepted by the profile page"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._readers = {
            '.pdf': self._read_pdf,
            '.docx': self._read_docx,
            '.doc': self._read_doc,
            '.txt': self._read_txt,
        }

    def extract_text(self, file_path: str, filename: str) -> str:
        """
        Extract text from a stored resume

        Args:
            file_path: Where the upload was saved in the resumes bucket
            filename: Name the candidate uploaded, used to pick the reader

        Returns:
            Whitespace-normalized text, empty when nothing could be read
        """
        extension = os.path.splitext(filename)[1].lower()
        reader = self._readers.get(extension)
        if reader is None:
            raise ValueError(f"Unsupported resume format: {extension}")

        text = self._normalize(reader(file_path))
        self.logger.debug(f"Read {len(text)} characters from {filename}")
        return text[:MAX_RESUME_CHARS]

    def _read_pdf(self, file_path: str) -> str:
        """pdfplumber handles most layouts; PyPDF2 is the fallback for the rest"""
        pages = []
        try:
            with pdfplumber.open(file_path) as pdf:
                pages = [page.extract_text() or '' for page in pdf.pages]
        except Exception as e:
            self.logger.warning(f"pdfplumber could not read {file_path}: {e}")

        if any(page.strip() for page in pages):
            return '\n'.join(pages)

        try:
            reader = PyPDF2.PdfReader(file_path)
            return '\n'.join(page.extract_text() or '' for page in reader.pages)
        except Exception as e:
            self.logger.warning(f"PyPDF2 could not read {file_path}: {e}")
            return ''

    def _read_docx(self, file_path: str) -> str:
        try:
            return '\n'.join(paragraph.text for paragraph in Document(file_path).paragraphs)
        except Exception as e:
            self.logger.error(f"Could not open DOCX resume {file_path}: {e}")
            return ''

    def _read_doc(self, file_path: str) -> str:
        """Old Word files: some are really DOCX, the rest get a printable-character scrape"""
        text = self._read_docx(file_path)
        if text.strip():
            return text

        try:
            with open(file_path, 'rb') as f:
                raw = f.read().decode('latin-1')
        except OSError as e:
            self.logger.error(f"Could not open DOC resume {file_path}: {e}")
            return ''

        printable = re.sub(r'[^\x20-\x7E\n\r\t]', ' ', raw)
        return printable if len(printable.strip()) > MIN_DOC_SCRAPE_CHARS else ''

    def _read_txt(self, file_path: str) -> str:
        with open(file_path, 'rb') as f:
            raw = f.read()
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError:
            return raw.decode('latin-1')

    def _normalize(self, text: str) -> str:
        if not text:
            return ''
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n\s*\n+', '\n\n', text)
        return text.strip()


def extract_resume_text(file_path: str, filename: str) -> str:
    """
    Convenience function to extract resume text

    Returns an empty string when extraction fails
    """
    try:
        return ResumeParser().extract_text(file_path, filename)
    except Exception as e:
        logging.error(f"Resume text extraction failed for {filename}: {e}")
        return ''

"""
PDF text extraction module for the CAS Portfolio Analyzer.

This module reads positioned text runs from statement PDFs using pdfplumber
and hands them to the line reconstructor as TextFragment objects. It also
accepts pre-extracted pdf.js style text items.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pdfplumber

from cas_analyzer.models import TextFragment

logger = logging.getLogger(__name__)


@dataclass
class PageContent:
    """
    Represents extracted content from a single PDF page.

    Attributes:
        page_number: 1-indexed page number
        fragments: Positioned text runs found on the page
    """
    page_number: int
    fragments: List[TextFragment] = field(default_factory=list)


@dataclass
class ExtractedDocument:
    """
    Represents the complete extracted content from a PDF document.

    Attributes:
        pages: List of page contents, in page order
        total_pages: Total number of pages in the document
        source_path: Path to the source PDF file
    """
    pages: List[PageContent] = field(default_factory=list)
    total_pages: int = 0
    source_path: Optional[str] = None

    def get_all_fragments(self) -> List[TextFragment]:
        """
        Get all fragments from all pages as a flat list, in page order.

        Returns:
            List of all text fragments across all pages.
        """
        fragments = []
        for page in self.pages:
            fragments.extend(page.fragments)
        return fragments

    def get_page_fragments(self) -> List[List[TextFragment]]:
        """Get fragments grouped per page, in page order."""
        return [page.fragments for page in self.pages]


class PDFExtractor:
    """
    Extracts positioned words from CAS PDF files.

    Pages are read one after another in increasing page order.
    """

    def __init__(self, password: Optional[str] = None):
        """
        Initialize the PDF extractor.

        Args:
            password: Optional password for encrypted PDFs.
        """
        self.password = password

    def extract(self, pdf_path: Union[str, Path]) -> ExtractedDocument:
        """
        Extract positioned text from a PDF file.

        Args:
            pdf_path: Path to the PDF file.

        Returns:
            ExtractedDocument containing fragments for every page.

        Raises:
            FileNotFoundError: If the PDF file does not exist.
            ValueError: If the file is not a valid PDF.
        """
        pdf_path = Path(pdf_path)

        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        if not pdf_path.suffix.lower() == ".pdf":
            raise ValueError(f"File is not a PDF: {pdf_path}")

        logger.info(f"Extracting text from PDF: {pdf_path}")

        document = ExtractedDocument(source_path=str(pdf_path))

        try:
            with pdfplumber.open(pdf_path, password=self.password) as pdf:
                document.total_pages = len(pdf.pages)
                logger.info(f"PDF has {document.total_pages} pages")

                for page_num, page in enumerate(pdf.pages, start=1):
                    page_content = self._extract_page(page, page_num)
                    document.pages.append(page_content)
                    logger.debug(
                        f"Page {page_num}: extracted {len(page_content.fragments)} fragments"
                    )

        except Exception as e:
            logger.error(f"Failed to extract PDF: {e}")
            raise

        return document

    def _extract_page(self, page: Any, page_number: int) -> PageContent:
        """
        Extract positioned text runs from a single PDF page.

        pdfplumber measures `top`/`bottom` from the top edge; they are
        flipped so y grows upwards like the PDF coordinate space.

        Args:
            page: pdfplumber page object.
            page_number: 1-indexed page number.

        Returns:
            PageContent with the page's fragments.
        """
        content = PageContent(page_number=page_number)
        words = page.extract_words(x_tolerance=2, y_tolerance=2, keep_blank_chars=True)

        if not words:
            logger.warning(f"No text extracted from page {page_number}")
            return content

        height = float(page.height)
        for word in words:
            text = str(word.get("text", "")).strip()
            if not text:
                continue
            x0 = float(word["x0"])
            content.fragments.append(
                TextFragment(
                    text=text,
                    x=x0,
                    y=height - float(word["bottom"]),
                    width=float(word["x1"]) - x0,
                )
            )

        return content


def fragments_from_text_items(items: Iterable[Dict[str, Any]]) -> List[TextFragment]:
    """
    Convert pdf.js style text items into fragments.

    Each item carries its string under `str` (or `text`), a 6-element
    `transform` matrix whose elements 4 and 5 are x and y, and a `width`.
    Missing coordinates default to 0 and blank strings are dropped.

    Args:
        items: Text items of one page.

    Returns:
        Fragments for the page.
    """
    fragments = []
    for item in items:
        text = str(item.get("str", item.get("text", "")) or "").strip()
        if not text:
            continue
        transform = item.get("transform") or []
        x = transform[4] if len(transform) > 4 else 0
        y = transform[5] if len(transform) > 5 else 0
        fragments.append(
            TextFragment(
                text=text,
                x=float(x or 0),
                y=float(y or 0),
                width=float(item.get("width") or 0),
            )
        )
    return fragments


def extract_fragments_from_pdf(
    pdf_path: Union[str, Path],
    password: Optional[str] = None,
) -> ExtractedDocument:
    """
    Convenience function to extract positioned text from a PDF file.

    Args:
        pdf_path: Path to the PDF file.
        password: Optional password for encrypted PDFs.

    Returns:
        ExtractedDocument containing all extracted fragments.
    """
    extractor = PDFExtractor(password=password)
    return extractor.extract(pdf_path)

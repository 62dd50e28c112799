from typing import Dict

# Mistral OCR separates pages with a horizontal rule
PAGE_SEPARATOR = "\n\n---\n\n"


class PageMarkdown:
    """Per-page Markdown for one open document.

    Pages are numbered from 1. The mapping is owned by a single document
    session; switching documents means clearing it (or building a new one).
    """

    def __init__(self, total_pages: int):
        self.total_pages = total_pages
        self._pages: Dict[int, str] = {}

    def get_page_markdown(self, page: int) -> str:
        return self._pages.get(page, "")

    def set_page_markdown(self, page: int, content: str) -> None:
        # Page bounds are owned by the caller
        self._pages[page] = content

    def initialize_from_ocr(self, ocr_markdown: str, page_count: int) -> None:
        """Split a flat OCR result into pages, replacing everything held.

        Every page in [1, page_count] gets an entry. When the OCR result has
        fewer fragments than pages, the remaining pages are empty strings.
        """
        fragments = ocr_markdown.split(PAGE_SEPARATOR)
        pages: Dict[int, str] = {}
        for i in range(page_count):
            pages[i + 1] = fragments[i].strip() if i < len(fragments) else ""
        self.total_pages = page_count
        self._pages = pages

    def clear_all(self) -> None:
        self._pages = {}

    def get_all_markdown(self) -> str:
        """Join pages 1..total_pages, leaving out blank pages."""
        markdowns = []
        for page in range(1, self.total_pages + 1):
            content = self._pages.get(page, "")
            if content.strip():
                markdowns.append(content)
        return PAGE_SEPARATOR.join(markdowns)

    @property
    def has_content(self) -> bool:
        return any(content.strip() for content in self._pages.values())

    def as_list(self) -> list[str]:
        return [self.get_page_markdown(p) for p in range(1, self.total_pages + 1)]

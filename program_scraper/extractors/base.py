"""
Base class for per-source extraction strategies.

Each source site gets one implementation. A markup change on a site only
requires replacing that site's strategy; the fetch, enrichment and storage
stages do not depend on any site's HTML.
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from ..errors import ParseError
from ..models import ListItem, ProgramPatch
from ..text import collapse_whitespace, parse_date_range, prepare_tree


MAX_PAGES = 10

# Exceptions that mean "the page did not look like we expected"
STRUCTURE_ERRORS = (ParseError, AttributeError, IndexError, KeyError, TypeError, ValueError)


def load_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or '', 'lxml')


def discover_total_pages(soup: BeautifulSoup, selectors: str,
                         page_param: Optional[str] = None,
                         ceiling: int = MAX_PAGES) -> int:
    """
    Highest page number advertised by the pagination links, clamped to ceiling.

    Looks at both the link text ("3") and, when page_param is given, the
    page query parameter in the href ("?cpage=3").
    """
    max_page = 1
    param_re = re.compile(rf'[?&]{re.escape(page_param)}=(\d+)') if page_param else None
    for link in soup.select(selectors):
        if param_re:
            match = param_re.search(link.get('href', '') or '')
            if match:
                max_page = max(max_page, int(match.group(1)))
        text = collapse_whitespace(link.get_text())
        if text.isdigit():
            max_page = max(max_page, int(text))
    return min(max_page, ceiling)


def dedupe_items(items: Iterable[ListItem]) -> List[ListItem]:
    """Drop repeated ids, keeping the first occurrence"""
    seen = set()
    unique = []
    for item in items:
        if item.source_id in seen:
            continue
        seen.add(item.source_id)
        unique.append(item)
    return unique


def match_label(header: str, labels: Sequence[Tuple[str, Sequence[str]]]) -> Optional[str]:
    """Field name of the first label group with a keyword contained in header"""
    if not header:
        return None
    for field_name, keywords in labels:
        if any(keyword in header for keyword in keywords):
            return field_name
    return None


def fill(result: ProgramPatch, field_name: str, value: Optional[str]) -> bool:
    """Set a field only if it is still empty; returns True when written"""
    if not value or getattr(result, field_name):
        return False
    setattr(result, field_name, value)
    return True


def fill_period(result: ProgramPatch, text: str) -> bool:
    start, end = parse_date_range(text)
    written = False
    if start and not result.application_start:
        result.application_start = start
        written = True
    if end and not result.application_end:
        result.application_end = end
        written = True
    return written


def largest_container(soup: BeautifulSoup, selectors: str, min_length: int = 50,
                      text_of=None) -> Optional[str]:
    """Text of the matching container with the most text, if long enough"""
    best = ''
    for element in soup.select(selectors):
        text = text_of(element) if text_of else collapse_whitespace(element.get_text())
        if len(text) > len(best):
            best = text
    return best if len(best) > min_length else None


class SourceExtractor(ABC):
    """Structural (DOM heuristic) extraction for one source site"""

    source: str
    list_link_selector: str
    pagination_selector: str
    page_param: Optional[str] = None
    # Main content container, also used as the single-shot capture fallback
    content_selector: str = 'body'

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('ProgramScraper')

    @abstractmethod
    def list_url(self, page: int) -> str:
        """URL of listing page number `page` (1-based)"""

    @abstractmethod
    def detail_url(self, source_id: str) -> str:
        """URL of the detail page for an announcement id"""

    @abstractmethod
    def _parse_list_link(self, link: Tag) -> Optional[ListItem]:
        """Listing entry for one candidate anchor, or None to skip it"""

    @abstractmethod
    def _parse_detail(self, soup: BeautifulSoup, result: ProgramPatch):
        """Fill result from a prepared detail page tree"""

    def parse_list(self, html: str) -> List[ListItem]:
        """Listing items, deduplicated by id, in page order"""
        soup = load_html(html)
        items = []
        for link in soup.select(self.list_link_selector):
            try:
                item = self._parse_list_link(link)
            except STRUCTURE_ERRORS as e:
                self.logger.debug(f"[{self.source}] skipped list entry: {e}")
                continue
            if item:
                items.append(item)
        return dedupe_items(items)

    def parse_detail(self, html: str) -> ProgramPatch:
        """
        Detail fields found on the page.

        Never raises on unexpected structure; whatever was found before the
        structure broke is kept and the remaining fields stay None.
        """
        result = ProgramPatch()
        try:
            soup = prepare_tree(load_html(html))
            self._parse_detail(soup, result)
        except STRUCTURE_ERRORS as e:
            self.logger.warning(f"[{self.source}] detail page only partly parsed: {e}")
        return result.truncated()

    def total_pages(self, html: str) -> int:
        """Number of listing pages advertised, at most MAX_PAGES"""
        return discover_total_pages(load_html(html), self.pagination_selector, self.page_param)

    def target_item(self, source_id: str) -> ListItem:
        """Placeholder listing entry used when a single id is crawled directly"""
        return ListItem(source_id=source_id, url=self.detail_url(source_id), is_target=True)

    @staticmethod
    def link_payload(link: Tag) -> str:
        """href plus onclick, where sites encode the item id"""
        return f"{link.get('href', '') or ''} {link.get('onclick', '') or ''}"

"""Text cleanup and date helpers shared by the per-source extractors."""

import re
from datetime import datetime
from typing import Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag


NOISE_TAGS = ['script', 'style', 'noscript', 'iframe', 'link', 'meta']
BLOCK_TAGS = ['p', 'div', 'li', 'tr', 'td', 'th', 'dt', 'dd', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
              'ul', 'ol', 'table', 'section', 'article', 'span']

DATE_PATTERN = r'\d{4}[-./]\s?\d{1,2}[-./]\s?\d{1,2}'
DATE_RANGE_RE = re.compile(
    rf'({DATE_PATTERN})(?:\.)?(?:\s*\(\w\))?(?:\s*\d{{1,2}}:\d{{2}})?\s*[~\-]\s*({DATE_PATTERN})'
)
REGION_TAG_RE = re.compile(r'\[([가-힣]+)\]\s*')

# Residual inline script that survives tag removal
_SCRIPT_NOISE = [
    (re.compile(r'\b(?:var|let|const)\s+\w+\s*=\s*[^;\n]+;?'), ''),
    (re.compile(r'function\s*\w*\s*\([^)]*\)\s*\{[^}]*\}'), ''),
    (re.compile(r'jQuery\(function\s*\([^)]*\)\s*\{[\s\S]*?\}\s*\)\s*;?'), ''),
    (re.compile(r'\$\([^)]*\)\s*\.\s*\w+\s*\([^)]*\)\s*;?'), ''),
    (re.compile(r'jQuery\([^)]*\)\s*\.\s*\w+\s*\([^)]*\)\s*;?'), ''),
    (re.compile(r'jQuery\(\)|\$\(\)'), ''),
    (re.compile(r'\bwindow\.open\([^)]*\)\s*;?'), ''),
    (re.compile(r'\bconsole\.log\([^)]*\)\s*;?'), ''),
    (re.compile(r'\bdocument\.write\([^)]*\)\s*;?'), ''),
    (re.compile(r'\bchangeUrl\s*=\s*[^;]+;?'), ''),
    (re.compile(r'(?<![:/])//[^\n]*'), ''),
    (re.compile(r'/\*[\s\S]*?\*/'), ''),
    (re.compile(r'\w+Js\.\w+\([^)]*\)'), ''),
    (re.compile(r'\(\s*\)'), ''),
    (re.compile(r'[{};]'), ' '),
    (re.compile(r'&amp;?'), '&'),
]


def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


def strip_script_noise(text: str) -> str:
    """Remove script-like fragments (declarations, calls, comments) from text"""
    if not text:
        return ''
    for pattern, replacement in _SCRIPT_NOISE:
        text = pattern.sub(replacement, text)
    return collapse_whitespace(text)


def prepare_tree(soup: BeautifulSoup) -> BeautifulSoup:
    """
    Drop non-visible tags and mark block boundaries with newlines, in place.

    After this, element_text() on any node of the tree gives the same result
    as get_clean_text() without re-parsing.
    """
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    for br in soup.find_all('br'):
        br.replace_with('\n')
    for block in soup.find_all(BLOCK_TAGS):
        block.append('\n')
    return soup


def element_text(element: Optional[Tag]) -> str:
    """Clean text of a node that belongs to a prepare_tree()'d document"""
    if element is None:
        return ''
    return strip_script_noise(element.get_text())


def get_clean_text(element: Optional[Union[Tag, BeautifulSoup]]) -> str:
    """Visible text of an element without script/style content or inline script residue"""
    if element is None:
        return ''
    # Work on a detached copy so the caller's tree is left intact
    copy = prepare_tree(BeautifulSoup(str(element), 'lxml'))
    return element_text(copy)


def clean_html_text(html: str) -> str:
    """Visible text of an HTML fragment"""
    if not html:
        return ''
    return get_clean_text(BeautifulSoup(html, 'lxml'))


def clean_title(title: Optional[str]) -> str:
    """Remove listing badges and collapse whitespace"""
    if not title:
        return ''
    return collapse_whitespace(title.replace('새로운게시글', ''))


def split_region_tag(title: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split a leading bracketed region tag off a title.

    "[서울] 2026년 창업 지원사업" -> ("서울", "2026년 창업 지원사업")
    """
    if not title:
        return None, ''
    match = REGION_TAG_RE.search(title)
    if not match:
        return None, collapse_whitespace(title)
    stripped = title[:match.start()] + title[match.end():]
    return match.group(1), collapse_whitespace(stripped)


def parse_date(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse YYYY-MM-DD / YYYY.MM.DD / YYYY/MM/DD to start or end of that day"""
    if not value:
        return None
    match = re.search(r'(\d{4})[-./]\s?(\d{1,2})[-./]\s?(\d{1,2})', value)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        if end_of_day:
            return datetime(year, month, day, 23, 59, 59)
        return datetime(year, month, day, 0, 0, 0)
    except ValueError:
        return None


def parse_date_range(value: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Parse "start ~ end" into (start-of-day, end-of-day).

    "2026-01-06 ~ 2026-01-27 16:00" -> (2026-01-06 00:00:00, 2026-01-27 23:59:59)
    """
    if not value:
        return None, None
    match = DATE_RANGE_RE.search(value)
    if not match:
        return None, None
    return parse_date(match.group(1)), parse_date(match.group(2), end_of_day=True)


def parse_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    digits = re.sub(r'[^\d]', '', value)
    return int(digits) if digits else None

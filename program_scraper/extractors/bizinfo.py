import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..keywords import find_funding_amount, normalize_category_tag
from ..models import ListItem, ProgramPatch, Source
from ..text import collapse_whitespace, element_text, parse_date_range, split_region_tag
from .base import SourceExtractor, fill, fill_period, largest_container, match_label


BASE_URL = 'https://www.bizinfo.go.kr'
LIST_URL = f'{BASE_URL}/web/lay1/bbs/S1T122C128/AS/74/list.do'
VIEW_URL = f'{BASE_URL}/web/lay1/bbs/S1T122C128/AS/74/view.do'

ROWS_PER_PAGE = 15

ID_RE = re.compile(r'pblancId=(PBLN_\d+)')

CATEGORIES = ['금융', '기술', '인력', '수출', '내수', '창업', '경영', '기타']

# Checked in order, so "지원대상" is never mistaken for "지원내용"
DETAIL_LABELS = [
    ('description', ('사업개요', '지원내용')),
    ('eligibility', ('지원대상', '신청자격', '참여자격')),
    ('organization', ('사업수행기관', '수행기관')),
    ('period', ('신청기간', '접수기간')),
    ('target_region', ('지역',)),
    ('support_field', ('분야',)),
    ('funding_amount', ('지원규모', '지원금액', '지원한도')),
]

TITLE_PREFIX_RE = re.compile(r'^지원사업\s*공고\s*')
TITLE_SUFFIX_RE = re.compile(r'QR코드기업마당\s*앱\s*다운로드.*$', re.IGNORECASE)


class BizinfoExtractor(SourceExtractor):
    """기업마당 (bizinfo.go.kr) list/detail heuristics"""

    source = Source.BIZINFO.value
    list_link_selector = 'a[href*="pblancId=PBLN"]'
    pagination_selector = 'a[href*="cpage="], .pagination a, .paging a'
    page_param = 'cpage'
    content_selector = '.view_cont'

    def list_url(self, page: int) -> str:
        return f'{LIST_URL}?rows={ROWS_PER_PAGE}&cpage={page}'

    def detail_url(self, source_id: str) -> str:
        return f'{VIEW_URL}?pblancId={source_id}'

    def _parse_list_link(self, link: Tag) -> Optional[ListItem]:
        match = ID_RE.search(self.link_payload(link))
        if not match:
            return None
        source_id = match.group(1)

        raw_title = collapse_whitespace(link.get_text(' '))
        if len(raw_title) < 5:
            return None
        region, title = split_region_tag(raw_title)

        item = ListItem(
            source_id=source_id,
            url=self.detail_url(source_id),
            title=title,
            region=region,
        )

        row = link.find_parent(['tr', 'li']) or link.find_parent('div', class_='list-item')
        if row is not None:
            row_text = collapse_whitespace(row.get_text(' '))
            # The title itself may contain a category word
            other_text = row_text.replace(raw_title, ' ')
            for category in CATEGORIES:
                if category in other_text:
                    item.category = category
                    break
            item.application_start, item.application_end = parse_date_range(row_text)

        return item

    def _parse_detail(self, soup: BeautifulSoup, result: ProgramPatch):
        result.title = self._detail_title(soup)

        # 1. span.s_title label immediately followed by div.txt value
        for label in soup.select('span.s_title'):
            value_el = label.find_next_sibling()
            if value_el is None or value_el.name != 'div' or 'txt' not in (value_el.get('class') or []):
                continue
            self._apply_label(result, element_text(label), element_text(value_el))

        # 2. th/td and dt/dd pairs, only when the first pass found no body text
        if not result.description and not result.eligibility:
            for header in soup.select('th, dt'):
                value_el = header.find_next_sibling(['td', 'dd'])
                self._apply_label(result, element_text(header), element_text(value_el))

        # 3. Largest content container
        if not result.description:
            result.description = largest_container(
                soup, 'div.view_cont, div.content, article', min_length=0, text_of=element_text
            )

        # Category tag above the title, mapped to the support-field vocabulary
        if not result.support_field:
            tag = soup.select_one('.tag, .category, span.cate, .view_cate')
            result.support_field = normalize_category_tag(element_text(tag))

        if not result.funding_amount:
            result.funding_amount = find_funding_amount(result.description)

    def _apply_label(self, result: ProgramPatch, header: str, value: str):
        if not header or not value:
            return
        field_name = match_label(header, DETAIL_LABELS)
        if field_name == 'period':
            fill_period(result, value)
        elif field_name:
            fill(result, field_name, value)

    def _detail_title(self, soup: BeautifulSoup) -> Optional[str]:
        for selector in ('.view_title', 'h1', '.title'):
            element = soup.select_one(selector)
            title = element_text(element)
            if title:
                title = TITLE_PREFIX_RE.sub('', title)
                title = TITLE_SUFFIX_RE.sub('', title).strip()
                return title or None
        return None

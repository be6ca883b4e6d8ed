import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from ..models import ListItem, ProgramPatch, Source
from ..text import clean_title, collapse_whitespace, element_text, parse_date, parse_int
from .base import SourceExtractor, fill, fill_period, largest_container


BASE_URL = 'https://www.k-startup.go.kr'
LIST_URL = f'{BASE_URL}/web/contents/bizpbanc-ongoing.do'

ID_RE = re.compile(r'go_view\((\d+)\)')
D_DAY_RE = re.compile(r'D-(\d+)')
DEADLINE_RE = re.compile(r'마감일자\s*(\d{4}-\d{2}-\d{2})')
VIEW_COUNT_RE = re.compile(r'조회\s*([\d,]+)')

ORG_SUFFIX = r'(?:센터|재단|공단|진흥원|협회|대학교[가-힣]*|산학협력단|연구원)'
TRAILING_ORG_RE = re.compile(rf'([가-힣]+{ORG_SUFFIX})$')
ORGANIZATION_RE = re.compile(rf'(창업진흥원|중소벤처기업부|[가-힣]+{ORG_SUFFIX})')

CATEGORIES = [
    '글로벌', '사업화', '시설ㆍ공간ㆍ보육', '행사ㆍ네트워크', '인력', 'R&D',
    '멘토링ㆍ컨설팅', '정책', '판로ㆍ해외진출',
]

# "label value" prefixes of the summary box; longer labels first
PREFIX_LABELS: List[Tuple[str, str]] = [
    ('지원분야', 'support_field'),
    ('대상연령', 'target_age'),
    ('창업업력', 'company_age'),
    ('기관구분', 'institution_type'),
    ('주관기관명', 'organization'),
    ('접수기간', 'period'),
    ('지역', 'target_region'),
    ('대상', 'target_type'),
]

# Exact table header -> field, used to fill what the summary box missed
TABLE_LABELS: Dict[str, str] = {
    '지원분야': 'support_field',
    '대상연령': 'target_age',
    '지역': 'target_region',
    '대상': 'target_type',
    '창업업력': 'company_age',
    '기관구분': 'institution_type',
}

ELIGIBILITY_KEYWORDS = ['지원대상', '신청자격', '지원자격', '참여자격', '모집대상', '신청대상']

SUMMARY_CANDIDATES = 'li, div.info_item, span, dt, th'


class KStartupExtractor(SourceExtractor):
    """K-Startup (k-startup.go.kr) list/detail heuristics"""

    source = Source.K_STARTUP.value
    list_link_selector = 'a[href*="go_view"], a[onclick*="go_view"]'
    pagination_selector = 'a[href*="fn_pageMove"], a[onclick*="fn_pageMove"], .pagination a, .paging a'
    page_param = 'page'
    content_selector = '.information_list-wrap, .view_editor'

    def list_url(self, page: int) -> str:
        return f'{LIST_URL}?page={page}'

    def detail_url(self, source_id: str) -> str:
        return f'{LIST_URL}?schM=view&pbancSn={source_id}'

    # LIST PAGE

    def _parse_list_link(self, link: Tag) -> Optional[ListItem]:
        match = ID_RE.search(self.link_payload(link))
        if not match:
            return None
        source_id = match.group(1)
        # [category] D-N 마감일자 YYYY-MM-DD title organization 조회 N
        text = collapse_whitespace(link.get_text(' '))

        title = self._list_title(text)
        if not title and len(text) <= 20:
            return None

        d_day = D_DAY_RE.search(text)
        deadline = DEADLINE_RE.search(text)
        views = VIEW_COUNT_RE.search(text)
        organization = ORGANIZATION_RE.search(text)

        return ListItem(
            source_id=source_id,
            url=self.detail_url(source_id),
            title=title or clean_title(text[:100]),
            category=next((c for c in CATEGORIES if c in text), '기타'),
            organization=organization.group(1) if organization else None,
            application_end=parse_date(deadline.group(1), end_of_day=True) if deadline else None,
            view_count=parse_int(views.group(1)) if views else None,
            days_remaining=int(d_day.group(1)) if d_day else None,
        )

    def _list_title(self, text: str) -> str:
        """Text between the deadline marker and the last view-count marker, minus the organization"""
        deadline = re.search(r'마감일자\s*\d{4}-\d{2}-\d{2}', text)
        if not deadline:
            return ''
        content = text[deadline.end():].strip()

        view_index = content.rfind('조회')
        if view_index > 0:
            content = content[:view_index].strip()

        org = TRAILING_ORG_RE.search(content)
        # A title may itself end in e.g. "센터"; keep it if stripping would leave almost nothing
        if org and len(content) > len(org.group(0)) + 2:
            content = content[:org.start()].strip()

        return clean_title(content)

    # DETAIL PAGE

    def _parse_detail(self, soup: BeautifulSoup, result: ProgramPatch):
        title_el = soup.select_one('#scrTitle h3, .title h3') or \
            soup.select_one('h1.view_tit, .view_title, .cont_tit')
        result.title = clean_title(element_text(title_el)) or None

        self._parse_summary_box(soup, result)
        self._parse_summary_table(soup, result)
        result.eligibility = self._eligibility(soup)
        result.description = self._description(soup)

    def _prefix_match(self, text: str) -> Optional[Tuple[str, str]]:
        for label, field_name in PREFIX_LABELS:
            if not text.startswith(label):
                continue
            if label == '지역' and '지역구분' in text:
                return None
            return field_name, text[len(label):].strip(' :')
        return None

    def _parse_summary_box(self, soup: BeautifulSoup, result: ProgramPatch):
        """
        "label value" elements of the summary box.

        Only the innermost element holding a label and a value counts, so an
        outer <li> that contains the whole box never wins over its items.
        """
        matches = {}
        for element in soup.select(SUMMARY_CANDIDATES):
            found = self._prefix_match(element_text(element))
            if found and found[1]:
                matches[id(element)] = (element, found)

        for element, (field_name, value) in matches.values():
            if any(id(child) in matches for child in element.select(SUMMARY_CANDIDATES)):
                continue
            if field_name == 'period':
                fill_period(result, value)
            else:
                fill(result, field_name, value)

    def _parse_summary_table(self, soup: BeautifulSoup, result: ProgramPatch):
        for row in soup.select('table tr, dl'):
            header = element_text(row.select_one('th, dt'))
            value = element_text(row.select_one('td, dd'))
            if not header or not value:
                continue
            field_name = TABLE_LABELS.get(header)
            if not field_name:
                field_name = next(
                    (name for label, name in TABLE_LABELS.items()
                     if label not in ('지역', '대상') and label in header),
                    None,
                )
            if field_name:
                fill(result, field_name, value)

    def _eligibility(self, soup: BeautifulSoup) -> Optional[str]:
        """Longest text following an eligibility heading"""
        best = ''
        for header in soup.select('th, dt, strong, b, h3, h4'):
            if not any(keyword in element_text(header) for keyword in ELIGIBILITY_KEYWORDS):
                continue
            next_el = header.find_next_sibling()
            if next_el is not None:
                content = element_text(next_el)
            else:
                parent = header.find_parent(['tr', 'dl', 'div'])
                content = ' '.join(
                    element_text(el) for el in parent.select('td, dd, p')
                ).strip() if parent is not None else ''
            if len(content) > len(best):
                best = content
        return best or None

    def _description(self, soup: BeautifulSoup) -> Optional[str]:
        wrap = soup.select_one('.information_list-wrap, .view_editor')
        if wrap is not None:
            lines = []
            for block in wrap.select('.information_list'):
                block_title = element_text(block.select_one('p.title'))
                if block_title:
                    lines.append(f'### {block_title}')
                items = block.select('li.dot_list')
                if items:
                    for li in items:
                        sub_title = element_text(li.select_one('.tit'))
                        body = element_text(li.select_one('.txt'))
                        if sub_title:
                            lines.append(f'- **{sub_title}**: {body}')
                        else:
                            lines.append(f'- {body or element_text(li)}')
                else:
                    body = element_text(block.select_one('.txt')) or element_text(block)
                    body = body.replace(block_title, '', 1).strip() if block_title else body
                    if body:
                        lines.append(body)

            description = '\n'.join(lines)
            if not description and 'view_editor' in (wrap.get('class') or []):
                description = element_text(wrap)
            if len(description.strip()) > 20:
                return description

        return largest_container(
            soup, 'div.cont_box, div.view_cont, div.content, section', text_of=element_text
        )

"""
Extractor Tests
===============

List and detail heuristics of the K-Startup and Bizinfo strategies, run
against small hand-written pages shaped like the real sites.

Run:
    pytest tests/test_extractors.py
"""

import unittest
from datetime import datetime

from bs4 import BeautifulSoup

from program_scraper.extractors import (
    BizinfoExtractor, KStartupExtractor, discover_total_pages, get_extractor,
)


BIZINFO_LIST = """
<html><body>
<table class="table_Type_1"><tbody>
  <tr>
    <td>1</td><td>기술</td>
    <td class="txt_l"><a href="/web/lay1/bbs/S1T122C128/AS/74/view.do?pblancId=PBLN_000000000111111">[서울] 2026년 창업 지원사업</a></td>
    <td>2026-01-06 ~ 2026-01-27</td><td>서울특별시</td>
  </tr>
  <tr>
    <td>2</td><td>수출</td>
    <td class="txt_l"><a href="/web/lay1/bbs/S1T122C128/AS/74/view.do?pblancId=PBLN_000000000222222">2026년 수출 바우처 지원사업</a></td>
    <td>2026-02-01 ~ 2026-02-28</td><td>KOTRA</td>
  </tr>
  <tr>
    <td>3</td><td>기술</td>
    <td class="txt_l"><a href="/web/lay1/bbs/S1T122C128/AS/74/view.do?pblancId=PBLN_000000000111111">[서울] 2026년 창업 지원사업</a></td>
    <td>2026-01-06 ~ 2026-01-27</td><td>서울특별시</td>
  </tr>
  <tr><td>4</td><td>기타</td><td><a href="view.do?pblancId=PBLN_000000000333333">공고</a></td></tr>
</tbody></table>
<div class="page_wrap">
  <a href="list.do?rows=15&amp;cpage=1">1</a>
  <a href="list.do?rows=15&amp;cpage=2">2</a>
  <a href="list.do?rows=15&amp;cpage=50">마지막</a>
</div>
</body></html>
"""

BIZINFO_DETAIL = """
<html><body>
<h2 class="view_title">지원사업 공고 2026년 창업 지원사업</h2>
<div class="view_cont">
<ul>
  <li><span class="s_title">사업개요</span><div class="txt">창업기업의 사업화를 위해 최대 5천만원을 지원합니다</div></li>
  <li><span class="s_title">지원대상</span><div class="txt">업력 7년 이내 창업기업</div></li>
  <li><span class="s_title">사업수행기관</span><div class="txt">창업진흥원</div></li>
  <li><span class="s_title">신청기간</span><div class="txt">2026-01-06 ~ 2026-01-27</div></li>
</ul>
<script>var trackId = 'abc'; jQuery('#share').show();</script>
</div>
</body></html>
"""

BIZINFO_TABLE_DETAIL = """
<html><body>
<table>
  <tr><th>지원내용</th><td>해외 전시회 참가비 지원</td></tr>
  <tr><th>신청자격</th><td>수출 실적 보유 중소기업</td></tr>
  <tr><th>지역</th><td>부산</td></tr>
</table>
</body></html>
"""

KSTARTUP_LIST = """
<html><body>
<ul class="notice_list">
  <li>
    <a href="javascript:go_view(176543);">
      <span class="flag">사업화</span><span class="day">D-5</span>
      <span class="date">마감일자 2026-01-27</span>
      <p class="tit">새로운게시글 2026년 예비창업패키지 모집 공고</p>
      <span class="org">창업진흥원</span><span class="view">조회 1,234</span>
    </a>
  </li>
  <li>
    <a href="#" onclick="go_view(176543); return false;">중복</a>
  </li>
  <li>
    <a href="javascript:go_view(176600);">
      <span class="flag">글로벌</span><span class="day">D-12</span>
      <span class="date">마감일자 2026-02-03</span>
      <p class="tit">글로벌 액셀러레이팅 참여기업 모집</p>
      <span class="org">서울창업허브센터</span><span class="view">조회 87</span>
    </a>
  </li>
</ul>
<div class="paginate">
  <a href="javascript:fn_pageMove(1);">1</a>
  <a href="javascript:fn_pageMove(2);">2</a>
  <a href="javascript:fn_pageMove(3);">3</a>
</div>
</body></html>
"""

KSTARTUP_DETAIL = """
<html><body>
<div id="scrTitle"><h3>2026년 예비창업패키지 모집 공고</h3></div>
<div class="bg_box">
  <ul>
    <li><p class="tit">지원분야</p><p class="txt">사업화</p></li>
    <li><p class="tit">대상연령</p><p class="txt">만 39세 이하</p></li>
    <li><p class="tit">창업업력</p><p class="txt">예비창업자</p></li>
    <li><p class="tit">지역</p><p class="txt">전국</p></li>
    <li><p class="tit">접수기간</p><p class="txt">2026-01-06 ~ 2026-01-27</p></li>
  </ul>
</div>
<table>
  <tr><th>지원대상</th><td>공고일 기준 창업 경험이 없는 예비창업자</td></tr>
  <tr><th>기관구분</th><td>공공기관</td></tr>
</table>
<div class="information_list-wrap">
  <div class="information_list">
    <p class="title">사업개요</p>
    <ul>
      <li class="dot_list"><p class="tit">지원내용</p><p class="txt">사업화 자금 최대 1억원</p></li>
      <li class="dot_list"><p class="txt">창업교육 및 멘토링 제공</p></li>
    </ul>
  </div>
</div>
</body></html>
"""


class TestBizinfoList(unittest.TestCase):

    def setUp(self):
        self.extractor = BizinfoExtractor()
        self.items = self.extractor.parse_list(BIZINFO_LIST)

    def test_items_deduplicated_in_page_order(self):
        self.assertEqual(
            [item.source_id for item in self.items],
            ['PBLN_000000000111111', 'PBLN_000000000222222'],
        )

    def test_region_tag_and_title(self):
        first = self.items[0]
        self.assertEqual(first.region, '서울')
        self.assertEqual(first.title, '2026년 창업 지원사업')
        self.assertEqual(
            first.url,
            'https://www.bizinfo.go.kr/web/lay1/bbs/S1T122C128/AS/74/view.do?pblancId=PBLN_000000000111111',
        )

    def test_category_and_period_from_row(self):
        first, second = self.items
        self.assertEqual(first.category, '기술')
        self.assertEqual(second.category, '수출')
        self.assertEqual(first.application_start, datetime(2026, 1, 6))
        self.assertEqual(first.application_end, datetime(2026, 1, 27, 23, 59, 59))

    def test_pagination_clamped(self):
        self.assertEqual(self.extractor.total_pages(BIZINFO_LIST), 10)


class TestBizinfoDetail(unittest.TestCase):

    def setUp(self):
        self.extractor = BizinfoExtractor()

    def test_label_pairs(self):
        detail = self.extractor.parse_detail(BIZINFO_DETAIL)
        self.assertEqual(detail.title, '2026년 창업 지원사업')
        self.assertIn('사업화', detail.description)
        self.assertEqual(detail.eligibility, '업력 7년 이내 창업기업')
        self.assertEqual(detail.organization, '창업진흥원')
        self.assertEqual(detail.application_start, datetime(2026, 1, 6))
        self.assertEqual(detail.application_end, datetime(2026, 1, 27, 23, 59, 59))
        self.assertEqual(detail.funding_amount, '5천만원')

    def test_table_pass_when_labels_missing(self):
        detail = self.extractor.parse_detail(BIZINFO_TABLE_DETAIL)
        self.assertEqual(detail.description, '해외 전시회 참가비 지원')
        self.assertEqual(detail.eligibility, '수출 실적 보유 중소기업')
        self.assertEqual(detail.target_region, '부산')

    def test_malformed_page_gives_empty_patch(self):
        detail = self.extractor.parse_detail('<html><body><p>점검 중</p></body></html>')
        self.assertIsNone(detail.eligibility)
        self.assertIsNone(detail.application_start)


class TestKStartupList(unittest.TestCase):

    def setUp(self):
        self.extractor = KStartupExtractor()
        self.items = self.extractor.parse_list(KSTARTUP_LIST)

    def test_items_deduplicated(self):
        self.assertEqual([item.source_id for item in self.items], ['176543', '176600'])

    def test_title_between_deadline_and_views(self):
        first, second = self.items
        self.assertEqual(first.title, '2026년 예비창업패키지 모집 공고')
        self.assertEqual(second.title, '글로벌 액셀러레이팅 참여기업 모집')

    def test_list_metadata(self):
        first = self.items[0]
        self.assertEqual(first.category, '사업화')
        self.assertEqual(first.organization, '창업진흥원')
        self.assertEqual(first.days_remaining, 5)
        self.assertEqual(first.view_count, 1234)
        self.assertEqual(first.application_end, datetime(2026, 1, 27, 23, 59, 59))
        self.assertIn('pbancSn=176543', first.url)

    def test_pagination(self):
        self.assertEqual(self.extractor.total_pages(KSTARTUP_LIST), 3)


class TestKStartupDetail(unittest.TestCase):

    def setUp(self):
        self.detail = KStartupExtractor().parse_detail(KSTARTUP_DETAIL)

    def test_summary_box(self):
        self.assertEqual(self.detail.title, '2026년 예비창업패키지 모집 공고')
        self.assertEqual(self.detail.support_field, '사업화')
        self.assertEqual(self.detail.target_age, '만 39세 이하')
        self.assertEqual(self.detail.company_age, '예비창업자')
        self.assertEqual(self.detail.target_region, '전국')
        self.assertEqual(self.detail.application_start, datetime(2026, 1, 6))

    def test_table_fills_remaining_fields(self):
        self.assertEqual(self.detail.institution_type, '공공기관')

    def test_eligibility_text(self):
        self.assertEqual(self.detail.eligibility, '공고일 기준 창업 경험이 없는 예비창업자')

    def test_description_blocks(self):
        lines = self.detail.description.split('\n')
        self.assertEqual(lines[0], '### 사업개요')
        self.assertEqual(lines[1], '- **지원내용**: 사업화 자금 최대 1억원')
        self.assertEqual(lines[2], '- 창업교육 및 멘토링 제공')


class TestRegistry(unittest.TestCase):

    def test_known_sources(self):
        self.assertIsInstance(get_extractor('k-startup'), KStartupExtractor)
        self.assertIsInstance(get_extractor('bizinfo'), BizinfoExtractor)

    def test_unknown_source(self):
        with self.assertRaises(ValueError):
            get_extractor('nowhere')

    def test_target_item(self):
        item = get_extractor('bizinfo').target_item('PBLN_000000000999999')
        self.assertTrue(item.is_target)
        self.assertIsNone(item.title)

    def test_discover_total_pages_from_link_text(self):
        soup = BeautifulSoup('<div class="paging"><a>1</a><a>2</a><a>50</a></div>', 'lxml')
        self.assertEqual(discover_total_pages(soup, '.paging a'), 10)


if __name__ == '__main__':
    unittest.main()

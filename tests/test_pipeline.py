"""
Crawl Pipeline Tests
====================

End-to-end crawl passes with the network, browser and LLM replaced by
fakes and a temporary JSON store.

Run:
    pytest tests/test_pipeline.py
"""

import logging
import os
import shutil
import tempfile
import unittest
from types import SimpleNamespace
from unittest import mock

from program_scraper.errors import FetchError, RenderError
from program_scraper.extractors.bizinfo import BizinfoExtractor
from program_scraper.models import ApplicationTarget, CrawlOptions, ProgramPatch
from program_scraper.pipeline import ProgramCrawler, program_stats, reextract_programs
from program_scraper.store import JsonProgramStore


LIST_PAGE = """
<html><body><table><tbody>
  <tr><td>기술</td><td><a href="view.do?pblancId=PBLN_000000000000001">[부산] 스마트공장 구축 지원사업</a></td>
      <td>2026-01-06 ~ 2026-01-27</td></tr>
  <tr><td>경영</td><td><a href="view.do?pblancId=PBLN_000000000000002">소상공인 경영개선 지원사업</a></td>
      <td>2026-02-02 ~ 2026-02-20</td></tr>
  <tr><td>수출</td><td><a href="view.do?pblancId=PBLN_000000000000003">수출바우처 추가 모집 공고</a></td>
      <td>2026-03-02 ~ 2026-03-31</td></tr>
</tbody></table>
<div class="page_wrap"><a href="list.do?cpage=1">1</a><a href="list.do?cpage=2">2</a></div>
</body></html>
"""

DETAIL_PAGE = """
<html><body><div class="view_cont"><ul>
  <li><span class="s_title">사업개요</span><div class="txt">소상공인의 경영 개선을 위한 컨설팅 지원</div></li>
  <li><span class="s_title">지원대상</span><div class="txt">업력 3년 이상 소상공인</div></li>
</ul></div></body></html>
"""

TARGET_PAGE = """
<html><body>
<h1>지원사업 공고 단일 공고</h1>
<div class="view_cont"><ul>
  <li><span class="s_title">지원대상</span><div class="txt">예비창업자</div></li>
</ul></div>
</body></html>
"""

EXTRACTOR = BizinfoExtractor()


class FakeFetcher:
    """Serves canned pages by URL; missing URLs fail like an exhausted retry"""

    def __init__(self, pages, failing=()):
        self.pages = pages
        self.failing = set(failing)
        self.requested = []

    def fetch_page(self, url, headers=None):
        self.requested.append(url)
        if url in self.failing or url not in self.pages:
            raise FetchError(url, 3, ConnectionError('connection reset'))
        return self.pages[url]

    def close(self):
        pass


def make_config():
    return SimpleNamespace(request_delay=1.5, navigation_timeout=120000)


class TestCrawl(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.store = JsonProgramStore(os.path.join(self.tmp_dir, 'programs.json'))
        self.llm = mock.Mock()
        self.llm.extract_from_text.return_value = None
        self.sleeps = []
        self.logger = logging.getLogger('ProgramScraperTest')

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def make_crawler(self, fetcher, browser_factory=None):
        return ProgramCrawler(make_config(), self.logger, self.store, fetcher=fetcher, llm=self.llm,
                              browser_factory=browser_factory, sleep=self.sleeps.append)

    def detail_pages(self):
        return {EXTRACTOR.detail_url(f'PBLN_00000000000000{n}'): DETAIL_PAGE for n in (1, 2, 3)}

    def test_failed_detail_does_not_stop_page(self):
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())
        failing = [EXTRACTOR.detail_url('PBLN_000000000000001')]
        crawler = self.make_crawler(FakeFetcher(pages, failing))

        result = crawler.crawl('bizinfo', CrawlOptions(max_pages=1))

        self.assertEqual(result.count, 2)
        self.assertEqual(len(result.errors), 1)
        self.assertIn('PBLN_000000000000001', result.errors[0])
        self.assertFalse(result.success)
        self.assertIsNotNone(self.store.get('bizinfo', 'PBLN_000000000000002'))
        self.assertIsNotNone(self.store.get('bizinfo', 'PBLN_000000000000003'))

    def test_records_combine_list_and_detail(self):
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())
        result = self.make_crawler(FakeFetcher(pages)).crawl('bizinfo', CrawlOptions(max_pages=1))

        self.assertTrue(result.success)
        self.assertEqual(result.to_dict(), {'success': True, 'count': 3})
        record = self.store.get('bizinfo', 'PBLN_000000000000001')
        self.assertEqual(record.title, '스마트공장 구축 지원사업')
        self.assertEqual(record.region, '부산')
        self.assertEqual(record.category, '기술')
        self.assertEqual(record.eligibility, '업력 3년 이상 소상공인')
        self.assertEqual(record.support_field, '멘토링·컨설팅')
        self.assertEqual(self.sleeps, [1.5, 1.5, 1.5])

    def test_failed_second_page_recorded(self):
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())
        result = self.make_crawler(FakeFetcher(pages)).crawl('bizinfo', CrawlOptions(max_pages=5))

        self.assertEqual(result.count, 3)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith('page 2 failed'))

    def test_first_list_page_failure_aborts(self):
        result = self.make_crawler(FakeFetcher({})).crawl('bizinfo', CrawlOptions())
        self.assertFalse(result.success)
        self.assertEqual(result.count, 0)
        self.assertEqual(len(result.errors), 1)

    def test_limit_and_no_details(self):
        fetcher = FakeFetcher({EXTRACTOR.list_url(1): LIST_PAGE})
        result = self.make_crawler(fetcher).crawl(
            'bizinfo', CrawlOptions(max_pages=1, fetch_details=False, limit=2))

        self.assertEqual(result.count, 2)
        self.assertEqual(fetcher.requested, [EXTRACTOR.list_url(1)])
        self.llm.extract_from_text.assert_not_called()

    def test_limit_counts_stored_programs_only(self):
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())
        failing = [EXTRACTOR.detail_url('PBLN_000000000000001')]
        result = self.make_crawler(FakeFetcher(pages, failing)).crawl(
            'bizinfo', CrawlOptions(max_pages=1, limit=2))

        self.assertEqual(result.count, 2)
        self.assertEqual(len(result.errors), 1)
        self.assertIsNone(self.store.get('bizinfo', 'PBLN_000000000000001'))
        self.assertIsNotNone(self.store.get('bizinfo', 'PBLN_000000000000002'))
        self.assertIsNotNone(self.store.get('bizinfo', 'PBLN_000000000000003'))

    def test_single_target_bypasses_listing(self):
        target_url = EXTRACTOR.detail_url('PBLN_000000000000009')
        fetcher = FakeFetcher({target_url: TARGET_PAGE})
        result = self.make_crawler(fetcher).crawl(
            'bizinfo', CrawlOptions(target_id='PBLN_000000000000009'))

        self.assertEqual(result.count, 1)
        self.assertEqual(fetcher.requested, [target_url])
        record = self.store.get('bizinfo', 'PBLN_000000000000009')
        self.assertEqual(record.title, '단일 공고')

    def test_browser_launch_failure_aborts(self):
        session = mock.Mock()
        session.start.side_effect = RenderError('chromium missing')
        fetcher = FakeFetcher({EXTRACTOR.list_url(1): LIST_PAGE})

        result = self.make_crawler(fetcher, browser_factory=lambda: session).crawl(
            'bizinfo', CrawlOptions(use_rendering=True))

        self.assertFalse(result.success)
        self.assertEqual(result.count, 0)
        self.assertEqual(fetcher.requested, [])

    def test_browser_closed_after_pass(self):
        session = mock.Mock()
        session.start.return_value = session
        # Text extraction satisfies the critical fields, so nothing is rendered
        self.llm.extract_from_text.return_value = ApplicationTarget(
            company_age='무관', target_region='전국', target_age='무관', target_industry='전분야')
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())

        result = self.make_crawler(FakeFetcher(pages), browser_factory=lambda: session).crawl(
            'bizinfo', CrawlOptions(max_pages=1, use_rendering=True, limit=1))

        self.assertEqual(result.count, 1)
        session.new_page.assert_not_called()
        session.close.assert_called_once()
        self.assertTrue(self.store.get('bizinfo', 'PBLN_000000000000001').llm_processed)

    def test_crawl_all_summary(self):
        pages = {EXTRACTOR.list_url(1): LIST_PAGE}
        pages.update(self.detail_pages())
        summary = self.make_crawler(FakeFetcher(pages)).crawl_all(
            CrawlOptions(max_pages=1), source='bizinfo')

        self.assertTrue(summary['success'])
        self.assertEqual(summary['totalCount'], 3)
        self.assertEqual(list(summary['results']), ['bizinfo'])
        self.assertIn('timestamp', summary)


class TestReextraction(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.store = JsonProgramStore(os.path.join(self.tmp_dir, 'programs.json'))
        self.logger = logging.getLogger('ProgramScraperTest')
        self.llm = mock.Mock()
        self.llm.extract_from_text.return_value = ApplicationTarget(
            company_age='무관', target_region='전국', target_age='무관', target_industry='전분야',
            ai_summary='요약', target_detail='대상', exclusion_detail='해당 없음',
        )

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_reextract_updates_enrichment_only(self):
        self.store.upsert('k-startup', '1', 'u', ProgramPatch(title='a', eligibility='예비창업자',
                                                               company_age='7년 이내'))
        self.store.upsert('k-startup', '2', 'u', ProgramPatch(title='b'))
        sleeps = []

        summary = reextract_programs(self.store, self.llm, self.logger, limit=10, sleep=sleeps.append)

        self.assertEqual(summary['processed'], 1)
        self.assertEqual(summary['skipped'], 1)
        record = self.store.get('k-startup', '1')
        self.assertEqual(record.ai_summary, '요약')
        self.assertEqual(record.company_age, '7년 이내')
        self.assertTrue(record.llm_processed)
        self.assertEqual(program_stats(self.store),
                         {'total': 2, 'processed': 1, 'unprocessed': 1, 'percentage': 50})

    def test_failed_extraction_counted(self):
        self.llm.extract_from_text.return_value = None
        self.store.upsert('bizinfo', 'PBLN_1', 'u', ProgramPatch(title='a', description='본문'))
        summary = reextract_programs(self.store, self.llm, self.logger, sleep=lambda s: None)
        self.assertEqual(summary['errors'], 1)
        self.assertFalse(self.store.get('bizinfo', 'PBLN_1').llm_processed)

    def test_nothing_to_process(self):
        summary = reextract_programs(self.store, self.llm, self.logger)
        self.assertEqual(summary['processed'], 0)
        self.llm.extract_from_text.assert_not_called()

    def test_empty_store_stats(self):
        self.assertEqual(program_stats(self.store)['percentage'], 0)


if __name__ == '__main__':
    unittest.main()

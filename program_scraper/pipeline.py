"""
Crawl orchestration: listing pages, detail pages, enrichment, upsert.

Everything runs sequentially with a fixed delay between requests; one
failing item or page is logged and recorded without stopping the run.
"""

import time
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .capture import BrowserSession, RenderingCapturer
from .config import Config
from .errors import FetchError, RenderError, ScraperError
from .extractors import SourceExtractor, get_extractor
from .fetcher import HttpFetcher
from .llm import LLMExtractionClient
from .models import CrawlOptions, CrawlResult, ListItem, ProgramPatch, ProgramRecord, Source
from .policy import EnrichmentPolicy, build_program_patch
from .store import ProgramStore


SOURCES = [Source.K_STARTUP.value, Source.BIZINFO.value]


class ProgramCrawler:
    """Runs crawl passes over the supported sources and upserts into a store"""

    def __init__(self, config: Config, logger: logging.Logger, store: ProgramStore,
                 fetcher: Optional[HttpFetcher] = None,
                 llm: Optional[LLMExtractionClient] = None,
                 browser_factory: Optional[Callable[[], BrowserSession]] = None,
                 sleep=time.sleep):
        self.config = config
        self.logger = logger
        self.store = store
        self.sleep = sleep
        self.fetcher = fetcher or HttpFetcher(config, logger, sleep=sleep)
        self.llm = llm or LLMExtractionClient(config, logger)
        self.browser_factory = browser_factory or (lambda: BrowserSession(config, logger))

    def crawl(self, source: str, options: Optional[CrawlOptions] = None) -> CrawlResult:
        """One crawl pass over a source; never raises for per-item or per-page failures"""
        options = options or CrawlOptions()
        extractor = get_extractor(source, self.logger)
        errors: List[str] = []
        count = 0
        session = None

        self.logger.info(f"[{source}] Crawl started (max_pages={options.max_pages}, "
                         f"details={options.fetch_details}, rendering={options.use_rendering})")
        try:
            capturer = None
            if options.use_rendering and options.fetch_details:
                session = self.browser_factory().start()
                capturer = RenderingCapturer(session, self.config, self.logger, sleep=self.sleep)
            policy = EnrichmentPolicy(self.llm, self.logger, capturer)

            if options.target_id:
                self.logger.info(f"[{source}] Single target mode: {options.target_id}")
                pages = {1: [extractor.target_item(options.target_id)]}
                total_pages = 1
            else:
                first_page = self.fetcher.fetch_page(extractor.list_url(1))
                total_pages = max(1, min(extractor.total_pages(first_page), options.max_pages))
                pages = {1: extractor.parse_list(first_page)}
                self.logger.info(f"[{source}] Total pages to crawl: {total_pages}")

            for page_number in range(1, total_pages + 1):
                if options.limit and count >= options.limit:
                    break
                try:
                    items = pages.get(page_number)
                    if items is None:
                        items = extractor.parse_list(
                            self.fetcher.fetch_page(extractor.list_url(page_number))
                        )
                    self.logger.info(f"[{source}] Page {page_number}: {len(items)} programs found")

                    for item in items:
                        if options.limit and count >= options.limit:
                            self.logger.info(f"[{source}] Item limit {options.limit} reached")
                            break
                        try:
                            self._process_item(extractor, item, options, policy)
                            count += 1
                        except Exception as e:
                            self.logger.error(f"[{source}] Error processing program {item.source_id}: {e}")
                            errors.append(f"program {item.source_id} failed: {e}")

                except (ScraperError, ValueError) as e:
                    self.logger.error(f"[{source}] Error crawling page {page_number}: {e}")
                    errors.append(f"page {page_number} failed: {e}")

                if page_number < total_pages:
                    self.sleep(self.config.request_delay)

        except (FetchError, RenderError) as e:
            self.logger.error(f"[{source}] Crawl aborted: {e}")
            errors.append(f"crawl failed: {e}")
            return CrawlResult(success=False, count=count, errors=errors)
        finally:
            if session is not None:
                session.close()

        self.logger.info(f"[{source}] Crawl finished: {count} upserted, {len(errors)} error(s)")
        return CrawlResult(success=not errors, count=count, errors=errors)

    def _process_item(self, extractor: SourceExtractor, item: ListItem,
                      options: CrawlOptions, policy: EnrichmentPolicy) -> ProgramRecord:
        detail = ProgramPatch()
        if options.fetch_details:
            self.sleep(self.config.request_delay)
            detail = extractor.parse_detail(self.fetcher.fetch_page(item.url))

        patch = build_program_patch(item, detail)
        if options.fetch_details:
            patch = policy.enrich(
                patch,
                url=item.url,
                source_id=item.source_id,
                content_selector=extractor.content_selector,
                use_rendering=options.use_rendering,
            )

        record, created = self.store.upsert(extractor.source, item.source_id, item.url, patch)
        action = 'Created' if created else 'Updated'
        self.logger.info(f"[{extractor.source}] {action}: {record.title[:50]}")
        return record

    def crawl_all(self, options: Optional[CrawlOptions] = None,
                  source: Optional[str] = None) -> Dict[str, Any]:
        """Crawl every source (or one named source) and summarize the results"""
        sources = [source] if source else SOURCES
        results = {}
        for name in sources:
            results[name] = self.crawl(name, options)

        return {
            'success': all(r.success for r in results.values()),
            'totalCount': sum(r.count for r in results.values()),
            'results': {name: r.to_dict() for name, r in results.items()},
            'timestamp': datetime.now().isoformat(),
        }


def reextract_programs(store: ProgramStore, llm: LLMExtractionClient, logger: logging.Logger,
                       limit: int = 10, force: bool = False, pause: float = 1.0,
                       sleep=time.sleep) -> Dict[str, Any]:
    """
    Reapply the text strategy to stored programs.

    Only enrichment fields are written; programs without any eligibility or
    description text are skipped.
    """
    records = store.iter_for_reextraction(limit, force)
    if not records:
        logger.info("No programs to reprocess")
        return {'success': True, 'processed': 0, 'skipped': 0, 'errors': 0, 'results': []}

    logger.info(f"Reprocessing {len(records)} programs (force={force})")
    processed = skipped = failed = 0
    results = []

    for index, record in enumerate(records):
        if not record.eligibility and not record.description:
            skipped += 1
            continue

        logger.info(f"[LLM] Reprocessing {record.source}/{record.source_id}: {record.title[:30]}")
        target = llm.extract_from_text(record.eligibility, record.description)
        if target is not None and target.parsed:
            store.update_enrichment(record.source, record.source_id, ProgramPatch(
                ai_summary=target.ai_summary,
                target_detail=target.target_detail,
                exclusion_detail=target.exclusion_detail,
                llm_processed=True,
            ))
            processed += 1
            results.append({'id': record.source_id, 'title': record.title, 'success': True})
        else:
            failed += 1
            results.append({'id': record.source_id, 'title': record.title, 'success': False})

        if index < len(records) - 1:
            sleep(pause)

    logger.info(f"Reprocess finished: {processed} processed, {skipped} skipped, {failed} failed")
    return {
        'success': True,
        'processed': processed,
        'skipped': skipped,
        'errors': failed,
        'results': results,
    }


def program_stats(store: ProgramStore) -> Dict[str, Any]:
    stats = store.counts()
    total = stats['total']
    stats['percentage'] = round(stats['processed'] / total * 100) if total else 0
    return stats

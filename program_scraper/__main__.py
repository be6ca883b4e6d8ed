import sys
import json
import argparse

from .config import Config, setup_logging
from .llm import LLMExtractionClient
from .models import CrawlOptions, Source
from .pipeline import ProgramCrawler, program_stats, reextract_programs
from .store import JsonProgramStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='program_scraper',
        description='Crawl and enrich startup-support program announcements',
    )
    commands = parser.add_subparsers(dest='command', required=True)

    crawl = commands.add_parser('crawl', help='Crawl listing and detail pages')
    crawl.add_argument('--source', choices=[s.value for s in Source],
                       help='Crawl only this source (default: all)')
    crawl.add_argument('--max-pages', type=int, default=3)
    crawl.add_argument('--no-details', action='store_true', help='Skip detail pages and enrichment')
    crawl.add_argument('--render', action='store_true', help='Enable the screenshot + vision fallback')
    crawl.add_argument('--target-id', help='Crawl one announcement id, bypassing the listing')
    crawl.add_argument('--limit', type=int, help='Maximum number of programs per source')

    reprocess = commands.add_parser('reprocess', help='Rerun text extraction on stored programs')
    reprocess.add_argument('--limit', type=int, default=10)
    reprocess.add_argument('--force', action='store_true', help='Include already processed programs')

    listing = commands.add_parser('list', help='List stored programs')
    listing.add_argument('--source', choices=[s.value for s in Source])
    listing.add_argument('--category', help='Category substring')
    listing.add_argument('--region', help='Region substring')
    listing.add_argument('--status', choices=['active', 'all'], default='active',
                         help='active hides programs whose application period has ended')
    listing.add_argument('--page', type=int, default=1)
    listing.add_argument('--limit', type=int, default=20)

    commands.add_parser('stats', help='Show enrichment statistics')
    return parser


def run(args: argparse.Namespace, config: Config, logger) -> dict:
    store = JsonProgramStore(config.store_path, logger)

    if args.command == 'stats':
        return program_stats(store)

    if args.command == 'list':
        return store.query(source=args.source, category=args.category, region=args.region,
                           status=args.status, page=args.page, limit=args.limit)

    llm = LLMExtractionClient(config, logger)

    if args.command == 'reprocess':
        return reextract_programs(store, llm, logger, limit=args.limit, force=args.force,
                                  pause=config.llm_pause)

    if args.target_id and not args.source:
        raise ValueError('--target-id requires --source')

    options = CrawlOptions(
        max_pages=args.max_pages,
        fetch_details=not args.no_details,
        use_rendering=args.render,
        target_id=args.target_id,
        limit=args.limit,
    )
    crawler = ProgramCrawler(config, logger, store, llm=llm)
    try:
        return crawler.crawl_all(options, source=args.source)
    finally:
        crawler.fetcher.close()


# MAIN ENTRY POINT

def main(argv=None):
    """Main entry point"""

    args = build_parser().parse_args(argv)

    # Load configuration
    config = Config()

    # Setup logging
    logger = setup_logging(config.log_level, config.log_dir)

    try:
        summary = run(args, config, logger)
        print(json.dumps(summary, indent=2, ensure_ascii=False))

    except KeyboardInterrupt:
        logger.info("\n\nCrawl interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

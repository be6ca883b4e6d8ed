"""
Crawler for Korean startup-support program announcements (K-Startup, Bizinfo).

Listing and detail pages are scraped with structural heuristics, then
enriched with eligibility data from a text LLM and, as a last resort, a
vision LLM over screenshots of the rendered announcement.
"""

from .config import Config, setup_logging
from .models import CrawlOptions, CrawlResult, ProgramPatch, ProgramRecord, Source
from .pipeline import ProgramCrawler, program_stats, reextract_programs
from .store import JsonProgramStore, ProgramStore

__version__ = '0.1.0'

__all__ = [
    'Config', 'setup_logging', 'CrawlOptions', 'CrawlResult', 'ProgramPatch', 'ProgramRecord',
    'Source', 'ProgramCrawler', 'program_stats', 'reextract_programs', 'JsonProgramStore',
    'ProgramStore',
]

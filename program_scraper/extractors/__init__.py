import logging
from typing import Optional

from ..models import Source
from .base import MAX_PAGES, SourceExtractor, discover_total_pages
from .bizinfo import BizinfoExtractor
from .kstartup import KStartupExtractor


EXTRACTORS = {
    Source.K_STARTUP.value: KStartupExtractor,
    Source.BIZINFO.value: BizinfoExtractor,
}


def get_extractor(source: str, logger: Optional[logging.Logger] = None) -> SourceExtractor:
    """Extraction strategy registered for a source name"""
    try:
        return EXTRACTORS[source](logger)
    except KeyError:
        raise ValueError(f"Unknown source: {source}") from None


__all__ = [
    'EXTRACTORS', 'MAX_PAGES', 'SourceExtractor', 'BizinfoExtractor', 'KStartupExtractor',
    'discover_total_pages', 'get_extractor',
]

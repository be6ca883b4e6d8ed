"""
Tiered enrichment of one detail record.

Structural extraction has already run when a patch reaches this module.
Keyword inference and the text strategy run next; the vision strategy is a
last resort for records still missing the fields matching depends on.
"""

import logging
from typing import Optional

from .keywords import infer_support_field
from .llm import LLMExtractionClient
from .models import (
    CRITICAL_FIELDS, ApplicationTarget, ListItem, ProgramPatch, has_value, merge_patch,
)


MATCHING_FIELDS = ('company_age', 'target_region', 'target_age', 'target_industry')
NARRATIVE_FIELDS = ('ai_summary', 'target_detail', 'exclusion_detail')
LIST_FIELDS = (
    'category', 'organization', 'region', 'application_start', 'application_end', 'view_count',
)


def critical_fields_missing(patch: ProgramPatch) -> bool:
    """True when any field of CRITICAL_FIELDS has no value"""
    return any(not has_value(getattr(patch, name)) for name in CRITICAL_FIELDS)


def build_program_patch(item: ListItem, detail: Optional[ProgramPatch] = None) -> ProgramPatch:
    """
    Combine a listing entry with its detail fields.

    Detail values win over listing values. The listing title is kept, except
    for a directly targeted id, whose only title source is the detail page.
    """
    patch = ProgramPatch(**{name: getattr(item, name) for name in LIST_FIELDS})
    detail = detail or ProgramPatch()
    patch = merge_patch(patch, detail, names=[name for name in detail.present() if name != 'title'])

    if item.is_target:
        patch.title = detail.title or item.title or item.source_id
        patch.category = patch.category or '기타'
    else:
        patch.title = item.title or detail.title or item.source_id
    return patch.truncated()


class EnrichmentPolicy:
    """Decides which extraction tiers run for a record and merges their output"""

    def __init__(self, llm: LLMExtractionClient, logger: logging.Logger, capturer=None):
        self.llm = llm
        self.logger = logger
        self.capturer = capturer

    def enrich(self, patch: ProgramPatch, url: str, source_id: str,
               content_selector: str = 'body', use_rendering: bool = False) -> ProgramPatch:
        result = merge_patch(ProgramPatch(), patch)
        processed = False

        # Keyword inference wins over any later suggestion for the support field
        keyword_field = infer_support_field(
            ' '.join(text for text in (result.description, result.eligibility) if text)
        )
        if keyword_field:
            result.support_field = keyword_field

        if result.eligibility or result.description:
            target = self.llm.extract_from_text(result.eligibility, result.description)
            if target is not None and target.parsed:
                result = self._merge(result, target, overwrite=False, keyword_field=keyword_field)
                processed = True
                self.logger.info(f"[LLM] Text extraction merged for {source_id}")
            elif target is not None:
                self.logger.warning(f"[LLM] Unparseable text result ignored for {source_id}")

        if critical_fields_missing(result):
            if use_rendering and self.capturer is not None:
                self.logger.info(f"Critical fields missing for {source_id}, trying vision extraction")
                target = self._vision(url, source_id, content_selector)
                if target is not None:
                    result = self._merge(result, target, overwrite=True, keyword_field=keyword_field)
                    processed = True
            else:
                self.logger.debug(f"Critical fields missing for {source_id}, rendering disabled")

        if processed:
            result.llm_processed = True
        return result.truncated()

    def _vision(self, url: str, source_id: str, content_selector: str) -> Optional[ApplicationTarget]:
        capture = self.capturer.capture(url, source_id, content_selector)
        if capture is None:
            return None
        target = self.llm.extract_from_images(capture.chunks, capture.mime_type)
        if target is None or not target.parsed:
            self.logger.warning(f"[LLM] No usable vision result for {source_id}")
            return None
        self.logger.info(f"[LLM] Vision extraction merged for {source_id}")
        return target

    def _merge(self, result: ProgramPatch, target: ApplicationTarget, overwrite: bool,
               keyword_field: Optional[str]) -> ProgramPatch:
        """
        Merge an LLM result into the record.

        overwrite applies to the matching fields only; narrative fields and the
        support field are always fill-only, and a keyword-derived support field
        is never replaced.
        """
        overlay = target.to_patch()
        merged = merge_patch(result, overlay, names=MATCHING_FIELDS, overwrite=overwrite)
        merged = merge_patch(merged, overlay, names=NARRATIVE_FIELDS, overwrite=False)
        if not keyword_field:
            merged = merge_patch(merged, overlay, names=['support_field'], overwrite=False)
        return merged

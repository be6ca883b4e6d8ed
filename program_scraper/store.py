import os
import math
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import StoreError
from .models import ProgramPatch, ProgramRecord


class ProgramStore(ABC):
    """Persistence sink keyed by (source, source_id)"""

    @abstractmethod
    def upsert(self, source: str, source_id: str, url: str,
               patch: ProgramPatch) -> Tuple[ProgramRecord, bool]:
        """Create or update one program; returns (record, created)"""

    @abstractmethod
    def get(self, source: str, source_id: str) -> Optional[ProgramRecord]:
        pass

    @abstractmethod
    def all(self) -> List[ProgramRecord]:
        pass

    @abstractmethod
    def update_enrichment(self, source: str, source_id: str, patch: ProgramPatch) -> ProgramRecord:
        """Partial update of an existing program"""

    def iter_for_reextraction(self, limit: int = 10, force: bool = False) -> List[ProgramRecord]:
        """Newest-first programs still lacking LLM enrichment (all of them when forced)"""
        records = [r for r in self.all() if force or not r.llm_processed]
        records.sort(key=lambda r: r.created_at or datetime.min, reverse=True)
        return records[:limit] if limit else records

    def query(self, source: Optional[str] = None, category: Optional[str] = None,
              region: Optional[str] = None, status: str = 'active', page: int = 1,
              limit: int = 20, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Filtered, paginated listing of stored programs.

        category and region match by substring. With status 'active' only
        programs whose application_end is unset or not yet past are kept;
        any other status returns closed programs as well. Most recently
        updated programs come first.
        """
        page = max(1, page)
        limit = max(1, limit)
        now = now or datetime.now()

        records = self.all()
        if source:
            records = [r for r in records if r.source == source]
        if category:
            records = [r for r in records if category in (r.category or '')]
        if region:
            records = [r for r in records if region in (r.region or '')]
        if status == 'active':
            records = [r for r in records if r.application_end is None or r.application_end >= now]

        records.sort(key=lambda r: r.updated_at or datetime.min, reverse=True)
        total = len(records)
        start = (page - 1) * limit
        return {
            'programs': [r.to_dict() for r in records[start:start + limit]],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'totalPages': math.ceil(total / limit),
            },
        }

    def counts(self) -> Dict[str, int]:
        records = self.all()
        processed = sum(1 for r in records if r.llm_processed)
        return {
            'total': len(records),
            'processed': processed,
            'unprocessed': len(records) - processed,
        }

    def close(self):
        pass


class JsonProgramStore(ProgramStore):
    """
    Program store backed by one UTF-8 JSON file.

    The whole file is rewritten after every change, through a temporary file
    so an interrupted write never leaves a truncated store behind.
    """

    def __init__(self, path: str, logger: Optional[logging.Logger] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.path = path
        self.logger = logger or logging.getLogger('ProgramScraper')
        self.clock = clock
        self._records: Dict[Tuple[str, str], ProgramRecord] = {}
        self._load()

    def _load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read program store {self.path}: {e}") from e

        for entry in data.get('programs', []):
            record = ProgramRecord.from_dict(entry)
            self._records[record.key] = record
        self.logger.debug(f"Loaded {len(self._records)} programs from {self.path}")

    def _save(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(
                    {'programs': [r.to_dict() for r in self._records.values()]},
                    f, indent=2, ensure_ascii=False,
                )
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write program store {self.path}: {e}") from e

    def upsert(self, source: str, source_id: str, url: str,
               patch: ProgramPatch) -> Tuple[ProgramRecord, bool]:
        now = self.clock()
        patch = patch.truncated()
        record = self._records.get((source, source_id))
        created = record is None

        if created:
            record = ProgramRecord(
                source=source,
                source_id=source_id,
                url=url,
                title=patch.title or source_id,
                category=patch.category or '기타',
                created_at=now,
            )
            self._records[record.key] = record
        else:
            record.url = url

        record.apply(patch)
        record.updated_at = now
        self._save()
        return record, created

    def get(self, source: str, source_id: str) -> Optional[ProgramRecord]:
        return self._records.get((source, source_id))

    def all(self) -> List[ProgramRecord]:
        return list(self._records.values())

    def update_enrichment(self, source: str, source_id: str, patch: ProgramPatch) -> ProgramRecord:
        record = self._records.get((source, source_id))
        if record is None:
            raise StoreError(f"Unknown program {source}/{source_id}")
        record.apply(patch.truncated())
        record.updated_at = self.clock()
        self._save()
        return record

"""
Source Deduplicator

발견된 참조 자료를 locator(URL) 기준으로 누적하며 중복을 제거합니다.
"""

from typing import Any, Iterable

from core.pipeline.schemas import SourceRecord


class SourceDeduplicator:
    """locator 기준 중복 제거 누적기 (최초 발견 순서 유지)"""

    def __init__(self) -> None:
        # dict 삽입 순서 = 최초 발견 순서
        self._records: dict[str, SourceRecord] = {}

    def add_sources(self, batch: Iterable[SourceRecord | dict[str, Any]]) -> list[SourceRecord]:
        """
        배치를 누적 집합에 추가

        이미 있는 locator, 같은 배치 안의 중복, 빈 locator는 제외합니다.

        Returns:
            새로 추가된 SourceRecord 목록 (배치 내 순서)
        """
        added: list[SourceRecord] = []
        for item in batch:
            record = item if isinstance(item, SourceRecord) else SourceRecord.model_validate(item)
            if not record.locator or record.locator in self._records:
                continue
            self._records[record.locator] = record
            added.append(record)
        return added

    @property
    def sources(self) -> list[SourceRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, locator: object) -> bool:
        return isinstance(locator, str) and locator.strip() in self._records

    def clear(self) -> None:
        self._records.clear()

"""
Source Deduplicator 단위 테스트
"""

from core.pipeline.schemas import SourceRecord
from core.pipeline.sources import SourceDeduplicator


def _rec(locator: str, title: str = "") -> SourceRecord:
    return SourceRecord(locator=locator, title=title)


def test_two_batches_example():
    """[a, b] 후 [b, c] → {a, b, c}, 두 번째 호출의 신규 = [c]"""
    dedup = SourceDeduplicator()
    first = dedup.add_sources([_rec("a"), _rec("b")])
    second = dedup.add_sources([_rec("b"), _rec("c")])

    assert [r.locator for r in first] == ["a", "b"]
    assert [r.locator for r in second] == ["c"]
    assert [r.locator for r in dedup.sources] == ["a", "b", "c"]


def test_same_batch_twice_is_idempotent():
    """같은 배치를 두 번 추가하면 두 번째 신규 목록은 비어 있음"""
    dedup = SourceDeduplicator()
    batch = [_rec("https://example.com/1"), _rec("https://example.com/2")]

    assert len(dedup.add_sources(batch)) == 2
    assert dedup.add_sources(batch) == []
    assert len(dedup) == 2


def test_duplicates_within_batch_and_first_seen_kept():
    """배치 내 중복 제거, 최초 발견 레코드 유지"""
    dedup = SourceDeduplicator()
    added = dedup.add_sources([_rec("x", "first"), _rec("y"), _rec("x", "second")])

    assert [r.locator for r in added] == ["x", "y"]
    assert dedup.sources[0].title == "first"


def test_existing_order_not_changed():
    """기존 항목 순서는 변경되지 않음"""
    dedup = SourceDeduplicator()
    dedup.add_sources([_rec("c"), _rec("a")])
    dedup.add_sources([_rec("b"), _rec("a")])

    assert [r.locator for r in dedup.sources] == ["c", "a", "b"]


def test_accepts_dicts_and_strips_locator():
    """dict 입력 허용, locator 공백 정규화, 빈 locator 제외"""
    dedup = SourceDeduplicator()
    added = dedup.add_sources([
        {"locator": " https://example.com ", "title": "Example"},
        {"locator": "https://example.com"},
        {"locator": "   "},
    ])

    assert len(added) == 1
    assert added[0].locator == "https://example.com"
    assert "https://example.com" in dedup
    assert " https://example.com " in dedup


def test_no_duplicate_locators_across_many_batches():
    """여러 배치 누적 후에도 locator 중복 없음"""
    dedup = SourceDeduplicator()
    batches = [[_rec(str(i % 7)) for i in range(start, start + 5)] for start in range(0, 30, 3)]
    for batch in batches:
        dedup.add_sources(batch)

    locators = [r.locator for r in dedup.sources]
    assert len(locators) == len(set(locators)) == 7


def test_clear():
    dedup = SourceDeduplicator()
    dedup.add_sources([_rec("a")])
    dedup.clear()
    assert len(dedup) == 0
    assert [r.locator for r in dedup.add_sources([_rec("a")])] == ["a"]

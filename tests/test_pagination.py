import pytest

from src.inventory.errors import InvalidInputError
from src.inventory.services.pagination import (
    MAX_SIZE,
    PageRequest,
    SORTABLE_FIELDS,
    page_info,
    resolve_page,
    resolve_sort,
    total_pages,
)


@pytest.mark.parametrize(
    "total,size,expected",
    [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2), (100, 7, 15)],
)
def test_total_pages(total, size, expected):
    assert total_pages(total, size) == expected


def test_offset_and_limit():
    request = PageRequest(page=3, size=25)
    assert request.offset == 50
    assert request.limit == 25
    assert PageRequest().offset == 0


def test_resolve_page_clamps():
    assert resolve_page(0, 0) == PageRequest(page=1, size=1)
    assert resolve_page(-4, 1000) == PageRequest(page=1, size=MAX_SIZE)
    assert resolve_page(None, None) == PageRequest(page=1, size=20)


def test_page_info_beyond_range_keeps_requested_page():
    info = page_info(PageRequest(page=9, size=10), total=15)
    assert info.as_dict() == {"page": 9, "size": 10, "total": 15, "total_pages": 2}


def test_default_sort_is_newest_first():
    sort = resolve_sort(None, None)
    assert sort.field == "created_at"
    assert sort.descending is True


def test_sort_field_defaults_to_ascending():
    sort = resolve_sort("name", None)
    assert (sort.field, sort.direction) == ("name", "asc")
    assert resolve_sort("vendor", "DESC").descending is True


@pytest.mark.parametrize("field", ["id; DROP TABLE resource", "tags_json", "Name", "password"])
def test_unknown_sort_field_rejected(field):
    with pytest.raises(InvalidInputError) as exc:
        resolve_sort(field, "asc")
    assert field in exc.value.message
    for allowed in SORTABLE_FIELDS:
        assert allowed in exc.value.message


def test_bad_sort_direction_rejected():
    with pytest.raises(InvalidInputError):
        resolve_sort("name", "sideways")

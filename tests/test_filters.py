from src.inventory.services.filters import ResourceCriteria, TagPair, build_criteria, parse_tag_filter


def test_parse_tag_filter_splits_on_first_colon():
    pairs = parse_tag_filter("Environment:Production,Url:https://example.com:8443")
    assert pairs == (
        TagPair("Environment", "Production"),
        TagPair("Url", "https://example.com:8443"),
    )


def test_parse_tag_filter_ignores_malformed_pairs():
    # No colon and empty key are skipped; the valid pairs survive untouched
    pairs = parse_tag_filter("garbage,:orphan, Owner : IT ,,Environment:Production")
    assert pairs == (TagPair("Owner", "IT"), TagPair("Environment", "Production"))


def test_parse_tag_filter_empty_value_and_duplicates():
    assert parse_tag_filter("Owner:,Owner:") == (TagPair("Owner", ""),)
    assert parse_tag_filter("") == ()
    assert parse_tag_filter(None) == ()


def test_build_criteria_drops_blank_values():
    criteria = build_criteria(search="  ", location=" westeurope ", environment="", tags="bad")
    assert criteria.search is None
    assert criteria.location == "westeurope"
    assert criteria.environment is None
    assert criteria.tags == ()


def test_empty_criteria_has_no_clauses():
    criteria = build_criteria()
    assert criteria.is_empty
    assert criteria.clauses() == []


def test_one_clause_per_filter_and_tag_pair():
    criteria = build_criteria(
        search="vm",
        resource_type="Disk",
        subscription_id=3,
        tags="Environment:Production,Owner:IT",
    )
    assert len(criteria.clauses()) == 5


def test_user_values_are_bound_parameters():
    criteria = build_criteria(search="x'; DROP TABLE resource; --", tags="k'--:v%_")
    for clause in criteria.clauses():
        sql = str(clause.compile())
        assert "DROP TABLE" not in sql
        assert "k'--" not in sql


def test_narrow_appends_tags_and_overrides_fields():
    base = build_criteria(environment="PRD", tags="Owner:IT")
    narrowed = base.narrow(subscription_id=7, tags=(TagPair("Vendor", "Acme"), TagPair("Owner", "IT")))

    assert narrowed.subscription_id == 7
    assert narrowed.environment == "PRD"
    assert narrowed.tags == (TagPair("Owner", "IT"), TagPair("Vendor", "Acme"))
    # base criteria unchanged
    assert base.subscription_id is None
    assert base.tags == (TagPair("Owner", "IT"),)
    assert isinstance(narrowed, ResourceCriteria)

from aura_agent.agent.search import Candidate, best_match, resolve_navigation_url, topic_variants
from aura_agent.config import SearchConfig


def _candidate(index: int, text: str, *, href: str = "", top: float = 0.0, width: float = 120.0) -> Candidate:
    return Candidate(index=index, text=text, href=href, top=top, width=width, height=24.0)


def test_urls_and_domains_resolve_directly() -> None:
    assert resolve_navigation_url("https://www.revenue.ie/vrt") == "https://www.revenue.ie/vrt"
    assert resolve_navigation_url("go to revenue.ie") == "https://revenue.ie"
    assert resolve_navigation_url("citizensinformation.ie/en/travel") == "https://citizensinformation.ie/en/travel"
    assert resolve_navigation_url("vehicle registration") is None


def test_topic_variants_include_synonyms_without_duplicates() -> None:
    variants = topic_variants("Vehicle Tax")

    assert variants[:4] == ["vehicle tax", "vehicletax", "vehicle", "tax"]
    assert "vrt" in variants and "motor tax" in variants
    assert len(variants) == len(set(variants))


def test_short_variants_are_dropped() -> None:
    assert topic_variants("a b test", SearchConfig(min_variant_length=2)) == ["a b test", "abtest", "test"]


def test_best_match_prefers_score_then_position() -> None:
    candidates = [
        _candidate(0, "Tax", top=10.0),
        _candidate(1, "Vehicle Registration Tax (VRT)", top=300.0),
        _candidate(2, "Vehicle tax calculator", top=200.0),
    ]

    match = best_match(candidates, "vehicle tax")

    assert match is not None
    assert match.candidate.index == 1
    assert match.matched_term == "vehicle"


def test_equal_scores_break_ties_by_top() -> None:
    candidates = [_candidate(0, "Contact us", top=500.0), _candidate(1, "Contact us", top=40.0)]

    match = best_match(candidates, "contact")

    assert match is not None
    assert match.candidate.index == 1


def test_tiny_candidates_are_ignored() -> None:
    candidates = [_candidate(0, "Contact", width=20.0)]

    assert best_match(candidates, "contact") is None

from __future__ import annotations

import pytest

from ghexplorer.domain.model import EntityType, InvalidFullNameError, split_full_name
from tests.helpers.github import make_commit, make_contributor, make_merge_request, make_repository


def test_split_full_name() -> None:
    assert split_full_name(" octocat/Hello-World ") == ("octocat", "Hello-World")


@pytest.mark.parametrize("value", ["", "octocat", "/repo", "owner/", "a/b/c"])
def test_split_full_name_rejects_malformed(value: str) -> None:
    with pytest.raises(InvalidFullNameError):
        split_full_name(value)


def test_natural_keys() -> None:
    assert make_repository(7).natural_key == (7,)
    assert make_contributor(9).natural_key == (9,)
    assert make_merge_request(1, 2).natural_key == (2, 1)
    assert make_commit("abc", 2).natural_key == (2, "abc")


def test_surrogate_ids_are_unique_and_entity_types_fixed() -> None:
    first = make_repository()
    second = make_repository()

    assert first.id != second.id
    assert first.entity_type is EntityType.REPOSITORY
    assert make_commit().entity_type is EntityType.COMMIT


def test_enrichment_bookkeeping_defaults() -> None:
    contributor = make_contributor()

    assert not contributor.is_enriched
    assert contributor.enrichment_attempts == 0
    assert not contributor.attempts_exhausted

    contributor.enrichment_attempts = 3
    assert contributor.attempts_exhausted


def test_owner_and_name() -> None:
    assert make_repository(full_name="octocat/Spoon-Knife").owner_and_name == (
        "octocat",
        "Spoon-Knife",
    )

"""Manual metadata edit tests."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from reelshelf.library import MetadataEdit, VideoMeta, split_list


def test_split_list_accepts_text_and_lists() -> None:
    assert split_list("Drama, Comedy;drama\nAction ,") == ["Drama", "Comedy", "Action"]
    assert split_list(["A, B", " ", "a"]) == ["A", "B"]
    assert split_list(None) == []


def test_edit_requires_title() -> None:
    with pytest.raises(ValidationError):
        MetadataEdit(title="   ")


def test_edit_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        MetadataEdit(title="x", rating=5)  # type: ignore[call-arg]


def test_apply_replaces_every_edited_field() -> None:
    original = VideoMeta(
        title="old",
        release_date=date(2020, 1, 1),
        actors=["A"],
        thumbnail="./cache/old.jpg",
        tags=["x"],
        description="old description",
    )
    edit = MetadataEdit(
        title="  New Title ",
        release_date=None,
        actors="Actor One; Actor Two",
        tags=["Drama"],
        description=" tidy \n",
    )

    updated = edit.apply(original)

    assert updated.title == "New Title"
    assert updated.release_date is None
    assert updated.actors == ["Actor One", "Actor Two"]
    assert updated.tags == ["Drama"]
    assert updated.description == "tidy"
    assert updated.thumbnail == "./cache/old.jpg"
    assert edit.apply(original, "./cache/new.png").thumbnail == "./cache/new.png"

"""Tests for movie entities and detail merging."""

from __future__ import annotations

import dataclasses

import pytest

from cinegarr.domain.entities import (
    DetailFragment,
    DownloadLink,
    MovieDetail,
    MovieListing,
    ResultEnvelope,
    merge_detail,
)


def _listing(**kwargs: object) -> MovieListing:
    base = {
        "title": "Heat (1995)",
        "link": "https://example.com/heat",
        "source": "skybap",
    }
    base.update(kwargs)
    return MovieListing(**base)  # type: ignore[arg-type]


class TestMovieListing:
    def test_frozen(self) -> None:
        listing = _listing()
        with pytest.raises(dataclasses.FrozenInstanceError):
            listing.title = "Other"  # type: ignore[misc]

    def test_optional_defaults(self) -> None:
        listing = _listing()
        assert listing.quality is None
        assert listing.size is None
        assert listing.thumbnail is None

    def test_detail_is_a_listing(self) -> None:
        detail = MovieDetail(title="Heat", link="https://x.com/h", source="s")
        assert isinstance(detail, MovieListing)
        assert detail.download_links == ()


class TestDetailFragment:
    def test_list_fields_are_independent(self) -> None:
        a = DetailFragment()
        b = DetailFragment()
        a.genre.append("Drama")
        assert b.genre == []


class TestMergeDetail:
    def test_detail_fields_override(self, detail_fragment: DetailFragment) -> None:
        merged = merge_detail(_listing(thumbnail="https://old.example.com/t.jpg"), detail_fragment)

        assert isinstance(merged, MovieDetail)
        assert merged.thumbnail == "https://img.example.com/heat-poster.jpg"
        assert merged.genre == ("Action", "Crime")
        assert merged.language == "English"
        assert len(merged.download_links) == 2

    def test_listing_quality_kept(self) -> None:
        merged = merge_detail(_listing(quality="1080P"), DetailFragment(quality="HDRip"))
        assert merged.quality == "1080P"

    def test_detail_quality_fills_gap(self) -> None:
        merged = merge_detail(_listing(), DetailFragment(quality="HDRip"))
        assert merged.quality == "HDRip"

    def test_title_replaced_only_when_different(self) -> None:
        merged = merge_detail(_listing(), DetailFragment(title="Heat"))
        assert merged.title == "Heat"

        unchanged = merge_detail(_listing(), DetailFragment(title=""))
        assert unchanged.title == "Heat (1995)"

    def test_empty_fragment_keeps_listing_values(self) -> None:
        listing = _listing(quality="720P", size="1.4GB", thumbnail="https://x.com/p.jpg")
        merged = merge_detail(listing, DetailFragment())

        assert merged.title == listing.title
        assert merged.link == listing.link
        assert merged.source == "skybap"
        assert merged.quality == "720P"
        assert merged.size == "1.4GB"
        assert merged.thumbnail == "https://x.com/p.jpg"
        assert merged.download_links == ()

    def test_merge_onto_existing_detail(self) -> None:
        first = merge_detail(
            _listing(),
            DetailFragment(
                download_links=[DownloadLink(label="720p", url="https://dl.x/1")],
                story="Plot",
            ),
        )
        second = merge_detail(first, DetailFragment(language="Hindi"))

        assert second.story == "Plot"
        assert second.language == "Hindi"
        assert second.download_links == (DownloadLink(label="720p", url="https://dl.x/1"),)


class TestResultEnvelope:
    def test_defaults(self) -> None:
        envelope = ResultEnvelope()
        assert envelope.movies == ()
        assert envelope.total == 0
        assert envelope.has_more is False
        assert envelope.next_page is None
        assert envelope.error is None
        assert envelope.superseded is False

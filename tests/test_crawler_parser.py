"""Tests for parsing pages shown in the automation browser."""

from __future__ import annotations

from datetime import date

from reelshelf.crawler import CrawlerMetadata, parse_metadata, parse_thumbnail_url
from reelshelf.crawler.parser import page_highlight, translate_description

RESULT_PAGE = """
<html><head><title>Search ABP123</title></head><body>
  <div class="card mb-3">
    <div class="card-content">
      <p class="subtitle is-6"><a href="/date/2023/11/24">Nov. 24, 2023</a></p>
      <div class="tags"><a class="tag">Drama</a><a class="tag">drama</a><a class="tag">Comedy</a></div>
      <div class="panel"><a class="panel-block">Actor One</a><a class="panel-block">Actor Two</a></div>
      <div class="level"> </div>
      <div class="level">  A quiet   story. </div>
    </div>
    <img class="image" data-src="https://img.example/abp123.jpg">
  </div>
</body></html>
"""


class _FailingTranslator:
    enabled = True

    def translate(self, text, source_language, target_language, cancel_event=None):
        raise RuntimeError("service down")


class _PrefixTranslator:
    enabled = True

    def translate(self, text, source_language, target_language, cancel_event=None):
        return f"[{target_language}] {text}"


def test_parse_metadata_reads_first_card() -> None:
    metadata = parse_metadata(RESULT_PAGE)

    assert metadata == CrawlerMetadata(
        release_date=date(2023, 11, 24),
        tags=["Drama", "Comedy"],
        actors=["Actor One", "Actor Two"],
        description="A quiet story.",
    )


def test_parse_metadata_falls_back_to_date_text() -> None:
    html = """
    <div class="card mb-3"><div class="card-content">
      <p class="subtitle is-6">2022-02-03</p>
    </div></div>
    """

    metadata = parse_metadata(html)

    assert metadata is not None
    assert metadata.release_date == date(2022, 2, 3)
    assert metadata.tags == []
    assert metadata.description == ""


def test_parse_metadata_without_card_returns_none() -> None:
    assert parse_metadata("<html><body><h1>No results</h1></body></html>") is None
    assert parse_metadata("") is None


def test_parse_thumbnail_url_checks_src_attributes() -> None:
    assert parse_thumbnail_url(RESULT_PAGE) == "https://img.example/abp123.jpg"

    srcset_page = (
        '<div class="card mb-3"><img class="image" '
        'srcset="/small.jpg 1x, https://img.example/large.jpg 2x"></div>'
    )
    assert parse_thumbnail_url(srcset_page) == "https://img.example/large.jpg"
    assert parse_thumbnail_url('<div class="card mb-3"></div>') is None


def test_page_highlight_prefers_heading_then_title() -> None:
    assert page_highlight("<html><body><h1> </h1><h1>Example Domain</h1></body></html>") == (
        "Example Domain"
    )
    assert page_highlight(RESULT_PAGE) == "Search ABP123"
    assert page_highlight("") == ""


def test_translate_description_keeps_original_on_failure() -> None:
    metadata = CrawlerMetadata(description="bonjour")

    assert translate_description(metadata, _FailingTranslator(), "EN") == metadata
    assert translate_description(metadata, _PrefixTranslator(), None) == metadata
    translated = translate_description(metadata, _PrefixTranslator(), "EN")
    assert translated.description == "[EN] bonjour"

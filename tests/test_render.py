"""Tests for the render pipeline."""

import random

import jinja2
import pytest

from hebbot.models import MediaAttachment, MessageKind, News
from hebbot.render import prepare_message, render

from conftest import ALICE_ID, BOB_ID, T0, at, make_config


def _news(news_id, message="Shipped the new widget dashboard", reporter=ALICE_ID, minutes=0,
          sections=(), projects=()) -> News:
    news = News(id=news_id, reporter_id=reporter, reporter_display_name="Alice",
                message=message, timestamp=at(minutes))
    for i, name in enumerate(sections):
        news.add_section_tag(f"{news_id}-s{i}", name)
    for i, name in enumerate(projects):
        news.add_project_tag(f"{news_id}-p{i}", name)
    return news


def _render(news_list, config=None, **kwargs):
    kwargs.setdefault("now", T0)
    kwargs.setdefault("rng", random.Random(7))
    return render(news_list, config or make_config(), "Editor", **kwargs)


class TestGrouping:
    """Grouping entries into sections and projects."""

    def test_project_override_gets_own_group(self):
        """A project news in a non-default section renders under that section, with a note."""
        default = _news("$a", message="Default section news", projects=["widget"])
        override = _news("$b", message="Spotlight news", minutes=1,
                         sections=["spotlight"], projects=["widget"])

        result = _render([default, override])
        doc = result.document

        updates = doc.index("# Updates")
        spotlight = doc.index("# Spotlight")
        assert updates < doc.index("> Default section news") < spotlight
        assert spotlight < doc.index("> Spotlight news")
        assert doc.count("### Widget [↗](https://widget.example.org)") == 2
        assert any("“spotlight” section" in n and "not the default section" in n for n in result.notes)

    def test_section_only_news(self):
        """Entries without a project go directly under their section."""
        result = _render([_news("$a", message="Section only", sections=["spotlight"])])
        assert "# Spotlight\n[Alice](https://matrix.to/#/@alice:example.org)" in result.document
        assert "###" not in result.document
        assert any("doesn't have project information" in n for n in result.notes)

    def test_project_description_link(self):
        """{{project}} in a description becomes a link to the website."""
        result = _render([_news("$a", projects=["widget"])])
        assert "[Widget](https://widget.example.org) is a toolkit for dashboards." in result.document
        assert result.project_names == ["widget"]

    def test_sections_sorted_by_order(self):
        """Sections are rendered by their configured order."""
        spotlight = _news("$a", message="Spotlight first", sections=["spotlight"])
        updates = _news("$b", message="Updates second", minutes=1, sections=["updates"])
        doc = _render([spotlight, updates]).document
        assert doc.index("# Updates") < doc.index("# Spotlight")

    def test_news_in_timestamp_order(self):
        later = _news("$late", message="Later news", minutes=5, sections=["updates"])
        earlier = _news("$early", message="Earlier news", minutes=1, sections=["updates"])
        doc = _render([later, earlier]).document
        assert doc.index("Earlier news") < doc.index("Later news")

    def test_unassigned_skipped(self):
        """Unassigned entries are skipped and counted in a warning."""
        result = _render([_news("$a", message="Nobody tagged me"), _news("$b", sections=["updates"])])
        assert "Nobody tagged me" not in result.document
        assert "1 news entries don't have project/section information" in result.warnings[0]
        assert result.notes[0].startswith("Rendered 1 news entries (1 skipped)")

    def test_multiple_sections_warn_and_duplicate(self):
        """An entry in two sections appears twice, with a warning."""
        news = _news("$a", message="Everywhere", sections=["updates", "spotlight"])
        result = _render([news])
        assert result.document.count("> Everywhere") == 2
        assert any("multiple section information" in w for w in result.warnings)

    def test_duplicate_tags_render_once(self):
        """The same section tagged twice renders the entry once."""
        news = _news("$a", message="Tagged twice", sections=["updates", "updates"])
        result = _render([news])
        assert result.document.count("> Tagged twice") == 1
        assert not any("multiple" in w for w in result.warnings)


class TestMedia:
    """Images and videos in the report."""

    def test_media_deduplicated(self):
        """One file confirmed twice is fetched and shown once."""
        image = MediaAttachment("$img", "shot.png", "mxc://example.org/AbCd")
        first = _news("$a", sections=["updates"])
        first.add_media("$r1", image)
        first.add_media("$r2", image)
        second = _news("$b", minutes=1, sections=["updates"])
        second.add_media("$r3", image)

        result = _render([first, second])
        assert [m.locator for m in result.media_to_fetch] == ["mxc://example.org/AbCd"]
        assert result.document.count("![](AbCd.png)") == 2
        assert "with 1 images and 0 videos" in result.notes[0]

    def test_video_snippet(self):
        """Videos use the configured video snippet."""
        config = make_config(video_markdown="{{< video src=\"{{file}}\" >}}")
        news = _news("$a", sections=["updates"])
        news.add_media("$r1", MediaAttachment("$vid", "clip.mp4", "mxc://example.org/Vid",
                                              kind=MessageKind.VIDEO))
        result = _render([news], config=config)
        assert '{{< video src="Vid.mp4" >}}' in result.document

    def test_media_of_unassigned_news_not_fetched(self):
        news = _news("$a")
        news.add_media("$r1", MediaAttachment("$img", "shot.png", "mxc://example.org/AbCd"))
        assert _render([news]).media_to_fetch == []


class TestTemplate:
    """The jinja2 report template."""

    def test_template_variables(self):
        """Date fields, author and project list are available to templates."""
        template = "{{ author }}|{{ weeknumber }}|{{ today }}|{{ timespan }}|{{ projects }}"
        result = _render([_news("$a", projects=["widget"])], template=template)
        assert result.document == 'Editor|10|2024-03-04|February 26 to March 04|"widget"'

    def test_report_variable(self):
        result = _render([_news("$a", sections=["updates"])], template="<<{{ report }}>>")
        assert result.document.startswith("<<# Updates\n")
        assert result.document.endswith(">>")

    def test_bad_template(self):
        """Template syntax errors propagate to the caller."""
        with pytest.raises(jinja2.TemplateSyntaxError):
            _render([], template="{% if %}")

    def test_configured_verbs(self):
        result = _render([_news("$a", sections=["updates"])], config=make_config(verbs=["shouts"]))
        assert "[Alice](https://matrix.to/#/@alice:example.org) shouts" in result.document

    def test_no_verbs_configured(self):
        """Without configured verbs every entry "reports"."""
        result = _render([_news("$a", sections=["updates"])], config=make_config(verbs=[]))
        assert ") reports\n" in result.document


class TestIdempotence:
    """Rendering never changes the store."""

    def test_same_document_twice(self):
        """Rendering the same snapshot twice gives the same document."""
        news_list = [
            _news("$a", projects=["widget"]),
            _news("$b", minutes=1, sections=["spotlight"], projects=["widget"]),
            _news("$c", reporter=BOB_ID, minutes=2, sections=["updates"]),
        ]
        before = [n.to_dict() for n in news_list]

        first = _render(news_list, rng=random.Random(3))
        second = _render(news_list, rng=random.Random(3))

        assert first.document == second.document
        assert first.warnings == second.warnings
        assert first.notes == second.notes
        assert [n.to_dict() for n in news_list] == before


class TestPrepareMessage:
    """Markdown preparation of message bodies."""

    def test_block_quote(self):
        assert prepare_message("  line one\nline two  ") == "> line one\n> line two"

    def test_list_items(self):
        """Dash list items become asterisk items inside the quote."""
        assert prepare_message("Changes:\n- fast\n- small") == "> Changes:\n> * fast\n> * small"

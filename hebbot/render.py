"""Render pipeline — turns the assigned news entries into a markdown report.

Grouping:
- news with section tags only     → directly under each of its sections
- news with project tags          → under the project, in its default section
- project news with another section → synthetic "<project>-<section>" group
  rendered under that section

The report body is passed to a jinja2 template together with the date
fields. Rendering works on copies and never touches the store.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from jinja2 import BaseLoader, Environment

from .config import BotConfig, Project, Section
from .formatting import message_link, user_markdown_link
from .models import MediaAttachment, MessageKind, News

logger = logging.getLogger("hebbot.render")

DEFAULT_VERB = "reports"

DEFAULT_TEMPLATE = """\
---
title: "Week {{ weeknumber }}"
author: {{ author }}
date: {{ today }}
tags: [{{ projects }}]
---

Updates from {{ timespan }}.

{{ report }}
"""


@dataclass
class RenderProject:
    project: Project
    news: list[News] = field(default_factory=list)
    # Set when the news entries don't use the project's default section
    overwritten_section: Optional[str] = None

    @property
    def section_name(self) -> str:
        return self.overwritten_section or self.project.default_section


@dataclass
class RenderSection:
    section: Section
    projects: list[RenderProject] = field(default_factory=list)
    # News without project information
    news: list[News] = field(default_factory=list)


@dataclass
class RenderResult:
    document: str
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    media_to_fetch: list[MediaAttachment] = field(default_factory=list)
    project_names: list[str] = field(default_factory=list)


def _environment() -> Environment:
    # Markdown output, no HTML escaping
    return Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)


def render(
    news_list: list[News],
    config: BotConfig,
    editor_display_name: str,
    template: Optional[str] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> RenderResult:
    """Render a report from a snapshot of news entries.

    Args:
        news_list: Snapshot from NewsStore.list()
        config: Bot configuration with sections and projects
        editor_display_name: Inserted as the report author
        template: jinja2 template source, DEFAULT_TEMPLATE if None
        now: Reference time for the date fields (default: current UTC time)
        rng: Random source for the reporting verbs

    Returns:
        RenderResult with the document, warnings, notes and the media
        files referenced by the document.

    Raises:
        jinja2.TemplateError: the template could not be parsed or rendered
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()

    warnings: list[str] = []
    notes: list[str] = []

    render_sections: dict[str, RenderSection] = {}
    render_projects: dict[str, RenderProject] = {}
    project_names: set[str] = set()
    skipped = 0

    def section_group(name: str) -> RenderSection:
        if name not in render_sections:
            render_sections[name] = RenderSection(section=_lookup_section(config, name))
        return render_sections[name]

    # Stable sort, entries with the same timestamp keep insertion order
    for news in sorted(news_list, key=lambda n: n.timestamp):
        if not news.is_assigned():
            skipped += 1
            continue

        link = message_link(config.reporting_room_id, news.id)
        section_names = news.section_names()
        news_project_names = news.project_names()

        if len(news_project_names) > 1:
            warnings.append(
                f"[{link}] News entry by {news.reporter_display_name} has multiple project information set, "
                "it'll appear multiple times. This is probably not wanted!"
            )
        if len(section_names) > 1:
            warnings.append(
                f"[{link}] News entry by {news.reporter_display_name} has multiple section information set, "
                "it'll appear multiple times. This is probably not wanted!"
            )

        if not news_project_names:
            notes.append(
                f"[{link}] News entry by {news.reporter_display_name} doesn't have project information, "
                "it'll appear directly in the section without any project description."
            )
            for section_name in section_names:
                section_group(section_name).news.append(news)
            continue

        for project_name in news_project_names:
            project_names.add(project_name)
            project = _lookup_project(config, project_name)

            overrides = [s for s in section_names if s != project.default_section]
            for section_name in overrides:
                notes.append(
                    f"[{link}] News entry by {news.reporter_display_name} gets added to the “{section_name}” "
                    "section, which is not the default section for this project."
                )
                key = f"{project_name}-{section_name}"
                if key not in render_projects:
                    render_projects[key] = RenderProject(project=project, overwritten_section=section_name)
                render_projects[key].news.append(news)

            if overrides:
                continue

            if project_name not in render_projects:
                render_projects[project_name] = RenderProject(project=project)
            render_projects[project_name].news.append(news)

    for render_project in render_projects.values():
        section_group(render_project.section_name).projects.append(render_project)

    # Stable for equal order values: first encountered section first
    ordered = sorted(render_sections.values(), key=lambda s: s.section.order)

    report = ""
    included: dict[str, News] = {}
    for render_section in ordered:
        report += f"# {render_section.section.title}\n"
        for news in render_section.news:
            report += _news_md(news, config, rng)
            included[news.id] = news
        for render_project in render_section.projects:
            report += _project_md(render_project.project)
            for news in render_project.news:
                report += _news_md(news, config, rng)
                included[news.id] = news

    media_to_fetch = _unique_media(included.values())
    images = sum(1 for m in media_to_fetch if m.kind == MessageKind.IMAGE)
    videos = len(media_to_fetch) - images

    if skipped:
        warnings.insert(
            0,
            f"{skipped} news entries don't have project/section information, "
            "they'll not appear in the rendered markdown!",
        )
    notes.insert(
        0,
        f"Rendered {len(included)} news entries ({skipped} skipped) "
        f"with {images} images and {videos} videos.",
    )

    sorted_project_names = sorted(project_names)
    context = {
        "report": report.strip(),
        "sections": ordered,
        "author": editor_display_name,
        "today": now.strftime("%Y-%m-%d"),
        "weeknumber": str(now.isocalendar()[1]),
        "timespan": f"{(now - timedelta(days=7)).strftime('%B %d')} to {now.strftime('%B %d')}",
        "projects": ", ".join(f'"{name}"' for name in sorted_project_names),
    }
    document = _environment().from_string(template or DEFAULT_TEMPLATE).render(**context)
    logger.info(f"Rendered report with {len(included)} news entries, {len(warnings)} warnings")

    return RenderResult(
        document=document,
        warnings=warnings,
        notes=notes,
        media_to_fetch=media_to_fetch,
        project_names=sorted_project_names,
    )


def _lookup_section(config: BotConfig, name: str) -> Section:
    section = config.section_by_name(name)
    if section is None:
        raise KeyError(f"News entry references unknown section “{name}”")
    return section


def _lookup_project(config: BotConfig, name: str) -> Project:
    project = config.project_by_name(name)
    if project is None:
        raise KeyError(f"News entry references unknown project “{name}”")
    return project


def _project_md(project: Project) -> str:
    project_link = f"[{project.title}]({project.website})"
    description = project.description.replace("{{project}}", project_link)
    return f"### {project.title} [↗]({project.website})\n\n{description}\n\n"


def _news_md(news: News, config: BotConfig, rng: random.Random) -> str:
    user = user_markdown_link(news.reporter_display_name, news.reporter_id)
    verb = rng.choice(config.verbs) if config.verbs else DEFAULT_VERB
    text = f"{user} {verb}\n\n{prepare_message(news.message)}\n\n"

    for image in news.images():
        text += config.image_markdown.replace("{{file}}", image.download_name) + "\n\n"
    for video in news.videos():
        text += config.video_markdown.replace("{{file}}", video.download_name) + "\n\n"
    return text


def prepare_message(message: str) -> str:
    """Block-quote a message and turn `-` list items into `*` items."""
    quoted = "> " + message.strip().replace("\n", "\n> ")
    return quoted.replace("> -", "> *")


def _unique_media(news_list) -> list[MediaAttachment]:
    unique: dict[str, MediaAttachment] = {}
    for news in news_list:
        for attachment in [*news.images(), *news.videos()]:
            unique.setdefault(attachment.locator, attachment)
    return list(unique.values())

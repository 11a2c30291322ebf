"""Documentation sections shown on the help page."""

from __future__ import annotations

from dataclasses import dataclass

from strategicflow.core.exceptions import NotFoundError

_VIDEO = "https://www.youtube.com/embed/{}"


@dataclass(frozen=True)
class DocSection:
    id: str
    name: str
    title: str
    description: str
    video_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "videoUrl": self.video_url,
        }


SECTIONS = (
    DocSection("overview", "Overview", "Welcome to StrategicFlow",
               "A comprehensive strategic planning platform for organizational excellence",
               _VIDEO.format("Uz2lcXfsHRk")),
    DocSection("dashboard", "Dashboard", "Dashboard Guide",
               "Understanding your strategic overview", _VIDEO.format("XNjNo1RJGYA")),
    DocSection("strategies", "Strategies", "Strategies Guide",
               "Managing high-level strategic objectives", _VIDEO.format("V58aAb34Gz0")),
    DocSection("projects", "Projects", "Projects Guide",
               "Breaking down strategies into executable projects", _VIDEO.format("qQyGC-Fk9fw")),
    DocSection("actions", "Actions", "Actions Guide",
               "Managing individual tasks and action items", _VIDEO.format("p0OSu3rhiK0")),
    DocSection("timeline", "Timeline", "Timeline Guide",
               "Visualizing your strategic roadmap", _VIDEO.format("Wqi-d-nZiGM")),
    DocSection("meeting-notes", "Meeting Notes", "Meeting Notes Guide",
               "Creating report-out meeting documentation", _VIDEO.format("r9s2m2VpaDU")),
    DocSection("reports", "Reports", "Reports & Analytics Guide",
               "Understanding performance metrics and insights"),
    DocSection("settings", "Settings", "Settings Guide",
               "Configuring users, permissions, and system settings"),
)


def get_section(section_id: str) -> DocSection:
    for s in SECTIONS:
        if s.id == section_id:
            return s
    raise NotFoundError("Documentation section", section_id)

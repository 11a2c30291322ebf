"""
Static template catalog and its category filter.

Categories are the built-in defaults followed by the organization's custom
template types (GET /api/template-types), without repeats.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from strategicflow.core.exceptions import NotFoundError

ALL_TEMPLATES = "All Templates"
DEFAULT_CATEGORIES = ("Strategic Planning", "Project Management", "Daily Tasks")


@dataclass(frozen=True)
class Template:
    id: str
    title: str
    description: str
    category: str
    read_time: str
    path: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["readTime"] = d.pop("read_time")
        return d


TEMPLATES = (
    Template(
        "strategy-on-a-page",
        "Strategy on a Page",
        "Comprehensive enterprise framework with mission, vision, priorities, "
        "objectives, KPIs, initiatives, and risk management.",
        "Strategic Planning", "10 min", "/templates/strategy-on-a-page",
    ),
    Template(
        "pestle",
        "PESTLE Analysis",
        "Evaluate Political, Economic, Social, Technological, Legal, and "
        "Environmental macro-factors affecting your strategy.",
        "Strategic Planning", "15 min", "/templates/pestle",
    ),
    Template(
        "porters-five-forces",
        "Porter's Five Forces",
        "Analyze competitive dynamics through New Entrants, Supplier Power, "
        "Buyer Power, Substitutes, and Rivalry to inform strategic positioning.",
        "Strategic Planning", "15 min", "/templates/porters-five-forces",
    ),
    Template(
        "swot",
        "SWOT Analysis",
        "Analyze strengths, weaknesses, opportunities, and threats to inform "
        "strategic decisions.",
        "Strategic Planning", "5 min", "/templates/swot",
    ),
    Template(
        "smart-goals",
        "SMART Goals",
        "Define Specific, Measurable, Achievable, Relevant, and Time-bound "
        "objectives for clarity and focus.",
        "Project Management", "4 min", "/templates/smart-goals",
    ),
    Template(
        "eisenhower-matrix",
        "Eisenhower Matrix",
        "Prioritize tasks by urgency and importance to maximize productivity "
        "and focus on what matters.",
        "Daily Tasks", "3 min", "/templates/eisenhower-matrix",
    ),
    Template(
        "first-principles",
        "First Principles Thinking",
        "Break problems down to fundamentals and rebuild solutions from "
        "first truths.",
        "Strategic Planning", "12 min", "/templates/first-principles",
    ),
)


def categories(custom_types: list[dict] | None = None) -> list[str]:
    """Return the filter list: "All Templates", the defaults, then custom names."""
    result = [ALL_TEMPLATES, *DEFAULT_CATEGORIES]
    seen = {name.lower() for name in result}
    for item in custom_types or []:
        name = (item.get("name") or "").strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            result.append(name)
    return result


def filter_templates(category: str | None = None) -> list[Template]:
    if not category or category == ALL_TEMPLATES:
        return list(TEMPLATES)
    return [t for t in TEMPLATES if t.category == category]


def get_template(template_id: str) -> Template:
    for t in TEMPLATES:
        if t.id == template_id:
            return t
    raise NotFoundError("Template", template_id)

"""
Intern portfolio export.

Renders the portfolio with a Jinja2 HTML template and converts it to PDF with
WeasyPrint.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, select_autoescape

from taskverse.db import ProfileRecord
from taskverse.services import PortfolioItem

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


def _get_weasyprint():
    """Lazy import WeasyPrint so the API can start without its system libraries."""
    try:
        from weasyprint import HTML
        return HTML
    except ImportError:
        logger.error("WeasyPrint is not installed. Install with: pip install weasyprint")
        raise ImportError(
            "WeasyPrint is required for PDF generation. "
            "Install it with: pip install weasyprint"
        )


@dataclass
class PortfolioSummary:
    level: int
    points: int
    projects_completed: int
    average_rating: str
    skills: list[str]


def summarize_portfolio(
    profile: ProfileRecord, items: Sequence[PortfolioItem]
) -> PortfolioSummary:
    if items:
        average = f"{sum(item.rating or 0 for item in items) / len(items):.1f}"
    else:
        average = "N/A"
    skills: list[str] = []
    for item in items:
        for skill in item.skills:
            if skill not in skills:
                skills.append(skill)
    return PortfolioSummary(
        level=profile.level or 1,
        points=profile.points or 0,
        projects_completed=len(items),
        average_rating=average,
        skills=skills,
    )


def _format_date(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        return date.fromisoformat(value[:10]).strftime("%B %d, %Y")
    except ValueError:
        return value


def render_portfolio_html(
    profile: ProfileRecord,
    items: Sequence[PortfolioItem],
    generated_on: Optional[date] = None,
) -> str:
    generated_on = generated_on or datetime.now(timezone.utc).date()
    template = _env.get_template("portfolio.html")
    return template.render(
        name=profile.name,
        email=profile.email,
        generated=generated_on.strftime("%B %d, %Y"),
        summary=summarize_portfolio(profile, items),
        projects=[
            {
                "title": item.task_title,
                "completed": _format_date(item.completed_date),
                "points": item.points,
                "rating": f"{item.rating}/5" if item.rating else "-",
                "business_name": item.business_name,
                "task_description": item.task_description,
                "description": item.description,
                "review": item.review,
            }
            for item in items
        ],
    )


def generate_portfolio_pdf(
    profile: ProfileRecord,
    items: Sequence[PortfolioItem],
    generated_on: Optional[date] = None,
) -> bytes:
    """Render the portfolio and return the PDF as bytes."""
    HTML = _get_weasyprint()
    html_content = render_portfolio_html(profile, items, generated_on)

    pdf_file = BytesIO()
    HTML(string=html_content).write_pdf(pdf_file)
    pdf_file.seek(0)
    return pdf_file.read()


def portfolio_filename(name: str) -> str:
    stem = re.sub(r"\s+", "_", name or "")
    return f"{stem}_Portfolio.pdf"


def content_disposition(filename: str) -> str:
    """
    Attachment header with a latin-1 safe ``filename`` fallback and the
    UTF-8 ``filename*`` form for non-ASCII names.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = re.sub(r'[?"\\]', "_", fallback)
    return (
        f'attachment; filename="{fallback}"; '
        f"filename*=UTF-8''{quote(filename)}"
    )

"""
Render a stored report snapshot to PDF bytes.

Works only from the report's frozen fields, so a report renders the same
way for its whole lifetime regardless of later calculation edits.
"""

import io
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

BRAND = "Aetherra"
BRAND_COLOR = colors.HexColor("#10B981")
RECENT_ROWS = 20

TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
    ]
)


def _field(source: Any, name: str, default: Any = None) -> Any:
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


def _text(value: Any) -> str:
    return escape(str(value)) if value is not None else ""


def _footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    canvas.drawCentredString(A4[0] / 2, 1 * cm, f"{BRAND} Platform | Page {doc.page}")
    canvas.restoreState()


def breakdown_rows(by_type: Dict[str, float]) -> List[List[str]]:
    """Category rows with their share of the total, largest first."""
    total = sum(by_type.values())
    rows = []
    for category, value in sorted(by_type.items(), key=lambda item: item[1], reverse=True):
        share = (value / total * 100) if total > 0 else 0.0
        rows.append([category, f"{value:.3f}", f"{share:.0f}%"])
    return rows


def _ai_section(story: list, styles, ai: Dict[str, Any]) -> None:
    h2, h3, normal = styles["Heading2"], styles["Heading3"], styles["Normal"]

    story.append(Paragraph("AI Sustainability Analysis", h2))
    if ai.get("summary"):
        story.append(Paragraph(_text(ai["summary"]), normal))
        story.append(Spacer(1, 0.3 * cm))

    idea = ai.get("innovative_idea") or ai.get("innovativeIdea") or {}
    if idea.get("title"):
        story.append(Paragraph("Innovative idea", h3))
        story.append(Paragraph(f"<b>{_text(idea['title'])}</b>", normal))
        story.append(Paragraph(_text(idea.get("description")), normal))
        impact = idea.get("potential_impact") or idea.get("potentialImpact")
        if impact:
            story.append(Paragraph(f"<i>Potential impact: {_text(impact)}</i>", normal))
        story.append(Spacer(1, 0.3 * cm))

    recommendations = ai.get("recommendations") or []
    if recommendations:
        story.append(Paragraph("Recommendations", h3))
        for rec in recommendations:
            impact = str(rec.get("impact", "medium")).upper()
            story.append(
                Paragraph(f"• <b>[{_text(impact)}] {_text(rec.get('title'))}</b>: {_text(rec.get('description'))}", normal)
            )
        story.append(Spacer(1, 0.3 * cm))

    flags = ai.get("risk_flags") or ai.get("riskFlags") or []
    if flags:
        story.append(Paragraph("Risk flags", h3))
        for flag in flags:
            severity = str(flag.get("severity", "info")).upper()
            story.append(
                Paragraph(f"• <b>[{_text(severity)}] {_text(flag.get('title'))}</b>: {_text(flag.get('description'))}", normal)
            )
        story.append(Spacer(1, 0.3 * cm))


def render_report_pdf(report: Any) -> bytes:
    """Report (ORM row, schema or dict) -> PDF document bytes."""
    styles = getSampleStyleSheet()
    h2, normal = styles["Heading2"], styles["Normal"]

    snapshot: Dict[str, Any] = _field(report, "data_snapshot") or {}
    ai: Optional[Dict[str, Any]] = _field(report, "ai_insights_snapshot")
    created_at = _field(report, "created_at")
    by_type: Dict[str, float] = snapshot.get("by_type") or {}
    recent = snapshot.get("recent_calcs") or []
    total = float(snapshot.get("total_emissions") or 0.0)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=_field(report, "title") or "Carbon Report",
        author=BRAND,
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
    )
    story: list = []

    # Header
    header_style = styles["Title"].clone("BrandTitle", textColor=BRAND_COLOR)
    story.append(Paragraph(BRAND, header_style))
    story.append(Paragraph("Sustainability Intelligence Report", styles["Heading3"]))
    if created_at is not None:
        story.append(Paragraph(f"Generated: {created_at:%Y-%m-%d}", normal))
    story.append(Spacer(1, 0.5 * cm))

    story.append(Paragraph(_text(_field(report, "title") or "Carbon Audit"), h2))
    story.append(Paragraph(f"<i>{_text(_field(report, 'summary') or 'No summary available.')}</i>", normal))
    story.append(Spacer(1, 0.4 * cm))

    # Key metrics
    story.append(Paragraph("Key metrics", h2))
    metrics = Table(
        [
            ["Total emissions", "Categories", "Calculations"],
            [f"{total:.2f} tCO2e", str(len(by_type)), str(len(recent))],
        ],
        colWidths=[5.5 * cm, 5.5 * cm, 5.5 * cm],
    )
    metrics.setStyle(TABLE_STYLE)
    story.append(metrics)
    story.append(Spacer(1, 0.4 * cm))

    # Category breakdown
    story.append(Paragraph("Emission analysis", h2))
    if total <= 0.001 or not by_type:
        story.append(Paragraph("No data available to plot.", normal))
    else:
        table = Table(
            [["Category", "Emissions (tCO2e)", "Share"]] + breakdown_rows(by_type),
            colWidths=[6 * cm, 6 * cm, 4.5 * cm],
        )
        table.setStyle(TABLE_STYLE)
        story.append(table)
    story.append(Spacer(1, 0.4 * cm))

    if ai:
        _ai_section(story, styles, ai)

    # Activity log
    story.append(Paragraph("Recent activity log", h2))
    if recent:
        rows = [["Date", "Type", "Emissions (tCO2e)"]]
        for calc in recent[:RECENT_ROWS]:
            created = str(calc.get("created_at") or "")[:10]
            rows.append([created, str(calc.get("type", "")), f"{float(calc.get('emissions') or 0):.3f}"])
        table = Table(rows, colWidths=[5.5 * cm, 5.5 * cm, 5.5 * cm])
        table.setStyle(TABLE_STYLE)
        story.append(table)
    else:
        story.append(Paragraph("No calculations recorded.", normal))

    doc.build(story, onFirstPage=_footer, onLaterPages=_footer)
    return buffer.getvalue()

"""
Roadmap Export Service
Renders a user's stored career guidance as a downloadable PDF using WeasyPrint
"""

import re
import logging
from datetime import date
from io import BytesIO
from typing import Any, Dict, Optional

from markupsafe import escape

WEEKLY_TASKS = ['Complete learning resources', 'Practice exercises', 'Review progress', 'Update portfolio']
TRACKER_WEEKS = 12


def _section(title, body):
    return f'<div class="section"><h2>{escape(title)}</h2>{body}</div>'


def _roles_html(roles):
    items = []
    for idx, role in enumerate(roles, 1):
        items.append(f"""
            <div class="item">
                <h3>{idx}. {escape(role.get('title', ''))}</h3>
                <p><strong>Market Demand:</strong> {escape(role.get('market_demand', ''))}</p>
                <p><strong>Why this fits:</strong> {escape(role.get('reason', ''))}</p>
            </div>""")
    return ''.join(items)


def _skill_gaps_html(gaps):
    items = []
    for idx, gap in enumerate(gaps, 1):
        items.append(f"""
            <div class="item">
                <h3>{idx}. {escape(gap.get('skill', ''))}</h3>
                <p><strong>Importance:</strong> {escape(gap.get('importance', ''))}</p>
                <p><strong>Resource:</strong> {escape(gap.get('learning_resource', ''))}</p>
            </div>""")
    return ''.join(items)


def _priority_key(priority):
    try:
        return int(priority.get('priority'))
    except (TypeError, ValueError):
        return 0


def _priorities_html(priorities):
    items = []
    for priority in sorted(priorities, key=_priority_key):
        items.append(f"""
            <div class="item">
                <h3>Priority {escape(priority.get('priority', ''))}: {escape(priority.get('topic', ''))}</h3>
                <p><strong>Timeline:</strong> {escape(priority.get('timeline', ''))}</p>
                <p><strong>Why focus on this:</strong> {escape(priority.get('reason', ''))}</p>
            </div>""")
    return ''.join(items)


def _roadmap_html(roadmap_text):
    # Lines mentioning a week become headings, the rest are indented steps
    lines = []
    for line in roadmap_text.split('\n'):
        if not line.strip():
            continue
        if 'week' in line.lower():
            lines.append(f'<h3 class="week">{escape(line.strip())}</h3>')
        else:
            lines.append(f'<p class="step">{escape(line.strip())}</p>')
    return ''.join(lines)


def _tracker_html():
    weeks = []
    for week in range(1, TRACKER_WEEKS + 1):
        tasks = ''.join(f'<li><span class="checkbox"></span>{escape(task)}</li>' for task in WEEKLY_TASKS)
        weeks.append(f'<div class="week-box"><h3>Week {week}</h3><ul>{tasks}</ul></div>')
    return '<p><strong>Use this template to track your weekly progress:</strong></p>' + ''.join(weeks)


def _dicts(value):
    return [item for item in (value or []) if isinstance(item, dict)]


def build_roadmap_html(recommendations: Dict[str, Any], user_name: str, generated_on: Optional[date] = None) -> str:
    """
    HTML document for the roadmap PDF. Sections with no data are left out.

    Args:
        recommendations: UserCareerRecommendation.to_dict() output
        user_name: Name printed in the header
        generated_on: Date printed under the header, today by default
    """
    generated_on = generated_on or date.today()
    sections = []

    roles = _dicts(recommendations.get('recommended_roles'))
    if roles:
        sections.append(_section('Recommended Career Roles', _roles_html(roles)))

    gaps = _dicts(recommendations.get('skill_gaps'))
    if gaps:
        sections.append(_section('Skills to Develop', _skill_gaps_html(gaps)))

    priorities = _dicts(recommendations.get('learning_priorities'))
    if priorities:
        sections.append(_section('Learning Priorities', _priorities_html(priorities)))

    roadmap = recommendations.get('preparation_roadmap')
    if roadmap:
        sections.append(_section('Preparation Roadmap', _roadmap_html(roadmap)))
        sections.append(f'<div class="section page-break"><h2>Weekly Progress Tracker</h2>{_tracker_html()}</div>')

    insights = recommendations.get('market_insights')
    if insights:
        sections.append(_section('Market Insights', f'<p>{escape(insights)}</p>'))

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <title>Career Preparation Roadmap - {escape(user_name)}</title>
    </head>
    <body>
        <div class="header">
            <h1>Career Preparation Roadmap</h1>
            <p>Prepared for: {escape(user_name)}</p>
        </div>
        <p class="generated">Generated on: {generated_on.strftime('%B %d, %Y')}</p>
        {''.join(sections)}
        <div class="footer">Career Preparation System</div>
    </body>
    </html>
    """


def get_roadmap_css():
    """CSS for the roadmap PDF"""
    return """
        @page {
            size: A4;
            margin: 0.75in;
        }

        body {
            font-family: Helvetica, Arial, sans-serif;
            font-size: 10pt;
            line-height: 1.4;
            color: #111;
        }

        .header {
            background: #4f46e5;
            color: #fff;
            padding: 14pt 18pt;
            margin-bottom: 12pt;
        }

        .header h1 {
            font-size: 20pt;
            margin: 0 0 4pt 0;
        }

        .header p {
            font-size: 12pt;
            margin: 0;
        }

        .generated {
            font-weight: bold;
        }

        .section h2 {
            background: #4f46e5;
            color: #fff;
            font-size: 14pt;
            padding: 4pt 8pt;
            margin: 16pt 0 8pt 0;
        }

        .item h3, .week {
            font-size: 12pt;
            margin: 8pt 0 2pt 0;
        }

        .item p {
            margin: 0 0 2pt 0;
        }

        .step {
            margin: 0 0 2pt 12pt;
        }

        .page-break {
            page-break-before: always;
        }

        .week-box {
            border: 0.5pt solid #4f46e5;
            padding: 4pt 8pt;
            margin-bottom: 8pt;
            page-break-inside: avoid;
        }

        .week-box h3 {
            font-size: 11pt;
            margin: 0 0 4pt 0;
        }

        .week-box ul {
            list-style: none;
            margin: 0;
            padding: 0;
            font-size: 9pt;
        }

        .checkbox {
            display: inline-block;
            width: 7pt;
            height: 7pt;
            border: 0.5pt solid #111;
            margin-right: 6pt;
        }

        .footer {
            margin-top: 24pt;
            text-align: center;
            color: #808080;
            font-size: 12pt;
        }
    """


def roadmap_filename(user_name: str, generated_on: Optional[date] = None) -> str:
    generated_on = generated_on or date.today()
    safe_name = re.sub(r'[^A-Za-z0-9_-]+', '_', user_name.strip()) or 'User'
    return f"Career_Roadmap_{safe_name}_{generated_on.isoformat()}.pdf"


def render_roadmap_pdf(recommendations: Dict[str, Any], user_name: str) -> bytes:
    """Render the roadmap PDF and return its bytes"""
    from weasyprint import HTML, CSS

    html_content = build_roadmap_html(recommendations, user_name)
    logging.info(f"Rendering roadmap PDF for {user_name}, HTML length: {len(html_content)}")

    pdf_buffer = BytesIO()
    HTML(string=html_content).write_pdf(pdf_buffer, stylesheets=[CSS(string=get_roadmap_css())])
    return pdf_buffer.getvalue()

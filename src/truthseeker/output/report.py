"""
Evidence Report Compiler - Turn selected evidence into a printable report.

The report always has four pages in this order:

1. Cover (case reference, generation time, item count, confidentiality notice)
2. Executive summary (assessment, statistics, timeline)
3. Detailed evidence (one card per item)
4. Appendix (where to report fraud, evidence integrity, methodology)

Output is a self-contained HTML document with print page breaks, written as
``TruthSeeker-Evidence-<caseId>.html``; the user prints it to PDF.
"""

from __future__ import annotations

import logging
import random
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Sequence

from jinja2 import Environment

from truthseeker.config import ReportConfig
from truthseeker.core.models import EvidenceItem, EvidencePackage, TimelineEntry
from truthseeker.evidence.aggregator import item_checksum
from truthseeker.utils.logging import LogContext

logger = logging.getLogger(__name__)

CASE_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


# =============================================================================
# Helpers
# =============================================================================


def generate_case_id(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """``TS-YYYYMMDD-XXXX`` with a 4-character uppercase base36 suffix.

    A new id is drawn on every compile; ids are never reused.
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(CASE_SUFFIX_ALPHABET) for _ in range(4))
    return f"TS-{now:%Y%m%d}-{suffix}"


def format_long_date(moment: datetime) -> str:
    """e.g. ``Friday, January 5, 2024 at 02:30 PM``."""
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year} at {moment:%I:%M %p}"


def build_timeline(items: Sequence[EvidenceItem]) -> list[TimelineEntry]:
    """One entry per item, in the order given. MEDIUM and above are concerns."""
    return [
        TimelineEntry(
            date=format_long_date(item.date),
            event=item.title,
            item_id=item.id,
            is_concern=bool(item.risk_level and item.risk_level.is_concern),
        )
        for item in items
    ]


def report_filename(case_id: str) -> str:
    return f"TruthSeeker-Evidence-{case_id}.html"


# =============================================================================
# Templates
# =============================================================================

EMBEDDED_CSS = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: 'Inter', 'Helvetica Neue', Arial, sans-serif; font-size: 11pt; line-height: 1.6; color: #1a1a1a; background: white; }
.page { max-width: 8.5in; margin: 0 auto; padding: 0.75in; page-break-after: always; }
.page:last-child { page-break-after: avoid; }
h1, h2, h3 { font-family: 'Space Grotesk', 'Helvetica Neue', Arial, sans-serif; }
h1 { font-size: 24pt; margin-bottom: 0.5em; }
h2 { font-size: 16pt; margin: 1.5em 0 0.5em; border-bottom: 2px solid #6246EA; padding-bottom: 0.25em; }
.cover { display: flex; flex-direction: column; justify-content: center; align-items: center; min-height: 9in; text-align: center; }
.cover .logo { width: 80px; height: 80px; background: linear-gradient(135deg, #E9622D, #6246EA); border-radius: 16px; margin-bottom: 1em; }
.cover h1 { font-size: 32pt; margin-bottom: 0.25em; }
.cover .subtitle { font-size: 14pt; color: #666; margin-bottom: 2em; }
.cover .case-info { background: #f5f5f5; padding: 1.5em 2em; border-radius: 8px; margin: 1em 0; }
.cover .case-info p { margin: 0.5em 0; }
.cover .confidential { margin-top: 2em; padding: 0.5em 1em; border: 2px solid #E9622D; color: #E9622D; font-weight: 600; text-transform: uppercase; letter-spacing: 0.1em; }
.cover .credits { margin-top: 3em; font-size: 10pt; color: #666; }
.summary-box { background: #f8f8ff; border-left: 4px solid #6246EA; padding: 1em; margin: 1em 0; white-space: pre-wrap; }
.stat-grid { display: grid; grid-template-columns: repeat(3, 1fr); gap: 1em; margin: 1em 0; }
.stat { background: #f5f5f5; padding: 1em; border-radius: 8px; text-align: center; }
.stat .value { font-size: 24pt; font-weight: 700; color: #6246EA; }
.stat .value.high { color: #c00; }
.stat .value.medium { color: #a50; }
.stat .label { font-size: 9pt; color: #666; text-transform: uppercase; }
.timeline-item { display: flex; gap: 1em; padding: 1em 0; border-bottom: 1px solid #eee; }
.timeline-item .date { width: 120px; flex-shrink: 0; font-size: 9pt; color: #666; }
.timeline-item.concern { background: #fff5f5; margin: 0 -1em; padding: 1em; }
.timeline-item.concern .event { color: #c00; }
.evidence-card { border: 1px solid #ddd; border-radius: 8px; padding: 1em; margin: 1em 0; page-break-inside: avoid; }
.evidence-card .header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 0.5em; }
.evidence-card .type { font-size: 9pt; padding: 0.25em 0.5em; background: #6246EA; color: white; border-radius: 4px; text-transform: uppercase; }
.evidence-card .title { margin-left: 0.5em; }
.evidence-card .when { font-size: 10pt; color: #666; margin-bottom: 0.5em; }
.evidence-card .summary { white-space: pre-wrap; }
.risk-badge { font-size: 9pt; padding: 0.25em 0.5em; border-radius: 4px; font-weight: 600; }
.risk-badge.critical, .risk-badge.high { background: #fee; color: #c00; }
.risk-badge.medium { background: #fff8e0; color: #a50; }
.risk-badge.low { background: #e8f5e9; color: #2e7d32; }
.checksum { font-family: monospace; font-size: 9pt; color: #666; background: #f5f5f5; padding: 0.25em 0.5em; border-radius: 4px; }
.appendix-section { background: #f9f9f9; padding: 1em; margin: 1em 0; border-radius: 8px; }
.appendix-section h4 { margin-bottom: 0.5em; color: #6246EA; }
.appendix-section .note { margin-top: 0.5em; font-size: 10pt; color: #666; }
.footer { margin-top: 2em; padding-top: 1em; border-top: 1px solid #ddd; font-size: 9pt; color: #666; text-align: center; }
ul { margin-left: 1.5em; }
li { margin: 0.5em 0; }
@media print {
    body { print-color-adjust: exact; -webkit-print-color-adjust: exact; }
    .page { padding: 0.5in; }
}
"""

BASE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Evidence Report - {{ case_id }}</title>
    <style>{{ css|safe }}</style>
</head>
<body>
{% for section in sections %}{{ section.content|safe }}
{% endfor %}</body>
</html>
"""

COVER_TEMPLATE = """
<div class="page cover" id="cover">
    <div class="logo"></div>
    <h1>Evidence Report</h1>
    <p class="subtitle">{{ brand }} Forensic Analysis Platform</p>
    <div class="case-info">
        <p><strong>Case Reference:</strong> {{ package.case_id }}</p>
        <p><strong>Generated:</strong> {{ package.generated_at|long_date }}</p>
        <p><strong>Total Evidence Items:</strong> {{ package.items|length }}</p>
    </div>
    <p class="confidential">Confidential - For Law Enforcement Use</p>
    <div class="credits">
        <p>This report was generated using {{ brand }}.</p>
        <p>All analysis performed using AI forensic tools.</p>
    </div>
</div>
"""

SUMMARY_TEMPLATE = """
<div class="page" id="summary">
    <h2>Executive Summary</h2>
    <div class="summary-box"><p>{{ package.overall_assessment }}</p></div>
    <div class="stat-grid">
        <div class="stat"><div class="value">{{ stats.total_items }}</div><div class="label">Evidence Items</div></div>
        <div class="stat"><div class="value high">{{ stats.high_risk_count }}</div><div class="label">High Risk Findings</div></div>
        <div class="stat"><div class="value medium">{{ stats.medium_risk_count }}</div><div class="label">Medium Risk Findings</div></div>
    </div>
    <h2>Evidence Timeline</h2>
    {% for entry in package.timeline %}
    <div class="timeline-item{% if entry.is_concern %} concern{% endif %}" data-item="{{ entry.item_id }}">
        <div class="date">{{ entry.date }}</div>
        <div class="event">{{ entry.event }}</div>
    </div>
    {% endfor %}
</div>
"""

EVIDENCE_TEMPLATE = """
<div class="page" id="evidence">
    <h2>Detailed Evidence</h2>
    {% for item in package.items %}
    <div class="evidence-card" id="{{ item.id }}">
        <div class="header">
            <div>
                <span class="type">{{ item.kind.value }}</span>
                <strong class="title">{{ item.title }}</strong>
            </div>
            {% if item.risk_level %}<span class="risk-badge {{ item.risk_level.value|lower }}">{{ item.risk_level.value }} RISK</span>{% endif %}
        </div>
        <p class="when">{{ item.date|long_date }}</p>
        <p class="summary">{{ item.summary }}</p>
        {% if item.raw_data %}<p><span class="checksum">Checksum: {{ item|checksum }}</span></p>{% endif %}
    </div>
    {% endfor %}
</div>
"""

APPENDIX_TEMPLATE = """
<div class="page" id="appendix">
    <h2>Appendix</h2>
    <div class="appendix-section">
        <h4>How to Report Online Fraud</h4>
        <ul>
            <li><strong>IC3 (FBI Internet Crime Complaint Center):</strong> ic3.gov - For all internet-related crimes</li>
            <li><strong>FTC (Federal Trade Commission):</strong> reportfraud.ftc.gov - Consumer fraud reports</li>
            <li><strong>Local Police:</strong> File a report with your local law enforcement</li>
            <li><strong>Platform Reporting:</strong> Report the account on the platform where contact occurred</li>
        </ul>
    </div>
    <div class="appendix-section">
        <h4>Evidence Integrity</h4>
        <p>All evidence items include checksums computed from the recorded data. These can be used to check that evidence has not been modified since collection.</p>
        <p class="note">Checksums are short non-cryptographic fingerprints meant for casual verification. They are not a forensic-grade integrity guarantee or chain of custody.</p>
    </div>
    <div class="appendix-section">
        <h4>Analysis Methodology</h4>
        <p>{{ brand }} uses AI-powered forensic analysis to detect:</p>
        <ul>
            <li>Image manipulation and AI-generated content</li>
            <li>Deepfake video detection</li>
            <li>Voice synthesis and audio manipulation</li>
            <li>Behavioral patterns indicating fraud</li>
        </ul>
        <p class="note">Note: AI analysis provides indicators and should be considered alongside other evidence.</p>
    </div>
    <div class="footer">
        <p>Generated by {{ brand }}</p>
        <p>This report is intended for informational purposes and to assist in reporting potential fraud.</p>
    </div>
</div>
"""


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class ReportSection:
    """A rendered page of the report."""

    id: str
    title: str
    content: str
    order: int


@dataclass
class CompiledReport:
    """A compiled package and its rendered document."""

    package: EvidencePackage
    html: str
    filename: str

    def export(self, output_dir: Path) -> Path:
        """Write the document to ``output_dir`` and return its path."""
        output_path = Path(output_dir) / self.filename
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.html, encoding="utf-8")
        logger.info(f"Report written to {output_path}")
        return output_path

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dump of the package, with stats and checksums."""
        data = self.package.model_dump(mode="json", exclude={"items": {"__all__": {"raw_data"}}})
        data["stats"] = self.package.stats.model_dump()
        for item, dumped in zip(self.package.items, data["items"]):
            dumped["checksum"] = item_checksum(item)
        return data


# =============================================================================
# Report Compiler
# =============================================================================


class ReportCompiler:
    """Compiles selected EvidenceItems into a four-page report.

    The compiler only reads the items it is given; it never touches the
    case history or journal.

    Args:
        config: Report configuration (uses defaults if None).
        clock: Returns the generation time (defaults to current UTC time).
        rng: Random source for case-id suffixes.

    Example:
        >>> compiler = ReportCompiler()
        >>> report = compiler.compile(items[:3], "Pattern consistent with romance fraud.")
        >>> report.export(Path("reports"))
        PosixPath('reports/TruthSeeker-Evidence-TS-20240105-7QXK.html')
    """

    def __init__(
        self,
        config: ReportConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or ReportConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng

        self._env = Environment(autoescape=True)
        self._env.filters["long_date"] = format_long_date
        self._env.filters["checksum"] = item_checksum

    def compile(
        self,
        selected_items: Sequence[EvidenceItem],
        overall_assessment: str | None = None,
    ) -> CompiledReport:
        """Build the package for ``selected_items`` and render it.

        Items keep the order they are given in (the aggregator's date order).

        Raises:
            ValueError: If no items are selected.
        """
        if not selected_items:
            raise ValueError("Select at least one evidence item")

        generated_at = self._clock()
        items = list(selected_items)
        package = EvidencePackage(
            case_id=generate_case_id(generated_at, self._rng),
            generated_at=generated_at,
            items=items,
            overall_assessment=(overall_assessment or "").strip() or self._config.default_assessment,
            timeline=build_timeline(items),
        )

        with LogContext(f"Rendering report {package.case_id} ({len(items)} items)", logger=logger):
            html = self.render(package)
        return CompiledReport(package=package, html=html, filename=report_filename(package.case_id))

    def render(self, package: EvidencePackage) -> str:
        context = {
            "package": package,
            "stats": package.stats,
            "brand": self._config.brand,
        }
        sections = self._render_all_sections(context)
        return self._env.from_string(BASE_TEMPLATE).render(
            case_id=package.case_id,
            css=EMBEDDED_CSS,
            sections=sorted(sections, key=lambda s: s.order),
        )

    def _render_all_sections(self, context: dict[str, Any]) -> list[ReportSection]:
        pages = [
            ("cover", "Cover", COVER_TEMPLATE),
            ("summary", "Executive Summary", SUMMARY_TEMPLATE),
            ("evidence", "Detailed Evidence", EVIDENCE_TEMPLATE),
            ("appendix", "Appendix", APPENDIX_TEMPLATE),
        ]
        return [
            ReportSection(
                id=section_id,
                title=title,
                content=self._env.from_string(template).render(**context),
                order=order,
            )
            for order, (section_id, title, template) in enumerate(pages)
        ]

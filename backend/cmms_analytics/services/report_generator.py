"""
Export rendering for custom reports and the KPI summary.
Produces CSV text, PDF (reportlab) and Excel (openpyxl) documents from
a title, optional summary metrics and tabular sections.
"""
import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from cmms_analytics.core.exceptions import InvalidReportQueryError
from cmms_analytics.schemas.analytics import KPIResult
from cmms_analytics.schemas.reports import CustomReportResponse

EXPORT_FORMATS: Dict[str, Tuple[str, str]] = {
    "csv": ("text/csv", "csv"),
    "pdf": ("application/pdf", "pdf"),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}

HEADER_COLOR = "1e40af"


@dataclass
class ReportSection:
    title: Optional[str]
    headers: List[str]
    rows: List[List[Any]]
    numeric_cols: Tuple[int, ...] = ()


@dataclass
class RenderedExport:
    content: bytes
    media_type: str
    filename: str


class ReportGenerator:
    """Generates CSV, PDF and Excel exports."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=18,
            alignment=TA_CENTER,
            spaceAfter=12,
        ))
        self.styles.add(ParagraphStyle(
            name='ReportSubtitle',
            parent=self.styles['Normal'],
            fontSize=10,
            alignment=TA_CENTER,
            textColor=colors.gray,
            spaceAfter=20,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=12,
            spaceBefore=12,
            spaceAfter=8,
        ))
        self.styles.add(ParagraphStyle(
            name='MetricLabel',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.gray,
        ))
        self.styles.add(ParagraphStyle(
            name='MetricValue',
            parent=self.styles['Normal'],
            fontSize=12,
            fontName='Helvetica-Bold',
        ))

    def _format_value(self, value: Any) -> str:
        """Format a cell for text output."""
        if value is None:
            return '-'
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, (float, Decimal)):
            if abs(value) >= 1000:
                return f'{value:,.2f}'
            return f'{value:.2f}'
        if isinstance(value, datetime):
            return value.strftime('%Y-%m-%d %H:%M')
        if isinstance(value, date):
            return value.strftime('%Y-%m-%d')
        return str(value)

    def _table_style(self) -> TableStyle:
        return TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(f'#{HEADER_COLOR}')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 9),
            ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 1), (-1, -1), 8),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.gray),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f3f4f6')]),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ])

    def generate_pdf(
        self,
        title: str,
        subtitle: str,
        summary_metrics: Optional[List[Dict[str, Any]]] = None,
        sections: Optional[List[ReportSection]] = None,
    ) -> bytes:
        """
        Render a PDF document.

        Args:
            title: Report title
            subtitle: Filters or date range line under the title
            summary_metrics: List of dicts with 'label' and 'value'
            sections: Tables to render below the metrics
        """
        buffer = io.BytesIO()
        page_size = landscape(letter)
        doc = SimpleDocTemplate(
            buffer,
            pagesize=page_size,
            rightMargin=0.5*inch,
            leftMargin=0.5*inch,
            topMargin=0.5*inch,
            bottomMargin=0.5*inch,
        )
        available_width = page_size[0] - inch

        elements = [
            Paragraph(escape(title), self.styles['ReportTitle']),
            Paragraph(escape(subtitle), self.styles['ReportSubtitle']),
        ]

        if summary_metrics:
            labels = [Paragraph(m['label'], self.styles['MetricLabel']) for m in summary_metrics]
            values = [
                Paragraph(escape(self._format_value(m['value'])), self.styles['MetricValue'])
                for m in summary_metrics
            ]
            metric_table = Table([labels, values], colWidths=[available_width / len(labels)] * len(labels))
            metric_table.setStyle(TableStyle([
                ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
                ('BOX', (0, 0), (-1, -1), 1, colors.HexColor('#e5e7eb')),
                ('INNERGRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e5e7eb')),
                ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#f9fafb')),
            ]))
            elements.append(metric_table)
            elements.append(Spacer(1, 16))

        for section in sections or []:
            if section.title:
                elements.append(Paragraph(escape(section.title), self.styles['SectionHeader']))
            if not section.headers:
                continue
            table_data = [section.headers]
            table_data += [[self._format_value(cell) for cell in row] for row in section.rows]
            col_width = available_width / len(section.headers)
            table = Table(table_data, colWidths=[col_width] * len(section.headers), repeatRows=1)
            table.setStyle(self._table_style())
            for col_idx in section.numeric_cols:
                table.setStyle(TableStyle([('ALIGN', (col_idx, 1), (col_idx, -1), 'RIGHT')]))
            elements.append(table)
            elements.append(Spacer(1, 12))

        doc.build(elements)
        return buffer.getvalue()

    def generate_excel(
        self,
        title: str,
        subtitle: str,
        summary_metrics: Optional[List[Dict[str, Any]]] = None,
        sections: Optional[List[ReportSection]] = None,
    ) -> bytes:
        """Render an Excel workbook with a single sheet."""
        wb = Workbook()
        ws = wb.active
        ws.title = "Report"

        header_font = Font(name='Arial', size=10, bold=True, color='FFFFFF')
        header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type='solid')
        cell_font = Font(name='Arial', size=9)
        thin = Side(style='thin', color='CCCCCC')
        thin_border = Border(left=thin, right=thin, top=thin, bottom=thin)

        ws.cell(row=1, column=1, value=title).font = Font(name='Arial', size=16, bold=True)
        ws.cell(row=2, column=1, value=subtitle).font = Font(name='Arial', size=10, color='666666')
        row_num = 4

        if summary_metrics:
            for col, metric in enumerate(summary_metrics, 1):
                ws.cell(row=row_num, column=col, value=metric['label']).font = Font(
                    name='Arial', size=9, color='666666'
                )
                ws.cell(row=row_num + 1, column=col, value=metric['value']).font = Font(
                    name='Arial', size=12, bold=True
                )
            row_num += 3

        for section in sections or []:
            if section.title:
                ws.cell(row=row_num, column=1, value=section.title).font = Font(name='Arial', size=11, bold=True)
                row_num += 1
            if not section.headers:
                continue

            for col_idx, header in enumerate(section.headers, 1):
                cell = ws.cell(row=row_num, column=col_idx, value=header)
                cell.font = header_font
                cell.fill = header_fill
                cell.alignment = Alignment(horizontal='center', vertical='center')
                cell.border = thin_border
            row_num += 1

            for row in section.rows:
                for col_idx, value in enumerate(row, 1):
                    cell = ws.cell(row=row_num, column=col_idx, value=value)
                    cell.font = cell_font
                    cell.border = thin_border
                    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
                        cell.alignment = Alignment(horizontal='right')
                        if isinstance(value, float):
                            cell.number_format = '#,##0.00'
                row_num += 1
            row_num += 1

        # Fit column widths to content
        for column in ws.columns:
            lengths = [len(str(cell.value)) for cell in column if cell.value is not None]
            column_letter = get_column_letter(column[0].column)
            ws.column_dimensions[column_letter].width = min(max(lengths, default=0) + 2, 50)

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def generate_csv(self, headers: List[str], rows: List[List[Any]]) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(headers)
        for row in rows:
            writer.writerow(['' if cell is None else cell for cell in row])
        return output.getvalue()

    def render(
        self,
        fmt: str,
        basename: str,
        title: str,
        subtitle: str,
        sections: List[ReportSection],
        summary_metrics: Optional[List[Dict[str, Any]]] = None,
    ) -> RenderedExport:
        """Render ``sections`` as csv, pdf or xlsx. CSV carries the first section only."""
        fmt = (fmt or "").lower()
        if fmt not in EXPORT_FORMATS:
            raise InvalidReportQueryError(
                f"Unsupported export format '{fmt}'; expected one of {', '.join(EXPORT_FORMATS)}",
                field="format",
            )
        media_type, extension = EXPORT_FORMATS[fmt]

        if fmt == "csv":
            section = sections[0] if sections else ReportSection(None, [], [])
            content = self.generate_csv(section.headers, section.rows).encode("utf-8")
        elif fmt == "pdf":
            content = self.generate_pdf(title, subtitle, summary_metrics, sections)
        else:
            content = self.generate_excel(title, subtitle, summary_metrics, sections)
        return RenderedExport(content=content, media_type=media_type, filename=f"{basename}.{extension}")


def custom_report_section(report: CustomReportResponse) -> ReportSection:
    keys = [column.key for column in report.columns]
    rows = [[row.get(key) for key in keys] for row in report.rows]
    numeric = tuple(
        idx for idx, key in enumerate(keys)
        if any(isinstance(row.get(key), (int, float)) for row in report.rows)
    )
    return ReportSection(
        title=None,
        headers=[column.label for column in report.columns],
        rows=rows,
        numeric_cols=numeric,
    )


def kpi_summary_metrics(kpis: KPIResult) -> List[Dict[str, Any]]:
    return [
        {'label': 'MTTR (h)', 'value': kpis.mttr},
        {'label': 'MTBF (h)', 'value': kpis.mtbf},
        {'label': 'Backlog', 'value': kpis.backlog},
        {'label': 'Availability', 'value': kpis.availability},
        {'label': 'Performance', 'value': kpis.performance},
        {'label': 'Quality', 'value': kpis.quality},
        {'label': 'OEE', 'value': kpis.oee},
        {'label': 'Energy (kWh)', 'value': kpis.energy.total_kwh},
    ]


def kpi_sections(kpis: KPIResult) -> List[ReportSection]:
    """Summary row first so the CSV export carries the headline metrics."""
    summary = kpi_summary_metrics(kpis)
    sections = [
        ReportSection(
            title="Summary",
            headers=[metric['label'] for metric in summary],
            rows=[[metric['value'] for metric in summary]],
            numeric_cols=tuple(range(len(summary))),
        ),
    ]
    if kpis.benchmarks.assets:
        sections.append(ReportSection(
            title="Asset Benchmarks",
            headers=["Asset", "Availability", "Performance", "Quality", "OEE"],
            rows=[
                [entry.name, entry.availability, entry.performance, entry.quality, entry.oee]
                for entry in kpis.benchmarks.assets
            ],
            numeric_cols=(1, 2, 3, 4),
        ))
    if kpis.downtime.reasons:
        sections.append(ReportSection(
            title="Downtime by Reason",
            headers=["Reason", "Minutes"],
            rows=[[reason.reason, reason.minutes] for reason in kpis.downtime.reasons],
            numeric_cols=(1,),
        ))
    return sections


def describe_range(start: Optional[str], end: Optional[str]) -> str:
    if start and end:
        return f"{start} to {end}"
    if start:
        return f"From {start}"
    if end:
        return f"Through {end}"
    return "All dates"

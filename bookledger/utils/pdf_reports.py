"""
PDF exports for reports and purchase receipts (reportlab platypus).
"""
import io
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from bookledger.schemas.purchases import PurchaseDetail
from bookledger.schemas.reports import InventoryReport, SalesReport
from bookledger.utils.alerts import stock_status


def _table_style(header_color: str) -> TableStyle:
    return TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(header_color)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 1), (-1, -1), 8),
        ('ALIGN', (1, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.whitesmoke, colors.white]),
    ])


class PDFReportGenerator:
    """Render report records to PDF bytes."""

    def __init__(self, shop_name: str = "School Book Shop", currency: str = "GHS"):
        self.shop_name = shop_name
        self.currency = currency
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=20,
            alignment=TA_CENTER,
            spaceAfter=18,
            textColor=colors.HexColor('#2c3e50')
        ))
        self.styles.add(ParagraphStyle(
            name='ReportSubtitle',
            parent=self.styles['Heading2'],
            fontSize=11,
            alignment=TA_CENTER,
            spaceAfter=12,
            textColor=colors.HexColor('#7f8c8d')
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=13,
            spaceBefore=14,
            spaceAfter=8,
            textColor=colors.HexColor('#2980b9')
        ))
        self.styles.add(ParagraphStyle(
            name='NormalText',
            parent=self.styles['Normal'],
            fontSize=10,
            spaceAfter=6
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.gray,
            alignment=TA_CENTER
        ))

    def _money(self, value: Decimal) -> str:
        return f"{self.currency} {value:,.2f}"

    def _header(self, title: str, subtitle: Optional[str] = None) -> List:
        story = [Paragraph(title, self.styles['ReportTitle'])]
        generated = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        story.append(Paragraph(f"{subtitle} | {generated}" if subtitle else generated, self.styles['ReportSubtitle']))
        story.append(Spacer(1, 12))
        return story

    def _build(self, story: List, pagesize=A4, margin: float = 54) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=pagesize,
            rightMargin=margin,
            leftMargin=margin,
            topMargin=margin,
            bottomMargin=margin
        )
        doc.build(story)
        buffer.seek(0)
        return buffer.getvalue()

    def generate_inventory_report(self, report: InventoryReport) -> bytes:
        story = self._header("Inventory Report", self.shop_name)

        summary_text = f"""
        <b>Summary:</b><br/>
        Titles: {report.total_items}<br/>
        Copies in stock: {report.total_stock}<br/>
        Stock value: {self._money(report.total_value)}<br/>
        Low stock (&lt;= {report.low_stock_threshold}): {len(report.low_stock)}<br/>
        Out of stock: {len(report.out_of_stock)}<br/>
        """
        story.append(Paragraph(summary_text, self.styles['NormalText']))

        story.append(Paragraph("Stock by Class Level", self.styles['SectionHeader']))
        rows = [['Class Level', 'Titles', 'Copies', 'Value']]
        for group in report.by_class_level:
            rows.append([group.key, str(group.book_count), str(group.stock), self._money(group.value)])
        table = Table(rows, colWidths=[2.2 * inch, 1 * inch, 1 * inch, 1.6 * inch])
        table.setStyle(_table_style('#2c3e50'))
        story.append(table)

        story.append(Paragraph("Low Stock Titles", self.styles['SectionHeader']))
        rows = [['Title', 'Class', 'Subject', 'Stock', 'Status']]
        for item in report.low_stock:
            rows.append([
                Paragraph(escape(item.title), self.styles['Normal']),
                item.class_level,
                item.subject,
                str(item.stock_quantity),
                stock_status(item).value,
            ])
        table = Table(rows, colWidths=[2.4 * inch, 1 * inch, 1.3 * inch, 0.7 * inch, 0.9 * inch])
        table.setStyle(_table_style('#c0392b'))
        story.append(table)

        story.append(Spacer(1, 20))
        story.append(Paragraph(f"{self.shop_name} - Inventory Report", self.styles['Footer']))
        return self._build(story)

    def generate_sales_report(self, report: SalesReport) -> bytes:
        start = report.period.start.isoformat() if report.period.start else "beginning"
        end = report.period.end.isoformat() if report.period.end else "today"
        story = self._header("Sales Report", f"{start} to {end}")

        summary_text = f"""
        <b>Summary:</b><br/>
        Purchases: {report.purchase_count}<br/>
        Books sold: {report.total_quantity}<br/>
        Revenue: {self._money(report.total_sales)}<br/>
        Profit: {self._money(report.total_profit)}<br/>
        Average order value: {self._money(report.average_order_value)}<br/>
        """
        story.append(Paragraph(summary_text, self.styles['NormalText']))

        story.append(Paragraph("Sales by Title", self.styles['SectionHeader']))
        rows = [['Title', 'Purchases', 'Copies', 'Revenue', 'Profit']]
        for row in report.by_item:
            rows.append([
                Paragraph(escape(row.title or f"Item #{row.item_id}"), self.styles['Normal']),
                str(row.purchase_count),
                str(row.quantity),
                self._money(row.revenue),
                self._money(row.profit),
            ])
        table = Table(rows, colWidths=[2.4 * inch, 0.9 * inch, 0.8 * inch, 1.2 * inch, 1.2 * inch])
        table.setStyle(_table_style('#27ae60'))
        story.append(table)

        story.append(Paragraph("Sales by Month", self.styles['SectionHeader']))
        rows = [['Month', 'Transactions', 'Sales', 'Profit']]
        for row in report.by_month:
            rows.append([row.month, str(row.transaction_count), self._money(row.sales), self._money(row.profit)])
        table = Table(rows, colWidths=[1.4 * inch, 1.2 * inch, 1.5 * inch, 1.5 * inch])
        table.setStyle(_table_style('#3498db'))
        story.append(table)

        story.append(Spacer(1, 20))
        story.append(Paragraph(f"{self.shop_name} - Sales Report", self.styles['Footer']))
        return self._build(story)

    def generate_receipt(self, purchase: PurchaseDetail) -> bytes:
        """Narrow receipt page for a single purchase."""
        story = [
            Paragraph(self.shop_name.upper(), ParagraphStyle(
                name='ReceiptHeader', fontSize=14, alignment=TA_CENTER,
                textColor=colors.HexColor('#2c3e50'), spaceAfter=8)),
            Paragraph("Purchase Receipt", ParagraphStyle(
                name='ReceiptSub', fontSize=11, alignment=TA_CENTER,
                textColor=colors.grey, spaceAfter=14)),
        ]

        info_style = ParagraphStyle(name='ReceiptInfo', fontSize=9)
        info_text = f"""
        <b>Receipt #:</b> {purchase.receipt_number}<br/>
        <b>Date:</b> {purchase.created_at.strftime('%Y-%m-%d %H:%M')}<br/>
        """
        if purchase.student:
            info_text += (
                f"<b>Student:</b> {escape(purchase.student.name)} ({purchase.student.student_code})<br/>"
                f"<b>Class:</b> {purchase.student.class_level}<br/>"
            )
        story.append(Paragraph(info_text, info_style))
        story.append(Spacer(1, 10))

        title = escape(purchase.item.title) if purchase.item else f"Item #{purchase.item_id}"
        item_text = f"""
        <b>{title}</b><br/>
        Quantity: {purchase.quantity}<br/>
        Unit price: {self._money(purchase.unit_price)}<br/>
        """
        story.append(Paragraph(item_text, info_style))
        story.append(Spacer(1, 8))

        total_style = ParagraphStyle(name='TotalStyle', fontSize=11, alignment=TA_RIGHT)
        story.append(Paragraph(f"TOTAL: <b>{self._money(purchase.total_amount)}</b>", total_style))
        story.append(Spacer(1, 14))
        story.append(Paragraph("Thank you! Keep this receipt for returns.", ParagraphStyle(
            name='FooterNote', fontSize=8, alignment=TA_CENTER)))

        return self._build(story, pagesize=(3.5 * inch, 6 * inch), margin=10)


pdf_generator = PDFReportGenerator()

"""
Report file renderers: CSV, JSON and PDF.

PDF pages are drawn as images with Pillow and saved with ``format='PDF'``,
so the output is a real multi-page PDF without a separate PDF library. Pages
are greyscale and the PDF holds at most ``PDF_MAX_ROWS`` rows; CSV and JSON
carry the full data set.
"""
import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
from PIL import Image, ImageDraw

from deadstock.assets.label_generator import load_font

CONTENT_TYPES = {
    'CSV': 'text/csv',
    'JSON': 'application/json',
    'PDF': 'application/pdf',
}

# A4 landscape at 100 dpi
PAGE_SIZE = (1169, 827)
PAGE_DPI = 100.0
MARGIN = 40
ROW_HEIGHT = 18
PDF_MAX_ROWS = 1000


def format_cell(value):
    if value is None:
        return ''
    if isinstance(value, Decimal):
        return f"{value:,.2f}"
    if isinstance(value, datetime):
        return timezone.localtime(value).strftime('%Y-%m-%d %H:%M') if timezone.is_aware(value) \
            else value.strftime('%Y-%m-%d %H:%M')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def render_csv(title, columns, rows, summary, meta):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns)
    for row in rows:
        writer.writerow([format_cell(value) for value in row])
    return buffer.getvalue().encode('utf-8')


def render_json(title, columns, rows, summary, meta):
    payload = {
        'title': title,
        'meta': meta,
        'summary': summary,
        'columns': columns,
        'rows': [dict(zip(columns, row)) for row in rows],
    }
    return json.dumps(payload, cls=DjangoJSONEncoder, indent=2).encode('utf-8')


def _column_widths(draw, columns, rows, font, available):
    """Share the page width by the widest sample text of each column"""
    sample = rows[:200]
    natural = []
    for index, column in enumerate(columns):
        widest = draw.textlength(column, font=font)
        for row in sample:
            widest = max(widest, draw.textlength(format_cell(row[index]), font=font))
        natural.append(min(widest, 260) + 12)
    scale = min(1.0, available / sum(natural)) if natural else 1.0
    return [int(width * scale) for width in natural]


def _fit(draw, text, font, width):
    if draw.textlength(text, font=font) <= width:
        return text
    while text and draw.textlength(text + '...', font=font) > width:
        text = text[:-1]
    return text + '...' if text else ''


def _new_page():
    page = Image.new('L', PAGE_SIZE, color='white')
    return page, ImageDraw.Draw(page)


def render_pdf(title, columns, rows, summary, meta):
    title_font = load_font(22, bold=True)
    header_font = load_font(11, bold=True)
    body_font = load_font(10)
    small_font = load_font(9)

    pages = []
    page, draw = _new_page()
    width, height = PAGE_SIZE
    available = width - 2 * MARGIN
    widths = _column_widths(draw, columns, rows, body_font, available)

    y = MARGIN
    draw.text((MARGIN, y), title, fill='black', font=title_font)
    y += 34
    subtitle = '  |  '.join(f"{key.replace('_', ' ')}: {value}" for key, value in meta.items() if value)
    draw.text((MARGIN, y), subtitle, fill='#555555', font=small_font)
    y += 22
    for key, value in summary.items():
        draw.text((MARGIN, y), f"{key.replace('_', ' ').capitalize()}: {format_cell(value)}",
                  fill='black', font=body_font)
        y += ROW_HEIGHT - 2
    if len(rows) > PDF_MAX_ROWS:
        draw.text((MARGIN, y), f"Showing the first {PDF_MAX_ROWS} of {len(rows)} records. "
                               f"Export as CSV or JSON for the full list.", fill='#555555', font=body_font)
        y += ROW_HEIGHT - 2
        rows = rows[:PDF_MAX_ROWS]
    y += 10

    def draw_header(draw, y):
        draw.rectangle([MARGIN, y, width - MARGIN, y + ROW_HEIGHT], fill='#e8eaf6')
        x = MARGIN
        for column, column_width in zip(columns, widths):
            draw.text((x + 4, y + 3), _fit(draw, column, header_font, column_width - 8), fill='black',
                      font=header_font)
            x += column_width
        return y + ROW_HEIGHT + 2

    y = draw_header(draw, y)
    if not rows:
        draw.text((MARGIN + 4, y + 4), 'No records for the selected criteria.', fill='#555555', font=body_font)

    for number, row in enumerate(rows):
        if y + ROW_HEIGHT > height - MARGIN - 20:
            pages.append(page)
            page, draw = _new_page()
            y = draw_header(draw, MARGIN)
        if number % 2:
            draw.rectangle([MARGIN, y - 1, width - MARGIN, y + ROW_HEIGHT - 3], fill='#f7f7f7')
        x = MARGIN
        for value, column_width in zip(row, widths):
            draw.text((x + 4, y + 2), _fit(draw, format_cell(value), body_font, column_width - 8),
                      fill='black', font=body_font)
            x += column_width
        y += ROW_HEIGHT
    pages.append(page)

    total = len(pages)
    for index, page_image in enumerate(pages, start=1):
        ImageDraw.Draw(page_image).text(
            (width - MARGIN - 80, height - MARGIN + 10), f"Page {index} of {total}", fill='#777777',
            font=small_font,
        )

    buffer = io.BytesIO()
    pages[0].save(buffer, format='PDF', save_all=True, append_images=pages[1:], resolution=PAGE_DPI)
    for page_image in pages:
        page_image.close()
    return buffer.getvalue()


RENDERERS = {
    'CSV': render_csv,
    'JSON': render_json,
    'PDF': render_pdf,
}


def render(fmt, title, columns, rows, summary, meta=None):
    return RENDERERS[fmt](title, columns, rows, summary, meta or {})

"""
Barcode, QR code and label sheet rendering
Uses python-barcode + Pillow for images and reportlab for printable PDF sheets
"""
import io
import logging

import barcode
import qrcode
from barcode.writer import ImageWriter
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

# Label sheet geometry (A4 portrait, millimetres)
LABEL_WIDTH = 45
LABEL_HEIGHT = 30
LABEL_COLUMNS = 4
MARGIN_X = 7
MARGIN_Y = 10
GAP_X = 4
GAP_Y = 4


def render_barcode_png(code: str, symbology: str = 'code128', module_height: float = 15.0) -> bytes:
    """
    Render a barcode as PNG bytes.

    Args:
        code: Value to encode
        symbology: python-barcode symbology name (code128, ean13, ...)
        module_height: Bar height in millimetres

    Returns:
        PNG image as bytes
    """
    barcode_class = barcode.get_barcode_class(symbology)
    barcode_instance = barcode_class(code, writer=ImageWriter())

    buffer = io.BytesIO()
    barcode_instance.write(
        buffer,
        options={
            'module_width': 0.3,
            'module_height': module_height,
            'quiet_zone': 6.5,
            'font_size': 10,
            'text_distance': 5.0,
            'background': 'white',
            'foreground': 'black',
        },
    )
    return buffer.getvalue()


def render_qr_png(data: str, box_size: int = 10) -> bytes:
    """Render a QR code as PNG bytes"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color='black', back_color='white')

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def rows_per_page():
    page_height_mm = A4[1] / mm
    return int((page_height_mm - 2 * MARGIN_Y) // (LABEL_HEIGHT + GAP_Y))


def _truncate(text, length):
    return text if len(text) <= length else text[:length - 3] + '...'


def render_label_pdf(variants, title: str = '') -> bytes:
    """
    Render an A4 sheet of barcode labels, one per variant.

    Each label carries the product name, the barcode image and the
    size/color line. Variants without a barcode are skipped.
    """
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(title or 'Barcode labels')
    page_height = A4[1]
    max_rows = rows_per_page()

    row = 0
    col = 0
    printed = 0
    for variant in variants:
        if not variant.barcode:
            continue

        if row >= max_rows:
            pdf.showPage()
            row = 0
            col = 0

        x = (MARGIN_X + col * (LABEL_WIDTH + GAP_X)) * mm
        top = page_height - (MARGIN_Y + row * (LABEL_HEIGHT + GAP_Y)) * mm
        y = top - LABEL_HEIGHT * mm

        # Cutting guide
        pdf.setStrokeColorRGB(0.78, 0.78, 0.78)
        pdf.setLineWidth(0.1)
        pdf.rect(x, y, LABEL_WIDTH * mm, LABEL_HEIGHT * mm)

        pdf.setFont('Helvetica-Bold', 6)
        pdf.drawCentredString(x + LABEL_WIDTH * mm / 2, top - 4 * mm, _truncate(variant.product.name, 30))

        try:
            image = ImageReader(io.BytesIO(render_barcode_png(variant.barcode, module_height=8.0)))
            pdf.drawImage(image, x + 2 * mm, y + 6 * mm, width=(LABEL_WIDTH - 4) * mm,
                          height=(LABEL_HEIGHT - 13) * mm, preserveAspectRatio=True, anchor='c')
        except Exception as e:
            logger.warning(f"Could not render barcode {variant.barcode} on label sheet: {str(e)}")
            pdf.setFont('Helvetica', 7)
            pdf.drawCentredString(x + LABEL_WIDTH * mm / 2, y + 14 * mm, variant.barcode)

        pdf.setFont('Helvetica', 6)
        pdf.drawCentredString(
            x + LABEL_WIDTH * mm / 2,
            y + 2.5 * mm,
            f"{variant.product.sku} | {variant.size.name} / {variant.color.name}",
        )

        printed += 1
        col += 1
        if col >= LABEL_COLUMNS:
            col = 0
            row += 1

    if printed == 0:
        pdf.setFont('Helvetica', 10)
        pdf.drawString(MARGIN_X * mm, page_height - MARGIN_Y * mm - 10, 'No variants with barcodes to print.')

    pdf.save()
    logger.info(f"Rendered {printed} barcode labels for {title or 'label sheet'}")
    return buffer.getvalue()

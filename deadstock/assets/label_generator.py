"""
Asset tag label generator.
Uses PIL/Pillow and python-barcode to draw a Code128 label in memory.
"""
import io
import base64
import logging
from typing import Optional

import barcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)


FONT_PATHS = {
    False: ('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf', 'arial.ttf'),
    True: ('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf', 'arialbd.ttf', 'arial.ttf'),
}


def load_font(size, bold=False):
    """TrueType font when one is installed, Pillow's bitmap font otherwise"""
    for path in FONT_PATHS[bold]:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def _draw_centered(draw, width, y, text, font):
    bbox = draw.textbbox((0, 0), text, font=font)
    draw.text(((width - (bbox[2] - bbox[0])) // 2, y), text, fill='black', font=font)


def generate_asset_label(
    asset_id: str,
    asset_name: str,
    serial_number: Optional[str] = None,
    location: Optional[str] = None,
    width: int = 400,
    height: int = 200,
) -> str:
    """
    Render an asset tag: name on top, Code128 barcode of the asset ID in the
    middle, ID / serial / location underneath.

    Returns:
        Base64-encoded PNG image as data URL string
    """
    if len(asset_name) > 32:
        asset_name = asset_name[:32] + '...'

    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)
    font_title, font_small = load_font(16, bold=True), load_font(12)

    margin = 10
    title_y = 8
    barcode_y = title_y + 22
    barcode_available_height = height - barcode_y - 48

    _draw_centered(draw, width, title_y, asset_name, font_title)

    try:
        code128 = barcode.get_barcode_class('code128')
        barcode_img = code128(asset_id, writer=ImageWriter()).render({
            'write_text': False,
            'module_width': 0.3,
            'module_height': 15.0,
            'quiet_zone': 2.0,
            'background': 'white',
            'foreground': 'black',
        })

        barcode_img_width, barcode_img_height = barcode_img.size
        barcode_width = width - (2 * margin)
        scale_factor = barcode_width / barcode_img_width
        scaled_height = int(barcode_img_height * scale_factor)
        if scaled_height > barcode_available_height:
            scale_factor = barcode_available_height / barcode_img_height
            scaled_height = barcode_available_height
            barcode_width = int(barcode_img_width * scale_factor)

        # BILINEAR is enough for bars and much faster than LANCZOS
        barcode_img = barcode_img.resize((barcode_width, scaled_height), Image.Resampling.BILINEAR)
        img.paste(barcode_img, ((width - barcode_width) // 2, barcode_y))
        text_y = barcode_y + scaled_height + 4
    except Exception as e:
        logger.error(f"Barcode generation failed for '{asset_id}': {e}")
        _draw_centered(draw, width, barcode_y, f'ASSET: {asset_id}', font_small)
        text_y = barcode_y + 20

    _draw_centered(draw, width, text_y, asset_id, font_small)

    details = []
    if serial_number:
        details.append(f"S/N {serial_number}")
    if location:
        details.append(location[:24])
    if details:
        _draw_centered(draw, width, text_y + 16, '  |  '.join(details), font_small)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=False, compress_level=1)
    image_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    buffer.close()
    img.close()

    return f'data:image/png;base64,{image_base64}'


def label_for_asset(asset) -> str:
    return generate_asset_label(
        asset_id=asset.unique_asset_id,
        asset_name=asset.name,
        serial_number=asset.serial_number,
        location=asset.location,
    )

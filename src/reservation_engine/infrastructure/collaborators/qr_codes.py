# src/reservation_engine/infrastructure/collaborators/qr_codes.py

import io

import qrcode


def render_qr_png(data: str, box_size: int = 6, border: int = 1) -> bytes:
    """PNG bytes of a QR code encoding ``data``."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)

    buffer = io.BytesIO()
    qr.make_image().save(buffer)
    return buffer.getvalue()

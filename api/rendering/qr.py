"""QR code module matrix shared by every backend that draws QR codes."""

import qrcode
from qrcode.constants import ERROR_CORRECT_M

QUIET_ZONE = 2


def qr_matrix(text: str) -> list[list[bool]]:
    """Module grid for ``text``, quiet zone included.

    Backends draw one filled square per ``True`` cell, which keeps the code
    identical across SVG, HTML and PDF output.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=1,
        border=QUIET_ZONE,
    )
    qr.add_data(text or " ")
    qr.make(fit=True)
    return qr.get_matrix()

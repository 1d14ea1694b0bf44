"""
Millimeter / pixel conversion

Pure helpers; callers choose how to round. The editor rounds to whole
pixels for display, export keeps the fractional scale.
"""

from price_tag.config.sizes import MM_PER_INCH, REFERENCE_DPI


def _check_dpi(dpi: float) -> None:
    if dpi <= 0:
        raise ValueError(f"dpi must be positive, got {dpi}")


def to_device_units(mm: float, dpi: float) -> float:
    """Millimeters to pixels at ``dpi``"""
    _check_dpi(dpi)
    return mm / MM_PER_INCH * dpi


def to_millimeters(px: float, dpi: float = REFERENCE_DPI) -> float:
    """Pixels at ``dpi`` to millimeters"""
    _check_dpi(dpi)
    return px / dpi * MM_PER_INCH


def scale_factor(dpi: float, reference_dpi: float = REFERENCE_DPI) -> float:
    """Multiplier from reference-density pixels to ``dpi`` pixels"""
    _check_dpi(dpi)
    _check_dpi(reference_dpi)
    return dpi / reference_dpi


def display_pixels(mm: float, dpi: float = REFERENCE_DPI) -> int:
    """Whole pixels for on-screen sizing"""
    return round(to_device_units(mm, dpi))

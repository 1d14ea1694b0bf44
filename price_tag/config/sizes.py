# Physical size constants. Label and paper sizes are in millimeters.
# 25.4 mm = 1 inch; 96 dpi is the reference (screen/CSS) pixel density.

MM_PER_INCH = 25.4
REFERENCE_DPI = 96.0
PRINT_DPI = 300.0

PAPER_SIZES = {
    "A4": {"width": 210.0, "height": 297.0, "dpi": PRINT_DPI},
    "A5": {"width": 148.0, "height": 210.0, "dpi": PRINT_DPI},
    "Letter": {"width": 215.9, "height": 279.4, "dpi": PRINT_DPI},
}

# Size the editor starts a blank design with
DEFAULT_DESIGN_SIZE = {"width": 80.0, "height": 50.0}

# Default label size offered in user settings
DEFAULT_LABEL_SIZE = {"width": 40.0, "height": 30.0}

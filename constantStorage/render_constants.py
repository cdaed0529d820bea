#render_constants.py - defaults for glyph measurement and text rendering.

# --- FONT SELECTION ---
DEFAULT_FONT = "mono"
DEFAULT_PIXEL_SIZE = 12

# Aliases resolved against MONO_FONT_CANDIDATES instead of a name search.
MONO_ALIASES = ("mono", "monospace")

MONO_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/truetype/liberation2/LiberationMono-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeMono.ttf",
    "/usr/share/fonts/truetype/noto/NotoMono-Regular.ttf",
    "/usr/share/fonts/truetype/ubuntu/UbuntuMono-R.ttf",
    # macOS
    "/System/Library/Fonts/Menlo.ttc",
    "/Library/Fonts/Courier New.ttf",
    # Windows
    "C:/Windows/Fonts/consola.ttf",
    "C:/Windows/Fonts/cour.ttf",
)

FONT_DIRS = (
    "/usr/share/fonts",
    "/usr/local/share/fonts",
    "~/.local/share/fonts",
    "~/.fonts",
    "/System/Library/Fonts",
    "/Library/Fonts",
    "C:/Windows/Fonts",
)
FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")

# --- IMAGE INPUT ---
MAX_IMAGE_PIXELS = 64_000_000   # Pillow decompression-bomb ceiling
ALPHA_BACKGROUND = 255          # transparent pixels are flattened onto white

# --- OUTPUT ---
ASCII_MAX_COLS = None           # None = one column per glyph advance

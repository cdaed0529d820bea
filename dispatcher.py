"""
dispatcher.py

Request handling for the catalog service, independent of the transport.

Two actions:

  list    -> JSON object: font name -> ascending list of pixel sizes.
  render  -> fields `file` (image bytes), `font` (catalog font name) or
             `font_file` (font bytes), `size`, optional `invert`
             ("true"/"false"). Returns the rendered text.

Each request goes Received -> Validated -> list / render / error. Nothing
survives a request except the catalog, which is read-only and handed to
the Dispatcher when it is built.
"""
import json
import logging
import math
from dataclasses import dataclass
from typing import Union

import settings
from ascii_converter import image_to_ascii
from errors import AsciiArtError, InvalidParameter, ProtocolError
from glyph_coverage import measure_font, printable_ascii

logger = logging.getLogger(__name__)

ACTION_LIST = "list"
ACTION_RENDER = "render"
ACTIONS = (ACTION_LIST, ACTION_RENDER)

TEXT_PLAIN = "text/plain; charset=utf-8"
APPLICATION_JSON = "application/json"


# ----------------------------------------------------------------------
# Request types
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class CatalogFont:
    name: str
    size: int


@dataclass(frozen=True)
class CustomFont:
    font_bytes: bytes
    size: float

    def __repr__(self):
        return f"CustomFont(<{len(self.font_bytes)} bytes>, size={self.size})"


FontSource = Union[CatalogFont, CustomFont]


@dataclass(frozen=True)
class RenderRequest:
    image: bytes
    font: FontSource
    invert: bool = False

    def __repr__(self):
        return f"RenderRequest(<{len(self.image)} bytes>, font={self.font!r}, invert={self.invert})"


@dataclass(frozen=True)
class Response:
    status: int
    content_type: str
    body: bytes

    @property
    def ok(self):
        return 200 <= self.status < 300


def error_response(err):
    return Response(err.status, TEXT_PLAIN, str(err).encode("utf-8"))


INTERNAL_ERROR = Response(500, TEXT_PLAIN, b"Internal server error.")


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------
def _text(value):
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidParameter("Form value is not valid UTF-8.") from None
    value = value.strip()
    return value or None


def _blob(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.encode("utf-8")
    return bytes(value) or None


def parse_size(raw):
    """Positive finite number from a form value; None when absent."""
    text = _text(raw)
    if text is None:
        return None
    try:
        size = float(text)
    except ValueError:
        raise InvalidParameter(f"Unparseable \"size\" value: {text!r}.") from None
    if not math.isfinite(size) or size <= 0:
        raise InvalidParameter(f"\"size\" must be a positive number, got {text!r}.")
    return size


def parse_invert(raw):
    text = _text(raw)
    if text is None:
        return False
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise InvalidParameter(f"\"invert\" must be \"true\" or \"false\", got {text!r}.")


def validate_render_request(fields, catalog):
    """
    Turn raw form fields into a RenderRequest, or raise.

    Empty fields count as absent, so a form that sends an unused `font`
    or `font_file` input blank is still valid.
    """
    size = parse_size(fields.get("size"))
    font_name = _text(fields.get("font"))
    font_bytes = _blob(fields.get("font_file"))

    if font_name is not None and font_bytes is not None:
        raise InvalidParameter("Supply either \"font\" or \"font_file\", not both.")
    if font_name is None and font_bytes is None:
        raise InvalidParameter("Missing \"font\" or \"font_file\" value.")

    if font_name is not None:
        # Raises UnknownFontOrSize naming the font.
        catalog.sizes(font_name)
        if size is None:
            raise InvalidParameter("Missing \"size\" value.")
        catalog.table(font_name, size)
        font = CatalogFont(font_name, int(size))
    else:
        if size is None:
            raise InvalidParameter("Missing \"size\" value.")
        font = CustomFont(font_bytes, size)

    image = _blob(fields.get("file"))
    if image is None:
        raise InvalidParameter("Missing \"file\" value.")

    return RenderRequest(image=image, font=font, invert=parse_invert(fields.get("invert")))


def parse_action(raw):
    action = _text(raw)
    if action is None:
        raise ProtocolError("Missing action: expected one of \"list\", \"render\".")
    action = action.lower()
    if action not in ACTIONS:
        raise ProtocolError(f"Unknown action {action!r}: must be one of \"list\", \"render\".")
    return action


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------
class Dispatcher:
    """
    Answers list/render requests against one catalog.

    Stateless apart from the catalog and options given here, so a single
    instance serves any number of concurrent requests.
    """

    def __init__(self, catalog, decoder=None, charset=None, max_cols=None):
        self.catalog = catalog
        self.decoder = decoder
        self.charset = charset if charset is not None else printable_ascii()
        self.max_cols = max_cols if max_cols is not None else getattr(settings, 'ASCII_MAX_COLS', None)
        self._listing = json.dumps(catalog.listing(), indent=2).encode("utf-8")

    def list_fonts(self):
        return Response(200, APPLICATION_JSON, self._listing)

    def select_table(self, font):
        if isinstance(font, CatalogFont):
            return self.catalog.table(font.name, font.size)
        table, dropped = measure_font(font.font_bytes, font.size, self.charset)
        if dropped:
            logger.debug(f"Uploaded font lacks {len(dropped)} requested character(s)")
        return table

    def render(self, request):
        table = self.select_table(request.font)
        text = image_to_ascii(request.image, table, invert=request.invert,
                              decoder=self.decoder, max_cols=self.max_cols)
        return text

    def render_fields(self, fields):
        request = validate_render_request(fields, self.catalog)
        text = self.render(request)
        logger.debug(f"render response: 200 (OK): {len(text)} chars for {request!r}")
        return Response(200, TEXT_PLAIN, text.encode("utf-8"))

    def dispatch(self, action, fields=None):
        """
        Handle one request. Never raises: engine errors become error
        responses, anything unexpected becomes a bare 500.
        """
        try:
            action = parse_action(action)
            if action == ACTION_LIST:
                return self.list_fonts()
            return self.render_fields(fields or {})
        except AsciiArtError as e:
            logger.info(f"error response: {e.status} ({type(e).__name__}): {e}")
            return error_response(e)
        except Exception:
            logger.exception("Unexpected error while handling request")
            return INTERNAL_ERROR

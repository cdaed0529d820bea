"""
Error types raised by the rendering engine.

Every engine failure is an AsciiArtError. The service dispatcher and the
command-line tools are the only places that turn these into responses or
exit codes; everything below them just raises.
"""


class AsciiArtError(Exception):
    """Base class. `status` is the HTTP status the service answers with."""
    status = 500


class FontParseError(AsciiArtError):
    """Font bytes could not be read as a TrueType/OpenType font."""
    status = 400


class NoUsableGlyphs(FontParseError):
    """The font covers none of the requested characters with visible ink."""


class ImageDecodeError(AsciiArtError):
    """Image bytes are unreadable or in an unsupported format."""
    status = 400


class InvalidParameter(AsciiArtError):
    """Missing, contradictory or out-of-range request values."""
    status = 400


class PayloadTooLarge(InvalidParameter):
    status = 413


class UnknownFontOrSize(AsciiArtError):
    """Named font (or size of that font) is not available."""
    status = 404


class ProtocolError(AsciiArtError):
    """Unrecognized or missing action discriminator."""
    status = 400


class StorageError(AsciiArtError):
    """Reading or writing external storage failed."""
    status = 500


class CatalogFormatError(StorageError):
    """A serialized font catalog is malformed."""


class CatalogBuildError(AsciiArtError):
    """One entry of a catalog build failed; the whole build is aborted."""

    def __init__(self, name, path, size, cause):
        self.name = name
        self.path = path
        self.size = size
        self.cause = cause
        super().__init__(f"\"{name}\" ({path}) at size {size}: {cause}")


class ServiceBusy(AsciiArtError):
    status = 503

from __future__ import annotations


class SVGError(Exception):
    pass


class ParseError(SVGError):
    """The document could not be turned into an image at all."""


class AllocationError(SVGError):
    """A scratch or output buffer could not be obtained."""


class RasterError(SVGError):
    """Invalid rasterization request, or the rasterizer is already busy."""

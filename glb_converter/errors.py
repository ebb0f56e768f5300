from __future__ import annotations


class ConverterError(RuntimeError):
    pass


class InputNotFoundError(ConverterError):
    pass


class ParseFailureError(ConverterError):
    pass


class UnsupportedPixelFormatError(ConverterError):
    pass


class MalformedBufferError(ConverterError):
    pass


class MalformedPrimitiveError(ConverterError):
    pass


class DanglingReferenceError(ConverterError):
    pass


class ImageDecodeError(ConverterError):
    pass

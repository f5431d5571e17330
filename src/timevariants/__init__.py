"""timevariants: time builds/relinks of a large binary across toolchain variants."""

__version__ = "0.1.0"

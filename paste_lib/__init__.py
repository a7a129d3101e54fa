"""PasteStore: storage and lifecycle engine for expiring encrypted pastes."""

__version__ = "1.1.0"

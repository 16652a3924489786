"""PartsCatalog — Google Drive backed parts catalog API."""

__version__ = "0.1.0"

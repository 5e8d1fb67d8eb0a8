from .store import ExportHandle, ExportStore

__all__ = ["ExportHandle", "ExportStore"]

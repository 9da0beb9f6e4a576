from .service import ExportPatch, ExportService, to_patch_rect

__all__ = ["ExportPatch", "ExportService", "to_patch_rect"]

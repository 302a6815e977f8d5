from cms_exporter.cms_exporter import CmsExporter
from cms_exporter.errors import ArchiveError, ConfigError, ExportError, FetchError
from cms_exporter.models import Collection, Outcome, PipelineResult

__all__ = [
    "ArchiveError",
    "CmsExporter",
    "Collection",
    "ConfigError",
    "ExportError",
    "FetchError",
    "Outcome",
    "PipelineResult",
]

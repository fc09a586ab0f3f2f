"""Orchestrator package - schedules uploads of registered files."""
from .core import FileUploader, UploaderEvent
from .file_collector import FileCollector
from .models import ProgressLedger, UploadQueues

__all__ = ["FileUploader", "UploaderEvent", "FileCollector", "ProgressLedger", "UploadQueues"]

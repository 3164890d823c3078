"""Section content, version history and save paths."""

from .autosave import AutoSaveReconciler, AutoSaveReport, EditBuffer
from .editor import SaveResult, SectionEditor
from .ledger import VersionLedger
from .store import SectionStore

__all__ = [
    "AutoSaveReconciler",
    "AutoSaveReport",
    "EditBuffer",
    "SaveResult",
    "SectionEditor",
    "SectionStore",
    "VersionLedger",
]

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .writer import MigrationReport

SEVERITY_NOTICE = "notice"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"

# Notices
UNRECOGNIZED_FILE = "SHU-MIG-0001"
PRESERVED_FILE = "SHU-MIG-0002"
NO_DATA_FOLDER = "SHU-MIG-0003"
# Warnings
SANITIZED_NAMESPACE = "SHU-MIG-1001"
SANITIZED_FUNCTION = "SHU-MIG-1002"
INVALID_TAG = "SHU-MIG-1003"
TAG_ENTRY_FLAGS_DROPPED = "SHU-MIG-1004"
MANIFEST_FEATURES_LOST = "SHU-MIG-1005"
NON_UTF8_CONTENT = "SHU-MIG-1006"
# Errors
BAD_ROOT = "SHU-MIG-2001"
BAD_MANIFEST = "SHU-MIG-2002"
DUPLICATE_UNIT = "SHU-MIG-2003"
DESTINATION_COLLISION = "SHU-MIG-2004"
INCOMPATIBLE_MANIFEST = "SHU-MIG-2005"
WRITE_FAILED = "SHU-MIG-2006"


@dataclass(frozen=True)
class MigrationDiagnostic:
    code: str
    severity: str
    message: str
    path: Optional[str] = None
    remediation: Optional[str] = None

    def render(self) -> str:
        where = f" ({self.path})" if self.path else ""
        text = f"{self.code}: {self.message}{where}"
        if self.remediation:
            text += f"\n    hint: {self.remediation}"
        return text


def notice(code: str, message: str, path: Optional[str] = None, remediation: Optional[str] = None) -> MigrationDiagnostic:
    return MigrationDiagnostic(code, SEVERITY_NOTICE, message, path, remediation)


def warning(code: str, message: str, path: Optional[str] = None, remediation: Optional[str] = None) -> MigrationDiagnostic:
    return MigrationDiagnostic(code, SEVERITY_WARNING, message, path, remediation)


class MigrationError(Exception):
    """Fatal migration failure. Carries the diagnostic that caused it."""

    def __init__(self, diag: MigrationDiagnostic):
        super().__init__(diag.render())
        self.diag = diag

    @classmethod
    def build(cls, code: str, message: str, path: Optional[str] = None, remediation: Optional[str] = None):
        return cls(MigrationDiagnostic(code, SEVERITY_ERROR, message, path, remediation))


class ScanError(MigrationError):
    pass


class PlanningError(MigrationError):
    pass


class DuplicateUnitError(ScanError, PlanningError):
    pass


class WriteError(MigrationError):
    def __init__(self, diag: MigrationDiagnostic, report: "MigrationReport"):
        super().__init__(diag)
        self.report = report

    @property
    def written(self) -> List[str]:
        return list(self.report.written)

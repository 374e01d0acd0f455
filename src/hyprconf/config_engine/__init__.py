"""Config Engine: typed model, native parser/serializer, validation and the session API."""
from .schema import (
    AnimationEntry,
    BezierCurve,
    ConfigDocument,
    DocumentLayout,
    FieldKind,
    FieldSpec,
    FieldValue,
    KeybindEntry,
    LayerRuleEntry,
    Section,
    UnrecognizedEntry,
    ValidationResult,
    WindowRuleEntry,
)
from .values import validate
from .fields import FIELD_SPECS, get_spec, spec_for_path, specs_in
from .validator import ConfigValidator
from .parser import ConfigParser, ParseResult
from .serializer import ConfigSerializer
from .history import DocumentHistory, HistoryEntry
from .engine import ConfigEngine, EngineResult, ExportTarget

__all__ = [
    "ConfigEngine",
    "EngineResult",
    "ExportTarget",
    "ConfigDocument",
    "DocumentLayout",
    "FieldKind",
    "FieldSpec",
    "FieldValue",
    "Section",
    "KeybindEntry",
    "WindowRuleEntry",
    "LayerRuleEntry",
    "BezierCurve",
    "AnimationEntry",
    "UnrecognizedEntry",
    "ValidationResult",
    "validate",
    "FIELD_SPECS",
    "get_spec",
    "spec_for_path",
    "specs_in",
    "ConfigValidator",
    "ConfigParser",
    "ParseResult",
    "ConfigSerializer",
    "DocumentHistory",
    "HistoryEntry",
]

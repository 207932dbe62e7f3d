"""Public package exports for the classlens JVM bytecode analyzer."""

__version__ = "0.1.0"

from .cfg import ControlFlowGraphBuilder, build_cfg, render_cfgs
from .classfile import read_class
from .classpath import ClasspathIndex, resolve_classpath
from .config import AnalysisConfig
from .decoder import decode_code
from .engine import AnalysisContext, build_context, run_rules
from .errors import ClassFormatError, ClassLensError, DecodeError, ScanError
from .pipeline import build_method
from .rules import all_rules
from .sarif import InvocationStats, build_invocation, build_sarif
from .scan import Artifact, ScanOutput, scan_inputs

__all__ = [
    "__version__",
    "AnalysisConfig",
    "AnalysisContext",
    "Artifact",
    "ClassFormatError",
    "ClassLensError",
    "ClasspathIndex",
    "ControlFlowGraphBuilder",
    "DecodeError",
    "InvocationStats",
    "ScanError",
    "ScanOutput",
    "all_rules",
    "build_cfg",
    "build_context",
    "build_invocation",
    "build_method",
    "build_sarif",
    "decode_code",
    "read_class",
    "render_cfgs",
    "resolve_classpath",
    "run_rules",
    "scan_inputs",
]

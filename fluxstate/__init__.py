"""
fluxstate - statechart documents, nested-format conversion, code generation and simulation
"""

from .codegen import CodeGenerator, CodeTarget, build_dispatch_table, generate_code
from .entry import enter
from .graph_index import ROOT, GraphIndex, build_index
from .guards import evaluate_guard
from .machine import (MachineDocument, MachineFormatError, Position, StateNode, TransitionEdge,
                      normalize_document)
from .machine_format import build_state_tree, export_machine, export_machine_json, import_machine
from .simulation import (Resolution, available_events, initial_configuration, is_active, resolve,
                         run_events)

__version__ = '0.1.0'

"""
fluxstate Configuration - Single Source of Truth

This file contains the defaults shared by the document model, the
interchange format converter and the code generator. Change layout grid,
default tokens or target templates here rather than in the modules.

Usage:
    from fluxstate.config import FLUX_CONFIG
    print(FLUX_CONFIG['layout']['column_width'])
"""

FLUX_CONFIG = {
    # Project Information
    'project': {
        'name': 'fluxstate',
        'generator': 'fluxstate code generator',
        'document_version': 1,
    },

    # Interchange Format (nested statechart JSON)
    'interchange': {
        'meta_key': 'fluxState',            # root meta field holding the embedded document
        'default_machine_id': 'importedMachine',
        'default_event': 'EVENT',           # event given to edges that arrive without one
        'marker_event': 'INIT',             # event carried by synthesized initial-marker edges
        'marker_label': 'Initial',
        'absolute_prefix': '#',             # absolute target reference marker
    },

    # Heuristic Import Layout (row/column grid)
    'layout': {
        'columns': 4,
        'origin_x': 90,
        'origin_y': 90,
        'column_width': 220,
        'row_height': 150,
        'root_marker_position': {'x': 40, 'y': 120},
        'child_marker_position': {'x': 22, 'y': 22},
        'parallel_size': {'width': 320, 'height': 220},
    },

    'viewport': {'x': 0, 'y': 0, 'zoom': 1},

    # Generated Identifiers
    'identifiers': {
        'default_slug': 'state',
        'leading_digit_prefix': 's_',
    },

    # Code Generation Targets
    'targets': {
        'nested-machine': {
            'template': 'nested_machine.ts.jinja2',
            'extension': '.machine.ts',
            'description': 'XState createMachine definition',
        },
        'switch': {
            'template': 'enum_switch.ts.jinja2',
            'extension': '.switch.ts',
            'description': 'Enumerated states with a switch transition function',
        },
        'store': {
            'template': 'store.ts.jinja2',
            'extension': '.store.ts',
            'description': 'Zustand store with send(event)',
        },
    },

    'store': {
        'history_limit': 100,
    },

    # Guard Sandbox Limits
    'guards': {
        'max_exponent': 1000,
        'max_int_bits': 10000,
        'max_sequence_length': 100000,
    },
}


def get_target_config(target):
    """Get template settings for a code generation target"""
    key = getattr(target, 'value', target)
    if key not in FLUX_CONFIG['targets']:
        raise ValueError(f"Unknown code target: {key}")
    return FLUX_CONFIG['targets'][key]


def get_layout_position(index):
    """Grid position of the index-th sibling for heuristically imported states"""
    layout = FLUX_CONFIG['layout']
    return {
        'x': layout['origin_x'] + (index % layout['columns']) * layout['column_width'],
        'y': layout['origin_y'] + (index // layout['columns']) * layout['row_height'],
    }


def get_generated_code_header(machine_id, target):
    """
    Get the comment header placed at the top of every generated file.

    Args:
        machine_id: Machine identifier of the source document
        target: Code target value (str or CodeTarget)

    Returns:
        Header text made of `//` comment lines
    """
    project = FLUX_CONFIG['project']
    target_info = get_target_config(target)
    key = getattr(target, 'value', target)
    # Comment lines cannot span a newline
    machine_id = ' '.join(str(machine_id).split())

    return f"""// Generated by {project['generator']}
// Machine: {machine_id}
// Target: {key} ({target_info['description']})
//
// Edit the source machine and regenerate instead of editing this file.
"""

#!/usr/bin/env python3
"""
fluxstate command line

Converts machine documents to and from the nested statechart format,
generates TypeScript from them and steps through events.

Usage:
    fluxstate examples
    fluxstate export machine.json -o machine.xstate.json
    fluxstate import machine.xstate.json -o machine.json
    fluxstate codegen example:traffic -t switch -o traffic.ts
    fluxstate simulate example:checkout BEGIN_CHECKOUT SHIPPING_OK
"""

import argparse
import logging
import sys
from pathlib import Path

from .codegen import CodeGenerator, CodeTarget
from .examples import EXAMPLE_MACHINES, example_ids, get_example
from .graph_index import build_index
from .machine import MachineDocument, MachineFormatError, edge_label
from .machine_format import export_machine_json, import_machine
from .simulation import available_events, initial_configuration, run_events

EXAMPLE_PREFIX = 'example:'


def load_document(source: str) -> MachineDocument:
    """Read a document JSON file, or a bundled machine given as example:<id>"""
    if source.startswith(EXAMPLE_PREFIX):
        example_id = source[len(EXAMPLE_PREFIX):]
        document = get_example(example_id)
        if document is None:
            raise ValueError(f"Unknown example '{example_id}' (available: {', '.join(example_ids())})")
        return document

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {source}")
    return MachineDocument.from_json(path.read_text(encoding='utf-8'))


def write_output(text: str, output_path):
    """Write text to output_path, or to stdout when no path is given"""
    if output_path is None:
        sys.stdout.write(text if text.endswith('\n') else text + '\n')
        return

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text if text.endswith('\n') else text + '\n', encoding='utf-8')
    print(f"  ✓ Generated: {path}", file=sys.stderr)


def _format_configuration(document: MachineDocument, configuration) -> str:
    index = build_index(document)
    names = []
    for leaf in configuration:
        node = index.node_by_id.get(leaf)
        names.append(f"{leaf} ({node.label})" if node is not None and node.label != leaf else leaf)
    return '{' + ', '.join(names) + '}'


def cmd_examples(args) -> int:
    for example_id, name, machine in EXAMPLE_MACHINES:
        print(f"{example_id:<10} {name:<16} {machine.machine_id} "
              f"({len(machine.nodes)} nodes, {len(machine.edges)} edges)")
    return 0


def cmd_export(args) -> int:
    document = load_document(args.input)
    write_output(export_machine_json(document), args.output)
    return 0


def cmd_import(args) -> int:
    if args.input.startswith(EXAMPLE_PREFIX):
        raise ValueError("import expects a nested definition file, not a bundled example")
    path = Path(args.input)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {args.input}")

    document = import_machine(path.read_text(encoding='utf-8'))
    print(f"Imported: {document.machine_id}", file=sys.stderr)
    print(f"  Nodes: {len(document.nodes)}", file=sys.stderr)
    print(f"  Edges: {len(document.edges)}", file=sys.stderr)
    write_output(document.to_json(), args.output)
    return 0


def cmd_codegen(args) -> int:
    document = load_document(args.input)

    print(f"Generating {args.target} code for: {document.machine_id}", file=sys.stderr)
    generator = CodeGenerator(template_dir=args.template_dir)
    write_output(generator.generate(document, args.target), args.output)
    return 0


def cmd_simulate(args) -> int:
    document = load_document(args.input)

    configuration = initial_configuration(document)
    print(f"initial: {_format_configuration(document, configuration)}")

    edges = {edge.id: edge for edge in document.edges}
    for event_type, step in zip(args.events, run_events(document, args.events, configuration)):
        if step.fired_edge_id is None:
            print(f"{event_type}: no transition")
        else:
            print(f"{event_type}: {edge_label(edges[step.fired_edge_id])} "
                  f"-> {_format_configuration(document, step.configuration)}")
        configuration = step.configuration

    print(f"available: {', '.join(available_events(document, configuration)) or '(none)'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fluxstate',
        description='Convert, generate code for and simulate statechart documents'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    examples = subparsers.add_parser('examples', help='List bundled example machines')
    examples.set_defaults(handler=cmd_examples)

    export = subparsers.add_parser('export', help='Document JSON to nested statechart JSON')
    export.add_argument('input', help=f'Document JSON file or {EXAMPLE_PREFIX}<id>')
    export.add_argument('-o', '--output', default=None, help='Output file (default: stdout)')
    export.set_defaults(handler=cmd_export)

    import_ = subparsers.add_parser('import', help='Nested statechart JSON to document JSON')
    import_.add_argument('input', help='Nested statechart JSON file')
    import_.add_argument('-o', '--output', default=None, help='Output file (default: stdout)')
    import_.set_defaults(handler=cmd_import)

    codegen = subparsers.add_parser('codegen', help='Generate TypeScript from a document')
    codegen.add_argument('input', help=f'Document JSON file or {EXAMPLE_PREFIX}<id>')
    codegen.add_argument('-t', '--target', required=True,
                         choices=[target.value for target in CodeTarget],
                         help='Code shape to generate')
    codegen.add_argument('-o', '--output', default=None, help='Output file (default: stdout)')
    codegen.add_argument('--template-dir', default=None,
                         help='Template directory (default: bundled templates)')
    codegen.set_defaults(handler=cmd_codegen)

    simulate = subparsers.add_parser('simulate', help='Apply events and print each configuration')
    simulate.add_argument('input', help=f'Document JSON file or {EXAMPLE_PREFIX}<id>')
    simulate.add_argument('events', nargs='*', help='Events to send, in order')
    simulate.set_defaults(handler=cmd_simulate)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    try:
        return args.handler(args)
    except (MachineFormatError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

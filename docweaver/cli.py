#!/usr/bin/env python
"""
Command-line interface for DocWeaver
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from docweaver.version_info import __version__, __build_timestamp__, __build_type__

logger = logging.getLogger(__name__)

TEMPLATE_CHOICES = ('standard', 'academic', 'note', 'custom')
IMPORT_SUFFIXES = {'.docx': 'docx', '.html': 'html', '.htm': 'html'}


def print_version():
    """Print version information."""
    print(f"DocWeaver v{__version__}")
    print(f"Build: {__build_timestamp__}")
    print(f"Build Type: {__build_type__}")


def _init_logging(config, debug: bool) -> None:
    from docweaver.core.logging_config import setup_logging

    debug = debug or os.environ.get('FLASK_ENV') == 'development'
    setup_logging(Path(config['log_dir']), debug)


def _feature_manager(config):
    """Core features plus everything the bundled and configured plugins provide."""
    from docweaver.core.loader import load_plugins
    from docweaver.features.registry import FeatureManager, PluginRegistry
    from docweaver.features.standard import core_features

    registry = PluginRegistry()
    load_plugins(registry, extra_dirs=config.get('plugin_dirs'))
    manager = FeatureManager(registry)
    for feature in core_features():
        manager.register(feature)
    manager.refresh()
    return manager


def convert_command(args, config) -> int:
    """Convert a Markdown file to .docx."""
    from docweaver.core.config import configured_style, load_style_file
    from docweaver.plugins.word_export.plugin import convert_markdown

    source = Path(args.input).resolve()
    if not source.exists():
        print(f"Error: Markdown file not found: {source}", file=sys.stderr)
        return 1

    output = Path(args.output).resolve() if args.output else source.with_suffix('.docx')
    template = args.template or config['default_template']

    custom_style = load_style_file(Path(args.style)) if args.style else configured_style(config)
    if args.style and not args.template:
        template = 'custom'

    markdown = _feature_manager(config).build_pipeline().run(source.read_text(encoding='utf-8'))

    data = convert_markdown(
        markdown,
        template,
        custom_style,
        base_dir=source.parent,
        image_timeout=config['image_timeout'],
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    print(f"Wrote {output} ({len(data)} bytes)")
    return 0


def import_command(args, config) -> int:
    """Convert a Word or HTML document to Markdown."""
    source = Path(args.input).resolve()
    suffix = source.suffix.lower()
    if suffix not in IMPORT_SUFFIXES:
        print(f"Error: Unsupported input type '{suffix}' (expected {', '.join(IMPORT_SUFFIXES)})", file=sys.stderr)
        return 1
    if not source.exists():
        print(f"Error: File not found: {source}", file=sys.stderr)
        return 1

    importer = _feature_manager(config).get_import_handler(IMPORT_SUFFIXES[suffix])
    if importer is None:
        print(f"Error: No import plugin installed for '{suffix}'", file=sys.stderr)
        return 1
    markdown = importer(source.read_bytes())

    output = Path(args.output).resolve() if args.output else source.with_suffix('.md')
    output.write_text(markdown + '\n', encoding='utf-8')
    print(f"Wrote {output}")
    return 0


def start_server(args, config):
    """Start the Flask server."""
    from docweaver.app import app

    host = args.host
    port = args.port or 8000

    print(f"Starting DocWeaver v{__version__}")
    print(f"Server: http://{host}:{port}")
    print("Press Ctrl+C to stop")
    print()

    app.run(host=host, port=port, debug=args.debug)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f'DocWeaver v{__version__}',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  docweaver --version                         Show version information
  docweaver convert notes.md                  Write notes.docx with the standard template
  docweaver convert paper.md -t academic      Three-line tables, academic fonts
  docweaver convert doc.md --style mine.json  Use a custom style file
  docweaver import report.docx                Write report.md
  docweaver serve --port 8080                 Start the HTTP API on port 8080
        """
    )
    parser.add_argument('--version', '-v', action='store_true', help='Show version information')
    parser.add_argument('--debug', '-d', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    convert_parser = subparsers.add_parser('convert', help='Convert Markdown to Word (.docx)')
    convert_parser.add_argument('input', help='Markdown file to convert')
    convert_parser.add_argument('--output', '-o', help='Output .docx path (default: input with .docx suffix)')
    convert_parser.add_argument('--template', '-t', choices=TEMPLATE_CHOICES, help='Document template')
    convert_parser.add_argument('--style', help='JSON file with a complete custom style')

    import_parser = subparsers.add_parser('import', help='Convert Word (.docx) or HTML to Markdown')
    import_parser.add_argument('input', help='Document to import')
    import_parser.add_argument('--output', '-o', help='Output .md path (default: input with .md suffix)')

    serve_parser = subparsers.add_parser('serve', help='Start the HTTP API')
    serve_parser.add_argument('--host', type=str, default='127.0.0.1', help='Host to bind to (default: 127.0.0.1)')
    serve_parser.add_argument('--port', '-p', type=int, default=8000, help='Port to bind to (default: 8000)')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print_version()
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    from docweaver.core.config import load_config
    from docweaver.core.styles import StyleError

    config = load_config()
    _init_logging(config, args.debug)

    try:
        if args.command == 'convert':
            return convert_command(args, config)
        if args.command == 'import':
            return import_command(args, config)
        if args.command == 'serve':
            start_server(args, config)
            return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except StyleError as e:
        print(f"Error: Invalid style: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Command '{args.command}' failed: {e}", exc_info=args.debug)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

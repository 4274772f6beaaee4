#!/usr/bin/env python3
"""
GrowthCanvas - Growth Strategy Canvas

Command line entry point. Loads a canvas from the configured backend (or
from a JSON file), then prints summaries, evaluated tables, the formula
function catalog or chart series, and optionally saves it back.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from growthcanvas.config import ConfigManager, config
from growthcanvas.exceptions import GrowthCanvasError
from growthcanvas.models import CanvasDocument
from growthcanvas.persistence import (
    CanvasRepository,
    DuckDBCanvasRepository,
    HttpCanvasRepository,
    InMemoryCanvasRepository,
)
from growthcanvas.store import DocumentStore
from growthcanvas.tree import collect_tables, count_widgets


def setup_logging(settings: ConfigManager):
    """Configure logging for the application."""
    level = getattr(logging, settings.get("logging.level", "INFO").upper())
    format_str = settings.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = settings.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def create_repository(backend: str, settings: ConfigManager) -> CanvasRepository:
    """
    Build the persistence backend named on the command line or in config.

    Args:
        backend: One of memory, duckdb, http
        settings: Configuration to read connection details from
    """
    if backend == "duckdb":
        repository = DuckDBCanvasRepository(settings.database_filename, settings.default_sections)
        repository.connect()
        repository.initialize_database()
        return repository
    if backend == "http":
        return HttpCanvasRepository(
            base_url=settings.api_base_url,
            user_id=settings.api_user_id,
            timeout=settings.api_timeout,
        )
    return InMemoryCanvasRepository()


def read_document(path: str) -> CanvasDocument:
    """Read a document exported as JSON (older exports are accepted)."""
    with open(Path(path), 'r', encoding='utf-8') as f:
        data = json.load(f)
    return CanvasDocument.model_validate(data)


def print_summary(store: DocumentStore):
    document = store.document
    print(f"{document.project.title}" + (f" - {document.project.author_name}" if document.project.author_name else ""))
    print(f"Last modified: {document.meta.last_modified}   Sync: {store.sync_status}")
    print("=" * 60)
    for section in document.sections:
        mark = "x" if section.is_completed else " "
        print(f"[{mark}] {section.title} ({section.id}): {count_widgets(section.widgets)} widgets")


def print_tables(store: DocumentStore):
    for section in store.sections:
        for table in collect_tables(section.widgets):
            print(f"\nTable {table.id} in {section.title}")
            for row in store.engine.get_computed_data(table.id):
                print(" | ".join(row))


def print_functions(store: DocumentStore):
    for info in store.function_catalog():
        if info.description:
            print(f"{info.name}{info.parameters}  {info.description}")
        else:
            print(info.name)


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="GrowthCanvas - Growth Strategy Canvas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --document canvas.json --summary        # Summarize an exported canvas
  python main.py --backend duckdb --tables               # Show evaluated tables from the local database
  python main.py --document canvas.json --backend duckdb --save   # Import a canvas into the local database
  python main.py --functions                             # List formula functions
  python main.py --document canvas.json --chart <widget-id>       # Print chart series as JSON
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to the configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--backend",
        choices=["memory", "duckdb", "http"],
        help="Persistence backend (default: persistence.backend from config)"
    )

    parser.add_argument(
        "--document",
        type=str,
        help="JSON document to load instead of the stored canvas"
    )

    parser.add_argument("--summary", action="store_true", help="Print sections, widget counts and completion")
    parser.add_argument("--tables", action="store_true", help="Print every table with formulas evaluated")
    parser.add_argument("--functions", action="store_true", help="Print the formula function catalog")
    parser.add_argument("--chart", type=str, metavar="WIDGET_ID", help="Print the series of a chart widget as JSON")
    parser.add_argument("--save", action="store_true", help="Save the canvas through the backend")

    parser.add_argument(
        "--version",
        action="version",
        version="GrowthCanvas 0.1.0"
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_arguments()
    settings = ConfigManager(args.config) if args.config != "config.yaml" else config
    setup_logging(settings)

    backend = args.backend or settings.persistence_backend
    logging.info(f"GrowthCanvas starting with the {backend} backend")

    repository = None
    store = None
    try:
        repository = create_repository(backend, settings)
        store = DocumentStore(repository=repository, config_manager=settings)

        if args.document:
            store.load_project(read_document(args.document))
        else:
            store.load()

        if args.summary or not (args.tables or args.functions or args.chart or args.save):
            print_summary(store)
        if args.tables:
            print_tables(store)
        if args.functions:
            print_functions(store)
        if args.chart:
            print(json.dumps(store.chart_data(args.chart), indent=2, ensure_ascii=False))
        if args.save:
            if store.force_save():
                print(f"Saved canvas {store.document.meta.document_id}")
            else:
                print(f"Save failed: {store.sync_error}")
                sys.exit(1)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")

    except (GrowthCanvasError, OSError, ValueError) as e:
        logging.error(f"GrowthCanvas failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)

    finally:
        if store is not None:
            store.close()
        if repository is not None:
            repository.close()


if __name__ == "__main__":
    main()

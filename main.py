"""
MINERVA MAIN - Command-line entry point

Commands:
    meta       - List models and relations known to the service
    get        - Fetch one model and summarize it
    store      - Permanently store one model
    duplicate  - Clone a model into a new one under a new title
    config     - Show the resolved settings

Usage:
    # Service meta (models, relations, evidence)
    python main.py meta

    # Summarize a model
    python main.py get gomodel:5a7e68a100000001

    # Clone a model and store the clone
    python main.py --token $TOKEN duplicate gomodel:5a7e68a100000001 "Copy of my model"

    # Use another config file, show what was resolved
    python main.py --config ./minerva.toml config

Settings come from config/minerva.toml ([manager] table), then MINERVA_*
environment variables, then the flags below.
"""
import sys
import asyncio
import logging
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import load_settings
from core.ontology import Channel
from manager.errors import ManagerError, check_response
from manager.minerva import create_manager


logger = logging.getLogger("minerva.cli")


def _build_manager(args):
    settings = load_settings(args.config)
    if args.token:
        settings.user_token = args.token
    # The CLI always runs blocking; duplication awaits either way.
    settings.mode = "sync"
    manager = create_manager(settings)

    def on_manager_error(response, mgr):
        print(f"Manager error: {response.message()}", file=sys.stderr)

    def on_warning(response, mgr):
        print(f"Warning: {response.message()}", file=sys.stderr)

    manager.channels.subscribe(Channel.MANAGER_ERROR, on_manager_error)
    manager.channels.subscribe(Channel.WARNING, on_warning)
    return manager


def cmd_meta(args):
    """Handle meta command - list models and relations."""
    manager = _build_manager(args)
    resp = check_response(manager.get_meta())

    models = resp.models_meta()
    print(f"{'='*60}")
    print(f"MODELS ({len(models)} total)")
    print(f"{'='*60}")
    for model_id in sorted(models)[:args.limit]:
        title = _first_value(models[model_id], "title")
        print(f"{model_id:<32} {title}")
    if len(models) > args.limit:
        print(f"\n... and {len(models) - args.limit} more")

    print(f"\nRelations: {len(resp.relations())}")
    print(f"Evidence:  {len(resp.evidence())}")


def cmd_get(args):
    """Handle get command - summarize one model."""
    manager = _build_manager(args)
    resp = check_response(manager.get_model(args.model_id))

    print("=" * 50)
    print(f"MODEL {resp.model_id()}")
    print("=" * 50)
    for annotation in resp.annotations():
        print(f"{annotation.key:<16} {annotation.value}")
    print(f"Individuals:     {len(resp.individuals())}")
    print(f"Facts:           {len(resp.facts())}")
    print(f"Inconsistent:    {'Yes' if resp.inconsistent_p() else 'No'}")
    print(f"Modified:        {'Yes' if resp.modified_p() else 'No'}")


def cmd_store(args):
    """Handle store command."""
    manager = _build_manager(args)
    resp = check_response(manager.store_model(args.model_id))
    print(f"Stored {resp.model_id() or args.model_id}")


def cmd_duplicate(args):
    """Handle duplicate command - clone, then store, a model."""
    manager = _build_manager(args)
    result = asyncio.run(manager.duplicate_model(args.model_id, args.title))
    print(f"Duplicated {args.model_id} -> {result.target_model_id}")
    print(f"Individuals mapped: {len(result.individual_map)}")


def cmd_config(args):
    """Handle config command - show resolved settings."""
    settings = load_settings(args.config)
    if args.token:
        settings.user_token = args.token

    print("=" * 50)
    print("MINERVA SETTINGS")
    print("=" * 50)
    print(f"Barista URL:     {settings.barista_url}")
    print(f"Namespace:       {settings.namespace}")
    print(f"Token:           {'set' if settings.user_token else 'unset'}")
    print(f"Mode:            {settings.mode}")
    print(f"Method:          {settings.method}")
    print(f"Timeout:         {settings.timeout:.1f}s")
    print(f"Use reasoner:    {'Yes' if settings.use_reasoner else 'No'}")
    print(f"Groups:          {', '.join(settings.use_groups) or '(none)'}")


def _first_value(meta, key):
    """models-meta entries are lists of {key: value} maps, or plain maps."""
    if isinstance(meta, dict):
        return meta.get(key, "")
    if isinstance(meta, list):
        for entry in meta:
            if isinstance(entry, dict) and key in entry:
                return entry[key]
    return ""


def main():
    """Main entry point with subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Minerva - model service manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, help="Path to a TOML settings file")
    parser.add_argument("--token", help="Identity token (overrides MINERVA_TOKEN)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    meta_parser = subparsers.add_parser("meta", help="List models and relations")
    meta_parser.add_argument("--limit", type=int, default=20, help="Models to list")
    meta_parser.set_defaults(func=cmd_meta)

    get_parser = subparsers.add_parser("get", help="Summarize one model")
    get_parser.add_argument("model_id", help="Model identifier")
    get_parser.set_defaults(func=cmd_get)

    store_parser = subparsers.add_parser("store", help="Store one model")
    store_parser.add_argument("model_id", help="Model identifier")
    store_parser.set_defaults(func=cmd_store)

    dup_parser = subparsers.add_parser("duplicate", help="Clone a model under a new title")
    dup_parser.add_argument("model_id", help="Source model identifier")
    dup_parser.add_argument("title", help="Title of the new model")
    dup_parser.set_defaults(func=cmd_duplicate)

    config_parser = subparsers.add_parser("config", help="Show resolved settings")
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except ManagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

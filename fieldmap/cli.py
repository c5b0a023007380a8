"""
🚀 fieldmap command line

Administrative and execution entry point over the configured storage backend:

    python -m fieldmap toggle create crm-sync --description "CRM sync"
    python -m fieldmap toggle enable crm-sync --actor ops
    python -m fieldmap integration load mapping.json --actor ops
    python -m fieldmap integration list
    python -m fieldmap run crm-sync record.json
    python -m fieldmap run-all record.json
    python -m fieldmap status
    python -m fieldmap schema --apply

With the default STORAGE_BACKEND=memory every invocation starts from an empty
store and nothing survives the process, so a toggle created by one command is
gone for the next. Set STORAGE_BACKEND=postgresql for persistent state.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from fieldmap.core.config import Settings, settings as default_settings
from fieldmap.core.exceptions import ConfigurationError, DataError, FieldMapError
from fieldmap.core.logging import get_logger, setup_logging
from fieldmap.database.connection import close_database_connections
from fieldmap.database.schemas import create_schema_ddl
from fieldmap.models import IntegrationMapping
from fieldmap.repositories.base import StorageBackend
from fieldmap.repositories.memory_repo import InMemoryStorageBackend
from fieldmap.repositories.postgres_repo import PostgresStorageBackend
from fieldmap.repositories.repository_factory import get_storage_backend
from fieldmap.services.admin_service import AdminService
from fieldmap.services.cached_configuration_provider import CachedConfigurationProvider
from fieldmap.services.configuration_provider import (
    ConfigurationProvider,
    IntegrationConfigurationProviderBase,
    engine_status,
)
from fieldmap.services.pipeline_executor import PipelineExecutor
from fieldmap.transformers.registry import TransformerRegistry, get_transformer_registry

logger = get_logger(__name__)

MUTATING_COMMANDS = {
    ('toggle', 'create'), ('toggle', 'enable'), ('toggle', 'disable'),
    ('integration', 'load'), ('integration', 'delete'),
}


def build_provider(backend: StorageBackend,
                   settings: Optional[Settings] = None) -> IntegrationConfigurationProviderBase:
    """Plain provider, wrapped by the Redis cache when CONFIG_CACHE_ENABLED"""
    settings = settings or default_settings
    provider = ConfigurationProvider(backend)
    if settings.CONFIG_CACHE_ENABLED:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return CachedConfigurationProvider(provider, client, ttl_seconds=settings.CONFIG_CACHE_TTL_SECONDS)
    return provider


def load_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as e:
        raise DataError(f"Cannot read JSON from {path}: {e}", path=path) from e


def load_mappings(path: str) -> List[IntegrationMapping]:
    """A mapping file holds one mapping object or a list of them"""
    payload = load_json(path)
    items = payload if isinstance(payload, list) else [payload]
    try:
        return [IntegrationMapping.model_validate(item) for item in items]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid mapping file {path}: {e}", path=path) from e


def emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fieldmap", description="Toggle-gated field mapping engine")
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    subparsers = parser.add_subparsers(dest='command', help='Command')

    # Toggles
    toggle_parser = subparsers.add_parser('toggle', help='Manage global toggles')
    toggle_sub = toggle_parser.add_subparsers(dest='action')

    create_parser = toggle_sub.add_parser('create')
    create_parser.add_argument('key')
    create_parser.add_argument('--description', default='')
    create_parser.add_argument('--enabled', action='store_true')
    create_parser.add_argument('--actor')

    for action in ('enable', 'disable'):
        flip_parser = toggle_sub.add_parser(action)
        flip_parser.add_argument('key')
        flip_parser.add_argument('--actor')

    toggle_sub.add_parser('list')

    # Integrations
    integration_parser = subparsers.add_parser('integration', help='Manage integration mappings')
    integration_sub = integration_parser.add_subparsers(dest='action')

    load_parser = integration_sub.add_parser('load')
    load_parser.add_argument('file')
    load_parser.add_argument('--actor')
    load_parser.add_argument('--description', default='')
    load_parser.add_argument('--enabled', action='store_true')

    integration_sub.add_parser('list')

    delete_parser = integration_sub.add_parser('delete')
    delete_parser.add_argument('key')
    delete_parser.add_argument('--actor')

    # Execution
    run_parser = subparsers.add_parser('run', help='Apply one active integration to a record')
    run_parser.add_argument('key')
    run_parser.add_argument('record')

    run_all_parser = subparsers.add_parser('run-all', help='Apply every active integration to a record')
    run_all_parser.add_argument('record')

    subparsers.add_parser('status', help='Transformer and active-integration counts')

    schema_parser = subparsers.add_parser('schema', help='Print or apply the PostgreSQL schema')
    schema_parser.add_argument('--apply', action='store_true')

    return parser


async def run_command(args: argparse.Namespace, backend: StorageBackend,
                      registry: Optional[TransformerRegistry] = None,
                      provider: Optional[IntegrationConfigurationProviderBase] = None) -> int:
    """Execute a parsed command; returns the process exit code"""
    if registry is None:
        registry = get_transformer_registry()
    if provider is None:
        provider = build_provider(backend)
    admin = AdminService(backend, provider)
    executor = PipelineExecutor(registry, provider)

    if args.command == 'toggle':
        if args.action == 'create':
            toggle = await admin.create_toggle(args.key, args.description, args.enabled, args.actor)
            emit(toggle.model_dump(mode="json"))
        elif args.action in ('enable', 'disable'):
            toggle = await admin.set_toggle(args.key, args.action == 'enable', args.actor)
            emit(toggle.model_dump(mode="json"))
        elif args.action == 'list':
            emit([t.model_dump(mode="json") for t in await backend.toggles().get_all()])
        else:
            return 2

    elif args.command == 'integration':
        if args.action == 'load':
            saved = [
                await admin.save_integration(m, args.actor, args.description, args.enabled)
                for m in load_mappings(args.file)
            ]
            emit([m.model_dump(mode="json") for m in saved])
        elif args.action == 'list':
            emit([m.model_dump(mode="json") for m in await backend.mappings().get_all()])
        elif args.action == 'delete':
            emit({"integration_key": args.key, "deleted": await admin.delete_integration(args.key, args.actor)})
        else:
            return 2

    elif args.command == 'run':
        output = await executor.execute_integration(args.key, load_json(args.record))
        emit(output)

    elif args.command == 'run-all':
        runs = await executor.execute_active(load_json(args.record))
        emit([run.to_dict() for run in runs])
        return 0 if all(run.is_success for run in runs) else 1

    elif args.command == 'status':
        status = await engine_status(registry, provider)
        emit(status)
        return 0 if status["status"] != "unhealthy" else 1

    elif args.command == 'schema':
        if args.apply:
            if not isinstance(backend, PostgresStorageBackend):
                raise ConfigurationError("schema --apply requires STORAGE_BACKEND=postgresql")
            emit(await backend.ensure_schema())
        else:
            emit(create_schema_ddl())

    else:
        return 2

    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    # stdout carries command output
    log_settings = default_settings.model_copy(update={"LOG_LEVEL": args.log_level}) if args.log_level else None
    setup_logging(log_settings, stream=sys.stderr)

    backend = get_storage_backend()
    mutating = (args.command, getattr(args, 'action', None)) in MUTATING_COMMANDS
    if mutating and isinstance(backend, InMemoryStorageBackend):
        logger.warning("⚠️ In-memory storage: changes are discarded when this command exits",
                       command=args.command, action=args.action)

    try:
        if args.command != 'schema' or args.apply:
            await backend.connect()
        return await run_command(args, backend)
    except FieldMapError as e:
        logger.error(f"❌ {e.message}", error_category=e.category)
        print(json.dumps(e.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1
    finally:
        await backend.disconnect()
        await close_database_connections()


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.warning("⚠️ Interrupted by user")
        sys.exit(130)

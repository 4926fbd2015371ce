#!/usr/bin/env python3
"""
Administrar contas de usuario pela linha de comando.

Uso:
  python scripts/manage_users.py [--mode file|sql] [--data-dir DIR] [--database-url URL] COMANDO

Comandos:
  create-admin --username NOME [--password SENHA]
  list
  export [--path ARQUIVO] [--include-hashes]
  import ARQUIVO [--mode-import merge|replace]
  backups
  restore LOCAL
  audit [--limit N]
  migrate-to-sql --target-url URL   (copia o arquivo local para o banco)
"""
from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path
from typing import Optional, Sequence

# Garante que o pacote accounts seja importavel quando rodado diretamente
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accounts.core.config import (  # noqa: E402
    FileStoreConfig,
    SQLStoreConfig,
    StorageMode,
    backend_config_from_settings,
    get_settings,
)
from accounts.core.log_config import configure_logging  # noqa: E402
from accounts.services.identity_service import IdentityService  # noqa: E402
from accounts.services.persistence import PersistenceAdapter  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Administrar contas de usuario")
    ap.add_argument("--mode", choices=[m.value for m in StorageMode], help="Backend (default: STORAGE_MODE)")
    ap.add_argument("--data-dir", help="Diretorio do armazenamento em arquivo")
    ap.add_argument("--database-url", help="URL SQLAlchemy do banco")
    sub = ap.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Criar conta de administrador")
    create.add_argument("--username", required=True)
    create.add_argument("--password", help="Senha (default: perguntar)")

    sub.add_parser("list", help="Listar usuarios")

    export = sub.add_parser("export", help="Exportar usuarios para JSON")
    export.add_argument("--path", help="Arquivo de destino")
    export.add_argument("--include-hashes", action="store_true", help="Incluir hashes de senha")

    imp = sub.add_parser("import", help="Importar usuarios de um JSON")
    imp.add_argument("path")
    imp.add_argument("--mode-import", choices=["merge", "replace"], default="merge")

    sub.add_parser("backups", help="Listar snapshots")

    restore = sub.add_parser("restore", help="Restaurar um snapshot")
    restore.add_argument("location")

    audit = sub.add_parser("audit", help="Mostrar trilha de auditoria")
    audit.add_argument("--limit", type=int, default=50)

    migrate = sub.add_parser("migrate-to-sql", help="Copiar o arquivo local para o banco")
    migrate.add_argument("--target-url", required=True, help="URL SQLAlchemy de destino")
    return ap


def _backend_config(mode: StorageMode, args: argparse.Namespace):
    if mode is StorageMode.FILE and args.data_dir:
        return FileStoreConfig(data_dir=Path(args.data_dir))
    if mode is StorageMode.SQL and args.database_url:
        return SQLStoreConfig(url=args.database_url, export_dir=get_settings().data_dir / "exports")
    return backend_config_from_settings(mode)


def _open_adapter(mode: StorageMode, config) -> PersistenceAdapter:
    adapter = PersistenceAdapter(mode)
    result = adapter.initialize(config)
    if not result:
        raise SystemExit(result.message or "Backend indisponivel")
    return adapter


def _migrate(source: PersistenceAdapter, target_url: str) -> int:
    exported = source.export_user_data(include_password_hashes=True)
    if not exported:
        raise SystemExit(exported.message)
    target = _open_adapter(StorageMode.SQL, SQLStoreConfig(url=target_url))
    try:
        result = target.import_user_data(exported.document, mode="merge")
    finally:
        target.close()
    if not result:
        raise SystemExit(result.message)
    print(result.message)
    for name in result.conflicts:
        print(f"  mantido (ja existia): {name}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    mode = StorageMode(args.mode) if args.mode else get_settings().storage_mode
    adapter = _open_adapter(mode, _backend_config(mode, args))
    service = IdentityService(adapter)
    try:
        if args.command == "create-admin":
            password = args.password or getpass.getpass("Senha: ")
            result = service.register_user(args.username, password, role="admin")
            if not result:
                raise SystemExit(f"Erro: {result.message}")
            print(f"OK: administrador '{args.username}' criado")
        elif args.command == "list":
            result = service.get_all_users()
            if not result:
                raise SystemExit(result.message)
            for user in result.users:
                print(f"{user.username}\t{user.role}\t{user.status}\t{user.created_at}")
        elif args.command == "export":
            result = service.export_user_data(args.path, include_password_hashes=args.include_hashes)
            if not result:
                raise SystemExit(result.message)
            print(result.message)
        elif args.command == "import":
            result = service.import_user_data(Path(args.path), mode=args.mode_import)
            if not result:
                raise SystemExit(result.message)
            print(result.message)
            for name in result.conflicts:
                print(f"  mantido (ja existia): {name}")
        elif args.command == "backups":
            result = adapter.list_backups()
            if not result:
                raise SystemExit(result.message)
            for snap in result.snapshots:
                print(f"{snap.created_at}\t{snap.operation_type}\t{snap.record_count}\t{snap.location}")
        elif args.command == "restore":
            result = adapter.restore_backup(args.location)
            if not result:
                raise SystemExit(result.message)
            print("OK: snapshot restaurado")
        elif args.command == "audit":
            result = service.get_audit_logs()
            if not result:
                raise SystemExit(result.message)
            for entry in result.entries[-args.limit :]:
                print(f"{entry.timestamp}\t{entry.action}\t{entry.username}\t{entry.performed_by or '-'}")
        elif args.command == "migrate-to-sql":
            return _migrate(adapter, args.target_url)
    finally:
        adapter.close()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - uso CLI
        sys.stderr.write(f"Erro: {exc}\n")
        raise SystemExit(1)

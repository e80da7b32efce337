from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from kfutil.adapters.csvio import TemplateFormat
from kfutil.app import (
    TemplateKind,
    export_stores_csv,
    generate_rot_template,
    generate_store_import_template,
    import_stores_csv,
    run_rot_audit,
    run_rot_reconcile,
)
from kfutil.config import ConfigurationError, configure_logging, debug_requested
from kfutil.domain.bulk_stores import SecretDefaults
from kfutil.domain.errors import (
    ApplyFailure,
    EligibilityRejection,
    InputError,
    InvalidRow,
    LookupFailure,
)
from kfutil.domain.rot import DEFAULT_AUDIT_FILE, ReconcileSource, RunConfig, TrustStoreCriteria

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from kfutil.domain.errors import ErrorList

log = logging.getLogger(__name__)

DEFAULT_CRITERIA = TrustStoreCriteria()

FAILURE_LABELS = (
    (InvalidRow, "skipped rows"),
    (LookupFailure, "failed lookups"),
    (EligibilityRejection, "ineligible stores"),
    (ApplyFailure, "failed jobs"),
)


def _add_planning_arguments(parser: argparse.ArgumentParser, *, stores_required: bool) -> None:
    parser.add_argument(
        "--stores",
        type=Path,
        required=stores_required,
        help="CSV file listing the trust stores to manage",
    )
    parser.add_argument(
        "--add-certs",
        type=Path,
        help="CSV file of certificates that must be present in every store",
    )
    parser.add_argument(
        "--remove-certs",
        type=Path,
        help="CSV file of certificates that must be absent from every store",
    )
    parser.add_argument(
        "--min-certs",
        type=int,
        default=DEFAULT_CRITERIA.min_certs,
        help="Minimum certificates a store must hold, -1 disables (default: %(default)s)",
    )
    parser.add_argument(
        "--max-leaf-certs",
        type=int,
        default=DEFAULT_CRITERIA.max_leaves,
        help="Maximum non self-signed certificates, -1 disables (default: %(default)s)",
    )
    parser.add_argument(
        "--max-keys",
        type=int,
        default=DEFAULT_CRITERIA.max_keys,
        help="Maximum entries with a private key, -1 disables (default: %(default)s)",
    )
    parser.add_argument(
        "--outpath",
        type=Path,
        default=Path(DEFAULT_AUDIT_FILE),
        help="Audit file to write (default: %(default)s)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the jobs that would be scheduled without sending them",
    )


def _add_store_type_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--store-type-name", type=str, help="Short name of the store type")
    group.add_argument("--store-type-id", type=int, help="Numeric id of the store type")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kfutil",
        description="Keyfactor Command root-of-trust and certificate store utilities",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (also KFUTIL_DEBUG)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    rot = subparsers.add_parser("rot", help="Root-of-trust certificate management")
    rot_sub = rot.add_subparsers(dest="rot_command", required=True)

    audit = rot_sub.add_parser("audit", help="Plan changes and write the audit file")
    _add_planning_arguments(audit, stores_required=True)

    reconcile = rot_sub.add_parser("reconcile", help="Plan and apply changes")
    _add_planning_arguments(reconcile, stores_required=False)
    reconcile.add_argument(
        "--import-csv",
        action="store_true",
        help="Apply the actions of an existing audit file instead of planning",
    )
    reconcile.add_argument(
        "--input-file",
        type=Path,
        help="Audit file to apply with --import-csv (defaults to --outpath)",
    )

    template = rot_sub.add_parser("generate-template", help="Write an input template")
    template.add_argument(
        "--type",
        dest="template_type",
        type=TemplateKind,
        choices=list(TemplateKind),
        required=True,
        help="Kind of template to write",
    )
    template.add_argument(
        "--format",
        dest="template_format",
        type=TemplateFormat,
        choices=list(TemplateFormat),
        default=TemplateFormat.CSV,
        help="Template format (default: %(default)s)",
    )
    template.add_argument("--outpath", type=Path, help="Template file to write")
    template.add_argument(
        "--store-type",
        type=str,
        help="Prefill a stores template with stores of this type (name or id)",
    )
    template.add_argument(
        "--container-name",
        type=str,
        help="Prefill a stores template with stores of this container",
    )
    template.add_argument(
        "--collection",
        type=int,
        help="Prefill a certs template with the certificates of this collection",
    )
    template.add_argument(
        "--cn",
        type=str,
        help="Prefill a certs template with certificates whose CN contains this text",
    )

    stores = subparsers.add_parser("stores", help="Certificate store management")
    stores_sub = stores.add_subparsers(dest="stores_command", required=True)

    store_import = stores_sub.add_parser("import", help="Create stores from a file")
    import_sub = store_import.add_subparsers(dest="import_command", required=True)

    import_csv = import_sub.add_parser("csv", help="Create one store per CSV row")
    import_csv.add_argument("--file", type=Path, required=True, help="Bulk store CSV file")
    _add_store_type_arguments(import_csv)
    import_csv.add_argument(
        "--results-path",
        type=Path,
        help="Outcome file (defaults to <file>_results.csv)",
    )
    import_csv.add_argument(
        "--dry-run",
        action="store_true",
        help="Build the create requests without sending them",
    )
    import_csv.add_argument("--server-username", type=str, help="Default server username")
    import_csv.add_argument("--server-password", type=str, help="Default server password")
    import_csv.add_argument("--store-password", type=str, help="Default store password")
    import_csv.add_argument(
        "--no-prompt",
        action="store_true",
        help="Never prompt for missing secrets",
    )

    import_template = import_sub.add_parser(
        "generate-template",
        help="Write an empty bulk store file for a store type",
    )
    _add_store_type_arguments(import_template)
    import_template.add_argument("--outpath", type=Path, help="Template file to write")

    export = stores_sub.add_parser("export", help="Export stores of one type to CSV")
    _add_store_type_arguments(export)
    export.add_argument("--outpath", type=Path, help="Export file to write")

    return parser


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv))


def _validate_args(args: argparse.Namespace) -> None:
    if args.command != "rot" or args.rot_command not in {"audit", "reconcile"}:
        return
    for name in ("min_certs", "max_leaf_certs", "max_keys"):
        value = getattr(args, name)
        if value < -1:
            raise ValueError(f"--{name.replace('_', '-')} must be -1 or a non-negative number")
    if args.rot_command == "audit":
        if args.add_certs is None and args.remove_certs is None:
            raise ValueError("at least one of --add-certs or --remove-certs is required")
        return
    if args.import_csv:
        if args.stores or args.add_certs or args.remove_certs:
            raise ValueError(
                "--import-csv cannot be combined with --stores, --add-certs or --remove-certs"
            )
        return
    if args.input_file is not None:
        raise ValueError("--input-file requires --import-csv")
    if args.stores is None:
        raise ValueError("--stores is required unless --import-csv is given")
    if args.add_certs is None and args.remove_certs is None:
        raise ValueError("at least one of --add-certs or --remove-certs is required")


def _run_config(args: argparse.Namespace) -> RunConfig:
    import_csv = getattr(args, "import_csv", False)
    return RunConfig(
        stores_path=args.stores,
        add_certs_path=args.add_certs,
        remove_certs_path=args.remove_certs,
        input_path=(args.input_file or args.outpath) if import_csv else None,
        output_path=args.outpath,
        criteria=TrustStoreCriteria(
            min_certs=args.min_certs,
            max_leaves=args.max_leaf_certs,
            max_keys=args.max_keys,
        ),
        dry_run=args.dry_run,
    )


def _report(errors: ErrorList) -> bool:
    for error in errors:
        log.error("%s", error)
    if errors:
        counts = [(len(errors.of_kind(kind)), label) for kind, label in FAILURE_LABELS]
        log.warning(
            "Finished with %s partial failures: %s",
            len(errors),
            ", ".join(f"{count} {label}" for count, label in counts if count),
        )
    return bool(errors)


def _dispatch(args: argparse.Namespace) -> bool:
    """Run the selected command; return whether partial failures occurred."""

    if args.command == "rot":
        if args.rot_command == "audit":
            audit = run_rot_audit(_run_config(args))
            log.info(
                "Audit finished: %s actions planned, %s pending, written to %s",
                len(audit.plan),
                len(audit.plan.pending),
                audit.report_path,
            )
            if audit.plan.is_converged:
                log.info("All listed stores already match the certificate lists")
            return _report(audit.errors)
        if args.rot_command == "reconcile":
            source = ReconcileSource.FROM_FILE if args.import_csv else ReconcileSource.FROM_PLAN
            outcome = run_rot_reconcile(_run_config(args), source)
            result = outcome.result
            log.info(
                "Reconcile finished: dispatched=%s, skipped=%s, failed=%s, written to %s",
                result.dispatched,
                result.skipped,
                result.failed,
                outcome.reconciled_path,
            )
            return _report(outcome.errors)
        if args.rot_command == "generate-template":
            path = generate_rot_template(
                args.template_type,
                fmt=args.template_format,
                outpath=args.outpath,
                store_type=args.store_type,
                container_name=args.container_name,
                collection_id=args.collection,
                issued_cn=args.cn,
            )
            log.info("Template written to %s", path)
            return False

    if args.command == "stores":
        if args.stores_command == "import" and args.import_command == "csv":
            imported = import_stores_csv(
                args.file,
                store_type_name=args.store_type_name,
                store_type_id=args.store_type_id,
                outcome_path=args.results_path,
                dry_run=args.dry_run,
                flags=SecretDefaults(
                    server_username=args.server_username,
                    server_password=args.server_password,
                    store_password=args.store_password,
                ),
                prompt=not args.no_prompt,
            )
            return _report(imported.errors)
        if args.stores_command == "import" and args.import_command == "generate-template":
            generate_store_import_template(
                store_type_name=args.store_type_name,
                store_type_id=args.store_type_id,
                outpath=args.outpath,
            )
            return False
        if args.stores_command == "export":
            exported = export_stores_csv(
                store_type_name=args.store_type_name,
                store_type_id=args.store_type_id,
                outpath=args.outpath,
            )
            return _report(exported.errors)

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    level = logging.DEBUG if debug_requested(parsed_args.debug) else logging.INFO
    configure_logging(level=level)
    logging.getLogger().setLevel(level)

    try:
        _validate_args(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        failed = _dispatch(parsed_args)
    except (InputError, ConfigurationError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)

    if failed:
        log.error("Finished with errors")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

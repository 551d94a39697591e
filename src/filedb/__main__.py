"""Entry point for `python -m filedb` and the `filedb` CLI script."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from filedb.course import Assignment, CourseDatabase, validate_code
from filedb.errors import LockUnavailableError, StoreError
from filedb.session import DatabaseSession
from filedb.settings import StoreSettings
from filedb.store import DocumentStore

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BUSY = 2

logger = logging.getLogger("filedb")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="filedb", description="Manage a course database stored with filedb")
    parser.add_argument(
        "--directory",
        type=Path,
        default=None,
        help="Database directory (default: FILEDB_DATABASE_DIR, then cwd)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create an empty course database")
    init.add_argument("--force", action="store_true", help="Overwrite an existing database")

    sub.add_parser("show", help="Print the database without locking it")

    add_student = sub.add_parser("add-student", help="Enroll a student")
    add_student.add_argument("uid")

    add_assignment = sub.add_parser("add-assignment", help="Add an assignment to the course database")
    add_assignment.add_argument("code")
    add_assignment.add_argument("--title", default="")
    add_assignment.add_argument(
        "--force", "-f", action="store_true", help="Overwrite previous version of assignment in database"
    )

    delete_assignment = sub.add_parser("delete-assignment", help="Remove an assignment and its grades")
    delete_assignment.add_argument("code")
    return parser.parse_args(argv)


def resolve_directory(explicit: Path | None, settings: StoreSettings) -> Path:
    if explicit is not None:
        return explicit.resolve()
    return settings.database_path(Path.cwd()).resolve()


def cmd_init(store: DocumentStore[CourseDatabase], args: argparse.Namespace) -> int:
    if store.exists() and not args.force:
        logger.error("database already exists in %s; use --force to overwrite", store.directory)
        return EXIT_ERROR
    store.directory.mkdir(parents=True, exist_ok=True)
    store.init(CourseDatabase())
    print(f"initialized database in {store.directory}")
    return EXIT_OK


def cmd_show(store: DocumentStore[CourseDatabase], args: argparse.Namespace) -> int:
    document = store.read_document()
    print(json.dumps(document.model_dump(mode="json"), indent=2, sort_keys=True))
    return EXIT_OK


def cmd_add_student(store: DocumentStore[CourseDatabase], args: argparse.Namespace) -> int:
    session = DatabaseSession(store)
    session.open()
    try:
        if not session.db.add_student(args.uid):
            logger.warning("student %s already in database", args.uid)
            session.close()
            return EXIT_OK
        session.commit()
    finally:
        session.cleanup_and_log_on_error()
    return EXIT_OK


def cmd_add_assignment(store: DocumentStore[CourseDatabase], args: argparse.Namespace) -> int:
    try:
        validate_code(args.code)
    except ValueError as exc:
        logger.error("bad assignment code: %s", exc)
        return EXIT_ERROR

    assignment = Assignment(code=args.code, title=args.title)
    session = DatabaseSession(store)
    session.open()
    try:
        db = session.db
        changed = False
        if db.add_assignment(assignment):
            changed = True
        elif args.force:
            if db.has_grades(assignment.code):
                logger.error(
                    "grades have been entered for assignment %s; in order to overwrite, "
                    "first delete all grades for this assignment",
                    assignment.code,
                )
                return EXIT_ERROR
            logger.warning("overwriting assignment %s", assignment.code)
            db.delete_assignment(assignment.code)
            db.add_assignment(assignment)
            changed = True
        else:
            logger.warning("assignment %s already in database; use --force to overwrite", assignment.code)

        if changed:
            session.commit()
        else:
            session.close()
    finally:
        session.cleanup_and_log_on_error()
    return EXIT_OK


def cmd_delete_assignment(store: DocumentStore[CourseDatabase], args: argparse.Namespace) -> int:
    session = DatabaseSession(store)
    session.open()
    try:
        if not session.db.delete_assignment(args.code):
            logger.error("no such assignment: %s", args.code)
            return EXIT_ERROR
        session.commit()
    finally:
        session.cleanup_and_log_on_error()
    return EXIT_OK


COMMANDS = {
    "init": cmd_init,
    "show": cmd_show,
    "add-student": cmd_add_student,
    "add-assignment": cmd_add_assignment,
    "delete-assignment": cmd_delete_assignment,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    env_path = Path.cwd() / ".env"
    if env_path.is_file():
        load_dotenv(env_path)

    try:
        settings = StoreSettings.from_env()
    except ValueError as exc:
        logger.error("invalid configuration: %s", exc)
        return EXIT_ERROR

    store = DocumentStore(resolve_directory(args.directory, settings), CourseDatabase, settings=settings)
    try:
        return COMMANDS[args.command](store, args)
    except LockUnavailableError:
        logger.error("a transaction is already in progress in %s; try again", store.directory)
        return EXIT_BUSY
    except StoreError as exc:
        logger.error("could not read/write database: %s", exc)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())

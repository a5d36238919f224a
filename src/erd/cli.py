"""erd CLI: fetch build artifacts from CI, show job history, trigger rebuilds."""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from functools import partial
from pathlib import Path

from loguru import logger

from erd import __version__
from erd.core.config import (
    DEFAULT_GITLAB_URL,
    LOCAL_DIR,
    Config,
    Source,
    default_config_path,
    default_output_dir,
    load_config,
)
from erd.core.credentials import Credential, CredentialStore, default_logins_path
from erd.core.exceptions import ErdError, LocalIOError
from erd.core.store import ArtifactStore
from erd.fetcher import ArtifactFetcher, FetchStatus
from erd.history import render_history
from erd.providers import PROVIDERS, get_provider
from erd.providers.base_provider import HISTORY_PAGE_SIZE

LOG_ENV = "ERD_LOG"
LOG_FORMAT = "{message}"


def _parse_module_levels(spec: str | None) -> dict[str, str]:
    levels: dict[str, str] = {}
    if not spec:
        return levels
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        module, sep, level = item.partition("=")
        if not sep or not module or not level:
            logger.warning(f"Ignoring invalid {LOG_ENV} entry: '{item}'")
            continue
        try:
            logger.level(level.upper())
        except ValueError:
            logger.warning(f"Ignoring unknown log level in {LOG_ENV}: '{item}'")
            continue
        levels[module.strip()] = level.upper()
    return levels


def setup_logging(level: str = "INFO", module_levels: dict[str, str] | None = None) -> None:
    """loguru のシンクをプロセス開始時に1度だけ構成する.

    Args:
        level: 全体の最小レベル
        module_levels: モジュール名 -> レベル（例: ``{"erd.providers": "DEBUG"}``）
    """
    logger.remove()
    filters: dict[str, str] = {"": level}
    filters.update(module_levels or {})
    logger.add(sys.stderr, level="TRACE", format=LOG_FORMAT, filter=filters)


def _prompt(label: str, secret: bool = False) -> str:
    if secret:
        return getpass.getpass(f"{label}: ").strip()
    return input(f"{label}: ").strip()


def init_project(base_dir: Path, interactive: bool = True, prompt=_prompt) -> Path | None:
    """作業ディレクトリに .erd/ と最初のソースを作成する.

    Returns:
        作成した設定ファイルのパス。既に初期化済みなら None
    """
    erd_dir = base_dir / LOCAL_DIR
    if erd_dir.exists():
        logger.error(f"erd already initialised in {base_dir}")
        return None

    kind = "gitlab"
    url = DEFAULT_GITLAB_URL
    if interactive:
        print("To get setup, lets add the first Repository Source")
        for name in PROVIDERS:
            print(f" - {name}")
        while True:
            kind = prompt(">").lower() or "gitlab"
            if kind in PROVIDERS:
                break
            print("Invalid type, please try again")
        print("Custom URL? Leave blank for gitlab.com")
        url = prompt(">") or DEFAULT_GITLAB_URL

    try:
        erd_dir.mkdir(parents=True)
    except OSError as e:
        raise LocalIOError(erd_dir, f"Failed to create directory ({e})") from e

    config = Config(sources=[Source(id=kind, url=url, kind=kind)], path=default_config_path(base_dir))
    path = config.save()
    print(f"First source added. Try adding some repositories with: erd scan {kind}")
    return path


def _cmd_fetch(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    if args.artifact:
        answers = [(args.artifact, fetcher.fetch_one(args.artifact, args.build_id))]
    else:
        answers = fetcher.fetch_all()
        if not answers:
            logger.warning("No artifacts found!")
            return

    padding = max(len(artifact_id) for artifact_id, _ in answers)
    for artifact_id, outcome in answers:
        line = f"{artifact_id:{padding}} {outcome.describe()}"
        if outcome.status is FetchStatus.NOT_FOUND:
            logger.error(line)
        else:
            logger.info(line)


def _cmd_scan(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    projects = fetcher.scan(args.source, args.search)
    print("Path (ID) - URL")
    longest = max((len(p.path_with_namespace) for p in projects), default=0)
    for project in projects:
        print(f"{project.path_with_namespace:{longest}} ({project.id}) - {project.web_url}")


def _cmd_history(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    artifact, jobs = fetcher.history(args.artifact, args.limit)
    for line in render_history(artifact, jobs, short=args.short):
        print(line)


def _cmd_list(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    sources = [fetcher.config.find_source(args.source)] if args.source else fetcher.config.sources
    for source in sources:
        print(f"== Artifacts from {source.id} ==")
        for artifact in source.artifacts:
            print(f"- {artifact.id} ({artifact.branch})")


def _cmd_rebuild(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    pipeline_id, jobs = fetcher.rebuild(args.artifact, args.build_id)
    print(f"Started pipeline {pipeline_id}")
    for job in jobs:
        print(f"- {job.name} ({job.id}): {job.status} - {job.web_url}")


def _cmd_add(fetcher: ArtifactFetcher, args: argparse.Namespace) -> None:
    artifact = fetcher.add(
        args.source,
        args.project_id,
        artifact_id=args.id,
        branch=args.branch,
        pattern=args.pattern,
    )
    print(f"Added {artifact.id} ({artifact.branch}) matching '{artifact.pattern}'")


def _cmd_auth(args: argparse.Namespace) -> None:
    logins_path = args.logins_file or default_logins_path()
    store = CredentialStore.load(logins_path)
    logger.info(f"Authenticate for {args.url}")
    credential = Credential(
        url=args.url,
        username=_prompt("username"),
        password=_prompt("password", secret=True),
    )
    previous = store.set(credential)
    path = store.save(logins_path)
    if previous is not None:
        logger.info(f"Replaced existing login for {args.url}")
    logger.info(f"Login saved to {path}")


def _history_limit(value: str) -> int:
    limit = int(value)
    if not 1 <= limit <= HISTORY_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"must be between 1 and {HISTORY_PAGE_SIZE}")
    return limit


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="erd", description="Fetch build artifacts from CI")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--work-dir",
        type=Path,
        default=None,
        help="project directory containing .erd (default: current directory)",
    )
    p.add_argument(
        "--logins-file",
        type=Path,
        default=None,
        help="logins file path (default: $ERD_LOGINS_FILE or user config dir)",
    )
    p.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors")

    sub = p.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Fetch one or all artifacts")
    fetch.add_argument("artifact", nargs="?", default=None, help="artifact id (default: all)")
    fetch.add_argument("build_id", nargs="?", default=None, help="job id (default: latest on branch)")

    scan = sub.add_parser("scan", help="List projects available on a source")
    scan.add_argument("source", help="source id")
    scan.add_argument("search", nargs="?", default=None, help="filter by name/namespace")

    history = sub.add_parser("history", help="Show job history for an artifact")
    history.add_argument("artifact", help="artifact id")
    history.add_argument("--short", action="store_true", help="One line per job")
    history.add_argument(
        "--limit",
        type=_history_limit,
        default=HISTORY_PAGE_SIZE,
        help=f"number of jobs (1-{HISTORY_PAGE_SIZE})",
    )

    list_ = sub.add_parser("list", help="List configured artifacts")
    list_.add_argument("source", nargs="?", default=None, help="source id (default: all)")

    rebuild = sub.add_parser("rebuild", help="Re-run the pipeline of a build")
    rebuild.add_argument("artifact", help="artifact id")
    rebuild.add_argument("build_id", help="job id whose ref is rebuilt")

    add = sub.add_parser("add", help="Add a project as an artifact")
    add.add_argument("source", help="source id")
    add.add_argument("project_id", help="project id on the source")
    add.add_argument("--id", default=None, help="artifact id (default: project name)")
    add.add_argument("--branch", default=None, help="branch (default: project default branch)")
    add.add_argument("--pattern", default=".jar", help="file name suffix to extract")

    init = sub.add_parser("init", help="Initialise erd in the project directory")
    init.add_argument("--silent", action="store_true", help="Use defaults without prompting")

    auth = sub.add_parser("auth", help="Store a login for a source URL")
    auth.add_argument("url", help="URL prefix the login applies to")

    return p


COMMANDS = {
    "fetch": _cmd_fetch,
    "scan": _cmd_scan,
    "history": _cmd_history,
    "list": _cmd_list,
    "rebuild": _cmd_rebuild,
    "add": _cmd_add,
}


def run(args: argparse.Namespace) -> None:
    work_dir = args.work_dir or Path.cwd()

    if args.command == "init":
        init_project(work_dir, interactive=not args.silent)
        return
    if args.command == "auth":
        _cmd_auth(args)
        return

    config = load_config(default_config_path(work_dir))
    credentials = CredentialStore.load(args.logins_file or default_logins_path())
    store = ArtifactStore(default_output_dir(work_dir))

    provider_factory = get_provider
    if args.timeout is not None:
        provider_factory = partial(get_provider, timeout=args.timeout, download_timeout=args.timeout)

    with ArtifactFetcher(config, credentials, store, provider_factory=provider_factory) as fetcher:
        COMMANDS[args.command](fetcher, args)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    level = "DEBUG" if args.verbose else "WARNING" if args.quiet else "INFO"
    setup_logging(level)
    module_levels = _parse_module_levels(os.environ.get(LOG_ENV))
    if module_levels:
        setup_logging(level, module_levels)

    try:
        run(args)
    except ErdError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()

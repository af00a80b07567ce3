"""CLI entry point: main() function."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from gitdeck import workspace
from gitdeck.config import create_argument_parser, load_config
from gitdeck.errors import GitDeckError, UserCancelledError
from gitdeck.models import AppConfig
from gitdeck.orchestrator import SyncOrchestrator
from gitdeck.output import ConsoleOutputHandler
from gitdeck.protocols import OutputHandler
from gitdeck.remoteapi import RemoteAPIRegistry
from gitdeck.reporter import SummaryReporter
from gitdeck.repository import GitPythonRepository
from gitdeck.resolver import RepositoryResolver, ResolveMode, ResolveOptions
from gitdeck.selector import InquirerSelector, confirm
from gitdeck.store import RepositoryStore

logger = logging.getLogger(__name__)


class Context:
    """Everything a command needs, built once per invocation."""

    def __init__(self, args: argparse.Namespace, config: AppConfig, store: RepositoryStore, output: OutputHandler):
        self.args = args
        self.config = config
        self.store = store
        self.output = output
        self.work_dir = Path.cwd()

    def resolver(self, force_no_cache: bool = False) -> RepositoryResolver:
        apis = RemoteAPIRegistry(self.config, self.store, force_no_cache=force_no_cache)
        return RepositoryResolver(self.config, self.store, InquirerSelector(), self.work_dir, apis)


def _confirm_or_cancel(message: str) -> None:
    if not confirm(message):
        raise UserCancelledError(message)


def cmd_home(ctx: Context) -> None:
    args = ctx.args
    options = ResolveOptions(
        mode=ResolveMode.SELECT if args.search else ResolveMode.FUZZY,
        list_remote=args.remote_list,
        exclude_local=args.exclude_local,
    )
    repo = ctx.resolver(args.force_no_cache).resolve(args.head, args.query, options)
    remote = ctx.config.get_remote(repo.remote)
    if repo.new_created:
        _confirm_or_cancel(f"Do you want to create {repo.id}?")

    path = workspace.ensure_create(repo, remote, ctx.config.workspace, ctx.output, thin=args.thin)
    workspace.record_visit(ctx.store, repo, remote)
    workspace.ensure_language(ctx.store, repo, path, ctx.output)
    print(path)


def cmd_sync(ctx: Context) -> None:
    args = ctx.args
    orchestrator = SyncOrchestrator(ctx.config, ctx.store, ctx.output)
    reporter = SummaryReporter(ctx.output)

    if not args.recursive:
        result = orchestrator.sync_current(ctx.work_dir)
        if result is not None:
            reporter.print_result(result)
            return

    repos, level = ctx.resolver().resolve_many(args.head, args.query, sync_only=not args.force)
    if not repos:
        ctx.output.info("No repo to sync")
        return

    if not args.yes:
        for repo in repos:
            ctx.output.info(repo.display(level), indent=1)
        noun = "repo" if len(repos) == 1 else "repos"
        _confirm_or_cancel(f"Do you want to sync {len(repos)} {noun}?")

    results = orchestrator.sync_many(repos, level)
    reporter.print_results(results)


def cmd_attach(ctx: Context) -> None:
    args = ctx.args
    repo = ctx.resolver().resolve(args.head, args.query, ResolveOptions(mode=ResolveMode.SELECT))
    _confirm_or_cancel(f"Do you want to attach current directory to {repo.id}?")
    workspace.attach(ctx.config, ctx.store, repo, ctx.work_dir, ctx.output)


def cmd_detach(ctx: Context) -> None:
    repo = workspace.require_current_repository(ctx.config, ctx.store, ctx.work_dir)
    _confirm_or_cancel(f"Are you sure to detach the current directory from {repo.id}?")
    workspace.detach(ctx.store, repo, ctx.output)


def cmd_remove(ctx: Context) -> None:
    args = ctx.args
    repo = ctx.resolver().resolve(args.head, args.query, ResolveOptions(force_local=True))
    _confirm_or_cancel(f"Do you want to remove {repo.id} and its directory?")
    workspace.remove(ctx.config, ctx.store, repo, ctx.output)


def _current_git_repository(ctx: Context) -> GitPythonRepository:
    repo = workspace.require_current_repository(ctx.config, ctx.store, ctx.work_dir)
    return GitPythonRepository(repo.get_path(ctx.config.workspace), ctx.output)


def cmd_branches(ctx: Context) -> None:
    with _current_git_repository(ctx) as git_repo:
        branches = git_repo.list_branches()
    if ctx.args.json_output:
        print(json.dumps([branch.to_dict() for branch in branches], indent=2))
        return
    SummaryReporter(ConsoleOutputHandler(stream=sys.stdout)).print_branches(branches)


def cmd_tags(ctx: Context) -> None:
    with _current_git_repository(ctx) as git_repo:
        tags = git_repo.list_tags()
    if ctx.args.json_output:
        print(json.dumps([tag.to_dict() for tag in tags], indent=2))
        return
    SummaryReporter(ConsoleOutputHandler(stream=sys.stdout)).print_tags(tags)


COMMANDS = {
    'home': cmd_home,
    'sync': cmd_sync,
    'attach': cmd_attach,
    'detach': cmd_detach,
    'remove': cmd_remove,
    'branches': cmd_branches,
    'tags': cmd_tags,
}


def main():
    """Main entry point"""
    parser = create_argument_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    output = ConsoleOutputHandler(verbose=args.verbose)
    store = None
    try:
        config = load_config(args.config).with_updates(verbose=args.verbose)
        store = RepositoryStore.open(config.data_dir)
        logger.debug("Running %s in %s", args.command, Path.cwd())
        COMMANDS[args.command](Context(args, config, store, output))

    except (UserCancelledError, KeyboardInterrupt):
        sys.exit(130)
    except GitDeckError as e:
        output.error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        output.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    finally:
        if store is not None:
            store.close()

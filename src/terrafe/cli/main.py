#!/usr/bin/env python3
"""Entry point for the terrafe CLI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import Any

import yaml

from terrafe import __version__
from terrafe.adapters.fetchers import build_default_fetcher
from terrafe.adapters.fs_cache_store import FSCacheStore
from terrafe.app.config import ConfigError, ConfigService
from terrafe.app.create import CreateProjectService, TemplateSource
from terrafe.app.generator import GenerateOptions, GeneratorError, ProjectGenerator
from terrafe.app.templates import (
    SubdirectoryNotFoundError,
    TemplateFetchFailed,
    TemplateProvider,
    TemplateRegistry,
    TemplateRegistryError,
)
from terrafe.app.templates.registry import RESTORE_CHOICES
from terrafe.domain.template import TemplateEntry
from terrafe.ports.cache_store import CacheWriteError
from terrafe.ports.template_fetcher import FetchError
from terrafe.settings import RuntimeSettings, load_settings
from terrafe.utils.package_manager import PACKAGE_MANAGER_CHOICES, detect_package_manager
from terrafe.utils.telemetry import record_event
from terrafe.utils.validate import validate_version

logger = logging.getLogger("terrafe")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

HANDLED_ERRORS = (
    FetchError,
    SubdirectoryNotFoundError,
    CacheWriteError,
    TemplateFetchFailed,
    ConfigError,
    TemplateRegistryError,
    GeneratorError,
)

SOLUTIONS: dict[str, list[str]] = {
    "INVALID_PROJECT_NAME": [
        "Project names must:",
        "use only letters, digits, '-' and '_'",
        "not start with '.' or '_'",
        "be at most 214 characters long",
    ],
    "DIRECTORY_EXISTS": [
        "Pick a different project name, remove the directory,",
        "or pass --force to overwrite it (destructive).",
    ],
    "TEMPLATE_NOT_FOUND": [
        "Check the template name with `terrafe template list`.",
    ],
    "TEMPLATE_EXISTS": [
        "Choose another name or remove the existing template first.",
    ],
    "FETCH_FAILED": [
        "Check the repository, branch and network connection.",
        "Private repositories are not supported by archive downloads.",
    ],
    "FETCH_TIMEOUT": [
        "Raise the limit with `terrafe config set templates.fetchTimeout <ms>`.",
    ],
    "SUBDIRECTORY_NOT_FOUND": [
        "Check the subdirectory path; the listed entries exist at that level.",
    ],
    "CACHE_WRITE_FAILED": [
        "Check write permissions for the cache directory (`terrafe cache path`).",
    ],
    "DEPENDENCY_INSTALL_FAILED": [
        "Check the network connection and the package manager cache,",
        "or rerun with --skip-install and install manually.",
    ],
    "CONFIG_INVALID": [
        "Inspect values with `terrafe config list` or run `terrafe config reset`.",
    ],
}

HELP_OVERVIEW = dedent(
    """
    Scaffold front-end projects from templates.

    Examples:
      terrafe create my-app -t vite-vue
      terrafe create my-app -r vitejs/vite/tree/main/packages/create-vite/template-react
      terrafe create my-app -r user/repo#dev:src/app
      terrafe create my-app -p ./my-template
      terrafe template list --category official
      terrafe cache stats
    """
)


@dataclass
class CLIContext:
    settings: RuntimeSettings
    config: ConfigService
    provider: TemplateProvider
    registry: TemplateRegistry


def _build_context() -> CLIContext:
    settings = load_settings()
    config = ConfigService(settings)
    config.load()
    if config.get("verbose", False):
        logging.getLogger().setLevel(logging.DEBUG)
    cache_settings = config.cache_settings()
    provider = TemplateProvider(
        cache_settings,
        FSCacheStore(cache_settings),
        build_default_fetcher(),
        runtime_settings=settings,
    )
    return CLIContext(settings=settings, config=config, provider=provider, registry=TemplateRegistry(config))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.WARNING)


def _report_error(exc: BaseException) -> None:
    print(f"error: {exc}", file=sys.stderr)
    codes = [getattr(exc, "code", None), getattr(exc, "cause_code", None)]
    for code in codes:
        hints = SOLUTIONS.get(code or "")
        if hints:
            for line in hints:
                print(f"  {line}", file=sys.stderr)
            break


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _entry_payload(entry: TemplateEntry) -> dict[str, Any]:
    return {"name": entry.name, "category": entry.category, **entry.to_mapping()}


def _print_entry(entry: TemplateEntry, indent: str = "") -> None:
    description = f" - {entry.description}" if entry.description else ""
    print(f"{indent}{entry.name}{description}")
    print(f"{indent}  {entry.repo}")
    if entry.tags:
        print(f"{indent}  " + " ".join(f"#{tag}" for tag in entry.tags))


def _split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


# create


def _create_cmd(args: argparse.Namespace) -> int:
    if args.project_version and not validate_version(args.project_version):
        print(f"invalid project version: {args.project_version}", file=sys.stderr)
        return EXIT_USAGE
    if not (args.template or args.repo or args.template_path):
        print("specify a template with -t NAME, -r REPO or -p PATH", file=sys.stderr)
        return EXIT_USAGE
    if args.save_as and not args.repo:
        print("--save-as requires -r/--repo", file=sys.stderr)
        return EXIT_USAGE

    ctx = _build_context()
    source = TemplateSource(
        name=args.template,
        repo=args.repo,
        path=Path(args.template_path) if args.template_path else None,
    )
    options = GenerateOptions(
        force=args.force,
        skip_git=args.skip_git or not ctx.config.get("gitInit", True),
        skip_install=args.skip_install or not ctx.config.get("installDeps", True),
        package_manager=args.package_manager or ctx.config.get("packageManager", "auto"),
        quiet_install=not args.verbose,
        template_data={
            "projectName": args.name,
            "description": args.description or "",
            "author": args.author or ctx.config.get("user.author", "") or "",
            "version": args.project_version or "1.0.0",
            "license": args.license or "MIT",
        },
    )
    print(f"Creating project {args.name} from {source.describe()}")
    service = CreateProjectService(ctx.registry, ctx.provider, ProjectGenerator())
    result = service.create(args.name, source, options)

    if args.save_as:
        try:
            ctx.registry.add_custom(args.save_as, args.repo)
            print(f"Saved template {args.save_as} -> {args.repo}")
        except TemplateRegistryError as exc:
            print(f"warning: template not saved: {exc}", file=sys.stderr)

    record_event(ctx.settings, "cli.create", {"source": source.kind, "skipInstall": options.skip_install})
    print(f"Project {args.name} created at {result.project_dir}")
    print("Next steps:")
    print(f"  cd {args.name}")
    package_json = result.project_dir / "package.json"
    if options.skip_install and package_json.exists():
        print(f"  {detect_package_manager(result.project_dir)} install")
    script = _start_script(package_json)
    if script:
        print(f"  npm {script}")
    return EXIT_OK


def _start_script(package_json: Path) -> str | None:
    if not package_json.exists():
        return None
    try:
        scripts = json.loads(package_json.read_text(encoding="utf-8")).get("scripts") or {}
    except (OSError, ValueError, AttributeError) as exc:
        logger.debug("cannot read %s: %s", package_json, exc)
        return None
    if "dev" in scripts:
        return "run dev"
    if "start" in scripts:
        return "start"
    return None


# template


def _template_list_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    entries = ctx.registry.list(args.category)
    if args.json:
        _print_json([_entry_payload(entry) for entry in entries])
        return EXIT_OK
    if not entries:
        print("No templates found")
        return EXIT_OK
    for category in ("official", "community", "custom"):
        group = [entry for entry in entries if entry.category == category]
        if not group:
            continue
        print(f"{category.capitalize()} templates:")
        for entry in group:
            _print_entry(entry, "  ")
        print()
    print(f"Total: {len(entries)} templates")
    return EXIT_OK


def _template_add_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    if ctx.registry.has(args.name):
        raise TemplateRegistryError(f"template '{args.name}' already exists")
    if args.test:
        print(f"Verifying {args.repo} ...")
        try:
            path = ctx.provider.get_template(args.repo)
        except TemplateFetchFailed as exc:
            _report_error(exc)
            if not args.yes and not _confirm("Add the template anyway?"):
                print("Template not added")
                return EXIT_ERROR
        else:
            print(f"Verified; cached at {path}")
    entry = ctx.registry.add_custom(args.name, args.repo, args.description or "", _split_tags(args.tags))
    record_event(ctx.settings, "cli.template.add", {"name": entry.name, "tested": bool(args.test)})
    print(f"Template {entry.name} added")
    _print_entry(entry, "  ")
    return EXIT_OK


def _template_remove_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    category = ctx.registry.remove(args.name)
    print(f"Removed {category} template {args.name}")
    if category != "custom":
        print(f"Restore it with `terrafe template restore {category}`")
    return EXIT_OK


def _template_restore_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    restored = ctx.registry.restore(args.category)
    if not restored:
        print("No deleted default templates to restore")
        return EXIT_OK
    print(f"Restored {len(restored)} templates:")
    for name in restored:
        print(f"  {name}")
    return EXIT_OK


def _template_search_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    results = ctx.registry.search(args.keyword, args.category)
    if args.json:
        _print_json([_entry_payload(entry) for entry in results])
        return EXIT_OK
    if not results:
        print(f"No templates match '{args.keyword}'")
        return EXIT_OK
    print(f"Found {len(results)} templates:")
    for entry in results:
        _print_entry(entry, "  ")
    return EXIT_OK


def _template_info_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    entry = ctx.registry.require(args.name)
    if args.json:
        _print_json(_entry_payload(entry))
        return EXIT_OK
    print(f"Name:        {entry.name}")
    print(f"Category:    {entry.category}")
    print(f"Repository:  {entry.repo}")
    if entry.description:
        print(f"Description: {entry.description}")
    if entry.tags:
        print("Tags:        " + " ".join(f"#{tag}" for tag in entry.tags))
    return EXIT_OK


def _template_test_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    entry = ctx.registry.require(args.name)
    print(f"Testing {entry.name} ({entry.repo}) ...")
    path = ctx.provider.get_template(entry.repo)
    print(f"Template downloaded to {path}")
    return EXIT_OK


# cache


def _cache_stats_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    stats = ctx.provider.get_cache_stats()
    payload = {"cacheDir": str(ctx.provider.settings.cache_dir), **stats.to_dict()}
    if args.json:
        _print_json(payload)
        return EXIT_OK
    print(f"Cache directory: {payload['cacheDir']}")
    print(f"Entries:         {stats.total_items}")
    print(f"Expired:         {stats.expired_items}")
    print(f"Size:            {_format_size(stats.total_size_bytes)}")
    return EXIT_OK


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def _cache_clean_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    removed = ctx.provider.clean_expired_cache()
    print(f"Removed {removed} expired cache entries")
    return EXIT_OK


def _cache_clear_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    if not ctx.provider.clear_all_cache():
        print("error: failed to clear the template cache", file=sys.stderr)
        return EXIT_ERROR
    print("Template cache cleared")
    return EXIT_OK


def _cache_path_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    print(ctx.provider.settings.cache_dir)
    return EXIT_OK


# config


def _parse_config_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _config_list_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    data = ctx.config.all()
    if args.json:
        _print_json(data)
    else:
        print(f"# {ctx.config.path}")
        print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), end="")
    return EXIT_OK


def _config_get_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    missing = object()
    value = ctx.config.get(args.key, missing)
    if value is missing:
        print(f"configuration key '{args.key}' is not set", file=sys.stderr)
        return EXIT_ERROR
    print(value if isinstance(value, str) else json.dumps(value, ensure_ascii=False))
    return EXIT_OK


def _config_set_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    value = _parse_config_value(args.value)
    ctx.config.set(args.key, value)
    ctx.config.save()
    print(f"{args.key} = {json.dumps(value, ensure_ascii=False)}")
    return EXIT_OK


def _config_delete_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    if not ctx.config.delete(args.key):
        print(f"configuration key '{args.key}' is not set", file=sys.stderr)
        return EXIT_ERROR
    ctx.config.save()
    print(f"Deleted {args.key}")
    return EXIT_OK


def _config_reset_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    ctx.config.reset()
    print("Configuration reset to defaults")
    return EXIT_OK


def _config_export_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    target = ctx.config.export(Path(args.file).expanduser())
    print(f"Configuration exported to {target}")
    return EXIT_OK


def _config_import_cmd(args: argparse.Namespace) -> int:
    ctx = _build_context()
    ctx.config.import_file(Path(args.file).expanduser())
    print(f"Configuration imported from {args.file}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="terrafe",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"terrafe {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    create_cmd = sub.add_parser("create", help="Create a new project from a template")
    create_cmd.add_argument("name", help="Project directory name")
    source = create_cmd.add_mutually_exclusive_group()
    source.add_argument("-t", "--template", help="Registry template name")
    source.add_argument("-r", "--repo", help="Repository reference (owner/repo, URL, owner/repo#branch:subdir)")
    source.add_argument("-p", "--template-path", help="Local template directory")
    create_cmd.add_argument("-m", "--package-manager", choices=PACKAGE_MANAGER_CHOICES)
    create_cmd.add_argument("-d", "--description", help="Project description")
    create_cmd.add_argument("-a", "--author", help="Project author")
    create_cmd.add_argument("--project-version", help="Initial project version (semver, default 1.0.0)")
    create_cmd.add_argument("-l", "--license", help="Project license (default MIT)")
    create_cmd.add_argument("-f", "--force", action="store_true", help="Overwrite an existing directory")
    create_cmd.add_argument("--skip-git", action="store_true", help="Do not initialise a git repository")
    create_cmd.add_argument("--skip-install", action="store_true", help="Do not install dependencies")
    create_cmd.add_argument("--save-as", help="Save the -r repository as a custom template")
    create_cmd.set_defaults(func=_create_cmd)

    template_cmd = sub.add_parser("template", help="Manage the template registry")
    template_sub = template_cmd.add_subparsers(dest="template_command", required=True)
    category_choices = ("all", "official", "community", "custom")

    t_list = template_sub.add_parser("list", help="List templates")
    t_list.add_argument("--category", choices=category_choices, default="all")
    t_list.add_argument("--json", action="store_true")
    t_list.set_defaults(func=_template_list_cmd)

    t_add = template_sub.add_parser("add", help="Add a custom template")
    t_add.add_argument("name")
    t_add.add_argument("repo")
    t_add.add_argument("--description", default="")
    t_add.add_argument("--tags", help="Comma separated tags")
    t_add.add_argument("--no-test", dest="test", action="store_false", help="Skip the download check")
    t_add.add_argument("-y", "--yes", action="store_true", help="Add even when the download check fails")
    t_add.set_defaults(func=_template_add_cmd)

    t_remove = template_sub.add_parser("remove", aliases=["rm"], help="Remove a template")
    t_remove.add_argument("name")
    t_remove.set_defaults(func=_template_remove_cmd)

    t_restore = template_sub.add_parser("restore", help="Restore deleted default templates")
    t_restore.add_argument("category", nargs="?", choices=RESTORE_CHOICES, default="all")
    t_restore.set_defaults(func=_template_restore_cmd)

    t_search = template_sub.add_parser("search", help="Search templates")
    t_search.add_argument("keyword")
    t_search.add_argument("--category", choices=category_choices, default="all")
    t_search.add_argument("--json", action="store_true")
    t_search.set_defaults(func=_template_search_cmd)

    t_info = template_sub.add_parser("info", help="Show template details")
    t_info.add_argument("name")
    t_info.add_argument("--json", action="store_true")
    t_info.set_defaults(func=_template_info_cmd)

    t_test = template_sub.add_parser("test", help="Download a template to verify it")
    t_test.add_argument("name")
    t_test.set_defaults(func=_template_test_cmd)

    cache_cmd = sub.add_parser("cache", help="Inspect and clean the template cache")
    cache_sub = cache_cmd.add_subparsers(dest="cache_command", required=True)
    c_stats = cache_sub.add_parser("stats", help="Show cache statistics")
    c_stats.add_argument("--json", action="store_true")
    c_stats.set_defaults(func=_cache_stats_cmd)
    cache_sub.add_parser("clean", help="Remove expired entries").set_defaults(func=_cache_clean_cmd)
    cache_sub.add_parser("clear", help="Remove every cached template").set_defaults(func=_cache_clear_cmd)
    cache_sub.add_parser("path", help="Print the cache directory").set_defaults(func=_cache_path_cmd)

    config_cmd = sub.add_parser("config", help="Read and change configuration")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    cfg_list = config_sub.add_parser("list", help="Show the whole configuration")
    cfg_list.add_argument("--json", action="store_true")
    cfg_list.set_defaults(func=_config_list_cmd)
    cfg_get = config_sub.add_parser("get", help="Print one value (dotted key)")
    cfg_get.add_argument("key")
    cfg_get.set_defaults(func=_config_get_cmd)
    cfg_set = config_sub.add_parser("set", help="Set one value; JSON literals are parsed")
    cfg_set.add_argument("key")
    cfg_set.add_argument("value")
    cfg_set.set_defaults(func=_config_set_cmd)
    cfg_delete = config_sub.add_parser("delete", help="Delete one value")
    cfg_delete.add_argument("key")
    cfg_delete.set_defaults(func=_config_delete_cmd)
    config_sub.add_parser("reset", help="Restore defaults").set_defaults(func=_config_reset_cmd)
    cfg_export = config_sub.add_parser("export", help="Write the configuration to a file")
    cfg_export.add_argument("file")
    cfg_export.set_defaults(func=_config_export_cmd)
    cfg_import = config_sub.add_parser("import", help="Replace the configuration from a file")
    cfg_import.add_argument("file")
    cfg_import.set_defaults(func=_config_import_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return args.func(args)
    except HANDLED_ERRORS as exc:
        logger.debug("command failed", exc_info=True)
        _report_error(exc)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())

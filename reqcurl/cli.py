"""reqcurl CLI - move HTTP requests between curl commands and request files."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import yaml

TOOL_HELP = """\
reqcurl - Convert curl commands to request files and back.

Parses curl commands into structured request files (YAML), and renders
saved requests as curl commands with {{variables}} filled in from
collection variables and stored secrets.

\b
MODES
─────
  Import:    reqcurl --import-curl "curl ..." [--save NAME]
  Export:    reqcurl -r REQUEST [--collection NAME] [--multiline]
  Validate:  reqcurl --validate "curl ..."

\b
IMPORT
──────
  reqcurl --import-curl "curl -X POST https://api.test/users -d '{\\"a\\":1}'"
  pbpaste | reqcurl --import-curl -            # read the command from stdin
  reqcurl --import-curl "curl https://api.test/users" --save list-users
  reqcurl --import-curl "..." --json           # JSON instead of YAML

  Recognized flags: -X/--request, -H/--header, -d/--data/--data-raw,
  -F/--form, --max-time, --max-redirs, -L/--location. -v, -s and -S are
  ignored. Other flags are skipped (a long flag also skips its value).

  A -d body containing both '=' and '&' is read as url-encoded fields;
  anything else is a raw body.

\b
EXPORT
──────
  reqcurl -r list-users                        # requests/list-users.yaml
  reqcurl -r requests/create-user.yaml --collection billing
  reqcurl -r create-user --multiline           # one flag per line
  reqcurl -r create-user --no-resolve          # keep {{placeholders}}
  reqcurl -r create-user --prepare             # show the exact HTTP request

  Requests directory resolution:
    1. --requests-dir CLI flag
    2. requests_dir from config (relative to config file)
    3. ./requests/ in CWD
    4. ~/.reqcurl/requests/

\b
VARIABLES
─────────
  {{name}} placeholders in the URL, headers, params and body are replaced
  from the collection's variables. Unknown placeholders are left as-is.

  Precedence (highest wins):
  \b
  3. secrets.environments.<env>     (collection's environment secrets)
  2. secrets.collections.<id>       (collection secrets)
  1. collections.<name>.variables   (inline collection variables)

  A layer that fails to load is skipped with a warning.

\b
CONFIG FILE FORMAT (.reqcurl.yaml)
──────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .reqcurl.yaml / .reqcurl.yml / reqcurl.yaml / reqcurl.yml in CWD
    3. ~/.reqcurl/config.yaml (global)

  \b
  defaults:
    env_file: .env                  # load .env file
    requests_dir: requests          # where saved requests live
    collection: billing             # default for --collection
    multiline: false                # default for --multiline
    verbose_flag: true              # append -v to generated commands
  collections:
    billing:
      id: billing                   # optional, defaults to the name
      environment: staging
      variables:
        base: https://api.test
  secrets:
    collections:
      billing:
        token: ${BILLING_TOKEN}     # env var resolved at runtime
    environments:
      staging:
        base: https://staging.api.test

\b
PROJECT INIT
────────────
  reqcurl --init              Scaffold .reqcurl.yaml + requests/
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.option(
    "-i",
    "--import-curl",
    "import_curl",
    default=None,
    metavar="COMMAND",
    help="Parse a curl command into a request. Use '-' to read from stdin.",
)
@click.option(
    "--validate",
    "validate_cmd",
    default=None,
    metavar="COMMAND",
    help="Check a curl command for structural problems and exit.",
)
@click.option(
    "-r",
    "--request",
    "request_name",
    default=None,
    help="Saved request name or path to render as curl.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqcurl.yaml in CWD, then ~/.reqcurl/config.yaml.",
)
@click.option(
    "--requests-dir",
    "requests_dir_override",
    default=None,
    help="Override requests directory. Default: resolved from config "
    "or ./requests/ or ~/.reqcurl/requests/.",
)
@click.option(
    "--collection",
    "collection_name",
    default=None,
    help="Collection whose variables and secrets fill {{placeholders}}.",
)
@click.option(
    "--resolve/--no-resolve",
    default=True,
    help="Substitute {{placeholders}} before rendering. Default: on.",
)
@click.option(
    "--multiline/--single-line",
    default=None,
    help="Render one flag per line. Default: from config, else single line.",
)
@click.option(
    "--verbose-flag/--no-verbose-flag",
    default=None,
    help="Append -v to the generated command. Default: from config, else on.",
)
@click.option(
    "--prepare",
    "show_prepared",
    is_flag=True,
    default=False,
    help="Print the HTTP request that the curl command would send.",
)
@click.option(
    "--save",
    "save_name",
    default=None,
    metavar="NAME",
    help="Save the imported request to the requests directory.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print requests as JSON.")
@click.option(
    "--list-requests",
    "show_list_requests",
    is_flag=True,
    default=False,
    help="List saved requests in the requests directory.",
)
@click.option(
    "--list-collections",
    "show_list_collections",
    is_flag=True,
    default=False,
    help="List collections from the config.",
)
@click.option(
    "--init",
    "do_init",
    is_flag=True,
    default=False,
    help="Scaffold .reqcurl.yaml + requests/ in CWD.",
)
@click.option("--debug", is_flag=True, default=False, help="Log debug details to stderr.")
def main(
    import_curl,
    validate_cmd,
    request_name,
    config_file,
    requests_dir_override,
    collection_name,
    resolve,
    multiline,
    verbose_flag,
    show_prepared,
    save_name,
    as_json,
    show_list_requests,
    show_list_collections,
    do_init,
    debug,
):
    """Convert curl commands to request files and back."""
    from reqcurl.core import (
        ConfigSecretStore,
        list_collections,
        list_requests,
        load_collection,
        load_config,
        load_env,
        load_request,
        request_search_paths,
        resolve_config_path,
        resolve_requests_dir,
        save_request,
    )

    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # --- Load config ---
    config_path = resolve_config_path(config_file)
    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        click.echo(f"ERROR: Could not read config {config_path}: {e}", err=True)
        sys.exit(1)
    defaults = config.get("defaults", {})

    # --- Dispatch ---

    if do_init:
        _cmd_init()
        return

    if show_list_collections:
        _cmd_list_collections(config, list_collections)
        return

    if show_list_requests:
        _cmd_list_requests(config, requests_dir_override, list_requests)
        return

    if validate_cmd is not None:
        _cmd_validate(_read_command(validate_cmd))
        return

    if import_curl is not None:
        _cmd_import_curl(
            _read_command(import_curl),
            save_name,
            as_json,
            config,
            requests_dir_override,
            resolve_requests_dir,
            save_request,
        )
        return

    if request_name:
        try:
            model = load_request(request_name, config, requests_dir_override)
        except (OSError, ValueError, yaml.YAMLError) as e:
            click.echo(f"ERROR: Could not read request '{request_name}': {e}", err=True)
            sys.exit(1)
        if model is None:
            searched = request_search_paths(request_name, config, requests_dir_override)
            click.echo(
                f"Request '{request_name}' not found.\n"
                f"Searched:\n" + "\n".join(f"  - {p}" for p in searched),
                err=True,
            )
            sys.exit(1)

        collection = None
        store = None
        if resolve:
            name = collection_name or defaults.get("collection")
            if name:
                collection = load_collection(name, config)
                if collection is None:
                    click.echo(f"ERROR: Collection '{name}' not found in config.", err=True)
                    sys.exit(1)
                env = load_env(defaults.get("env_file"), config.get("_config_dir"))
                store = ConfigSecretStore(config, env)

        _cmd_export(
            model,
            collection,
            store,
            resolve,
            _pick(multiline, defaults.get("multiline"), False),
            _pick(verbose_flag, defaults.get("verbose_flag"), True),
            show_prepared,
        )
        return

    # Nothing matched - show help
    ctx = click.get_current_context()
    click.echo(ctx.get_help())
    ctx.exit(1)


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_validate(command):
    from reqcurl.parser import validate_curl

    errors = validate_curl(command)
    if errors:
        for err in errors:
            click.echo(f"ERROR: {err}", err=True)
        sys.exit(1)
    click.echo("OK")


def _cmd_import_curl(
    command,
    save_name,
    as_json,
    config,
    requests_dir_override,
    resolve_requests_dir,
    save_request,
):
    from reqcurl.exceptions import CurlParseError
    from reqcurl.parser import parse_curl, validate_curl

    errors = validate_curl(command)
    if errors:
        for err in errors:
            click.echo(f"ERROR: {err}", err=True)
        sys.exit(1)

    try:
        model = parse_curl(command)
    except CurlParseError as e:
        click.echo(f"Error parsing curl: {e}", err=True)
        sys.exit(1)

    click.echo(_dump_model(model, as_json))

    if save_name:
        rdir = resolve_requests_dir(requests_dir_override, config, default=Path("requests"))
        path = save_request(save_name, model, rdir)
        click.echo(f"Request saved: {path}", err=True)


def _cmd_export(model, collection, store, resolve, multiline, verbose_flag, show_prepared):
    from reqcurl.generator import generate_curl, generate_formatted_curl
    from reqcurl.variables import resolve_request_variables, unresolved_placeholders

    if resolve and collection is not None:
        model = asyncio.run(resolve_request_variables(model, collection, store))

    if resolve:
        missing = unresolved_placeholders(model)
        if missing:
            click.echo(f"WARNING: unresolved variables: {', '.join(missing)}", err=True)

    if multiline:
        click.echo(generate_formatted_curl(model, verbose=verbose_flag))
    else:
        click.echo(generate_curl(model, verbose=verbose_flag))

    if show_prepared:
        _cmd_prepare(model)


def _cmd_prepare(model):
    import requests

    from reqcurl.prepare import describe_prepared, prepare_request

    try:
        prepared = prepare_request(model)
    except (requests.exceptions.RequestException, ValueError) as e:
        click.echo(f"ERROR: Could not prepare request: {e}", err=True)
        sys.exit(1)
    click.echo()
    click.echo(describe_prepared(prepared))


def _cmd_list_requests(config, requests_dir_override, list_requests_fn):
    rdir, entries = list_requests_fn(config, requests_dir_override)
    if not entries:
        if rdir:
            click.echo(f"No requests found in: {rdir}")
        else:
            click.echo("No requests directory found.")
            click.echo("Searched: ./requests/, ~/.reqcurl/requests/")
        return

    click.echo(f"Requests from: {rdir}")
    click.echo(f"{len(entries)} available:\n")
    for entry in entries:
        click.echo(f"  {entry['name']:<24} {entry['method']:<7} {entry['url']}")


def _cmd_list_collections(config, list_collections_fn):
    collections = list_collections_fn(config)
    if not collections:
        click.echo("No collections in config.")
        return
    for c in collections:
        parts = [f"id: {c.id}"]
        if c.environment_id:
            parts.append(f"environment: {c.environment_id}")
        if c.variables:
            parts.append(f"vars: {', '.join(v['key'] for v in c.variables)}")
        click.echo(f"  {c.name} - {' | '.join(parts)}")


def _cmd_init():
    """Scaffold .reqcurl.yaml + requests/ in CWD."""
    config_file = Path(".reqcurl.yaml")
    requests_dir = Path("requests")

    if config_file.exists():
        click.echo(f"  {config_file} (skipped, already exists)")
    else:
        config_file.write_text(_generate_config())
        click.echo(f"  {config_file} (created)")

    if requests_dir.exists():
        click.echo(f"  {requests_dir}/ (skipped, already exists)")
    else:
        requests_dir.mkdir(parents=True)
        click.echo(f"  {requests_dir}/ (created)")

    click.echo("\nProject initialized. Run 'reqcurl --help' to get started.")


# ── Helpers ──────────────────────────────────────────────────────────────


def _read_command(value):
    """'-' means read the command from stdin."""
    if value == "-":
        return click.get_text_stream("stdin").read()
    return value


def _pick(*sources):
    """Return the first source that is not None."""
    for s in sources:
        if s is not None:
            return s
    return None


def _dump_model(model, as_json):
    data = model.to_dict()
    if as_json:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip("\n")


def _generate_config() -> str:
    """Return .reqcurl.yaml content string."""
    return """\
# reqcurl configuration
# See: reqcurl --help

defaults:
  # env_file: .env
  requests_dir: requests
  # collection: default
  multiline: false
  verbose_flag: true

collections:
  default:
    variables:
      base_url: http://localhost:3000

# secrets:
#   collections:
#     default:
#       token: ${API_TOKEN}
#   environments:
#     staging:
#       base_url: https://staging.example.com
"""

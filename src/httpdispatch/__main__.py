"""
=============================================================================
HTTPDISPATCH CLI ENTRY POINT
=============================================================================

Dispatch one request from the command line and print the raw response.
Handy for poking at a route table without starting a server.

=============================================================================
USAGE
=============================================================================

    # Built-in demo dispatcher
    python -m httpdispatch GET /users/1

    # Your own dispatcher (module:attribute, attribute may be a factory)
    python -m httpdispatch GET /users/1 --app myapp.routes:dispatcher

    # Query string and form data
    python -m httpdispatch GET /users --query limit=2
    python -m httpdispatch POST /users --data name=Grace

    # Verb override through a form field
    python -m httpdispatch POST /users/1 --data verb=delete

    # List routes
    python -m httpdispatch --routes

    # Serve over WSGI (wsgiref, development only)
    python -m httpdispatch --serve --port 8080

Exit status: 0 for a response below 400, 1 for an error response,
2 for bad arguments.

=============================================================================
"""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl
import argparse
import importlib
import sys

from . import __version__
from .config import DispatcherConfig, LOG_LEVELS, configure_logging
from .dispatcher import Dispatcher
from .errors import HTTPError, NotFound
from .http.request import Request
from .middleware.logging import RequestLogger


# =============================================================================
# DEMO DISPATCHER
# =============================================================================

def build_demo_dispatcher(config: Optional[DispatcherConfig] = None) -> Dispatcher:
    """A small in-memory user API showing off routing, hooks and errors."""
    app = Dispatcher(config)
    users: Dict[str, Dict[str, Any]] = {
        "1": {"id": "1", "name": "Ada"},
        "2": {"id": "2", "name": "Linus"},
    }

    RequestLogger().install(app)

    @app.get("/")
    def index(request):
        return {"service": "httpdispatch demo", "version": Dispatcher.version()}

    @app.get("/health")
    def health(request):
        return {"status": "healthy"}

    @app.get("/users")
    def list_users(request):
        limit = request.get("limit")
        result = list(users.values())
        if limit is not None:
            try:
                result = result[:int(limit)]
            except ValueError:
                raise HTTPError(400, f"limit must be an integer, got {limit!r}")
        return result

    @app.get("/users/{id}")
    def show_user(request):
        user = users.get(request.param("id"))
        if user is None:
            raise NotFound("no such user")
        return user

    @app.post("/users")
    def create_user(request):
        name = request.post("name")
        if not name:
            raise HTTPError(400, "name is required")
        user_id = str(max((int(k) for k in users), default=0) + 1)
        users[user_id] = {"id": user_id, "name": name}
        app.set_header("X-Created-Id", user_id)
        return users[user_id]

    @app.delete("/users/{id}")
    def delete_user(request):
        users.pop(request.param("id"), None)
        return None

    @app.get("/old-users")
    def old_users(request):
        app.redirect("/users")
        return "moved"

    @app.any("/echo")
    def echo(request):
        return {
            "method": request.method,
            "uri": request.uri,
            "query": request.query,
            "form": request.form,
        }

    app.set_error_callback(404, lambda request: {"error": "Not Found", "path": request.uri})
    return app


# =============================================================================
# ARGUMENT HELPERS
# =============================================================================

def _key_value(text: str) -> Tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    return key, value


def load_dispatcher(reference: str) -> Dispatcher:
    """
    Load ``"package.module:attribute"``.

    The attribute may be a Dispatcher or a zero-argument factory that
    returns one.

    Raises:
        ValueError: If the reference cannot be resolved to a Dispatcher.
    """
    module_path, sep, attribute = reference.partition(":")
    if not sep or not module_path or not attribute:
        raise ValueError(f"--app must look like 'module:attribute', got {reference!r}")

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ValueError(f"cannot import {module_path!r}: {e}") from e

    target = getattr(module, attribute, None)
    if target is None:
        raise ValueError(f"{module_path!r} has no attribute {attribute!r}")
    if not isinstance(target, Dispatcher) and callable(target):
        target = target()
    if not isinstance(target, Dispatcher):
        raise ValueError(f"{reference!r} is not a Dispatcher")
    return target


def build_request(method: str, uri: str, query: List[Tuple[str, str]], data: List[Tuple[str, str]]) -> Request:
    path, _, query_string = uri.partition("?")
    query_values = dict(parse_qsl(query_string, keep_blank_values=True))
    query_values.update(query)

    return Request(
        raw_method=method,
        raw_uri=path or "/",
        query=query_values,
        form=dict(data),
        server={
            "REMOTE_ADDR": "127.0.0.1",
            "SERVER_NAME": "localhost",
            "SERVER_PORT": "80",
            "SERVER_PROTOCOL": "HTTP/1.1",
        },
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpdispatch",
        description="Dispatch a single request through an httpdispatch Dispatcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpdispatch GET /                       # Demo dispatcher
  python -m httpdispatch GET /users/2                # Route parameter
  python -m httpdispatch POST /users --data name=Bo  # Form data
  python -m httpdispatch --routes                    # Route table
  python -m httpdispatch --serve --port 8080         # WSGI dev server
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("method", nargs="?", help="Request method, e.g. GET")
    parser.add_argument("uri", nargs="?", default="/", help="Request URI (default: /)")

    parser.add_argument(
        "--query", "-q",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query string value (repeatable)"
    )

    parser.add_argument(
        "--data", "-d",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Form body value (repeatable)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--app", "-a",
        default=None,
        help="Dispatcher to load as module:attribute (default: built-in demo)"
    )

    parser.add_argument(
        "--routes",
        action="store_true",
        help="Print the route table and exit"
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the dispatcher with the wsgiref development server"
    )

    parser.add_argument("--host", default="127.0.0.1", help="Host for --serve (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=8080, help="Port for --serve (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: DISPATCH_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpdispatch {__version__}"
    )

    return parser


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point. Returns the process exit status.

    Argument errors exit with status 2 through argparse.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = DispatcherConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level
    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))
    configure_logging(config)

    if args.app:
        try:
            dispatcher = load_dispatcher(args.app)
        except ValueError as e:
            parser.error(str(e))
    else:
        dispatcher = build_demo_dispatcher(config)

    if args.routes:
        print(dispatcher.format_routes())
        return 0

    if args.serve:
        from .wsgi import WSGIApp
        WSGIApp(dispatcher).run(args.host, args.port)
        return 0

    if not args.method:
        parser.error("a METHOD is required unless --routes or --serve is given")

    request = build_request(args.method, args.uri, args.query, args.data)
    response = dispatcher.run(request)

    raw = response.to_bytes(dispatcher.config.server_name, head_request=request.method == "HEAD")
    sys.stdout.write(raw.decode("utf-8", errors="replace"))
    sys.stdout.write("\n")
    return 0 if response.status < 400 else 1


if __name__ == "__main__":
    sys.exit(main())

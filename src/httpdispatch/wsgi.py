"""
=============================================================================
WSGI ADAPTER
=============================================================================

Serves a Dispatcher from any PEP 3333 server (gunicorn, uWSGI, wsgiref).

    ┌──────────────┐  environ   ┌─────────┐  Request   ┌────────────┐
    │ WSGI server  │ ─────────► │ WSGIApp │ ─────────► │ Dispatcher │
    │              │ ◄───────── │         │ ◄───────── │   .run()   │
    └──────────────┘  [body]    └─────────┘  Response  └────────────┘

    # app.py
    from httpdispatch import Dispatcher
    from httpdispatch.wsgi import WSGIApp

    dispatcher = Dispatcher()
    ...
    application = WSGIApp(dispatcher)

    $ gunicorn app:application

=============================================================================
"""

from typing import Any, Callable, Iterable, List, Mapping, Tuple
from wsgiref.simple_server import make_server
import logging

from .dispatcher import Dispatcher
from .http.request import Request, RequestParseError
from .http.status_codes import reason_phrase


logger = logging.getLogger(__name__)


StartResponse = Callable[[str, List[Tuple[str, str]]], Any]


class WSGIApp:
    """WSGI callable wrapping one long-lived Dispatcher."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    def wsgi_app(self, environ: Mapping[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        try:
            request = Request.from_environ(
                environ,
                verb_field=self.dispatcher.config.verb_override_field,
            )
        except RequestParseError as e:
            logger.info(f"Rejected request: {e}")
            body = str(e).encode("utf-8")
            start_response(
                f"{e.status_code} {reason_phrase(e.status_code)}",
                [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(body)))],
            )
            return [body]

        response = self.dispatcher.run(request)

        headers, body = response.wire_payload(head_request=request.method == "HEAD")

        start_response(f"{int(response.status)} {response.phrase}", headers)
        return [body]

    __call__ = wsgi_app

    def run(self, host: str = "127.0.0.1", port: int = 8080) -> None:
        """Serve with the stdlib reference server (development only)."""
        with make_server(host, port, self.wsgi_app) as httpd:
            logger.info(f"Serving on http://{host}:{port}")
            try:
                httpd.serve_forever()
            except KeyboardInterrupt:
                logger.info("Shutting down")

"""
=============================================================================
EXAMPLE: REST API ON HTTPDISPATCH
=============================================================================

A small note-taking API showing the pieces working together:

1. Named controllers ((Class, "method") references)
2. Before/after middleware, including a token check that aborts
3. Lifecycle hooks
4. Error callbacks per status code plus a JSON default
5. Serving through the WSGI adapter

    $ python examples/api_app.py
    $ curl http://127.0.0.1:8080/notes
    $ curl -H "X-Token: secret" -d "text=hello" http://127.0.0.1:8080/notes
    $ curl -H "X-Token: secret" -d "verb=delete" http://127.0.0.1:8080/notes/1

=============================================================================
"""

import sys
from pathlib import Path

# Lets the example run from a checkout without `pip install -e .`
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpdispatch import Dispatcher, DispatcherConfig, HTTPError, configure_logging
from httpdispatch.middleware import RequestLogger
from httpdispatch.wsgi import WSGIApp


API_TOKEN = "secret"

# In-memory store; a real application would use a database
notes_db: dict[str, dict] = {
    "1": {"id": "1", "text": "buy milk"},
}


# =============================================================================
# CONTROLLERS
# =============================================================================
# A controller class is constructed with the request, then the named method
# is called with the request again.

class NotesController:
    def __init__(self, request):
        self.request = request

    def index(self, request):
        return list(notes_db.values())

    def show(self, request):
        note = notes_db.get(request.param("id"))
        if note is None:
            raise HTTPError(404, "no such note")
        return note

    def create(self, request):
        text = request.post("text")
        if not text:
            raise HTTPError(400, "text is required")
        note_id = str(len(notes_db) + 1)
        notes_db[note_id] = {"id": note_id, "text": text}
        return notes_db[note_id]

    def destroy(self, request):
        notes_db.pop(request.param("id"), None)
        # Empty result: the dispatcher answers 204 No Content


def build_app() -> Dispatcher:
    app = Dispatcher(DispatcherConfig.from_env())

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================

    RequestLogger(skip_paths=["/health"]).install(app)

    def require_token(request, next_index):
        # Reads stay public; writes need a token
        if request.method == "GET":
            return
        token = request.header("x-token")
        if not token:
            app.abort(499)      # Token Required
        if token != API_TOKEN:
            app.abort(498)      # Invalid Token

    app.middleware(require_token)
    app.after_middleware(lambda request, next_index: app.set_header("Cache-Control", "no-store"))

    # =========================================================================
    # ROUTES
    # =========================================================================
    # /notes/{id} is registered for GET and DELETE separately; a POST to it
    # with verb=delete reaches the DELETE route.

    app.get("/health", lambda request: {"status": "healthy"})
    app.get("/notes", (NotesController, "index"))
    app.post("/notes", (NotesController, "create"))
    app.get("/notes/{id}", (NotesController, "show"))
    app.delete("/notes/{id}", (NotesController, "destroy"))
    app.get("/notes/latest", lambda request: "never reached: /notes/{id} was registered first")

    # =========================================================================
    # HOOKS AND ERROR CALLBACKS
    # =========================================================================

    app.on_error(lambda request: print(f"error {request.response_code} on {request.uri}"))
    app.set_error_callback(499, lambda request: {"error": "send an X-Token header"})
    app.set_default_error_callback(
        lambda request: {"error": request.response_message, "code": request.response_code}
    )

    return app


if __name__ == "__main__":
    config = DispatcherConfig.from_env()
    configure_logging(config)

    dispatcher = build_app()
    print(dispatcher.format_routes())
    WSGIApp(dispatcher).run("127.0.0.1", 8080)

"""
Route table for the browser interface.

Routes are matched on method and exact path, except POST /delete/{id}
which matches on the path prefix. The query string never takes part in
matching.
"""

import html
import json
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from .errors import NotFoundError, ParseError
from .export import ExportFormat, render
from .logger import get_logger
from .models import JobRecord
from .protocol import HttpRequest, HttpResponse
from .query import resolve_date
from .store import JobStore

logger = get_logger()

STATIC_DIR = Path(__file__).parent / "static"
DELETE_PREFIX = "/delete/"


def load_static(name: str) -> str:
    return (STATIC_DIR / name).read_text(encoding="utf-8")


def parse_json_object(body: str) -> Dict[str, str]:
    """
    Parse a flat JSON object with string values.

    Raises:
        ParseError: If the body is not JSON, not an object, or nested
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON body: {e.msg}")
    if not isinstance(data, dict):
        raise ParseError("JSON body must be an object")
    for key, value in data.items():
        if not isinstance(value, str):
            raise ParseError(f"Field '{key}' must be a string")
    return data


def require_field(data: Dict[str, str], name: str) -> str:
    if name not in data:
        raise ParseError(f"Missing required field: {name}")
    return data[name]


def render_rows(records: List[JobRecord]) -> str:
    rows = []
    for job in records:
        delete_button = (
            f'<form action="/delete/{job.id}" method="POST" class="delete-btn-form">'
            '<button type="submit">Delete</button>'
            '</form>'
        )
        rows.append(
            "<tr>"
            f"<td>{job.id}</td>"
            f"<td>{html.escape(job.title)}</td>"
            f"<td>{html.escape(job.description)}</td>"
            f"<td>{job.date.strftime('%d/%m/%Y')}</td>"
            f"<td>{delete_button}</td>"
            "</tr>"
        )
    return "".join(rows)


class Router:
    """Maps (method, path) to handlers that read or change the store."""

    def __init__(self, store: JobStore):
        self.store = store
        self.routes: Dict[Tuple[str, str], Callable[[HttpRequest], HttpResponse]] = {
            ("GET", "/"): self.index,
            ("GET", "/styles.css"): self.stylesheet,
            ("GET", "/create"): self.create_form,
            ("POST", "/create_job"): self.create_job,
            ("POST", "/export"): self.export,
        }

    def dispatch(self, request: HttpRequest) -> HttpResponse:
        """
        Run the handler for request.

        Raises:
            NotFoundError: No route matches
            ParseError: The body or path parameters are malformed
            PersistenceError: The store failed
        """
        path = request.path
        handler = self.routes.get((request.method, path))
        if handler is not None:
            return handler(request)
        if request.method == "POST" and path.startswith(DELETE_PREFIX):
            return self.delete(request)
        raise NotFoundError(f"No route for {request.method} {path}")

    def index(self, request: HttpRequest) -> HttpResponse:
        page = load_static("index.html").replace("{content}", render_rows(self.store.list()))
        return HttpResponse.html(page)

    def stylesheet(self, request: HttpRequest) -> HttpResponse:
        return HttpResponse(status=200, body=load_static("styles.css"), content_type="text/css")

    def create_form(self, request: HttpRequest) -> HttpResponse:
        return HttpResponse.html(load_static("create.html"))

    def create_job(self, request: HttpRequest) -> HttpResponse:
        data = parse_json_object(request.body)
        title = require_field(data, "title").strip()
        description = require_field(data, "description").strip()
        if not title or not description:
            raise ParseError("Title and description must not be empty")
        self.store.add(title, description, resolve_date("today"))
        return HttpResponse.text(200, "Job created successfully")

    def delete(self, request: HttpRequest) -> HttpResponse:
        raw_id = request.path[len(DELETE_PREFIX):].strip("/")
        try:
            job_id = int(raw_id)
        except ValueError:
            raise ParseError(f"Invalid job id: {raw_id!r}")
        self.store.remove(job_id)
        return HttpResponse.redirect("/")

    def export(self, request: HttpRequest) -> HttpResponse:
        data = parse_json_object(request.body)
        try:
            fmt = ExportFormat.parse(require_field(data, "format"))
        except ParseError as e:
            logger.warning("Rejected export request", error=str(e))
            return HttpResponse.text(400, "Invalid format")
        body = render(self.store.list(), fmt)
        return HttpResponse(status=200, body=body, content_type=fmt.content_type)

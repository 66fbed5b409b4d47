"""
Tests for routes.py - the route table against a real store.
"""

import json

import pytest
from datetime import date

from jobtrack.errors import NotFoundError, ParseError
from jobtrack.protocol import ConnectionHandler, HttpRequest
from jobtrack.routes import Router, parse_json_object, render_rows


def post(path: str, payload=None, raw: str = None) -> HttpRequest:
    body = raw if raw is not None else json.dumps(payload)
    return HttpRequest(method="POST", target=path, headers={"content-type": "application/json"},
                       body=body)


def get(path: str) -> HttpRequest:
    return HttpRequest(method="GET", target=path)


class TestStaticRoutes:
    def test_index_lists_jobs(self, populated_store):
        response = Router(populated_store).dispatch(get("/"))
        assert response.status == 200
        assert response.content_type.startswith("text/html")
        assert "{content}" not in response.body
        assert "<td>Backend Engineer</td>" in response.body
        assert "<td>01/03/2024</td>" in response.body
        assert 'action="/delete/1"' in response.body

    def test_index_empty_store(self, router):
        response = router.dispatch(get("/"))
        assert response.status == 200
        assert "<tr><td>" not in response.body

    def test_index_ignores_query_string(self, router):
        assert router.dispatch(get("/?x=1")).status == 200

    def test_stylesheet(self, router):
        response = router.dispatch(get("/styles.css"))
        assert response.status == 200
        assert response.content_type == "text/css"
        assert "table" in response.body

    def test_create_form(self, router):
        response = router.dispatch(get("/create"))
        assert response.status == 200
        assert "/create_job" in response.body


class TestRenderRows:
    def test_html_is_escaped(self, store):
        store.add("<script>alert(1)</script>", "R&D", date(2024, 1, 1))
        rows = render_rows(store.list())
        assert "<script>" not in rows
        assert "&lt;script&gt;" in rows
        assert "R&amp;D" in rows


class TestCreateJob:
    def test_creates_job_dated_today(self, router, store):
        response = router.dispatch(post("/create_job", {"title": "SRE", "description": "On call"}))

        assert response.status == 200
        assert response.body == "Job created successfully"
        jobs = store.list()
        assert len(jobs) == 1
        assert (jobs[0].title, jobs[0].description, jobs[0].date) == ("SRE", "On call", date.today())

    @pytest.mark.parametrize("payload", [
        {"title": "SRE"},
        {"description": "On call"},
        {"title": "", "description": "On call"},
        {"title": "SRE", "description": 5},
    ])
    def test_missing_or_invalid_fields(self, router, store, payload):
        with pytest.raises(ParseError):
            router.dispatch(post("/create_job", payload))
        assert store.list() == []

    def test_invalid_json(self, router):
        with pytest.raises(ParseError):
            router.dispatch(post("/create_job", raw="{not json"))

    def test_json_must_be_object(self, router):
        with pytest.raises(ParseError):
            router.dispatch(post("/create_job", ["SRE", "On call"]))


class TestDelete:
    def test_delete_redirects_and_removes(self, populated_store):
        router = Router(populated_store)
        response = router.dispatch(post("/delete/2", raw=""))

        assert response.status == 303
        assert ("Location", "/") in response.headers
        assert 2 not in [j.id for j in populated_store.list()]
        assert "<td>Data Analyst</td>" not in router.dispatch(get("/")).body

    def test_delete_unknown_id_still_redirects(self, populated_store):
        response = Router(populated_store).dispatch(post("/delete/999", raw=""))
        assert response.status == 303
        assert len(populated_store.list()) == 3

    def test_delete_bad_id(self, router):
        with pytest.raises(ParseError):
            router.dispatch(post("/delete/abc", raw=""))

    def test_delete_requires_post(self, router):
        with pytest.raises(NotFoundError):
            router.dispatch(get("/delete/1"))


class TestExport:
    def test_export_json(self, populated_store):
        response = Router(populated_store).dispatch(post("/export", {"format": "json"}))
        assert response.status == 200
        assert response.content_type == "application/json"
        assert [d["title"] for d in json.loads(response.body)] == [
            "Backend Engineer", "Data Analyst", "engineering manager"
        ]

    def test_export_csv(self, populated_store):
        response = Router(populated_store).dispatch(post("/export", {"format": "csv"}))
        assert response.status == 200
        assert response.content_type == "text/csv"
        assert response.body.splitlines()[0] == "id,title,description,date"

    def test_export_unknown_format(self, populated_store):
        before = populated_store.list()
        response = Router(populated_store).dispatch(post("/export", {"format": "xml"}))
        assert response.status == 400
        assert response.body == "Invalid format"
        assert populated_store.list() == before

    def test_export_missing_format(self, router):
        assert router.dispatch(post("/export", {})).status == 400

    @pytest.mark.parametrize("value, content_type", [("JSON", "application/json"), (" csv ", "text/csv")])
    def test_export_format_ignores_case_and_spaces(self, router, value, content_type):
        response = router.dispatch(post("/export", {"format": value}))
        assert response.status == 200
        assert response.content_type == content_type


class TestDispatch:
    def test_unknown_route(self, router):
        with pytest.raises(NotFoundError):
            router.dispatch(get("/nowhere"))

    def test_wrong_method(self, router):
        with pytest.raises(NotFoundError):
            router.dispatch(get("/create_job"))

    def test_errors_become_responses_through_handler(self, router):
        handler = ConnectionHandler(router)
        assert handler.dispatch(get("/nowhere")).status == 404
        assert handler.dispatch(post("/create_job", {"title": "x"})).status == 400


class TestParseJsonObject:
    def test_flat_object(self):
        assert parse_json_object('{"format": "csv"}') == {"format": "csv"}

    def test_nested_values_rejected(self):
        with pytest.raises(ParseError):
            parse_json_object('{"format": {"type": "csv"}}')

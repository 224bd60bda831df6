"""Tests for building prepared HTTP requests from request models."""

from reqcurl.models import FormField, KeyValue, RequestModel
from reqcurl.prepare import describe_prepared, prepare_request
from tests.conftest import make_form_request, make_request


class TestPrepareRequest:
    def test_raw_body(self):
        prepared = prepare_request(make_request())
        assert prepared.method == "POST"
        assert prepared.url == "https://api.example.com/users"
        assert prepared.headers["Content-Type"] == "application/json"
        assert prepared.headers["Authorization"] == "Bearer abc"
        assert prepared.body == b'{"name":"John"}'

    def test_raw_body_content_type_from_model(self):
        model = make_request(headers=[], content_type="application/xml", body_content="<a/>")
        prepared = prepare_request(model)
        assert prepared.headers["Content-Type"] == "application/xml"

    def test_disabled_headers_skipped(self):
        model = make_request(headers=[KeyValue("X-Debug", "1", enabled=False)])
        assert "X-Debug" not in prepare_request(model).headers

    def test_url_encoded(self):
        model = RequestModel(
            method="POST",
            url="https://api.test/login",
            body_type="url-encoded",
            url_encoded_data=[
                KeyValue("user", "a b"),
                KeyValue("skip", "x", enabled=False),
                KeyValue("pass", "p&w"),
            ],
        )
        prepared = prepare_request(model)
        assert prepared.body == "user=a+b&pass=p%26w"
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_multipart(self, tmp_path):
        upload = tmp_path / "report.txt"
        upload.write_text("quarterly numbers")
        model = make_form_request()
        model.form_data[1].value = str(upload)
        model.headers = [KeyValue("Content-Type", "multipart/form-data")]

        prepared = prepare_request(model)
        assert prepared.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'name="title"' in prepared.body
        assert b"Report" in prepared.body
        assert b'filename="report.txt"' in prepared.body
        assert b"quarterly numbers" in prepared.body
        assert prepared.body.index(b'name="title"') < prepared.body.index(b'name="file"')

    def test_missing_upload_sent_empty(self, tmp_path):
        model = RequestModel(
            method="POST",
            url="https://api.test/upload",
            body_type="form-data",
            form_data=[FormField("doc", str(tmp_path / "nope.pdf"), type="file")],
        )
        prepared = prepare_request(model)
        assert b'filename="nope.pdf"' in prepared.body
        assert b"Content-Type: application/pdf" in prepared.body

    def test_get_has_no_body(self):
        model = make_request(method="GET")
        assert prepare_request(model).body is None

    def test_url_params_applied(self):
        model = RequestModel(
            url="https://api.test/users/{id}?stale=1",
            path_params=[KeyValue("id", "42")],
            query_params=[KeyValue("page", "2")],
        )
        assert prepare_request(model).url == "https://api.test/users/42?page=2"


class TestDescribePrepared:
    def test_request_line_headers_and_body(self):
        text = describe_prepared(prepare_request(make_request()))
        lines = text.splitlines()
        assert lines[0] == "POST https://api.example.com/users"
        assert "Authorization: Bearer abc" in lines
        assert lines[-2] == ""
        assert lines[-1] == '{"name":"John"}'

    def test_no_body(self):
        text = describe_prepared(prepare_request(RequestModel(url="https://api.test/")))
        assert text.splitlines()[0] == "GET https://api.test/"
        assert "\n\n" not in text

    def test_long_body_truncated(self):
        model = make_request(body_content="x" * 50)
        text = describe_prepared(prepare_request(model), max_body=10)
        assert text.endswith("x" * 10 + "... (40 more chars)")

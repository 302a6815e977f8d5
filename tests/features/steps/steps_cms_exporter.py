import csv
import io
import json
import zipfile
from urllib.parse import parse_qs, urlparse

import responses
from behave import given, then, when

from cms_exporter import CmsExporter


def _split(names):
    return [n.strip() for n in names.split(",") if n.strip()]


def _endpoint_url(context, endpoint):
    return context.base + endpoint


@given('a service "{service_id}" with default API key "{key}"')
def step_service(context, service_id, key):
    context.base = f"https://{service_id}.microcms.io/api/v1/"
    context.export_config = {
        "service": {"service_id": service_id},
        "credentials": {"default": key, "overrides": []},
        "endpoints": {"list": [], "object": []},
        "output": {"min_display_s": 0},
    }

    class _Logger:
        def info(self, *args, **kwargs):
            pass

        def error(self, *args, **kwargs):
            pass

    context.logger = _Logger()


@given('a list endpoint "{endpoint}" with {count:d} records')
def step_list_endpoint(context, endpoint, count):
    context.export_config["endpoints"]["list"].append(endpoint)
    records = [{"id": f"{endpoint}-{i}", "n": i} for i in range(count)]

    def callback(request):
        qs = parse_qs(urlparse(request.url).query)
        limit = int(qs["limit"][0])
        offset = int(qs["offset"][0])
        body = {
            "contents": records[offset : offset + limit],
            "totalCount": count,
            "offset": offset,
            "limit": limit,
        }
        return 200, {"Content-Type": "application/json"}, json.dumps(body)

    context.responses.add_callback(
        responses.GET, _endpoint_url(context, endpoint), callback=callback
    )


@given('a list endpoint "{endpoint}" that answers {status:d}')
def step_list_endpoint_error(context, endpoint, status):
    context.export_config["endpoints"]["list"].append(endpoint)
    context.responses.add(
        responses.GET,
        _endpoint_url(context, endpoint),
        json={"message": "error"},
        status=status,
    )


@given('an object endpoint "{endpoint}" returning a record')
def step_object_endpoint(context, endpoint):
    context.export_config["endpoints"]["object"].append(endpoint)
    context.responses.add(
        responses.GET,
        _endpoint_url(context, endpoint),
        json={"siteName": "demo", "links": [{"href": "/"}]},
    )


@given('an object endpoint "{endpoint}" that answers {status:d}')
def step_object_endpoint_error(context, endpoint, status):
    context.export_config["endpoints"]["object"].append(endpoint)
    context.responses.add(
        responses.GET,
        _endpoint_url(context, endpoint),
        json={"message": "error"},
        status=status,
    )


@given('endpoint "{endpoint}" uses API key "{key}"')
def step_override(context, endpoint, key):
    context.export_config["credentials"]["overrides"].append(
        {"endpoint": endpoint, "credential": key}
    )


@when("I run the export")
def step_run(context):
    context.result = CmsExporter(context.export_config, context.logger).run()


@then('the run status is "{status}"')
def step_status(context, status):
    assert context.result.status == status, context.result.message


@then('the archive contains "{names}"')
def step_archive_contains(context, names):
    with zipfile.ZipFile(io.BytesIO(context.result.archive)) as zf:
        assert sorted(zf.namelist()) == sorted(_split(names)), zf.namelist()


@then('"{entry}" has {count:d} data rows')
def step_rows(context, entry, count):
    with zipfile.ZipFile(io.BytesIO(context.result.archive)) as zf:
        text = zf.read(entry).decode("utf-8")
    rows = list(csv.reader(io.StringIO(text, newline="")))
    assert rows[0] == ["id", "n"], rows[0]
    assert len(rows) - 1 == count
    # offset order preserved
    assert [r[1] for r in rows[1:]] == [str(i) for i in range(count)]


@then('the list endpoint "{endpoint}" was requested at offsets "{offsets}"')
def step_offsets(context, endpoint, offsets):
    url = _endpoint_url(context, endpoint)
    seen = sorted(
        int(parse_qs(urlparse(c.request.url).query)["offset"][0])
        for c in context.responses.calls
        if c.request.url.split("?", 1)[0] == url
    )
    assert seen == [int(o) for o in _split(offsets)], seen


@then('the skipped endpoints are "{names}"')
def step_skipped(context, names):
    assert context.result.skipped == _split(names)


@then('endpoint "{endpoint}" was requested with API key "{key}"')
def step_key(context, endpoint, key):
    url = _endpoint_url(context, endpoint)
    keys = {
        c.request.headers["X-MICROCMS-API-KEY"]
        for c in context.responses.calls
        if c.request.url.split("?", 1)[0] == url
    }
    assert keys == {key}, keys


@then("no archive is produced")
def step_no_archive(context):
    assert context.result.archive is None
    assert context.result.filename is None


@then('one failure groups "{names}"')
def step_failure_group(context, names):
    assert len(context.result.failures) == 1
    assert sorted(context.result.failures[0].endpoints) == sorted(_split(names))

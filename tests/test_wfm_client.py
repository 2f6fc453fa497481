import httpx
import pytest

from inventory_app.core.errors import AuthExpired, ExternalRejected, ExternalUnavailable
from inventory_app.integrations.config_provider import StaticConfigProvider, parse_token_value
from inventory_app.integrations.wfm_client import WfmClient, extract_external_id


async def _no_sleep(delay):
    return None


def _client(handler, provider=None, max_retries=2):
    provider = provider or StaticConfigProvider(token="token-1")
    return WfmClient(
        provider,
        base_url="https://wfm.test/v2",
        account_id="acct-1",
        max_retries=max_retries,
        retry_base_delay=0,
        transport=httpx.MockTransport(handler),
        sleep=_no_sleep,
    )


class TestTokenRefresh:
    async def test_rotated_token_is_picked_up_after_one_401(self):
        provider = StaticConfigProvider(token="old")
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer old":
                provider.rotate("new")  # external refresh happened meanwhile
                return httpx.Response(401, json={"error": "expired"})
            return httpx.Response(200, json={"Status": "OK", "Job": {"UUID": "J000123"}})

        client = _client(handler, provider)
        body = await client.create_job({"Name": "Rewire"})

        assert extract_external_id(body) == "J000123"
        assert seen == ["Bearer old", "Bearer new"]
        assert provider.token_reads == 2

    async def test_second_auth_failure_is_fatal(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"error": "expired"})

        with pytest.raises(AuthExpired):
            await _client(handler).create_job({"Name": "Rewire"})
        assert len(calls) == 2

    async def test_account_header_is_sent(self):
        def handler(request):
            assert request.headers["account_id"] == "acct-1"
            assert request.url.path == "/v2/job.api/add"
            return httpx.Response(200, json={"Job": {"ID": "J1"}})

        await _client(handler).create_job({"Name": "Rewire"})


class TestFailureClasses:
    async def test_rate_limit_is_retried(self):
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"Job": {"ID": "J2"}}),
        ])

        body = await _client(lambda request: next(responses)).create_job({"Name": "Rewire"})
        assert body["Job"]["ID"] == "J2"

    async def test_persistent_outage_is_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(ExternalUnavailable):
            await _client(handler, max_retries=2).create_job({"Name": "Rewire"})
        assert len(calls) == 3

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ExternalUnavailable):
            await _client(handler, max_retries=1).list_jobs()

    async def test_validation_failure_is_rejected_with_detail(self):
        def handler(request):
            return httpx.Response(400, json={"ErrorDescription": "Client not found"})

        with pytest.raises(ExternalRejected) as exc_info:
            await _client(handler).create_job({"Name": "Rewire"})
        assert exc_info.value.details == "Client not found"
        assert exc_info.value.status == 400

    async def test_error_status_in_ok_response_is_rejected(self):
        def handler(request):
            return httpx.Response(200, json={"Status": "ERROR", "ErrorDescription": "Invalid date"})

        with pytest.raises(ExternalRejected):
            await _client(handler).create_job({"Name": "Rewire"})

    async def test_non_json_success_body_is_rejected(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>maintenance</html>", headers={"Content-Type": "text/html"})

        with pytest.raises(ExternalRejected) as exc_info:
            await _client(handler).create_job({"Name": "Rewire"})
        assert exc_info.value.status == 200
        assert "maintenance" in exc_info.value.details
        assert len(calls) == 1


class TestResponseParsing:
    async def test_list_jobs_shapes(self):
        def handler(request):
            return httpx.Response(200, json={"Jobs": {"Job": [{"ID": "J1"}, {"ID": "J2"}]}})

        jobs = await _client(handler).list_jobs()
        assert [j["ID"] for j in jobs] == ["J1", "J2"]

    def test_malformed_external_ids_are_ignored(self):
        assert extract_external_id({"Job": {"ID": "J1 ; DROP"}}) is None
        assert extract_external_id({"Job": {"ID": ""}}) is None
        assert extract_external_id("not a dict") is None
        assert extract_external_id({"uuid": "3f1c-77aa"}) == "3f1c-77aa"

    def test_token_parameter_formats(self):
        assert parse_token_value("abc") == "abc"
        assert parse_token_value('{"access_token": "xyz", "expires_in": 1800}') == "xyz"

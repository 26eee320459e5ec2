"""Tests for UnraidClient query execution and variant fallback."""

from __future__ import annotations

from typing import Any

import pytest
from aioresponses import aioresponses
from conftest import (
    API_KEY,
    BASE_URL,
    ENDPOINT,
    graphql_router,
    schema_error,
    sent_documents,
)

from unraid_control import ConfigStore, UnraidClient
from unraid_control.client import (
    QueryVariant,
    extract_error_message,
    is_auth_failure,
    is_schema_mismatch,
)
from unraid_control.exceptions import (
    UnraidAPIError,
    UnraidAuthenticationError,
    UnraidConnectionError,
    UnraidMissingCredentialError,
    UnraidSchemaMismatchError,
)
from unraid_control.transport import TrustPolicy

VARIANTS = (
    QueryVariant(name="newest", document="query { newest { a } }"),
    QueryVariant(name="middle", document="query { middle { b } }"),
    QueryVariant(
        name="oldest",
        document="query { oldest { c } }",
        extract=lambda data: data["oldest"]["c"],
    ),
)


class TestErrorHelpers:
    """Tests for GraphQL error classification helpers."""

    @pytest.mark.parametrize(
        "message",
        [
            'Cannot query field "parityCheckStatus" on type "UnraidArray".',
            'Unknown type "PrefixedID".',
            'Unknown argument "id" on field "Mutation.start".',
            'Field "containerAction" is not defined by type "DockerMutations".',
        ],
    )
    def test_schema_mismatch_messages(self, message: str) -> None:
        """Test field and type validation errors are schema mismatches."""
        assert is_schema_mismatch([{"message": message}]) is True

    def test_schema_mismatch_by_code(self) -> None:
        """Test the validation error code alone is enough."""
        errors = [{"message": "x", "extensions": {"code": "GRAPHQL_VALIDATION_FAILED"}}]

        assert is_schema_mismatch(errors) is True

    def test_operational_error_is_not_mismatch(self) -> None:
        """Test runtime failures are not mistaken for schema mismatches."""
        assert is_schema_mismatch([{"message": "Container is already started"}]) is False
        assert is_schema_mismatch([{"message": "Container ct:1 does not exist"}]) is False
        assert is_schema_mismatch([{"message": "No such field in share config"}]) is False
        assert is_schema_mismatch([]) is False

    def test_auth_failure(self) -> None:
        """Test rejected credentials are recognized."""
        assert is_auth_failure([{"message": "Invalid API key"}]) is True
        assert is_auth_failure([{"message": "x", "extensions": {"code": "FORBIDDEN"}}])
        assert is_auth_failure([{"message": "Array is not started"}]) is False

    def test_extract_error_message(self) -> None:
        """Test a message is found in the common envelopes."""
        assert extract_error_message({"errors": [{"message": "a"}, {"message": "b"}]}) == "a; b"
        assert extract_error_message({"message": "Bad Gateway"}) == "Bad Gateway"
        assert extract_error_message({"raw": "<html>oops</html>"}) == "<html>oops</html>"
        assert extract_error_message({}) is None


class TestQuery:
    """Tests for UnraidClient.query."""

    async def test_query_success(self, client: UnraidClient) -> None:
        """Test successful query returns the data object."""
        with aioresponses() as m:
            m.post(ENDPOINT, payload={"data": {"online": True}})

            result = await client.query(BASE_URL, "query { online }")

        assert result == {"online": True}

    async def test_query_sends_api_key_and_variables(self, client: UnraidClient) -> None:
        """Test the API key header and variables are sent."""
        with aioresponses() as m:
            m.post(ENDPOINT, payload={"data": {"vm": {"start": True}}})

            await client.query(BASE_URL + "/", "mutation { x }", {"id": "vm:1"})

            call = next(iter(m.requests.values()))[0]

        assert call.kwargs["headers"]["x-api-key"] == API_KEY
        assert call.kwargs["json"] == {"query": "mutation { x }", "variables": {"id": "vm:1"}}

    async def test_missing_credential_before_io(self, store: ConfigStore) -> None:
        """Test a host without API key fails without sending a request."""
        store.set_credential(BASE_URL, "")
        async with UnraidClient(store, retries=0) as client:
            with aioresponses() as m:
                with pytest.raises(UnraidMissingCredentialError):
                    await client.query(BASE_URL, "query { online }")

                assert m.requests == {}

    @pytest.mark.parametrize("status", [401, 403])
    async def test_http_auth_error(self, client: UnraidClient, status: int) -> None:
        """Test 401 and 403 raise an authentication error."""
        with aioresponses() as m:
            m.post(ENDPOINT, status=status, payload={"message": "Forbidden"})

            with pytest.raises(UnraidAuthenticationError):
                await client.query(BASE_URL, "query { online }")

    async def test_graphql_auth_error(self, client: UnraidClient) -> None:
        """Test a 200 response carrying an auth error raises."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                payload={
                    "data": None,
                    "errors": [
                        {"message": "Unauthorized", "extensions": {"code": "UNAUTHENTICATED"}}
                    ],
                },
            )

            with pytest.raises(UnraidAuthenticationError):
                await client.query(BASE_URL, "query { online }")

    async def test_partial_data_returned(self, client: UnraidClient) -> None:
        """Test data with non-auth errors is returned."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                payload={
                    "data": {"info": {"os": {"hostname": "tower"}}},
                    "errors": [{"message": "Failed to read uptime", "path": ["info"]}],
                },
            )

            result = await client.query(BASE_URL, "query { info { os { hostname } } }")

        assert result == {"info": {"os": {"hostname": "tower"}}}

    async def test_null_field_with_error_raises(self, client: UnraidClient) -> None:
        """Test a requested field that came back null because of an error fails."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                payload={
                    "data": {"docker": None},
                    "errors": [
                        {"message": "Docker daemon is not running", "path": ["docker"]}
                    ],
                },
            )

            with pytest.raises(UnraidAPIError, match="Docker daemon is not running"):
                await client.query(BASE_URL, "query { docker { containers { id } } }")

    async def test_failed_field_next_to_good_field_raises(
        self, client: UnraidClient
    ) -> None:
        """Test an error path naming a null field fails the whole document."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                payload={
                    "data": {"info": {"os": {"hostname": "tower"}}, "array": None},
                    "errors": [{"message": "Array unavailable", "path": ["array", "state"]}],
                },
            )

            with pytest.raises(UnraidAPIError, match="Array unavailable"):
                await client.query(
                    BASE_URL, "query { info { os { hostname } } array { state } }"
                )

    async def test_mutation_errors_raise_despite_data(self, client: UnraidClient) -> None:
        """Test mutations never treat errors as a partial success."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                payload={
                    "data": {"vm": {"start": False}},
                    "errors": [{"message": "Domain failed to start"}],
                },
            )

            with pytest.raises(UnraidAPIError, match="Domain failed") as exc_info:
                await client.mutate(BASE_URL, "mutation { vm { start(id: 1) } }")

        assert not isinstance(exc_info.value, UnraidSchemaMismatchError)

    async def test_schema_mismatch_on_200(self, client: UnraidClient) -> None:
        """Test validation errors without data raise a schema mismatch."""
        with aioresponses() as m:
            m.post(ENDPOINT, payload=schema_error("metrics"))

            with pytest.raises(UnraidSchemaMismatchError):
                await client.query(BASE_URL, "query { metrics { cpu } }")

    async def test_schema_mismatch_on_400(self, client: UnraidClient) -> None:
        """Test validation errors on HTTP 400 raise a schema mismatch."""
        with aioresponses() as m:
            m.post(ENDPOINT, status=400, payload=schema_error("metrics"))

            with pytest.raises(UnraidSchemaMismatchError):
                await client.query(BASE_URL, "query { metrics { cpu } }")

    async def test_http_error(self, client: UnraidClient) -> None:
        """Test other HTTP errors raise a plain API error with a message."""
        with aioresponses() as m:
            m.post(ENDPOINT, status=502, body="Bad Gateway")

            with pytest.raises(UnraidAPIError) as exc_info:
                await client.query(BASE_URL, "query { online }")

        assert not isinstance(exc_info.value, UnraidSchemaMismatchError)
        assert "HTTP 502" in str(exc_info.value)
        assert "Bad Gateway" in str(exc_info.value)

    async def test_graphql_error_without_data(self, client: UnraidClient) -> None:
        """Test operational GraphQL errors are hard failures."""
        with aioresponses() as m:
            m.post(ENDPOINT, payload={"data": None, "errors": [{"message": "Array is busy"}]})

            with pytest.raises(UnraidAPIError) as exc_info:
                await client.query(BASE_URL, "query { online }")

        assert not isinstance(exc_info.value, UnraidSchemaMismatchError)
        assert "Array is busy" in str(exc_info.value)

    async def test_unexpected_response(self, client: UnraidClient) -> None:
        """Test a 200 response without data raises."""
        with aioresponses() as m:
            m.post(ENDPOINT, body="not json")

            with pytest.raises(UnraidAPIError, match="Unexpected GraphQL response"):
                await client.query(BASE_URL, "query { online }")

    async def test_connection_error(self, client: UnraidClient) -> None:
        """Test transport failures surface as connection errors."""
        with aioresponses():
            with pytest.raises(UnraidConnectionError):
                await client.query(BASE_URL, "query { online }")


class TestExecute:
    """Tests for variant fallback."""

    async def test_first_variant_answers(self, client: UnraidClient) -> None:
        """Test the first variant is used when the schema supports it."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                callback=graphql_router({"newest": {"data": {"newest": {"a": 1}}}}),
                repeat=True,
            )

            result = await client.execute(BASE_URL, VARIANTS)

            assert len(sent_documents(m)) == 1

        assert result.index == 0
        assert result.variant.name == "newest"
        assert result.data == {"newest": {"a": 1}}

    async def test_falls_back_in_order(self, client: UnraidClient) -> None:
        """Test variants are tried in order until one is accepted."""
        with aioresponses() as m:
            m.post(
                ENDPOINT,
                callback=graphql_router({"oldest": {"data": {"oldest": {"c": 3}}}}),
                repeat=True,
            )

            result = await client.execute(BASE_URL, VARIANTS)

            documents = sent_documents(m)

        assert documents == [variant.document for variant in VARIANTS]
        assert result.index == 2
        assert result.extract() == 3

    async def test_all_variants_mismatch(self, client: UnraidClient) -> None:
        """Test the last schema mismatch is raised when nothing matches."""
        with aioresponses() as m:
            m.post(ENDPOINT, callback=graphql_router({}), repeat=True)

            with pytest.raises(UnraidSchemaMismatchError):
                await client.execute(BASE_URL, VARIANTS)

            assert len(sent_documents(m)) == len(VARIANTS)

    @pytest.mark.parametrize(
        "answer",
        [
            (401, {"message": "Unauthorized"}),
            (500, {"message": "Internal error"}),
            {"data": None, "errors": [{"message": "Array is busy"}]},
        ],
    )
    async def test_hard_error_stops_fallback(
        self, client: UnraidClient, answer: Any
    ) -> None:
        """Test non-schema errors are raised without trying older variants."""
        with aioresponses() as m:
            m.post(ENDPOINT, callback=graphql_router({"newest": answer}), repeat=True)

            with pytest.raises(UnraidAPIError) as exc_info:
                await client.execute(BASE_URL, VARIANTS)

            assert len(sent_documents(m)) == 1

        assert not isinstance(exc_info.value, UnraidSchemaMismatchError)

    async def test_empty_variants(self, client: UnraidClient) -> None:
        """Test an empty variant list is rejected."""
        with pytest.raises(ValueError):
            await client.execute(BASE_URL, ())


class TestTrustPolicySetting:
    """Tests for the runtime trust policy switch."""

    async def test_policy_change_applies_to_next_request(
        self, client: UnraidClient
    ) -> None:
        """Test changing the policy affects subsequent requests."""
        with aioresponses() as m:
            m.post(ENDPOINT, payload={"data": {"online": True}}, repeat=True)

            await client.query(BASE_URL, "query { online }")
            client.trust_policy = TrustPolicy(allow_self_signed=True)
            await client.query(BASE_URL, "query { online }")

            calls = next(iter(m.requests.values()))

        assert [call.kwargs["ssl"] for call in calls] == [True, False]
        assert client.trust_policy.allow_self_signed is True

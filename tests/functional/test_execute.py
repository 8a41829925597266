"""Functional tests for code execution against a live service."""

import asyncio

import pytest

pytestmark = pytest.mark.functional


class TestHealth:
    """Tests for GET /."""

    @pytest.mark.asyncio
    async def test_liveness(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_engine_connected(self, async_client):
        response = await async_client.get("/health/engine")
        assert response.status_code == 200, response.text


class TestLanguages:
    """Run a snippet in each language."""

    @pytest.mark.asyncio
    async def test_snippet(self, async_client, language_test_case):
        response = await async_client.post(
            "/api/execute",
            json={"language": language_test_case["lang"], "code": language_test_case["code"]},
        )
        assert response.status_code == 200, response.text
        assert language_test_case["expected_output"] in response.json()["output"]


class TestBehavior:
    """End-to-end behavior of a single job."""

    @pytest.mark.asyncio
    async def test_stdin(self, async_client):
        response = await async_client.post(
            "/api/execute",
            json={
                "language": "python",
                "code": "a, b = map(int, input().split())\nprint(a + b)",
                "input": "5 7\n",
            },
        )
        assert response.status_code == 200, response.text
        assert response.json()["output"].strip() == "12"

    @pytest.mark.asyncio
    async def test_stderr_on_success(self, async_client):
        response = await async_client.post(
            "/api/execute",
            json={
                "language": "python",
                "code": "import sys\nprint('out')\nprint('err', file=sys.stderr)",
            },
        )
        assert response.status_code == 200
        assert response.json() == {"output": "out\n", "error": "err\n"}

    @pytest.mark.asyncio
    async def test_compile_error(self, async_client):
        response = await async_client.post(
            "/api/execute", json={"language": "c", "code": "int main( { return 0; }"}
        )
        assert response.status_code == 500
        assert "error" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_timeout(self, async_client):
        response = await async_client.post(
            "/api/execute", json={"language": "python", "code": "while True:\n    pass"}
        )
        assert response.status_code == 500
        assert response.json()["error_type"] == "timeout"

    @pytest.mark.asyncio
    async def test_concurrent_jobs(self, async_client):
        responses = await asyncio.gather(
            *(
                async_client.post(
                    "/api/execute",
                    json={"language": "python", "code": f"print({i} * 2)"},
                )
                for i in range(4)
            )
        )
        assert [r.json()["output"].strip() for r in responses] == ["0", "2", "4", "6"]

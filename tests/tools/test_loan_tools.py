"""
Tests for the loan MCP tools.

1. Input validation
2. Success responses carry text content and structured data
3. Coordinator errors come back as ``isError`` responses
"""

import pytest

from peer_library.models import CopyStatus
from peer_library.tools import all_tools
from peer_library.tools.loans import (
    create_loan_handler,
    list_loans_handler,
    return_loan_handler,
)


class TestCreateLoanTool:
    async def test_defaults_dates_from_clock_and_config(self, services, shelf, catalog):
        library, _, copy, contact = shelf

        result = await create_loan_handler(
            {"copy_id": copy.id, "contact_id": contact.id, "library_id": library.id}
        )

        assert "isError" not in result
        loan = result["data"]["loan"]
        assert loan["loan_date"] == "2024-03-01"
        assert loan["due_date"] == "2024-03-15"
        assert "due March 15, 2024" in result["content"][0]["text"]
        assert catalog.copy_status(copy.id) == CopyStatus.BORROWED

    async def test_borrowed_copy(self, services, shelf):
        library, _, copy, contact = shelf
        arguments = {"copy_id": copy.id, "contact_id": contact.id, "library_id": library.id}
        await create_loan_handler(arguments)

        result = await create_loan_handler(arguments)

        assert result["isError"] is True
        assert result["content"][0]["text"] == "Invalid state: Copy is currently borrowed"

    async def test_missing_copy(self, services, shelf):
        library, _, _, contact = shelf

        result = await create_loan_handler(
            {"copy_id": 999, "contact_id": contact.id, "library_id": library.id}
        )

        assert result["isError"] is True
        assert result["content"][0]["text"].startswith("Not found")

    @pytest.mark.parametrize(
        "arguments",
        [
            {"contact_id": 1, "library_id": 1},
            {"copy_id": "abc", "contact_id": 1, "library_id": 1},
            {
                "copy_id": 1,
                "contact_id": 1,
                "library_id": 1,
                "loan_date": "2024-03-10",
                "due_date": "2024-03-01",
            },
        ],
    )
    async def test_invalid_parameters(self, services, arguments):
        result = await create_loan_handler(arguments)

        assert result["isError"] is True
        assert result["content"][0]["text"].startswith("Invalid parameters")


class TestReturnLoanTool:
    async def test_return_then_repeat(self, services, shelf, catalog):
        library, _, copy, contact = shelf
        loan = catalog.loan(copy.id, contact.id, library.id)

        first = await return_loan_handler({"loan_id": loan.id})
        second = await return_loan_handler({"loan_id": loan.id})

        assert first["data"]["loan"]["status"] == "returned"
        assert catalog.copy_status(copy.id) == CopyStatus.AVAILABLE
        assert second["isError"] is True
        assert "already returned" in second["content"][0]["text"]

    async def test_missing_loan(self, services):
        result = await return_loan_handler({"loan_id": 404})

        assert result["isError"] is True


class TestListLoansTool:
    async def test_lists_with_names(self, services, shelf, catalog):
        library, book, copy, contact = shelf
        catalog.loan(copy.id, contact.id, library.id)

        result = await list_loans_handler({"status": "active"})

        assert result["data"]["total"] == 1
        assert result["data"]["loans"][0]["contact_name"] == contact.name
        assert f"'{book.title}' to {contact.name}" in result["content"][0]["text"]

    async def test_empty(self, services):
        result = await list_loans_handler({})

        assert result["data"] == {"loans": [], "total": 0}
        assert result["content"][0]["text"] == "Found 0 loan(s)"


class TestToolRegistry:
    def test_tool_definitions(self):
        names = [tool["name"] for tool in all_tools]

        assert names == [
            "create_loan",
            "return_loan",
            "list_loans",
            "request_book",
            "update_request_status",
            "sync_peer",
            "search_network",
        ]
        for tool in all_tools:
            assert tool["description"]
            assert tool["inputSchema"]["type"] == "object"
            assert callable(tool["handler"])

"""Unit tests for Repository."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from roomsplit import schema
from roomsplit.exceptions import (
    BillExistsError,
    GroupExistsError,
    StoreUnavailable,
    ValidationError,
)
from roomsplit.models import MemberRole, Share, User
from roomsplit.repository import Repository


def _client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def bill_with_shares(repo, alice):
    """A bill where u1 owes 10 (pending) and u2 has paid 5."""
    return repo.create_bill(
        "grp-1",
        "bill-1",
        alice,
        description="Groceries",
        amount=15,
        due_date="2024-03-01",
        shares=[Share("u1", 10, "pending"), Share("u2", 5, "paid")],
    )


class TestTableOperations:
    def test_create_table_twice_is_harmless(self, repo):
        repo.create_table()  # No exception

    def test_delete_table(self, repo):
        repo.delete_table()
        repo.delete_table()  # Already gone, no exception

    def test_injected_client_is_not_closed(self):
        client = MagicMock()
        repo = Repository("t", client=client)
        repo.close()
        client.close.assert_not_called()


class TestGroups:
    def test_create_then_get_has_owner_as_only_member(self, repo, alice):
        created = repo.create_group("grp-1", alice, "Flat 4B")
        group = repo.get_group("grp-1")

        assert group == created
        assert group.name == "Flat 4B"
        assert group.created_by == "alice"
        assert len(group.members) == 1
        owner = group.members[0]
        assert owner.user_id == "alice"
        assert owner.email == "alice@example.com"
        assert owner.name == "Alice"
        assert owner.role == MemberRole.OWNER
        assert owner.joined_at == group.created_at

    def test_timestamps_are_utc_isoformat(self, repo, alice, bob):
        group = repo.create_group("grp-1", alice, "Flat 4B")
        joined = repo.add_member("grp-1", bob).members[1].joined_at

        for stamp in (group.created_at, joined):
            assert datetime.fromisoformat(stamp).utcoffset() == timedelta(0)
        assert datetime.fromisoformat(joined) >= datetime.fromisoformat(group.created_at)

    def test_create_twice_raises_and_keeps_first(self, repo, alice, bob):
        repo.create_group("grp-1", alice, "Flat 4B")

        with pytest.raises(GroupExistsError) as exc_info:
            repo.create_group("grp-1", bob, "Hijacked")

        assert exc_info.value.group_id == "grp-1"
        group = repo.get_group("grp-1")
        assert group.name == "Flat 4B"
        assert [m.user_id for m in group.members] == ["alice"]

    def test_creator_without_email(self, repo):
        group = repo.create_group("grp-1", User("carol"), "Solo")
        assert repo.get_group("grp-1").members[0].email is None
        assert group.members[0].name is None

    def test_get_missing_group(self, repo):
        assert repo.get_group("grp-missing") is None

    def test_get_group_invalid_id(self, repo):
        with pytest.raises(ValidationError):
            repo.get_group("GROUP#x")

    def test_add_member_appends_one_entry(self, repo, alice, bob):
        repo.create_group("grp-1", alice, "Flat 4B")

        updated = repo.add_member("grp-1", bob)

        assert updated is not None
        group = repo.get_group("grp-1")
        assert group == updated
        assert len(group.members) == 2
        new_member = group.members[1]
        assert new_member.user_id == "bob"
        assert new_member.email == "bob@example.com"
        assert new_member.role == MemberRole.MEMBER
        assert new_member.joined_at is not None

    def test_add_member_explicit_role(self, repo, alice, bob):
        repo.create_group("grp-1", alice, "Flat 4B")
        group = repo.add_member("grp-1", bob, role=MemberRole.OWNER)
        assert group.role_of("bob") == MemberRole.OWNER

    def test_add_member_twice_appends_duplicate(self, repo, alice, bob):
        repo.create_group("grp-1", alice, "Flat 4B")
        repo.add_member("grp-1", bob)
        repo.add_member("grp-1", bob)

        members = repo.get_group("grp-1").members
        assert [m.user_id for m in members] == ["alice", "bob", "bob"]

    def test_add_member_missing_group_creates_nothing(self, repo, bob):
        assert repo.add_member("grp-missing", bob) is None
        assert repo.get_group("grp-missing") is None

    def test_list_groups_for_user_with_roles(self, repo, alice, bob):
        repo.create_group("grp-1", alice, "Flat 4B")
        repo.create_group("grp-2", bob, "Cabin")
        repo.add_member("grp-2", alice)
        repo.create_bill("grp-1", "bill-1", alice, description="Rent", amount=100)

        alice_groups = {m.group.group_id: m.role for m in repo.list_groups_for_user("alice")}
        bob_groups = {m.group.group_id: m.role for m in repo.list_groups_for_user("bob")}

        assert alice_groups == {"grp-1": MemberRole.OWNER, "grp-2": MemberRole.MEMBER}
        assert bob_groups == {"grp-2": MemberRole.OWNER}
        assert repo.list_groups_for_user("carol") == []

    def test_list_groups_follows_pagination(self):
        client = MagicMock()
        page_item = {
            "PK": {"S": "GROUP#grp-0"},
            "SK": {"S": "DETAILS"},
            "name": {"S": "Flat"},
            "createdBy": {"S": "alice"},
            "createdAt": {"S": "2024-01-01T00:00:00Z"},
            "members": {
                "L": [{"M": {"userId": {"S": "alice"}, "role": {"S": "owner"}}}],
            },
        }

        def item(n: int) -> dict:
            return {**page_item, "PK": {"S": f"GROUP#grp-{n}"}}

        client.scan.side_effect = [
            {"Items": [item(1)], "LastEvaluatedKey": {"PK": {"S": "GROUP#grp-1"}}},
            {"Items": [item(2)]},
        ]
        repo = Repository("t", client=client)

        memberships = repo.list_groups_for_user("alice")

        assert [m.group.group_id for m in memberships] == ["grp-1", "grp-2"]
        assert client.scan.call_count == 2
        second_call = client.scan.call_args_list[1].kwargs
        assert second_call["ExclusiveStartKey"] == {"PK": {"S": "GROUP#grp-1"}}


class TestBills:
    def test_create_then_get(self, repo, bill_with_shares):
        bill = repo.get_bill("grp-1", "bill-1")

        assert bill == bill_with_shares
        assert bill.description == "Groceries"
        assert bill.amount == 15
        assert bill.due_date == "2024-03-01"
        assert bill.created_by == "alice"
        assert [s.to_dict() for s in bill.shares] == [
            {"userId": "u1", "amount": 10, "status": "pending"},
            {"userId": "u2", "amount": 5, "status": "paid"},
        ]

    def test_create_defaults(self, repo, alice):
        repo.create_bill("grp-1", "bill-1", alice, description="Wifi", amount=30.5)

        bill = repo.get_bill("grp-1", "bill-1")
        assert bill.shares == []
        assert bill.due_date is None
        assert bill.amount == 30.5

    def test_amounts_are_independent(self, repo, alice):
        repo.create_bill(
            "grp-1", "bill-1", alice, description="Odd", amount=10, shares=[Share("u1", 99)]
        )
        bill = repo.get_bill("grp-1", "bill-1")
        assert bill.amount == 10
        assert bill.shares[0].amount == 99

    def test_create_twice_raises(self, repo, alice, bill_with_shares):
        with pytest.raises(BillExistsError):
            repo.create_bill("grp-1", "bill-1", alice, description="Again", amount=1)
        assert repo.get_bill("grp-1", "bill-1").description == "Groceries"

    def test_get_missing_bill(self, repo):
        assert repo.get_bill("grp-1", "bill-missing") is None

    def test_list_bills_for_group(self, repo, alice):
        repo.create_group("grp-1", alice, "Flat 4B")
        repo.create_bill("grp-1", "bill-b", alice, description="Second", amount=2)
        repo.create_bill("grp-1", "bill-a", alice, description="First", amount=1)
        repo.create_bill("grp-2", "bill-c", alice, description="Elsewhere", amount=3)

        bills = repo.list_bills_for_group("grp-1")

        assert [b.bill_id for b in bills] == ["bill-a", "bill-b"]
        assert all(b.group_id == "grp-1" for b in bills)

    def test_list_bills_empty_group(self, repo):
        assert repo.list_bills_for_group("grp-none") == []

    def test_scan_bills_skips_group_details(self, repo, alice):
        repo.create_group("grp-1", alice, "Flat 4B")
        repo.create_bill("grp-1", "bill-1", alice, description="Rent", amount=1)
        repo.create_bill("grp-2", "bill-2", alice, description="Rent", amount=2)

        bills = repo.scan_bills()

        assert sorted((b.group_id, b.bill_id) for b in bills) == [
            ("grp-1", "bill-1"),
            ("grp-2", "bill-2"),
        ]


class TestUpdateShareStatus:
    def test_updates_only_targeted_share(self, repo, bill_with_shares):
        updated = repo.update_share_status("grp-1", "bill-1", "u1", "paid")

        bill = repo.get_bill("grp-1", "bill-1")
        assert updated == bill
        assert bill.shares[0].status == "paid"
        assert bill.shares[0].amount == 10
        assert bill.shares[1].to_dict() == {"userId": "u2", "amount": 5, "status": "paid"}
        assert bill.description == "Groceries"

    def test_missing_bill_returns_none(self, repo):
        assert repo.update_share_status("grp-1", "bill-missing", "u1", "paid") is None
        assert repo.get_bill("grp-1", "bill-missing") is None

    def test_missing_share_leaves_bill_unchanged(self, repo, bill_with_shares):
        assert repo.update_share_status("grp-1", "bill-1", "u3", "paid") is None
        assert repo.get_bill("grp-1", "bill-1") == bill_with_shares

    def test_first_matching_share_only(self, repo, alice):
        repo.create_bill(
            "grp-1",
            "bill-1",
            alice,
            description="Dup",
            amount=2,
            shares=[Share("u1", 1), Share("u1", 1)],
        )
        bill = repo.update_share_status("grp-1", "bill-1", "u1", "paid")
        assert [s.status for s in bill.shares] == ["paid", "pending"]

    def test_concurrent_update_to_other_share_survives(self, repo, bill_with_shares):
        client = repo._get_client()
        real_update = client.update_item

        def concurrent_writer(**kwargs):
            # Another request changes u2's share in between
            real_update(
                TableName=repo.table_name,
                Key=kwargs["Key"],
                UpdateExpression="SET #shares[1].#status = :status",
                ExpressionAttributeNames={"#shares": "shares", "#status": "status"},
                ExpressionAttributeValues={":status": {"S": "disputed"}},
            )
            return real_update(**kwargs)

        with patch.object(client, "update_item", side_effect=concurrent_writer):
            repo.update_share_status("grp-1", "bill-1", "u1", "paid")

        statuses = [s.status for s in repo.get_bill("grp-1", "bill-1").shares]
        assert statuses == ["paid", "disputed"]

    def test_lost_condition_is_retried(self, repo, bill_with_shares):
        client = repo._get_client()
        real_update = client.update_item
        calls = []

        def flaky(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise _client_error("ConditionalCheckFailedException")
            return real_update(**kwargs)

        with patch.object(client, "update_item", side_effect=flaky):
            bill = repo.update_share_status("grp-1", "bill-1", "u1", "paid")

        assert len(calls) == 2
        assert bill.shares[0].status == "paid"

    def test_condition_never_holds(self, repo, bill_with_shares):
        client = repo._get_client()
        with patch.object(
            client,
            "update_item",
            side_effect=_client_error("ConditionalCheckFailedException"),
        ):
            with pytest.raises(StoreUnavailable, match="lost its condition 3 times"):
                repo.update_share_status("grp-1", "bill-1", "u1", "paid")

        assert repo.get_bill("grp-1", "bill-1").shares[0].status == "pending"


class TestStoreFailures:
    def test_client_error_becomes_store_unavailable(self):
        client = MagicMock()
        client.get_item.side_effect = _client_error(
            "ProvisionedThroughputExceededException", "GetItem"
        )
        repo = Repository("roomsplit", client=client)

        with pytest.raises(StoreUnavailable) as exc_info:
            repo.get_group("grp-1")

        error = exc_info.value
        assert error.operation == "get_group"
        assert error.table_name == "roomsplit"
        assert isinstance(error.cause, ClientError)
        assert "ProvisionedThroughputExceededException" in str(error)

    def test_connection_error_becomes_store_unavailable(self):
        client = MagicMock()
        client.put_item.side_effect = EndpointConnectionError(endpoint_url="http://nowhere")
        repo = Repository("roomsplit", client=client)

        with pytest.raises(StoreUnavailable, match="EndpointConnectionError"):
            repo.create_group("grp-1", User("alice"), "Flat")

    def test_scan_failure(self):
        client = MagicMock()
        client.scan.side_effect = _client_error("InternalServerError", "Scan")
        repo = Repository("roomsplit", client=client)

        with pytest.raises(StoreUnavailable) as exc_info:
            repo.scan_bills()
        assert exc_info.value.operation == "scan_bills"

    def test_conditional_failure_on_create_is_not_unavailable(self):
        client = MagicMock()
        client.put_item.side_effect = _client_error("ConditionalCheckFailedException", "PutItem")
        repo = Repository("roomsplit", client=client)

        with pytest.raises(BillExistsError):
            repo.create_bill("grp-1", "bill-1", User("alice"), description="x", amount=1)

    def test_rejected_request_is_validation_error(self):
        client = MagicMock()
        client.put_item.side_effect = _client_error("ValidationException", "PutItem")
        repo = Repository("roomsplit", client=client)

        with pytest.raises(ValidationError) as exc_info:
            repo.create_bill("grp-1", "bill-1", User("alice"), description="x", amount=1)
        assert exc_info.value.field == "create_bill"


class TestSerialization:
    def test_round_trip_nested_values(self):
        repo = Repository("t", client=MagicMock())
        data = {
            "s": "text",
            "i": 3,
            "f": 2.5,
            "b": True,
            "n": None,
            "l": [1, "two", {"three": 3}],
        }
        assert repo._deserialize_map(repo._serialize_map(data)) == data

    def test_bill_item_keys(self):
        repo = Repository("t", client=MagicMock())
        item = repo._serialize_map({**schema.bill_key("g", "b"), "amount": 1})
        bill = repo._deserialize_bill(item)
        assert (bill.group_id, bill.bill_id, bill.shares) == ("g", "b", [])

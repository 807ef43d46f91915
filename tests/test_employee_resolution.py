import pytest
from bson import ObjectId

from conftest import insert_employee, insert_user
from exceptions import UnlinkedAccountError, MissingEmployeeError
from utils.employee_utils import (pick_employee_id, lookup_employee_id, resolve_employee_id,
                                  scoped_employee_id, generate_employee_code, full_name)


def test_explicit_target_wins_over_linked_profile():
    user = {"email": "a@example.com", "employee_id": "linked"}

    assert pick_employee_id(user, "explicit") == "explicit"


def test_linked_profile_used_without_explicit_target():
    assert pick_employee_id({"employee_id": "linked"}) == "linked"


def test_linked_profile_may_be_a_resolved_document():
    employee_id = ObjectId()

    assert pick_employee_id({"employee_id": {"_id": employee_id, "first_name": "A"}}) == str(employee_id)


def test_nothing_to_pick_without_link():
    assert pick_employee_id({"email": "a@example.com"}) is None


async def test_falls_back_to_employee_with_same_email():
    employee = await insert_employee(email="match@example.com")
    user = await insert_user("match@example.com")

    assert await lookup_employee_id(user) == str(employee["_id"])


async def test_unlinked_account_raises():
    user = await insert_user("orphan@example.com")

    with pytest.raises(UnlinkedAccountError) as error:
        await resolve_employee_id(user)

    assert error.value.status_code == 400
    assert "link your employee profile" in error.value.detail


async def test_leave_flow_uses_its_own_missing_profile_message():
    user = await insert_user("orphan@example.com")

    with pytest.raises(MissingEmployeeError) as error:
        await resolve_employee_id(user, missing_error=MissingEmployeeError)

    assert error.value.detail == "No employee profile linked to your account. Please contact HR."


async def test_employee_role_is_scoped_to_own_records(employee, employee_user):
    assert await scoped_employee_id(employee_user, "employee", "someone-else") == str(employee["_id"])


async def test_staff_see_everything_unless_filtering(hr_user):
    assert await scoped_employee_id(hr_user, "hr") is None
    assert await scoped_employee_id(hr_user, "hr", "abc") == "abc"


async def test_employee_codes_are_sequential():
    assert await generate_employee_code() == "EMP-0001"
    await insert_employee()

    assert await generate_employee_code() == "EMP-0002"


def test_full_name_defaults_when_employee_missing():
    assert full_name(None) == "Unknown"
    assert full_name({"first_name": "Ada", "last_name": "Lovelace"}) == "Ada Lovelace"

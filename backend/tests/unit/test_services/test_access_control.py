"""Tests for permission resolution"""
from govflow.domain.enums import AccessLevel
from govflow.domain.models import ActorContext
from govflow.services.access_control import AccessControlService


def test_stored_permissions_merged_with_token_roles(container, board_members):
    member = board_members[0].model_copy(update={"roles": ["Board", "Treasurer"]})

    permissions = container.access_control.get_user_permissions(member)

    assert permissions.access_level == AccessLevel.COMMITTEE_MEMBER
    assert permissions.roles == ["Board", "Treasurer"]
    assert set(permissions.committees) == {"ReviewBoard", "PanelOfTwo"}


def test_unknown_user_level_from_token_roles(container):
    actor = ActorContext(user_id="u-new", upn="new@unite.org", display_name="New", roles=["Diplomate", "Executive"])

    permissions = container.access_control.get_user_permissions(actor)

    assert permissions.access_level == AccessLevel.EXECUTIVE
    assert permissions.committees == []


def test_unknown_user_without_roles_is_public(container, outsider):
    assert container.access_control.get_user_permissions(outsider).access_level == AccessLevel.PUBLIC


def test_system_actor_is_admin(container):
    permissions = container.access_control.get_user_permissions(ActorContext.system())

    assert permissions.is_admin


def test_can_access_resource(container, admin, officer, board_members, outsider):
    access = container.access_control

    assert access.can_access_resource(outsider)
    assert access.can_access_resource(admin, required_access_level=AccessLevel.EXECUTIVE, committees=["Nope"])
    assert access.can_access_resource(officer, required_access_level=AccessLevel.EXECUTIVE)
    assert not access.can_access_resource(board_members[0], required_access_level=AccessLevel.EXECUTIVE)
    assert access.can_access_resource(board_members[0], committees=["ReviewBoard"])
    assert not access.can_access_resource(officer, committees=["ReviewBoard"])
    assert not access.can_access_resource(outsider, roles=["Board"])


def test_count_eligible_voters_counts_distinct_members(container):
    access: AccessControlService = container.access_control

    assert access.count_eligible_voters(["ReviewBoard"]) == 3
    assert access.count_eligible_voters(["PanelOfTwo"]) == 2
    assert access.count_eligible_voters(["ReviewBoard", "PanelOfTwo"]) == 3
    assert access.count_eligible_voters(["Unknown"]) == 0


def test_access_levels_are_ordered():
    assert AccessLevel.ADMIN.satisfies(AccessLevel.EXECUTIVE)
    assert AccessLevel.COMMITTEE_MEMBER.satisfies(AccessLevel.DIPLOMATE)
    assert not AccessLevel.DIPLOMATE.satisfies(AccessLevel.COMMITTEE_MEMBER)

from cosmosops.core.resources import (
    CHILD_KIND,
    AccountGroup,
    Container,
    Database,
    InsufficientPermission,
    NodeKind,
    NoResourcesFound,
    is_sentinel,
    real_nodes,
)
from cosmosops.core.session import SessionContext


def test_nodes_carry_their_kind_tag():
    assert AccountGroup(id="s", display_name="S").kind is NodeKind.ACCOUNT_GROUP
    assert NoResourcesFound().kind is NodeKind.NO_RESOURCES_FOUND
    assert InsufficientPermission().kind is NodeKind.INSUFFICIENT_PERMISSION


def test_sentinels_have_no_id():
    assert not hasattr(NoResourcesFound(), "id")
    assert not hasattr(InsufficientPermission(), "id")
    assert is_sentinel(NoResourcesFound())
    assert not is_sentinel(AccountGroup(id="s", display_name="S"))


def test_handle_does_not_affect_equality():
    a = Database(id="d", display_name="D", owner_account_id="a", owner_group_id="g", handle=1)
    b = Database(id="d", display_name="D", owner_account_id="a", owner_group_id="g", handle=2)
    assert a == b


def test_containers_are_leaves():
    assert NodeKind.CONTAINER not in CHILD_KIND
    assert CHILD_KIND[NodeKind.DATABASE] is NodeKind.CONTAINER


def test_real_nodes_drops_placeholders():
    c = Container(
        id="c",
        display_name="C",
        is_empty=True,
        owner_database_id="d",
        owner_account_id="a",
        owner_group_id="g",
    )
    assert real_nodes((c, NoResourcesFound())) == [c]


def test_session_credentials():
    default, other = object(), object()
    session = SessionContext(credential=default, group_credentials={"sub-2": other})

    assert session.is_signed_in is True
    assert session.credential_for("sub-1") is default
    assert session.credential_for("sub-2") is other
    assert SessionContext.signed_out().is_signed_in is False


def test_session_credentials_are_distinct():
    default, other = object(), object()
    session = SessionContext(
        credential=default,
        group_credentials={"sub-1": default, "sub-2": other, "sub-3": other},
    )

    assert session.credentials() == [default, other]
    assert SessionContext.signed_out().credentials() == []

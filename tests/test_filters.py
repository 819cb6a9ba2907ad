from console_core.filters import (
    brands_by_site_type,
    by_groupement,
    by_positive_id,
    normalize_scope,
    scope_collections,
)
from console_core.models import Brand, Groupement, Site, SiteAssignment, SiteType, UserRecord, UserSiteLink


def test_by_positive_id_matches_accessor():
    users = [UserRecord(id=1, site_id=7), UserRecord(id=2, site_id=3), UserRecord(id=3)]
    assert [u.id for u in by_positive_id(users, 7, lambda u: u.site_id)] == [1]


def test_by_positive_id_rejects_non_positive_targets_and_bad_input():
    users = [UserRecord(id=1, site_id=0)]
    assert by_positive_id(users, 0, lambda u: u.site_id) == []
    assert by_positive_id(users, -4, lambda u: u.site_id) == []
    assert by_positive_id(None, 7, lambda u: u.site_id) == []
    assert by_positive_id("abc", 7, lambda u: u.site_id) == []
    assert by_positive_id([object()], 7, lambda u: u.site_id) == []


def test_by_groupement_prefers_id_then_name():
    groupements = [Groupement(id=1, name="Filiale"), Groupement(id=2, name="Succursale")]
    assert [g.id for g in by_groupement(groupements, 2, "Filiale")] == [2]
    assert [g.id for g in by_groupement(groupements, 0, "  succursale ")] == [2]
    assert by_groupement(groupements, 0, None) == []


def test_brands_by_site_type():
    brands = [Brand(id=10, branch_id=3), Brand(id=11, agency_id=7), Brand(id=12, branch_id=7)]
    assert [b.id for b in brands_by_site_type(brands, SiteType.BRANCH, 7)] == [12]
    assert [b.id for b in brands_by_site_type(brands, SiteType.AGENCY, 7)] == [11]


def test_scope_collections_for_agency():
    assignment = SiteAssignment(
        assignment_id=21, groupement_id=0, groupement_name="Succursale", site_id=7, site_type=SiteType.AGENCY
    )
    collections = {
        "users": [UserRecord(id=1, site_id=7), UserRecord(id=2, site_id=3)],
        "active_users": [UserRecord(id=1, site_id=7)],
        "groupements": [Groupement(id=1, name="Filiale"), Groupement(id=2, name="Succursale")],
        "branches": [Site(id=7, name="Same id, other kind")],
        "agencies": [Site(id=7, name="Agadir"), Site(id=8, name="Fes")],
        "brands": [Brand(id=11, agency_id=7), Brand(id=12, branch_id=7)],
        "user_site_links": [UserSiteLink(id=21, site_id=7), UserSiteLink(id=22, site_id=3)],
        "periods": ["untouched"],
    }
    scoped = scope_collections(collections, assignment)
    assert [u.id for u in scoped["users"]] == [1]
    assert [g.id for g in scoped["groupements"]] == [2]
    assert scoped["branches"] == []
    assert [s.name for s in scoped["agencies"]] == ["Agadir"]
    assert [b.id for b in scoped["brands"]] == [11]
    assert [l.id for l in scoped["user_site_links"]] == [21]
    assert scoped["periods"] == ["untouched"]


def test_normalize_scope_defensive():
    scope = normalize_scope({"mode": "Scoped", "user_id": "12", "details": {"siteId": 7}, "user": "bad"})
    assert scope.scoped
    assert scope.identity.user_id == 12
    assert scope.identity.details == {"siteId": 7}
    assert scope.identity.user == {}

    fallback = normalize_scope({"user_id": "abc"}, mode="global")
    assert not fallback.scoped
    assert fallback.identity.user_id == 0

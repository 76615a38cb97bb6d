"""Organization endpoints."""

from conftest import auth_headers
from happytail.models.user import UserRole


class TestOrganizations:
    async def test_admin_creates_organization(self, client, make_user):
        admin = await make_user(role=UserRole.ADMIN)

        response = await client.post(
            "/v1/organizations",
            json={"title": "Vet Care", "type": "pet_clinic", "latitude": 59.93, "longitude": 30.33},
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Vet Care"
        assert body["type"] == "pet_clinic"
        assert body["location"] == {"type": "Point", "coordinates": [30.33, 59.93]}
        assert body["taskStats"] == {"all": 0, "active": 0, "done": 0}

    async def test_non_admin_cannot_manage_organizations(self, client, make_user, make_organization):
        organization = await make_organization()
        staff = await make_user(role=UserRole.ORGANIZATION, organization=organization)
        url = f"/v1/organizations/{organization.id}"

        create = await client.post(
            "/v1/organizations", json={"title": "Mine"}, headers=auth_headers(staff)
        )
        patch = await client.patch(url, json={"title": "Renamed"}, headers=auth_headers(staff))
        delete = await client.delete(url, headers=auth_headers(staff))

        assert [create.status_code, patch.status_code, delete.status_code] == [403, 403, 403]

    async def test_unknown_type_is_rejected(self, client, make_user):
        admin = await make_user(role=UserRole.ADMIN)

        response = await client.post(
            "/v1/organizations",
            json={"title": "Zoo", "type": "zoo"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    async def test_list_and_get(self, client, make_organization):
        first = await make_organization(title="First")
        second = await make_organization(title="Second")

        listed = await client.get("/v1/organizations")
        fetched = await client.get(f"/v1/organizations/{first.id}")

        assert [o["id"] for o in listed.json()] == [str(second.id), str(first.id)]
        assert fetched.json()["title"] == "First"

    async def test_missing_organization(self, client):
        response = await client.get("/v1/organizations/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["message"] == "Organization does not exist"

    async def test_update_keeps_counters(self, client, make_user, make_organization):
        admin = await make_user(role=UserRole.ADMIN)
        organization = await make_organization(task_stats_all=3, task_stats_active=2, task_stats_done=1)

        patched = await client.patch(
            f"/v1/organizations/{organization.id}",
            json={"phone": "+7 900 000 00 00"},
            headers=auth_headers(admin),
        )
        replaced = await client.put(
            f"/v1/organizations/{organization.id}",
            json={"title": "New Name"},
            headers=auth_headers(admin),
        )

        assert patched.json()["phone"] == "+7 900 000 00 00"
        assert replaced.json()["title"] == "New Name"
        assert replaced.json()["phone"] is None
        assert replaced.json()["taskStats"] == {"all": 3, "active": 2, "done": 1}

    async def test_delete(self, client, make_user, make_organization):
        admin = await make_user(role=UserRole.ADMIN)
        organization = await make_organization()

        response = await client.delete(
            f"/v1/organizations/{organization.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 204
        assert (await client.get(f"/v1/organizations/{organization.id}")).status_code == 404

    async def test_members(self, client, make_user, make_organization):
        organization = await make_organization()
        staff = await make_user(role=UserRole.ORGANIZATION, organization=organization)
        outsider = await make_user()

        response = await client.get(
            f"/v1/organizations/{organization.id}/members", headers=auth_headers(outsider)
        )

        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == [str(staff.id)]

"""Tasks over HTTP: roles, ownership and the take/release/finish actions."""

import pytest

from conftest import auth_headers
from happytail.models.user import UserRole


@pytest.fixture
async def organization(make_organization):
    return await make_organization(title="Dog Rescue", type="shelter")


@pytest.fixture
async def staff(make_user, organization):
    return await make_user(role=UserRole.ORGANIZATION, organization=organization)


@pytest.fixture
async def volunteer(make_user):
    return await make_user()


async def post_task(client, user, **fields):
    body = {"title": "Walk Rex", "description": "Around the park", **fields}
    return await client.post("/v1/tasks", json=body, headers=auth_headers(user))


class TestCreateTask:
    async def test_staff_creates_task(self, client, staff, organization):
        response = await post_task(
            client, staff, latitude=55.75, longitude=37.61, priority="hot", hasManyAssignee=True
        )

        assert response.status_code == 201
        task = response.json()
        assert task["status"] == "available"
        assert task["priority"] == "hot"
        assert task["hasManyAssignee"] is True
        assert task["ownerId"] == str(staff.id)
        assert task["organization"]["title"] == "Dog Rescue"
        assert task["location"] == {"type": "Point", "coordinates": [37.61, 55.75]}

        org = (await client.get(f"/v1/organizations/{organization.id}")).json()
        assert org["taskStats"] == {"all": 1, "active": 1, "done": 0}

    async def test_volunteer_cannot_create_task(self, client, volunteer):
        response = await post_task(client, volunteer)

        assert response.status_code == 403

    async def test_anonymous_cannot_create_task(self, client):
        response = await client.post("/v1/tasks", json={"title": "x", "description": "y"})

        assert response.status_code == 401

    async def test_invalid_priority(self, client, staff):
        response = await post_task(client, staff, priority="urgent")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "priority"


class TestReadTasks:
    async def test_list_excludes_hidden_and_filters(self, client, staff):
        await post_task(client, staff, title="Walk Rex", priority="hot")
        await post_task(client, staff, title="Walk Bella", priority="low")
        hidden = (await post_task(client, staff, title="Walk Ghost", priority="hot")).json()
        await client.patch(
            f"/v1/tasks/{hidden['id']}", json={"status": "hidden"}, headers=auth_headers(staff)
        )

        everything = (await client.get("/v1/tasks")).json()
        hot = (await client.get("/v1/tasks", params={"title": "walk", "priority": ["hot", "extra"]})).json()
        second_page = (await client.get("/v1/tasks", params={"page": 2, "perPage": 1})).json()

        assert [t["title"] for t in everything] == ["Walk Bella", "Walk Rex"]
        assert [t["title"] for t in hot] == ["Walk Rex"]
        assert [t["title"] for t in second_page] == ["Walk Rex"]

    async def test_per_page_is_bounded(self, client):
        response = await client.get("/v1/tasks", params={"perPage": 101})

        assert response.status_code == 400

    async def test_missing_task(self, client):
        response = await client.get("/v1/tasks/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["message"] == "Task does not exist"

    async def test_deleted_task_is_gone(self, client, staff):
        task = (await post_task(client, staff)).json()

        response = await client.delete(f"/v1/tasks/{task['id']}", headers=auth_headers(staff))
        assert response.status_code == 204

        assert (await client.get(f"/v1/tasks/{task['id']}")).status_code == 404
        assert (await client.get("/v1/tasks")).json() == []


class TestOwnership:
    async def test_owner_updates_task(self, client, staff):
        task = (await post_task(client, staff)).json()

        response = await client.patch(
            f"/v1/tasks/{task['id']}",
            json={"title": "Walk Rex twice", "duration": 90},
            headers=auth_headers(staff),
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Walk Rex twice"
        assert response.json()["duration"] == 90
        assert response.json()["description"] == "Around the park"

    async def test_owner_replaces_task(self, client, staff):
        task = (await post_task(client, staff, priority="hot", latitude=1.0, longitude=2.0)).json()

        response = await client.put(
            f"/v1/tasks/{task['id']}",
            json={"title": "Feed cats", "description": "Dry food"},
            headers=auth_headers(staff),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Feed cats"
        assert body["priority"] == "medium"
        assert body["location"] is None

    async def test_other_staff_member_is_forbidden(self, client, staff, make_user, organization):
        colleague = await make_user(role=UserRole.ORGANIZATION, organization=organization)
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"

        patch = await client.patch(url, json={"title": "Mine now"}, headers=auth_headers(colleague))
        put = await client.put(
            url, json={"title": "Mine now", "description": "x"}, headers=auth_headers(colleague)
        )
        delete = await client.delete(url, headers=auth_headers(colleague))

        assert [patch.status_code, put.status_code, delete.status_code] == [403, 403, 403]
        assert (await client.get(url)).json()["title"] == "Walk Rex"

    async def test_owner_cannot_set_lifecycle_status(self, client, staff):
        task = (await post_task(client, staff)).json()

        response = await client.patch(
            f"/v1/tasks/{task['id']}", json={"status": "done"}, headers=auth_headers(staff)
        )

        assert response.status_code == 400

    async def test_finished_task_cannot_be_reopened(
        self, client, staff, volunteer, make_user, organization
    ):
        other = await make_user()
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"
        await client.post(f"{url}/take", headers=auth_headers(volunteer))
        await client.post(f"{url}/finish", headers=auth_headers(volunteer))

        reopened = await client.patch(url, json={"status": "available"}, headers=auth_headers(staff))
        retaken = await client.post(f"{url}/take", headers=auth_headers(other))

        assert reopened.status_code == 409
        assert retaken.status_code == 409
        org = (await client.get(f"/v1/organizations/{organization.id}")).json()
        assert org["taskStats"] == {"all": 1, "active": 0, "done": 1}

    async def test_taken_task_status_is_locked(self, client, staff, volunteer, make_user):
        other = await make_user()
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"
        await client.post(f"{url}/take", headers=auth_headers(volunteer))

        patch = await client.patch(url, json={"status": "available"}, headers=auth_headers(staff))
        flip = await client.patch(url, json={"hasManyAssignee": True}, headers=auth_headers(staff))
        put = await client.put(
            url, json={"title": "Walk Rex", "description": "x"}, headers=auth_headers(staff)
        )
        stolen = await client.post(f"{url}/take", headers=auth_headers(other))
        finished = await client.post(f"{url}/finish", headers=auth_headers(volunteer))

        assert [patch.status_code, flip.status_code, put.status_code] == [409, 409, 409]
        assert stolen.status_code == 409
        assert finished.status_code == 200

    async def test_taken_task_accepts_other_edits(self, client, staff, volunteer):
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"
        await client.post(f"{url}/take", headers=auth_headers(volunteer))

        response = await client.patch(
            url, json={"title": "Walk Rex at noon"}, headers=auth_headers(staff)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "assigned"

    async def test_held_many_assignee_task_is_locked(self, client, staff, volunteer):
        task = (await post_task(client, staff, hasManyAssignee=True)).json()
        url = f"/v1/tasks/{task['id']}"
        await client.post(f"{url}/take", headers=auth_headers(volunteer))

        hide = await client.patch(url, json={"status": "hidden"}, headers=auth_headers(staff))
        flip = await client.patch(url, json={"hasManyAssignee": False}, headers=auth_headers(staff))
        delete = await client.delete(url, headers=auth_headers(staff))

        assert [hide.status_code, flip.status_code, delete.status_code] == [409, 409, 409]

        await client.post(f"{url}/release", headers=auth_headers(volunteer))
        hide = await client.patch(url, json={"status": "hidden"}, headers=auth_headers(staff))

        assert hide.status_code == 200

    async def test_taken_task_cannot_be_deleted(self, client, staff, volunteer):
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"
        await client.post(f"{url}/take", headers=auth_headers(volunteer))

        delete = await client.delete(url, headers=auth_headers(staff))
        released = await client.post(f"{url}/release", headers=auth_headers(volunteer))

        assert delete.status_code == 409
        assert released.status_code == 200


class TestActions:
    async def test_take_finish_scenario(self, client, staff, volunteer, organization):
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"

        taken = await client.post(f"{url}/take", headers=auth_headers(volunteer))
        assert taken.status_code == 200
        assert taken.json()["status"] == "assigned"

        profile = (await client.get("/v1/users/profile", headers=auth_headers(volunteer))).json()
        assert profile["tasks"][0]["id"] == task["id"]
        assert profile["tasks"][0]["status"] == "assigned"
        assert profile["taskStats"] == {"all": 1, "undone": 1, "done": 0}

        finished = await client.post(f"{url}/finish", headers=auth_headers(volunteer))
        assert finished.status_code == 200
        assert finished.json()["status"] == "done"

        profile = (await client.get("/v1/users/profile", headers=auth_headers(volunteer))).json()
        assert profile["tasks"][0]["status"] == "done"
        assert profile["taskStats"] == {"all": 1, "undone": 0, "done": 1}

        org = (await client.get(f"/v1/organizations/{organization.id}")).json()
        assert org["taskStats"] == {"all": 1, "active": 0, "done": 1}

    async def test_take_assigned_task_conflicts(self, client, staff, volunteer, make_user):
        other = await make_user()
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}/take"

        await client.post(url, headers=auth_headers(volunteer))
        response = await client.post(url, headers=auth_headers(other))

        assert response.status_code == 409
        assert response.json()["message"] == "Operation not allowed: task is not available"

    async def test_release_and_retake(self, client, staff, volunteer, make_user):
        other = await make_user()
        task = (await post_task(client, staff)).json()
        url = f"/v1/tasks/{task['id']}"

        await client.post(f"{url}/take", headers=auth_headers(volunteer))
        released = await client.post(f"{url}/release", headers=auth_headers(volunteer))
        retaken = await client.post(f"{url}/take", headers=auth_headers(other))

        assert released.json()["status"] == "available"
        assert retaken.json()["status"] == "assigned"
        first = (await client.get("/v1/users/profile", headers=auth_headers(volunteer))).json()
        second = (await client.get("/v1/users/profile", headers=auth_headers(other))).json()
        assert first["tasks"] == []
        assert [t["id"] for t in second["tasks"]] == [task["id"]]

    async def test_release_not_assigned(self, client, staff, volunteer):
        task = (await post_task(client, staff)).json()

        response = await client.post(
            f"/v1/tasks/{task['id']}/release", headers=auth_headers(volunteer)
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Task is not assigned"

    async def test_actions_require_login(self, client, staff):
        task = (await post_task(client, staff)).json()

        for action in ("take", "release", "finish"):
            response = await client.post(f"/v1/tasks/{task['id']}/{action}")
            assert response.status_code == 401

"""Invitation issuing."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import auth_headers
from happytail.api.v1 import invitations as invitations_api
from happytail.db.base import as_aware, utcnow
from happytail.models.invitation import Invitation
from happytail.models.user import UserRole


@pytest.fixture
async def organization(make_organization):
    return await make_organization()


@pytest.fixture
async def staff(make_user, organization):
    return await make_user(role=UserRole.ORGANIZATION, organization=organization)


class TestInvitations:
    async def test_staff_invites_into_own_organization(self, client, staff, organization):
        response = await client.post(
            "/v1/invitations", json={"email": "Friend@Example.com"}, headers=auth_headers(staff)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "friend@example.com"
        assert body["organizationId"] == str(organization.id)
        assert body["userId"] == str(staff.id)
        assert len(body["token"]) == 120

    async def test_invitation_expires_in_sixty_days(self, client, db, staff):
        await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(staff)
        )

        invitation = (await db.execute(select(Invitation))).scalar_one()
        remaining = as_aware(invitation.expires) - utcnow()
        assert timedelta(days=59, hours=23) < remaining <= timedelta(days=60)

    async def test_volunteer_cannot_invite(self, client, make_user):
        volunteer = await make_user()

        response = await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(volunteer)
        )

        assert response.status_code == 403

    async def test_existing_user_cannot_be_invited(self, client, staff, make_user):
        existing = await make_user()

        response = await client.post(
            "/v1/invitations", json={"email": existing.email}, headers=auth_headers(staff)
        )

        assert response.status_code == 409

    async def test_new_invitation_replaces_previous(self, client, db, staff):
        first = await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(staff)
        )
        second = await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(staff)
        )

        assert second.status_code == 201
        tokens = (await db.execute(select(Invitation.token))).scalars().all()
        assert tokens == [second.json()["token"]]
        assert first.json()["token"] != second.json()["token"]

    async def test_admin_picks_organization(self, client, make_user, organization):
        admin = await make_user(role=UserRole.ADMIN)

        without = await client.post(
            "/v1/invitations", json={"email": "a@example.com"}, headers=auth_headers(admin)
        )
        with_org = await client.post(
            "/v1/invitations",
            json={"email": "a@example.com", "organizationId": str(organization.id)},
            headers=auth_headers(admin),
        )

        assert without.status_code == 403
        assert with_org.status_code == 201
        assert with_org.json()["organizationId"] == str(organization.id)

    async def test_staff_cannot_invite_into_other_organization(
        self, client, staff, organization, make_organization
    ):
        other = await make_organization(title="Other")

        response = await client.post(
            "/v1/invitations",
            json={"email": "a@example.com", "organizationId": str(other.id)},
            headers=auth_headers(staff),
        )

        assert response.json()["organizationId"] == str(organization.id)

    async def test_email_sent_when_smtp_configured(self, client, staff, monkeypatch):
        sent = []
        monkeypatch.setattr(invitations_api, "smtp_configured", lambda: True)
        monkeypatch.setattr(
            invitations_api, "send_invitation_email", lambda email, token: sent.append((email, token))
        )

        response = await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(staff)
        )

        assert sent == [("friend@example.com", response.json()["token"])]

    async def test_no_email_without_smtp(self, client, staff, monkeypatch):
        sent = []
        monkeypatch.setattr(
            invitations_api, "send_invitation_email", lambda email, token: sent.append(email)
        )

        await client.post(
            "/v1/invitations", json={"email": "friend@example.com"}, headers=auth_headers(staff)
        )

        assert sent == []

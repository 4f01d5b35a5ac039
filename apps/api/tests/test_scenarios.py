"""End-to-end flows through the HTTP API."""
from conftest import bearer, create_ticket, login, register


def test_register_login_and_list_own_ticket(client):
    register(client, email="a@x.com", password="secret1")
    token = login(client, "a@x.com", "secret1")
    me = client.get("/api/auth/user", headers=bearer(token)).json()["user"]

    create_ticket(client, token, title="T1", description="desc desc", type="Bug", department="IT")

    body = client.get("/api/tickets", headers=bearer(token)).json()
    assert len(body["tickets"]) == 1
    ticket = body["tickets"][0]
    assert ticket["title"] == "T1"
    assert ticket["userId"] == me["id"]
    assert ticket["status"] == "New"


def test_admin_resolving_updates_statistics(client, user_token, admin_token):
    create_ticket(client, user_token)
    ticket = create_ticket(client, user_token, title="T2")
    before = client.get("/api/statistics", headers=bearer(admin_token)).json()

    response = client.patch(
        f"/api/tickets/{ticket['id']}/status", json={"status": "Resolved"}, headers=bearer(admin_token)
    )
    assert response.status_code == 200

    after = client.get("/api/statistics", headers=bearer(admin_token)).json()
    assert after["resolvedTickets"] == before["resolvedTickets"] + 1
    assert after["totalTickets"] == before["totalTickets"] == 2
    assert after["resolvedPercentage"] == 50


def test_anonymous_ticket_is_never_listed_for_users(client, user_token, other_token, admin_token):
    ticket = create_ticket(client, submitterName="Walk-in", submitterEmail="walkin@x.com")
    assert ticket["userId"] is None
    assert ticket["submitterName"] == "Walk-in"

    for token in (user_token, other_token):
        listed = client.get("/api/tickets", headers=bearer(token)).json()["tickets"]
        assert ticket["id"] not in [t["id"] for t in listed]
        assert client.get(f"/api/tickets/{ticket['id']}", headers=bearer(token)).status_code == 403

    admin_view = client.get("/api/tickets", headers=bearer(admin_token)).json()["tickets"]
    assert ticket["id"] in [t["id"] for t in admin_view]

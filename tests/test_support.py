from tests.conftest import auth_headers
from tunibus.models import KnowledgeArticle
from tunibus.support.service import FALLBACK_ANSWER, SNIPPET_LENGTH


def _open_ticket(client, user, subject="Refund request"):
    r = client.post(
        "/api/support/tickets",
        json={"subject": subject, "message": "My bus never came", "priority": "high"},
        headers=auth_headers(user),
    )
    assert r.status_code == 201
    return r.json()


def test_ticket_conversation_flow(client, admin, client_user):
    ticket = _open_ticket(client, client_user)
    assert ticket["status"] == "open"

    detail = client.get(f"/api/support/tickets/{ticket['id']}", headers=auth_headers(client_user)).json()
    assert [m["body"] for m in detail["messages"]] == ["My bus never came"]

    client.post(f"/api/support/tickets/{ticket['id']}/messages", json={"body": "We are checking"},
                headers=auth_headers(admin))
    after_agent = client.get(f"/api/support/tickets/{ticket['id']}", headers=auth_headers(client_user)).json()
    assert after_agent["ticket"]["status"] == "pending"
    assert after_agent["ticket"]["assigned_agent_id"] == admin.id

    client.post(f"/api/support/tickets/{ticket['id']}/messages", json={"body": "Thanks"},
                headers=auth_headers(client_user))
    after_user = client.get(f"/api/support/tickets/{ticket['id']}", headers=auth_headers(client_user)).json()
    assert after_user["ticket"]["status"] == "open"
    assert [m["author_role"] for m in after_user["messages"]] == ["user", "agent", "user"]


def test_tickets_are_private(client, admin, client_user, make_user):
    ticket = _open_ticket(client, client_user)
    stranger = make_user()
    assert client.get(f"/api/support/tickets/{ticket['id']}", headers=auth_headers(stranger)).status_code == 403
    assert client.get("/api/support/tickets", headers=auth_headers(stranger)).json() == []
    assert len(client.get("/api/support/tickets", headers=auth_headers(admin)).json()) == 1


def test_resolve_creates_article_and_allows_rating(client, db, admin, client_user):
    ticket = _open_ticket(client, client_user, subject="Lost luggage")
    early = client.post(f"/api/support/tickets/{ticket['id']}/feedback", json={"score": 5},
                        headers=auth_headers(client_user))
    assert early.status_code == 400

    assert client.post(f"/api/support/tickets/{ticket['id']}/resolve", json={"resolution_summary": "x"},
                       headers=auth_headers(client_user)).status_code == 403

    resolved = client.post(
        f"/api/support/tickets/{ticket['id']}/resolve",
        json={"resolution_summary": "Luggage is kept at the Tunis station desk.", "create_article": True},
        headers=auth_headers(admin),
    ).json()
    assert resolved["ticket"]["status"] == "resolved"
    assert resolved["article"]["title"] == "Lost luggage"
    assert db.query(KnowledgeArticle).count() == 1

    rated = client.post(f"/api/support/tickets/{ticket['id']}/feedback", json={"score": 4},
                        headers=auth_headers(client_user))
    assert rated.json()["satisfaction_score"] == 4


def test_knowledge_base(client, admin, client_user):
    created = client.post(
        "/api/support/knowledge",
        json={"title": "Cancel a reservation", "content": "Open My reservations and press Cancel.", "tags": ["cancel"]},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    article_id = created.json()["id"]
    assert client.post("/api/support/knowledge", json={"title": "t", "content": "c"},
                       headers=auth_headers(client_user)).status_code == 403

    found = client.get("/api/support/knowledge", params={"q": "reservation"}).json()
    assert [a["id"] for a in found] == [article_id]
    assert client.get("/api/support/knowledge", params={"q": "luggage"}).json() == []

    helpful = client.post(f"/api/support/knowledge/{article_id}/helpful", headers=auth_headers(client_user))
    assert helpful.json()["helpful_count"] == 1


def test_assistant_answers_from_best_article(client, db, admin):
    db.add_all([
        KnowledgeArticle(title="Refunds", content="Refunds are paid back within five days. " * 20, tags=[]),
        KnowledgeArticle(title="Luggage", content="One bag per passenger.", tags=[]),
    ])
    db.commit()

    answer = client.post("/api/support/assistant", json={"question": "When are refunds paid?"}).json()
    assert answer["sources"][0]["title"] == "Refunds"
    assert answer["answer"].endswith("...")
    assert len(answer["answer"]) == SNIPPET_LENGTH + 3

    fallback = client.post("/api/support/assistant", json={"question": "xyz qwerty"}).json()
    assert fallback == {"answer": FALLBACK_ANSWER, "sources": []}

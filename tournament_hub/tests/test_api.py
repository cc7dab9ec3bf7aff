"""
End-to-end checks through the HTTP layer: auth, error envelopes, standings
with qualification, uploads and the bracket view.
"""
from tournament_hub.errors import ErrorCode
from tournament_hub.orm import TeamStatus
from tournament_hub.services.storage import MAX_UPLOAD_SIZE, PAYMENT_SCREENSHOTS_BUCKET
from tournament_hub.tests.factories import (
    DEFAULT_PASSWORD, auth_headers, fetch_team, make_scored_group, make_team, make_tournament, make_user
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestAuth:

    async def test_register_then_login(self, client):
        response = await client.post("/api/auth/register", json={
            "email": "Player@Example.com",
            "password": DEFAULT_PASSWORD,
            "username": "player",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "player@example.com"
        assert body["user"]["roles"] == ["user"]

        response = await client.post("/api/auth/login", json={
            "email": "player@example.com", "password": DEFAULT_PASSWORD
        })
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["profile"]["username"] == "player"

    async def test_wrong_password(self, client, db):
        await make_user(db, "player@example.com")
        response = await client.post("/api/auth/login", json={
            "email": "player@example.com", "password": "not-the-password"
        })
        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.AUTH_INVALID

    async def test_banned_user_cannot_log_in(self, client, db):
        await make_user(db, "banned@example.com", banned=True)
        response = await client.post("/api/auth/login", json={
            "email": "banned@example.com", "password": DEFAULT_PASSWORD
        })
        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.ACCOUNT_BANNED

    async def test_missing_token(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == ErrorCode.AUTH_REQUIRED


class TestErrorEnvelope:

    async def test_not_found(self, client):
        response = await client.get("/api/standings/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["code"] == ErrorCode.NOT_FOUND
        assert body["details"] == {"resource": "Standing", "id": "does-not-exist"}

    async def test_request_validation(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        response = await client.post("/api/tournaments", json={"name": "No date"}, headers=auth_headers(admin))

        assert response.status_code == 422
        assert response.json()["code"] == ErrorCode.VALIDATION_ERROR

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["pending_recomputes"] == 0


class TestStandingsApi:

    async def test_non_admin_cannot_edit(self, client, db):
        player = await make_user(db, "player@example.com")
        tournament = await make_tournament(db)
        _, standings = await make_scored_group(db, tournament, {"Alpha": 0})

        response = await client.patch(
            f"/api/standings/{standings['Alpha'].id}", json={"points": 3}, headers=auth_headers(player)
        )

        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.ADMIN_REQUIRED

    async def test_is_qualified_is_not_editable(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db)
        _, standings = await make_scored_group(db, tournament, {"Alpha": 0})

        response = await client.patch(
            f"/api/standings/{standings['Alpha'].id}", json={"is_qualified": True}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert "is_qualified" in response.json()["message"]

    async def test_negative_points(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db)
        _, standings = await make_scored_group(db, tournament, {"Alpha": 0})

        response = await client.patch(
            f"/api/standings/{standings['Alpha'].id}", json={"points": -1}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.NEGATIVE_VALUE

    async def test_edits_drive_qualification(self, client, db, session_factory):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db, teams_per_group_qualify=2)
        group, standings = await make_scored_group(
            db, tournament, {"Alpha": 0, "Bravo": 0, "Charlie": 0, "Delta": 0}
        )

        for name, points in (("Alpha", 10), ("Bravo", 8), ("Charlie", 8), ("Delta", 5)):
            response = await client.patch(
                f"/api/standings/{standings[name].id}", json={"points": points}, headers=auth_headers(admin)
            )
            assert response.status_code == 200

        response = await client.get(f"/api/groups/{group.id}/standings")
        ranked = [(s["team"]["name"], s["points"], s["is_qualified"]) for s in response.json()]
        assert ranked == [
            ("Alpha", 10, True),
            ("Bravo", 8, True),
            ("Charlie", 8, False),
            ("Delta", 5, False),
        ]

        alpha = await fetch_team(session_factory, standings["Alpha"].team_id)
        delta = await fetch_team(session_factory, standings["Delta"].team_id)
        assert alpha.status == TeamStatus.QUALIFIED
        assert delta.status == TeamStatus.REGISTERED

    async def test_manual_recompute(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db, teams_per_group_qualify=1)
        group, _ = await make_scored_group(db, tournament, {"Alpha": 3, "Bravo": 1})

        response = await client.post(f"/api/groups/{group.id}/recompute", headers=auth_headers(admin))

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["qualify_count"] == 1
        assert len(result["qualified_team_ids"]) == 1


class TestGroupsApi:

    async def test_create_groups(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db)

        response = await client.post(
            f"/api/tournaments/{tournament.id}/groups", json={"num_groups": 3}, headers=auth_headers(admin)
        )

        assert response.status_code == 201
        assert [g["name"] for g in response.json()["groups"]] == ["Group A", "Group B", "Group C"]

    async def test_too_many_groups(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db)

        response = await client.post(
            f"/api/tournaments/{tournament.id}/groups", json={"num_groups": 27}, headers=auth_headers(admin)
        )

        assert response.status_code == 400


class TestUploadsApi:

    async def test_screenshot_upload_and_payment(self, client, db):
        captain = await make_user(db, "cap@example.com")
        tournament = await make_tournament(db, entry_fee=10)
        team = await make_team(db, tournament, "Raptors", status=TeamStatus.PENDING_PAYMENT, captain=captain)
        headers = auth_headers(captain)

        response = await client.post(
            "/api/payments/screenshot", files={"file": ("proof.png", PNG_BYTES, "image/png")}, headers=headers
        )
        assert response.status_code == 201
        upload = response.json()
        assert upload["path"].startswith(f"{captain.id}/")

        download = await client.get(upload["signed_url"])
        assert download.status_code == 200
        assert download.content == PNG_BYTES
        assert download.headers["content-type"] == "image/png"

        response = await client.post("/api/payments", json={
            "team_id": team.id, "amount": "10.00", "screenshot_url": upload["path"]
        }, headers=headers)
        assert response.status_code == 201
        assert response.json()["payment"]["status"] == "pending"

    async def test_non_image_rejected(self, client, db):
        user = await make_user(db, "player@example.com")
        response = await client.post(
            "/api/payments/screenshot",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers(user),
        )
        assert response.status_code == 400

    async def test_oversized_screenshot_rejected(self, client, db, store):
        user = await make_user(db, "player@example.com")
        oversized = PNG_BYTES + b"\x00" * MAX_UPLOAD_SIZE

        response = await client.post(
            "/api/payments/screenshot",
            files={"file": ("proof.png", oversized, "image/png")},
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.INVALID_INPUT
        assert not (store.root / PAYMENT_SCREENSHOTS_BUCKET).exists()

    async def test_tampered_signed_url(self, client):
        response = await client.get("/api/storage/signed/not-a-token")
        assert response.status_code == 403


class TestBracketApi:

    async def test_rounds_named_from_the_final(self, client, db):
        admin = await make_user(db, "admin@example.com", admin=True)
        tournament = await make_tournament(db)
        headers = auth_headers(admin)

        for bracket_round, position in ((1, 0), (1, 1), (2, 0)):
            response = await client.post(f"/api/tournaments/{tournament.id}/matches", json={
                "stage": "knockout", "bracket_round": bracket_round, "bracket_position": position
            }, headers=headers)
            assert response.status_code == 201

        response = await client.get(f"/api/tournaments/{tournament.id}/bracket")

        body = response.json()
        assert body["total_rounds"] == 2
        assert [(r["name"], r["height"], len(r["matches"])) for r in body["rounds"]] == [
            ("Semifinal", 160, 2),
            ("Final", 80, 1),
        ]

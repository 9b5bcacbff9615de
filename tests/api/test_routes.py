# tests/api/test_routes.py
# HTTP contract: status codes, error bodies and the order of checks

import json

import pytest


class TestIdentityFirst:

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/api/chat-history"),
            ("post", "/api/chat-history"),
            ("delete", "/api/chat-history"),
            ("get", "/api/chat-history/session_1_abc"),
            ("put", "/api/chat-history/session_1_abc"),
            ("post", "/api/chat-history/session_1_abc/deployment"),
            ("post", "/api/chat-history/session_1_abc/sandbox"),
            ("get", "/api/credits/get"),
            ("post", "/api/credits/purchase"),
            ("post", "/api/credits/confirm-payment"),
            ("post", "/api/credits/setup-intent"),
            ("post", "/api/vercel/domain/verify"),
            ("get", "/api/vercel/domains/user"),
            ("post", "/api/session-files"),
            ("post", "/api/session-files/restore"),
            ("get", "/api/gallery/check-published?appUrl=x"),
            ("post", "/api/gallery/publish"),
            ("post", "/api/create-sandbox-for-session"),
        ],
    )
    def test_anonymous_is_401_without_side_effects(self, client, fakes, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        assert fakes.payments.calls == []
        assert fakes.telemetry.events == []
        assert fakes.sandboxes.lookups == []
        assert fakes.sandboxes.created == []

    def test_bad_token_is_401(self, client):
        response = client.get("/api/credits/get", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_session_cookie_is_accepted(self, client):
        from vibe_api.services.auth_service import mint_session_token

        token = mint_session_token(secret="test-secret", email="c@example.com")
        response = client.get("/api/vercel/domains/user", headers={"Cookie": f"session-token={token}"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "domains": []}


class TestChatHistory:

    def test_create_list_get_delete(self, client, auth_headers):
        headers = auth_headers()
        messages = [{"id": "m1", "role": "user", "parts": [{"type": "text", "text": "Make a game"}]}]

        created = client.post("/api/chat-history", json={"messages": messages}, headers=headers)
        assert created.status_code == 200
        session_id = created.json()["sessionId"]
        assert created.json()["session"]["title"] == "Make a game"

        listing = client.get("/api/chat-history?page=1&limit=50", headers=headers).json()
        assert [s["id"] for s in listing["sessions"]] == [session_id]
        assert listing["pagination"]["limit"] == 20

        fetched = client.get(f"/api/chat-history/{session_id}", headers=headers)
        assert fetched.json()["session"]["messages"] == messages

        assert client.delete(f"/api/chat-history/{session_id}", headers=headers).json() == {"success": True}
        assert client.get(f"/api/chat-history/{session_id}", headers=headers).status_code == 404

    def test_messages_are_required(self, client, auth_headers):
        response = client.post("/api/chat-history", json={"sessionId": "x"}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_invalid_json_is_400(self, client, auth_headers):
        response = client.post(
            "/api/chat-history",
            content=b"{not json",
            headers={**auth_headers(), "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "method, suffix, payload",
        [
            ("put", "", {"messages": "not-a-list"}),
            ("put", "", {"messages": []}),
            ("post", "/deployment", {}),
            ("post", "/sandbox", {"sandbox": {}}),
            ("post", "/sandbox", {"sandbox": {"sandboxId": "sbx_1"}}),
        ],
    )
    def test_unowned_session_is_404_whatever_the_payload(self, client, auth_headers, method, suffix, payload):
        owner = auth_headers("owner@example.com")
        intruder = auth_headers("intruder@example.com")
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=owner).json()["sessionId"]

        response = client.request(method.upper(), f"/api/chat-history/{session_id}{suffix}", json=payload, headers=intruder)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Session not found"

    def test_create_with_foreign_session_id_is_404(self, client, auth_headers):
        owner = auth_headers("owner@example.com")
        intruder = auth_headers("intruder@example.com")
        messages = [{"id": "m1", "role": "user", "parts": [{"type": "text", "text": "secret plan"}]}]
        session_id = client.post("/api/chat-history", json={"messages": messages}, headers=owner).json()["sessionId"]

        response = client.post("/api/chat-history", json={"messages": [], "sessionId": session_id}, headers=intruder)

        assert response.status_code == 404
        assert client.get(f"/api/chat-history/{session_id}", headers=owner).json()["session"]["messages"] == messages
        assert client.get(f"/api/chat-history/{session_id}", headers=intruder).status_code == 404

    @pytest.mark.parametrize("payload", [{}, {"sandbox": {}}, {"sandbox": {"sandboxId": ""}}, {"sandbox": {"createdAt": 1}}])
    def test_owned_sandbox_update_requires_sandbox_id(self, client, auth_headers, payload):
        headers = auth_headers()
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=headers).json()["sessionId"]

        response = client.post(f"/api/chat-history/{session_id}/sandbox", json=payload, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize(
        "method, suffix, payload",
        [
            ("get", "", None),
            ("put", "", {"messages": []}),
            ("post", "/deployment", {"latestDeploymentUrl": "https://x.vercel.app"}),
            ("post", "/sandbox", {"sandbox": {"sandboxId": "sbx_1"}}),
        ],
    )
    def test_owned_id_with_missing_record_is_404(self, client, auth_headers, fakes, method, suffix, payload):
        fakes.redis.sets["chat-history:alice@example.com"] = {"session_1_dangling"}

        response = client.request(
            method.upper(), f"/api/chat-history/session_1_dangling{suffix}", json=payload, headers=auth_headers()
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Session not found"

    def test_deployment_fields_can_be_cleared(self, client, auth_headers):
        headers = auth_headers()
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=headers).json()["sessionId"]
        client.post(
            f"/api/chat-history/{session_id}/deployment",
            json={"latestDeploymentUrl": "https://x.vercel.app", "latestCustomDomain": "app.example.com"},
            headers=headers,
        )

        response = client.post(f"/api/chat-history/{session_id}/deployment", json={"latestCustomDomain": None}, headers=headers)

        session = response.json()["session"]
        assert session["latestCustomDomain"] is None
        assert session["latestDeploymentUrl"] == "https://x.vercel.app"

    def test_sandbox_metadata_round_trip(self, client, auth_headers):
        headers = auth_headers()
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=headers).json()["sessionId"]

        sandbox = {"sandboxId": "sbx_1", "createdAt": 1, "expiresAt": 2, "region": "iad1"}
        response = client.post(f"/api/chat-history/{session_id}/sandbox", json={"sandbox": sandbox}, headers=headers)

        assert response.status_code == 200
        assert response.json()["session"]["sandbox"] == sandbox

    def test_replace_with_sandbox_enqueues_snapshot(self, client, auth_headers, fakes):
        headers = auth_headers()
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=headers).json()["sessionId"]

        response = client.put(
            f"/api/chat-history/{session_id}", json={"messages": [], "sandboxId": "sbx_5"}, headers=headers
        )

        assert response.status_code == 200
        assert fakes.jobs.enqueued == [(session_id, "sbx_5")]


class TestTerminals:

    def test_create(self, client, fakes):
        fakes.sandboxes.add("sbx_1")

        response = client.post("/api/terminals/create", json={"sandboxId": "sbx_1", "name": "Dev"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["terminal"]["name"] == "Dev"
        assert body["terminal"]["workingDirectory"] == "."
        assert body["terminal"]["status"] == "ready"

    @pytest.mark.parametrize("payload", [{"sandboxId": "sbx_1"}, {"sandboxId": "sbx_1", "name": "   "}, {"name": "Dev"}])
    def test_create_validation(self, client, fakes, payload):
        response = client.post("/api/terminals/create", json=payload)
        assert response.status_code == 400
        assert fakes.sandboxes.lookups == []

    def test_create_on_dead_sandbox_is_500(self, client):
        response = client.post("/api/terminals/create", json={"sandboxId": "gone", "name": "Dev"})
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to create terminal"

    def test_delete_with_body(self, client):
        response = client.request("DELETE", "/api/terminals/delete", json={"sandboxId": "sbx_1", "terminalId": "cmd_9"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "terminalId": "cmd_9"}

    def test_list_requires_sandbox(self, client):
        assert client.get("/api/terminals/list").status_code == 400
        assert client.get("/api/terminals/list?sandboxId=sbx_1").json() == {"success": True, "terminals": []}

    def test_execute(self, client, fakes):
        from vibe_api.clients.sandbox_client import CommandResult

        fakes.sandboxes.add("sbx_1", responder=lambda cmd, args: CommandResult(0, "hi\n", ""))

        response = client.post(
            "/api/terminals/execute",
            json={"sandboxId": "sbx_1", "terminalId": "cmd_1", "command": "echo hi"},
        )

        body = response.json()
        assert body["success"] is True
        assert body["output"] == "hi\n"
        assert body["exitCode"] == 0
        assert body["currentWorkingDirectory"] == "."


class TestSandboxes:

    def test_connect(self, client, fakes):
        fakes.sandboxes.add("sbx_1")
        response = client.post("/api/sandboxes/connect", json={"sandboxId": "sbx_1"})
        assert response.json() == {"success": True, "sandbox": {"sandboxId": "sbx_1"}}

    def test_connect_unknown_is_404(self, client):
        response = client.post("/api/sandboxes/connect", json={"sandboxId": "gone"})
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Failed to connect to sandbox. It may not exist or may have expired."

    def test_connect_requires_id(self, client):
        assert client.post("/api/sandboxes/connect", json={}).status_code == 400

    def test_create_for_session_records_sandbox(self, client, auth_headers, fakes):
        headers = auth_headers()
        session_id = client.post("/api/chat-history", json={"messages": []}, headers=headers).json()["sessionId"]

        first = client.post("/api/create-sandbox-for-session", json={"sessionId": session_id}, headers=headers).json()
        second = client.post("/api/create-sandbox-for-session", json={"sessionId": session_id}, headers=headers).json()

        assert first["success"] is True
        assert first["reused"] is False
        assert fakes.sandboxes.created == [([3000], 45 * 60 * 1000)]
        assert second["reused"] is True
        assert second["sandboxId"] == first["sandboxId"]

    def test_create_for_foreign_session_is_404(self, client, auth_headers, fakes):
        session_id = client.post(
            "/api/chat-history", json={"messages": []}, headers=auth_headers("owner@example.com")
        ).json()["sessionId"]

        response = client.post(
            "/api/create-sandbox-for-session", json={"sessionId": session_id}, headers=auth_headers("intruder@example.com")
        )

        assert response.status_code == 404
        assert fakes.sandboxes.created == []

    def test_create_for_session_requires_session_id(self, client, auth_headers, fakes):
        response = client.post("/api/create-sandbox-for-session", json={"ports": [3000]}, headers=auth_headers())
        assert response.status_code == 400
        assert fakes.sandboxes.created == []

    def test_list_files(self, client, fakes):
        from vibe_api.clients.sandbox_client import CommandResult

        fakes.sandboxes.add("sbx_1", responder=lambda cmd, args: CommandResult(0, "./index.html|f\n./src|d\n", ""))

        body = client.post("/api/list-files", json={"sandboxId": "sbx_1"}).json()

        assert body["success"] is True
        assert body["path"] == "."
        assert [(f["name"], f["type"]) for f in body["files"]] == [("src", "directory"), ("index.html", "file")]

    def test_list_files_requires_sandbox(self, client, fakes):
        response = client.post("/api/list-files", json={"path": "."})
        assert response.status_code == 400
        assert fakes.sandboxes.lookups == []

    def test_list_files_on_dead_sandbox_is_500(self, client):
        response = client.post("/api/list-files", json={"sandboxId": "gone"})
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to list files"


class TestSessionFiles:

    def test_save_get_restore(self, client, auth_headers, fakes):
        headers = auth_headers()
        fakes.sandboxes.add("sbx_1", files={"index.html": "<h1>hi</h1>"})
        target = fakes.sandboxes.add("sbx_2")

        saved = client.post("/api/session-files", json={"sessionId": "s1", "sandboxId": "sbx_1"}, headers=headers)
        assert saved.json() == {"success": True}

        files = client.get("/api/session-files?sessionId=s1", headers=headers).json()["files"]
        assert [f["path"] for f in files] == ["index.html"]

        restored = client.post("/api/session-files/restore", json={"sessionId": "s1", "sandboxId": "sbx_2"}, headers=headers)
        assert restored.json() == {"success": True, "restoredCount": 1}
        assert target.written == [{"path": "index.html", "content": "<h1>hi</h1>"}]

    def test_ids_are_required(self, client, auth_headers):
        headers = auth_headers()
        assert client.post("/api/session-files", json={"sessionId": "s1"}, headers=headers).status_code == 400
        assert client.get("/api/session-files", headers=headers).status_code == 400


class TestDomains:

    def test_unknown_domain_is_a_200_result(self, client, auth_headers):
        response = client.post(
            "/api/vercel/domain/verify",
            json={"projectName": "p", "domain": "nope.invalid"},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["verified"] is False
        assert body["error"].startswith("Domain nope.invalid not found.")

    def test_verified(self, client, auth_headers, fakes):
        fakes.dns.records["ok.dev"] = ["76.76.21.21"]
        response = client.post(
            "/api/vercel/domain/verify", json={"projectName": "p", "domain": "ok.dev"}, headers=auth_headers()
        )
        assert response.json() == {"success": True, "verified": True}

    def test_domain_is_required(self, client, auth_headers):
        response = client.post("/api/vercel/domain/verify", json={"projectName": "p"}, headers=auth_headers())
        assert response.status_code == 400

    def test_user_domains(self, client, auth_headers, fakes):
        fakes.billing_redis.strings["user_domains:alice@example.com"] = json.dumps([{"domain": "a.dev", "price": 9}])

        response = client.get("/api/vercel/domains/user", headers=auth_headers())
        assert response.json() == {
            "success": True,
            "domains": [{"domain": "a.dev", "purchaseDate": None, "price": 9, "vercelDomainId": None}],
        }


class TestCredits:

    def test_get(self, client, auth_headers, fakes):
        fakes.payments.customers["alice@example.com"] = "cus_7"

        response = client.get("/api/credits/get", headers=auth_headers())
        assert response.json() == {"credits": 42.5, "hasPaymentMethod": True, "customerId": "cus_7"}

    def test_purchase_tracks_request_then_validates(self, client, auth_headers, fakes):
        response = client.post("/api/credits/purchase", json={"amount": "10"}, headers=auth_headers())

        assert response.status_code == 400
        assert fakes.telemetry.events == [("web-credit-purchase", "request-done")]
        assert not [c for c in fakes.payments.calls if c[0] == "purchase_credits"]

    def test_purchase_without_customer_is_404(self, client, auth_headers):
        response = client.post("/api/credits/purchase", json={"amount": 10}, headers=auth_headers())
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Customer not found"

    def test_purchase(self, client, auth_headers, fakes):
        fakes.payments.customers["alice@example.com"] = "cus_7"

        response = client.post("/api/credits/purchase", json={"amount": 10}, headers=auth_headers())
        assert response.json() == {"success": True}
        assert fakes.telemetry.events == [
            ("web-credit-purchase", "request-done"),
            ("web-credit-purchase", "request-success"),
        ]

    def test_confirm_payment(self, client, auth_headers):
        response = client.post("/api/credits/confirm-payment", json={"paymentIntentId": "pi_1"}, headers=auth_headers())
        assert response.json() == {"success": True}

    def test_confirm_requires_intent(self, client, auth_headers):
        assert client.post("/api/credits/confirm-payment", json={}, headers=auth_headers()).status_code == 400

    def test_setup_intent(self, client, auth_headers, fakes):
        fakes.payments.customers["alice@example.com"] = "cus_7"
        response = client.post("/api/credits/setup-intent", headers=auth_headers())
        assert response.json() == {"clientSecret": "seti_secret_1"}


class TestGallery:

    def test_listing_is_public_and_capped(self, client):
        response = client.get("/api/gallery/apps?limit=20&page=abc")

        assert response.status_code == 200
        assert response.json()["pagination"] == {"page": 1, "limit": 9, "total": 0, "totalPages": 0, "hasMore": False}

    def test_publish_and_check(self, client, auth_headers):
        headers = auth_headers(picture="https://img/alice.png")
        published = client.post(
            "/api/gallery/publish",
            json={"title": "Snake", "appUrl": "https://snake.vercel.app", "category": "games"},
            headers=headers,
        )
        assert published.status_code == 200
        body = published.json()
        assert body["app"]["creatorName"] == "Alice"
        assert body["app"]["creatorAvatar"] == "https://img/alice.png"

        check = client.get("/api/gallery/check-published?appUrl=https://snake.vercel.app", headers=headers).json()
        assert check["isPublished"] is True

        listing = client.get("/api/gallery/apps?category=games").json()
        assert [a["title"] for a in listing["apps"]] == ["Snake"]

    def test_publish_requires_title(self, client, auth_headers):
        assert client.post("/api/gallery/publish", json={"appUrl": "x"}, headers=auth_headers()).status_code == 400

    def test_check_requires_url(self, client, auth_headers):
        assert client.get("/api/gallery/check-published", headers=auth_headers()).status_code == 400


class TestOps:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["redis"]["status"] == "healthy"

    def test_liveness_and_readiness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").json() == {"status": "ready"}

    def test_unhealthy_store_is_503(self, client, services):
        async def down():
            raise ConnectionError("refused")

        services.health_checks.append(("mongodb", down))
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["checks"]["mongodb"]["status"] == "unhealthy"

    def test_job_status(self, client):
        response = client.get("/api/jobs/job_1")
        assert response.json() == {"task_id": "job_1", "status": "complete", "result": {"savedCount": 3}}

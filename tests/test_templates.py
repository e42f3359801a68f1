"""
tests/test_templates.py -- Signature template CRUD, versions, defaults, duplication.
"""
from conftest import bearer
from sigstudio.models import Activity


class TestTemplateCrud:
    def test_create_and_get(self, client, acme):
        created = acme.create_template("Standard", description="Main signature")

        assert created["tenant_id"] == acme.tenant["id"]
        assert created["created_by"] == acme.user["id"]
        assert created["is_default"] is False

        resp = client.get(f"/api/templates/{created['id']}", headers=acme.headers)
        assert resp.status_code == 200
        assert resp.json()["description"] == "Main signature"

    def test_create_records_activity(self, client, acme, db):
        created = acme.create_template()

        activity = db.query(Activity).filter(Activity.entity_id == created["id"]).one()
        assert activity.action == "created"
        assert activity.entity_type == "template"
        assert activity.user_id == acme.user["id"]

    def test_members_can_create_templates(self, client, acme):
        acme.invite("m@acme.com")
        member_token = acme.login("m@acme.com")

        created = acme.create_template("Member made", token=member_token)

        assert created["tenant_id"] == acme.tenant["id"]

    def test_empty_name_is_rejected(self, client, acme):
        resp = client.post("/api/templates", json={"name": "", "html_content": "<p/>"}, headers=acme.headers)

        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "name"

    def test_search_and_pagination(self, client, acme):
        for name in ("Sales", "Support", "Sales EMEA"):
            acme.create_template(name)

        resp = client.get("/api/templates", params={"search": "sales"}, headers=acme.headers)
        assert resp.json()["total"] == 2

        page = client.get("/api/templates", params={"page": 2, "page_size": 2}, headers=acme.headers).json()
        assert page["total"] == 3
        assert len(page["templates"]) == 1

    def test_update(self, client, acme):
        created = acme.create_template()

        resp = client.put(
            f"/api/templates/{created['id']}",
            json={"description": "Updated"},
            headers=acme.headers,
        )

        assert resp.status_code == 200
        assert resp.json()["description"] == "Updated"
        assert resp.json()["name"] == "Standard"


class TestDefaultTemplate:
    def test_only_one_default_per_tenant(self, client, acme):
        first = acme.create_template("First", is_default=True)
        second = acme.create_template("Second", is_default=True)

        templates = {
            t["id"]: t for t in client.get("/api/templates", headers=acme.headers).json()["templates"]
        }
        assert templates[first["id"]]["is_default"] is False
        assert templates[second["id"]]["is_default"] is True

    def test_update_to_default_clears_previous(self, client, acme):
        first = acme.create_template("First", is_default=True)
        second = acme.create_template("Second")

        client.put(f"/api/templates/{second['id']}", json={"is_default": True}, headers=acme.headers)

        assert client.get(f"/api/templates/{first['id']}", headers=acme.headers).json()["is_default"] is False
        assert client.get(f"/api/templates/{second['id']}", headers=acme.headers).json()["is_default"] is True

    def test_default_is_per_tenant(self, client, acme, globex):
        acme_default = acme.create_template("Acme", is_default=True)
        globex.create_template("Globex", is_default=True)

        resp = client.get(f"/api/templates/{acme_default['id']}", headers=acme.headers)
        assert resp.json()["is_default"] is True


class TestVersions:
    def test_content_change_snapshots_previous_version(self, client, acme):
        created = acme.create_template("V1")

        client.put(
            f"/api/templates/{created['id']}",
            json={"name": "V2", "html_content": "<p>two</p>"},
            headers=acme.headers,
        )
        client.put(
            f"/api/templates/{created['id']}",
            json={"html_content": "<p>three</p>"},
            headers=acme.headers,
        )

        versions = client.get(f"/api/templates/{created['id']}/versions", headers=acme.headers).json()

        assert [v["version"] for v in versions] == [2, 1]
        assert versions[1]["name"] == "V1"
        assert versions[1]["html_content"] == "<p>V1</p>"
        assert versions[0]["html_content"] == "<p>two</p>"

    def test_metadata_change_does_not_create_version(self, client, acme):
        created = acme.create_template()

        client.put(f"/api/templates/{created['id']}", json={"description": "x"}, headers=acme.headers)
        client.put(
            f"/api/templates/{created['id']}",
            json={"html_content": created["html_content"]},
            headers=acme.headers,
        )

        assert client.get(f"/api/templates/{created['id']}/versions", headers=acme.headers).json() == []


class TestDuplicate:
    def test_duplicate_copies_content_but_not_default(self, client, acme):
        source = acme.create_template("Main", is_default=True)

        resp = client.post(f"/api/templates/{source['id']}/duplicate", headers=acme.headers)

        assert resp.status_code == 201
        copy = resp.json()
        assert copy["id"] != source["id"]
        assert copy["name"] == "Main (Copy)"
        assert copy["html_content"] == source["html_content"]
        assert copy["is_default"] is False

    def test_duplicate_with_custom_name(self, client, acme):
        source = acme.create_template("Main")

        resp = client.post(
            f"/api/templates/{source['id']}/duplicate", json={"name": "Holiday"}, headers=acme.headers
        )

        assert resp.json()["name"] == "Holiday"


class TestDeleteTemplate:
    def test_admin_can_delete(self, client, acme):
        created = acme.create_template()

        resp = client.delete(f"/api/templates/{created['id']}", headers=acme.headers)

        assert resp.status_code == 204
        assert client.get(f"/api/templates/{created['id']}", headers=acme.headers).status_code == 404

    def test_delete_blocked_while_assigned(self, client, acme):
        created = acme.create_template()
        client.post(
            "/api/assignments",
            json={"user_id": acme.user["id"], "template_id": created["id"]},
            headers=acme.headers,
        )

        resp = client.delete(f"/api/templates/{created['id']}", headers=acme.headers)

        assert resp.status_code == 400
        assert resp.json()["code"] == "TEMPLATE_HAS_ASSIGNMENTS"
        assert resp.json()["assignment_count"] == 1

    def test_member_can_delete_own_template_only(self, client, acme):
        admin_template = acme.create_template("Admin's")
        acme.invite("m@acme.com")
        member_token = acme.login("m@acme.com")
        member_template = acme.create_template("Mine", token=member_token)

        forbidden = client.delete(f"/api/templates/{admin_template['id']}", headers=bearer(member_token))
        assert forbidden.status_code == 403
        assert forbidden.json()["code"] == "FORBIDDEN"

        allowed = client.delete(f"/api/templates/{member_template['id']}", headers=bearer(member_token))
        assert allowed.status_code == 204

    def test_delete_removes_versions(self, client, acme, db):
        from sigstudio.models import SignatureTemplateVersion

        created = acme.create_template()
        client.put(f"/api/templates/{created['id']}", json={"name": "Renamed"}, headers=acme.headers)

        client.delete(f"/api/templates/{created['id']}", headers=acme.headers)

        assert db.query(SignatureTemplateVersion).count() == 0

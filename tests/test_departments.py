"""Route tests for department listings."""

from __future__ import annotations


class TestDepartments:
    def test_list(self, client):
        data = client.get("/departments").get_json()
        assert data["departments"] == ["Germans", "Italians", "Education for Generations"]

    def test_alias_resolves(self, client):
        resp = client.get("/departments/education-for-generation")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["dept"] == "Education for Generations"
        assert [s["Admission Number"] for s in data["levels"]["University"]] == ["C789"]

    def test_case_insensitive_name(self, client):
        data = client.get("/departments/GERMANS").get_json()
        assert data["totalStudents"] == 1
        assert [s["Admission Number"] for s in data["levels"]["Highschool"]] == ["A123"]

    def test_unknown_department_lists_available(self, client):
        resp = client.get("/departments/chess-club")
        assert resp.status_code == 404
        assert "Italians" in resp.get_json()["message"]

    def test_level_page(self, client):
        data = client.get("/departments/italians/primary").get_json()
        assert data["level"] == "Primary"
        assert [s["Admission Number"] for s in data["students"]] == ["B456"]

    def test_unknown_level(self, client):
        assert client.get("/departments/italians/kindergarten").status_code == 404


class TestDepartmentSearch:
    def test_found_redirects_to_profile(self, client):
        resp = client.post("/departments/search", json={"adm_no": "a123", "department": "Germans"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/students/A123")

    def test_wrong_department(self, client):
        resp = client.post("/departments/search", json={"adm_no": "A123", "department": "Italians"})
        assert resp.status_code == 404
        assert "does not belong" in resp.get_json()["error"]

    def test_unknown_student(self, client):
        resp = client.post("/departments/search", data={"adm_no": "Z1", "department": "Italians"})
        assert resp.status_code == 404
        assert "No student found" in resp.get_json()["error"]

    def test_empty_search_redirects_to_department(self, client):
        resp = client.post("/departments/search", json={"adm_no": "", "department": "Warmhearted Group"})
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/departments/warmhearted-group")

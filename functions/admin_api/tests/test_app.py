import io
import json
import unittest

from fastapi.testclient import TestClient
from PIL import Image

from admin_api.app import create_app
from admin_api.auth import InMemoryAuthClient
from admin_api.db import InMemoryDbClient
from admin_api.dependencies import (
    get_auth_client,
    get_change_feed,
    get_db_client,
    get_storage_client,
)
from admin_api.realtime import InMemoryChangeFeed
from admin_api.storage import InMemoryStorageClient
from shared.utils import utcnow


def png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class AdminApiTestCase(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.db = get_db_client()
        self.auth = get_auth_client()
        self.storage = get_storage_client()
        self.feed = get_change_feed()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        if isinstance(self.auth, InMemoryAuthClient):
            self.auth.reset()
        if isinstance(self.storage, InMemoryStorageClient):
            self.storage.stored_objects.clear()
        if isinstance(self.feed, InMemoryChangeFeed):
            self.feed.reset()

    def make_user(self, role: str, user_id: str = "user-1", email: str = "a@example.com"):
        user = self.auth.register(user_id, email, "password123")
        self.db.insert("users", {"id": user_id, "email": email, "role": role})
        return {"Authorization": f"Bearer {self.auth.issue_token(user)}"}

    def admin(self):
        return self.make_user("admin")


class RoleGateTests(AdminApiTestCase):
    def test_api_without_token_is_unauthorized(self):
        response = self.client.get("/api/admin/subjects")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})

    def test_page_without_token_redirects_to_login(self):
        response = self.client.get("/admin", follow_redirects=False)
        self.assertEqual(response.status_code, 307)
        self.assertEqual(response.headers["location"], "/login?error=unauthorized")

    def test_student_is_refused(self):
        headers = self.make_user("student")
        response = self.client.get("/api/admin/subjects", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Insufficient privileges"})

        page = self.client.get("/admin", headers=headers, follow_redirects=False)
        self.assertEqual(page.headers["location"], "/not-allowed")

    def test_missing_user_row(self):
        user = self.auth.register("ghost", "ghost@example.com", "password123")
        headers = {"Authorization": f"Bearer {self.auth.issue_token(user)}"}
        response = self.client.get("/api/admin/subjects", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "User not found"})
        page = self.client.get("/admin", headers=headers, follow_redirects=False)
        self.assertEqual(page.headers["location"], "/login?error=no_role")

    def test_teacher_reaches_admin_page_with_identity_headers(self):
        headers = self.make_user("teacher")
        response = self.client.get("/admin", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["x-user-role"], "teacher")
        self.assertEqual(response.headers["x-user-id"], "user-1")
        self.assertIn("a@example.com", response.text)

    def test_non_latin_email_reaches_admin_page(self):
        headers = self.make_user("admin", email="शिक्षक@example.com")
        response = self.client.get("/admin", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertIn("शिक्षक@example.com", response.text)

    def test_session_cookie_is_accepted(self):
        headers = self.make_user("superadmin")
        token = headers["Authorization"].split(" ", 1)[1]
        self.client.cookies.set("sb-access-token", token)
        response = self.client.get("/api/admin/exams")
        self.assertEqual(response.status_code, 200)

    def test_spoofed_role_header_is_ignored(self):
        response = self.client.get(
            "/api/admin/exams",
            headers={"x-user-role": "superadmin", "x-user-id": "attacker"},
        )
        self.assertEqual(response.status_code, 401)

    def test_public_pages_pass_through(self):
        self.assertEqual(self.client.get("/").status_code, 200)
        self.assertEqual(self.client.get("/upcoming").status_code, 200)


class SubjectChapterTopicTests(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.admin()
        self.exam = self.db.insert("exams", {"name": "JEE Main", "slug": "jee-main"})

    def create_subject(self, name="Physics", **extra):
        body = {"exam_id": self.exam["id"], "name": name, **extra}
        response = self.client.post("/api/admin/subjects", json=body, headers=self.headers)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def create_chapter(self, subject_id, name="Kinematics"):
        response = self.client.post(
            "/api/admin/chapters",
            json={"subject_id": subject_id, "name": name},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def create_topic(self, chapter_id, name="Projectile Motion", **extra):
        response = self.client.post(
            "/api/admin/topics",
            json={"chapter_id": chapter_id, "name": name, **extra},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_subject_slug_is_derived_and_unique(self):
        subject = self.create_subject("Physics & Optics")
        self.assertEqual(subject["slug"], "physics-optics")

        response = self.client.post(
            "/api/admin/subjects",
            json={"name": "Physics Optics", "slug": "physics-optics"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"], "This slug is already taken")

        available = self.client.get(
            "/api/admin/subjects/slug-available",
            params={"slug": "physics-optics", "exclude_id": subject["id"]},
            headers=self.headers,
        )
        self.assertTrue(available.json()["available"])

    def test_subject_validation_errors(self):
        response = self.client.post(
            "/api/admin/subjects",
            json={"name": "P", "slug": "Bad Slug", "order": -1},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        errors = response.json()["detail"]["errors"]
        self.assertEqual(errors["name"], "Subject name must be at least 2 characters")
        self.assertEqual(
            errors["slug"], "Slug can only contain lowercase letters, numbers, and hyphens"
        )
        self.assertEqual(errors["order"], "Order must be a positive number")

    def test_subject_list_counts_through_hierarchy(self):
        subject = self.create_subject()
        empty = self.create_subject("Chemistry")
        chapter = self.create_chapter(subject["id"])
        topic = self.create_topic(chapter["id"])
        self.db.insert(
            "formula_cards",
            {
                "chapter_id": chapter["id"],
                "topic_id": topic["id"],
                "title": "Range",
                "image_url": "https://example.test/range.png",
            },
        )

        response = self.client.get("/api/admin/subjects", headers=self.headers)
        rows = {row["id"]: row for row in response.json()}
        self.assertEqual(rows[subject["id"]]["chapters_count"], 1)
        self.assertEqual(rows[subject["id"]]["topics_count"], 1)
        self.assertEqual(rows[subject["id"]]["formula_cards_count"], 1)
        self.assertEqual(rows[subject["id"]]["exam"]["name"], "JEE Main")
        self.assertEqual(rows[empty["id"]]["chapters_count"], 0)
        self.assertEqual(rows[empty["id"]]["formula_cards_count"], 0)

        stats = self.client.get("/api/admin/stats/content", headers=self.headers).json()
        self.assertEqual(stats["total_subjects"], 2)
        self.assertEqual(stats["total_formula_cards"], 1)

    def test_update_subject_clears_exam(self):
        subject = self.create_subject()
        response = self.client.patch(
            f"/api/admin/subjects/{subject['id']}",
            json={"exam_id": ""},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["exam_id"])

    def test_delete_subject_with_chapters_is_refused(self):
        subject = self.create_subject()
        chapter = self.create_chapter(subject["id"])
        response = self.client.delete(
            f"/api/admin/subjects/{subject['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 409)
        self.assertIn("Cannot delete subject that has chapters", response.json()["detail"])

        self.client.delete(f"/api/admin/chapters/{chapter['id']}", headers=self.headers)
        response = self.client.delete(
            f"/api/admin/subjects/{subject['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 204)
        missing = self.client.get(f"/api/admin/subjects/{subject['id']}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)

    def test_topic_order_slug_scope_and_audit(self):
        subject = self.create_subject()
        first = self.create_chapter(subject["id"], "Kinematics")
        second = self.create_chapter(subject["id"], "Dynamics")

        topic = self.create_topic(first["id"])
        self.assertEqual(topic["order"], 1)
        self.assertEqual(topic["created_by"], "user-1")
        self.assertEqual(self.create_topic(first["id"], "Relative Motion")["order"], 2)

        next_order = self.client.get(
            "/api/admin/topics/next-order",
            params={"chapter_id": first["id"]},
            headers=self.headers,
        )
        self.assertEqual(next_order.json()["next_order"], 3)

        duplicate = self.client.post(
            "/api/admin/topics",
            json={"chapter_id": first["id"], "name": "Projectile Motion"},
            headers=self.headers,
        )
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(
            duplicate.json()["detail"], "This slug is already taken in this chapter"
        )
        # Same slug in another chapter is fine.
        self.create_topic(second["id"])

        audit = self.db.select("audit_logs", eq={"action": "CREATE_TOPIC"})
        self.assertEqual(len(audit), 3)
        self.assertEqual(audit[0]["user_id"], "user-1")

    def test_topic_requires_chapter(self):
        response = self.client.post(
            "/api/admin/topics", json={"name": "Orphan"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["detail"]["errors"]["chapter_id"], "Please select a chapter"
        )

    def test_topic_update_and_delete_guard(self):
        subject = self.create_subject()
        chapter = self.create_chapter(subject["id"])
        topic = self.create_topic(chapter["id"])

        updated = self.client.patch(
            f"/api/admin/topics/{topic['id']}",
            json={"name": "Projectiles", "slug": "projectiles"},
            headers=self.headers,
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["slug"], "projectiles")
        logged = self.db.select("audit_logs", eq={"action": "UPDATE_TOPIC"})
        self.assertEqual(logged[0]["details"]["old_data"]["name"], "Projectile Motion")

        for title in ("Range", "Height"):
            self.db.insert(
                "formula_cards",
                {
                    "chapter_id": chapter["id"],
                    "topic_id": topic["id"],
                    "title": title,
                    "image_url": "https://example.test/x.png",
                },
            )
        refused = self.client.delete(f"/api/admin/topics/{topic['id']}", headers=self.headers)
        self.assertEqual(refused.status_code, 409)
        self.assertEqual(
            refused.json()["detail"],
            "Cannot delete topic with 2 formula card(s). Delete all formula cards first.",
        )

    def test_topics_filtered_by_subject(self):
        physics = self.create_subject()
        chemistry = self.create_subject("Chemistry")
        self.create_topic(self.create_chapter(physics["id"])["id"])
        self.create_topic(self.create_chapter(chemistry["id"], "Bonding")["id"], "Ionic")

        response = self.client.get(
            "/api/admin/topics", params={"subject_id": chemistry["id"]}, headers=self.headers
        )
        names = [t["name"] for t in response.json()]
        self.assertEqual(names, ["Ionic"])
        self.assertEqual(response.json()[0]["chapter"]["subject"]["name"], "Chemistry")

        recent = self.client.get(
            "/api/admin/topics/recent", params={"limit": 1}, headers=self.headers
        )
        self.assertEqual(len(recent.json()), 1)

    def test_formula_card_flow(self):
        subject = self.create_subject()
        chapter = self.create_chapter(subject["id"])
        topic = self.create_topic(chapter["id"])

        missing = self.client.post(
            "/api/admin/formula-cards",
            json={"chapter_id": chapter["id"], "topic_id": topic["id"]},
            headers=self.headers,
        )
        self.assertEqual(missing.status_code, 422)
        errors = missing.json()["detail"]["errors"]
        self.assertEqual(errors["title"], "Title is required")
        self.assertEqual(errors["image"], "Formula card image is required")

        upload = self.client.post(
            "/api/admin/formula-cards/image",
            files={"file": ("card.png", png_bytes(400, 500), "image/png")},
            headers=self.headers,
        )
        self.assertEqual(upload.status_code, 201, upload.text)
        self.assertIsNone(upload.json()["warning"])

        created = self.client.post(
            "/api/admin/formula-cards",
            json={
                "chapter_id": chapter["id"],
                "topic_id": topic["id"],
                "title": "Range of a projectile",
                "image_url": upload.json()["url"],
                "formula_text": "R = u^2 sin 2θ / g",
                "tags": "range,projectile",
            },
            headers=self.headers,
        )
        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["order"], 1)

        found = self.client.get(
            "/api/admin/formula-cards", params={"search": "PROJECTILE"}, headers=self.headers
        )
        self.assertEqual(len(found.json()), 1)
        self.assertEqual(found.json()[0]["topic"]["name"], "Projectile Motion")

    def test_formula_card_upload_rejects_wrong_type(self):
        response = self.client.post(
            "/api/admin/formula-cards/image",
            files={"file": ("card.gif", b"GIF89a", "image/gif")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)


class QuestionApiTests(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.admin()
        exam = self.db.insert("exams", {"name": "JEE Main", "slug": "jee-main"})
        subject = self.db.insert(
            "subjects", {"exam_id": exam["id"], "name": "Physics", "slug": "physics"}
        )
        chapter = self.db.insert(
            "chapters", {"subject_id": subject["id"], "name": "Optics", "slug": "optics"}
        )
        self.base = {
            "exam_id": exam["id"],
            "subject_id": subject["id"],
            "chapter_id": chapter["id"],
            "difficulty_category": "High Output Low Input",
            "question_blocks": "Find the focal length.",
        }

    def test_objective_question_stores_options(self):
        response = self.client.post(
            "/api/admin/questions",
            json={
                **self.base,
                "category": "DPP",
                "options": ["10 cm", "", "20 cm", "30 cm"],
                "correct_answer": "C",
                "year": 2020,
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        question = response.json()
        self.assertIsNone(question["year"])
        self.assertEqual([o["id"] for o in question["options"]], ["A", "C", "D"])
        stored = self.db.get("questions", question["id"])
        self.assertEqual(
            json.loads(stored["options"])[0],
            {"id": "A", "blocks": [{"type": "text", "content": "10 cm"}]},
        )

    def test_pyq_year_and_option_rules(self):
        response = self.client.post(
            "/api/admin/questions",
            json={**self.base, "year": 1999, "options": ["only one"]},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        errors = response.json()["detail"]["errors"]
        self.assertEqual(errors["year"], "Year must be between 2000 and current year")
        self.assertEqual(errors["options"], "At least 2 options are required")
        self.assertEqual(errors["correct_answer"], "Correct answer is required")

    def test_answer_must_name_a_filled_option(self):
        response = self.client.post(
            "/api/admin/questions",
            json={
                **self.base,
                "category": "DPP",
                "options": ["one", "", "three"],
                "correct_answer": "B",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["detail"]["errors"]["correct_answer"], "Select one of the options"
        )
        self.assertEqual(self.db.count("questions"), 0)

    def test_numerical_question_and_check(self):
        response = self.client.post(
            "/api/admin/questions",
            json={
                **self.base,
                "question_type": "numerical",
                "year": utcnow().year,
                "correct_answer": "20",
                "units": "cm",
                "tolerance": "5",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        question_id = response.json()["id"]

        ok = self.client.post(
            f"/api/admin/questions/{question_id}/check",
            json={"answer": "20.9"},
            headers=self.headers,
        )
        self.assertTrue(ok.json()["correct"])
        wrong = self.client.post(
            f"/api/admin/questions/{question_id}/check",
            json={"answer": "21.5"},
            headers=self.headers,
        )
        self.assertFalse(wrong.json()["correct"])

        stats = self.client.get("/api/admin/questions/stats", headers=self.headers).json()
        self.assertEqual(stats["total"], 1)
        self.assertEqual(stats["pyq"], 1)
        self.assertEqual(stats["numerical"], 1)

    def test_numerical_answer_must_be_a_number(self):
        response = self.client.post(
            "/api/admin/questions",
            json={
                **self.base,
                "question_type": "numerical",
                "year": 2022,
                "correct_answer": "twenty",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["detail"]["errors"]["correct_answer"], "Must be a valid number"
        )

    def test_list_filter_and_delete(self):
        for category in ("PYQ", "DPP"):
            self.client.post(
                "/api/admin/questions",
                json={
                    **self.base,
                    "category": category,
                    "year": 2021,
                    "options": ["a", "b"],
                    "correct_answer": "A",
                },
                headers=self.headers,
            )
        listed = self.client.get(
            "/api/admin/questions", params={"category": "DPP"}, headers=self.headers
        ).json()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["chapter"]["name"], "Optics")

        deleted = self.client.delete(
            f"/api/admin/questions/{listed[0]['id']}", headers=self.headers
        )
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(self.db.count("questions"), 1)


class BannerApiTests(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.admin()

    def create(self, title):
        response = self.client.post(
            "/api/admin/banners",
            json={"title": title, "image_url": f"https://example.test/{title}.png"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["banner"]

    def test_positions_and_pagination(self):
        first = self.create("first")
        second = self.create("second")
        self.create("third")
        self.assertEqual(first["position"], 0)
        self.assertEqual(second["position"], 1)

        page = self.client.get(
            "/api/admin/banners", params={"page": 2, "limit": 2}, headers=self.headers
        ).json()
        self.assertEqual(page["pagination"], {"page": 2, "limit": 2, "total": 3, "pages": 2})
        self.assertEqual([b["title"] for b in page["banners"]], ["third"])

    def test_create_requires_title_and_image(self):
        response = self.client.post(
            "/api/admin/banners", json={"title": "No image"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Title and image URL are required")

    def test_toggle_move_and_delete(self):
        banner = self.create("promo")
        toggled = self.client.post(
            f"/api/admin/banners/{banner['id']}/toggle", headers=self.headers
        )
        self.assertFalse(toggled.json()["is_active"])
        moved = self.client.post(
            f"/api/admin/banners/{banner['id']}/position",
            json={"position": 5},
            headers=self.headers,
        )
        self.assertEqual(moved.json()["position"], 5)
        deleted = self.client.delete(f"/api/admin/banners/{banner['id']}", headers=self.headers)
        self.assertEqual(deleted.status_code, 204)

        events = [(e.table, e.event.value) for e in self.feed.read_since("0")[0]]
        self.assertEqual(
            events,
            [
                ("banners", "INSERT"),
                ("banners", "UPDATE"),
                ("banners", "UPDATE"),
                ("banners", "DELETE"),
            ],
        )

    def test_update_rejects_null_position_and_status(self):
        banner = self.create("promo")
        for field in ("position", "is_active"):
            response = self.client.patch(
                f"/api/admin/banners/{banner['id']}",
                json={field: None},
                headers=self.headers,
            )
            self.assertEqual(response.status_code, 422, field)
            self.assertIn(field, response.json()["detail"]["errors"])
        stored = self.db.get("banners", banner["id"])
        self.assertEqual(stored["position"], 0)
        self.assertTrue(stored["is_active"])
        self.assertEqual(self.create("next")["position"], 1)

    def test_create_after_row_without_position(self):
        self.db.insert(
            "banners",
            {"title": "legacy", "image_url": "https://example.test/legacy.png", "position": None},
        )
        self.assertEqual(self.create("fresh")["position"], 1)

    def test_banner_image_size_limit(self):
        response = self.client.post(
            "/api/admin/banners/image",
            files={"file": ("big.png", b"x" * (200 * 1024 + 1), "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Image size must be less than 200KB")


class DashboardAndChangesTests(AdminApiTestCase):
    def test_dashboard_stats(self):
        headers = self.admin()
        self.db.insert("users", {"id": "s1", "role": "student", "last_sign_in_at": utcnow()})
        self.db.insert("banners", {"title": "a", "image_url": "u", "is_active": False})
        self.storage.upload_bytes("banners", "a.png", b"x" * 1024 * 1024, "image/png")

        stats = self.client.get("/api/admin/dashboard", headers=headers).json()
        self.assertEqual(stats["total_users"], 2)
        self.assertEqual(stats["user_roles"], {"admin": 1, "student": 1})
        self.assertEqual(stats["inactive_banners"], 1)
        self.assertEqual(stats["active_sessions"], 1)
        self.assertEqual(stats["storage_usage"], "1.00 MB")

    def test_changes_cursor(self):
        headers = self.admin()
        self.client.post("/api/admin/exams", json={"name": "NEET"}, headers=headers)
        first = self.client.get("/api/admin/changes", headers=headers).json()
        self.assertEqual(first["events"][0]["table"], "exams")

        again = self.client.get(
            "/api/admin/changes", params={"cursor": first["cursor"]}, headers=headers
        ).json()
        self.assertEqual(again["events"], [])


class EditorApiTests(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers = self.admin()

    def test_palette(self):
        palette = self.client.get("/api/admin/editor/palette", headers=self.headers).json()
        self.assertEqual(len(palette["templates"]), 8)
        self.assertIn("\\alpha", [s["latex"] for s in palette["symbols"]])

    def test_apply_symbol_with_placeholder(self):
        response = self.client.post(
            "/api/admin/editor/apply",
            json={
                "text": "x = ",
                "selection_start": 4,
                "selection_end": 4,
                "action": "symbol",
                "latex": "\\sqrt{}",
            },
            headers=self.headers,
        )
        body = response.json()
        self.assertEqual(body["text"], "x = $\\sqrt{}$")
        self.assertEqual(body["text"][body["caret"] - 1 : body["caret"] + 1], "{}")

    def test_unknown_action(self):
        response = self.client.post(
            "/api/admin/editor/apply",
            json={"text": "", "action": "explode"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_preview_segments(self):
        response = self.client.post(
            "/api/admin/editor/preview",
            json={"text": "a\nb $$x^2$$ c"},
            headers=self.headers,
        )
        kinds = [s["kind"] for s in response.json()["segments"]]
        self.assertEqual(kinds, ["text", "latex", "text"])

    def test_editor_image_upload(self):
        response = self.client.post(
            "/api/admin/editor/image",
            files={"file": ("fig.png", png_bytes(10, 10), "image/png")},
            data={"text": "see", "selection_start": "3", "selection_end": "3"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertTrue(body["path"].startswith("question-images/"))
        self.assertEqual(body["edit"]["text"], f"see\n\n![Image]({body['url']})\n\n")


class SessionTests(AdminApiTestCase):
    def test_login_sets_cookie(self):
        self.make_user("admin", email="boss@example.com")
        response = self.client.post(
            "/api/auth/login",
            json={"email": "boss@example.com", "password": "password123"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "admin")
        self.assertIn("sb-access-token", response.cookies)
        self.assertIsNotNone(self.db.get("users", "user-1")["last_sign_in_at"])

        me = self.client.get("/api/auth/me")
        self.assertEqual(me.json()["user"]["email"], "boss@example.com")

    def test_login_refuses_students_and_signs_out(self):
        self.make_user("student", email="kid@example.com")
        response = self.client.post(
            "/api/auth/login",
            json={"email": "kid@example.com", "password": "password123"},
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(len(self.auth.sessions), 1)  # only the one make_user issued

    def test_login_bad_password(self):
        self.make_user("admin", email="boss@example.com")
        response = self.client.post(
            "/api/auth/login", json={"email": "boss@example.com", "password": "nope"}
        )
        self.assertEqual(response.status_code, 401)

    def test_callback_redirects(self):
        headers = self.make_user("teacher")
        token = headers["Authorization"].split(" ", 1)[1]
        ok = self.client.get(
            "/api/auth/callback", params={"access_token": token}, follow_redirects=False
        )
        self.assertEqual(ok.headers["location"], "/admin/dashboard")

        failed = self.client.get(
            "/api/auth/callback", params={"access_token": "bogus"}, follow_redirects=False
        )
        self.assertEqual(failed.headers["location"], "/login?error=callback_failed")

    def test_callback_signs_out_disallowed_role(self):
        headers = self.make_user("student")
        token = headers["Authorization"].split(" ", 1)[1]
        response = self.client.get(
            "/api/auth/callback", params={"access_token": token}, follow_redirects=False
        )
        self.assertEqual(response.headers["location"], "/not-allowed")
        self.assertIsNone(self.auth.get_user(token))

    def test_logout_clears_session(self):
        headers = self.make_user("admin")
        token = headers["Authorization"].split(" ", 1)[1]
        self.client.post("/api/auth/logout", headers=headers)
        self.assertIsNone(self.auth.get_user(token))


class SitePageTests(AdminApiTestCase):
    def test_home_page(self):
        page = self.client.get("/").text
        self.assertIn("Learn Smarter. Grow Faster.", page)
        self.assertIn("https://engineering.learnverse.com", page)
        self.assertIn("Refund Policy", page)

    def test_login_error_message(self):
        page = self.client.get("/login", params={"error": "system_error"}).text
        self.assertIn("Something went wrong while checking your access", page)

    def test_not_allowed_and_upcoming(self):
        self.assertIn("Access Denied", self.client.get("/not-allowed").text)
        self.assertIn("Page Under Construction", self.client.get("/upcoming").text)


if __name__ == "__main__":
    unittest.main()

"""Tests for the lessons screens: sections, questions, import and deletion."""

import io

from prep_admin.extensions import db
from prep_admin.models.curriculum import LearningPath, PathItem
from prep_admin.models.lesson import Lesson, Question, TestSection
from prep_admin.ordering import append_ordered


def _sections(app, lesson_id):
    with app.app_context():
        return [(s.title, s.order) for s in db.session.get(Lesson, lesson_id).sections]


def _add_section(client, lesson_id, title, type="multiple_choice"):
    return client.post(f"/admin/lessons/{lesson_id}/sections", data={"title": title, "type": type})


class TestLessonCrud:
    def test_list_and_search(self, admin_client, lesson_id):
        resp = admin_client.get("/admin/lessons/")
        assert resp.status_code == 200
        assert b"TOEIC Part 5" in resp.data
        resp = admin_client.get("/admin/lessons/?q=ielts")
        assert b"TOEIC Part 5" not in resp.data

    def test_list_is_paginated(self, app, admin_client, lesson_id):
        with app.app_context():
            db.session.add_all([Lesson(title=f"Newer lesson {n}", type="IELTS") for n in range(10)])
            db.session.commit()
        first = admin_client.get("/admin/lessons/")
        assert first.status_code == 200
        assert b"TOEIC Part 5" not in first.data
        second = admin_client.get("/admin/lessons/?page=2")
        assert second.status_code == 200
        assert b"TOEIC Part 5" in second.data
        assert b"Newer lesson" not in second.data

    def test_create_lesson(self, app, admin_client):
        resp = admin_client.post("/admin/lessons/new", data={"title": "Grammar: Tenses", "type": "Grammar"})
        assert resp.status_code == 302
        with app.app_context():
            lesson = Lesson.query.filter_by(title="Grammar: Tenses").one()
            assert resp.headers["Location"].endswith(f"/admin/lessons/{lesson.id}/edit")

    def test_create_lesson_requires_title(self, app, admin_client):
        admin_client.post("/admin/lessons/new", data={"title": "", "type": "Grammar"})
        with app.app_context():
            assert Lesson.query.count() == 0

    def test_edit_page(self, admin_client, lesson_id):
        _add_section(admin_client, lesson_id, "Part 5")
        resp = admin_client.get(f"/admin/lessons/{lesson_id}/edit")
        assert resp.status_code == 200
        assert b"Part 5" in resp.data

    def test_update_lesson(self, app, admin_client, lesson_id):
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/edit", data={
            "title": "TOEIC Part 5 (new)", "type": "TOEIC", "description": "",
        })
        assert resp.status_code == 302
        with app.app_context():
            assert db.session.get(Lesson, lesson_id).title == "TOEIC Part 5 (new)"

    def test_missing_lesson(self, admin_client):
        assert admin_client.get("/admin/lessons/999/edit").status_code == 404


class TestSections:
    def test_sections_are_appended_in_order(self, app, admin_client, lesson_id):
        for title in ("Part 5", "Part 6", "Part 7"):
            assert _add_section(admin_client, lesson_id, title).status_code == 302
        assert _sections(app, lesson_id) == [("Part 5", 1), ("Part 6", 2), ("Part 7", 3)]

    def test_move_and_delete(self, app, admin_client, lesson_id):
        for title in ("Part 5", "Part 6", "Part 7"):
            _add_section(admin_client, lesson_id, title)
        with app.app_context():
            ids = [s.id for s in db.session.get(Lesson, lesson_id).sections]

        admin_client.post(f"/admin/lessons/{lesson_id}/sections/{ids[2]}/move", data={"direction": "up"})
        assert _sections(app, lesson_id) == [("Part 5", 1), ("Part 7", 2), ("Part 6", 3)]

        admin_client.post(f"/admin/lessons/{lesson_id}/sections/{ids[0]}/delete")
        assert _sections(app, lesson_id) == [("Part 7", 1), ("Part 6", 2)]

    def test_bad_direction(self, app, admin_client, lesson_id):
        _add_section(admin_client, lesson_id, "Part 5")
        with app.app_context():
            section_id = TestSection.query.one().id
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/sections/{section_id}/move", data={"direction": "left"})
        assert resp.status_code == 400


class TestQuestions:
    def _section_id(self, app, admin_client, lesson_id):
        _add_section(admin_client, lesson_id, "Part 5")
        with app.app_context():
            return TestSection.query.filter_by(lesson_id=lesson_id).one().id

    def test_add_question_with_labelled_options(self, app, admin_client, lesson_id):
        section_id = self._section_id(app, admin_client, lesson_id)
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/questions", data={
            "section_id": str(section_id),
            "question_text": "She ___ to work every day.",
            "options": "go\ngoes\n\ngoing",
            "correct_answer": "b",
        })
        assert resp.status_code == 302
        with app.app_context():
            question = Question.query.one()
            assert question.options == [
                {"label": "A", "text": "go"},
                {"label": "B", "text": "goes"},
                {"label": "C", "text": "going"},
            ]
            assert question.correct_answer == "B"
            assert question.option_text("B") == "goes"
            assert question.order == 1

    def test_correct_answer_must_match_an_option(self, app, admin_client, lesson_id):
        section_id = self._section_id(app, admin_client, lesson_id)
        admin_client.post(f"/admin/lessons/{lesson_id}/questions", data={
            "section_id": str(section_id),
            "question_text": "Pick",
            "options": "yes\nno",
            "correct_answer": "C",
        })
        with app.app_context():
            assert Question.query.count() == 0

    def test_section_of_another_lesson(self, app, admin_client, lesson_id):
        with app.app_context():
            other = Lesson(title="Other", type="IELTS")
            db.session.add(other)
            db.session.commit()
            other_section = append_ordered(TestSection, lesson_id=other.id, title="Other part", type="reading")
            other_section_id = other_section.id
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/questions", data={
            "section_id": str(other_section_id),
            "question_text": "Pick",
            "options": "yes\nno",
            "correct_answer": "A",
        })
        assert resp.status_code == 404

    def test_move_and_delete_questions(self, app, admin_client, lesson_id):
        section_id = self._section_id(app, admin_client, lesson_id)
        for text in ("Q1", "Q2", "Q3"):
            admin_client.post(f"/admin/lessons/{lesson_id}/questions", data={
                "section_id": str(section_id), "question_text": text, "options": "a\nb", "correct_answer": "A",
            })
        with app.app_context():
            ids = [q.id for q in Question.query.order_by(Question.order)]

        admin_client.post(f"/admin/lessons/{lesson_id}/questions/{ids[0]}/move", data={"direction": "down"})
        admin_client.post(f"/admin/lessons/{lesson_id}/questions/{ids[2]}/delete")
        with app.app_context():
            remaining = [(q.question_text, q.order) for q in Question.query.order_by(Question.order)]
        assert remaining == [("Q2", 1), ("Q1", 2)]


class TestDeleteLesson:
    def test_path_items_are_renumbered(self, app, admin_client, lesson_id, path_id):
        with app.app_context():
            second = Lesson(title="Second", type="TOEIC")
            db.session.add(second)
            db.session.commit()
            second_id = second.id
            append_ordered(PathItem, path_id=path_id, lesson_id=lesson_id)
            append_ordered(PathItem, path_id=path_id, lesson_id=second_id)

        resp = admin_client.post("/admin/lessons/delete", data={"lessonId": str(lesson_id)})
        assert resp.status_code == 302
        with app.app_context():
            assert db.session.get(Lesson, lesson_id) is None
            items = db.session.get(LearningPath, path_id).path_items
            assert [(item.lesson_id, item.item_order) for item in items] == [(second_id, 1)]

    def test_sections_go_with_the_lesson(self, app, admin_client, lesson_id):
        _add_section(admin_client, lesson_id, "Part 5")
        admin_client.post("/admin/lessons/delete", data={"lessonId": str(lesson_id)})
        with app.app_context():
            assert TestSection.query.count() == 0


class TestImport:
    CSV = (
        "section_type,section_title,question_text,option_a,option_b,option_c,option_d,correct_answer\n"
        "multiple_choice,Part 5,She ___ to work.,go,goes,going,gone,b\n"
        "listening,Part 1,What is he doing?,Reading,Walking,,,A\n"
        ",,,,,,,\n"
        "writing,Task 1,Only one option,yes,,,,A\n"
    )

    def test_import_page(self, admin_client, lesson_id):
        resp = admin_client.get(f"/admin/lessons/{lesson_id}/import")
        assert resp.status_code == 200
        assert b"option_a" in resp.data

    def test_import_csv(self, app, admin_client, lesson_id):
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/import", data={
            "file": (io.BytesIO(self.CSV.encode("utf-8")), "questions.csv"),
        })
        assert resp.status_code == 302
        assert _sections(app, lesson_id) == [("Part 5", 1), ("Part 1", 2)]
        with app.app_context():
            assert [q.correct_answer for q in Question.query.order_by(Question.id)] == ["B", "A"]

    def test_wrong_extension(self, app, admin_client, lesson_id):
        resp = admin_client.post(f"/admin/lessons/{lesson_id}/import", data={
            "file": (io.BytesIO(b"x"), "questions.txt"),
        })
        assert resp.status_code == 200
        assert "Chỉ hỗ trợ file CSV".encode() in resp.data

    def test_template_download(self, admin_client):
        resp = admin_client.get("/admin/lessons/import/template/csv")
        assert resp.status_code == 200
        assert "lesson_import_template.csv" in resp.headers["Content-Disposition"]
        assert b"section_type" in resp.data

    def test_unknown_template_format(self, admin_client):
        assert admin_client.get("/admin/lessons/import/template/pdf").status_code == 302

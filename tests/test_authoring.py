"""Tests for authoring.py: the exercise draft and its question modal."""

import pytest

from prep_admin.authoring import (
    ADDING,
    CHOOSE_CORRECT_MESSAGE,
    CLOSED,
    DUPLICATE_QUESTION_MESSAGE,
    EDIT_IN_PROGRESS_MESSAGE,
    EDITING_EXISTING,
    EDITING_NEW,
    FILL_BLANK_MESSAGE,
    INVALID_PAYLOAD_MESSAGE,
    MIN_OPTIONS_MESSAGE,
    ExerciseDraft,
    QuestionDraft,
)
from prep_admin.errors import REQUIRED_FIELDS_MESSAGE, ValidationError


def _mcq(text="What is the main topic?", options=("Travel", "Business"), correct="Business", id=None):
    return QuestionDraft(text, "multiple_choice", 10, list(options), correct, id=id)


def _draft(**overrides):
    values = {"title": "TOEIC Listening", "exercise_type": "multiple_choice", "difficulty_level": "medium"}
    values.update(overrides)
    return ExerciseDraft(**values)


class TestQuestionDraft:
    def test_removing_the_correct_option_clears_the_answer(self):
        question = _mcq(options=("Travel", "Business", "Food"), correct="Business")
        question.remove_option(1)
        assert question.options == ["Travel", "Food"]
        assert question.correct_answer == ""
        assert CHOOSE_CORRECT_MESSAGE in question.errors()

    def test_removing_another_option_keeps_the_answer(self):
        question = _mcq(options=("Travel", "Business", "Food"), correct="Business")
        question.remove_option(2)
        assert question.correct_answer == "Business"
        assert question.errors() == []

    def test_renaming_the_correct_option_follows_it(self):
        question = _mcq()
        question.set_option(1, "Business trip")
        assert question.correct_answer == "Business trip"

    def test_multiple_choice_needs_two_options(self):
        question = _mcq(options=("Only one", "", "  "), correct="Only one")
        assert MIN_OPTIONS_MESSAGE in question.errors()

    def test_fill_blank_accepted_answers(self):
        question = QuestionDraft("She ___ to work.", "fill_blank", 10, None, " goes | walks || ")
        assert question.accepted_answers == ["goes", "walks"]
        assert question.to_dict()["correct_answer"] == "goes|walks"
        assert question.to_dict()["options"] is None

    def test_fill_blank_without_answers(self):
        question = QuestionDraft("She ___ to work.", "fill_blank", 10, None, " | ")
        assert question.errors() == [FILL_BLANK_MESSAGE]

    def test_true_false_is_normalised(self):
        question = QuestionDraft("The sky is green.", "true_false", 5, None, "FALSE")
        assert question.errors() == []
        assert question.to_dict()["correct_answer"] == "false"

    def test_essay_needs_only_text(self):
        question = QuestionDraft("Discuss.", "essay", 100, None, "")
        assert question.errors() == []
        assert question.to_dict()["correct_answer"] is None

    def test_from_dict_reads_numeric_ids(self):
        question = QuestionDraft.from_dict({"id": "12", "question_text": "Q", "question_type": "essay"})
        assert question.id == 12


class TestExerciseValidation:
    def test_missing_title_is_rejected_first(self):
        draft = ExerciseDraft(title="", exercise_type="essay", difficulty_level="hard")
        with pytest.raises(ValidationError) as excinfo:
            draft.to_payload()
        assert excinfo.value.message == REQUIRED_FIELDS_MESSAGE
        assert excinfo.value.field == "title"

    def test_unknown_exercise_type(self):
        with pytest.raises(ValidationError):
            _draft(exercise_type="crossword").validate()

    def test_negative_max_score(self):
        with pytest.raises(ValidationError):
            _draft(max_score=-5).validate()

    def test_invalid_question_is_reported_with_its_number(self):
        draft = _draft(questions=[_mcq(), _mcq(correct="")])
        with pytest.raises(ValidationError) as excinfo:
            draft.validate()
        assert excinfo.value.message.startswith("Câu hỏi 2:")

    def test_payload_defaults(self):
        payload = _draft(description="  ", questions=[_mcq()]).to_payload()
        assert payload["max_score"] == 100
        assert payload["description"] is None
        assert payload["time_limit_minutes"] is None
        assert payload["questions"][0]["options"] == ["Travel", "Business"]

    def test_exercise_without_questions_is_valid(self):
        assert _draft().to_payload()["questions"] == []


class TestQuestionModal:
    def test_add_then_commit(self):
        draft = _draft()
        question = draft.open_add()
        assert draft.mode == ADDING
        question.question_text = "Pick one"
        question.question_type = "multiple_choice"
        question.options = ["Yes", "No"]
        question.correct_answer = "Yes"
        draft.commit_question()
        assert draft.mode == CLOSED
        assert [q.question_text for q in draft.questions] == ["Pick one"]

    def test_only_one_question_open_at_a_time(self):
        draft = _draft(questions=[_mcq()])
        draft.open_add()
        with pytest.raises(ValidationError) as excinfo:
            draft.open_edit_new(0)
        assert excinfo.value.message == EDIT_IN_PROGRESS_MESSAGE
        with pytest.raises(ValidationError):
            draft.remove_new(0)

    def test_saving_with_an_open_question_is_refused(self):
        draft = _draft()
        draft.open_add()
        with pytest.raises(ValidationError) as excinfo:
            draft.to_payload()
        assert excinfo.value.message == EDIT_IN_PROGRESS_MESSAGE

    def test_invalid_question_keeps_the_modal_open(self):
        draft = _draft()
        draft.open_add()
        with pytest.raises(ValidationError):
            draft.commit_question()
        assert draft.mode == ADDING
        assert draft.questions == []

    def test_edit_existing_works_on_a_copy_until_committed(self):
        draft = _draft(existing_questions=[_mcq(id=7)])
        question = draft.open_edit_existing(0)
        assert draft.mode == EDITING_EXISTING
        question.question_text = "Changed"
        draft.cancel()
        assert draft.existing_questions[0].question_text == "What is the main topic?"

        question = draft.open_edit_existing(0)
        question.question_text = "Changed"
        draft.commit_question()
        assert draft.existing_questions[0].question_text == "Changed"
        assert draft.existing_questions[0].id == 7

    def test_edit_new_replaces_in_place(self):
        draft = _draft(questions=[_mcq(text="first"), _mcq(text="second")])
        question = draft.open_edit_new(1)
        assert draft.mode == EDITING_NEW
        question.question_text = "second, edited"
        draft.commit_question()
        assert [q.question_text for q in draft.questions] == ["first", "second, edited"]

    def test_commit_with_nothing_open(self):
        with pytest.raises(ValidationError):
            _draft().commit_question()

    def test_parsed_questions_are_appended(self):
        draft = _draft()
        draft.add_parsed_questions([
            {"question": "Capital of France?", "options": ["Paris", "Rome"], "correctAnswer": 0},
            {"question": "Broken index", "options": ["A", "B"], "correctAnswer": 5},
        ])
        assert draft.questions[0].correct_answer == "Paris"
        assert draft.questions[1].correct_answer == ""


class TestPlanChanges:
    def test_inserts_updates_and_deletes(self):
        draft = _draft(existing_questions=[_mcq(id=2)], questions=[_mcq(text="brand new")])
        changes = draft.plan_changes(persisted_ids=[1, 2, 3])
        assert [data["question_text"] for data in changes.inserts] == ["brand new"]
        assert [question_id for question_id, _ in changes.updates] == [2]
        assert changes.deletes == [1, 3]

    def test_foreign_question_ids_are_rejected(self):
        draft = _draft(existing_questions=[_mcq(id=99)])
        with pytest.raises(ValidationError):
            draft.plan_changes(persisted_ids=[1])

    def test_from_payload_splits_existing_and_new(self):
        draft = ExerciseDraft.from_payload({
            "title": "T",
            "exercise_type": "essay",
            "difficulty_level": "easy",
            "questions": [
                {"id": 4, "question_text": "kept", "question_type": "essay"},
                {"question_text": "added", "question_type": "essay"},
            ],
        })
        assert [q.id for q in draft.existing_questions] == [4]
        assert [q.question_text for q in draft.questions] == ["added"]

    def test_repeated_existing_question_fails_validation(self):
        draft = _draft(existing_questions=[_mcq(id=2), _mcq(text="copy", id=2)])
        with pytest.raises(ValidationError) as excinfo:
            draft.validate()
        assert excinfo.value.message == DUPLICATE_QUESTION_MESSAGE


class TestPayloadShape:
    BASE = {"title": "T", "exercise_type": "essay", "difficulty_level": "easy"}

    @pytest.mark.parametrize("questions", ["oops", ["oops"], [None], {"question_text": "Q"}])
    def test_questions_must_be_a_list_of_objects(self, questions):
        with pytest.raises(ValidationError) as excinfo:
            ExerciseDraft.from_payload(dict(self.BASE, questions=questions))
        assert excinfo.value.message == INVALID_PAYLOAD_MESSAGE

    @pytest.mark.parametrize("field", ["title", "description", "exercise_type", "difficulty_level"])
    def test_text_fields_must_be_strings(self, field):
        with pytest.raises(ValidationError) as excinfo:
            ExerciseDraft.from_payload(dict(self.BASE, **{field: 123}))
        assert excinfo.value.field == field

    def test_options_must_be_strings(self):
        question = {"question_text": "Q", "question_type": "multiple_choice", "options": ["a", 2]}
        with pytest.raises(ValidationError):
            ExerciseDraft.from_payload(dict(self.BASE, questions=[question]))

    def test_boolean_true_false_answer_is_accepted(self):
        question = {"question_text": "Q", "question_type": "true_false", "correct_answer": False}
        draft = ExerciseDraft.from_payload(dict(self.BASE, questions=[question]))
        assert draft.questions[0].to_dict()["correct_answer"] == "false"

    def test_non_numeric_question_id(self):
        question = {"id": "abc", "question_text": "Q", "question_type": "essay"}
        with pytest.raises(ValidationError):
            ExerciseDraft.from_payload(dict(self.BASE, questions=[question]))

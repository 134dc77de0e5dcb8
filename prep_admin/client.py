# prep_admin/client.py
"""
Client side of the exercises screen.

``AdminApiClient`` talks to the JSON API over ``requests``. ``ExerciseBoard``
holds the list the operator is looking at and changes it only after the
server has accepted a mutation: on failure the list is left exactly as it
was and ``board.error`` carries the message to show.
"""

import logging

import requests

from prep_admin.authoring import ExerciseDraft
from prep_admin.errors import AdminError, ValidationError
from prep_admin.uploads import validate_upload

logger = logging.getLogger(__name__)

CONNECTION_MESSAGE = "Không thể kết nối tới máy chủ. Vui lòng thử lại."
CONFIRM_DELETE_MESSAGE = "Vui lòng xác nhận trước khi xóa"
NOT_LISTED_MESSAGE = "Không tìm thấy bài tập"


class ApiError(AdminError):
    def __init__(self, message=None, status_code=500):
        super().__init__(message)
        self.status_code = status_code


class AdminApiClient:
    def __init__(self, base_url, session=None, timeout=15):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(CONNECTION_MESSAGE, status_code=503) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        return body

    # --- exercises ---

    def list_exercises(self, exercise_type=None, difficulty_level=None, search=None):
        params = {
            key: value
            for key, value in (
                ("exercise_type", exercise_type),
                ("difficulty_level", difficulty_level),
                ("search", search),
            )
            if value
        }
        return self._request("GET", "/api/exercises", params=params).get("exercises", [])

    def get_exercise(self, exercise_id):
        return self._request("GET", f"/api/exercises/{exercise_id}")["exercise"]

    def create_exercise(self, payload):
        return self._request("POST", "/api/exercises", json=payload)["exercise"]

    def update_exercise(self, exercise_id, payload):
        return self._request("PUT", f"/api/exercises/{exercise_id}", json=payload)["exercise"]

    def toggle_exercise_status(self, exercise_id, is_active):
        return self._request(
            "PATCH", f"/api/exercises/{exercise_id}/toggle-status", json={"is_active": is_active}
        )["exercise"]

    def delete_exercise(self, exercise_id):
        self._request("DELETE", f"/api/exercises/{exercise_id}")

    def upload_file(self, filename, stream, mimetype, size):
        # Rejected files never leave the machine
        validate_upload(filename, mimetype, size)
        body = self._request(
            "POST", "/api/exercises/upload-file", files={"file": (filename, stream, mimetype)}
        )
        return body["data"]

    # --- other screens ---

    def learning_paths(self):
        return self._request("GET", "/api/learning-paths").get("data", [])

    def user_stats(self):
        return self._request("GET", "/api/users")["data"]["stats"]


class ExerciseBoard:
    """In-memory exercise list kept in step with the server."""

    def __init__(self, api):
        self.api = api
        self.exercises = []
        self.error = None
        self.loading = False

    def _find(self, exercise_id):
        """``(index, exercise)`` of a listed exercise, or None with ``error`` set."""
        for index, exercise in enumerate(self.exercises):
            if exercise["id"] == exercise_id:
                return index, exercise
        self.error = NOT_LISTED_MESSAGE
        return None

    def _run(self, call, *args):
        self.loading = True
        self.error = None
        try:
            return call(*args)
        except AdminError as e:
            self.error = e.message
            return None
        finally:
            self.loading = False

    def load(self, **filters):
        exercises = self._run(lambda: self.api.list_exercises(**filters))
        if exercises is not None:
            self.exercises = list(exercises)
        return self.exercises

    def _payload(self, draft):
        if isinstance(draft, dict):
            draft = ExerciseDraft.from_payload(draft)
        try:
            return draft.to_payload()
        except ValidationError as e:
            self.error = e.message
            return None

    def create(self, draft):
        payload = self._payload(draft)
        if payload is None:
            return None
        created = self._run(self.api.create_exercise, payload)
        if created is not None:
            self.exercises.insert(0, created)
        return created

    def update(self, exercise_id, draft):
        found = self._find(exercise_id)
        if found is None:
            return None
        payload = self._payload(draft)
        if payload is None:
            return None
        updated = self._run(self.api.update_exercise, exercise_id, payload)
        if updated is not None:
            self.exercises[found[0]] = updated
        return updated

    def toggle_status(self, exercise_id):
        found = self._find(exercise_id)
        if found is None:
            return False
        index, exercise = found
        target = not exercise.get("is_active", True)
        updated = self._run(self.api.toggle_exercise_status, exercise_id, target)
        if updated is None:
            return False
        self.exercises[index] = dict(exercise, is_active=updated.get("is_active", target))
        return True

    def delete(self, exercise_id, confirm=False):
        if not confirm:
            self.error = CONFIRM_DELETE_MESSAGE
            return False
        found = self._find(exercise_id)
        if found is None:
            return False
        done = self._run(lambda: self.api.delete_exercise(exercise_id) or True)
        if not done:
            return False
        del self.exercises[found[0]]
        return True

    def upload_source(self, filename, stream, mimetype, size):
        """Upload a source document; returns its public URL or None."""
        self.error = None
        try:
            validate_upload(filename, mimetype, size)
        except ValidationError as e:
            self.error = e.message
            return None
        data = self._run(self.api.upload_file, filename, stream, mimetype, size)
        return data["publicUrl"] if data else None

    def visible(self, search="", exercise_type="", difficulty=""):
        needle = (search or "").strip().lower()
        result = []
        for exercise in self.exercises:
            if exercise_type and exercise.get("exercise_type") != exercise_type:
                continue
            if difficulty and exercise.get("difficulty_level") != difficulty:
                continue
            haystack = f"{exercise.get('title') or ''} {exercise.get('description') or ''}".lower()
            if needle and needle not in haystack:
                continue
            result.append(exercise)
        return result

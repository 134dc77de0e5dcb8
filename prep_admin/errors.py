"""
Error taxonomy shared by the admin screens and the JSON API.

Views catch these and turn them into a flashed banner or a JSON ``error``
field. Only ``message`` is ever shown to a user; the raw backend text stays
in ``detail`` for the logs.
"""

REQUIRED_FIELDS_MESSAGE = "Vui lòng điền đầy đủ thông tin bắt buộc"
GENERIC_STORE_MESSAGE = "Không thể lưu dữ liệu. Vui lòng thử lại sau."


class AdminError(Exception):
    status_code = 500
    message = "Đã xảy ra lỗi không xác định."

    def __init__(self, message=None, detail=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.detail = detail

    def to_dict(self):
        return {"error": self.message}


class ValidationError(AdminError):
    status_code = 400
    message = REQUIRED_FIELDS_MESSAGE

    def __init__(self, message=None, field=None):
        super().__init__(message)
        self.field = field


class NotFoundError(AdminError):
    status_code = 404
    message = "Không tìm thấy dữ liệu."


class StoreError(AdminError):
    status_code = 500
    message = GENERIC_STORE_MESSAGE

    @classmethod
    def from_exception(cls, exc, message=None):
        """Wrap a SQLAlchemy error without leaking its text to users."""
        orig = getattr(exc, "orig", None) or exc
        return cls(message, detail=str(orig))


class OrderingConflict(StoreError):
    status_code = 409
    message = "Có thao tác khác đang cập nhật thứ tự. Vui lòng thử lại."


class StorageError(AdminError):
    status_code = 500
    message = "Không thể upload file. Vui lòng thử lại sau."


# Known backend phrases mapped to messages that are safe to display
_SANITIZED = (
    ("unique", "Dữ liệu đã tồn tại."),
    ("duplicate", "Dữ liệu đã tồn tại."),
    ("foreign key", "Dữ liệu liên kết không hợp lệ."),
    ("not null", REQUIRED_FIELDS_MESSAGE),
    ("check constraint", "Giá trị không hợp lệ."),
    ("permission", "Bạn không có quyền thực hiện thao tác này."),
)


def user_message(exc):
    """Return the text that may be displayed for ``exc``."""
    if isinstance(exc, AdminError):
        return exc.message
    text = str(getattr(exc, "orig", exc)).lower()
    for needle, message in _SANITIZED:
        if needle in text:
            return message
    return GENERIC_STORE_MESSAGE

# prep_admin/importer.py
"""
Bulk import of lesson sections and questions from CSV or Excel.

Each row names a section (by type and title) and one multiple-choice
question. Sections are looked up within the lesson and created on first
use; both sections and questions are appended through ``append_ordered`` so
their positions stay contiguous. Rows are independent: a bad row is
reported and skipped, valid rows are kept.
"""

import io
import logging
from collections import namedtuple

import pandas as pd

from prep_admin.errors import AdminError, ValidationError, user_message
from prep_admin.models.lesson import SECTION_TYPES, Question, TestSection
from prep_admin.ordering import append_ordered

logger = logging.getLogger(__name__)

EXPECTED_IMPORT_COLUMNS = [
    "section_type",
    "section_title",
    "question_text",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_answer",
]
OPTION_COLUMNS = (("A", "option_a"), ("B", "option_b"), ("C", "option_c"), ("D", "option_d"))
ALLOWED_IMPORT_EXTENSIONS = {"csv", "xlsx"}

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ImportResult = namedtuple("ImportResult", ["imported", "sections_created", "errors"])


def allowed_import_file(filename):
    return "." in (filename or "") and filename.rsplit(".", 1)[1].lower() in ALLOWED_IMPORT_EXTENSIONS


def read_import_file(file_storage):
    """Load an uploaded CSV/XLSX into a DataFrame with every cell as text."""
    if not file_storage or not file_storage.filename:
        raise ValidationError("Không có file", field="file")
    if not allowed_import_file(file_storage.filename):
        raise ValidationError("Chỉ hỗ trợ file CSV (.csv) hoặc Excel (.xlsx)", field="file")
    try:
        if file_storage.filename.lower().endswith(".xlsx"):
            df = pd.read_excel(file_storage, dtype=str, engine="openpyxl")
        else:
            df = pd.read_csv(file_storage, dtype=str, skip_blank_lines=True)
    except Exception as e:
        logger.error("Could not read import file %s: %s", file_storage.filename, e)
        raise ValidationError("Không thể đọc file. Vui lòng kiểm tra định dạng.", field="file") from e

    df.columns = [str(col).strip() for col in df.columns]
    missing_columns = [col for col in EXPECTED_IMPORT_COLUMNS if col not in df.columns]
    if missing_columns:
        raise ValidationError(f"File thiếu các cột bắt buộc: {', '.join(missing_columns)}", field="file")
    return df


def _cell(row, column):
    value = row.get(column)
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _find_or_create_section(lesson_id, section_type, title, cache):
    key = (section_type, title)
    if key in cache:
        return cache[key], False
    section = TestSection.query.filter_by(lesson_id=lesson_id, type=section_type, title=title).first()
    created = False
    if section is None:
        section = append_ordered(TestSection, lesson_id=lesson_id, type=section_type, title=title)
        created = True
    cache[key] = section.id
    return section.id, created


def import_lesson_rows(lesson_id, df):
    """Import every row of ``df`` into lesson ``lesson_id``; returns an ``ImportResult``."""
    imported = 0
    sections_created = 0
    errors = []
    sections = {}

    for index, row in df.iterrows():
        # Header is line 1 in the file
        line = index + 2
        section_type = _cell(row, "section_type").lower()
        section_title = _cell(row, "section_title")
        question_text = _cell(row, "question_text")
        correct = _cell(row, "correct_answer").upper()

        if not (section_type and section_title and question_text and correct):
            errors.append(f"Dòng {line}: thiếu thông tin bắt buộc.")
            continue
        if section_type not in SECTION_TYPES:
            errors.append(f"Dòng {line}: loại phần không hợp lệ ({section_type}).")
            continue

        options = [
            {"label": label, "text": _cell(row, column)}
            for label, column in OPTION_COLUMNS
            if _cell(row, column)
        ]
        if len(options) < 2:
            errors.append(f"Dòng {line}: cần ít nhất 2 lựa chọn.")
            continue
        if correct not in [option["label"] for option in options]:
            errors.append(f"Dòng {line}: đáp án đúng không khớp với lựa chọn nào.")
            continue

        try:
            section_id, created = _find_or_create_section(lesson_id, section_type, section_title, sections)
            sections_created += int(created)
            append_ordered(
                Question,
                section_id=section_id,
                question_text=question_text,
                question_type="multiple_choice",
                options=options,
                correct_answer=correct,
            )
            imported += 1
        except AdminError as e:
            logger.error("Import of line %d into lesson %s failed: %s (%s)", line, lesson_id, e, e.detail)
            errors.append(f"Dòng {line}: {user_message(e)}")

    logger.info(
        "Imported %d questions (%d new sections) into lesson %s, %d rows rejected",
        imported, sections_created, lesson_id, len(errors),
    )
    return ImportResult(imported, sections_created, errors)


def template_file(fmt):
    """Empty import template; returns ``(buffer, filename, mimetype)``."""
    df_template = pd.DataFrame(columns=EXPECTED_IMPORT_COLUMNS)
    output = io.BytesIO()
    filename = "lesson_import_template"
    if fmt == "xlsx":
        df_template.to_excel(output, index=False, engine="openpyxl")
        filename += ".xlsx"
        mimetype = XLSX_MIME
    elif fmt == "csv":
        # utf-8-sig so Excel opens Vietnamese text correctly
        df_template.to_csv(output, index=False, encoding="utf-8-sig")
        filename += ".csv"
        mimetype = "text/csv"
    else:
        raise ValidationError("Định dạng file mẫu không hợp lệ.")
    output.seek(0)
    return output, filename, mimetype

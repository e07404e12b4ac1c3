"""
Unit Tests for page decorations: header, watermark, approval and student blocks
"""
from datetime import datetime

import pytest

from app.modules.letters.records import ApprovalState, ReviewerRole
from app.modules.pdf.decorations import (
    COLUMN_GUTTER,
    GROUP_INDENT,
    LAYOUT_AUTO,
    LAYOUT_SEQUENTIAL,
    LAYOUT_TWO_COLUMN,
    QR_IMAGE_KEY,
    PageDecorator,
    format_letter_date,
    render_qr_png,
)
from app.modules.pdf.styles import APPROVED_COLOR, NOT_APPROVED_COLOR, PAGE_MARGIN
from app.modules.pdf.surface import DocumentSurface, DrawCursor, ImageOp


SHUFFLED_APPROVALS = {
    ReviewerRole.ECE_HOD: ApprovalState.REJECTED,
    ReviewerRole.TPO: ApprovalState.PENDING,
    ReviewerRole.DIRECTOR: ApprovalState.APPROVED,
    ReviewerRole.CSE_HOD: ApprovalState.APPROVED,
}

APPROVED = {"csm": ["21R01A6601"], "cse": ["21R01A0501", "21R01A0503"]}


def make_decorator(composer, layout_mode=LAYOUT_SEQUENTIAL, **kwargs):
    return PageDecorator(
        composer,
        issuer="CMRIT",
        club_name="Robotics Club",
        recipient_lines=["To,", "The Director,"],
        salutation="Respected Sir,",
        layout_mode=layout_mode,
        **kwargs,
    )


def texts(surface, tag):
    return [op.text for page in surface.pages for op in page.ops_tagged(tag)]


class TestHeader:

    def test_qr_and_date(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())
        start_y = cursor.y

        decorator.draw_header(cursor, datetime(2026, 10, 9))
        page = cursor.page

        (qr,) = [op for op in page.ops if isinstance(op, ImageOp)]
        assert qr.image_key == QR_IMAGE_KEY
        assert qr.x + qr.width == pytest.approx(cursor.page_width - PAGE_MARGIN)
        assert texts(cursor.surface, "date") == ["Date: October 9, 2026"]
        assert texts(cursor.surface, "header") == ["Robotics Club"]
        assert cursor.y < qr.y < start_y

    def test_format_letter_date_has_no_zero_padding(self):
        assert format_letter_date(datetime(2026, 3, 5)) == "March 5, 2026"

    def test_qr_png(self):
        data = render_qr_png("https://clubs.example.edu/verify-letter/abc")

        assert data.startswith(b"\x89PNG\r\n\x1a\n")

    def test_fixed_lines(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())

        decorator.draw_recipient_block(cursor)
        decorator.draw_subject(cursor, "Workshop")
        decorator.draw_salutation(cursor)
        decorator.draw_signature(cursor, "Asha Rao")

        assert texts(cursor.surface, "recipient") == ["To,", "The", "Director,"]
        assert texts(cursor.surface, "subject") == ["Subject:", "Workshop"]
        assert texts(cursor.surface, "signature") == ["Yours", "Sincerely,", "Asha", "Rao"]


class TestWatermark:

    def test_tiles_cover_page(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface(), on_new_page=decorator.draw_watermark)

        marks = cursor.page.ops_tagged("watermark")
        assert len(marks) > 4
        assert {op.text for op in marks} == {"CMRIT-Robotics Club"}
        assert all(op.angle == 45 and 0 < op.opacity < 1 for op in marks)
        assert min(op.x for op in marks) < 0
        assert max(op.y for op in marks) >= cursor.page_height - 200

    def test_identical_on_every_page(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface(), on_new_page=decorator.draw_watermark)
        cursor.new_page()
        cursor.new_page()

        layouts = [
            [(op.text, op.x, op.y) for op in page.ops_tagged("watermark")]
            for page in cursor.surface.pages
        ]
        assert len(layouts) == 3
        assert layouts[0] == layouts[1] == layouts[2]


class TestApprovalBlock:

    def test_canonical_order_and_colors(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())

        decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, {})
        rows = cursor.page.ops_tagged("approval")

        assert [op.text for op in rows] == [
            "DIRECTOR: APPROVED",
            "TPO: PENDING",
            "CSE HOD: APPROVED",
            "ECE HOD: REJECTED",
        ]
        assert [op.color for op in rows] == [
            APPROVED_COLOR, NOT_APPROVED_COLOR, APPROVED_COLOR, NOT_APPROVED_COLOR,
        ]
        assert texts(cursor.surface, "approval-heading") == ["Approval Status:"]

    def test_order_independent_of_mapping_order(self, composer):
        first = make_decorator(composer).approval_rows(SHUFFLED_APPROVALS, 400)
        reordered = dict(reversed(list(SHUFFLED_APPROVALS.items())))
        second = make_decorator(composer).approval_rows(reordered, 400)

        assert [r.text for r in first] == [r.text for r in second]


class TestStudentBlock:

    def test_groups_in_canonical_order(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())

        decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, APPROVED)

        assert texts(cursor.surface, "students-group") == ["CSE:", "CSM:"]
        assert texts(cursor.surface, "students") == ["21R01A0501, 21R01A0503", "21R01A6601"]

    def test_freshman_label(self, composer):
        rows = make_decorator(composer).student_rows({"frsh": ["24R01A0001"]}, 400)

        assert [r.text for r in rows if r.tag == "students-group"] == ["Freshman:"]

    def test_empty_block_is_omitted(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())

        decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, {"cse": []})

        assert texts(cursor.surface, "students-heading") == []

    def test_long_lists_wrap_within_width(self, composer, measurer):
        numbers = [f"21R01A05{i:02d}" for i in range(60)]
        rows = make_decorator(composer).student_rows({"cse": numbers}, 300)
        number_rows = [r for r in rows if r.tag == "students"]

        assert len(number_rows) > 1
        for row in number_rows:
            assert row.indent + measurer.width_of(row.text, row.style.font_name, row.style.font_size) < 300
        assert " ".join(r.text for r in number_rows) == ", ".join(numbers)


class TestReviewLayout:

    def test_sequential_places_students_below_approvals(self, composer):
        decorator = make_decorator(composer)
        cursor = DrawCursor(DocumentSurface())

        assert decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, APPROVED) == LAYOUT_SEQUENTIAL
        page = cursor.page
        lowest_approval = min(op.y for op in page.ops_tagged("approval"))
        assert all(op.y < lowest_approval for op in page.ops_tagged("students-heading"))

    def test_auto_uses_two_columns_when_both_fit(self, composer):
        decorator = make_decorator(composer, layout_mode=LAYOUT_AUTO)
        cursor = DrawCursor(DocumentSurface())
        column_width = (cursor.content_width - COLUMN_GUTTER) / 2

        assert decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, APPROVED) == LAYOUT_TWO_COLUMN
        page = cursor.page
        (approval_heading,) = page.ops_tagged("approval-heading")
        students_heading = page.ops_tagged("students-heading")[0]
        assert approval_heading.y == students_heading.y
        assert approval_heading.x == pytest.approx(PAGE_MARGIN)
        assert students_heading.x == pytest.approx(cursor.right - column_width)
        assert all(op.x == pytest.approx(PAGE_MARGIN + GROUP_INDENT) for op in page.ops_tagged("approval"))
        assert cursor.left == PAGE_MARGIN

    def test_auto_falls_back_when_space_is_short(self, composer):
        decorator = make_decorator(composer, layout_mode=LAYOUT_AUTO)
        cursor = DrawCursor(DocumentSurface())
        cursor.y = cursor.bottom + 60

        assert decorator.draw_review_blocks(cursor, SHUFFLED_APPROVALS, APPROVED) == LAYOUT_SEQUENTIAL
        assert len(cursor.surface.pages) == 2

"""
Page Decoration Renderer

Fixed letter furniture around the rich body: header with the verification QR
code, recipient block, subject, salutation, signature, the approval-status and
permitted-students blocks, and the watermark tiling that every page carries.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Mapping, Sequence
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from app.modules.letters.records import (
    ApprovalState,
    ReviewerRole,
    group_label,
    ordered_approvals,
    ordered_groups,
)
from app.modules.pdf.composer import DocumentComposer
from app.modules.pdf.styles import (
    APPROVED_COLOR,
    BODY_COLOR,
    FONT_BOLD,
    FONT_REGULAR,
    NOT_APPROVED_COLOR,
    WATERMARK_COLOR,
    TextStyle,
)
from app.modules.pdf.surface import DrawCursor, PageSurface


QR_IMAGE_KEY = "verification-qr"
QR_SIZE = 80.0
QR_TOP_OFFSET = 40.0

TITLE_FONT_SIZE = 18.0
TITLE_BASELINE_OFFSET = 70.0

WATERMARK_FONT_SIZE = 40.0
WATERMARK_OPACITY = 0.15
WATERMARK_ANGLE = 45.0
WATERMARK_STEP_X = 260.0
WATERMARK_STEP_Y = 180.0

BLOCK_SPACING = 20.0
COLUMN_GUTTER = 20.0
GROUP_INDENT = 20.0
ROLL_NUMBER_INDENT = 40.0

LAYOUT_SEQUENTIAL = "sequential"
LAYOUT_TWO_COLUMN = "two-column"
LAYOUT_AUTO = "auto"

HEADING_STYLE = TextStyle(font_size=12.0, line_height=20.0, bold=True)
DETAIL_STYLE = TextStyle(font_size=10.0, line_height=15.0)
LABEL_STYLE = DETAIL_STYLE.derive(bold=True)
PLAIN_STYLE = TextStyle(font_size=12.0, line_height=20.0)


def render_qr_png(data: str) -> bytes:
    """PNG raster of a QR code encoding `data`"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def format_letter_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


@dataclass(frozen=True)
class BlockRow:
    """One pre-wrapped line of a structured block"""

    text: str
    style: TextStyle
    indent: float
    tag: str


def rows_height(rows: Sequence[BlockRow]) -> float:
    return sum(row.style.line_height for row in rows)


class PageDecorator:
    """Draws the fixed parts of a permission letter"""

    def __init__(
        self,
        composer: DocumentComposer,
        issuer: str,
        club_name: str,
        recipient_lines: Sequence[str] = (),
        salutation: str = "",
        layout_mode: str = LAYOUT_SEQUENTIAL,
    ):
        self.composer = composer
        self.measurer = composer.measurer
        self.issuer = issuer
        self.club_name = club_name
        self.recipient_lines = list(recipient_lines)
        self.salutation = salutation
        self.layout_mode = layout_mode

    @property
    def watermark_text(self) -> str:
        return self.measurer.sanitize(f"{self.issuer}-{self.club_name}")

    # ------------------------------------------------------------------
    # Watermark
    # ------------------------------------------------------------------

    def draw_watermark(self, page: PageSurface) -> None:
        """Staggered diagonal grid of faint issuer-club text over the whole page"""
        text = self.watermark_text
        width = self.measurer.width_of(text, FONT_REGULAR, WATERMARK_FONT_SIZE)
        rows = int(page.height // WATERMARK_STEP_Y) + 2
        cols = int(page.width // WATERMARK_STEP_X) + 2

        for row in range(rows):
            offset = (row % 2) * WATERMARK_STEP_X / 2
            for col in range(cols):
                x = -WATERMARK_STEP_X / 2 + col * WATERMARK_STEP_X + offset
                y = row * WATERMARK_STEP_Y
                page.draw_text(
                    text, x, y, FONT_REGULAR, WATERMARK_FONT_SIZE, WATERMARK_COLOR, width,
                    opacity=WATERMARK_OPACITY, angle=WATERMARK_ANGLE, tag="watermark",
                )

    # ------------------------------------------------------------------
    # Header and fixed lines
    # ------------------------------------------------------------------

    def draw_header(self, cursor: DrawCursor, date: datetime, qr_key: str = QR_IMAGE_KEY) -> None:
        page = cursor.page
        page_width, page_height = cursor.page_width, cursor.page_height

        qr_x = page_width - cursor.margin - QR_SIZE
        qr_y = page_height - QR_TOP_OFFSET - QR_SIZE
        page.draw_image(qr_key, qr_x, qr_y, QR_SIZE, QR_SIZE, tag="qr")

        date_text = f"Date: {format_letter_date(date)}"
        date_width = self.measurer.width_of(date_text, FONT_REGULAR, DETAIL_STYLE.font_size)
        date_y = qr_y - DETAIL_STYLE.line_height
        page.draw_text(date_text, page_width - cursor.margin - date_width, date_y,
                       FONT_REGULAR, DETAIL_STYLE.font_size, BODY_COLOR, date_width, tag="date")

        # Club name centred, kept clear of the QR code
        title_width_limit = page_width - 2 * (cursor.margin + QR_SIZE + 10)
        title = self.measurer.sanitize(self.club_name)
        baseline = page_height - TITLE_BASELINE_OFFSET
        for line in self.measurer.wrap(title, FONT_BOLD, TITLE_FONT_SIZE, title_width_limit):
            width = self.measurer.width_of(line, FONT_BOLD, TITLE_FONT_SIZE)
            page.draw_text(line, (page_width - width) / 2, baseline, FONT_BOLD, TITLE_FONT_SIZE,
                           BODY_COLOR, width, tag="header")
            baseline -= TITLE_FONT_SIZE * 1.3

        cursor.y = min(cursor.y, date_y - BLOCK_SPACING, baseline - BLOCK_SPACING)

    def _draw_plain_line(self, cursor: DrawCursor, text: str, style: TextStyle, tag: str) -> None:
        self.composer.flow_text(text, cursor, style, tag=tag)

    def draw_recipient_block(self, cursor: DrawCursor) -> None:
        for line in self.recipient_lines:
            self._draw_plain_line(cursor, line, PLAIN_STYLE, "recipient")

    def draw_subject(self, cursor: DrawCursor, subject: str) -> None:
        cursor.advance(BLOCK_SPACING)
        self._draw_plain_line(cursor, f"Subject: {subject}", PLAIN_STYLE.derive(bold=True), "subject")

    def draw_salutation(self, cursor: DrawCursor) -> None:
        if not self.salutation:
            return
        cursor.advance(BLOCK_SPACING)
        self._draw_plain_line(cursor, self.salutation, PLAIN_STYLE, "salutation")

    def draw_signature(self, cursor: DrawCursor, sincerely: str) -> None:
        cursor.advance(BLOCK_SPACING)
        # Keep the closing and the name together
        cursor.ensure_space(PLAIN_STYLE.line_height * 2)
        self._draw_plain_line(cursor, "Yours Sincerely,", PLAIN_STYLE, "signature")
        self._draw_plain_line(cursor, sincerely, PLAIN_STYLE.derive(bold=True), "signature")

    # ------------------------------------------------------------------
    # Structured blocks
    # ------------------------------------------------------------------

    def _wrap_rows(self, text: str, style: TextStyle, indent: float,
                   width: float, tag: str) -> List[BlockRow]:
        text = self.measurer.sanitize(text)
        lines = self.measurer.wrap(text, style.font_name, style.font_size, width - indent)
        return [BlockRow(line, style, indent, tag) for line in lines]

    def approval_rows(self, approvals: Mapping[ReviewerRole, ApprovalState], width: float) -> List[BlockRow]:
        rows = self._wrap_rows("Approval Status:", HEADING_STYLE, 0.0, width, "approval-heading")
        for role, state in ordered_approvals(approvals):
            color = APPROVED_COLOR if state == ApprovalState.APPROVED else NOT_APPROVED_COLOR
            rows.extend(self._wrap_rows(
                f"{role.label.upper()}: {state.value.upper()}",
                DETAIL_STYLE.derive(color=color), GROUP_INDENT, width, "approval",
            ))
        return rows

    def student_rows(self, approved: Mapping[str, Sequence[str]], width: float) -> List[BlockRow]:
        groups = [g for g in ordered_groups(approved) if approved.get(g)]
        if not groups:
            return []
        rows = self._wrap_rows("The following students are permitted:", HEADING_STYLE, 0.0, width,
                               "students-heading")
        for group in groups:
            rows.extend(self._wrap_rows(f"{group_label(group)}:", LABEL_STYLE, GROUP_INDENT, width,
                                        "students-group"))
            rows.extend(self._wrap_rows(", ".join(approved[group]), DETAIL_STYLE, ROLL_NUMBER_INDENT,
                                        width, "students"))
        return rows

    def draw_rows(self, rows: Sequence[BlockRow], cursor: DrawCursor) -> None:
        """Draw rows through the paginating cursor"""
        for row in rows:
            cursor.ensure_space(row.style.line_height)
            baseline = cursor.y - row.style.font_size
            width = self.measurer.width_of(row.text, row.style.font_name, row.style.font_size)
            cursor.page.draw_text(row.text, cursor.left + row.indent, baseline, row.style.font_name,
                                  row.style.font_size, row.style.color, width, tag=row.tag)
            cursor.advance(row.style.line_height)

    def draw_review_blocks(
        self,
        cursor: DrawCursor,
        approvals: Mapping[ReviewerRole, ApprovalState],
        approved: Mapping[str, Sequence[str]],
    ) -> str:
        """
        Draw approval status and permitted students; returns the layout used.

        In auto mode the blocks sit side by side when both fit on the current
        page; otherwise they flow one after the other.
        """
        cursor.advance(BLOCK_SPACING)

        if self.layout_mode == LAYOUT_AUTO:
            column_width = (cursor.content_width - COLUMN_GUTTER) / 2
            left_rows = self.approval_rows(approvals, column_width)
            right_rows = self.student_rows(approved, column_width)
            if max(rows_height(left_rows), rows_height(right_rows)) <= cursor.remaining_height:
                self._draw_two_columns(cursor, left_rows, right_rows, column_width)
                return LAYOUT_TWO_COLUMN

        self.draw_rows(self.approval_rows(approvals, cursor.content_width), cursor)
        student_rows = self.student_rows(approved, cursor.content_width)
        if student_rows:
            cursor.advance(BLOCK_SPACING)
            self.draw_rows(student_rows, cursor)
        return LAYOUT_SEQUENTIAL

    def _draw_two_columns(self, cursor: DrawCursor, left_rows: List[BlockRow],
                          right_rows: List[BlockRow], column_width: float) -> None:
        start_y = cursor.y
        left = cursor.left
        right = cursor.right

        with cursor.column(left, left + column_width):
            self.draw_rows(left_rows, cursor)
        left_end = cursor.y

        cursor.y = start_y
        with cursor.column(right - column_width, right):
            self.draw_rows(right_rows, cursor)

        cursor.y = min(left_end, cursor.y)

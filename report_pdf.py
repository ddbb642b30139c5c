"""PDF progress reports and biography sheets using fpdf2."""

from __future__ import annotations

from datetime import date, datetime

from fpdf import FPDF

NO_UPDATE = "No update was provided for this section."
ORG_NAME = "Daisy Education Portal"

_TITLE_RGB = (44, 62, 80)
_MUTED_RGB = (127, 140, 141)
_BAND_RGB = (248, 249, 250)


def _safe(text: str) -> str:
    """Replace unicode chars that latin-1 Helvetica can't handle."""
    text = (
        str(text)
        .replace("\u2014", "-")   # em-dash
        .replace("\u2013", "-")   # en-dash
        .replace("\u2018", "'")   # left single quote
        .replace("\u2019", "'")   # right single quote
        .replace("\u201c", '"')   # left double quote
        .replace("\u201d", '"')   # right double quote
        .replace("\u2026", "...")  # ellipsis
        .replace("\u2022", "-")   # bullet
    )
    return text.encode("latin-1", "replace").decode("latin-1")


def _or(text: str | None, fallback: str = NO_UPDATE) -> str:
    return fallback if not text or not str(text).strip() else str(text)


def pronouns_for(student: dict) -> dict[str, str]:
    gender = (student.get("Gender") or "").strip().lower()
    if "female" in gender or gender == "f":
        return {"subject": "she", "object": "her", "possessive": "her"}
    if "male" in gender or gender == "m":
        return {"subject": "he", "object": "him", "possessive": "his"}
    return {"subject": "they", "object": "them", "possessive": "their"}


def _long_date(value: str, with_weekday: bool = False) -> str:
    if not value:
        return "Not specified"
    try:
        d = date.fromisoformat(value[:10])
    except ValueError:
        return value
    fmt = "%A, %B %d, %Y" if with_weekday else "%B %d, %Y"
    return d.strftime(fmt)


# ── Layout helpers ─────────────────────────────────────────────


class _ReportPDF(FPDF):
    footer_text = ""

    def footer(self) -> None:
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(*_MUTED_RGB)
        self.cell(0, 8, _safe(f"{self.footer_text}  |  Page {self.page_no()}"), align="C")
        self.set_text_color(0, 0, 0)


def _main_header(pdf: FPDF, title: str) -> None:
    pdf.set_font("Helvetica", "B", 16)
    pdf.set_text_color(*_TITLE_RGB)
    pdf.cell(0, 10, _safe(title), align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 9)
    pdf.set_text_color(*_MUTED_RGB)
    pdf.cell(0, 6, f"Generated on: {date.today().strftime('%B %d, %Y')}", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(0, 0, 0)
    pdf.ln(4)


def _continuation_header(pdf: FPDF, title: str, student: dict) -> None:
    pdf.set_font("Helvetica", "B", 11)
    pdf.set_text_color(*_TITLE_RGB)
    pdf.cell(0, 8, _safe(f"{title} (Cont.) - {_or(student.get('Full Name'), 'N/A')}"), new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(0, 0, 0)
    pdf.ln(4)


def _profile_box(pdf: FPDF, title: str, rows: list[tuple[str, str]]) -> None:
    pdf.set_fill_color(*_BAND_RGB)
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 8, title, fill=True, new_x="LMARGIN", new_y="NEXT")
    for label, value in rows:
        pdf.set_font("Helvetica", "B", 9)
        pdf.cell(40, 6, _safe(label))
        pdf.set_font("Helvetica", "", 9)
        pdf.cell(0, 6, _safe(_or(value, "N/A")), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)


def _section(pdf: FPDF, title: str, body: str, bullet: bool = False) -> None:
    pdf.set_font("Helvetica", "B", 12)
    pdf.set_text_color(*_TITLE_RGB)
    pdf.multi_cell(0, 7, _safe(title), new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(0, 0, 0)
    pdf.set_font("Helvetica", "", 10)
    lines = body.split("\n") if bullet else [body]
    for line in lines:
        if bullet and not line.strip():
            pdf.ln(2)
            continue
        text = f"- {line.strip()}" if bullet else line
        pdf.multi_cell(0, 5, _safe(text), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(3)


# ── Term progress report ───────────────────────────────────────


def generate_term_report(student: dict, term: dict) -> bytes:
    """Three-page learner progress report for one term record."""
    name = _or(student.get("Full Name"), "N/A")
    p = pronouns_for(student)

    pdf = _ReportPDF()
    pdf.footer_text = f"{ORG_NAME} - {name}"
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.set_title(_safe(f"Progress Report - {name}"))
    pdf.set_author(ORG_NAME)
    pdf.set_subject(_safe(f"Academic Progress Report - {term.get('TermName', '')}"))

    # Page 1: overview & academics
    pdf.add_page()
    _main_header(pdf, "LEARNER PROGRESS REPORT")
    _profile_box(pdf, "LEARNER PROFILE", [
        ("Full Name:", name),
        ("Admission No:", student.get("Admission Number", "")),
        ("Gender:", student.get("Gender", "")),
        ("Sponsor Group:", student.get("Sponsorship Group", "")),
        ("Academic Level:", student.get("Educational Level", "")),
        ("Report Period:", term.get("TermName", "")),
        ("Program:", student.get("Department", "")),
    ])

    _section(pdf, "1. Executive Summary", _or(term.get("ExecutiveSummary")))
    _section(pdf, "2. Academic Progress & Achievements", "\n".join([
        _or(term.get("AcademicOverview")),
        "",
        f"Overall Grade: {_or(term.get('AcademicGrade'), 'Not specified')}",
        f"Class Rank: {_or(term.get('AcademicRank'), 'Not specified')}",
        f"Key Strengths: {_or(term.get('AcademicStrengths'), 'None noted')}",
        f"Key Challenges: {_or(term.get('AcademicChallenges'), 'None noted')}",
    ]), bullet=True)
    _section(pdf, "3. Personal & Social Development", "\n".join([
        f"At School: {_or(term.get('PersonalSchool'))}",
        f"Extracurricular Involvement: {_or(term.get('PersonalExtra'), 'Not involved in any activities this term')}",
    ]), bullet=True)
    _section(pdf, "4. Home Environment Update", "\n".join([
        f"Update Method: {_or(term.get('HomeUpdateMethod'), 'No specific update method recorded')}",
        f"Coordinator's Notes: {_or(term.get('HomeEnvironment'))}",
    ]), bullet=True)

    # Page 2: planning & needs
    pdf.add_page()
    _continuation_header(pdf, "LEARNER PROGRESS REPORT", student)
    _section(pdf, "5. Next Term Planning & Goals", "\n".join([
        f"Expected Return Date: {_long_date(term.get('NextTermDate', ''), with_weekday=True)}",
        f"Academic Goals: {_or(term.get('GoalsAcademic'))}",
        f"Personal Goals: {_or(term.get('GoalsPersonal'))}",
    ]), bullet=True)
    fees = term.get("FeesAmount")
    _section(pdf, "6. Next Term Requirements & Needs", "\n".join([
        f"School Fees: {('KES ' + fees) if fees else 'N/A'}. Due: {_long_date(term.get('FeesDueDate', ''))}",
        f"School Uniform: {_or(term.get('UniformNotes'))}",
        f"Textbooks & Supplies: {_or(term.get('BookList'))}",
        f"Transport: {_or(term.get('TransportNotes'))}",
        f"Other Needs: {_or(term.get('OtherNeeds'), 'None specified')}",
    ]), bullet=True)

    # Page 3: recommendations & conclusion
    pdf.add_page()
    _continuation_header(pdf, "LEARNER PROGRESS REPORT", student)
    _section(pdf, f"7. Coordinator's Recommendations (To Support {name})", "\n".join([
        f"Academic Support: {_or(term.get('RecommendAcademic'), 'Continue ' + p['possessive'] + ' current study patterns')}",
        f"Material & Personal Support: {_or(term.get('RecommendMaterial'), 'No specific material needs recommended at this time')}",
    ]), bullet=True)
    _section(pdf, "8. Concluding Remarks", _or(
        term.get("ConcludingRemark"),
        f"{name} continues to show steady progress and maintains good standing in "
        f"{p['possessive']} academic and social life.",
    ))

    return bytes(pdf.output())


# ── Biography sheet ────────────────────────────────────────────


def generate_biography_pdf(student: dict, biography: str) -> bytes:
    name = _or(student.get("Full Name"), "N/A")

    pdf = _ReportPDF()
    pdf.footer_text = f"{ORG_NAME} - {name}"
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.set_title(_safe(f"Student Biography - {name}"))
    pdf.set_author(ORG_NAME)

    pdf.add_page()
    _main_header(pdf, "STUDENT BIOGRAPHY")
    _profile_box(pdf, "STUDENT PROFILE", [
        ("Full Name:", name),
        ("Admission No:", student.get("Admission Number", "")),
        ("Department:", student.get("Department", "")),
        ("Educational Level:", student.get("Educational Level", "")),
        ("Gender:", student.get("Gender", "")),
        ("Sponsor Group:", student.get("Sponsorship Group", "")),
        ("Age:", student.get("Age", "")),
    ])
    _section(pdf, "BIOGRAPHY", _or(biography, "No biography available."))
    return bytes(pdf.output())


def report_filename(student: dict, term: dict) -> str:
    name = (student.get("Full Name") or "Student").replace(" ", "_")
    period = (term.get("TermName") or "Term").replace(" ", "_")
    return f"Progress_Report_{name}_{period}.pdf"


def biography_filename(student: dict) -> str:
    name = (student.get("Full Name") or "Student").replace(" ", "_")
    return f"Biography_{name}_{datetime.now().strftime('%Y%m%d')}.pdf"

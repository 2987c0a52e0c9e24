# ==============================================
# File: main/documents/pdf.py
# Purpose: Certificate, receipt and report PDFs (reportlab canvas)
# ==============================================
from __future__ import annotations

import ipaddress
import logging
import socket
import time
from io import BytesIO
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

import httpx
from django.db.models import Count, Sum
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

BRAND_INDIGO = colors.Color(79 / 255, 70 / 255, 229 / 255)
LIGHT_BG = colors.HexColor("#eef2ff")
MUTED = colors.HexColor("#64748b")
INK = colors.HexColor("#0f172a")

HEADER_HEIGHT = 50 * mm
X_MARGIN = 20 * mm

REPORT_TYPES = ("financial", "classes", "payments", "enrollments")

LOGO_SCHEMES = ("http", "https")
LOGO_TIMEOUT = 3.0
LOGO_MAX_BYTES = 512 * 1024


def format_money(amount) -> str:
    return f"{float(amount or 0):,.0f} FCFA".replace(",", " ")


def format_date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def _is_public_host(host: str) -> bool:
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError):
        return False
    for info in infos:
        address = ipaddress.ip_address(info[4][0].split("%", 1)[0])
        if not address.is_global:
            return False
    return True


def fetch_logo(url: str) -> Optional[bytes]:
    """
    Download a school logo with a short timeout and a size cap.

    Only http(s) URLs resolving to public addresses are fetched; anything
    refused or failing returns None.
    """
    parsed = urlparse(url or "")
    if parsed.scheme not in LOGO_SCHEMES or not parsed.hostname:
        logger.warning("Logo URL refused: %r", url)
        return None
    if not _is_public_host(parsed.hostname):
        logger.warning("Logo host %s is not a public address", parsed.hostname)
        return None

    try:
        with httpx.Client(timeout=LOGO_TIMEOUT, follow_redirects=False) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                chunks, size = [], 0
                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > LOGO_MAX_BYTES:
                        logger.warning("Logo at %s is larger than %d bytes", url, LOGO_MAX_BYTES)
                        return None
                    chunks.append(chunk)
                return b"".join(chunks)
    except httpx.HTTPError as e:
        logger.warning("Could not download logo %s: %s", url, e)
        return None


class PdfPage:
    """Canvas with a moving cursor; breaks pages when the cursor reaches the bottom."""

    def __init__(self, school, title: str):
        self.buffer = BytesIO()
        self.canvas = canvas.Canvas(self.buffer, pagesize=A4)
        self.canvas.setTitle(title)
        self.width, self.height = A4
        self.school = school
        self.y = self.height

    # ---- header ----
    def draw_header(self) -> None:
        c = self.canvas
        school = self.school
        c.setFillColor(BRAND_INDIGO)
        c.rect(0, self.height - HEADER_HEIGHT, self.width, HEADER_HEIGHT, fill=1, stroke=0)
        self._draw_logo()

        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 24)
        c.drawCentredString(self.width / 2, self.height - 20 * mm, school.name)
        c.setFont("Helvetica", 10)
        if school.address:
            c.drawCentredString(self.width / 2, self.height - 30 * mm, school.address)
        contact = " | ".join(filter(None, [
            f"Tél: {school.phone}" if school.phone else "",
            f"Email: {school.email}" if school.email else "",
        ]))
        if contact:
            c.drawCentredString(self.width / 2, self.height - 37 * mm, contact)
        self.y = self.height - HEADER_HEIGHT - 20 * mm

    def _draw_logo(self) -> None:
        if not self.school.logo_url:
            return
        data = fetch_logo(self.school.logo_url)
        if data is None:
            return
        try:
            logo = ImageReader(BytesIO(data))
            self.canvas.drawImage(
                logo, X_MARGIN, self.height - 40 * mm, width=30 * mm, height=30 * mm,
                preserveAspectRatio=True, mask="auto")
        except Exception as e:
            # a broken logo never blocks the document
            logger.warning("Could not draw logo for school %s: %s", self.school.pk, e)

    # ---- text helpers ----
    def ensure_space(self, needed: float) -> None:
        if self.y - needed < 25 * mm:
            self.canvas.showPage()
            self.y = self.height - 20 * mm

    def title(self, text: str, size: int = 20) -> None:
        self.ensure_space(15 * mm)
        self.canvas.setFillColor(INK)
        self.canvas.setFont("Helvetica-Bold", size)
        self.canvas.drawCentredString(self.width / 2, self.y, text)
        self.y -= 15 * mm

    def text(self, text: str, size: int = 12, bold: bool = False, centered: bool = False,
             gap: float = 8 * mm) -> None:
        self.ensure_space(gap)
        self.canvas.setFillColor(INK)
        self.canvas.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        if centered:
            self.canvas.drawCentredString(self.width / 2, self.y, text)
        else:
            self.canvas.drawString(X_MARGIN, self.y, text)
        self.y -= gap

    def key_value(self, label: str, value: str) -> None:
        self.ensure_space(7 * mm)
        c = self.canvas
        c.setFont("Helvetica", 10)
        c.setFillColor(MUTED)
        c.drawString(X_MARGIN, self.y, label)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 11)
        c.drawRightString(self.width - X_MARGIN, self.y, value)
        self.y -= 7 * mm

    def amount_box(self, label: str, amount) -> None:
        self.ensure_space(25 * mm)
        c = self.canvas
        box_h = 18 * mm
        box_y = self.y - box_h
        c.setFillColor(LIGHT_BG)
        c.roundRect(X_MARGIN, box_y, self.width - 2 * X_MARGIN, box_h, 4 * mm, fill=1, stroke=0)
        c.setFont("Helvetica", 10)
        c.setFillColor(MUTED)
        c.drawCentredString(self.width / 2, box_y + box_h - 6.5 * mm, label)
        c.setFillColor(INK)
        c.setFont("Helvetica-Bold", 18)
        c.drawCentredString(self.width / 2, box_y + 5 * mm, format_money(amount))
        self.y = box_y - 8 * mm

    def table(self, headers: Sequence[str], rows: Iterable[Sequence], widths: Sequence[float]) -> None:
        """Plain column table; headers repeat after a page break."""
        def draw_row(values, bold=False):
            self.canvas.setFont("Helvetica-Bold" if bold else "Helvetica", 9)
            x = X_MARGIN
            for value, w in zip(values, widths):
                self.canvas.drawString(x, self.y, str(value if value is not None else "")[:40])
                x += w
            self.y -= 6 * mm

        self.canvas.setFillColor(INK)
        draw_row(headers, bold=True)
        for row in rows:
            if self.y < 25 * mm:
                self.canvas.showPage()
                self.y = self.height - 20 * mm
                draw_row(headers, bold=True)
            draw_row(row)
        self.y -= 4 * mm

    def footer(self, text: str) -> None:
        self.canvas.setFillColor(MUTED)
        self.canvas.setFont("Helvetica", 8)
        self.canvas.drawCentredString(self.width / 2, 12 * mm, text)

    def render(self) -> bytes:
        self.canvas.showPage()
        self.canvas.save()
        data = self.buffer.getvalue()
        self.buffer.close()
        return data


# -------------------------------------------------
# certificates
# -------------------------------------------------
def _certificate_body(page: PdfPage, certificate) -> None:
    student = certificate.student
    school = certificate.school
    year = certificate.academic_year
    doc_type = certificate.document_type
    klass = student.class_name or "-"

    if doc_type == "bonne_conduite":
        page.text(f"Je soussigné, Directeur de {school.name},")
        page.text("Atteste que l'élève:")
    elif doc_type == "inscription":
        page.text(f"Le Directeur de {school.name}, atteste que:")
    else:
        page.text(f"Le Directeur de {school.name},")
        page.text("Certifie que l'élève:")

    page.text(student.full_name, size=14, bold=True, centered=True, gap=10 * mm)
    page.text(f"Matricule: {student.matricule}")
    if student.date_of_birth:
        page.text(f"Né(e) le: {format_date(student.date_of_birth)}")

    if doc_type == "scolarite":
        page.text(f"Est régulièrement inscrit(e) et suit assidûment les cours de la classe de {klass}")
        page.text(f"pour l'année scolaire {year}.")
    elif doc_type == "inscription":
        page.text(f"Est dûment inscrit(e) en classe de {klass}")
        page.text(f"pour l'année scolaire {year}.")
    elif doc_type == "bonne_conduite":
        page.text("A fait preuve d'une conduite exemplaire et d'une grande assiduité")
        page.text(f"tout au long de l'année scolaire {year}.")
    elif doc_type == "presence":
        page.text(f"A régulièrement assisté aux cours de la classe de {klass}")
        page.text(f"pour l'année scolaire {year}.")
    elif doc_type == "paiement":
        summary = student.financial_summary()
        page.text(f"A versé la somme de {format_money(summary['total_paid'])}")
        page.text(f"au titre de l'année scolaire {year}.")
    else:
        page.text(f"Est inscrit(e) en classe de {klass} pour l'année scolaire {year}.")
        note = certificate.metadata.get("notes") if isinstance(certificate.metadata, dict) else None
        if note:
            page.text(str(note))


def certificate_pdf(certificate) -> bytes:
    school = certificate.school
    page = PdfPage(school, certificate.document_name)
    page.draw_header()
    page.title(certificate.document_name.upper())
    _certificate_body(page, certificate)

    page.y -= 10 * mm
    place = school.address or school.name
    page.text(f"Fait à {place}, le {format_date(certificate.issue_date)}")
    page.y -= 10 * mm
    page.canvas.setFont("Helvetica-Bold", 12)
    page.canvas.drawRightString(page.width - X_MARGIN, page.y, certificate.get_signatory_display())
    return page.render()


# -------------------------------------------------
# receipts
# -------------------------------------------------
def receipt_filename(payment) -> str:
    return f"Recu_{payment.receipt_number}.pdf"


def receipt_pdf(payment) -> bytes:
    student = payment.student
    page = PdfPage(payment.school, f"Reçu {payment.receipt_number}")
    page.draw_header()
    page.title("REÇU DE PAIEMENT", size=18)
    page.text(f"N° {payment.receipt_number}", bold=True, centered=True, gap=12 * mm)

    page.text("Élève", size=12, bold=True)
    page.key_value("Nom complet", student.full_name)
    page.key_value("Matricule", student.matricule)
    page.key_value("Classe", student.class_name or "-")
    page.y -= 4 * mm

    page.text("Détails du paiement", size=12, bold=True)
    page.key_value("Date", format_date(payment.payment_date))
    page.key_value("Type", str(payment.get_payment_type_display()))
    page.key_value("Mode de paiement", str(payment.get_payment_method_display()))
    if payment.payment_period:
        page.key_value("Période", payment.payment_period)
    page.key_value("Année scolaire", payment.academic_year)
    if payment.transaction_reference:
        page.key_value("Référence", payment.transaction_reference)
    page.y -= 4 * mm

    page.amount_box("Montant payé", payment.amount)
    if payment.notes:
        page.text(payment.notes, size=10)
    page.footer(f"Émis le {format_date(timezone.localdate())} - Merci pour votre paiement")
    return page.render()


# -------------------------------------------------
# reports
# -------------------------------------------------
def report_filename(report_type: str, timestamp: Optional[int] = None) -> str:
    return f"Rapport_{report_type}_{timestamp or timestamp_ms()}.pdf"


def _financial_report(page: PdfPage, school, filters: dict) -> None:
    from main.finance.utils import payment_stats
    from main.models import Payment

    stats = payment_stats(school)
    page.title("RAPPORT FINANCIER")
    page.amount_box("Total encaissé", stats["total_collected"])
    page.key_value("Encaissé ce mois", format_money(stats["monthly_total"]))
    page.key_value("Nombre de paiements", str(stats["payment_count"]))
    page.key_value("Élèves en attente de paiement", str(stats["pending_count"]))
    page.y -= 4 * mm

    labels = dict(Payment.Type.choices)
    by_type = (
        Payment.objects.for_school(school)
        .values("payment_type")
        .annotate(total=Sum("amount"), n=Count("id"))
        .order_by("payment_type")
    )
    page.text("Répartition par type", bold=True)
    page.table(
        ["Type", "Paiements", "Montant"],
        [(labels.get(r["payment_type"], r["payment_type"]), r["n"], format_money(r["total"])) for r in by_type],
        [70 * mm, 35 * mm, 60 * mm],
    )
    methods = dict(Payment.Method.choices)
    page.text("Répartition par mode de paiement", bold=True)
    page.table(
        ["Mode", "Montant"],
        [(methods.get(k, k), format_money(v)) for k, v in stats["by_method"].items()],
        [70 * mm, 60 * mm],
    )


def _classes_report(page: PdfPage, school, filters: dict) -> None:
    from main.finance.utils import classes_with_statistics

    page.title("RAPPORT DES CLASSES")
    rows = []
    for school_class, stats in classes_with_statistics(school, filters.get("academic_year")):
        rows.append((
            school_class.name,
            school_class.academic_year,
            f"{stats['student_count']}/{stats['capacity']}",
            f"{stats['occupancy_rate']:.1f}%",
            format_money(stats["expected_revenue"]),
        ))
    page.table(
        ["Classe", "Année", "Effectif", "Occupation", "Revenu attendu"],
        rows,
        [35 * mm, 25 * mm, 25 * mm, 25 * mm, 50 * mm],
    )


def _payments_report(page: PdfPage, school, filters: dict) -> None:
    from main.models import Payment

    page.title("RAPPORT DES PAIEMENTS")
    payments = Payment.objects.for_school(school).select_related("student")
    if filters.get("start_date"):
        payments = payments.filter(payment_date__gte=filters["start_date"])
    if filters.get("end_date"):
        payments = payments.filter(payment_date__lte=filters["end_date"])
    page.amount_box("Total de la période", payments.total())
    page.table(
        ["Date", "Reçu", "Élève", "Type", "Montant"],
        [
            (format_date(p.payment_date), p.receipt_number, p.student.full_name,
             p.get_payment_type_display(), format_money(p.amount))
            for p in payments
        ],
        [22 * mm, 35 * mm, 50 * mm, 30 * mm, 35 * mm],
    )


def _enrollments_report(page: PdfPage, school, filters: dict) -> None:
    from main.models import Enrollment

    page.title("RAPPORT DES INSCRIPTIONS")
    enrollments = Enrollment.objects.for_school(school).select_related("student")
    if filters.get("academic_year"):
        enrollments = enrollments.filter(academic_year=filters["academic_year"])

    statuses = dict(Enrollment.Status.choices)
    for row in enrollments.values("status").annotate(n=Count("id")).order_by("status"):
        page.key_value(str(statuses.get(row["status"], row["status"])), str(row["n"]))
    page.y -= 4 * mm
    page.table(
        ["Date", "Élève", "Classe", "Type", "Statut"],
        [
            (format_date(e.enrollment_date), e.student.full_name if e.student else "-",
             e.requested_class, e.get_enrollment_type_display(), e.get_status_display())
            for e in enrollments
        ],
        [22 * mm, 50 * mm, 35 * mm, 30 * mm, 35 * mm],
    )


REPORT_BUILDERS = {
    "financial": _financial_report,
    "classes": _classes_report,
    "payments": _payments_report,
    "enrollments": _enrollments_report,
}


def report_pdf(report_type: str, school, **filters) -> bytes:
    try:
        builder = REPORT_BUILDERS[report_type]
    except KeyError:
        raise ValueError(f"Unknown report type: {report_type}")
    page = PdfPage(school, f"Rapport {report_type}")
    page.draw_header()
    builder(page, school, filters)
    page.footer(f"Généré le {timezone.localtime().strftime('%d/%m/%Y %H:%M')}")
    return page.render()

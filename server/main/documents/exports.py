# ==============================================
# File: main/documents/exports.py
# Purpose: Tabular exports (pandas)
# ==============================================
from __future__ import annotations

import pandas as pd

PAYMENT_COLUMNS = {
    "receipt_number": "Reçu",
    "payment_date": "Date",
    "student__full_name": "Élève",
    "student__matricule": "Matricule",
    "student__class_name": "Classe",
    "payment_type": "Type",
    "payment_method": "Mode",
    "payment_period": "Période",
    "academic_year": "Année scolaire",
    "amount": "Montant",
}


def payments_dataframe(payments) -> pd.DataFrame:
    rows = list(payments.values(*PAYMENT_COLUMNS.keys()))
    df = pd.DataFrame(rows, columns=list(PAYMENT_COLUMNS.keys()))
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce").fillna(0)
    return df.rename(columns=PAYMENT_COLUMNS)


def payments_csv(payments) -> str:
    return payments_dataframe(payments).to_csv(index=False)


def export_filename(prefix: str, on) -> str:
    return f"{prefix}_{on.strftime('%Y-%m-%d')}.csv"

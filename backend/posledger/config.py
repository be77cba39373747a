# backend/posledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "allow": sales may drive on-hand negative (backorder signal)
    # "reject": oversell fails the sale before any write
    STOCK_OVERSELL_POLICY = os.environ.get("STOCK_OVERSELL_POLICY", "allow")

    # Due-date offset for credit records opened by credit sales
    CREDIT_TERM_DAYS = int(os.environ.get("CREDIT_TERM_DAYS", "30"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

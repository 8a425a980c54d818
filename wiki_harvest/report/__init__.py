# File: wiki_harvest/report/__init__.py
"""wiki_harvest.report: запись JSON-документов и HTML-отчёт о запуске."""

from __future__ import annotations

from wiki_harvest.report.json_report import WriteError, render_json, write_documents

__all__ = ["WriteError", "render_json", "write_documents"]

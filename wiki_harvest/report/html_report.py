# File: wiki_harvest/report/html_report.py
"""wiki_harvest.report.html_report: HTML-отчёт о запуске с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from jinja2 import BaseLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from wiki_harvest.stats import RunSummary

TEMPLATE_NAME = "summary.html.j2"


def _loader(template_dir: Optional[Union[Path, str]]) -> BaseLoader:
    if template_dir is not None:
        return FileSystemLoader(str(template_dir))
    return PackageLoader("wiki_harvest.report", "templates")


def render_html(
    summary: RunSummary,
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Рендерит HTML-отчёт о запуске и сохраняет его по указанному пути.

    Args:
        summary: итог запуска RunSummary.
        output_path: путь к итоговому HTML-файлу.
        template_dir: своя директория с шаблоном ``summary.html.j2``;
            по умолчанию используется шаблон из пакета.

    Returns:
        Path до сохранённого HTML-файла.

    Пример:
    ```python
    from wiki_harvest.report.html_report import render_html
    html_path = render_html(summary, 'reports/summary.html')
    ```
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=_loader(template_dir),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)
    html_content = template.render(summary=summary.as_dict())
    output_path.write_text(html_content, encoding="utf-8")
    return output_path

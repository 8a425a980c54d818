# === FILE: wiki_harvest/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска WikiHarvest через командную строку.

Команды:
  run       Обойти сайт, собрать записи и записать JSON-документы
  config    Показать текущую конфигурацию
  extract   Разобрать локальный HTML-файл как страницу заданной категории

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (только stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда run опции:
  --category NAME     all (по умолчанию) или имя категории
  --languages CODES   all или коды языков через запятую (для конфига с languages)
  --concurrency INT   Глобальный лимит одновременных запросов
  --out-dir DIR       Каталог для документов (override out_dir)
  --max-depth INT     Бюджет глубины обхода (override max_depth)
  --report-html PATH  Сохранить HTML-отчёт о запуске
  --summary-json PATH Сохранить сводку запуска в JSON
  --run-timeout SEC   Таймаут всего запуска (секунд)

Пример:
  wiki-harvest --config configs/default.yaml run --category detail --concurrency 8
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError as ConfigError

from wiki_harvest import __version__
from wiki_harvest.builder import RecordBuilder, ValidationError
from wiki_harvest.config import ALL_CATEGORIES, load_config, select_categories, select_languages
from wiki_harvest.crawler.models import CategoryKind, ResourceKey
from wiki_harvest.engine import Engine
from wiki_harvest.logger import DEFAULT_FORMAT, configure
from wiki_harvest.parser.html_parser import ExtractionError, extract
from wiki_harvest.report.html_report import render_html
from wiki_harvest.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
CATEGORY_CHOICES = [ALL_CATEGORIES] + [c.value for c in CategoryKind]


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='WikiHarvest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд WikiHarvest CLI."""
    configure(level=log_level.upper(), log_file=log_file, log_format=log_format)
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


def _load(ctx):
    try:
        return load_config(ctx.obj['config_path'])
    except (OSError, ValueError, TypeError, ConfigError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')


@cli.command('run', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--category', 'category',
    default=ALL_CATEGORIES, show_default=True,
    type=click.Choice(CATEGORY_CHOICES, case_sensitive=False),
    help='Какие категории записать (all - все)'
)
@click.option(
    '--languages', 'languages',
    default=None,
    help='Коды языков через запятую или all (по умолчанию все языки конфига)'
)
@click.option('--concurrency', type=click.IntRange(min=1), default=None, help='Лимит одновременных запросов')
@click.option(
    '--out-dir', 'out_dir',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Каталог для JSON-документов'
)
@click.option('--max-depth', 'max_depth', type=click.IntRange(min=0), default=None, help='Бюджет глубины обхода')
@click.option(
    '--report-html', 'html_output',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт о запуске'
)
@click.option(
    '--summary-json', 'json_output',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Сохранить сводку запуска в JSON'
)
@click.option('--run-timeout', 'run_timeout', type=float, default=None, help='Таймаут всего запуска (секунд)')
@click.pass_context
def run(ctx, category, languages, concurrency, out_dir, max_depth, html_output, json_output, run_timeout):
    """Запустить конвейер и записать документы."""
    cfg = _load(ctx)
    overrides = {
        k: v
        for k, v in (('concurrency', concurrency), ('out_dir', out_dir), ('max_depth', max_depth))
        if v is not None
    }
    if overrides:
        cfg = cfg.model_copy(update=overrides)
    categories = select_categories(category)
    if languages is not None:
        try:
            languages = select_languages(languages, cfg.language_codes)
        except ValueError as e:
            print_error(f'Ошибка выбора языка: {e}')

    try:
        summary = Engine(cfg).start(categories, languages=languages, timeout=run_timeout)
    except asyncio.TimeoutError:
        print_error(f'Запуск не завершён за {run_timeout} секунд')
    except (KeyboardInterrupt, asyncio.CancelledError):
        print_error('Запуск прерван')
    except Exception as e:
        print_error(f'Ошибка при запуске: {e}')

    if html_output:
        try:
            click.echo(f'HTML report: {render_html(summary, html_output)}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')
    if json_output:
        try:
            click.echo(f'JSON summary: {render_json(summary.as_dict(), json_output)}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    click.echo(
        f"Written: {', '.join(summary.categories_written) or 'nothing'}; "
        f"records: {sum(summary.records.values())}; "
        f"fetch failures: {len(summary.fetch_failures)}; "
        f"unresolved refs: {summary.unresolved_references}"
    )
    ctx.exit(summary.exit_code)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = _load(ctx)
    click.echo(cfg.model_dump_json(indent=2))


@cli.command('extract', context_settings=CONTEXT_SETTINGS)
@click.argument('category', type=click.Choice([c.value for c in CategoryKind], case_sensitive=False))
@click.argument('html_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--base-url', default='http://localhost/', show_default=True, help='URL, от которого считать ссылки')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
def extract_file(category, html_file, base_url, pretty):
    """Разобрать локальный HTML-файл и вывести записи (без сети)."""
    kind = CategoryKind(category.lower())
    content = html_file.read_text(encoding='utf-8')
    outcome = extract(kind, content, base_url)
    if isinstance(outcome, ExtractionError):
        print_error(f'Ошибка извлечения: поле {outcome.field}: {outcome.reason}')

    builder = RecordBuilder()
    source = ResourceKey.from_url(base_url)
    records, errors = [], []
    for item in outcome.items:
        built = builder.build(kind, str(item.get(outcome.id_field, '')), item, source)
        if isinstance(built, ValidationError):
            errors.append({'id': built.record_id, 'reason': built.reason})
        else:
            records.append(built.to_json())
    errors.extend({'field': e.field, 'reason': e.reason} for e in outcome.item_errors)

    data = {
        'category': kind.value,
        'records': records,
        'links': [{'url': link.url, 'category': link.category.value} for link in outcome.links],
        'errors': errors,
        'color_errors': [{'raw': c.raw, 'reason': c.reason} for c in outcome.color_errors],
    }
    click.echo(json.dumps(data, ensure_ascii=False, indent=2 if pretty else None, sort_keys=True))
    if errors:
        sys.exit(1)


if __name__ == "__main__":
    cli()

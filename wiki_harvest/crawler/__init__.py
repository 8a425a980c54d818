"""wiki_harvest.crawler: загрузка страниц, кэш и рекурсивный обход ссылок."""

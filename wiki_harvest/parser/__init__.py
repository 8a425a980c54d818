"""wiki_harvest.parser: правила извлечения, HTML-экстрактор и нормализация цветов."""

# setup.py
from setuptools import setup, find_packages

setup(
    name="wiki_harvest",
    version="0.1.0",
    description="Асинхронный конвейер WikiHarvest: обход вики, извлечение и нормализация данных в JSON",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"wiki_harvest.report": ["templates/*.j2"]},
    include_package_data=True,
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "lxml>=4.9",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
        "webcolors>=1.13",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "wiki-harvest=wiki_harvest.cli:cli",
        ],
    },
    python_requires=">=3.11",
)

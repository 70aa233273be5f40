"""Setup pour ERP Gestion."""

from setuptools import setup, find_packages

setup(
    name="erp_gestion",
    version="1.0.0",
    description="ERP multi-societes : achats, ventes, reglements, RH, abonnements, garanties",
    author="AJ",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": [
            "erp-gestion=erp_gestion.main:main",
        ],
    },
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.29.0",
        "gunicorn>=21.2.0",
        "pydantic>=2.0",
        "openpyxl>=3.1.0",
        "jinja2>=3.1.0",
        "python-dateutil>=2.8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.27.0",
        ],
    },
)

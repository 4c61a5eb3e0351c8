"""Blocklog setup file."""

from setuptools import find_packages, setup  # type: ignore[import-untyped]

setup(
    name="blocklog",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    include_package_data=True,
    package_data={"blocklog": ["templates/*.html"]},
    install_requires=[
        "flask",
        "sqlalchemy>=2.0",
        "click",
        "firebase-admin",
        "pymysql",
        "pytz",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
            "mypy",
            "ruff",
            "types-pytz",
        ],
    },
    entry_points={
        "console_scripts": [
            "blocklog=blocklog.commands:cli",
        ],
    },
)

"""
Bank Notifications - Setup Configuration
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="bank-notifications",
    version="1.0.0",
    description="Turns bank SMS/push notifications into normalized, categorized transactions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["bank_notifications", "bank_notifications.*"]),
    python_requires=">=3.10",
    install_requires=[
        "psycopg2-binary>=2.9.9",
        "anthropic>=0.39.0",
        "python-dotenv>=1.0.0",
        "requests>=2.31.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "httpx>=0.27.0",
            "black>=23.12.1",
            "flake8>=7.0.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bank-init-db=bank_notifications.cli.init_db:main",
            "bank-process=bank_notifications.cli.process_message:main",
            "bank-serve=bank_notifications.cli.serve:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Office/Business :: Financial",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    include_package_data=True,
    package_data={
        "bank_notifications": [
            "db/*.sql",
            "data/*.json",
        ],
    },
)

from codecs import open
from os import path

from setuptools import find_packages, setup

here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="foureyes",
    version="0.1.0",
    packages=find_packages(exclude=["contrib", "docs", "tests*"]),
    description="Commit status check enforcing a second reviewer on merge queue commits",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.11",
    install_requires=[
        "cerberus",
        "cryptography>=43.0.1",
        "fastapi>=0.110.0",
        "httpx>=0.23.0",
        "orjson",
        "prometheus-client",
        "pyjwt",
        "pyyaml",
        "requests>=2.32.3",
        "sentry-sdk>=2.13.0",
        "uvicorn>=0.29.0",
    ],
    extras_require={
        "tests": [
            "freezegun",
            "pytest",
            "pytest-asyncio",
            "pytest-mock",
            "respx",
        ],
    },
    entry_points={"console_scripts": ["foureyes=foureyes.__main__:main"]},
)

from setuptools import setup, find_packages

setup(
    name="tunematch_backend",
    version="0.1.0",
    packages=find_packages(include=["tunematch", "tunematch.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "aiosqlite",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "PyJWT>=2",
        "aiohttp",
        "pytz",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    python_requires=">=3.9",
)

from setuptools import setup, find_packages

setup(
    name="portal-site",
    version="1.0.0",
    packages=find_packages(include=["portal", "portal.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "uvicorn>=0.29",
        "h11>=0.14",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
            "aiosqlite>=0.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "portal-server=portal.__main__:main",
        ],
    },
)

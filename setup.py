from setuptools import setup, find_packages

setup(
    name="mobileproxy",
    version="1.0.0",
    packages=find_packages(include=["mobileproxy", "mobileproxy.*"]),
    python_requires=">=3.12",
    install_requires=[
        "fastapi>=0.115",
        "uvicorn[standard]>=0.30",
        "httpx>=0.27",
        "pydantic>=2.7",
        "pydantic-settings>=2.7",
        "google-auth>=2.29",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
    entry_points={
        "console_scripts": ["mobileproxy=mobileproxy.__main__:main"],
    },
)

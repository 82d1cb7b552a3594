# setup.py
from setuptools import setup, find_packages

setup(
    name="cash-planner",
    version="0.1.0",
    description="Recurring transaction planning backend with cash-flow projection and LLM suggestions",
    packages=find_packages(include=["cash_planner", "cash_planner.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "fastapi>=0.100",
        "uvicorn>=0.20",
        "xlsxwriter>=3.0",
        "huggingface_hub>=0.33",
        "mcp>=1.2,<2",
        "anyio>=3.7",
        "bcrypt>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "cash-planner=cash_planner.cli:main",
            "cash-planner-mcp=cash_planner.mcp_server:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)

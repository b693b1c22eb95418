"""Setup configuration for chatsentry."""

from setuptools import setup, find_packages

setup(
    name="chatsentry",
    version="0.0.1",
    description="LLM-backed spam moderation for group chats",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "openai>=1.40",
        "httpx>=0.27",
        "jsonschema>=4.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
        "py-cord>=2.6",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)

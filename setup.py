from setuptools import setup, find_packages

# Core requirements - always installed
REQUIRED = [
    "pydantic>=2.0.0,<3.0.0",
    "numpy>=1.26.0",

    # Langchain
    "langchain-core>=0.3.19,<2.0.0",

    # Scheduling
    "apscheduler>=3.10.0,<4.0.0",
]

# Optional dependencies
EXTRAS = {
    # Local embedding model
    "local": ["sentence-transformers>=2.7.0"],

    # Test tooling
    "test": [
        "pytest>=8.0.0",
        "pytest-asyncio>=0.23.0",
    ],

    # All dependencies
    "all": [
        "sentence-transformers>=2.7.0",
    ],
}

setup(
    name="mnemosearch",
    version="0.1.0",
    description="Hybrid keyword and semantic retrieval for project-scoped agent memories",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=REQUIRED,
    extras_require=EXTRAS,
    entry_points={
        "console_scripts": [
            "mnemosearch=mnemosearch.cli:main"
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Operating System :: OS Independent",
    ],
    long_description_content_type="text/markdown",
    long_description=open("README.md").read(),
    license="MIT",
    keywords="ai memory retrieval hybrid-search fts5 embeddings agents",
)

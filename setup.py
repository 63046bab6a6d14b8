"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/zackees/whisperbuild"
KEYWORDS = "whisper whisper.cpp ggml cmake cffi native build speech-recognition"
HERE = os.path.dirname(os.path.abspath(__file__))


def _read_version() -> str:
    init_path = os.path.join(HERE, "src", "whisperbuild", "__init__.py")
    with open(init_path, encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__ in whisperbuild/__init__.py")


if __name__ == "__main__":
    setup(
        name="whisperbuild",
        version=_read_version(),
        description="Native build orchestration for whisper.cpp",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages("src"),
        package_data={"whisperbuild": ["data/*.h"]},
        include_package_data=True,
        install_requires=[
            "cffi>=1.15",
            "pycparser>=2.21",
            "psutil>=5.9",
            "requests>=2.31",
            "tqdm>=4.66",
        ],
        extras_require={
            "test": ["pytest>=7.0"],
        },
        entry_points={
            "console_scripts": [
                "wbuild=whisperbuild.cli:main",
            ],
        },
    )

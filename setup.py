"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/nasmbuild/nasmbuild"
KEYWORDS = "nasm assembler build static-library archive jobserver build-script"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_readme() -> str:
    path = os.path.join(HERE, "README.md")
    if not os.path.exists(path):
        return ""
    with open(path, encoding="utf-8") as f:
        return f.read()


if __name__ == "__main__":
    setup(
        name="nasmbuild",
        version="0.1.0",
        description="Assemble NASM sources into a static library from a build script",
        long_description=read_readme(),
        long_description_content_type="text/markdown",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.9",
        install_requires=["psutil"],
        extras_require={"test": ["pytest"]},
        include_package_data=True)

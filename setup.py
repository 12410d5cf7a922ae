from setuptools import setup, find_packages

setup(
    name="grantha-library",
    version="0.1.0",
    description="Sanskrit grantha library: verses, nested commentaries and a JSON API",
    python_requires=">=3.9",
    # Packages live in tools/lib
    package_dir={"": "tools/lib"},
    packages=find_packages(where="tools/lib", exclude=["*.tests"]),
    package_data={"grantha_library": ["schemas/*.json"]},
    install_requires=[
        "Flask>=2.3",
        "flask-cors>=4.0",
        "Werkzeug>=2.3",
        "pymongo>=4.0",
        "PyYAML>=6.0",
        "jsonschema>=4.0",
        "rich>=13.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "mongomock>=4.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "grantha-library=grantha_library.cli:main",
        ],
    },
)
